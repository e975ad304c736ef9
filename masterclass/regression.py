#!/usr/bin/env python3
"""
Linear and logistic regression helpers
Wraps the statsmodels formula interface so notebooks read like R's lm()/glm()
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import statsmodels.api as sm
import statsmodels.formula.api as smf
from sklearn.metrics import confusion_matrix, roc_auc_score
from sklearn.model_selection import train_test_split


def _outcome_name(formula):
    if "~" not in formula:
        raise ValueError(f"Formula must look like 'y ~ x1 + x2', got '{formula}'")
    return formula.split("~", 1)[0].strip()


def fit_linear_model(data, formula):
    """Fit an ordinary least squares model

    Args:
        data: DataFrame with the outcome and predictors
        formula: Patsy formula, e.g. "progression ~ bmi + bp"

    Returns:
        statsmodels RegressionResults
    """
    outcome = _outcome_name(formula)
    if outcome not in data.columns:
        raise ValueError(f"Outcome '{outcome}' not found in data")

    print(f"Fitting linear model: {formula}")
    result = smf.ols(formula, data=data).fit()
    print(f"  ✓ R² = {result.rsquared:.3f} (adjusted {result.rsquared_adj:.3f}), n = {int(result.nobs):,}")
    return result


def fit_logistic_model(data, formula):
    """Fit a logistic regression as a binomial GLM

    Args:
        data: DataFrame with a 0/1 outcome and predictors
        formula: Patsy formula, e.g. "malignant ~ mean_radius"

    Returns:
        statsmodels GLMResults
    """
    outcome = _outcome_name(formula)
    if outcome not in data.columns:
        raise ValueError(f"Outcome '{outcome}' not found in data")
    values = set(pd.unique(data[outcome].dropna()))
    if not values <= {0, 1}:
        raise ValueError(f"Outcome '{outcome}' must be coded 0/1, found {sorted(values)}")

    # Patsy splits a boolean outcome into two columns and the GLM would model P(False)
    data = data.assign(**{outcome: data[outcome].astype(float)})

    print(f"Fitting logistic model: {formula}")
    result = smf.glm(formula, data=data, family=sm.families.Binomial()).fit()
    print(f"  ✓ Deviance = {result.deviance:.1f} on {int(result.df_resid):,} df, AIC = {result.aic:.1f}")
    return result


def coefficient_table(result, conf_level=0.95, exponentiate=False):
    """Tidy coefficient table, one row per term

    Args:
        result: Fitted statsmodels results object
        conf_level: Confidence level for the intervals
        exponentiate: Report exp(estimate) and exp(interval), i.e. odds ratios for logistic models

    Returns:
        DataFrame with estimate, std_error, statistic, p_value, conf_low, conf_high
    """
    if not 0 < conf_level < 1:
        raise ValueError("conf_level must be between 0 and 1")

    ci = result.conf_int(alpha=1 - conf_level)
    table = pd.DataFrame(
        {
            "estimate": result.params,
            "std_error": result.bse,
            "statistic": result.tvalues,
            "p_value": result.pvalues,
            "conf_low": ci.iloc[:, 0],
            "conf_high": ci.iloc[:, 1],
        }
    )
    table.index.name = "term"

    if exponentiate:
        for col in ["estimate", "conf_low", "conf_high"]:
            table[col] = np.exp(table[col])
    return table


def predict_classes(result, data, threshold=0.5):
    """Predicted probabilities and 0/1 classes from a logistic model

    Returns:
        DataFrame with ``probability`` and ``predicted`` columns, indexed like data
    """
    if not 0 < threshold < 1:
        raise ValueError("threshold must be between 0 and 1")
    proba = np.asarray(result.predict(data))
    return pd.DataFrame(
        {"probability": proba, "predicted": (proba >= threshold).astype(int)},
        index=data.index,
    )


def classification_summary(y_true, y_prob, threshold=0.5):
    """Confusion matrix and the usual binary classification metrics

    Args:
        y_true: True labels (0/1)
        y_prob: Predicted probability of class 1
        threshold: Probability cut-off for calling class 1

    Returns:
        Dictionary with confusion (DataFrame), accuracy, sensitivity, specificity, roc_auc
    """
    y_true = np.asarray(y_true).astype(int)
    y_prob = np.asarray(y_prob, dtype=float)
    y_pred = (y_prob >= threshold).astype(int)

    cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
    tn, fp, fn, tp = cm.ravel()
    confusion = pd.DataFrame(
        cm,
        index=pd.Index([0, 1], name="actual"),
        columns=pd.Index([0, 1], name="predicted"),
    )

    summary = {
        "confusion": confusion,
        "accuracy": (tp + tn) / cm.sum(),
        "sensitivity": tp / (tp + fn) if (tp + fn) else np.nan,
        "specificity": tn / (tn + fp) if (tn + fp) else np.nan,
        "roc_auc": roc_auc_score(y_true, y_prob) if len(np.unique(y_true)) == 2 else np.nan,
    }
    return summary


def split_data(data, test_size=0.25, stratify=None, random_state=42):
    """Train/test split of a DataFrame

    Args:
        data: DataFrame to split
        test_size: Fraction of rows held out
        stratify: Optional column name to stratify on
        random_state: Seed

    Returns:
        Tuple (train, test)
    """
    strat = data[stratify] if stratify is not None else None
    train, test = train_test_split(
        data, test_size=test_size, stratify=strat, random_state=random_state
    )
    print(f"Train: {len(train):,} rows | Test: {len(test):,} rows")
    return train, test


def plot_linear_fit(data, x, y, save_path=None):
    """Scatter plot with the least-squares line and its confidence band"""
    fig, ax = plt.subplots(figsize=(6, 5))
    sns.regplot(data=data, x=x, y=y, ax=ax, scatter_kws={"s": 12, "alpha": 0.6})
    ax.set_title(f"{y} ~ {x}")
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()


def plot_residuals(result, save_path=None):
    """Residuals vs fitted values and a normal Q-Q plot"""
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    axes[0].scatter(result.fittedvalues, result.resid, s=10, alpha=0.6)
    axes[0].axhline(0, color="gray", linestyle="--", linewidth=1)
    axes[0].set_xlabel("Fitted values")
    axes[0].set_ylabel("Residuals")
    axes[0].set_title("Residuals vs fitted")

    sm.qqplot(result.resid, line="45", fit=True, ax=axes[1])
    axes[1].set_title("Normal Q-Q")

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()


def plot_logistic_curve(data, x, y, save_path=None):
    """Observed 0/1 outcomes with the fitted logistic curve for a single predictor"""
    fig, ax = plt.subplots(figsize=(6, 5))
    sns.regplot(
        data=data,
        x=x,
        y=y,
        logistic=True,
        ci=None,
        ax=ax,
        y_jitter=0.03,
        scatter_kws={"s": 12, "alpha": 0.5},
    )
    ax.set_ylabel(f"P({y} = 1)")
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()
