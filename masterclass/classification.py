#!/usr/bin/env python3
"""
Supervised cell type classification in the style of scPred

A labelled reference is projected onto its principal components, the PCs
that separate each cell type from the rest are selected with a Wilcoxon
rank-sum test, and one support vector machine per cell type is trained on
those PCs. Query cells are projected onto the reference loadings and
receive the label with the highest probability, or "unassigned" when no
classifier is confident enough.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import harmonypy
from scipy import sparse
from scipy.stats import mannwhitneyu
from sklearn.decomposition import PCA
from sklearn.model_selection import StratifiedKFold, cross_val_score
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVC
from statsmodels.stats.multitest import multipletests

from masterclass.parameters import CLASSIFIER_PARAMS

UNASSIGNED = "unassigned"


def _dense(X):
    return X.toarray() if sparse.issparse(X) else np.asarray(X)


def _expression(adata, genes=None, use_raw=False):
    """Dense expression matrix restricted to genes (in that order)"""
    source = adata.raw if use_raw else adata
    if source is None:
        raise ValueError("use_raw=True but adata.raw is not set")
    if genes is None:
        return _dense(source.X), list(source.var_names)
    idx = source.var_names.get_indexer(genes)
    if (idx < 0).any():
        missing = [g for g, i in zip(genes, idx) if i < 0]
        raise KeyError(f"{len(missing)} genes not found in the data: {missing[:10]}")
    return _dense(source.X[:, idx]), list(genes)


class ScPredClassifier:
    """PCA + per-cell-type SVM classifier with probability-based rejection.

    Args:
        n_components: Number of reference principal components
        pvalue_threshold: Adjusted p-value below which a PC is informative
        correction: Multiple-testing method understood by statsmodels' multipletests
        threshold: Minimum probability before a cell is called "unassigned"
        kernel: SVM kernel
        C: SVM regularization strength
        cv: Number of cross-validation folds used to report ROC AUC
        random_state: Seed for PCA, SVM and cross-validation
    """

    def __init__(
        self,
        n_components=CLASSIFIER_PARAMS["n_components"],
        pvalue_threshold=CLASSIFIER_PARAMS["pvalue_threshold"],
        correction=CLASSIFIER_PARAMS["correction"],
        threshold=CLASSIFIER_PARAMS["threshold"],
        kernel=CLASSIFIER_PARAMS["kernel"],
        C=CLASSIFIER_PARAMS["C"],
        cv=CLASSIFIER_PARAMS["cv"],
        random_state=0,
    ):
        if n_components < 1:
            raise ValueError("n_components must be at least 1")
        if not 0 < threshold < 1:
            raise ValueError("threshold must be between 0 and 1")
        if not 0 < pvalue_threshold < 1:
            raise ValueError("pvalue_threshold must be between 0 and 1")

        self.n_components = int(n_components)
        self.pvalue_threshold = pvalue_threshold
        self.correction = correction
        self.threshold = threshold
        self.kernel = kernel
        self.C = C
        self.cv = cv
        self.random_state = random_state

        self.genes_ = None
        self.gene_means_ = None
        self.gene_stds_ = None
        self.pca_ = None
        self.embedding_ = None
        self.features_ = None
        self.feature_table_ = None
        self.classifiers_ = None
        self.training_summary_ = None

    def __repr__(self):
        status = "fitted" if self.is_fitted else "not fitted"
        return f"ScPredClassifier(n_components={self.n_components}, threshold={self.threshold}, {status})"

    @property
    def is_fitted(self):
        return self.classifiers_ is not None

    @property
    def cell_types_(self):
        return list(self.classifiers_) if self.is_fitted else []

    def fit(self, reference, cell_type_key, genes=None, use_raw=False):
        """Train the classifier on a labelled, log-normalized reference

        Args:
            reference: AnnData object (log-normalized, not scaled)
            cell_type_key: obs column with the cell type labels
            genes: Genes to use; defaults to highly variable genes when annotated, else all
            use_raw: Read expression from ``reference.raw``

        Returns:
            self
        """
        if cell_type_key not in reference.obs:
            raise KeyError(f"Cell type key '{cell_type_key}' not found in reference.obs")

        labels = reference.obs[cell_type_key].astype(str).to_numpy()
        if len(np.unique(labels)) < 2:
            raise ValueError("Reference needs at least two cell types")

        if genes is None and not use_raw and "highly_variable" in reference.var:
            genes = list(reference.var_names[reference.var["highly_variable"]])
        X, genes = _expression(reference, genes, use_raw)

        print("Training scPred-style classifier...")
        print(f"  Reference: {X.shape[0]:,} cells × {X.shape[1]:,} genes, {len(np.unique(labels))} cell types")

        # Scale with statistics that are re-used for the query
        means = X.mean(axis=0)
        stds = X.std(axis=0)
        stds[stds == 0] = 1.0
        scaled = (X - means) / stds

        n_comps = int(min(self.n_components, X.shape[0] - 1, X.shape[1]))
        pca = PCA(n_components=n_comps, random_state=self.random_state)
        embedding = pca.fit_transform(scaled)

        self.genes_ = genes
        self.gene_means_ = means
        self.gene_stds_ = stds
        self.pca_ = pca
        self.embedding_ = embedding

        self.feature_table_ = self._select_features(embedding, labels)
        self.features_ = {
            ct: grp.loc[grp["informative"], "pc"].tolist()
            for ct, grp in self.feature_table_.groupby("cell_type", sort=False)
        }

        classifiers = {}
        summary = []
        for cell_type, pcs in self.features_.items():
            y = labels == cell_type
            if not pcs:
                print(f"  ⚠ {cell_type}: no informative PCs - skipped")
                continue
            model = make_pipeline(
                StandardScaler(),
                SVC(
                    kernel=self.kernel,
                    C=self.C,
                    probability=True,
                    random_state=self.random_state,
                ),
            )
            cv_auc = self._cross_validate(model, embedding[:, pcs], y)
            model.fit(embedding[:, pcs], y)
            classifiers[cell_type] = model
            summary.append(
                {
                    "cell_type": cell_type,
                    "n_cells": int(y.sum()),
                    "n_features": len(pcs),
                    "cv_roc_auc": cv_auc,
                }
            )
            print(f"  ✓ {cell_type}: {int(y.sum()):,} cells, {len(pcs)} PCs, CV AUC {cv_auc:.3f}")

        if not classifiers:
            raise ValueError("No cell type had informative PCs - nothing to train")

        self.classifiers_ = classifiers
        self.training_summary_ = pd.DataFrame(summary).set_index("cell_type")
        return self

    def _select_features(self, embedding, labels):
        """Wilcoxon rank-sum test of every PC, each cell type against the rest"""
        rows = []
        explained = self.pca_.explained_variance_ratio_
        for cell_type in pd.unique(labels):
            mask = labels == cell_type
            _, pvals = mannwhitneyu(
                embedding[mask], embedding[~mask], alternative="two-sided", axis=0
            )
            pvals = np.nan_to_num(pvals, nan=1.0)
            adjusted = multipletests(pvals, method=self.correction)[1]
            for pc, (p, p_adj) in enumerate(zip(pvals, adjusted)):
                rows.append(
                    {
                        "cell_type": cell_type,
                        "pc": pc,
                        "pvalue": p,
                        "pvalue_adj": p_adj,
                        "explained_variance": explained[pc],
                        "informative": p_adj < self.pvalue_threshold,
                    }
                )
        return pd.DataFrame(rows)

    def _cross_validate(self, model, X, y):
        n_folds = int(min(self.cv, y.sum(), (~y).sum()))
        if n_folds < 2:
            return np.nan
        folds = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=self.random_state)
        return float(np.mean(cross_val_score(model, X, y, cv=folds, scoring="roc_auc")))

    def project(self, query, use_raw=False):
        """Project query cells onto the reference principal components

        Only genes shared with the reference are used; the query is scaled
        with the reference gene means and standard deviations.

        Returns:
            Array (n_cells, n_components)
        """
        if self.pca_ is None:
            raise RuntimeError("Classifier has not been fitted yet; call fit() first")

        source = query.raw if use_raw else query
        if source is None:
            raise ValueError("use_raw=True but query.raw is not set")
        present = set(source.var_names)
        shared_idx = np.array([i for i, g in enumerate(self.genes_) if g in present], dtype=int)
        if shared_idx.size == 0:
            raise ValueError("Query shares no genes with the reference")
        if shared_idx.size < len(self.genes_):
            missing = 1 - shared_idx.size / len(self.genes_)
            print(f"  ⚠ {missing:.1%} of reference genes missing from the query")

        shared_genes = [self.genes_[i] for i in shared_idx]
        X, _ = _expression(query, shared_genes, use_raw)
        scaled = (X - self.gene_means_[shared_idx]) / self.gene_stds_[shared_idx]
        loadings = self.pca_.components_[:, shared_idx]
        return (scaled - self.pca_.mean_[shared_idx]) @ loadings.T

    def _align_with_harmony(self, query_embedding):
        """Harmony-correct the query embedding towards the reference"""
        n_ref = self.embedding_.shape[0]
        combined = np.vstack([self.embedding_, query_embedding])
        meta = pd.DataFrame(
            {"dataset": ["reference"] * n_ref + ["query"] * query_embedding.shape[0]}
        )
        ho = harmonypy.run_harmony(
            combined, meta, ["dataset"], random_state=self.random_state, verbose=False
        )
        corrected = np.asarray(ho.Z_corr)
        if corrected.shape[0] != combined.shape[0]:
            corrected = corrected.T
        # Harmony moves the reference too; shift the query back into the
        # space the classifiers were trained in
        offset = (self.embedding_ - corrected[:n_ref]).mean(axis=0)
        return corrected[n_ref:] + offset

    def predict(self, query, use_raw=False, align_with_harmony=False):
        """Predict cell types for query cells

        Args:
            query: AnnData object normalized like the reference
            use_raw: Read expression from ``query.raw``
            align_with_harmony: Correct the projected query towards the reference first

        Returns:
            DataFrame indexed by cell with one probability column per cell type,
            ``max_probability``, ``prediction_no_rejection`` and ``prediction``
        """
        if not self.is_fitted:
            raise RuntimeError("Classifier has not been fitted yet; call fit() first")

        embedding = self.project(query, use_raw=use_raw)
        if align_with_harmony:
            print("  Aligning query to reference with Harmony...")
            embedding = self._align_with_harmony(embedding)

        probs = pd.DataFrame(index=query.obs_names)
        for cell_type, model in self.classifiers_.items():
            pcs = self.features_[cell_type]
            positive = list(model.classes_).index(True)
            probs[cell_type] = model.predict_proba(embedding[:, pcs])[:, positive]

        cell_types = list(self.classifiers_)
        best = probs[cell_types].to_numpy().argmax(axis=1)
        probs["max_probability"] = probs[cell_types].max(axis=1)
        probs["prediction_no_rejection"] = np.array(cell_types)[best]
        probs["prediction"] = np.where(
            probs["max_probability"] >= self.threshold,
            probs["prediction_no_rejection"],
            UNASSIGNED,
        )

        n_unassigned = int((probs["prediction"] == UNASSIGNED).sum())
        print(f"  ✓ Predicted {len(probs):,} cells ({n_unassigned:,} unassigned)")
        return probs

    def annotate(self, query, key_added="scpred", use_raw=False, align_with_harmony=False):
        """Write predictions into ``query.obs`` and return them"""
        predictions = self.predict(query, use_raw=use_raw, align_with_harmony=align_with_harmony)
        query.obs[f"{key_added}_prediction"] = pd.Categorical(predictions["prediction"])
        query.obs[f"{key_added}_no_rejection"] = pd.Categorical(predictions["prediction_no_rejection"])
        query.obs[f"{key_added}_max"] = predictions["max_probability"].to_numpy()
        return predictions


def evaluate_predictions(true_labels, predicted_labels):
    """Compare predicted to known labels

    Returns:
        Dictionary with ``crosstab`` (true x predicted counts), ``accuracy``
        over assigned cells and ``unassigned_fraction``
    """
    true_labels = pd.Series(np.asarray(true_labels).astype(str), name="true")
    predicted_labels = pd.Series(np.asarray(predicted_labels).astype(str), name="predicted")
    if len(true_labels) != len(predicted_labels):
        raise ValueError("true_labels and predicted_labels differ in length")

    crosstab = pd.crosstab(true_labels, predicted_labels)
    assigned = predicted_labels != UNASSIGNED
    accuracy = (
        float((true_labels[assigned] == predicted_labels[assigned]).mean())
        if assigned.any()
        else np.nan
    )
    return {
        "crosstab": crosstab,
        "accuracy": accuracy,
        "unassigned_fraction": float((~assigned).mean()),
    }


def plot_prediction_heatmap(crosstab, save_path=None):
    """Row-normalized heatmap of true vs predicted labels"""
    normalized = crosstab.div(crosstab.sum(axis=1), axis=0)
    fig, ax = plt.subplots(figsize=(1 + 0.8 * normalized.shape[1], 1 + 0.6 * normalized.shape[0]))
    sns.heatmap(normalized, annot=True, fmt=".2f", cmap="Blues", vmin=0, vmax=1, ax=ax)
    ax.set_xlabel("Predicted")
    ax.set_ylabel("True")
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()
