"""
Tests for the linear and logistic regression helpers.
"""

import numpy as np
import pytest

from masterclass.regression import (
    classification_summary,
    coefficient_table,
    fit_linear_model,
    fit_logistic_model,
    plot_linear_fit,
    predict_classes,
    split_data,
)


class TestLinearModel:
    """Tests for ordinary least squares."""

    def test_recovers_coefficients(self, linear_frame):
        result = fit_linear_model(linear_frame, "y ~ x")
        table = coefficient_table(result)
        assert table.loc["Intercept", "estimate"] == pytest.approx(2, abs=0.05)
        assert table.loc["x", "estimate"] == pytest.approx(3, abs=0.05)
        assert table.loc["x", "p_value"] < 1e-10

    def test_coefficient_table_columns(self, linear_frame):
        table = coefficient_table(fit_linear_model(linear_frame, "y ~ x"))
        assert list(table.columns) == [
            "estimate",
            "std_error",
            "statistic",
            "p_value",
            "conf_low",
            "conf_high",
        ]
        assert (table["conf_low"] < table["estimate"]).all()
        assert (table["estimate"] < table["conf_high"]).all()

    def test_wider_interval_at_higher_level(self, linear_frame):
        result = fit_linear_model(linear_frame, "y ~ x")
        narrow = coefficient_table(result, conf_level=0.8)
        wide = coefficient_table(result, conf_level=0.99)
        assert (wide["conf_high"] - wide["conf_low"] > narrow["conf_high"] - narrow["conf_low"]).all()

    def test_missing_outcome(self, linear_frame):
        with pytest.raises(ValueError, match="not found"):
            fit_linear_model(linear_frame, "z ~ x")

    def test_malformed_formula(self, linear_frame):
        with pytest.raises(ValueError):
            fit_linear_model(linear_frame, "y + x")

    def test_plot_linear_fit_saves(self, linear_frame, tmp_path):
        out = tmp_path / "fit.png"
        plot_linear_fit(linear_frame, "x", "y", save_path=out)
        assert out.exists()


class TestLogisticModel:
    """Tests for the binomial GLM."""

    def test_positive_effect(self, logistic_frame):
        result = fit_logistic_model(logistic_frame, "y ~ x")
        table = coefficient_table(result)
        assert table.loc["x", "estimate"] == pytest.approx(2, abs=0.6)

    def test_odds_ratios(self, logistic_frame):
        result = fit_logistic_model(logistic_frame, "y ~ x")
        raw = coefficient_table(result)
        odds = coefficient_table(result, exponentiate=True)
        assert odds.loc["x", "estimate"] == pytest.approx(np.exp(raw.loc["x", "estimate"]))
        # Standard errors stay on the log-odds scale
        assert odds.loc["x", "std_error"] == pytest.approx(raw.loc["x", "std_error"])

    def test_boolean_outcome_matches_integer(self, logistic_frame):
        coded = coefficient_table(fit_logistic_model(logistic_frame, "y ~ x"))
        flags = logistic_frame.assign(y=logistic_frame["y"].astype(bool))
        boolean = coefficient_table(fit_logistic_model(flags, "y ~ x"))
        np.testing.assert_allclose(boolean["estimate"], coded["estimate"])
        assert boolean.loc["x", "estimate"] > 0

    def test_non_binary_outcome(self, linear_frame):
        with pytest.raises(ValueError, match="0/1"):
            fit_logistic_model(linear_frame, "y ~ x")

    def test_predict_classes(self, logistic_frame):
        result = fit_logistic_model(logistic_frame, "y ~ x")
        pred = predict_classes(result, logistic_frame, threshold=0.5)
        assert list(pred.columns) == ["probability", "predicted"]
        assert pred.index.equals(logistic_frame.index)
        np.testing.assert_array_equal(
            pred["predicted"], (pred["probability"] >= 0.5).astype(int)
        )
        assert (pred["predicted"] == logistic_frame["y"]).mean() > 0.7

    def test_predict_classes_bad_threshold(self, logistic_frame):
        result = fit_logistic_model(logistic_frame, "y ~ x")
        with pytest.raises(ValueError):
            predict_classes(result, logistic_frame, threshold=1.5)


class TestClassificationSummary:
    """Tests for confusion-matrix metrics."""

    def test_known_values(self):
        y_true = [1, 1, 1, 0, 0, 0, 0, 0]
        y_prob = [0.9, 0.8, 0.2, 0.1, 0.3, 0.6, 0.4, 0.2]
        summary = classification_summary(y_true, y_prob)
        assert summary["accuracy"] == pytest.approx(6 / 8)
        assert summary["sensitivity"] == pytest.approx(2 / 3)
        assert summary["specificity"] == pytest.approx(4 / 5)
        assert summary["confusion"].loc[1, 1] == 2
        assert summary["confusion"].loc[0, 1] == 1

    def test_perfect_auc(self):
        summary = classification_summary([0, 0, 1, 1], [0.1, 0.2, 0.8, 0.9])
        assert summary["roc_auc"] == pytest.approx(1.0)

    def test_single_class_auc_is_nan(self):
        summary = classification_summary([1, 1], [0.6, 0.7])
        assert np.isnan(summary["roc_auc"])


def test_split_data_stratified(logistic_frame):
    train, test = split_data(logistic_frame, test_size=0.25, stratify="y")
    assert len(train) + len(test) == len(logistic_frame)
    assert abs(train["y"].mean() - test["y"].mean()) < 0.05
