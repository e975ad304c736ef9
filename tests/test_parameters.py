"""
Tests for the shared parameter settings.
"""

import pytest

from masterclass import parameters


def test_defaults_are_valid():
    assert parameters.validate_parameters()


def test_summary_mentions_key_settings():
    summary = parameters.get_parameter_summary()
    assert "Leiden resolution: 0.5" in summary
    assert "Rejection threshold: 0.55" in summary
    assert "Hidden units: 5" in summary


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setitem(parameters.CLUSTERING_PARAMS, "n_pcs", 500)
    monkeypatch.setitem(parameters.NETWORK_PARAMS, "learning_rate", 0)
    with pytest.raises(ValueError) as excinfo:
        parameters.validate_parameters()
    assert "n_pcs" in str(excinfo.value)
    assert "learning_rate" in str(excinfo.value)
