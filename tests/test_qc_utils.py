"""
Tests for QC metrics and filtering.
"""

import numpy as np
import pytest

from masterclass.qc_utils import (
    calculate_qc_metrics,
    filter_cells_and_genes,
    plot_qc_metrics,
)


class TestQCMetrics:
    """Tests for calculate_qc_metrics."""

    def test_flags_gene_groups(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        assert adata.var["mt"].sum() == 3
        assert adata.var["ribo"].sum() == 2
        assert adata.var.loc["MT-CO1", "mt"]
        assert adata.var.loc["RPS3", "ribo"]

    def test_percentages(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        X = adata.X.toarray()
        expected_mt = X[:, :3].sum(axis=1) / X.sum(axis=1) * 100
        np.testing.assert_allclose(adata.obs["percent_mt"], expected_mt, rtol=1e-5)
        expected_ribo = X[:, 3:5].sum(axis=1) / X.sum(axis=1) * 100
        np.testing.assert_allclose(adata.obs["percent_ribo"], expected_ribo, rtol=1e-5)

    def test_scanpy_metrics_present(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        for col in ["n_genes_by_counts", "total_counts"]:
            assert col in adata.obs

    def test_custom_patterns(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata, mt_pattern="GENE1", ribo_pattern=r"^$")
        # GENE1, GENE10-19, GENE100-199 minus positions overwritten by named genes
        assert adata.var["mt"].sum() > 0
        assert adata.var["ribo"].sum() == 0


class TestFiltering:
    """Tests for filter_cells_and_genes."""

    def test_requires_qc_metrics(self, counts_adata):
        with pytest.raises(KeyError):
            filter_cells_and_genes(counts_adata)

    def test_gene_count_filter(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        threshold = float(np.median(adata.obs["n_genes_by_counts"]))
        expected = int(
            (
                (adata.obs["n_genes_by_counts"] >= threshold)
                & (adata.obs["percent_mt"] < 100)
            ).sum()
        )
        filtered = filter_cells_and_genes(
            adata, min_genes=threshold, max_genes=10_000, max_mt_pct=100, min_cells=0
        )
        assert filtered.n_obs == expected
        assert (filtered.obs["n_genes_by_counts"] >= threshold).all()

    def test_mt_filter(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        cutoff = float(np.percentile(adata.obs["percent_mt"], 50))
        filtered = filter_cells_and_genes(
            adata, min_genes=0, max_genes=10_000, max_mt_pct=cutoff, min_cells=0
        )
        assert (filtered.obs["percent_mt"] < cutoff).all()

    def test_optional_count_filters(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        lo, hi = np.percentile(adata.obs["total_counts"], [25, 75])
        filtered = filter_cells_and_genes(
            adata,
            min_genes=0,
            max_genes=10_000,
            max_mt_pct=100,
            min_counts=lo,
            max_counts=hi,
            min_cells=0,
        )
        assert filtered.obs["total_counts"].between(lo, hi).all()

    def test_min_cells_filter(self, counts_adata):
        X = counts_adata.X.tolil()
        X[:, 199] = 0
        counts_adata.X = X.tocsr()
        adata = calculate_qc_metrics(counts_adata)
        filtered = filter_cells_and_genes(
            adata, min_genes=0, max_genes=10_000, max_mt_pct=100, min_cells=1
        )
        assert "GENE199" not in filtered.var_names

    def test_everything_removed(self, counts_adata):
        adata = calculate_qc_metrics(counts_adata)
        with pytest.raises(ValueError, match="All cells"):
            filter_cells_and_genes(adata, min_genes=100_000, max_genes=200_000)


def test_plot_qc_metrics_saves(counts_adata, tmp_path):
    adata = calculate_qc_metrics(counts_adata)
    plot_qc_metrics(adata, save_dir=tmp_path)
    assert (tmp_path / "qc_violin_plots.png").exists()
    assert (tmp_path / "qc_scatter_plots.png").exists()
