"""
Tests for marker genes and cluster annotation.
"""

import pandas as pd
import pytest

from masterclass.annotation import (
    PBMC_MARKER_GENES,
    assign_celltypes_by_cluster_scores,
    compute_top_markers_per_cluster,
    create_cluster_aggregated_labels,
    plot_cell_type_summary,
    plot_marker_genes,
    top_markers_table,
)

from conftest import MARKERS


class TestMarkers:
    """Tests for ranked marker genes."""

    def test_top_markers(self, lognorm_adata, tmp_path):
        markers = compute_top_markers_per_cluster(lognorm_adata, n_top=25, save_dir=tmp_path)
        assert set(markers["group"].astype(str)) == {"0", "1", "2"}
        assert (tmp_path / "top_markers_by_cluster.csv").exists()

        # Cluster 0 holds the B cells
        top_b = markers[markers["group"].astype(str) == "0"]["names"].head(25).tolist()
        assert set(MARKERS["B"]) & set(top_b)

    def test_unknown_groupby(self, lognorm_adata):
        with pytest.raises(KeyError):
            compute_top_markers_per_cluster(lognorm_adata, groupby="nope")

    def test_top_markers_table(self, lognorm_adata):
        markers = compute_top_markers_per_cluster(lognorm_adata, n_top=10)
        table = top_markers_table(markers, n=3)
        assert table.shape == (3, 3)

    def test_plot_marker_genes_saves(self, lognorm_adata, tmp_path):
        plot_marker_genes(lognorm_adata, MARKERS, save_dir=tmp_path)
        assert (tmp_path / "marker_genes_dotplot.png").exists()


class TestClusterAnnotation:
    """Tests for score-based cluster labelling."""

    def test_assigns_expected_types(self, lognorm_adata):
        scores = assign_celltypes_by_cluster_scores(lognorm_adata, MARKERS)
        assert scores.loc["0", "celltype"] == "B"
        assert scores.loc["1", "celltype"] == "NK"
        assert scores.loc["2", "celltype"] == "CD14 Mono"
        assert (
            lognorm_adata.obs["celltype"].astype(str)
            == lognorm_adata.obs["cell_type"].astype(str)
        ).all()

    def test_pbmc_panel_skips_missing_genes(self, lognorm_adata):
        scores = assign_celltypes_by_cluster_scores(lognorm_adata, PBMC_MARKER_GENES)
        # Only panels with at least one gene present are scored
        assert "B" in scores.columns
        assert "Platelet" not in scores.columns

    def test_large_margin_leaves_unassigned(self, lognorm_adata):
        assign_celltypes_by_cluster_scores(lognorm_adata, MARKERS, margin=1e6)
        assert (lognorm_adata.obs["celltype"] == "Unassigned").all()

    def test_no_markers_present(self, lognorm_adata):
        with pytest.raises(ValueError):
            assign_celltypes_by_cluster_scores(lognorm_adata, {"X": ["NOT_A_GENE"]})

    def test_invalid_agg(self, lognorm_adata):
        with pytest.raises(ValueError):
            assign_celltypes_by_cluster_scores(lognorm_adata, MARKERS, agg="max")

    def test_missing_cluster_key(self, lognorm_adata):
        with pytest.raises(KeyError):
            assign_celltypes_by_cluster_scores(lognorm_adata, MARKERS, cluster_key="nope")


class TestClusterPurity:
    """Tests for create_cluster_aggregated_labels."""

    def test_pure_and_mixed(self, lognorm_adata):
        obs = lognorm_adata.obs
        obs["predicted"] = obs["cell_type"].astype(str)
        # Make half of cluster 2 look like NK
        idx = obs.index[obs["leiden"] == "2"][:30]
        obs.loc[idx, "predicted"] = "NK"

        mixed = create_cluster_aggregated_labels(
            lognorm_adata, celltype_col="predicted", purity_threshold=0.6
        )
        assert mixed == ["2"]
        assert (obs.loc[obs["leiden"] == "0", "celltype_cluster"] == "B").all()
        assert (obs.loc[obs["leiden"] == "2", "celltype_cluster"] == "Mixed").all()
        assert obs.loc[obs["leiden"] == "2", "cluster_purity"].iloc[0] == pytest.approx(0.5)

    def test_missing_columns(self, lognorm_adata):
        with pytest.raises(KeyError):
            create_cluster_aggregated_labels(lognorm_adata, celltype_col="nope")


def test_plot_cell_type_summary(lognorm_adata, tmp_path):
    lognorm_adata.obs["batch"] = pd.Categorical(["a", "b"] * (lognorm_adata.n_obs // 2))
    plot_cell_type_summary(
        lognorm_adata, celltype_col="cell_type", sample_col="batch", save_dir=tmp_path
    )
    assert (tmp_path / "celltype_distribution.png").exists()
