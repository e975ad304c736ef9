#!/usr/bin/env python3
"""
Cell type annotation utilities for single-cell RNA-seq analysis
Handles marker gene analysis and cluster-level cell type assignment
"""

import scanpy as sc
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

# Canonical PBMC markers
PBMC_MARKER_GENES = {
    "Naive CD4 T": ["IL7R", "CCR7", "LEF1"],
    "Memory CD4 T": ["IL7R", "S100A4", "CD2"],
    "CD8 T": ["CD8A", "CD8B", "GZMK"],
    "NK": ["GNLY", "NKG7", "KLRD1"],
    "B": ["MS4A1", "CD79A", "CD79B"],
    "CD14 Mono": ["CD14", "LYZ", "S100A9"],
    "FCGR3A Mono": ["FCGR3A", "MS4A7", "LST1"],
    "DC": ["FCER1A", "CST3", "CLEC10A"],
    "Platelet": ["PPBP", "PF4"],
}


def _available_genes(adata, genes, use_raw):
    var_names = adata.raw.var_names if use_raw else adata.var_names
    return [g for g in genes if g in var_names]


def plot_marker_genes(adata, marker_genes=PBMC_MARKER_GENES, groupby="leiden", save_dir=None):
    """Plot marker genes across clusters

    Args:
        adata: AnnData object with clustering results
        marker_genes: Dictionary of cell type -> marker genes
        groupby: obs column to group cells by
        save_dir: Directory to save plots (optional). If provided, plots are saved without display.
    """
    use_raw = adata.raw is not None
    var_group = {}
    for cell_type, genes in marker_genes.items():
        available = _available_genes(adata, genes, use_raw)
        if available:
            var_group[cell_type] = available

    if not var_group:
        print("  No marker genes found in the dataset - skipping dotplot")
        return

    sc.pl.dotplot(
        adata,
        var_group,
        groupby=groupby,
        standard_scale="var",
        use_raw=use_raw,
        show=False,
    )

    if save_dir:
        plt.savefig(save_dir / "marker_genes_dotplot.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/marker_genes_dotplot.png")
        plt.close()
    else:
        plt.show()


def compute_top_markers_per_cluster(
    adata,
    groupby="leiden",
    method="wilcoxon",
    n_top=25,
    pval_adj_cutoff=None,
    save_dir=None,
):
    """Compute top marker genes per cluster using differential expression.

    Args:
        adata: AnnData object with clustering results.
        groupby: Column in adata.obs to group by (default: "leiden").
        method: DE method passed to scanpy (e.g., "wilcoxon", "t-test").
        n_top: Number of top genes to rank per group.
        pval_adj_cutoff: Optional adjusted p-value cutoff to filter results.
        save_dir: Optional Path to save a CSV summary.

    Returns:
        Pandas DataFrame with ranked markers across all groups.
    """
    if groupby not in adata.obs:
        raise KeyError(f"Groupby key '{groupby}' not found in adata.obs")

    print(f"Ranking marker genes per '{groupby}' ({method})...")
    sc.tl.rank_genes_groups(
        adata,
        groupby=groupby,
        method=method,
        n_genes=int(n_top),
        pts=True,
        use_raw=adata.raw is not None,
    )

    markers_df = sc.get.rank_genes_groups_df(adata, None)
    if pval_adj_cutoff is not None:
        markers_df = markers_df[markers_df["pvals_adj"] <= float(pval_adj_cutoff)]

    if save_dir is not None:
        out_csv = save_dir / "top_markers_by_cluster.csv"
        markers_df.to_csv(out_csv, index=False)
        print(f"  Saved: {out_csv}")

    return markers_df


def top_markers_table(markers_df, n=5):
    """Wide table with the first n marker genes of every group"""
    return (
        markers_df.groupby("group", observed=True)
        .head(n)
        .assign(rank=lambda d: d.groupby("group", observed=True).cumcount() + 1)
        .pivot(index="rank", columns="group", values="names")
    )


def assign_celltypes_by_cluster_scores(
    adata,
    marker_genes=PBMC_MARKER_GENES,
    cluster_key="leiden",
    margin=0.05,
    agg="median",
    key_added="celltype",
):
    """Assign cell types at the cluster level using module scores.

    Each panel is scored per cell with ``sc.tl.score_genes``, scores are
    aggregated per cluster and the best-scoring panel names the cluster.
    Clusters whose best and second-best panels are closer than ``margin``
    are labelled "Unassigned".

    Args:
        adata: AnnData object
        marker_genes: Dictionary of cell type markers
        cluster_key: obs column with cluster labels
        margin: Confidence margin between top and second-best scores
        agg: Aggregation method ('median' or 'mean')
        key_added: obs column for the labels

    Returns:
        DataFrame of aggregated scores (clusters x cell types) with the assigned label
    """
    if cluster_key not in adata.obs:
        raise KeyError(f"Cluster key '{cluster_key}' not found in adata.obs")
    if agg not in ("median", "mean"):
        raise ValueError("agg must be 'median' or 'mean'")

    use_raw = adata.raw is not None

    score_cols = []
    for label, genes in marker_genes.items():
        available = _available_genes(adata, genes, use_raw)
        if not available:
            continue
        score_name = f"score_{label}"
        sc.tl.score_genes(adata, gene_list=available, score_name=score_name, use_raw=use_raw)
        score_cols.append(score_name)

    if not score_cols:
        raise ValueError("None of the marker genes are present in the dataset")

    grouped = adata.obs.groupby(cluster_key, observed=True)[score_cols].agg(agg)

    values = grouped.to_numpy()
    top_idx = np.argmax(values, axis=1)
    best = values[np.arange(values.shape[0]), top_idx]
    if values.shape[1] > 1:
        second_best = np.partition(values, -2, axis=1)[:, -2]
        confident = best - second_best >= margin
    else:
        confident = np.ones(values.shape[0], dtype=bool)

    labels = np.array([c.replace("score_", "", 1) for c in score_cols])
    winners = np.where(confident, labels[top_idx], "Unassigned")

    cluster_labels = dict(zip(grouped.index.astype(str), winners))
    adata.obs[key_added] = (
        adata.obs[cluster_key].astype(str).map(cluster_labels).astype("category")
    )

    result = grouped.copy()
    result.columns = labels
    result[key_added] = winners

    print(f"✓ Assigned {int(confident.sum())} / {len(grouped)} clusters")
    for cluster_id, label in cluster_labels.items():
        n_cells = int((adata.obs[cluster_key].astype(str) == cluster_id).sum())
        print(f"  Cluster {cluster_id}: {label} ({n_cells:,} cells)")

    return result


def create_cluster_aggregated_labels(adata, celltype_col="celltype", cluster_col="leiden",
                                     purity_threshold=0.60):
    """Create cluster-level aggregated cell type labels with mixed cluster detection.

    For each cluster:
    - If dominant cell type is >purity_threshold: assigns that cell type
    - If dominant cell type is <=purity_threshold: labels as "Mixed"

    Args:
        adata: AnnData object with per-cell labels (e.g. classifier predictions)
        celltype_col: Column name containing cell type labels
        cluster_col: Column name containing cluster labels
        purity_threshold: Threshold for cluster purity (default: 0.60 = 60%)

    Returns:
        List of mixed cluster ids. Adds 'celltype_cluster', 'celltype_cluster_top_types'
        and 'cluster_purity' columns to adata.obs.
    """
    if celltype_col not in adata.obs or cluster_col not in adata.obs:
        raise KeyError(f"'{celltype_col}' and '{cluster_col}' must both be in adata.obs")

    # Calculate cell type composition per cluster
    composition = pd.crosstab(
        adata.obs[cluster_col].astype(str),
        adata.obs[celltype_col].astype(str),
        normalize="index",
    )

    dominant = composition.idxmax(axis=1)
    dominant_prop = composition.max(axis=1)

    top_types = {}
    for cluster_id in composition.index:
        sorted_types = composition.loc[cluster_id].sort_values(ascending=False)
        # Top 3 types with >5% representation
        top = sorted_types[sorted_types > 0.05].head(3)
        top_types[cluster_id] = ", ".join(f"{ct} ({prop * 100:.1f}%)" for ct, prop in top.items())

    cluster_labels = {}
    mixed_clusters = []
    for cluster_id in composition.index:
        if dominant_prop[cluster_id] > purity_threshold:
            cluster_labels[cluster_id] = dominant[cluster_id]
        else:
            cluster_labels[cluster_id] = "Mixed"
            mixed_clusters.append(cluster_id)

    clusters = adata.obs[cluster_col].astype(str)
    adata.obs["celltype_cluster"] = clusters.map(cluster_labels)
    adata.obs["celltype_cluster_top_types"] = clusters.map(top_types)
    adata.obs["cluster_purity"] = clusters.map(dominant_prop).astype(float)

    print(f"\n{'=' * 60}")
    print("CLUSTER PURITY ANALYSIS")
    print(f"{'=' * 60}")
    print(f"Purity threshold: {purity_threshold * 100:.0f}%")
    print(f"Pure clusters: {len(cluster_labels) - len(mixed_clusters)}")
    print(f"Mixed clusters: {len(mixed_clusters)}")
    for cluster_id in mixed_clusters:
        print(f"  Cluster {cluster_id}: {top_types[cluster_id]}")

    return mixed_clusters


def plot_cell_type_summary(adata, celltype_col="celltype", sample_col=None, save_dir=None):
    """Plot cell type counts, optionally split by sample or batch

    Args:
        adata: AnnData object with cell type annotations
        celltype_col: obs column with labels
        sample_col: obs column to split bars by (optional)
        save_dir: Directory to save plots (optional). If provided, plots are saved without display.
    """
    if celltype_col not in adata.obs:
        raise KeyError(f"'{celltype_col}' not found in adata.obs")

    fig, ax = plt.subplots(figsize=(10, 5))
    if sample_col is not None:
        counts = adata.obs.groupby([sample_col, celltype_col], observed=True).size().unstack(fill_value=0)
        counts.plot(kind="bar", stacked=True, ax=ax)
        ax.set_xlabel(sample_col)
        ax.legend(bbox_to_anchor=(1.05, 1), loc="upper left")
    else:
        adata.obs[celltype_col].value_counts().sort_index().plot(kind="bar", ax=ax)
        ax.set_xlabel(celltype_col)
    ax.set_ylabel("Number of cells")
    plt.xticks(rotation=45, ha="right")
    plt.tight_layout()

    if save_dir:
        fig.savefig(save_dir / "celltype_distribution.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/celltype_distribution.png")
        plt.close(fig)
    else:
        plt.show()

    print("\nCell type summary:")
    print(adata.obs[celltype_col].value_counts().sort_index())
