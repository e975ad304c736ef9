#!/usr/bin/env python3
"""
Quality control utilities for single-cell RNA-seq analysis
Handles QC metrics calculation, plotting and filtering
"""

import numpy as np
import scanpy as sc
import matplotlib.pyplot as plt
from scipy import sparse

from masterclass.parameters import CELL_FILTERS, GENE_FILTERS, GENE_PATTERNS


def _row_sums(X):
    sums = X.sum(axis=1)
    return np.asarray(sums).ravel() if sparse.issparse(X) else np.ravel(sums)


def calculate_qc_metrics(
    adata,
    mt_pattern=GENE_PATTERNS["mt_pattern"],
    ribo_pattern=GENE_PATTERNS["ribo_pattern"],
):
    """Calculate QC metrics

    Args:
        adata: AnnData object with raw counts
        mt_pattern: Prefix of mitochondrial gene names
        ribo_pattern: Regular expression matching ribosomal gene names

    Returns:
        AnnData object with QC metrics added
    """
    print("Calculating QC metrics...")

    # Mitochondrial genes
    adata.var["mt"] = adata.var_names.str.startswith(mt_pattern)
    # Ribosomal genes
    adata.var["ribo"] = adata.var_names.str.match(ribo_pattern)

    sc.pp.calculate_qc_metrics(
        adata, percent_top=None, log1p=False, inplace=True, var_type="genes"
    )

    total = adata.obs["total_counts"].to_numpy()
    # Avoid division by zero for empty droplets
    total = np.where(total > 0, total, 1)
    adata.obs["percent_mt"] = _row_sums(adata[:, adata.var["mt"]].X) / total * 100
    adata.obs["percent_ribo"] = _row_sums(adata[:, adata.var["ribo"]].X) / total * 100

    print(f"  ✓ {int(adata.var['mt'].sum())} mitochondrial, {int(adata.var['ribo'].sum())} ribosomal genes")
    print(f"  ✓ Median genes/cell: {adata.obs['n_genes_by_counts'].median():.0f}")
    print(f"  ✓ Median MT%: {adata.obs['percent_mt'].median():.2f}")

    return adata


def plot_qc_metrics(adata, save_dir=None):
    """Plot QC metrics

    Args:
        adata: AnnData object with QC metrics
        save_dir: Directory to save plots (optional). If provided, plots are saved without display.
    """
    print("Plotting QC metrics...")

    # First figure: violin plots
    fig, axes = plt.subplots(1, 4, figsize=(16, 4))
    for ax, key in zip(
        axes, ["n_genes_by_counts", "total_counts", "percent_mt", "percent_ribo"]
    ):
        sc.pl.violin(adata, key, jitter=0.4, ax=ax, show=False)
    plt.tight_layout()

    if save_dir:
        fig.savefig(save_dir / "qc_violin_plots.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/qc_violin_plots.png")
        plt.close(fig)
    else:
        plt.show()

    # Second figure: scatter plots
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    sc.pl.scatter(adata, x="total_counts", y="percent_mt", ax=axes[0], show=False)
    sc.pl.scatter(
        adata, x="total_counts", y="n_genes_by_counts", ax=axes[1], show=False
    )

    plt.tight_layout()

    if save_dir:
        fig.savefig(save_dir / "qc_scatter_plots.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/qc_scatter_plots.png")
        plt.close(fig)
    else:
        plt.show()


def filter_cells_and_genes(
    adata,
    min_genes=CELL_FILTERS["min_genes"],
    max_genes=CELL_FILTERS["max_genes"],
    max_mt_pct=CELL_FILTERS["max_mt_pct"],
    min_counts=CELL_FILTERS["min_counts"],
    max_counts=CELL_FILTERS["max_counts"],
    max_ribo_pct=CELL_FILTERS["max_ribo_pct"],
    min_cells=GENE_FILTERS["min_cells"],
):
    """Apply QC filtering

    Args:
        adata: AnnData object with QC metrics (see calculate_qc_metrics)
        min_genes: Minimum genes per cell
        max_genes: Maximum genes per cell
        max_mt_pct: Maximum mitochondrial percentage
        min_counts: Minimum total counts per cell (optional)
        max_counts: Maximum total counts per cell (optional)
        max_ribo_pct: Maximum ribosomal percentage (optional)
        min_cells: Minimum cells expressing a gene

    Returns:
        Filtered AnnData object
    """
    for col in ["n_genes_by_counts", "total_counts", "percent_mt"]:
        if col not in adata.obs:
            raise KeyError(f"'{col}' missing from adata.obs - run calculate_qc_metrics first")

    print("Applying QC filters...")
    print(f"Starting with {adata.n_obs:,} cells and {adata.n_vars:,} genes")

    obs = adata.obs
    filters = {
        f"genes < {min_genes}": obs["n_genes_by_counts"] < min_genes,
        f"genes >= {max_genes}": obs["n_genes_by_counts"] >= max_genes,
        f"MT% >= {max_mt_pct}": obs["percent_mt"] >= max_mt_pct,
    }
    if min_counts is not None:
        filters[f"counts < {min_counts}"] = obs["total_counts"] < min_counts
    if max_counts is not None:
        filters[f"counts > {max_counts}"] = obs["total_counts"] > max_counts
    if max_ribo_pct is not None:
        filters[f"ribo% >= {max_ribo_pct}"] = obs["percent_ribo"] >= max_ribo_pct

    remove = np.zeros(adata.n_obs, dtype=bool)
    for name, mask in filters.items():
        mask = mask.to_numpy()
        print(f"  {name}: {int(mask.sum()):,} cells")
        remove |= mask

    adata = adata[~remove].copy()

    # Filter genes expressed in at least min_cells
    sc.pp.filter_genes(adata, min_cells=min_cells)

    print(f"After filtering: {adata.n_obs:,} cells and {adata.n_vars:,} genes")

    if adata.n_obs == 0:
        raise ValueError("All cells were removed by the QC filters - relax the thresholds")

    return adata
