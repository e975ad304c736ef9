#!/usr/bin/env python3
"""
Processing utilities for single-cell RNA-seq analysis
Handles normalization, scaling, PCA, t-SNE, UMAP, and clustering
"""

import scanpy as sc
import matplotlib.pyplot as plt
import os
import numpy as np
import pandas as pd
from sklearn.metrics import silhouette_score

from masterclass.parameters import CLUSTERING_PARAMS


def normalize_and_scale(adata, n_top_genes=None):
    """Normalize and scale data

    Args:
        adata: AnnData object with raw counts
        n_top_genes: Keep this many highly variable genes instead of the
            dispersion cut-offs (optional)

    Returns:
        Processed AnnData object restricted to highly variable genes;
        the log-normalized full matrix is kept in ``adata.raw``
    """
    print("Normalizing and scaling data...")

    # Keep raw counts
    adata.layers["counts"] = adata.X.copy()

    # Normalize to 10,000 reads per cell
    sc.pp.normalize_total(adata, target_sum=1e4)

    # Log transform
    sc.pp.log1p(adata)

    # Find highly variable genes
    if n_top_genes is not None:
        sc.pp.highly_variable_genes(adata, n_top_genes=int(n_top_genes))
    else:
        sc.pp.highly_variable_genes(adata, min_mean=0.0125, max_mean=3, min_disp=0.5)
    n_hvg = int(adata.var["highly_variable"].sum())
    if n_hvg == 0:
        raise ValueError("No highly variable genes found - check the input counts")
    print(f"  ✓ Identified {n_hvg:,} highly variable genes")

    # Keep only highly variable genes for downstream analysis
    adata.raw = adata  # Save full log-normalized data
    adata = adata[:, adata.var.highly_variable].copy()

    # Scale data
    sc.pp.scale(adata, max_value=10)

    return adata


def run_pca(adata, n_comps=CLUSTERING_PARAMS["n_comps"], save_dir=None):
    """Run PCA and draw the elbow plot

    Args:
        adata: Scaled AnnData object
        n_comps: Number of components, clipped to what the data supports
        save_dir: Directory to save plots (optional). If provided, plots are saved without display.

    Returns:
        AnnData object with ``obsm['X_pca']``
    """
    n_comps = int(min(n_comps, adata.n_obs - 1, adata.n_vars - 1))
    if n_comps < 2:
        raise ValueError("Need at least 3 cells and 3 genes to run PCA")

    print(f"Running PCA ({n_comps} components)...")
    sc.tl.pca(adata, svd_solver="arpack", n_comps=n_comps)

    fig, ax = plt.subplots(figsize=(7, 4))
    ratios = adata.uns["pca"]["variance_ratio"]
    ax.plot(np.arange(1, len(ratios) + 1), ratios, "o", markersize=4)
    ax.set_xlabel("Principal component")
    ax.set_ylabel("Variance ratio")
    ax.set_yscale("log")
    ax.set_title("PCA elbow plot")
    plt.tight_layout()

    if save_dir:
        os.makedirs(save_dir, exist_ok=True)
        fig.savefig(save_dir / "pca_elbow_plot.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/pca_elbow_plot.png")
        plt.close(fig)
    else:
        plt.show()

    return adata


def run_neighbors_and_clustering(
    adata,
    n_pcs=CLUSTERING_PARAMS["n_pcs"],
    n_neighbors=CLUSTERING_PARAMS["n_neighbors"],
    resolution=CLUSTERING_PARAMS["resolution"],
    use_rep="X_pca",
    key_added="leiden",
    random_state=0,
):
    """Build the kNN graph and run Leiden clustering

    Args:
        adata: AnnData object with an embedding in ``obsm[use_rep]``
        n_pcs: Number of embedding dimensions used for the graph
        n_neighbors: Size of the local neighborhood
        resolution: Leiden resolution (higher gives more clusters)
        use_rep: Embedding to use, e.g. "X_pca" or "X_pca_harmony"
        key_added: obs column for the cluster labels

    Returns:
        AnnData object with neighbors graph and cluster labels
    """
    if use_rep not in adata.obsm:
        raise KeyError(f"'{use_rep}' not found in adata.obsm - run PCA first")

    n_pcs = int(min(n_pcs, adata.obsm[use_rep].shape[1]))

    print("Computing neighborhood graph...")
    sc.pp.neighbors(adata, n_neighbors=n_neighbors, n_pcs=n_pcs, use_rep=use_rep)

    print("Clustering...")
    sc.tl.leiden(
        adata,
        resolution=resolution,
        key_added=key_added,
        random_state=random_state,
        flavor="igraph",
        n_iterations=2,
        directed=False,
    )
    n_clusters = adata.obs[key_added].nunique()
    print(f"  ✓ {n_clusters} clusters at resolution {resolution}")

    return adata


def run_tsne(
    adata,
    n_pcs=CLUSTERING_PARAMS["n_pcs"],
    perplexity=CLUSTERING_PARAMS["tsne_perplexity"],
    use_rep="X_pca",
    random_state=0,
):
    """Run t-SNE on the PCA (or integrated) embedding"""
    if use_rep not in adata.obsm:
        raise KeyError(f"'{use_rep}' not found in adata.obsm - run PCA first")
    # t-SNE requires perplexity < n_obs
    perplexity = float(min(perplexity, max(1, (adata.n_obs - 1) / 3)))

    print("Running t-SNE...")
    sc.tl.tsne(
        adata,
        n_pcs=int(min(n_pcs, adata.obsm[use_rep].shape[1])),
        use_rep=use_rep,
        perplexity=perplexity,
        random_state=random_state,
    )
    return adata


def run_umap(adata, random_state=0):
    """Run UMAP on the existing neighbors graph"""
    if "neighbors" not in adata.uns:
        raise KeyError("Neighbors graph missing - run run_neighbors_and_clustering first")

    print("Running UMAP...")
    sc.tl.umap(adata, random_state=random_state)
    return adata


def plot_embeddings(adata, basis="umap", color=("leiden",), save_dir=None):
    """Plot an embedding colored by one or more obs columns

    Args:
        adata: AnnData object with ``obsm['X_<basis>']``
        basis: "umap", "tsne" or "pca"
        color: obs columns or genes to color by
        save_dir: Directory to save plots (optional). If provided, plots are saved without display.
    """
    if f"X_{basis}" not in adata.obsm:
        raise KeyError(f"'X_{basis}' not found in adata.obsm")

    color = [color] if isinstance(color, str) else list(color)
    print(f"Plotting {basis.upper()} embeddings...")

    fig, axes = plt.subplots(1, len(color), figsize=(6 * len(color), 5), squeeze=False)
    for ax, key in zip(axes[0], color):
        sc.pl.embedding(
            adata,
            basis=basis,
            color=key,
            legend_loc="on data" if key == "leiden" else "right margin",
            title=key,
            ax=ax,
            show=False,
        )

    plt.tight_layout()

    if save_dir:
        out = save_dir / f"{basis}_embeddings.png"
        fig.savefig(out, dpi=300, bbox_inches="tight")
        print(f"  Saved: {out}")
        plt.close(fig)
    else:
        plt.show()


def choose_leiden_resolution(
    adata,
    resolution_grid=None,
    min_cluster_size=20,
    save_dir=None,
):
    """Sweep Leiden resolutions and pick a robust choice.

    Strategy:
    - Compute Leiden for a grid of resolutions on the existing kNN graph
    - Evaluate silhouette on PCA space and fraction of cells in small clusters
    - Select the resolution with highest silhouette; among ties within 0.02 of max,
      prefer lower small-cluster fraction, then fewer clusters, then lower resolution

    Side effects:
    - Adds columns `leiden_{res}` to `adata.obs` for each tested resolution
    - Sets `adata.obs['leiden']` to the labels of the chosen resolution
    - Writes sweep metrics CSV and a diagnostic plot if `save_dir` set

    Returns:
    - chosen resolution (float)
    """
    if "neighbors" not in adata.uns:
        raise KeyError("Neighbors graph missing - run run_neighbors_and_clustering first")

    if resolution_grid is None:
        resolution_grid = np.round(np.arange(0.2, 2.05, 0.1), 2)

    # Use PCA embedding for silhouettes if present; otherwise run PCA minimally
    if "X_pca" not in adata.obsm:
        run_pca(adata)

    X = adata.obsm["X_pca"]

    metrics = []
    for res in resolution_grid:
        key = f"leiden_{res:.2f}"
        sc.tl.leiden(
            adata,
            resolution=float(res),
            key_added=key,
            flavor="igraph",
            n_iterations=2,
            directed=False,
        )
        labels = adata.obs[key].astype(str)

        # Silhouette is only defined for 2 <= n_clusters <= n_cells - 1
        n_clusters = labels.nunique()
        small_frac = 0.0
        sil = np.nan
        if 1 < n_clusters < len(labels):
            counts = labels.value_counts()
            small_frac = float(
                counts[counts < max(2, int(min_cluster_size))].sum() / len(labels)
            )
            sil = float(silhouette_score(X, labels))

        metrics.append(
            {
                "resolution": float(res),
                "n_clusters": int(n_clusters),
                "silhouette": sil,
                "small_cluster_fraction": small_frac,
            }
        )

    metrics_df = pd.DataFrame(metrics)

    # Selection rule
    # 1) Take max silhouette; 2) among those within 0.02 of max, minimize small frac,
    # 3) then minimize n_clusters; 4) then choose lowest resolution
    if metrics_df["silhouette"].notna().any():
        max_sil = metrics_df["silhouette"].max()
        near = metrics_df[np.abs(metrics_df["silhouette"] - max_sil) <= 0.02]
        chosen = near.sort_values(
            by=["small_cluster_fraction", "n_clusters", "resolution"]
        ).iloc[0]
    else:
        # Fallback: choose the lowest resolution with >1 cluster
        candidates = metrics_df[metrics_df["n_clusters"] > 1]
        pool = candidates if not candidates.empty else metrics_df
        chosen = pool.sort_values("resolution").iloc[0]

    chosen_res = float(chosen["resolution"])

    if save_dir:
        os.makedirs(save_dir, exist_ok=True)
        metrics_path = save_dir / "leiden_resolution_sweep.csv"
        metrics_df.to_csv(metrics_path, index=False)

        fig, ax1 = plt.subplots(figsize=(7, 4))
        ax2 = ax1.twinx()
        ax1.plot(
            metrics_df["resolution"],
            metrics_df["silhouette"],
            "-o",
            color="#1f77b4",
        )
        ax2.plot(
            metrics_df["resolution"],
            metrics_df["n_clusters"],
            "-s",
            color="#ff7f0e",
        )
        ax1.set_xlabel("Leiden resolution")
        ax1.set_ylabel("Silhouette (PCA)", color="#1f77b4")
        ax2.set_ylabel("# clusters", color="#ff7f0e")
        ax1.axvline(chosen_res, color="gray", linestyle="--", linewidth=1)
        fig.tight_layout()
        fig.savefig(
            save_dir / "leiden_sweep_diagnostics.png", dpi=300, bbox_inches="tight"
        )
        plt.close(fig)
        print(f"  Saved: {metrics_path}")
        print(f"  Saved: {save_dir}/leiden_sweep_diagnostics.png")

    # Ensure `leiden` reflects the chosen resolution labels
    adata.obs["leiden"] = adata.obs[f"leiden_{chosen_res:.2f}"].astype(str).astype("category")
    print(f"Chosen Leiden resolution: {chosen_res}")

    return chosen_res
