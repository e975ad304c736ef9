#!/usr/bin/env python3
"""
Single-cell RNA-seq clustering pipeline for the masterclass

This script performs:
1. Data loading (PBMC 3k or a 10x H5 file)
2. Quality control and filtering
3. Normalization and dimensionality reduction
4. Optional Harmony batch integration
5. Clustering, t-SNE/UMAP and marker-based cluster annotation

python run_scrna_pipeline.py --plots-dir plots
"""

import warnings
import argparse
import matplotlib
import scanpy as sc
from pathlib import Path

from masterclass.data_loader import load_pbmc3k, load_10x_h5, add_batch_labels
from masterclass.qc_utils import (
    calculate_qc_metrics,
    plot_qc_metrics,
    filter_cells_and_genes,
)
from masterclass.processing import (
    normalize_and_scale,
    run_pca,
    run_neighbors_and_clustering,
    run_tsne,
    run_umap,
    plot_embeddings,
)
from masterclass.integration import run_harmony, compare_integration
from masterclass.annotation import (
    compute_top_markers_per_cluster,
    assign_celltypes_by_cluster_scores,
    plot_marker_genes,
    plot_cell_type_summary,
)
from masterclass.parameters import CLUSTERING_PARAMS, get_parameter_summary

# Configure scanpy
sc.settings.verbosity = 1
sc.settings.set_figure_params(dpi=80, facecolor="white")

# Suppress warnings
warnings.filterwarnings("ignore")


def main(
    input_h5=None,
    plots_dir_path="plots",
    output_path="clustered_pbmc.h5ad",
    batch_key=None,
    simulate_batches=0,
    resolution=CLUSTERING_PARAMS["resolution"],
    n_pcs=CLUSTERING_PARAMS["n_pcs"],
):
    """Main analysis pipeline

    Args:
        input_h5: 10x H5 file to analyse; PBMC 3k is downloaded when omitted
        plots_dir_path: Directory where plots will be saved
        output_path: Where to write the clustered .h5ad
        batch_key: obs column to integrate over with Harmony (optional)
        simulate_batches: Split cells into this many synthetic batches first
        resolution: Leiden resolution
        n_pcs: Number of PCs for the neighbors graph
    """
    print("Starting single-cell clustering pipeline...")

    plots_dir = Path(plots_dir_path)
    plots_dir.mkdir(parents=True, exist_ok=True)
    print(f"Plots will be saved to: {plots_dir.absolute()}")

    # Set matplotlib backend to non-interactive for save-only mode
    matplotlib.use("Agg")

    print("\n" + get_parameter_summary() + "\n")

    # Step 1: Load data
    adata = load_10x_h5(input_h5) if input_h5 else load_pbmc3k()

    if simulate_batches:
        batch_key = batch_key or "batch"
        adata = add_batch_labels(adata, n_batches=simulate_batches, key=batch_key, shift=0.3)

    # Step 2: QC metrics and filtering
    adata = calculate_qc_metrics(adata)
    plot_qc_metrics(adata, save_dir=plots_dir)
    adata = filter_cells_and_genes(adata)

    # Step 3: Normalize, scale and PCA
    adata = normalize_and_scale(adata)
    adata = run_pca(adata, save_dir=plots_dir)

    # Step 4: Harmony
    use_rep = "X_pca"
    if batch_key:
        adata = run_harmony(adata, batch_key=batch_key)
        use_rep = "X_pca_harmony"
        compare_integration(adata, batch_key=batch_key).to_csv(
            plots_dir / "integration_summary.csv"
        )

    # Step 5: Clustering and embeddings
    adata = run_neighbors_and_clustering(
        adata, n_pcs=n_pcs, resolution=resolution, use_rep=use_rep
    )
    adata = run_umap(adata)
    adata = run_tsne(adata, n_pcs=n_pcs, use_rep=use_rep)

    colors = ["leiden", batch_key] if batch_key else ["leiden"]
    plot_embeddings(adata, basis="umap", color=colors, save_dir=plots_dir)
    plot_embeddings(adata, basis="tsne", color=colors, save_dir=plots_dir)

    # Step 6: Markers and annotation
    compute_top_markers_per_cluster(adata, save_dir=plots_dir)
    plot_marker_genes(adata, save_dir=plots_dir)
    assign_celltypes_by_cluster_scores(adata)
    plot_cell_type_summary(adata, sample_col=batch_key, save_dir=plots_dir)

    adata.write(output_path)
    print(f"Saved clustered data to {output_path}")

    print("Analysis complete!")
    return adata


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="scRNA-seq QC, clustering, integration and annotation"
    )
    parser.add_argument("--input-h5", default=None, help="10x H5 file (default: PBMC 3k)")
    parser.add_argument(
        "--plots-dir",
        default="plots",
        help="Directory to write plots to (default: 'plots')",
    )
    parser.add_argument("--output", default="clustered_pbmc.h5ad", help="Output .h5ad path")
    parser.add_argument("--batch-key", default=None, help="obs column to integrate with Harmony")
    parser.add_argument(
        "--simulate-batches",
        type=int,
        default=0,
        help="Split cells into N synthetic batches to demonstrate Harmony",
    )
    parser.add_argument("--resolution", type=float, default=CLUSTERING_PARAMS["resolution"])
    parser.add_argument("--n-pcs", type=int, default=CLUSTERING_PARAMS["n_pcs"])
    args = parser.parse_args()

    adata = main(
        input_h5=args.input_h5,
        plots_dir_path=args.plots_dir,
        output_path=args.output,
        batch_key=args.batch_key,
        simulate_batches=args.simulate_batches,
        resolution=args.resolution,
        n_pcs=args.n_pcs,
    )
