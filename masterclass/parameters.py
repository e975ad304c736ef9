#!/usr/bin/env python3
"""
Parameters for the masterclass notebooks and the single-cell pipeline

This file centralizes the thresholds and defaults used across the notebooks.
Modify these values to experiment with the analyses.
"""

# Cell-level filters (PBMC 3k defaults)
CELL_FILTERS = {
    "min_genes": 200,  # Minimum genes detected per cell
    "max_genes": 2500,  # Maximum genes detected per cell (likely multiplets above)
    "min_counts": None,  # Minimum total counts per cell (None = no filter)
    "max_counts": None,  # Maximum total counts per cell (None = no filter)
    "max_mt_pct": 5,  # Maximum mitochondrial gene percentage
    "max_ribo_pct": None,  # Maximum ribosomal gene percentage (None = no filter)
}

# Gene-level filters
GENE_FILTERS = {
    "min_cells": 3,  # Minimum cells expressing a gene
}

# Mitochondrial and ribosomal gene patterns
GENE_PATTERNS = {
    "mt_pattern": "MT-",  # Human mitochondrial genes (use "mt-" for mouse)
    "ribo_pattern": r"^RP[SL]",  # Ribosomal protein genes
}

# Dimensionality reduction and clustering
CLUSTERING_PARAMS = {
    "n_comps": 50,  # Principal components computed
    "n_pcs": 10,  # Principal components used for the kNN graph
    "n_neighbors": 10,
    "resolution": 0.5,  # Leiden resolution
    "tsne_perplexity": 30,
}

# Harmony integration
HARMONY_PARAMS = {
    "batch_key": "batch",
    "max_iter_harmony": 10,
}

# scPred-style supervised classifier
CLASSIFIER_PARAMS = {
    "n_components": 30,  # Reference PCs computed
    "pvalue_threshold": 0.05,  # Adjusted p-value for informative PCs
    "correction": "fdr_bh",  # statsmodels multipletests method
    "threshold": 0.55,  # Minimum probability before a cell is "unassigned"
    "kernel": "rbf",
    "C": 1.0,
    "cv": 5,
}

# Two-layer neural network
NETWORK_PARAMS = {
    "n_hidden": 5,
    "learning_rate": 1e-2,
    "n_iterations": 10000,
    "record_every": 100,
}


def get_parameter_summary():
    """Return a formatted summary of current parameter settings"""
    summary = [
        "=== Masterclass Parameter Settings ===",
        "\nCell-level filters:",
        f"  - Genes per cell: {CELL_FILTERS['min_genes']} - {CELL_FILTERS['max_genes']}",
        f"  - Max mitochondrial %: {CELL_FILTERS['max_mt_pct']}%",
    ]

    if CELL_FILTERS["min_counts"] or CELL_FILTERS["max_counts"]:
        summary.append(
            f"  - Counts per cell: {CELL_FILTERS['min_counts']} - {CELL_FILTERS['max_counts']}"
        )
    if CELL_FILTERS["max_ribo_pct"]:
        summary.append(f"  - Max ribosomal %: {CELL_FILTERS['max_ribo_pct']}%")

    summary.extend(
        [
            "\nGene-level filters:",
            f"  - Min cells expressing: {GENE_FILTERS['min_cells']}",
            "\nClustering:",
            f"  - PCs used: {CLUSTERING_PARAMS['n_pcs']} of {CLUSTERING_PARAMS['n_comps']}",
            f"  - Neighbors: {CLUSTERING_PARAMS['n_neighbors']}",
            f"  - Leiden resolution: {CLUSTERING_PARAMS['resolution']}",
            "\nClassifier:",
            f"  - Reference PCs: {CLASSIFIER_PARAMS['n_components']}",
            f"  - Rejection threshold: {CLASSIFIER_PARAMS['threshold']}",
            "\nNeural network:",
            f"  - Hidden units: {NETWORK_PARAMS['n_hidden']}",
            f"  - Learning rate: {NETWORK_PARAMS['learning_rate']}",
            f"  - Iterations: {NETWORK_PARAMS['n_iterations']:,}",
        ]
    )

    return "\n".join(summary)


# Validation function
def validate_parameters():
    """Validate that parameter values make sense"""
    errors = []

    # Check min/max relationships
    if CELL_FILTERS["min_genes"] >= CELL_FILTERS["max_genes"]:
        errors.append("min_genes must be less than max_genes")

    if (
        CELL_FILTERS["min_counts"] is not None
        and CELL_FILTERS["max_counts"] is not None
        and CELL_FILTERS["min_counts"] >= CELL_FILTERS["max_counts"]
    ):
        errors.append("min_counts must be less than max_counts")

    # Check percentage bounds
    if not 0 <= CELL_FILTERS["max_mt_pct"] <= 100:
        errors.append("max_mt_pct must be between 0 and 100")

    if CELL_FILTERS["max_ribo_pct"] and not 0 <= CELL_FILTERS["max_ribo_pct"] <= 100:
        errors.append("max_ribo_pct must be between 0 and 100")

    if CLUSTERING_PARAMS["n_pcs"] > CLUSTERING_PARAMS["n_comps"]:
        errors.append("n_pcs cannot exceed n_comps")

    if not 0 < CLASSIFIER_PARAMS["threshold"] < 1:
        errors.append("classifier threshold must be between 0 and 1")

    if not 0 < CLASSIFIER_PARAMS["pvalue_threshold"] < 1:
        errors.append("pvalue_threshold must be between 0 and 1")

    if NETWORK_PARAMS["n_hidden"] < 1:
        errors.append("n_hidden must be at least 1")

    if not NETWORK_PARAMS["learning_rate"] > 0:
        errors.append("learning_rate must be positive")

    if errors:
        raise ValueError("Parameter validation failed:\n" + "\n".join(errors))

    return True


# Run validation on import
validate_parameters()
