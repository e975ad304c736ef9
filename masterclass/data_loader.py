#!/usr/bin/env python3
"""
Data loading utilities for the single-cell RNA-seq notebooks
Handles the PBMC datasets, 10x-style H5 files and reference/query splits
"""

import numpy as np
import h5py
import anndata
import scanpy as sc
from scipy import sparse
from pathlib import Path


def load_pbmc3k():
    """Raw 10x PBMC 3k counts (downloaded and cached by scanpy)"""
    print("Loading PBMC 3k dataset...")
    adata = sc.datasets.pbmc3k()
    adata.var_names_make_unique()
    print(f"✓ Loaded: {adata.n_obs:,} cells × {adata.n_vars:,} genes")
    return adata


def load_pbmc3k_processed():
    """Processed PBMC 3k with published cell type labels in ``obs['louvain']``"""
    print("Loading processed PBMC 3k dataset...")
    adata = sc.datasets.pbmc3k_processed()
    print(f"✓ Loaded: {adata.n_obs:,} cells × {adata.n_vars:,} genes")
    return adata


def _decode(values):
    return [v.decode("utf-8") if isinstance(v, bytes) else str(v) for v in values]


def load_10x_h5(file_path):
    """Load a 10x-style H5 count matrix

    Args:
        file_path: Path to an H5 file with a ``matrix`` group (CellRanger v3 layout)

    Returns:
        AnnData object with cells as rows
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"No such H5 file: {file_path}")

    with h5py.File(file_path, "r") as f:
        if "matrix" not in f:
            raise KeyError(f"{file_path} has no 'matrix' group")
        matrix = f["matrix"]
        features = matrix["features"]

        shape = tuple(matrix["shape"][:])
        X = sparse.csc_matrix(
            (matrix["data"][:], matrix["indices"][:], matrix["indptr"][:]), shape=shape
        )

        gene_names = _decode(features["name"][:])
        gene_ids = _decode(features["id"][:])
        cell_barcodes = _decode(matrix["barcodes"][:])

    # 10x stores genes x cells
    if X.shape[0] == len(gene_names) and X.shape[1] == len(cell_barcodes):
        adata = anndata.AnnData(X.T.tocsr())
    else:
        adata = anndata.AnnData(X.tocsr())

    adata.var_names = gene_names
    adata.var["gene_ids"] = gene_ids
    adata.obs_names = cell_barcodes
    adata.var_names_make_unique()

    print(f"✓ Loaded {file_path.name}: {adata.n_obs:,} cells × {adata.n_vars:,} genes")
    return adata


def split_reference_query(adata, query_fraction=0.3, stratify_key=None, random_state=0):
    """Randomly split cells into a labelled reference and a query set

    Args:
        adata: AnnData object
        query_fraction: Fraction of cells placed in the query
        stratify_key: Optional obs column; the split keeps its proportions
        random_state: Seed

    Returns:
        Tuple (reference, query) of AnnData copies
    """
    if not 0 < query_fraction < 1:
        raise ValueError("query_fraction must be between 0 and 1")

    rng = np.random.default_rng(random_state)
    is_query = np.zeros(adata.n_obs, dtype=bool)

    if stratify_key is None:
        n_query = int(round(query_fraction * adata.n_obs))
        is_query[rng.choice(adata.n_obs, size=n_query, replace=False)] = True
    else:
        if stratify_key not in adata.obs:
            raise KeyError(f"Stratify key '{stratify_key}' not found in adata.obs")
        labels = adata.obs[stratify_key].astype(str).to_numpy()
        for label in np.unique(labels):
            idx = np.flatnonzero(labels == label)
            n_query = int(round(query_fraction * len(idx)))
            is_query[rng.choice(idx, size=n_query, replace=False)] = True

    reference = adata[~is_query].copy()
    query = adata[is_query].copy()
    print(f"Reference: {reference.n_obs:,} cells | Query: {query.n_obs:,} cells")
    return reference, query


def add_batch_labels(adata, n_batches=2, key="batch", shift=0.0, random_state=0):
    """Assign cells to synthetic batches for the integration exercise

    Args:
        adata: AnnData object (modified in place)
        n_batches: Number of batches
        key: obs column to write
        shift: Multiplicative depth effect applied to every batch after the first,
            e.g. 0.3 scales counts of batch k by (1 + 0.3 * k)
        random_state: Seed

    Returns:
        AnnData object with ``obs[key]`` set
    """
    if n_batches < 1:
        raise ValueError("n_batches must be at least 1")

    rng = np.random.default_rng(random_state)
    batches = rng.integers(0, n_batches, size=adata.n_obs)
    adata.obs[key] = [f"batch{b + 1}" for b in batches]
    adata.obs[key] = adata.obs[key].astype("category")

    if shift:
        scale = 1.0 + shift * batches
        if sparse.issparse(adata.X):
            adata.X = sparse.diags(scale) @ adata.X
            adata.X = sparse.csr_matrix(adata.X)
        else:
            adata.X = adata.X * scale[:, None]

    print(f"Batch sizes: {adata.obs[key].value_counts().sort_index().to_dict()}")
    return adata
