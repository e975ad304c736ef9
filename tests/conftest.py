"""
Pytest configuration and shared fixtures for masterclass tests.
"""

import matplotlib

matplotlib.use("Agg")

import anndata
import numpy as np
import pandas as pd
import pytest
import scanpy as sc
from scipy import sparse

# =============================================================================
# Numpy Random Seed
# =============================================================================


@pytest.fixture(autouse=True)
def set_random_seed():
    """Set random seed for reproducibility."""
    np.random.seed(42)
    yield


@pytest.fixture(autouse=True)
def close_figures():
    """Close figures created during a test."""
    yield
    import matplotlib.pyplot as plt

    plt.close("all")


# =============================================================================
# Single-cell Fixtures
# =============================================================================

CELL_TYPES = ["B", "NK", "CD14 Mono"]
MARKERS = {
    "B": ["MS4A1", "CD79A", "CD79B"],
    "NK": ["GNLY", "NKG7", "KLRD1"],
    "CD14 Mono": ["CD14", "LYZ", "S100A9"],
}


def make_counts_adata(n_per_type=60, n_genes=200, seed=0):
    """Poisson counts for three cell types, each with its own gene program.

    Genes 0-2 are mitochondrial, 3-4 ribosomal, 5-13 canonical markers and
    20-79 type-specific programs of 20 genes each.
    """
    rng = np.random.default_rng(seed)
    genes = [f"GENE{i}" for i in range(n_genes)]
    genes[:5] = ["MT-CO1", "MT-ND1", "MT-ATP6", "RPS3", "RPL13"]
    marker_idx = {}
    pos = 5
    for cell_type in CELL_TYPES:
        for gene in MARKERS[cell_type]:
            genes[pos] = gene
            pos += 1
        marker_idx[cell_type] = list(range(pos - 3, pos))

    n_cells = n_per_type * len(CELL_TYPES)
    labels = np.repeat(CELL_TYPES, n_per_type)
    rates = np.full((n_cells, n_genes), 1.0)
    for k, cell_type in enumerate(CELL_TYPES):
        rows = labels == cell_type
        program = np.arange(20 + 20 * k, 40 + 20 * k)
        rates[np.ix_(rows, program)] = 8.0
        rates[np.ix_(rows, marker_idx[cell_type])] = 15.0

    X = rng.poisson(rates).astype(np.float32)
    adata = anndata.AnnData(sparse.csr_matrix(X))
    adata.var_names = genes
    adata.obs_names = [f"cell{i}" for i in range(n_cells)]
    adata.obs["cell_type"] = pd.Categorical(labels)
    return adata


def log_normalize(adata):
    sc.pp.normalize_total(adata, target_sum=1e4)
    sc.pp.log1p(adata)
    return adata


@pytest.fixture
def counts_adata():
    """Raw counts for 180 cells x 200 genes."""
    return make_counts_adata()


@pytest.fixture
def lognorm_adata():
    """Log-normalized expression with raw set, clusters equal to cell types."""
    adata = log_normalize(make_counts_adata())
    adata.raw = adata
    codes = {ct: str(i) for i, ct in enumerate(CELL_TYPES)}
    adata.obs["leiden"] = pd.Categorical(adata.obs["cell_type"].map(codes).astype(str))
    return adata


@pytest.fixture
def reference_query():
    """Independent log-normalized reference and query datasets."""
    reference = log_normalize(make_counts_adata(seed=1))
    query = log_normalize(make_counts_adata(n_per_type=30, seed=2))
    return reference, query


# =============================================================================
# Tabular Fixtures
# =============================================================================


@pytest.fixture
def linear_frame():
    """y = 2 + 3x + small noise."""
    rng = np.random.default_rng(0)
    x = rng.normal(size=200)
    return pd.DataFrame({"x": x, "y": 2 + 3 * x + rng.normal(scale=0.1, size=200)})


@pytest.fixture
def logistic_frame():
    """Binary outcome with a strong positive dependence on x."""
    rng = np.random.default_rng(0)
    x = rng.normal(size=400)
    p = 1 / (1 + np.exp(-(0.5 + 2 * x)))
    return pd.DataFrame({"x": x, "y": rng.binomial(1, p)})
