#!/usr/bin/env python3
"""
Batch integration with Harmony
Corrects the PCA embedding so that cells group by type rather than by batch
"""

import numpy as np
import pandas as pd
import harmonypy
import matplotlib.pyplot as plt
from sklearn.metrics import silhouette_score

from masterclass.parameters import HARMONY_PARAMS


def run_harmony(
    adata,
    batch_key=HARMONY_PARAMS["batch_key"],
    basis="X_pca",
    adjusted_basis="X_pca_harmony",
    max_iter_harmony=HARMONY_PARAMS["max_iter_harmony"],
    random_state=0,
):
    """Run Harmony on an existing embedding

    Args:
        adata: AnnData object with ``obsm[basis]``
        batch_key: obs column holding the batch labels
        basis: Embedding to correct
        adjusted_basis: obsm key for the corrected embedding
        max_iter_harmony: Maximum Harmony iterations

    Returns:
        AnnData object with ``obsm[adjusted_basis]``
    """
    if batch_key not in adata.obs:
        raise KeyError(f"Batch key '{batch_key}' not found in adata.obs")
    if basis not in adata.obsm:
        raise KeyError(f"'{basis}' not found in adata.obsm - run PCA first")

    n_batches = adata.obs[batch_key].nunique()
    print(f"Running Harmony over {n_batches} batches ('{batch_key}')...")
    if n_batches < 2:
        print("  Only one batch - copying the embedding unchanged")
        adata.obsm[adjusted_basis] = np.asarray(adata.obsm[basis]).copy()
        return adata

    ho = harmonypy.run_harmony(
        np.asarray(adata.obsm[basis]),
        adata.obs[[batch_key]].astype(str),
        [batch_key],
        max_iter_harmony=max_iter_harmony,
        random_state=random_state,
        verbose=False,
    )
    # Z_corr is components x cells in most harmonypy releases
    corrected = np.asarray(ho.Z_corr)
    if corrected.shape[0] != adata.n_obs:
        corrected = corrected.T
    adata.obsm[adjusted_basis] = corrected
    print(f"  ✓ Corrected embedding stored in obsm['{adjusted_basis}']")
    return adata


def batch_mixing_score(adata, batch_key=HARMONY_PARAMS["batch_key"], use_rep="X_pca"):
    """How well batches are mixed in an embedding

    Computed as 1 - |silhouette| on the batch labels: 1 means batches are
    indistinguishable, values near 0 mean cells separate by batch.
    """
    if batch_key not in adata.obs:
        raise KeyError(f"Batch key '{batch_key}' not found in adata.obs")
    if use_rep not in adata.obsm:
        raise KeyError(f"'{use_rep}' not found in adata.obsm")

    labels = adata.obs[batch_key].astype(str)
    if labels.nunique() < 2:
        return 1.0
    sil = silhouette_score(np.asarray(adata.obsm[use_rep]), labels)
    return float(1 - abs(sil))


def compare_integration(
    adata,
    batch_key=HARMONY_PARAMS["batch_key"],
    label_key=None,
    reps=("X_pca", "X_pca_harmony"),
):
    """Batch mixing (and optionally cell type separation) for several embeddings

    Args:
        adata: AnnData object
        batch_key: obs column with batch labels
        label_key: obs column with cell type labels (optional)
        reps: obsm keys to compare

    Returns:
        DataFrame with one row per embedding
    """
    rows = []
    for rep in reps:
        row = {
            "embedding": rep,
            "batch_mixing": batch_mixing_score(adata, batch_key, rep),
        }
        if label_key is not None:
            labels = adata.obs[label_key].astype(str)
            row["celltype_silhouette"] = (
                float(silhouette_score(np.asarray(adata.obsm[rep]), labels))
                if labels.nunique() > 1
                else np.nan
            )
        rows.append(row)

    df = pd.DataFrame(rows).set_index("embedding")
    print("\nIntegration summary:")
    print(df.round(3).to_string())
    return df


def plot_batch_distribution(adata, batch_key, groupby="leiden", save_dir=None):
    """Stacked bar chart of batch composition per cluster"""
    if groupby not in adata.obs or batch_key not in adata.obs:
        raise KeyError(f"'{groupby}' and '{batch_key}' must both be in adata.obs")

    composition = pd.crosstab(
        adata.obs[groupby], adata.obs[batch_key], normalize="index"
    )
    fig, ax = plt.subplots(figsize=(10, 5))
    composition.plot(kind="bar", stacked=True, ax=ax)
    ax.set_xlabel(groupby)
    ax.set_ylabel("Fraction of cells")
    ax.legend(title=batch_key, bbox_to_anchor=(1.02, 1), loc="upper left")
    plt.tight_layout()

    if save_dir:
        fig.savefig(save_dir / "batch_distribution.png", dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_dir}/batch_distribution.png")
        plt.close(fig)
    else:
        plt.show()
    return composition
