# %% [markdown]
# # Notebook 5: Single-Cell RNA-seq Clustering
#
# **Machine Learning for Bioinformatics - Part 5 of 6**
#
# **📥 Input:** 10x Genomics PBMC 3k (downloaded by scanpy)
# **📤 Output:** `outputs/pbmc3k_clustered.h5ad`
# **➡️ Next:** `06_scrna_classification.ipynb`
#
# **Stages:**
# 1. QC metrics and filtering
# 2. Normalization and highly variable genes
# 3. PCA
# 4. Harmony integration
# 5. Neighbours, Leiden clustering, t-SNE and UMAP
# 6. Marker genes and cluster annotation
#
# ---

# %% [markdown]
# ## Setup

# %%
# Install required packages (Colab)
# !pip install -q scanpy anndata harmonypy leidenalg igraph matplotlib seaborn

import warnings
import scanpy as sc
from pathlib import Path

from masterclass.data_loader import load_pbmc3k, add_batch_labels
from masterclass.qc_utils import calculate_qc_metrics, plot_qc_metrics, filter_cells_and_genes
from masterclass.processing import (
    normalize_and_scale,
    run_pca,
    run_neighbors_and_clustering,
    run_tsne,
    run_umap,
    plot_embeddings,
    choose_leiden_resolution,
)
from masterclass.integration import run_harmony, compare_integration, plot_batch_distribution
from masterclass.annotation import (
    PBMC_MARKER_GENES,
    compute_top_markers_per_cluster,
    top_markers_table,
    assign_celltypes_by_cluster_scores,
    plot_marker_genes,
    plot_cell_type_summary,
)
from masterclass.parameters import get_parameter_summary

warnings.filterwarnings('ignore')
sc.settings.verbosity = 1
sc.settings.set_figure_params(dpi=80, facecolor='white')

OUTPUT_DIR = Path('outputs')
OUTPUT_DIR.mkdir(exist_ok=True)

print(get_parameter_summary())

# %% [markdown]
# ## Stage 1: Quality control

# %%
adata = load_pbmc3k()

# Two synthetic batches with a sequencing depth difference, for Stage 4
adata = add_batch_labels(adata, n_batches=2, key='batch', shift=0.3)

adata = calculate_qc_metrics(adata)
plot_qc_metrics(adata)

# %% [markdown]
# ### 🎛️ Choosing thresholds
#
# - Cells with very few genes are empty droplets or broken cells.
# - Cells with very many genes are often doublets.
# - A high mitochondrial fraction indicates dying cells.
#
# The defaults (200-2500 genes, < 5% MT) live in `masterclass/parameters.py`.

# %%
adata = filter_cells_and_genes(adata)

# %% [markdown]
# ## Stage 2: Normalization

# %%
adata = normalize_and_scale(adata)
print(adata)

# %% [markdown]
# ## Stage 3: PCA

# %%
adata = run_pca(adata, n_comps=50)

# %% [markdown]
# The elbow flattens around PC 10, so we keep 10 PCs for the graph.

# %% [markdown]
# ## Stage 4: Batch effects and Harmony

# %%
adata = run_harmony(adata, batch_key='batch')
compare_integration(adata, batch_key='batch')

# %% [markdown]
# ## Stage 5: Clustering and embeddings

# %%
adata = run_neighbors_and_clustering(adata, n_pcs=10, resolution=0.5, use_rep='X_pca_harmony')
adata = run_umap(adata)
adata = run_tsne(adata, n_pcs=10, use_rep='X_pca_harmony')

plot_embeddings(adata, basis='tsne', color=['leiden', 'batch'])
plot_embeddings(adata, basis='umap', color=['leiden', 'batch'])
plot_batch_distribution(adata, batch_key='batch')

# %% [markdown]
# ### 🎛️ How many clusters?
#
# The resolution controls cluster granularity. Sweep it and compare silhouettes:

# %%
chosen = choose_leiden_resolution(adata, resolution_grid=[0.2, 0.4, 0.6, 0.8, 1.0, 1.2])
plot_embeddings(adata, basis='umap', color='leiden')

# %% [markdown]
# ## Stage 6: Marker genes and annotation

# %%
markers = compute_top_markers_per_cluster(adata, n_top=25)
top_markers_table(markers, n=5)

# %%
plot_marker_genes(adata, PBMC_MARKER_GENES)

# %%
scores = assign_celltypes_by_cluster_scores(adata, PBMC_MARKER_GENES)
plot_embeddings(adata, basis='umap', color=['celltype'])
plot_cell_type_summary(adata, sample_col='batch')

# %%
adata.write(OUTPUT_DIR / 'pbmc3k_clustered.h5ad')
print(f"✓ Saved {OUTPUT_DIR / 'pbmc3k_clustered.h5ad'}")
