# %% [markdown]
# # Notebook 6: Supervised Cell Type Classification
#
# **Machine Learning for Bioinformatics - Part 6 of 6**
#
# **📥 Input:** processed PBMC 3k with published labels (downloaded by scanpy)
#
# Clustering needs a human to name the clusters. If a labelled **reference**
# exists, we can instead train a classifier and transfer the labels to a new
# **query** dataset. This follows the scPred approach:
#
# 1. PCA on the reference
# 2. For each cell type, keep the PCs that differ between that type and the rest
#    (Wilcoxon rank-sum test, FDR-corrected)
# 3. Train one SVM per cell type on its PCs
# 4. Project the query onto the reference PCs and predict; cells whose best
#    probability is below 0.55 stay **unassigned**
#
# ---

# %%
import warnings
import scanpy as sc
import matplotlib.pyplot as plt

from masterclass.data_loader import load_pbmc3k_processed, split_reference_query
from masterclass.classification import (
    ScPredClassifier,
    evaluate_predictions,
    plot_prediction_heatmap,
)

warnings.filterwarnings('ignore')
sc.settings.verbosity = 1
print("✓ Setup complete!")

# %% [markdown]
# ## Reference and query
#
# The processed dataset keeps log-normalized expression in `.raw`; we split
# the cells 70/30, keeping the cell type proportions.

# %%
pbmc = load_pbmc3k_processed()
pbmc = pbmc.raw.to_adata()
pbmc.obs['cell_type'] = pbmc.obs['louvain'].astype(str)

sc.pp.highly_variable_genes(pbmc, n_top_genes=2000)
reference, query = split_reference_query(pbmc, query_fraction=0.3, stratify_key='cell_type')
reference.obs['cell_type'].value_counts()

# %% [markdown]
# ## Train

# %%
clf = ScPredClassifier(n_components=30, threshold=0.55)
clf.fit(reference, cell_type_key='cell_type')
clf.training_summary_

# %% [markdown]
# Informative PCs per cell type:

# %%
{ct: len(pcs) for ct, pcs in clf.features_.items()}

# %% [markdown]
# ## Predict

# %%
predictions = clf.annotate(query, key_added='scpred')
predictions.head()

# %%
result = evaluate_predictions(query.obs['cell_type'], query.obs['scpred_prediction'])
print(f"Accuracy (assigned cells): {result['accuracy']:.3f}")
print(f"Unassigned: {result['unassigned_fraction']:.1%}")
plot_prediction_heatmap(result['crosstab'])

# %% [markdown]
# ## Visualise the query in the reference PCA space

# %%
query.obsm['X_scpred'] = clf.project(query)
sc.pl.embedding(query, basis='X_scpred', color=['cell_type', 'scpred_prediction'])

# %% [markdown]
# ### 🎛️ Try it yourself
#
# - Raise the rejection threshold to 0.8. Which cell types become unassigned first?
# - Set `align_with_harmony=True` in `clf.annotate(...)`. With a query from the same
#   experiment, does alignment change anything?
