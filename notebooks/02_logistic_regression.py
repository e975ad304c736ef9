# %% [markdown]
# # Notebook 2: Logistic Regression
#
# **Machine Learning for Bioinformatics - Part 2 of 6**
#
# **📥 Input:** scikit-learn's bundled breast cancer table
# **➡️ Next:** `03_neural_network.ipynb`
#
# A binary outcome (malignant vs benign) modelled with a binomial GLM,
# the Python counterpart of R's `glm(family = binomial)`.
#
# ---

# %% [markdown]
# ## Setup

# %%
import warnings
import seaborn as sns

from masterclass.datasets import load_classification_data, describe_dataset
from masterclass.regression import (
    fit_logistic_model,
    coefficient_table,
    predict_classes,
    classification_summary,
    split_data,
    plot_logistic_curve,
)

warnings.filterwarnings('ignore')
sns.set_theme(style='whitegrid')
print("✓ Setup complete!")

# %% [markdown]
# ## Load the data
#
# 569 fine-needle aspirates described by 30 features of the cell nuclei.

# %%
df = load_classification_data()
describe_dataset(df, 'malignant')

# %% [markdown]
# ## One predictor
#
# $$\log\frac{p}{1-p} = \beta_0 + \beta_1 \cdot \text{mean\_radius}$$

# %%
plot_logistic_curve(df, 'mean_radius', 'malignant')

simple = fit_logistic_model(df, 'malignant ~ mean_radius')
coefficient_table(simple).round(3)

# %% [markdown]
# Exponentiated coefficients are **odds ratios**: how much the odds of
# malignancy are multiplied per unit increase in the predictor.

# %%
coefficient_table(simple, exponentiate=True).round(3)

# %% [markdown]
# ## Several predictors, evaluated on held-out data

# %%
train, test = split_data(df, test_size=0.3, stratify='malignant')

formula = 'malignant ~ mean_radius + mean_texture + mean_concave_points'
model = fit_logistic_model(train, formula)
coefficient_table(model, exponentiate=True).round(3)

# %%
pred = predict_classes(model, test)
summary = classification_summary(test['malignant'], pred['probability'])

print(summary['confusion'])
print(f"\nAccuracy:    {summary['accuracy']:.3f}")
print(f"Sensitivity: {summary['sensitivity']:.3f}")
print(f"Specificity: {summary['specificity']:.3f}")
print(f"ROC AUC:     {summary['roc_auc']:.3f}")

# %% [markdown]
# ### 🎛️ Try it yourself
#
# - Change the classification threshold to 0.3 with
#   `classification_summary(test['malignant'], pred['probability'], threshold=0.3)`.
#   What happens to sensitivity and specificity? Which error matters more clinically?
# - Logistic regression draws a *linear* decision boundary. Notebook 3 shows a
#   problem where that is not enough.
