# %% [markdown]
# # Notebook 1: Linear Regression
#
# **Machine Learning for Bioinformatics - Part 1 of 6**
#
# **📥 Input:** scikit-learn's bundled diabetes table
# **➡️ Next:** `02_logistic_regression.ipynb`
#
# We fit ordinary least squares models with the statsmodels formula
# interface, which reads almost exactly like R's `lm()`.
#
# ---

# %% [markdown]
# ## Setup

# %%
# Install required packages (Colab)
# !pip install -q statsmodels seaborn scikit-learn pandas numpy

import warnings
import matplotlib.pyplot as plt
import seaborn as sns

from masterclass.datasets import load_regression_data, describe_dataset
from masterclass.regression import (
    fit_linear_model,
    coefficient_table,
    split_data,
    plot_linear_fit,
    plot_residuals,
)

warnings.filterwarnings('ignore')
sns.set_theme(style='whitegrid')
print("✓ Setup complete!")

# %% [markdown]
# ## Load the data
#
# Ten baseline variables (age, sex, BMI, blood pressure and six blood serum
# measurements) for 442 diabetes patients, and a quantitative measure of
# disease progression one year later. The predictors are already centred
# and scaled.

# %%
df = load_regression_data()
describe_dataset(df, 'progression')
df.head()

# %% [markdown]
# ## Simple linear regression
#
# Does body mass index predict disease progression?
#
# $$\text{progression} = \beta_0 + \beta_1 \cdot \text{bmi} + \varepsilon$$

# %%
plot_linear_fit(df, 'bmi', 'progression')

simple = fit_linear_model(df, 'progression ~ bmi')
coefficient_table(simple).round(3)

# %% [markdown]
# ### 💡 Interpreting the output
#
# - **estimate**: change in progression per unit of (scaled) BMI
# - **p_value**: evidence against $\beta_1 = 0$
# - **conf_low / conf_high**: 95% confidence interval
#
# The full R-style summary is also available:

# %%
print(simple.summary())

# %% [markdown]
# ## Multiple linear regression
#
# Add blood pressure and the serum measurement `s5`.

# %%
multiple = fit_linear_model(df, 'progression ~ bmi + bp + s5')
coefficient_table(multiple).round(3)

# %% [markdown]
# ### Checking the assumptions
#
# Residuals should scatter evenly around zero and roughly follow a normal
# distribution.

# %%
plot_residuals(multiple)

# %% [markdown]
# ## Out-of-sample performance
#
# Fit on 75% of patients, evaluate on the remaining 25%.

# %%
import numpy as np

train, test = split_data(df, test_size=0.25)
model = fit_linear_model(train, 'progression ~ bmi + bp + s5')

predicted = model.predict(test)
rmse = np.sqrt(np.mean((test['progression'] - predicted) ** 2))
r2 = 1 - np.sum((test['progression'] - predicted) ** 2) / np.sum(
    (test['progression'] - test['progression'].mean()) ** 2
)
print(f"Test RMSE: {rmse:.1f}")
print(f"Test R²:   {r2:.3f}")

# %% [markdown]
# ### 🎛️ Try it yourself
#
# - Add all ten predictors (`progression ~ age + sex + bmi + bp + s1 + s2 + s3 + s4 + s5 + s6`).
#   Does the test R² improve?
# - Add an interaction: `progression ~ bmi * bp`.
