# %% [markdown]
# # Notebook 3: A Neural Network from Scratch
#
# **Machine Learning for Bioinformatics - Part 3 of 6**
#
# **📥 Input:** simulated two-spiral data
# **➡️ Next:** `04_pca_image_compression.ipynb`
#
# Two interleaved spirals cannot be separated by a straight line. We build a
# network with one hidden layer, using nothing but matrix products, and train
# it by gradient descent.
#
# ---

# %% [markdown]
# ## Setup

# %%
import warnings
import numpy as np
import matplotlib.pyplot as plt
from sklearn.linear_model import LogisticRegression

from masterclass.datasets import make_two_spirals
from masterclass.neural_network import (
    TwoLayerNetwork,
    feedforward,
    init_weights,
    plot_decision_boundary,
    plot_training_history,
)

warnings.filterwarnings('ignore')
print("✓ Setup complete!")

# %% [markdown]
# ## The data

# %%
x, y = make_two_spirals(n=400, cycles=1.0, noise=0.05, random_state=1)

plt.figure(figsize=(5, 5))
plt.scatter(x[:, 0], x[:, 1], c=y, cmap='coolwarm', s=12)
plt.title('Two spirals')
plt.show()

# %% [markdown]
# ## Baseline: logistic regression
#
# A linear model can only draw a straight boundary.

# %%
logit = LogisticRegression().fit(x, y)
print(f"Logistic regression training accuracy: {logit.score(x, y):.3f}")
plot_decision_boundary(logit, x, y, title='Logistic regression')
plt.show()

# %% [markdown]
# ## The network
#
# **Forward pass**
#
# $$H = \sigma([1 \mid X] W_1), \qquad \hat y = \sigma([1 \mid H] W_2)$$
#
# where $\sigma(z) = 1 / (1 + e^{-z})$ and $[1 \mid \cdot]$ prepends a bias column.
#
# **Backward pass** (chain rule)
#
# $$\nabla W_2 = [1 \mid H]^\top (\hat y - y), \qquad
#   \nabla W_1 = [1 \mid X]^\top \big( (\hat y - y) W_2^{\top} \odot H (1 - H) \big)$$
#
# (the bias row of $W_2$ is dropped when propagating back to $H$).
#
# **Update**: $W \leftarrow W - \eta \nabla W$, on the full batch, a fixed number of times.

# %%
w1, w2 = init_weights(n_features=2, n_hidden=5, random_state=0)
y_hat, h = feedforward(x, w1, w2)
print(f"W1: {w1.shape}, W2: {w2.shape}")
print(f"Hidden activations: {h.shape}, output: {y_hat.shape}")
print(f"Accuracy with random weights: {np.mean((y_hat.ravel() >= 0.5) == y):.3f}")

# %% [markdown]
# ## Training

# %%
net = TwoLayerNetwork(n_hidden=5, learning_rate=1e-2, n_iterations=10000, random_state=0)
net.train(x, y, verbose=False)
print(f"Training accuracy (5 hidden units): {net.accuracy(x, y):.3f}")

plot_training_history(net)

# %%
plot_decision_boundary(net, x, y, title='5 hidden units')
plt.show()

# %% [markdown]
# ## Wider hidden layers

# %%
fig, axes = plt.subplots(1, 3, figsize=(15, 5))
for ax, n_hidden in zip(axes, [5, 15, 30]):
    model = TwoLayerNetwork(n_hidden=n_hidden, n_iterations=10000, random_state=0).train(x, y)
    acc = model.accuracy(x, y)
    plot_decision_boundary(model, x, y, title=f'{n_hidden} hidden units (acc {acc:.2f})', ax=ax)
plt.tight_layout()
plt.show()

# %% [markdown]
# ### 🎛️ Try it yourself
#
# - Set `learning_rate=1` - what happens to the training curve?
# - Try `cycles=2` in `make_two_spirals`. How many hidden units are needed now?
# - The network has no early stopping: training accuracy keeps improving, but
#   would a held-out set agree?
