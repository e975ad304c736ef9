#!/usr/bin/env python3
"""
A two-layer neural network written from scratch with NumPy

One hidden layer of sigmoid units and a single sigmoid output, trained by
full-batch gradient descent for a fixed number of iterations. Used in the
masterclass to show what libraries such as scikit-learn or PyTorch do for us.
"""

import numpy as np
import matplotlib.pyplot as plt
from scipy.special import expit

from masterclass.parameters import NETWORK_PARAMS


def sigmoid(z):
    """Logistic function 1 / (1 + exp(-z))"""
    return expit(z)


def add_bias_column(x):
    """Prepend a column of ones to a 2-D array"""
    return np.hstack([np.ones((x.shape[0], 1)), x])


def init_weights(n_features, n_hidden, random_state=None):
    """Draw both weight matrices from a standard normal distribution

    Args:
        n_features: Number of input columns (d)
        n_hidden: Number of hidden units (h)
        random_state: Seed or numpy Generator

    Returns:
        Tuple (w1, w2) with shapes (d + 1, h) and (h + 1, 1)
    """
    rng = np.random.default_rng(random_state)
    w1 = rng.standard_normal((n_features + 1, n_hidden))
    w2 = rng.standard_normal((n_hidden + 1, 1))
    return w1, w2


def feedforward(x, w1, w2):
    """Forward pass through the network

    Args:
        x: Input matrix (n, d)
        w1: Input-to-hidden weights (d + 1, h), first row is the bias
        w2: Hidden-to-output weights (h + 1, 1), first row is the bias

    Returns:
        Tuple (y_hat, h) of output probabilities (n, 1) and hidden activations (n, h)
    """
    z1 = add_bias_column(x) @ w1
    h = sigmoid(z1)
    z2 = add_bias_column(h) @ w2
    return sigmoid(z2), h


def compute_gradients(x, y, y_hat, w2, h):
    """Gradients of both weight matrices, summed over the batch

    Args:
        x: Input matrix (n, d)
        y: Labels (n, 1) in {0, 1}
        y_hat: Network output (n, 1)
        w2: Hidden-to-output weights (h + 1, 1)
        h: Hidden activations (n, h)

    Returns:
        Tuple (dw1, dw2) with the shapes of w1 and w2
    """
    output_error = y_hat - y
    dw2 = add_bias_column(h).T @ output_error
    hidden_error = (output_error @ w2[1:, :].T) * h * (1 - h)
    dw1 = add_bias_column(x).T @ hidden_error
    return dw1, dw2


def backpropagate(x, y, y_hat, w1, w2, h, learning_rate):
    """One gradient-descent step

    Returns:
        Tuple (w1, w2) of updated weights; the inputs are left untouched
    """
    dw1, dw2 = compute_gradients(x, y, y_hat, w2, h)
    return w1 - learning_rate * dw1, w2 - learning_rate * dw2


def binary_cross_entropy(y, y_hat, eps=1e-12):
    """Summed binary cross-entropy; its gradient w.r.t. the output logit is y_hat - y"""
    y_hat = np.clip(y_hat, eps, 1 - eps)
    return float(-np.sum(y * np.log(y_hat) + (1 - y) * np.log(1 - y_hat)))


def _check_inputs(x, y=None):
    x = np.asarray(x, dtype=float)
    if x.ndim != 2:
        raise ValueError(f"x must be a 2-D array, got shape {x.shape}")
    if y is None:
        return x, None

    y = np.asarray(y, dtype=float).reshape(-1, 1)
    if y.shape[0] != x.shape[0]:
        raise ValueError(
            f"x has {x.shape[0]} rows but y has {y.shape[0]} labels"
        )
    if not np.isin(y, (0, 1)).all():
        raise ValueError("y must only contain 0 and 1")
    return x, y


class TwoLayerNetwork:
    """Single-hidden-layer perceptron trained by full-batch gradient descent.

    There is no mini-batching, no convergence check and no early stopping:
    the weights are updated exactly ``n_iterations`` times.

    Args:
        n_hidden: Width of the hidden layer
        learning_rate: Gradient-descent step size
        n_iterations: Number of full-batch updates
        record_every: Record training accuracy every this many iterations
        random_state: Seed for the weight initialization
    """

    def __init__(
        self,
        n_hidden=NETWORK_PARAMS["n_hidden"],
        learning_rate=NETWORK_PARAMS["learning_rate"],
        n_iterations=NETWORK_PARAMS["n_iterations"],
        record_every=NETWORK_PARAMS["record_every"],
        random_state=None,
    ):
        if n_hidden < 1:
            raise ValueError("n_hidden must be at least 1")
        if not np.isfinite(learning_rate) or learning_rate <= 0:
            raise ValueError("learning_rate must be a positive number")
        if n_iterations < 1:
            raise ValueError("n_iterations must be at least 1")
        if record_every < 1:
            raise ValueError("record_every must be at least 1")

        self.n_hidden = int(n_hidden)
        self.learning_rate = float(learning_rate)
        self.n_iterations = int(n_iterations)
        self.record_every = int(record_every)
        self.random_state = random_state

        self.w1 = None
        self.w2 = None
        self.history_ = None

    def __repr__(self):
        return (
            f"TwoLayerNetwork(n_hidden={self.n_hidden}, "
            f"learning_rate={self.learning_rate}, n_iterations={self.n_iterations})"
        )

    @property
    def is_trained(self):
        return self.w1 is not None and self.w2 is not None

    def train(self, x, y, verbose=False):
        """Fit the weights to (x, y)

        Args:
            x: Input matrix (n, d)
            y: Labels in {0, 1}, shape (n,) or (n, 1)
            verbose: Print accuracy every time it is recorded

        Returns:
            self
        """
        x, y = _check_inputs(x, y)
        if x.shape[0] == 0:
            raise ValueError("Cannot train on an empty dataset")
        w1, w2 = init_weights(x.shape[1], self.n_hidden, self.random_state)

        history = []
        for i in range(self.n_iterations):
            y_hat, h = feedforward(x, w1, w2)
            if i % self.record_every == 0:
                acc = float(np.mean((y_hat >= 0.5) == y))
                history.append(
                    {
                        "iteration": i,
                        "accuracy": acc,
                        "loss": binary_cross_entropy(y, y_hat),
                    }
                )
                if verbose:
                    print(f"  Iteration {i:>6,}: accuracy {acc:.3f}")
            w1, w2 = backpropagate(x, y, y_hat, w1, w2, h, self.learning_rate)

        self.w1, self.w2 = w1, w2
        y_hat, _ = feedforward(x, w1, w2)
        history.append(
            {
                "iteration": self.n_iterations,
                "accuracy": float(np.mean((y_hat >= 0.5) == y)),
                "loss": binary_cross_entropy(y, y_hat),
            }
        )
        self.history_ = history
        return self

    def predict_proba(self, x):
        """Probability of class 1 for each row of x, shape (n,)"""
        if not self.is_trained:
            raise RuntimeError("Network has not been trained yet; call train() first")
        x, _ = _check_inputs(x)
        if x.shape[1] + 1 != self.w1.shape[0]:
            raise ValueError(
                f"Network was trained on {self.w1.shape[0] - 1} features, got {x.shape[1]}"
            )
        y_hat, _ = feedforward(x, self.w1, self.w2)
        return y_hat.ravel()

    def predict(self, x, threshold=0.5):
        """Class labels (0 or 1) for each row of x"""
        return (self.predict_proba(x) >= threshold).astype(int)

    def accuracy(self, x, y):
        """Fraction of rows classified correctly"""
        x, y = _check_inputs(x, y)
        return float(np.mean(self.predict(x) == y.ravel()))


def train_network(
    x,
    y,
    n_hidden=NETWORK_PARAMS["n_hidden"],
    learning_rate=NETWORK_PARAMS["learning_rate"],
    n_iterations=NETWORK_PARAMS["n_iterations"],
    random_state=None,
):
    """Functional shortcut: build and train a TwoLayerNetwork"""
    net = TwoLayerNetwork(
        n_hidden=n_hidden,
        learning_rate=learning_rate,
        n_iterations=n_iterations,
        random_state=random_state,
    )
    return net.train(x, y)


def decision_grid(model, x, resolution=200, padding=0.5):
    """Evaluate a 2-D classifier over a regular grid covering x

    Args:
        model: Object with a ``predict_proba`` method returning P(class 1)
        x: Input matrix (n, 2) defining the extent of the grid
        resolution: Grid points along each axis
        padding: Margin added around the data range

    Returns:
        Tuple (xx, yy, probabilities), each of shape (resolution, resolution)
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 2 or x.shape[1] != 2:
        raise ValueError("decision_grid needs exactly two input features")

    x_min, y_min = x.min(axis=0) - padding
    x_max, y_max = x.max(axis=0) + padding
    xx, yy = np.meshgrid(
        np.linspace(x_min, x_max, resolution), np.linspace(y_min, y_max, resolution)
    )
    grid = np.column_stack([xx.ravel(), yy.ravel()])
    proba = np.asarray(model.predict_proba(grid))
    # scikit-learn classifiers return one column per class
    if proba.ndim == 2:
        proba = proba[:, -1]
    return xx, yy, proba.reshape(xx.shape)


def plot_decision_boundary(model, x, y, title=None, ax=None, save_path=None):
    """Plot predicted class regions with the training points on top

    Args:
        model: Trained classifier with ``predict_proba``
        x: Input matrix (n, 2)
        y: Labels in {0, 1}
        title: Plot title (optional)
        ax: Existing matplotlib axis (optional)
        save_path: File to save the figure to (optional). If provided, the figure is saved without display;
            otherwise a figure created here is shown
    """
    xx, yy, proba = decision_grid(model, x)
    y = np.asarray(y).ravel()

    standalone = ax is None
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 6))
    else:
        fig = ax.figure

    ax.contourf(xx, yy, proba >= 0.5, alpha=0.25, cmap="coolwarm")
    ax.contour(xx, yy, proba, levels=[0.5], colors="k", linewidths=1)
    ax.scatter(x[:, 0], x[:, 1], c=y, cmap="coolwarm", s=12, edgecolors="none")
    ax.set_xlabel("x1")
    ax.set_ylabel("x2")
    if title:
        ax.set_title(title)

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    elif standalone:
        plt.show()
    return ax


def plot_training_history(network, save_path=None):
    """Plot training accuracy and loss against iteration"""
    if network.history_ is None:
        raise RuntimeError("Network has not been trained yet; call train() first")

    iterations = [h["iteration"] for h in network.history_]
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))
    axes[0].plot(iterations, [h["accuracy"] for h in network.history_])
    axes[0].set_xlabel("Iteration")
    axes[0].set_ylabel("Training accuracy")
    axes[1].plot(iterations, [h["loss"] for h in network.history_], color="#ff7f0e")
    axes[1].set_xlabel("Iteration")
    axes[1].set_ylabel("Cross-entropy")
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()
