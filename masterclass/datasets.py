#!/usr/bin/env python3
"""
Toy and bundled datasets used by the masterclass notebooks
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib import cbook
from sklearn.datasets import load_breast_cancer, load_diabetes


def make_two_spirals(n=400, cycles=1.0, noise=0.05, random_state=None):
    """Two interleaved spirals, one per class

    Args:
        n: Total number of points (split evenly between the classes)
        cycles: Number of turns of each spiral
        noise: Standard deviation of Gaussian noise added to every point
        random_state: Seed or numpy Generator

    Returns:
        Tuple (x, y) with x of shape (n, 2) and y in {0, 1}
    """
    if n < 2:
        raise ValueError("n must be at least 2")
    if cycles <= 0:
        raise ValueError("cycles must be positive")

    rng = np.random.default_rng(random_state)
    n0 = n // 2
    n1 = n - n0

    def _arm(m, phase):
        t = np.linspace(0.05, cycles, m)
        angle = 2 * np.pi * t + phase
        return np.column_stack([t * np.cos(angle), t * np.sin(angle)])

    x = np.vstack([_arm(n0, 0.0), _arm(n1, np.pi)])
    x += rng.normal(scale=noise, size=x.shape)
    y = np.concatenate([np.zeros(n0, dtype=int), np.ones(n1, dtype=int)])
    return x, y


def make_xor_blobs(n=200, spread=0.3, random_state=None):
    """Four Gaussian blobs at (+-1, +-1) labelled by XOR of the signs

    Not linearly separable, but separable after adding the x1 * x2 feature.
    """
    rng = np.random.default_rng(random_state)
    centers = np.array([[-1, -1], [1, 1], [-1, 1], [1, -1]], dtype=float)
    labels = np.array([0, 0, 1, 1])
    idx = np.arange(n) % 4
    x = centers[idx] + rng.normal(scale=spread, size=(n, 2))
    return x, labels[idx]


def load_regression_data():
    """Diabetes progression table bundled with scikit-learn

    Returns:
        DataFrame with ten standardised predictors and a ``progression`` column
    """
    bunch = load_diabetes(as_frame=True)
    df = bunch.frame.rename(columns={"target": "progression"})
    return df


def load_classification_data():
    """Breast cancer table bundled with scikit-learn

    Column names are made formula-friendly (``mean radius`` -> ``mean_radius``)
    and the outcome is ``malignant`` (1 = malignant, 0 = benign).
    """
    bunch = load_breast_cancer(as_frame=True)
    df = bunch.frame.copy()
    df.columns = [c.replace(" ", "_") for c in df.columns]
    # scikit-learn encodes malignant as 0
    df["malignant"] = (df.pop("target") == 0).astype(int)
    return df


def load_sample_image():
    """Sample photograph shipped with matplotlib, as an (h, w, 3) uint8 array"""
    path = cbook.get_sample_data("grace_hopper.jpg", asfileobj=False)
    return plt.imread(path)


def describe_dataset(df, target):
    """Print a short overview of a tabular dataset"""
    if target not in df.columns:
        raise KeyError(f"Target column '{target}' not found")
    print(f"{df.shape[0]:,} rows × {df.shape[1] - 1} predictors")
    print(f"Target: {target}")
    if df[target].nunique() <= 10:
        print(df[target].value_counts().sort_index().to_string())
    else:
        print(df[target].describe().round(2).to_string())
    return pd.DataFrame(
        {"dtype": df.dtypes.astype(str), "n_missing": df.isna().sum()}
    )
