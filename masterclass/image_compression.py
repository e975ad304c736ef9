#!/usr/bin/env python3
"""
PCA-based image compression
Treats each pixel row as an observation and each pixel column as a variable
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.decomposition import PCA

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


@dataclass
class CompressedImage:
    """Everything needed to rebuild an image from its first k components"""

    scores: np.ndarray  # (rows, k)
    components: np.ndarray  # (k, cols)
    mean: np.ndarray  # (cols,)
    shape: tuple
    explained_variance_ratio: np.ndarray

    @property
    def n_components(self):
        return self.components.shape[0]


def to_grayscale(image):
    """Convert an image array to a float grayscale image in [0, 1]

    Args:
        image: Array of shape (h, w), (h, w, 3) or (h, w, 4); uint8 or float

    Returns:
        Float array of shape (h, w)
    """
    img = np.asarray(image)
    if np.issubdtype(img.dtype, np.integer):
        img = img.astype(float) / 255.0
    else:
        img = img.astype(float)

    if img.ndim == 2:
        gray = img
    elif img.ndim == 3 and img.shape[2] in (3, 4):
        # Drop alpha
        gray = img[..., :3] @ LUMA_WEIGHTS
    else:
        raise ValueError(f"Unsupported image shape {img.shape}")

    return np.clip(gray, 0.0, 1.0)


def compress_image(gray, n_components):
    """Keep the first n_components principal components of a grayscale image

    Args:
        gray: 2-D float array
        n_components: Number of components to keep

    Returns:
        CompressedImage
    """
    gray = np.asarray(gray, dtype=float)
    if gray.ndim != 2:
        raise ValueError("compress_image expects a 2-D grayscale image")
    max_k = min(gray.shape)
    if not 1 <= n_components <= max_k:
        raise ValueError(f"n_components must be between 1 and {max_k}, got {n_components}")

    pca = PCA(n_components=n_components, svd_solver="full")
    scores = pca.fit_transform(gray)
    return CompressedImage(
        scores=scores,
        components=pca.components_,
        mean=pca.mean_,
        shape=gray.shape,
        explained_variance_ratio=pca.explained_variance_ratio_,
    )


def reconstruct_image(compressed):
    """Rebuild the image from a CompressedImage, clipped to [0, 1]"""
    approx = compressed.scores @ compressed.components + compressed.mean
    return np.clip(approx.reshape(compressed.shape), 0.0, 1.0)


def compression_ratio(compressed):
    """Numbers stored by the compressed form divided by the number of pixels"""
    rows, cols = compressed.shape
    stored = compressed.scores.size + compressed.components.size + compressed.mean.size
    return stored / (rows * cols)


def reconstruction_error(original, reconstructed):
    """Root-mean-square pixel difference"""
    original = np.asarray(original, dtype=float)
    reconstructed = np.asarray(reconstructed, dtype=float)
    if original.shape != reconstructed.shape:
        raise ValueError(
            f"Shape mismatch: {original.shape} vs {reconstructed.shape}"
        )
    return float(np.sqrt(np.mean((original - reconstructed) ** 2)))


def explained_variance_curve(gray):
    """Cumulative fraction of variance explained by each number of components"""
    gray = np.asarray(gray, dtype=float)
    pca = PCA(svd_solver="full").fit(gray)
    return np.cumsum(pca.explained_variance_ratio_)


def compress_color_image(image, n_components):
    """Compress each RGB channel separately and stack the reconstructions

    Returns:
        Float array (h, w, 3) in [0, 1]
    """
    img = np.asarray(image)
    if img.ndim != 3 or img.shape[2] < 3:
        raise ValueError("compress_color_image expects an (h, w, 3) image")
    if np.issubdtype(img.dtype, np.integer):
        img = img.astype(float) / 255.0

    channels = [
        reconstruct_image(compress_image(img[..., c], n_components)) for c in range(3)
    ]
    return np.stack(channels, axis=-1)


def summarize_compression(gray, n_components_list):
    """Table of error and storage for several numbers of components"""
    rows = []
    for k in n_components_list:
        compressed = compress_image(gray, k)
        rows.append(
            {
                "n_components": k,
                "variance_explained": float(compressed.explained_variance_ratio.sum()),
                "compression_ratio": compression_ratio(compressed),
                "rmse": reconstruction_error(gray, reconstruct_image(compressed)),
            }
        )
    return pd.DataFrame(rows)


def plot_reconstructions(gray, n_components_list, save_path=None):
    """Show the original image next to reconstructions with k components"""
    n_panels = len(n_components_list) + 1
    fig, axes = plt.subplots(1, n_panels, figsize=(3.5 * n_panels, 4))

    axes[0].imshow(gray, cmap="gray", vmin=0, vmax=1)
    axes[0].set_title("Original")
    for ax, k in zip(axes[1:], n_components_list):
        compressed = compress_image(gray, k)
        ax.imshow(reconstruct_image(compressed), cmap="gray", vmin=0, vmax=1)
        ax.set_title(f"k = {k} ({compression_ratio(compressed):.0%} of pixels)")
    for ax in axes:
        ax.axis("off")
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()


def plot_explained_variance(gray, max_components=100, save_path=None):
    """Elbow-style plot of cumulative explained variance"""
    curve = explained_variance_curve(gray)[:max_components]
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(np.arange(1, len(curve) + 1), curve, "-o", markersize=3)
    ax.axhline(0.9, color="gray", linestyle="--", linewidth=1)
    ax.set_xlabel("Number of components")
    ax.set_ylabel("Cumulative variance explained")
    ax.set_ylim(0, 1.01)
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"  Saved: {save_path}")
        plt.close(fig)
    else:
        plt.show()
