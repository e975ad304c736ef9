# %% [markdown]
# # Notebook 4: PCA and Image Compression
#
# **Machine Learning for Bioinformatics - Part 4 of 6**
#
# **📥 Input:** sample photograph shipped with matplotlib
# **➡️ Next:** `05_scrna_clustering.ipynb`
#
# A grayscale image is just a matrix. Treating pixel rows as observations
# and pixel columns as variables, PCA finds a few directions that capture
# most of the picture - the same idea we use later to summarise thousands
# of genes with a handful of principal components.
#
# ---

# %%
import warnings
import matplotlib.pyplot as plt

from masterclass.datasets import load_sample_image
from masterclass.image_compression import (
    to_grayscale,
    compress_image,
    reconstruct_image,
    compression_ratio,
    compress_color_image,
    summarize_compression,
    plot_reconstructions,
    plot_explained_variance,
)

warnings.filterwarnings('ignore')
print("✓ Setup complete!")

# %% [markdown]
# ## Load and convert the image

# %%
image = load_sample_image()
gray = to_grayscale(image)
print(f"Image: {gray.shape[0]} × {gray.shape[1]} pixels")

plt.imshow(gray, cmap='gray')
plt.axis('off')
plt.show()

# %% [markdown]
# ## How many components do we need?

# %%
plot_explained_variance(gray, max_components=100)

# %% [markdown]
# ## Reconstructions

# %%
plot_reconstructions(gray, [5, 20, 50, 100])

# %%
summarize_compression(gray, [5, 10, 20, 50, 100]).round(3)

# %% [markdown]
# ## What is actually stored?
#
# For $k$ components we keep the scores ($\text{rows} \times k$), the
# components ($k \times \text{cols}$) and the column means.

# %%
compressed = compress_image(gray, 30)
print(f"Scores:     {compressed.scores.shape}")
print(f"Components: {compressed.components.shape}")
print(f"Storage:    {compression_ratio(compressed):.1%} of the original pixel count")

plt.imshow(reconstruct_image(compressed), cmap='gray')
plt.axis('off')
plt.show()

# %% [markdown]
# ## Colour images
#
# Compress each RGB channel independently.

# %%
plt.imshow(compress_color_image(image, 30))
plt.axis('off')
plt.show()

# %% [markdown]
# ### 🎛️ Try it yourself
#
# - Load your own picture with `plt.imread('my_photo.png')`.
# - At which $k$ can you no longer tell the reconstruction from the original?
