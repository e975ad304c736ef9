"""
Tests for H5 loading, reference/query splits and synthetic batches.
"""

import h5py
import numpy as np
import pytest
from scipy import sparse

from masterclass.data_loader import add_batch_labels, load_10x_h5, split_reference_query


def write_10x_h5(path, counts, genes, barcodes):
    """Write a genes x cells matrix in the CellRanger v3 layout."""
    matrix = sparse.csc_matrix(counts.T)
    with h5py.File(path, "w") as f:
        grp = f.create_group("matrix")
        grp.create_dataset("data", data=matrix.data)
        grp.create_dataset("indices", data=matrix.indices)
        grp.create_dataset("indptr", data=matrix.indptr)
        grp.create_dataset("shape", data=np.array(matrix.shape))
        grp.create_dataset("barcodes", data=np.array(barcodes, dtype="S"))
        features = grp.create_group("features")
        features.create_dataset("name", data=np.array(genes, dtype="S"))
        features.create_dataset("id", data=np.array([f"ENSG{i:05d}" for i in range(len(genes))], dtype="S"))


class TestLoad10xH5:
    """Tests for load_10x_h5."""

    def test_cells_are_rows(self, tmp_path):
        rng = np.random.default_rng(0)
        counts = rng.poisson(2, size=(6, 4)).astype(np.float32)
        path = tmp_path / "counts.h5"
        write_10x_h5(path, counts, ["A", "B", "C", "D"], [f"cell{i}" for i in range(6)])

        adata = load_10x_h5(path)
        assert adata.shape == (6, 4)
        assert list(adata.var_names) == ["A", "B", "C", "D"]
        assert adata.obs_names[0] == "cell0"
        assert adata.var["gene_ids"].iloc[1] == "ENSG00001"
        np.testing.assert_array_equal(adata.X.toarray(), counts)

    def test_duplicate_gene_names(self, tmp_path):
        counts = np.ones((3, 3), dtype=np.float32)
        path = tmp_path / "dup.h5"
        write_10x_h5(path, counts, ["A", "A", "B"], ["c1", "c2", "c3"])
        adata = load_10x_h5(path)
        assert adata.var_names.is_unique

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_10x_h5(tmp_path / "missing.h5")

    def test_missing_matrix_group(self, tmp_path):
        path = tmp_path / "empty.h5"
        with h5py.File(path, "w") as f:
            f.create_group("other")
        with pytest.raises(KeyError):
            load_10x_h5(path)


class TestSplit:
    """Tests for split_reference_query."""

    def test_fraction(self, counts_adata):
        reference, query = split_reference_query(counts_adata, query_fraction=0.25)
        assert query.n_obs == 45
        assert reference.n_obs == 135
        assert not set(reference.obs_names) & set(query.obs_names)

    def test_stratified(self, counts_adata):
        _, query = split_reference_query(counts_adata, query_fraction=0.5, stratify_key="cell_type")
        assert (query.obs["cell_type"].value_counts() == 30).all()

    def test_invalid_fraction(self, counts_adata):
        with pytest.raises(ValueError):
            split_reference_query(counts_adata, query_fraction=1.0)

    def test_missing_stratify_key(self, counts_adata):
        with pytest.raises(KeyError):
            split_reference_query(counts_adata, stratify_key="nope")


class TestBatchLabels:
    """Tests for add_batch_labels."""

    def test_labels(self, counts_adata):
        adata = add_batch_labels(counts_adata, n_batches=3)
        assert set(adata.obs["batch"].cat.categories) <= {"batch1", "batch2", "batch3"}

    def test_shift_scales_counts(self, counts_adata):
        before = np.asarray(counts_adata.X.sum(axis=1)).ravel()
        adata = add_batch_labels(counts_adata, n_batches=2, shift=0.5)
        after = np.asarray(adata.X.sum(axis=1)).ravel()
        second = (adata.obs["batch"] == "batch2").to_numpy()
        np.testing.assert_allclose(after[~second], before[~second], rtol=1e-5)
        np.testing.assert_allclose(after[second], 1.5 * before[second], rtol=1e-5)

    def test_invalid_n_batches(self, counts_adata):
        with pytest.raises(ValueError):
            add_batch_labels(counts_adata, n_batches=0)
