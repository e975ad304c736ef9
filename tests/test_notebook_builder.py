"""
Tests for converting percent-format scripts into notebooks.
"""

import json
from pathlib import Path

import pytest

from masterclass.notebook_builder import build_all, build_notebook, parse_percent_script

NOTEBOOK_DIR = Path(__file__).resolve().parents[1] / "notebooks"

SCRIPT = """# %% [markdown]
# # Title
#
# Some text

# %%
import numpy as np

x = np.arange(3)

# %%
print(x)
"""


class TestParse:
    """Tests for parse_percent_script."""

    def test_cells(self):
        cells = parse_percent_script(SCRIPT)
        assert [c["cell_type"] for c in cells] == ["markdown", "code", "code"]
        assert cells[0]["source"] == ["# Title\n", "\n", "Some text"]
        assert cells[1]["source"] == ["import numpy as np\n", "\n", "x = np.arange(3)"]
        assert cells[2]["outputs"] == []
        assert cells[2]["execution_count"] is None

    def test_code_before_first_marker(self):
        cells = parse_percent_script("x = 1\n# %%\ny = 2\n")
        assert [c["source"] for c in cells] == [["x = 1"], ["y = 2"]]

    def test_empty_cells_dropped(self):
        cells = parse_percent_script("# %%\n\n# %%\nprint(1)\n")
        assert len(cells) == 1

    def test_unsupported_kind(self):
        with pytest.raises(ValueError):
            parse_percent_script("# %% [raw]\ntext\n")


class TestBuild:
    """Tests for writing .ipynb files."""

    def test_build_notebook(self, tmp_path):
        script = tmp_path / "01_demo.py"
        script.write_text(SCRIPT, encoding="utf-8")
        out = build_notebook(script)
        assert out == tmp_path / "01_demo.ipynb"
        notebook = json.loads(out.read_text(encoding="utf-8"))
        assert notebook["nbformat"] == 4
        assert notebook["metadata"]["kernelspec"]["name"] == "python3"
        assert len(notebook["cells"]) == 3

    def test_empty_script(self, tmp_path):
        script = tmp_path / "01_empty.py"
        script.write_text("# just a comment\n", encoding="utf-8")
        with pytest.raises(ValueError):
            build_notebook(script)

    def test_no_scripts(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            build_all(tmp_path)

    def test_course_notebooks(self, tmp_path):
        written = build_all(NOTEBOOK_DIR, tmp_path)
        assert [p.name for p in written] == [
            "01_linear_regression.ipynb",
            "02_logistic_regression.ipynb",
            "03_neural_network.ipynb",
            "04_pca_image_compression.ipynb",
            "05_scrna_clustering.ipynb",
            "06_scrna_classification.ipynb",
        ]
        for path in written:
            notebook = json.loads(path.read_text(encoding="utf-8"))
            kinds = {c["cell_type"] for c in notebook["cells"]}
            assert kinds == {"code", "markdown"}
