#!/usr/bin/env python3
"""
Convert percent-format notebook scripts into Colab-ready .ipynb files

Cells are delimited by ``# %%`` (code) and ``# %% [markdown]`` (markdown)
lines. Markdown cells are written as comments; the leading ``# `` is removed.
"""

import json
import re
from pathlib import Path

CELL_MARKER = re.compile(r"^# %%(?:\s*\[(?P<kind>\w+)\])?\s*$")


def create_cell(cell_type, source, metadata=None):
    """Create a notebook cell"""
    cell = {
        "cell_type": cell_type,
        "metadata": metadata or {},
        "source": source if isinstance(source, list) else [source],
    }
    if cell_type == "code":
        cell["execution_count"] = None
        cell["outputs"] = []
    return cell


def create_notebook_metadata():
    """Standard notebook metadata"""
    return {
        "colab": {"provenance": []},
        "kernelspec": {
            "display_name": "Python 3",
            "language": "python",
            "name": "python3",
        },
        "language_info": {
            "codemirror_mode": {"name": "ipython", "version": 3},
            "file_extension": ".py",
            "mimetype": "text/x-python",
            "name": "python",
            "version": "3.10.0",
        },
    }


def _uncomment(line):
    if line.startswith("# "):
        return line[2:]
    if line.startswith("#"):
        return line[1:]
    return line


def _to_source(lines):
    # Trim blank lines at both ends
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return [line + "\n" for line in lines[:-1]] + lines[-1:]


def parse_percent_script(text):
    """Split a percent-format script into notebook cells

    Args:
        text: Script contents

    Returns:
        List of cell dictionaries (nbformat 4)
    """
    cells = []
    kind = None
    buffer = []

    def _flush():
        if kind is None:
            return
        source = _to_source(list(buffer))
        if not source:
            return
        if kind == "markdown":
            cells.append(create_cell("markdown", _to_source([_uncomment(line) for line in buffer])))
        else:
            cells.append(create_cell("code", source))

    for line in text.splitlines():
        match = CELL_MARKER.match(line)
        if match:
            _flush()
            kind = match.group("kind") or "code"
            if kind not in ("code", "markdown"):
                raise ValueError(f"Unsupported cell type [{kind}]")
            buffer = []
        elif kind is not None:
            buffer.append(line)
        elif line.strip() and not line.startswith("#"):
            # Code before the first marker becomes its own cell
            kind = "code"
            buffer = [line]

    _flush()
    return cells


def build_notebook(script_path, output_path=None):
    """Convert one script to .ipynb

    Args:
        script_path: Path to the percent-format .py file
        output_path: Destination (defaults to the same name with .ipynb)

    Returns:
        Path of the written notebook
    """
    script_path = Path(script_path)
    output_path = Path(output_path) if output_path else script_path.with_suffix(".ipynb")

    cells = parse_percent_script(script_path.read_text(encoding="utf-8"))
    if not cells:
        raise ValueError(f"{script_path} contains no cells")

    notebook = {
        "cells": cells,
        "metadata": create_notebook_metadata(),
        "nbformat": 4,
        "nbformat_minor": 0,
    }
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(notebook, f, indent=1, ensure_ascii=False)

    n_code = sum(c["cell_type"] == "code" for c in cells)
    print(f"✓ Created {output_path.name} ({n_code} code, {len(cells) - n_code} markdown cells)")
    return output_path


def build_all(source_dir, output_dir=None, pattern="[0-9]*.py"):
    """Convert every numbered script in source_dir"""
    source_dir = Path(source_dir)
    scripts = sorted(source_dir.glob(pattern))
    if not scripts:
        raise FileNotFoundError(f"No notebook scripts matching '{pattern}' in {source_dir}")

    written = []
    for script in scripts:
        target = Path(output_dir) / f"{script.stem}.ipynb" if output_dir else None
        written.append(build_notebook(script, target))
    return written
