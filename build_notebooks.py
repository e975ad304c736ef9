#!/usr/bin/env python3
"""
Build Colab-ready .ipynb notebooks from the percent-format scripts in notebooks/

Usage:
    python build_notebooks.py
    python build_notebooks.py --source notebooks --output colab
"""

import argparse

from masterclass.notebook_builder import build_all


def main():
    parser = argparse.ArgumentParser(description="Convert notebook scripts to .ipynb")
    parser.add_argument("--source", default="notebooks", help="Directory with the .py notebooks")
    parser.add_argument(
        "--output",
        default=None,
        help="Directory for the .ipynb files (default: next to the scripts)",
    )
    args = parser.parse_args()

    print("=" * 70)
    print("BUILDING NOTEBOOKS")
    print("=" * 70)
    written = build_all(args.source, args.output)
    print("=" * 70)
    print(f"✓ {len(written)} notebooks written")


if __name__ == "__main__":
    main()
