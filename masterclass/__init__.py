"""
Shared code for the Machine Learning for Bioinformatics masterclass notebooks
"""

__version__ = "0.1.0"
