"""
Tablearn: supervised-learning workflows on small tabular datasets.

This package provides loaders, model registries, pruning and penalized
regression paths, and evaluation plots for the spam, housing and
drug-consumption teaching workflows.
"""

from importlib.metadata import version

__version__ = version("tablearn")

__all__ = ["__version__"]
