"""
Modeling layer for training, pruning and penalized regression.

Provides model registries, preprocessing pipelines and the CV-driven
complexity selection used by the workflows.
"""
