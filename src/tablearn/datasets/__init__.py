"""
Dataset loading with schema validation and column transforms.
"""

from tablearn.datasets.base import DatasetLoader, encode_factors
from tablearn.datasets.loaders import (
    LOADERS,
    NON_USER_LABEL,
    USER_LABEL,
    DrugConsumptionLoader,
    HousingLoader,
    SpamLoader,
    get_loader,
)

__all__ = [
    "LOADERS",
    "NON_USER_LABEL",
    "USER_LABEL",
    "DatasetLoader",
    "DrugConsumptionLoader",
    "HousingLoader",
    "SpamLoader",
    "encode_factors",
    "get_loader",
]
