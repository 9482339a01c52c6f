"""
Schema definitions using Pandera for data validation.

Each workflow's CSV is validated against its contract at load time.
"""

from tablearn.schemas.drugs import (
    PERSONALITY_COLUMNS,
    SUBSTANCE_COLUMNS,
    USAGE_CLASSES,
    DrugConsumptionSchema,
)
from tablearn.schemas.housing import AMENITY_COLUMNS, FURNISHING_LEVELS, HousingSchema
from tablearn.schemas.registry import SchemaInfo, SchemaRegistry
from tablearn.schemas.spam import SPAM_LEVELS, SpamSchema

__all__ = [
    "AMENITY_COLUMNS",
    "FURNISHING_LEVELS",
    "PERSONALITY_COLUMNS",
    "SPAM_LEVELS",
    "SUBSTANCE_COLUMNS",
    "USAGE_CLASSES",
    "DrugConsumptionSchema",
    "HousingSchema",
    "SchemaInfo",
    "SchemaRegistry",
    "SpamSchema",
]
