"""
Schema registry for versioning and discovery.

Maps dataset names from the workflow config to their Pandera schemas.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

import pandera.pandas as pa

from tablearn.schemas.drugs import DrugConsumptionSchema
from tablearn.schemas.housing import HousingSchema
from tablearn.schemas.spam import SpamSchema

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True)
class SchemaInfo:
    """Metadata about a registered schema."""

    name: str
    schema: type[pa.DataFrameModel]
    version: str
    description: str


class SchemaRegistry:
    """Centralized registry for all dataset schemas."""

    _version = "1.0.0"

    _schemas: ClassVar[dict[str, SchemaInfo]] = {
        "spam": SchemaInfo(
            name="spam",
            schema=SpamSchema,
            version="1.0.0",
            description="E-mail word frequencies labelled spam/nonspam",
        ),
        "housing": SchemaInfo(
            name="housing",
            schema=HousingSchema,
            version="1.0.0",
            description="House sale prices with size and amenity features",
        ),
        "drugs": SchemaInfo(
            name="drugs",
            schema=DrugConsumptionSchema,
            version="1.0.0",
            description="Personality scores and substance usage classes",
        ),
    }

    @classmethod
    def registry_version(cls) -> str:
        """Get the registry version."""
        return cls._version

    @classmethod
    def get_info(cls, name: str) -> SchemaInfo:
        """
        Get full schema info by name.

        Raises:
            KeyError: If schema not found.
        """
        if name not in cls._schemas:
            available = ", ".join(cls._schemas.keys())
            msg = f"Unknown schema '{name}'. Available: {available}"
            raise KeyError(msg)
        return cls._schemas[name]

    @classmethod
    def get(cls, name: str) -> type[pa.DataFrameModel]:
        """Get a schema class by name."""
        return cls.get_info(name).schema

    @classmethod
    def list_schemas(cls) -> list[str]:
        """List all registered schema names."""
        return list(cls._schemas.keys())

    @classmethod
    def validate(cls, df: "pd.DataFrame", schema_name: str) -> "pd.DataFrame":
        """
        Validate a DataFrame against a registered schema.

        Raises:
            pandera.errors.SchemaError: If validation fails.
        """
        schema = cls.get(schema_name)
        return schema.validate(df)
