"""
Base classes and utilities for dataset loading.

Provides common functionality for all workflow datasets.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import pandas as pd
import pandera.pandas as pa

from tablearn.config.settings import WorkflowConfig
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T", bound=pa.DataFrameModel)


class DatasetLoader(ABC, Generic[T]):
    """
    Abstract base class for dataset loaders.

    Loading is a fixed sequence: read the CSV, validate it against the
    schema, apply the dataset-specific column transforms, then the shared
    factor encoding.
    """

    def __init__(self, config: WorkflowConfig, schema: type[T]) -> None:
        """
        Initialize dataset loader.

        Args:
            config: Workflow configuration.
            schema: Pandera schema for validation.
        """
        self.config = config
        self.schema = schema

    def _load_raw(self) -> pd.DataFrame:
        """Read the configured CSV."""
        path = self.config.dataset.resolve()
        if not path.exists():
            msg = f"Dataset file not found: {path}"
            raise FileNotFoundError(msg)
        return pd.read_csv(path)

    @abstractmethod
    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Dataset-specific column transforms. Implemented by subclasses."""
        ...

    def load(self, *, validate: bool = True) -> pd.DataFrame:
        """
        Load, validate and transform the dataset.

        Args:
            validate: Whether to validate against schema.

        Returns:
            Model-ready DataFrame including the outcome column.

        Raises:
            FileNotFoundError: If data file not found.
            pandera.errors.SchemaError: If validation fails.
        """
        log.info("Loading data", loader=self.__class__.__name__)

        df = self._load_raw()
        log.info("Loaded raw data", rows=len(df), columns=len(df.columns))

        if validate:
            df = self.schema.validate(df)
            log.info("Schema validation passed", schema=self.schema.__name__)

        df = self.transform(df)
        return encode_factors(
            df,
            drop_columns=self.config.dataset.drop_columns,
            categorical_columns=self.config.dataset.categorical_columns,
            target=self.config.dataset.target,
        )


def encode_factors(
    df: pd.DataFrame,
    *,
    drop_columns: list[str] | None = None,
    categorical_columns: list[str] | None = None,
    target: str | None = None,
) -> pd.DataFrame:
    """
    Drop unused columns and convert string columns to categoricals.

    Args:
        df: Input frame.
        drop_columns: Columns to remove; missing ones are ignored with a warning.
        categorical_columns: Columns to treat as factors even if numeric.
        target: Outcome column, left untouched.

    Returns:
        New DataFrame with factor columns as pandas ``category`` dtype.
    """
    df = df.copy()

    if drop_columns:
        missing = [c for c in drop_columns if c not in df.columns]
        if missing:
            log.warning("Columns to drop not found", missing=missing)
        df = df.drop(columns=[c for c in drop_columns if c in df.columns])

    forced = set(categorical_columns or [])
    for col in df.columns:
        if col == target:
            continue
        if isinstance(df[col].dtype, pd.CategoricalDtype):
            continue
        is_text = pd.api.types.is_object_dtype(df[col]) or pd.api.types.is_string_dtype(
            df[col]
        )
        if col in forced or is_text:
            df[col] = df[col].astype("category")

    n_factors = sum(isinstance(df[c].dtype, pd.CategoricalDtype) for c in df.columns)
    log.debug("Encoded factors", n_factors=n_factors)
    return df
