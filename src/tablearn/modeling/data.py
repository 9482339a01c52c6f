"""
Training data preparation.

Separates the outcome from the features and produces the single
train/test partition every model in a workflow run shares.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from tablearn.config.settings import WorkflowConfig
from tablearn.datasets.loaders import get_loader
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class TrainingData:
    """
    Container for training data with metadata.

    Attributes:
        X_train: Training features.
        X_test: Test features.
        y_train: Training target.
        y_test: Test target.
        feature_names: All feature column names.
        numeric_features: Numeric feature columns.
        categorical_features: Factor feature columns.
        n_samples: Total number of samples after target filtering.
        classes: Sorted outcome levels (classification only).
        target_stats: Class counts (classification) or summary statistics.
    """

    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series
    feature_names: list[str]
    numeric_features: list[str]
    categorical_features: list[str]
    n_samples: int
    classes: list[str] = field(default_factory=list)
    target_stats: dict[str, float] = field(default_factory=dict)


def split_feature_types(X: pd.DataFrame) -> tuple[list[str], list[str]]:
    """
    Split columns into numeric and categorical features.

    Boolean columns count as numeric; categoricals and strings as factors.
    """
    numeric = [
        col
        for col in X.columns
        if pd.api.types.is_numeric_dtype(X[col])
        and not isinstance(X[col].dtype, pd.CategoricalDtype)
    ]
    categorical = [col for col in X.columns if col not in numeric]
    return numeric, categorical


def _compute_target_stats(y: pd.Series, *, classification: bool) -> dict[str, float]:
    """Compute class counts or numeric summary statistics of the target."""
    if classification:
        counts = y.value_counts()
        return {str(k): float(v) for k, v in counts.sort_index().items()}

    return {
        "mean": float(y.mean()),
        "std": float(y.std()),
        "min": float(y.min()),
        "max": float(y.max()),
        "median": float(y.median()),
    }


def _can_stratify(y: pd.Series) -> bool:
    """Stratification needs at least two members in every class."""
    return bool(y.value_counts().min() >= 2)


def prepare_data(df: pd.DataFrame, config: WorkflowConfig) -> TrainingData:
    """
    Separate outcome and features and split into train/test partitions.

    Args:
        df: Model-ready frame including the target column.
        config: Workflow configuration.

    Returns:
        TrainingData with train/test splits and metadata.

    Raises:
        ValueError: If the target is missing or a classification target
            has fewer than two classes.
    """
    target = config.dataset.target
    if target not in df.columns:
        msg = f"Target column '{target}' not found. Available: {list(df.columns)}"
        raise ValueError(msg)

    n_missing = int(df[target].isna().sum())
    if n_missing:
        log.warning("Dropping rows with missing target", n_dropped=n_missing)
        df = df.loc[df[target].notna()]

    X = df.drop(columns=[target])
    y = df[target]

    classification = config.is_classification
    classes: list[str] = []
    stratify = None
    if classification:
        y = y.astype(str)
        classes = sorted(y.unique().tolist())
        if len(classes) < 2:
            msg = f"Classification target '{target}' needs two classes, got {classes}"
            raise ValueError(msg)
        positive = config.dataset.positive_class
        if positive is not None and positive not in classes:
            msg = f"Positive class {positive!r} not among outcome levels {classes}"
            raise ValueError(msg)
        if config.split.stratify:
            if _can_stratify(y):
                stratify = y
            else:
                log.warning("Class too small to stratify, using plain split")
    else:
        y = y.astype(float)

    X_train, X_test, y_train, y_test = train_test_split(
        X,
        y,
        test_size=config.split.test_size,
        random_state=config.split.random_state,
        stratify=stratify,
    )

    numeric, categorical = split_feature_types(X)

    data = TrainingData(
        X_train=X_train,
        X_test=X_test,
        y_train=y_train,
        y_test=y_test,
        feature_names=list(X.columns),
        numeric_features=numeric,
        categorical_features=categorical,
        n_samples=len(df),
        classes=classes,
        target_stats=_compute_target_stats(y, classification=classification),
    )

    log.info(
        "Prepared training data",
        n_train=len(X_train),
        n_test=len(X_test),
        n_numeric=len(numeric),
        n_categorical=len(categorical),
        stratified=stratify is not None,
    )
    return data


def load_dataset(config: WorkflowConfig, *, validate: bool = True) -> TrainingData:
    """
    Load, transform and split the configured dataset.

    Args:
        config: Workflow configuration.
        validate: Whether to run schema validation.

    Returns:
        TrainingData ready for model fitting.
    """
    df = get_loader(config).load(validate=validate)
    return prepare_data(df, config)


def positive_class_index(classes: list[str] | np.ndarray, positive: str | None) -> int:
    """
    Column of predict_proba holding the positive class.

    Defaults to the last class (sklearn's convention for binary problems).
    """
    classes = list(classes)
    if positive is None:
        return len(classes) - 1
    return classes.index(positive)
