"""
Preprocessing pipeline construction.

Builds sklearn ColumnTransformers suited to the model family: trees see
raw numerics and integer-coded factors, linear models see standardized
numerics and one-hot factors.
"""

from typing import Any

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder, StandardScaler

from tablearn.utils.logging import get_logger

log = get_logger(__name__)

PREPROCESSING_KINDS = ("tree", "linear")


def _factor_levels(X: pd.DataFrame | None, columns: list[str]) -> list[Any] | str:
    """Category lists from categorical dtypes, else 'auto'."""
    if X is None or not columns:
        return "auto"
    levels = []
    for col in columns:
        if not isinstance(X[col].dtype, pd.CategoricalDtype):
            return "auto"
        levels.append(list(X[col].cat.categories))
    return levels


def build_preprocessor(
    numeric_features: list[str],
    categorical_features: list[str],
    kind: str = "tree",
    *,
    X: pd.DataFrame | None = None,
) -> ColumnTransformer:
    """
    Build preprocessing ColumnTransformer for one model family.

    Factor levels are taken from the categorical dtypes of X when given,
    so ordered factors keep their order and every level is known up front.

    Args:
        numeric_features: Numeric feature names.
        categorical_features: Factor feature names.
        kind: 'tree' (passthrough + ordinal codes) or 'linear'
            (standardize + one-hot).
        X: Optional frame used to read factor levels.

    Returns:
        Unfitted ColumnTransformer.

    Raises:
        ValueError: If kind is unknown.
    """
    if kind not in PREPROCESSING_KINDS:
        msg = f"Unknown preprocessing kind '{kind}'. Available: {PREPROCESSING_KINDS}"
        raise ValueError(msg)

    levels = _factor_levels(X, categorical_features)
    transformers: list[tuple[str, Any, list[str]]] = []

    if kind == "tree":
        if numeric_features:
            transformers.append(("numeric", "passthrough", numeric_features))
        if categorical_features:
            transformers.append((
                "factors",
                OrdinalEncoder(
                    categories=levels,
                    handle_unknown="use_encoded_value",
                    unknown_value=-1,
                ),
                categorical_features,
            ))
    else:
        if numeric_features:
            transformers.append(("numeric", StandardScaler(), numeric_features))
        if categorical_features:
            transformers.append((
                "factors",
                OneHotEncoder(
                    categories=levels,
                    drop="if_binary",
                    handle_unknown="ignore",
                    sparse_output=False,
                ),
                categorical_features,
            ))

    preprocessor = ColumnTransformer(
        transformers=transformers,
        remainder="drop",
        verbose_feature_names_out=False,
    )

    log.debug(
        "Built preprocessor",
        kind=kind,
        n_numeric=len(numeric_features),
        n_categorical=len(categorical_features),
    )
    return preprocessor


def build_target_transformer(method: str = "none") -> tuple[Any, Any]:
    """
    Build regression target transformer functions.

    Args:
        method: Transformation method ('log1p' or 'none').

    Returns:
        Tuple of (transform_func, inverse_func); (None, None) for 'none'.
    """
    if method == "none":
        return None, None

    if method == "log1p":
        return np.log1p, np.expm1

    log.warning("Unknown transform method, using log1p", method=method)
    return np.log1p, np.expm1


def get_feature_names_from_preprocessor(
    preprocessor: ColumnTransformer,
    input_features: list[str] | None = None,
) -> list[str]:
    """
    Get output feature names from a fitted preprocessor.

    Args:
        preprocessor: Fitted ColumnTransformer.
        input_features: Original input feature names.

    Returns:
        List of output feature names.
    """
    try:
        return list(preprocessor.get_feature_names_out(input_features))
    except (AttributeError, ValueError):
        n_features = sum(
            len(cols) for _, _, cols in preprocessor.transformers_ if cols is not None
        )
        log.warning("Preprocessor has no feature names, using generic ones")
        return [f"feature_{i}" for i in range(n_features)]
