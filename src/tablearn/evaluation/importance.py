"""
Variable importance and partial dependence.

Impurity / coefficient importances come from the fitted model on the
preprocessed columns; permutation importance and partial dependence work
on the raw input columns through the whole pipeline.
"""

import contextlib
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.inspection import partial_dependence, permutation_importance

from tablearn.modeling.training import unwrap_pipeline
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class FeatureImportance:
    """Feature importance data for a model."""

    feature_names: list[str]
    importances: np.ndarray
    importance_type: str  # 'gini_importance', 'coefficient_magnitude', 'permutation'
    std: np.ndarray | None = None

    def to_frame(self) -> pd.DataFrame:
        """Importances sorted descending, with share of total in percent."""
        df = pd.DataFrame(
            {"feature": self.feature_names, "importance": self.importances}
        )
        if self.std is not None:
            df["std"] = self.std
        total = np.abs(self.importances).sum()
        df["pct"] = df["importance"] / total * 100 if total > 0 else 0.0
        return df.sort_values("importance", ascending=False).reset_index(drop=True)

    def top(self, n: int) -> list[str]:
        """Names of the n most important features."""
        return self.to_frame()["feature"].head(n).tolist()


def extract_feature_importance(
    model: Any,
    feature_names: list[str],
) -> FeatureImportance | None:
    """
    Extract feature importances from a trained model.

    Handles different model types:
    - Tree-based models (CART, RandomForest, GradientBoosting): feature_importances_
    - Linear models (LogisticRegression, Ridge, Lasso, ...): |coefficients|
    - Other models: return None

    Args:
        model: Trained sklearn model or pipeline.
        feature_names: List of input feature names.

    Returns:
        FeatureImportance object or None if not available.
    """
    inner_model = unwrap_pipeline(model)
    preprocessor = None

    if hasattr(inner_model, "named_steps"):
        preprocessor = inner_model.named_steps.get("preprocessor")
        inner_model = inner_model.named_steps.get("model", inner_model)

    transformed_names = feature_names
    if preprocessor is not None:
        with contextlib.suppress(AttributeError, ValueError):
            transformed_names = list(preprocessor.get_feature_names_out())

    importances = None
    importance_type = "unknown"

    if hasattr(inner_model, "feature_importances_"):
        importances = np.asarray(inner_model.feature_importances_)
        importance_type = "gini_importance"

    elif hasattr(inner_model, "coef_"):
        coef = np.asarray(inner_model.coef_)
        if coef.ndim > 1:
            # multiclass logistic: mean magnitude over classes
            coef = np.abs(coef).mean(axis=0)
        importances = np.abs(coef)
        importance_type = "coefficient_magnitude"

    if importances is None:
        return None

    if len(importances) != len(transformed_names):
        log.warning(
            "Feature importance length mismatch",
            n_importances=len(importances),
            n_features=len(transformed_names),
        )
        if len(importances) == len(feature_names):
            transformed_names = feature_names
        else:
            transformed_names = [f"feature_{i}" for i in range(len(importances))]

    return FeatureImportance(
        feature_names=list(transformed_names),
        importances=importances,
        importance_type=importance_type,
    )


def compute_permutation_importance(
    pipeline: Any,
    X: pd.DataFrame,
    y: pd.Series,
    *,
    n_repeats: int = 5,
    random_state: int = 1337,
    scoring: str | None = None,
) -> FeatureImportance:
    """
    Permutation importance on the raw input columns.

    Args:
        pipeline: Fitted pipeline.
        X: Evaluation features (typically the test partition).
        y: Evaluation target.
        n_repeats: Shuffles per feature.
        random_state: Seed.
        scoring: sklearn scoring name (default: estimator's score).

    Returns:
        FeatureImportance with mean drop in score and its std.
    """
    result = permutation_importance(
        pipeline,
        X,
        y,
        n_repeats=n_repeats,
        random_state=random_state,
        scoring=scoring,
    )
    log.debug("Permutation importance computed", n_features=X.shape[1])
    return FeatureImportance(
        feature_names=list(X.columns),
        importances=np.asarray(result.importances_mean),
        importance_type="permutation",
        std=np.asarray(result.importances_std),
    )


def select_pdp_features(
    importance: FeatureImportance | None,
    numeric_features: list[str],
    top_n: int = 4,
    explicit: list[str] | None = None,
) -> list[str]:
    """
    Choose features for partial dependence plots.

    Explicit features win (unknown names are dropped with a warning).
    Otherwise the top numeric raw features by importance; without
    importances, the first numeric features.
    """
    if explicit:
        unknown = [f for f in explicit if f not in numeric_features]
        if unknown:
            log.warning("Skipping non-numeric or unknown PDP features", features=unknown)
        return [f for f in explicit if f in numeric_features]

    if importance is None:
        return numeric_features[:top_n]

    ranked = [f for f in importance.to_frame()["feature"] if f in numeric_features]
    if not ranked:
        return numeric_features[:top_n]
    return ranked[:top_n]


def compute_partial_dependence(
    pipeline: Any,
    X: pd.DataFrame,
    feature: str,
    *,
    grid_resolution: int = 30,
    positive_class: str | None = None,
) -> pd.DataFrame:
    """
    Partial dependence of the prediction on one numeric feature.

    For classifiers the average predicted probability of the positive
    class is returned.

    Args:
        pipeline: Fitted pipeline.
        X: Reference data (typically the training partition).
        feature: Raw feature name.
        grid_resolution: Number of grid points.
        positive_class: Positive label for classifiers.

    Returns:
        Frame with columns [feature, 'average'].
    """
    # sklearn rejects integer columns as PDP features
    if pd.api.types.is_integer_dtype(X[feature]):
        X = X.astype({feature: float})

    result = partial_dependence(
        pipeline,
        X,
        features=[feature],
        grid_resolution=grid_resolution,
        kind="average",
    )
    grid = np.asarray(result["grid_values"][0])
    average = np.asarray(result["average"])

    if average.shape[0] > 1:
        # multiclass: one row per class
        classes = list(np.asarray(pipeline.classes_).astype(str))
        row = classes.index(positive_class) if positive_class in classes else -1
        values = average[row]
    elif hasattr(pipeline, "classes_") and positive_class is not None:
        # binary: sklearn reports P(classes_[1])
        classes = list(np.asarray(pipeline.classes_).astype(str))
        values = average[0] if classes[1] == positive_class else 1.0 - average[0]
    else:
        values = average[0]

    return pd.DataFrame({feature: grid, "average": values})
