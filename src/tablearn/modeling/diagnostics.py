"""
Model-specific diagnostics for ensembles and logistic regression.
"""

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, is_classifier
from sklearn.metrics import mean_squared_error

from tablearn.modeling.preprocessing import get_feature_names_from_preprocessor
from tablearn.modeling.training import unwrap_pipeline
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


def boosting_curve(
    pipeline: BaseEstimator,
    X_test: pd.DataFrame,
    y_test: pd.Series,
) -> tuple[pd.DataFrame, int]:
    """
    Test error after each boosting stage.

    Classification error is the misclassification rate; regression error
    is MSE on the original target scale.

    Args:
        pipeline: Fitted pipeline whose model supports staged_predict.
        X_test: Test features.
        y_test: Test target.

    Returns:
        Tuple of (frame with n_estimators and test_error, best stage).

    Raises:
        TypeError: If the model has no staged predictions.
    """
    inner = unwrap_pipeline(pipeline)
    model = inner.named_steps["model"]
    if not hasattr(model, "staged_predict"):
        msg = f"{type(model).__name__} does not support staged predictions"
        raise TypeError(msg)

    Xt = inner.named_steps["preprocessor"].transform(X_test)
    y_true = np.asarray(y_test)
    inverse = getattr(pipeline, "inverse_func", None)

    errors = []
    for y_stage in model.staged_predict(Xt):
        if is_classifier(model):
            errors.append(float(np.mean(y_stage != y_true)))
        else:
            pred = inverse(y_stage) if inverse is not None else y_stage
            errors.append(float(mean_squared_error(y_true, pred)))

    curve = pd.DataFrame(
        {"n_estimators": np.arange(1, len(errors) + 1), "test_error": errors}
    )
    best_stage = int(curve.loc[curve["test_error"].idxmin(), "n_estimators"])
    log.info(
        "Boosting curve computed",
        n_stages=len(errors),
        best_stage=best_stage,
        best_error=f"{min(errors):.4g}",
    )
    return curve, best_stage


def forest_oob_score(pipeline: BaseEstimator) -> float | None:
    """
    Out-of-bag score of a fitted random forest.

    Returns accuracy (classifier) or R² (regressor), or None when the
    forest was fit without oob_score=True.
    """
    model = unwrap_pipeline(pipeline).named_steps["model"]
    score = getattr(model, "oob_score_", None)
    return float(score) if score is not None else None


def logistic_coefficients(pipeline: BaseEstimator) -> pd.DataFrame:
    """
    Coefficient table of a fitted logistic regression.

    Coefficients refer to standardized numerics and one-hot factor levels.
    Odds ratios are exp(coef) per unit of the transformed feature.

    Returns:
        Frame with feature, coef, odds_ratio sorted by |coef| descending.
    """
    inner = unwrap_pipeline(pipeline)
    model = inner.named_steps["model"]
    if not hasattr(model, "coef_"):
        msg = f"{type(model).__name__} has no coefficients"
        raise TypeError(msg)

    names = get_feature_names_from_preprocessor(inner.named_steps["preprocessor"])
    coef = np.ravel(model.coef_[0] if model.coef_.ndim > 1 else model.coef_)
    table = pd.DataFrame(
        {
            "feature": names,
            "coef": coef,
            "odds_ratio": np.exp(coef),
        }
    )
    order = table["coef"].abs().sort_values(ascending=False).index
    return table.loc[order].reset_index(drop=True)
