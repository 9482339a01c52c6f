"""
Evaluation metrics for classification and regression models.

Provides standardized metrics computation, thresholded predictions and
ROC / precision-recall curve data.
"""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    confusion_matrix,
    f1_score,
    mean_absolute_error,
    mean_squared_error,
    precision_recall_curve,
    precision_score,
    r2_score,
    recall_score,
    roc_auc_score,
    roc_curve,
)

from tablearn.modeling.data import positive_class_index
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class RegressionMetrics:
    """
    Standard regression metrics.

    Attributes:
        mse: Mean Squared Error
        rmse: Root Mean Squared Error
        mae: Mean Absolute Error
        r2: R² (coefficient of determination)
        n_samples: Number of samples
    """

    mse: float
    rmse: float
    mae: float
    r2: float
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "mse": self.mse,
            "rmse": self.rmse,
            "mae": self.mae,
            "r2": self.r2,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        """String representation."""
        return (
            f"MSE={self.mse:.4g}, RMSE={self.rmse:.4g}, "
            f"MAE={self.mae:.4g}, R²={self.r2:.4f}"
        )


@dataclass(frozen=True)
class ClassificationMetrics:
    """
    Binary / multiclass classification metrics on a test set.

    Attributes:
        accuracy: Fraction correctly classified.
        error_rate: 1 - accuracy.
        precision: Precision of the positive class.
        recall: Recall (sensitivity) of the positive class.
        f1: F1 score of the positive class.
        roc_auc: Area under the ROC curve (None without scores).
        average_precision: Area under the PR curve (None without scores).
        confusion: Confusion matrix, rows = truth, columns = prediction.
        labels: Label order of the confusion matrix.
        n_samples: Number of samples.
    """

    accuracy: float
    error_rate: float
    precision: float
    recall: float
    f1: float
    roc_auc: float | None
    average_precision: float | None
    confusion: np.ndarray = field(repr=False)
    labels: list[str] = field(default_factory=list)
    n_samples: int = 0

    def to_dict(self) -> dict[str, float]:
        """Scalar metrics as a dictionary (None-valued metrics omitted)."""
        result = {
            "accuracy": self.accuracy,
            "error_rate": self.error_rate,
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "n_samples": self.n_samples,
        }
        if self.roc_auc is not None:
            result["roc_auc"] = self.roc_auc
        if self.average_precision is not None:
            result["average_precision"] = self.average_precision
        return result

    def confusion_frame(self) -> pd.DataFrame:
        """Confusion matrix with labelled rows (truth) and columns (predicted)."""
        return pd.DataFrame(
            self.confusion,
            index=pd.Index(self.labels, name="actual"),
            columns=pd.Index(self.labels, name="predicted"),
        )

    def __str__(self) -> str:
        """String representation."""
        auc = f"{self.roc_auc:.4f}" if self.roc_auc is not None else "n/a"
        return (
            f"Accuracy={self.accuracy:.4f}, Error={self.error_rate:.4f}, "
            f"Precision={self.precision:.4f}, Recall={self.recall:.4f}, AUC={auc}"
        )


def compute_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
) -> RegressionMetrics:
    """
    Compute regression metrics.

    Args:
        y_true: True values.
        y_pred: Predicted values.

    Returns:
        RegressionMetrics object.
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()

    if len(y_true) == 0 or len(y_pred) == 0:
        log.warning("Empty arrays provided for metrics")
        return RegressionMetrics(mse=0.0, rmse=0.0, mae=0.0, r2=0.0, n_samples=0)

    mse = float(mean_squared_error(y_true, y_pred))
    metrics = RegressionMetrics(
        mse=mse,
        rmse=float(np.sqrt(mse)),
        mae=float(mean_absolute_error(y_true, y_pred)),
        r2=float(r2_score(y_true, y_pred)) if len(y_true) > 1 else 0.0,
        n_samples=len(y_true),
    )

    log.debug("Computed metrics", **metrics.to_dict())
    return metrics


def compute_classification_metrics(
    y_true: np.ndarray | pd.Series,
    y_pred: np.ndarray | pd.Series,
    y_score: np.ndarray | None = None,
    *,
    positive_class: str | None = None,
    labels: list[str] | None = None,
) -> ClassificationMetrics:
    """
    Compute classification metrics.

    Args:
        y_true: True labels.
        y_pred: Predicted labels.
        y_score: Scores / probabilities of the positive class.
        positive_class: Label treated as positive (default: last label).
        labels: Label order for the confusion matrix (default: sorted union).

    Returns:
        ClassificationMetrics object.
    """
    y_true = np.asarray(y_true).astype(str)
    y_pred = np.asarray(y_pred).astype(str)
    if labels is None:
        labels = sorted(set(y_true) | set(y_pred))
    if positive_class is None:
        positive_class = labels[-1]

    binary = len(labels) == 2
    average = "binary" if binary else "macro"
    pos_label = positive_class if binary else 1

    accuracy = float(accuracy_score(y_true, y_pred))
    roc_auc = None
    average_precision = None
    has_both = len(set(y_true)) == 2 and positive_class in set(y_true)
    if y_score is not None and binary and has_both:
        y_binary = (y_true == positive_class).astype(int)
        roc_auc = float(roc_auc_score(y_binary, y_score))
        average_precision = float(average_precision_score(y_binary, y_score))

    metrics = ClassificationMetrics(
        accuracy=accuracy,
        error_rate=1.0 - accuracy,
        precision=float(
            precision_score(
                y_true, y_pred, pos_label=pos_label, average=average, zero_division=0
            )
        ),
        recall=float(
            recall_score(
                y_true, y_pred, pos_label=pos_label, average=average, zero_division=0
            )
        ),
        f1=float(
            f1_score(
                y_true, y_pred, pos_label=pos_label, average=average, zero_division=0
            )
        ),
        roc_auc=roc_auc,
        average_precision=average_precision,
        confusion=confusion_matrix(y_true, y_pred, labels=labels),
        labels=list(labels),
        n_samples=len(y_true),
    )

    log.debug("Computed classification metrics", **metrics.to_dict())
    return metrics


def positive_scores(
    pipeline: BaseEstimator,
    X: pd.DataFrame,
    positive_class: str | None = None,
) -> np.ndarray:
    """Predicted probability of the positive class."""
    proba = pipeline.predict_proba(X)
    idx = positive_class_index(pipeline.classes_, positive_class)
    return proba[:, idx]


def predict_with_threshold(
    pipeline: BaseEstimator,
    X: pd.DataFrame,
    threshold: float = 0.5,
    positive_class: str | None = None,
) -> np.ndarray:
    """
    Predict labels using a probability cutoff on the positive class.

    Binary only; multiclass models fall back to predict().

    Args:
        pipeline: Fitted classifier pipeline with predict_proba.
        X: Features.
        threshold: Cutoff; P(positive) >= threshold predicts positive.
        positive_class: Positive label (default: last of classes_).

    Returns:
        Array of predicted labels.
    """
    classes = np.asarray(pipeline.classes_).astype(str)
    if len(classes) != 2:
        return np.asarray(pipeline.predict(X)).astype(str)

    idx = positive_class_index(classes, positive_class)
    scores = pipeline.predict_proba(X)[:, idx]
    negative = classes[1 - idx]
    return np.where(scores >= threshold, classes[idx], negative)


def roc_curve_data(
    y_true: np.ndarray | pd.Series,
    y_score: np.ndarray,
    positive_class: str,
) -> pd.DataFrame:
    """ROC curve points (fpr, tpr, threshold)."""
    y_binary = (np.asarray(y_true).astype(str) == positive_class).astype(int)
    fpr, tpr, thresholds = roc_curve(y_binary, y_score)
    return pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thresholds})


def pr_curve_data(
    y_true: np.ndarray | pd.Series,
    y_score: np.ndarray,
    positive_class: str,
) -> pd.DataFrame:
    """Precision-recall curve points (recall, precision, threshold)."""
    y_binary = (np.asarray(y_true).astype(str) == positive_class).astype(int)
    precision, recall, thresholds = precision_recall_curve(y_binary, y_score)
    # sklearn returns one threshold fewer than points; the last point has none
    thresholds = np.append(thresholds, np.nan)
    return pd.DataFrame(
        {"recall": recall, "precision": precision, "threshold": thresholds}
    )


def compute_residual_stats(
    y_true: np.ndarray,
    y_pred: np.ndarray,
) -> dict[str, float]:
    """
    Compute residual statistics.

    Args:
        y_true: True values.
        y_pred: Predicted values.

    Returns:
        Dictionary with residual statistics.
    """
    residuals = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)

    return {
        "residual_mean": float(np.mean(residuals)),
        "residual_std": float(np.std(residuals)),
        "residual_median": float(np.median(residuals)),
        "residual_min": float(np.min(residuals)),
        "residual_max": float(np.max(residuals)),
    }
