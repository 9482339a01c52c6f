"""
Evaluation layer: metrics, importance, plots, reports and tracking.
"""

from tablearn.evaluation.importance import (
    FeatureImportance,
    compute_partial_dependence,
    compute_permutation_importance,
    extract_feature_importance,
    select_pdp_features,
)
from tablearn.evaluation.metrics import (
    ClassificationMetrics,
    RegressionMetrics,
    compute_classification_metrics,
    compute_metrics,
    compute_residual_stats,
    positive_scores,
    pr_curve_data,
    predict_with_threshold,
    roc_curve_data,
)

__all__ = [
    "ClassificationMetrics",
    "FeatureImportance",
    "RegressionMetrics",
    "compute_classification_metrics",
    "compute_metrics",
    "compute_partial_dependence",
    "compute_permutation_importance",
    "compute_residual_stats",
    "extract_feature_importance",
    "positive_scores",
    "pr_curve_data",
    "predict_with_threshold",
    "roc_curve_data",
    "select_pdp_features",
]
