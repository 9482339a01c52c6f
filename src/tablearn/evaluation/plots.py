"""
Evaluation plots.

Every function renders one matplotlib figure, writes it as PNG and
returns the path. The Agg backend is used so plots work headless.
"""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.figure import Figure
from sklearn.base import BaseEstimator
from sklearn.tree import plot_tree

from tablearn.evaluation.importance import FeatureImportance
from tablearn.modeling.preprocessing import get_feature_names_from_preprocessor
from tablearn.modeling.pruning import PruningResult
from tablearn.modeling.regularization import RegularizationResult
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


def _safe_name(name: str) -> str:
    return name.replace(" ", "_").replace("/", "_").lower()


def _save(fig: Figure, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    log.debug("Saved plot", path=str(path))
    return path


def plot_confusion_matrix(
    confusion: pd.DataFrame,
    model_name: str,
    output_dir: Path,
) -> Path:
    """Heatmap of a labelled confusion matrix (rows actual, columns predicted)."""
    values = confusion.to_numpy()
    fig, ax = plt.subplots(figsize=(5, 4.5))
    im = ax.imshow(values, cmap="Blues")
    fig.colorbar(im, ax=ax, fraction=0.046, pad=0.04)

    labels = [str(label) for label in confusion.columns]
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_yticks(range(len(labels)))
    ax.set_yticklabels([str(label) for label in confusion.index])

    threshold = values.max() / 2 if values.size else 0
    for i in range(values.shape[0]):
        for j in range(values.shape[1]):
            ax.text(
                j,
                i,
                f"{values[i, j]:d}",
                ha="center",
                va="center",
                color="white" if values[i, j] > threshold else "black",
            )

    ax.set_xlabel("Predicted", fontsize=11)
    ax.set_ylabel("Actual", fontsize=11)
    ax.set_title(f"{model_name}: Confusion Matrix", fontsize=12)
    return _save(fig, output_dir / f"{_safe_name(model_name)}_confusion.png")


def plot_roc_curves(
    curves: dict[str, pd.DataFrame],
    aucs: dict[str, float],
    output_dir: Path,
) -> Path:
    """ROC curves of several models on one axis."""
    fig, ax = plt.subplots(figsize=(6, 6))
    for name, curve in curves.items():
        ax.plot(
            curve["fpr"], curve["tpr"], label=f"{name} (AUC = {aucs.get(name, 0):.3f})"
        )
    ax.plot([0, 1], [0, 1], linestyle="--", color="grey", label="Chance")
    ax.set_xlabel("False positive rate", fontsize=11)
    ax.set_ylabel("True positive rate (sensitivity)", fontsize=11)
    ax.set_title("ROC curves (test set)", fontsize=12)
    ax.legend(loc="lower right")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / "roc_curves.png")


def plot_pr_curves(
    curves: dict[str, pd.DataFrame],
    aps: dict[str, float],
    output_dir: Path,
    baseline: float | None = None,
) -> Path:
    """Precision-recall curves of several models on one axis."""
    fig, ax = plt.subplots(figsize=(6, 6))
    for name, curve in curves.items():
        ax.plot(
            curve["recall"],
            curve["precision"],
            label=f"{name} (AP = {aps.get(name, 0):.3f})",
        )
    if baseline is not None:
        ax.axhline(baseline, linestyle="--", color="grey", label="Prevalence")
    ax.set_xlabel("Recall", fontsize=11)
    ax.set_ylabel("Precision", fontsize=11)
    ax.set_title("Precision-Recall curves (test set)", fontsize=12)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.05)
    ax.legend(loc="lower left")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / "pr_curves.png")


def plot_feature_importance(
    feature_importance: FeatureImportance,
    model_name: str,
    output_dir: Path,
    top_n: int = 15,
) -> Path:
    """
    Horizontal bar plot of the top feature importances.

    Bars show share of total importance in percent; permutation importances
    carry their standard deviation as error bars.
    """
    frame = feature_importance.to_frame().head(top_n).iloc[::-1]
    n_show = len(frame)

    fig, ax = plt.subplots(figsize=(10, max(4, n_show * 0.4)))
    xerr = None
    values = frame["pct"].to_numpy()
    if feature_importance.std is not None and "std" in frame:
        total = np.abs(feature_importance.importances).sum()
        xerr = frame["std"].to_numpy() / total * 100 if total > 0 else None

    bars = ax.barh(range(n_show), values, xerr=xerr, color="steelblue")
    for bar, pct in zip(bars, values):
        ax.text(
            bar.get_width() + 0.5,
            bar.get_y() + bar.get_height() / 2,
            f"{pct:.1f}%",
            va="center",
            fontsize=9,
        )

    ax.set_yticks(range(n_show))
    ax.set_yticklabels(frame["feature"], fontsize=10)
    ax.set_xlabel(f"Importance ({feature_importance.importance_type}, % of total)")
    ax.set_title(f"{model_name}: Variable Importance", fontsize=12)
    ax.grid(axis="x", alpha=0.3)
    if n_show and values.max() > 0:
        ax.set_xlim(min(0, values.min() * 1.15), values.max() * 1.15)

    suffix = feature_importance.importance_type
    return _save(fig, output_dir / f"{_safe_name(model_name)}_importance_{suffix}.png")


def plot_partial_dependence(
    curves: dict[str, pd.DataFrame],
    model_name: str,
    output_dir: Path,
    ylabel: str = "Partial dependence",
    X_reference: pd.DataFrame | None = None,
) -> Path:
    """
    Grid of one-way partial dependence curves.

    When reference data is given, a rug of its deciles is drawn on each axis.
    """
    n = max(len(curves), 1)
    ncols = min(n, 2)
    nrows = int(np.ceil(n / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.8 * nrows), squeeze=False)

    for ax, (feature, curve) in zip(axes.flat, curves.items()):
        ax.plot(curve[feature], curve["average"], color="steelblue", linewidth=2)
        if X_reference is not None and feature in X_reference:
            deciles = np.nanpercentile(X_reference[feature], np.arange(10, 100, 10))
            ymin = curve["average"].min()
            ax.plot(deciles, np.full_like(deciles, ymin), "|", color="black", ms=12)
        ax.set_xlabel(feature, fontsize=10)
        ax.set_ylabel(ylabel, fontsize=10)
        ax.grid(True, alpha=0.3)

    for ax in list(axes.flat)[len(curves):]:
        ax.set_visible(False)

    fig.suptitle(f"{model_name}: Partial Dependence", fontsize=12)
    fig.tight_layout()
    return _save(fig, output_dir / f"{_safe_name(model_name)}_partial_dependence.png")


def plot_tree_diagram(
    pipeline: BaseEstimator,
    model_name: str,
    output_dir: Path,
    max_depth: int = 3,
) -> Path:
    """Diagram of the top levels of a fitted decision tree."""
    preprocessor = pipeline.named_steps["preprocessor"]
    tree = pipeline.named_steps["model"]
    names = get_feature_names_from_preprocessor(preprocessor)
    class_names = [str(c) for c in getattr(tree, "classes_", [])] or None

    depth = min(max_depth, tree.get_depth())
    fig, ax = plt.subplots(figsize=(4 * 2 ** max(depth - 1, 0) + 4, 2.5 * depth + 3))
    plot_tree(
        tree,
        feature_names=names,
        class_names=class_names,
        max_depth=max_depth,
        filled=True,
        impurity=False,
        proportion=True,
        rounded=True,
        fontsize=8,
        ax=ax,
    )
    ax.set_title(
        f"{model_name} ({tree.get_n_leaves()} leaves, depth {tree.get_depth()})",
        fontsize=12,
    )
    return _save(fig, output_dir / f"{_safe_name(model_name)}_tree.png")


def plot_pruning_curve(result: PruningResult, output_dir: Path) -> Path:
    """CV error ± one SE against alpha, with the min and 1-SE choices marked."""
    table = result.table
    fig, ax = plt.subplots(figsize=(8, 5))

    # alpha = 0 cannot be drawn on a log axis; plot against leaf count instead
    ax.errorbar(
        table["n_leaves"],
        table["cv_error"],
        yerr=table["cv_se"],
        fmt="o-",
        color="steelblue",
        ecolor="lightsteelblue",
        capsize=3,
        markersize=4,
    )
    best = table.loc[table["alpha"] == result.alpha_min].iloc[0]
    ax.axhline(
        best["cv_error"] + best["cv_se"],
        linestyle="--",
        color="grey",
        label="min + 1 SE",
    )
    for alpha, style, label in (
        (result.alpha_min, "r", "min"),
        (result.alpha_1se, "g", "1-SE"),
    ):
        row = table.loc[table["alpha"] == alpha].iloc[0]
        ax.plot(
            row["n_leaves"],
            row["cv_error"],
            marker="D",
            color=style,
            markersize=9,
            linestyle="none",
            label=f"{label}: alpha={alpha:.3g}, {int(row['n_leaves'])} leaves",
        )

    ax.set_xscale("log")
    ax.set_xlabel("Tree size (leaves)", fontsize=11)
    ylabel = "CV misclassification rate" if result.metric == "misclassification" else "CV MSE"
    ax.set_ylabel(ylabel, fontsize=11)
    ax.set_title(f"Cost-complexity pruning ({result.rule.value} rule)", fontsize=12)
    ax.legend(loc="upper right")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / "pruning_curve.png")


def plot_regularization_cv(result: RegularizationResult, output_dir: Path) -> Path:
    """CV MSE ± one SE over log(alpha), with the min and 1-SE alphas marked."""
    fig, ax = plt.subplots(figsize=(8, 5))
    log_alpha = np.log10(result.alphas)
    ax.errorbar(
        log_alpha,
        result.cv_mse,
        yerr=result.cv_se,
        fmt="o",
        color="firebrick",
        ecolor="lightgrey",
        markersize=3,
        capsize=2,
    )
    ax.axvline(np.log10(result.alpha_min), linestyle="--", color="black", label="min")
    ax.axvline(np.log10(result.alpha_1se), linestyle=":", color="black", label="1-SE")

    secondary = ax.secondary_xaxis("top")
    ticks = log_alpha[:: max(1, len(log_alpha) // 8)]
    nonzero = result.n_nonzero[:: max(1, len(log_alpha) // 8)]
    secondary.set_xticks(ticks)
    secondary.set_xticklabels([str(int(n)) for n in nonzero], fontsize=8)
    secondary.set_xlabel("Non-zero coefficients", fontsize=9)

    ax.set_xlabel("log10(alpha)", fontsize=11)
    ax.set_ylabel("CV MSE", fontsize=11)
    ax.set_title(f"{result.penalty.value}: cross-validation curve", fontsize=12)
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / f"{result.penalty.value}_cv_curve.png")


def plot_coefficient_path(
    result: RegularizationResult,
    output_dir: Path,
    label_top_n: int = 8,
) -> Path:
    """Coefficient trajectories over log(alpha), largest final ones labelled."""
    fig, ax = plt.subplots(figsize=(9, 5.5))
    log_alpha = np.log10(result.coef_path.index.to_numpy())
    final = result.coef_path.iloc[-1].abs().sort_values(ascending=False)
    labelled = set(final.index[:label_top_n])

    for feature in result.coef_path.columns:
        values = result.coef_path[feature].to_numpy()
        ax.plot(log_alpha, values, linewidth=1.2, alpha=0.9 if feature in labelled else 0.4)
        if feature in labelled:
            ax.annotate(
                feature,
                xy=(log_alpha[-1], values[-1]),
                xytext=(3, 0),
                textcoords="offset points",
                fontsize=7,
                va="center",
            )

    ax.axvline(np.log10(result.selected_alpha), linestyle="--", color="grey")
    ax.axhline(0, color="black", linewidth=0.6)
    ax.invert_xaxis()
    ax.set_xlabel("log10(alpha)", fontsize=11)
    ax.set_ylabel("Coefficient (standardized features)", fontsize=11)
    ax.set_title(f"{result.penalty.value}: coefficient path", fontsize=12)
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / f"{result.penalty.value}_coef_path.png")


def plot_boosting_curve(
    curve: pd.DataFrame,
    best_stage: int,
    model_name: str,
    output_dir: Path,
    ylabel: str = "Test error",
) -> Path:
    """Test error against number of boosting iterations."""
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(curve["n_estimators"], curve["test_error"], color="darkorange", linewidth=2)
    ax.axvline(best_stage, linestyle="--", color="grey", label=f"best = {best_stage}")
    ax.set_xlabel("Number of trees", fontsize=11)
    ax.set_ylabel(ylabel, fontsize=11)
    ax.set_title(f"{model_name}: test error by iteration", fontsize=12)
    ax.legend(loc="upper right")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / f"{_safe_name(model_name)}_boosting_curve.png")


def plot_actual_vs_predicted(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    model_name: str,
    output_dir: Path,
    mse: float | None = None,
) -> Path:
    """Scatter of actual against predicted values with the identity line."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    fig, ax = plt.subplots(figsize=(7, 6))
    ax.scatter(y_pred, y_true, alpha=0.5, s=25, c="steelblue", edgecolors="none")

    lo = min(y_true.min(), y_pred.min())
    hi = max(y_true.max(), y_pred.max())
    ax.plot([lo, hi], [lo, hi], "r--", alpha=0.8, linewidth=2, label="Identity (y=x)")

    if mse is not None:
        ax.text(
            0.05,
            0.95,
            f"Test MSE = {mse:.4g}",
            transform=ax.transAxes,
            fontsize=10,
            verticalalignment="top",
            bbox={"boxstyle": "round", "facecolor": "white", "alpha": 0.8},
        )

    ax.set_xlabel("Predicted", fontsize=11)
    ax.set_ylabel("Actual", fontsize=11)
    ax.set_title(f"{model_name}: Actual vs Predicted", fontsize=12)
    ax.legend(loc="lower right")
    ax.grid(True, alpha=0.3)
    return _save(fig, output_dir / f"{_safe_name(model_name)}_actual_vs_predicted.png")
