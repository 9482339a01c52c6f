"""
Workflow report generation.

Prints rich comparison tables to the console, exports prediction tables
and writes a self-contained HTML report with the rendered plots embedded.
"""

import base64
import html
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
from rich.console import Console
from rich.table import Table

from tablearn.config.settings import Penalty
from tablearn.evaluation.importance import FeatureImportance
from tablearn.modeling.pruning import PruningResult
from tablearn.modeling.regularization import RegularizationResult
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

CLASSIFICATION_COLUMNS = {
    "accuracy": "Accuracy",
    "error_rate": "Error",
    "precision": "Precision",
    "recall": "Recall",
    "roc_auc": "AUC",
    "accuracy_cv": "Accuracy (CV)",
    "gap": "Gap",
}

REGRESSION_COLUMNS = {
    "mse": "Test MSE",
    "rmse": "RMSE",
    "mae": "MAE",
    "r2": "R²",
    "residual_mean": "Mean residual",
    "mse_cv": "MSE (CV)",
    "r2_cv": "R² (CV)",
    "gap": "Gap",
}


def save_prediction_tables(
    model_name: str,
    y_train: np.ndarray,
    y_train_pred: np.ndarray,
    y_test: np.ndarray,
    y_test_pred: np.ndarray,
    output_dir: Path,
    *,
    experiment_name: str | None = None,
    timestamp: str | None = None,
) -> tuple[Path, Path]:
    """
    Save prediction tables for train and test splits.

    Creates CSV files with Actual and Predicted columns.

    Args:
        model_name: Name of the model (e.g., "Random Forest").
        y_train: Actual training target values.
        y_train_pred: Predicted training target values.
        y_test: Actual test target values.
        y_test_pred: Predicted test target values.
        output_dir: Directory to save prediction tables.
        experiment_name: Optional experiment prefix for filenames.
        timestamp: Optional timestamp string. If None, uses current time.

    Returns:
        Tuple of (train_predictions_path, test_predictions_path).
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    if timestamp is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    safe_model_name = model_name.replace(" ", "_").lower()
    if experiment_name:
        safe_experiment = experiment_name.replace(" ", "_").lower()
        prefix = f"{safe_experiment}_{safe_model_name}"
    else:
        prefix = safe_model_name

    train_df = pd.DataFrame(
        {"Actual": np.asarray(y_train), "Predicted": np.asarray(y_train_pred)}
    )
    train_path = output_dir / f"{prefix}_train_predictions_{timestamp}.csv"
    train_df.to_csv(train_path, index=False)

    test_df = pd.DataFrame(
        {"Actual": np.asarray(y_test), "Predicted": np.asarray(y_test_pred)}
    )
    test_path = output_dir / f"{prefix}_test_predictions_{timestamp}.csv"
    test_df.to_csv(test_path, index=False)

    log.info(
        "Saved prediction tables",
        model=model_name,
        train_path=str(train_path),
        test_path=str(test_path),
        n_train=len(train_df),
        n_test=len(test_df),
    )

    return train_path, test_path


def generate_metrics_table(
    metrics: dict[str, dict[str, float]],
    *,
    classification: bool,
    console: Console | None = None,
) -> tuple[pd.DataFrame, str]:
    """
    Generate the model comparison table.

    Args:
        metrics: Model name -> merged test and CV metrics.
        classification: Whether to show classification columns.
        console: Rich console for output.

    Returns:
        Tuple of (DataFrame, HTML string).
    """
    columns = CLASSIFICATION_COLUMNS if classification else REGRESSION_COLUMNS
    rows = []
    for name, values in metrics.items():
        row: dict[str, object] = {"Model": name}
        for key, label in columns.items():
            row[label] = values.get(key, np.nan)
        rows.append(row)
    df = pd.DataFrame(rows, columns=["Model", *columns.values()])

    if console is not None:
        table = Table(title="Model Comparison (test set)")
        table.add_column("Model", style="cyan")
        for label in columns.values():
            style = "dim" if label == "Gap" else "green"
            table.add_column(label, style=style, justify="right")
        for row in rows:
            table.add_row(
                str(row["Model"]),
                *(_format_value(row[label]) for label in columns.values()),
            )
        console.print(table)

    html_table = df.to_html(
        index=False,
        float_format=_format_value,
        classes="metrics-table",
        na_rep="",
    )
    return df, html_table


def _format_value(value: object) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "-"
    if isinstance(value, (float, np.floating)):
        return f"{value:.4f}" if abs(value) < 1000 else f"{value:.4g}"
    return str(value)


def print_confusion_matrix(
    confusion: pd.DataFrame,
    model_name: str,
    console: Console | None = None,
) -> None:
    """Print a labelled confusion matrix (rows actual, columns predicted)."""
    if console is None:
        return

    table = Table(title=f"{model_name}: Confusion Matrix")
    table.add_column("actual \\ predicted", style="cyan")
    for label in confusion.columns:
        table.add_column(str(label), justify="right")
    for label, row in confusion.iterrows():
        table.add_row(str(label), *(str(int(v)) for v in row))
    console.print(table)


def print_pruning_table(
    result: PruningResult,
    console: Console | None = None,
) -> None:
    """
    Print the pruning CV table with the min and 1-SE choices marked.

    Args:
        result: Pruning result.
        console: Rich console for output.
    """
    if console is None:
        return

    error_label = "CV error" if result.metric == "misclassification" else "CV MSE"
    table = Table(title=f"Cost-Complexity Pruning ({result.rule.value} rule)")
    table.add_column("alpha", style="cyan", justify="right")
    table.add_column("Leaves", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column(error_label, style="green", justify="right")
    table.add_column("SE", style="dim", justify="right")
    table.add_column("", style="yellow")

    for row in result.table.itertuples(index=False):
        marks = []
        if row.alpha == result.alpha_min:
            marks.append("min")
        if row.alpha == result.alpha_1se:
            marks.append("1-SE")
        if row.alpha == result.selected_alpha:
            marks.append("selected")
        table.add_row(
            f"{row.alpha:.4g}",
            str(row.n_leaves),
            str(row.depth),
            f"{row.cv_error:.4g}",
            f"{row.cv_se:.4g}",
            ", ".join(marks),
        )
    console.print(table)


def regularization_summary(
    results: dict[Penalty, RegularizationResult],
    console: Console | None = None,
) -> pd.DataFrame:
    """
    Summarize penalized regression paths.

    Args:
        results: Penalty -> RegularizationResult.
        console: Rich console for output.

    Returns:
        Frame with one row per penalty.
    """
    rows = []
    for penalty, result in results.items():
        best = int(np.argmin(result.cv_mse))
        rows.append(
            {
                "penalty": penalty.value,
                "l1_ratio": result.l1_ratio,
                "alpha_min": result.alpha_min,
                "alpha_1se": result.alpha_1se,
                "selected_alpha": result.selected_alpha,
                "cv_mse_min": float(result.cv_mse[best]),
                "n_nonzero": int(np.count_nonzero(result.coefficients())),
            }
        )
    df = pd.DataFrame(rows)

    if console is not None:
        table = Table(title="Penalized Regression Paths")
        table.add_column("Penalty", style="cyan")
        table.add_column("l1_ratio", justify="right")
        table.add_column("alpha (min)", justify="right")
        table.add_column("alpha (1-SE)", justify="right")
        table.add_column("CV MSE (min)", style="green", justify="right")
        table.add_column("Non-zero", style="yellow", justify="right")
        for row in rows:
            table.add_row(
                row["penalty"],
                f"{row['l1_ratio']:.2f}",
                f"{row['alpha_min']:.4g}",
                f"{row['alpha_1se']:.4g}",
                f"{row['cv_mse_min']:.4g}",
                str(row["n_nonzero"]),
            )
        console.print(table)

    return df


def print_feature_importance_table(
    feature_importance: FeatureImportance,
    model_name: str,
    console: Console | None = None,
    top_n: int = 15,
) -> None:
    """
    Print feature importance table to console.

    Args:
        feature_importance: FeatureImportance object.
        model_name: Name of the model.
        console: Rich console for output.
        top_n: Rows to show.
    """
    if console is None:
        return

    frame = feature_importance.to_frame().head(top_n)
    table = Table(
        title=f"{model_name} Variable Importance ({feature_importance.importance_type})"
    )
    table.add_column("Rank", style="dim", width=4)
    table.add_column("Feature", style="cyan")
    table.add_column("Importance", style="green", justify="right")
    table.add_column("% Total", style="yellow", justify="right")

    for rank, row in enumerate(frame.itertuples(index=False), 1):
        table.add_row(
            str(rank),
            str(row.feature),
            f"{row.importance:.4f}",
            f"{row.pct:.1f}%",
        )

    console.print(table)


@dataclass
class ReportData:
    """Data for generating a workflow report."""

    project: str
    dataset: str
    task: str
    target: str
    n_train: int
    n_test: int
    feature_names: list[str]
    metrics: dict[str, dict[str, float]]
    best_model: str | None = None
    plots: dict[str, Path] = field(default_factory=dict)
    tables: dict[str, pd.DataFrame] = field(default_factory=dict)


def _png_to_base64(path: Path) -> str:
    """Read a PNG file as a base64 string."""
    return base64.b64encode(path.read_bytes()).decode("utf-8")


def generate_html_report(
    report_data: ReportData,
    output_path: Path,
    console: Console | None = None,
) -> Path:
    """
    Generate complete HTML workflow report.

    Args:
        report_data: Report data containing all results.
        output_path: Path to save the HTML report.
        console: Optional console for printing tables.

    Returns:
        Path to the generated report.
    """
    log.info("Generating workflow report", output=str(output_path))

    _metrics_df, metrics_html = generate_metrics_table(
        report_data.metrics,
        classification=report_data.task == "classification",
        console=console,
    )

    best = (
        f"<p><strong>Best model:</strong> {html.escape(report_data.best_model)}</p>"
        if report_data.best_model
        else ""
    )

    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(report_data.project)} - Workflow Report</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            max-width: 1200px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
        }}
        h1 {{
            color: #333;
            border-bottom: 2px solid #4a90a4;
            padding-bottom: 10px;
        }}
        h2 {{
            color: #4a90a4;
            margin-top: 30px;
        }}
        .section {{
            background: white;
            border-radius: 8px;
            padding: 20px;
            margin-bottom: 20px;
            box-shadow: 0 2px 4px rgba(0,0,0,0.1);
        }}
        .metadata {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 15px;
        }}
        .metadata-item {{
            background: #f8f9fa;
            padding: 10px 15px;
            border-radius: 4px;
        }}
        .metadata-item strong {{
            display: block;
            color: #666;
            font-size: 0.85em;
            margin-bottom: 5px;
        }}
        table {{
            width: 100%;
            border-collapse: collapse;
            margin: 15px 0;
        }}
        th, td {{
            padding: 8px 12px;
            text-align: left;
            border-bottom: 1px solid #ddd;
        }}
        th {{
            background-color: #4a90a4;
            color: white;
            font-weight: 600;
        }}
        .plot {{
            background: #f8f9fa;
            padding: 15px;
            border-radius: 8px;
            text-align: center;
            margin: 15px 0;
        }}
        .plot img {{
            max-width: 100%;
            height: auto;
        }}
        .timestamp {{
            color: #999;
            font-size: 0.9em;
            text-align: right;
        }}
    </style>
</head>
<body>
    <h1>{html.escape(report_data.project)}: Workflow Report</h1>
    <p class="timestamp">Generated: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}</p>

    <div class="section">
        <h2>Dataset Overview</h2>
        <div class="metadata">
            <div class="metadata-item"><strong>Dataset</strong>{html.escape(report_data.dataset)}</div>
            <div class="metadata-item"><strong>Task</strong>{report_data.task}</div>
            <div class="metadata-item"><strong>Outcome</strong>{html.escape(report_data.target)}</div>
            <div class="metadata-item"><strong>Training Samples</strong>{report_data.n_train}</div>
            <div class="metadata-item"><strong>Test Samples</strong>{report_data.n_test}</div>
            <div class="metadata-item"><strong>Features</strong>{len(report_data.feature_names)}</div>
        </div>
        <p><strong>Features used:</strong> {html.escape(", ".join(report_data.feature_names))}</p>
    </div>

    <div class="section">
        <h2>Model Comparison</h2>
        {metrics_html}
        {best}
    </div>
"""

    for title, table in report_data.tables.items():
        html_content += f"""
    <div class="section">
        <h2>{html.escape(title)}</h2>
        {table.to_html(index=False, float_format=_format_value, na_rep="")}
    </div>
"""

    if report_data.plots:
        html_content += """
    <div class="section">
        <h2>Plots</h2>
"""
        for name, path in report_data.plots.items():
            if not path.exists():
                log.warning("Plot file missing, skipping", plot=name, path=str(path))
                continue
            html_content += f"""
        <div class="plot">
            <h3>{html.escape(name)}</h3>
            <img src="data:image/png;base64,{_png_to_base64(path)}" alt="{html.escape(name)}">
        </div>
"""
        html_content += """
    </div>
"""

    html_content += """
</body>
</html>
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html_content, encoding="utf-8")

    log.info("Report generated", path=str(output_path))
    return output_path
