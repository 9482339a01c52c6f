"""Tests for console tables, prediction exports and the HTML report."""

from pathlib import Path

import numpy as np
import pandas as pd
from rich.console import Console

from tablearn.evaluation.importance import FeatureImportance
from tablearn.evaluation.report import (
    ReportData,
    generate_html_report,
    generate_metrics_table,
    print_confusion_matrix,
    print_feature_importance_table,
    print_pruning_table,
    regularization_summary,
    save_prediction_tables,
)
from tablearn.modeling.data import TrainingData
from tablearn.modeling.pruning import prune_tree
from tablearn.modeling.regularization import RegularizedRegression


def _console() -> Console:
    return Console(record=True, width=160)


class TestPredictionTables:
    """Tests for save_prediction_tables."""

    def test_files_and_columns(self, tmp_path: Path) -> None:
        """Test file names and Actual / Predicted columns."""
        train_path, test_path = save_prediction_tables(
            "Random Forest",
            np.array([1.0, 2.0]),
            np.array([1.1, 2.1]),
            np.array([3.0]),
            np.array([2.9]),
            tmp_path,
            experiment_name="Housing Regression",
            timestamp="20240101_120000",
        )
        assert train_path.name == (
            "housing_regression_random_forest_train_predictions_20240101_120000.csv"
        )
        assert test_path.name.endswith("_test_predictions_20240101_120000.csv")

        train = pd.read_csv(train_path)
        assert list(train.columns) == ["Actual", "Predicted"]
        assert len(train) == 2
        assert len(pd.read_csv(test_path)) == 1


class TestMetricsTable:
    """Tests for generate_metrics_table."""

    def test_classification_columns(self) -> None:
        """Test labels and missing values."""
        metrics = {
            "CART": {"accuracy": 0.9, "error_rate": 0.1, "accuracy_cv": 0.88},
            "Random Forest": {"accuracy": 0.95, "error_rate": 0.05, "roc_auc": 0.98},
        }
        console = _console()
        df, html = generate_metrics_table(metrics, classification=True, console=console)

        assert list(df["Model"]) == ["CART", "Random Forest"]
        assert "AUC" in df.columns
        assert np.isnan(df.loc[0, "AUC"])
        assert "metrics-table" in html
        assert "Model Comparison" in console.export_text()

    def test_regression_columns(self) -> None:
        """Test regression labels."""
        df, _ = generate_metrics_table(
            {"Lasso (path)": {"mse": 1.5e12, "r2": 0.7, "residual_mean": -2.0e4}},
            classification=False,
        )
        assert "Test MSE" in df.columns
        assert df.loc[0, "Mean residual"] == -2.0e4
        assert df.loc[0, "R²"] == 0.7


class TestConsoleTables:
    """Tests for rich console tables."""

    def test_confusion_matrix(self) -> None:
        """Test labelled confusion output."""
        confusion = pd.DataFrame(
            [[5, 1], [2, 7]], index=["nonspam", "spam"], columns=["nonspam", "spam"]
        )
        console = _console()
        print_confusion_matrix(confusion, "CART", console)
        text = console.export_text()
        assert "CART: Confusion Matrix" in text
        assert "nonspam" in text

    def test_no_console_is_silent(self) -> None:
        """Test that printing without a console is a no-op."""
        fi = FeatureImportance(["a"], np.array([1.0]), "gini_importance")
        print_feature_importance_table(fi, "CART", None)

    def test_feature_importance(self) -> None:
        """Test importance rows with percentages."""
        fi = FeatureImportance(["a", "b"], np.array([3.0, 1.0]), "gini_importance")
        console = _console()
        print_feature_importance_table(fi, "CART", console)
        assert "75.0%" in console.export_text()

    def test_pruning_table(self, make_config, spam_data: TrainingData) -> None:
        """Test that the selected alpha is marked."""
        result = prune_tree(spam_data, make_config("spam"))
        console = _console()
        print_pruning_table(result, console)
        text = console.export_text()
        assert "Cost-Complexity Pruning (one_se rule)" in text
        assert "selected" in text

    def test_regularization_summary(
        self, make_config, housing_data: TrainingData
    ) -> None:
        """Test one summary row per penalty."""
        results = RegularizedRegression(make_config("housing")).fit_all(housing_data)
        console = _console()
        df = regularization_summary(results, console)
        assert list(df["penalty"]) == ["ridge", "lasso", "elastic_net"]
        assert (df["alpha_1se"] >= df["alpha_min"]).all()
        assert "Penalized Regression Paths" in console.export_text()


class TestHtmlReport:
    """Tests for generate_html_report."""

    def test_report_embeds_plots_and_tables(self, tmp_path: Path) -> None:
        """Test a self-contained report with escaped names."""
        plot = tmp_path / "plot.png"
        plot.write_bytes(b"\x89PNG\r\n\x1a\nfake")
        data = ReportData(
            project="spam-trees",
            dataset="spam",
            task="classification",
            target="type",
            n_train=10,
            n_test=5,
            feature_names=["make", "charExclamation"],
            metrics={"CART": {"accuracy": 0.9}},
            best_model="CART",
            plots={"CART <tree>": plot, "missing": tmp_path / "nope.png"},
            tables={"Pruning": pd.DataFrame({"alpha": [0.0, 0.01]})},
        )
        path = generate_html_report(data, tmp_path / "out" / "report.html")

        content = path.read_text(encoding="utf-8")
        assert content.startswith("<!DOCTYPE html>")
        assert "data:image/png;base64," in content
        assert "CART &lt;tree&gt;" in content
        assert "<h3>missing</h3>" not in content
        assert "<h2>Pruning</h2>" in content
        assert "Best model:</strong> CART" in content
