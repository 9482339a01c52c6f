"""End-to-end workflow tests on synthetic data."""

import json
from pathlib import Path

import pandas as pd
import pytest

from tablearn.config.settings import Penalty
from tablearn.workflows import (
    run_pruning,
    run_regularization,
    run_workflow,
    select_best_model,
)
from tablearn.workflows.runner import ENSEMBLE_MODELS, PRUNED_TREE


class TestSelectBestModel:
    """Tests for select_best_model."""

    def test_classification_max_accuracy(self) -> None:
        """Test that the highest accuracy wins, first on ties."""
        metrics = {
            "CART": {"accuracy": 0.8},
            "Random Forest": {"accuracy": 0.9},
            "Gradient Boosting": {"accuracy": 0.9},
        }
        assert select_best_model(metrics, classification=True) == "Random Forest"

    def test_regression_min_mse(self) -> None:
        """Test that the lowest MSE wins."""
        metrics = {"CART": {"mse": 5.0}, "lasso (path)": {"mse": 2.0}}
        assert select_best_model(metrics, classification=False) == "lasso (path)"

    def test_empty(self) -> None:
        """Test None without comparable metrics."""
        assert select_best_model({"CART": {}}, classification=True) is None


@pytest.mark.slow
class TestSpamWorkflow:
    """Classification run with every model enabled."""

    def test_full_run(self, make_config) -> None:
        """Test metrics, diagnostics and artifacts of one run."""
        config = make_config("spam")
        result = run_workflow(config)

        expected = {"CART", "Random Forest", "Gradient Boosting", "Logistic Regression"}
        assert set(result.trained_models) == expected
        assert set(result.metrics) == expected | {PRUNED_TREE}
        for metrics in result.metrics.values():
            assert 0.0 <= metrics["accuracy"] <= 1.0
            assert metrics["error_rate"] == pytest.approx(1.0 - metrics["accuracy"])
            assert "roc_auc" in metrics
        assert "accuracy_cv" in result.metrics["CART"]
        assert "accuracy_cv" not in result.metrics[PRUNED_TREE]

        assert result.best_model in result.metrics
        assert result.pruning is not None
        assert result.regularization == {}

        diagnostics = result.diagnostics
        assert isinstance(diagnostics["pruning_table"], pd.DataFrame)
        assert 1 <= diagnostics["boosting_best_stage"] <= 30
        assert 0.0 <= diagnostics["forest_oob_score"] <= 1.0
        assert "odds_ratio" in diagnostics["logistic_odds_ratios"].columns
        assert diagnostics["partial_dependence_model"] in ENSEMBLE_MODELS
        assert len(diagnostics["partial_dependence"]) == 2
        assert set(diagnostics["roc_curves"]) == set(result.metrics)

        for name in ("pruning curve", "ROC curves", "PR curves", "CART confusion matrix"):
            assert result.plots[name].exists()
        assert all(path.exists() for path in result.plots.values())

        assert result.report_path == config.run_dir / "report.html"
        assert result.report_path.exists()

    def test_artifacts(self, make_config) -> None:
        """Test prediction tables and saved models with metadata."""
        config = make_config("spam", models={"enabled": ["CART", "Logistic Regression"]})
        result = run_workflow(config)

        assert set(result.prediction_paths) == {"CART", "Logistic Regression", PRUNED_TREE}
        train_path, test_path = result.prediction_paths["CART"]
        test = pd.read_csv(test_path)
        assert list(test.columns) == ["Actual", "Predicted"]
        assert len(test) == len(result.data.X_test)
        assert set(test["Predicted"]) <= {"spam", "nonspam"}
        assert train_path.parent == config.predictions_dir

        model_path = result.model_paths["Logistic Regression"]
        assert model_path.suffix == ".joblib"
        metadata = json.loads(model_path.with_suffix(".meta.json").read_text())
        assert metadata["dataset"] == "spam"
        assert metadata["feature_names"] == result.data.feature_names

        # without ensembles, partial dependence uses the best model
        assert result.diagnostics["partial_dependence_model"] in result.metrics

    def test_threshold_changes_predictions(self, make_config) -> None:
        """Test that a low cutoff flags more messages as spam."""
        low = run_workflow(
            make_config("spam", training={"threshold": 0.1}), ["Logistic Regression"]
        )
        high = run_workflow(
            make_config("spam", training={"threshold": 0.9}), ["Logistic Regression"]
        )
        assert (
            low.metrics["Logistic Regression"]["recall"]
            >= high.metrics["Logistic Regression"]["recall"]
        )

    def test_unknown_models(self, make_config) -> None:
        """Test that a run without known models raises KeyError."""
        with pytest.raises(KeyError, match="No known"):
            run_workflow(make_config("spam"), ["Linear Regression"])


@pytest.mark.slow
class TestHousingWorkflow:
    """Regression run with pruning and penalized paths."""

    def test_full_run(self, make_config) -> None:
        """Test that penalized paths are evaluated alongside the registry models."""
        config = make_config("housing")
        result = run_workflow(config)

        path_models = {f"{p.value} (path)" for p in Penalty}
        assert path_models <= set(result.metrics)
        assert set(result.regularization) == set(Penalty)
        for metrics in result.metrics.values():
            assert metrics["mse"] > 0
            assert metrics["rmse"] ** 2 == pytest.approx(metrics["mse"])

        summary = result.diagnostics["regularization_summary"]
        assert list(summary["penalty"]) == ["ridge", "lasso", "elastic_net"]
        assert result.plots["lasso coefficient path"].exists()
        assert result.plots["CART actual vs predicted"].exists()
        assert result.plots["Gradient Boosting curve"].exists()
        assert result.best_model in result.metrics
        assert "roc_curves" not in result.diagnostics

        html = result.report_path.read_text(encoding="utf-8")
        assert "Penalized regression" in html
        assert "Cost-complexity pruning" in html

    def test_no_penalties(self, make_config) -> None:
        """Test that an empty penalty list skips the paths."""
        config = make_config("housing", regularization={"penalties": []})
        result = run_workflow(config, ["Linear Regression"])
        assert result.regularization == {}
        assert result.pruning is None
        assert set(result.metrics) == {"Linear Regression"}


@pytest.mark.slow
class TestDrugsWorkflow:
    """Drug consumption run: binarized outcome and explicit PDP features."""

    def test_run(self, make_config) -> None:
        """Test a run with configured partial dependence features."""
        config = make_config(
            "drugs",
            models={"enabled": ["CART", "Random Forest", "Logistic Regression"]},
            evaluation={"partial_dependence": ["SS", "Oscore", "Gender_text"]},
        )
        result = run_workflow(config)

        assert result.data.classes == ["non-user", "user"]
        assert set(result.diagnostics["partial_dependence"]) == {"SS", "Oscore"}
        assert result.diagnostics["partial_dependence_model"] == "Random Forest"
        curve = result.diagnostics["partial_dependence"]["SS"]
        assert curve["average"].between(0, 1).all()


class TestStepRunners:
    """Pruning-only and regularization-only entry points."""

    def test_run_pruning(self, make_config) -> None:
        """Test the pruning-only run writes its plots."""
        config = make_config("spam")
        result = run_pruning(config)
        assert result.selected_alpha == result.alpha_1se
        assert (config.plots_dir / "pruning_curve.png").exists()
        assert (config.plots_dir / "cart_pruned_tree.png").exists()

    def test_run_regularization(self, make_config) -> None:
        """Test the regularization-only run for one penalty."""
        config = make_config("housing")
        results = run_regularization(config, [Penalty.LASSO])
        assert list(results) == [Penalty.LASSO]
        assert (config.plots_dir / "lasso_cv_curve.png").exists()
        assert not (config.plots_dir / "ridge_cv_curve.png").exists()

    def test_regularization_rejects_classification(self, make_config) -> None:
        """Test that classification configs raise ValueError."""
        with pytest.raises(ValueError):
            run_regularization(make_config("spam"))


def test_outputs_under_run_dir(make_config, tmp_path: Path) -> None:
    """Test that every artifact lives below output/{project}."""
    config = make_config("housing", regularization={"penalties": ["lasso"]})
    result = run_workflow(config, ["CART"])
    run_dir = tmp_path / "output" / "test-housing"
    paths = [*result.plots.values(), *result.model_paths.values(), result.report_path]
    for train_path, test_path in result.prediction_paths.values():
        paths.extend([train_path, test_path])
    assert all(run_dir in path.parents for path in paths)


def test_regression_residual_stats(make_config) -> None:
    """Test that regressors report test residual statistics."""
    config = make_config("housing", regularization={"penalties": []})
    result = run_workflow(config, ["Linear Regression"])
    metrics = result.metrics["Linear Regression"]

    for key in ("residual_mean", "residual_std", "residual_median"):
        assert key in metrics
    assert metrics["residual_min"] <= metrics["residual_median"] <= metrics["residual_max"]
    assert metrics["residual_std"] ** 2 <= metrics["mse"] * (1 + 1e-9)
