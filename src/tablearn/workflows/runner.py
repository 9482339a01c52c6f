"""
End-to-end workflow runner.

One run loads and splits the configured dataset, fits the enabled models,
runs the complexity searches (tree pruning, penalized regression paths),
evaluates everything on the shared test partition, and writes plots,
prediction tables, fitted models and an HTML report under the run
directory.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import pandas as pd
from rich.console import Console

from tablearn.config.settings import Penalty, WorkflowConfig
from tablearn.evaluation import plots
from tablearn.evaluation.experiment import Experiment
from tablearn.evaluation.importance import (
    FeatureImportance,
    compute_partial_dependence,
    compute_permutation_importance,
    extract_feature_importance,
    select_pdp_features,
)
from tablearn.evaluation.metrics import (
    compute_classification_metrics,
    compute_metrics,
    compute_residual_stats,
    positive_scores,
    pr_curve_data,
    predict_with_threshold,
    roc_curve_data,
)
from tablearn.evaluation.report import (
    ReportData,
    generate_html_report,
    print_confusion_matrix,
    print_feature_importance_table,
    print_pruning_table,
    regularization_summary,
    save_prediction_tables,
)
from tablearn.modeling.data import TrainingData, load_dataset
from tablearn.modeling.diagnostics import (
    boosting_curve,
    forest_oob_score,
    logistic_coefficients,
)
from tablearn.modeling.pruning import PruningResult, TreePruner
from tablearn.modeling.regularization import RegularizationResult, RegularizedRegression
from tablearn.modeling.training import ModelTrainer, TrainedModel
from tablearn.utils.logging import get_logger, log_context

log = get_logger(__name__)

ENSEMBLE_MODELS = ("Random Forest", "Gradient Boosting")
PRUNED_TREE = "CART (pruned)"


@dataclass
class WorkflowResult:
    """
    Everything one workflow run produced.

    Attributes:
        config: Configuration the run used.
        data: Train/test partition.
        trained_models: Fitted registry models.
        metrics: Model name -> test metrics merged with CV scores.
        pruning: Tree pruning result (when CART was enabled).
        regularization: Penalty -> path result (regression only).
        plots: Plot name -> PNG path.
        prediction_paths: Model name -> (train CSV, test CSV).
        model_paths: Model name -> joblib file.
        diagnostics: OOB score, boosting best stage, odds-ratio tables, ...
        best_model: Highest test accuracy or lowest test MSE.
        report_path: HTML report path.
    """

    config: WorkflowConfig
    data: TrainingData
    trained_models: dict[str, TrainedModel]
    metrics: dict[str, dict[str, float]] = field(default_factory=dict)
    pruning: PruningResult | None = None
    regularization: dict[Penalty, RegularizationResult] = field(default_factory=dict)
    plots: dict[str, Path] = field(default_factory=dict)
    prediction_paths: dict[str, tuple[Path, Path]] = field(default_factory=dict)
    model_paths: dict[str, Path] = field(default_factory=dict)
    diagnostics: dict[str, Any] = field(default_factory=dict)
    best_model: str | None = None
    report_path: Path | None = None


def select_best_model(
    metrics: dict[str, dict[str, float]],
    *,
    classification: bool,
) -> str | None:
    """
    Pick the best model on the test partition.

    Classification maximizes accuracy; regression minimizes MSE. Ties keep
    the first model in insertion order.
    """
    key = "accuracy" if classification else "mse"
    candidates = {name: m[key] for name, m in metrics.items() if key in m}
    if not candidates:
        return None
    if classification:
        return max(candidates, key=lambda name: candidates[name])
    return min(candidates, key=lambda name: candidates[name])


class WorkflowRunner:
    """Sequencing of one load → split → fit → evaluate → plot run."""

    def __init__(
        self,
        config: WorkflowConfig,
        console: Console | None = None,
    ) -> None:
        """
        Initialize runner.

        Args:
            config: Workflow configuration.
            console: Rich console for tables (None keeps the run quiet).
        """
        self.config = config
        self.console = console
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    @property
    def positive_class(self) -> str | None:
        """Configured positive class (None means the last level)."""
        return self.config.dataset.positive_class

    def run(
        self,
        model_names: list[str] | None = None,
        *,
        tune: bool | None = None,
    ) -> WorkflowResult:
        """
        Execute the workflow.

        Args:
            model_names: Models to fit (default: config.models.enabled).
            tune: Grid-search override (default: config.training.tune).

        Returns:
            WorkflowResult with metrics, plots and artifact paths.
        """
        config = self.config
        experiment = Experiment(config)

        with log_context(project=config.project, dataset=config.dataset.name):
            log.info("Starting workflow", task=config.task.value)
            data = load_dataset(config)

            experiment.start_run(f"{config.project}-{self.timestamp}")
            try:
                result = self._run(data, model_names, tune=tune)
                self._track(experiment, result)
            finally:
                experiment.end_run()

            log.info(
                "Workflow complete",
                best_model=result.best_model,
                n_models=len(result.metrics),
                n_plots=len(result.plots),
            )
        return result

    def _run(
        self,
        data: TrainingData,
        model_names: list[str] | None,
        *,
        tune: bool | None,
    ) -> WorkflowResult:
        config = self.config
        trainer = ModelTrainer(config)
        trained = trainer.train(data, model_names, tune_hyperparameters=tune)
        if not trained:
            requested = model_names or config.models.enabled
            msg = f"No known {config.task.value} models among {requested}"
            raise KeyError(msg)

        result = WorkflowResult(config=config, data=data, trained_models=trained)
        fitted: dict[str, Any] = {name: tm.pipeline for name, tm in trained.items()}

        if "CART" in trained:
            result.pruning = self._prune(data, result)
            fitted[PRUNED_TREE] = result.pruning.pruned_tree

        if not config.is_classification and config.regularization.penalties:
            result.regularization = self._regularize(data, result)
            for penalty, path in result.regularization.items():
                fitted[f"{penalty.value} (path)"] = path.pipeline

        importances: dict[str, FeatureImportance] = {}
        if config.is_classification:
            curves = self._evaluate_classifiers(data, fitted, trained, result, importances)
            self._plot_curves(data, curves, result)
        else:
            self._evaluate_regressors(data, fitted, trained, result, importances)

        self._diagnostics(data, trained, result)
        self._partial_dependence(data, fitted, result, importances)

        for name, pipeline in fitted.items():
            result.prediction_paths[name] = self._save_predictions(data, name, pipeline)
        for name, trained_model in trained.items():
            result.model_paths[name] = self._save_model(trained_model, result.metrics[name])

        result.best_model = select_best_model(
            result.metrics, classification=config.is_classification
        )
        result.report_path = self._report(data, result)
        return result

    def _prune(self, data: TrainingData, result: WorkflowResult) -> PruningResult:
        pruning = TreePruner(self.config).prune(data)
        print_pruning_table(pruning, self.console)

        plots_dir = self.config.plots_dir
        depth = self.config.evaluation.tree_plot_depth
        result.plots["pruning curve"] = plots.plot_pruning_curve(pruning, plots_dir)
        result.plots["CART tree (full)"] = plots.plot_tree_diagram(
            pruning.full_tree, "CART full", plots_dir, max_depth=depth
        )
        result.plots["CART tree (pruned)"] = plots.plot_tree_diagram(
            pruning.pruned_tree, "CART pruned", plots_dir, max_depth=depth
        )
        result.diagnostics["pruning_table"] = pruning.table
        return pruning

    def _regularize(
        self, data: TrainingData, result: WorkflowResult
    ) -> dict[Penalty, RegularizationResult]:
        paths = RegularizedRegression(self.config).fit_all(data)
        summary = regularization_summary(paths, self.console)
        result.diagnostics["regularization_summary"] = summary

        for penalty, path in paths.items():
            result.plots[f"{penalty.value} CV curve"] = plots.plot_regularization_cv(
                path, self.config.plots_dir
            )
            result.plots[f"{penalty.value} coefficient path"] = (
                plots.plot_coefficient_path(path, self.config.plots_dir)
            )
        return paths

    def _importance(
        self,
        name: str,
        pipeline: Any,
        data: TrainingData,
        result: WorkflowResult,
        importances: dict[str, FeatureImportance],
    ) -> None:
        importance = extract_feature_importance(pipeline, data.feature_names)
        if importance is None:
            return
        importances[name] = importance
        top_n = self.config.evaluation.importance_top_n
        print_feature_importance_table(importance, name, self.console, top_n=top_n)
        result.plots[f"{name} importance"] = plots.plot_feature_importance(
            importance, name, self.config.plots_dir, top_n=top_n
        )

    def _evaluate_classifiers(
        self,
        data: TrainingData,
        fitted: dict[str, Any],
        trained: dict[str, TrainedModel],
        result: WorkflowResult,
        importances: dict[str, FeatureImportance],
    ) -> dict[str, tuple[np.ndarray, float | None]]:
        threshold = self.config.training.threshold
        binary = len(data.classes) == 2
        scores: dict[str, tuple[np.ndarray, float | None]] = {}

        for name, pipeline in fitted.items():
            y_score = None
            if binary and hasattr(pipeline, "predict_proba"):
                y_score = positive_scores(pipeline, data.X_test, self.positive_class)
            y_pred = predict_with_threshold(
                pipeline, data.X_test, threshold, self.positive_class
            )
            metrics = compute_classification_metrics(
                data.y_test,
                y_pred,
                y_score,
                positive_class=self.positive_class,
                labels=data.classes,
            )
            cv_scores = trained[name].cv_scores if name in trained else {}
            result.metrics[name] = {**metrics.to_dict(), **cv_scores}

            confusion = metrics.confusion_frame()
            print_confusion_matrix(confusion, name, self.console)
            result.plots[f"{name} confusion matrix"] = plots.plot_confusion_matrix(
                confusion, name, self.config.plots_dir
            )
            log.info("Evaluated classifier", model=name, metrics=str(metrics))

            if y_score is not None:
                scores[name] = (y_score, metrics.roc_auc)
            self._importance(name, pipeline, data, result, importances)

        return scores

    def _plot_curves(
        self,
        data: TrainingData,
        scores: dict[str, tuple[np.ndarray, float | None]],
        result: WorkflowResult,
    ) -> None:
        """ROC and PR curves of all probabilistic classifiers (binary only)."""
        positive = self.positive_class or data.classes[-1]
        if not scores or positive not in set(data.y_test):
            return

        roc = {
            name: roc_curve_data(data.y_test, s, positive)
            for name, (s, _) in scores.items()
        }
        pr = {
            name: pr_curve_data(data.y_test, s, positive)
            for name, (s, _) in scores.items()
        }
        aucs = {name: auc for name, (_, auc) in scores.items() if auc is not None}
        aps = {
            name: result.metrics[name].get("average_precision", 0.0) for name in scores
        }
        prevalence = float(np.mean(np.asarray(data.y_test) == positive))

        result.plots["ROC curves"] = plots.plot_roc_curves(roc, aucs, self.config.plots_dir)
        result.plots["PR curves"] = plots.plot_pr_curves(
            pr, aps, self.config.plots_dir, baseline=prevalence
        )
        result.diagnostics["roc_curves"] = roc
        result.diagnostics["pr_curves"] = pr

    def _evaluate_regressors(
        self,
        data: TrainingData,
        fitted: dict[str, Any],
        trained: dict[str, TrainedModel],
        result: WorkflowResult,
        importances: dict[str, FeatureImportance],
    ) -> None:
        for name, pipeline in fitted.items():
            y_true = np.asarray(data.y_test)
            y_pred = np.asarray(pipeline.predict(data.X_test))
            metrics = compute_metrics(y_true, y_pred)
            residuals = compute_residual_stats(y_true, y_pred)
            cv_scores = trained[name].cv_scores if name in trained else {}
            result.metrics[name] = {**metrics.to_dict(), **residuals, **cv_scores}
            log.info("Evaluated regressor", model=name, metrics=str(metrics))

            result.plots[f"{name} actual vs predicted"] = plots.plot_actual_vs_predicted(
                y_true,
                y_pred,
                name,
                self.config.plots_dir,
                mse=metrics.mse,
            )
            self._importance(name, pipeline, data, result, importances)

    def _diagnostics(
        self,
        data: TrainingData,
        trained: dict[str, TrainedModel],
        result: WorkflowResult,
    ) -> None:
        """Boosting curve, forest OOB score and logistic odds ratios."""
        if "Gradient Boosting" in trained:
            curve, best_stage = boosting_curve(
                trained["Gradient Boosting"].pipeline, data.X_test, data.y_test
            )
            result.diagnostics["boosting_curve"] = curve
            result.diagnostics["boosting_best_stage"] = best_stage
            ylabel = "Test error rate" if self.config.is_classification else "Test MSE"
            result.plots["Gradient Boosting curve"] = plots.plot_boosting_curve(
                curve, best_stage, "Gradient Boosting", self.config.plots_dir, ylabel=ylabel
            )

        if "Random Forest" in trained:
            oob = forest_oob_score(trained["Random Forest"].pipeline)
            if oob is not None:
                result.diagnostics["forest_oob_score"] = oob
                log.info("Random forest OOB score", oob_score=f"{oob:.4f}")

        if "Logistic Regression" in trained:
            odds = logistic_coefficients(trained["Logistic Regression"].pipeline)
            result.diagnostics["logistic_odds_ratios"] = odds
            log.info(
                "Logistic regression fitted",
                top_feature=odds.iloc[0]["feature"] if len(odds) else None,
            )

    def _partial_dependence(
        self,
        data: TrainingData,
        fitted: dict[str, Any],
        result: WorkflowResult,
        importances: dict[str, FeatureImportance],
    ) -> None:
        """Permutation importance and PDPs for the best ensemble (else best model)."""
        if not data.numeric_features:
            return

        key = "accuracy" if self.config.is_classification else "mse"
        ensembles = {n: result.metrics[n] for n in ENSEMBLE_MODELS if n in fitted}
        pool = ensembles or result.metrics
        name = select_best_model(pool, classification=self.config.is_classification)
        if name is None or key not in result.metrics[name]:
            return
        pipeline = fitted[name]
        settings = self.config.evaluation

        permutation = compute_permutation_importance(
            pipeline,
            data.X_test,
            data.y_test,
            n_repeats=settings.permutation_repeats,
            random_state=self.config.split.random_state,
        )
        result.plots[f"{name} permutation importance"] = plots.plot_feature_importance(
            permutation, name, self.config.plots_dir, top_n=settings.importance_top_n
        )

        features = select_pdp_features(
            importances.get(name, permutation),
            data.numeric_features,
            top_n=settings.pdp_top_n,
            explicit=settings.partial_dependence,
        )
        if not features:
            return

        positive = self.positive_class or (data.classes[-1] if data.classes else None)
        curves = {
            feature: compute_partial_dependence(
                pipeline,
                data.X_train,
                feature,
                grid_resolution=settings.grid_resolution,
                positive_class=positive,
            )
            for feature in features
        }
        ylabel = f"P({positive})" if self.config.is_classification else "Predicted outcome"
        result.plots[f"{name} partial dependence"] = plots.plot_partial_dependence(
            curves, name, self.config.plots_dir, ylabel=ylabel, X_reference=data.X_train
        )
        result.diagnostics["partial_dependence"] = curves
        result.diagnostics["partial_dependence_model"] = name

    def _save_predictions(
        self, data: TrainingData, name: str, pipeline: Any
    ) -> tuple[Path, Path]:
        if self.config.is_classification:
            threshold = self.config.training.threshold
            y_train_pred = predict_with_threshold(
                pipeline, data.X_train, threshold, self.positive_class
            )
            y_test_pred = predict_with_threshold(
                pipeline, data.X_test, threshold, self.positive_class
            )
        else:
            y_train_pred = pipeline.predict(data.X_train)
            y_test_pred = pipeline.predict(data.X_test)

        return save_prediction_tables(
            model_name=name,
            y_train=np.asarray(data.y_train),
            y_train_pred=np.asarray(y_train_pred),
            y_test=np.asarray(data.y_test),
            y_test_pred=np.asarray(y_test_pred),
            output_dir=self.config.predictions_dir,
            experiment_name=self.config.dataset.name,
            timestamp=self.timestamp,
        )

    def _save_model(self, trained_model: TrainedModel, metrics: dict[str, float]) -> Path:
        """Persist a fitted pipeline with a metadata sidecar."""
        models_dir = self.config.models_dir
        models_dir.mkdir(parents=True, exist_ok=True)

        safe_name = trained_model.name.lower().replace(" ", "_")
        model_path = models_dir / f"{safe_name}_{self.config.dataset.name}.joblib"
        joblib.dump(trained_model.pipeline, model_path)

        metadata = {
            "model_name": trained_model.name,
            "dataset": self.config.dataset.name,
            "task": self.config.task.value,
            "target": self.config.dataset.target,
            "feature_names": trained_model.feature_names,
            "best_params": trained_model.best_params,
            "metrics": {k: float(v) for k, v in metrics.items()},
        }
        metadata_path = model_path.with_suffix(".meta.json")
        with metadata_path.open("w") as f:
            json.dump(metadata, f, indent=2, default=str)

        log.debug("Saved model", path=str(model_path))
        return model_path

    def _report(self, data: TrainingData, result: WorkflowResult) -> Path:
        tables: dict[str, pd.DataFrame] = {}
        if result.pruning is not None:
            tables["Cost-complexity pruning"] = result.pruning.table
        if "regularization_summary" in result.diagnostics:
            tables["Penalized regression"] = result.diagnostics["regularization_summary"]
        if "logistic_odds_ratios" in result.diagnostics:
            tables["Logistic regression odds ratios"] = result.diagnostics[
                "logistic_odds_ratios"
            ]

        report_data = ReportData(
            project=self.config.project,
            dataset=self.config.dataset.name,
            task=self.config.task.value,
            target=self.config.dataset.target,
            n_train=len(data.X_train),
            n_test=len(data.X_test),
            feature_names=data.feature_names,
            metrics=result.metrics,
            best_model=result.best_model,
            plots=result.plots,
            tables=tables,
        )
        return generate_html_report(
            report_data, self.config.run_dir / "report.html", self.console
        )

    def _track(self, experiment: Experiment, result: WorkflowResult) -> None:
        """Log parameters, metrics and artifacts to MLflow (no-op when disabled)."""
        config = self.config
        experiment.log_params(
            {
                "dataset": config.dataset.name,
                "target": config.dataset.target,
                "models": ",".join(result.trained_models),
                "test_size": config.split.test_size,
                "cv_folds": config.training.cv_folds,
                "threshold": config.training.threshold,
                "pruning_rule": config.pruning.rule.value,
            }
        )
        for name, metrics in result.metrics.items():
            safe = name.lower().replace(" ", "_").replace("(", "").replace(")", "")
            experiment.log_metrics(metrics, prefix=f"{safe}.")
        if result.pruning is not None:
            experiment.log_metrics(
                {
                    "pruning.alpha_selected": result.pruning.selected_alpha,
                    "pruning.n_leaves": result.pruning.n_leaves_pruned,
                }
            )
        for path in result.plots.values():
            experiment.log_artifact(path, "plots")
        if result.report_path is not None:
            experiment.log_artifact(result.report_path)
        if result.best_model in result.trained_models:
            experiment.log_model(result.trained_models[result.best_model].pipeline)


def run_workflow(
    config: WorkflowConfig,
    model_names: list[str] | None = None,
    *,
    tune: bool | None = None,
    console: Console | None = None,
) -> WorkflowResult:
    """
    Run a complete workflow.

    Args:
        config: Workflow configuration.
        model_names: Models to fit (default: config.models.enabled).
        tune: Grid-search override.
        console: Rich console for tables.

    Returns:
        WorkflowResult.
    """
    return WorkflowRunner(config, console).run(model_names, tune=tune)


def run_pruning(
    config: WorkflowConfig,
    console: Console | None = None,
) -> PruningResult:
    """
    Run only the CART pruning search and its plots.

    Args:
        config: Workflow configuration.
        console: Rich console for the pruning table.

    Returns:
        PruningResult.
    """
    with log_context(project=config.project, step="prune"):
        data = load_dataset(config)
        pruning = TreePruner(config).prune(data)
        print_pruning_table(pruning, console)

        plots.plot_pruning_curve(pruning, config.plots_dir)
        plots.plot_tree_diagram(
            pruning.pruned_tree,
            "CART pruned",
            config.plots_dir,
            max_depth=config.evaluation.tree_plot_depth,
        )
    return pruning


def run_regularization(
    config: WorkflowConfig,
    penalties: list[Penalty] | None = None,
    console: Console | None = None,
) -> dict[Penalty, RegularizationResult]:
    """
    Run only the penalized regression paths and their plots.

    Args:
        config: Workflow configuration (regression task).
        penalties: Penalties to fit (default: configured).
        console: Rich console for the summary table.

    Returns:
        Penalty -> RegularizationResult.

    Raises:
        ValueError: If the workflow is a classification task.
    """
    with log_context(project=config.project, step="regularize"):
        runner = RegularizedRegression(config)
        data = load_dataset(config)
        paths = runner.fit_all(data, penalties)
        regularization_summary(paths, console)

        for path in paths.values():
            plots.plot_regularization_cv(path, config.plots_dir)
            plots.plot_coefficient_path(path, config.plots_dir)
            test_mse = compute_metrics(
                np.asarray(data.y_test), path.pipeline.predict(data.X_test)
            ).mse
            log.info(
                "Penalized model test MSE",
                penalty=path.penalty.value,
                mse=f"{test_mse:.4g}",
            )
    return paths
