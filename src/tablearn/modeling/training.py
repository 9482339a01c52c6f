"""
Model training functionality.

Fits every enabled model on the shared training partition with the
preprocessing its family needs, and scores it by cross-validation.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.compose import TransformedTargetRegressor
from sklearn.metrics import accuracy_score, r2_score
from sklearn.model_selection import GridSearchCV, KFold, StratifiedKFold, cross_validate
from sklearn.pipeline import Pipeline

from tablearn.config.settings import TaskType, WorkflowConfig
from tablearn.modeling.data import TrainingData
from tablearn.modeling.models import (
    MODEL_REGISTRY,
    get_model,
    get_param_grid,
    get_preprocessing_kind,
)
from tablearn.modeling.preprocessing import (
    build_preprocessor,
    build_target_transformer,
)
from tablearn.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class TrainedModel:
    """
    Container for a trained model with metadata.

    Attributes:
        name: Model name.
        pipeline: Fitted sklearn pipeline (preprocessor + model).
        cv_scores: Cross-validation scores including overfitting gap.
        best_params: Best hyperparameters (if tuned).
        feature_names: Input feature names.
        training_time_s: Total training time in seconds.
    """

    name: str
    pipeline: BaseEstimator
    cv_scores: dict[str, float] = field(default_factory=dict)
    best_params: dict[str, Any] | None = None
    feature_names: list[str] = field(default_factory=list)
    training_time_s: float = 0.0


def make_cv(
    config: WorkflowConfig, y: pd.Series | None = None
) -> KFold | StratifiedKFold:
    """
    Build the shuffled, seeded CV splitter for the task.

    For classification the fold count is capped at the smallest class size.
    """
    n_splits = config.training.cv_folds
    if config.is_classification:
        if y is not None:
            smallest = int(y.value_counts().min())
            if smallest < n_splits:
                log.warning(
                    "Reducing CV folds to smallest class size",
                    requested=n_splits,
                    used=max(2, smallest),
                )
                n_splits = max(2, smallest)
        return StratifiedKFold(
            n_splits=n_splits,
            shuffle=True,
            random_state=config.split.random_state,
        )
    return KFold(
        n_splits=n_splits,
        shuffle=True,
        random_state=config.split.random_state,
    )


def build_pipeline(
    config: WorkflowConfig,
    data: TrainingData,
    name: str,
    **overrides: Any,
) -> BaseEstimator:
    """
    Build the unfitted pipeline for one registered model.

    Regression pipelines are wrapped in a TransformedTargetRegressor when
    a target transformation is configured.
    """
    params = {**config.models.hyperparameters.get(name, {}), **overrides}
    model = get_model(config.task, name, **params)
    preprocessor = build_preprocessor(
        data.numeric_features,
        data.categorical_features,
        kind=get_preprocessing_kind(config.task, name),
        X=data.X_train,
    )
    pipeline: BaseEstimator = Pipeline(
        steps=[
            ("preprocessor", preprocessor),
            ("model", model),
        ]
    )

    if not config.is_classification:
        func, inverse = build_target_transformer(config.training.target_transformation)
        if func is not None:
            pipeline = TransformedTargetRegressor(
                regressor=pipeline,
                func=func,
                inverse_func=inverse,
                check_inverse=False,
            )
    return pipeline


def unwrap_pipeline(pipeline: BaseEstimator) -> Pipeline:
    """Return the inner Pipeline of a (possibly target-transformed) model."""
    if isinstance(pipeline, TransformedTargetRegressor):
        return getattr(pipeline, "regressor_", pipeline.regressor)
    return pipeline  # type: ignore[return-value]


class ModelTrainer:
    """
    Trainer for the workflow models.

    Handles preprocessing, model fitting, and hyperparameter tuning.
    """

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize trainer.

        Args:
            config: Workflow configuration.
        """
        self.config = config
        self.models: dict[str, TrainedModel] = {}

    def train(
        self,
        data: TrainingData,
        model_names: list[str] | None = None,
        *,
        tune_hyperparameters: bool | None = None,
    ) -> dict[str, TrainedModel]:
        """
        Train models on the training partition.

        Args:
            data: Prepared training data.
            model_names: Models to train (default: from config).
            tune_hyperparameters: Grid-search override (default: from config).

        Returns:
            Dictionary of trained models.
        """
        if model_names is None:
            model_names = self.config.models.enabled
        if tune_hyperparameters is None:
            tune_hyperparameters = self.config.training.tune

        log.info(
            "Starting training",
            task=self.config.task.value,
            n_samples=len(data.X_train),
            n_features=data.X_train.shape[1],
            models=model_names,
        )

        registry = MODEL_REGISTRY[self.config.task]
        for name in model_names:
            if name not in registry:
                log.warning("Unknown model, skipping", name=name)
                continue

            with log_context(model=name):
                log.info("Training model")
                self.models[name] = self._train_single_model(
                    data, name, tune=tune_hyperparameters
                )

        log.info("Training complete", n_models=len(self.models))
        return self.models

    def _train_single_model(
        self,
        data: TrainingData,
        name: str,
        *,
        tune: bool = False,
    ) -> TrainedModel:
        """Train a single model."""
        training_start = time.perf_counter()

        pipeline = build_pipeline(self.config, data, name)
        cv = make_cv(self.config, data.y_train)

        best_params = None
        grid = get_param_grid(self.config.task, name)
        if tune and grid:
            if isinstance(pipeline, TransformedTargetRegressor):
                grid = {f"regressor__{k}": v for k, v in grid.items()}
            gs = GridSearchCV(
                pipeline,
                param_grid=grid,
                cv=cv,
                scoring=self.config.training.scoring or self._default_scoring(),
                refit=True,
            )
            gs.fit(data.X_train, data.y_train)
            pipeline = gs.best_estimator_
            best_params = gs.best_params_
            log.info("Hyperparameter tuning complete", best_params=best_params)
        else:
            pipeline.fit(data.X_train, data.y_train)

        training_time_s = time.perf_counter() - training_start

        cv_scores = self._calculate_cv_scores(
            pipeline, data.X_train, data.y_train, cv, training_time_s
        )

        return TrainedModel(
            name=name,
            pipeline=pipeline,
            cv_scores=cv_scores,
            best_params=best_params,
            feature_names=list(data.X_train.columns),
            training_time_s=training_time_s,
        )

    def _default_scoring(self) -> str:
        return "accuracy" if self.config.is_classification else "neg_mean_squared_error"

    def _calculate_cv_scores(
        self,
        pipeline: BaseEstimator,
        X: pd.DataFrame,
        y: pd.Series,
        cv: Any,
        training_time_s: float = 0.0,
    ) -> dict[str, float]:
        """
        Calculate cross-validation scores with overfitting detection.

        The in-sample score of the already fitted pipeline is compared with
        the CV score; a large gap signals overfitting.
        """
        scores: dict[str, float] = {}
        y_pred_train = pipeline.predict(X)

        if self.config.is_classification:
            scoring = ["accuracy"]
            if y.nunique() == 2:
                scoring.append("roc_auc")
            result = cross_validate(pipeline, X, y, cv=cv, scoring=scoring)

            scores["accuracy_cv"] = float(np.mean(result["test_accuracy"]))
            scores["accuracy_std"] = float(np.std(result["test_accuracy"]))
            scores["error_rate_cv"] = 1.0 - scores["accuracy_cv"]
            if "test_roc_auc" in result:
                scores["roc_auc_cv"] = float(np.mean(result["test_roc_auc"]))
            scores["accuracy_no_cv"] = float(accuracy_score(y, y_pred_train))
            scores["gap"] = scores["accuracy_no_cv"] - scores["accuracy_cv"]
        else:
            result = cross_validate(
                pipeline,
                X,
                y,
                cv=cv,
                scoring=["neg_mean_squared_error", "neg_mean_absolute_error", "r2"],
            )
            mse = -result["test_neg_mean_squared_error"]
            scores["mse_cv"] = float(np.mean(mse))
            scores["mse_std"] = float(np.std(mse))
            scores["rmse_cv"] = float(np.mean(np.sqrt(mse)))
            scores["mae_cv"] = float(np.mean(-result["test_neg_mean_absolute_error"]))
            scores["r2_cv"] = float(np.mean(result["test_r2"]))
            scores["r2_no_cv"] = float(r2_score(y, y_pred_train))
            scores["gap"] = scores["r2_no_cv"] - scores["r2_cv"]

        scores["training_time_s"] = training_time_s

        if scores["gap"] < 0.05:
            risk = "low"
        elif scores["gap"] < 0.10:
            risk = "moderate"
        else:
            risk = "high"

        log.info(
            "CV scores calculated",
            **{k: f"{v:.4f}" for k, v in scores.items() if k.endswith("_cv")},
            gap=f"{scores['gap']:.3f}",
            overfitting_risk=risk,
        )
        return scores


def train_model(
    data: TrainingData,
    config: WorkflowConfig,
    model_name: str | None = None,
) -> TrainedModel:
    """
    Convenience function to train a single model.

    Args:
        data: Prepared training data.
        config: Workflow configuration.
        model_name: Model to train (default: first enabled in config).

    Returns:
        Trained model.

    Raises:
        KeyError: If the model is not registered for the task.
    """
    if model_name is None:
        model_name = config.models.enabled[0]
    if model_name not in MODEL_REGISTRY[TaskType(config.task)]:
        msg = f"Unknown {config.task.value} model '{model_name}'"
        raise KeyError(msg)

    trainer = ModelTrainer(config)
    models = trainer.train(data, [model_name])
    return models[model_name]
