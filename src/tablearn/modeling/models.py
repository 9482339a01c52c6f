"""
Model registry and factory.

Provides registry of supported classifiers and regressors with their
default configurations, preprocessing family and tuning grids.
"""

from typing import Any

from sklearn.base import BaseEstimator
from sklearn.ensemble import (
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import (
    ElasticNet,
    Lasso,
    LinearRegression,
    LogisticRegression,
    Ridge,
)
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from tablearn.config.settings import TaskType
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

# name -> (class, default_kwargs, preprocessing kind)
ModelSpec = tuple[type[BaseEstimator], dict[str, Any], str]

MODEL_REGISTRY: dict[TaskType, dict[str, ModelSpec]] = {
    TaskType.CLASSIFICATION: {
        "CART": (
            DecisionTreeClassifier,
            # rpart defaults: minsplit=20, minbucket=7, cp=0.01
            {"min_samples_split": 20, "min_samples_leaf": 7, "random_state": 1337},
            "tree",
        ),
        "Random Forest": (
            RandomForestClassifier,
            {
                "n_estimators": 500,
                "max_features": "sqrt",
                "oob_score": True,
                "n_jobs": -1,
                "random_state": 1337,
            },
            "tree",
        ),
        "Gradient Boosting": (
            GradientBoostingClassifier,
            {
                "n_estimators": 300,
                "learning_rate": 0.05,
                "max_depth": 3,
                "subsample": 0.8,
                "random_state": 1337,
            },
            "tree",
        ),
        "Logistic Regression": (
            LogisticRegression,
            {"max_iter": 5000},
            "linear",
        ),
    },
    TaskType.REGRESSION: {
        "CART": (
            DecisionTreeRegressor,
            {"min_samples_split": 20, "min_samples_leaf": 7, "random_state": 1337},
            "tree",
        ),
        "Random Forest": (
            RandomForestRegressor,
            {
                "n_estimators": 500,
                "max_features": 1.0 / 3.0,  # p/3 for regression forests
                "oob_score": True,
                "n_jobs": -1,
                "random_state": 1337,
            },
            "tree",
        ),
        "Gradient Boosting": (
            GradientBoostingRegressor,
            {
                "n_estimators": 300,
                "learning_rate": 0.05,
                "max_depth": 3,
                "subsample": 0.8,
                "random_state": 1337,
            },
            "tree",
        ),
        "Linear Regression": (LinearRegression, {}, "linear"),
        "Ridge": (Ridge, {"alpha": 1.0}, "linear"),
        "Lasso": (Lasso, {"alpha": 1.0, "max_iter": 10000}, "linear"),
        "Elastic Net": (
            ElasticNet,
            {"alpha": 1.0, "l1_ratio": 0.5, "max_iter": 10000},
            "linear",
        ),
    },
}


PARAM_GRIDS: dict[TaskType, dict[str, dict[str, list[Any]]]] = {
    TaskType.CLASSIFICATION: {
        "CART": {
            "model__max_depth": [None, 4, 8, 12],
            "model__min_samples_leaf": [1, 7, 20],
        },
        "Random Forest": {
            "model__max_features": ["sqrt", "log2", 0.5],
            "model__min_samples_leaf": [1, 5],
        },
        "Gradient Boosting": {
            "model__learning_rate": [0.01, 0.05, 0.1],
            "model__max_depth": [2, 3, 4],
            "model__n_estimators": [200, 500],
        },
        "Logistic Regression": {
            "model__C": [0.01, 0.1, 1.0, 10.0],
        },
    },
    TaskType.REGRESSION: {
        "CART": {
            "model__max_depth": [None, 4, 8, 12],
            "model__min_samples_leaf": [1, 7, 20],
        },
        "Random Forest": {
            "model__max_features": [1.0 / 3.0, "sqrt", 1.0],
            "model__min_samples_leaf": [1, 5],
        },
        "Gradient Boosting": {
            "model__learning_rate": [0.01, 0.05, 0.1],
            "model__max_depth": [2, 3, 4],
            "model__n_estimators": [200, 500],
        },
        "Ridge": {"model__alpha": [0.01, 0.1, 1.0, 10.0, 100.0]},
        "Lasso": {"model__alpha": [0.001, 0.01, 0.1, 1.0, 10.0]},
        "Elastic Net": {
            "model__alpha": [0.001, 0.01, 0.1, 1.0],
            "model__l1_ratio": [0.2, 0.5, 0.8],
        },
    },
}


def _task_registry(task: TaskType | str) -> dict[str, ModelSpec]:
    return MODEL_REGISTRY[TaskType(task)]


def get_model(task: TaskType | str, name: str, **kwargs: Any) -> BaseEstimator:
    """
    Get a model instance by name.

    Args:
        task: Classification or regression.
        name: Model name from registry.
        **kwargs: Override default parameters.

    Returns:
        Model instance.

    Raises:
        KeyError: If model not found.
    """
    registry = _task_registry(task)
    if name not in registry:
        available = ", ".join(registry.keys())
        msg = f"Unknown {TaskType(task).value} model '{name}'. Available: {available}"
        raise KeyError(msg)

    model_class, default_kwargs, _ = registry[name]
    params = {**default_kwargs, **kwargs}

    log.debug("Creating model", name=name, params=params)
    return model_class(**params)


def get_preprocessing_kind(task: TaskType | str, name: str) -> str:
    """Preprocessing family ('tree' or 'linear') for a registered model."""
    registry = _task_registry(task)
    if name not in registry:
        available = ", ".join(registry.keys())
        msg = f"Unknown {TaskType(task).value} model '{name}'. Available: {available}"
        raise KeyError(msg)
    return registry[name][2]


def get_param_grid(task: TaskType | str, name: str) -> dict[str, list[Any]] | None:
    """
    Get hyperparameter grid for a model.

    Returns:
        Parameter grid or None if not defined.
    """
    return PARAM_GRIDS[TaskType(task)].get(name)


def list_models(task: TaskType | str | None = None) -> list[str]:
    """List model names for one task, or all distinct names."""
    if task is not None:
        return list(_task_registry(task).keys())
    names: list[str] = []
    for registry in MODEL_REGISTRY.values():
        names.extend(n for n in registry if n not in names)
    return names
