"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import pytest
import yaml

from tablearn.config.loader import build_config
from tablearn.config.settings import WorkflowConfig
from tablearn.modeling.data import TrainingData, load_dataset
from tablearn.schemas.drugs import USAGE_CLASSES

DATASETS: dict[str, dict[str, Any]] = {
    "spam": {
        "name": "spam",
        "path": "spam.csv",
        "target": "type",
        "task": "classification",
        "positive_class": "spam",
    },
    "housing": {
        "name": "housing",
        "path": "Housing.csv",
        "target": "price",
        "task": "regression",
    },
    "drugs": {
        "name": "drugs",
        "path": "drug_consumption.csv",
        "target": "user",
        "task": "classification",
        "positive_class": "user",
        "drug": "Cannabis",
    },
}

CLASSIFIERS = ["CART", "Random Forest", "Gradient Boosting", "Logistic Regression"]
REGRESSORS = ["CART", "Random Forest", "Gradient Boosting", "Linear Regression"]

FAST_HYPERPARAMETERS = {
    "Random Forest": {"n_estimators": 25, "n_jobs": 1},
    "Gradient Boosting": {"n_estimators": 30},
}


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def spam_frame() -> pd.DataFrame:
    """Synthetic spam data: exclamation marks and dollar signs mark spam."""
    rng = np.random.default_rng(1337)
    n = 160
    spam = rng.random(n) < 0.4
    return pd.DataFrame(
        {
            "make": rng.exponential(0.1, n),
            "address": rng.exponential(0.2, n),
            "remove": np.where(spam, rng.exponential(0.4, n), rng.exponential(0.02, n)),
            "charExclamation": np.where(
                spam, rng.exponential(0.6, n) + 0.2, rng.exponential(0.05, n)
            ),
            "charDollar": np.where(
                spam, rng.exponential(0.3, n) + 0.05, rng.exponential(0.01, n)
            ),
            "capitalAve": rng.uniform(1.0, 6.0, n) + 2.0 * spam,
            "capitalLong": rng.integers(1, 60, n).astype(float),
            "type": np.where(spam, "spam", "nonspam"),
        }
    )


@pytest.fixture
def housing_frame() -> pd.DataFrame:
    """Synthetic housing data with a linear price signal."""
    rng = np.random.default_rng(42)
    n = 140
    area = rng.uniform(1650, 16200, n).round()
    bedrooms = rng.integers(1, 6, n)
    bathrooms = rng.integers(1, 4, n)
    stories = rng.integers(1, 4, n)
    parking = rng.integers(0, 3, n)
    aircon = rng.random(n) < 0.3
    furnishing = rng.choice(["unfurnished", "semi-furnished", "furnished"], n)
    price = (
        1_500_000
        + 350 * area
        + 900_000 * bathrooms
        + 400_000 * stories
        + 800_000 * aircon
        + 300_000 * (furnishing == "furnished")
        + rng.normal(0, 300_000, n)
    ).round()

    def yes_no(p: float) -> np.ndarray:
        return np.where(rng.random(n) < p, "yes", "no")

    return pd.DataFrame(
        {
            "price": price,
            "area": area,
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            "stories": stories,
            "mainroad": yes_no(0.85),
            "guestroom": yes_no(0.2),
            "basement": yes_no(0.35),
            "hotwaterheating": yes_no(0.05),
            "airconditioning": np.where(aircon, "yes", "no"),
            "parking": parking,
            "prefarea": yes_no(0.25),
            "furnishingstatus": furnishing,
        }
    )


@pytest.fixture
def drugs_frame() -> pd.DataFrame:
    """Synthetic drug survey: sensation seeking and openness drive cannabis use."""
    rng = np.random.default_rng(7)
    n = 180
    personality = {
        col: rng.normal(0, 1, n)
        for col in ["Nscore", "Escore", "Oscore", "Ascore", "Cscore", "Impulsive", "SS"]
    }
    propensity = personality["SS"] + 0.8 * personality["Oscore"] + rng.normal(0, 0.5, n)
    cannabis = np.clip(np.round(2.5 + 1.5 * propensity), 0, 6).astype(int)

    frame = pd.DataFrame(
        {
            "ID": np.arange(1, n + 1),
            "Age": rng.choice([-0.95197, -0.07854, 0.49788, 1.09449], n),
            "Gender": rng.choice([-0.48246, 0.48246], n),
            "Education": rng.normal(0, 1, n).round(5),
            "Country": rng.choice([-0.09765, 0.96082], n),
            "Ethnicity": rng.choice([-0.31685, 0.1144], n),
            **personality,
            "Alcohol": rng.choice(USAGE_CLASSES, n),
            "Cannabis": [USAGE_CLASSES[c] for c in cannabis],
            "Nicotine": rng.choice(USAGE_CLASSES, n),
        }
    )
    return frame


@pytest.fixture
def data_root(
    tmp_path: Path,
    spam_frame: pd.DataFrame,
    housing_frame: pd.DataFrame,
    drugs_frame: pd.DataFrame,
) -> Path:
    """Directory holding all three synthetic CSV files."""
    root = tmp_path / "data"
    root.mkdir()
    spam_frame.to_csv(root / "spam.csv", index=False)
    housing_frame.to_csv(root / "Housing.csv", index=False)
    drugs_frame.to_csv(root / "drug_consumption.csv", index=False)
    return root


@pytest.fixture
def config_dict(tmp_path: Path, data_root: Path) -> Callable[..., dict[str, Any]]:
    """Factory for small, fast raw configuration mappings."""

    def _make(name: str, **sections: Any) -> dict[str, Any]:
        entry = DATASETS[name]
        enabled = CLASSIFIERS if entry["task"] == "classification" else REGRESSORS
        raw: dict[str, Any] = {
            "project": f"test-{name}",
            "dataset": {**entry, "root": str(data_root)},
            "split": {"test_size": 0.3, "random_state": 1337},
            "training": {"cv_folds": 3},
            "models": {
                "enabled": list(enabled),
                "hyperparameters": dict(FAST_HYPERPARAMETERS),
            },
            "pruning": {"max_alphas": 6, "min_samples_leaf": 3},
            "regularization": {"n_alphas": 12},
            "evaluation": {
                "importance_top_n": 5,
                "permutation_repeats": 2,
                "pdp_top_n": 2,
                "grid_resolution": 5,
                "tree_plot_depth": 2,
            },
            "mlflow": {"enabled": False},
            "output": {"root": str(tmp_path / "output")},
        }
        for key, value in sections.items():
            if isinstance(value, dict) and isinstance(raw.get(key), dict):
                raw[key] = {**raw[key], **value}
            else:
                raw[key] = value
        return raw

    return _make


@pytest.fixture
def make_config(config_dict: Callable[..., dict[str, Any]]) -> Callable[..., WorkflowConfig]:
    """Factory for validated WorkflowConfig objects."""

    def _make(name: str, **sections: Any) -> WorkflowConfig:
        return build_config(config_dict(name, **sections))

    return _make


@pytest.fixture
def spam_data(make_config: Callable[..., WorkflowConfig]) -> TrainingData:
    """Loaded and split synthetic spam data."""
    return load_dataset(make_config("spam"))


@pytest.fixture
def housing_data(make_config: Callable[..., WorkflowConfig]) -> TrainingData:
    """Loaded and split synthetic housing data."""
    return load_dataset(make_config("housing"))


@pytest.fixture
def write_config(
    tmp_path: Path, config_dict: Callable[..., dict[str, Any]]
) -> Callable[..., Path]:
    """Factory writing a config YAML file and returning its path."""

    def _write(name: str, **sections: Any) -> Path:
        config_dir = tmp_path / "configs"
        config_dir.mkdir(exist_ok=True)
        path = config_dir / f"{name}.yaml"
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(config_dict(name, **sections), f, sort_keys=False)
        return path

    return _write
