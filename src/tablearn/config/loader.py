"""
Configuration loading utilities.

Supports environment variable interpolation and config inheritance.
A workflow file only needs: project, dataset (name, path, target, task)
and models.enabled; everything else falls back to base.yaml or defaults.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from tablearn.config.settings import (
    DatasetConfig,
    EvaluationConfig,
    LoggingConfig,
    MLflowConfig,
    ModelConfig,
    OutputConfig,
    PruningConfig,
    RegularizationConfig,
    SplitConfig,
    TrainingConfig,
    WorkflowConfig,
)


def _interpolate_env_vars(value: str) -> str:
    """
    Interpolate environment variables in string values.

    Supports ${VAR} and ${VAR:default} syntax.
    """
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _process_config_values(obj: Any) -> Any:
    """Recursively process config values for env var interpolation."""
    if isinstance(obj, str):
        return _interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _process_config_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_process_config_values(item) for item in obj]
    return obj


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _section(merged: dict[str, Any], key: str) -> dict[str, Any]:
    """Return a config section, treating an empty YAML key as {}."""
    value = merged.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = f"Config section '{key}' must be a mapping, got {type(value).__name__}"
        raise ValueError(msg)
    return value


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and process environment variables."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return _process_config_values(data) if data else {}


def build_config(merged: dict[str, Any]) -> WorkflowConfig:
    """
    Build a validated WorkflowConfig from a merged configuration mapping.

    Args:
        merged: Raw mapping (base + workflow file).

    Returns:
        Validated configuration.

    Raises:
        ValueError: If required keys are missing or values are invalid.
    """
    project = merged.get("project")
    if not project:
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    dataset_data = _section(merged, "dataset")
    if not dataset_data:
        msg = "Config must specify a 'dataset' section"
        raise ValueError(msg)
    for key in ("name", "path", "target", "task"):
        if not dataset_data.get(key):
            msg = f"Config must specify 'dataset.{key}'"
            raise ValueError(msg)

    dataset = DatasetConfig(
        name=dataset_data["name"],
        data_root=Path(dataset_data.get("root", "./data")),
        path=Path(dataset_data["path"]),
        target=dataset_data["target"],
        task=dataset_data["task"],
        positive_class=dataset_data.get("positive_class"),
        drop_columns=dataset_data.get("drop_columns") or [],
        categorical_columns=dataset_data.get("categorical_columns") or [],
        drug=dataset_data.get("drug"),
    )

    models_data = _section(merged, "models")
    if not models_data.get("enabled"):
        msg = "Config must specify 'models.enabled'"
        raise ValueError(msg)
    models = ModelConfig(
        enabled=models_data["enabled"],
        hyperparameters=models_data.get("hyperparameters") or {},
    )

    logging_data = _section(merged, "logging")
    logging_config = LoggingConfig(
        level=logging_data.get("level", "INFO"),
        json_output=logging_data.get("json", False),
    )

    output_data = _section(merged, "output")
    output = OutputConfig(output_root=Path(output_data.get("root", "./output")))

    return WorkflowConfig(
        project=project,
        dataset=dataset,
        split=SplitConfig(**_section(merged, "split")),
        training=TrainingConfig(**_section(merged, "training")),
        models=models,
        pruning=PruningConfig(**_section(merged, "pruning")),
        regularization=RegularizationConfig(**_section(merged, "regularization")),
        evaluation=EvaluationConfig(**_section(merged, "evaluation")),
        mlflow=MLflowConfig(**_section(merged, "mlflow")),
        output=output,
        logging=logging_config,
    )


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> WorkflowConfig:
    """
    Load workflow configuration from YAML file(s).

    Args:
        config_path: Path to the workflow configuration file.
        base_path: Optional path to base configuration for inheritance.
            Defaults to base.yaml next to config_path, if present.

    Returns:
        Fully validated WorkflowConfig instance.
    """
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    if base_path is not None:
        base_data = load_yaml(base_path)
    else:
        potential_base = config_path.parent / "base.yaml"
        is_self = potential_base.resolve() == config_path.resolve()
        base_data = (
            load_yaml(potential_base)
            if potential_base.exists() and not is_self
            else {}
        )

    main_data = load_yaml(config_path)
    merged = _deep_merge(base_data, main_data)

    return build_config(merged)
