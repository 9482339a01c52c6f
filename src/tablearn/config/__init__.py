"""
Configuration management with typed Pydantic models.

Workflows are driven by YAML files merged over a shared base.yaml.
"""

from tablearn.config.loader import load_config
from tablearn.config.settings import (
    DatasetConfig,
    EvaluationConfig,
    LoggingConfig,
    MLflowConfig,
    ModelConfig,
    OutputConfig,
    Penalty,
    PruningConfig,
    RegularizationConfig,
    SelectionRule,
    SplitConfig,
    TaskType,
    TrainingConfig,
    WorkflowConfig,
)

__all__ = [
    "DatasetConfig",
    "EvaluationConfig",
    "LoggingConfig",
    "MLflowConfig",
    "ModelConfig",
    "OutputConfig",
    "Penalty",
    "PruningConfig",
    "RegularizationConfig",
    "SelectionRule",
    "SplitConfig",
    "TaskType",
    "TrainingConfig",
    "WorkflowConfig",
    "load_config",
]
