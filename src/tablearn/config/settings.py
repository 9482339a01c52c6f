"""
Typed configuration models using Pydantic.

Every workflow parameter lives here with explicit typing and validation.
No dataset-specific constants are hardcoded in processing code.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TaskType(str, Enum):
    """Supervised learning task."""

    CLASSIFICATION = "classification"
    REGRESSION = "regression"


class SelectionRule(str, Enum):
    """Rule for picking a complexity parameter from a CV curve."""

    MIN = "min"  # smallest CV error
    ONE_SE = "one_se"  # simplest model within one standard error of the minimum


class Penalty(str, Enum):
    """Penalty for regularized linear regression."""

    RIDGE = "ridge"
    LASSO = "lasso"
    ELASTIC_NET = "elastic_net"


DATASET_NAMES = ("spam", "housing", "drugs")


class DatasetConfig(BaseModel):
    """Input dataset and outcome definition."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Dataset identifier (spam, housing, drugs)")
    data_root: Path = Field(default=Path("./data"), description="Root data directory")
    path: Path = Field(description="CSV path relative to data_root")
    target: str = Field(description="Outcome column name")
    task: TaskType
    positive_class: str | None = Field(
        default=None, description="Positive outcome level for binary metrics"
    )
    drop_columns: list[str] = Field(default_factory=list)
    categorical_columns: list[str] = Field(
        default_factory=list,
        description="Columns forced to categorical dtype regardless of storage",
    )
    drug: str | None = Field(
        default=None, description="Substance column used as outcome (drugs only)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure the dataset is one of the known workflows."""
        if v not in DATASET_NAMES:
            msg = f"Unknown dataset {v!r}. Available: {', '.join(DATASET_NAMES)}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_drug(self) -> "DatasetConfig":
        """The drugs dataset needs a substance column to predict."""
        if self.name == "drugs" and not self.drug:
            msg = "Dataset 'drugs' requires 'drug' (e.g. 'Cannabis')"
            raise ValueError(msg)
        return self

    def resolve(self) -> Path:
        """Absolute location of the dataset CSV."""
        return self.data_root / self.path


class SplitConfig(BaseModel):
    """Train/test partitioning."""

    model_config = ConfigDict(frozen=True)

    test_size: float = Field(default=0.3, ge=0.05, le=0.5)
    random_state: int = Field(default=1337)
    stratify: bool = Field(
        default=True, description="Stratify by outcome (classification only)"
    )


class TrainingConfig(BaseModel):
    """Model fitting and cross-validation settings."""

    model_config = ConfigDict(frozen=True)

    cv_folds: int = Field(default=10, ge=2, le=20)
    tune: bool = Field(default=False, description="Grid-search hyperparameters")
    threshold: float = Field(
        default=0.5, gt=0.0, lt=1.0, description="Probability cutoff for labels"
    )
    scoring: str | None = Field(
        default=None, description="Grid search scoring (default per task)"
    )
    target_transformation: str = Field(
        default="none", description="Regression target transform: none or log1p"
    )


class ModelConfig(BaseModel):
    """Model selection and hyperparameter overrides."""

    model_config = ConfigDict(frozen=True)

    enabled: list[str] = Field(description="Model names to fit")
    hyperparameters: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Per-model keyword overrides"
    )


class PruningConfig(BaseModel):
    """Cost-complexity pruning of the CART tree."""

    model_config = ConfigDict(frozen=True)

    rule: SelectionRule = SelectionRule.ONE_SE
    max_alphas: int = Field(default=50, ge=2)
    min_samples_leaf: int = Field(
        default=5, ge=1, description="Leaf size of the unpruned tree"
    )


class RegularizationConfig(BaseModel):
    """Ridge, lasso and elastic net paths."""

    model_config = ConfigDict(frozen=True)

    penalties: list[Penalty] = Field(
        default_factory=lambda: [Penalty.RIDGE, Penalty.LASSO, Penalty.ELASTIC_NET]
    )
    n_alphas: int = Field(default=100, ge=5, le=1000)
    eps: float = Field(default=1e-3, gt=0.0, lt=1.0)
    l1_ratio: float = Field(
        default=0.5, gt=0.0, lt=1.0, description="Elastic net mixing parameter"
    )
    rule: SelectionRule = SelectionRule.ONE_SE


class EvaluationConfig(BaseModel):
    """Evaluation and interpretation settings."""

    model_config = ConfigDict(frozen=True)

    importance_top_n: int = Field(default=15, ge=1)
    permutation_repeats: int = Field(default=5, ge=1)
    partial_dependence: list[str] | None = Field(
        default=None, description="Explicit PDP features (default: top by importance)"
    )
    pdp_top_n: int = Field(default=4, ge=1, le=12)
    grid_resolution: int = Field(default=30, ge=5)
    tree_plot_depth: int = Field(default=3, ge=1)


class MLflowConfig(BaseModel):
    """MLflow experiment tracking configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False)
    tracking_uri: str = Field(default="sqlite:///mlflow.db")
    experiment_name: str | None = Field(
        default=None, description="MLflow experiment name (defaults to project name)"
    )


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/plots, ./output/{project}/predictions, ...
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(default=Path("./output"))


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)


class WorkflowConfig(BaseModel):
    """Complete configuration of one workflow run.

    The project name drives:
    - MLflow experiment name (if not explicitly set)
    - Output directory structure: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'spam-trees')")

    dataset: DatasetConfig
    split: SplitConfig = Field(default_factory=SplitConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    models: ModelConfig
    pruning: PruningConfig = Field(default_factory=PruningConfig)
    regularization: RegularizationConfig = Field(default_factory=RegularizationConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    mlflow: MLflowConfig = Field(default_factory=MLflowConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def task(self) -> TaskType:
        """Convenience accessor for the learning task."""
        return self.dataset.task

    @property
    def is_classification(self) -> bool:
        """Whether the outcome is categorical."""
        return self.dataset.task == TaskType.CLASSIFICATION

    @property
    def experiment_name(self) -> str:
        """MLflow experiment name (derived from project if not set)."""
        return self.mlflow.experiment_name or self.project

    @property
    def run_dir(self) -> Path:
        """Root of all outputs for this project."""
        return self.output.output_root / self.project

    @property
    def plots_dir(self) -> Path:
        """Path to plots output directory."""
        return self.run_dir / "plots"

    @property
    def predictions_dir(self) -> Path:
        """Path to predictions output directory."""
        return self.run_dir / "predictions"

    @property
    def models_dir(self) -> Path:
        """Path to serialized model directory."""
        return self.run_dir / "models"
