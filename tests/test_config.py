"""Tests for configuration system."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from tablearn.config import (
    DatasetConfig,
    Penalty,
    PruningConfig,
    RegularizationConfig,
    SelectionRule,
    SplitConfig,
    TaskType,
    TrainingConfig,
    load_config,
)
from tablearn.config.loader import _deep_merge, _interpolate_env_vars, build_config


class TestDatasetConfig:
    """Tests for DatasetConfig."""

    def test_valid_config(self) -> None:
        """Test creating a valid dataset config."""
        config = DatasetConfig(
            name="spam",
            path=Path("spam.csv"),
            target="type",
            task="classification",
        )
        assert config.task == TaskType.CLASSIFICATION
        assert config.resolve() == Path("./data") / "spam.csv"

    def test_unknown_dataset(self) -> None:
        """Test that an unknown dataset name raises error."""
        with pytest.raises(ValueError, match="Unknown dataset"):
            DatasetConfig(
                name="iris", path=Path("iris.csv"), target="y", task="classification"
            )

    def test_drugs_requires_drug(self) -> None:
        """Test that the drugs dataset needs a substance column."""
        with pytest.raises(ValueError, match="requires 'drug'"):
            DatasetConfig(
                name="drugs",
                path=Path("drug_consumption.csv"),
                target="user",
                task="classification",
            )

    def test_frozen(self) -> None:
        """Test that configs are immutable."""
        config = DatasetConfig(
            name="housing", path=Path("Housing.csv"), target="price", task="regression"
        )
        with pytest.raises(ValidationError):
            config.target = "area"  # type: ignore[misc]


class TestSectionConfigs:
    """Tests for section defaults and bounds."""

    def test_defaults(self) -> None:
        """Test documented defaults."""
        assert SplitConfig().test_size == 0.3
        assert TrainingConfig().cv_folds == 10
        assert TrainingConfig().threshold == 0.5
        assert PruningConfig().rule == SelectionRule.ONE_SE
        assert RegularizationConfig().penalties == [
            Penalty.RIDGE,
            Penalty.LASSO,
            Penalty.ELASTIC_NET,
        ]

    @pytest.mark.parametrize("test_size", [0.0, 0.01, 0.75])
    def test_test_size_bounds(self, test_size: float) -> None:
        """Test that test_size outside [0.05, 0.5] is rejected."""
        with pytest.raises(ValueError):
            SplitConfig(test_size=test_size)

    @pytest.mark.parametrize("threshold", [0.0, 1.0, 1.5])
    def test_threshold_bounds(self, threshold: float) -> None:
        """Test that the probability cutoff must lie in (0, 1)."""
        with pytest.raises(ValueError):
            TrainingConfig(threshold=threshold)

    def test_cv_folds_minimum(self) -> None:
        """Test that at least two folds are required."""
        with pytest.raises(ValueError):
            TrainingConfig(cv_folds=1)

    def test_penalty_strings(self) -> None:
        """Test penalties parse from their YAML spelling."""
        config = RegularizationConfig(penalties=["lasso", "elastic_net"], rule="min")
        assert config.penalties == [Penalty.LASSO, Penalty.ELASTIC_NET]
        assert config.rule == SelectionRule.MIN


class TestBuildConfig:
    """Tests for building WorkflowConfig from mappings."""

    def test_build_from_dict(self, config_dict, tmp_path: Path) -> None:
        """Test that a full mapping builds a config with derived paths."""
        config = build_config(config_dict("spam"))
        assert config.project == "test-spam"
        assert config.is_classification
        assert config.experiment_name == "test-spam"
        assert config.run_dir == tmp_path / "output" / "test-spam"
        assert config.plots_dir == config.run_dir / "plots"
        assert config.predictions_dir == config.run_dir / "predictions"
        assert config.models_dir == config.run_dir / "models"

    def test_missing_project(self, config_dict) -> None:
        """Test that a missing project raises ValueError."""
        raw = config_dict("spam")
        del raw["project"]
        with pytest.raises(ValueError, match="project"):
            build_config(raw)

    def test_missing_dataset_section(self, config_dict) -> None:
        """Test that a missing dataset section raises ValueError."""
        raw = config_dict("housing")
        del raw["dataset"]
        with pytest.raises(ValueError, match="dataset"):
            build_config(raw)

    def test_missing_dataset_key(self, config_dict) -> None:
        """Test that each required dataset key is checked."""
        raw = config_dict("housing")
        del raw["dataset"]["target"]
        with pytest.raises(ValueError, match="dataset.target"):
            build_config(raw)

    def test_missing_models(self, config_dict) -> None:
        """Test that models.enabled is required."""
        with pytest.raises(ValueError, match="models.enabled"):
            build_config(config_dict("housing", models={"enabled": []}))

    def test_section_must_be_mapping(self, config_dict) -> None:
        """Test that a scalar section is rejected."""
        with pytest.raises(ValueError, match="must be a mapping"):
            build_config(config_dict("housing", pruning="one_se"))

    def test_empty_section_uses_defaults(self, config_dict) -> None:
        """Test that an empty YAML section falls back to defaults."""
        config = build_config(config_dict("housing", evaluation=None))
        assert config.evaluation.importance_top_n == 15

    def test_logging_and_output_keys(self, config_dict, tmp_path: Path) -> None:
        """Test YAML spellings of logging.json and output.root."""
        config = build_config(
            config_dict(
                "spam",
                logging={"level": "DEBUG", "json": True},
                output={"root": str(tmp_path / "elsewhere")},
            )
        )
        assert config.logging.json_output is True
        assert config.logging.level == "DEBUG"
        assert config.output.output_root == tmp_path / "elsewhere"


class TestLoadConfig:
    """Tests for config loading from YAML."""

    def test_load_written_config(self, write_config) -> None:
        """Test loading a config file written by the fixture."""
        config = load_config(write_config("drugs"))
        assert config.dataset.drug == "Cannabis"
        assert config.dataset.positive_class == "user"
        assert config.training.cv_folds == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_base_yaml_is_merged(self, write_config) -> None:
        """Test that base.yaml next to the file is merged underneath."""
        path = write_config("housing")
        with (path.parent / "base.yaml").open("w", encoding="utf-8") as f:
            yaml.safe_dump(
                {"pruning": {"rule": "min"}, "training": {"cv_folds": 7}}, f
            )
        config = load_config(path)
        assert config.pruning.rule == SelectionRule.MIN
        # workflow file wins over base
        assert config.training.cv_folds == 3

    def test_env_interpolation(self, tmp_path: Path, monkeypatch, data_root: Path) -> None:
        """Test ${VAR} and ${VAR:default} interpolation."""
        monkeypatch.setenv("TABLEARN_TEST_PROJECT", "from-env")
        content = f"""
project: ${{TABLEARN_TEST_PROJECT}}
dataset:
  name: housing
  root: {data_root}
  path: Housing.csv
  target: price
  task: regression
models:
  enabled: [CART]
logging:
  level: ${{TABLEARN_UNSET_LEVEL:WARNING}}
"""
        path = tmp_path / "env.yaml"
        path.write_text(content, encoding="utf-8")
        config = load_config(path)
        assert config.project == "from-env"
        assert config.logging.level == "WARNING"

    def test_shipped_configs_load(self, project_root: Path) -> None:
        """Test that the configs shipped with the repository validate."""
        for name in ("spam", "housing", "drugs"):
            config = load_config(project_root / "configs" / f"{name}.yaml")
            assert config.dataset.name == name
            assert config.models.enabled


class TestHelpers:
    """Tests for loader helpers."""

    def test_deep_merge(self) -> None:
        """Test nested override semantics."""
        merged = _deep_merge(
            {"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4}
        )
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}

    def test_interpolate_default(self, monkeypatch) -> None:
        """Test that defaults may contain colons."""
        monkeypatch.delenv("TABLEARN_TEST_URI", raising=False)
        assert _interpolate_env_vars("${TABLEARN_TEST_URI:file:./mlruns}") == "file:./mlruns"
