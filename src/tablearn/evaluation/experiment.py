"""
MLflow experiment tracking.

Tracking is optional: when disabled every call is a no-op, and when the
tracking backend fails the error is logged as a warning so a workflow run
never fails because of it.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import mlflow
import mlflow.sklearn
from mlflow.exceptions import MlflowException

from tablearn import __version__
from tablearn.config.settings import WorkflowConfig
from tablearn.evaluation.metrics import ClassificationMetrics, RegressionMetrics
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

TRACKING_ERRORS = (MlflowException, OSError)


class Experiment:
    """
    Thin MLflow wrapper for one workflow run.

    Each workflow run is one MLflow run tagged with dataset, task and
    package version.
    """

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize experiment.

        Args:
            config: Workflow configuration.
        """
        self.config = config
        self.enabled = config.mlflow.enabled
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        """ID of the active run, if any."""
        return self._run_id

    def _safely(self, action: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if not self.enabled:
            return None
        try:
            return func(*args, **kwargs)
        except TRACKING_ERRORS as e:
            log.warning("MLflow tracking failed", action=action, error=str(e))
            return None

    def setup(self) -> None:
        """Setup MLflow experiment."""
        mlflow.set_tracking_uri(self.config.mlflow.tracking_uri)
        mlflow.set_experiment(self.config.experiment_name)

        log.info(
            "Experiment setup",
            name=self.config.experiment_name,
            tracking_uri=self.config.mlflow.tracking_uri,
        )

    def start_run(self, run_name: str | None = None) -> str | None:
        """
        Start an MLflow run.

        Args:
            run_name: Optional run name.

        Returns:
            Run ID, or None when tracking is disabled or unavailable.
        """

        def _start() -> str:
            self.setup()
            tags = {
                "dataset": self.config.dataset.name,
                "task": self.config.task.value,
                "target": self.config.dataset.target,
                "package_version": __version__,
            }
            run = mlflow.start_run(run_name=run_name, tags=tags)
            return run.info.run_id

        self._run_id = self._safely("start_run", _start)
        if self._run_id is None:
            # nothing to log into
            self.enabled = False
        else:
            log.info("Started MLflow run", run_id=self._run_id)
        return self._run_id

    def end_run(self) -> None:
        """End the current MLflow run."""
        if self._run_id is None:
            return
        self._safely("end_run", mlflow.end_run)
        log.info("Ended MLflow run", run_id=self._run_id)
        self._run_id = None

    def log_params(self, params: dict[str, Any]) -> None:
        """Log parameters."""
        self._safely("log_params", mlflow.log_params, params)

    def log_metrics(
        self,
        metrics: RegressionMetrics | ClassificationMetrics | dict[str, float],
        prefix: str = "",
    ) -> None:
        """Log metrics, optionally prefixed (e.g. with the model name)."""
        if isinstance(metrics, (RegressionMetrics, ClassificationMetrics)):
            metrics = metrics.to_dict()
        cleaned = {
            f"{prefix}{key}".replace(" ", "_"): float(value)
            for key, value in metrics.items()
            if value is not None
        }
        self._safely("log_metrics", mlflow.log_metrics, cleaned)

    def log_artifact(self, path: Path, artifact_path: str | None = None) -> None:
        """Log an artifact."""
        self._safely("log_artifact", mlflow.log_artifact, str(path), artifact_path)

    def log_model(self, model: Any, artifact_path: str = "model") -> None:
        """Log a fitted sklearn model."""
        self._safely(
            "log_model",
            mlflow.sklearn.log_model,
            model,
            artifact_path=artifact_path,
        )
