"""
Runnable workflows: full runs, pruning-only and regularization-only.
"""

from tablearn.workflows.runner import (
    WorkflowResult,
    WorkflowRunner,
    run_pruning,
    run_regularization,
    run_workflow,
    select_best_model,
)

__all__ = [
    "WorkflowResult",
    "WorkflowRunner",
    "run_pruning",
    "run_regularization",
    "run_workflow",
    "select_best_model",
]
