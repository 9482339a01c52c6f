"""
Cost-complexity pruning for CART trees.

Grows a large tree, walks its cost-complexity path, cross-validates each
candidate alpha and picks the final tree size with either the minimum-error
or the one-standard-error rule (as rpart's cptable does with xerror/xstd).
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import cross_val_score
from sklearn.pipeline import Pipeline

from tablearn.config.settings import SelectionRule, WorkflowConfig
from tablearn.modeling.data import TrainingData
from tablearn.modeling.models import get_model
from tablearn.modeling.preprocessing import build_preprocessor
from tablearn.modeling.training import make_cv
from tablearn.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class PruningResult:
    """
    Outcome of the pruning search.

    Attributes:
        table: One row per candidate alpha with columns alpha, n_leaves,
            depth, cv_error, cv_se (sorted by alpha ascending).
        alpha_min: Alpha with the smallest CV error.
        alpha_1se: Largest alpha within one SE of the minimum error.
        selected_alpha: Alpha chosen by the configured rule.
        rule: Rule used for selection.
        metric: 'misclassification' or 'mse'.
        full_tree: Unpruned fitted pipeline.
        pruned_tree: Pipeline refit with selected_alpha.
    """

    table: pd.DataFrame
    alpha_min: float
    alpha_1se: float
    selected_alpha: float
    rule: SelectionRule
    metric: str
    full_tree: Pipeline
    pruned_tree: Pipeline

    @property
    def n_leaves_full(self) -> int:
        """Leaves of the unpruned tree."""
        return int(self.full_tree.named_steps["model"].get_n_leaves())

    @property
    def n_leaves_pruned(self) -> int:
        """Leaves of the pruned tree."""
        return int(self.pruned_tree.named_steps["model"].get_n_leaves())


def thin_alphas(alphas: np.ndarray, max_alphas: int) -> np.ndarray:
    """
    Deduplicate, clip at zero and thin a pruning path.

    Thinning keeps evenly spaced quantiles of the sorted path, always
    including the smallest and largest alpha.
    """
    alphas = np.unique(np.clip(np.asarray(alphas, dtype=float), 0.0, None))
    if len(alphas) <= max_alphas:
        return alphas
    idx = np.unique(np.round(np.linspace(0, len(alphas) - 1, max_alphas)).astype(int))
    return alphas[idx]


def select_alpha(table: pd.DataFrame) -> tuple[float, float]:
    """
    Apply the minimum and one-standard-error rules to a CV table.

    Ties at the minimum resolve to the largest alpha (the smaller tree).

    Args:
        table: Frame with alpha, cv_error and cv_se columns.

    Returns:
        Tuple of (alpha_min, alpha_1se).
    """
    if table.empty:
        msg = "Cannot select alpha from an empty pruning table"
        raise ValueError(msg)

    errors = table["cv_error"].to_numpy()
    alphas = table["alpha"].to_numpy()
    min_error = errors.min()

    at_min = np.flatnonzero(errors == min_error)
    best = at_min[np.argmax(alphas[at_min])]
    alpha_min = float(alphas[best])

    threshold = min_error + table["cv_se"].to_numpy()[best]
    within = np.flatnonzero(errors <= threshold + 1e-12)
    alpha_1se = float(alphas[within].max())
    return alpha_min, alpha_1se


class TreePruner:
    """Cross-validated cost-complexity pruning of the CART model."""

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize pruner.

        Args:
            config: Workflow configuration.
        """
        self.config = config

    def _tree_pipeline(self, data: TrainingData, ccp_alpha: float) -> Pipeline:
        leaf = self.config.pruning.min_samples_leaf
        overrides = {
            **self.config.models.hyperparameters.get("CART", {}),
            "min_samples_leaf": leaf,
            "min_samples_split": 2 * leaf,
            "ccp_alpha": ccp_alpha,
        }
        overrides.pop("max_depth", None)
        return Pipeline(
            steps=[
                (
                    "preprocessor",
                    build_preprocessor(
                        data.numeric_features,
                        data.categorical_features,
                        kind="tree",
                        X=data.X_train,
                    ),
                ),
                ("model", get_model(self.config.task, "CART", **overrides)),
            ]
        )

    def prune(self, data: TrainingData) -> PruningResult:
        """
        Run the pruning search on the training partition.

        Args:
            data: Prepared training data.

        Returns:
            PruningResult with CV table and fitted full/pruned trees.
        """
        classification = self.config.is_classification
        metric = "misclassification" if classification else "mse"
        scoring = "accuracy" if classification else "neg_mean_squared_error"

        full_tree = self._tree_pipeline(data, 0.0)
        full_tree.fit(data.X_train, data.y_train)

        Xt = full_tree.named_steps["preprocessor"].transform(data.X_train)
        path = full_tree.named_steps["model"].cost_complexity_pruning_path(
            Xt, data.y_train
        )
        alphas = thin_alphas(path.ccp_alphas, self.config.pruning.max_alphas)

        log.info(
            "Pruning path computed",
            n_path=len(path.ccp_alphas),
            n_candidates=len(alphas),
            n_leaves_full=int(full_tree.named_steps["model"].get_n_leaves()),
        )

        cv = make_cv(self.config, data.y_train)
        n_splits = cv.get_n_splits()
        rows = []
        for alpha in alphas:
            pipeline = self._tree_pipeline(data, float(alpha))
            fold_scores = cross_val_score(
                pipeline, data.X_train, data.y_train, cv=cv, scoring=scoring
            )
            fold_errors = 1.0 - fold_scores if classification else -fold_scores
            pipeline.fit(data.X_train, data.y_train)
            tree = pipeline.named_steps["model"]
            rows.append(
                {
                    "alpha": float(alpha),
                    "n_leaves": int(tree.get_n_leaves()),
                    "depth": int(tree.get_depth()),
                    "cv_error": float(np.mean(fold_errors)),
                    "cv_se": float(np.std(fold_errors, ddof=1) / np.sqrt(n_splits)),
                }
            )

        table = pd.DataFrame(rows).sort_values("alpha").reset_index(drop=True)
        alpha_min, alpha_1se = select_alpha(table)
        rule = self.config.pruning.rule
        selected = alpha_1se if rule == SelectionRule.ONE_SE else alpha_min

        pruned_tree = self._tree_pipeline(data, selected)
        pruned_tree.fit(data.X_train, data.y_train)

        log.info(
            "Pruning complete",
            rule=rule.value,
            alpha_min=f"{alpha_min:.3g}",
            alpha_1se=f"{alpha_1se:.3g}",
            selected_alpha=f"{selected:.3g}",
            n_leaves_pruned=int(pruned_tree.named_steps["model"].get_n_leaves()),
        )

        return PruningResult(
            table=table,
            alpha_min=alpha_min,
            alpha_1se=alpha_1se,
            selected_alpha=selected,
            rule=rule,
            metric=metric,
            full_tree=full_tree,
            pruned_tree=pruned_tree,
        )


def prune_tree(data: TrainingData, config: WorkflowConfig) -> PruningResult:
    """Convenience wrapper around TreePruner."""
    return TreePruner(config).prune(data)
