"""
Penalized linear regression paths (ridge, lasso, elastic net).

For each penalty a log-spaced alpha grid is cross-validated, the final
alpha is chosen by the minimum or one-standard-error rule, and the full
coefficient path is recorded for plotting.

Penalties follow glmnet's gaussian convention: the objective is posed on
the standardized response y / sd(y), and alphas are reported on the
original scale of y. Rewritten on that scale the objective is

    1/(2n) ||y - Xw||^2
        + alpha * (l1_ratio ||w||_1 + (1 - l1_ratio) / (2 sd(y)) ||w||^2)

so the L1 weight is scale-free while the L2 weight is divided by sd(y).
Ridge alphas are therefore passed to sklearn's Ridge as n * alpha / sd(y),
and the elastic net mixing is re-expressed in sklearn's parameterization.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, clone
from sklearn.linear_model import ElasticNet, Lasso, Ridge, enet_path, lasso_path
from sklearn.model_selection import KFold, cross_val_score
from sklearn.pipeline import Pipeline

from tablearn.config.settings import Penalty, SelectionRule, WorkflowConfig
from tablearn.modeling.data import TrainingData
from tablearn.modeling.preprocessing import (
    build_preprocessor,
    get_feature_names_from_preprocessor,
)
from tablearn.modeling.pruning import select_alpha
from tablearn.utils.logging import get_logger

log = get_logger(__name__)

RIDGE_L1_FLOOR = 1e-3
MAX_ITER = 10_000


@dataclass
class RegularizationResult:
    """
    Outcome of one penalized regression path.

    Attributes:
        penalty: Penalty type.
        l1_ratio: Mixing parameter (0 ridge, 1 lasso).
        alphas: Alpha grid, descending.
        cv_mse: Mean CV MSE per alpha.
        cv_se: Standard error of the CV MSE per alpha.
        alpha_min: Alpha with the smallest CV MSE.
        alpha_1se: Largest alpha within one SE of the minimum.
        selected_alpha: Alpha chosen by the configured rule.
        rule: Selection rule.
        coef_path: Coefficients per alpha (index alpha, one column per feature).
        n_nonzero: Non-zero coefficient count per alpha.
        pipeline: Pipeline refit on the training data at selected_alpha.
        y_scale: Response standard deviation used to scale the L2 penalty.
    """

    penalty: Penalty
    l1_ratio: float
    alphas: np.ndarray
    cv_mse: np.ndarray
    cv_se: np.ndarray
    alpha_min: float
    alpha_1se: float
    selected_alpha: float
    rule: SelectionRule
    coef_path: pd.DataFrame
    n_nonzero: np.ndarray
    pipeline: Pipeline
    y_scale: float = 1.0

    def coefficients(self) -> pd.Series:
        """Coefficients of the final model, indexed by feature name."""
        model = self.pipeline.named_steps["model"]
        return pd.Series(np.ravel(model.coef_), index=self.coef_path.columns)

    def cv_table(self) -> pd.DataFrame:
        """CV curve as a frame (alpha, cv_mse, cv_se, n_nonzero)."""
        return pd.DataFrame(
            {
                "alpha": self.alphas,
                "cv_mse": self.cv_mse,
                "cv_se": self.cv_se,
                "n_nonzero": self.n_nonzero,
            }
        )


def penalty_l1_ratio(penalty: Penalty, l1_ratio: float) -> float:
    """Mixing parameter for a penalty."""
    if penalty == Penalty.RIDGE:
        return 0.0
    if penalty == Penalty.LASSO:
        return 1.0
    return l1_ratio


def alpha_grid(
    X: np.ndarray,
    y: np.ndarray,
    *,
    l1_ratio: float,
    n_alphas: int,
    eps: float,
) -> np.ndarray:
    """
    Log-spaced alpha grid from alpha_max down to eps * alpha_max.

    alpha_max is the smallest alpha that zeroes every lasso coefficient;
    ridge uses the same construction with l1_ratio floored at 1e-3. The
    grid is built for y / sd(y) and rescaled by sd(y), which leaves the
    formula on the original scale unchanged.
    """
    n = X.shape[0]
    Xc = X - X.mean(axis=0)
    yc = y - y.mean()
    alpha_max = np.max(np.abs(Xc.T @ yc)) / (n * max(l1_ratio, RIDGE_L1_FLOOR))
    if alpha_max <= 0 or not np.isfinite(alpha_max):
        msg = "Cannot build alpha grid: features are uncorrelated with the target"
        raise ValueError(msg)
    return np.logspace(np.log10(alpha_max), np.log10(alpha_max * eps), n_alphas)


def response_scale(y: np.ndarray) -> float:
    """Population standard deviation of the response (1.0 if constant)."""
    scale = float(np.std(np.asarray(y, dtype=float)))
    return scale if scale > 0 else 1.0


def sklearn_penalty(
    alpha: float, l1_ratio: float, y_scale: float
) -> tuple[float, float]:
    """
    Translate an original-scale alpha into sklearn's (alpha, l1_ratio).

    sklearn weighs the penalty as alpha * (r ||w||_1 + (1 - r)/2 ||w||^2).
    Matching the L1 weight alpha * l1_ratio and the L2 weight
    alpha * (1 - l1_ratio) / y_scale gives the returned pair.
    """
    l2_weight = (1.0 - l1_ratio) / y_scale
    scale = l1_ratio + l2_weight
    return alpha * scale, l1_ratio / scale


def make_penalized_model(
    penalty: Penalty,
    alpha: float,
    *,
    l1_ratio: float,
    n_samples: int,
    y_scale: float = 1.0,
) -> BaseEstimator:
    """Estimator for one point on the path."""
    if penalty == Penalty.RIDGE:
        return Ridge(alpha=n_samples * alpha / y_scale)
    if penalty == Penalty.LASSO:
        return Lasso(alpha=alpha, max_iter=MAX_ITER)
    sk_alpha, sk_l1_ratio = sklearn_penalty(alpha, l1_ratio, y_scale)
    return ElasticNet(alpha=sk_alpha, l1_ratio=sk_l1_ratio, max_iter=MAX_ITER)


def _coefficient_path(
    penalty: Penalty,
    X: np.ndarray,
    y: np.ndarray,
    alphas: np.ndarray,
    l1_ratio: float,
    y_scale: float,
) -> np.ndarray:
    """Coefficients (n_features, n_alphas) along the path."""
    if penalty == Penalty.RIDGE:
        n = X.shape[0]
        return np.column_stack(
            [Ridge(alpha=n * a / y_scale).fit(X, y).coef_ for a in alphas]
        )

    Xc = X - X.mean(axis=0)
    yc = y - y.mean()
    if penalty == Penalty.LASSO:
        _, coefs, _ = lasso_path(Xc, yc, alphas=alphas, max_iter=MAX_ITER)
    else:
        # the sklearn mixing ratio does not depend on alpha
        sk_alphas = np.array(
            [sklearn_penalty(a, l1_ratio, y_scale)[0] for a in alphas]
        )
        _, sk_l1_ratio = sklearn_penalty(1.0, l1_ratio, y_scale)
        _, coefs, _ = enet_path(
            Xc, yc, l1_ratio=sk_l1_ratio, alphas=sk_alphas, max_iter=MAX_ITER
        )
    return coefs


class RegularizedRegression:
    """Cross-validated ridge / lasso / elastic net paths."""

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize the path runner.

        Args:
            config: Workflow configuration (regression task).

        Raises:
            ValueError: If the workflow is a classification task.
        """
        if config.is_classification:
            msg = "Penalized regression paths need a regression task"
            raise ValueError(msg)
        self.config = config

    def fit_path(self, data: TrainingData, penalty: Penalty) -> RegularizationResult:
        """
        Cross-validate one penalty over its alpha grid and refit.

        Args:
            data: Prepared training data.
            penalty: Penalty type.

        Returns:
            RegularizationResult for the penalty.
        """
        settings = self.config.regularization
        l1_ratio = penalty_l1_ratio(penalty, settings.l1_ratio)

        preprocessor = build_preprocessor(
            data.numeric_features,
            data.categorical_features,
            kind="linear",
            X=data.X_train,
        )
        X = np.asarray(preprocessor.fit_transform(data.X_train), dtype=float)
        y = np.asarray(data.y_train, dtype=float)
        feature_names = get_feature_names_from_preprocessor(preprocessor)
        n_samples = X.shape[0]
        y_scale = response_scale(y)

        alphas = alpha_grid(
            X, y, l1_ratio=l1_ratio, n_alphas=settings.n_alphas, eps=settings.eps
        )

        cv = KFold(
            n_splits=self.config.training.cv_folds,
            shuffle=True,
            random_state=self.config.split.random_state,
        )
        cv_mse = np.empty(len(alphas))
        cv_se = np.empty(len(alphas))
        for i, alpha in enumerate(alphas):
            pipeline = Pipeline(
                steps=[
                    ("preprocessor", clone(preprocessor)),
                    (
                        "model",
                        make_penalized_model(
                            penalty,
                            alpha,
                            l1_ratio=l1_ratio,
                            n_samples=n_samples,
                            y_scale=y_scale,
                        ),
                    ),
                ]
            )
            fold_mse = -cross_val_score(
                pipeline,
                data.X_train,
                data.y_train,
                cv=cv,
                scoring="neg_mean_squared_error",
            )
            cv_mse[i] = float(np.mean(fold_mse))
            cv_se[i] = float(np.std(fold_mse, ddof=1) / np.sqrt(cv.get_n_splits()))

        coefs = _coefficient_path(penalty, X, y, alphas, l1_ratio, y_scale)
        coef_path = pd.DataFrame(coefs.T, index=pd.Index(alphas, name="alpha"))
        coef_path.columns = feature_names
        n_nonzero = np.count_nonzero(np.abs(coefs) > 1e-10, axis=0)

        alpha_min, alpha_1se = select_alpha(
            pd.DataFrame({"alpha": alphas, "cv_error": cv_mse, "cv_se": cv_se})
        )
        selected = alpha_1se if settings.rule == SelectionRule.ONE_SE else alpha_min

        final = Pipeline(
            steps=[
                ("preprocessor", clone(preprocessor)),
                (
                    "model",
                    make_penalized_model(
                        penalty,
                        selected,
                        l1_ratio=l1_ratio,
                        n_samples=n_samples,
                        y_scale=y_scale,
                    ),
                ),
            ]
        )
        final.fit(data.X_train, data.y_train)

        result = RegularizationResult(
            penalty=penalty,
            l1_ratio=l1_ratio,
            alphas=alphas,
            cv_mse=cv_mse,
            cv_se=cv_se,
            alpha_min=alpha_min,
            alpha_1se=alpha_1se,
            selected_alpha=selected,
            rule=settings.rule,
            coef_path=coef_path,
            n_nonzero=n_nonzero,
            pipeline=final,
            y_scale=y_scale,
        )

        log.info(
            "Regularization path complete",
            penalty=penalty.value,
            alpha_min=f"{alpha_min:.4g}",
            alpha_1se=f"{alpha_1se:.4g}",
            selected=f"{selected:.4g}",
            cv_mse_min=f"{cv_mse.min():.4g}",
            n_nonzero=int(np.count_nonzero(result.coefficients())),
        )
        return result

    def fit_all(
        self,
        data: TrainingData,
        penalties: list[Penalty] | None = None,
    ) -> dict[Penalty, RegularizationResult]:
        """Fit every configured penalty."""
        if penalties is None:
            penalties = self.config.regularization.penalties
        return {penalty: self.fit_path(data, penalty) for penalty in penalties}
