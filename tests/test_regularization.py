"""Tests for penalized regression paths."""

import numpy as np
import pytest
from sklearn.linear_model import ElasticNet, Lasso, LinearRegression, Ridge

from tablearn.config.settings import Penalty, SelectionRule
from tablearn.modeling.data import TrainingData
from tablearn.modeling.regularization import (
    RegularizedRegression,
    alpha_grid,
    make_penalized_model,
    penalty_l1_ratio,
    response_scale,
    sklearn_penalty,
)


class TestAlphaGrid:
    """Tests for alpha_grid."""

    def test_log_spaced_descending(self) -> None:
        """Test grid shape and range."""
        rng = np.random.default_rng(0)
        X = rng.normal(size=(50, 3))
        y = X @ np.array([1.0, -2.0, 0.0]) + rng.normal(size=50)
        grid = alpha_grid(X, y, l1_ratio=1.0, n_alphas=20, eps=1e-3)

        assert len(grid) == 20
        assert np.all(np.diff(grid) < 0)
        assert grid[-1] == pytest.approx(grid[0] * 1e-3)

    def test_alpha_max_zeroes_lasso(self) -> None:
        """Test that the largest alpha removes every lasso coefficient."""
        rng = np.random.default_rng(1)
        X = rng.normal(size=(60, 4))
        y = X[:, 0] * 3 + rng.normal(size=60)
        grid = alpha_grid(X, y, l1_ratio=1.0, n_alphas=10, eps=1e-2)
        model = Lasso(alpha=grid[0]).fit(X, y)
        assert np.all(np.abs(model.coef_) < 1e-10)

    def test_constant_target(self) -> None:
        """Test that an uninformative target raises ValueError."""
        X = np.arange(10, dtype=float).reshape(-1, 1)
        with pytest.raises(ValueError, match="alpha grid"):
            alpha_grid(X, np.ones(10), l1_ratio=1.0, n_alphas=10, eps=1e-3)


class TestPenalizedModel:
    """Tests for penalty helpers."""

    def test_l1_ratio(self) -> None:
        """Test mixing parameter per penalty."""
        assert penalty_l1_ratio(Penalty.RIDGE, 0.5) == 0.0
        assert penalty_l1_ratio(Penalty.LASSO, 0.5) == 1.0
        assert penalty_l1_ratio(Penalty.ELASTIC_NET, 0.3) == 0.3

    def test_ridge_scaled_by_n(self) -> None:
        """Test that ridge alpha is expressed on the n * alpha scale."""
        model = make_penalized_model(Penalty.RIDGE, 0.1, l1_ratio=0.0, n_samples=50)
        assert isinstance(model, Ridge)
        assert model.alpha == pytest.approx(5.0)

    def test_lasso_and_enet(self) -> None:
        """Test estimator types for the other penalties."""
        lasso = make_penalized_model(Penalty.LASSO, 0.1, l1_ratio=1.0, n_samples=50)
        enet = make_penalized_model(
            Penalty.ELASTIC_NET, 0.1, l1_ratio=0.4, n_samples=50
        )
        assert isinstance(lasso, Lasso)
        assert isinstance(enet, ElasticNet)
        assert enet.l1_ratio == 0.4

    def test_ridge_l2_weight_uses_response_scale(self) -> None:
        """Test that the ridge penalty is divided by the response scale."""
        model = make_penalized_model(
            Penalty.RIDGE, 0.1, l1_ratio=0.0, n_samples=50, y_scale=4.0
        )
        assert model.alpha == pytest.approx(1.25)

    def test_enet_mixing_on_original_scale(self) -> None:
        """Test the sklearn parameters of an elastic net on a wide response."""
        alpha, l1_ratio = sklearn_penalty(2.0, 0.5, 100.0)
        # L1 weight stays alpha * l1_ratio; L2 weight shrinks by the scale
        assert alpha * l1_ratio == pytest.approx(1.0)
        assert alpha * (1.0 - l1_ratio) == pytest.approx(0.01)
        assert sklearn_penalty(0.3, 1.0, 1e6) == pytest.approx((0.3, 1.0))

    @pytest.mark.parametrize("penalty", [Penalty.RIDGE, Penalty.ELASTIC_NET])
    def test_coefficients_follow_response_units(self, penalty: Penalty) -> None:
        """Test that rescaling y rescales the fitted coefficients."""
        rng = np.random.default_rng(3)
        X = rng.normal(size=(80, 4))
        y = X @ np.array([2.0, -1.0, 0.5, 0.0]) + rng.normal(size=80)
        factor = 1e6

        def fit(target: np.ndarray, alpha: float) -> np.ndarray:
            model = make_penalized_model(
                penalty,
                alpha,
                l1_ratio=penalty_l1_ratio(penalty, 0.5),
                n_samples=80,
                y_scale=response_scale(target),
            )
            return model.fit(X, target).coef_

        np.testing.assert_allclose(
            fit(y * factor, 0.05 * factor), fit(y, 0.05) * factor, rtol=1e-3
        )

    def test_response_scale(self) -> None:
        """Test population sd, with 1.0 for a constant response."""
        assert response_scale(np.array([1.0, 3.0])) == pytest.approx(1.0)
        assert response_scale(np.ones(5)) == 1.0


class TestRegularizedRegression:
    """Tests for RegularizedRegression."""

    def test_rejects_classification(self, make_config) -> None:
        """Test that classification tasks raise ValueError."""
        with pytest.raises(ValueError, match="regression task"):
            RegularizedRegression(make_config("spam"))

    def test_lasso_path(self, make_config, housing_data: TrainingData) -> None:
        """Test the lasso CV curve, path and refit."""
        runner = RegularizedRegression(make_config("housing"))
        result = runner.fit_path(housing_data, Penalty.LASSO)

        assert len(result.alphas) == 12
        assert result.coef_path.shape[0] == 12
        assert result.n_nonzero[0] == 0
        assert result.n_nonzero[-1] > 0
        assert result.rule == SelectionRule.ONE_SE
        assert result.selected_alpha == result.alpha_1se
        assert result.alpha_1se >= result.alpha_min
        assert list(result.coefficients().index) == list(result.coef_path.columns)
        assert list(result.cv_table().columns) == ["alpha", "cv_mse", "cv_se", "n_nonzero"]

    def test_min_rule_ridge(self, make_config, housing_data: TrainingData) -> None:
        """Test ridge with the minimum rule keeps every coefficient."""
        config = make_config("housing", regularization={"rule": "min"})
        result = RegularizedRegression(config).fit_path(housing_data, Penalty.RIDGE)
        assert result.l1_ratio == 0.0
        assert result.selected_alpha == result.alpha_min
        assert result.alpha_min == result.alphas[np.argmin(result.cv_mse)]
        assert np.count_nonzero(result.coefficients()) == result.coef_path.shape[1]

    def test_ridge_leaves_null_model(
        self, make_config, housing_data: TrainingData
    ) -> None:
        """Test that ridge on a price-scale target learns the signal."""
        config = make_config("housing", regularization={"rule": "min"})
        result = RegularizedRegression(config).fit_path(housing_data, Penalty.RIDGE)
        y = housing_data.y_train.to_numpy(dtype=float)

        assert result.y_scale == pytest.approx(np.std(y))
        # the largest alpha is essentially the intercept-only model
        assert result.cv_mse[0] == pytest.approx(np.var(y), rel=0.25)
        assert np.argmin(result.cv_mse) > 0
        assert result.cv_mse.min() < 0.5 * result.cv_mse[0]

        ols = LinearRegression().fit(
            result.pipeline.named_steps["preprocessor"].transform(housing_data.X_train),
            y,
        )
        smallest = result.coef_path.iloc[-1].to_numpy()
        assert np.linalg.norm(smallest) > 0.3 * np.linalg.norm(ols.coef_)

    def test_fit_all(self, make_config, housing_data: TrainingData) -> None:
        """Test that every configured penalty is fit."""
        results = RegularizedRegression(make_config("housing")).fit_all(housing_data)
        assert list(results) == [Penalty.RIDGE, Penalty.LASSO, Penalty.ELASTIC_NET]
        assert results[Penalty.ELASTIC_NET].l1_ratio == 0.5
