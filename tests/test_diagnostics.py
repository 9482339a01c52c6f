"""Tests for ensemble and logistic regression diagnostics."""

import numpy as np
import pytest

from tablearn.modeling.data import TrainingData
from tablearn.modeling.diagnostics import (
    boosting_curve,
    forest_oob_score,
    logistic_coefficients,
)
from tablearn.modeling.training import build_pipeline


class TestBoostingCurve:
    """Tests for boosting_curve."""

    def test_classification_curve(self, make_config, spam_data: TrainingData) -> None:
        """Test one misclassification rate per stage."""
        pipeline = build_pipeline(make_config("spam"), spam_data, "Gradient Boosting")
        pipeline.fit(spam_data.X_train, spam_data.y_train)

        curve, best_stage = boosting_curve(pipeline, spam_data.X_test, spam_data.y_test)

        assert list(curve.columns) == ["n_estimators", "test_error"]
        assert len(curve) == 30
        assert curve["test_error"].between(0, 1).all()
        assert 1 <= best_stage <= 30
        assert curve.loc[best_stage - 1, "test_error"] == curve["test_error"].min()

    def test_regression_log_target(
        self, make_config, housing_data: TrainingData
    ) -> None:
        """Test that MSE is reported on the original price scale."""
        config = make_config("housing", training={"target_transformation": "log1p"})
        pipeline = build_pipeline(config, housing_data, "Gradient Boosting")
        pipeline.fit(housing_data.X_train, housing_data.y_train)

        curve, _ = boosting_curve(pipeline, housing_data.X_test, housing_data.y_test)
        # squared errors of prices in the millions
        assert curve["test_error"].min() > 1e6

    def test_not_boosting(self, make_config, spam_data: TrainingData) -> None:
        """Test that models without staged predictions raise TypeError."""
        pipeline = build_pipeline(make_config("spam"), spam_data, "CART")
        pipeline.fit(spam_data.X_train, spam_data.y_train)
        with pytest.raises(TypeError, match="staged"):
            boosting_curve(pipeline, spam_data.X_test, spam_data.y_test)


class TestForestOOB:
    """Tests for forest_oob_score."""

    def test_oob_score(self, make_config, spam_data: TrainingData) -> None:
        """Test that the OOB accuracy is reported."""
        pipeline = build_pipeline(make_config("spam"), spam_data, "Random Forest")
        pipeline.fit(spam_data.X_train, spam_data.y_train)
        score = forest_oob_score(pipeline)
        assert score is not None
        assert 0.0 <= score <= 1.0

    def test_without_oob(self, make_config, spam_data: TrainingData) -> None:
        """Test None when the forest was fit without OOB scoring."""
        pipeline = build_pipeline(
            make_config("spam"), spam_data, "Random Forest", oob_score=False
        )
        pipeline.fit(spam_data.X_train, spam_data.y_train)
        assert forest_oob_score(pipeline) is None


class TestLogisticCoefficients:
    """Tests for logistic_coefficients."""

    def test_odds_ratios(self, make_config, spam_data: TrainingData) -> None:
        """Test the coefficient table and its ordering."""
        pipeline = build_pipeline(make_config("spam"), spam_data, "Logistic Regression")
        pipeline.fit(spam_data.X_train, spam_data.y_train)

        table = logistic_coefficients(pipeline)

        assert list(table.columns) == ["feature", "coef", "odds_ratio"]
        assert set(table["feature"]) == set(spam_data.feature_names)
        np.testing.assert_allclose(table["odds_ratio"], np.exp(table["coef"]))
        assert table["coef"].abs().is_monotonic_decreasing

    def test_no_coefficients(self, make_config, spam_data: TrainingData) -> None:
        """Test that tree models raise TypeError."""
        pipeline = build_pipeline(make_config("spam"), spam_data, "CART")
        pipeline.fit(spam_data.X_train, spam_data.y_train)
        with pytest.raises(TypeError, match="coefficients"):
            logistic_coefficients(pipeline)
