"""Unit tests for finite-difference gradient helpers."""

import numpy as np
import pytest

from bivardpp.core.numpy_gradients import (
    DifferentiationConfig,
    DifferentiationMethod,
    central_difference_gradient,
    finite_difference_gradient,
    validate_gradient_accuracy,
)


def cubic(x):
    return float(x[0] ** 3 + 2.0 * x[0] * x[1] - np.sin(x[2]))


def cubic_gradient(x):
    return np.array([3.0 * x[0] ** 2 + 2.0 * x[1], 2.0 * x[0], -np.cos(x[2])])


X = np.array([0.7, -1.3, 0.4])


class TestFiniteDifferences:
    def test_central(self):
        np.testing.assert_allclose(central_difference_gradient(cubic, X), cubic_gradient(X), rtol=1e-8)

    def test_fixed_step(self):
        np.testing.assert_allclose(
            central_difference_gradient(cubic, X, step=1e-5), cubic_gradient(X), rtol=1e-8
        )

    def test_forward(self):
        result = finite_difference_gradient(
            cubic, X, DifferentiationConfig(method=DifferentiationMethod.FORWARD, step_size=1e-7)
        )
        np.testing.assert_allclose(result.gradient, cubic_gradient(X), rtol=1e-5)
        assert result.function_calls == X.size + 1

    def test_richardson(self):
        config = DifferentiationConfig(method=DifferentiationMethod.RICHARDSON, step_size=1e-2)
        result = finite_difference_gradient(cubic, X, config)
        np.testing.assert_allclose(result.gradient, cubic_gradient(X), rtol=1e-9)
        assert result.function_calls == 2 * config.richardson_terms * X.size

    def test_minimum_step_at_zero(self):
        result = finite_difference_gradient(cubic, np.zeros(3))
        assert np.all(result.step_sizes == DifferentiationConfig().min_step)

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown finite difference method"):
            finite_difference_gradient(cubic, X, DifferentiationConfig(method="complex"))

    def test_input_is_not_modified(self):
        x = X.copy()
        finite_difference_gradient(cubic, x)
        np.testing.assert_array_equal(x, X)


class TestValidation:
    def test_accurate_gradient(self):
        report = validate_gradient_accuracy(cubic, X, cubic_gradient(X))
        assert report["accuracy_ok"]
        assert report["method"] == DifferentiationMethod.CENTRAL
        assert report["max_error"] < 1e-6

    def test_wrong_gradient_is_flagged(self):
        wrong = cubic_gradient(X) + np.array([0.0, 0.1, 0.0])
        report = validate_gradient_accuracy(cubic, X, wrong)
        assert not report["accuracy_ok"]
        assert report["absolute_error"][1] == pytest.approx(0.1, rel=1e-4)
