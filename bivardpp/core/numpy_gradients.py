"""Finite-Difference Gradient Checks
=================================

Numerical differentiation of the composite likelihood objective, used to
verify the analytic gradient returned by the engine.

Each partial derivative costs two objective evaluations (central scheme) or
several more (Richardson extrapolation). The objective caches its terms by
parameter vector, so the probes never disturb a subsequent analytic call:
the parameter mapper sees the perturbed vector as a change and recomputes.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from bivardpp.utils.logging import get_logger, log_performance

logger = get_logger(__name__)

EPS = np.finfo(float).eps
CBRT_EPS = EPS ** (1 / 3)  # ~6e-6, balances truncation and rounding for central differences


class DifferentiationMethod:
    """Available finite-difference schemes."""

    CENTRAL = "central"
    FORWARD = "forward"
    RICHARDSON = "richardson"


@dataclass
class DifferentiationConfig:
    """Configuration for numerical differentiation."""

    method: str = DifferentiationMethod.CENTRAL
    step_size: float | None = None  # relative step scaled by |x| if None
    relative_step: float = CBRT_EPS
    min_step: float = 1e-8
    richardson_terms: int = 3


@dataclass
class GradientResult:
    """Numerical gradient with bookkeeping."""

    gradient: np.ndarray
    step_sizes: np.ndarray
    method_used: str = DifferentiationMethod.CENTRAL
    function_calls: int = 0
    warnings: list[str] = field(default_factory=list)


def _step_sizes(x: np.ndarray, config: DifferentiationConfig) -> np.ndarray:
    if config.step_size is not None:
        return np.full_like(x, config.step_size)
    return np.maximum(config.relative_step * np.abs(x), config.min_step)


def _central_difference_single(func: Callable, x: np.ndarray, index: int, h: float) -> float:
    """Central difference for one parameter."""
    x_plus = x.copy()
    x_minus = x.copy()
    x_plus[index] += h
    x_minus[index] -= h

    return (func(x_plus) - func(x_minus)) / (2 * h)


def _forward_difference_single(
    func: Callable, x: np.ndarray, index: int, h: float, f0: float
) -> float:
    x_plus = x.copy()
    x_plus[index] += h

    return (func(x_plus) - f0) / h


def _richardson_single(func: Callable, x: np.ndarray, index: int, h: float, terms: int) -> float:
    """Richardson extrapolation of central differences with halving steps."""
    estimates = np.array([_central_difference_single(func, x, index, h / 2**k) for k in range(terms)])
    for level in range(1, terms):
        estimates = estimates[1:] + (estimates[1:] - estimates[:-1]) / (4**level - 1)
    return float(estimates[0])


@log_performance(threshold=0.5)
def finite_difference_gradient(
    func: Callable[[np.ndarray], float],
    x,
    config: DifferentiationConfig | None = None,
) -> GradientResult:
    """Numerical gradient of a scalar function.

    Args:
        func: Scalar objective taking a parameter vector
        x: Point at which to differentiate
        config: Scheme and step selection

    Returns:
        GradientResult with the gradient and the number of function calls
    """
    config = config or DifferentiationConfig()
    x = np.asarray(x, dtype=float).copy()
    h = _step_sizes(x, config)
    gradient = np.zeros_like(x)

    if config.method == DifferentiationMethod.CENTRAL:
        for i in range(x.size):
            gradient[i] = _central_difference_single(func, x, i, h[i])
        calls = 2 * x.size
    elif config.method == DifferentiationMethod.FORWARD:
        f0 = func(x)
        for i in range(x.size):
            gradient[i] = _forward_difference_single(func, x, i, h[i], f0)
        calls = x.size + 1
    elif config.method == DifferentiationMethod.RICHARDSON:
        for i in range(x.size):
            gradient[i] = _richardson_single(func, x, i, h[i], config.richardson_terms)
        calls = 2 * config.richardson_terms * x.size
    else:
        raise ValueError(f"Unknown finite difference method: {config.method}")

    result = GradientResult(gradient=gradient, step_sizes=h, method_used=config.method, function_calls=calls)
    if not np.all(np.isfinite(gradient)):
        result.warnings.append("non-finite numerical gradient entries")
    return result


def central_difference_gradient(func: Callable[[np.ndarray], float], x, step: float | None = None) -> np.ndarray:
    """Central-difference gradient with a fixed or relative step."""
    config = DifferentiationConfig(method=DifferentiationMethod.CENTRAL, step_size=step)
    return finite_difference_gradient(func, x, config).gradient


def validate_gradient_accuracy(
    func: Callable[[np.ndarray], float],
    x,
    analytical_grad,
    rtol: float = 1e-4,
    atol: float = 1e-6,
    config: DifferentiationConfig | None = None,
) -> dict[str, Any]:
    """Compare an analytical gradient against finite differences.

    Returns:
        Dictionary with the numerical gradient, absolute and relative errors
        and ``accuracy_ok`` (every entry within ``atol + rtol * |numerical|``)
    """
    analytical_grad = np.asarray(analytical_grad, dtype=float)
    result = finite_difference_gradient(func, x, config)
    numerical = result.gradient

    error = np.abs(numerical - analytical_grad)
    accuracy_ok = bool(np.all(error <= atol + rtol * np.abs(numerical)))
    if not accuracy_ok:
        logger.warning(f"Gradient check failed: max abs. error {np.max(error):.3e}")

    return {
        "gradient": numerical,
        "analytical": analytical_grad,
        "method": result.method_used,
        "absolute_error": error,
        "relative_error": error / (np.abs(numerical) + EPS),
        "max_error": float(np.max(error)) if error.size else 0.0,
        "accuracy_ok": accuracy_ok,
        "function_calls": result.function_calls,
    }
