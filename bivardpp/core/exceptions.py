"""Custom exceptions for the composite likelihood engine.

Exception Hierarchy:
    LikelihoodError (base)
    ├── NumericalInstabilityError (NaN/Inf in a likelihood term)
    ├── KernelMatrixError (kernel matrix singular or not positive definite)
    └── InputValidationError (malformed point pattern or domain)

Infeasible parameters are not errors: they are reported through the
constraint vector, a zero gradient or the worst-objective sentinel so the
optimizer can steer back into the feasible region.

Examples
--------
>>> try:
...     value = engine.evaluate(x)
... except NumericalInstabilityError as e:
...     logger.error(f"Objective undefined at {x}: {e}")
...     raise
"""

from __future__ import annotations


class LikelihoodError(Exception):
    """Base exception for all likelihood engine errors.

    Attributes
    ----------
    error_context : dict
        Additional context about the error (parameters, term values, ...)
    """

    def __init__(self, message: str, error_context: dict | None = None):
        super().__init__(message)
        self.error_context = error_context or {}

    def __str__(self) -> str:
        """Return formatted error message with context."""
        base_msg = super().__str__()
        if self.error_context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.error_context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


class NumericalInstabilityError(LikelihoodError):
    """Raised when a likelihood term evaluates to NaN or Inf.

    This is fatal for the current evaluation. It usually means degenerate
    parameters (vanishing kernel widths, amplitudes at their bound) or a
    kernel matrix too ill-conditioned to be useful.

    Attributes
    ----------
    detection_point : str
        Where the non-finite value was found ('integral', 'log_determinant',
        'kernel_matrix', 'objective', 'gradient')
    """

    def __init__(
        self,
        message: str,
        detection_point: str | None = None,
        error_context: dict | None = None,
    ):
        context = error_context or {}
        if detection_point:
            context["detection_point"] = detection_point

        super().__init__(message, context)
        self.detection_point = detection_point


class KernelMatrixError(LikelihoodError):
    """Raised when the kernel matrix cannot be factorized.

    Distinguishes a singular or non-positive-definite kernel matrix from a
    finite but small determinant.

    Attributes
    ----------
    sample_size : int
        Order of the matrix that failed to factorize
    """

    def __init__(
        self,
        message: str,
        sample_size: int | None = None,
        error_context: dict | None = None,
    ):
        context = error_context or {}
        if sample_size is not None:
            context["sample_size"] = sample_size

        super().__init__(message, context)
        self.sample_size = sample_size


class InputValidationError(LikelihoodError, ValueError):
    """Raised when points, labels or domain bounds have the wrong shape or
    contain non-finite values."""
