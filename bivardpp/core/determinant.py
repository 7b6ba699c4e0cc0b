"""Kernel Log-Determinant Evaluator
=================================

Log-determinant of a symmetric positive-definite kernel matrix and its
gradient through the identity

    d/dθ log|L| = trace(L⁻¹ dL/dθ).

The factorization is a Cholesky decomposition: it fails cleanly on singular
or indefinite matrices, which are reported as ``KernelMatrixError`` rather
than as a wrong but finite value. The inverse is formed once from the factor
and reused for every gradient component.
"""

from collections.abc import Sequence

import numpy as np
from scipy import linalg

from bivardpp.core.exceptions import KernelMatrixError, NumericalInstabilityError
from bivardpp.utils.logging import get_logger, log_performance

logger = get_logger(__name__)


def _require_finite(matrix: np.ndarray, name: str) -> None:
    if not np.all(np.isfinite(matrix)):
        raise NumericalInstabilityError(
            f"{name} contains non-finite entries",
            detection_point="kernel_matrix",
            error_context={"n_nonfinite": int(np.count_nonzero(~np.isfinite(matrix)))},
        )


@log_performance(threshold=0.5)
def log_determinant_with_gradient(
    kernel: np.ndarray,
    derivatives: Sequence[np.ndarray],
) -> tuple[float, np.ndarray]:
    """Compute log|L| and trace(L⁻¹ dL/dθ_j) for every derivative matrix.

    Args:
        kernel: Symmetric (N, N) kernel matrix
        derivatives: Symmetric (N, N) derivative matrices, one per parameter

    Returns:
        (log_determinant, gradient)

    Raises:
        NumericalInstabilityError: non-finite matrix entries
        KernelMatrixError: the kernel matrix is singular or not positive definite
    """
    kernel = np.asarray(kernel, dtype=float)
    n_points = kernel.shape[0]
    _require_finite(kernel, "Kernel matrix")
    for derivative in derivatives:
        _require_finite(derivative, "Kernel derivative matrix")

    if n_points == 0:
        return 0.0, np.zeros(len(derivatives))

    try:
        factor = linalg.cho_factor(kernel, lower=True, check_finite=False)
    except linalg.LinAlgError as e:
        raise KernelMatrixError(
            f"Kernel matrix is not positive definite: {e}",
            sample_size=n_points,
        ) from e

    diagonal = np.diag(factor[0])
    log_determinant = 2.0 * float(np.sum(np.log(diagonal)))

    inverse = linalg.cho_solve(factor, np.eye(n_points), check_finite=False)
    # Both matrices are symmetric, so the trace of the product is an
    # elementwise sum.
    gradient = np.array([float(np.sum(inverse * derivative)) for derivative in derivatives])

    if not np.isfinite(log_determinant) or not np.all(np.isfinite(gradient)):
        raise NumericalInstabilityError(
            "Log-determinant is not finite",
            detection_point="log_determinant",
            error_context={"log_determinant": log_determinant},
        )

    logger.debug(f"Log-determinant {log_determinant:.12g} for {n_points} points")
    return log_determinant, gradient
