"""bivardpp: Composite Likelihood for Two-Type Determinantal Point Patterns
=========================================================================

Differentiable composite log-likelihood objective and gradient for bivariate
determinantal point process models, for use with gradient-based optimizers.

Core Equation:
    f(x) = -2 (2V + V · I(θ) + log det L_θ)

Kernel Families:
- Gaussian: series kernel, spectral integral by adaptive quadrature
- Bessel: closed-form kernel and spectral integral

Optimizer Vector:
- Fixed intensities (4 parameters): [k1, k2, k12*, beta12]
- Estimated intensities (6 parameters): [k1, k2, k12*, beta12, alpha1*, alpha2*]

Quick Start:
    >>> from bivardpp import CompositeLikelihood
    >>> engine = CompositeLikelihood(family="gaussian", periodic=True)
    >>> engine.set_inputs(points, labels, lower=[0, 0], upper=[1, 1])
    >>> value, grad = engine.evaluate_with_gradient(x)
"""

__version__ = "1.0.0"

from bivardpp.config import ConfigManager, ConfigurationError, LikelihoodConfig, load_config
from bivardpp.core import (
    INFEASIBLE,
    WORST_OBJECTIVE,
    BesselFamily,
    CompositeLikelihood,
    DomainGeometry,
    GaussianFamily,
    KernelFamily,
    KernelMatrixError,
    LikelihoodError,
    NumericalInstabilityError,
    InputValidationError,
    TraceEvent,
    build_geometry,
    calc_distance_matrix,
    create_family,
    get_available_families,
)
from bivardpp.utils import configure_logging, get_logger

__all__ = [
    "__version__",
    "CompositeLikelihood",
    "KernelFamily",
    "GaussianFamily",
    "BesselFamily",
    "create_family",
    "get_available_families",
    "DomainGeometry",
    "build_geometry",
    "calc_distance_matrix",
    "TraceEvent",
    "INFEASIBLE",
    "WORST_OBJECTIVE",
    "LikelihoodError",
    "NumericalInstabilityError",
    "KernelMatrixError",
    "InputValidationError",
    "ConfigManager",
    "ConfigurationError",
    "LikelihoodConfig",
    "load_config",
    "configure_logging",
    "get_logger",
]
