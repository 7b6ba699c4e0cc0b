"""Core Computation Engine for bivardpp
=====================================

Key Components:
- geometry: pairwise distances with optional periodic wrap-around
- parameters: explicit model state (parameters, cache, trace events)
- family_base: parameter mapper and feasibility checker shared by families
- gaussian, bessel: kernel families (kernel matrix and spectral integral)
- spectral: adaptive radial quadrature
- determinant: Cholesky log-determinant with trace-identity gradient
- likelihood: objective assembler exposed to optimizers
"""

from bivardpp.core.bessel import BesselFamily
from bivardpp.core.exceptions import (
    InputValidationError,
    KernelMatrixError,
    LikelihoodError,
    NumericalInstabilityError,
)
from bivardpp.core.family_base import KernelFamily
from bivardpp.core.gaussian import GaussianFamily
from bivardpp.core.geometry import (
    DomainGeometry,
    build_geometry,
    calc_distance_matrix,
    compute_distance_matrix,
    periodic_offsets,
)
from bivardpp.core.likelihood import CompositeLikelihood
from bivardpp.core.models import create_family, get_available_families
from bivardpp.core.parameters import (
    INFEASIBLE,
    NUM_CONSTRAINTS,
    WORST_OBJECTIVE,
    EvaluationCache,
    FeasibilityResult,
    ModelParameters,
    TraceEvent,
)
from bivardpp.core.spectral import QuadratureSettings, SpectralIntegrator

__all__ = [
    "BesselFamily",
    "CompositeLikelihood",
    "DomainGeometry",
    "EvaluationCache",
    "FeasibilityResult",
    "GaussianFamily",
    "INFEASIBLE",
    "InputValidationError",
    "KernelFamily",
    "KernelMatrixError",
    "LikelihoodError",
    "ModelParameters",
    "NUM_CONSTRAINTS",
    "NumericalInstabilityError",
    "QuadratureSettings",
    "SpectralIntegrator",
    "TraceEvent",
    "WORST_OBJECTIVE",
    "build_geometry",
    "calc_distance_matrix",
    "compute_distance_matrix",
    "create_family",
    "get_available_families",
    "periodic_offsets",
]
