"""Model State for the Composite Likelihood
=========================================

Explicit state structs owned by each engine instance and threaded through
every family call:

- ModelParameters: raw optimizer values plus the derived physical parameters
- FeasibilityResult: outcome of a constraint check
- EvaluationCache: dirty flag, cached likelihood terms and a recompute counter
- TraceEvent: structured snapshot handed to an optional trace sink

Raw parameter order (positional, as passed by the optimizer):
    [k1, k2, k12*, beta12]                    fixed intensities
    [k1, k2, k12*, beta12, alpha1*, alpha2*]  intensities estimated jointly

Physical parameter order (partial derivatives are taken in this order):
    (k1, k2, k12, alpha1, alpha2, inverse_cross_alpha)
"""

import sys
from dataclasses import dataclass, field
from typing import Any

import numpy as np

# Constraint value of a violated feasibility inequality
INFEASIBLE = sys.float_info.max

# Objective returned by evaluate_with_gradient for infeasible parameters
WORST_OBJECTIVE = sys.float_info.max

NUM_CONSTRAINTS = 5

RAW_PARAMETER_NAMES = (
    "first_amplitude",
    "second_amplitude",
    "normalized_cross_amplitude",
    "cross_beta",
    "normalized_first_alpha",
    "normalized_second_alpha",
)

PHYSICAL_PARAMETER_NAMES = (
    "first_amplitude",
    "second_amplitude",
    "cross_amplitude",
    "first_alpha",
    "second_alpha",
    "inverse_cross_alpha",
)

N_PHYSICAL = len(PHYSICAL_PARAMETER_NAMES)


@dataclass
class ModelParameters:
    """Current parameter snapshot of one engine instance.

    Raw values start as NaN so the first assignment always registers as a
    change. Intensities are either supplied (``estimate_intensities`` False)
    or back-derived from amplitude and width.
    """

    estimate_intensities: bool = True

    # Raw optimizer values
    first_amplitude: float = np.nan
    second_amplitude: float = np.nan
    normalized_cross_amplitude: float = np.nan
    cross_beta: float = np.nan
    normalized_first_alpha: float = np.nan
    normalized_second_alpha: float = np.nan

    # Derived physical values
    first_alpha: float = np.nan
    second_alpha: float = np.nan
    inverse_cross_alpha: float = np.nan
    cross_amplitude: float = np.nan
    first_intensity: float = np.nan
    second_intensity: float = np.nan

    @property
    def n_parameters(self) -> int:
        return 6 if self.estimate_intensities else 4

    def raw_vector(self) -> np.ndarray:
        names = RAW_PARAMETER_NAMES[: self.n_parameters]
        return np.array([getattr(self, name) for name in names])

    def physical_vector(self) -> np.ndarray:
        return np.array([getattr(self, name) for name in PHYSICAL_PARAMETER_NAMES])

    def snapshot(self) -> dict[str, float]:
        """Plain dictionary of every raw and derived value."""
        names = set(RAW_PARAMETER_NAMES[: self.n_parameters]) | set(PHYSICAL_PARAMETER_NAMES)
        names |= {"first_intensity", "second_intensity"}
        return {name: float(getattr(self, name)) for name in sorted(names)}


@dataclass
class FeasibilityResult:
    """Outcome of a feasibility check.

    Attributes
    ----------
    satisfied : bool
        True when every constraint holds
    constraints : np.ndarray
        One entry per constraint: 0.0 if satisfied, INFEASIBLE if violated
    violated : list of int
        Indices of the violated constraints that were recorded
    """

    satisfied: bool
    constraints: np.ndarray
    violated: list[int] = field(default_factory=list)


@dataclass
class EvaluationCache:
    """Cached likelihood terms guarded by the dirty flag.

    ``dirty`` is raised by the parameter mapper and cleared only after the
    integral and log-determinant have been recomputed.
    """

    dirty: bool = True
    integral: float = 0.0
    log_determinant: float = 0.0
    integral_gradient: np.ndarray = field(default_factory=lambda: np.zeros(N_PHYSICAL))
    log_determinant_gradient: np.ndarray = field(
        default_factory=lambda: np.zeros(N_PHYSICAL)
    )
    recompute_count: int = 0

    def invalidate(self) -> None:
        self.dirty = True


@dataclass(frozen=True)
class TraceEvent:
    """Structured observation emitted to an injectable trace sink.

    ``kind`` is "parameters" after mapping or "terms" after a recomputation.
    """

    kind: str
    payload: dict[str, Any]
