"""Kernel Family Interface
=======================

Shared parameter mapping and feasibility logic for the kernel families.

Every family is a stationary bivariate kernel parameterized by

    k1, k2     per-type amplitudes, the spectral densities at zero frequency
    k12        cross amplitude
    alpha_i    per-type kernel widths
    1/alpha12  inverse cross width

with the amplitude relation k = rho * c_D * alpha^D tying each amplitude to
its intensity rho and width. Families supply the constant c_D, the lower
bound on the cross width, and the two likelihood terms. Everything that only
depends on those hooks lives here so the objective assembler stays
family-agnostic.

Optimizer vector → physical parameters:

    alpha_i   = (k_i / (rho_i c_D))^{1/D}            intensities fixed
    alpha_i   = alpha_i* · U,  rho_i = k_i / (c_D alpha_i^D)    estimated
    1/alpha12 = beta12 / lower_bound(alpha1, alpha2)
    k12       = k12* · sqrt(max(0, min((1-k1)(1-k2), k1 k2)))
"""

import math
from abc import ABC, abstractmethod

import numpy as np

from bivardpp.core.determinant import log_determinant_with_gradient
from bivardpp.core.exceptions import InputValidationError
from bivardpp.core.geometry import DomainGeometry
from bivardpp.core.parameters import (
    INFEASIBLE,
    N_PHYSICAL,
    NUM_CONSTRAINTS,
    RAW_PARAMETER_NAMES,
    FeasibilityResult,
    ModelParameters,
)
from bivardpp.core.special import alpha_upper_bound
from bivardpp.core.spectral import SpectralIntegrator
from bivardpp.utils.logging import get_logger

logger = get_logger(__name__)

# Row indices of the physical parameter vector
K1, K2, K12, ALPHA1, ALPHA2, INV_ALPHA12 = range(N_PHYSICAL)


def cross_amplitude_bound(k1: float, k2: float) -> tuple[float, float, float]:
    """Largest admissible cross amplitude and its partial derivatives.

    s = sqrt(max(0, min((1-k1)(1-k2), k1 k2))). Ties between the two branches
    of the minimum are resolved towards (1-k1)(1-k2).

    Returns:
        (s, ds/dk1, ds/dk2); both derivatives are zero where s vanishes
    """
    upper = (1.0 - k1) * (1.0 - k2)
    product = k1 * k2
    if upper <= product:
        bound, d_k1, d_k2 = upper, -(1.0 - k2), -(1.0 - k1)
    else:
        bound, d_k1, d_k2 = product, k2, k1

    if not bound > 0.0:
        return 0.0, 0.0, 0.0

    s = math.sqrt(bound)
    return s, d_k1 / (2.0 * s), d_k2 / (2.0 * s)


class KernelFamily(ABC):
    """Abstract base class for bivariate kernel families.

    Subclasses implement the family-specific hooks; the parameter mapper,
    its Jacobian and the feasibility checker are shared.
    """

    name = "base"

    #: Whether the inverse cross width must be strictly positive
    strictly_positive_cross_width = False

    def __init__(self, series_terms: int = 50, integrator: SpectralIntegrator | None = None):
        self.series_terms = int(series_terms)
        self.integrator = integrator or SpectralIntegrator()

    # ------------------------------------------------------------------
    # Family hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def amplitude_constant(self, dimension: int) -> float:
        """Constant c_D of the amplitude relation k = rho c_D alpha^D."""

    @abstractmethod
    def cross_width_lower_bound(self, alpha1: float, alpha2: float) -> tuple[float, float, float]:
        """Smallest admissible cross width and its partial derivatives.

        Returns:
            (bound, d bound / d alpha1, d bound / d alpha2)
        """

    @abstractmethod
    def compute_integral(self, params: ModelParameters, dimension: int) -> tuple[float, np.ndarray]:
        """Spectral integral term and its gradient in physical order."""

    @abstractmethod
    def kernel_matrices(
        self, params: ModelParameters, geometry: DomainGeometry
    ) -> tuple[np.ndarray, list[np.ndarray]]:
        """Kernel matrix and its six derivative matrices in physical order."""

    def compute_log_determinant(
        self, params: ModelParameters, geometry: DomainGeometry
    ) -> tuple[float, np.ndarray]:
        """Log-determinant of the kernel matrix and its gradient in physical order."""
        kernel, derivatives = self.kernel_matrices(params, geometry)
        return log_determinant_with_gradient(kernel, derivatives)

    # ------------------------------------------------------------------
    # Amplitude relation
    # ------------------------------------------------------------------

    def retrieve_alpha(self, amplitude: float, intensity: float, dimension: int) -> tuple[float, float]:
        """Kernel width from amplitude and intensity.

        Returns:
            (alpha, d alpha / d amplitude); (0, 0) for non-positive amplitudes
        """
        if not amplitude > 0.0:
            return 0.0, 0.0
        alpha = (amplitude / (intensity * self.amplitude_constant(dimension))) ** (1.0 / dimension)
        return alpha, alpha / (dimension * amplitude)

    def retrieve_intensity(self, amplitude: float, alpha: float, dimension: int) -> float:
        """Intensity implied by amplitude and kernel width."""
        if not alpha > 0.0:
            return math.nan
        return amplitude / (self.amplitude_constant(dimension) * alpha**dimension)

    # ------------------------------------------------------------------
    # Parameter mapper
    # ------------------------------------------------------------------

    def map_parameters(self, raw, params: ModelParameters, geometry: DomainGeometry) -> bool:
        """Store the optimizer vector in ``params`` and refresh derived values.

        A raw value is stored only when it differs exactly from the stored
        one.

        Returns:
            True when any raw value changed
        """
        raw = np.asarray(raw, dtype=float).reshape(-1)
        if raw.size != params.n_parameters:
            raise InputValidationError(
                f"Expected {params.n_parameters} parameters, got {raw.size}",
                {"estimate_intensities": params.estimate_intensities},
            )

        changed = False
        for name, value in zip(RAW_PARAMETER_NAMES, raw):
            if getattr(params, name) != value:
                setattr(params, name, float(value))
                changed = True

        if changed:
            self._derive_physical(params, geometry)
        return changed

    def _derive_physical(self, params: ModelParameters, geometry: DomainGeometry) -> None:
        dimension = geometry.dimension

        if params.estimate_intensities:
            upper = alpha_upper_bound(geometry.volume, dimension)
            params.first_alpha = params.normalized_first_alpha * upper
            params.second_alpha = params.normalized_second_alpha * upper
            params.first_intensity = self.retrieve_intensity(
                params.first_amplitude, params.first_alpha, dimension
            )
            params.second_intensity = self.retrieve_intensity(
                params.second_amplitude, params.second_alpha, dimension
            )
        else:
            params.first_alpha, _ = self.retrieve_alpha(
                params.first_amplitude, params.first_intensity, dimension
            )
            params.second_alpha, _ = self.retrieve_alpha(
                params.second_amplitude, params.second_intensity, dimension
            )

        bound, _, _ = self.cross_width_lower_bound(params.first_alpha, params.second_alpha)
        params.inverse_cross_alpha = params.cross_beta / bound if bound > 0.0 else math.inf

        s, _, _ = cross_amplitude_bound(params.first_amplitude, params.second_amplitude)
        params.cross_amplitude = params.normalized_cross_amplitude * s

    def parameter_jacobian(self, params: ModelParameters, geometry: DomainGeometry) -> np.ndarray:
        """Jacobian d(physical) / d(raw) of shape (6, n_parameters).

        Rows follow the physical order (k1, k2, k12, alpha1, alpha2,
        1/alpha12); columns follow the optimizer vector.
        """
        dimension = geometry.dimension
        jacobian = np.zeros((N_PHYSICAL, params.n_parameters))
        jacobian[K1, 0] = 1.0
        jacobian[K2, 1] = 1.0

        s, ds_dk1, ds_dk2 = cross_amplitude_bound(params.first_amplitude, params.second_amplitude)
        jacobian[K12, 0] = params.normalized_cross_amplitude * ds_dk1
        jacobian[K12, 1] = params.normalized_cross_amplitude * ds_dk2
        jacobian[K12, 2] = s

        if params.estimate_intensities:
            upper = alpha_upper_bound(geometry.volume, dimension)
            jacobian[ALPHA1, 4] = upper
            jacobian[ALPHA2, 5] = upper
        else:
            _, jacobian[ALPHA1, 0] = self.retrieve_alpha(
                params.first_amplitude, params.first_intensity, dimension
            )
            _, jacobian[ALPHA2, 1] = self.retrieve_alpha(
                params.second_amplitude, params.second_intensity, dimension
            )

        bound, d_alpha1, d_alpha2 = self.cross_width_lower_bound(
            params.first_alpha, params.second_alpha
        )
        if bound > 0.0:
            jacobian[INV_ALPHA12, 3] = 1.0 / bound
            scale = -params.cross_beta / bound**2
            jacobian[INV_ALPHA12] += scale * (
                d_alpha1 * jacobian[ALPHA1] + d_alpha2 * jacobian[ALPHA2]
            )
        return jacobian

    # ------------------------------------------------------------------
    # Feasibility checker
    # ------------------------------------------------------------------

    def constraint_checks(self, params: ModelParameters) -> list[bool]:
        """Truth value of each constraint, in priority order.

        0. 0 < k1 < 1 and alpha1 > 0
        1. 0 < k2 < 1 and alpha2 > 0
        2. 0 <= lower_bound(alpha1, alpha2) / alpha12 <= 1
        3. k12² <= k1 k2
        4. k12² < (1 - k1)(1 - k2)

        Any NaN makes the affected comparison, and so the constraint, fail.
        """
        k1, k2, k12 = params.first_amplitude, params.second_amplitude, params.cross_amplitude
        alpha1, alpha2 = params.first_alpha, params.second_alpha
        inverse_cross_alpha = params.inverse_cross_alpha

        bound, _, _ = self.cross_width_lower_bound(alpha1, alpha2)
        width_ratio = inverse_cross_alpha * bound
        width_ok = 0.0 <= width_ratio <= 1.0
        if self.strictly_positive_cross_width:
            width_ok = width_ok and inverse_cross_alpha > 0.0

        return [
            0.0 < k1 < 1.0 and alpha1 > 0.0,
            0.0 < k2 < 1.0 and alpha2 > 0.0,
            width_ok,
            k12 * k12 <= k1 * k2,
            k12 * k12 < (1.0 - k1) * (1.0 - k2),
        ]

    def check_feasibility(self, params: ModelParameters, exhaustive: bool = False) -> FeasibilityResult:
        """Evaluate the constraint vector.

        By default the check stops at the first violated constraint, which is
        the only entry set to ``INFEASIBLE``. With ``exhaustive=True`` every
        violated entry is recorded.
        """
        constraints = np.zeros(NUM_CONSTRAINTS)
        violated = []
        for index, satisfied in enumerate(self.constraint_checks(params)):
            if satisfied:
                continue
            constraints[index] = INFEASIBLE
            violated.append(index)
            if not exhaustive:
                break

        if violated:
            logger.debug(f"{self.name}: constraints violated {violated}")
        return FeasibilityResult(satisfied=not violated, constraints=constraints, violated=violated)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(series_terms={self.series_terms})"
