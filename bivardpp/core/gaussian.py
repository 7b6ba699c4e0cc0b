"""Gaussian Kernel Family
======================

Bivariate Gaussian-type kernel with spectral densities

    Ĉ_11(ω) = k1 exp(-π² α1² |ω|²)
    Ĉ_22(ω) = k2 exp(-π² α2² |ω|²)
    Ĉ_12(ω) = k12 exp(-π² |ω|² / α12²)

and blockwise L-spectrum x / (1 - x) = Σ_{k≥1} x^k. The inverse Fourier
transform of each power is again Gaussian, so the pairwise kernel is the
series

    L_ii(h) = Σ_k k_i^k / (π^{D/2} α_i^D k^{D/2}) exp(-|h|² / (k α_i²))
    L_12(h) = Σ_k k12^k β^D / (π^{D/2} k^{D/2}) exp(-|h|² β² / k),  β = 1/α12

truncated after ``series_terms`` terms. The amplitude relation is
k = rho π^{D/2} α^D, and the cross width is bounded below by the quadratic
mean sqrt((α1² + α2²) / 2).

The spectral integral term

    I = ∫_{R^D} -log det(I + L̂(ω)) dω

depends on |ω| only and is evaluated by radial quadrature.
"""

import math
from typing import NamedTuple

import numpy as np

from bivardpp.core.family_base import KernelFamily
from bivardpp.core.geometry import DomainGeometry
from bivardpp.core.parameters import ModelParameters
from bivardpp.core.special import radial_measure_constant
from bivardpp.utils.logging import get_logger, log_performance

logger = get_logger(__name__)

PI_SQUARED = math.pi**2


class _RadialState(NamedTuple):
    """Spectral quantities at one radius, shared by all partial integrands."""

    r_squared: float
    exp_first: float
    exp_second: float
    exp_cross: float
    a: float
    b: float
    c: float
    denominator: float

    @property
    def g_a(self) -> float:
        return self.c**2 * (1.0 - self.b) / self.denominator + 1.0 / (1.0 - self.a)

    @property
    def g_b(self) -> float:
        return self.c**2 * (1.0 - self.a) / self.denominator + 1.0 / (1.0 - self.b)

    @property
    def g_c(self) -> float:
        numerator = -2.0 * (1.0 - self.c) - 2.0 * self.c * (1.0 - self.a) * (1.0 - self.b)
        return numerator / self.denominator + 2.0 / (1.0 - self.c)

    @property
    def log_det(self) -> float:
        """log det(I + L̂) at this radius."""
        return (
            math.log(self.denominator)
            - math.log1p(-self.a)
            - math.log1p(-self.b)
            - 2.0 * math.log1p(-self.c)
        )


class GaussianFamily(KernelFamily):
    """Gaussian kernel family with series kernel and quadrature integral."""

    name = "gaussian"
    strictly_positive_cross_width = True

    def amplitude_constant(self, dimension: int) -> float:
        return math.pi ** (dimension / 2.0)

    def cross_width_lower_bound(self, alpha1, alpha2):
        bound = math.sqrt((alpha1**2 + alpha2**2) / 2.0)
        if not bound > 0.0:
            return bound, 0.0, 0.0
        return bound, alpha1 / (2.0 * bound), alpha2 / (2.0 * bound)

    # ------------------------------------------------------------------
    # Spectral integral
    # ------------------------------------------------------------------

    def _radial_state_factory(self, params: ModelParameters):
        k1, k2, k12 = params.first_amplitude, params.second_amplitude, params.cross_amplitude
        first = PI_SQUARED * params.first_alpha**2
        second = PI_SQUARED * params.second_alpha**2
        cross = np.divide(PI_SQUARED, np.float64(params.inverse_cross_alpha) ** 2)

        def state(r: float) -> _RadialState:
            r_squared = r * r
            exp_first = math.exp(-first * r_squared)
            exp_second = math.exp(-second * r_squared)
            exp_cross = math.exp(-cross * r_squared)
            a, b, c = k1 * exp_first, k2 * exp_second, k12 * exp_cross
            denominator = (1.0 - c) ** 2 - c * c * (1.0 - a) * (1.0 - b)
            return _RadialState(r_squared, exp_first, exp_second, exp_cross, a, b, c, denominator)

        return state

    def radial_integrands(self, params: ModelParameters, dimension: int):
        """Value integrand and the six partial-derivative integrands.

        Each integrand is ``-c_D r^{D-1} f(r)`` with f the radial log-determinant
        (or its partial derivative), so that 2π times its integral over [0, ∞)
        is the D-dimensional integral.
        """
        state = self._radial_state_factory(params)
        weight = radial_measure_constant(dimension)
        alpha1, alpha2 = params.first_alpha, params.second_alpha
        inverse_cross_alpha = params.inverse_cross_alpha

        def radial(select):
            def integrand(r: float) -> float:
                return -weight * r ** (dimension - 1) * select(state(r))

            return integrand

        value = radial(lambda s: s.log_det)
        partials = [
            radial(lambda s: s.g_a * s.exp_first),
            radial(lambda s: s.g_b * s.exp_second),
            radial(lambda s: s.g_c * s.exp_cross),
            radial(lambda s: s.g_a * (-2.0 * PI_SQUARED * alpha1 * s.r_squared * s.a)),
            radial(lambda s: s.g_b * (-2.0 * PI_SQUARED * alpha2 * s.r_squared * s.b)),
            radial(
                lambda s: s.g_c
                * (s.c * 2.0 * PI_SQUARED * s.r_squared / inverse_cross_alpha**3)
            ),
        ]
        return value, partials

    @log_performance(threshold=0.5)
    def compute_integral(self, params: ModelParameters, dimension: int):
        value, partials = self.radial_integrands(params, dimension)
        return self.integrator.integrate(value, partials)

    # ------------------------------------------------------------------
    # Kernel matrix
    # ------------------------------------------------------------------

    def kernel_matrices(self, params: ModelParameters, geometry: DomainGeometry):
        """Series kernel and derivative matrices, dispatched by label sum."""
        dimension = geometry.dimension
        squared = geometry.squared_distances
        label_sums = geometry.label_sums

        # numpy scalars so degenerate widths give inf/nan instead of raising
        k1, k2, k12, alpha1, alpha2, beta = (
            np.float64(value) for value in params.physical_vector()
        )
        norm = math.pi ** (dimension / 2.0)

        same_first = np.zeros_like(squared)
        same_second = np.zeros_like(squared)
        cross = np.zeros_like(squared)
        d_k1 = np.zeros_like(squared)
        d_k2 = np.zeros_like(squared)
        d_k12 = np.zeros_like(squared)
        d_alpha1 = np.zeros_like(squared)
        d_alpha2 = np.zeros_like(squared)
        d_beta = np.zeros_like(squared)

        for k in range(1, self.series_terms + 1):
            scale = norm * k ** (dimension / 2.0)

            shape = np.exp(-squared / (k * alpha1**2)) / (scale * alpha1**dimension)
            term = k1**k * shape
            same_first += term
            d_k1 += k * k1 ** (k - 1) * shape
            d_alpha1 += term * (-dimension / alpha1 + 2.0 * squared / (k * alpha1**3))

            shape = np.exp(-squared / (k * alpha2**2)) / (scale * alpha2**dimension)
            term = k2**k * shape
            same_second += term
            d_k2 += k * k2 ** (k - 1) * shape
            d_alpha2 += term * (-dimension / alpha2 + 2.0 * squared / (k * alpha2**3))

            decay = np.exp(-squared * beta**2 / k) / scale
            cross += k12**k * beta**dimension * decay
            d_k12 += k * k12 ** (k - 1) * beta**dimension * decay
            d_beta += k12**k * decay * (
                dimension * beta ** (dimension - 1) - 2.0 * squared * beta ** (dimension + 1) / k
            )

        first_pairs = label_sums == 2
        second_pairs = label_sums == 4
        kernel = np.where(first_pairs, same_first, np.where(second_pairs, same_second, cross))

        zero = np.zeros_like(squared)
        cross_pairs = label_sums == 3
        derivatives = [
            np.where(first_pairs, d_k1, zero),
            np.where(second_pairs, d_k2, zero),
            np.where(cross_pairs, d_k12, zero),
            np.where(first_pairs, d_alpha1, zero),
            np.where(second_pairs, d_alpha2, zero),
            np.where(cross_pairs, d_beta, zero),
        ]
        return kernel, derivatives
