"""Bessel Kernel Family
====================

Bivariate Bessel-type kernel whose spectral densities are flat on balls:

    Ĉ_ii(ω) = k_i 1{|ω| <= r_i},    r_i  = κ / α_i
    Ĉ_12(ω) = k12 1{|ω| <= r12},    r12  = κ / α12,    κ = sqrt(D/2) / π

With the cross width bounded below by max(α1, α2), the cross ball lies inside
both per-type balls and L̂ = Ĉ (I - Ĉ)⁻¹ is piecewise constant:

    |ω| <= r12        [[P11, P12], [P12, P22]]
                      P11 = (1-k2)/Δ - 1, P22 = (1-k1)/Δ - 1, P12 = k12/Δ
                      Δ = (1-k1)(1-k2) - k12²
    r12 < |ω| <= r_i  a_i = k_i / (1 - k_i) on the diagonal

The kernel is therefore a combination of ball transforms

    B(h; r) = ∫_{|ω|<=r} exp(2πi ω·h) dω = π^ν r^D R_ν(2π r h),    ν = D/2

with R_ν(t) = J_ν(t) / (t/2)^ν:

    L_11 = (P11 - a1) B(h; r12) + a1 B(h; r1)
    L_12 = P12 B(h; r12)

The amplitude relation is k = rho (2π/D)^{D/2} Γ(1 + D/2) α^D. Since
-log det(I + L̂) = log det(I - Ĉ) is piecewise constant too, the spectral
integral reduces to a sum over ball volumes and is evaluated in closed form.
"""

import math

import numpy as np

from bivardpp.core.exceptions import NumericalInstabilityError
from bivardpp.core.family_base import KernelFamily
from bivardpp.core.geometry import DomainGeometry
from bivardpp.core.parameters import ModelParameters
from bivardpp.core.special import ball_volume, bessel_j_ratio, radial_measure_constant
from bivardpp.utils.logging import get_logger

logger = get_logger(__name__)


def spectral_radius_scale(dimension: int) -> float:
    """κ = sqrt(D/2) / π, the radius of the spectral ball of a unit-width kernel."""
    return math.sqrt(dimension / 2.0) / math.pi


def ball_transform(h, radius, dimension: int):
    """Inverse Fourier transform of the indicator of a ball: π^ν r^D R_ν(2π r h)."""
    order = dimension / 2.0
    t = 2.0 * math.pi * radius * np.asarray(h, dtype=float)
    return math.pi**order * radius**dimension * bessel_j_ratio(t, order)


def ball_transform_radius_derivative(h, radius, dimension: int):
    """d/dr of ``ball_transform``: π^ν r^{D-1} [D R_ν(t) - (t²/2) R_{ν+1}(t)]."""
    order = dimension / 2.0
    t = 2.0 * math.pi * radius * np.asarray(h, dtype=float)
    bracket = dimension * bessel_j_ratio(t, order) - 0.5 * t**2 * bessel_j_ratio(t, order + 1.0)
    return math.pi**order * radius ** (dimension - 1) * bracket


class BesselFamily(KernelFamily):
    """Bessel kernel family with closed-form kernel and spectral integral."""

    name = "bessel"

    def amplitude_constant(self, dimension: int) -> float:
        half = dimension / 2.0
        return (2.0 * math.pi / dimension) ** half * math.gamma(1.0 + half)

    def cross_width_lower_bound(self, alpha1, alpha2):
        if alpha1 >= alpha2:
            return alpha1, 1.0, 0.0
        return alpha2, 0.0, 1.0

    def spectral_radii(self, params: ModelParameters, dimension: int) -> tuple[float, float, float]:
        """Radii (r1, r2, r12) of the spectral balls."""
        kappa = spectral_radius_scale(dimension)
        alpha1 = np.float64(params.first_alpha)
        alpha2 = np.float64(params.second_alpha)
        return kappa / alpha1, kappa / alpha2, kappa * params.inverse_cross_alpha

    @staticmethod
    def _interaction_terms(params: ModelParameters) -> dict:
        """P-matrix entries, diagonal L-spectra and their amplitude partials."""
        k1, k2, k12 = (np.float64(v) for v in params.physical_vector()[:3])
        delta = (1.0 - k1) * (1.0 - k2) - k12**2
        delta_sq = delta**2
        return {
            "delta": delta,
            "p11": (1.0 - k2) / delta - 1.0,
            "p22": (1.0 - k1) / delta - 1.0,
            "p12": k12 / delta,
            "a1": k1 / (1.0 - k1),
            "a2": k2 / (1.0 - k2),
            # partials with respect to (k1, k2, k12)
            "p11_grad": ((1.0 - k2) ** 2 / delta_sq, k12**2 / delta_sq, 2.0 * k12 * (1.0 - k2) / delta_sq),
            "p22_grad": (k12**2 / delta_sq, (1.0 - k1) ** 2 / delta_sq, 2.0 * k12 * (1.0 - k1) / delta_sq),
            "p12_grad": (
                k12 * (1.0 - k2) / delta_sq,
                k12 * (1.0 - k1) / delta_sq,
                (delta + 2.0 * k12**2) / delta_sq,
            ),
            "a1_grad": 1.0 / (1.0 - k1) ** 2,
            "a2_grad": 1.0 / (1.0 - k2) ** 2,
        }

    # ------------------------------------------------------------------
    # Spectral integral
    # ------------------------------------------------------------------

    def radial_integrand(self, params: ModelParameters, dimension: int):
        """Piecewise-constant radial integrand ``c_D r^{D-1} log det(I - Ĉ)``.

        Not used by ``compute_integral``; it documents the closed form and
        can be integrated numerically to cross-check it.
        """
        r1, r2, r12 = self.spectral_radii(params, dimension)
        k1, k2 = params.first_amplitude, params.second_amplitude
        delta = self._interaction_terms(params)["delta"]
        weight = radial_measure_constant(dimension)

        def integrand(r: float) -> float:
            if r <= r12:
                log_det = math.log(delta)
            else:
                log_det = (math.log1p(-k1) if r <= r1 else 0.0) + (
                    math.log1p(-k2) if r <= r2 else 0.0
                )
            return weight * r ** (dimension - 1) * log_det

        return integrand

    def compute_integral(self, params: ModelParameters, dimension: int):
        """Closed-form integral and gradient in physical order.

        I = V12 (log Δ - log(1-k1) - log(1-k2)) + V1 log(1-k1) + V2 log(1-k2)
        where V is the volume of the corresponding spectral ball.
        """
        r1, r2, r12 = self.spectral_radii(params, dimension)
        k1, k2, k12 = (np.float64(v) for v in params.physical_vector()[:3])
        alpha1, alpha2 = np.float64(params.first_alpha), np.float64(params.second_alpha)
        inverse_cross_alpha = np.float64(params.inverse_cross_alpha)

        delta = self._interaction_terms(params)["delta"]
        log_first, log_second = np.log1p(-k1), np.log1p(-k2)
        cross_log = np.log(delta) - log_first - log_second

        volume_first = ball_volume(r1, dimension)
        volume_second = ball_volume(r2, dimension)
        volume_cross = ball_volume(r12, dimension)

        value = volume_cross * cross_log + volume_first * log_first + volume_second * log_second

        kappa = spectral_radius_scale(dimension)
        gradient = np.array(
            [
                volume_cross * (-(1.0 - k2) / delta + 1.0 / (1.0 - k1)) - volume_first / (1.0 - k1),
                volume_cross * (-(1.0 - k1) / delta + 1.0 / (1.0 - k2)) - volume_second / (1.0 - k2),
                -2.0 * k12 * volume_cross / delta,
                -dimension * volume_first * log_first / alpha1,
                -dimension * volume_second * log_second / alpha2,
                dimension
                * ball_volume(kappa, dimension)
                * inverse_cross_alpha ** (dimension - 1)
                * cross_log,
            ]
        )

        if not np.isfinite(value) or not np.all(np.isfinite(gradient)):
            raise NumericalInstabilityError(
                "Spectral integral is not finite",
                detection_point="integral",
                error_context={"integral": float(value)},
            )
        return float(value), gradient

    # ------------------------------------------------------------------
    # Kernel matrix
    # ------------------------------------------------------------------

    def kernel_matrices(self, params: ModelParameters, geometry: DomainGeometry):
        """Closed-form kernel and derivative matrices, dispatched by label sum."""
        dimension = geometry.dimension
        distances = geometry.distance_matrix
        label_sums = geometry.label_sums

        r1, r2, r12 = self.spectral_radii(params, dimension)
        alpha1, alpha2 = np.float64(params.first_alpha), np.float64(params.second_alpha)
        kappa = spectral_radius_scale(dimension)
        terms = self._interaction_terms(params)

        first = ball_transform(distances, r1, dimension)
        second = ball_transform(distances, r2, dimension)
        cross = ball_transform(distances, r12, dimension)
        first_slope = ball_transform_radius_derivative(distances, r1, dimension)
        second_slope = ball_transform_radius_derivative(distances, r2, dimension)
        cross_slope = ball_transform_radius_derivative(distances, r12, dimension)

        p11, p22, p12 = terms["p11"], terms["p22"], terms["p12"]
        a1, a2 = terms["a1"], terms["a2"]

        first_pairs = label_sums == 2
        second_pairs = label_sums == 4
        cross_pairs = label_sums == 3

        def dispatch(same_first, same_second, mixed):
            return np.where(first_pairs, same_first, np.where(second_pairs, same_second, mixed))

        kernel = dispatch(
            (p11 - a1) * cross + a1 * first,
            (p22 - a2) * cross + a2 * second,
            p12 * cross,
        )

        zero = np.zeros_like(distances)
        derivatives = []
        # Amplitudes and cross amplitude
        for index, (a1_grad, a2_grad) in enumerate(
            ((terms["a1_grad"], 0.0), (0.0, terms["a2_grad"]), (0.0, 0.0))
        ):
            derivatives.append(
                dispatch(
                    (terms["p11_grad"][index] - a1_grad) * cross + a1_grad * first,
                    (terms["p22_grad"][index] - a2_grad) * cross + a2_grad * second,
                    terms["p12_grad"][index] * cross,
                )
            )
        # Per-type widths enter through r_i = κ / α_i only
        derivatives.append(np.where(first_pairs, a1 * first_slope * (-r1 / alpha1), zero))
        derivatives.append(np.where(second_pairs, a2 * second_slope * (-r2 / alpha2), zero))
        # Inverse cross width through r12 = κ / α12
        derivatives.append(
            kappa * dispatch((p11 - a1) * cross_slope, (p22 - a2) * cross_slope, p12 * cross_slope)
        )
        return kernel, derivatives
