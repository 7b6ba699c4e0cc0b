"""Special Functions for the Kernel Families
==========================================

Shared numeric helpers used by both kernel families:

- bessel_j_ratio: J_ν(t) / (t/2)^ν with its removable singularity handled
- ball_volume: volume of a D-dimensional ball
- radial_measure_constant: angular factor left after pulling out 2π in polar
  integration
- alpha_upper_bound: largest admissible kernel width for a given domain
"""

import math

import numpy as np
from scipy import special

EPS = np.finfo(float).eps
SQRT_EPS = np.sqrt(EPS)


def bessel_j_ratio(t, order: float) -> np.ndarray:
    """Evaluate J_ν(t) / (t/2)^ν elementwise.

    Below sqrt(machine epsilon) the ratio is replaced by its limit at zero,
    1 / Γ(1 + ν), to avoid dividing by a vanishing power.

    Args:
        t: Non-negative scalar or array argument
        order: Bessel order ν (D/2 for the Bessel kernel family)

    Returns:
        Array with the same shape as ``t``
    """
    t = np.asarray(t, dtype=float)
    small = t < SQRT_EPS
    safe_t = np.where(small, 1.0, t)
    ratio = special.jv(order, safe_t) / np.power(safe_t / 2.0, order)
    return np.where(small, 1.0 / special.gamma(1.0 + order), ratio)


def ball_volume(radius, dimension: int):
    """Volume of the D-dimensional ball: π^{D/2} r^D / Γ(1 + D/2)."""
    half = dimension / 2.0
    return math.pi**half * np.power(radius, dimension) / math.gamma(1.0 + half)


def radial_measure_constant(dimension: int) -> float:
    """Factor c_D such that ∫_{R^D} f(|ω|) dω = 2π ∫_0^∞ c_D r^{D-1} f(r) dr.

    Equals π^{D/2 - 1} / Γ(D/2); it is 1 in the plane.
    """
    half = dimension / 2.0
    return math.pi ** (half - 1.0) / math.gamma(half)


def alpha_upper_bound(volume: float, dimension: int) -> float:
    """Upper bound used to rescale normalized kernel widths.

    U = (V / Γ(1 + D/2))^{1/D} / sqrt(2π / D), the width at which a Bessel
    kernel with one expected point in the domain reaches unit amplitude.
    """
    gamma_value = math.gamma(1.0 + dimension / 2.0)
    upper = (volume / gamma_value) ** (1.0 / dimension)
    return upper / math.sqrt(2.0 * math.pi / dimension)
