"""Spectral Integral Evaluator
============================

Adaptive quadrature of radial spectral integrands over [0, ∞).

The integral term of the composite likelihood is a D-dimensional integral of
a radial function. Polar integration reduces it to

    ∫_{R^D} f(|ω|) dω = 2π ∫_0^∞ c_D r^{D-1} f(r) dr,

so family integrands already carry ``c_D r^{D-1}`` and this module multiplies
the quadrature result by 2π. The value and each partial derivative are
integrated with the same rule, bounds and tolerances (QUADPACK's adaptive
Gauss–Kronrod scheme on the transformed infinite interval).
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
from scipy import integrate

from bivardpp.core.exceptions import NumericalInstabilityError
from bivardpp.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuadratureSettings:
    """Tolerances passed to every quadrature call."""

    epsabs: float = 1e-11
    epsrel: float = 1e-10
    limit: int = 200


class SpectralIntegrator:
    """Integrates a value integrand and its partial derivatives over [0, ∞)."""

    lower_bound = 0.0
    upper_bound = np.inf

    def __init__(self, settings: QuadratureSettings | None = None):
        self.settings = settings or QuadratureSettings()

    def integrate_one(self, integrand: Callable[[float], float]) -> float:
        """2π ∫_0^∞ integrand(r) dr."""
        value, abserr = integrate.quad(
            integrand,
            self.lower_bound,
            self.upper_bound,
            epsabs=self.settings.epsabs,
            epsrel=self.settings.epsrel,
            limit=self.settings.limit,
        )
        logger.debug(f"Quadrature value {value:.12g} (abs. error estimate {abserr:.3g})")
        return 2.0 * math.pi * value

    def integrate(
        self,
        integrand: Callable[[float], float],
        derivative_integrands: Sequence[Callable[[float], float]],
    ) -> tuple[float, np.ndarray]:
        """Integrate the value and every partial derivative integrand.

        The callables must close over one frozen parameter snapshot so that
        all calls of a single invocation see the same parameters.

        Returns:
            (integral, gradient) with one gradient entry per derivative integrand

        Raises:
            NumericalInstabilityError: if an integrand is undefined or any result
                is NaN or Inf
        """
        try:
            value = self.integrate_one(integrand)
            gradient = np.array([self.integrate_one(f) for f in derivative_integrands])
        except (ArithmeticError, ValueError) as e:
            # Math domain errors inside an integrand, e.g. log of a negative
            raise NumericalInstabilityError(
                f"Spectral integrand is undefined: {e}",
                detection_point="integral",
            ) from e

        if not np.isfinite(value) or not np.all(np.isfinite(gradient)):
            raise NumericalInstabilityError(
                "Spectral integral is not finite",
                detection_point="integral",
                error_context={"integral": value, "gradient": gradient.tolist()},
            )

        return value, gradient
