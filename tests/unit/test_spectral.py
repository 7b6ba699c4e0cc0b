"""Unit tests for the radial quadrature integrator."""

import math

import numpy as np
import pytest

from bivardpp.core.exceptions import NumericalInstabilityError
from bivardpp.core.spectral import QuadratureSettings, SpectralIntegrator


class TestSpectralIntegrator:
    def test_value_and_partials_are_scaled_by_two_pi(self):
        integrator = SpectralIntegrator()
        value, gradient = integrator.integrate(
            lambda r: math.exp(-r * r),
            [lambda r: r * math.exp(-r * r), lambda r: 0.0],
        )
        assert value == pytest.approx(math.pi**1.5, rel=1e-10)
        np.testing.assert_allclose(gradient, [math.pi, 0.0], rtol=1e-10, atol=1e-14)

    def test_no_partials_gives_empty_gradient(self):
        _, gradient = SpectralIntegrator().integrate(lambda r: math.exp(-r), [])
        assert gradient.shape == (0,)

    def test_settings_are_used(self):
        settings = QuadratureSettings(epsabs=1e-6, epsrel=1e-6, limit=10)
        assert SpectralIntegrator(settings).settings is settings
        assert SpectralIntegrator().settings == QuadratureSettings()

    def test_math_domain_error_becomes_numerical_error(self):
        integrator = SpectralIntegrator()
        with pytest.raises(NumericalInstabilityError) as excinfo:
            integrator.integrate(lambda r: math.log(-1.0 - r), [])
        assert excinfo.value.detection_point == "integral"

    def test_non_finite_result_is_fatal(self):
        integrator = SpectralIntegrator()
        with pytest.raises(NumericalInstabilityError, match="not finite"):
            integrator.integrate(lambda r: math.exp(-r), [lambda r: math.nan])
