"""Unit tests for the parameter mapper and its Jacobian."""

import math

import numpy as np
import pytest

from bivardpp.core.bessel import BesselFamily
from bivardpp.core.exceptions import InputValidationError
from bivardpp.core.family_base import cross_amplitude_bound
from bivardpp.core.gaussian import GaussianFamily
from bivardpp.core.geometry import build_geometry
from bivardpp.core.parameters import ModelParameters
from bivardpp.core.special import alpha_upper_bound
from tests.conftest import (
    FEASIBLE_POINTS,
    FIXED_FEASIBLE_POINT,
    FIXED_INTENSITIES,
    SQUARE_LABELS,
    SQUARE_POINTS,
)

FAMILY_CLASSES = [GaussianFamily, BesselFamily]


@pytest.fixture
def geometry():
    return build_geometry(SQUARE_POINTS, SQUARE_LABELS, np.zeros(2), np.ones(2), periodic=False)


def fixed_parameters():
    params = ModelParameters(estimate_intensities=False)
    params.first_intensity, params.second_intensity = FIXED_INTENSITIES
    return params


def physical_at(family, raw, geometry, estimate_intensities=True):
    params = ModelParameters() if estimate_intensities else fixed_parameters()
    family.map_parameters(raw, params, geometry)
    return params.physical_vector()


class TestCrossAmplitudeBound:
    def test_product_branch(self):
        s, d1, d2 = cross_amplitude_bound(0.2, 0.3)
        assert s == pytest.approx(math.sqrt(0.06))
        assert d1 == pytest.approx(0.3 / (2 * s))
        assert d2 == pytest.approx(0.2 / (2 * s))

    def test_complement_branch(self):
        s, d1, d2 = cross_amplitude_bound(0.8, 0.7)
        assert s == pytest.approx(math.sqrt(0.2 * 0.3))
        assert d1 == pytest.approx(-0.3 / (2 * s))
        assert d2 == pytest.approx(-0.2 / (2 * s))

    def test_tie_uses_complement_branch(self):
        s, d1, d2 = cross_amplitude_bound(0.5, 0.5)
        assert s == pytest.approx(0.5)
        assert d1 == pytest.approx(-0.5)
        assert d2 == pytest.approx(-0.5)

    @pytest.mark.parametrize("k1, k2", [(0.0, 0.5), (1.0, 0.3), (1.5, 0.5), (-0.2, 0.4)])
    def test_vanishing_bound_has_zero_derivatives(self, k1, k2):
        assert cross_amplitude_bound(k1, k2) == (0.0, 0.0, 0.0)


class TestMapParameters:
    @pytest.mark.parametrize("family_class", FAMILY_CLASSES)
    def test_reports_changes_exactly(self, family_class, geometry):
        family = family_class()
        params = ModelParameters()
        x = FEASIBLE_POINTS[0].copy()

        assert family.map_parameters(x, params, geometry) is True
        assert family.map_parameters(x.copy(), params, geometry) is False

        x[3] = np.nextafter(x[3], 1.0)
        assert family.map_parameters(x, params, geometry) is True
        assert params.cross_beta == x[3]

    def test_first_mapping_always_registers(self, geometry):
        params = ModelParameters()
        assert np.all(np.isnan(params.raw_vector()))
        assert GaussianFamily().map_parameters(np.zeros(6), params, geometry) is True

    @pytest.mark.parametrize("family_class", FAMILY_CLASSES)
    def test_estimated_intensities(self, family_class, geometry):
        family = family_class()
        params = ModelParameters()
        x = FEASIBLE_POINTS[0]
        family.map_parameters(x, params, geometry)

        upper = alpha_upper_bound(geometry.volume, 2)
        assert params.first_alpha == pytest.approx(x[4] * upper)
        assert params.second_alpha == pytest.approx(x[5] * upper)
        assert params.first_intensity == pytest.approx(
            x[0] / (family.amplitude_constant(2) * params.first_alpha**2)
        )
        bound, _, _ = family.cross_width_lower_bound(params.first_alpha, params.second_alpha)
        assert params.inverse_cross_alpha == pytest.approx(x[3] / bound)
        s, _, _ = cross_amplitude_bound(x[0], x[1])
        assert params.cross_amplitude == pytest.approx(x[2] * s)

    def test_fixed_intensities_retrieve_widths(self, geometry):
        family = GaussianFamily()
        params = fixed_parameters()
        family.map_parameters(FIXED_FEASIBLE_POINT, params, geometry)

        rho1, rho2 = FIXED_INTENSITIES
        assert params.first_alpha == pytest.approx(math.sqrt(0.4 / (rho1 * math.pi)))
        assert params.second_alpha == pytest.approx(math.sqrt(0.3 / (rho2 * math.pi)))
        assert params.first_intensity == rho1

    def test_zero_width_gives_infinite_inverse_cross_width(self, geometry):
        params = ModelParameters()
        GaussianFamily().map_parameters([0.4, 0.3, 0.5, 0.7, 0.0, 0.0], params, geometry)
        assert params.inverse_cross_alpha == math.inf
        assert math.isnan(params.first_intensity)

    @pytest.mark.parametrize("size", [3, 4, 7])
    def test_wrong_length_is_rejected(self, size, geometry):
        with pytest.raises(InputValidationError, match="Expected 6 parameters"):
            GaussianFamily().map_parameters(np.full(size, 0.3), ModelParameters(), geometry)


class TestAmplitudeRelation:
    def test_retrieve_alpha_and_slope(self):
        family = GaussianFamily()
        alpha, slope = family.retrieve_alpha(0.4, 4.0, 2)
        assert alpha == pytest.approx(math.sqrt(0.4 / (4.0 * math.pi)))
        assert slope == pytest.approx(alpha / (2 * 0.4))

    @pytest.mark.parametrize("amplitude", [0.0, -0.3])
    def test_non_positive_amplitude_gives_zero_width(self, amplitude):
        assert BesselFamily().retrieve_alpha(amplitude, 4.0, 2) == (0.0, 0.0)

    def test_retrieve_intensity_inverts_retrieve_alpha(self):
        family = BesselFamily()
        alpha, _ = family.retrieve_alpha(0.35, 12.0, 3)
        assert family.retrieve_intensity(0.35, alpha, 3) == pytest.approx(12.0)

    def test_amplitude_constants(self):
        assert GaussianFamily().amplitude_constant(3) == pytest.approx(math.pi**1.5)
        assert BesselFamily().amplitude_constant(2) == pytest.approx(math.pi)
        assert BesselFamily().amplitude_constant(1) == pytest.approx(math.pi / math.sqrt(2))


class TestParameterJacobian:
    @pytest.mark.parametrize("family_class", FAMILY_CLASSES)
    @pytest.mark.parametrize("x", FEASIBLE_POINTS)
    def test_matches_finite_differences(self, family_class, x, geometry):
        family = family_class()
        params = ModelParameters()
        family.map_parameters(x, params, geometry)
        jacobian = family.parameter_jacobian(params, geometry)
        assert jacobian.shape == (6, 6)

        h = 1e-7
        for column in range(x.size):
            step = np.zeros_like(x)
            step[column] = h
            numerical = (
                physical_at(family, x + step, geometry) - physical_at(family, x - step, geometry)
            ) / (2 * h)
            np.testing.assert_allclose(jacobian[:, column], numerical, rtol=1e-5, atol=1e-6)

    @pytest.mark.parametrize("family_class", FAMILY_CLASSES)
    def test_fixed_intensities_match_finite_differences(self, family_class, geometry):
        family = family_class()
        x = FIXED_FEASIBLE_POINT
        params = fixed_parameters()
        family.map_parameters(x, params, geometry)
        jacobian = family.parameter_jacobian(params, geometry)
        assert jacobian.shape == (6, 4)

        h = 1e-7
        for column in range(x.size):
            step = np.zeros_like(x)
            step[column] = h
            numerical = (
                physical_at(family, x + step, geometry, estimate_intensities=False)
                - physical_at(family, x - step, geometry, estimate_intensities=False)
            ) / (2 * h)
            np.testing.assert_allclose(jacobian[:, column], numerical, rtol=1e-5, atol=1e-6)
