"""
Pytest Configuration and Fixtures for bivardpp
==============================================

Shared fixtures, configuration, and test utilities for the entire test suite.
"""

import numpy as np
import pytest

from bivardpp.core.likelihood import CompositeLikelihood

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "slow: Slow tests (> 5 seconds)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "property" in str(item.fspath):
            item.add_marker(pytest.mark.property)


# ============================================================================
# Point Patterns
# ============================================================================

# Eight points in the unit square, alternating types, at least ~0.3 apart
SQUARE_POINTS = np.array(
    [
        [0.10, 0.10],
        [0.50, 0.20],
        [0.80, 0.15],
        [0.30, 0.50],
        [0.70, 0.60],
        [0.15, 0.85],
        [0.55, 0.90],
        [0.90, 0.45],
    ]
)
SQUARE_LABELS = np.array([1, 2, 1, 2, 1, 2, 1, 2])

# Feasible optimizer vectors with estimated intensities:
# [k1, k2, k12*, beta12, alpha1*, alpha2*]
FEASIBLE_POINTS = [
    np.array([0.40, 0.30, 0.50, 0.70, 0.30, 0.35]),
    np.array([0.25, 0.45, -0.30, 0.50, 0.28, 0.30]),
    np.array([0.60, 0.50, 0.80, 0.90, 0.32, 0.30]),
]

# Fixed intensities paired with [k1, k2, k12*, beta12]; widths differ so
# max(alpha1, alpha2) is differentiable there
FIXED_INTENSITIES = (4.0, 2.5)
FIXED_FEASIBLE_POINT = np.array([0.40, 0.30, 0.50, 0.70])


@pytest.fixture
def square_pattern():
    """Two-type pattern in [0, 1]²: (points, labels, lower, upper)."""
    return SQUARE_POINTS.copy(), SQUARE_LABELS.copy(), np.zeros(2), np.ones(2)


@pytest.fixture
def feasible_x():
    return FEASIBLE_POINTS[0].copy()


def make_engine(family, pattern, periodic=True, **kwargs):
    engine = CompositeLikelihood(family=family, periodic=periodic, **kwargs)
    engine.set_inputs(*pattern)
    return engine


@pytest.fixture
def gaussian_engine(square_pattern):
    """Gaussian family on a periodic unit square, intensities estimated."""
    return make_engine("gaussian", square_pattern, periodic=True)


@pytest.fixture
def bessel_engine(square_pattern):
    """Bessel family on a plain unit square, intensities estimated."""
    return make_engine("bessel", square_pattern, periodic=False)


@pytest.fixture(params=["gaussian", "bessel"])
def engine(request, square_pattern):
    """Engine of each family; Bessel uses plain distances."""
    return make_engine(request.param, square_pattern, periodic=request.param == "gaussian")


def assert_gradient_matches(engine, x, step=1e-5, rtol=1e-4):
    """Analytic gradient agrees with central differences of ``evaluate``."""
    result = engine.check_gradient(x, step=step, rtol=rtol, atol=0.0)
    numerical = result["gradient"]
    analytical = result["analytical"]
    scale = 1.0 + np.max(np.abs(numerical))
    np.testing.assert_allclose(analytical, numerical, rtol=rtol, atol=1e-5 * scale)
