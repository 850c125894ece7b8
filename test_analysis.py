"""Tests for misfit landscape sampling."""
import numpy as np
import pytest

from paleostress.analysis import (
    DomainAxis, ParameterSpace, random_domain_2d, random_domain_3d,
    regular_domain_2d, regular_domain_3d,
)
from paleostress.config import ConfigurationError
from paleostress.geometry import rotation_from_principal_axes, stress_tensor_delta
from paleostress.inversion import synthetic_faults
from paleostress.misfit import AngularDeviation

# Rough frame equal to the geographic frame: σ1 = East, σ3 = North, σ2 = Up
IDENTITY = rotation_from_principal_axes([1.0, 0.0, 0.0], [0.0, 1.0, 0.0])


class DiagonalCriterion:
    """-T[0, 0] + 10·(-T[2, 2]); equals cos²ψ + 10·R for rotations about Up."""

    name = "diagonal"

    def value(self, stress_tensor):
        return -stress_tensor[0, 0] - 10.0 * stress_tensor[2, 2]


# ═══════════════════════════════════════════════════════════════
# Parameter space
# ═══════════════════════════════════════════════════════════════

def test_parameter_space_defaults_to_rough_estimate():
    space = ParameterSpace(DiagonalCriterion(), IDENTITY)
    np.testing.assert_allclose(space.tensor(), stress_tensor_delta(0.5, IDENTITY), atol=1e-12)
    assert space.cost() == pytest.approx(6.0)


def test_parameter_space_fixed_degrees():
    space = ParameterSpace(DiagonalCriterion(), IDENTITY, {"psi_deg": 60.0, "R": 0.2})
    assert space.cost() == pytest.approx(np.cos(np.radians(60.0)) ** 2 + 2.0)


@pytest.mark.parametrize("fixed", [{"sigma": 1.0}, {"R_deg": 10.0}, {"R": 1.5}])
def test_parameter_space_rejects_bad_fixed_values(fixed):
    with pytest.raises(ConfigurationError):
        ParameterSpace(DiagonalCriterion(), IDENTITY, fixed)


@pytest.mark.parametrize("name, bounds", [
    ("omega", (0.0, 1.0)),
    ("R", (0.0, 1.2)),
    ("psi", (1.0, 0.0)),
])
def test_domain_axis_validation(name, bounds):
    with pytest.raises(ConfigurationError):
        DomainAxis(name, bounds)


# ═══════════════════════════════════════════════════════════════
# Regular domains
# ═══════════════════════════════════════════════════════════════

def test_regular_domain_2d_matches_hand_computed_grid():
    x, y, values = regular_domain_2d(
        DiagonalCriterion(), IDENTITY,
        DomainAxis("R", (0.0, 1.0)), DomainAxis("psi", (0.0, np.pi / 2)), n=3,
    )
    np.testing.assert_allclose(x, [0.0, 0.5, 1.0])
    np.testing.assert_allclose(y, [0.0, np.pi / 4, np.pi / 2])
    expected = np.array([
        [1.0, 0.5, 0.0],
        [6.0, 5.5, 5.0],
        [11.0, 10.5, 10.0],
    ])
    np.testing.assert_allclose(values, expected, atol=1e-12)


def test_regular_domain_2d_rectangular_grid():
    x, y, values = regular_domain_2d(
        DiagonalCriterion(), IDENTITY,
        DomainAxis("psi", (0.0, np.pi)), DomainAxis("R", (0.2, 0.4)), n=4, ny=2,
    )
    assert values.shape == (4, 2)
    np.testing.assert_allclose(values[:, 1] - values[:, 0], 2.0, atol=1e-12)


def test_regular_domain_3d_shape_and_values():
    x, y, z, values = regular_domain_3d(
        DiagonalCriterion(), IDENTITY,
        DomainAxis("R", (0.0, 1.0)), DomainAxis("psi", (0.0, np.pi / 2)),
        DomainAxis("phi", (0.0, np.pi)), n=3,
    )
    assert values.shape == (3, 3, 3)
    # theta = 0: the azimuth does not move the Up axis
    for k in range(3):
        np.testing.assert_allclose(values[:, :, k], values[:, :, 0], atol=1e-12)
    assert values[2, 0, 1] == pytest.approx(11.0)


def test_regular_domain_on_real_faults_is_minimal_at_truth():
    true_tensor = stress_tensor_delta(0.3, IDENTITY)
    criterion = AngularDeviation(synthetic_faults(true_tensor, n_faults=15, seed=4))
    x, y, values = regular_domain_2d(
        criterion, IDENTITY,
        DomainAxis("R", (0.1, 0.5)), DomainAxis("psi", (0.0, 0.4)), n=5,
    )
    i, j = np.unravel_index(np.argmin(values), values.shape)
    assert (x[i], y[j]) == (pytest.approx(0.3), pytest.approx(0.0))


@pytest.mark.parametrize("kwargs", [{"n": 1}, {"n": 2.5}, {"n": 3, "ny": 0}])
def test_regular_domain_sampling_validation(kwargs):
    with pytest.raises(ConfigurationError):
        regular_domain_2d(DiagonalCriterion(), IDENTITY,
                          DomainAxis("R", (0.0, 1.0)), DomainAxis("psi", (0.0, 1.0)), **kwargs)


def test_duplicate_axes_raise():
    with pytest.raises(ConfigurationError):
        regular_domain_2d(DiagonalCriterion(), IDENTITY,
                          DomainAxis("R", (0.0, 1.0)), DomainAxis("R", (0.0, 0.5)), n=3)


# ═══════════════════════════════════════════════════════════════
# Random domains
# ═══════════════════════════════════════════════════════════════

def test_random_domain_2d_is_seeded_and_bounded():
    args = (DiagonalCriterion(), IDENTITY,
            DomainAxis("R", (0.2, 0.6)), DomainAxis("psi", (0.0, np.pi)))
    samples, values = random_domain_2d(*args, n_samples=50, seed=3)
    again, _ = random_domain_2d(*args, n_samples=50, seed=3)
    np.testing.assert_array_equal(samples, again)
    assert samples.shape == (50, 2)
    assert np.all((samples[:, 0] >= 0.2) & (samples[:, 0] <= 0.6))
    assert np.all((samples[:, 1] >= 0.0) & (samples[:, 1] <= np.pi))
    np.testing.assert_allclose(values, np.cos(samples[:, 1]) ** 2 + 10.0 * samples[:, 0],
                               atol=1e-12)


def test_random_domain_3d_shape():
    samples, values = random_domain_3d(
        DiagonalCriterion(), IDENTITY,
        DomainAxis("R", (0.0, 1.0)), DomainAxis("theta", (0.0, np.pi)),
        DomainAxis("psi", (0.0, 0.5)), n_samples=20, seed=0,
    )
    assert samples.shape == (20, 3)
    assert values.shape == (20,)


def test_random_domain_rejects_empty_sampling():
    with pytest.raises(ConfigurationError):
        random_domain_2d(DiagonalCriterion(), IDENTITY,
                         DomainAxis("R", (0.0, 1.0)), DomainAxis("psi", (0.0, 1.0)),
                         n_samples=0)
