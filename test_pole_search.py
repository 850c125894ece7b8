"""Tests for the per-fault pole search strategies."""
import numpy as np
import pytest

from paleostress.config import POLE_SEARCHES, ConfigurationError
from paleostress.faults import Fault
from paleostress.geometry import rotation_from_principal_axes, stress_tensor_delta
from paleostress.pole_search import (
    conical_grid_search, create_pole_search, fibonacci_cone_search, monte_carlo_search,
    normal_from_local_angles, regular_grid_search, rotation_angle_fault_plane,
    same_pole_bound, two_angle_rotation,
)

# σ1 vertical, σ3 East-West
TENSOR = stress_tensor_delta(0.4, rotation_from_principal_axes([0, 0, 1], [1, 0, 0]))
# Pure dip-slip is predicted on this plane; the measured rake is 30° off
FAULT = Fault.from_angles(90.0, 60.0, 60.0)
FITTING_FAULT = Fault.from_angles(90.0, 60.0, 90.0, "N")


# ═══════════════════════════════════════════════════════════════
# Rotation decomposition
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("omega, beta", [
    (0.3, 0.5), (1.0, 2.0), (0.1, 3.0), (2.5, 0.2), (0.7, np.pi),
])
def test_two_angle_rotation_matches_quaternion_composition(omega, beta):
    expected = 2 * np.arccos(np.cos(omega / 2) * np.cos(beta / 2))
    assert two_angle_rotation(omega, beta) == pytest.approx(expected, abs=1e-9)


def test_two_angle_rotation_single_components():
    assert two_angle_rotation(0.0, 0.7) == pytest.approx(0.7)
    assert two_angle_rotation(0.4, 0.0) == pytest.approx(0.4)
    assert two_angle_rotation(0.0, 0.0) == 0.0


def test_same_pole_bound():
    assert same_pole_bound(FAULT, TENSOR) == pytest.approx(np.radians(30.0))
    assert same_pole_bound(FITTING_FAULT, TENSOR) == pytest.approx(0.0, abs=1e-7)


def test_rotation_angle_on_measured_plane_is_same_pole_bound():
    angle = rotation_angle_fault_plane(FAULT, TENSOR, FAULT.normal)
    assert angle == pytest.approx(same_pole_bound(FAULT, TENSOR))


def test_rotation_angle_is_at_least_the_tilt():
    for theta, phi in [(0.1, 0.0), (0.3, 1.0), (0.6, 4.0)]:
        normal_new = normal_from_local_angles(FAULT, theta, phi)
        angle = rotation_angle_fault_plane(FAULT, TENSOR, normal_new)
        assert angle is not None
        assert theta - 1e-9 <= angle <= np.pi


def test_rotation_angle_skips_unsheared_candidate():
    # Horizontal plane is normal to σ1: no shear stress
    assert rotation_angle_fault_plane(FAULT, TENSOR, np.array([0.0, 0.0, 1.0])) is None


def test_normal_from_local_angles():
    normal_new = normal_from_local_angles(FAULT, 0.25, 2.0)
    assert np.linalg.norm(normal_new) == pytest.approx(1.0)
    assert np.arccos(np.dot(normal_new, FAULT.normal)) == pytest.approx(0.25)


# ═══════════════════════════════════════════════════════════════
# Strategies
# ═══════════════════════════════════════════════════════════════

@pytest.mark.parametrize("kind", POLE_SEARCHES)
def test_strategy_never_loosens_bound(kind):
    search = create_pole_search(kind, delta_angle=np.radians(4.0), n_trials=200, seed=3)
    bound = same_pole_bound(FAULT, TENSOR)
    refined = search.search(FAULT, TENSOR, bound)
    assert 0.0 <= refined <= bound


@pytest.mark.parametrize("strategy", [
    fibonacci_cone_search, conical_grid_search, regular_grid_search,
])
def test_deterministic_strategies_tighten_bound(strategy):
    bound = same_pole_bound(FAULT, TENSOR)
    refined = strategy(FAULT, TENSOR, bound, np.radians(1.0))
    assert refined < bound - 1e-6


@pytest.mark.parametrize("strategy", [
    fibonacci_cone_search, conical_grid_search, regular_grid_search,
])
def test_zero_bound_stays_zero(strategy):
    assert strategy(FAULT, TENSOR, 0.0, np.radians(2.0)) == 0.0


def test_monte_carlo_is_reproducible_and_monotonic():
    bound = same_pole_bound(FAULT, TENSOR)
    short = monte_carlo_search(FAULT, TENSOR, bound, 100, np.random.default_rng(7))
    again = monte_carlo_search(FAULT, TENSOR, bound, 100, np.random.default_rng(7))
    longer = monte_carlo_search(FAULT, TENSOR, bound, 300, np.random.default_rng(7))
    assert short == again
    assert longer <= short <= bound


def test_monte_carlo_zero_bound():
    assert monte_carlo_search(FAULT, TENSOR, 0.0, 50, np.random.default_rng(1)) == 0.0


def test_unknown_pole_search_is_configuration_error():
    with pytest.raises(ConfigurationError):
        create_pole_search("spiral_staircase")
    with pytest.raises(ConfigurationError):
        create_pole_search("conical_grid", delta_angle=0.0)
