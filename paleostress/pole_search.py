"""
Per-fault pole search (Gephart-style minimum rotation).

For one fault and a trial stress tensor, the misfit is the smallest
rotation that brings a candidate plane, and the shear stress it carries,
onto the measured plane and striation. Every strategy starts from the
closed-form same-pole bound and only ever tightens it:

    search(fault, stress_tensor, bound) -> refined, 0 <= refined <= bound

A candidate plane tilted by ω from the measured pole needs a total
rotation of at least ω, so candidates outside a cone of half-angle equal
to the current bound are never evaluated.
"""

import numpy as np

from .config import EPSILON, GOLDEN_RATIO, PoleSearchConfig
from .geometry import (
    angular_dif_striations, fault_stress_components, proper_rotation_tensor,
    spherical_to_vector,
)


# ──────────────────────────────────────────────
# Rotation Between a Candidate and the Measured Plane
# ──────────────────────────────────────────────

def same_pole_bound(fault, stress_tensor: np.ndarray) -> float:
    """Angular mismatch on the measured plane itself (π/2 when unsheared)."""
    shear, _, shear_mag = fault_stress_components(stress_tensor, fault.normal)
    if shear_mag <= EPSILON:
        return np.pi / 2
    return float(angular_dif_striations(fault.striation, shear, shear_mag))


def two_angle_rotation(omega: float, beta: float) -> float:
    """Minimal rotation combining a pole tilt ``omega`` and an in-plane turn ``beta``.

    The tilt axis lies in the measured plane and the in-plane turn is about
    the measured pole, so the composition is an exact rotation whose angle
    follows from the tilt of its axis out of the plane and the arc swept
    along the parallel circle.
    """
    half_w = omega / 2
    half_b = beta / 2
    if half_w < EPSILON:
        return float(beta)

    denom = np.sqrt(max(1.0 - np.cos(half_b) ** 2 * np.cos(half_w) ** 2, 0.0))
    if denom < EPSILON:
        return 0.0
    tilt = np.arcsin(np.clip(np.sin(half_b) / denom, -1.0, 1.0))
    cos_tilt = np.cos(tilt)
    if cos_tilt < EPSILON:
        return float(np.pi)
    return float(2 * np.arctan(np.tan(half_w) / cos_tilt))


def rotation_angle_fault_plane(fault, stress_tensor: np.ndarray, normal_new: np.ndarray):
    """Minimal rotation aligning a candidate plane with the measured fault.

    Parameters
    ----------
    fault : measured Fault
    stress_tensor : (3,3) trial stress tensor, geographic frame
    normal_new : (3,) unit normal of the candidate plane

    Returns
    -------
    Rotation angle in [0, π], or None when the candidate plane carries no
    shear stress or is antipodal to the measured pole.
    """
    shear, _, shear_mag = fault_stress_components(stress_tensor, normal_new)
    if shear_mag <= EPSILON:
        return None

    axis = np.cross(normal_new, fault.normal)
    sin_w = np.linalg.norm(axis)
    omega = float(np.arctan2(sin_w, np.dot(normal_new, fault.normal)))
    if sin_w > EPSILON:
        shear = proper_rotation_tensor(axis, omega) @ shear
    elif omega > np.pi / 2:
        return None

    beta = float(angular_dif_striations(fault.striation, shear, shear_mag))
    return two_angle_rotation(omega, beta)


def normal_from_local_angles(fault, theta: float, phi: float) -> np.ndarray:
    """Unit normal tilted by ``theta`` from the pole toward azimuth ``phi``.

    ``phi`` is measured in the fault's tangent frame from e_theta toward
    e_phi.
    """
    return (np.cos(theta) * fault.normal
            + np.sin(theta) * (np.cos(phi) * fault.e_theta + np.sin(phi) * fault.e_phi))


def _tighten(best: float, candidate) -> float:
    if candidate is not None and candidate < best:
        return candidate
    return best


# ──────────────────────────────────────────────
# Strategies
# ──────────────────────────────────────────────

def fibonacci_cone_search(fault, stress_tensor: np.ndarray, bound: float,
                          delta_angle: float) -> float:
    """Golden-spiral nodes inside the cone of half-angle ``bound``.

    Nodes are the Fibonacci lattice of spacing ``delta_angle`` centred on
    the measured pole, scanned from the pole outward; the scan stops at
    the first node whose colatitude exceeds the current bound.
    """
    best = bound
    n_nodes = int(np.ceil(2 * np.pi / delta_angle ** 2))
    n_total = 2 * n_nodes + 1
    j_min = int(np.ceil(np.cos(bound) * n_total / 2))

    for j in range(n_nodes, j_min - 1, -1):
        latitude = np.arcsin(np.clip(2 * j / n_total, -1.0, 1.0))
        theta = np.pi / 2 - latitude
        if theta > best:
            break
        phi = 2 * np.pi * j / GOLDEN_RATIO
        normal_new = normal_from_local_angles(fault, theta, phi)
        best = _tighten(best, rotation_angle_fault_plane(fault, stress_tensor, normal_new))
    return best


def _polar_grid_search(fault, stress_tensor, bound, delta_angle, n_circle_at):
    best = bound
    j = 1
    while j * delta_angle <= best:
        radius = j * delta_angle
        n_circle, delta_psi = n_circle_at(radius)
        for k in range(n_circle):
            normal_new = normal_from_local_angles(fault, radius, k * delta_psi)
            best = _tighten(best, rotation_angle_fault_plane(fault, stress_tensor, normal_new))
        j += 1
    return best


def conical_grid_search(fault, stress_tensor: np.ndarray, bound: float,
                        delta_angle: float) -> float:
    """Polar grid with about 2π·sin(r)/Δ samples on the circle of radius r."""
    def n_circle_at(radius):
        sin_r = np.sin(radius)
        n_circle = max(int(np.floor(2 * np.pi * sin_r / delta_angle)), 1)
        delta_psi = delta_angle / sin_r if sin_r > EPSILON else 0.0
        return n_circle, delta_psi

    return _polar_grid_search(fault, stress_tensor, bound, delta_angle, n_circle_at)


def regular_grid_search(fault, stress_tensor: np.ndarray, bound: float,
                        delta_angle: float) -> float:
    """Polar grid with the same circular step Δ at every radius."""
    n_circle = max(int(np.floor(2 * np.pi / delta_angle)), 1)

    def n_circle_at(radius):
        return n_circle, delta_angle

    return _polar_grid_search(fault, stress_tensor, bound, delta_angle, n_circle_at)


def monte_carlo_search(fault, stress_tensor: np.ndarray, bound: float,
                       n_trials: int, rng: np.random.Generator | None = None) -> float:
    """Random rotations of the pole with magnitude in [0, current bound].

    Rotation axes are uniform on the sphere: azimuth ~ U[0, 2π) and
    colatitude = acos(1 - 2U).
    """
    if rng is None:
        rng = np.random.default_rng()
    best = bound
    for _ in range(n_trials):
        azimuth = rng.uniform(0.0, 2 * np.pi)
        colatitude = np.arccos(np.clip(1.0 - 2.0 * rng.random(), -1.0, 1.0))
        angle = rng.random() * best
        if angle < EPSILON:
            continue
        axis = spherical_to_vector(colatitude, azimuth)
        normal_new = proper_rotation_tensor(axis, angle) @ fault.normal
        best = _tighten(best, rotation_angle_fault_plane(fault, stress_tensor, normal_new))
    return best


class PoleSearch:
    """Strategy selected by ``PoleSearchConfig.kind``.

    The Monte Carlo strategy draws from a generator seeded once per
    instance.
    """

    def __init__(self, config: PoleSearchConfig | None = None):
        self.config = config or PoleSearchConfig()
        self._rng = np.random.default_rng(self.config.seed)

    @property
    def kind(self) -> str:
        return self.config.kind

    def search(self, fault, stress_tensor: np.ndarray, bound: float) -> float:
        cfg = self.config
        if cfg.kind == "fibonacci_cone":
            return fibonacci_cone_search(fault, stress_tensor, bound, cfg.delta_angle)
        elif cfg.kind == "conical_grid":
            return conical_grid_search(fault, stress_tensor, bound, cfg.delta_angle)
        elif cfg.kind == "regular_grid":
            return regular_grid_search(fault, stress_tensor, bound, cfg.delta_angle)
        return monte_carlo_search(fault, stress_tensor, bound, cfg.n_trials, self._rng)


def create_pole_search(kind: str = "fibonacci_cone", **params) -> PoleSearch:
    """Build a pole search; unknown kinds raise ConfigurationError."""
    return PoleSearch(PoleSearchConfig(kind=kind, **params))
