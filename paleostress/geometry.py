"""
Geometry and mechanics primitives.

Vectors live in the geographic frame S = (East, North, Up). Stress tensors
use the principal search frame (σ1, σ3, σ2) with principal values
(-1, 0, -R), compressive stress negative, and are rotated to S with

    STdelta = Wᵀ · diag(-1, 0, -R) · W

where the rows of W are the σ1, σ3 and σ2 unit vectors expressed in S.
Rotation tensors are only ever built through ``scipy.spatial.transform``,
so they stay orthonormal with det = +1.
"""

from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

from .config import EPSILON


# ──────────────────────────────────────────────
# Vectors and Spherical Coordinates
# ──────────────────────────────────────────────

def normalize(v) -> np.ndarray:
    """Return ``v`` scaled to unit length, rejecting zero vectors."""
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if norm < EPSILON:
        raise ValueError(f"Cannot normalize a zero-length vector: {v}")
    return v / norm


def spherical_to_vector(theta, phi) -> np.ndarray:
    """Unit vector(s) for colatitude ``theta`` and azimuth ``phi``.

    Accepts scalars or equally shaped arrays; the last axis of the result
    holds the (x, y, z) components.
    """
    theta = np.asarray(theta, dtype=float)
    phi = np.asarray(phi, dtype=float)
    sin_t = np.sin(theta)
    return np.stack(
        [sin_t * np.cos(phi), sin_t * np.sin(phi), np.cos(theta)], axis=-1
    )


def vector_to_spherical(v) -> tuple:
    """Colatitude in [0, π] and azimuth in [0, 2π) of a (non-zero) vector."""
    x, y, z = normalize(v)
    theta = float(np.arccos(np.clip(z, -1.0, 1.0)))
    phi = float(np.mod(np.arctan2(y, x), 2 * np.pi))
    return theta, phi


@dataclass(frozen=True)
class SphericalCoords:
    """Direction on the unit sphere (theta colatitude, phi azimuth)."""

    theta: float
    phi: float

    def __post_init__(self):
        object.__setattr__(self, "phi", float(np.mod(self.phi, 2 * np.pi)))

    def to_vector(self) -> np.ndarray:
        return spherical_to_vector(self.theta, self.phi)

    @classmethod
    def from_vector(cls, v) -> "SphericalCoords":
        return cls(*vector_to_spherical(v))


def trend_plunge_to_vector(trend_deg: float, plunge_deg: float) -> np.ndarray:
    """Unit vector of a line given by trend (from North) and downward plunge."""
    tr, pl = np.radians(trend_deg), np.radians(plunge_deg)
    return np.array([np.cos(pl) * np.sin(tr), np.cos(pl) * np.cos(tr), -np.sin(pl)])


def vector_to_trend_plunge(v) -> tuple:
    """Trend and plunge (degrees) of the lower-hemisphere end of a line."""
    v = normalize(v)
    if v[2] > 0:
        v = -v
    plunge = np.degrees(np.arcsin(np.clip(-v[2], -1.0, 1.0)))
    trend = np.degrees(np.arctan2(v[0], v[1])) % 360.0
    return float(trend), float(plunge)


# ──────────────────────────────────────────────
# Rotation Tensors
# ──────────────────────────────────────────────

def proper_rotation_tensor(axis, angle: float) -> np.ndarray:
    """Rodrigues rotation by ``angle`` (radians) about ``axis``."""
    return Rotation.from_rotvec(normalize(axis) * angle).as_matrix()


def rotation_params_from_tensor(rot: np.ndarray) -> tuple:
    """Axis (unit vector) and angle in [0, π] of a rotation tensor.

    The axis of the identity is undefined; (0, 0, 1) is returned with a
    zero angle.
    """
    rotvec = Rotation.from_matrix(rot).as_rotvec()
    angle = float(np.linalg.norm(rotvec))
    if angle < EPSILON:
        return np.array([0.0, 0.0, 1.0]), 0.0
    return rotvec / angle, angle


def rotation_from_principal_axes(sigma1, sigma3) -> np.ndarray:
    """Rotation tensor whose rows are the σ1, σ3 and σ2 unit vectors.

    σ1 is kept as given; σ3 is orthogonalized against it and σ2 = σ1 × σ3
    completes the right-handed frame.
    """
    s1 = normalize(sigma1)
    s3 = np.asarray(sigma3, dtype=float)
    s3 = normalize(s3 - np.dot(s3, s1) * s1)
    s2 = np.cross(s1, s3)
    return Rotation.from_matrix(np.vstack([s1, s3, s2])).as_matrix()


def rough_rotation_tensor(sigma1: tuple, sigma3: tuple) -> np.ndarray:
    """Rough-to-geographic tensor from (trend, plunge) estimates of σ1 and σ3."""
    return rotation_from_principal_axes(
        trend_plunge_to_vector(*sigma1), trend_plunge_to_vector(*sigma3)
    )


def search_rotation_tensors(rough_rotation: np.ndarray, axis, angle: float) -> tuple:
    """Compose D (rough -> search frame) and W (geographic -> search frame).

    Dᵀ is the proper rotation about ``axis``; W = D · Rrot so that
    Wᵀ = Rrotᵀ · Dᵀ.
    """
    if angle == 0.0:
        d = np.eye(3)
    else:
        d = proper_rotation_tensor(axis, angle).T
    return d, d @ rough_rotation


def stress_tensor_delta(stress_ratio: float, w: np.ndarray) -> np.ndarray:
    """Reduced stress tensor in the geographic frame for ratio R and frame W."""
    principal = np.diag([-1.0, 0.0, -stress_ratio])
    return w.T @ principal @ w


def principal_axes(w: np.ndarray) -> dict:
    """Trend/plunge of the principal axes encoded in the rows of W."""
    out = {}
    for name, row in (("sigma1", 0), ("sigma3", 1), ("sigma2", 2)):
        trend, plunge = vector_to_trend_plunge(w[row])
        out[name] = {"trend_deg": round(trend, 2), "plunge_deg": round(plunge, 2)}
    return out


# ──────────────────────────────────────────────
# Stress Resolution on Fault Planes
# ──────────────────────────────────────────────

def fault_stress_components(stress_tensor: np.ndarray, normals: np.ndarray) -> tuple:
    """Resolve a stress tensor onto one or many planes.

    Parameters
    ----------
    stress_tensor : (3,3) stress tensor in the geographic frame
    normals : (3,) or (N, 3) unit plane normals

    Returns
    -------
    shear : (..., 3) shear stress vectors, t - σn·n
    sigma_n : (...) normal stresses, t · n (negative in compression)
    shear_mag : (...) shear stress magnitudes
    """
    traction = normals @ stress_tensor.T
    sigma_n = np.sum(normals * traction, axis=-1)
    shear = traction - sigma_n[..., np.newaxis] * normals
    shear_mag = np.linalg.norm(shear, axis=-1)
    return shear, sigma_n, shear_mag


def angular_dif_striations(striations, shear, shear_mag) -> np.ndarray:
    """Unsigned angle in [0, π] between measured striations and shear stress.

    ``shear_mag`` must be strictly positive; degenerate planes are handled
    by the caller.
    """
    cosine = np.sum(striations * shear, axis=-1) / shear_mag
    return np.arccos(np.clip(cosine, -1.0, 1.0))
