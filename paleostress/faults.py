"""
Striated fault data model.

A fault is stored with its upward unit normal, the unit striation giving
the motion of the block on the normal's side (the hanging wall), and the
local tangent frame of the plane:

    e_phi   = (-sin φ, cos φ, 0)                       strike (right-hand rule)
    e_theta = (cos θ cos φ, cos θ sin φ, -sin θ)       down-dip

where (θ, φ) are the spherical coordinates of the normal. Records are
immutable once built and shared read-only by every misfit evaluation.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .geometry import SphericalCoords, normalize, vector_to_spherical

IN_PLANE_TOLERANCE = 1e-6
_ANGLE_TOLERANCE_DEG = 1e-9


class SenseOfMovement(str, Enum):
    """Sense of slip of the hanging wall recorded in the field."""

    N = "N"
    I = "I"
    RL = "RL"
    LL = "LL"
    N_RL = "N_RL"
    N_LL = "N_LL"
    I_RL = "I_RL"
    I_LL = "I_LL"
    UKN = "UKN"


_S = SenseOfMovement

# (consistent, reversed) senses for a rake measured from the strike toward
# the down-dip direction on a non-vertical plane
_RAKE_SENSES = {
    "pure_ll": ({_S.LL}, {_S.RL}),
    "normal_ll": ({_S.N, _S.LL, _S.N_LL}, {_S.I, _S.RL, _S.I_RL}),
    "pure_normal": ({_S.N}, {_S.I}),
    "normal_rl": ({_S.N, _S.RL, _S.N_RL}, {_S.I, _S.LL, _S.I_LL}),
    "pure_rl": ({_S.RL}, {_S.LL}),
}
_LATERAL = {
    _S.LL: _S.LL, _S.N_LL: _S.LL, _S.I_LL: _S.LL,
    _S.RL: _S.RL, _S.N_RL: _S.RL, _S.I_RL: _S.RL,
}


def _rake_class(rake_deg: float) -> str:
    if np.isclose(rake_deg, 0.0, atol=_ANGLE_TOLERANCE_DEG):
        return "pure_ll"
    if np.isclose(rake_deg, 90.0, atol=_ANGLE_TOLERANCE_DEG):
        return "pure_normal"
    if np.isclose(rake_deg, 180.0, atol=_ANGLE_TOLERANCE_DEG):
        return "pure_rl"
    return "normal_ll" if rake_deg < 90.0 else "normal_rl"


def striation_reversed(dip_deg: float, rake_deg: float, sense: SenseOfMovement) -> bool:
    """Whether the measured sense reverses the rake direction.

    Raises ValueError when the sense cannot describe a slip along that rake.
    """
    sense = SenseOfMovement(sense)
    if sense is _S.UKN:
        return False

    if np.isclose(dip_deg, 90.0, atol=_ANGLE_TOLERANCE_DEG):
        # Vertical plane: no hanging wall, only the lateral component is defined
        lateral = _LATERAL.get(sense)
        if lateral is None or np.isclose(rake_deg, 90.0, atol=_ANGLE_TOLERANCE_DEG):
            raise ValueError(
                f"Sense {sense.value} is undefined for rake {rake_deg} on a vertical plane"
            )
        expected = _S.LL if rake_deg < 90.0 else _S.RL
        return lateral is not expected

    consistent, reversed_ = _RAKE_SENSES[_rake_class(rake_deg)]
    if sense in consistent:
        return False
    if sense in reversed_:
        return True
    raise ValueError(f"Sense {sense.value} is inconsistent with rake {rake_deg}")


def local_frame(theta: float, phi: float) -> tuple:
    """(e_theta, e_phi) tangent vectors of a plane with normal (theta, phi)."""
    e_theta = np.array([
        np.cos(theta) * np.cos(phi), np.cos(theta) * np.sin(phi), -np.sin(theta)
    ])
    e_phi = np.array([-np.sin(phi), np.cos(phi), 0.0])
    return e_theta, e_phi


def _frozen(v: np.ndarray) -> np.ndarray:
    v = np.array(v, dtype=float)
    v.setflags(write=False)
    return v


@dataclass(frozen=True, eq=False)
class Fault:
    """One striated fault plane."""

    normal: np.ndarray
    striation: np.ndarray
    e_theta: np.ndarray
    e_phi: np.ndarray
    pole: SphericalCoords
    sense: SenseOfMovement = SenseOfMovement.UKN

    @classmethod
    def from_vectors(cls, normal, striation, sense=SenseOfMovement.UKN) -> "Fault":
        """Build a fault from a plane normal and a slip direction.

        A downward normal is flipped together with the striation so the
        striation keeps describing the block on the normal's side.
        """
        n = normalize(normal)
        s = normalize(striation)
        if n[2] < 0:
            n, s = -n, -s
        if abs(np.dot(n, s)) > IN_PLANE_TOLERANCE:
            raise ValueError(
                f"Striation {s} does not lie in the plane with normal {n}"
            )
        s = normalize(s - np.dot(s, n) * n)
        theta, phi = vector_to_spherical(n)
        e_theta, e_phi = local_frame(theta, phi)
        return cls(
            normal=_frozen(n), striation=_frozen(s),
            e_theta=_frozen(e_theta), e_phi=_frozen(e_phi),
            pole=SphericalCoords(theta, phi), sense=SenseOfMovement(sense),
        )

    @classmethod
    def from_angles(cls, dip_direction_deg: float, dip_deg: float, rake_deg: float,
                    sense=SenseOfMovement.UKN) -> "Fault":
        """Build a fault from field measurements.

        Parameters
        ----------
        dip_direction_deg : Dip direction, clockwise from North (degrees)
        dip_deg : Dip angle in [0, 90] (degrees)
        rake_deg : Striation angle in [0, 180], measured in the plane from
            the strike (right-hand rule) toward the down-dip direction
        sense : Sense of movement; reverses the striation when the rake
            describes the opposite motion

        Returns
        -------
        Fault with an upward normal
        """
        if not 0.0 <= dip_deg <= 90.0:
            raise ValueError(f"dip must lie in [0, 90], got {dip_deg}")
        if not 0.0 <= rake_deg <= 180.0:
            raise ValueError(f"rake must lie in [0, 180], got {rake_deg}")
        sense = SenseOfMovement(sense)

        theta = np.radians(dip_deg)
        phi = np.mod(5 * np.pi / 2 - np.radians(dip_direction_deg), 2 * np.pi)
        e_theta, e_phi = local_frame(theta, phi)
        normal = np.array([
            np.sin(theta) * np.cos(phi), np.sin(theta) * np.sin(phi), np.cos(theta)
        ])

        alpha = np.radians(rake_deg)
        striation = np.cos(alpha) * e_phi + np.sin(alpha) * e_theta
        if striation_reversed(dip_deg, rake_deg, sense):
            striation = -striation

        return cls(
            normal=_frozen(normal), striation=_frozen(striation),
            e_theta=_frozen(e_theta), e_phi=_frozen(e_phi),
            pole=SphericalCoords(theta, phi), sense=sense,
        )


class FaultSet(Sequence):
    """Immutable ordered collection of faults with stacked, read-only arrays."""

    def __init__(self, faults=()):
        self._faults = tuple(faults)
        if self._faults:
            normals = np.vstack([f.normal for f in self._faults])
            striations = np.vstack([f.striation for f in self._faults])
        else:
            normals = np.empty((0, 3))
            striations = np.empty((0, 3))
        normals.setflags(write=False)
        striations.setflags(write=False)
        self._normals = normals
        self._striations = striations

    @property
    def normals(self) -> np.ndarray:
        return self._normals

    @property
    def striations(self) -> np.ndarray:
        return self._striations

    def __getitem__(self, index):
        if isinstance(index, slice):
            return FaultSet(self._faults[index])
        return self._faults[index]

    def __len__(self) -> int:
        return len(self._faults)

    def __repr__(self) -> str:
        return f"FaultSet(n={len(self)})"
