"""
Misfit landscape sampling.

A parameter space maps the four search parameters around a rough
estimate onto a misfit value:

    R       stress ratio in [0, 1]
    theta   colatitude of the rotation axis (radians)
    phi     azimuth of the rotation axis (radians)
    psi     rotation magnitude about that axis (radians)

Domains sweep two or three of those parameters, on a regular grid or at
seeded random positions, with the others held fixed, and return plain
numpy arrays ready for contour or scatter plots.
"""

import logging
from dataclasses import dataclass

import numpy as np

from .config import DEFAULT_STRESS_RATIO, ConfigurationError
from .geometry import search_rotation_tensors, spherical_to_vector, stress_tensor_delta

logger = logging.getLogger(__name__)

PARAMETERS = ("R", "theta", "phi", "psi")
_ANGLES = ("theta", "phi", "psi")


# ──────────────────────────────────────────────
# Parameter Space
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class DomainAxis:
    """One swept parameter and its closed bounds."""

    name: str
    bounds: tuple

    def __post_init__(self):
        if self.name not in PARAMETERS:
            raise ConfigurationError(
                f"Unknown parameter: {self.name}. Choose from {list(PARAMETERS)}"
            )
        low, high = (float(b) for b in self.bounds)
        if not low <= high:
            raise ConfigurationError(f"{self.name} bounds must be ascending, got {self.bounds}")
        if self.name == "R" and (low < 0.0 or high > 1.0):
            raise ConfigurationError(f"R bounds must lie in [0, 1], got {self.bounds}")
        object.__setattr__(self, "bounds", (low, high))

    def samples(self, n: int) -> np.ndarray:
        return np.linspace(self.bounds[0], self.bounds[1], n)


class ParameterSpace:
    """Misfit of ``criterion`` as a function of (R, theta, phi, psi).

    Parameters
    ----------
    criterion : MisfitCriterion
        Anything with ``value(stress_tensor) -> float``.
    rough_rotation : np.ndarray
        Rough-to-geographic tensor Rrot the rotations are applied to.
    fixed : dict, optional
        Values of the parameters that are not swept. Angles may be given
        in degrees as ``<name>_deg``. R defaults to 0.5 and the angles
        to 0, i.e. the rough estimate itself.
    """

    def __init__(self, criterion, rough_rotation: np.ndarray, fixed: dict | None = None):
        self.criterion = criterion
        self.rough_rotation = np.asarray(rough_rotation, dtype=float)
        self.fixed = {"R": DEFAULT_STRESS_RATIO, "theta": 0.0, "phi": 0.0, "psi": 0.0}
        for key, value in (fixed or {}).items():
            if key.endswith("_deg") and key[:-4] in _ANGLES:
                self.fixed[key[:-4]] = float(np.radians(float(value)))
            elif key in PARAMETERS:
                self.fixed[key] = float(value)
            else:
                raise ConfigurationError(f"Unknown parameter: {key}")
        if not 0.0 <= self.fixed["R"] <= 1.0:
            raise ConfigurationError(f"R must lie in [0, 1], got {self.fixed['R']}")

    def tensor(self, **params) -> np.ndarray:
        p = {**self.fixed, **params}
        axis = spherical_to_vector(p["theta"], p["phi"])
        _, w = search_rotation_tensors(self.rough_rotation, axis, p["psi"])
        return stress_tensor_delta(p["R"], w)

    def cost(self, **params) -> float:
        return float(self.criterion.value(self.tensor(**params)))


# ──────────────────────────────────────────────
# Domains
# ──────────────────────────────────────────────

def _check_axes(axes: tuple):
    names = [a.name for a in axes]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Domain axes must be distinct, got {names}")


def _check_sampling(name: str, n: int, minimum: int):
    if isinstance(n, bool) or int(n) != n or n < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {n}")


def _regular_domain(criterion, rough_rotation, axes: tuple, counts: tuple, fixed):
    _check_axes(axes)
    for axis, n in zip(axes, counts):
        _check_sampling(f"samples along {axis.name}", n, 2)
    space = ParameterSpace(criterion, rough_rotation, fixed)
    coords = [axis.samples(int(n)) for axis, n in zip(axes, counts)]
    values = np.empty(tuple(len(c) for c in coords))
    logger.info("Sampling regular %s domain, %d points",
                "x".join(a.name for a in axes), values.size)
    for index in np.ndindex(values.shape):
        params = {axis.name: c[i] for axis, c, i in zip(axes, coords, index)}
        values[index] = space.cost(**params)
    return (*coords, values)


def _random_domain(criterion, rough_rotation, axes: tuple, n_samples: int, seed, fixed):
    _check_axes(axes)
    _check_sampling("n_samples", n_samples, 1)
    space = ParameterSpace(criterion, rough_rotation, fixed)
    rng = np.random.default_rng(seed)
    low = np.array([a.bounds[0] for a in axes])
    high = np.array([a.bounds[1] for a in axes])
    samples = rng.uniform(low, high, size=(int(n_samples), len(axes)))
    logger.info("Sampling random %s domain, %d points",
                "x".join(a.name for a in axes), len(samples))
    values = np.array([
        space.cost(**{axis.name: s for axis, s in zip(axes, row)}) for row in samples
    ])
    return samples, values


def regular_domain_2d(criterion, rough_rotation, x_axis: DomainAxis, y_axis: DomainAxis,
                      n: int = 50, ny: int | None = None, fixed: dict | None = None) -> tuple:
    """Misfit on a regular nx × ny grid over two parameters.

    Returns
    -------
    x : np.ndarray, shape (nx,)
    y : np.ndarray, shape (ny,)
    values : np.ndarray, shape (nx, ny)
        ``values[i, j]`` is the misfit at ``(x[i], y[j])``.
    """
    return _regular_domain(criterion, rough_rotation, (x_axis, y_axis),
                           (n, n if ny is None else ny), fixed)


def regular_domain_3d(criterion, rough_rotation, x_axis: DomainAxis, y_axis: DomainAxis,
                      z_axis: DomainAxis, n: int = 20, fixed: dict | None = None) -> tuple:
    """Misfit on a regular n³ grid; returns (x, y, z, values[i, j, k])."""
    return _regular_domain(criterion, rough_rotation, (x_axis, y_axis, z_axis),
                           (n, n, n), fixed)


def random_domain_2d(criterion, rough_rotation, x_axis: DomainAxis, y_axis: DomainAxis,
                     n_samples: int = 1000, seed: int | None = None,
                     fixed: dict | None = None) -> tuple:
    """Misfit at uniformly drawn (x, y) points.

    Returns ``(samples, values)`` with ``samples`` of shape (n_samples, 2).
    The same seed gives the same points.
    """
    return _random_domain(criterion, rough_rotation, (x_axis, y_axis),
                          n_samples, seed, fixed)


def random_domain_3d(criterion, rough_rotation, x_axis: DomainAxis, y_axis: DomainAxis,
                     z_axis: DomainAxis, n_samples: int = 1000, seed: int | None = None,
                     fixed: dict | None = None) -> tuple:
    return _random_domain(criterion, rough_rotation, (x_axis, y_axis, z_axis),
                          n_samples, seed, fixed)
