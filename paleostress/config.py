"""
Configuration for the paleostress inversion.

Module-level defaults, selector registries and the validated settings
objects shared by the misfit criteria and the search methods. All angles
are radians; the ``from_dict`` constructors accept degrees for the fields
a user types by hand (HTTP bodies, notebooks).
"""

from dataclasses import dataclass, fields

import numpy as np


# ──────────────────────────────────────────────
# Defaults
# ──────────────────────────────────────────────

EPSILON = 1e-7
GOLDEN_RATIO = (1.0 + np.sqrt(5.0)) / 2.0

DEFAULT_ROT_ANGLE_HALF_INTERVAL = np.radians(30.0)
DEFAULT_DELTA_ROT_ANGLE = np.radians(5.0)
DEFAULT_STRESS_RATIO = 0.5
DEFAULT_STRESS_RATIO_HALF_INTERVAL = 0.25
DEFAULT_DELTA_STRESS_RATIO = 0.05
DEFAULT_N_LOCAL_MINIMA = 10
DEFAULT_LOCAL_GRID_NODES = 2

DEFAULT_FRICTION_ANGLE = np.radians(30.0)
DEFAULT_POLE_DELTA = np.radians(2.0)
DEFAULT_MONTE_CARLO_TRIALS = 500

CRITERIA = ["angular_deviation", "friction_law", "minimum_rotation"]
SEARCH_METHODS = ["fibonacci_lattice", "monte_carlo"]
POLE_SEARCHES = ["fibonacci_cone", "conical_grid", "regular_grid", "monte_carlo"]


class ConfigurationError(ValueError):
    """Invalid settings, raised before any search or fault evaluation runs."""


def _check_positive(name: str, value: float):
    if not value > 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def _check_count(settings, name: str, minimum: int):
    """Require an integral count >= minimum and store it as int."""
    value = getattr(settings, name)
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if isinstance(value, (bool, str)) or count != value:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if count < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    object.__setattr__(settings, name, count)


def _known_fields(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names - {f"{n}_deg" for n in names}
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}"
        )
    out = {}
    for key, value in data.items():
        if key.endswith("_deg") and key[:-4] in names:
            out[key[:-4]] = float(np.radians(float(value)))
        else:
            out[key] = value
    return out


# ──────────────────────────────────────────────
# Misfit Criterion Settings
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class MisfitCriterionConfig:
    """Settings shared by every misfit criterion.

    ``friction_angle`` is only checked by the friction-law criterion, which
    cannot shift the Mohr circle without a strictly positive angle.
    """

    cohesion: float = 0.0
    friction_angle: float = DEFAULT_FRICTION_ANGLE
    friction_weight: float = 1.0
    max_nb_fault: int | None = None

    def __post_init__(self):
        if self.cohesion < 0:
            raise ConfigurationError(f"cohesion must be >= 0, got {self.cohesion}")
        if self.friction_weight < 0:
            raise ConfigurationError(
                f"friction_weight must be >= 0, got {self.friction_weight}"
            )
        if self.max_nb_fault is not None:
            _check_count(self, "max_nb_fault", 1)

    @classmethod
    def from_dict(cls, data: dict | None) -> "MisfitCriterionConfig":
        return cls(**_known_fields(cls, data or {}))


# ──────────────────────────────────────────────
# Search Settings
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class FibonacciSearchConfig:
    """Grid of the global Fibonacci-lattice sweep and its refinement."""

    rot_angle_half_interval: float = DEFAULT_ROT_ANGLE_HALF_INTERVAL
    delta_rot_angle: float = DEFAULT_DELTA_ROT_ANGLE
    stress_ratio: float = DEFAULT_STRESS_RATIO
    stress_ratio_half_interval: float = DEFAULT_STRESS_RATIO_HALF_INTERVAL
    delta_stress_ratio: float = DEFAULT_DELTA_STRESS_RATIO
    n_local_minima: int = DEFAULT_N_LOCAL_MINIMA
    local_grid_nodes: int = DEFAULT_LOCAL_GRID_NODES
    local_grid_delta: float | None = None
    early_exit: bool = True
    workers: int = 1

    def __post_init__(self):
        _check_positive("delta_rot_angle", self.delta_rot_angle)
        _check_positive("delta_stress_ratio", self.delta_stress_ratio)
        _check_count(self, "n_local_minima", 1)
        _check_count(self, "workers", 1)
        if self.rot_angle_half_interval < 0 or self.stress_ratio_half_interval < 0:
            raise ConfigurationError("half intervals must be >= 0")
        if not 0.0 <= self.stress_ratio <= 1.0:
            raise ConfigurationError(
                f"stress_ratio must lie in [0, 1], got {self.stress_ratio}"
            )
        _check_count(self, "local_grid_nodes", 0)
        if self.local_grid_delta is not None:
            _check_positive("local_grid_delta", self.local_grid_delta)

    @property
    def refinement_step(self) -> float:
        if self.local_grid_delta is not None:
            return self.local_grid_delta
        return self.delta_rot_angle / (self.local_grid_nodes + 1)

    @classmethod
    def from_dict(cls, data: dict | None) -> "FibonacciSearchConfig":
        return cls(**_known_fields(cls, data or {}))


@dataclass(frozen=True)
class MonteCarloSearchConfig:
    """Random sampling of rotations and stress ratios around the estimate."""

    n_trials: int = 10000
    rot_angle_half_interval: float = DEFAULT_ROT_ANGLE_HALF_INTERVAL
    stress_ratio: float = DEFAULT_STRESS_RATIO
    stress_ratio_half_interval: float = DEFAULT_STRESS_RATIO_HALF_INTERVAL
    seed: int | None = None

    def __post_init__(self):
        _check_count(self, "n_trials", 1)
        if self.rot_angle_half_interval < 0 or self.stress_ratio_half_interval < 0:
            raise ConfigurationError("half intervals must be >= 0")
        if not 0.0 <= self.stress_ratio <= 1.0:
            raise ConfigurationError(
                f"stress_ratio must lie in [0, 1], got {self.stress_ratio}"
            )

    @classmethod
    def from_dict(cls, data: dict | None) -> "MonteCarloSearchConfig":
        return cls(**_known_fields(cls, data or {}))


@dataclass(frozen=True)
class PoleSearchConfig:
    """Per-fault pole refinement used by the minimum-rotation criterion."""

    kind: str = "fibonacci_cone"
    delta_angle: float = DEFAULT_POLE_DELTA
    n_trials: int = DEFAULT_MONTE_CARLO_TRIALS
    seed: int | None = None

    def __post_init__(self):
        if self.kind not in POLE_SEARCHES:
            raise ConfigurationError(
                f"Unknown pole search: {self.kind}. Choose from {POLE_SEARCHES}"
            )
        _check_positive("delta_angle", self.delta_angle)
        _check_count(self, "n_trials", 1)

    @classmethod
    def from_dict(cls, data: dict | None) -> "PoleSearchConfig":
        return cls(**_known_fields(cls, data or {}))
