"""
Misfit criteria.

Each criterion is built once from an immutable FaultSet and a
MisfitCriterionConfig and scores trial stress tensors:

    value(stress_tensor) -> float >= 0

Per-fault contributions (``per_fault``) are summed, or, when
``max_nb_fault`` is set, only the smallest ``max_nb_fault`` of them are
summed so that a few incompatible measurements cannot dominate the fit.
"""

from typing import Protocol

import numpy as np

from .config import CRITERIA, EPSILON, ConfigurationError, MisfitCriterionConfig
from .faults import FaultSet
from .geometry import angular_dif_striations, fault_stress_components
from .pole_search import PoleSearch, same_pole_bound


class MisfitCriterion(Protocol):
    name: str
    faults: FaultSet
    config: MisfitCriterionConfig

    def per_fault(self, stress_tensor: np.ndarray) -> np.ndarray: ...

    def value(self, stress_tensor: np.ndarray) -> float: ...


def aggregate_misfit(values: np.ndarray, max_nb_fault: int | None = None) -> float:
    """Sum of all values, or of the ``max_nb_fault`` smallest ones."""
    if max_nb_fault is None or max_nb_fault >= len(values):
        return float(np.sum(values))
    smallest = np.sort(values, kind="stable")[:max_nb_fault]
    return float(np.sum(smallest))


def angular_deviations(faults: FaultSet, stress_tensor: np.ndarray) -> tuple:
    """Angle between measured striations and resolved shear stress.

    Returns
    -------
    deviation : (N,) angles in [0, π]; π/2 for planes carrying no shear
    sigma_n : (N,) normal stress on each plane
    shear_mag : (N,) shear stress magnitude on each plane
    """
    shear, sigma_n, shear_mag = fault_stress_components(stress_tensor, faults.normals)
    deviation = np.full(len(faults), np.pi / 2)
    sheared = shear_mag > EPSILON
    deviation[sheared] = angular_dif_striations(
        faults.striations[sheared], shear[sheared], shear_mag[sheared]
    )
    return deviation, sigma_n, shear_mag


# ──────────────────────────────────────────────
# Criteria
# ──────────────────────────────────────────────

class AngularDeviation:
    """Sum of angular deviations between measured and predicted slip."""

    name = "angular_deviation"

    def __init__(self, faults: FaultSet, config: MisfitCriterionConfig | None = None):
        self.faults = faults
        self.config = config or MisfitCriterionConfig()

    def per_fault(self, stress_tensor: np.ndarray) -> np.ndarray:
        return angular_deviations(self.faults, stress_tensor)[0]

    def value(self, stress_tensor: np.ndarray) -> float:
        return aggregate_misfit(self.per_fault(stress_tensor), self.config.max_nb_fault)


class AngularDeviationFrictionLaw:
    """Angular deviation plus a weighted Mohr-Coulomb penalty.

    The normal stress is shifted by ``cohesion / tan(friction_angle)`` so
    the failure line passes through the origin of the reduced Mohr plane;
    a plane whose apparent friction angle atan(|τ| / shifted σn) is below
    the rock friction angle is penalized by the difference.
    """

    name = "friction_law"

    def __init__(self, faults: FaultSet, config: MisfitCriterionConfig | None = None):
        self.faults = faults
        self.config = config or MisfitCriterionConfig()
        if self.config.friction_angle <= EPSILON:
            raise ConfigurationError(
                f"friction_angle must be > {EPSILON} rad for the friction law, "
                f"got {self.config.friction_angle}"
            )
        self.delta_normal_stress = self.config.cohesion / np.tan(self.config.friction_angle)

    def friction_penalties(self, sigma_n: np.ndarray, shear_mag: np.ndarray) -> np.ndarray:
        friction_angle = self.config.friction_angle
        shifted = -sigma_n + self.delta_normal_stress
        penalty = np.full(len(shifted), friction_angle)
        loaded = shifted > EPSILON
        apparent = np.arctan(shear_mag[loaded] / shifted[loaded])
        penalty[loaded] = np.where(apparent >= friction_angle, 0.0, friction_angle - apparent)
        return penalty

    def per_fault(self, stress_tensor: np.ndarray) -> np.ndarray:
        deviation, sigma_n, shear_mag = angular_deviations(self.faults, stress_tensor)
        penalty = self.friction_penalties(sigma_n, shear_mag)
        return deviation + self.config.friction_weight * penalty

    def value(self, stress_tensor: np.ndarray) -> float:
        return aggregate_misfit(self.per_fault(stress_tensor), self.config.max_nb_fault)


class MinimumRotation:
    """Gephart-style misfit: smallest rotation reconciling each fault."""

    name = "minimum_rotation"

    def __init__(self, faults: FaultSet, config: MisfitCriterionConfig | None = None,
                 pole_search: PoleSearch | None = None):
        self.faults = faults
        self.config = config or MisfitCriterionConfig()
        self.pole_search = pole_search or PoleSearch()

    def per_fault(self, stress_tensor: np.ndarray) -> np.ndarray:
        return np.array([
            self.pole_search.search(fault, stress_tensor, same_pole_bound(fault, stress_tensor))
            for fault in self.faults
        ])

    def value(self, stress_tensor: np.ndarray) -> float:
        return aggregate_misfit(self.per_fault(stress_tensor), self.config.max_nb_fault)


def create_criterion(name: str, faults: FaultSet,
                     config: MisfitCriterionConfig | None = None,
                     pole_search: PoleSearch | None = None) -> MisfitCriterion:
    """Build the misfit criterion registered under ``name``."""
    if name == "angular_deviation":
        return AngularDeviation(faults, config)
    elif name == "friction_law":
        return AngularDeviationFrictionLaw(faults, config)
    elif name == "minimum_rotation":
        return MinimumRotation(faults, config, pole_search)
    raise ConfigurationError(f"Unknown misfit criterion: {name}. Choose from {CRITERIA}")
