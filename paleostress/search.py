"""
Global orientation search.

Trial tensors are rotations of the user's rough estimate Rrot (rows: σ1,
σ3, σ2 in the geographic frame) combined with a stress ratio R:

    Dᵀ = Rot(axis, angle)        W = D · Rrot
    STdelta = Wᵀ · diag(-1, 0, -R) · W

The Fibonacci-lattice search sweeps rotation axes spread quasi-uniformly
over the sphere, positive rotation magnitudes up to a half interval and
stress ratios around R0, keeps the N best grid points in a bounded list
and polishes each of them on a local axis grid. Every evaluation is a pure
function of the immutable criterion and a small per-iteration context,
so the axis loop can be split across worker processes and the partial
lists merged afterwards.

A search method exposes one operation:

    run(candidate) -> improved

which overwrites ``candidate`` only when it finds a strictly lower misfit.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from .config import (
    DEFAULT_STRESS_RATIO, GOLDEN_RATIO, SEARCH_METHODS, ConfigurationError,
    FibonacciSearchConfig, MonteCarloSearchConfig,
)
from .faults import local_frame
from .geometry import SphericalCoords, search_rotation_tensors, stress_tensor_delta
from .local_minima import BoundedLocalMinimaList, LocalMinimum

logger = logging.getLogger(__name__)

ZERO_AXIS = SphericalCoords(0.0, 0.0)
_ROUND_OFF = 1e-9


@dataclass
class CandidateSolution:
    """Best tensor known to the caller; updated in place by a search."""

    rotation_d: np.ndarray = field(default_factory=lambda: np.eye(3))
    rotation_w: np.ndarray = field(default_factory=lambda: np.eye(3))
    stress_ratio: float = DEFAULT_STRESS_RATIO
    misfit: float = np.inf
    improved: bool = False
    rot_axis: SphericalCoords = ZERO_AXIS
    rot_angle: float = 0.0

    @property
    def stress_tensor(self) -> np.ndarray:
        return stress_tensor_delta(self.stress_ratio, self.rotation_w)


@dataclass(frozen=True)
class SearchContext:
    """Immutable grid description handed to every sweep worker."""

    rough_rotation: np.ndarray
    magnitudes: tuple
    stress_ratios: tuple


def fibonacci_node_count(delta_rot_angle: float) -> int:
    """H such that the 2H + 1 lattice axes are about ``delta_rot_angle`` apart."""
    return int(np.ceil(2 * np.pi / delta_rot_angle ** 2))


def fibonacci_axes(delta_rot_angle: float) -> list:
    """Rotation axes of the Fibonacci (golden-angle) lattice.

    For i in [-H, H]: latitude asin(2i / (2H + 1)), longitude 2πi / φ.
    """
    n_nodes = fibonacci_node_count(delta_rot_angle)
    i = np.arange(-n_nodes, n_nodes + 1)
    latitude = np.arcsin(2 * i / (2 * n_nodes + 1))
    longitude = 2 * np.pi * i / GOLDEN_RATIO
    return [SphericalCoords(float(np.pi / 2 - lat), float(lon))
            for lat, lon in zip(latitude, longitude)]


def stress_ratio_grid(stress_ratio: float, half_interval: float, delta: float) -> tuple:
    """(l, R0 + l·ΔR) pairs for l = -L..L with L = ceil(half_interval / ΔR).

    Ratios outside [0, 1] are dropped; when the step jumps over a bound,
    that bound is evaluated once in their place, under the ordinal of the
    nearest dropped node.
    """
    n_steps = int(np.ceil(half_interval / delta - _ROUND_OFF))
    grid = []
    below = above = None
    for l in range(-n_steps, n_steps + 1):
        ratio = stress_ratio + l * delta
        if ratio < -_ROUND_OFF:
            below = l
        elif ratio > 1.0 + _ROUND_OFF:
            if above is None:
                above = l
        else:
            grid.append((l, min(max(ratio, 0.0), 1.0)))
    if below is not None and grid[0][1] > _ROUND_OFF:
        grid.insert(0, (below, 0.0))
    if above is not None and grid[-1][1] < 1.0 - _ROUND_OFF:
        grid.append((above, 1.0))
    return tuple(grid)


def rotation_magnitudes(half_interval: float, delta: float) -> tuple:
    """(j, j·Δ) pairs for j = 1..ceil(half_interval / Δ)."""
    n_steps = int(np.ceil(half_interval / delta - _ROUND_OFF))
    return tuple((j, j * delta) for j in range(1, n_steps + 1))


def local_axis_grid(axis: SphericalCoords, step: float, n_nodes: int):
    """Yield ((dj, dk), axis_vector) on a (2n + 1)² grid around ``axis``.

    Offsets are arc lengths in the tangent frame of the axis, dk·step
    along e_theta and dj·step along e_phi, so the grid keeps its spacing
    near the poles of the lattice. The centre node is skipped.
    """
    centre = axis.to_vector()
    e_theta, e_phi = local_frame(axis.theta, axis.phi)
    for dj in range(-n_nodes, n_nodes + 1):
        for dk in range(-n_nodes, n_nodes + 1):
            if dj == 0 and dk == 0:
                continue
            direction = dk * e_theta + dj * e_phi
            arc = step * np.hypot(dj, dk)
            yield (dj, dk), (np.cos(arc) * centre
                             + np.sin(arc) * direction / np.linalg.norm(direction))


def evaluate_rotation(criterion, rough_rotation: np.ndarray, axis_vector,
                      angle: float, stress_ratio: float) -> float:
    """Misfit of the trial tensor rotated by ``angle`` about ``axis_vector``."""
    _, w = search_rotation_tensors(rough_rotation, axis_vector, angle)
    return criterion.value(stress_tensor_delta(stress_ratio, w))


def _sweep_axes(criterion, context: SearchContext, indexed_axes: list,
                capacity: int, early_exit: bool) -> tuple:
    """Sweep one block of axes; returns (partial minima, hit exact zero)."""
    minima = BoundedLocalMinimaList(capacity)
    for i, axis in indexed_axes:
        axis_vector = axis.to_vector()
        for j, angle in context.magnitudes:
            _, w = search_rotation_tensors(context.rough_rotation, axis_vector, angle)
            for l, ratio in context.stress_ratios:
                misfit = criterion.value(stress_tensor_delta(ratio, w))
                if minima.accepts(misfit):
                    minima.insert(LocalMinimum(misfit, axis, angle, ratio, (i, j, l)))
                if early_exit and misfit == 0.0:
                    return minima, True
    return minima, False


def _report(candidate: CandidateSolution, best: LocalMinimum,
            rough_rotation: np.ndarray) -> bool:
    if not best.misfit < candidate.misfit:
        candidate.improved = False
        return False
    d, w = search_rotation_tensors(rough_rotation, best.axis.to_vector(), best.rot_angle)
    candidate.rotation_d = d
    candidate.rotation_w = w
    candidate.stress_ratio = best.stress_ratio
    candidate.misfit = best.misfit
    candidate.rot_axis = best.axis
    candidate.rot_angle = best.rot_angle
    candidate.improved = True
    return True


# ──────────────────────────────────────────────
# Fibonacci Lattice Search
# ──────────────────────────────────────────────

class FibonacciLatticeSearch:
    """Deterministic sweep of axis x magnitude x stress ratio, then refinement.

    Ties are broken by sweep order (axis-major, magnitude next, ratio
    innermost): a later grid point replaces an earlier one only with a
    strictly lower misfit.
    """

    name = "fibonacci_lattice"

    def __init__(self, criterion, rough_rotation: np.ndarray,
                 config: FibonacciSearchConfig | None = None):
        self.criterion = criterion
        self.rough_rotation = np.asarray(rough_rotation, dtype=float)
        self.config = config or FibonacciSearchConfig()

    def context(self) -> SearchContext:
        cfg = self.config
        return SearchContext(
            rough_rotation=self.rough_rotation,
            magnitudes=rotation_magnitudes(cfg.rot_angle_half_interval, cfg.delta_rot_angle),
            stress_ratios=stress_ratio_grid(
                cfg.stress_ratio, cfg.stress_ratio_half_interval, cfg.delta_stress_ratio
            ),
        )

    def sweep(self) -> BoundedLocalMinimaList:
        """Evaluate the zero rotation and the full lattice grid."""
        cfg = self.config
        context = self.context()
        capacity = cfg.n_local_minima

        minima = BoundedLocalMinimaList(capacity)
        for l, ratio in context.stress_ratios:
            misfit = self.criterion.value(stress_tensor_delta(ratio, self.rough_rotation))
            minima.insert(LocalMinimum(misfit, ZERO_AXIS, 0.0, ratio, (-1, 0, l)))
            if cfg.early_exit and misfit == 0.0:
                logger.info("Rough estimate already fits exactly (R=%.3f)", ratio)
                return minima

        axes = list(enumerate(fibonacci_axes(cfg.delta_rot_angle)))
        logger.info(
            "Sweeping %d axes x %d magnitudes x %d stress ratios (%s, %d worker(s))",
            len(axes), len(context.magnitudes), len(context.stress_ratios),
            self.criterion.name, cfg.workers,
        )

        if cfg.workers == 1 or len(axes) < 2:
            partial, hit_zero = _sweep_axes(
                self.criterion, context, axes, capacity, cfg.early_exit
            )
            partials = [partial]
        else:
            size = -(-len(axes) // cfg.workers)
            blocks = [axes[k:k + size] for k in range(0, len(axes), size)]
            with ProcessPoolExecutor(max_workers=cfg.workers) as pool:
                futures = [
                    pool.submit(_sweep_axes, self.criterion, context, block,
                                capacity, cfg.early_exit)
                    for block in blocks
                ]
                results = [f.result() for f in futures]
            partials = [partial for partial, _ in results]
            hit_zero = any(hit for _, hit in results)

        if hit_zero:
            logger.info("Exact-zero misfit found, sweep stopped early")
        return BoundedLocalMinimaList.merge(minima, *partials, capacity=capacity)

    def refine(self, minima: BoundedLocalMinimaList) -> LocalMinimum:
        """Local (Δphi, Δtheta) grid around the axis of every retained minimum."""
        best = minima.best
        n = self.config.local_grid_nodes
        step = self.config.refinement_step
        if best is None or best.misfit == 0.0 or n == 0:
            return best

        for entry in minima:
            if entry.rot_angle == 0.0:
                continue
            for offset, axis_vector in local_axis_grid(entry.axis, step, n):
                misfit = evaluate_rotation(
                    self.criterion, self.rough_rotation, axis_vector,
                    entry.rot_angle, entry.stress_ratio,
                )
                if misfit < best.misfit:
                    best = LocalMinimum(
                        misfit, SphericalCoords.from_vector(axis_vector),
                        entry.rot_angle, entry.stress_ratio, entry.ordinal + offset,
                    )
                    logger.debug("Refined misfit %.6f around %s", misfit, entry.ordinal)
        return best

    def run(self, candidate: CandidateSolution) -> bool:
        best = self.refine(self.sweep())
        improved = _report(candidate, best, self.rough_rotation)
        logger.info(
            "Fibonacci lattice search: misfit=%.6f R=%.3f angle=%.2f deg improved=%s",
            best.misfit, best.stress_ratio, np.degrees(best.rot_angle), improved,
        )
        return improved


# ──────────────────────────────────────────────
# Monte Carlo Search
# ──────────────────────────────────────────────

class MonteCarloSearch:
    """Random rotations and stress ratios around the rough estimate."""

    name = "monte_carlo"

    def __init__(self, criterion, rough_rotation: np.ndarray,
                 config: MonteCarloSearchConfig | None = None):
        self.criterion = criterion
        self.rough_rotation = np.asarray(rough_rotation, dtype=float)
        self.config = config or MonteCarloSearchConfig()
        self.rng = np.random.default_rng(self.config.seed)

    def run(self, candidate: CandidateSolution) -> bool:
        cfg = self.config
        r_min = max(0.0, cfg.stress_ratio - cfg.stress_ratio_half_interval)
        r_max = min(1.0, cfg.stress_ratio + cfg.stress_ratio_half_interval)

        misfit = self.criterion.value(stress_tensor_delta(cfg.stress_ratio, self.rough_rotation))
        best = LocalMinimum(misfit, ZERO_AXIS, 0.0, cfg.stress_ratio, (-1,))

        for trial in range(cfg.n_trials):
            if best.misfit == 0.0:
                break
            axis = SphericalCoords(
                float(np.arccos(np.clip(2 * self.rng.random() - 1, -1.0, 1.0))),
                float(2 * np.pi * self.rng.random()),
            )
            angle = float(self.rng.random() * cfg.rot_angle_half_interval)
            ratio = float(self.rng.uniform(r_min, r_max))
            misfit = evaluate_rotation(
                self.criterion, self.rough_rotation, axis.to_vector(), angle, ratio
            )
            if misfit < best.misfit:
                best = LocalMinimum(misfit, axis, angle, ratio, (trial,))

        improved = _report(candidate, best, self.rough_rotation)
        logger.info(
            "Monte Carlo search (%d trials): misfit=%.6f R=%.3f improved=%s",
            cfg.n_trials, best.misfit, best.stress_ratio, improved,
        )
        return improved


def create_search_method(name: str, criterion, rough_rotation: np.ndarray, config=None):
    """Build the search method registered under ``name``.

    ``config`` may be the matching settings object, a plain dict, or None
    for defaults.
    """
    if name == "fibonacci_lattice":
        if not isinstance(config, FibonacciSearchConfig):
            config = FibonacciSearchConfig.from_dict(config)
        return FibonacciLatticeSearch(criterion, rough_rotation, config)
    elif name == "monte_carlo":
        if not isinstance(config, MonteCarloSearchConfig):
            config = MonteCarloSearchConfig.from_dict(config)
        return MonteCarloSearch(criterion, rough_rotation, config)
    raise ConfigurationError(f"Unknown search method: {name}. Choose from {SEARCH_METHODS}")
