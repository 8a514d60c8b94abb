"""
Walk on Spheres solver for the Laplace equation with Dirichlet boundary values.

Each sample starts a walk at a grid point and repeatedly jumps to a uniformly
random point on the largest circle that cannot cross the boundary (its radius
is ``abs(phi)`` of the signed-distance levelset). Once the walk is within
``eps`` of the boundary, the boundary value there is the sample. By the
mean-value property the average over many walks converges to the harmonic
extension of the boundary values.

The solver keeps unnormalized running sums per grid cell, so repeated
``update`` calls refine the same estimate. Rows of the grid are sampled
independently, each with its own generator spawned from one root
``SeedSequence``; results for a fixed seed do not depend on ``jobs``.

Built-in levelsets and boundaries expose ``kernel_args`` and are walked by a
compiled numba kernel. Anything else, or any solver given an explicit
``rng_factory``, runs the Python ``SphereWalker``.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import operator
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
from numba import njit

from . import utils
from . import vector as vec
from .boundary_conditions import DirichletBoundary, make_boundary, value_kernel
from .domain import Levelset, make_levelset, phi_kernel
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

TAU = 2.0 * math.pi

# Anything with a ``random()`` method returning floats in [0, 1) will do
RngFactory = Callable[[np.random.SeedSequence], Any]

DEFAULT_LEVELSET = {"kind": "rect", "size": [1.5, 1.0]}
DEFAULT_BOUNDARY = {"kind": "sinusoid", "frequency": 5.0}


def default_rng_factory(seed_seq: np.random.SeedSequence) -> np.random.Generator:
    return np.random.default_rng(seed_seq)


class ConvergenceError(RuntimeError):
    """A walk used its whole iteration budget without reaching the boundary."""

    def __init__(self, start_pos: Sequence[float], max_iters: int) -> None:
        start = tuple(float(c) for c in start_pos)
        super().__init__(start, max_iters)
        self.start_pos = vec.vector(*start)
        self.max_iters = max_iters

    def __str__(self) -> str:
        x, y = self.start_pos
        return (
            f"WoS: exceeded {self.max_iters} iterations without reaching "
            f"boundary from pos ({x:.6g}, {y:.6g})"
        )


@dataclass
class SphereWalker:
    """Single-walk estimator bound to one geometry and one set of boundary values."""

    levelset: Levelset
    boundary: DirichletBoundary
    eps: float
    max_iters: int

    def walk(self, start_pos: Sequence[float] | np.ndarray, rng) -> float:
        """
        Performs one walk on spheres from ``start_pos``.

        Note that the levelset _must_ actually be a signed distance function,
        otherwise the steps taken will not remain in the domain.

        Raises:
            ConvergenceError: if ``max_iters`` steps do not bring the walk
                within ``eps`` of the boundary.
        """
        pos = np.array(start_pos, dtype=np.float64)
        for _ in range(self.max_iters):
            radius = abs(self.levelset.phi(pos))
            if radius < self.eps:
                return float(self.boundary.value(pos))

            angle = rng.random() * TAU  # angle in [0, 2pi)
            pos = pos + radius * np.array((math.cos(angle), math.sin(angle)))

        raise ConvergenceError(start_pos, self.max_iters)

    def sample(
        self, start_pos: np.ndarray, samples: int, rng
    ) -> Tuple[float, int, List[ConvergenceError]]:
        """Run ``samples`` walks; returns (sum of successes, success count, failures)."""
        total = 0.0
        converged = 0
        failures: List[ConvergenceError] = []
        for _ in range(samples):
            try:
                total += self.walk(start_pos, rng)
                converged += 1
            except ConvergenceError as err:
                failures.append(err)
        return total, converged, failures


@dataclass
class WoSParams:
    """Bounding box, grid and sampling settings of a WalkOnSpheres solver."""

    domain_start: Sequence[float] = (-2.0, -2.0)
    domain_end: Sequence[float] = (2.0, 2.0)
    resolution: Sequence[int] = (256, 256)
    eps: float = 0.05
    max_iters: int = 500
    seed: Optional[int] = None
    jobs: int = 1
    # False keeps failed walks in the denominator (zero contribution, counted samples)
    exclude_failed: bool = False


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _validate_params(params: WoSParams):
    try:
        start = vec.as_vector(params.domain_start)
        end = vec.as_vector(params.domain_end)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid bounding box: {e}") from e
    if not (np.all(np.isfinite(start)) and np.all(np.isfinite(end))):
        raise ConfigurationError("Bounding box corners must be finite")
    if not vec.all_lt(start, end):
        raise ConfigurationError(
            f"domain_start {tuple(start)} must be below domain_end {tuple(end)} componentwise"
        )

    try:
        res = np.asarray(params.resolution, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid resolution: {e}") from e
    if res.shape != (vec.DIM,) or not np.all(np.isfinite(res)) or not np.all(res == np.floor(res)):
        raise ConfigurationError(f"Resolution must be two integers, got {params.resolution!r}")
    if not vec.all_gt(res, vec.ZERO):
        raise ConfigurationError(f"Resolution must be positive, got {params.resolution!r}")
    resolution = vec.uint_vector(int(res[0]), int(res[1]))

    try:
        eps = float(params.eps)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid eps: {e}") from e
    if not (eps > 0.0 and math.isfinite(eps)):
        raise ConfigurationError(f"eps must be positive, got {params.eps!r}")

    if not _is_int(params.max_iters) or params.max_iters <= 0:
        raise ConfigurationError(f"max_iters must be a positive integer, got {params.max_iters!r}")
    if not _is_int(params.jobs) or params.jobs < 1:
        raise ConfigurationError(f"jobs must be a positive integer, got {params.jobs!r}")

    return start, end, resolution, eps, int(params.max_iters)


# Kind codes and parameter arrays of the built-in providers, see ``kernel_args``
KernelArgs = Tuple[int, np.ndarray, int, np.ndarray]


def _kernel_args(walker: SphereWalker) -> Optional[KernelArgs]:
    """Compiled-walk arguments, or None when a provider has no compiled form."""
    levelset_args = getattr(walker.levelset, "kernel_args", None)
    boundary_args = getattr(walker.boundary, "kernel_args", None)
    if levelset_args is None or boundary_args is None:
        return None
    return (*levelset_args(), *boundary_args())


@njit(cache=True)
def _walk_kernel(x, y, lkind, lparams, bkind, bparams, eps, max_iters):
    """Compiled ``SphereWalker.walk``. Returns (value, converged)."""
    for _ in range(max_iters):
        radius = abs(phi_kernel(lkind, lparams, x, y))
        if radius < eps:
            return value_kernel(bkind, bparams, x, y), True

        angle = np.random.random() * TAU
        x += radius * math.cos(angle)
        y += radius * math.sin(angle)
    return 0.0, False


@njit(cache=True)
def _sample_rows_kernel(
    xs, ys, sums, counts, failed, samples, row_seeds, lkind, lparams, bkind, bparams, eps, max_iters
):
    for r in range(xs.shape[0]):
        np.random.seed(row_seeds[r])
        for j in range(ys.shape[0]):
            if phi_kernel(lkind, lparams, xs[r], ys[j]) > 0.0:
                sums[r, j] = 0.0
                counts[r, j] = 0
                continue
            for _ in range(samples):
                value, converged = _walk_kernel(
                    xs[r], ys[j], lkind, lparams, bkind, bparams, eps, max_iters
                )
                if converged:
                    sums[r, j] += value
                    counts[r, j] += 1
                else:
                    failed[r, j] += 1


def _sample_rows(
    walker: SphereWalker,
    xs: np.ndarray,
    ys: np.ndarray,
    sums: np.ndarray,
    counts: np.ndarray,
    samples: int,
    seeds: Sequence[np.random.SeedSequence],
    rng_factory: RngFactory,
    kernel: Optional[KernelArgs] = None,
) -> Tuple[np.ndarray, np.ndarray, List[ConvergenceError]]:
    """
    Sample a contiguous block of grid rows and return their new sums and counts.

    With ``kernel`` set the walks run compiled, each row seeding numba's
    generator from its own SeedSequence; ``rng_factory`` is then unused.

    Must be at module level (not nested) so ProcessPoolExecutor can pickle it.
    Inputs are never written to.
    """
    new_sums = np.array(sums, dtype=np.float64)
    new_counts = np.array(counts, dtype=np.int64)
    failures: List[ConvergenceError] = []

    if kernel is not None:
        lkind, lparams, bkind, bparams = kernel
        failed = np.zeros(new_counts.shape, dtype=np.int64)
        row_seeds = np.array([s.generate_state(1)[0] for s in seeds], dtype=np.uint32)
        _sample_rows_kernel(
            np.asarray(xs, dtype=np.float64),
            np.asarray(ys, dtype=np.float64),
            new_sums,
            new_counts,
            failed,
            samples,
            row_seeds,
            lkind,
            lparams,
            bkind,
            bparams,
            walker.eps,
            walker.max_iters,
        )
        for (r, j), n in np.ndenumerate(failed):
            failures.extend(ConvergenceError((xs[r], ys[j]), walker.max_iters) for _ in range(n))
        return new_sums, new_counts, failures

    for r, x in enumerate(xs):
        rng = rng_factory(seeds[r])
        for j, y in enumerate(ys):
            pos = vec.vector(x, y)
            if walker.levelset.phi(pos) > 0.0:
                # Exterior cells are not solved and never accumulate
                new_sums[r, j] = 0.0
                new_counts[r, j] = 0
                continue

            total, converged, errs = walker.sample(pos, samples, rng)
            new_sums[r, j] += total
            new_counts[r, j] += converged
            failures.extend(errs)

    return new_sums, new_counts, failures


def _describe(provider: Any) -> Dict[str, Any]:
    """Plain-data description of a provider for run metadata."""
    desc: Dict[str, Any] = {"kind": type(provider).__name__.lower()}
    if dataclasses.is_dataclass(provider):
        for f in dataclasses.fields(provider):
            value = getattr(provider, f.name)
            desc[f.name] = value.tolist() if isinstance(value, np.ndarray) else value
    return desc


class WalkOnSpheres:
    """
    Incremental Monte Carlo solution of the Laplace equation on a grid.

    Responsibilities:
    1. Validate and freeze the configuration.
    2. Own the running sums (unnormalized) and the per-cell success counts.
    3. Fan each update out over grid rows and join the results.
    """

    def __init__(
        self,
        levelset: Levelset,
        boundary: DirichletBoundary,
        params: WoSParams | dict | None = None,
        *,
        rng_factory: Optional[RngFactory] = None,
    ) -> None:
        if params is None:
            params = WoSParams()
        elif isinstance(params, dict):
            try:
                params = WoSParams(**params)
            except TypeError as e:
                raise ConfigurationError(f"Invalid solver parameters: {e}") from e
        self.params = params

        (
            self.domain_start,
            self.domain_end,
            self.resolution,
            eps,
            max_iters,
        ) = _validate_params(params)
        self.walker = SphereWalker(levelset, boundary, eps, max_iters)
        self.rng_factory: RngFactory = rng_factory or default_rng_factory
        # An injected rng_factory always goes through the Python walk
        self._kernel = _kernel_args(self.walker) if rng_factory is None else None
        self._seed_seq = np.random.SeedSequence(params.seed)
        self._updates = 0

        nx, ny = int(self.resolution[0]), int(self.resolution[1])
        self.cell_size = (self.domain_end - self.domain_start) / self.resolution
        self._xs = self.domain_start[0] + np.arange(nx) * self.cell_size[0]
        self._ys = self.domain_start[1] + np.arange(ny) * self.cell_size[1]

        self._sums = np.zeros((nx, ny), dtype=np.float64)
        self._counts = np.zeros((nx, ny), dtype=np.int64)
        self._total_samples = 0
        self._failed_samples = 0

    # ------------------------------------------------------------------ state
    @property
    def levelset(self) -> Levelset:
        return self.walker.levelset

    @property
    def boundary(self) -> DirichletBoundary:
        return self.walker.boundary

    @property
    def total_samples(self) -> int:
        """Samples requested per cell so far, failed walks included."""
        return self._total_samples

    @property
    def failed_samples(self) -> int:
        """Walks that hit ``max_iters`` so far, over all cells."""
        return self._failed_samples

    @property
    def shape(self) -> Tuple[int, int]:
        return self._sums.shape

    def running_sums(self) -> np.ndarray:
        """Copy of the unnormalized per-cell sums."""
        return self._sums.copy()

    def grid_positions(self) -> np.ndarray:
        """World position of every cell, shape ``(nx, ny, 2)``."""
        gx, gy = np.meshgrid(self._xs, self._ys, indexing="ij")
        return np.stack((gx, gy), axis=-1)

    def interior_mask(self) -> np.ndarray:
        """Cells whose position is inside or on the domain (``phi <= 0``)."""
        mask = np.zeros(self.shape, dtype=bool)
        for i, x in enumerate(self._xs):
            for j, y in enumerate(self._ys):
                mask[i, j] = self.levelset.phi(vec.vector(x, y)) <= 0.0
        return mask

    def solution(self) -> np.ndarray:
        """Current normalized estimate, without sampling."""
        if self.params.exclude_failed:
            out = np.zeros_like(self._sums)
            np.divide(self._sums, self._counts, out=out, where=self._counts > 0)
            return out
        if self._total_samples == 0:
            return np.zeros_like(self._sums)
        return self._sums / self._total_samples

    # ------------------------------------------------------------------ public
    def _row_chunks(self) -> List[slice]:
        nx = self.shape[0]
        n_chunks = 1 if self.params.jobs == 1 else min(nx, 4 * self.params.jobs)
        bounds = np.linspace(0, nx, n_chunks + 1).astype(int)
        return [slice(a, b) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

    @property
    def compiled(self) -> bool:
        """True when walks run in the compiled kernel."""
        return self._kernel is not None

    def _row_seeds(self) -> List[np.random.SeedSequence]:
        # Keyed by (update, row) off the root, so a failed update consumes nothing
        root = self._seed_seq
        return [
            np.random.SeedSequence(root.entropy, spawn_key=root.spawn_key + (self._updates, i))
            for i in range(self.shape[0])
        ]

    def update(self, samples: int) -> np.ndarray:
        """
        Add ``samples`` walks to every interior cell and return the new estimate.

        Cells outside the domain are reset to zero. Failed walks are logged and
        contribute nothing, but still count towards ``total_samples``.

        If sampling raises, the solver state is left as it was before the call.
        """
        if isinstance(samples, bool):
            raise TypeError(f"samples must be an integer, got {samples!r}")
        samples = operator.index(samples)
        if samples < 0:
            raise ValueError(f"samples must be non-negative, got {samples}")
        if samples == 0:
            return self.solution()

        t_start = time.perf_counter()
        row_seeds = self._row_seeds()
        chunks = self._row_chunks()
        tasks = [
            (
                self.walker,
                self._xs[rows],
                self._ys,
                self._sums[rows],
                self._counts[rows],
                samples,
                row_seeds[rows],
                self.rng_factory,
                self._kernel,
            )
            for rows in chunks
        ]

        if self.params.jobs == 1:
            results = [_sample_rows(*task) for task in tasks]
        else:
            with ProcessPoolExecutor(max_workers=self.params.jobs) as executor:
                futures = [executor.submit(_sample_rows, *task) for task in tasks]
                results = [future.result() for future in futures]

        new_sums = np.empty_like(self._sums)
        new_counts = np.empty_like(self._counts)
        failed = 0
        for rows, (sums, counts, failures) in zip(chunks, results):
            new_sums[rows] = sums
            new_counts[rows] = counts
            for err in failures:
                logger.warning("%s", err)
            failed += len(failures)

        # Commit only once every chunk has joined
        self._sums = new_sums
        self._counts = new_counts
        self._failed_samples += failed
        self._total_samples += samples
        self._updates += 1

        logger.debug(
            "update: samples=%d total=%d failed=%d elapsed=%.3fs",
            samples,
            self._total_samples,
            failed,
            time.perf_counter() - t_start,
        )
        return self.solution()

    def snapshot(self, **extra_meta: Any) -> utils.SolutionResult:
        """Current estimate plus the configuration that produced it."""
        meta = {
            "model": "walk_on_spheres",
            "levelset": _describe(self.levelset),
            "boundary": _describe(self.boundary),
            "domain_start": self.domain_start.tolist(),
            "domain_end": self.domain_end.tolist(),
            "resolution": self.resolution.tolist(),
            "eps": self.walker.eps,
            "max_iters": self.walker.max_iters,
            "seed": self.params.seed,
            "exclude_failed": self.params.exclude_failed,
            "total_samples": self._total_samples,
            "failed_samples": self._failed_samples,
            "x_coords": self._xs.copy(),
            "y_coords": self._ys.copy(),
        }
        meta.update(extra_meta)
        return utils.SolutionResult(solution=self.solution(), meta=meta)


def run_model(config: Dict[str, Any] | None = None) -> utils.SolutionResult:
    """
    Build a solver from a config mapping, run it and return a SolutionResult.

    Recognised keys: ``levelset``, ``boundary`` (provider configs with a
    ``kind``), ``solver`` (WoSParams fields), ``samples_per_frame`` and
    ``frames``.
    """
    config = dict(config or {})
    levelset = make_levelset(config.get("levelset", DEFAULT_LEVELSET))
    boundary = make_boundary(config.get("boundary", DEFAULT_BOUNDARY))
    solver = WalkOnSpheres(levelset, boundary, config.get("solver"))

    samples_per_frame = config.get("samples_per_frame", 5)
    frames = config.get("frames", 1)
    if not _is_int(samples_per_frame) or samples_per_frame < 0:
        raise ConfigurationError(f"samples_per_frame must be a non-negative integer, got {samples_per_frame!r}")
    if not _is_int(frames) or frames < 0:
        raise ConfigurationError(f"frames must be a non-negative integer, got {frames!r}")

    start_time = time.time()
    for _ in range(frames):
        solver.update(samples_per_frame)
    elapsed = time.time() - start_time

    logger.info(
        "Walk on spheres finished: %d samples per cell in %.2fs (%d failed walks)",
        solver.total_samples,
        elapsed,
        solver.failed_samples,
    )
    return solver.snapshot(
        samples_per_frame=int(samples_per_frame),
        frames=int(frames),
        time_elapsed=elapsed,
    )


__all__ = [
    "ConvergenceError",
    "SphereWalker",
    "WoSParams",
    "WalkOnSpheres",
    "run_model",
]
