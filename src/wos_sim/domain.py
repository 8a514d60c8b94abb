"""
Signed-distance descriptions of the solution domain.

A levelset is negative inside the domain, zero on its boundary and positive
outside. The walk uses ``abs(phi)`` as the radius of an empty circle, so the
magnitude must be the exact distance to the boundary, not just any function
with the right zero crossing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

import numpy as np
from numba import njit

from . import vector as vec
from .errors import ConfigurationError

# Kind codes understood by the compiled walk kernel
LEVELSET_CIRCLE = 0
LEVELSET_RECT = 1


@runtime_checkable
class Levelset(Protocol):
    def phi(self, x: np.ndarray) -> float:
        ...


@dataclass
class Circle:
    """Disk of the given radius centred at the origin."""

    radius: float = 1.5

    def __post_init__(self) -> None:
        self.radius = float(self.radius)
        if not self.radius > 0.0:
            raise ConfigurationError(f"Circle radius must be positive, got {self.radius}")

    def phi(self, x: np.ndarray) -> float:
        return vec.norm(np.asarray(x, dtype=np.float64)) - self.radius

    def kernel_args(self) -> tuple[int, np.ndarray]:
        return LEVELSET_CIRCLE, np.array([self.radius, 0.0])


@dataclass(eq=False)
class Rect:
    """Axis-aligned box centred at the origin, ``size`` holds the half extents."""

    size: Sequence[float] | np.ndarray = (1.5, 1.0)

    def __post_init__(self) -> None:
        self.size = vec.as_vector(self.size)
        if not vec.all_gt(self.size, vec.ZERO):
            raise ConfigurationError(f"Rect half extents must be positive, got {self.size}")

    def phi(self, x: np.ndarray) -> float:
        # Outside: length of the positive part. Inside: distance to the nearest edge, negated.
        d = np.abs(x) - self.size
        return float(vec.norm(vec.component_max(d, vec.ZERO)) + min(max(d[0], d[1]), 0.0))

    def kernel_args(self) -> tuple[int, np.ndarray]:
        return LEVELSET_RECT, np.array(self.size, dtype=np.float64)


@njit(cache=True)
def phi_kernel(kind, params, x, y):
    """Scalar phi of a built-in levelset, ``params`` as returned by ``kernel_args``."""
    if kind == LEVELSET_CIRCLE:
        return math.sqrt(x * x + y * y) - params[0]
    dx = abs(x) - params[0]
    dy = abs(y) - params[1]
    ox = dx if dx > 0.0 else 0.0
    oy = dy if dy > 0.0 else 0.0
    inside = dx if dx > dy else dy
    if inside > 0.0:
        inside = 0.0
    return math.sqrt(ox * ox + oy * oy) + inside


LEVELSETS = {
    "circle": Circle,
    "rect": Rect,
}


def make_levelset(config: Mapping[str, Any]) -> Levelset:
    """
    Build a levelset from a config mapping such as
    ``{"kind": "rect", "size": [1.5, 1.0]}``.
    """
    options = dict(config)
    kind = options.pop("kind", None)
    if kind not in LEVELSETS:
        raise ConfigurationError(
            f"Unknown levelset kind {kind!r}, expected one of {sorted(LEVELSETS)}"
        )
    try:
        return LEVELSETS[kind](**options)
    except TypeError as e:
        raise ConfigurationError(f"Invalid options for levelset {kind!r}: {e}") from e


__all__ = [
    "Levelset",
    "Circle",
    "Rect",
    "LEVELSETS",
    "LEVELSET_CIRCLE",
    "LEVELSET_RECT",
    "phi_kernel",
    "make_levelset",
]
