"""
Dirichlet boundary values.

The walk stops within ``eps`` of the boundary, so every provider here is
evaluated slightly inside the domain and has to be defined everywhere.
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
BOUNDARY_SINUSOID = 0
BOUNDARY_CONSTANT = 1
BOUNDARY_LINEAR = 2


@runtime_checkable
class DirichletBoundary(Protocol):
    def value(self, x: np.ndarray) -> float:
        ...


@dataclass
class Sinusoid:
    """``sin(frequency * atan2(y, x))``, constant along rays from the origin."""

    frequency: float = 5.0

    def value(self, x: np.ndarray) -> float:
        return math.sin(self.frequency * math.atan2(x[1], x[0]))

    def kernel_args(self) -> tuple[int, np.ndarray]:
        return BOUNDARY_SINUSOID, np.array([self.frequency, 0.0, 0.0], dtype=np.float64)


@dataclass
class Constant:
    level: float = 1.0

    def value(self, x: np.ndarray) -> float:
        return self.level

    def kernel_args(self) -> tuple[int, np.ndarray]:
        return BOUNDARY_CONSTANT, np.array([self.level, 0.0, 0.0], dtype=np.float64)


@dataclass(eq=False)
class Linear:
    """
    ``gradient . x + offset``. Harmonic in the whole plane, so the exact
    solution inside any domain is the same expression.
    """

    gradient: Sequence[float] | np.ndarray = (1.0, 0.0)
    offset: float = 0.0

    def __post_init__(self) -> None:
        self.gradient = vec.as_vector(self.gradient)
        self.offset = float(self.offset)

    def value(self, x: np.ndarray) -> float:
        return float(self.gradient[0] * x[0] + self.gradient[1] * x[1]) + self.offset

    def exact(self, x: np.ndarray) -> np.ndarray:
        """Exact harmonic extension, vectorised over the trailing axis of ``x``."""
        x = np.asarray(x, dtype=np.float64)
        return x[..., 0] * self.gradient[0] + x[..., 1] * self.gradient[1] + self.offset

    def kernel_args(self) -> tuple[int, np.ndarray]:
        return BOUNDARY_LINEAR, np.array([self.gradient[0], self.gradient[1], self.offset])


@njit(cache=True)
def value_kernel(kind, params, x, y):
    if kind == BOUNDARY_SINUSOID:
        return math.sin(params[0] * math.atan2(y, x))
    if kind == BOUNDARY_CONSTANT:
        return params[0]
    return params[0] * x + params[1] * y + params[2]


BOUNDARIES = {
    "sinusoid": Sinusoid,
    "constant": Constant,
    "linear": Linear,
}


def make_boundary(config: Mapping[str, Any]) -> DirichletBoundary:
    """
    Build boundary values from a config mapping such as
    ``{"kind": "sinusoid", "frequency": 5}``.
    """
    options = dict(config)
    kind = options.pop("kind", None)
    if kind not in BOUNDARIES:
        raise ConfigurationError(
            f"Unknown boundary kind {kind!r}, expected one of {sorted(BOUNDARIES)}"
        )
    if kind == "constant" and "value" in options:
        options["level"] = options.pop("value")
    try:
        return BOUNDARIES[kind](**options)
    except TypeError as e:
        raise ConfigurationError(f"Invalid options for boundary {kind!r}: {e}") from e


__all__ = [
    "DirichletBoundary",
    "Sinusoid",
    "Constant",
    "Linear",
    "BOUNDARIES",
    "BOUNDARY_SINUSOID",
    "BOUNDARY_CONSTANT",
    "BOUNDARY_LINEAR",
    "value_kernel",
    "make_boundary",
]
