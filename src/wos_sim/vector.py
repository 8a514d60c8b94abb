"""
Componentwise helpers for 2D coordinates.

Coordinates are plain float64 numpy arrays of shape (2,). The comparison and
min/max kernels are compiled with numba since they sit inside the walk loop.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numba import njit

DIM = 2


def vector(x: float, y: float) -> np.ndarray:
    """Immutable float64 coordinate (x, y)."""
    v = np.array((x, y), dtype=np.float64)
    v.flags.writeable = False
    return v


def uint_vector(x: int, y: int) -> np.ndarray:
    """Immutable integer pair, used for grid resolutions."""
    v = np.array((x, y), dtype=np.int64)
    v.flags.writeable = False
    return v


def as_vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Coerce a length-2 sequence into an immutable coordinate."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.shape != (DIM,):
        raise ValueError(f"Expected a {DIM}-component coordinate, got shape {arr.shape}")
    return vector(arr[0], arr[1])


@njit(cache=True)
def all_lt(a, b) -> bool:
    for k in range(a.shape[0]):
        if not a[k] < b[k]:
            return False
    return True


@njit(cache=True)
def all_gt(a, b) -> bool:
    for k in range(a.shape[0]):
        if not a[k] > b[k]:
            return False
    return True


@njit(cache=True)
def all_le(a, b) -> bool:
    for k in range(a.shape[0]):
        if not a[k] <= b[k]:
            return False
    return True


@njit(cache=True)
def all_ge(a, b) -> bool:
    for k in range(a.shape[0]):
        if not a[k] >= b[k]:
            return False
    return True


@njit(cache=True)
def component_max(a, b) -> np.ndarray:
    """The componentwise max of two vectors."""
    out = np.empty(a.shape[0], dtype=np.float64)
    for k in range(a.shape[0]):
        out[k] = a[k] if a[k] > b[k] else b[k]
    return out


@njit(cache=True)
def component_min(a, b) -> np.ndarray:
    """The componentwise min of two vectors."""
    out = np.empty(a.shape[0], dtype=np.float64)
    for k in range(a.shape[0]):
        out[k] = a[k] if a[k] < b[k] else b[k]
    return out


@njit(cache=True)
def norm(a) -> float:
    acc = 0.0
    for k in range(a.shape[0]):
        acc += a[k] * a[k]
    return math.sqrt(acc)


ZERO = vector(0.0, 0.0)

__all__ = [
    "DIM",
    "ZERO",
    "vector",
    "uint_vector",
    "as_vector",
    "all_lt",
    "all_gt",
    "all_le",
    "all_ge",
    "component_max",
    "component_min",
    "norm",
]
