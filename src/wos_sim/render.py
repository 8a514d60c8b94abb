"""
Colour mapping and image export for solution grids.

Grids are indexed ``[i, j]`` with ``i`` along x, so images are drawn from the
transpose with the origin at the bottom left.
"""

from __future__ import annotations

import os
from pathlib import Path

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

DEFAULT_CMAP = "Spectral"


def normalize(solution: np.ndarray, vmin: float = -1.0, vmax: float = 1.0) -> np.ndarray:
    """Map ``[vmin, vmax]`` onto ``[0, 1]``, clamping values outside the range."""
    if not vmax > vmin:
        raise ValueError(f"vmax must exceed vmin, got vmin={vmin}, vmax={vmax}")
    scaled = (np.asarray(solution, dtype=np.float64) - vmin) / (vmax - vmin)
    return np.clip(scaled, 0.0, 1.0)


def solution_to_rgba(
    solution: np.ndarray,
    cmap: str = DEFAULT_CMAP,
    vmin: float = -1.0,
    vmax: float = 1.0,
) -> np.ndarray:
    """
    Colour a solution grid.

    Returns a uint8 image of shape ``(ny, nx, 4)``; row 0 is the lowest y.
    """
    solution = np.asarray(solution)
    if solution.ndim != 2:
        raise ValueError(f"Expected a 2D solution grid, got shape {solution.shape}")
    colormap = matplotlib.colormaps[cmap]
    return colormap(normalize(solution.T, vmin, vmax), bytes=True)


def save_png(
    solution: np.ndarray,
    path: str | os.PathLike[str],
    cmap: str = DEFAULT_CMAP,
    vmin: float = -1.0,
    vmax: float = 1.0,
) -> Path:
    """Write the coloured grid as a PNG, one pixel per cell."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rgba = solution_to_rgba(solution, cmap=cmap, vmin=vmin, vmax=vmax)
    plt.imsave(path, rgba, origin="lower")
    return path


__all__ = ["DEFAULT_CMAP", "normalize", "solution_to_rgba", "save_png"]
