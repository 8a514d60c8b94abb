"""
Walk on Spheres Library - Monte Carlo Laplace solver

This package estimates harmonic functions on 2D domains with Dirichlet
boundary values:
- WalkOnSpheres: incremental grid solver (running sums, parallel updates)
- SphereWalker: the single-walk estimator
- Circle / Rect: signed-distance domain descriptions
- Sinusoid / Constant / Linear: boundary values
"""

from .boundary_conditions import (
    Constant,
    DirichletBoundary,
    Linear,
    Sinusoid,
    make_boundary,
)
from .domain import Circle, Levelset, Rect, make_levelset
from .errors import ConfigurationError
from .walk_on_spheres import (
    ConvergenceError,
    SphereWalker,
    WalkOnSpheres,
    WoSParams,
    run_model,
)
from . import utils

__all__ = [
    # Solver
    "WalkOnSpheres",
    "SphereWalker",
    "WoSParams",
    "run_model",
    # Domains
    "Levelset",
    "Circle",
    "Rect",
    "make_levelset",
    # Boundary values
    "DirichletBoundary",
    "Sinusoid",
    "Constant",
    "Linear",
    "make_boundary",
    # Errors
    "ConfigurationError",
    "ConvergenceError",
    # Utilities
    "utils",
]
