"""
Monte Carlo Convergence Analysis for the Walk on Spheres Solver.

Solves on a disk with linear boundary values, whose harmonic extension is the
same linear function, and tracks the RMS error over interior cells as samples
accumulate. A log-log fit of error against samples should give a slope near
-1/2.
"""
from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
from matplotlib import pyplot as plt
from scipy.stats import linregress

from wos_sim import Circle, Linear, WalkOnSpheres, WoSParams


def measure_errors(
    resolution: int,
    frames: int,
    samples_per_frame: int,
    eps: float,
    seed: int,
    jobs: int = 1,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Run the solver frame by frame against the exact linear solution.

    Returns:
        Tuple of (total samples after each frame, RMS error after each frame)
    """
    boundary = Linear(gradient=(1.0, 0.5), offset=0.25)
    solver = WalkOnSpheres(
        Circle(radius=1.0),
        boundary,
        WoSParams(
            domain_start=(-1.0, -1.0),
            domain_end=(1.0, 1.0),
            resolution=(resolution, resolution),
            eps=eps,
            max_iters=1_000,
            seed=seed,
            jobs=jobs,
        ),
    )
    interior = solver.interior_mask()
    if not interior.any():
        raise ValueError("No interior cells at this resolution.")
    exact = boundary.exact(solver.grid_positions())

    totals = np.empty(frames, dtype=np.float64)
    errors = np.empty(frames, dtype=np.float64)
    for k in range(frames):
        estimate = solver.update(samples_per_frame)
        diff = (estimate - exact)[interior]
        totals[k] = solver.total_samples
        errors[k] = np.sqrt(np.mean(diff**2))
        print(f"  samples={solver.total_samples:6d}  rms={errors[k]:.5f}")

    return totals, errors


def fit_convergence_rate(totals: np.ndarray, errors: np.ndarray) -> tuple[float, float, float]:
    """
    Fit log(error) = slope * log(samples) + intercept.

    Returns:
        Tuple of (slope, intercept, r_squared)
    """
    valid = (totals > 0) & (errors > 0)
    if valid.sum() < 3:
        raise ValueError("Too few valid points for a convergence fit.")
    fit = linregress(np.log(totals[valid]), np.log(errors[valid]))
    return fit.slope, fit.intercept, fit.rvalue**2


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Measure Monte Carlo convergence of the Walk on Spheres solver."
    )
    parser.add_argument("--resolution", type=int, default=16, help="Grid points per axis")
    parser.add_argument("--frames", type=int, default=12, help="Number of updates")
    parser.add_argument("--samples", type=int, default=8, help="Samples per cell per update")
    parser.add_argument("--eps", type=float, default=0.01, help="Boundary tolerance")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--jobs", type=int, default=1, help="Parallel processes")
    parser.add_argument(
        "--out",
        type=str,
        default="results/convergence.png",
        help="Output path for the figure (default: results/convergence.png)"
    )
    parser.add_argument("--show", action="store_true", help="Display plot interactively")
    args = parser.parse_args()

    print("Measuring convergence...")
    totals, errors = measure_errors(
        args.resolution, args.frames, args.samples, args.eps, args.seed, args.jobs
    )
    slope, intercept, r_squared = fit_convergence_rate(totals, errors)
    print(f"\nFitted slope: {slope:.3f} (expected ~ -0.5), R^2 = {r_squared:.3f}")

    fig, ax = plt.subplots(figsize=(6, 4.5))
    ax.loglog(totals, errors, "o", label="RMS error")
    ax.loglog(totals, np.exp(intercept) * totals**slope, "-", label=f"fit, slope {slope:.2f}")
    ax.set_xlabel("samples per cell")
    ax.set_ylabel("RMS error")
    ax.legend()
    plt.tight_layout()

    output_path = Path(args.out)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    print(f"Figure saved to: {output_path}")

    if args.show:
        plt.show()
    else:
        plt.close()


if __name__ == "__main__":
    main()
