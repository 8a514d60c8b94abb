# src/scripts/plot_solution.py
import argparse
import os
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from wos_sim import utils
from wos_sim.render import DEFAULT_CMAP


def format_title(meta: dict) -> str:
    """Build a short title from the run metadata."""
    parts = []
    levelset = meta.get("levelset")
    if isinstance(levelset, dict):
        parts.append(levelset.get("kind", "?"))
    boundary = meta.get("boundary")
    if isinstance(boundary, dict):
        parts.append(boundary.get("kind", "?"))
    if "total_samples" in meta:
        parts.append(f"{meta['total_samples']} samples")
    if meta.get("failed_samples"):
        parts.append(f"{meta['failed_samples']} failed")
    return ", ".join(parts)


def render(result: utils.SolutionResult, output=None, cmap=DEFAULT_CMAP, dpi=150, show=False):
    if result.solution is None:
        raise ValueError("No solution grid found.")
    meta = result.meta or {}
    solution = result.solution

    extent = None
    if "domain_start" in meta and "domain_end" in meta:
        (x0, y0), (x1, y1) = meta["domain_start"], meta["domain_end"]
        extent = (x0, x1, y0, y1)

    fig, ax = plt.subplots(figsize=(6, 6))
    im = ax.imshow(solution.T, origin="lower", cmap=cmap, vmin=-1.0, vmax=1.0, extent=extent)
    fig.colorbar(im, ax=ax, shrink=0.8, label="u")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(format_title(meta), pad=10)

    if output:
        os.makedirs(os.path.dirname(output) if os.path.dirname(output) else '.', exist_ok=True)
        plt.savefig(output, dpi=dpi, bbox_inches="tight")
        print(f"Saved figure to {output}")

    if show:
        plt.show()
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(
        description="Plot a saved Walk on Spheres solution .npz"
    )
    parser.add_argument(
        "file",
        nargs="?",
        default="results/solution.npz",
        help="Path to .npz solution file"
    )
    parser.add_argument(
        "--out",
        default=None,
        help="Output image path (PNG, auto-generated if not provided)"
    )
    parser.add_argument(
        "--cmap",
        default=DEFAULT_CMAP,
        help=f"Matplotlib colormap (default: {DEFAULT_CMAP})"
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=150,
        help="DPI for output file (default: 150)"
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Show plot interactively"
    )
    args = parser.parse_args()

    if not os.path.exists(args.file):
        print(f"Error: file not found: {args.file}")
        return 1

    if args.out is None:
        input_path = Path(args.file)
        args.out = str(input_path.parent / f"{input_path.stem}_{args.cmap}.png")

    result = utils.load_solution_result(args.file)
    if result.solution is not None and not np.all(np.isfinite(result.solution)):
        print("Warning: solution contains non-finite values")
    render(result, output=args.out, cmap=args.cmap, dpi=args.dpi, show=args.show)
    return 0


if __name__ == "__main__":
    sys.exit(main())
