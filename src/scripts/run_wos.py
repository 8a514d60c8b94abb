#!/usr/bin/env python3
"""
Walk on Spheres Runner

Runs the grid solver for a number of frames, printing throughput as it goes,
and saves the final estimate as .npz (and optionally PNG). With --show the
estimate is displayed live while it refines.
"""

import argparse
import sys
import time
from pathlib import Path

import matplotlib.pyplot as plt

from wos_sim import WalkOnSpheres, make_boundary, make_levelset, utils
from wos_sim.logging_config import setup_logging
from wos_sim.render import DEFAULT_CMAP, save_png, solution_to_rgba


def config_from_args(args: argparse.Namespace) -> dict:
    """Translate CLI flags into a run_model style config mapping."""
    if args.config is not None:
        return utils.load_params(args.config)

    if args.geometry == "circle":
        levelset = {"kind": "circle", "radius": args.radius}
    else:
        levelset = {"kind": "rect", "size": list(args.size)}

    if args.boundary == "sinusoid":
        boundary = {"kind": "sinusoid", "frequency": args.frequency}
    else:
        boundary = {"kind": "constant", "value": args.value}

    lo, hi = args.domain
    return {
        "levelset": levelset,
        "boundary": boundary,
        "solver": {
            "domain_start": [lo, lo],
            "domain_end": [hi, hi],
            "resolution": list(args.resolution),
            "eps": args.eps,
            "max_iters": args.max_iters,
            "seed": args.seed,
            "jobs": args.jobs,
            "exclude_failed": args.exclude_failed,
        },
        "samples_per_frame": args.samples,
        "frames": args.frames,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Solve the Laplace equation with Walk on Spheres",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=None,
                        help="JSON/TOML run config (overrides the flags below)")
    parser.add_argument("--geometry", choices=["circle", "rect"], default="rect",
                        help="Domain shape (default: rect)")
    parser.add_argument("--radius", type=float, default=1.5,
                        help="Circle radius (default: 1.5)")
    parser.add_argument("--size", type=float, nargs=2, default=(1.5, 1.0),
                        metavar=("HX", "HY"), help="Rect half extents (default: 1.5 1.0)")
    parser.add_argument("--boundary", choices=["sinusoid", "constant"], default="sinusoid",
                        help="Boundary values (default: sinusoid)")
    parser.add_argument("--frequency", type=float, default=5.0,
                        help="Angular frequency of the sinusoid (default: 5)")
    parser.add_argument("--value", type=float, default=1.0,
                        help="Constant boundary value (default: 1)")
    parser.add_argument("--domain", type=float, nargs=2, default=(-2.0, 2.0),
                        metavar=("LO", "HI"), help="Square bounding box (default: -2 2)")
    parser.add_argument("--resolution", type=int, nargs=2, default=(256, 256),
                        metavar=("NX", "NY"), help="Grid resolution (default: 256 256)")
    parser.add_argument("--eps", type=float, default=0.05,
                        help="Boundary tolerance (default: 0.05)")
    parser.add_argument("--max-iters", type=int, default=500,
                        help="Maximum steps per walk (default: 500)")
    parser.add_argument("--samples", type=int, default=5,
                        help="Samples per cell per frame (default: 5)")
    parser.add_argument("--frames", type=int, default=20,
                        help="Number of frames (default: 20)")
    parser.add_argument("--jobs", type=int, default=1,
                        help="Number of parallel processes (default: 1)")
    parser.add_argument("--seed", type=int, default=42,
                        help="Random seed for reproducibility (default: 42)")
    parser.add_argument("--exclude-failed", action="store_true",
                        help="Leave failed walks out of each cell's average")
    parser.add_argument("--out", type=str, default=None,
                        help="Output .npz file path (auto-generated if not provided)")
    parser.add_argument("--png", type=str, default=None,
                        help="Also save the final estimate as a PNG")
    parser.add_argument("--cmap", type=str, default=DEFAULT_CMAP,
                        help=f"Matplotlib colormap (default: {DEFAULT_CMAP})")
    parser.add_argument("--show", action="store_true",
                        help="Display the estimate live while it refines")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", type=str, default=None,
                        help="Also write log records to this file")

    args = parser.parse_args()
    setup_logging(args.log_level, log_file=args.log_file)

    config = config_from_args(args)
    solver = WalkOnSpheres(
        make_levelset(config.get("levelset", {"kind": "rect", "size": [1.5, 1.0]})),
        make_boundary(config.get("boundary", {"kind": "sinusoid", "frequency": 5.0})),
        config.get("solver"),
    )
    samples_per_frame = int(config.get("samples_per_frame", args.samples))
    frames = int(config.get("frames", args.frames))

    nx, ny = solver.shape
    print(f"Running Walk on Spheres: {nx}x{ny} grid, {samples_per_frame} samples/frame, "
          f"{frames} frames, jobs={solver.params.jobs}")

    image = None
    if args.show:
        plt.ion()
        fig, ax = plt.subplots()
        ax.set_axis_off()
        image = ax.imshow(solution_to_rgba(solver.solution(), cmap=args.cmap), origin="lower")
        fig.canvas.manager.set_window_title("Walk On Spheres")

    start_time = time.time()
    last_frame_time = time.perf_counter()
    for _ in range(frames):
        solution = solver.update(samples_per_frame)
        now = time.perf_counter()
        delta = now - last_frame_time
        last_frame_time = now
        fps = 1.0 / delta if delta > 0 else float("inf")
        print(f"FPS: {fps:.2f}, Samples: {solver.total_samples}")

        if image is not None:
            if not plt.fignum_exists(image.figure.number):
                print("Display closed, stopping early")
                break
            image.set_data(solution_to_rgba(solution, cmap=args.cmap))
            plt.pause(0.001)

    elapsed_time = time.time() - start_time

    if args.out is None:
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        args.out = str(output_dir / f"wos_{nx}x{ny}_T{solver.total_samples}_{utils.now_str()}.npz")

    result = solver.snapshot(samples_per_frame=samples_per_frame, time_elapsed=elapsed_time)
    utils.save_solution_result(args.out, result)
    if args.png:
        save_png(result.solution, args.png, cmap=args.cmap)

    print(f"\nSimulation completed!")
    print(f"   Time elapsed: {elapsed_time:.2f} seconds")
    print(f"   Samples per cell: {solver.total_samples} ({solver.failed_samples} failed walks)")
    print(f"   Output saved to: {args.out}")
    if args.png:
        print(f"   Image saved to: {args.png}")

    if image is not None:
        plt.ioff()
        plt.show()

    return 0


if __name__ == "__main__":
    sys.exit(main())
