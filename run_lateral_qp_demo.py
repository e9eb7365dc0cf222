#!/usr/bin/env python3
"""
Lateral offset QP demo.

Builds a straight corridor with a lateral nudge (a stretch where the lower
bound is pushed left, as if passing a parked obstacle), solves the lateral QP
with OSQP and prints a summary. Plots are saved to results/lateral_qp/.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from planning import LateralQPConfig, LateralQPOptimizer, SolverFailure, StructuralError
from utils.visualization import LateralProfileVisualizer


def build_nudge_corridor(
    n: int,
    half_width_m: float,
    nudge_start: int,
    nudge_end: int,
    nudge_low_m: float,
):
    """Symmetric corridor whose lower bound is raised on [nudge_start, nudge_end)."""
    bounds = [(-half_width_m, half_width_m) for _ in range(n)]
    for i in range(max(nudge_start, 0), min(nudge_end, n)):
        bounds[i] = (nudge_low_m, half_width_m)
    return bounds


def parse_args():
    parser = argparse.ArgumentParser(description="Run lateral offset QP demo.")
    parser.add_argument("--config", type=str, default=str(project_root / "config" / "lateral_qp.yaml"),
                        help="Path to lateral QP YAML config.")
    parser.add_argument("--n", type=int, default=60, help="Number of stations.")
    parser.add_argument("--ds", type=float, default=1.0, help="Station spacing [m].")
    parser.add_argument("--half-width-m", type=float, default=1.5, help="Corridor half width [m].")
    parser.add_argument("--nudge-start", type=int, default=25, help="First nudged station.")
    parser.add_argument("--nudge-end", type=int, default=35, help="One past the last nudged station.")
    parser.add_argument("--nudge-low-m", type=float, default=0.5, help="Raised lower bound on the nudge [m].")
    parser.add_argument("--d0", type=float, nargs=3, default=[0.0, 0.0, 0.0], metavar=("D", "DP", "DPP"),
                        help="Initial (d, d', d'').")
    parser.add_argument("--plot", action=argparse.BooleanOptionalAction, default=True, help="Save plots.")
    parser.add_argument("--verbose", action=argparse.BooleanOptionalAction, default=None,
                        help="Override debug_verbose from the config.")
    return parser.parse_args()


def run_demo(args):
    print("=" * 70)
    print("LATERAL QP DEMO")
    print("=" * 70)

    config = LateralQPConfig.load_from_yaml(args.config)
    if args.verbose is not None:
        config = replace(config, debug_verbose=args.verbose)
    print(f"\n1. Config: {args.config}")
    print(f"   weights: offset={config.weight_offset}, obstacle={config.weight_obstacle_distance}, "
          f"d'={config.weight_derivative}, d''={config.weight_second_derivative}")
    print(f"   jerk_max={config.jerk_max}, derivative_bound={config.derivative_bound}")

    bounds = build_nudge_corridor(
        args.n, args.half_width_m, args.nudge_start, args.nudge_end, args.nudge_low_m
    )
    print(f"\n2. Corridor: N={args.n}, ds={args.ds} m, length={(args.n - 1) * args.ds:.1f} m")

    optimizer = LateralQPOptimizer(config)
    print("\n3. Solving...")
    try:
        result = optimizer.optimize(args.d0, args.ds, bounds)
    except StructuralError as e:
        print(f"   Invalid problem: {e}")
        return 2
    except SolverFailure as e:
        print(f"   Solver failed ({e.status.value}): {e.raw_status}")
        return 1

    print(f"   Status: {result.status}")
    if result.iterations is not None:
        print(f"   Iterations: {result.iterations}")
    print(f"   Objective: {result.objective:.6f}")
    print(f"   Solve time: {result.solve_time * 1e3:.2f} ms")
    print(f"   max |d|   = {np.max(np.abs(result.d)):.4f} m")
    print(f"   max |d''| = {np.max(np.abs(result.d_pprime)):.4f} 1/m")

    if args.plot:
        output_dir = project_root / "results" / "lateral_qp"
        visualizer = LateralProfileVisualizer(output_dir=str(output_dir))
        plots = visualizer.generate_full_report(
            result, bounds, trajectory=optimizer.optimal_trajectory(), jerk_max=config.jerk_max
        )
        print("\n4. Plots:")
        for name, path in plots.items():
            print(f"  Saved: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(run_demo(parse_args()))
