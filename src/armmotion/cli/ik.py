"""CLI wiring for inverse-kinematics helpers."""

from __future__ import annotations

import argparse
import logging
from math import degrees

from armmotion.cli.utils import add_chain_arguments, chain_from_args, joint_values_from_row, motion_config
from armmotion.core.errors import MotionError
from armmotion.solvers.ik_solver import IKOptions, IKSolution, IKSolver, IKTarget, tuned_options

logger = logging.getLogger(__name__)


def _build_ik_options(args: argparse.Namespace, base: IKOptions) -> IKOptions:
    overrides = {
        "max_iterations": args.max_iter,
        "tolerance": args.tolerance,
        "damping_factor": args.damping,
        "max_step_angle": args.max_step,
        "orientation_weight": args.orientation_weight,
    }
    return base._replace(**{k: v for k, v in overrides.items() if v is not None})


def _print_solution(solution: IKSolution) -> None:
    state = "converged" if solution.converged else "not converged"
    print(f"{state}: iters={solution.iterations}, distance={solution.distance:.3e} m", end="")
    if solution.orientation_error is not None:
        print(f", rot_err={degrees(solution.orientation_error):.4f} deg")
    else:
        print()
    print("  q (rad):", {k: round(v, 6) for k, v in solution.items()})
    print("  q (deg):", {k: round(degrees(v), 3) for k, v in solution.items()})


def cmd_ik_solve(args: argparse.Namespace) -> int:
    chain = chain_from_args(args)
    if args.q0:
        chain.set_joint_values(joint_values_from_row(chain, args.q0, args.deg))

    base = motion_config(args).ik
    if args.tuned:
        base = tuned_options(chain, base)
    options = _build_ik_options(args, base)

    try:
        target = IKTarget.create(args.target, args.orientation)
        solution = IKSolver(options=options).solve(chain, target)
    except MotionError as exc:
        print(f"error: {exc} ({exc.status})")
        return 2
    if solution is None:
        print("No end effector found on this chain.")
        return 2
    _print_solution(solution)
    return 0 if solution.converged else 1


def register_subparsers(subparsers: argparse._SubParsersAction) -> None:
    ik = subparsers.add_parser("ik", help="inverse kinematics helpers")
    ik_sub = ik.add_subparsers(dest="ik_command", required=True)

    ik_solve = ik_sub.add_parser("solve", help="CCD solve for a Cartesian target")
    add_chain_arguments(ik_solve)
    ik_solve.add_argument("--target", nargs=3, type=float, required=True, metavar=("x", "y", "z"), help="metres")
    ik_solve.add_argument(
        "--orientation", nargs=4, type=float, metavar=("x", "y", "z", "w"), help="target quaternion"
    )
    ik_solve.add_argument("--q0", nargs="+", type=float, help="start joint values, base first")
    ik_solve.add_argument("--deg", action="store_true", help="interpret --q0 in degrees")
    ik_solve.add_argument("--max-iter", type=int)
    ik_solve.add_argument("--tolerance", type=float, help="position tolerance (m)")
    ik_solve.add_argument("--damping", type=float, help="damping factor")
    ik_solve.add_argument("--max-step", type=float, help="max |dq| per iteration (rad)")
    ik_solve.add_argument("--orientation-weight", type=float, help="0 ignores orientation")
    ik_solve.add_argument("--tuned", action="store_true", help="derive iterations/tolerance/damping from the chain")
    ik_solve.set_defaults(func=cmd_ik_solve)
