"""CLI wiring for self-consistency checks."""

from __future__ import annotations

import argparse

import numpy as np

from armmotion.cli.utils import add_chain_arguments, chain_from_args
from armmotion.model.symbolic import check_numeric_once, symbolic_fk
from armmotion.solvers.ik_solver import IKSolver, IKTarget


def _random_values(chain, rng: np.random.Generator) -> dict[str, float]:  # type: ignore[no-untyped-def]
    out: dict[str, float] = {}
    for idx in chain.movable_joints():
        joint = chain.joints[idx]
        lo = joint.lower if joint.lower is not None else -np.pi
        hi = joint.upper if joint.upper is not None else np.pi
        out[joint.name] = float(rng.uniform(lo, hi))
    return out


def cmd_verify_fk(args: argparse.Namespace) -> int:
    chain = chain_from_args(args)
    sym = symbolic_fk(chain)
    rng = np.random.default_rng(args.seed)
    worst = 0.0
    for i in range(1, args.count + 1):
        values = _random_values(chain, rng)
        res = check_numeric_once(chain, sym, values)
        worst = max(worst, res.err_inf)
        print(f"Case {i}: ||dT||_F = {res.err_F:.3e},  ||dT||_inf = {res.err_inf:.3e}")
    ok = worst <= args.tol
    print(f"\n{'OK' if ok else 'FAIL'}: worst ||dT||_inf = {worst:.3e} (tol {args.tol:.1e})")
    return 0 if ok else 1


def cmd_verify_ik(args: argparse.Namespace) -> int:
    """Solve for poses produced by FK at random configurations and count the misses."""
    chain = chain_from_args(args)
    rng = np.random.default_rng(args.seed)
    solver = IKSolver()
    start = chain.joint_values()
    misses = 0
    for i in range(1, args.count + 1):
        probe = chain.copy()
        probe.set_joint_values(_random_values(chain, rng))
        frame = solver.resolver.resolve(probe)
        if frame is None:
            print("No end effector found on this chain.")
            return 2
        chain.set_joint_values(start)
        options = solver.options._replace(max_iterations=args.max_iter)
        solution = solver.solve(chain, IKTarget.create(frame.position), options)
        assert solution is not None
        misses += not solution.converged
        print(f"Case {i}: iters={solution.iterations}, distance={solution.distance:.3e} m, "
              f"{'converged' if solution.converged else 'not converged'}")
    print(f"\n{args.count - misses}/{args.count} converged")
    return 0 if misses == 0 else 1


def register_subparsers(subparsers: argparse._SubParsersAction) -> None:
    verify = subparsers.add_parser("verify", help="self-consistency checks")
    verify_sub = verify.add_subparsers(dest="verify_command", required=True)

    verify_fk = verify_sub.add_parser("fk", help="compare symbolic and numeric FK at random configurations")
    add_chain_arguments(verify_fk)
    verify_fk.add_argument("--count", type=int, default=5)
    verify_fk.add_argument("--seed", type=int, default=0)
    verify_fk.add_argument("--tol", type=float, default=1e-9, help="max allowed |dT| entry")
    verify_fk.set_defaults(func=cmd_verify_fk)

    verify_ik = verify_sub.add_parser("ik", help="round-trip random FK poses through the CCD solver")
    add_chain_arguments(verify_ik)
    verify_ik.add_argument("--count", type=int, default=5)
    verify_ik.add_argument("--seed", type=int, default=0)
    verify_ik.add_argument("--max-iter", type=int, default=200)
    verify_ik.set_defaults(func=cmd_verify_ik)
