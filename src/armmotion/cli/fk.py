"""CLI wiring for forward-kinematics utilities."""

from __future__ import annotations

import argparse
from math import degrees

import sympy as sp

from armmotion.cli.utils import add_chain_arguments, chain_from_args, collect_joint_rows, pprint_matrix
from armmotion.model.symbolic import symbolic_fk
from armmotion.solvers.end_effector import EndEffectorResolver, ToolOffset


def _tool_from_args(args: argparse.Namespace) -> ToolOffset | None:
    if args.tool is None and args.tool_rotation is None:
        return None
    return ToolOffset(
        position=args.tool or (0.0, 0.0, 0.0),
        rotation=args.tool_rotation or (0.0, 0.0, 0.0, 1.0),
    )


def cmd_fk_eval(args: argparse.Namespace) -> int:
    chain = chain_from_args(args)
    rows = collect_joint_rows(chain, args)
    if not rows:
        rows = [chain.joint_values()]

    resolver = EndEffectorResolver()
    tool = _tool_from_args(args)
    for i, values in enumerate(rows, 1):
        chain.set_joint_values(values)
        frame = resolver.resolve(chain, tool)
        print(f"\nCase {i}:")
        if frame is None:
            print("  end effector: unknown")
            continue
        print(f"T_base_{frame.link}:")
        pprint_matrix(frame.matrix)
        print("position (m):", [round(float(v), 6) for v in frame.position])
        print("quaternion (x, y, z, w):", [round(float(v), 6) for v in frame.orientation])
        print("q (deg):", [round(degrees(v), 3) for v in values.values()])
    return 0


def cmd_fk_symbolic(args: argparse.Namespace) -> int:
    chain = chain_from_args(args)
    sym = symbolic_fk(chain)
    print(f"Symbolic T_base_{sym.link} ({', '.join(str(s) for s in sym.symbols)}):")
    T = sp.simplify(sym.T) if args.simplify else sym.T  # type: ignore[no-untyped-call]
    pprint_matrix(T)
    if args.eval:
        rest = {s: 0.0 for s in sym.symbols}
        print("\nAt rest (q=0):")
        pprint_matrix(sp.N(sym.T.subs(rest), 6))  # type: ignore[no-untyped-call]
    return 0


def register_subparsers(subparsers: argparse._SubParsersAction) -> None:
    fk = subparsers.add_parser("fk", help="forward kinematics utilities")
    fk_sub = fk.add_subparsers(dest="fk_command", required=True)

    fk_eval = fk_sub.add_parser("eval", help="evaluate the end-effector pose for joint values")
    add_chain_arguments(fk_eval)
    fk_eval.add_argument("--preset", type=int, nargs="*", help="use arm6r preset 1..5 (deg)")
    fk_eval.add_argument("--q", nargs="+", type=float, action="append", help="joint values, base first")
    fk_eval.add_argument("--deg", action="store_true", help="interpret --q in degrees")
    fk_eval.add_argument("--tool", nargs=3, type=float, metavar=("x", "y", "z"), help="tool offset (m)")
    fk_eval.add_argument(
        "--tool-rotation", nargs=4, type=float, metavar=("x", "y", "z", "w"), help="tool rotation quaternion"
    )
    fk_eval.set_defaults(func=cmd_fk_eval)

    fk_symbolic = fk_sub.add_parser("symbolic", help="show the symbolic tip transform")
    add_chain_arguments(fk_symbolic)
    fk_symbolic.add_argument("--no-eval", dest="eval", action="store_false", help="do not eval at rest")
    fk_symbolic.add_argument("--simplify", action="store_true", help="run sympy.simplify first (slow)")
    fk_symbolic.set_defaults(func=cmd_fk_symbolic, eval=True)
