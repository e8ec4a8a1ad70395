"""Symbolic forward kinematics for a chain and a numeric cross-check.

The numeric FK in :mod:`armmotion.model.chain` is the one every solver uses;
this module rebuilds the same tip transform with SymPy so the two can be
compared at random configurations (``armmotion verify fk``).
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple, cast

import numpy as np
import sympy as sp
from numpy.typing import NDArray

from armmotion.model.chain import JointType, KinematicChain
from armmotion.solvers.end_effector import EndEffectorResolver


class SymbolicChain(NamedTuple):
    """Tip transform of a chain as a function of its joint symbols."""

    T: sp.Matrix
    symbols: tuple[sp.Symbol, ...]
    joint_names: tuple[str, ...]
    link: str


class NumericCheckResult(NamedTuple):
    err_F: float
    err_inf: float
    delta: NDArray[np.float64]


def _to_sym(M: np.ndarray) -> sp.Matrix:
    return sp.Matrix(np.asarray(M, dtype=float).tolist())


def axis_rotation(axis: Sequence[float], q: sp.Expr) -> sp.Matrix:
    """Homogeneous rotation about a unit axis (Rodrigues form)."""
    kx, ky, kz = (sp.Float(float(v)) for v in axis)
    c = sp.cos(q)
    s = sp.sin(q)
    v = 1 - c
    return sp.Matrix(
        [
            [c + kx * kx * v, kx * ky * v - kz * s, kx * kz * v + ky * s, 0],
            [ky * kx * v + kz * s, c + ky * ky * v, ky * kz * v - kx * s, 0],
            [kz * kx * v - ky * s, kz * ky * v + kx * s, c + kz * kz * v, 0],
            [0, 0, 0, 1],
        ]
    )


def axis_translation(axis: Sequence[float], q: sp.Expr) -> sp.Matrix:
    kx, ky, kz = (sp.Float(float(v)) for v in axis)
    return sp.Matrix([[1, 0, 0, kx * q], [0, 1, 0, ky * q], [0, 0, 1, kz * q], [0, 0, 0, 1]])


def symbolic_fk(chain: KinematicChain, link: int | None = None) -> SymbolicChain:
    """Return ``T_base_link`` with one real symbol per movable joint on the path."""
    link_idx = EndEffectorResolver().tip_link(chain) if link is None else link
    assert link_idx is not None
    T = _to_sym(chain.base_transform)
    symbols: list[sp.Symbol] = []
    names: list[str] = []
    for j_idx in chain.ancestor_joints(link_idx):
        joint = chain.joints[j_idx]
        T = cast(sp.Matrix, T * _to_sym(joint.origin))
        if joint.joint_type is JointType.FIXED:
            continue
        q = sp.Symbol(f"q_{joint.name}", real=True)
        symbols.append(q)
        names.append(joint.name)
        if joint.joint_type is JointType.PRISMATIC:
            T = cast(sp.Matrix, T * axis_translation(joint.axis, q))
        else:
            T = cast(sp.Matrix, T * axis_rotation(joint.axis, q))
    return SymbolicChain(T=T, symbols=tuple(symbols), joint_names=tuple(names), link=chain.links[link_idx].name)


def evaluate(sym: SymbolicChain, values: Mapping[str, float]) -> NDArray[np.float64]:
    subs = {s: float(values.get(n, 0.0)) for s, n in zip(sym.symbols, sym.joint_names)}
    evaluated = sp.N(sym.T.subs(subs), 15)  # type: ignore[no-untyped-call]
    return np.array(evaluated.tolist(), dtype=np.float64)


def check_numeric_once(chain: KinematicChain, sym: SymbolicChain, values: Mapping[str, float]) -> NumericCheckResult:
    """Compare symbolic and numeric tip transforms at ``values``.

    The numeric side runs on a copy so the caller's chain is left untouched.
    """
    probe = chain.copy()
    probe.set_joint_values(values)
    applied = probe.joint_values()
    numeric = probe.link_world_by_name(sym.link)
    symbolic = evaluate(sym, applied)
    delta = symbolic - numeric

    def _chop_if_small(x: Any) -> float:
        xf = float(x)
        return 0.0 if math.isfinite(xf) and abs(xf) < 1e-12 else xf

    delta = np.vectorize(_chop_if_small)(delta).astype(np.float64)
    return NumericCheckResult(
        err_F=float(np.linalg.norm(delta, ord="fro")),
        err_inf=float(np.max(np.abs(delta))),
        delta=delta,
    )


__all__ = [
    "NumericCheckResult",
    "SymbolicChain",
    "axis_rotation",
    "axis_translation",
    "check_numeric_once",
    "evaluate",
    "symbolic_fk",
]
