"""Shared helpers for CLI modules."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from math import radians

import numpy as np
import sympy as sp

from armmotion.core.config import MotionConfig
from armmotion.core.types import JointValues
from armmotion.model.chain import KinematicChain
from armmotion.model.description import load_chain
from armmotion.model.presets import PRESET_CHAINS, PRESETS_DEG, build_preset


def pprint_matrix(matrix: sp.Matrix | np.ndarray) -> None:
    if isinstance(matrix, np.ndarray):
        matrix = sp.Matrix(np.round(matrix, 9).tolist())
    sp.pprint(matrix, use_unicode=True)  # type: ignore[operator]


def add_chain_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--robot", choices=sorted(PRESET_CHAINS), default="arm6r", help="built-in chain")
    group.add_argument("--chain", help="YAML chain description")


def chain_from_args(args: argparse.Namespace) -> KinematicChain:
    if getattr(args, "chain", None):
        return load_chain(args.chain)
    return build_preset(args.robot)


def motion_config(args: argparse.Namespace) -> MotionConfig:
    return getattr(args, "motion_config", None) or MotionConfig()


def joint_values_from_row(chain: KinematicChain, row: Sequence[float], deg: bool) -> JointValues:
    names = chain.joint_names()
    if len(row) != len(names):
        raise SystemExit(f"expected {len(names)} joint values for {chain.robot_id}, got {len(row)}")
    return {n: radians(v) if deg else float(v) for n, v in zip(names, row)}


def collect_joint_rows(chain: KinematicChain, args: argparse.Namespace) -> list[JointValues]:
    rows: list[JointValues] = []
    for idx in getattr(args, "preset", None) or []:
        if not 1 <= idx <= len(PRESETS_DEG):
            raise SystemExit(f"--preset index out of range: {idx}")
        rows.append(joint_values_from_row(chain, PRESETS_DEG[idx - 1], deg=True))
    for q in getattr(args, "q", None) or []:
        rows.append(joint_values_from_row(chain, q, args.deg))
    return rows


def format_values(values: JointValues, deg: bool = False, digits: int = 6) -> str:
    conv = np.degrees if deg else (lambda v: v)
    return ", ".join(f"{k}={float(conv(v)):.{digits}f}" for k, v in values.items())
