"""Unified command-line interface for the armmotion toolkit.

The parser definitions are delegated to the individual CLI modules under
``armmotion.cli`` so the entry point stays lightweight and imports stay fast.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from armmotion.cli import fk, ik, traj, verify
from armmotion.core.config import configure_logging, load_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="armmotion", description="armmotion kinematics and motion CLI")
    parser.add_argument("--config", help="YAML config with solver/animation/playback defaults")
    parser.add_argument("--log-level", help="override the configured log level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    fk.register_subparsers(sub)
    ik.register_subparsers(sub)
    traj.register_subparsers(sub)
    verify.register_subparsers(sub)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.motion_config = load_config(args.config)
    except ValueError as exc:
        parser.error(str(exc))
    log = args.motion_config.logging
    configure_logging(args.log_level or log.level, log.format)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
