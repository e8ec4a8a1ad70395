"""CLI wiring for trajectory files: inspect, convert and dry-run playback."""

from __future__ import annotations

import argparse
import json
import pathlib

from armmotion.cli.utils import add_chain_arguments, chain_from_args, format_values, motion_config
from armmotion.control.animator import JointAnimator
from armmotion.control.scheduler import MotionSlot
from armmotion.core.errors import MotionError
from armmotion.trajectory.analysis import analyze_trajectory
from armmotion.trajectory.angles import load_angles, save_angles, trajectory_from_angles, trajectory_to_array
from armmotion.trajectory.model import Trajectory
from armmotion.trajectory.player import TrajectoryPlayer

ANGLE_SUFFIXES = {".csv", ".npy"}


def _is_angle_table(path: pathlib.Path, forced: bool) -> bool:
    return forced or path.suffix.lower() in ANGLE_SUFFIXES


def _read_trajectory(path: pathlib.Path) -> Trajectory:
    return Trajectory.from_json(path.read_text(encoding="utf-8"))


def cmd_traj_info(args: argparse.Namespace) -> int:
    try:
        trajectory = _read_trajectory(pathlib.Path(args.path))
    except (OSError, MotionError) as exc:
        print(f"error: {exc}")
        return 2
    analysis = analyze_trajectory(trajectory)
    if args.json:
        print(json.dumps(analysis.to_dict(), indent=2))
        return 0

    print(f"{analysis.name} ({analysis.robot_id}): {analysis.frame_count} frames, {analysis.duration:.0f} ms")
    for name, js in analysis.joints.items():
        print(f"  {name:>12}: min={js.min:+.4f} max={js.max:+.4f} range={js.range:.4f} final={js.final:+.4f}")
    ee = analysis.end_effector
    print(f"  end effector path: {ee.total_distance:.4f} m, peak {ee.max_velocity:.4f} m/s, "
          f"mean {ee.average_velocity:.4f} m/s")
    return 0


def cmd_traj_convert(args: argparse.Namespace) -> int:
    src, dst = pathlib.Path(args.input), pathlib.Path(args.output)
    try:
        if _is_angle_table(src, args.from_table):
            angles = load_angles(src, deg=args.deg)
            joints = args.joints or [f"joint{i + 1}" for i in range(angles.shape[1])]
            trajectory = trajectory_from_angles(
                angles, joints, args.interval, name=args.name or src.stem, robot_id=args.robot_id
            )
            dst.write_text(trajectory.to_json(), encoding="utf-8")
            print(f"wrote {trajectory.frame_count} frames to {dst}")
        else:
            trajectory = _read_trajectory(src)
            table = trajectory_to_array(trajectory, args.joints)
            save_angles(dst, table, deg=args.deg)
            print(f"wrote {table.shape[0]}x{table.shape[1]} table to {dst}")
    except (OSError, ValueError, MotionError) as exc:
        print(f"error: {exc}")
        return 2
    return 0


def cmd_traj_play(args: argparse.Namespace) -> int:
    """Step a playback against a simulated clock and print where the chain ends up."""
    chain = chain_from_args(args)
    try:
        trajectory = _read_trajectory(pathlib.Path(args.path))
    except (OSError, MotionError) as exc:
        print(f"error: {exc}")
        return 2

    cfg = motion_config(args)
    now = 0.0
    animator = JointAnimator(
        MotionSlot(f"{chain.robot_id}:motion"),
        clock=lambda: now,
        default_profile=cfg.animation.profile,
        constraints=cfg.animation.constraints(),
        min_duration_ms=cfg.animation.min_duration_ms,
    )
    player = TrajectoryPlayer(
        animator, align=cfg.playback.align, settle_ms=cfg.playback.settle_ms,
        align_tolerance=cfg.playback.align_tolerance,
    )
    frames_played = 0

    def on_frame(frame, progress):  # type: ignore[no-untyped-def]
        nonlocal frames_played
        frames_played += 1
        if args.verbose:
            print(f"  t={frame.timestamp:8.1f} ms  {progress:6.1%}  {format_values(frame.joint_values, args.deg, 4)}")

    try:
        player.play(chain, trajectory, speed=args.speed, on_frame=on_frame, interpolate=cfg.playback.interpolate)
    except (ValueError, MotionError) as exc:
        print(f"error: {exc}")
        return 2

    while player.slot.active:
        player.tick(now)
        now += args.dt

    print(f"played {frames_played} frames of {trajectory.name!r} in {now:.0f} ms (simulated)")
    print("final:", format_values(chain.joint_values(), args.deg, 4))
    return 0


def register_subparsers(subparsers: argparse._SubParsersAction) -> None:
    traj = subparsers.add_parser("traj", help="trajectory file utilities")
    traj_sub = traj.add_subparsers(dest="traj_command", required=True)

    traj_info = traj_sub.add_parser("info", help="summarize a trajectory JSON file")
    traj_info.add_argument("path")
    traj_info.add_argument("--json", action="store_true", help="print the analysis as JSON")
    traj_info.set_defaults(func=cmd_traj_info)

    traj_convert = traj_sub.add_parser("convert", help="convert between trajectory JSON and angle tables")
    traj_convert.add_argument("input")
    traj_convert.add_argument("output")
    traj_convert.add_argument("--from-table", action="store_true", help="treat a .json input as an angle table")
    traj_convert.add_argument("--joints", nargs="+", help="joint names for the table columns")
    traj_convert.add_argument("--interval", type=float, default=100.0, help="ms between table rows")
    traj_convert.add_argument("--deg", action="store_true", help="table values are in degrees")
    traj_convert.add_argument("--name", help="trajectory name (default: input stem)")
    traj_convert.add_argument("--robot-id", default="robot")
    traj_convert.set_defaults(func=cmd_traj_convert)

    traj_play = traj_sub.add_parser("play", help="dry-run playback on a chain with a simulated clock")
    traj_play.add_argument("path")
    add_chain_arguments(traj_play)
    traj_play.add_argument("--speed", type=float, default=1.0)
    traj_play.add_argument("--dt", type=float, default=16.0, help="simulated tick period (ms)")
    traj_play.add_argument("--deg", action="store_true", help="print values in degrees")
    traj_play.add_argument("-v", "--verbose", action="store_true", help="print every frame")
    traj_play.set_defaults(func=cmd_traj_play)
