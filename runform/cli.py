"""Command-line interface for runform.

Provides subcommands for running-form analysis:

    runform analyze run.mp4 --output run.json
    runform analyze run.mp4 --model-type full --direction left
    runform analyze run.mp4 --config config.yaml --constrained
    runform info run.json

Exit codes: 0 on success, 1 on errors, 2 when the video was rejected by a
validity gate (the issue is printed), 130 on interrupt.
"""

import argparse
import logging
import math
import sys
import time
from pathlib import Path
from importlib.metadata import version as pkg_version, PackageNotFoundError

EXIT_ISSUE = 2


def _get_version() -> str:
    """Return package version without importing the full runform package."""
    try:
        return pkg_version("runform")
    except PackageNotFoundError:
        # Fallback for editable/local runs where metadata may be unavailable.
        return "0.0.0+local"


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _fmt(x, digits: int = 2) -> str:
    if x is None or not math.isfinite(x):
        return "--"
    return f"{x:.{digits}f}"


def _print_summary(summary) -> None:
    from .interpret import (
        build_advice, build_flags, interpret_knee, interpret_overstride,
        interpret_retraction, interpret_trunk_lean,
    )

    rows = [
        ("Overstride ratio", _fmt(summary.overstride_ratio_median, 3),
         interpret_overstride(summary.overstride_ratio_median)),
        ("Knee angle (deg)", _fmt(summary.knee_angle_median, 1),
         interpret_knee(summary.knee_angle_median)),
        ("Trunk lean (deg)", _fmt(summary.trunk_lean_median, 1),
         interpret_trunk_lean(summary.trunk_lean_median)),
        ("Retraction speed", _fmt(summary.retract_speed_median, 3),
         interpret_retraction(summary.retract_speed_median)),
    ]
    print(f"Contacts: {summary.contact_count}")
    for label, value, finding in rows:
        print(f"  {label:<18} {value:>8}  [{finding.level}] {finding.key}")
    print(f"  {'Heel strike rate':<18} {_fmt(summary.heel_strike_rate, 2):>8}")

    print("Flags:")
    for flag in build_flags(summary):
        print(f"  [{flag.level}] {flag.key}")
    print("Advice:")
    for key in build_advice(summary):
        print(f"  - {key}")


def cmd_analyze(args):
    """Run the analysis on a video and save the result."""
    from . import analyze_video, save_json
    from .analysis import AnalysisIssue
    from .config import load_config, resolve_config

    config = load_config(args.config) if args.config else resolve_config()
    if args.constrained:
        config["constrained"] = True
    if args.direction:
        config["direction"]["mode"] = args.direction

    extractor_kwargs = {}
    if args.model_type:
        extractor_kwargs["model_type"] = args.model_type

    t0 = time.time()
    print(f"Analyzing {args.video} with {args.model}...")
    outcome = analyze_video(args.video, model=args.model, config=config, **extractor_kwargs)
    elapsed = time.time() - t0

    if isinstance(outcome, AnalysisIssue):
        print(f"Video rejected: {outcome.code}")
        for key, value in outcome.params.items():
            print(f"  {key}: {value}")
        sys.exit(EXIT_ISSUE)

    meta = outcome.meta
    print(
        f"  {meta['duration_s']:.1f}s video @ {meta['input_fps_estimate']:.0f}fps "
        f"(x{meta['slowmo_factor']}), direction {meta['direction']:+d}, "
        f"{meta['detected_frames']} frames detected"
    )
    _print_summary(outcome.summary)

    output = args.output or str(Path(args.video).with_suffix(".json"))
    save_json(outcome, output)
    print(f"Saved to {output} in {elapsed:.1f}s")


def cmd_info(args):
    """Display info about a runform JSON file."""
    from .schema import load_json, summary_from_dict

    data = load_json(args.json_file)

    meta = data["meta"]
    model = meta.get("model") or {}
    print(f"Created: {meta.get('created_at', '?')}")
    print(
        f"Duration: {meta.get('duration_s', '?')}s "
        f"(real {meta.get('real_duration_s', '?')}s, x{meta.get('slowmo_factor', '?')})"
    )
    print(f"FPS estimate: {meta.get('input_fps_estimate', '?')}, sampled at {meta.get('sample_fps', '?')}")
    print(f"Direction: {meta.get('direction', '?')} ({meta.get('direction_mode', '?')})")
    print(f"Model: {model.get('name', '?')} ({model.get('model_type') or '-'}, {model.get('backend') or '-'})")
    contacts = data["contacts"]
    print(f"Contacts: left={len(contacts['left'])}, right={len(contacts['right'])}")

    _print_summary(summary_from_dict(data["summary"]))


def main():
    parser = argparse.ArgumentParser(
        prog="runform",
        description="Running-form analysis from side-view video",
    )
    parser.add_argument("--version", action="version", version=f"runform {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # analyze
    p_analyze = sub.add_parser("analyze", help="Analyze a running video")
    p_analyze.add_argument("video", help="Path to video file")
    p_analyze.add_argument("-o", "--output", help="Output JSON path (default: video.json)")
    p_analyze.add_argument("--config", help="Config file (JSON/YAML)")
    p_analyze.add_argument("-m", "--model", default="mediapipe", help="Pose model (default: mediapipe)")
    p_analyze.add_argument("--model-type", choices=["lite", "full", "heavy"],
                           help="Landmarker variant (default: lite)")
    p_analyze.add_argument("--constrained", action="store_true",
                           help="Low-power profile: shorter probe, fewer samples, smaller frames")
    p_analyze.add_argument("--direction", choices=["auto", "left", "right"],
                           help="Running direction (default: auto)")
    p_analyze.set_defaults(func=cmd_analyze)

    # info
    p_info = sub.add_parser("info", help="Show info about a runform JSON file")
    p_info.add_argument("json_file", help="Path to runform JSON file")
    p_info.set_defaults(func=cmd_info)

    args = parser.parse_args()
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    from .video import PipelineError

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except PipelineError as e:
        print(f"Analysis failed: {e}", file=sys.stderr)
        sys.exit(1)
    except ImportError as e:
        print(f"Missing dependency: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
