"""Command-line interface for omnilyrics.

Without a subcommand the lyrics display runs. ``control`` sends a single
remote-control datagram to a running display without starting any playback
source, and ``doctor`` reports which sources this machine can use.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .app import LyricsApp
from .config_store import apply_overrides, load_config_with_notice
from .doctor import render_report, run_doctor
from .logging_utils import setup_logging
from .paths import config_path, log_dir
from .runtime_config import SOURCE_NAMES, SWAP_POLICIES, resolve_log_level
from .services.control_server import CONTROL_ACTIONS, ControlCommand, send_command
from .services.source_orchestrator import UnsupportedPlatformError
from .version import build_help_epilog


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omnilyrics",
        description="Synchronized lyrics for whatever is playing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=build_help_epilog(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument(
        "--source",
        action="append",
        dest="sources",
        choices=SOURCE_NAMES,
        help="Playback source to probe, in priority order (repeatable).",
    )
    parser.add_argument(
        "--swap-policy",
        choices=SWAP_POLICIES,
        help="Swap on source variant change only, or also on player instance change.",
    )
    parser.add_argument("--port", type=int, help="Loopback UDP control port.")
    parser.add_argument(
        "--window-size", type=int, help="Number of lyric lines to display."
    )
    subparsers = parser.add_subparsers(dest="command")
    control = subparsers.add_parser(
        "control", help="Send a remote-control command to a running display."
    )
    control.add_argument("action", choices=CONTROL_ACTIONS)
    control.add_argument(
        "seconds", nargs="?", type=float, help="Target position for seek."
    )
    subparsers.add_parser("doctor", help="Report playback source availability.")
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logger = logging.getLogger(__name__)
    command = getattr(args, "command", None)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=command is not None,
        )
        config_file = Path(args.config) if args.config else config_path()
        config, notice = load_config_with_notice(config_file)
        if notice:
            print(notice, file=sys.stderr)
        config = apply_overrides(
            config,
            sources=getattr(args, "sources", None),
            swap_policy=getattr(args, "swap_policy", None),
            port=getattr(args, "port", None),
            window_size=getattr(args, "window_size", None),
        )

        if command == "control":
            seconds = (args.seconds or 0.0) if args.action == "seek" else None
            send_command(ControlCommand(args.action, seconds), port=config.control_port)
            return 0
        if command == "doctor":
            report = run_doctor(config)
            print(render_report(report))
            return report.exit_code

        logger.info("Starting omnilyrics (sources=%s)", ",".join(config.sources))
        asyncio.run(LyricsApp(config).run())
        return 0
    except UnsupportedPlatformError as exc:
        logger.error("Unsupported platform: %s", exc)
        print(
            f"Unsupported platform: {exc}\n"
            "Next step: run 'omnilyrics doctor', or pass --source fake "
            "to try the display.",
            file=sys.stderr,
        )
        return 1
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
