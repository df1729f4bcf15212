"""
Command line entry point.

Usage:
    mdlive preview README.md --port 7379
    mdlive relay --port 7379
"""

import argparse
import logging
import threading
from pathlib import Path
from typing import List, Optional

from .configs.preview_config import (
    DEFAULT_PORT,
    DEFAULT_STYLE,
    PreviewConfig,
    RelayConfig,
)
from .relay.server import RelayServer
from .session.buffer import FileBuffer
from .session.preview import PreviewSession

logger = logging.getLogger("mdlive")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdlive",
        description="Live markdown preview broadcaster",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="More logging (-v info, -vv debug)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--host", default="localhost", help="Relay host")
    common.add_argument("--port", type=int, default=DEFAULT_PORT, help="Relay port")

    preview = subparsers.add_parser(
        "preview", parents=[common], help="Preview a markdown file",
    )
    preview.add_argument("file", type=Path, help="Markdown file to preview")
    preview.add_argument("--style", default=DEFAULT_STYLE, help="Stylesheet URI")
    preview.add_argument(
        "--interval", type=float, default=1.0,
        help="Seconds between checks for changes",
    )
    preview.add_argument(
        "--no-browser", action="store_true", help="Do not open the viewer page",
    )

    subparsers.add_parser("relay", parents=[common], help="Run a bare relay")
    return parser


def poll_for_saves(buffer: FileBuffer) -> bool:
    """Check the file for a save; a failure skips this check only."""
    try:
        return buffer.poll()
    except Exception:
        logger.exception("Checking %s for changes failed", buffer.path)
        return False


def run_preview(args: argparse.Namespace, stop: threading.Event) -> int:
    """Preview a file until ``stop`` is set."""
    if not args.file.is_file():
        logger.error("No such file: %s", args.file)
        return 1

    config = PreviewConfig(
        relay=RelayConfig(host=args.host, port=args.port),
        style=args.style,
        update_interval=args.interval,
        auto_open_browser=not args.no_browser,
    )
    buffer = FileBuffer(args.file)

    with PreviewSession(buffer, config) as session:
        print(f"Previewing {args.file} via {session.server.url}")
        print("Press Ctrl+C to stop")
        while not stop.wait(config.update_interval):
            poll_for_saves(buffer)
    return 0


def run_relay(args: argparse.Namespace, stop: threading.Event) -> int:
    """Run a relay until ``stop`` is set."""
    with RelayServer(RelayConfig(host=args.host, port=args.port)) as relay:
        if not relay.is_running:
            return 1
        print(f"Relay listening at {relay.url}")
        print("Press Ctrl+C to stop")
        while not stop.wait(0.5):
            pass
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    stop = threading.Event()
    runner = run_preview if args.command == "preview" else run_relay
    try:
        return runner(args, stop)
    except KeyboardInterrupt:
        print("\nStopping...")
        stop.set()
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
