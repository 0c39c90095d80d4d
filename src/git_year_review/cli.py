from __future__ import annotations

import argparse
import datetime as dt
import os
import sys
from pathlib import Path

from . import __version__
from .aggregate import COMMIT_ORDERS
from .config import default_config_path
from .logging import configure_logging
from .run import run_review


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if n < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {n}")
    return n


def _build_parser() -> argparse.ArgumentParser:
    previous_year = dt.date.today().year - 1
    parser = argparse.ArgumentParser(
        prog="git-year-review",
        description="Generate your Year in Review from Git commits.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-k", "--key", type=str, default="", help="Upload key from myyearinreview.dev (saved after first entry).")
    parser.add_argument("-y", "--year", type=int, default=previous_year, help=f"Year to analyze (default: {previous_year}).")
    parser.add_argument("-d", "--dir", type=Path, default=Path("."), help="Directory to scan for git repos (default: current).")
    parser.add_argument("-e", "--email", type=str, default="", help="Filter commits by author email (default: git config user.email).")
    parser.add_argument("--depth", type=_non_negative_int, default=2, help="How deep to scan for repos (default: 2).")
    parser.add_argument("--jobs", type=int, default=1, help="Parallel git jobs (default: 1; 0 = one per CPU, up to 8).")
    parser.add_argument("--timeout", type=_non_negative_int, default=300, help="Seconds allowed per git invocation (0 = no limit).")
    parser.add_argument(
        "--commit-order",
        choices=list(COMMIT_ORDERS),
        default="encountered",
        help="Which commits to embed when there are more than 1000: first encountered (default) or most recent.",
    )
    parser.add_argument(
        "--log-format",
        choices=["structured", "legacy"],
        default="structured",
        help="git log output grammar to request and parse (legacy = pipe-delimited).",
    )
    parser.add_argument("--config", type=Path, default=None, help=f"Path to the saved key file (default: {default_config_path()}).")
    parser.add_argument("--api-url", type=str, default="", help="Override the upload endpoint URL.")
    parser.add_argument("--ca-bundle", type=str, default="", help="Path to a CA bundle file/dir for HTTPS verification.")
    parser.add_argument("--save-payload", type=Path, default=None, help="Also write the upload payload JSON to this path.")
    parser.add_argument("--dry-run", action="store_true", help="Analyze and build the payload without uploading.")
    parser.add_argument("--yes", action="store_true", help="Skip confirmations: include every repo and upload immediately.")
    parser.add_argument("--verbose", action="store_true", help="Log skipped directories and git errors.")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)
    if args.jobs <= 0:
        args.jobs = max(1, min(8, (os.cpu_count() or 4)))
    configure_logging(verbose=bool(args.verbose))
    try:
        return run_review(args=args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
