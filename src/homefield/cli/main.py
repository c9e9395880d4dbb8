"""Main CLI entrypoint."""

from __future__ import annotations

import argparse
import sys

from homefield.cli import distance, filtering, home, report, run, temporal, validate
from homefield.core.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="homefield", description="Home field advantage in multi-environment trials"
    )
    subparsers = parser.add_subparsers(dest="command")

    validate.register(subparsers)
    filtering.register(subparsers)
    home.register(subparsers)
    run.register(subparsers)
    temporal.register(subparsers)
    distance.register(subparsers)
    report.register(subparsers)

    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=getattr(args, "verbose", False))

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return int(args.func(args))
    except KeyboardInterrupt:
        print("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
