"""Implementation of `homefield report`."""

from __future__ import annotations

import argparse
from pathlib import Path

from homefield.reporting.json import build_report_payload, write_report_json
from homefield.reporting.md import write_report_md


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("report", help="Build JSON and Markdown reports from run outputs")
    parser.add_argument("results", nargs="?", help="Results directory containing home_field.parquet")
    parser.add_argument("--in", dest="results_in", default=None, help="Results directory containing home_field.parquet")
    parser.add_argument("--out-json", default=None, help="Output report.json path")
    parser.add_argument("--out-md", default=None, help="Output report.md path")
    parser.add_argument("--alpha", type=float, default=0.05, help="Significance threshold for the summary")
    parser.set_defaults(func=cmd_report)


def cmd_report(args: argparse.Namespace) -> int:
    results_arg = args.results_in or args.results
    if not results_arg:
        raise ValueError("Provide results directory as positional argument or with --in")
    results_dir = Path(results_arg)
    out_json = Path(args.out_json) if args.out_json else results_dir / "report.json"
    out_md = Path(args.out_md) if args.out_md else results_dir / "report.md"

    payload = build_report_payload(results_dir=results_dir, alpha=args.alpha)
    write_report_json(payload, out_json)
    write_report_md(payload, out_md)

    print(f"Report JSON written to {out_json}")
    print(f"Report Markdown written to {out_md}")
    return 0
