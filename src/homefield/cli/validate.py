"""Implementation of `homefield validate`."""

from __future__ import annotations

import argparse
import json

from homefield.cli.options import add_table_args, column_overrides
from homefield.core.config import resolve_config, schema_from_config
from homefield.data.io import read_table
from homefield.data.validators import report_to_dict, validate_trials


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("validate", help="Validate a trial table against its column roles")
    add_table_args(parser)
    parser.add_argument("--json", action="store_true", help="Print report as JSON")
    parser.set_defaults(func=cmd_validate)


def cmd_validate(args: argparse.Namespace) -> int:
    cfg = resolve_config(config_path=args.config, overrides=column_overrides(args))
    report = validate_trials(read_table(args.table), schema_from_config(cfg))
    payload = report_to_dict(report)

    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        status = "PASS" if report.valid else "FAIL"
        print(f"Validation: {status}")
        print(f"Complete rows: {report.n_complete}/{report.n_rows}")
        if not report.issues:
            print("No issues found")
        for issue in report.issues:
            print(f"- {issue.level.upper()} [{issue.code}] {issue.message}")

    return 0 if report.valid else 2
