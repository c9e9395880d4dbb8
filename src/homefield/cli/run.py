"""Implementation of `homefield run`."""

from __future__ import annotations

import argparse
import sys

from homefield.cli.options import add_table_args, column_overrides
from homefield.core.config import deep_merge
from homefield.core.pipeline import run_pipeline


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("run", help="Permutation test of home field advantage")
    add_table_args(parser)
    parser.add_argument("--out", required=True, help="Output results folder")
    parser.add_argument(
        "--level", default=None, choices=["population", "genotype", "year", "site"], help="Aggregation level"
    )
    parser.add_argument("--times", type=int, default=None, help="Number of permutations")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--no-blup", action="store_true", help="Use site means to choose home sites")
    parser.add_argument(
        "--backend", default=None, choices=["process", "thread", "sequential"], help="Parallel backend"
    )
    parser.add_argument("--workers", type=int, default=None, help="Worker count")
    parser.set_defaults(func=cmd_run)


def cmd_run(args: argparse.Namespace) -> int:
    permutation = {
        key: value
        for key, value in (("level", args.level), ("times", args.times), ("seed", args.seed))
        if value is not None
    }
    parallel = {
        key: value
        for key, value in (("backend", args.backend), ("workers", args.workers))
        if value is not None
    }
    overrides = column_overrides(args)
    if permutation:
        overrides = deep_merge(overrides, {"permutation": permutation})
    if parallel:
        overrides = deep_merge(overrides, {"parallel": parallel})
    if args.no_blup:
        overrides = deep_merge(overrides, {"home": {"blup": False}})

    result = run_pipeline(
        table_path=args.table,
        out_dir=args.out,
        config_path=args.config,
        overrides=overrides,
        argv=sys.argv,
    )

    print(f"Wrote {len(result.result.home_field)} rows to {args.out}/home_field.parquet")
    print(f"Wrote permutation coefficients to {args.out}/perms")
    print(f"Wrote run metadata to {args.out}/run_metadata.json")
    print(f"Wrote resolved config to {args.out}/config_resolved.yaml")
    return 0
