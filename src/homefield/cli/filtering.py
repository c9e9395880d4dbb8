"""Implementation of `homefield filter`."""

from __future__ import annotations

import argparse

from homefield.cli.options import add_table_args, column_overrides
from homefield.core.config import deep_merge, resolve_config, schema_from_config
from homefield.core.pipeline import apply_filters
from homefield.data.io import read_table, write_table


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("filter", help="Drop sparse site-years and genotypes")
    add_table_args(parser)
    parser.add_argument("--out", required=True, help="Output table path")
    parser.add_argument("--site-years-min", type=int, default=None, help="Minimum years per site")
    parser.add_argument(
        "--autofilter-min",
        type=int,
        default=None,
        help="Minimum site-years per genotype and genotypes per site-year",
    )
    parser.set_defaults(func=cmd_filter)


def cmd_filter(args: argparse.Namespace) -> int:
    filters = {}
    if args.site_years_min is not None:
        filters["site_years_min"] = args.site_years_min
    if args.autofilter_min is not None:
        filters["autofilter_min"] = args.autofilter_min
    overrides = deep_merge(column_overrides(args), {"filters": filters} if filters else {})
    cfg = resolve_config(config_path=args.config, overrides=overrides)

    df = read_table(args.table)
    out = apply_filters(df, schema_from_config(cfg), cfg)
    path = write_table(out, args.out)
    print(f"Kept {len(out)} of {len(df)} rows; wrote {path}")
    return 0
