"""Implementation of `homefield temporal`."""

from __future__ import annotations

import argparse

from homefield.cli.options import add_table_args, column_overrides
from homefield.core.config import deep_merge, resolve_config
from homefield.core.pipeline import load_trials
from homefield.data.io import write_table
from homefield.ops.temporal import temporal_hfa


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("temporal", help="Home field advantage per year")
    add_table_args(parser)
    parser.add_argument("--out", required=True, help="Output table path")
    parser.add_argument("--adjust", default=None, help="p-value adjustment method (statsmodels multipletests)")
    parser.add_argument("--no-blup", action="store_true", help="Use site means to choose home sites")
    parser.set_defaults(func=cmd_temporal)


def cmd_temporal(args: argparse.Namespace) -> int:
    overrides = column_overrides(args)
    if args.adjust:
        overrides = deep_merge(overrides, {"temporal": {"adjust": args.adjust}})
    cfg = resolve_config(config_path=args.config, overrides=overrides)
    df, schema, _ = load_trials(args.table, cfg)

    blup = bool(cfg["home"]["blup"]) and not args.no_blup
    table = temporal_hfa(df, schema, blup_home=blup, adjust=cfg["temporal"]["adjust"])
    path = write_table(table, args.out)
    print(f"Wrote {len(table)} yearly estimates to {path}")
    return 0
