"""Implementation of `homefield home`."""

from __future__ import annotations

import argparse

from homefield.cli.options import add_table_args, column_overrides
from homefield.core.config import resolve_config, schema_from_config
from homefield.data.io import read_table, write_table
from homefield.ops.home import get_home_site, id_home


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("home", help="Identify the home site of each genotype")
    add_table_args(parser)
    parser.add_argument("--out", required=True, help="Output table with rel_<pheno> and is_home")
    parser.add_argument("--sites-out", default=None, help="Optional table of home sites per genotype")
    parser.add_argument("--no-blup", action="store_true", help="Use site means instead of BLUPs")
    parser.set_defaults(func=cmd_home)


def cmd_home(args: argparse.Namespace) -> int:
    cfg = resolve_config(config_path=args.config, overrides=column_overrides(args))
    schema = schema_from_config(cfg)
    blup = bool(cfg["home"]["blup"]) and not args.no_blup

    homed = id_home(read_table(args.table), schema, blup=blup, verbose=bool(args.verbose))
    path = write_table(homed, args.out)
    print(f"Wrote {len(homed)} rows ({int(homed['is_home'].sum())} home) to {path}")
    if args.sites_out:
        sites = get_home_site(homed, schema.geno, schema.site)
        print(f"Wrote {len(sites)} home sites to {write_table(sites, args.sites_out)}")
    return 0
