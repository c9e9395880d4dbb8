"""Implementation of `homefield distance`."""

from __future__ import annotations

import argparse

from homefield.data.io import read_table, write_table
from homefield.ops.distance import measure_home_distance


def register(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("distance", help="Distances between genotype home sites")
    parser.add_argument("homes", help="Table written by `homefield home`")
    parser.add_argument("locations", help="Table of site coordinates")
    parser.add_argument("--out", required=True, help="Output distance matrix path")
    parser.add_argument("--geno", default="geno", help="Genotype column")
    parser.add_argument("--site", default="site", help="Site column")
    parser.add_argument("--lat", default="lat", help="Latitude column in locations")
    parser.add_argument("--long", default="long", help="Longitude column in locations")
    parser.add_argument("--planar", action="store_true", help="Euclidean instead of great-circle distance")
    parser.set_defaults(func=cmd_distance)


def cmd_distance(args: argparse.Namespace) -> int:
    matrix = measure_home_distance(
        read_table(args.homes),
        read_table(args.locations),
        geno=args.geno,
        site=args.site,
        lat=args.lat,
        long=args.long,
        great_circle=not args.planar,
    )
    path = write_table(matrix, args.out, index=True)
    print(f"Wrote {matrix.shape[0]}x{matrix.shape[1]} distance matrix to {path}")
    return 0
