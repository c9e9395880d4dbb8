"""Argument groups shared by several sub-commands."""

from __future__ import annotations

import argparse
from typing import Any

_ROLES = ("site", "year", "geno", "pheno", "popn")


def add_table_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("table", help="Trial table (.csv, .tsv or .parquet)")
    parser.add_argument("--config", default=None, help="Config YAML")
    for role in _ROLES:
        parser.add_argument(f"--{role}", default=None, help=f"Column holding the {role} label")


def column_overrides(args: argparse.Namespace) -> dict[str, Any]:
    columns = {role: getattr(args, role) for role in _ROLES if getattr(args, role, None)}
    return {"columns": columns} if columns else {}
