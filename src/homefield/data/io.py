"""I/O helpers for trial tables and run outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd


class TableIOError(FileNotFoundError):
    """Raised when an input table is missing or in an unknown format."""


_TEXT_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise TableIOError(f"Trial table does not exist: {p}")
    suffix = p.suffix.lower()
    if suffix in {".parquet", ".pq"}:
        return pd.read_parquet(p)
    if suffix in _TEXT_SUFFIXES:
        return pd.read_csv(p, sep=_TEXT_SUFFIXES[suffix])
    raise TableIOError(f"Unsupported table format '{suffix}' for {p}. Use .csv, .tsv or .parquet")


def write_table(df: pd.DataFrame, path: str | Path, index: bool = False) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = p.suffix.lower()
    if suffix in {".parquet", ".pq"}:
        df.to_parquet(p, index=index)
    elif suffix in _TEXT_SUFFIXES:
        df.to_csv(p, sep=_TEXT_SUFFIXES[suffix], index=index)
    else:
        raise TableIOError(f"Unsupported table format '{suffix}' for {p}. Use .csv, .tsv or .parquet")
    return p


def write_json(data: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True, default=str)


def read_json(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
