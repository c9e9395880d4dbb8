"""Structured report payload generation."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from homefield.data.io import read_json, write_json
from homefield.utils.hash import file_sha256


def build_report_payload(results_dir: str | Path, alpha: float = 0.05) -> dict[str, Any]:
    root = Path(results_dir)
    results_path = root / "home_field.parquet"
    metadata_path = root / "run_metadata.json"
    cfg_path = root / "config_resolved.yaml"
    if not results_path.exists():
        raise FileNotFoundError(f"Missing results file: {results_path}")

    df = pd.read_parquet(results_path)
    metadata = {}
    if metadata_path.exists():
        metadata = read_json(metadata_path)

    p_values = pd.to_numeric(df.get("p_value", pd.Series(dtype=float)), errors="coerce")
    payload = {
        "run_dir": str(root.resolve()),
        "artifacts": {
            "home_field_parquet": str(results_path.resolve()),
            "run_metadata_json": str(metadata_path.resolve()) if metadata_path.exists() else None,
            "config_resolved_yaml": str(cfg_path.resolve()) if cfg_path.exists() else None,
        },
        "reproducibility": {
            "table_hash": metadata.get("table_hash"),
            "config_hash": metadata.get("config_hash")
            or (file_sha256(cfg_path) if cfg_path.exists() else None),
            "git_commit": metadata.get("git_commit"),
            "git_dirty": metadata.get("git_dirty"),
            "python_version": metadata.get("python_version"),
            "rng_seed": metadata.get("random_seed"),
            "timestamp_utc": metadata.get("timestamp_utc"),
        },
        "summary": {
            "level": metadata.get("run", {}).get("level"),
            "times": metadata.get("run", {}).get("times"),
            "rows": int(df.shape[0]),
            "alpha": float(alpha),
            "significant": int((p_values < alpha).sum()),
            "missing": int(p_values.isna().sum()),
        },
        "rows": [_coerce_scalars(row) for row in df.to_dict(orient="records")],
    }
    return payload


def write_report_json(payload: dict[str, Any], out_path: str | Path) -> None:
    write_json(payload, out_path)


def _coerce_scalars(values: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (str, bool)) or value is None:
            out[key] = value
            continue
        try:
            num = float(value)
        except (TypeError, ValueError):
            out[key] = str(value)
            continue
        out[key] = num if np.isfinite(num) else None
    return out
