"""Orchestration of a home field advantage run from a trial table on disk."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import pandas as pd

from homefield.core.config import dump_yaml, resolve_config, schema_from_config
from homefield.core.executor import TaskPool
from homefield.core.types import PipelineResult, TrialSchema, ValidationReport
from homefield.core.versioning import run_provenance
from homefield.data.filters import autofilter_instances, filter_site_years
from homefield.data.io import read_table, write_json, write_table
from homefield.data.validators import report_to_dict, validate_trials
from homefield.ops.hfa import permute_hfa
from homefield.utils.hash import file_sha256, frame_sha256, mapping_sha256
from homefield.utils.time import utc_now_iso

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Raised when the pipeline cannot complete."""


def load_trials(
    table_path: str | Path, cfg: dict[str, Any]
) -> tuple[pd.DataFrame, TrialSchema, ValidationReport]:
    """Read, validate and filter a trial table according to `cfg`."""

    df = read_table(table_path)
    schema = schema_from_config(cfg)
    validation = validate_trials(df, schema)
    for issue in validation.issues:
        if issue.level != "error":
            logger.warning("[%s] %s", issue.code, issue.message)
    if not validation.valid:
        failures = [f"[{i.code}] {i.message}" for i in validation.issues if i.level == "error"]
        raise PipelineError(
            "Trial table validation failed. Run 'homefield validate <table>' for details. "
            + " | ".join(failures)
        )
    return apply_filters(df, schema, cfg), schema, validation


def apply_filters(df: pd.DataFrame, schema: TrialSchema, cfg: dict[str, Any]) -> pd.DataFrame:
    filters = cfg.get("filters", {})
    out = df
    site_years_min = filters.get("site_years_min")
    if site_years_min:
        before = len(out)
        out = filter_site_years(out, schema.site, schema.year, min_times=int(site_years_min))
        logger.info("Site-year filter kept %d of %d rows", len(out), before)
    autofilter_min = filters.get("autofilter_min")
    if autofilter_min:
        out = autofilter_instances(
            out,
            schema.site,
            schema.year,
            schema.geno,
            min_times=int(autofilter_min),
            max_cycles=int(filters.get("autofilter_max_cycles", 999)),
        )
    if out.empty:
        raise PipelineError("No rows remain after filtering")
    return out.reset_index(drop=True)


def run_pipeline(
    table_path: str,
    out_dir: str,
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
    argv: list[str] | None = None,
) -> PipelineResult:
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    resolved = resolve_config(config_path=config_path, overrides=overrides)
    dump_yaml(resolved, out_root / "config_resolved.yaml")

    df, schema, validation = load_trials(table_path, resolved)
    perm_cfg = resolved["permutation"]
    pool = TaskPool.from_config(resolved)

    result = permute_hfa(
        df,
        schema,
        level=perm_cfg["level"],
        times=int(perm_cfg["times"]),
        blup_home=bool(resolved["home"]["blup"]),
        seed=perm_cfg.get("seed"),
        pool=pool,
    )

    results_path = write_table(result.home_field, out_root / "home_field.parquet")
    perm_paths = write_perms(result.perms, out_root / "perms")

    metadata = {
        "timestamp_utc": utc_now_iso(),
        **run_provenance(argv),
        "table_hash": file_sha256(table_path),
        "filtered_table_hash": frame_sha256(df),
        "config_hash": mapping_sha256(resolved),
        "random_seed": perm_cfg.get("seed"),
        "table_path": str(Path(table_path).resolve()),
        "results_path": str(results_path.resolve()),
        "perm_paths": [str(p.resolve()) for p in perm_paths],
        "n_rows_input": int(len(df)),
        "columns": resolved["columns"],
        "run": result.metadata,
        "validation": report_to_dict(validation),
    }
    write_json(metadata, out_root / "run_metadata.json")
    logger.info("Wrote %d result rows to %s", len(result.home_field), results_path)

    return PipelineResult(result=result, metadata=metadata)


def write_perms(perms: pd.DataFrame | dict[str, pd.DataFrame], out_dir: Path) -> list[Path]:
    """Write permutation coefficient matrices, one file per sub-population unless pooled."""

    if isinstance(perms, pd.DataFrame):
        return [write_table(perms, out_dir / "population.parquet", index=True)]
    return [
        write_table(frame, out_dir / f"{_safe_name(name)}.parquet", index=True)
        for name, frame in perms.items()
    ]


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", str(name)) or "popn"
