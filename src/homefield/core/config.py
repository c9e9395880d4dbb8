"""Configuration loading and resolution."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from homefield.core.types import TrialSchema


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG: dict[str, Any] = {
    "columns": {
        "site": "site",
        "year": "year",
        "geno": "geno",
        "pheno": "pheno",
        "popn": None,
    },
    "home": {
        "blup": True,
    },
    "permutation": {
        "level": "population",
        "times": 99,
        "seed": None,
    },
    "parallel": {
        "backend": "process",
        "workers": None,
    },
    "filters": {
        "site_years_min": None,
        "autofilter_min": None,
        "autofilter_max_cycles": 999,
    },
    "temporal": {
        "adjust": "holm",
    },
}

_LEVELS = {"population", "genotype", "year", "site"}
_BACKENDS = {"process", "thread", "sequential"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries and return a new dictionary."""

    out = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping at root: {p}")
    return data


def resolve_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Resolve run configuration from defaults, an optional YAML file and overrides."""

    resolved = deepcopy(DEFAULT_CONFIG)
    if config_path is not None:
        resolved = deep_merge(resolved, load_yaml(config_path))
    if overrides:
        resolved = deep_merge(resolved, overrides)
    _validate(resolved)
    return resolved


def dump_yaml(data: dict[str, Any], out_path: str | Path) -> None:
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)


def schema_from_config(cfg: dict[str, Any]) -> TrialSchema:
    cols = cfg.get("columns", {})
    return TrialSchema(
        site=str(cols["site"]),
        year=str(cols["year"]),
        geno=str(cols["geno"]),
        pheno=str(cols["pheno"]),
        popn=None if cols.get("popn") in (None, "") else str(cols["popn"]),
    )


def _validate(cfg: dict[str, Any]) -> None:
    cols = cfg.get("columns", {})
    for role in ("site", "year", "geno", "pheno"):
        if not cols.get(role):
            raise ConfigError(f"columns.{role} must name a column")

    level = cfg.get("permutation", {}).get("level")
    if level not in _LEVELS:
        raise ConfigError(
            f"Unsupported permutation.level '{level}'. Supported: population|genotype|year|site"
        )

    times = cfg.get("permutation", {}).get("times")
    if isinstance(times, bool) or not isinstance(times, int) or times <= 0:
        raise ConfigError(f"permutation.times must be a positive integer, got {times!r}")

    backend = cfg.get("parallel", {}).get("backend")
    if backend not in _BACKENDS:
        raise ConfigError(
            f"Unsupported parallel.backend '{backend}'. Supported: process|thread|sequential"
        )

    workers = cfg.get("parallel", {}).get("workers")
    if workers is not None and (not isinstance(workers, int) or workers <= 0):
        raise ConfigError(f"parallel.workers must be a positive integer or null, got {workers!r}")
