"""Home field advantage coefficients and their permutation test."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from homefield.core.executor import TaskPool
from homefield.core.types import HomeFieldResult, TrialSchema
from homefield.ops.home import SiteEffectEstimator, derive_home, home_by_genotype
from homefield.stats.null_models import block_labels, generate_sets
from homefield.stats.permutation import summarize
from homefield.stats.regression import (
    Design,
    Factor,
    Indicator,
    Intercept,
    Nested,
    design_matrix,
    partial_phenotype,
    qr_fit,
)

logger = logging.getLogger(__name__)

LEVELS = ("population", "genotype", "year", "site")
LEVEL_COLUMN = {"genotype": "geno", "year": "year", "site": "site"}
POOLED_LABEL = "population"
DEFAULT_POPULATION = "all"
HOME_TERM = "is_home"


def check_level(level: str) -> str:
    key = str(level).strip().lower()
    if key not in LEVELS:
        raise ValueError(f"Unsupported level '{level}'. Supported: {'|'.join(LEVELS)}")
    return key


def hfa_design(frame: pd.DataFrame, level: str = "population") -> Design:
    """Genotype baseline plus the home term at the requested granularity."""

    level = check_level(level)
    terms = [Intercept(), Factor("geno")]
    if level == "population":
        terms.append(Indicator(HOME_TERM))
    else:
        terms.append(Nested(LEVEL_COLUMN[level], HOME_TERM))
    return design_matrix(frame, terms)


def home_labels(names: list[str]) -> tuple[np.ndarray, list[str]]:
    """Positions of home-term columns and their labels with formula residue removed."""

    positions: list[int] = []
    labels: list[str] = []
    suffix = f":{HOME_TERM}"
    for pos, name in enumerate(names):
        if name == HOME_TERM:
            positions.append(pos)
            labels.append(POOLED_LABEL)
        elif name.endswith(suffix):
            positions.append(pos)
            inner = name[: -len(suffix)]
            labels.append(inner[inner.index("[") + 1 : -1])
    return np.asarray(positions, dtype=int), labels


def default_pivoting(level: str) -> bool:
    return check_level(level) in ("population", "genotype")


def calculate_hfa(
    frame: pd.DataFrame,
    level: str = "population",
    *,
    response: str = "part",
    pivoting: bool | None = None,
) -> pd.Series:
    """Home coefficient per level label from OLS of `response` on genotype and home terms.

    Labels whose home coefficient is inestimable (no home/away contrast left
    after the genotype baseline) are NaN.
    """

    level = check_level(level)
    if pivoting is None:
        pivoting = default_pivoting(level)
    if frame.empty:
        return pd.Series(dtype=float, name=HOME_TERM)

    design = hfa_design(frame, level)
    fit = qr_fit(design.matrix, frame[response].to_numpy(dtype=float), pivoting=pivoting)
    positions, labels = home_labels(design.names)
    return pd.Series(fit.coef[positions], index=pd.Index(labels, name=level), name=HOME_TERM)


def level_labels(frame: pd.DataFrame, level: str) -> list[str]:
    level = check_level(level)
    if level == "population":
        return [POOLED_LABEL]
    values = frame[LEVEL_COLUMN[level]].dropna().astype(str)
    return sorted(values.unique().tolist())


@dataclass(frozen=True)
class _Subpopulation:
    name: str
    frame: pd.DataFrame
    labels: list[str]
    level: str
    times: int
    seed: int | None
    blup: bool
    estimator: SiteEffectEstimator | None


@dataclass(frozen=True)
class _Prepared:
    name: str
    frame: pd.DataFrame
    labels: list[str]
    sets: np.ndarray


@dataclass(frozen=True)
class _Batch:
    frame: pd.DataFrame
    sets: np.ndarray
    labels: list[str]
    level: str
    blup: bool
    pivoting: bool
    estimator: SiteEffectEstimator | None


def _prepare(sub: _Subpopulation) -> _Prepared:
    """Home flags, partial phenotype and permutation sets for one sub-population."""

    homed = derive_home(sub.frame, blup=sub.blup, estimator=sub.estimator)
    if homed.empty:
        logger.info("Sub-population %s has no usable home assignments", sub.name)
        homed["part"] = np.zeros(0, dtype=float)
    else:
        homed["part"] = partial_phenotype(homed)
    sets = generate_sets(block_labels(homed), sub.times, sub.seed)
    return _Prepared(name=sub.name, frame=homed, labels=sub.labels, sets=sets)


def _fit_batch(batch: _Batch) -> np.ndarray:
    """Coefficient columns for a slice of permutation sets."""

    out = np.full((len(batch.labels), batch.sets.shape[1]), np.nan, dtype=float)
    base = batch.frame
    if base.empty or not batch.labels:
        return out
    rel = base["rel"].to_numpy(dtype=float)
    part = base["part"].to_numpy(dtype=float)
    for j in range(batch.sets.shape[1]):
        order = batch.sets[:, j]
        shuffled = base.copy()
        shuffled["rel"] = rel[order]
        shuffled["part"] = part[order]
        homed = home_by_genotype(shuffled, blup=batch.blup, estimator=batch.estimator)
        coef = calculate_hfa(homed, batch.level, pivoting=batch.pivoting)
        out[:, j] = coef.reindex(batch.labels).to_numpy(dtype=float)
    return out


def _split_columns(n_cols: int, n_chunks: int) -> list[tuple[int, int]]:
    n_chunks = max(1, min(n_chunks, n_cols))
    bounds = np.linspace(0, n_cols, n_chunks + 1).round().astype(int)
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def split_populations(frame: pd.DataFrame) -> list[tuple[str, pd.DataFrame]]:
    if "popn" not in frame.columns:
        return [(DEFAULT_POPULATION, frame.reset_index(drop=True))]
    return [
        (str(name), sub.reset_index(drop=True))
        for name, sub in frame.groupby("popn", sort=True)
    ]


def permute_hfa(
    data: pd.DataFrame,
    schema: TrialSchema,
    *,
    level: str = "population",
    times: int = 99,
    blup_home: bool = True,
    seed: int | None = None,
    pool: TaskPool | None = None,
    estimator: SiteEffectEstimator | None = None,
    pivoting: bool | None = None,
) -> HomeFieldResult:
    """Test the magnitude and significance of home field advantage by permutation.

    For each sub-population the home site of every genotype is identified and
    the phenotype is residualized on site, year and their interaction. Relative
    and partial phenotypes are then shuffled within site-year blocks `times`
    times; for every ordering (the observed one first) home sites are derived
    again and the home coefficient is refitted. The observed coefficient is
    compared with the permutation draws for intervals and a two-tailed p-value.

    Raises `SchemaError` before any computation if a column in `schema` is
    missing from `data`.
    """

    level = check_level(level)
    if isinstance(times, bool) or int(times) != times or times <= 0:
        raise ValueError(f"times must be a positive integer, got {times!r}")
    if pivoting is None:
        pivoting = default_pivoting(level)
    pool = pool or TaskPool()

    canon = schema.canonicalize(data)
    cols = ["site", "year", "geno", "pheno"] + (["popn"] if "popn" in canon.columns else [])
    canon = canon.dropna(subset=cols)
    dropped = len(data) - len(canon)
    if dropped:
        logger.info("Dropped %d rows with missing values", dropped)

    subs = [
        _Subpopulation(
            name=name,
            frame=frame,
            labels=level_labels(frame, level),
            level=level,
            times=int(times),
            seed=seed,
            blup=blup_home,
            estimator=estimator,
        )
        for name, frame in split_populations(canon)
    ]
    logger.info(
        "Testing %s-level home field advantage in %d sub-population(s) with %d permutations",
        level,
        len(subs),
        times,
    )
    prepared = pool.map(_prepare, subs)

    chunks = _split_columns(int(times) + 1, pool.workers * 4)
    batches: list[_Batch] = []
    owners: list[tuple[int, int, int]] = []
    for p_idx, prep in enumerate(prepared):
        for start, stop in chunks:
            batches.append(
                _Batch(
                    frame=prep.frame,
                    sets=prep.sets[:, start:stop],
                    labels=prep.labels,
                    level=level,
                    blup=blup_home,
                    pivoting=pivoting,
                    estimator=estimator,
                )
            )
            owners.append((p_idx, start, stop))
    pieces = pool.map(_fit_batch, batches)

    columns = ["observed"] + [f"perm{i}" for i in range(1, int(times) + 1)]
    matrices = [np.full((len(prep.labels), int(times) + 1), np.nan, dtype=float) for prep in prepared]
    for (p_idx, start, stop), piece in zip(owners, pieces):
        matrices[p_idx][:, start:stop] = piece

    tables: list[pd.DataFrame] = []
    perms: dict[str, pd.DataFrame] = {}
    for prep, matrix in zip(prepared, matrices):
        coef = pd.DataFrame(matrix, index=pd.Index(prep.labels, name=level), columns=columns)
        perms[prep.name] = coef
        test = summarize(coef)
        test.insert(0, "level", test.index.astype(str))
        test.insert(0, "popn", prep.name)
        tables.append(test.reset_index(drop=True))

    home_field = pd.concat(tables, ignore_index=True) if tables else _empty_table()
    metadata = {
        "level": level,
        "times": int(times),
        "seed": seed,
        "blup_home": bool(blup_home),
        "backend": pool.backend,
        "workers": pool.workers,
        "n_rows": {prep.name: int(len(prep.frame)) for prep in prepared},
    }

    if level == "population":
        if perms:
            combined = pd.concat(list(perms.values()), ignore_index=True)
            combined.index = pd.Index(list(perms.keys()), name="popn")
        else:
            combined = pd.DataFrame(columns=columns)
        return HomeFieldResult(home_field=home_field, perms=combined, level=level, metadata=metadata)
    return HomeFieldResult(home_field=home_field, perms=perms, level=level, metadata=metadata)


def _empty_table() -> pd.DataFrame:
    return pd.DataFrame(columns=["popn", "level", "observed", "median", "p05", "p95", "p_value"])
