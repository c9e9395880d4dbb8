"""Year-by-year home field advantage with parametric tests."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.multitest import multipletests

from homefield.core.types import TrialSchema
from homefield.ops.hfa import hfa_design, home_labels, split_populations
from homefield.ops.home import SiteEffectEstimator, derive_home
from homefield.stats.regression import independent_columns, partial_phenotype

logger = logging.getLogger(__name__)

TEMPORAL_COLUMNS = ["popn", "year", "year_num", "estimate", "std_error", "t_value", "p_value", "p_adj"]


def calculate_temporal_hfa(frame: pd.DataFrame, adjust: str = "holm") -> pd.DataFrame:
    """OLS of partial phenotype on genotype and per-year home indicators.

    Expects a canonical frame with `geno`, `year`, `is_home` and `part`.
    Years whose home coefficient is inestimable are omitted. P-values are
    adjusted across years with `statsmodels.stats.multitest.multipletests`.
    """

    if frame.empty:
        return pd.DataFrame(columns=TEMPORAL_COLUMNS[1:])

    design = hfa_design(frame, "year")
    keep = independent_columns(design.matrix)
    names = [design.names[i] for i in keep]
    result = sm.OLS(frame["part"].to_numpy(dtype=float), design.matrix[:, keep]).fit()

    positions, years = home_labels(names)
    if positions.size == 0:
        return pd.DataFrame(columns=TEMPORAL_COLUMNS[1:])

    p_value = np.asarray(result.pvalues, dtype=float)[positions]
    p_adj = np.full(p_value.shape, np.nan, dtype=float)
    finite = np.isfinite(p_value)
    if finite.any():
        p_adj[finite] = multipletests(p_value[finite], method=adjust)[1]

    out = pd.DataFrame(
        {
            "year": years,
            "year_num": pd.to_numeric(pd.Series(years), errors="coerce").to_numpy(),
            "estimate": np.asarray(result.params, dtype=float)[positions],
            "std_error": np.asarray(result.bse, dtype=float)[positions],
            "t_value": np.asarray(result.tvalues, dtype=float)[positions],
            "p_value": p_value,
            "p_adj": p_adj,
        }
    )
    return out


def temporal_hfa(
    data: pd.DataFrame,
    schema: TrialSchema,
    *,
    blup_home: bool = True,
    adjust: str = "holm",
    estimator: SiteEffectEstimator | None = None,
) -> pd.DataFrame:
    """Home field advantage per year and sub-population, with adjusted p-values."""

    canon = schema.canonicalize(data)
    cols = ["site", "year", "geno", "pheno"] + (["popn"] if "popn" in canon.columns else [])
    canon = canon.dropna(subset=cols)

    tables: list[pd.DataFrame] = []
    for name, frame in split_populations(canon):
        homed = derive_home(frame, blup=blup_home, estimator=estimator)
        if homed.empty:
            logger.info("Sub-population %s has no usable home assignments", name)
            continue
        homed["part"] = partial_phenotype(homed)
        table = calculate_temporal_hfa(homed, adjust=adjust)
        table.insert(0, "popn", name)
        tables.append(table)

    out = pd.concat(tables, ignore_index=True) if tables else pd.DataFrame(columns=TEMPORAL_COLUMNS)
    return out.rename(columns={"year": schema.year, "year_num": f"{schema.year}_num"})
