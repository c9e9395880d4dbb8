"""Home site identification.

A genotype's home site is the site where its phenotype, standardized within
each site-year, is highest. Site effects come from a random-intercept model
(shrinkage toward the genotype's overall mean) when at least one site has
replicated observations, otherwise from simple per-site means.
"""

from __future__ import annotations

import logging
import warnings
from typing import Protocol

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import ModelWarning

from homefield.core.types import SchemaError, TrialSchema
from homefield.ops.scaling import scale_within

logger = logging.getLogger(__name__)


class SiteEffectEstimator(Protocol):
    """Estimates one effect per site from a genotype's relative phenotypes.

    Returns effects in sorted site label order, aligned with `sites`.
    """

    name: str

    def site_effects(self, values: np.ndarray, codes: np.ndarray, sites: np.ndarray) -> np.ndarray: ...


class MeanSiteEffects:
    name = "mean"

    def site_effects(self, values: np.ndarray, codes: np.ndarray, sites: np.ndarray) -> np.ndarray:
        sums = np.bincount(codes, weights=values, minlength=sites.size)
        counts = np.bincount(codes, minlength=sites.size)
        with np.errstate(invalid="ignore", divide="ignore"):
            return sums / counts


class MixedModelSiteEffects:
    """Site BLUPs from `value ~ 1 + (1 | site)` fitted by REML with statsmodels MixedLM."""

    name = "blup"

    def __init__(self, reml: bool = True, method: str | list[str] = "lbfgs") -> None:
        self.reml = reml
        self.method = method

    def site_effects(self, values: np.ndarray, codes: np.ndarray, sites: np.ndarray) -> np.ndarray:
        exog = np.ones((values.size, 1), dtype=float)
        model = sm.MixedLM(values, exog, groups=codes)
        _quiet_mixed_model_warnings()
        result = model.fit(reml=self.reml, method=self.method)
        if not getattr(result, "converged", True):
            logger.debug("MixedLM did not converge for %d records at %d sites", values.size, sites.size)

        intercept = float(np.asarray(result.fe_params)[0])
        effects = np.full(sites.size, np.nan, dtype=float)
        for code, re in result.random_effects.items():
            effects[int(code)] = intercept + float(np.asarray(re)[0])
        return effects


def _quiet_mixed_model_warnings() -> None:
    """Ignore statsmodels model warnings raised by per-genotype mixed model fits.

    Adds a filter instead of swapping warning state, so concurrent fits in
    thread workers do not race. statsmodels attributes some of these warnings
    to the caller of `fit`.
    """

    warnings.filterwarnings(
        "ignore",
        category=ModelWarning,
        module=r"(statsmodels\.regression\.mixed_linear_model|homefield\.ops\.home)$",
    )


MEAN_ESTIMATOR = MeanSiteEffects()


def _note(log: logging.Logger, verbose: bool, msg: str, *args) -> None:
    log.log(logging.INFO if verbose else logging.DEBUG, msg, *args)


def home_mask(
    sites: np.ndarray,
    values: np.ndarray,
    *,
    blup: bool = True,
    estimator: SiteEffectEstimator | None = None,
    verbose: bool = False,
    log: logging.Logger | None = None,
    label: str = "",
) -> tuple[np.ndarray, np.ndarray]:
    """Home flags for one genotype's records.

    Returns `(kept, is_home)`: `kept` marks records with a defined value and
    `is_home` (aligned with the kept records) flags those at the home site.
    Ties go to the lexicographically smallest site label.
    """

    log = log or logger
    vals = np.asarray(values, dtype=float)
    kept = np.isfinite(vals)
    vals = vals[kept]
    site_arr = np.asarray(sites).astype(str)[kept]
    if vals.size == 0:
        _note(log, verbose, "All site effects are NA for %s. Unable to identify a home site.", label)
        return kept, np.zeros(0, dtype=bool)

    levels, codes = np.unique(site_arr, return_inverse=True)
    codes = codes.reshape(-1)

    use_blup = blup
    if use_blup:
        counts = np.bincount(codes, minlength=levels.size)
        if counts.max() < 2 or levels.size < 2:
            _note(log, verbose, "Cannot use BLUP for %s due to insufficient observations. Using mean values.", label)
            use_blup = False

    effects = None
    if use_blup:
        shrink = estimator or MixedModelSiteEffects()
        _note(log, verbose, "Using %s site effects to identify the home site of %s.", shrink.name, label)
        try:
            effects = shrink.site_effects(vals, codes, levels)
        except (np.linalg.LinAlgError, ValueError, ZeroDivisionError) as exc:
            _note(log, verbose, "Shrinkage fit failed for %s (%s). Using mean values.", label, exc)
        else:
            if not np.isfinite(effects).all():
                _note(log, verbose, "Shrinkage fit for %s gave undefined effects. Using mean values.", label)
                effects = None
    if effects is None:
        effects = MEAN_ESTIMATOR.site_effects(vals, codes, levels)

    if not np.isfinite(effects).any():
        _note(log, verbose, "All site effects are NA for %s. Unable to identify a home site.", label)
        return kept, np.zeros(vals.size, dtype=bool)

    best = int(np.nanargmax(effects))
    return kept, codes == best


def select_home(
    records: pd.DataFrame,
    site: str = "site",
    value: str = "rel",
    *,
    blup: bool = True,
    estimator: SiteEffectEstimator | None = None,
    verbose: bool = False,
    log: logging.Logger | None = None,
) -> pd.DataFrame:
    """Flag the home site within one genotype's records.

    Records with a missing `value` are dropped; the rest are returned with a
    boolean `is_home` column.
    """

    missing = [col for col in (site, value) if col not in records.columns]
    if missing:
        raise SchemaError(f"Records missing required columns: {missing}")
    kept, is_home = home_mask(
        records[site].to_numpy(),
        records[value].to_numpy(dtype=float),
        blup=blup,
        estimator=estimator,
        verbose=verbose,
        log=log,
    )
    out = records.loc[kept].copy()
    out["is_home"] = is_home
    return out


def home_by_genotype(
    frame: pd.DataFrame,
    *,
    blup: bool = True,
    estimator: SiteEffectEstimator | None = None,
    verbose: bool = False,
    log: logging.Logger | None = None,
) -> pd.DataFrame:
    """Run the home selector on each genotype of a canonical frame.

    Expects canonical `geno`, `site`, `rel` and `row_id` columns. Records
    without a relative phenotype are dropped; the rest come back in `row_id`
    order with an `is_home` column.
    """

    sites = frame["site"].to_numpy()
    values = frame["rel"].to_numpy(dtype=float)
    keep = np.zeros(len(frame), dtype=bool)
    home = np.zeros(len(frame), dtype=bool)
    for geno, idx in frame.groupby("geno", sort=True).indices.items():
        kept, is_home = home_mask(
            sites[idx],
            values[idx],
            blup=blup,
            estimator=estimator,
            verbose=verbose,
            log=log,
            label=str(geno),
        )
        rows = idx[kept]
        keep[rows] = True
        home[rows] = is_home

    out = frame.loc[keep].copy()
    out["is_home"] = home[keep]
    return out.sort_values("row_id", kind="stable").reset_index(drop=True)


def derive_home(
    frame: pd.DataFrame,
    *,
    blup: bool = True,
    estimator: SiteEffectEstimator | None = None,
    verbose: bool = False,
    log: logging.Logger | None = None,
) -> pd.DataFrame:
    """Relative phenotype within site-year, then home flags per genotype."""

    complete = frame.dropna(subset=["site", "year", "geno"])
    scaled = scale_within(complete, value_col="pheno", by=("site", "year"), out_col="rel")
    return home_by_genotype(scaled, blup=blup, estimator=estimator, verbose=verbose, log=log)


def id_home(
    df: pd.DataFrame,
    schema: TrialSchema,
    *,
    blup: bool = True,
    verbose: bool = False,
    estimator: SiteEffectEstimator | None = None,
    log: logging.Logger | None = None,
) -> pd.DataFrame:
    """Identify each genotype's home site.

    Returns the rows of `df` that received a relative phenotype, in their
    original order, with two added columns: `rel_<pheno>` (phenotype z-scored
    within site-year) and `is_home`.
    """

    canon = schema.canonicalize(df)
    homed = derive_home(canon, blup=blup, estimator=estimator, verbose=verbose, log=log)
    return schema.restore(homed, df)


def get_home_site(data: pd.DataFrame, geno: str, site: str) -> pd.DataFrame:
    """Home site of each genotype with `home_years`, its count of home records."""

    if "is_home" not in data.columns:
        raise SchemaError("'is_home' column not found in the data")
    homes = data.loc[data["is_home"].astype(bool), [geno, site]]
    counts = homes.groupby(geno, sort=False).size()
    out = homes.drop_duplicates().reset_index(drop=True)
    out["home_years"] = out[geno].map(counts).astype(int)
    return out
