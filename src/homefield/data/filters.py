"""Pre-processing filters for trial tables."""

from __future__ import annotations

import logging

import pandas as pd

logger = logging.getLogger(__name__)

SITEYEAR_SEP = "___"


def filter_site_years(df: pd.DataFrame, site: str, year: str, min_times: int = 3) -> pd.DataFrame:
    """Keep sites observed in at least `min_times` distinct years."""

    site_year = df[[site, year]].drop_duplicates()
    counts = site_year.groupby(site, dropna=True).size()
    keep = counts.index[(counts >= min_times).to_numpy()]
    return df.loc[df[site].isin(keep)].copy()


def count_instances(df: pd.DataFrame, group_col: str, rep_col: str, dropna: bool = False) -> pd.Series:
    """Number of distinct `rep_col` values seen for each `group_col` value."""

    data = df.dropna() if dropna else df
    pairs = data[[group_col, rep_col]].drop_duplicates()
    return pairs.groupby(group_col, sort=False, dropna=False, observed=True).size()


def filter_instances(
    df: pd.DataFrame,
    group_col: str,
    rep_col: str,
    min_times: int = 2,
    dropna: bool = False,
) -> pd.DataFrame:
    """Keep groups of `group_col` occurring in at least `min_times` values of `rep_col`."""

    counts = count_instances(df, group_col, rep_col, dropna=dropna)
    keep = counts.index[(counts >= min_times).to_numpy()]
    data = df.dropna() if dropna else df
    out = data.loc[data[group_col].isin(keep)].copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.CategoricalDtype):
            out[col] = out[col].cat.remove_unused_categories()
    return out


def autofilter_instances(
    df: pd.DataFrame,
    site: str,
    year: str,
    geno: str,
    min_times: int = 2,
    dropna: bool = True,
    max_cycles: int = 999,
) -> pd.DataFrame:
    """Iteratively filter geno-years, site-years and genotypes per site-year.

    Repeats until a full cycle removes no rows or `max_cycles` is reached.
    """

    data = df.copy()
    data["siteyear"] = data[site].astype(str) + SITEYEAR_SEP + data[year].astype(str)

    n_rows = len(data)
    new_n_rows = n_rows - 1
    cycles = 0
    while n_rows != new_n_rows and cycles < max_cycles:
        n_rows = len(data)
        data = filter_instances(data, geno, year, min_times, dropna)
        data = filter_instances(data, site, year, min_times, dropna)
        data = filter_instances(data, "siteyear", geno, min_times, dropna)
        new_n_rows = len(data)
        cycles += 1

    if cycles < max_cycles:
        logger.info(
            "Filtered geno-years, site-years, and genos per site-year to at least %d instances over %d cycle%s.",
            min_times,
            cycles,
            "s" if cycles > 1 else "",
        )
    else:
        logger.warning("Stopped filtering after %d cycles. Consider increasing max_cycles.", cycles)

    return data.drop(columns="siteyear")
