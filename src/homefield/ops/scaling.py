"""Within-stratum standardization of phenotypes."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd


def zscore(values: np.ndarray) -> np.ndarray:
    """Centre on the mean and divide by the sample standard deviation.

    Missing inputs stay missing. With fewer than two finite values, or no
    spread, the standard deviation is undefined and every value is NaN.
    """

    arr = np.asarray(values, dtype=float)
    finite = np.isfinite(arr)
    out = np.full(arr.shape, np.nan, dtype=float)
    if finite.sum() < 2:
        return out
    vals = arr[finite]
    sd = vals.std(ddof=1)
    if not sd > 0:
        return out
    out[finite] = (vals - vals.mean()) / sd
    return out


def scale_within(
    frame: pd.DataFrame,
    value_col: str = "pheno",
    by: Sequence[str] = ("site", "year"),
    out_col: str = "rel",
) -> pd.DataFrame:
    """Add `out_col`, the z-score of `value_col` within each `by` stratum."""

    out = frame.copy()
    rel = np.full(len(out), np.nan, dtype=float)
    values = out[value_col].to_numpy(dtype=float)
    for idx in out.groupby(list(by), sort=True, dropna=False).indices.values():
        rel[idx] = zscore(values[idx])
    out[out_col] = rel
    return out
