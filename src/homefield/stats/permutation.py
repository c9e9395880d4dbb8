"""Empirical significance of observed coefficients against permutation draws."""

from __future__ import annotations

import warnings

import numpy as np
import pandas as pd


def _as_matrix(coef: np.ndarray | pd.DataFrame) -> np.ndarray:
    arr = np.asarray(coef, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2 or arr.shape[1] < 1:
        raise ValueError("coefficient matrix must be 2D with the observed values in column 0")
    return arr


def tail_share(coef: np.ndarray | pd.DataFrame) -> np.ndarray:
    """Per row, the share of finite columns (observed included) >= the observed value."""

    arr = _as_matrix(coef)
    observed = arr[:, [0]]
    finite = np.isfinite(arr)
    hits = (arr >= observed) & finite
    n = finite.sum(axis=1)
    with np.errstate(invalid="ignore", divide="ignore"):
        alpha = hits.sum(axis=1) / n
    alpha[~np.isfinite(observed[:, 0]) | (n == 0)] = np.nan
    return alpha


def two_tailed(coef: np.ndarray | pd.DataFrame) -> np.ndarray:
    """Two-tailed empirical p-values, `2 * min(alpha, 1 - alpha)` per row."""

    alpha = tail_share(coef)
    return 2.0 * np.minimum(alpha, 1.0 - alpha)


def calculate_intervals(coef: np.ndarray | pd.DataFrame) -> np.ndarray:
    """Median, 5th and 95th percentiles of (observed - column), ignoring NaN.

    Returns an (n_rows, 3) array. Rows with no finite difference are NaN.
    """

    arr = _as_matrix(coef)
    difference = arr[:, [0]] - arr
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        med = np.nanmedian(difference, axis=1)
        q05, q95 = np.nanquantile(difference, [0.05, 0.95], axis=1)
    return np.column_stack([med, q05, q95])


def summarize(coef: pd.DataFrame) -> pd.DataFrame:
    """Observed coefficient, difference intervals and p-value for each row label."""

    arr = _as_matrix(coef)
    intervals = calculate_intervals(arr)
    return pd.DataFrame(
        {
            "observed": arr[:, 0],
            "median": intervals[:, 0],
            "p05": intervals[:, 1],
            "p95": intervals[:, 2],
            "p_value": two_tailed(arr),
        },
        index=coef.index if isinstance(coef, pd.DataFrame) else None,
    )
