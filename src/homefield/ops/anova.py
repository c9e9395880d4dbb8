"""Sum-of-squares summaries of fitted linear models."""

from __future__ import annotations

import numpy as np
import pandas as pd
from statsmodels.stats.anova import anova_lm


def _signif(values: np.ndarray, digits: int = 3) -> np.ndarray:
    out = np.asarray(values, dtype=float).copy()
    finite = np.isfinite(out) & (out != 0)
    mags = np.floor(np.log10(np.abs(out[finite])))
    factor = 10.0 ** (digits - 1 - mags)
    out[finite] = np.round(out[finite] * factor) / factor
    return out


def get_ss(model, typ: int = 2) -> pd.DataFrame:
    """Predictor sums of squares, share of variance, F and p from a type-II ANOVA.

    `model` is a fitted statsmodels OLS results object built from a formula
    (for example `statsmodels.formula.api.ols(...).fit()`).
    """

    if model is None:
        raise ValueError("The input model is None. Please provide a fitted model.")

    table = anova_lm(model, typ=typ)
    if table is None or table.empty:
        raise ValueError("No valid ANOVA results. Check your model.")

    sum_sq = table["sum_sq"].to_numpy(dtype=float)
    return pd.DataFrame(
        {
            "Predictor": table.index.astype(str),
            "SumSq": sum_sq,
            "PercentVariance": np.round(sum_sq / np.nansum(sum_sq) * 100.0, 2),
            "F_value": np.round(table["F"].to_numpy(dtype=float), 4),
            "p_value": _signif(table["PR(>F)"].to_numpy(dtype=float), 3),
        }
    ).reset_index(drop=True)
