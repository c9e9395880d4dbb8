"""Blocked permutation designs for the home field null distribution."""

from __future__ import annotations

import numpy as np
import pandas as pd


def block_labels(frame: pd.DataFrame, site_col: str = "site", year_col: str = "year") -> np.ndarray:
    """Integer site-year block code for every row, numbered in sorted (site, year) order."""

    keys = frame[[site_col, year_col]].astype(str)
    return keys.groupby([site_col, year_col], sort=True, dropna=False).ngroup().to_numpy(dtype=np.int64)


def block_members(blocks: np.ndarray) -> list[np.ndarray]:
    """Row indices of each block, blocks in sorted label order."""

    _, codes = np.unique(np.asarray(blocks), return_inverse=True)
    codes = codes.reshape(-1)
    order = np.argsort(codes, kind="stable")
    bounds = np.flatnonzero(np.diff(codes[order])) + 1
    return [idx for idx in np.split(order, bounds) if idx.size]


def block_shuffle(members: list[np.ndarray], n: int, rng: np.random.Generator) -> np.ndarray:
    """One permutation of row indices that only moves rows within their block."""

    order = np.arange(n)
    for idx in members:
        if idx.size > 1:
            order[idx] = idx[rng.permutation(idx.size)]
    return order


def generate_sets(blocks: np.ndarray, times: int, seed: int | None = None) -> np.ndarray:
    """Identity ordering plus `times` block-restricted permutations.

    Returns an (N, times + 1) integer matrix of 0-based row indices. Column 0
    is the observed ordering. Blocks are visited in sorted label order, so a
    fixed seed reproduces the matrix exactly for the same block structure.
    """

    if isinstance(times, bool) or int(times) != times or times <= 0:
        raise ValueError(f"times must be a positive integer, got {times!r}")
    labels = np.asarray(blocks)
    n = labels.size
    members = block_members(labels)
    rng = np.random.default_rng(seed)
    sets = np.empty((n, int(times) + 1), dtype=np.int64)
    sets[:, 0] = np.arange(n)
    for col in range(1, int(times) + 1):
        sets[:, col] = block_shuffle(members, n, rng)
    return sets
