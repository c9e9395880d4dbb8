"""Dense design matrices and QR least squares."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from scipy.linalg import qr, solve_triangular

ALIAS_TOL = 1e-7


@dataclass(frozen=True)
class Intercept:
    def columns(self, frame: pd.DataFrame) -> tuple[list[str], np.ndarray]:
        return ["Intercept"], np.ones((len(frame), 1), dtype=float)


@dataclass(frozen=True)
class Factor:
    """Treatment-coded factor; the first sorted level is the reference."""

    col: str

    def columns(self, frame: pd.DataFrame) -> tuple[list[str], np.ndarray]:
        levels, codes = _factorize(frame[self.col])
        mat = _dummies(codes, len(levels))[:, 1:]
        return [f"{self.col}[{lvl}]" for lvl in levels[1:]], mat


@dataclass(frozen=True)
class Interaction:
    """Product of the treatment codings of two factors."""

    a: str
    b: str

    def columns(self, frame: pd.DataFrame) -> tuple[list[str], np.ndarray]:
        names_a, mat_a = Factor(self.a).columns(frame)
        names_b, mat_b = Factor(self.b).columns(frame)
        names: list[str] = []
        blocks: list[np.ndarray] = []
        # first factor varies fastest
        for j, nb in enumerate(names_b):
            for i, na in enumerate(names_a):
                names.append(f"{na}:{nb}")
                blocks.append(mat_a[:, i] * mat_b[:, j])
        if not blocks:
            return [], np.empty((len(frame), 0), dtype=float)
        return names, np.column_stack(blocks)


@dataclass(frozen=True)
class Indicator:
    """A boolean column entered as 0/1."""

    col: str

    def columns(self, frame: pd.DataFrame) -> tuple[list[str], np.ndarray]:
        return [self.col], frame[self.col].to_numpy(dtype=float).reshape(-1, 1)


@dataclass(frozen=True)
class Nested:
    """One indicator column per level of `factor` (indicator within level)."""

    factor: str
    indicator: str

    def columns(self, frame: pd.DataFrame) -> tuple[list[str], np.ndarray]:
        levels, codes = _factorize(frame[self.factor])
        ind = frame[self.indicator].to_numpy(dtype=float)
        mat = _dummies(codes, len(levels)) * ind[:, None]
        return [f"{self.factor}[{lvl}]:{self.indicator}" for lvl in levels], mat


Term = Intercept | Factor | Interaction | Indicator | Nested


@dataclass(frozen=True)
class Design:
    matrix: np.ndarray
    names: list[str]

    @property
    def shape(self) -> tuple[int, int]:
        return self.matrix.shape


def design_matrix(frame: pd.DataFrame, terms: Sequence[Term]) -> Design:
    names: list[str] = []
    blocks: list[np.ndarray] = []
    for term in terms:
        term_names, mat = term.columns(frame)
        names.extend(term_names)
        blocks.append(mat)
    if not blocks:
        raise ValueError("A design needs at least one term")
    return Design(matrix=np.hstack(blocks), names=names)


def independent_columns(X: np.ndarray, tol: float = ALIAS_TOL) -> np.ndarray:
    """Indices of columns not aliased with earlier columns.

    Columns are visited left to right. A column is aliased when its residual
    after projection onto the kept columns has norm <= `tol` times its own
    norm, so inestimable terms placed last in a design are the ones dropped.
    """

    arr = np.asarray(X, dtype=float)
    n, p = arr.shape
    basis = np.empty((n, min(n, p)), dtype=float)
    k = 0
    keep: list[int] = []
    for j in range(p):
        v = arr[:, j].copy()
        norm0 = float(np.linalg.norm(v))
        if norm0 == 0.0 or k >= n:
            continue
        if k:
            q = basis[:, :k]
            v -= q @ (q.T @ v)
            v -= q @ (q.T @ v)
        norm = float(np.linalg.norm(v))
        if norm > tol * norm0:
            basis[:, k] = v / norm
            k += 1
            keep.append(j)
    return np.asarray(keep, dtype=int)


@dataclass(frozen=True)
class QRFit:
    coef: np.ndarray
    fitted: np.ndarray
    residuals: np.ndarray
    rank: int
    aliased: np.ndarray


def qr_fit(X: np.ndarray, y: np.ndarray, pivoting: bool = False, tol: float = ALIAS_TOL) -> QRFit:
    """Least squares through a QR factorization of the estimable columns.

    Aliased coefficients are NaN. With `pivoting` the estimable block is
    factorized with LAPACK column pivoting (geqp3), which is more robust for
    badly scaled designs.
    """

    arr = np.asarray(X, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if arr.ndim != 2 or arr.shape[0] != y_arr.shape[0]:
        raise ValueError("X must be 2D with one row per response value")

    keep = independent_columns(arr, tol=tol)
    coef = np.full(arr.shape[1], np.nan, dtype=float)
    aliased = np.ones(arr.shape[1], dtype=bool)
    if keep.size == 0:
        return QRFit(coef=coef, fitted=np.zeros_like(y_arr), residuals=y_arr.copy(), rank=0, aliased=aliased)

    sub = arr[:, keep]
    if pivoting:
        q, r, piv = qr(sub, mode="economic", pivoting=True)
        beta = np.empty(keep.size, dtype=float)
        beta[piv] = solve_triangular(r, q.T @ y_arr)
    else:
        q, r = qr(sub, mode="economic")
        beta = solve_triangular(r, q.T @ y_arr)

    coef[keep] = beta
    aliased[keep] = False
    fitted = q @ (q.T @ y_arr)
    return QRFit(coef=coef, fitted=fitted, residuals=y_arr - fitted, rank=int(keep.size), aliased=aliased)


def qr_residuals(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    return qr_fit(X, y).residuals


def qr_coefficients(X: np.ndarray, y: np.ndarray, pivoting: bool = False) -> np.ndarray:
    return qr_fit(X, y, pivoting=pivoting).coef


def partial_phenotype(frame: pd.DataFrame, response: str = "pheno") -> np.ndarray:
    """Residuals of `response ~ year * site`, centred to mean zero."""

    design = design_matrix(
        frame,
        [Intercept(), Factor("year"), Factor("site"), Interaction("year", "site")],
    )
    resid = qr_residuals(design.matrix, frame[response].to_numpy(dtype=float))
    return resid - resid.mean()


def _factorize(values: pd.Series) -> tuple[list[str], np.ndarray]:
    labels = values.astype(str).to_numpy()
    levels, codes = np.unique(labels, return_inverse=True)
    return [str(v) for v in levels], codes.reshape(-1)


def _dummies(codes: np.ndarray, n_levels: int) -> np.ndarray:
    out = np.zeros((codes.size, n_levels), dtype=float)
    out[np.arange(codes.size), codes] = 1.0
    return out
