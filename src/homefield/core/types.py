"""Core package types used across pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd


class SchemaError(KeyError):
    """Raised when a trial table lacks required columns."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


@dataclass(frozen=True)
class TrialSchema:
    """User column names for a trial table, resolved once at ingestion."""

    site: str
    year: str
    geno: str
    pheno: str
    popn: str | None = None

    @property
    def required(self) -> tuple[str, str, str, str]:
        return (self.site, self.year, self.geno, self.pheno)

    @property
    def rel_col(self) -> str:
        return f"rel_{self.pheno}"

    @property
    def part_col(self) -> str:
        return f"part_{self.pheno}"

    def missing_columns(self, df: pd.DataFrame) -> list[str]:
        wanted = list(self.required)
        if self.popn is not None:
            wanted.append(self.popn)
        return [col for col in wanted if col not in df.columns]

    def validate(self, df: pd.DataFrame) -> None:
        missing = self.missing_columns(df)
        if missing:
            raise SchemaError(
                "One or more of the provided column names do not exist in the data frame: "
                + ", ".join(repr(c) for c in missing)
            )

    def canonicalize(self, df: pd.DataFrame) -> pd.DataFrame:
        """Copy `df` into canonical columns plus a positional `row_id`."""

        self.validate(df)
        out = pd.DataFrame(
            {
                "row_id": np.arange(len(df), dtype=np.int64),
                "site": df[self.site].astype(str).to_numpy(),
                "year": df[self.year].astype(str).to_numpy(),
                "geno": df[self.geno].astype(str).to_numpy(),
                "pheno": pd.to_numeric(df[self.pheno], errors="coerce").to_numpy(dtype=float),
            }
        )
        labels = [(self.site, "site"), (self.year, "year"), (self.geno, "geno")]
        if self.popn is not None:
            out["popn"] = df[self.popn].astype(str).to_numpy()
            labels.append((self.popn, "popn"))
        # raw missing labels must stay missing, not become the string "nan"
        for src, dst in labels:
            out.loc[df[src].isna().to_numpy(), dst] = np.nan
        return out

    def restore(self, frame: pd.DataFrame, source: pd.DataFrame) -> pd.DataFrame:
        """Map a canonical frame back onto the rows and names of `source`."""

        rows = frame["row_id"].to_numpy(dtype=np.int64)
        out = source.iloc[rows].reset_index(drop=True).copy()
        if "rel" in frame.columns:
            out[self.rel_col] = frame["rel"].to_numpy(dtype=float)
        if "part" in frame.columns:
            out[self.part_col] = frame["part"].to_numpy(dtype=float)
        if "is_home" in frame.columns:
            out["is_home"] = frame["is_home"].to_numpy(dtype=bool)
        return out


@dataclass(frozen=True)
class HomeFieldResult:
    """Output of a permutation test of home field advantage."""

    home_field: pd.DataFrame
    perms: pd.DataFrame | dict[str, pd.DataFrame]
    level: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def perm_frames(self) -> dict[str, pd.DataFrame]:
        """Coefficient matrices keyed by sub-population whatever the level."""

        if isinstance(self.perms, dict):
            return dict(self.perms)
        return {str(name): self.perms.loc[[name]] for name in self.perms.index}


@dataclass(frozen=True)
class SitePoints:
    """Site coordinates carrying their own spatial reference."""

    sites: Sequence[str]
    coords: np.ndarray
    longlat: bool = True

    def __post_init__(self) -> None:
        arr = np.asarray(self.coords, dtype=float)
        if arr.ndim != 2 or arr.shape[1] != 2:
            raise ValueError("coords must be an (n, 2) array of x/long, y/lat pairs")
        if arr.shape[0] != len(self.sites):
            raise ValueError("coords and sites must have equal length")


@dataclass(frozen=True)
class ValidationIssue:
    level: str
    code: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    issues: Sequence[ValidationIssue]
    n_rows: int
    n_complete: int


@dataclass(frozen=True)
class PipelineResult:
    result: HomeFieldResult
    metadata: dict[str, Any]
