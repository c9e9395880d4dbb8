"""Validation of trial tables before analysis."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from homefield.core.types import TrialSchema, ValidationIssue, ValidationReport


def validate_trials(df: pd.DataFrame, schema: TrialSchema) -> ValidationReport:
    """Check a trial table against `schema`.

    Missing columns are errors. Missing values, non-numeric phenotypes and
    thin replication are warnings: the analysis drops or degrades those rows
    rather than failing.
    """

    issues: list[ValidationIssue] = []

    for col in schema.missing_columns(df):
        issues.append(
            ValidationIssue(
                level="error",
                code="missing_column",
                message=f"Trial table missing required column '{col}'",
                context={"column": col},
            )
        )
    if issues:
        return ValidationReport(valid=False, issues=issues, n_rows=int(len(df)), n_complete=0)

    if df.empty:
        issues.append(ValidationIssue(level="error", code="empty_table", message="Trial table has no rows"))
        return ValidationReport(valid=False, issues=issues, n_rows=0, n_complete=0)

    pheno = pd.to_numeric(df[schema.pheno], errors="coerce")
    coerced = int((pheno.isna() & df[schema.pheno].notna()).sum())
    if coerced:
        issues.append(
            ValidationIssue(
                level="warning",
                code="non_numeric_pheno",
                message=f"Column '{schema.pheno}' has {coerced} non-numeric values; they are treated as missing",
                context={"column": schema.pheno, "count": coerced},
            )
        )
    non_finite = int((~np.isfinite(pheno.fillna(0.0).to_numpy(dtype=float))).sum())
    if non_finite:
        issues.append(
            ValidationIssue(
                level="warning",
                code="non_finite_pheno",
                message=f"Column '{schema.pheno}' has {non_finite} infinite values",
                context={"column": schema.pheno, "count": non_finite},
            )
        )

    cols = list(schema.required) + ([schema.popn] if schema.popn else [])
    complete = df[cols].notna().all(axis=1) & pheno.notna()
    n_complete = int(complete.sum())
    if n_complete < len(df):
        issues.append(
            ValidationIssue(
                level="warning",
                code="incomplete_rows",
                message=f"{len(df) - n_complete} rows have missing values and will be dropped",
                context={"count": int(len(df) - n_complete)},
            )
        )
    if n_complete == 0:
        issues.append(
            ValidationIssue(level="error", code="no_complete_rows", message="No complete rows remain")
        )

    kept = df.loc[complete]
    strata = kept.groupby([schema.site, schema.year], dropna=False).size()
    singletons = int((strata < 2).sum())
    if singletons:
        issues.append(
            ValidationIssue(
                level="warning",
                code="singleton_site_years",
                message=(
                    f"{singletons} site-years hold a single record; their relative phenotype "
                    "is undefined and those records drop out of home identification"
                ),
                context={"count": singletons},
            )
        )

    sites_per_geno = kept.groupby(schema.geno)[schema.site].nunique()
    one_site = int((sites_per_geno < 2).sum())
    if one_site:
        issues.append(
            ValidationIssue(
                level="warning",
                code="single_site_genotypes",
                message=f"{one_site} genotypes were tested at a single site",
                context={"count": one_site},
            )
        )

    has_error = any(issue.level == "error" for issue in issues)
    return ValidationReport(valid=not has_error, issues=issues, n_rows=int(len(df)), n_complete=n_complete)


def report_to_dict(report: ValidationReport) -> dict[str, Any]:
    return {
        "valid": report.valid,
        "n_rows": report.n_rows,
        "n_complete": report.n_complete,
        "issues": [
            {
                "level": issue.level,
                "code": issue.code,
                "message": issue.message,
                "context": dict(issue.context),
            }
            for issue in report.issues
        ],
    }
