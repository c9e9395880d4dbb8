"""Markdown report writer."""

from __future__ import annotations

from pathlib import Path
from typing import Any


def write_report_md(payload: dict[str, Any], out_path: str | Path) -> None:
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    rep = payload.get("reproducibility", {})
    summ = payload.get("summary", {})
    lines = [
        "# Home Field Advantage Report",
        "",
        "## Reproducibility",
        f"- Table hash: `{rep.get('table_hash')}`",
        f"- Config hash: `{rep.get('config_hash')}`",
        f"- Git commit: `{rep.get('git_commit')}`",
        f"- Uncommitted changes: `{rep.get('git_dirty')}`",
        f"- Python: `{rep.get('python_version')}`",
        f"- RNG seed: `{rep.get('rng_seed')}`",
        f"- Timestamp (UTC): `{rep.get('timestamp_utc')}`",
        "",
        "## Summary",
        f"- Level: `{summ.get('level')}`",
        f"- Permutations: `{summ.get('times')}`",
        f"- Rows: `{summ.get('rows')}`",
        f"- p < {summ.get('alpha')}: `{summ.get('significant')}`",
        f"- Missing p-values: `{summ.get('missing')}`",
        "",
        "## Results",
        "",
        "| popn | level | observed | median | p05 | p95 | p_value |",
        "| --- | --- | ---: | ---: | ---: | ---: | ---: |",
    ]
    for row in payload.get("rows", []):
        lines.append(
            "| {popn} | {level} | {observed} | {median} | {p05} | {p95} | {p_value} |".format(
                popn=row.get("popn"),
                level=row.get("level"),
                observed=_fmt(row.get("observed")),
                median=_fmt(row.get("median")),
                p05=_fmt(row.get("p05")),
                p95=_fmt(row.get("p95")),
                p_value=_fmt(row.get("p_value")),
            )
        )
    out.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _fmt(value: Any) -> str:
    if value is None:
        return "NA"
    try:
        return f"{float(value):.4g}"
    except (TypeError, ValueError):
        return str(value)
