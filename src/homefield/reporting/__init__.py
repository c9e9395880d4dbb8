"""Report builders for JSON/Markdown bundles."""

from homefield.reporting.json import build_report_payload, write_report_json
from homefield.reporting.md import write_report_md

__all__ = [
    "build_report_payload",
    "write_report_json",
    "write_report_md",
]
