"""Timestamp helpers."""

from __future__ import annotations

import os
from datetime import datetime, timezone


def utc_now_iso() -> str:
    fixed = os.environ.get("HOMEFIELD_FIXED_TIMESTAMP_UTC")
    if fixed:
        return fixed
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()
