"""Provenance recorded with every run.

A permutation result is only reproducible with the same code revision, the
same numerical libraries and the same seed, so each run directory records
them next to its outputs.
"""

from __future__ import annotations

import importlib.metadata
import platform
import re
import shlex
import subprocess
from pathlib import Path
from typing import Any

DISTRIBUTION = "homefield"
NUMERIC_STACK = ("numpy", "pandas", "scipy", "statsmodels", "pyarrow", "PyYAML")

_REQ_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*")


def _installed(name: str) -> str | None:
    try:
        return importlib.metadata.version(name)
    except importlib.metadata.PackageNotFoundError:
        return None


def declared_dependencies() -> list[str]:
    """Runtime requirements of the installed distribution, extras excluded."""

    try:
        requirements = importlib.metadata.requires(DISTRIBUTION) or []
    except importlib.metadata.PackageNotFoundError:
        return list(NUMERIC_STACK)
    names: list[str] = []
    for req in requirements:
        if "extra ==" in req:
            continue
        match = _REQ_NAME.match(req.strip())
        if match and match.group(0) not in names:
            names.append(match.group(0))
    return names or list(NUMERIC_STACK)


def package_versions(packages: list[str] | None = None) -> dict[str, str]:
    out = {name: _installed(name) or "not-installed" for name in (packages or declared_dependencies())}
    out[DISTRIBUTION] = _installed(DISTRIBUTION) or "0.0.0+local"
    return out


def source_revision(cwd: str | Path) -> dict[str, Any] | None:
    """Commit checked out at `cwd` and whether tracked files differ from it.

    Returns None outside a git work tree or when git is unavailable.
    """

    git = ["git", "-C", str(cwd)]
    try:
        commit = subprocess.check_output(git + ["rev-parse", "HEAD"], stderr=subprocess.DEVNULL, text=True)
        status = subprocess.check_output(
            git + ["status", "--porcelain", "--untracked-files=no"],
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return {"commit": commit.strip(), "dirty": bool(status.strip())}


def command_line(argv: list[str]) -> str:
    """Shell-quoted command line, so paths with spaces can be pasted back."""

    return shlex.join(str(arg) for arg in argv)


def run_provenance(argv: list[str] | None = None, cwd: str | Path | None = None) -> dict[str, Any]:
    revision = source_revision(cwd if cwd is not None else Path.cwd())
    return {
        "git_commit": revision["commit"] if revision else None,
        "git_dirty": revision["dirty"] if revision else None,
        "package_versions": package_versions(),
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "cli_invocation": command_line(argv or []),
    }
