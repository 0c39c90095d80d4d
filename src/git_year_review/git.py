from __future__ import annotations

import os
import subprocess
from pathlib import Path

from .logging import get_logger

log = get_logger("git")

EXCLUDED_DIRNAMES = frozenset({"node_modules"})


def run_git(args: list[str], cwd: Path, timeout_s: float | None = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def _skip_dir(name: str) -> bool:
    return name.startswith(".") or name in EXCLUDED_DIRNAMES


def discover_git_roots(root: Path, max_depth: int) -> list[Path]:
    """
    Walk `root` depth-first and return every directory holding a `.git` entry.

    The root sits at depth 0. A directory at `max_depth` is still checked for a
    `.git` entry but not descended into. Repositories are descended into as
    well, so nested repositories are found. Hidden directories and
    `node_modules` are never entered; unreadable directories are skipped.
    """
    if max_depth < 0:
        return []

    top = Path(root).resolve()
    roots: list[Path] = []

    def onerror(err: OSError) -> None:
        log.debug("skipping unreadable directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(top, onerror=onerror):
        current = Path(dirpath)
        if ".git" in dirnames or ".git" in filenames:
            roots.append(current)
        depth = len(current.relative_to(top).parts)
        if depth >= max_depth:
            dirnames[:] = []
            continue
        dirnames[:] = [d for d in dirnames if not _skip_dir(d)]
    return roots


def get_config_value(key: str, cwd: Path | None = None) -> str:
    """Return `git config <key>` or "" when git is missing or the key is unset."""
    try:
        code, out, _ = run_git(["config", "--get", key], cwd=cwd or Path.cwd(), timeout_s=30)
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("git config %s failed: %s", key, e)
        return ""
    if code != 0:
        return ""
    return out.strip()
