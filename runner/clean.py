from __future__ import annotations

import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from runner.logging import get_logger

_log = get_logger(__name__)


@dataclass(frozen=True)
class CleanTask:
    name: str
    pattern: str


def plan_tasks(
    *,
    all_: bool = False,
    cache: bool = False,
    coverage: bool = False,
    dist: bool = False,
    types: bool = False,
    modules: bool = False,
) -> list[CleanTask]:
    """Tasks for the selected flags; no flag at all means everything but node_modules."""
    clean_all = all_ or not (cache or coverage or dist or types or modules)
    tasks: list[CleanTask] = []
    if clean_all or cache:
        tasks.append(CleanTask("cache", "**/.cache"))
    if clean_all or coverage:
        tasks.append(CleanTask("coverage", "coverage"))
    if clean_all or dist:
        tasks.append(CleanTask("dist", "dist"))
        tasks.append(CleanTask("tsbuildinfo files", "**/*.tsbuildinfo"))
    elif types:
        tasks.append(CleanTask("dist/types", "dist/types"))
    if modules:
        tasks.append(CleanTask("node_modules", "**/node_modules"))
    return tasks


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def remove_matches(root: Path, pattern: str) -> int:
    """Delete every path under ``root`` matching ``pattern``; returns the count."""
    # Shallow paths first so nested matches inside removed trees are skipped.
    matches = sorted(root.glob(pattern), key=lambda p: len(p.parts))
    removed = 0
    for path in matches:
        if not path.exists() and not path.is_symlink():
            continue
        _remove(path)
        removed += 1
    return removed


def clean(root: Path, tasks: Sequence[CleanTask], *, quiet: bool = False) -> int:
    if not tasks:
        if not quiet:
            _log.info("Nothing to clean")
        return 0
    if not quiet:
        _log.info("Cleaning project directories")
    for task in tasks:
        if not quiet:
            _log.info("  Cleaning %s", task.name, extra={"step": task.name})
        try:
            count = remove_matches(root, task.pattern)
        except OSError as exc:
            if not quiet:
                _log.error("Failed to clean %s: %s", task.name, exc)
            return 1
        if not quiet:
            _log.info("  Cleaned %s (%d removed)", task.name, count)
    if not quiet:
        _log.info("Clean completed successfully!")
    return 0
