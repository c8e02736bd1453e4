from __future__ import annotations

import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

MAX_FILE_SIZE = 2 * 1024 * 1024
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".cache",
        "coverage",
        ".next",
        ".nuxt",
        ".output",
        ".turbo",
        ".vercel",
        ".vscode",
        "tmp",
    }
)
ALLOWED_HIDDEN = frozenset({".claude", ".config", ".github"})
_UNITS = ("B", "KB", "MB", "GB")


@dataclass(frozen=True)
class SizeViolation:
    file: str
    size: int


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_UNITS[unit]}"


def iter_files(root: Path) -> Iterable[Path]:
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir()):
        if entry.is_dir():
            hidden = entry.name.startswith(".") and entry.name not in ALLOWED_HIDDEN
            if entry.name not in SKIP_DIRS and not hidden:
                yield from iter_files(entry)
        elif entry.is_file():
            yield entry


def check_root(root: Path, *, limit: int = MAX_FILE_SIZE) -> list[SizeViolation]:
    found = [
        SizeViolation(path.relative_to(root).as_posix(), size)
        for path in iter_files(root)
        if (size := path.stat().st_size) > limit
    ]
    return sorted(found, key=lambda v: v.size, reverse=True)


def run(roots: list[str]) -> int:
    violations: list[SizeViolation] = []
    for root in roots:
        violations.extend(check_root(Path(root)))
    if not violations:
        _log.info("All files are within size limits")
        return 0
    violations.sort(key=lambda v: v.size, reverse=True)
    lines = [
        "File size violations found",
        "",
        f"Maximum allowed file size: {format_bytes(MAX_FILE_SIZE)}",
        "",
        "Files exceeding limit:",
        "",
    ]
    for v in violations:
        lines.extend(
            [
                f"  {v.file}",
                f"    Size: {format_bytes(v.size)}",
                f"    Exceeds limit by: {format_bytes(v.size - MAX_FILE_SIZE)}",
                "",
            ]
        )
    lines.append(
        "Reduce file sizes, move large files to external storage, or exclude from repository."
    )
    sys.stderr.write("\n".join(lines) + "\n")
    return 1


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
