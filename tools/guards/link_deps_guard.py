from __future__ import annotations

import json
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

SKIP_DIRS = frozenset({"node_modules", ".git", "build", "dist"})
DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


@dataclass(frozen=True)
class LinkViolation:
    file: Path
    field: str
    package: str
    value: str


def iter_package_json_files(roots: Iterable[str]) -> Iterable[Path]:
    for root in roots:
        base = Path(root)
        if not base.is_dir():
            continue
        for entry in sorted(base.iterdir()):
            if entry.name in SKIP_DIRS:
                continue
            if entry.is_dir():
                yield from iter_package_json_files([str(entry)])
            elif entry.name == "package.json":
                yield entry


def check_path(path: Path) -> list[LinkViolation]:
    try:
        pkg: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"{path}: READ_ERROR {exc}\n")
        raise
    if not isinstance(pkg, dict):
        return []
    violations: list[LinkViolation] = []
    for field in DEPENDENCY_FIELDS:
        deps = pkg.get(field)
        if not isinstance(deps, dict):
            continue
        for name, version in deps.items():
            if isinstance(version, str) and version.startswith("link:"):
                violations.append(LinkViolation(path, field, str(name), version))
    return violations


def run(roots: list[str]) -> int:
    lines: list[str] = []
    for root in roots:
        base = Path(root)
        for path in iter_package_json_files([root]):
            for v in check_path(path):
                lines.append(f"  {path.relative_to(base).as_posix()}")
                lines.append(f'    {v.field}.{v.package}: "{v.value}"')
    if lines:
        header = [
            "Found link: dependencies (prohibited)",
            "",
            "Use workspace: protocol for monorepo packages or catalog: for centralized versions.",
            "",
        ]
        footer = [
            "",
            "Replace link: with:",
            "  - workspace: for monorepo packages",
            "  - catalog: for centralized version management",
        ]
        sys.stderr.write("\n".join(header + lines + footer) + "\n")
        return 1
    _log.info("No link: dependencies found")
    return 0


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
