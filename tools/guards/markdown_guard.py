from __future__ import annotations

import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

ALLOWED_SCREAMING_CASE = frozenset(
    {
        "AUTHORS",
        "CHANGELOG",
        "CITATION",
        "CLAUDE",
        "CODE_OF_CONDUCT",
        "CONTRIBUTORS",
        "CONTRIBUTING",
        "COPYING",
        "CREDITS",
        "GOVERNANCE",
        "LICENSE",
        "MAINTAINERS",
        "NOTICE",
        "README",
        "SECURITY",
        "SUPPORT",
        "TRADEMARK",
    }
)
ANYWHERE = frozenset({"README", "LICENSE"})
SKIP_DIRS = frozenset(
    {"node_modules", ".git", "dist", "build", ".cache", "coverage", ".next", ".nuxt", ".output"}
)
DOC_DIRS = ("docs", ".claude")

_EXT_RE = re.compile(r"\.(md|MD)$")


@dataclass(frozen=True)
class NameViolation:
    file: str
    filename: str
    issue: str
    suggestion: str


def iter_markdown_files(root: Path) -> Iterable[Path]:
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir()):
        if entry.is_dir():
            if entry.name not in SKIP_DIRS and not entry.name.startswith("."):
                yield from iter_markdown_files(entry)
        elif entry.is_file() and (entry.suffix.lower() == ".md" or entry.name == "LICENSE"):
            yield entry


def is_screaming_case(filename: str) -> bool:
    stem = _EXT_RE.sub("", filename)
    return bool(re.fullmatch(r"[A-Z0-9_]+", stem)) and bool(re.search(r"[A-Z]", stem))


def is_lowercase_hyphenated(filename: str) -> bool:
    stem = re.sub(r"\.md$", "", filename)
    return bool(re.fullmatch(r"[a-z0-9]+(-[a-z0-9]+)*", stem))


def _screaming_location_ok(directory: str) -> bool:
    return directory in (".", *DOC_DIRS)


def _regular_location_ok(directory: str) -> bool:
    return any(directory == d or directory.startswith(f"{d}/") for d in DOC_DIRS)


def check_name(relative: str) -> NameViolation | None:
    """Validate one markdown path given relative to the project root."""
    rel = PurePosixPath(relative)
    filename = rel.name
    directory = str(rel.parent)
    stem = _EXT_RE.sub("", filename)

    if stem in ANYWHERE:
        return None
    if stem in ALLOWED_SCREAMING_CASE:
        if _screaming_location_ok(directory):
            return None
        renamed = filename.lower().replace("_", "-")
        return NameViolation(
            relative,
            filename,
            "SCREAMING_CASE files only allowed at root, docs/, or .claude/",
            f"Move to root, docs/, or .claude/, or rename to {renamed}",
        )
    if is_screaming_case(filename):
        return NameViolation(
            relative,
            filename,
            "SCREAMING_CASE not allowed",
            filename.lower().replace("_", "-"),
        )
    if filename.endswith(".MD"):
        return NameViolation(
            relative,
            filename,
            "Extension should be lowercase .md",
            re.sub(r"\.MD$", ".md", filename),
        )
    if not is_lowercase_hyphenated(filename):
        stem_only = re.sub(r"\.md$", "", filename)
        suggested = re.sub(r"[^a-z0-9-]", "", re.sub(r"[_\s]+", "-", stem_only.lower()))
        return NameViolation(
            relative, filename, "Must be lowercase-with-hyphens", f"{suggested}.md"
        )
    if not _regular_location_ok(directory):
        return NameViolation(
            relative,
            filename,
            "Markdown files must be in docs/ or .claude/ directories",
            f"Move to docs/{filename} or .claude/{filename}",
        )
    return None


def run(roots: list[str]) -> int:
    violations: list[NameViolation] = []
    for root in roots:
        base = Path(root)
        for path in iter_markdown_files(base):
            found = check_name(path.relative_to(base).as_posix())
            if found is not None:
                violations.append(found)
    if not violations:
        _log.info("All markdown filenames follow conventions")
        return 0
    lines = [
        "Markdown filename violations found",
        "",
        "Special files (allowed anywhere): README.md, LICENSE",
        "Allowed SCREAMING_CASE files (root, docs/, or .claude/ only):",
        "  " + ", ".join(sorted(ALLOWED_SCREAMING_CASE - ANYWHERE)),
        "All other .md files must be lowercase-with-hyphens and live in docs/ or .claude/",
        "",
    ]
    for v in violations:
        lines.extend(
            [
                f"  {v.file}",
                f"    Issue: {v.issue}",
                f"    Current: {v.filename}",
                f"    Suggested: {v.suggestion}",
                "",
            ]
        )
    lines.append("Rename files to follow conventions.")
    sys.stderr.write("\n".join(lines) + "\n")
    return 1


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
