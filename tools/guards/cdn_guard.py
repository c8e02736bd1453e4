from __future__ import annotations

import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

CDN_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"bundle\.run", re.I), "bundle.run"),
    (re.compile(r"cdnjs\.cloudflare\.com", re.I), "cdnjs"),
    (re.compile(r"denopkg\.com", re.I), "denopkg"),
    (re.compile(r"esm\.run", re.I), "esm.run"),
    (re.compile(r"esm\.sh", re.I), "esm.sh"),
    (re.compile(r"cdn\.jsdelivr\.net|jsdelivr\.net|fastly\.jsdelivr\.net", re.I), "jsDelivr"),
    (re.compile(r"ga\.jspm\.io|jspm\.dev", re.I), "JSPM"),
    (re.compile(r"jsr\.io", re.I), "JSR"),
    (re.compile(r"cdn\.pika\.dev|cdn\.snowpack\.dev", re.I), "Pika/Snowpack CDN"),
    (re.compile(r"skypack\.dev|cdn\.skypack\.dev", re.I), "Skypack"),
    (re.compile(r"unpkg\.com", re.I), "unpkg"),
)

SKIP_DIRS = frozenset(
    {"node_modules", ".git", "dist", "build", ".cache", "coverage", ".next", ".nuxt", ".output"}
)
CHECK_EXTENSIONS = frozenset(
    {
        ".js", ".mjs", ".cjs", ".ts", ".mts", ".cts", ".tsx", ".jsx", ".json",
        ".md", ".html", ".htm", ".css", ".scss", ".yaml", ".yml", ".toml",
    }
)


@dataclass(frozen=True)
class CdnReference:
    file: str
    line_number: int
    cdn: str
    line: str


def iter_text_files(root: Path) -> Iterable[Path]:
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir()):
        if entry.is_dir():
            if entry.name not in SKIP_DIRS and not entry.name.startswith("."):
                yield from iter_text_files(entry)
        elif entry.is_file() and entry.suffix in CHECK_EXTENSIONS:
            yield entry


def check_text(text: str, file: str) -> list[CdnReference]:
    lines = text.split("\n")
    refs: list[CdnReference] = []
    for pattern, name in CDN_PATTERNS:
        for m in pattern.finditer(text):
            line_number = text.count("\n", 0, m.start()) + 1
            refs.append(CdnReference(file, line_number, name, lines[line_number - 1].strip()))
    return refs


def check_root(root: Path) -> list[CdnReference]:
    refs: list[CdnReference] = []
    for path in iter_text_files(root):
        text = path.read_text(encoding="utf-8", errors="replace")
        refs.extend(check_text(text, path.relative_to(root).as_posix()))
    return refs


def run(roots: list[str]) -> int:
    refs: list[CdnReference] = []
    for root in roots:
        refs.extend(check_root(Path(root)))
    if not refs:
        _log.info("No CDN references found")
        return 0
    by_file: dict[str, list[CdnReference]] = {}
    for ref in refs:
        by_file.setdefault(ref.file, []).append(ref)
    lines = [
        "CDN references found (prohibited)",
        "",
        "Public CDNs (cdnjs, unpkg, jsDelivr, esm.sh, JSR, etc.) are not allowed.",
        "Use npm packages and bundle instead.",
        "",
    ]
    for file, file_refs in by_file.items():
        lines.append(f"  {file}")
        for ref in file_refs:
            lines.append(f"    Line {ref.line_number}: {ref.cdn}")
            lines.append(f"      {ref.line}")
        lines.append("")
    lines.extend(
        [
            "Replace CDN usage with:",
            "  - npm install <package>",
            "  - Import and bundle with your build tool",
        ]
    )
    sys.stderr.write("\n".join(lines) + "\n")
    return 1


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
