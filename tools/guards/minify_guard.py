from __future__ import annotations

import re
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

CONFIG_PATH = Path(".config") / "esbuild.config.mjs"
CONFIG_NAMES = ("buildConfig", "watchConfig")

_MINIFY_RE = re.compile(r"\bminify\s*:\s*([^,\n}]+)")
_COMMENT_RE = re.compile(r"//.*|/\*.*?\*/")


@dataclass(frozen=True)
class MinifyViolation:
    config: str
    value: str
    line: int


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _braces(text: str, start: int = 0) -> Iterator[tuple[int, str]]:
    """(offset, brace) pairs from ``start``, ignoring strings and comments."""
    quote: str | None = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = len(text) if newline < 0 else newline
            continue
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = len(text) if close < 0 else close + 2
            continue
        elif ch in "'\"`":
            quote = ch
        elif ch in "{}":
            yield i, ch
        i += 1


def _object_span(text: str, open_brace: int) -> tuple[int, int]:
    depth = 0
    for offset, brace in _braces(text, open_brace):
        depth += 1 if brace == "{" else -1
        if depth == 0:
            return open_brace, offset + 1
    return open_brace, len(text)


def _depth_at(body: str, offset: int) -> int:
    depth = 0
    for at, brace in _braces(body):
        if at >= offset:
            break
        depth += 1 if brace == "{" else -1
    return depth


def find_config(text: str, name: str) -> tuple[int, str] | None:
    """(offset, object text) of ``name = { ... }``, or None when absent."""
    m = re.search(rf"\b{name}\s*=\s*\{{", text)
    if m is None:
        return None
    start, end = _object_span(text, m.end() - 1)
    return start, text[start:end]


def check_text(text: str) -> list[MinifyViolation]:
    violations: list[MinifyViolation] = []
    for name in CONFIG_NAMES:
        found = find_config(text, name)
        if found is None:
            continue
        start, body = found
        value = "undefined"
        line = _line_of(text, start)
        for m in _MINIFY_RE.finditer(body):
            if _depth_at(body, m.start()) == 1:
                value = _COMMENT_RE.sub("", m.group(1)).strip()
                line = _line_of(text, start + m.start())
                break
        if value != "false":
            violations.append(MinifyViolation(name, value, line))
    return violations


def run(roots: list[str]) -> int:
    errors: list[str] = []
    for root in roots:
        path = Path(root) / CONFIG_PATH
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            sys.stderr.write(f"Failed to load esbuild config: {path}: {exc}\n")
            return 1
        for v in check_text(text):
            errors.extend(
                [
                    f"  {v.config}.minify must be false",
                    f"  Found: minify: {v.value}",
                    "  Expected: minify: false",
                    f"  Location: {path}:{v.line}",
                    "",
                ]
            )
    if errors:
        lines = ["esbuild minify validation failed", "", *errors]
        lines.append("Minification breaks ESM/CJS interop and makes debugging harder.")
        sys.stderr.write("\n".join(lines) + "\n")
        return 1
    _log.info("esbuild minify validation passed")
    return 0


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
