"""Check that dist output agrees with package.json about what is bundled.

A package left external at runtime must be a dependency (or peer); a package
inlined from node_modules must not be a dependency, since consumers would then
install code they already received in the bundle.
"""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

from runner.logging import get_logger, setup_logging

_log = get_logger(__name__)

DIST_SUFFIXES: Final = (".js", ".mjs", ".cjs")

_NODE_BUILTIN_NAMES: Final = (
    "_http_agent _http_client _http_common _http_incoming _http_outgoing _http_server "
    "_stream_duplex _stream_passthrough _stream_readable _stream_transform _stream_wrap "
    "_stream_writable _tls_common _tls_wrap assert async_hooks buffer child_process "
    "cluster console constants crypto dgram diagnostics_channel dns domain events fs "
    "http http2 https inspector module net os path perf_hooks process punycode "
    "querystring readline repl stream string_decoder sys timers tls trace_events tty "
    "url util v8 vm wasi worker_threads zlib test sqlite sea"
).split()
NODE_BUILTINS: Final[frozenset[str]] = frozenset(
    [*_NODE_BUILTIN_NAMES, *(f"node:{name}" for name in _NODE_BUILTIN_NAMES)]
)

_REQUIRE_RE = re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_IMPORT_RE = re.compile(r"""(?:from|import)\s+['"]([^'"]+)['"]""")
_DYNAMIC_IMPORT_RE = re.compile(r"""import\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_NODE_MODULES_RE = re.compile(
    r"node_modules/(?:\.pnpm/)?(@[^/]+\+[^@/]+|@[^/]+/[^/]+|[^/@]+)"
)

# Tokens that show a regex hit landed inside code rather than a specifier.
_CODE_FRAGMENTS: Final = ("${", '"}', "`", "\n", ";", "function", "const ", "let ", "var ")
_NON_SPECIFIERS: Final = frozenset(
    {
        "true",
        "false",
        "null",
        "undefined",
        "name",
        "dependencies",
        "devDependencies",
        "peerDependencies",
        "version",
        "description",
    }
)
_BUNDLED_REJECT_FRAGMENTS: Final = (
    '"', "'", "`", "${", "\\", ";", "\n", "function", "const", "let", "var",
    "=", "{", "}", "[", "]", "(", ")",
)
_BUNDLED_REJECT_NAMES: Final = frozenset({"bin", ".bin", "npm", "node", "pnpm", "yarn"})


@dataclass(frozen=True)
class BundleIssue:
    kind: Literal["external-not-in-deps", "bundled-in-deps", "bundled-not-declared"]
    package: str
    message: str
    fix: str


def iter_dist_files(dist: Path) -> Iterable[Path]:
    if not dist.is_dir():
        return
    for path in sorted(dist.rglob("*")):
        if path.is_file() and path.name.endswith(DIST_SUFFIXES):
            yield path


def is_valid_specifier(specifier: str) -> bool:
    if not specifier or specifier.startswith((".", "/", "#")):
        return False
    if specifier in _NON_SPECIFIERS:
        return False
    return not any(fragment in specifier for fragment in _CODE_FRAGMENTS)


def package_name(specifier: str) -> str | None:
    """``@scope/pkg/sub`` -> ``@scope/pkg``; ``pkg/sub`` -> ``pkg``."""
    if not is_valid_specifier(specifier):
        return None
    if any(ch in specifier for ch in "\"'\\"):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return f"{parts[0]}/{parts[1]}" if len(parts) >= 2 else None
    return parts[0]


def extract_externals(content: str) -> set[str]:
    found: set[str] = set()
    for pattern in (_REQUIRE_RE, _IMPORT_RE, _DYNAMIC_IMPORT_RE):
        for m in pattern.finditer(content):
            specifier = m.group(1)
            if "/external/" in specifier:
                continue
            if is_valid_specifier(specifier):
                found.add(specifier)
    return found


def extract_bundled(content: str) -> set[str]:
    found: set[str] = set()
    for m in _NODE_MODULES_RE.finditer(content):
        name = m.group(1)
        if "+" in name:
            name = name.replace("+", "/", 1)
        if name in _BUNDLED_REJECT_NAMES or not 0 < len(name) <= 214:
            continue
        if any(fragment in name for fragment in _BUNDLED_REJECT_FRAGMENTS):
            continue
        found.add(name)
    return found


def _dep_names(pkg: dict[str, object], field: str) -> set[str]:
    deps = pkg.get(field)
    return {str(k) for k in deps} if isinstance(deps, dict) else set()


def read_package_json(root: Path) -> dict[str, object]:
    path = root / "package.json"
    try:
        data: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"{path}: READ_ERROR {exc}\n")
        raise
    return {str(k): v for k, v in data.items()} if isinstance(data, dict) else {}


def check_root(root: Path) -> tuple[list[BundleIssue], list[BundleIssue]] | None:
    """(violations, warnings), or None when there is no dist output to inspect."""
    files = list(iter_dist_files(root / "dist"))
    if not files:
        return None
    pkg = read_package_json(root)
    deps = _dep_names(pkg, "dependencies")
    dev = _dep_names(pkg, "devDependencies")
    peer = _dep_names(pkg, "peerDependencies")

    externals: set[str] = set()
    bundled: set[str] = set()
    for path in files:
        content = path.read_text(encoding="utf-8", errors="replace")
        for specifier in extract_externals(content):
            name = package_name(specifier)
            if name and name not in NODE_BUILTINS:
                externals.add(name)
        bundled |= extract_bundled(content)

    violations: list[BundleIssue] = []
    warnings: list[BundleIssue] = []
    for name in sorted(externals):
        if name in deps or name in peer:
            continue
        action = "Move" if name in dev else "Add"
        where = f'"{name}" to dependencies'
        keep = " (keep in devDependencies)" if name in dev else ""
        violations.append(
            BundleIssue(
                "external-not-in-deps",
                name,
                f'External package "{name}" is marked external but not in dependencies',
                f"RECOMMENDED: Remove \"{name}\" from esbuild's \"external\" array to bundle it{keep}\n"
                f"  OR: {action} {where} if it must stay external",
            )
        )
    for name in sorted(bundled):
        if name in deps:
            violations.append(
                BundleIssue(
                    "bundled-in-deps",
                    name,
                    f'Bundled package "{name}" should be in devDependencies, not dependencies',
                    f'Move "{name}" from dependencies to devDependencies (code is bundled into dist/)',
                )
            )
        elif name not in dev:
            warnings.append(
                BundleIssue(
                    "bundled-not-declared",
                    name,
                    f'Bundled package "{name}" is not declared in devDependencies',
                    f'Add "{name}" to devDependencies',
                )
            )
    return violations, warnings


def run(roots: list[str]) -> int:
    violations: list[BundleIssue] = []
    warnings: list[BundleIssue] = []
    inspected = False
    for root in roots:
        result = check_root(Path(root))
        if result is None:
            continue
        inspected = True
        violations.extend(result[0])
        warnings.extend(result[1])
    if not inspected:
        _log.info("No dist files found - run build first")
        return 0
    for w in warnings:
        _log.warning("%s\n  %s", w.message, w.fix)
    if violations:
        lines = ["Bundle dependencies validation failed", ""]
        for v in violations:
            lines.extend([f"  {v.message}", f"  {v.fix}", ""])
        sys.stderr.write("\n".join(lines) + "\n")
        return 1
    _log.info("Bundle dependencies validation passed")
    return 0


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
