from __future__ import annotations

import sys
from collections.abc import Callable

from runner.logging import get_logger, setup_logging
from tools.guards import (
    bundle_deps_guard,
    cdn_guard,
    file_count_guard,
    file_size_guard,
    link_deps_guard,
    markdown_guard,
    minify_guard,
)

Runner = Callable[[list[str]], int]

_log = get_logger(__name__)

GUARDS: dict[str, Runner] = {
    "no-link-deps": link_deps_guard.run,
    "bundle-deps": bundle_deps_guard.run,
    "esbuild-minify": minify_guard.run,
    "no-cdn-refs": cdn_guard.run,
    "markdown-filenames": markdown_guard.run,
    "file-size": file_size_guard.run,
    "file-count": file_count_guard.run,
}

# Module paths for running each guard in its own interpreter.
GUARD_MODULES: tuple[str, ...] = (
    "tools.guards.link_deps_guard",
    "tools.guards.bundle_deps_guard",
    "tools.guards.minify_guard",
    "tools.guards.cdn_guard",
    "tools.guards.markdown_guard",
    "tools.guards.file_size_guard",
    "tools.guards.file_count_guard",
)


def run_guard(name: str, roots: list[str]) -> int:
    guard = GUARDS.get(name)
    if guard is None:
        known = ", ".join(sorted(GUARDS))
        sys.stderr.write(f"Unknown validator: {name} (expected one of: {known}, all)\n")
        return 2
    return guard(roots)


def run_guards(roots: list[str]) -> int:
    """Run every guard, even after a failure, and report the worst outcome."""
    failed = [name for name, guard in GUARDS.items() if guard(roots) != 0]
    if failed:
        _log.error("Validators failed: %s", ", ".join(failed))
        return 1
    return 0


def main() -> int:
    setup_logging()
    return run_guards(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
