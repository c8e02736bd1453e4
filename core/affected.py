"""Decide which files to lint and which tests to run for a set of changes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Final, Literal

from runner.types import ChangeSourceProtocol

ALL: Final = "all"

LINTABLE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {".js", ".mjs", ".cjs", ".ts", ".cts", ".mts", ".json", ".jsonc", ".md", ".yml", ".yaml"}
)
CODE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {".js", ".mjs", ".cjs", ".ts", ".cts", ".mts", ".json"}
)

LINT_CORE_FILES: Final[frozenset[str]] = frozenset(
    {
        "src/logger.ts",
        "src/spawn.ts",
        "src/fs.ts",
        "src/promises.ts",
        "src/objects.ts",
        "src/arrays.ts",
        "src/strings.ts",
        "src/types.ts",
    }
)
LINT_CONFIG_PATTERNS: Final[tuple[str, ...]] = (
    ".config/**",
    "scripts/utils/**",
    "pnpm-lock.yaml",
    "tsconfig*.json",
    "eslint.config.*",
    ".config/biome.json",
)

TEST_CORE_FILES: Final[tuple[str, ...]] = (
    "src/constants.ts",
    "src/http-client.ts",
    "src/types.ts",
    "src/utils.ts",
    "src/quota-utils.ts",
    "src/index.ts",
)
# Sources whose tests are not named after the module.
SPECIAL_TEST_MAPPINGS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("src/socket-sdk-class.ts", (ALL,)),
    (
        "src/file-upload.ts",
        ("test/socket-sdk-upload-simple.test.mts", "test/create-request-body-json.test.mts"),
    ),
    ("src/user-agent.ts", ("test/authentication-basic.test.mts",)),
    ("src/promise-queue.ts", ("test/promise-queue.test.mts",)),
    ("src/testing.ts", ("test/testing-utilities.test.mts",)),
)


@dataclass(frozen=True)
class Selection:
    """Files chosen for a run: a list, ``"all"``, or None for nothing to do."""

    files: list[str] | Literal["all"] | None
    reason: str | None = None


def _normalize(path: str) -> str:
    return path.replace("\\", "/")


# -- lint --------------------------------------------------------------------------


def should_run_all_linters(files: Iterable[str]) -> tuple[bool, str | None]:
    for file in files:
        if file in LINT_CORE_FILES:
            return True, "core files changed"
        # Patterns are matched as substrings once the glob is stripped.
        if any(pattern.replace("**", "") in file for pattern in LINT_CONFIG_PATTERNS):
            return True, "config files changed"
    return False, None


def filter_lintable_files(files: Iterable[str]) -> list[str]:
    return [f for f in files if PurePosixPath(_normalize(f)).suffix in LINTABLE_EXTENSIONS]


def files_to_lint(
    *, all_files: bool, changed: bool, staged: bool, git: ChangeSourceProtocol
) -> Selection:
    if all_files:
        return Selection(ALL, "all flag specified")
    if staged:
        candidates = git.staged_files()
        if not candidates:
            return Selection(None, "no staged files")
    elif changed:
        candidates = git.changed_files()
        if not candidates:
            return Selection(None, "no changed files")
    else:
        return Selection(ALL, "no target specified")

    run_all, reason = should_run_all_linters(candidates)
    if run_all:
        return Selection(ALL, reason)
    lintable = filter_lintable_files(candidates)
    if not lintable:
        return Selection(None, "no lintable files changed")
    return Selection(lintable)


# -- tests -------------------------------------------------------------------------


def map_source_to_tests(path: str, root: Path) -> list[str]:
    normalized = _normalize(path)
    pure = PurePosixPath(normalized)
    if pure.suffix not in CODE_EXTENSIONS:
        return []
    if any(core in normalized for core in TEST_CORE_FILES):
        return [ALL]
    test_file = f"test/{pure.stem}.test.mts"
    if (root / test_file).exists():
        return [test_file]
    for source, tests in SPECIAL_TEST_MAPPINGS:
        if source in normalized:
            return list(tests)
    return [ALL]


def _run_all_reason(normalized: str) -> str | None:
    if "vitest.config" in normalized:
        return "vitest config changed"
    if "tsconfig" in normalized:
        return "TypeScript config changed"
    if normalized == "package.json":
        return "package.json changed"
    if normalized.startswith(("test/fixtures/", "test/data/")):
        return "test fixtures changed"
    return None


def select_tests(changed_files: Sequence[str], root: Path) -> Selection:
    """Map changed paths to the test files they affect."""
    if not changed_files:
        return Selection(None)
    tests: dict[str, None] = {}
    for file in changed_files:
        normalized = _normalize(file)
        if normalized.startswith("test/") and ".test." in normalized:
            tests.setdefault(file, None)
            continue
        if normalized.startswith("src/"):
            mapped = map_source_to_tests(normalized, root)
            if ALL in mapped:
                return Selection(ALL, "core file changes")
            for test in mapped:
                tests.setdefault(test, None)
            continue
        reason = _run_all_reason(normalized)
        if reason is not None:
            return Selection(ALL, reason)
    if not tests:
        return Selection(None)
    return Selection(list(tests))


def tests_to_run(
    *,
    all_tests: bool,
    staged: bool,
    git: ChangeSourceProtocol,
    root: Path,
    force: bool = False,
    ci: bool = False,
) -> Selection:
    if all_tests or force:
        return Selection(ALL, "explicit --all flag")
    if ci:
        return Selection(ALL, "CI environment")
    changed = git.staged_files() if staged else git.changed_files()
    return select_tests(changed, root)
