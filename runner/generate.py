from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from core.models import StrictTypeEntry
from core.openapi import prettify_openapi, write_baseline_types
from core.strict_types import generate_strict_types
from runner.config import Settings
from runner.logging import get_logger
from runner.types import RunnerProtocol

_log = get_logger(__name__)

# Exit 1 from the fixer means it changed files.
FIX_ACCEPTED_CODES = frozenset({0, 1})

FixRunner = Callable[[], int]


def generate_types(settings: Settings, runner: RunnerProtocol) -> Path:
    return write_baseline_types(
        settings.resolve(settings.openapi_path),
        settings.resolve(settings.types_path),
        runner,
        cwd=str(settings.root),
    )


def generate_sdk(
    settings: Settings,
    runner: RunnerProtocol,
    *,
    fix: FixRunner,
    strict: bool = True,
    config: Mapping[str, StrictTypeEntry] | None = None,
) -> int:
    _log.info("Generating SDK from OpenAPI...")

    _log.info("  1. Prettifying OpenAPI JSON...", extra={"step": "prettify"})
    prettify_openapi(settings.resolve(settings.openapi_path))

    _log.info("  2. Generating TypeScript types...", extra={"step": "types"})
    generate_types(settings, runner)

    if strict:
        _log.info("  3. Generating strict types...", extra={"step": "strict"})
        generate_strict_types(settings, runner, config)

    for label in ("Formatting generated code...", "Final formatting pass..."):
        _log.info("  - %s", label, extra={"step": "fix"})
        code = fix()
        if code not in FIX_ACCEPTED_CODES:
            _log.error("Formatting failed with exit code %d", code)
            return code

    _log.info("SDK generation complete")
    return 0
