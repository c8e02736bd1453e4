from __future__ import annotations

import sys

from runner.logging import get_logger
from runner.models import CommandSpec
from runner.process import exec_spec
from runner.types import RunnerProtocol
from tools.guard import GUARD_MODULES

_log = get_logger(__name__)


def check_specs(
    *,
    root: str,
    package_manager: str,
    type_checker: str,
    tsconfig: str,
    all_files: bool = False,
    staged: bool = False,
) -> list[CommandSpec]:
    lint_args = ["-m", "runner", "lint"]
    if all_files:
        lint_args.append("--all")
    elif staged:
        lint_args.append("--staged")
    specs = [
        CommandSpec(command=sys.executable, args=lint_args, cwd=root),
        exec_spec(package_manager, type_checker, ["--noEmit", "-p", tsconfig]),
    ]
    specs.extend(
        CommandSpec(command=sys.executable, args=["-m", module, root], cwd=root)
        for module in GUARD_MODULES
    )
    return specs


def run_checks(runner: RunnerProtocol, specs: list[CommandSpec]) -> int:
    _log.info("Check Runner")
    codes = runner.run_parallel(specs)
    failures = [spec.display() for spec, code in zip(specs, codes) if code != 0]
    _log.info("")
    if failures:
        for display in failures:
            _log.debug("failed: %s", display)
        _log.error("Some checks failed")
        return 1
    _log.info("All checks passed")
    return 0
