from __future__ import annotations

from runner.logging import get_logger
from runner.models import CommandSpec
from runner.process import exec_spec, script_spec
from runner.types import RunnerProtocol

_log = get_logger(__name__)

ROLLUP_CONFIG = ".config/rollup.dist.config.mjs"
DTS_TSCONFIG = "tsconfig.dts.json"


def source_steps(package_manager: str) -> list[CommandSpec]:
    return [
        script_spec(package_manager, "clean:dist"),
        exec_spec(package_manager, "rollup", ["-c", ROLLUP_CONFIG]),
    ]


def types_steps(package_manager: str, type_checker: str) -> list[CommandSpec]:
    return [
        script_spec(package_manager, "clean:dist:types"),
        exec_spec(package_manager, type_checker, ["--project", DTS_TSCONFIG]),
    ]


def build(
    runner: RunnerProtocol,
    *,
    package_manager: str,
    type_checker: str,
    src_only: bool = False,
    types_only: bool = False,
) -> int:
    if types_only:
        _log.info("Building TypeScript declarations only...")
        return runner.run_sequence(types_steps(package_manager, type_checker))
    if src_only:
        _log.info("Building source only...")
        return runner.run_sequence(source_steps(package_manager))

    _log.info("Building SDK (source + types)...")
    code = runner.run_sequence(source_steps(package_manager))
    if code != 0:
        return code
    return runner.run_sequence(types_steps(package_manager, type_checker))
