from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass

from runner.errors import CommandNotFoundError
from runner.logging import get_logger
from runner.models import CommandSpec
from runner.types import RunnerProtocol

_log = get_logger(__name__)

Which = Callable[[str], str | None]


@dataclass(frozen=True)
class ToolStatus:
    name: str
    required: bool
    found: bool
    version: str | None = None


def toolchain(package_manager: str) -> list[tuple[str, bool]]:
    """(tool, required) pairs, package manager first after node."""
    tools = [("node", True), (package_manager, True), ("npm", False), ("git", True), ("npx", False)]
    seen: dict[str, bool] = {}
    for name, required in tools:
        seen[name] = seen.get(name, False) or required
    return list(seen.items())


def probe(
    runner: RunnerProtocol, name: str, *, required: bool, which: Which = shutil.which
) -> ToolStatus:
    if which(name) is None:
        return ToolStatus(name=name, required=required, found=False)
    try:
        result = runner.run_quiet(CommandSpec(command=name, args=["--version"]))
    except CommandNotFoundError:
        return ToolStatus(name=name, required=required, found=False)
    lines = result.stdout.strip().splitlines()
    version = lines[0].strip() if result.ok and lines else None
    return ToolStatus(name=name, required=required, found=True, version=version)


def check_toolchain(
    runner: RunnerProtocol, *, package_manager: str, which: Which = shutil.which
) -> list[ToolStatus]:
    return [
        probe(runner, name, required=required, which=which)
        for name, required in toolchain(package_manager)
    ]


def run_doctor(
    runner: RunnerProtocol, *, package_manager: str, which: Which = shutil.which
) -> int:
    statuses = check_toolchain(runner, package_manager=package_manager, which=which)
    missing: list[str] = []
    for status in statuses:
        if status.found:
            _log.info("[ok] %s %s", status.name, status.version or "(version unknown)")
        elif status.required:
            _log.error("%s not found on PATH", status.name)
            missing.append(status.name)
        else:
            _log.warning("%s not found on PATH", status.name)
    if missing:
        _log.error("Missing required tools: %s", ", ".join(missing))
        return 1
    _log.info("Toolchain looks good")
    return 0
