from __future__ import annotations

from runner.logging import get_logger
from runner.models import CommandSpec
from runner.types import RunnerProtocol

_log = get_logger(__name__)


def ci_steps(package_manager: str, root: str) -> list[tuple[str, str, CommandSpec]]:
    """(step, noun, spec) in run order."""

    def pm(*args: str) -> CommandSpec:
        return CommandSpec(command=package_manager, args=list(args), cwd=root)

    return [
        ("Running tests", "Tests", pm("test", "--all")),
        ("Running checks", "Checks", pm("check", "--all")),
        ("Building project", "Build", pm("build")),
    ]


def run_ci_validate(runner: RunnerProtocol, *, package_manager: str, root: str) -> int:
    _log.info("CI Validation")
    for step, noun, spec in ci_steps(package_manager, root):
        _log.info(step, extra={"step": noun.lower()})
        code = runner.run(spec)
        if code != 0:
            _log.error("%s failed", noun)
            return code
        _log.info("%s passed", noun)
    _log.info("CI validation completed successfully!")
    return 0
