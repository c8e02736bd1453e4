from __future__ import annotations

import os
import shutil
import subprocess
import sys
from collections.abc import Sequence

from runner.errors import CommandNotFoundError
from runner.logging import get_logger
from runner.models import CommandResult, CommandSpec

WIN32 = sys.platform == "win32"

_log = get_logger(__name__)


def _merged_env(extra: dict[str, str] | None) -> dict[str, str] | None:
    if extra is None:
        return None
    env = dict(os.environ)
    env.update(extra)
    return env


def _resolve(command: str) -> str:
    # .cmd shims (pnpm.cmd, eslint.cmd) are not found by CreateProcess directly
    if WIN32:
        found = shutil.which(command)
        if found:
            return found
    return command


class CommandRunner:
    """Launches external tools and reports their exit codes.

    Children inherit stdio unless output is captured with ``run_quiet``.
    """

    def __init__(self, *, cwd: str | None = None) -> None:
        self._cwd = cwd

    def _popen(self, spec: CommandSpec, *, capture: bool) -> subprocess.Popen[str]:
        argv = [_resolve(spec.command), *spec.args]
        _log.debug("spawn %s", spec.display(), extra={"command": spec.command})
        stream: int | None = None
        if capture:
            stream = subprocess.PIPE
        elif spec.quiet:
            stream = subprocess.DEVNULL
        try:
            return subprocess.Popen(
                argv,
                cwd=spec.cwd or self._cwd,
                env=_merged_env(spec.env),
                stdout=stream,
                stderr=stream,
                text=True,
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(spec.command) from exc

    def run(self, spec: CommandSpec) -> int:
        proc = self._popen(spec, capture=False)
        try:
            return proc.wait()
        except KeyboardInterrupt:
            _terminate([proc])
            raise

    def run_quiet(self, spec: CommandSpec) -> CommandResult:
        proc = self._popen(spec, capture=True)
        try:
            stdout, stderr = proc.communicate()
        except KeyboardInterrupt:
            _terminate([proc])
            raise
        return CommandResult(
            exit_code=proc.returncode, stdout=stdout or "", stderr=stderr or ""
        )

    def run_sequence(self, specs: Sequence[CommandSpec]) -> int:
        """Run commands in order, stopping on the first failure."""
        for spec in specs:
            code = self.run(spec)
            if code != 0:
                return code
        return 0

    def run_parallel(self, specs: Sequence[CommandSpec]) -> list[int]:
        """Run all commands concurrently; exit codes are returned in input order."""
        procs: list[subprocess.Popen[str]] = []
        try:
            for spec in specs:
                procs.append(self._popen(spec, capture=False))
            return [proc.wait() for proc in procs]
        except BaseException:
            _terminate(procs)
            raise


def _terminate(procs: Sequence[subprocess.Popen[str]]) -> None:
    for proc in procs:
        if proc.poll() is None:
            proc.terminate()
    for proc in procs:
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()


def script_spec(
    package_manager: str, name: str, extra_args: Sequence[str] = ()
) -> CommandSpec:
    """Spec for ``<pm> run <name> ...``."""
    return CommandSpec(command=package_manager, args=["run", name, *extra_args])


def exec_spec(
    package_manager: str, binary: str, args: Sequence[str] = ()
) -> CommandSpec:
    """Spec for ``<pm> exec <binary> ...``."""
    return CommandSpec(command=package_manager, args=["exec", binary, *args])
