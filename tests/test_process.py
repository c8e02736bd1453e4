from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from runner.errors import CommandNotFoundError
from runner.models import CommandSpec
from runner.process import CommandRunner, exec_spec, script_spec


def _py(
    code: str,
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    quiet: bool = False,
) -> CommandSpec:
    return CommandSpec(
        command=sys.executable, args=["-c", code], cwd=cwd, env=env, quiet=quiet
    )


def test_run_quiet_captures_output_and_exit_code() -> None:
    result = CommandRunner().run_quiet(
        _py("import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)")
    )

    assert result.exit_code == 3
    assert not result.ok
    assert result.stdout.strip() == "out"
    assert result.stderr.strip() == "err"


def test_run_quiet_passes_env_and_cwd(tmp_path: Path) -> None:
    spec = _py(
        "import os; print(os.environ['SDK_TEST_VALUE'], os.getcwd())",
        env={"SDK_TEST_VALUE": "hello"},
        cwd=str(tmp_path),
    )

    result = CommandRunner().run_quiet(spec)

    value, cwd = result.stdout.split()
    assert value == "hello"
    assert Path(cwd).resolve() == tmp_path.resolve()


def test_run_sequence_stops_at_first_failure(tmp_path: Path) -> None:
    marker = tmp_path / "ran"
    specs = [
        _py("pass"),
        _py("import sys; sys.exit(4)"),
        _py(f"open({str(marker)!r}, 'w').close()"),
    ]

    assert CommandRunner().run_sequence(specs) == 4
    assert not marker.exists()


def test_run_parallel_returns_codes_in_input_order() -> None:
    specs = [
        _py("import time, sys; time.sleep(0.2); sys.exit(2)"),
        _py("pass"),
        _py("import sys; sys.exit(5)"),
    ]

    assert CommandRunner().run_parallel(specs) == [2, 0, 5]


def test_quiet_spec_discards_output(capfd: pytest.CaptureFixture[str]) -> None:
    code = CommandRunner().run(_py("print('hidden')", quiet=True))

    assert code == 0
    assert "hidden" not in capfd.readouterr().out


def test_missing_executable_raises() -> None:
    with pytest.raises(CommandNotFoundError) as exc_info:
        CommandRunner().run(CommandSpec(command="definitely-not-a-real-tool-xyz"))

    assert exc_info.value.exit_code == 127


def test_spec_helpers() -> None:
    assert script_spec("pnpm", "build", ["--x"]).argv() == ["pnpm", "run", "build", "--x"]
    assert exec_spec("pnpm", "eslint", ["."]).display() == "pnpm exec eslint ."


class _InterruptingPopen(subprocess.Popen[str]):
    # Ctrl-C arrives while the caller blocks on the child.
    def wait(self, timeout: float | None = None) -> int:
        if timeout is None:
            raise KeyboardInterrupt
        return super().wait(timeout)


class _InterruptingRunner(CommandRunner):
    def __init__(self) -> None:
        super().__init__()
        self.started: list[subprocess.Popen[str]] = []

    def _popen(self, spec: CommandSpec, *, capture: bool) -> subprocess.Popen[str]:
        stream = subprocess.PIPE if capture else subprocess.DEVNULL
        proc = _InterruptingPopen(spec.argv(), stdout=stream, stderr=stream, text=True)
        self.started.append(proc)
        return proc


class _RecordingRunner(CommandRunner):
    def __init__(self) -> None:
        super().__init__()
        self.started: list[subprocess.Popen[str]] = []

    def _popen(self, spec: CommandSpec, *, capture: bool) -> subprocess.Popen[str]:
        proc = super()._popen(spec, capture=capture)
        self.started.append(proc)
        return proc


_SLEEP = "import time; time.sleep(30)"


def test_run_interrupt_terminates_child() -> None:
    runner = _InterruptingRunner()

    with pytest.raises(KeyboardInterrupt):
        runner.run(_py(_SLEEP))

    (proc,) = runner.started
    assert proc.returncode is not None


def test_run_quiet_interrupt_terminates_child() -> None:
    runner = _InterruptingRunner()

    with pytest.raises(KeyboardInterrupt):
        runner.run_quiet(_py("print('partial')"))

    (proc,) = runner.started
    assert proc.poll() is not None


def test_run_parallel_interrupt_terminates_every_child() -> None:
    runner = _InterruptingRunner()

    with pytest.raises(KeyboardInterrupt):
        runner.run_parallel([_py(_SLEEP), _py(_SLEEP)])

    assert len(runner.started) == 2
    assert all(proc.returncode is not None for proc in runner.started)


def test_run_parallel_spawn_failure_stops_started_children() -> None:
    runner = _RecordingRunner()
    specs = [_py(_SLEEP), CommandSpec(command="definitely-not-a-real-tool-xyz")]

    with pytest.raises(CommandNotFoundError):
        runner.run_parallel(specs)

    (proc,) = runner.started
    assert proc.poll() is not None
