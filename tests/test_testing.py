from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from runner.errors import ScriptError
from runner.models import CommandResult, CommandSpec
from runner.testing import (
    coverage_percent,
    expand_globs,
    node_options,
    run_cover,
    run_coverage,
    run_tests,
    split_force,
    vitest_path,
    vitest_spec,
)


class _RunnerStub:
    def __init__(
        self, *, quiet: dict[str, CommandResult] | None = None, codes: dict[str, int] | None = None
    ) -> None:
        self._quiet = quiet or {}
        self._codes = codes or {}
        self.runs: list[CommandSpec] = []
        self.quiet_runs: list[CommandSpec] = []

    def run(self, spec: CommandSpec) -> int:
        self.runs.append(spec)
        return self._codes.get(spec.display(), 0)

    def run_quiet(self, spec: CommandSpec) -> CommandResult:
        self.quiet_runs.append(spec)
        for key, result in self._quiet.items():
            if key in spec.display():
                return result
        return CommandResult(exit_code=0)

    def run_sequence(self, specs: Sequence[CommandSpec]) -> int:
        for spec in specs:
            code = self.run(spec)
            if code != 0:
                return code
        return 0

    def run_parallel(self, specs: Sequence[CommandSpec]) -> list[int]:
        return [self.run(spec) for spec in specs]


class _GitStub:
    def __init__(self, files: list[str]) -> None:
        self._files = files

    def staged_files(self) -> list[str]:
        return self._files

    def changed_files(self) -> list[str]:
        return self._files


def test_node_options_heap_size_depends_on_ci() -> None:
    assert node_options("", ci=True) == "--max-old-space-size=8192 --max-semi-space-size=512"
    options = node_options("--trace-warnings", ci=False)
    assert options.startswith("--trace-warnings --max-old-space-size=4096")


def test_split_force_drops_separator_and_flag() -> None:
    assert split_force(["--", "--force", "a.test.mts"]) == (["a.test.mts"], True)
    assert split_force(["--reporter=dot"]) == (["--reporter=dot"], False)


def test_expand_globs_resolves_relative_to_root(tmp_path: Path) -> None:
    (tmp_path / "test").mkdir()
    (tmp_path / "test" / "b.test.mts").write_text("", encoding="utf-8")
    (tmp_path / "test" / "a.test.mts").write_text("", encoding="utf-8")

    assert expand_globs(["test/*.test.mts", "--run"], tmp_path) == [
        "test/a.test.mts",
        "test/b.test.mts",
        "--run",
    ]


def test_vitest_spec_sets_environment(tmp_path: Path) -> None:
    spec = vitest_spec(tmp_path, ["x"], ci=False, force=True, environ={"NODE_OPTIONS": ""})

    assert spec.command == str(vitest_path(tmp_path))
    assert spec.args == ["run", "x"]
    assert spec.env is not None
    assert spec.env["FORCE_TEST"] == "1"
    assert "--max-old-space-size=4096" in spec.env["NODE_OPTIONS"]


def test_run_tests_forwards_args(tmp_path: Path) -> None:
    runner = _RunnerStub()

    rc = run_tests(runner, _GitStub([]), root=tmp_path, ci=False, args=["--", "--force", "--bail"])

    assert rc == 0
    (spec,) = runner.runs
    assert spec.args == ["run", "--bail"]
    assert spec.env is not None and spec.env["FORCE_TEST"] == "1"


def test_run_tests_changed_without_tests_skips(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("FORCE_TEST", raising=False)
    runner = _RunnerStub()

    assert run_tests(runner, _GitStub(["docs/notes.md"]), root=tmp_path, ci=False, changed=True) == 0
    assert runner.runs == []


def test_run_tests_changed_appends_affected_files(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("FORCE_TEST", raising=False)
    runner = _RunnerStub()

    run_tests(runner, _GitStub(["test/a.test.mts"]), root=tmp_path, ci=False, changed=True)

    assert runner.runs[0].args == ["run", "test/a.test.mts"]


def test_force_test_env_runs_everything(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORCE_TEST", "1")
    runner = _RunnerStub()

    run_tests(runner, _GitStub(["test/a.test.mts"]), root=tmp_path, ci=False, changed=True)

    assert runner.runs[0].args == ["run"]


VITEST = (
    " Test Files  2 passed (2)\n"
    "   Duration  1.00s\n"
    " % Coverage report from v8\n"
    "-----|-----|\n"
    "File | Stmt|\n"
    "-----|-----|\n"
    "All files |   90.00 |\n"
    "-----|-----|\n"
)


def test_run_cover_prints_cumulative_summary(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runner = _RunnerStub(
        quiet={
            "vitest": CommandResult(exit_code=0, stdout=VITEST),
            "type-coverage": CommandResult(exit_code=0, stdout="(99 / 100) 99.00%\n"),
        }
    )

    rc = run_cover(runner, root=tmp_path, package_manager="pnpm", ci=False)
    out = capsys.readouterr().out

    assert rc == 0
    assert " Cumulative:    94.50%" in out
    assert "--coverage" in runner.quiet_runs[0].args


def test_run_cover_dumps_output_when_nothing_parsed(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runner = _RunnerStub(quiet={"vitest": CommandResult(exit_code=1, stderr="SyntaxError")})

    assert run_cover(runner, root=tmp_path, package_manager="pnpm", ci=False) == 1
    assert "SyntaxError" in capsys.readouterr().out


def test_run_coverage_modes() -> None:
    both = _RunnerStub()
    run_coverage(both, package_manager="pnpm")
    assert [s.display() for s in both.runs] == [
        "pnpm run pretest:unit",
        "pnpm run test:unit:coverage",
        "pnpm exec type-coverage",
    ]

    types = _RunnerStub()
    run_coverage(types, package_manager="pnpm", type_only=True)
    assert [s.display() for s in types.runs] == ["pnpm exec type-coverage"]

    failing = _RunnerStub(codes={"pnpm run pretest:unit": 3})
    assert run_coverage(failing, package_manager="pnpm") == 3
    assert len(failing.runs) == 1


def _coverage_json(root: Path) -> None:
    (root / "coverage").mkdir()
    data = {
        "/src/a.ts": {
            "s": {"0": 1, "1": 1},
            "b": {},
            "f": {"0": 1},
            "statementMap": {
                "0": {"start": {"line": 1}},
                "1": {"start": {"line": 2}},
            },
        }
    }
    (root / "coverage" / "coverage-final.json").write_text(json.dumps(data), encoding="utf-8")


def test_coverage_percent_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _coverage_json(tmp_path)
    runner = _RunnerStub(quiet={"coverage:type": CommandResult(exit_code=0, stdout="(1/2) 50.00%")})

    assert coverage_percent(runner, root=tmp_path, package_manager="pnpm", fmt="json") == 0

    data = json.loads(capsys.readouterr().out)
    assert data["statements"]["percent"] == "100.00"
    assert data["types"] == {"percent": "50.00"}
    assert runner.runs == []


def test_coverage_percent_simple_ignores_type_failure(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _coverage_json(tmp_path)
    runner = _RunnerStub(quiet={"coverage:type": CommandResult(exit_code=1)})

    assert coverage_percent(runner, root=tmp_path, package_manager="pnpm", fmt="simple") == 0
    assert capsys.readouterr().out.strip() == "100.00"


def test_coverage_percent_generation_failure(tmp_path: Path) -> None:
    runner = _RunnerStub(codes={"pnpm run test:unit:coverage": 1})

    with pytest.raises(ScriptError):
        coverage_percent(runner, root=tmp_path, package_manager="pnpm")
    assert runner.runs[0].quiet
