from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from pathlib import Path

import pytest
from typer.testing import CliRunner

import runner.main as cli
from runner.config import Settings
from runner.models import CommandResult, CommandSpec
from runner.types import RunnerProtocol


class _RunnerStub:
    def __init__(self, codes: dict[str, int] | None = None) -> None:
        self._codes = codes or {}
        self.calls: list[str] = []

    def run(self, spec: CommandSpec) -> int:
        self.calls.append(spec.display())
        return self._codes.get(spec.display(), 0)

    def run_quiet(self, spec: CommandSpec) -> CommandResult:
        return CommandResult(exit_code=self.run(spec))

    def run_sequence(self, specs: Sequence[CommandSpec]) -> int:
        for spec in specs:
            code = self.run(spec)
            if code != 0:
                return code
        return 0

    def run_parallel(self, specs: Sequence[CommandSpec]) -> list[int]:
        return [self.run(spec) for spec in specs]


@pytest.fixture(autouse=True)
def _project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("SDK_SCRIPTS_ROOT", str(tmp_path))
    monkeypatch.delenv("SDK_SCRIPTS_LOG_FORMAT", raising=False)
    root = logging.getLogger()
    saved = list(root.handlers)
    yield
    for h in list(root.handlers):
        if h not in saved:
            root.removeHandler(h)


def _use(monkeypatch: pytest.MonkeyPatch, stub: _RunnerStub) -> None:
    def make_runner(settings: Settings) -> RunnerProtocol:
        return stub

    monkeypatch.setattr(cli, "make_runner", make_runner)


def test_build_command(monkeypatch: pytest.MonkeyPatch) -> None:
    stub = _RunnerStub()
    _use(monkeypatch, stub)

    result = CliRunner().invoke(cli.app, ["build", "--types-only"])

    assert result.exit_code == 0
    assert stub.calls == [
        "pnpm run clean:dist:types",
        "pnpm exec tsgo --project tsconfig.dts.json",
    ]


def test_failing_step_exit_code_is_propagated(monkeypatch: pytest.MonkeyPatch) -> None:
    _use(monkeypatch, _RunnerStub({"pnpm test --all": 3}))

    result = CliRunner().invoke(cli.app, ["ci-validate"])

    assert result.exit_code == 3


def test_script_error_maps_to_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    _use(monkeypatch, _RunnerStub())

    result = CliRunner().invoke(cli.app, ["generate-types"])

    # no openapi.json in the project root
    assert result.exit_code == 1


def test_clean_command(tmp_path: Path) -> None:
    (tmp_path / "dist").mkdir()
    (tmp_path / "coverage").mkdir()

    result = CliRunner().invoke(cli.app, ["clean", "--dist", "--quiet"])

    assert result.exit_code == 0
    assert not (tmp_path / "dist").exists()
    assert (tmp_path / "coverage").exists()


def test_validate_unknown_name() -> None:
    result = CliRunner().invoke(cli.app, ["validate", "no-such-check"])

    assert result.exit_code == 2


def test_validate_single_guard_on_clean_tree(tmp_path: Path) -> None:
    (tmp_path / "README.md").write_text("# sdk\n", encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["validate", "markdown-filenames"])

    assert result.exit_code == 0


def test_coverage_percent_simple(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use(monkeypatch, _RunnerStub())
    (tmp_path / "coverage").mkdir()
    data = {"/src/a.ts": {"s": {"0": 1, "1": 0}, "b": {}, "f": {}, "statementMap": {}}}
    (tmp_path / "coverage" / "coverage-final.json").write_text(json.dumps(data), encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["coverage-percent", "--simple"])

    assert result.exit_code == 0
    assert result.stdout.strip().splitlines()[-1] == "50.00"


def test_prettify_openapi_command(tmp_path: Path) -> None:
    (tmp_path / "openapi.json").write_text('{"a":{"b":1}}', encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["prettify-openapi"])

    assert result.exit_code == 0
    text = (tmp_path / "openapi.json").read_text(encoding="utf-8")
    assert text == '{\n  "a": {\n    "b": 1\n  }\n}'


def _package_json(root: Path, version: str = "1.2.3") -> None:
    data = {"name": "@socketsecurity/sdk", "version": version}
    (root / "package.json").write_text(json.dumps(data), encoding="utf-8")


def test_bump_command_commits_and_tags(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    stub = _RunnerStub()
    _use(monkeypatch, stub)
    _package_json(tmp_path)

    result = CliRunner().invoke(
        cli.app, ["bump", "minor", "--skip-checks", "--skip-push", "--no-changelog"]
    )

    assert result.exit_code == 0
    assert json.loads((tmp_path / "package.json").read_text(encoding="utf-8"))["version"] == "1.3.0"
    assert "pnpm install --lockfile-only" in stub.calls
    assert "git commit -m Bump to v1.3.0" in stub.calls
    assert "git tag v1.3.0 -m Release v1.3.0" in stub.calls
    assert not any(call.startswith("git push") for call in stub.calls)


def test_bump_dry_run_leaves_package_untouched(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    stub = _RunnerStub()
    _use(monkeypatch, stub)
    _package_json(tmp_path)

    result = CliRunner().invoke(cli.app, ["bump", "2.0.0", "--dry-run", "--skip-checks"])

    assert result.exit_code == 0
    assert json.loads((tmp_path / "package.json").read_text(encoding="utf-8"))["version"] == "1.2.3"
    assert not any(call.startswith(("pnpm", "git add", "git commit")) for call in stub.calls)


def test_bump_rejects_unknown_release_type(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _use(monkeypatch, _RunnerStub())
    _package_json(tmp_path)

    result = CliRunner().invoke(cli.app, ["bump", "huge"])

    assert result.exit_code == 1
