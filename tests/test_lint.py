from __future__ import annotations

from collections.abc import Sequence

import pytest

from runner.lint import LintRunner, eslint_spec, failed, fix_chain, run_fix_chain
from runner.models import CommandResult, CommandSpec


class _RunnerStub:
    def __init__(self, results: list[CommandResult] | None = None) -> None:
        self._results = list(results or [])
        self.quiet: list[CommandSpec] = []

    def run(self, spec: CommandSpec) -> int:
        return 0

    def run_quiet(self, spec: CommandSpec) -> CommandResult:
        self.quiet.append(spec)
        if self._results:
            return self._results.pop(0)
        return CommandResult(exit_code=0)

    def run_sequence(self, specs: Sequence[CommandSpec]) -> int:
        return 0

    def run_parallel(self, specs: Sequence[CommandSpec]) -> list[int]:
        return [0 for _ in specs]


class _GitStub:
    def __init__(self, files: list[str]) -> None:
        self._files = files

    def staged_files(self) -> list[str]:
        return self._files

    def changed_files(self) -> list[str]:
        return self._files


def _linter(runner: _RunnerStub, files: list[str] | None = None) -> LintRunner:
    return LintRunner(
        runner=runner,
        git=_GitStub(files or []),
        package_manager="pnpm",
        eslint_config=".config/eslint.config.mjs",
    )


def test_eslint_spec_arguments() -> None:
    spec = eslint_spec("pnpm", "cfg.mjs", ["src/a.ts"], fix=True)

    assert spec.argv() == [
        "pnpm",
        "exec",
        "eslint",
        "--config",
        "cfg.mjs",
        "--report-unused-disable-directives",
        "--fix",
        "src/a.ts",
    ]


def test_failed_only_counts_stderr_when_fixing() -> None:
    changed = CommandResult(exit_code=1, stdout="fixed 3 problems")
    broken = CommandResult(exit_code=1, stderr="Parsing error")

    assert not failed(CommandResult(exit_code=0), fix=False)
    assert failed(changed, fix=False)
    assert not failed(changed, fix=True)
    assert failed(broken, fix=True)


def test_lint_all_targets_whole_tree() -> None:
    runner = _RunnerStub()

    assert _linter(runner).run(all_files=True) == 0
    assert runner.quiet[0].args[-1] == "."


def test_lint_changed_passes_selected_files() -> None:
    runner = _RunnerStub()

    rc = _linter(runner, ["src/a.ts", "logo.png"]).run(changed=True)

    assert rc == 0
    assert runner.quiet[0].args[-1] == "src/a.ts"
    assert "logo.png" not in runner.quiet[0].args


def test_lint_staged_with_nothing_lintable_skips() -> None:
    runner = _RunnerStub()

    assert _linter(runner, ["logo.png"]).run(staged=True) == 0
    assert runner.quiet == []


def test_lint_failure_relays_output(capsys: pytest.CaptureFixture[str]) -> None:
    runner = _RunnerStub([CommandResult(exit_code=1, stdout="src/a.ts: error", stderr="")])

    rc = _linter(runner).run(["src/a.ts"])

    assert rc == 1
    assert "src/a.ts: error" in capsys.readouterr().out


def test_fix_mode_with_clean_stderr_succeeds() -> None:
    runner = _RunnerStub([CommandResult(exit_code=1, stdout="fixed")])

    assert _linter(runner).run(all_files=True, fix=True) == 0


def test_fix_chain_order_and_error_handling() -> None:
    assert [linter.name for linter in fix_chain("cfg.mjs")] == ["oxlint", "biome", "eslint"]

    ok = _RunnerStub(
        [CommandResult(exit_code=1), CommandResult(exit_code=0), CommandResult(exit_code=1)]
    )
    assert run_fix_chain(ok, package_manager="pnpm", eslint_config="cfg.mjs") == 0
    assert [spec.args[1] for spec in ok.quiet] == ["oxlint", "biome", "eslint"]

    bad = _RunnerStub([CommandResult(exit_code=0), CommandResult(exit_code=2, stderr="boom")])
    assert run_fix_chain(bad, package_manager="pnpm", eslint_config="cfg.mjs") == 1
    assert len(bad.quiet) == 3
