from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import typer

from core.affected import Selection, files_to_lint, filter_lintable_files
from runner.logging import get_logger
from runner.models import CommandResult, CommandSpec
from runner.process import exec_spec
from runner.types import ChangeSourceProtocol, RunnerProtocol

_log = get_logger(__name__)


@dataclass(frozen=True)
class Linter:
    name: str
    binary: str
    args: tuple[str, ...]


def fix_chain(eslint_config: str) -> list[Linter]:
    return [
        Linter(
            "oxlint",
            "oxlint",
            (
                "-c=.config/.oxlintrc.json",
                "--ignore-path=.config/.oxlintignore",
                "--tsconfig=.config/tsconfig.json",
                "--quiet",
                "--fix",
                ".",
            ),
        ),
        Linter("biome", "biome", ("format", "--log-level=none", "--fix", ".")),
        Linter(
            "eslint",
            "eslint",
            ("--config", eslint_config, "--report-unused-disable-directives", "--fix", "."),
        ),
    ]


def eslint_spec(
    package_manager: str, eslint_config: str, targets: Sequence[str], *, fix: bool
) -> CommandSpec:
    args = ["--config", eslint_config, "--report-unused-disable-directives"]
    if fix:
        args.append("--fix")
    return exec_spec(package_manager, "eslint", [*args, *targets])


def failed(result: CommandResult, *, fix: bool) -> bool:
    """A fixing run that changed files exits non-zero; only stderr marks a real failure."""
    if result.ok:
        return False
    return not fix or bool(result.stderr.strip())


class LintRunner:
    """eslint over all files, explicit files, or the git-changed set."""

    def __init__(
        self,
        *,
        runner: RunnerProtocol,
        git: ChangeSourceProtocol,
        package_manager: str,
        eslint_config: str,
        quiet: bool = False,
    ) -> None:
        self._runner = runner
        self._git = git
        self._pm = package_manager
        self._config = eslint_config
        self._quiet = quiet

    def _info(self, msg: str, *args: object) -> None:
        if not self._quiet:
            _log.info(msg, *args)

    def _eslint(self, targets: Sequence[str], *, fix: bool) -> int:
        result = self._runner.run_quiet(
            eslint_spec(self._pm, self._config, targets, fix=fix)
        )
        if failed(result, fix=fix):
            if not self._quiet:
                _log.error("Linting failed")
            if result.stderr:
                typer.echo(result.stderr, err=True)
            if result.stdout and not fix:
                typer.echo(result.stdout)
            return result.exit_code
        self._info("Linting passed")
        return 0

    def lint_files(self, files: Sequence[str], *, fix: bool = False) -> int:
        if not files:
            self._info("  No files to lint")
            return 0
        self._info("Linting %d file(s)", len(files))
        return self._eslint(files, fix=fix)

    def lint_all(self, *, fix: bool = False) -> int:
        return self._eslint(["."], fix=fix)

    def select(self, *, all_files: bool, changed: bool, staged: bool) -> Selection:
        return files_to_lint(
            all_files=all_files, changed=changed, staged=staged, git=self._git
        )

    def run(
        self,
        files: Sequence[str] = (),
        *,
        fix: bool = False,
        all_files: bool = False,
        changed: bool = False,
        staged: bool = False,
    ) -> int:
        if files:
            self._info("Linting specified files")
            code = self.lint_files(filter_lintable_files(files), fix=fix)
        else:
            selection = self.select(all_files=all_files, changed=changed, staged=staged)
            if selection.files is None:
                self._info("Skipping lint: %s", selection.reason)
                code = 0
            elif isinstance(selection.files, str):
                suffix = f" ({selection.reason})" if selection.reason else ""
                self._info("Linting all files%s", suffix)
                code = self.lint_all(fix=fix)
            else:
                self._info("Linting affected files")
                code = self.lint_files(selection.files, fix=fix)
        if code != 0:
            if not self._quiet:
                _log.error("Lint failed")
        else:
            self._info("All lint checks passed!")
        return code


def run_fix_chain(
    runner: RunnerProtocol, *, package_manager: str, eslint_config: str
) -> int:
    _log.info("Running linters with auto-fix...")
    had_error = False
    for linter in fix_chain(eslint_config):
        _log.info("  - Running %s...", linter.name, extra={"step": linter.name})
        result = runner.run_quiet(exec_spec(package_manager, linter.binary, linter.args))
        if not result.ok and result.stderr.strip():
            _log.error("%s errors: %s", linter.name, result.stderr.strip())
            had_error = True
    if had_error:
        return 1
    _log.info("Lint fixes complete")
    return 0
