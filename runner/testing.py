from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Literal

import typer

from core.affected import tests_to_run
from core.coverage import (
    clean_output,
    extract_cover_summary,
    parse_type_coverage_percent,
    read_code_coverage,
    render_cover_summary,
    report_json,
    summary_lines,
)
from runner.errors import ScriptError
from runner.logging import get_logger
from runner.models import CommandSpec
from runner.process import WIN32, exec_spec, script_spec
from runner.types import ChangeSourceProtocol, RunnerProtocol

_log = get_logger(__name__)

CoverageFormat = Literal["text", "json", "simple"]
COVERAGE_JSON = Path("coverage") / "coverage-final.json"


def node_options(existing: str, *, ci: bool) -> str:
    heap = 8192 if ci else 4096
    return f"{existing} --max-old-space-size={heap} --max-semi-space-size=512".strip()


def split_force(args: Sequence[str]) -> tuple[list[str], bool]:
    """Drop a leading ``--`` and the first ``--force``; report whether it was present."""
    out = list(args)
    if out and out[0] == "--":
        out = out[1:]
    if "--force" in out:
        out.remove("--force")
        return out, True
    return out, False


def expand_globs(args: Sequence[str], root: Path) -> list[str]:
    expanded: list[str] = []
    for arg in args:
        if "*" in arg and not arg.startswith("-"):
            expanded.extend(
                sorted(p.relative_to(root).as_posix() for p in root.glob(arg))
            )
        else:
            expanded.append(arg)
    return expanded


def vitest_path(root: Path) -> Path:
    return root / "node_modules" / ".bin" / ("vitest.cmd" if WIN32 else "vitest")


def vitest_spec(
    root: Path,
    args: Sequence[str],
    *,
    ci: bool,
    force: bool = False,
    environ: Mapping[str, str] | None = None,
) -> CommandSpec:
    source = os.environ if environ is None else environ
    env = {"NODE_OPTIONS": node_options(source.get("NODE_OPTIONS", ""), ci=ci)}
    if force:
        env["FORCE_TEST"] = "1"
    return CommandSpec(
        command=str(vitest_path(root)),
        args=["run", *expand_globs(args, root)],
        cwd=str(root),
        env=env,
    )


def run_tests(
    runner: RunnerProtocol,
    git: ChangeSourceProtocol,
    *,
    root: Path,
    ci: bool,
    args: Sequence[str] = (),
    all_tests: bool = False,
    changed: bool = False,
    staged: bool = False,
) -> int:
    vitest_args, force = split_force(args)
    force = force or os.environ.get("FORCE_TEST") == "1"
    if changed or staged:
        selection = tests_to_run(
            all_tests=all_tests, staged=staged, git=git, root=root, force=force, ci=ci
        )
        if selection.files is None:
            _log.info("No tests to run")
            return 0
        if isinstance(selection.files, str):
            _log.info("Running all tests (%s)", selection.reason)
        else:
            _log.info("Running %d affected test file(s)", len(selection.files))
            vitest_args = [*vitest_args, *selection.files]
    return runner.run(vitest_spec(root, vitest_args, ci=ci, force=force))


def run_cover(
    runner: RunnerProtocol,
    *,
    root: Path,
    package_manager: str,
    ci: bool,
    args: Sequence[str] = (),
) -> int:
    _log.info("Running Coverage")
    vitest_args, force = split_force(args)
    tests = runner.run_quiet(
        vitest_spec(root, ["--coverage", *vitest_args], ci=ci, force=force)
    )
    types = runner.run_quiet(exec_spec(package_manager, "type-coverage"))
    summary = extract_cover_summary(tests.output, types.output)
    for line in render_cover_summary(summary):
        typer.echo(line)
    if tests.ok:
        _log.info("Coverage completed successfully")
    else:
        _log.error("Coverage failed")
        if summary.test_summary is None and summary.border is None:
            typer.echo("\n--- Output ---")
            typer.echo(clean_output(tests.output))
    return tests.exit_code


def _code_steps(package_manager: str) -> list[CommandSpec]:
    return [
        script_spec(package_manager, "pretest:unit"),
        script_spec(package_manager, "test:unit:coverage"),
    ]


def run_coverage(
    runner: RunnerProtocol,
    *,
    package_manager: str,
    code_only: bool = False,
    type_only: bool = False,
) -> int:
    type_step = exec_spec(package_manager, "type-coverage")
    if type_only:
        _log.info("Collecting type coverage...")
        return runner.run(type_step)
    if code_only:
        _log.info("Collecting code coverage...")
        return runner.run_sequence(_code_steps(package_manager))
    _log.info("Collecting coverage (code + type)...")
    code = runner.run_sequence(_code_steps(package_manager))
    if code != 0:
        return code
    return runner.run(type_step)


def type_coverage_percent(runner: RunnerProtocol, *, package_manager: str) -> float | None:
    result = runner.run_quiet(script_spec(package_manager, "coverage:type"))
    if not result.ok:
        raise ScriptError(f"Failed to get type coverage: exit code {result.exit_code}")
    return parse_type_coverage_percent(result.stdout)


def coverage_percent(
    runner: RunnerProtocol,
    *,
    root: Path,
    package_manager: str,
    fmt: CoverageFormat = "text",
) -> int:
    data_path = root / COVERAGE_JSON
    if not data_path.exists():
        if fmt == "text":
            _log.info("Generating coverage data...")
        spec = script_spec(package_manager, "test:unit:coverage").model_copy(
            update={"quiet": True, "cwd": str(root)}
        )
        code = runner.run(spec)
        if code != 0:
            raise ScriptError(f"Failed to generate coverage data: exit code {code}")
    report = read_code_coverage(data_path)

    type_percent: float | None = None
    try:
        type_percent = type_coverage_percent(runner, package_manager=package_manager)
    except ScriptError as exc:
        # Type coverage is secondary; report it and carry on without it.
        _log.error("Failed to get type coverage: %s", exc)

    if fmt == "json":
        typer.echo(report_json(report, type_percent))
    elif fmt == "simple":
        typer.echo(report.statements.percent)
    else:
        for line in summary_lines(report, type_percent):
            _log.info(line)
    return 0
