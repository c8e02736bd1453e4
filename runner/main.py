from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import typer

from core.openapi import prettify_openapi
from core.strict_types import generate_strict_types, load_config
from runner.build import build as build_sdk
from runner.bump import RELEASE_TYPES, Bumper, BumpOptions
from runner.check import check_specs, run_checks
from runner.ci import run_ci_validate
from runner.clean import clean as clean_paths
from runner.clean import plan_tasks
from runner.config import Settings
from runner.doctor import run_doctor
from runner.errors import exit_code_for
from runner.generate import generate_sdk as generate_sdk_pipeline
from runner.generate import generate_types as generate_types_file
from runner.git import Git
from runner.lint import LintRunner, run_fix_chain
from runner.logging import get_logger, setup_logging
from runner.process import CommandRunner
from runner.publish import Publisher, PublishOptions
from runner.testing import CoverageFormat, coverage_percent, run_cover, run_coverage, run_tests
from runner.types import RunnerProtocol
from tools.guard import GUARDS, run_guard, run_guards

_log = get_logger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Build, lint, test, generate and publish the TypeScript SDK.",
)

_PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def make_runner(settings: Settings) -> RunnerProtocol:
    return CommandRunner(cwd=str(settings.root))


def _finish(action: Callable[[], int]) -> None:
    """Run a command body and turn its result or failure into the exit code."""
    try:
        code = action()
    except KeyboardInterrupt as exc:
        _log.error("Interrupted")
        raise typer.Exit(exit_code_for(exc)) from exc
    except Exception as exc:
        _log.error("%s", exc)
        _log.debug("Traceback", exc_info=True)
        raise typer.Exit(exit_code_for(exc)) from exc
    if code != 0:
        raise typer.Exit(code)


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."
    ),
    log_format: str | None = typer.Option(None, "--log-format", help="text or json."),
) -> None:
    settings = Settings.from_env()
    setup_logging(log_level or settings.log_level, log_format or settings.log_format)


@app.command()
def clean(
    all_: bool = typer.Option(False, "--all", help="Clean everything except node_modules."),
    cache: bool = typer.Option(False, "--cache"),
    coverage: bool = typer.Option(False, "--coverage"),
    dist: bool = typer.Option(False, "--dist"),
    types: bool = typer.Option(False, "--types"),
    modules: bool = typer.Option(False, "--modules", help="Also remove node_modules."),
    quiet: bool = typer.Option(False, "--quiet", "--silent"),
) -> None:
    """Remove build artifacts and caches."""
    settings = Settings.from_env()
    tasks = plan_tasks(
        all_=all_, cache=cache, coverage=coverage, dist=dist, types=types, modules=modules
    )
    _finish(lambda: clean_paths(settings.root, tasks, quiet=quiet))


@app.command()
def build(
    src_only: bool = typer.Option(False, "--src-only"),
    types_only: bool = typer.Option(False, "--types-only"),
) -> None:
    """Bundle the source with rollup and emit declarations."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(
        lambda: build_sdk(
            runner,
            package_manager=settings.package_manager,
            type_checker=settings.type_checker,
            src_only=src_only,
            types_only=types_only,
        )
    )


@app.command()
def lint(
    files: list[str] | None = typer.Argument(
        None, help="Files to lint instead of the git selection."
    ),
    fix: bool = typer.Option(False, "--fix"),
    all_files: bool = typer.Option(False, "--all"),
    changed: bool = typer.Option(False, "--changed"),
    staged: bool = typer.Option(False, "--staged"),
    quiet: bool = typer.Option(False, "--quiet", "--silent"),
) -> None:
    """Run eslint over explicit, changed, staged or all files."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    linter = LintRunner(
        runner=runner,
        git=Git(runner, root=str(settings.root)),
        package_manager=settings.package_manager,
        eslint_config=settings.eslint_config_path,
        quiet=quiet,
    )
    _finish(
        lambda: linter.run(
            files or (), fix=fix, all_files=all_files, changed=changed, staged=staged
        )
    )


@app.command()
def fix() -> None:
    """Apply oxlint, biome and eslint fixes in sequence."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(
        lambda: run_fix_chain(
            runner,
            package_manager=settings.package_manager,
            eslint_config=settings.eslint_config_path,
        )
    )


@app.command()
def check(
    all_files: bool = typer.Option(False, "--all"),
    staged: bool = typer.Option(False, "--staged"),
) -> None:
    """Lint, type check and run every validator in parallel."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    specs = check_specs(
        root=str(settings.root),
        package_manager=settings.package_manager,
        type_checker=settings.type_checker,
        tsconfig=settings.tsconfig_check_path,
        all_files=all_files,
        staged=staged,
    )
    _finish(lambda: run_checks(runner, specs))


@app.command(context_settings=_PASSTHROUGH)
def test(
    ctx: typer.Context,
    all_tests: bool = typer.Option(False, "--all"),
    changed: bool = typer.Option(False, "--changed"),
    staged: bool = typer.Option(False, "--staged"),
) -> None:
    """Run vitest; remaining arguments are forwarded."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    git = Git(runner, root=str(settings.root))
    _finish(
        lambda: run_tests(
            runner,
            git,
            root=settings.root,
            ci=settings.ci,
            args=list(ctx.args),
            all_tests=all_tests,
            changed=changed,
            staged=staged,
        )
    )


@app.command(context_settings=_PASSTHROUGH)
def cover(ctx: typer.Context) -> None:
    """Run tests with coverage and print a condensed summary."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(
        lambda: run_cover(
            runner,
            root=settings.root,
            package_manager=settings.package_manager,
            ci=settings.ci,
            args=list(ctx.args),
        )
    )


def _percent_format(json_output: bool, simple: bool) -> CoverageFormat:
    if json_output:
        return "json"
    if simple:
        return "simple"
    return "text"


@app.command()
def coverage(
    percent: bool = typer.Option(False, "--percent"),
    code_only: bool = typer.Option(False, "--code-only"),
    type_only: bool = typer.Option(False, "--type-only"),
    json_output: bool = typer.Option(False, "--json"),
    simple: bool = typer.Option(False, "--simple"),
) -> None:
    """Collect code and type coverage."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    if percent:
        _finish(
            lambda: coverage_percent(
                runner,
                root=settings.root,
                package_manager=settings.package_manager,
                fmt=_percent_format(json_output, simple),
            )
        )
        return
    _finish(
        lambda: run_coverage(
            runner,
            package_manager=settings.package_manager,
            code_only=code_only,
            type_only=type_only,
        )
    )


@app.command("coverage-percent")
def coverage_percent_command(
    json_output: bool = typer.Option(False, "--json"),
    simple: bool = typer.Option(False, "--simple"),
) -> None:
    """Report aggregated coverage percentages."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(
        lambda: coverage_percent(
            runner,
            root=settings.root,
            package_manager=settings.package_manager,
            fmt=_percent_format(json_output, simple),
        )
    )


@app.command("generate-types")
def generate_types() -> None:
    """Generate baseline TypeScript types from the OpenAPI document."""
    settings = Settings.from_env()
    runner = make_runner(settings)

    def action() -> int:
        target = generate_types_file(settings, runner)
        _log.info("Written to %s", target)
        return 0

    _finish(action)


@app.command("generate-strict-types")
def generate_strict_types_command(
    config: Path | None = typer.Option(
        None, "--config", help="JSON file replacing the built-in table."
    ),
) -> None:
    """Generate strict response and query types."""
    settings = Settings.from_env()
    runner = make_runner(settings)

    def action() -> int:
        table = load_config(config) if config is not None else None
        generate_strict_types(settings, runner, table)
        return 0

    _finish(action)


@app.command("generate-sdk")
def generate_sdk(
    strict: bool = typer.Option(True, "--strict/--no-strict"),
    config: Path | None = typer.Option(None, "--config"),
) -> None:
    """Prettify, generate types and strict types, then format."""
    settings = Settings.from_env()
    runner = make_runner(settings)

    def fix_generated() -> int:
        return run_fix_chain(
            runner,
            package_manager=settings.package_manager,
            eslint_config=settings.eslint_config_path,
        )

    def action() -> int:
        table = load_config(config) if config is not None else None
        return generate_sdk_pipeline(
            settings, runner, fix=fix_generated, strict=strict, config=table
        )

    _finish(action)


@app.command("prettify-openapi")
def prettify(path: Path | None = typer.Argument(None)) -> None:
    """Rewrite the OpenAPI document with two-space indentation."""
    settings = Settings.from_env()

    def action() -> int:
        target = prettify_openapi(path or settings.resolve(settings.openapi_path))
        _log.info("Prettified %s", target)
        return 0

    _finish(action)


@app.command()
def publish(
    dry_run: bool = typer.Option(False, "--dry-run"),
    force: bool = typer.Option(False, "--force"),
    skip_checks: bool = typer.Option(False, "--skip-checks"),
    skip_build: bool = typer.Option(False, "--skip-build"),
    skip_git: bool = typer.Option(False, "--skip-git"),
    skip_tag: bool = typer.Option(False, "--skip-tag"),
    complex_: bool = typer.Option(False, "--complex"),
    tag: str = typer.Option("latest", "--tag"),
    access: str = typer.Option("public", "--access"),
    otp: str | None = typer.Option(None, "--otp"),
) -> None:
    """Check, build, publish to the registry and tag the release."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    publisher = Publisher(
        runner=runner,
        git=Git(runner, root=str(settings.root)),
        root=settings.root,
        package_manager=settings.package_manager,
        registry_url=settings.registry_url,
    )
    options = PublishOptions(
        dry_run=dry_run,
        force=force,
        skip_checks=skip_checks,
        skip_build=skip_build,
        skip_git=skip_git,
        skip_tag=skip_tag,
        complex=complex_,
        tag=tag,
        access=access,
        otp=otp,
    )
    _finish(lambda: publisher.run(options))


@app.command()
def bump(
    release: str = typer.Argument(
        "patch", help=f"One of: {', '.join(RELEASE_TYPES)}, or an explicit version."
    ),
    dry_run: bool = typer.Option(False, "--dry-run"),
    force: bool = typer.Option(False, "--force"),
    skip_checks: bool = typer.Option(False, "--skip-checks"),
    skip_push: bool = typer.Option(False, "--skip-push", "--no-push"),
    no_changelog: bool = typer.Option(False, "--no-changelog", "--skip-changelog"),
) -> None:
    """Bump the version, update the changelog, commit, tag and push."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    bumper = Bumper(
        runner=runner,
        git=Git(runner, root=str(settings.root)),
        root=settings.root,
        package_manager=settings.package_manager,
    )
    options = BumpOptions(
        bump=release,
        dry_run=dry_run,
        force=force,
        skip_checks=skip_checks,
        skip_push=skip_push,
        no_changelog=no_changelog,
    )
    _finish(lambda: bumper.run(options))


@app.command("ci-validate")
def ci_validate() -> None:
    """Run tests, checks and the build the way CI does."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(
        lambda: run_ci_validate(
            runner, package_manager=settings.package_manager, root=str(settings.root)
        )
    )


@app.command()
def doctor() -> None:
    """Verify the node toolchain is installed."""
    settings = Settings.from_env()
    runner = make_runner(settings)
    _finish(lambda: run_doctor(runner, package_manager=settings.package_manager))


@app.command()
def validate(
    name: str = typer.Argument("all", help=f"One of: {', '.join(GUARDS)}, all."),
) -> None:
    """Run one repository validator, or all of them."""
    root = str(Settings.from_env().root)
    if name == "all":
        _finish(lambda: run_guards([root]))
    else:
        _finish(lambda: run_guard(name, [root]))


def run() -> None:
    app()
