from __future__ import annotations

from collections.abc import Sequence

from runner.build import build
from runner.ci import ci_steps, run_ci_validate
from runner.models import CommandResult, CommandSpec


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


def test_full_build_runs_source_then_types() -> None:
    runner = _RunnerStub()

    assert build(runner, package_manager="pnpm", type_checker="tsgo") == 0
    assert runner.calls == [
        "pnpm run clean:dist",
        "pnpm exec rollup -c .config/rollup.dist.config.mjs",
        "pnpm run clean:dist:types",
        "pnpm exec tsgo --project tsconfig.dts.json",
    ]


def test_build_stops_when_source_fails() -> None:
    runner = _RunnerStub({"pnpm exec rollup -c .config/rollup.dist.config.mjs": 2})

    assert build(runner, package_manager="pnpm", type_checker="tsgo") == 2
    assert "pnpm run clean:dist:types" not in runner.calls


def test_build_src_only_and_types_only() -> None:
    src = _RunnerStub()
    build(src, package_manager="pnpm", type_checker="tsgo", src_only=True)
    types = _RunnerStub()
    build(types, package_manager="pnpm", type_checker="tsc", types_only=True)

    assert src.calls[-1].startswith("pnpm exec rollup")
    assert types.calls == ["pnpm run clean:dist:types", "pnpm exec tsc --project tsconfig.dts.json"]


def test_ci_validate_runs_steps_in_order() -> None:
    runner = _RunnerStub()

    assert run_ci_validate(runner, package_manager="pnpm", root="/repo") == 0
    assert runner.calls == ["pnpm test --all", "pnpm check --all", "pnpm build"]
    assert [step for step, _, _ in ci_steps("pnpm", "/repo")] == [
        "Running tests",
        "Running checks",
        "Building project",
    ]


def test_ci_validate_stops_on_first_failure() -> None:
    runner = _RunnerStub({"pnpm check --all": 1})

    assert run_ci_validate(runner, package_manager="pnpm", root="/repo") == 1
    assert runner.calls == ["pnpm test --all", "pnpm check --all"]
