from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from runner.models import CommandResult, CommandSpec


class RunnerProtocol(Protocol):
    """Interface for launching external tools; stubbed in tests."""

    def run(self, spec: CommandSpec) -> int: ...

    def run_quiet(self, spec: CommandSpec) -> CommandResult: ...

    def run_sequence(self, specs: Sequence[CommandSpec]) -> int: ...

    def run_parallel(self, specs: Sequence[CommandSpec]) -> list[int]: ...


class ChangeSourceProtocol(Protocol):
    """Where affected-file selection reads changed paths from."""

    def staged_files(self) -> list[str]: ...

    def changed_files(self) -> list[str]: ...


class ReleaseGitProtocol(Protocol):
    """Git operations the publish pipeline needs."""

    def status(self) -> str: ...

    def current_branch(self) -> str: ...

    def tag_exists(self, tag: str) -> bool: ...

    def create_tag(self, tag: str, message: str, *, force: bool = False) -> int: ...

    def push_tag(self, tag: str, *, remote: str = "origin", force: bool = False) -> int: ...


class BumpGitProtocol(ReleaseGitProtocol, Protocol):
    """Adds the commit and history calls a version bump makes."""

    def last_tag(self) -> str | None: ...

    def commit_subjects(self, since: str | None, *, limit: int = 20) -> list[str]: ...

    def add(self, paths: Sequence[str]) -> int: ...

    def commit(self, message: str) -> int: ...

    def push(self, *, tags: bool = False) -> int: ...


class HttpResponseProtocol(Protocol):
    status_code: int


class HttpGetProtocol(Protocol):
    def __call__(
        self, url: str, *, timeout: float, headers: dict[str, str]
    ) -> HttpResponseProtocol: ...
