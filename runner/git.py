from __future__ import annotations

from collections.abc import Sequence

from runner.models import CommandSpec
from runner.types import RunnerProtocol


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


class Git:
    """Thin wrapper over the git CLI; all calls capture output."""

    def __init__(self, runner: RunnerProtocol, *, root: str) -> None:
        self._runner = runner
        self._root = root

    def _spec(self, *args: str) -> CommandSpec:
        return CommandSpec(command="git", args=list(args), cwd=self._root)

    def _out(self, *args: str) -> str:
        result = self._runner.run_quiet(self._spec(*args))
        return result.stdout if result.ok else ""

    def is_repository(self) -> bool:
        result = self._runner.run_quiet(self._spec("rev-parse", "--show-toplevel"))
        return result.ok and bool(result.stdout.strip())

    def staged_files(self) -> list[str]:
        return _lines(self._out("diff", "--cached", "--name-only"))

    def staged_files_or_none(self) -> list[str] | None:
        """Staged files, or None outside a git repository."""
        if not self.is_repository():
            return None
        return self.staged_files()

    def unstaged_files(self) -> list[str]:
        return _lines(self._out("diff", "--name-only"))

    def untracked_files(self) -> list[str]:
        return _lines(self._out("ls-files", "--others", "--exclude-standard"))

    def changed_files(self) -> list[str]:
        """Unstaged, staged and untracked paths, de-duplicated in first-seen order."""
        seen: dict[str, None] = {}
        for group in (self.unstaged_files(), self.staged_files(), self.untracked_files()):
            for path in group:
                seen.setdefault(path, None)
        return list(seen)

    def current_branch(self) -> str:
        return self._out("rev-parse", "--abbrev-ref", "HEAD").strip()

    def status(self) -> str:
        return self._out("status", "--porcelain")

    def is_clean(self) -> tuple[bool, str]:
        porcelain = self.status()
        return (not porcelain.strip(), porcelain)

    def tag_exists(self, tag: str) -> bool:
        return bool(self._out("tag", "-l", tag).strip())

    def create_tag(self, tag: str, message: str, *, force: bool = False) -> int:
        args = ["tag", tag, "-m", message]
        if force:
            args.append("-f")
        return self._runner.run(self._spec(*args))

    def push_tag(self, tag: str, *, remote: str = "origin", force: bool = False) -> int:
        args = ["push", remote, tag]
        if force:
            args.append("-f")
        return self._runner.run(self._spec(*args))

    def last_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, or None when there is none."""
        return self._out("describe", "--tags", "--abbrev=0").strip() or None

    def commit_subjects(self, since: str | None, *, limit: int = 20) -> list[str]:
        args = ["log", "--format=%s", "--no-merges", f"-{limit}"]
        if since:
            args.append(f"{since}..HEAD")
        return _lines(self._out(*args))

    def add(self, paths: Sequence[str]) -> int:
        return self._runner.run(self._spec("add", *paths))

    def commit(self, message: str) -> int:
        return self._runner.run(self._spec("commit", "-m", message))

    def push(self, *, tags: bool = False) -> int:
        return self._runner.run(self._spec("push", "--tags") if tags else self._spec("push"))
