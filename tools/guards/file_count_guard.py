from __future__ import annotations

import sys
from dataclasses import dataclass

from runner.errors import CommandNotFoundError
from runner.git import Git
from runner.logging import get_logger, setup_logging
from runner.process import CommandRunner
from runner.types import RunnerProtocol

_log = get_logger(__name__)

MAX_FILES_PER_COMMIT = 50
SHOWN_FILES = 20


@dataclass(frozen=True)
class CountViolation:
    count: int
    files: list[str]
    limit: int


def check_staged(git: Git, *, limit: int = MAX_FILES_PER_COMMIT) -> CountViolation | None:
    try:
        staged = git.staged_files_or_none()
    except CommandNotFoundError:
        _log.debug("git not available, skipping staged file count")
        return None
    if staged is None or len(staged) < limit:
        return None
    return CountViolation(len(staged), staged, limit)


def format_violation(violation: CountViolation) -> list[str]:
    lines = [
        "Too many files staged for commit",
        "",
        f"Staged files: {violation.count}",
        f"Maximum allowed: {violation.limit}",
        "",
        "Staged files:",
        "",
    ]
    lines.extend(f"  {path}" for path in violation.files[:SHOWN_FILES])
    if len(violation.files) > SHOWN_FILES:
        lines.append(f"  ... and {len(violation.files) - SHOWN_FILES} more files")
    lines.extend(
        [
            "",
            "Split into smaller commits, check for accidentally staged files, "
            "or exclude generated files.",
        ]
    )
    return lines


def run(roots: list[str], *, runner: RunnerProtocol | None = None) -> int:
    shell = runner if runner is not None else CommandRunner()
    for root in roots:
        violation = check_staged(Git(shell, root=root))
        if violation is not None:
            sys.stderr.write("\n".join(format_violation(violation)) + "\n")
            return 1
    _log.info("Commit size is acceptable")
    return 0


def main() -> int:
    setup_logging()
    return run(sys.argv[1:] or ["."])


if __name__ == "__main__":
    raise SystemExit(main())
