from __future__ import annotations

from collections.abc import Sequence


class ScriptError(Exception):
    """Base error for script failures; carries the process exit code to use."""

    exit_code: int = 1

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class CommandNotFoundError(ScriptError):
    """The external executable could not be located on PATH."""

    exit_code = 127

    def __init__(self, command: str) -> None:
        super().__init__(f"command not found: {command}")
        self.command = command


class CommandFailedError(ScriptError):
    def __init__(self, command: Sequence[str], code: int, stderr: str = "") -> None:
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(
            f"{' '.join(command)} exited with code {code}{detail}",
            exit_code=code or 1,
        )
        self.command = list(command)
        self.code = code
        self.stderr = stderr


class ConfigurationError(ScriptError):
    """A required file or configuration value is missing or malformed."""


class GenerationError(ScriptError):
    """OpenAPI or strict type generation failed."""


class PublishError(ScriptError):
    pass


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, ScriptError):
        return exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return 130
    return 1
