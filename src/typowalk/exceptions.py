"""Exception types carrying process exit classifications."""

from __future__ import annotations

from typowalk.runtime.exit_policy import ExitCode, io_error_exit_code


class TypowalkError(RuntimeError):
    """Error that terminates the run with a specific exit code.

    The message is meant for standard error; callers at the process boundary
    print it and exit with ``exit_code``.
    """

    default_exit_code = ExitCode.FAILURE

    def __init__(self, message: str, *, exit_code: ExitCode | None = None):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code if exit_code is not None else self.default_exit_code


class UsageError(TypowalkError):
    """Invalid input path or a forbidden combination of inputs."""

    default_exit_code = ExitCode.USAGE


class ConfigError(TypowalkError):
    """Policy lookup failure or malformed exclude pattern."""

    default_exit_code = ExitCode.CONFIG


class WalkIOError(TypowalkError):
    default_exit_code = ExitCode.IO_ERR

    @classmethod
    def from_os_error(cls, exc: OSError, *, message: str | None = None) -> "WalkIOError":
        text = message if message is not None else str(exc)
        return cls(text, exit_code=io_error_exit_code(exc))
