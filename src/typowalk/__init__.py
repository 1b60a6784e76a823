"""typowalk package root."""

from typowalk.exceptions import ConfigError, TypowalkError, UsageError, WalkIOError
from typowalk.runtime.exit_policy import ExitCode

__all__ = [
    "__version__",
    "ConfigError",
    "ExitCode",
    "TypowalkError",
    "UsageError",
    "WalkIOError",
]

__version__ = "0.1.0"
