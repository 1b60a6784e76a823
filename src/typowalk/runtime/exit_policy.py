from __future__ import annotations

import errno
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    # Distinct from FAILURE and from every sysexits code an OSError maps to.
    TYPOS = 2
    USAGE = 64
    DATA_ERR = 65
    UNAVAILABLE = 69
    OS_FILE_ERR = 72
    CANT_CREAT = 73
    IO_ERR = 74
    TEMP_FAIL = 75
    PROTOCOL = 76
    NO_PERM = 77
    CONFIG = 78
    SIGINT = 130
    SIGPIPE = 141


_ADDRESS_ERRNOS = frozenset({errno.EADDRINUSE, errno.EADDRNOTAVAIL})


def signal_exit_code(exc: OSError) -> ExitCode | None:
    if isinstance(exc, BrokenPipeError):
        return ExitCode.SIGPIPE
    if isinstance(exc, InterruptedError):
        return ExitCode.SIGINT
    return None


def sysexits_exit_code(exc: OSError) -> ExitCode | None:
    if isinstance(exc, FileNotFoundError):
        return ExitCode.OS_FILE_ERR
    if isinstance(exc, PermissionError):
        return ExitCode.NO_PERM
    if isinstance(exc, FileExistsError):
        return ExitCode.CANT_CREAT
    if isinstance(exc, TimeoutError):
        return ExitCode.TEMP_FAIL
    if isinstance(exc, ConnectionError):
        return ExitCode.PROTOCOL
    if exc.errno in _ADDRESS_ERRNOS:
        return ExitCode.UNAVAILABLE
    if exc.errno == errno.EILSEQ:
        return ExitCode.DATA_ERR
    return None


def io_error_exit_code(exc: OSError) -> ExitCode:
    """Map an OSError to the process exit status.

    Interruption-style conditions take the shell signal convention
    (128 + signal number) ahead of the sysexits table, so a closed pipe reads
    as SIGPIPE rather than a generic protocol failure.
    """
    signal_code = signal_exit_code(exc)
    if signal_code is not None:
        return signal_code
    sysexits_code = sysexits_exit_code(exc)
    if sysexits_code is not None:
        return sysexits_code
    return ExitCode.IO_ERR
