from __future__ import annotations

from pathlib import Path
from typing import TextIO

from typowalk.exceptions import UsageError, WalkIOError

STDIN_MARKER = Path("-")


def is_stdin_marker(path: Path) -> bool:
    return path == STDIN_MARKER


def process_cwd() -> Path:
    try:
        return Path.cwd()
    except OSError as exc:
        raise WalkIOError.from_os_error(exc, message="no current working directory") from exc


def _canonical(path: Path) -> Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise UsageError(f"argument `{path}` is not found") from exc


def resolve_working_context(path: Path, *, cwd: Path, file_list_mode: bool = False) -> Path:
    """Return the canonical directory whose policy governs ``path``.

    The stdin marker resolves to ``cwd`` and is rejected outright when paths
    come from a file list, where ``-`` would be ambiguous.
    """
    if is_stdin_marker(path):
        if file_list_mode:
            raise UsageError(
                "Can't use `-` (stdin) while using `--file-list` provided paths"
            )
        return cwd
    if path.is_file():
        return _canonical(path).parent
    context = _canonical(path)
    if not context.is_dir():
        raise UsageError(f"argument `{path}` is not a file or directory")
    return context


def read_file_list(source: Path, *, stdin: TextIO) -> list[Path]:
    try:
        if is_stdin_marker(source):
            lines = stdin.read().splitlines()
        else:
            lines = source.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise WalkIOError.from_os_error(
            exc, message=f"could not read file list `{source}`: {exc}"
        ) from exc
    return [Path(line) for line in lines if line]
