"""Per-file check behaviors.

A run selects exactly one :class:`FileChecker`; the walk calls its
``check_file`` for every visited file, possibly from several threads.
Checkers hold no per-run state, so one instance serves every worker.
"""

from __future__ import annotations

import difflib
import logging
import re
import sys
import threading
from enum import Enum
from pathlib import Path
from typing import Iterator, Mapping, Protocol, TextIO

import typer

from typowalk.policy import FilePolicy
from typowalk.report import (
    FileMessage,
    FileTypeMessage,
    ParseMessage,
    Report,
    TypoMessage,
    printable,
)
from typowalk.runtime.path_policy import is_stdin_marker

logger = logging.getLogger(__name__)

BINARY_SNIFF_BYTES = 8192
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+")


class CheckMode(str, Enum):
    FILES = "files"
    FILE_TYPES = "file-types"
    HIGHLIGHT_IDENTIFIERS = "highlight-identifiers"
    IDENTIFIERS = "identifiers"
    HIGHLIGHT_WORDS = "highlight-words"
    WORDS = "words"
    WRITE_CHANGES = "write-changes"
    DIFF = "diff"
    TYPOS = "typos"


class FileChecker(Protocol):
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None: ...


def iter_identifiers(line: str) -> Iterator[tuple[int, str]]:
    for match in _IDENTIFIER_RE.finditer(line):
        yield match.start(), match.group()


def split_identifier(identifier: str) -> Iterator[tuple[int, str]]:
    """Split on underscores, digits and case changes (``HTTPServer`` -> HTTP, Server)."""
    for match in _WORD_RE.finditer(identifier):
        yield match.start(), match.group()


def iter_words(line: str) -> Iterator[tuple[int, str]]:
    for offset, identifier in iter_identifiers(line):
        for word_offset, word in split_identifier(identifier):
            yield offset + word_offset, word


def match_case(typo: str, correction: str) -> str:
    if len(typo) > 1 and typo.isupper():
        return correction.upper()
    if typo[:1].isupper():
        return correction[:1].upper() + correction[1:]
    return correction


def find_typos(line: str, corrections: Mapping[str, str]) -> Iterator[tuple[int, str, str]]:
    """Yield ``(offset, typo, correction)``; whole identifiers win over their words."""
    if not corrections:
        return
    for offset, identifier in iter_identifiers(line):
        correction = corrections.get(identifier.lower())
        if correction is not None:
            yield offset, identifier, match_case(identifier, correction)
            continue
        for word_offset, word in split_identifier(identifier):
            correction = corrections.get(word.lower())
            if correction is not None:
                yield offset + word_offset, word, match_case(word, correction)


def fix_line(line: str, corrections: Mapping[str, str]) -> str:
    fixed = line
    for offset, typo, correction in reversed(list(find_typos(line, corrections))):
        fixed = fixed[:offset] + correction + fixed[offset + len(typo):]
    return fixed


def fix_text(text: str, corrections: Mapping[str, str]) -> str:
    return "".join(fix_line(line, corrections) for line in text.splitlines(keepends=True))


def is_binary(data: bytes) -> bool:
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def read_bytes(path: Path) -> bytes:
    if is_stdin_marker(path):
        return sys.stdin.buffer.read()
    return path.read_bytes()


def decode(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def read_text(path: Path, explicit: bool, policy: FilePolicy) -> str | None:
    """File content, or ``None`` for a binary file that was not asked for."""
    data = read_bytes(path)
    if not explicit and not policy.binary and is_binary(data):
        logger.debug("%s: skipping binary file", path)
        return None
    return decode(data)


def _report_line_typos(
    path: Path,
    text: str,
    corrections: Mapping[str, str],
    reporter: Report,
) -> None:
    for line_num, line in enumerate(text.splitlines(), start=1):
        for offset, typo, correction in find_typos(line, corrections):
            reporter.report(
                TypoMessage(
                    path=path,
                    line_num=line_num,
                    column=offset + 1,
                    typo=typo,
                    corrections=(correction,),
                    line=line,
                )
            )


def _report_filename_typos(path: Path, corrections: Mapping[str, str], reporter: Report) -> None:
    if is_stdin_marker(path):
        return
    for offset, typo, correction in find_typos(path.name, corrections):
        reporter.report(
            TypoMessage(
                path=path,
                line_num=0,
                column=offset + 1,
                typo=typo,
                corrections=(correction,),
                line=path.name,
                in_filename=True,
            )
        )


class Typos:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        if policy.check_filename:
            _report_filename_typos(path, policy.corrections, reporter)
        if not policy.check_file:
            return
        text = read_text(path, explicit, policy)
        if text is not None:
            _report_line_typos(path, text, policy.corrections, reporter)


class FixTypos:
    """Rewrite files in place; stdin is fixed onto stdout."""

    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        if policy.check_file:
            text = read_text(path, explicit, policy)
            if text is not None:
                fixed = fix_text(text, policy.corrections)
                if is_stdin_marker(path):
                    sys.stdout.buffer.write(encode(fixed))
                    sys.stdout.flush()
                elif fixed != text:
                    path.write_bytes(encode(fixed))
                    logger.info("%s: fixed", path)
        if policy.check_filename and not is_stdin_marker(path):
            fixed_name = fix_line(path.name, policy.corrections)
            if fixed_name != path.name:
                path.rename(path.with_name(fixed_name))
                logger.info("%s: renamed to %s", path, fixed_name)


class DiffTypos:
    """Print a unified diff of the fixes instead of applying them."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream
        self._lock = threading.Lock()

    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        if policy.check_filename:
            _report_filename_typos(path, policy.corrections, reporter)
        if not policy.check_file:
            return
        text = read_text(path, explicit, policy)
        if text is None:
            return
        fixed = fix_text(text, policy.corrections)
        if fixed == text:
            return
        _report_line_typos(path, text, policy.corrections, reporter)
        name = path.as_posix()
        diff = difflib.unified_diff(
            text.splitlines(keepends=True),
            fixed.splitlines(keepends=True),
            fromfile=f"original/{name}",
            tofile=f"fixed/{name}",
        )
        stream = self._stream if self._stream is not None else sys.stdout
        with self._lock:
            stream.writelines(printable(line) for line in diff)
            stream.flush()


class Identifiers:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        text = read_text(path, explicit, policy) if policy.check_file else None
        if text is None:
            return
        for line in text.splitlines():
            for _offset, identifier in iter_identifiers(line):
                reporter.report(ParseMessage(path=path, kind="identifier", data=identifier))


class Words:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        text = read_text(path, explicit, policy) if policy.check_file else None
        if text is None:
            return
        for line in text.splitlines():
            for _offset, word in iter_words(line):
                reporter.report(ParseMessage(path=path, kind="word", data=word))


def _highlight(line: str, tokens: Iterator[tuple[int, str]]) -> str:
    parts: list[str] = []
    cursor = 0
    for offset, token in tokens:
        parts.append(line[cursor:offset])
        parts.append(typer.style(token, underline=True))
        cursor = offset + len(token)
    parts.append(line[cursor:])
    return "".join(parts)


class HighlightIdentifiers:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        text = read_text(path, explicit, policy) if policy.check_file else None
        if text is None:
            return
        for line in text.splitlines():
            reporter.report(
                ParseMessage(path=path, kind="highlight", data=_highlight(line, iter_identifiers(line)))
            )


class HighlightWords:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        text = read_text(path, explicit, policy) if policy.check_file else None
        if text is None:
            return
        for line in text.splitlines():
            reporter.report(
                ParseMessage(path=path, kind="highlight", data=_highlight(line, iter_words(line)))
            )


class FoundFiles:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        if not explicit and not policy.binary and not is_stdin_marker(path):
            with path.open("rb") as handle:
                head = handle.read(BINARY_SNIFF_BYTES)
            if is_binary(head):
                return
        reporter.report(FileMessage(path=path))


class FileTypes:
    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        reporter.report(FileTypeMessage(path=path, file_type=policy.file_type))


def select_checker(mode: CheckMode) -> FileChecker:
    if mode is CheckMode.FILES:
        return FoundFiles()
    if mode is CheckMode.FILE_TYPES:
        return FileTypes()
    if mode is CheckMode.HIGHLIGHT_IDENTIFIERS:
        return HighlightIdentifiers()
    if mode is CheckMode.IDENTIFIERS:
        return Identifiers()
    if mode is CheckMode.HIGHLIGHT_WORDS:
        return HighlightWords()
    if mode is CheckMode.WORDS:
        return Words()
    if mode is CheckMode.WRITE_CHANGES:
        return FixTypos()
    if mode is CheckMode.DIFF:
        return DiffTypos()
    return Typos()
