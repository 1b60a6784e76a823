"""Report sinks for check results.

Every reporter may be called from several walk workers at once; writes are
serialized with a per-reporter lock. ``generate_final_result`` runs once after
the last path and is the only place a reporter emits collected output.
"""

from __future__ import annotations

import json
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, TextIO, Union

from typowalk import __version__


@dataclass(frozen=True)
class FileMessage:
    path: Path


@dataclass(frozen=True)
class FileTypeMessage:
    path: Path
    file_type: str | None


@dataclass(frozen=True)
class ParseMessage:
    path: Path
    kind: str
    data: str


@dataclass(frozen=True)
class TypoMessage:
    path: Path
    line_num: int
    column: int
    typo: str
    corrections: tuple[str, ...]
    line: str = ""
    in_filename: bool = False


@dataclass(frozen=True)
class ErrorMessage:
    msg: str
    path: Path | None = None


Message = Union[FileMessage, FileTypeMessage, ParseMessage, TypoMessage, ErrorMessage]


def message_payload(msg: Message) -> dict[str, object]:
    kind = {
        FileMessage: "file",
        FileTypeMessage: "file_type",
        ParseMessage: "parse",
        TypoMessage: "typo",
        ErrorMessage: "error",
    }[type(msg)]
    payload: dict[str, object] = {"type": kind}
    for key, value in asdict(msg).items():
        if isinstance(value, Path):
            value = value.as_posix()
        elif isinstance(value, tuple):
            value = list(value)
        payload[key] = value
    return payload


class Report(Protocol):
    def report(self, msg: Message) -> None: ...

    def generate_final_result(self) -> None: ...


class MessageStatus:
    """Forward messages while recording whether typos or errors were seen."""

    def __init__(self, reporter: Report):
        self._reporter = reporter
        self._lock = threading.Lock()
        self._typos_found = False
        self._errors_found = False

    def typos_found(self) -> bool:
        return self._typos_found

    def errors_found(self) -> bool:
        return self._errors_found

    def report(self, msg: Message) -> None:
        with self._lock:
            if isinstance(msg, TypoMessage):
                self._typos_found = True
            elif isinstance(msg, ErrorMessage):
                self._errors_found = True
        self._reporter.report(msg)

    def generate_final_result(self) -> None:
        self._reporter.generate_final_result()


class PrintSilent:
    def report(self, msg: Message) -> None:
        return None

    def generate_final_result(self) -> None:
        return None


def printable(text: str) -> str:
    """Replace undecodable bytes carried as lone surrogates."""
    return text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


class _StreamReporter:
    def __init__(self, stream: TextIO | None = None, err_stream: TextIO | None = None):
        self._stream = stream
        self._err_stream = err_stream
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def err_stream(self) -> TextIO:
        return self._err_stream if self._err_stream is not None else sys.stderr

    def _write(self, text: str, *, err: bool = False) -> None:
        target = self.err_stream if err else self.stream
        text = printable(text)
        with self._lock:
            target.write(text)
            target.flush()

    def _write_error(self, msg: ErrorMessage) -> None:
        where = f" ({msg.path.as_posix()})" if msg.path is not None else ""
        self._write(f"error: {msg.msg}{where}\n", err=True)

    def generate_final_result(self) -> None:
        return None


class _TextReporter(_StreamReporter, ABC):
    def report(self, msg: Message) -> None:
        if isinstance(msg, TypoMessage):
            self._write(self.format_typo(msg))
        elif isinstance(msg, FileMessage):
            self._write(f"{msg.path.as_posix()}\n")
        elif isinstance(msg, FileTypeMessage):
            self._write(f"{msg.path.as_posix()}:{msg.file_type or '-'}\n")
        elif isinstance(msg, ParseMessage):
            self._write(f"{msg.data}\n")
        elif isinstance(msg, ErrorMessage):
            self._write_error(msg)

    @abstractmethod
    def format_typo(self, msg: TypoMessage) -> str: ...


def _corrections_text(msg: TypoMessage) -> str:
    return ", ".join(f"`{correction}`" for correction in msg.corrections)


class PrintBrief(_TextReporter):
    def format_typo(self, msg: TypoMessage) -> str:
        return (
            f"{msg.path.as_posix()}:{msg.line_num}:{msg.column}: "
            f"`{msg.typo}` -> {_corrections_text(msg)}\n"
        )


class PrintLong(_TextReporter):
    def format_typo(self, msg: TypoMessage) -> str:
        header = f"error: `{msg.typo}` should be {_corrections_text(msg)}\n"
        if msg.in_filename:
            return header + f"  --> {msg.path.as_posix()}\n"
        gutter = str(msg.line_num)
        pad = " " * len(gutter)
        marker = " " * (msg.column - 1) + "^" * len(msg.typo)
        return (
            header
            + f"  --> {msg.path.as_posix()}:{msg.line_num}:{msg.column}\n"
            + f"{pad} |\n"
            + f"{gutter} | {msg.line.rstrip()}\n"
            + f"{pad} | {marker}\n"
            + f"{pad} |\n"
        )


class PrintJson(_StreamReporter):
    def report(self, msg: Message) -> None:
        self._write(json.dumps(message_payload(msg), sort_keys=True) + "\n")


class PrintSarif(_StreamReporter):
    """Collect typos and emit one SARIF log at the end of the run."""

    def __init__(self, stream: TextIO | None = None, err_stream: TextIO | None = None):
        super().__init__(stream, err_stream)
        self._results: list[dict[str, object]] = []

    def report(self, msg: Message) -> None:
        if isinstance(msg, TypoMessage):
            with self._lock:
                self._results.append(_sarif_result(msg))
        elif isinstance(msg, ErrorMessage):
            self._write_error(msg)

    def generate_final_result(self) -> None:
        with self._lock:
            results = list(self._results)
        log = {
            "$schema": "https://json.schemastore.org/sarif-2.1.0.json",
            "version": "2.1.0",
            "runs": [
                {
                    "tool": {"driver": {"name": "typowalk", "version": __version__}},
                    "results": results,
                }
            ],
        }
        self._write(json.dumps(log, indent=2, sort_keys=True) + "\n")


def _sarif_result(msg: TypoMessage) -> dict[str, object]:
    location: dict[str, object] = {"artifactLocation": {"uri": msg.path.as_posix()}}
    if not msg.in_filename:
        location["region"] = {
            "startLine": msg.line_num,
            "startColumn": msg.column,
            "endColumn": msg.column + len(msg.typo),
        }
    return {
        "ruleId": "typo",
        "level": "error",
        "message": {"text": f"`{msg.typo}` should be {_corrections_text(msg)}"},
        "locations": [{"physicalLocation": location}],
    }


class ReportFormat(str, Enum):
    SILENT = "silent"
    BRIEF = "brief"
    LONG = "long"
    JSON = "json"
    SARIF = "sarif"


def reporter_for(
    report_format: ReportFormat,
    *,
    stream: TextIO | None = None,
    err_stream: TextIO | None = None,
) -> Report:
    if report_format is ReportFormat.SILENT:
        return PrintSilent()
    if report_format is ReportFormat.BRIEF:
        return PrintBrief(stream, err_stream)
    if report_format is ReportFormat.JSON:
        return PrintJson(stream, err_stream)
    if report_format is ReportFormat.SARIF:
        return PrintSarif(stream, err_stream)
    return PrintLong(stream, err_stream)
