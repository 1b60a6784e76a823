from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
import typer

from typowalk.checks import CheckMode
from typowalk.config import Config, DefaultConfig, FilesConfig
from typowalk.exceptions import TypowalkError
from typowalk.orchestrator import RunOptions, run
from typowalk.report import ReportFormat
from typowalk.runtime.env_policy import default_thread_count
from typowalk.runtime.exit_policy import ExitCode

app = typer.Typer(add_completion=False)

_LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return f"[{record.levelname.lower()}] {record.getMessage()}"


def init_logging(verbosity: int, *, quiet: bool = False) -> None:
    if quiet:
        level = logging.ERROR
    else:
        level = _LOG_LEVELS[min(max(verbosity, 0), len(_LOG_LEVELS) - 1)]
    root = logging.getLogger("typowalk")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_LowercaseLevelFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def select_mode(
    *,
    files: bool,
    file_types: bool,
    highlight_identifiers: bool,
    identifiers: bool,
    highlight_words: bool,
    words: bool,
    write_changes: bool,
    diff: bool,
) -> CheckMode:
    requested = [
        mode
        for mode, enabled in (
            (CheckMode.FILES, files),
            (CheckMode.FILE_TYPES, file_types),
            (CheckMode.HIGHLIGHT_IDENTIFIERS, highlight_identifiers),
            (CheckMode.IDENTIFIERS, identifiers),
            (CheckMode.HIGHLIGHT_WORDS, highlight_words),
            (CheckMode.WORDS, words),
            (CheckMode.WRITE_CHANGES, write_changes),
            (CheckMode.DIFF, diff),
        )
        if enabled
    ]
    if len(requested) > 1:
        flags = ", ".join(f"--{mode.value}" for mode in requested)
        raise typer.BadParameter(f"Use only one of {flags}.")
    return requested[0] if requested else CheckMode.TYPOS


def build_overrides(
    *,
    exclude: List[str] | None,
    hidden: bool | None,
    no_ignore: bool,
    no_ignore_dot: bool,
    no_ignore_vcs: bool,
    no_ignore_global: bool,
    no_ignore_parent: bool,
    binary: bool | None,
) -> Config:
    return Config(
        files=FilesConfig(
            extend_exclude=list(exclude or []),
            ignore_hidden=None if hidden is None else not hidden,
            ignore_files=False if no_ignore else None,
            ignore_dot=False if no_ignore_dot else None,
            ignore_vcs=False if no_ignore_vcs else None,
            ignore_global=False if no_ignore_global else None,
            ignore_parent=False if no_ignore_parent else None,
        ),
        default=DefaultConfig(binary=binary),
    )


@app.command()
def check(
    paths: Optional[List[Path]] = typer.Argument(None, help="Paths to check; `-` reads stdin."),
    file_list: Optional[Path] = typer.Option(
        None, "--file-list", help="Read paths to check from a file, one per line; `-` for stdin."
    ),
    force_exclude: bool = typer.Option(
        False, "--force-exclude", help="Respect excluded files even for paths passed explicitly."
    ),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", help="Ignore files and directories matching the glob."),
    hidden: Optional[bool] = typer.Option(None, "--hidden/--no-hidden", help="Search hidden files and directories."),
    no_ignore: bool = typer.Option(False, "--no-ignore", help="Don't respect ignore files."),
    no_ignore_dot: bool = typer.Option(False, "--no-ignore-dot"),
    no_ignore_vcs: bool = typer.Option(False, "--no-ignore-vcs"),
    no_ignore_global: bool = typer.Option(False, "--no-ignore-global"),
    no_ignore_parent: bool = typer.Option(False, "--no-ignore-parent"),
    binary: Optional[bool] = typer.Option(None, "--binary/--no-binary", help="Search binary files."),
    custom_config: Optional[Path] = typer.Option(None, "--config", "-c", help="Custom config file."),
    isolated: bool = typer.Option(False, "--isolated", help="Ignore implicit configuration files."),
    threads: Optional[int] = typer.Option(None, "--threads", "-j", min=0, help="Threads per path; 0 picks automatically."),
    sort: bool = typer.Option(False, "--sort", help="Sort results; forces a single thread."),
    report_format: ReportFormat = typer.Option(ReportFormat.LONG, "--format", case_sensitive=False),
    files: bool = typer.Option(False, "--files", help="Print each file that would be checked."),
    file_types: bool = typer.Option(False, "--file-types", help="Print each file's type."),
    highlight_identifiers: bool = typer.Option(False, "--highlight-identifiers"),
    identifiers: bool = typer.Option(False, "--identifiers", help="Print each identifier that would be checked."),
    highlight_words: bool = typer.Option(False, "--highlight-words"),
    words: bool = typer.Option(False, "--words", help="Print each word that would be checked."),
    write_changes: bool = typer.Option(False, "--write-changes", "-w", help="Write fixes out."),
    diff: bool = typer.Option(False, "--diff", help="Print a diff of what would change."),
    dump_config: Optional[Path] = typer.Option(None, "--dump-config", help="Write the effective config (`-` for stdout)."),
    type_list: bool = typer.Option(False, "--type-list", help="Show all supported file types."),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True),
    quiet: bool = typer.Option(False, "--quiet", "-q"),
) -> None:
    """Check files for typos listed in the configured corrections table."""
    init_logging(verbose, quiet=quiet)
    if paths and file_list is not None:
        raise typer.BadParameter("Use PATH arguments or --file-list, not both.")
    mode = select_mode(
        files=files,
        file_types=file_types,
        highlight_identifiers=highlight_identifiers,
        identifiers=identifiers,
        highlight_words=highlight_words,
        words=words,
        write_changes=write_changes,
        diff=diff,
    )
    try:
        options = RunOptions(
            paths=tuple(paths) if paths else (Path("."),),
            file_list=file_list,
            threads=threads if threads is not None else default_thread_count(),
            sort=sort,
            force_exclude=force_exclude,
            mode=mode,
            report_format=report_format,
            isolated=isolated,
            custom_config=custom_config,
            overrides=build_overrides(
                exclude=exclude,
                hidden=hidden,
                no_ignore=no_ignore,
                no_ignore_dot=no_ignore_dot,
                no_ignore_vcs=no_ignore_vcs,
                no_ignore_global=no_ignore_global,
                no_ignore_parent=no_ignore_parent,
                binary=binary,
            ),
        )
        exit_code = run(options, dump_config=dump_config, type_list=type_list)
    except TypowalkError as exc:
        typer.secho(exc.message, err=True, fg=typer.colors.RED)
        raise typer.Exit(code=int(exc.exit_code))
    raise typer.Exit(code=int(exit_code))


def main(argv: list[str] | None = None) -> int:
    """Console entry point; usage errors exit with the sysexits usage code."""
    try:
        result = app(args=argv, prog_name="typowalk", standalone_mode=False)
    except click.exceptions.UsageError as exc:
        exc.show()
        return int(ExitCode.USAGE)
    except click.exceptions.Abort:
        typer.echo("Aborted!", err=True)
        return int(ExitCode.SIGINT)
    return int(result or 0)
