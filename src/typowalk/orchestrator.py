"""Run loop: resolve, compose, walk and aggregate, one input path at a time.

Paths are processed strictly in the order given. Any usage, configuration or
I/O error ends the run at the path where it happened; findings do not.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, TextIO

from typowalk.checks import CheckMode, FileChecker, select_checker
from typowalk.config import Config, config_from_file, merge_config
from typowalk.exceptions import UsageError, WalkIOError
from typowalk.exclusion import AncestorVerdict, compile_exclusion, prefilter_root
from typowalk.policy import ConfigEngine
from typowalk.report import MessageStatus, PrintSilent, Report, ReportFormat, reporter_for
from typowalk.runtime.env_policy import auto_thread_count
from typowalk.runtime.exit_policy import ExitCode
from typowalk.runtime.path_policy import (
    STDIN_MARKER,
    is_stdin_marker,
    process_cwd,
    read_file_list,
    resolve_working_context,
)
from typowalk.walk import Scandir, build_walk_settings, walk_path, walk_path_parallel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    paths: tuple[Path, ...] = (Path("."),)
    file_list: Path | None = None
    threads: int = 0
    sort: bool = False
    force_exclude: bool = False
    mode: CheckMode = CheckMode.TYPOS
    report_format: ReportFormat = ReportFormat.LONG
    isolated: bool = False
    custom_config: Path | None = None
    overrides: Config = field(default_factory=Config)


@dataclass
class RunContext:
    """Process-wide inputs, passed explicitly so runs can be driven in tests."""

    cwd: Path
    engine: ConfigEngine
    stdin: TextIO = field(default_factory=lambda: sys.stdin)
    stdout: TextIO | None = None
    scandir: Scandir = os.scandir


@dataclass(frozen=True)
class PathOutcome:
    typos_found: bool = False
    errors_found: bool = False


@dataclass
class RunResult:
    typos_found: bool = False
    errors_found: bool = False

    def merge(self, outcome: PathOutcome) -> None:
        self.typos_found = self.typos_found or outcome.typos_found
        self.errors_found = self.errors_found or outcome.errors_found

    def finalize(self, reporter: Report) -> None:
        try:
            reporter.generate_final_result()
        except Exception as exc:
            self.errors_found = True
            logger.error("could not render end-report: %s", exc)

    def classify(self) -> ExitCode:
        if self.errors_found:
            return ExitCode.FAILURE
        if self.typos_found:
            return ExitCode.TYPOS
        return ExitCode.SUCCESS


def resolve_thread_count(path: Path, *, threads: int, sort: bool) -> int:
    """Sorted output and single files are always walked on one thread."""
    if sort or path.is_file():
        return 1
    if threads == 0:
        return auto_thread_count()
    return threads


def build_engine(options: RunOptions) -> ConfigEngine:
    overrides = Config()
    if options.custom_config is not None:
        custom = config_from_file(options.custom_config, required=True)
        if custom is not None:
            overrides = merge_config(overrides, custom)
    overrides = merge_config(overrides, options.overrides)
    return ConfigEngine(isolated=options.isolated, overrides=overrides)


def build_context(options: RunOptions) -> RunContext:
    return RunContext(cwd=process_cwd(), engine=build_engine(options))


def input_paths(options: RunOptions, context: RunContext) -> list[Path]:
    """Collect the paths to check, rejecting `-` in a file list before any walk."""
    if options.file_list is None:
        return list(options.paths)
    paths = read_file_list(options.file_list, stdin=context.stdin)
    if any(is_stdin_marker(path) for path in paths):
        raise UsageError("Can't use `-` (stdin) while using `--file-list` provided paths")
    return paths


def check_path(
    path: Path,
    options: RunOptions,
    context: RunContext,
    checker: FileChecker,
    reporter: Report,
) -> PathOutcome:
    """Walk one input path and report whether it produced typos or errors."""
    cwd = resolve_working_context(
        path, cwd=context.cwd, file_list_mode=options.file_list is not None
    )
    engine = context.engine
    engine.init_dir(cwd)
    policy = engine.walk(cwd)

    exclusion = compile_exclusion(policy.extend_exclude)
    if exclusion is not None and options.force_exclude and not is_stdin_marker(path):
        if prefilter_root(exclusion, path) is AncestorVerdict.SKIP_ROOT:
            logger.info("%s: excluded, skipping", path)
            return PathOutcome()

    threads = 1 if is_stdin_marker(path) else resolve_thread_count(
        path, threads=options.threads, sort=options.sort
    )
    settings = build_walk_settings(policy, threads=threads, sort=options.sort, exclusion=exclusion)
    status = MessageStatus(reporter)
    walk_fn = walk_path if threads == 1 else walk_path_parallel
    logger.debug("walking %s with %d thread(s)", path, threads)
    try:
        walk_fn(
            settings,
            path,
            checker,
            engine,
            status,
            force_exclude=options.force_exclude,
            cwd=cwd,
            scandir=context.scandir,
        )
    except OSError as exc:
        raise WalkIOError.from_os_error(exc, message=f"{path}: {exc}") from exc
    return PathOutcome(typos_found=status.typos_found(), errors_found=status.errors_found())


def global_reporter(options: RunOptions, context: RunContext) -> Report:
    # Diff output goes straight to stdout; other report output would interleave with it.
    if options.mode is CheckMode.DIFF:
        return PrintSilent()
    return reporter_for(options.report_format, stream=context.stdout)


def run_checks(
    options: RunOptions,
    context: RunContext,
    *,
    checker: FileChecker | None = None,
    reporter: Report | None = None,
) -> ExitCode:
    if checker is None:
        checker = select_checker(options.mode)
    if reporter is None:
        reporter = global_reporter(options, context)
    result = RunResult()
    for path in input_paths(options, context):
        result.merge(check_path(path, options, context, checker, reporter))
    result.finalize(reporter)
    return result.classify()


def _first_context(options: RunOptions, context: RunContext) -> Path:
    paths = list(options.paths) or [STDIN_MARKER]
    return resolve_working_context(paths[0], cwd=context.cwd)


def run_dump_config(
    options: RunOptions,
    context: RunContext,
    output_path: Path,
) -> ExitCode:
    cwd = _first_context(options, context)
    config = context.engine.load_config(cwd)
    defaulted = merge_config(Config.from_defaults(), config)
    output = json.dumps(defaulted.dump(), indent=2, sort_keys=True) + "\n"
    if is_stdin_marker(output_path):
        _stdout_writer(context)(output)
    else:
        try:
            output_path.write_text(output, encoding="utf-8")
        except OSError as exc:
            raise WalkIOError.from_os_error(exc, message=f"{output_path}: {exc}") from exc
    return ExitCode.SUCCESS


def run_type_list(
    options: RunOptions,
    context: RunContext,
) -> ExitCode:
    cwd = _first_context(options, context)
    context.engine.init_dir(cwd)
    write = _stdout_writer(context)
    for name, globs in context.engine.file_types(cwd).items():
        write(f"{name}: {', '.join(globs)}\n")
    return ExitCode.SUCCESS


def _stdout_writer(context: RunContext) -> Callable[[str], None]:
    def _write(text: str) -> None:
        stream = context.stdout if context.stdout is not None else sys.stdout
        stream.write(text)

    return _write


def run(options: RunOptions, *, dump_config: Path | None = None, type_list: bool = False) -> ExitCode:
    context = build_context(options)
    if dump_config is not None:
        return run_dump_config(options, context, dump_config)
    if type_list:
        return run_type_list(options, context)
    return run_checks(options, context)
