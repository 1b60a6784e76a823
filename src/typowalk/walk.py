"""Filesystem walk honoring ignore files and custom excludes.

The walk mirrors git's view of a tree: hidden entries, ``.ignore`` files,
``.gitignore`` files, ``.git/info/exclude`` and the user's global excludes
file each have their own toggle in :class:`WalkSettings`. Custom exclude
patterns are layered on top as a per-entry filter. The root of a walk is
always yielded, whatever the rules say about it.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator

from typowalk.exclusion import ExclusionTest, Match
from typowalk.runtime.path_policy import is_stdin_marker

if TYPE_CHECKING:
    from typowalk.checks import FileChecker
    from typowalk.policy import ConfigEngine, IgnorePolicy
    from typowalk.report import Report

logger = logging.getLogger(__name__)

DOT_IGNORE_NAME = ".ignore"
GIT_IGNORE_NAME = ".gitignore"
GIT_DIR_NAME = ".git"

Scandir = Callable[[Path], Any]


@dataclass(frozen=True)
class WalkSettings:
    hidden: bool = True
    ignore_dot: bool = True
    git_global: bool = True
    git_ignore: bool = True
    git_exclude: bool = True
    parents: bool = True
    threads: int = 1
    sort: bool = False
    exclusion: ExclusionTest | None = None

    @property
    def uses_git(self) -> bool:
        return self.git_ignore or self.git_exclude or self.git_global


def build_walk_settings(
    policy: IgnorePolicy,
    *,
    threads: int,
    sort: bool,
    exclusion: ExclusionTest | None,
) -> WalkSettings:
    return WalkSettings(
        hidden=policy.ignore_hidden,
        ignore_dot=policy.ignore_dot,
        git_global=policy.ignore_global,
        git_ignore=policy.ignore_vcs,
        git_exclude=policy.ignore_vcs,
        parents=policy.ignore_parent,
        threads=threads,
        sort=sort,
        exclusion=exclusion,
    )


@dataclass(frozen=True)
class WalkEntry:
    path: Path
    is_dir: bool
    depth: int
    is_stdin: bool = False


@dataclass(frozen=True)
class _IgnoreFile:
    base: Path
    test: ExclusionTest

    def matched(self, path: Path, is_dir: bool) -> Match:
        try:
            relative = path.relative_to(self.base)
        except ValueError:
            return Match.NONE
        return self.test.matched(relative, is_dir)


# One layer per directory, deepest last; files inside a layer in precedence order.
_Scope = tuple[tuple[_IgnoreFile, ...], ...]


def _load_ignore_file(path: Path, base: Path) -> _IgnoreFile | None:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("could not read ignore file %s: %s", path, exc)
        return None
    return _IgnoreFile(base=base, test=ExclusionTest.from_ignore_file(text.splitlines(), source=path))


def find_repo_root(directory: Path) -> Path | None:
    for candidate in (directory, *directory.parents):
        if (candidate / GIT_DIR_NAME).exists():
            return candidate
    return None


def global_excludes_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "git" / "ignore"


class IgnoreRules:
    """Structural ignore policy for one walk root."""

    def __init__(self, settings: WalkSettings, root: Path):
        self._settings = settings
        self._root = root
        self._repo_root = find_repo_root(root) if settings.uses_git else None
        fallbacks: list[_IgnoreFile] = []
        if self._repo_root is not None:
            if settings.git_exclude:
                exclude = _load_ignore_file(
                    self._repo_root / GIT_DIR_NAME / "info" / "exclude", self._repo_root
                )
                if exclude is not None:
                    fallbacks.append(exclude)
            if settings.git_global:
                global_file = _load_ignore_file(global_excludes_path(), self._repo_root)
                if global_file is not None:
                    fallbacks.append(global_file)
        self._fallbacks = tuple(fallbacks)

    def _layer(self, directory: Path) -> tuple[_IgnoreFile, ...]:
        files: list[_IgnoreFile] = []
        if self._settings.ignore_dot:
            dot = _load_ignore_file(directory / DOT_IGNORE_NAME, directory)
            if dot is not None:
                files.append(dot)
        if self._settings.git_ignore and self._in_repo(directory):
            git = _load_ignore_file(directory / GIT_IGNORE_NAME, directory)
            if git is not None:
                files.append(git)
        return tuple(files)

    def _in_repo(self, directory: Path) -> bool:
        if self._repo_root is None:
            return False
        return directory == self._repo_root or self._repo_root in directory.parents

    def root_scope(self) -> _Scope:
        layers: list[tuple[_IgnoreFile, ...]] = []
        if self._settings.parents:
            for ancestor in reversed(self._root.parents):
                layers.append(self._layer(ancestor))
        layers.append(self._layer(self._root))
        return tuple(layer for layer in layers if layer)

    def child_scope(self, scope: _Scope, directory: Path) -> _Scope:
        layer = self._layer(directory)
        return (*scope, layer) if layer else scope

    def matched(self, scope: _Scope, path: Path, is_dir: bool) -> Match:
        for layer in reversed(scope):
            for ignore_file in layer:
                matched = ignore_file.matched(path, is_dir)
                if matched is not Match.NONE:
                    return matched
        for ignore_file in self._fallbacks:
            matched = ignore_file.matched(path, is_dir)
            if matched is not Match.NONE:
                return matched
        return Match.NONE


@dataclass(frozen=True)
class _Directory:
    path: Path
    absolute: Path
    scope: _Scope
    depth: int


class _Walker:
    def __init__(self, settings: WalkSettings, root: Path, *, scandir: Scandir = os.scandir):
        self.settings = settings
        self.root = root
        self.scandir = scandir
        self.rules = IgnoreRules(settings, Path(os.path.abspath(root)))

    def root_directory(self) -> _Directory:
        absolute = Path(os.path.abspath(self.root))
        return _Directory(path=self.root, absolute=absolute, scope=self.rules.root_scope(), depth=0)

    def children(self, directory: _Directory) -> tuple[list[WalkEntry], list[_Directory]]:
        """List one directory, returning kept files and kept subdirectories."""
        with self.scandir(directory.path) as iterator:
            raw = list(iterator)
        files: list[WalkEntry] = []
        dirs: list[_Directory] = []
        depth = directory.depth + 1
        for item in raw:
            is_dir = item.is_dir(follow_symlinks=False)
            if not is_dir and not item.is_file(follow_symlinks=False):
                continue
            if self.settings.hidden and item.name.startswith("."):
                continue
            absolute = directory.absolute / item.name
            if self.rules.matched(directory.scope, absolute, is_dir) is Match.IGNORE:
                continue
            path = directory.path / item.name
            exclusion = self.settings.exclusion
            if exclusion is not None and not exclusion.keep(path, is_dir):
                continue
            if is_dir:
                dirs.append(
                    _Directory(
                        path=path,
                        absolute=absolute,
                        scope=self.rules.child_scope(directory.scope, absolute),
                        depth=depth,
                    )
                )
            else:
                files.append(WalkEntry(path=path, is_dir=False, depth=depth))
        return files, dirs

    def iter_sequential(self, directory: _Directory) -> Iterator[WalkEntry]:
        files, dirs = self.children(directory)
        if self.settings.sort:
            ordered: list[WalkEntry | _Directory] = sorted(
                [*files, *dirs], key=lambda item: item.path.name
            )
        else:
            ordered = [*files, *dirs]
        for item in ordered:
            if isinstance(item, WalkEntry):
                yield item
            else:
                yield WalkEntry(path=item.path, is_dir=True, depth=item.depth)
                yield from self.iter_sequential(item)


def walk_entries(settings: WalkSettings, root: Path, *, scandir: Scandir = os.scandir) -> Iterator[WalkEntry]:
    """Yield the root and every kept entry below it, depth first."""
    if is_stdin_marker(root):
        yield WalkEntry(path=root, is_dir=False, depth=0, is_stdin=True)
        return
    root_is_dir = root.is_dir()
    yield WalkEntry(path=root, is_dir=root_is_dir, depth=0)
    if not root_is_dir:
        return
    walker = _Walker(settings, root, scandir=scandir)
    yield from walker.iter_sequential(walker.root_directory())


def check_entry(
    entry: WalkEntry,
    checker: FileChecker,
    engine: ConfigEngine,
    reporter: Report,
    *,
    force_exclude: bool,
    cwd: Path,
) -> None:
    if entry.is_dir:
        return
    explicit = entry.depth == 0 and not force_exclude
    if entry.is_stdin:
        lookup_path = cwd / "-"
    else:
        lookup_path = entry.path.resolve(strict=True)
    policy = engine.policy(lookup_path)
    checker.check_file(entry.path, explicit, policy, reporter)


def walk_path(
    settings: WalkSettings,
    root: Path,
    checker: FileChecker,
    engine: ConfigEngine,
    reporter: Report,
    *,
    force_exclude: bool,
    cwd: Path,
    scandir: Scandir = os.scandir,
) -> None:
    for entry in walk_entries(settings, root, scandir=scandir):
        check_entry(entry, checker, engine, reporter, force_exclude=force_exclude, cwd=cwd)


def walk_path_parallel(
    settings: WalkSettings,
    root: Path,
    checker: FileChecker,
    engine: ConfigEngine,
    reporter: Report,
    *,
    force_exclude: bool,
    cwd: Path,
    scandir: Scandir = os.scandir,
) -> None:
    """Walk ``root`` with a pool of ``settings.threads`` workers.

    Each task lists one directory, checks its files and hands its
    subdirectories back for scheduling. Visitation order is unspecified.
    The first failing task cancels everything not yet started and its
    exception propagates once running tasks have finished.
    """
    if is_stdin_marker(root) or not root.is_dir():
        walk_path(
            settings, root, checker, engine, reporter,
            force_exclude=force_exclude, cwd=cwd, scandir=scandir,
        )
        return
    walker = _Walker(settings, root, scandir=scandir)

    def _visit(directory: _Directory) -> list[_Directory]:
        files, dirs = walker.children(directory)
        for entry in files:
            check_entry(entry, checker, engine, reporter, force_exclude=force_exclude, cwd=cwd)
        return dirs

    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, settings.threads)) as executor:
        pending = {executor.submit(_visit, walker.root_directory())}
        while pending:
            done, pending = concurrent.futures.wait(
                pending, return_when=concurrent.futures.FIRST_COMPLETED
            )
            for future in done:
                try:
                    subdirs = future.result()
                except BaseException:
                    for other in pending:
                        other.cancel()
                    raise
                for subdir in subdirs:
                    pending.add(executor.submit(_visit, subdir))
