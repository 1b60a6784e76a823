"""Directory-scoped policy engine.

Configuration is resolved once per working context with :meth:`ConfigEngine.init_dir`
and read back by the walk (:meth:`ConfigEngine.walk`) and by file checkers
(:meth:`ConfigEngine.policy`). Lookups never load new directories, so the
engine can be shared read-only by parallel walk workers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from typowalk.config import Config, DefaultConfig, FilesConfig, find_config, merge_config
from typowalk.file_types import TypeMatcher, build_type_matcher


@dataclass(frozen=True)
class IgnorePolicy:
    ignore_hidden: bool = True
    ignore_dot: bool = True
    ignore_vcs: bool = True
    ignore_global: bool = True
    ignore_parent: bool = True
    extend_exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class FilePolicy:
    check_filename: bool = True
    check_file: bool = True
    binary: bool = False
    file_type: str | None = None
    corrections: Mapping[str, str] = field(default_factory=dict)


def _pick(value: bool | None, default: bool) -> bool:
    return default if value is None else value


def ignore_policy_from_files(files: FilesConfig) -> IgnorePolicy:
    ignore_files = _pick(files.ignore_files, True)
    ignore_vcs = _pick(files.ignore_vcs, ignore_files)
    return IgnorePolicy(
        ignore_hidden=_pick(files.ignore_hidden, True),
        ignore_dot=_pick(files.ignore_dot, ignore_files),
        ignore_vcs=ignore_vcs,
        ignore_global=_pick(files.ignore_global, ignore_vcs),
        ignore_parent=_pick(files.ignore_parent, ignore_files),
        extend_exclude=tuple(files.extend_exclude),
    )


@dataclass(frozen=True)
class _DirPolicy:
    config: Config
    walk: IgnorePolicy
    types: TypeMatcher
    corrections: Mapping[str, str]


class ConfigEngine:
    def __init__(
        self,
        *,
        isolated: bool = False,
        overrides: Config | None = None,
        find_config_fn: Callable[[Path], Config | None] = find_config,
    ):
        self._isolated = isolated
        self._overrides = overrides if overrides is not None else Config()
        self._find_config = find_config_fn
        self._dirs: dict[Path, _DirPolicy] = {}

    def set_isolated(self, isolated: bool) -> None:
        self._isolated = isolated

    def set_overrides(self, overrides: Config) -> None:
        self._overrides = overrides

    def load_config(self, cwd: Path) -> Config:
        config = Config()
        if not self._isolated:
            found = self._find_config(cwd)
            if found is not None:
                config = merge_config(config, found)
        return merge_config(config, self._overrides)

    def init_dir(self, cwd: Path) -> None:
        if cwd in self._dirs:
            return
        config = self.load_config(cwd)
        types = build_type_matcher(
            {name: type_config.extend_glob for name, type_config in config.type.items()}
        )
        self._dirs[cwd] = _DirPolicy(
            config=config,
            walk=ignore_policy_from_files(config.files),
            types=types,
            corrections={
                typo.lower(): correction
                for typo, correction in config.default.extend_words.items()
            },
        )

    def _dir(self, cwd: Path) -> _DirPolicy:
        try:
            return self._dirs[cwd]
        except KeyError:
            raise KeyError(f"{cwd} was not initialized; call init_dir first") from None

    def walk(self, cwd: Path) -> IgnorePolicy:
        return self._dir(cwd).walk

    def file_types(self, cwd: Path) -> dict[str, list[str]]:
        return self._dir(cwd).types.definitions

    def _nearest_dir(self, path: Path) -> _DirPolicy | None:
        for directory in (path, *path.parents):
            found = self._dirs.get(directory)
            if found is not None:
                return found
        return None

    def policy(self, path: Path) -> FilePolicy:
        """Per-file policy from the closest initialized directory above ``path``."""
        dir_policy = self._nearest_dir(path)
        if dir_policy is None:
            return FilePolicy()
        file_type = dir_policy.types.file_type(path)
        default = dir_policy.config.default
        type_config = dir_policy.config.type.get(file_type) if file_type else None
        if type_config is not None:
            default = DefaultConfig(
                binary=_first(type_config.binary, default.binary),
                check_filename=_first(type_config.check_filename, default.check_filename),
                check_file=_first(type_config.check_file, default.check_file),
            )
        return FilePolicy(
            check_filename=_pick(default.check_filename, True),
            check_file=_pick(default.check_file, True),
            binary=_pick(default.binary, False),
            file_type=file_type,
            corrections=dir_policy.corrections,
        )


def _first(value: bool | None, fallback: bool | None) -> bool | None:
    return fallback if value is None else value
