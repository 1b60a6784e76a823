from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import Dict, List, Optional, TypeAlias
import tomllib

from pydantic import BaseModel, ConfigDict, ValidationError

from typowalk.exceptions import ConfigError

CONFIG_FILE_NAMES: tuple[str, ...] = ("typowalk.toml", "_typowalk.toml", ".typowalk.toml")
PYPROJECT_NAME = "pyproject.toml"
PYPROJECT_SECTION = ("tool", "typowalk")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class _ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=_kebab, populate_by_name=True, extra="forbid")


class FilesConfig(_ConfigModel):
    extend_exclude: List[str] = []
    ignore_hidden: Optional[bool] = None
    ignore_files: Optional[bool] = None
    ignore_dot: Optional[bool] = None
    ignore_vcs: Optional[bool] = None
    ignore_global: Optional[bool] = None
    ignore_parent: Optional[bool] = None


class DefaultConfig(_ConfigModel):
    binary: Optional[bool] = None
    check_filename: Optional[bool] = None
    check_file: Optional[bool] = None
    extend_words: Dict[str, str] = {}


class TypeConfig(_ConfigModel):
    extend_glob: List[str] = []
    binary: Optional[bool] = None
    check_filename: Optional[bool] = None
    check_file: Optional[bool] = None


class Config(_ConfigModel):
    files: FilesConfig = FilesConfig()
    default: DefaultConfig = DefaultConfig()
    type: Dict[str, TypeConfig] = {}

    @classmethod
    def from_defaults(cls) -> "Config":
        return cls(
            files=FilesConfig(
                ignore_hidden=True,
                ignore_files=True,
                ignore_dot=True,
                ignore_vcs=True,
                ignore_global=True,
                ignore_parent=True,
            ),
            default=DefaultConfig(binary=False, check_filename=True, check_file=True),
        )

    def dump(self) -> TomlTable:
        return self.model_dump(by_alias=True, exclude_none=True)


def _overlay_scalars(overlay: _ConfigModel, names: tuple[str, ...]) -> dict[str, object]:
    updates: dict[str, object] = {}
    for name in names:
        value = getattr(overlay, name)
        if value is not None:
            updates[name] = value
    return updates


def merge_files(base: FilesConfig, overlay: FilesConfig) -> FilesConfig:
    updates = _overlay_scalars(
        overlay,
        ("ignore_hidden", "ignore_files", "ignore_dot", "ignore_vcs", "ignore_global", "ignore_parent"),
    )
    updates["extend_exclude"] = [*base.extend_exclude, *overlay.extend_exclude]
    return base.model_copy(update=updates)


def merge_default(base: DefaultConfig, overlay: DefaultConfig) -> DefaultConfig:
    updates = _overlay_scalars(overlay, ("binary", "check_filename", "check_file"))
    updates["extend_words"] = {**base.extend_words, **overlay.extend_words}
    return base.model_copy(update=updates)


def merge_type(base: TypeConfig, overlay: TypeConfig) -> TypeConfig:
    updates = _overlay_scalars(overlay, ("binary", "check_filename", "check_file"))
    updates["extend_glob"] = [*base.extend_glob, *overlay.extend_glob]
    return base.model_copy(update=updates)


def merge_config(base: Config, overlay: Config) -> Config:
    """Layer ``overlay`` on ``base``; unset overlay values keep the base value."""
    types = dict(base.type)
    for name, type_config in overlay.type.items():
        types[name] = merge_type(types[name], type_config) if name in types else type_config
    return base.model_copy(
        update={
            "files": merge_files(base.files, overlay.files),
            "default": merge_default(base.default, overlay.default),
            "type": types,
        }
    )


def _load_toml(path: Path, *, required: bool = False) -> TomlTable | None:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        if required:
            raise ConfigError(f"could not read config `{path}`: {exc}") from exc
        return None
    except OSError as exc:
        raise ConfigError(f"could not read config `{path}`: {exc}") from exc
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in `{path}`: {exc}") from exc
    return data


def config_from_table(table: TomlTable, *, source: Path | None = None) -> Config:
    try:
        return Config.model_validate(table)
    except ValidationError as exc:
        where = f" in `{source}`" if source is not None else ""
        raise ConfigError(f"invalid configuration{where}: {exc}") from exc


def _pyproject_section(table: TomlTable) -> TomlTable | None:
    section: TomlValue = table
    for key in PYPROJECT_SECTION:
        if not isinstance(section, dict):
            return None
        section = section.get(key)
    return section if isinstance(section, dict) else None


def config_from_file(path: Path, *, required: bool = False) -> Config | None:
    """Load one config file; a missing file is an error only when ``required``."""
    data = _load_toml(path, required=required)
    if data is None:
        return None
    if path.name == PYPROJECT_NAME:
        data = _pyproject_section(data)
        if data is None:
            return None
    return config_from_table(data, source=path)


def find_config(cwd: Path) -> Config | None:
    """Return the first config found walking up from ``cwd``."""
    for directory in (cwd, *cwd.parents):
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return config_from_file(candidate)
        pyproject = directory / PYPROJECT_NAME
        if pyproject.is_file():
            config = config_from_file(pyproject)
            if config is not None:
                return config
    return None
