from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from typowalk.config import (
    Config,
    DefaultConfig,
    FilesConfig,
    config_from_file,
    find_config,
    merge_config,
)
from typowalk.exceptions import ConfigError


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).strip() + "\n", encoding="utf-8")
    return path


def test_config_file_reads_kebab_case_tables(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "typowalk.toml",
        """
        [files]
        extend-exclude = ["vendor/", "*.min.js"]
        ignore-hidden = false
        ignore-vcs = false

        [default]
        binary = true
        extend-words = { teh = "the" }

        [type.py]
        extend-glob = ["*.pyw"]
        check-file = false
        """,
    )
    config = config_from_file(path)
    assert config is not None
    assert config.files.extend_exclude == ["vendor/", "*.min.js"]
    assert config.files.ignore_hidden is False
    assert config.files.ignore_vcs is False
    assert config.files.ignore_dot is None
    assert config.default.binary is True
    assert config.default.extend_words == {"teh": "the"}
    assert config.type["py"].extend_glob == ["*.pyw"]
    assert config.type["py"].check_file is False


def test_pyproject_without_tool_table_is_not_a_config(tmp_path: Path) -> None:
    path = _write(tmp_path / "pyproject.toml", '[project]\nname = "demo"\n')
    assert config_from_file(path) is None


def test_pyproject_tool_table_is_read(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "pyproject.toml",
        """
        [tool.typowalk.files]
        extend-exclude = ["docs/"]
        """,
    )
    config = config_from_file(path)
    assert config is not None
    assert config.files.extend_exclude == ["docs/"]


def test_malformed_toml_is_configuration_error(tmp_path: Path) -> None:
    path = _write(tmp_path / "typowalk.toml", "[files\n")
    with pytest.raises(ConfigError):
        config_from_file(path)


def test_unknown_key_is_configuration_error(tmp_path: Path) -> None:
    path = _write(tmp_path / "typowalk.toml", "[files]\nextend-exclud = []\n")
    with pytest.raises(ConfigError) as exc:
        config_from_file(path)
    assert str(path) in exc.value.message


def test_find_config_walks_up_from_context(tmp_path: Path) -> None:
    _write(tmp_path / "_typowalk.toml", '[files]\nextend-exclude = ["target/"]\n')
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    config = find_config(nested)
    assert config is not None
    assert config.files.extend_exclude == ["target/"]


def test_find_config_prefers_nearest_directory(tmp_path: Path) -> None:
    _write(tmp_path / "typowalk.toml", '[files]\nextend-exclude = ["outer/"]\n')
    _write(tmp_path / "inner" / ".typowalk.toml", '[files]\nextend-exclude = ["inner/"]\n')
    config = find_config(tmp_path / "inner")
    assert config is not None
    assert config.files.extend_exclude == ["inner/"]


def test_merge_prefers_explicit_overlay_values() -> None:
    base = Config(
        files=FilesConfig(extend_exclude=["a/"], ignore_hidden=True, ignore_dot=False),
        default=DefaultConfig(binary=False, extend_words={"teh": "the"}),
    )
    overlay = Config(
        files=FilesConfig(extend_exclude=["b/"], ignore_hidden=False),
        default=DefaultConfig(extend_words={"recieve": "receive"}),
    )
    merged = merge_config(base, overlay)
    assert merged.files.extend_exclude == ["a/", "b/"]
    assert merged.files.ignore_hidden is False
    assert merged.files.ignore_dot is False
    assert merged.default.binary is False
    assert merged.default.extend_words == {"teh": "the", "recieve": "receive"}


def test_defaults_dump_uses_kebab_case_keys() -> None:
    dumped = Config.from_defaults().dump()
    assert dumped["files"]["ignore-hidden"] is True
    assert dumped["default"]["check-filename"] is True
    assert dumped["files"]["extend-exclude"] == []
