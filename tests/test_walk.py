from __future__ import annotations

import os
from pathlib import Path

import pytest

from typowalk.exclusion import ExclusionTest
from typowalk.policy import ConfigEngine
from typowalk.report import PrintSilent
from typowalk.runtime.path_policy import STDIN_MARKER
from typowalk.walk import (
    WalkSettings,
    global_excludes_path,
    walk_entries,
    walk_path,
    walk_path_parallel,
)


def _names(settings: WalkSettings, root: Path) -> list[str]:
    return [
        entry.path.relative_to(root).as_posix()
        for entry in walk_entries(settings, root)
        if entry.depth > 0
    ]


def _engine(root: Path) -> ConfigEngine:
    engine = ConfigEngine(isolated=True)
    engine.init_dir(root)
    return engine


def test_hidden_entries_follow_setting(make_tree) -> None:
    root = make_tree({"visible.txt": "", ".hidden.txt": "", ".cache/data.txt": ""})
    assert _names(WalkSettings(sort=True), root) == ["visible.txt"]
    assert _names(WalkSettings(hidden=False, sort=True), root) == [
        ".cache",
        ".cache/data.txt",
        ".hidden.txt",
        "visible.txt",
    ]


def test_dot_ignore_file_is_honored(make_tree) -> None:
    root = make_tree({".ignore": "*.log\n", "keep.txt": "", "drop.log": ""})
    assert _names(WalkSettings(sort=True), root) == ["keep.txt"]
    assert _names(WalkSettings(ignore_dot=False, sort=True), root) == ["drop.log", "keep.txt"]


def test_gitignore_applies_only_inside_repository(make_tree) -> None:
    root = make_tree({".gitignore": "build/\n", "build/out.txt": "", "src.txt": ""})
    assert _names(WalkSettings(sort=True), root) == ["build", "build/out.txt", "src.txt"]
    (root / ".git").mkdir()
    assert _names(WalkSettings(sort=True), root) == ["src.txt"]
    assert _names(WalkSettings(git_ignore=False, sort=True), root) == [
        "build",
        "build/out.txt",
        "src.txt",
    ]


def test_nested_gitignore_negation_overrides_parent(make_tree) -> None:
    root = make_tree(
        {
            ".git/": "",
            ".gitignore": "*.gen\n",
            "pkg/.gitignore": "!keep.gen\n",
            "pkg/keep.gen": "",
            "pkg/drop.gen": "",
        }
    )
    assert _names(WalkSettings(sort=True), root) == ["pkg", "pkg/keep.gen"]


def test_git_info_exclude_is_honored(make_tree) -> None:
    root = make_tree({".git/info/exclude": "secret.txt\n", "secret.txt": "", "plain.txt": ""})
    assert _names(WalkSettings(sort=True), root) == ["plain.txt"]
    assert _names(WalkSettings(git_exclude=False, sort=True), root) == ["plain.txt", "secret.txt"]


def test_global_excludes_file_is_honored(make_tree) -> None:
    excludes = global_excludes_path()
    assert excludes.parent.parent == Path(os.environ["XDG_CONFIG_HOME"])
    excludes.parent.mkdir(parents=True, exist_ok=True)
    excludes.write_text("*.swp\n", encoding="utf-8")
    root = make_tree({".git/": "", "notes.txt": "", "notes.txt.swp": ""})
    assert _names(WalkSettings(sort=True), root) == ["notes.txt"]
    assert _names(WalkSettings(git_global=False, sort=True), root) == ["notes.txt", "notes.txt.swp"]


def test_parent_ignore_files_follow_setting(tmp_path: Path, make_tree) -> None:
    (tmp_path / ".ignore").write_text("skip.txt\n", encoding="utf-8")
    root = make_tree({"skip.txt": "", "keep.txt": ""})
    assert _names(WalkSettings(sort=True), root) == ["keep.txt"]
    assert _names(WalkSettings(parents=False, sort=True), root) == ["keep.txt", "skip.txt"]


def test_sorted_walk_is_depth_first_by_name(make_tree) -> None:
    root = make_tree({"c.txt": "", "a/c.txt": "", "a/b.txt": "", "b.txt": ""})
    assert _names(WalkSettings(sort=True), root) == ["a", "a/b.txt", "a/c.txt", "b.txt", "c.txt"]


def test_exclusion_filter_prunes_entries(make_tree) -> None:
    root = make_tree({"build/out.txt": "", "app.log": "", "app.txt": ""})
    settings = WalkSettings(sort=True, exclusion=ExclusionTest(["build/", "*.log"]))
    assert _names(settings, root) == ["app.txt"]


def test_root_is_yielded_even_when_excluded(make_tree) -> None:
    root = make_tree({"notes.txt": ""})
    target = root / "notes.txt"
    settings = WalkSettings(exclusion=ExclusionTest(["*.txt"]))
    entries = list(walk_entries(settings, target))
    assert [(entry.path, entry.depth, entry.is_dir) for entry in entries] == [(target, 0, False)]


def test_stdin_marker_yields_single_entry() -> None:
    entries = list(walk_entries(WalkSettings(), STDIN_MARKER))
    assert len(entries) == 1
    assert entries[0].is_stdin
    assert entries[0].depth == 0


def test_walk_path_marks_only_root_as_explicit(make_tree, recording_checker) -> None:
    root = make_tree({"a.txt": "", "sub/b.txt": ""})
    engine = _engine(root)
    walk_path(
        WalkSettings(sort=True), root / "a.txt", recording_checker, engine, PrintSilent(),
        force_exclude=False, cwd=root,
    )
    walk_path(
        WalkSettings(sort=True), root, recording_checker, engine, PrintSilent(),
        force_exclude=False, cwd=root,
    )
    assert recording_checker.calls == [
        (root / "a.txt", True),
        (root / "a.txt", False),
        (root / "sub" / "b.txt", False),
    ]


def test_force_exclude_makes_root_file_implicit(make_tree, recording_checker) -> None:
    root = make_tree({"a.txt": ""})
    walk_path(
        WalkSettings(), root / "a.txt", recording_checker, _engine(root), PrintSilent(),
        force_exclude=True, cwd=root,
    )
    assert recording_checker.calls == [(root / "a.txt", False)]


def test_parallel_walk_visits_same_files(make_tree, recording_checker) -> None:
    files = {f"d{index}/f{inner}.txt": "" for index in range(6) for inner in range(4)}
    files.update({".ignore": "d5/\n", "top.txt": ""})
    root = make_tree(files)
    engine = _engine(root)
    walk_path(
        WalkSettings(sort=True), root, recording_checker, engine, PrintSilent(),
        force_exclude=False, cwd=root,
    )
    sequential = set(recording_checker.names(root))
    recording_checker.calls.clear()
    walk_path_parallel(
        WalkSettings(threads=4), root, recording_checker, engine, PrintSilent(),
        force_exclude=False, cwd=root,
    )
    assert set(recording_checker.names(root)) == sequential
    assert len(recording_checker.calls) == len(sequential) == 21


@pytest.mark.parametrize("walk_fn", [walk_path, walk_path_parallel])
def test_listing_failure_propagates(make_tree, recording_checker, walk_fn) -> None:
    root = make_tree({"a.txt": "", "sub/b.txt": ""})

    def _denied(path):
        raise PermissionError(13, "Permission denied", str(path))

    with pytest.raises(PermissionError):
        walk_fn(
            WalkSettings(threads=2), root, recording_checker, _engine(root), PrintSilent(),
            force_exclude=False, cwd=root, scandir=_denied,
        )
    assert recording_checker.calls == []
