"""Custom exclude patterns with gitignore precedence.

Patterns are matched against the path text as the walk produces it, so a
relative root yields relative candidates and an absolute root yields absolute
ones. The last matching pattern decides; ``!pattern`` re-includes.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path, PurePath
from typing import Iterable, Sequence

import pathspec

from typowalk.exceptions import ConfigError

logger = logging.getLogger(__name__)


class Match(Enum):
    NONE = "none"
    IGNORE = "ignore"
    WHITELIST = "whitelist"


class AncestorVerdict(Enum):
    CONTINUE = "continue"
    SKIP_ROOT = "skip_root"
    TRAVERSE = "traverse"


def match_text(path: PurePath, is_dir: bool) -> str:
    text = path.as_posix()
    while text.startswith("./"):
        text = text[2:]
    text = text.lstrip("/")
    if text in ("", "."):
        return ""
    if is_dir:
        text += "/"
    return text


class ExclusionTest:
    def __init__(self, patterns: Sequence[str]):
        self.patterns = tuple(patterns)
        try:
            path_spec = pathspec.PathSpec.from_lines("gitwildmatch", self.patterns)
        except ValueError as exc:
            raise ConfigError(f"invalid exclude pattern: {exc}") from exc
        self._compiled = [pattern for pattern in path_spec.patterns if pattern.include is not None]

    @classmethod
    def from_ignore_file(cls, lines: Iterable[str], *, source: Path) -> "ExclusionTest":
        """Compile an ignore file, dropping lines git itself would reject."""
        valid: list[str] = []
        for number, line in enumerate(lines, start=1):
            try:
                pathspec.PathSpec.from_lines("gitwildmatch", [line])
            except ValueError as exc:
                logger.warning("%s:%d: skipping invalid pattern: %s", source, number, exc)
                continue
            valid.append(line)
        return cls(valid)

    def matched(self, path: PurePath, is_dir: bool) -> Match:
        text = match_text(path, is_dir)
        if not text:
            return Match.NONE
        result: bool | None = None
        for pattern in self._compiled:
            if pattern.match_file(text) is not None:
                result = pattern.include
        if result is None:
            return Match.NONE
        return Match.IGNORE if result else Match.WHITELIST

    def keep(self, path: PurePath, is_dir: bool) -> bool:
        matched = self.matched(path, is_dir)
        logger.debug("match(%r, %s) == %s", str(path), is_dir, matched.value)
        return matched is not Match.IGNORE


def compile_exclusion(patterns: Iterable[str]) -> ExclusionTest | None:
    """Compile custom exclude patterns, or ``None`` when there are none."""
    patterns = list(patterns)
    if not patterns:
        return None
    return ExclusionTest(patterns)


def ancestor_chain(path: Path) -> list[Path]:
    chain = [path, *path.parents]
    chain.reverse()
    return chain


def classify_ancestor(test: ExclusionTest, ancestor: Path) -> AncestorVerdict:
    matched = test.matched(ancestor, ancestor.is_dir())
    if matched is Match.IGNORE:
        return AncestorVerdict.SKIP_ROOT
    if matched is Match.WHITELIST:
        return AncestorVerdict.TRAVERSE
    return AncestorVerdict.CONTINUE


def prefilter_root(test: ExclusionTest, path: Path) -> AncestorVerdict:
    """Decide whether ``path`` is wholly excluded by one of its ancestors.

    Ancestors are tested from the filesystem root down to ``path`` itself.
    The first decisive ancestor wins; a chain with no match is traversed.
    """
    for ancestor in ancestor_chain(path):
        verdict = classify_ancestor(test, ancestor)
        if verdict is not AncestorVerdict.CONTINUE:
            logger.debug("force-exclude %s at %s: %s", path, ancestor, verdict.value)
            return verdict
    return AncestorVerdict.TRAVERSE
