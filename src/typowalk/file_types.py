"""File type detection by file-name glob."""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Mapping

DEFAULT_TYPES: dict[str, tuple[str, ...]] = {
    "c": ("*.c", "*.h"),
    "cpp": ("*.cpp", "*.cc", "*.cxx", "*.hpp", "*.hh", "*.hxx"),
    "css": ("*.css", "*.scss"),
    "go": ("*.go",),
    "html": ("*.html", "*.htm"),
    "java": ("*.java",),
    "js": ("*.js", "*.jsx", "*.mjs", "*.cjs"),
    "json": ("*.json",),
    "lock": ("*.lock",),
    "make": ("Makefile", "makefile", "GNUmakefile", "*.mk"),
    "markdown": ("*.md", "*.markdown"),
    "py": ("*.py", "*.pyi"),
    "rst": ("*.rst",),
    "rust": ("*.rs",),
    "sh": ("*.sh", "*.bash", "*.zsh"),
    "toml": ("*.toml",),
    "ts": ("*.ts", "*.tsx"),
    "txt": ("*.txt",),
    "yaml": ("*.yaml", "*.yml"),
}


class TypeMatcher:
    def __init__(self, definitions: Mapping[str, Iterable[str]]):
        self._definitions = {
            name: tuple(globs) for name, globs in sorted(definitions.items())
        }

    @property
    def definitions(self) -> dict[str, list[str]]:
        return {name: list(globs) for name, globs in self._definitions.items()}

    def file_type(self, path: Path) -> str | None:
        """Return the first type (by name) whose glob matches the file name."""
        name = path.name
        for type_name, globs in self._definitions.items():
            if any(fnmatchcase(name, glob) for glob in globs):
                return type_name
        return None


def build_type_matcher(extend_globs: Mapping[str, Iterable[str]]) -> TypeMatcher:
    definitions: dict[str, list[str]] = {
        name: list(globs) for name, globs in DEFAULT_TYPES.items()
    }
    for name, globs in extend_globs.items():
        definitions.setdefault(name, []).extend(globs)
    return TypeMatcher(definitions)
