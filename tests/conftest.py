from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from typowalk.policy import FilePolicy
from typowalk.report import Report
from tests.env_helpers import scoped_env


@pytest.fixture(autouse=True)
def _isolated_git_environment(tmp_path_factory: pytest.TempPathFactory):
    config_home = tmp_path_factory.mktemp("xdg-config")
    with scoped_env({"XDG_CONFIG_HOME": str(config_home), "TYPOWALK_THREADS": None}):
        yield


@pytest.fixture(autouse=True)
def _reset_typowalk_logger():
    yield
    logger = logging.getLogger("typowalk")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        target = root / relative
        if relative.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree(tmp_path: Path):
    def _make(files: dict[str, str], *, root: Path | None = None) -> Path:
        return write_tree(root if root is not None else tmp_path / "tree", files)

    return _make


class RecordingChecker:
    """Checker that only records which files it was handed."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[tuple[Path, bool]] = []
        self.threads: set[int] = set()

    def check_file(self, path: Path, explicit: bool, policy: FilePolicy, reporter: Report) -> None:
        with self._lock:
            self.calls.append((path, explicit))
            self.threads.add(threading.get_ident())

    @property
    def paths(self) -> list[Path]:
        return [path for path, _explicit in self.calls]

    def names(self, root: Path) -> list[str]:
        return [path.relative_to(root).as_posix() for path in self.paths]


@pytest.fixture
def recording_checker() -> RecordingChecker:
    return RecordingChecker()


class CollectingReporter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: list[object] = []
        self.finalized = 0

    def report(self, msg) -> None:
        with self._lock:
            self.messages.append(msg)

    def generate_final_result(self) -> None:
        self.finalized += 1

    def of_type(self, kind: type) -> list:
        return [msg for msg in self.messages if isinstance(msg, kind)]


@pytest.fixture
def collecting_reporter() -> CollectingReporter:
    return CollectingReporter()
