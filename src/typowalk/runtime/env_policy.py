from __future__ import annotations

import os

from typowalk.exceptions import UsageError

THREADS_ENV = "TYPOWALK_THREADS"


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def default_thread_count() -> int:
    """Thread preference from the environment; 0 means pick automatically."""
    raw = env_text(THREADS_ENV)
    if not raw:
        return 0
    try:
        threads = int(raw)
    except ValueError:
        threads = -1
    if threads < 0:
        raise UsageError(f"{THREADS_ENV} must be a non-negative integer, got {raw!r}")
    return threads


def auto_thread_count() -> int:
    return os.cpu_count() or 1
