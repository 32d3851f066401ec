"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for rootdir-less collection
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from _fakes import MemoryBackend


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()
