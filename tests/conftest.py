from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import FakeClock, FakeOpenAIClient, StubTransport  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> StubTransport:
    """An empty stub transport; queue replies with ``transport.queue``."""

    return StubTransport()


@pytest.fixture
def fake_client() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture(autouse=True)
def _isolate_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Keep the data home, config and credentials out of the real user dirs."""

    monkeypatch.setenv("QUIZMASTER_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("QUIZMASTER_CONFIG", raising=False)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    logger = logging.getLogger("quizmaster")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
