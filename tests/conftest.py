"""Pytest configuration: import path, a fixed clock and engine fixtures."""

import os
import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

from srs_engine import ContentRef, ReviewCardEngine, ReviewEventBus, SRSConfig  # noqa: E402

NOW = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolate_srs_env(monkeypatch: pytest.MonkeyPatch):
    """開発者のシェルに残った SRS_* 環境変数が既定値テストに混入しないようにする。"""
    for key in list(os.environ):
        if key.upper().startswith("SRS_"):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def config() -> SRSConfig:
    return SRSConfig()


@pytest.fixture
def events() -> ReviewEventBus:
    return ReviewEventBus()


@pytest.fixture
def engine(config: SRSConfig, events: ReviewEventBus) -> ReviewCardEngine:
    return ReviewCardEngine(config, events=events, clock=lambda: NOW)


@pytest.fixture
def content() -> ContentRef:
    return ContentRef(key="pattern:greeting:1", front="안녕하세요", back="Hello", level=1, pattern="greeting")
