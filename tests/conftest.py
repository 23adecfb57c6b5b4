"""Shared fixtures."""

from collections.abc import Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls

pytest_plugins = ["pytester"]


@pytest.fixture(autouse=True)
def _clear_appveyor_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a real AppVeyor build environment from leaking into tests."""
    for name in (
        "APPVEYOR_API_URL",
        "APPVEYOR_BATCH_SIZE",
        "APPVEYOR_BATCH_INTERVAL_IN_MS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls, None, None]:
    """Mock every aiohttp request made during the test."""
    with aioresponses_cls() as mocked:
        yield mocked
