import os

import pytest

from hearth import BaseClock, OfflineConfig


class MockedClock(BaseClock):
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.current = now

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture
def clock() -> MockedClock:
    return MockedClock()


@pytest.fixture
def config() -> OfflineConfig:
    return OfflineConfig(
        origin="https://example.com",
        cache_name="app-v2",
        static_assets=("/", "/logo.png"),
    )
