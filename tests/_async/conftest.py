import pytest

from hearth import AsyncInMemoryStorage, MockAsyncTransport


@pytest.fixture
def storage() -> AsyncInMemoryStorage:
    return AsyncInMemoryStorage()


@pytest.fixture
def transport() -> MockAsyncTransport:
    return MockAsyncTransport()
