import typing as tp
from datetime import datetime, timedelta, timezone

import anyio
import httpx
import pytest
import time_machine

from hearth import (
    AsyncInMemoryStorage,
    AsyncStrategyExecutor,
    CachedResponse,
    MockAsyncTransport,
    OfflineConfig,
    Strategy,
)


def make_executor(
    transport: MockAsyncTransport,
    storage: AsyncInMemoryStorage,
    config: OfflineConfig,
    clock: tp.Any = None,
    spawn: tp.Any = None,
) -> AsyncStrategyExecutor:
    return AsyncStrategyExecutor(
        request_sender=transport.handle_async_request,
        storage=storage,
        config=config,
        clock=clock,
        spawn=spawn,
    )


def get(url: str, destination: str = "") -> httpx.Request:
    headers = {"Sec-Fetch-Dest": destination} if destination else {}
    return httpx.Request("GET", url, headers=headers)


async def stored(storage: AsyncInMemoryStorage, config: OfflineConfig, url: str) -> tp.Optional[CachedResponse]:
    return await (await storage.open(config.cache_name)).match(url)


@pytest.mark.anyio
async def test_cache_first_second_request_never_hits_network(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(200, content=b"logo")])
    executor = make_executor(transport, storage, config)

    first = await executor.cache_first(get("https://example.com/logo.png", "image"))
    second = await executor.cache_first(get("https://example.com/logo.png", "image"))

    assert len(transport.requests) == 1
    assert not first.extensions["from_cache"]
    assert second.extensions["from_cache"]
    assert second.extensions["strategy"] is Strategy.CACHE_FIRST
    assert await second.aread() == b"logo"


@pytest.mark.anyio
async def test_cache_first_does_not_store_errors(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(404), httpx.Response(200, content=b"logo")])
    executor = make_executor(transport, storage, config)

    first = await executor.cache_first(get("https://example.com/logo.png", "image"))
    second = await executor.cache_first(get("https://example.com/logo.png", "image"))

    assert first.status_code == 404
    assert second.status_code == 200
    assert len(transport.requests) == 2


@pytest.mark.anyio
async def test_cache_first_offline_without_cache(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.cache_first(get("https://example.com/logo.png", "image"))

    assert response.status_code == 503
    assert response.text == "Offline"
    assert response.headers["Content-Type"].startswith("text/plain")
    assert response.extensions["offline"]


@pytest.mark.anyio
async def test_network_first_prefers_network(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/manifest.json", CachedResponse(status_code=200, content=b"old")
    )
    transport.add_responses([httpx.Response(200, content=b"new")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first(get("https://example.com/manifest.json"))

    assert await response.aread() == b"new"
    assert not response.extensions["from_cache"]
    cached = await stored(storage, config, "https://example.com/manifest.json")
    assert cached is not None and cached.content == b"new"


@pytest.mark.anyio
async def test_network_first_returns_errors_without_storing(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(500, content=b"boom")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first(get("https://example.com/api/shop/products"))

    assert response.status_code == 500
    assert await stored(storage, config, "https://example.com/api/shop/products") is None


@pytest.mark.anyio
async def test_network_first_offline_serves_cache(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(200, content=b"products"), httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    await executor.network_first(get("https://example.com/api/shop/products"))
    response = await executor.network_first(get("https://example.com/api/shop/products"))

    assert response.status_code == 200
    assert response.extensions["from_cache"]
    assert await response.aread() == b"products"


@pytest.mark.anyio
async def test_network_first_offline_document_falls_back_to_root_page(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/", CachedResponse(status_code=200, content=b"<html>app shell</html>")
    )
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first(get("https://example.com/events/12", "document"))

    assert response.status_code == 200
    assert await response.aread() == b"<html>app shell</html>"


@pytest.mark.anyio
async def test_network_first_offline_without_cache(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/", CachedResponse(status_code=200, content=b"<html>app shell</html>")
    )
    transport.add_responses([httpx.ReadTimeout("slow")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first(get("https://example.com/api/shop/products"))

    assert response.status_code == 503
    assert response.headers["Content-Type"] == "application/json"
    assert response.json() == {"error": "Offline", "message": config.offline_message}


@pytest.mark.anyio
async def test_stale_while_revalidate_serves_cache_and_refreshes(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/app.js", CachedResponse(status_code=200, content=b"old")
    )
    transport.add_responses([httpx.Response(200, content=b"new")])

    async with anyio.create_task_group() as task_group:
        executor = make_executor(transport, storage, config, spawn=task_group.start_soon)
        response = await executor.stale_while_revalidate(get("https://example.com/app.js", "script"))

        assert await response.aread() == b"old"
        assert response.extensions["from_cache"]

    cached = await stored(storage, config, "https://example.com/app.js")
    assert cached is not None and cached.content == b"new"
    assert len(transport.requests) == 1


@pytest.mark.anyio
async def test_stale_while_revalidate_keeps_cache_when_refresh_fails(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/app.css", CachedResponse(status_code=200, content=b"old")
    )
    transport.add_responses([httpx.ConnectError("offline")])

    async with anyio.create_task_group() as task_group:
        executor = make_executor(transport, storage, config, spawn=task_group.start_soon)
        response = await executor.stale_while_revalidate(get("https://example.com/app.css", "style"))

    assert await response.aread() == b"old"
    cached = await stored(storage, config, "https://example.com/app.css")
    assert cached is not None and cached.content == b"old"


@pytest.mark.anyio
async def test_stale_while_revalidate_without_cache_waits_for_network(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(200, content=b"page")])
    executor = make_executor(transport, storage, config)

    response = await executor.stale_while_revalidate(get("https://example.com/study", "document"))

    assert await response.aread() == b"page"
    assert not response.extensions["from_cache"]
    assert await stored(storage, config, "https://example.com/study") is not None


@pytest.mark.anyio
async def test_stale_while_revalidate_without_cache_propagates_network_errors(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    with pytest.raises(httpx.ConnectError):
        await executor.stale_while_revalidate(get("https://example.com/study", "document"))


@pytest.mark.anyio
async def test_stale_while_revalidate_needs_a_task_group(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/app.js", CachedResponse(status_code=200, content=b"old")
    )
    executor = make_executor(transport, storage, config)

    with pytest.raises(RuntimeError):
        await executor.stale_while_revalidate(get("https://example.com/app.js", "script"))


@pytest.mark.anyio
async def test_expiry_stores_timestamped_copy(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig, clock: tp.Any
):
    transport.add_responses([httpx.Response(200, json={"verses": []})])
    executor = make_executor(transport, storage, config, clock=clock)

    response = await executor.network_first_with_expiry(get("https://example.com/api/study/verses"))

    assert response.json() == {"verses": []}
    assert config.timestamp_header not in response.headers
    cached = await stored(storage, config, "https://example.com/api/study/verses")
    assert cached is not None
    assert cached.get_header(config.timestamp_header) == "1700000000000"


@pytest.mark.anyio
async def test_expiry_scenario(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig, clock: tp.Any
):
    transport.add_responses(
        [
            httpx.Response(200, json={"verses": ["John 3:16"]}),
            httpx.ConnectError("offline"),
            httpx.ConnectError("offline"),
        ]
    )
    executor = make_executor(transport, storage, config, clock=clock)
    request = get("https://example.com/api/study/verses")

    await executor.network_first_with_expiry(request)

    clock.advance(4 * 60)
    fresh = await executor.network_first_with_expiry(request)
    assert fresh.status_code == 200
    assert fresh.extensions["from_cache"]
    assert fresh.json() == {"verses": ["John 3:16"]}

    clock.advance(2 * 60)
    expired = await executor.network_first_with_expiry(request)
    assert expired.status_code == 503
    assert expired.json() == {
        "error": "Offline",
        "message": config.expired_message,
        "cached": True,
        "expired": True,
    }
    assert await stored(storage, config, "https://example.com/api/study/verses") is None


@pytest.mark.anyio
async def test_expiry_at_exactly_the_window(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig, clock: tp.Any
):
    transport.add_responses([httpx.Response(200, json=[]), httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config, clock=clock)

    await executor.network_first_with_expiry(get("https://example.com/api/missions"))
    clock.advance(config.api_cache_duration)
    response = await executor.network_first_with_expiry(get("https://example.com/api/missions"))

    assert response.status_code == 503
    assert response.json()["expired"] is True


@pytest.mark.anyio
async def test_expiry_offline_without_cache(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first_with_expiry(get("https://example.com/api/study/profile"))

    assert response.status_code == 503
    assert response.json() == {"error": "Offline", "message": config.offline_message, "cached": False}


@pytest.mark.anyio
async def test_expiry_serves_entries_without_timestamp(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/api/study/profile", CachedResponse(status_code=200, content=b"{}")
    )
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first_with_expiry(get("https://example.com/api/study/profile"))

    assert response.status_code == 200
    assert response.extensions["from_cache"]


@pytest.mark.anyio
async def test_expiry_serves_entries_with_empty_timestamp(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/api/study/profile",
        CachedResponse(status_code=200, headers=[(config.timestamp_header, "")], content=b"{}"),
    )
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first_with_expiry(get("https://example.com/api/study/profile"))

    assert response.status_code == 200
    assert response.extensions["from_cache"]
    assert await stored(storage, config, "https://example.com/api/study/profile") is not None


@pytest.mark.anyio
async def test_expiry_treats_unreadable_timestamp_as_expired(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    await (await storage.open(config.cache_name)).put(
        "https://example.com/api/study/profile",
        CachedResponse(status_code=200, headers=[(config.timestamp_header, "yesterday")], content=b"{}"),
    )
    transport.add_responses([httpx.ConnectError("offline")])
    executor = make_executor(transport, storage, config)

    response = await executor.network_first_with_expiry(get("https://example.com/api/study/profile"))

    assert response.status_code == 503
    assert response.json()["expired"] is True


@pytest.mark.anyio
async def test_expiry_with_system_clock(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses(
        [httpx.Response(200, json={"rank": 1}), httpx.ConnectError("offline"), httpx.ConnectError("offline")]
    )
    executor = make_executor(transport, storage, config)
    request = get("https://example.com/api/study/leaderboard")

    with time_machine.travel(datetime(2024, 1, 1, tzinfo=timezone.utc), tick=False) as traveller:
        await executor.network_first_with_expiry(request)

        traveller.shift(timedelta(minutes=4, seconds=59))
        assert (await executor.network_first_with_expiry(request)).status_code == 200

        traveller.shift(timedelta(seconds=1))
        assert (await executor.network_first_with_expiry(request)).status_code == 503


@pytest.mark.anyio
async def test_execute_dispatches_on_strategy(
    transport: MockAsyncTransport, storage: AsyncInMemoryStorage, config: OfflineConfig
):
    transport.add_responses([httpx.Response(200, content=b"font")])
    executor = make_executor(transport, storage, config)

    await executor.execute(Strategy.CACHE_FIRST, get("https://example.com/font.woff2", "font"))
    response = await executor.execute(Strategy.CACHE_FIRST, get("https://example.com/font.woff2", "font"))

    assert response.extensions["from_cache"]
