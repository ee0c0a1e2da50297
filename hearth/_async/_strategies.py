from __future__ import annotations

import logging
import typing as tp

import httpx

from .._config import OfflineConfig
from .._models import CachedResponse
from .._responses import offline_json_response, offline_text_response
from .._routing import Destination, Strategy, get_destination
from .._utils import BaseClock, Clock, seconds_to_milliseconds
from ._storages import AsyncBaseStorage, AsyncCache

logger = logging.getLogger("hearth.strategies")

__all__ = ("AsyncStrategyExecutor",)

RequestSender = tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]
BackgroundSpawner = tp.Callable[..., None]


class AsyncStrategyExecutor:
    """
    Runs the caching strategies against the live store.

    Every strategy makes exactly one network attempt per request. Network
    failures (`httpx.TransportError`) are turned into cached or synthetic
    responses, except when stale-while-revalidate has nothing cached.

    :param request_sender: Callable that sends a request over the network
    :type request_sender: tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]
    :param storage: Storage holding the named stores
    :type storage: AsyncBaseStorage
    :param config: Worker configuration; `cache_name` selects the live store
    :type config: OfflineConfig
    :param clock: Time source for API entry timestamps, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    :param spawn: Starts a background coroutine function, e.g. `TaskGroup.start_soon`.
        Needed for stale-while-revalidate cache hits, defaults to None
    :type spawn: tp.Optional[tp.Callable[..., None]], optional
    """

    def __init__(
        self,
        request_sender: RequestSender,
        storage: AsyncBaseStorage,
        config: OfflineConfig,
        clock: tp.Optional[BaseClock] = None,
        spawn: tp.Optional[BackgroundSpawner] = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage
        self.config = config
        self.clock = clock if clock is not None else Clock()
        self.spawn = spawn

    async def execute(self, strategy: Strategy, request: httpx.Request) -> httpx.Response:
        if strategy is Strategy.CACHE_FIRST:
            return await self.cache_first(request)
        if strategy is Strategy.NETWORK_FIRST:
            return await self.network_first(request)
        if strategy is Strategy.STALE_WHILE_REVALIDATE:
            return await self.stale_while_revalidate(request)
        if strategy is Strategy.NETWORK_FIRST_WITH_EXPIRY:
            return await self.network_first_with_expiry(request)
        raise ValueError(f"Unknown strategy: {strategy!r}")  # pragma: no cover

    async def _open(self) -> AsyncCache:
        return await self.storage.open(self.config.cache_name)

    async def _fetch(self, request: httpx.Request) -> CachedResponse:
        return await CachedResponse.from_httpx(await self.send_request(request))

    async def cache_first(self, request: httpx.Request) -> httpx.Response:
        cache = await self._open()
        cached = await cache.match(request.url)
        if cached is not None:
            return self._respond(cached, Strategy.CACHE_FIRST, from_cache=True)

        try:
            fetched = await self._fetch(request)
        except httpx.TransportError as exc:
            logger.info(f"Cache first failed for {request.url}: {exc!r}")
            return self._offline(offline_text_response(), Strategy.CACHE_FIRST)

        if fetched.is_success:
            await cache.put(request.url, fetched)
        return self._respond(fetched, Strategy.CACHE_FIRST, from_cache=False)

    async def network_first(self, request: httpx.Request) -> httpx.Response:
        cache = await self._open()
        try:
            fetched = await self._fetch(request)
        except httpx.TransportError:
            cached = await cache.match(request.url)
            if cached is not None:
                logger.debug(f"Network unreachable, serving cached {request.url}")
                return self._respond(cached, Strategy.NETWORK_FIRST, from_cache=True)

            if get_destination(request) == Destination.DOCUMENT:
                cached_index = await cache.match(self.config.root_url)
                if cached_index is not None:
                    logger.debug(f"Network unreachable, serving cached root page for {request.url}")
                    return self._respond(cached_index, Strategy.NETWORK_FIRST, from_cache=True)

            return self._offline(offline_json_response(self.config.offline_message), Strategy.NETWORK_FIRST)

        if fetched.is_success:
            await cache.put(request.url, fetched)
        return self._respond(fetched, Strategy.NETWORK_FIRST, from_cache=False)

    async def stale_while_revalidate(self, request: httpx.Request) -> httpx.Response:
        cache = await self._open()
        cached = await cache.match(request.url)

        if cached is None:
            # Nothing to fall back on, so a network failure reaches the caller.
            fetched = await self._fetch(request)
            if fetched.is_success:
                await cache.put(request.url, fetched)
            return self._respond(fetched, Strategy.STALE_WHILE_REVALIDATE, from_cache=False)

        if self.spawn is None:
            raise RuntimeError("Background revalidation needs a running task group; enter the worker first")
        self.spawn(self._revalidate, request)
        return self._respond(cached, Strategy.STALE_WHILE_REVALIDATE, from_cache=True)

    async def _revalidate(self, request: httpx.Request) -> None:
        try:
            fetched = await self._fetch(request)
        except httpx.TransportError as exc:
            logger.debug(f"Revalidation of {request.url} failed: {exc!r}")
            return

        if fetched.is_success:
            cache = await self._open()
            await cache.put(request.url, fetched)
            logger.debug(f"Revalidated {request.url}")

    async def network_first_with_expiry(self, request: httpx.Request) -> httpx.Response:
        cache = await self._open()
        try:
            fetched = await self._fetch(request)
        except httpx.TransportError:
            return await self._serve_api_from_cache(cache, request)

        if fetched.is_success:
            cached_at = seconds_to_milliseconds(self.clock.now())
            await cache.put(request.url, fetched.with_header(self.config.timestamp_header, str(cached_at)))
        return self._respond(fetched, Strategy.NETWORK_FIRST_WITH_EXPIRY, from_cache=False)

    async def _serve_api_from_cache(self, cache: AsyncCache, request: httpx.Request) -> httpx.Response:
        strategy = Strategy.NETWORK_FIRST_WITH_EXPIRY
        cached = await cache.match(request.url)
        if cached is None:
            return self._offline(offline_json_response(self.config.offline_message, cached=False), strategy)

        cached_at = cached.get_header(self.config.timestamp_header)
        if not cached_at:
            logger.debug(f"Serving cached API response (no timestamp): {request.url}")
            return self._respond(cached, strategy, from_cache=True)

        if self._age_in_milliseconds(cached_at) < seconds_to_milliseconds(self.config.api_cache_duration):
            logger.debug(f"Serving fresh cached API response: {request.url}")
            return self._respond(cached, strategy, from_cache=True)

        logger.debug(f"Cache expired, deleting stale entry: {request.url}")
        await cache.delete(request.url)
        return self._offline(
            offline_json_response(self.config.expired_message, cached=True, expired=True),
            strategy,
        )

    def _age_in_milliseconds(self, cached_at: str) -> float:
        try:
            timestamp = int(cached_at)
        except ValueError:
            # An unreadable timestamp can never prove the entry is fresh.
            return float("inf")
        return seconds_to_milliseconds(self.clock.now()) - timestamp

    def _respond(self, response: CachedResponse, strategy: Strategy, from_cache: bool) -> httpx.Response:
        return response.to_httpx(from_cache=from_cache, offline=False, strategy=strategy)

    def _offline(self, response: httpx.Response, strategy: Strategy) -> httpx.Response:
        response.extensions["from_cache"] = False
        response.extensions["strategy"] = strategy
        return response
