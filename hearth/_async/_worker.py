from __future__ import annotations

import enum
import logging
import types
import typing as tp

import anyio
import httpx

from .._config import OfflineConfig, get_default_config
from .._exceptions import InstallError
from .._notifications import NotificationOptions, parse_push_payload, resolve_click_url, url_base64_to_bytes
from .._routing import classify
from .._utils import BaseClock
from ._storages import AsyncBaseStorage, AsyncInMemoryStorage
from ._strategies import AsyncStrategyExecutor

if tp.TYPE_CHECKING:  # pragma: no cover
    from anyio.abc import TaskGroup
    from typing_extensions import Self

logger = logging.getLogger("hearth.worker")

__all__ = ("AsyncOfflineWorker", "WorkerState", "SKIP_WAITING", "CLEAR_CACHE")

SKIP_WAITING = "SKIP_WAITING"
CLEAR_CACHE = "CLEAR_CACHE"


class WorkerState(str, enum.Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class AsyncOfflineWorker:
    """
    Lifecycle controller of the offline cache.

    The worker precaches static assets on install, purges stores left by
    previous versions on activation, and once activated answers intercepted
    requests through the caching strategies.

    It must be entered as an async context manager before it handles
    requests: background revalidations run on a task group it owns, and
    leaving the context waits for them.

    :param request_sender: Callable that sends a request over the network
    :type request_sender: tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]
    :param storage: Storage that holds the named stores, defaults to None
    :type storage: tp.Optional[AsyncBaseStorage], optional
    :param config: Worker configuration, defaults to `get_default_config()`
    :type config: tp.Optional[OfflineConfig], optional
    :param clock: Time source for API entry timestamps, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    """

    def __init__(
        self,
        request_sender: tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]],
        storage: tp.Optional[AsyncBaseStorage] = None,
        config: tp.Optional[OfflineConfig] = None,
        clock: tp.Optional[BaseClock] = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage if storage is not None else AsyncInMemoryStorage()

        if not isinstance(self.storage, AsyncBaseStorage):  # pragma: no cover
            raise TypeError(f"Expected subclass of `AsyncBaseStorage` but got `{storage.__class__.__name__}`")

        self.config = config if config is not None else get_default_config()
        self.state = WorkerState.PARSED
        self.claimed = False
        self._skip_waiting = False
        self._task_group: tp.Optional[TaskGroup] = None
        self.executor = AsyncStrategyExecutor(
            request_sender=request_sender,
            storage=self.storage,
            config=self.config,
            clock=clock,
            spawn=self._spawn,
        )

    def _spawn(self, func: tp.Callable[..., tp.Awaitable[tp.Any]], *args: tp.Any) -> None:
        if self._task_group is None:
            raise RuntimeError("The worker must be entered with `async with` before it runs background work")
        self._task_group.start_soon(func, *args)

    async def install(self) -> None:
        """
        Precache the static assets into the current store.

        :raises InstallError: if any asset could not be fetched; the worker becomes redundant
        """
        self.state = WorkerState.INSTALLING
        cache = await self.storage.open(self.config.cache_name)
        logger.info("Caching static assets")
        try:
            await cache.add_all(
                [httpx.Request("GET", self.config.resolve(path)) for path in self.config.static_assets],
                self.send_request,
            )
        except InstallError:
            logger.warning("Install failed, worker is redundant", exc_info=True)
            self.state = WorkerState.REDUNDANT
            raise

        self.state = WorkerState.INSTALLED
        if self.config.skip_waiting_on_install:
            self._skip_waiting = True

    async def activate(self) -> None:
        """Delete every store that does not belong to this version, then take control of clients."""
        self.state = WorkerState.ACTIVATING
        for name in await self.storage.keys():
            if name != self.config.cache_name:
                logger.info(f"Deleting old cache: {name}")
                await self.storage.delete(name)

        self.state = WorkerState.ACTIVATED
        self.claimed = True

    async def start(self) -> None:
        """
        Install, then activate straight away if waiting was skipped.

        A failed install does not take down a store of the same version that is
        already populated: the worker activates and keeps serving its entries.
        """
        try:
            await self.install()
        except InstallError:
            cache = await self.storage.open(self.config.cache_name)
            if not await cache.keys():
                raise
            logger.warning(f"Keeping the existing {self.config.cache_name!r} store in service")
            await self.activate()
            return

        if self._skip_waiting:
            await self.activate()

    async def skip_waiting(self) -> None:
        self._skip_waiting = True
        if self.state is WorkerState.INSTALLED:
            await self.activate()

    async def clear_cache(self) -> None:
        await self.storage.delete(self.config.cache_name)
        logger.info("Cache cleared")

    async def handle_message(self, message: tp.Any) -> None:
        """
        Handle a control message such as `{"type": "SKIP_WAITING"}`.

        Messages of unknown type, or that are not mappings at all, are ignored.
        """
        if not isinstance(message, tp.Mapping):
            return

        message_type = message.get("type")
        if message_type == SKIP_WAITING:
            await self.skip_waiting()
        elif message_type == CLEAR_CACHE:
            await self.clear_cache()
        else:
            logger.debug(f"Ignoring message of type {message_type!r}")

    async def handle_fetch(self, request: httpx.Request) -> tp.Optional[httpx.Response]:
        """
        Answer an intercepted request.

        Returns `None` when the request is left to the network: the worker is not
        active yet, or the request is not a same-origin GET.
        """
        if self.state is not WorkerState.ACTIVATED:
            return None

        strategy = classify(request, self.config)
        if strategy is None:
            return None

        logger.debug(f"Handling {request.url} with {strategy.value}")
        return await self.executor.execute(strategy, request)

    def handle_push(self, payload: tp.Union[bytes, str, None]) -> NotificationOptions:
        logger.debug("Push notification received")
        return parse_push_payload(payload, self.config)

    def handle_notification_click(self, data: tp.Optional[tp.Mapping[str, tp.Any]]) -> str:
        """Absolute URL the client should navigate to."""
        return self.config.resolve(resolve_click_url(data))

    async def resubscribe(
        self, push_subscribe: tp.Callable[[bytes], tp.Awaitable[tp.Mapping[str, tp.Any]]]
    ) -> httpx.Response:
        """
        Renew the push subscription and send it to the server.

        :param push_subscribe: Creates a subscription with the push service from the
            decoded application server key (`config.vapid_public_key`)
        :type push_subscribe: tp.Callable[[bytes], tp.Awaitable[tp.Mapping[str, tp.Any]]]
        :return: The server's response
        :rtype: httpx.Response
        """
        logger.info("Push subscription changed")
        subscription = await push_subscribe(url_base64_to_bytes(self.config.vapid_public_key))
        request = httpx.Request("POST", self.config.resolve(self.config.subscribe_path), json=dict(subscription))
        response = await self.send_request(request)
        await response.aread()
        return response

    async def aclose(self) -> None:
        await self.storage.aclose()

    async def __aenter__(self) -> Self:
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        task_group, self._task_group = self._task_group, None
        if task_group is not None:
            # The error leaves the `async with` block unwrapped; pending revalidations are dropped.
            if exc_value is not None:
                task_group.cancel_scope.cancel()
            await task_group.__aexit__(None, None, None)
