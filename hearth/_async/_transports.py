from __future__ import annotations

import logging
import types
import typing as tp

import httpx

from .._config import OfflineConfig
from .._utils import BaseClock
from ._storages import AsyncBaseStorage
from ._worker import AsyncOfflineWorker, WorkerState

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("hearth.transport")

__all__ = ("AsyncOfflineTransport",)


class AsyncOfflineTransport(httpx.AsyncBaseTransport):
    """
    An HTTPX Transport that serves requests through an offline worker.

    Requests the worker does not intercept are forwarded to the wrapped
    transport unchanged.

    :param transport: `Transport` that our class wraps in order to add the offline layer on top of
    :type transport: httpx.AsyncBaseTransport
    :param storage: Storage that holds the named stores, defaults to None
    :type storage: tp.Optional[AsyncBaseStorage], optional
    :param config: Worker configuration, defaults to None
    :type config: tp.Optional[OfflineConfig], optional
    :param clock: Time source for API entry timestamps, defaults to None
    :type clock: tp.Optional[BaseClock], optional
    :param auto_start: Install and activate the worker when the transport is entered, defaults to True
    :type auto_start: bool
    :param worker: Worker to serve requests with, defaults to None (a new worker over `storage`)
    :type worker: tp.Optional[AsyncOfflineWorker], optional
    :param manage_worker: Enter, start and close the worker together with the transport.
        Disable it for transports sharing a worker that another transport manages, defaults to True
    :type manage_worker: bool
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        storage: tp.Optional[AsyncBaseStorage] = None,
        config: tp.Optional[OfflineConfig] = None,
        clock: tp.Optional[BaseClock] = None,
        auto_start: bool = True,
        worker: tp.Optional[AsyncOfflineWorker] = None,
        manage_worker: bool = True,
    ) -> None:
        self._transport = transport
        self._auto_start = auto_start
        self._manage_worker = manage_worker
        self.worker = (
            worker
            if worker is not None
            else AsyncOfflineWorker(
                request_sender=self._transport.handle_async_request,
                storage=storage,
                config=config,
                clock=clock,
            )
        )

    @property
    def network(self) -> httpx.AsyncBaseTransport:
        """The wrapped transport, which reaches the network."""
        return self._transport

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """
        Handles HTTP requests while also applying the offline caching strategies.

        :param request: An HTTP request
        :type request: httpx.Request
        :return: An HTTP response
        :rtype: httpx.Response
        """
        response = await self.worker.handle_fetch(request)
        if response is not None:
            return response

        logger.debug(f"Not intercepted, forwarding {request.method} {request.url}")
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        if self._manage_worker:
            await self.worker.aclose()
        await self._transport.aclose()

    async def __aenter__(self) -> Self:
        await self._transport.__aenter__()
        if not self._manage_worker:
            return self

        await self.worker.__aenter__()
        try:
            if self._auto_start and self.worker.state is WorkerState.PARSED:
                await self.worker.start()
        except BaseException as exc:
            await self.__aexit__(type(exc), exc, exc.__traceback__)
            raise
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        try:
            if self._manage_worker:
                await self.worker.__aexit__(exc_type, exc_value, traceback)
        finally:
            await self.aclose()
