import typing as tp

import httpx

from hearth._async._storages import AsyncBaseStorage
from hearth._async._transports import AsyncOfflineTransport
from hearth._async._worker import AsyncOfflineWorker
from hearth._config import OfflineConfig
from hearth._utils import BaseClock

__all__ = ("AsyncOfflineClient",)


class AsyncOfflineClient(httpx.AsyncClient):
    def __init__(
        self,
        *args: tp.Any,
        storage: tp.Optional[AsyncBaseStorage] = None,
        config: tp.Optional[OfflineConfig] = None,
        clock: tp.Optional[BaseClock] = None,
        **kwargs: tp.Any,
    ):
        # One worker for the client; proxy mounts share it with the default transport.
        self._worker = AsyncOfflineWorker(
            request_sender=self._send_over_network,
            storage=storage,
            config=config,
            clock=clock,
        )
        super().__init__(*args, **kwargs)

    async def _send_over_network(self, request: httpx.Request) -> httpx.Response:
        transport = self._transport_for_url(request.url)
        if isinstance(transport, AsyncOfflineTransport):
            transport = transport.network
        return await transport.handle_async_request(request)

    def _init_transport(self, *args, **kwargs) -> AsyncOfflineTransport:  # type: ignore
        _transport = super()._init_transport(*args, **kwargs)
        return AsyncOfflineTransport(transport=_transport, worker=self._worker)

    def _init_proxy_transport(self, *args, **kwargs) -> AsyncOfflineTransport:  # type: ignore
        _transport = super()._init_proxy_transport(*args, **kwargs)
        return AsyncOfflineTransport(transport=_transport, worker=self._worker, manage_worker=False)

    @property
    def offline_transport(self) -> AsyncOfflineTransport:
        assert isinstance(self._transport, AsyncOfflineTransport)
        return self._transport
