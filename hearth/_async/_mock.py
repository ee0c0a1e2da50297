import typing as tp

import httpx

__all__ = ("MockAsyncTransport",)


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """
    Replays queued responses in order.

    A queued exception is raised instead of returning a response, which is how
    tests simulate the network going away. Every request seen is recorded, and
    `is_closed` tells whether the transport was closed.
    """

    def __init__(self) -> None:
        self.mocked_responses: tp.List[tp.Union[httpx.Response, Exception]] = []
        self.requests: tp.List[httpx.Request] = []
        self.is_closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        mocked = self.mocked_responses.pop(0)
        if isinstance(mocked, Exception):
            raise mocked
        return mocked

    async def aclose(self) -> None:
        self.is_closed = True

    def add_responses(self, responses: tp.List[tp.Union[httpx.Response, Exception]]) -> None:
        self.mocked_responses.extend(responses)
