from __future__ import annotations

import typing as tp
from dataclasses import dataclass, field, replace

import httpx

from hearth._utils import HEADERS_ENCODING

__all__ = ("CachedResponse",)

KNOWN_RESPONSE_EXTENSIONS = ("http_version", "reason_phrase")


@dataclass(frozen=True)
class CachedResponse:
    """
    A response as it sits in a store.

    The body is kept exactly as it came over the wire (still content-encoded),
    so the stored headers always describe it correctly. Every call to
    `to_httpx` produces a fresh response, which lets one entry be served any
    number of times.
    """

    status_code: int
    headers: tp.List[tp.Tuple[str, str]] = field(default_factory=list)
    content: bytes = b""
    extensions: tp.Dict[str, str] = field(default_factory=dict)

    @classmethod
    async def from_httpx(cls, response: httpx.Response) -> CachedResponse:
        """
        Drain an `httpx.Response` coming from a transport.

        The raw stream is consumed and the response is closed.
        """
        assert isinstance(response.stream, tp.AsyncIterable)
        try:
            raw = b"".join([chunk async for chunk in response.stream])
        finally:
            await response.aclose()

        return cls(
            status_code=response.status_code,
            headers=[
                (key.decode(HEADERS_ENCODING), value.decode(HEADERS_ENCODING)) for key, value in response.headers.raw
            ],
            content=raw,
            extensions={
                key: value.decode("ascii")
                for key, value in response.extensions.items()
                if key in KNOWN_RESPONSE_EXTENSIONS and isinstance(value, bytes)
            },
        )

    def to_httpx(self, **extensions: tp.Any) -> httpx.Response:
        response_extensions: tp.Dict[str, tp.Any] = {
            key: value.encode("ascii") for key, value in self.extensions.items()
        }
        response_extensions.update(extensions)
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            stream=httpx.ByteStream(self.content),
            extensions=response_extensions,
        )

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def get_header(self, name: str) -> tp.Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def with_header(self, name: str, value: str) -> CachedResponse:
        """Copy of the response with `name` set to `value`, replacing earlier values."""
        lowered = name.lower()
        headers = [(key, existing) for key, existing in self.headers if key.lower() != lowered]
        headers.append((name, value))
        return replace(self, headers=headers)
