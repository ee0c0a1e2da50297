from __future__ import annotations

import enum
import typing as tp

import httpx

from hearth._config import OfflineConfig
from hearth._utils import origin_of

__all__ = ("Strategy", "Destination", "classify", "get_destination", "is_intercepted", "is_cacheable_api_route")


class Strategy(str, enum.Enum):
    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"
    NETWORK_FIRST_WITH_EXPIRY = "network-first-with-expiry"


class Destination(str, enum.Enum):
    """Resource types a request can be made for, as reported by `Sec-Fetch-Dest`."""

    EMPTY = ""
    DOCUMENT = "document"
    SCRIPT = "script"
    STYLE = "style"
    IMAGE = "image"
    FONT = "font"


CACHE_FIRST_DESTINATIONS = (Destination.FONT, Destination.IMAGE)
REVALIDATED_DESTINATIONS = (Destination.DOCUMENT, Destination.SCRIPT, Destination.STYLE)


def get_destination(request: httpx.Request) -> str:
    """
    Resource type of the request.

    The `destination` request extension wins over the `Sec-Fetch-Dest` header.
    Requests that carry neither have an empty destination.
    """
    destination = request.extensions.get("destination")
    if destination is None:
        destination = request.headers.get("sec-fetch-dest", "")
    return str(destination).lower()


def is_intercepted(request: httpx.Request, config: OfflineConfig) -> bool:
    if request.method != "GET":
        return False
    return origin_of(request.url) == config.origin


def is_cacheable_api_route(path: str, config: OfflineConfig) -> bool:
    return any(path.startswith(route) for route in config.cacheable_api_routes)


def classify(request: httpx.Request, config: OfflineConfig) -> tp.Optional[Strategy]:
    """
    Pick the caching strategy for a request.

    Returns `None` for requests that must reach the network untouched
    (anything but same-origin GET requests).

    Examples:
        >>> config = OfflineConfig(origin="https://example.com")
        >>> classify(httpx.Request("GET", "https://example.com/api/missions"), config)
        <Strategy.NETWORK_FIRST_WITH_EXPIRY: 'network-first-with-expiry'>
        >>> classify(httpx.Request("POST", "https://example.com/api/missions"), config) is None
        True
    """
    if not is_intercepted(request, config):
        return None

    path = request.url.path
    if path.startswith(config.api_prefix):
        if is_cacheable_api_route(path, config):
            return Strategy.NETWORK_FIRST_WITH_EXPIRY
        return Strategy.NETWORK_FIRST

    destination = get_destination(request)
    if destination in CACHE_FIRST_DESTINATIONS:
        return Strategy.CACHE_FIRST
    if destination in REVALIDATED_DESTINATIONS:
        return Strategy.STALE_WHILE_REVALIDATE

    return Strategy.NETWORK_FIRST
