from __future__ import annotations

import os
from dataclasses import dataclass, field

import httpx

from hearth._exceptions import ConfigurationError
from hearth._utils import origin_of

__all__ = ("OfflineConfig", "get_default_config")

DEFAULT_STATIC_ASSETS = (
    "/",
    "/manifest.json",
    "/favicon.png",
    "/logo.png",
    "/logo-ump.png",
    "/logo-animated.webp",
    "/logo-original.png",
)

DEFAULT_CACHEABLE_API_ROUTES = (
    "/api/study/verses",
    "/api/study/achievements",
    "/api/study/profile",
    "/api/study/leaderboard",
    "/api/missions",
)


@dataclass
class OfflineConfig:
    """
    Configuration of the offline worker.

    Attributes:
    ----------
    origin : str
        The origin the worker controls. Requests to any other origin are never
        intercepted, and relative asset paths are resolved against it.

    cache_name : str
        Version-tagged name of the live store. Every store with a different name
        is deleted on activation, so bumping this value invalidates everything
        cached by previous versions.

    static_assets : tuple[str, ...]
        Paths fetched and stored while installing. Installation fails unless all
        of them can be fetched.

    cacheable_api_routes : tuple[str, ...]
        Path prefixes of API routes served with the expiry-aware strategy. Any
        other path under `api_prefix` uses plain network-first.

    api_prefix : str
        Path prefix that marks a request as an API call.

    api_cache_duration : float
        Freshness window of API entries, in seconds. An entry whose age reaches
        the window is deleted instead of served.

    timestamp_header : str
        Header injected into stored API entries, holding the fetch time in
        milliseconds since the epoch.

    offline_message, expired_message : str
        Messages of the synthetic 503 JSON payloads.

    skip_waiting_on_install : bool
        Activate right after installing instead of waiting for an explicit
        `SKIP_WAITING` message.

    vapid_public_key : str
        Base64url-encoded application server key used when the push
        subscription has to be renewed.

    Examples:
    --------
    >>> config = OfflineConfig(origin="https://example.com", cache_name="app-v6")
    >>> config.resolve("/logo.png")
    'https://example.com/logo.png'
    """

    origin: str = "http://localhost"
    cache_name: str = "hearth-v1"
    static_assets: tuple[str, ...] = field(default=DEFAULT_STATIC_ASSETS)
    cacheable_api_routes: tuple[str, ...] = field(default=DEFAULT_CACHEABLE_API_ROUTES)
    api_prefix: str = "/api/"
    api_cache_duration: float = 5 * 60
    timestamp_header: str = "X-Hearth-Cached-At"
    offline_message: str = "You are offline. Please check your connection."
    expired_message: str = "Cached data has expired. Connect to refresh it."
    skip_waiting_on_install: bool = True

    notification_title: str = "Hearth"
    notification_body: str = "You have a new notification!"
    notification_icon: str = "/logo.png"
    notification_badge: str = "/favicon.png"
    subscribe_path: str = "/api/notifications/subscribe"
    vapid_public_key: str = ""

    def __post_init__(self) -> None:
        if not self.cache_name:
            raise ConfigurationError("`cache_name` must not be empty")
        if self.cache_name in (".", "..") or "/" in self.cache_name or "\\" in self.cache_name:
            raise ConfigurationError(f"`cache_name` must not be a path, got {self.cache_name!r}")
        if self.api_cache_duration < 0:
            raise ConfigurationError("`api_cache_duration` must not be negative")
        if not self.api_prefix.startswith("/"):
            raise ConfigurationError(f"`api_prefix` must be an absolute path, got {self.api_prefix!r}")
        # Drop any path so the origin compares equal to `origin_of(request.url)`.
        self.origin = origin_of(self.origin)
        self.static_assets = tuple(self.static_assets)
        self.cacheable_api_routes = tuple(self.cacheable_api_routes)

    def resolve(self, path: str) -> str:
        """Resolve a path (or absolute URL) against the controlled origin."""
        return str(httpx.URL(self.origin).join(path))

    @property
    def root_url(self) -> str:
        return self.resolve("/")


def get_default_config() -> OfflineConfig:
    """Get the default configuration, honouring `HEARTH_*` environment overrides."""

    ORIGIN = os.getenv("HEARTH_ORIGIN", "http://localhost")
    CACHE_NAME = os.getenv("HEARTH_CACHE_NAME", "hearth-v1")
    API_PREFIX = os.getenv("HEARTH_API_PREFIX", "/api/")
    VAPID_PUBLIC_KEY = os.getenv("HEARTH_VAPID_PUBLIC_KEY", "")
    try:
        API_CACHE_DURATION = float(os.getenv("HEARTH_API_CACHE_DURATION", "300"))  # 5 minutes
    except ValueError as exc:
        raise ConfigurationError("HEARTH_API_CACHE_DURATION must be a number of seconds") from exc

    return OfflineConfig(
        origin=ORIGIN,
        cache_name=CACHE_NAME,
        api_prefix=API_PREFIX,
        api_cache_duration=API_CACHE_DURATION,
        vapid_public_key=VAPID_PUBLIC_KEY,
    )
