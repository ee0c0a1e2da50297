from __future__ import annotations

import hashlib
import time
import typing as tp
from pathlib import Path

import httpx

HEADERS_ENCODING = "iso-8859-1"


class BaseClock:
    def now(self) -> float:
        raise NotImplementedError()


class Clock(BaseClock):
    def now(self) -> float:
        return time.time()


def seconds_to_milliseconds(seconds: tp.Union[int, float]) -> int:
    return int(round(seconds * 1000))


def origin_of(url: tp.Union[httpx.URL, str]) -> str:
    """
    Return the origin (scheme, host and non-default port) of a URL.

    Examples:
        >>> origin_of("https://example.com/api/missions?page=2")
        'https://example.com'
        >>> origin_of("http://localhost:5000/")
        'http://localhost:5000'
    """
    url = httpx.URL(url)
    origin = f"{url.scheme}://{url.host}"
    if url.port is not None:
        origin += f":{url.port}"
    return origin


def cache_key(url: tp.Union[httpx.URL, str]) -> str:
    """Absolute URL without its fragment, used to address entries in a store."""
    return str(httpx.URL(url).copy_with(fragment=None))


def hash_url(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def ensure_cache_dir(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/hearth")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by Hearth\n*")
    return _base_path
