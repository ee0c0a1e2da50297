from __future__ import annotations

import logging
import shutil
import time
import typing as tp
from pathlib import Path
from urllib.parse import quote, unquote

import anysqlite
import httpx

from .._exceptions import InstallError
from .._files import AsyncFileManager
from .._models import CachedResponse
from .._serializers import BaseSerializer, JSONSerializer, MsgpackSerializer
from .._synchronization import AsyncLock
from .._utils import cache_key, ensure_cache_dir, hash_url

logger = logging.getLogger("hearth.storages")

__all__ = (
    "AsyncCache",
    "AsyncBaseStorage",
    "AsyncInMemoryStorage",
    "AsyncFileStorage",
    "AsyncSQLiteStorage",
)

RequestSender = tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]


class AsyncCache:
    """
    A handle on one named store.

    Handles are cheap; every operation goes straight to the storage, so a handle
    keeps working after its store was deleted and recreated.
    """

    def __init__(self, storage: AsyncBaseStorage, name: str) -> None:
        self._storage = storage
        self.name = name

    async def match(self, url: tp.Union[httpx.URL, str]) -> tp.Optional[CachedResponse]:
        return await self._storage.match(self.name, cache_key(url))

    async def put(self, url: tp.Union[httpx.URL, str], response: CachedResponse) -> None:
        await self._storage.put(self.name, cache_key(url), response)

    async def delete(self, url: tp.Union[httpx.URL, str]) -> bool:
        return await self._storage.remove(self.name, cache_key(url))

    async def keys(self) -> tp.List[str]:
        return await self._storage.urls(self.name)

    async def add_all(self, requests: tp.Iterable[httpx.Request], send: RequestSender) -> None:
        """
        Fetch every request and store the responses, all or nothing.

        Nothing is stored unless every fetch succeeds with a 2xx status.

        :raises InstallError: if a fetch fails or returns a non-2xx status
        """
        fetched: tp.List[tp.Tuple[httpx.URL, CachedResponse]] = []
        for request in requests:
            try:
                response = await CachedResponse.from_httpx(await send(request))
            except httpx.TransportError as exc:
                raise InstallError(f"Could not fetch {request.url}") from exc
            if not response.is_success:
                raise InstallError(f"Fetching {request.url} returned status {response.status_code}")
            fetched.append((request.url, response))

        for url, response in fetched:
            await self.put(url, response)


class AsyncBaseStorage:
    """
    A registry of named stores, each mapping URLs to stored responses.
    """

    async def open(self, name: str) -> AsyncCache:
        """Return a handle on the store called `name`, creating the store if needed."""
        await self.create(name)
        return AsyncCache(self, name)

    async def create(self, name: str) -> None:
        raise NotImplementedError()

    async def has(self, name: str) -> bool:
        return name in await self.keys()

    async def keys(self) -> tp.List[str]:
        """Names of the existing stores, oldest first."""
        raise NotImplementedError()

    async def delete(self, name: str) -> bool:
        """Delete a whole store. Returns whether it existed."""
        raise NotImplementedError()

    async def match(self, name: str, url: str) -> tp.Optional[CachedResponse]:
        raise NotImplementedError()

    async def put(self, name: str, url: str, response: CachedResponse) -> None:
        """Store `response` under `url`, replacing any previous entry and creating the store if needed."""
        raise NotImplementedError()

    async def remove(self, name: str, url: str) -> bool:
        """Delete one entry. Returns whether it existed."""
        raise NotImplementedError()

    async def urls(self, name: str) -> tp.List[str]:
        raise NotImplementedError()

    async def aclose(self) -> None:
        raise NotImplementedError()


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    Keeps every store in process memory. Mostly useful for tests and short-lived clients.
    """

    def __init__(self) -> None:
        self._stores: tp.Dict[str, tp.Dict[str, CachedResponse]] = {}
        self._lock = AsyncLock()

    async def create(self, name: str) -> None:
        async with self._lock:
            self._stores.setdefault(name, {})

    async def keys(self) -> tp.List[str]:
        async with self._lock:
            return list(self._stores)

    async def delete(self, name: str) -> bool:
        async with self._lock:
            return self._stores.pop(name, None) is not None

    async def match(self, name: str, url: str) -> tp.Optional[CachedResponse]:
        async with self._lock:
            return self._stores.get(name, {}).get(url)

    async def put(self, name: str, url: str, response: CachedResponse) -> None:
        async with self._lock:
            self._stores.setdefault(name, {})[url] = response

    async def remove(self, name: str, url: str) -> bool:
        async with self._lock:
            return self._stores.get(name, {}).pop(url, None) is not None

    async def urls(self, name: str) -> tp.List[str]:
        async with self._lock:
            return list(self._stores.get(name, {}))

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncFileStorage(AsyncBaseStorage):
    """
    A simple file storage.

    Each store is a directory under `base_path`, each entry a file named after
    the hash of its URL.

    :param serializer: Serializer capable of serializing and de-serializing stored responses, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param base_path: A storage base path where the stores should be saved, defaults to None
    :type base_path: tp.Optional[Path], optional
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        base_path: tp.Optional[Path] = None,
    ) -> None:
        self._serializer = serializer or JSONSerializer()
        self._base_path = ensure_cache_dir(Path(base_path) if base_path is not None else None)
        self._file_manager = AsyncFileManager(is_binary=self._serializer.is_binary)
        self._lock = AsyncLock()

    def _store_path(self, name: str) -> Path:
        # `quote` escapes separators but leaves dot segments as they are.
        if name in ("", ".", ".."):
            raise ValueError(f"Invalid store name: {name!r}")
        return self._base_path / quote(name, safe="")

    async def create(self, name: str) -> None:
        async with self._lock:
            self._store_path(name).mkdir(exist_ok=True)

    async def keys(self) -> tp.List[str]:
        async with self._lock:
            directories = [path for path in self._base_path.iterdir() if path.is_dir()]
        directories.sort(key=lambda path: path.stat().st_ctime)
        return [unquote(path.name) for path in directories]

    async def delete(self, name: str) -> bool:
        store_path = self._store_path(name)
        async with self._lock:
            if not store_path.is_dir():
                return False
            shutil.rmtree(store_path)
            logger.debug(f"Deleted store {name!r} at {store_path}")
            return True

    async def match(self, name: str, url: str) -> tp.Optional[CachedResponse]:
        response_path = self._store_path(name) / hash_url(url)

        async with self._lock:
            if response_path.is_file():
                read_data = await self._file_manager.read_from(str(response_path))
                if len(read_data) != 0:
                    _, response = self._serializer.loads(read_data)
                    return response
        return None

    async def put(self, name: str, url: str, response: CachedResponse) -> None:
        store_path = self._store_path(name)

        async with self._lock:
            store_path.mkdir(exist_ok=True)
            await self._file_manager.write_to(
                str(store_path / hash_url(url)),
                self._serializer.dumps(url=url, response=response),
            )

    async def remove(self, name: str, url: str) -> bool:
        response_path = self._store_path(name) / hash_url(url)

        async with self._lock:
            if response_path.is_file():
                response_path.unlink()
                return True
        return False

    async def urls(self, name: str) -> tp.List[str]:
        store_path = self._store_path(name)
        urls = []

        async with self._lock:
            if not store_path.is_dir():
                return []
            for entry_path in sorted(store_path.iterdir(), key=lambda path: path.stat().st_mtime):
                url, _ = self._serializer.loads(await self._file_manager.read_from(str(entry_path)))
                urls.append(url)
        return urls

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncSQLiteStorage(AsyncBaseStorage):
    """
    A simple sqlite3 storage.

    :param serializer: Serializer capable of serializing and de-serializing stored responses, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param connection: A connection for sqlite, defaults to None
    :type connection: tp.Optional[anysqlite.Connection], optional
    :param database_path: Where the database lives when no connection is given
    :type database_path: tp.Union[str, Path]
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        connection: tp.Optional[anysqlite.Connection] = None,
        database_path: tp.Union[str, Path] = "hearth_cache.db",
    ) -> None:
        self._serializer = serializer or MsgpackSerializer()
        self._connection: tp.Optional[anysqlite.Connection] = connection or None
        self._database_path = Path(database_path)
        self._setup_lock = AsyncLock()
        self._setup_completed: bool = False
        self._lock = AsyncLock()

    async def _setup(self) -> anysqlite.Connection:
        async with self._setup_lock:
            if not self._setup_completed:
                if not self._connection:  # pragma: no cover
                    parent = self._database_path.parent if self._database_path.parent != Path(".") else None
                    full_path = ensure_cache_dir(parent) / self._database_path.name
                    self._connection = await anysqlite.connect(str(full_path), check_same_thread=False)
                await self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS stores(name TEXT PRIMARY KEY, created_at REAL NOT NULL)"
                )
                await self._connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS entries (
                        store TEXT NOT NULL,
                        url TEXT NOT NULL,
                        data BLOB NOT NULL,
                        PRIMARY KEY (store, url)
                    )
                    """
                )
                await self._connection.commit()
                self._setup_completed = True
        assert self._connection
        return self._connection

    async def _create(self, connection: anysqlite.Connection, name: str) -> None:
        await connection.execute("INSERT OR IGNORE INTO stores(name, created_at) VALUES(?, ?)", [name, time.time()])

    async def create(self, name: str) -> None:
        connection = await self._setup()

        async with self._lock:
            await self._create(connection, name)
            await connection.commit()

    async def keys(self) -> tp.List[str]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT name FROM stores ORDER BY created_at, rowid")
            return [row[0] for row in await cursor.fetchall()]

    async def delete(self, name: str) -> bool:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT 1 FROM stores WHERE name = ?", [name])
            existed = await cursor.fetchone() is not None
            await connection.execute("DELETE FROM entries WHERE store = ?", [name])
            await connection.execute("DELETE FROM stores WHERE name = ?", [name])
            await connection.commit()
            if existed:
                logger.debug(f"Deleted store {name!r}")
            return existed

    async def match(self, name: str, url: str) -> tp.Optional[CachedResponse]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT data FROM entries WHERE store = ? AND url = ?", [name, url])
            row = await cursor.fetchone()
            if row is None:
                return None

            _, response = self._serializer.loads(row[0])
            return response

    async def put(self, name: str, url: str, response: CachedResponse) -> None:
        connection = await self._setup()

        async with self._lock:
            await self._create(connection, name)
            await connection.execute(
                "INSERT OR REPLACE INTO entries(store, url, data) VALUES(?, ?, ?)",
                [name, url, self._serializer.dumps(url=url, response=response)],
            )
            await connection.commit()

    async def remove(self, name: str, url: str) -> bool:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT 1 FROM entries WHERE store = ? AND url = ?", [name, url])
            existed = await cursor.fetchone() is not None
            await connection.execute("DELETE FROM entries WHERE store = ? AND url = ?", [name, url])
            await connection.commit()
            return existed

    async def urls(self, name: str) -> tp.List[str]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT url FROM entries WHERE store = ? ORDER BY rowid", [name])
            return [row[0] for row in await cursor.fetchall()]

    async def aclose(self) -> None:  # pragma: no cover
        if self._connection is not None:
            await self._connection.close()
