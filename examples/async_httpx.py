#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "hearth",
# ]
#
# [tool.uv.sources]
# hearth = { path = "../", editable = true }
# ///

import asyncio

import anysqlite

from hearth import AsyncOfflineClient, AsyncSQLiteStorage, OfflineConfig


async def fetch_and_print(client, url: str, destination: str = ""):
    print(f"\n➡ Sending request to {url}...")
    headers = {"Sec-Fetch-Dest": destination} if destination else {}
    response = await client.get(url, headers=headers)

    print(f"📦 Status: {response.status_code}")
    print(f"🧭 Strategy: {response.extensions.get('strategy')}")
    print(f"🔄 From Cache: {response.extensions.get('from_cache')}")


async def main():
    config = OfflineConfig(origin="https://example.com", cache_name="example-v1", static_assets=("/",))
    storage = AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:"))

    async with AsyncOfflineClient(storage=storage, config=config) as client:
        await fetch_and_print(client, "https://example.com/", destination="document")
        await fetch_and_print(client, "https://example.com/favicon.ico", destination="image")
        await fetch_and_print(client, "https://example.com/favicon.ico", destination="image")


if __name__ == "__main__":
    asyncio.run(main())
