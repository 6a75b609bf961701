"""Bounded cache of HTTP clients keyed by API credential."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Callable

import httpx

LOGGER = logging.getLogger(__name__)


class ClientCache:
    """LRU cache of ``httpx.AsyncClient`` instances, one per API key.

    Reusing a client keeps its connection pool warm. The least recently used
    client is closed once ``max_size`` distinct keys are held.
    """

    def __init__(self, factory: Callable[[str], httpx.AsyncClient], max_size: int = 8) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._factory = factory
        self._max_size = max_size
        self._clients: OrderedDict[str, httpx.AsyncClient] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, api_key: object) -> bool:
        return api_key in self._clients

    async def get(self, api_key: str) -> httpx.AsyncClient:
        async with self._lock:
            client = self._clients.get(api_key)
            if client is not None and not client.is_closed:
                self._clients.move_to_end(api_key)
                return client

            client = self._factory(api_key)
            self._clients[api_key] = client
            self._clients.move_to_end(api_key)
            while len(self._clients) > self._max_size:
                _, evicted = self._clients.popitem(last=False)
                LOGGER.debug("Evicting cached LLM client (cache size %d)", self._max_size)
                await evicted.aclose()
            return client

    async def aclose(self) -> None:
        async with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            await client.aclose()
