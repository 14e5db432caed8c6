from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

from music_bridge.models import LinkInfo


K = TypeVar("K")
V = TypeVar("V")


class LinkResolver(ABC):
    @abstractmethod
    async def resolve_link(self, url: str) -> LinkInfo | None: ...


class NopLinkResolver(LinkResolver):
    async def resolve_link(self, url: str) -> LinkInfo | None:
        return None


class MultiLinkResolver(LinkResolver):
    def __init__(self, resolvers: Sequence[LinkResolver]) -> None:
        self.resolvers: tuple[LinkResolver, ...] = tuple(resolvers)

    async def resolve_link(self, url: str) -> LinkInfo | None:
        for resolver in self.resolvers:
            result = await resolver.resolve_link(url)
            if result is not None:
                return result
        return None


class InMemoryCache(Generic[K, V]):
    """Append-only cache. `None` is never stored, so failed lookups can be retried.

    Concurrent `get_or_create_async` calls for the same missing key share one
    in-flight factory call.
    """

    def __init__(self) -> None:
        self._values: dict[K, V] = {}
        self._pending: dict[K, asyncio.Task[V | None]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    async def get_or_create_async(
        self, key: K, create: Callable[[K], Awaitable[V | None]]
    ) -> V | None:
        if key in self._values:
            return self._values[key]
        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._create_and_store(key, create))
            self._pending[key] = pending
        # A cancelled waiter must not cancel the lookup other callers share.
        return await asyncio.shield(pending)

    async def _create_and_store(
        self, key: K, create: Callable[[K], Awaitable[V | None]]
    ) -> V | None:
        try:
            value = await create(key)
            if value is not None:
                self._values[key] = value
            return value
        finally:
            self._pending.pop(key, None)


class CachingLinkResolver(LinkResolver):
    def __init__(
        self, resolver: LinkResolver, cache: InMemoryCache[str, LinkInfo] | None = None
    ) -> None:
        self.resolver = resolver
        self.cache: InMemoryCache[str, LinkInfo] = cache if cache is not None else InMemoryCache()

    async def resolve_link(self, url: str) -> LinkInfo | None:
        return await self.cache.get_or_create_async(url, self.resolver.resolve_link)
