from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import time

from amberdist.domain.distribution import Subscriber
from amberdist.services.distribution.interfaces import SubscriberDirectory


class CachedSubscriberDirectory:
    # Short TTL cache over a subscriber directory. Opt-outs must take effect quickly,
    # so entries expire after ttl_s and a zero TTL disables caching entirely.
    def __init__(
        self,
        inner: SubscriberDirectory,
        *,
        ttl_s: float = 30.0,
        monotonic: Callable[[], float] | None = None,
    ) -> None:
        self._inner = inner
        self._ttl_s = max(0.0, float(ttl_s))
        self._monotonic = monotonic or time.monotonic
        self._cache: dict[tuple[str, tuple[str, ...]], tuple[float, list[Subscriber]]] = {}
        self._lock = asyncio.Lock()

    async def list_subscribers(self, *, channel: str, provinces: Sequence[str] = ()) -> list[Subscriber]:
        if self._ttl_s <= 0:
            return await self._inner.list_subscribers(channel=channel, provinces=provinces)
        key = (channel, tuple(sorted(province.lower() for province in provinces)))
        async with self._lock:
            entry = self._cache.get(key)
            if entry is not None and entry[0] > self._monotonic():
                return list(entry[1])
            self._cache.pop(key, None)
        subscribers = await self._inner.list_subscribers(channel=channel, provinces=provinces)
        async with self._lock:
            self._cache[key] = (self._monotonic() + self._ttl_s, list(subscribers))
        return subscribers
