# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import time
from collections.abc import Awaitable, Callable

import structlog

from .messages.types import SUPPORTED_TLDS, is_supported_domain, normalize_domain, validate_domain_name

__all__ = 'DomainCache', 'DomainResolver', 'SUPPORTED_TLDS', 'is_supported_domain', 'normalize_domain'  # noqa: RUF022


logger = structlog.get_logger()


type Clock = Callable[[], float]
type DomainLookup[T] = Callable[[str], Awaitable[T | None]]


class DomainCache[T]:
    """A domain name cache whose entries expire ttl seconds after they were stored"""

    def __init__(self, ttl: float, clock: Clock = time.monotonic) -> None:
        if ttl <= 0:
            raise ValueError(f'the cache ttl must be positive: {ttl!r}')
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[float, T]] = {}

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(ttl={self.ttl!r}, entries={len(self)})'

    def __len__(self) -> int:
        self._expire()
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def _expire(self) -> None:
        now = self.clock()
        for name in [name for name, (expires, _) in self._entries.items() if expires <= now]:
            del self._entries[name]

    def get(self, name: str) -> T | None:
        name = normalize_domain(name)
        try:
            expires, value = self._entries[name]
        except KeyError:
            return None
        if expires <= self.clock():
            del self._entries[name]
            return None
        return value

    def put(self, name: str, value: T) -> None:
        self._expire()
        self._entries[normalize_domain(name)] = (self.clock() + self.ttl, value)

    def invalidate(self, name: str) -> None:
        self._entries.pop(normalize_domain(name), None)

    def clear(self) -> None:
        self._entries.clear()


class DomainResolver[T]:
    def __init__(self, lookup: DomainLookup[T], cache: DomainCache[T]) -> None:
        self.lookup = lookup
        self.cache = cache

    async def resolve(self, name: str) -> T | None:
        """Resolve a domain name, using the cache when it has a fresh entry for it"""
        name = validate_domain_name(name)
        log = logger.bind(domain=name)
        value = self.cache.get(name)
        if value is not None:
            log.debug('Domain cache hit')
            return value
        log.debug('Domain cache miss')
        value = await self.lookup(name)
        if value is not None:
            self.cache.put(name, value)
        return value
