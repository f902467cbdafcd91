# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import unittest

import pytest

from anchor.domains import SUPPORTED_TLDS, DomainCache, DomainResolver, is_supported_domain, normalize_domain


class _TestClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestDomainNames:

    def test_supported_domains(self) -> None:
        assert SUPPORTED_TLDS == ('.btc', '.sat', '.anchor', '.anc', '.bit')
        for tld in SUPPORTED_TLDS:
            assert is_supported_domain(f'example{tld}')
        assert is_supported_domain('sub.example.btc')
        assert not is_supported_domain('example.com')
        assert not is_supported_domain('.btc')
        assert not is_supported_domain('example.btcx')
        assert not is_supported_domain('under_score.btc')

    def test_normalization(self) -> None:
        assert normalize_domain('Example.BTC') == 'example.btc'
        assert normalize_domain('example.btc.') == 'example.btc'
        assert normalize_domain('bücher.btc') == 'xn--bcher-kva.btc'
        with pytest.raises(ValueError, match='Invalid domain name'):
            normalize_domain('-example.btc')


class TestDomainCache:

    def test_expiration(self) -> None:
        clock = _TestClock()
        cache = DomainCache[str](ttl=60, clock=clock)
        cache.put('example.btc', 'value')
        assert cache.get('example.btc') == 'value'
        assert 'example.btc' in cache
        assert len(cache) == 1

        clock.advance(59.9)
        assert cache.get('example.btc') == 'value'
        clock.advance(0.1)
        assert cache.get('example.btc') is None
        assert 'example.btc' not in cache
        assert len(cache) == 0

    def test_names_are_normalized(self) -> None:
        cache = DomainCache[int](ttl=10, clock=_TestClock())
        cache.put('Example.BTC', 1)
        assert cache.get('example.btc') == 1
        assert cache.get('EXAMPLE.btc.') == 1
        cache.invalidate('example.BTC')
        assert cache.get('example.btc') is None

    def test_invalidate_and_clear(self) -> None:
        clock = _TestClock()
        cache = DomainCache[int](ttl=10, clock=clock)
        cache.put('a.btc', 1)
        cache.put('b.sat', 2)
        cache.invalidate('a.btc')
        cache.invalidate('missing.btc')
        assert len(cache) == 1
        cache.clear()
        assert len(cache) == 0

        cache.put('a.btc', 1)
        clock.advance(5)
        cache.put('b.sat', 2)
        clock.advance(5)
        assert len(cache) == 1
        assert cache.get('b.sat') == 2

    def test_expired_entries_are_pruned_on_put(self) -> None:
        clock = _TestClock()
        cache = DomainCache[int](ttl=10, clock=clock)
        for number in range(100):
            cache.put(f'name{number}.btc', number)
        clock.advance(10)
        cache.put('fresh.btc', 1)
        assert list(cache._entries) == ['fresh.btc']

    def test_invalid_ttl(self) -> None:
        with pytest.raises(ValueError, match='the cache ttl must be positive'):
            DomainCache(ttl=0)
        with pytest.raises(ValueError, match='the cache ttl must be positive'):
            DomainCache(ttl=-1)


class TestDomainResolver(unittest.IsolatedAsyncioTestCase):

    def setUp(self) -> None:
        self.clock = _TestClock()
        self.records = {'example.btc': '192.0.2.1', 'xn--bcher-kva.sat': '192.0.2.2'}
        self.lookups: list[str] = []
        self.resolver = DomainResolver(self.lookup, DomainCache[str](ttl=300, clock=self.clock))

    async def lookup(self, name: str) -> str | None:
        self.lookups.append(name)
        return self.records.get(name)

    async def test_cache_hits(self) -> None:
        self.assertEqual(await self.resolver.resolve('example.btc'), '192.0.2.1')
        self.assertEqual(await self.resolver.resolve('Example.BTC'), '192.0.2.1')
        self.assertEqual(self.lookups, ['example.btc'])

        self.records['example.btc'] = '192.0.2.10'
        self.clock.advance(300)
        self.assertEqual(await self.resolver.resolve('example.btc'), '192.0.2.10')
        self.assertEqual(self.lookups, ['example.btc', 'example.btc'])

    async def test_lookup_gets_normalized_name(self) -> None:
        self.assertEqual(await self.resolver.resolve('Bücher.SAT'), '192.0.2.2')
        self.assertEqual(self.lookups, ['xn--bcher-kva.sat'])

    async def test_missing_names_are_not_cached(self) -> None:
        self.assertIsNone(await self.resolver.resolve('missing.btc'))
        self.assertIsNone(await self.resolver.resolve('missing.btc'))
        self.assertEqual(self.lookups, ['missing.btc', 'missing.btc'])

        self.records['missing.btc'] = '192.0.2.3'
        self.assertEqual(await self.resolver.resolve('missing.btc'), '192.0.2.3')

    async def test_unsupported_domains(self) -> None:
        with self.assertRaisesRegex(ValueError, 'does not use one of the supported TLDs'):
            await self.resolver.resolve('example.com')
        with self.assertRaisesRegex(ValueError, 'Invalid domain name'):
            await self.resolver.resolve('bad_name.btc')
        self.assertEqual(self.lookups, [])
