# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import unittest
from collections.abc import Set

from anchor.messages import Anchor
from anchor.messages.datamodel import TransactionID
from anchor.resolver import Ambiguous, AnchorResolver, Orphan, Resolved, ResolvedAnchor


def make_txid(prefix: bytes, filler: int) -> TransactionID:
    return TransactionID(prefix + bytes([filler]) * (32 - len(prefix)))


class _TestIndex:
    def __init__(self, *txids: TransactionID) -> None:
        self.txids = set(txids)
        self.queries: list[bytes] = []

    async def find_by_prefix(self, prefix: bytes, /) -> Set[TransactionID]:
        self.queries.append(bytes(prefix))
        return {txid for txid in self.txids if txid.startswith(prefix)}


class _FailingIndex:
    async def find_by_prefix(self, prefix: bytes, /) -> Set[TransactionID]:
        raise ConnectionError('the index is not available')


class TestAnchorResolver(unittest.IsolatedAsyncioTestCase):

    def setUp(self) -> None:
        self.unique = make_txid(b'\x01' * 8, 0xaa)
        self.shared_1 = make_txid(b'\x02' * 8, 0xbb)
        self.shared_2 = make_txid(b'\x02' * 8, 0xcc)
        self.index = _TestIndex(self.unique, self.shared_1, self.shared_2)
        self.resolver = AnchorResolver(self.index)

    async def test_resolved(self) -> None:
        resolution = await self.resolver.resolve_anchor(Anchor.for_transaction(self.unique, 0))
        self.assertEqual(resolution, Resolved(self.unique))

    async def test_orphan(self) -> None:
        resolution = await self.resolver.resolve_anchor(Anchor.for_transaction(make_txid(b'\x03' * 8, 0), 1))
        self.assertEqual(resolution, Orphan())

    async def test_ambiguous(self) -> None:
        resolution = await self.resolver.resolve_anchor(Anchor.for_transaction(self.shared_1, 2))
        self.assertIsInstance(resolution, Ambiguous)
        assert isinstance(resolution, Ambiguous)
        self.assertEqual(resolution.candidates, {self.shared_1, self.shared_2})

    async def test_resolve_preserves_order(self) -> None:
        anchors = [
            Anchor.for_transaction(self.shared_2, 0),
            Anchor.for_transaction(make_txid(b'\x04' * 8, 0), 0),
            Anchor.for_transaction(self.unique, 5),
            Anchor.for_transaction(self.unique, 5),
        ]
        results = await self.resolver.resolve(anchors)

        self.assertEqual([result.index for result in results], [0, 1, 2, 3])
        self.assertEqual([result.anchor for result in results], anchors)
        self.assertTrue(results[0].is_ambiguous)
        self.assertTrue(results[1].is_orphan)
        self.assertTrue(results[2].is_resolved)
        self.assertEqual(results[2].txid, self.unique)
        self.assertEqual(results[3], ResolvedAnchor(3, anchors[3], Resolved(self.unique)))
        self.assertIsNone(results[0].txid)
        self.assertIsNone(results[1].txid)

        # one lookup per anchor, with nothing cached between them
        self.assertEqual(self.index.queries, [anchor.txid_prefix for anchor in anchors])

    async def test_resolve_is_stateless(self) -> None:
        anchor = Anchor.for_transaction(make_txid(b'\x05' * 8, 0), 0)
        self.assertEqual(await self.resolver.resolve_anchor(anchor), Orphan())
        parent = make_txid(b'\x05' * 8, 0x11)
        self.index.txids.add(parent)
        self.assertEqual(await self.resolver.resolve_anchor(anchor), Resolved(parent))

    async def test_no_anchors(self) -> None:
        self.assertEqual(await self.resolver.resolve([]), [])
        self.assertEqual(self.index.queries, [])

    async def test_index_errors(self) -> None:
        resolver = AnchorResolver(_FailingIndex())
        with self.assertRaises(ConnectionError):
            await resolver.resolve([Anchor.for_transaction(self.unique, 0)])
