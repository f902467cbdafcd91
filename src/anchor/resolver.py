# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Anchor resolution.

   Anchors only carry the first 8 bytes of the transaction id they refer to,
   so they have to be resolved against an index of transactions. Depending
   on how many transactions the index knows with that prefix, an anchor is
   either resolved, an orphan (the parent is not known, yet) or ambiguous.
   Ambiguous anchors list all the candidates and picking one of them is up
   to the caller.

   Resolution is stateless. Every call queries the index again and nothing
   is cached between calls.
"""

from collections.abc import Iterable, Set
from dataclasses import dataclass
from typing import Protocol, assert_never

import structlog

from .messages import Anchor
from .messages.datamodel import TransactionID

__all__ = 'AnchorIndex', 'Resolved', 'Orphan', 'Ambiguous', 'Resolution', 'ResolvedAnchor', 'AnchorResolver'  # noqa: RUF022


logger = structlog.get_logger()


class AnchorIndex(Protocol):
    """The transaction index used to resolve anchors"""

    async def find_by_prefix(self, prefix: bytes, /) -> Set[TransactionID]:
        """Return the ids of all the known transactions that start with prefix"""
        ...


@dataclass(frozen=True)
class Resolved:
    txid: TransactionID


@dataclass(frozen=True)
class Orphan:
    pass


@dataclass(frozen=True)
class Ambiguous:
    candidates: frozenset[TransactionID]


type Resolution = Resolved | Orphan | Ambiguous


@dataclass(frozen=True)
class ResolvedAnchor:
    index: int  # position in the message anchors
    anchor: Anchor
    resolution: Resolution

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.resolution, Resolved)

    @property
    def is_orphan(self) -> bool:
        return isinstance(self.resolution, Orphan)

    @property
    def is_ambiguous(self) -> bool:
        return isinstance(self.resolution, Ambiguous)

    @property
    def txid(self) -> TransactionID | None:
        match self.resolution:
            case Resolved(txid):
                return txid
            case Orphan() | Ambiguous():
                return None
            case _:
                assert_never(self.resolution)


class AnchorResolver:
    def __init__(self, index: AnchorIndex) -> None:
        self.index = index

    async def resolve_anchor(self, anchor: Anchor) -> Resolution:
        candidates = await self.index.find_by_prefix(anchor.txid_prefix)
        match len(candidates):
            case 0:
                logger.debug('Anchor parent is not known', anchor=anchor.txid_prefix.hex(), vout=anchor.vout)
                return Orphan()
            case 1:
                return Resolved(next(iter(candidates)))
            case count:
                logger.warning('Anchor matches multiple transactions', anchor=anchor.txid_prefix.hex(), vout=anchor.vout, candidates=count)
                return Ambiguous(frozenset(candidates))

    async def resolve(self, anchors: Iterable[Anchor]) -> list[ResolvedAnchor]:
        """Resolve the anchors in order, with one index lookup per anchor"""
        return [ResolvedAnchor(index, anchor, await self.resolve_anchor(anchor)) for index, anchor in enumerate(anchors)]
