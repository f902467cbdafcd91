# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Message Structure

   Messages are embedded in transaction outputs. Each message starts with
   a fixed header that identifies it as a message and describes how the
   rest of it is to be interpreted. All integers are in network byte order.

     +-------------------------+
     |      Magic (4 bytes)    |   A1 1C 00 01
     +-------------------------+
     |       Kind (uint8)      |
     +-------------------------+
     |   Anchor count (uint8)  |
     +-------------------------+
     |   Anchors (9 bytes each)|
     +-------------------------+
     |          Body           |
     +-------------------------+

   Kind:  Identifies the format of the body. Unknown kinds do not prevent
      the message from being decoded, only its body from being interpreted.

   Anchors:  References to earlier transaction outputs, each made of the
      first 8 bytes of a transaction id followed by an output index. The
      first anchor is the canonical parent of the message. A message
      without anchors is a root message.

   Body:  Everything after the anchors, up to the end of the data. The
      body is opaque to the message envelope and is interpreted by the
      Kind that corresponds to the message kind.

"""

import struct
from collections.abc import Iterable, Sequence
from io import BytesIO
from typing import ClassVar, Self

from .datamodel import CountedList, Magic, RemainderBytesAdapter, TransactionID, TxidPrefix, UInt8Adapter, WireData
from .elements import AnnotatedStructure, Element, ListElement
from .exceptions import AnchorListTooLargeError, InvalidMagicError, PayloadTooShortError, TruncatedAnchorsError
from .kinds import Kind, KindID, KindName, decode_body

__all__ = (  # noqa: RUF022
    # Constants
    'MAGIC',
    'HEADER_SIZE',
    'ANCHOR_SIZE',
    'TXID_PREFIX_SIZE',
    'MAX_ANCHORS',
    'MAX_RECOMMENDED_ANCHORS',

    # Elements
    'Anchor',
    'AnchorList',

    # Messages
    'Message',

    # Helpers
    'encode_message',
    'decode_message',
    'is_anchor_payload',
    'txid_to_prefix',
    'txid_matches_prefix',
)


MAGIC = Magic()

TXID_PREFIX_SIZE = TxidPrefix._size_
HEADER_SIZE = len(MAGIC) + 2  # magic, kind, anchor count
ANCHOR_SIZE = TXID_PREFIX_SIZE + 1  # txid prefix, vout
MAX_ANCHORS = 2**8 - 1
MAX_RECOMMENDED_ANCHORS = 16


class TxidPrefixAdapter:
    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> TxidPrefix:
        return TxidPrefix.from_wire(buffer)

    @staticmethod
    def to_wire(value: TxidPrefix, /) -> bytes:
        return value.to_wire()

    @staticmethod
    def wire_length(value: TxidPrefix, /) -> int:
        return value.wire_length()

    @staticmethod
    def validate(value: bytes, /) -> TxidPrefix:
        return value if isinstance(value, TxidPrefix) else TxidPrefix(value)


class Anchor(AnnotatedStructure, frozen=True):
    _size_: ClassVar[int] = ANCHOR_SIZE

    txid_prefix: Element[TxidPrefix] = Element(TxidPrefix, adapter=TxidPrefixAdapter)
    vout: Element[int] = Element(int, adapter=UInt8Adapter)

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.txid_prefix.hex()}:{self.vout}>'

    @classmethod
    def for_transaction(cls, txid: TransactionID | bytes | str, vout: int) -> Self:
        """Create an anchor for the output of a transaction (a txid given as a string is in display order)"""
        txid = TransactionID.from_hex(txid) if isinstance(txid, str) else TransactionID(txid)
        return cls(txid_prefix=txid.prefix, vout=vout)

    def matches(self, txid: bytes, /) -> bool:
        return self.txid_prefix.matches(txid)


class AnchorList(CountedList[Anchor], maxcount=MAX_ANCHORS):
    def __init__(self, iterable: Iterable[Anchor] = (), /) -> None:
        anchors = list(iterable)
        if len(anchors) > self._maxcount_:
            raise AnchorListTooLargeError(len(anchors), self._maxcount_)
        super().__init__(anchors)


class Message(AnnotatedStructure, frozen=True):
    """
    Message structure:

        opaque  magic[4]  // A1 1C 00 01
        uint8   kind
        uint8   anchor_count
        Anchor  anchors[anchor_count]
        opaque  body[]    // until the end of the data
    """

    _preamble_ = struct.Struct('!4sBB')

    # magic -> A1 1C 00 01
    kind: Element[int] = Element(int, adapter=UInt8Adapter)
    # anchor_count -> uint8
    anchors: ListElement[Anchor] = ListElement(Anchor, default=(), list_type=AnchorList)
    body: Element[bytes] = Element(bytes, default=b'', adapter=RemainderBytesAdapter)

    @classmethod
    def new(cls, payload: object, *, kind: KindID | KindName | None = None, anchors: Sequence[Anchor] = ()) -> Self:
        """Create a message from a payload, using the kind associated with the payload type if kind is not given"""
        kind_info = Kind.for_payload(payload) if kind is None else Kind.lookup(kind)
        return cls(kind=kind_info.id, anchors=anchors, body=kind_info.encode(payload))  # type: ignore[arg-type]

    @classmethod
    def new_reply(cls, payload: object, *, parent: Anchor, anchors: Sequence[Anchor] = (), kind: KindID | KindName | None = None) -> Self:
        return cls.new(payload, kind=kind, anchors=[parent, *anchors])

    @property
    def is_root(self) -> bool:
        return not self.anchors

    @property
    def canonical_parent(self) -> Anchor | None:
        return self.anchors[0] if self.anchors else None

    @property
    def kind_info(self) -> Kind:
        return Kind.lookup(self.kind)

    @property
    def payload(self) -> object:
        """The decoded body (an OpaqueBody for unknown kinds, BodyDecodeError if the body is invalid)"""
        return decode_body(self.kind, self.body)

    def body_as_text(self) -> str:
        return self.body.decode(errors='replace')

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        data = buffer.read() if isinstance(buffer, BytesIO) else bytes(buffer)
        if len(data) < HEADER_SIZE:
            raise PayloadTooShortError(len(data), HEADER_SIZE)
        magic, _, anchor_count = cls._preamble_.unpack_from(data)
        if magic != MAGIC:
            raise InvalidMagicError(magic)
        if (available := len(data) - HEADER_SIZE) < anchor_count * ANCHOR_SIZE:
            raise TruncatedAnchorsError(anchor_count, available)
        return super().from_wire(data[len(MAGIC):])

    def to_wire(self) -> bytes:
        return MAGIC.to_wire() + super().to_wire()

    def wire_length(self) -> int:
        return MAGIC.wire_length() + super().wire_length()


# Helpers

def encode_message(kind: int, anchors: Sequence[Anchor], body: bytes) -> bytes:
    return Message(kind=kind, anchors=anchors, body=body).to_wire()


def decode_message(data: WireData) -> Message:
    return Message.from_wire(data)


def is_anchor_payload(data: bytes) -> bool:
    return len(data) >= HEADER_SIZE and data[:len(MAGIC)] == MAGIC


def txid_to_prefix(txid: bytes) -> TxidPrefix:
    return TransactionID(txid).prefix


def txid_matches_prefix(txid: bytes, prefix: bytes) -> bool:
    return TxidPrefix(prefix).matches(txid)
