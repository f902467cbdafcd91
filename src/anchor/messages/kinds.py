# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# A Kind identifies the format of a message body. Message envelopes are
# decoded without looking at their body, but turning a body into a typed
# payload (and back) needs the payload type associated with the Kind id.
# Kinds register themselves when they are created, so applications can add
# their own Kinds by instantiating Kind with an unused id and name.


from collections.abc import MutableMapping
from dataclasses import dataclass
from io import BytesIO
from typing import ClassVar, Final, Self, assert_never

from .datamodel import DataWireProtocol, UInt8Adapter, remaining_length
from .exceptions import BodyDecodeError, UnknownKindError
from .types import DnsBody, GenericBody, GeoMarkerBody, ImageBody, OpaqueBody, ProofBody, StateBody, TextBody, TokenBody, VoteBody

__all__ = 'Kind', 'KindID', 'KindName', 'decode_body', 'Generic', 'Text', 'State', 'Vote', 'Image', 'GeoMarker', 'DNS', 'Proof', 'Token'  # noqa: RUF022


type KindID = int
type KindName = str


MAX_STANDARD_KIND = 10


@dataclass(kw_only=True, slots=True)
class Kind:
    id: Final[int]
    name: Final[str]
    payload_type: Final[type[DataWireProtocol]]

    _id_map: ClassVar[MutableMapping[int, Self]] = {}
    _name_map: ClassVar[MutableMapping[str, Self]] = {}
    _type_map: ClassVar[MutableMapping[type, Self]] = {}

    def __post_init__(self) -> None:
        UInt8Adapter.validate(self.id)
        if not issubclass(self.payload_type, DataWireProtocol):
            raise TypeError(f'The payload type of a Kind must implement the DataWireProtocol: {self.payload_type.__qualname__!r}')
        if self.id in self._id_map:
            raise ValueError(f'The Kind id is already used by another Kind: {self._id_map[self.id]}')
        if self.name in self._name_map:
            raise ValueError(f'The Kind name is already used by another Kind: {self._name_map[self.name]}')
        if self.payload_type in self._type_map:
            raise ValueError(f'The payload type is already used by another Kind: {self._type_map[self.payload_type]}')
        self._id_map[self.id] = self
        self._name_map[self.name] = self
        self._type_map[self.payload_type] = self

    @property
    def is_standard(self) -> bool:
        return self.id <= MAX_STANDARD_KIND

    @classmethod
    def lookup(cls, identifier: KindID | KindName) -> Self:
        try:
            match identifier:
                case int():
                    return cls._id_map[identifier]
                case str():
                    return cls._name_map[identifier]
                case _:
                    assert_never(identifier)
        except KeyError:
            raise UnknownKindError(f'Unknown kind: {identifier!r}') from None

    @classmethod
    def for_payload(cls, payload: object) -> Self:
        for payload_type in type(payload).__mro__:
            if (kind := cls._type_map.get(payload_type)) is not None:
                return kind
        raise TypeError(f'No kind is associated with payloads of type {type(payload).__qualname__!r}')

    def encode(self, payload: DataWireProtocol) -> bytes:
        if not isinstance(payload, self.payload_type):
            raise TypeError(f'The {self.name} kind needs a {self.payload_type.__qualname__!r} payload, not {type(payload).__qualname__!r}')
        return payload.to_wire()

    def decode(self, body: bytes) -> DataWireProtocol:
        buffer = BytesIO(body)
        try:
            payload = self.payload_type.from_wire(buffer)
        except ValueError as exc:
            raise BodyDecodeError(self.id, str(exc)) from exc
        if excess := remaining_length(buffer):
            raise BodyDecodeError(self.id, f'{excess} unexpected bytes after the end of the {self.payload_type.__qualname__} payload')
        return payload


def decode_body(kind: KindID, body: bytes) -> DataWireProtocol:
    """Decode a message body, falling back to an opaque body for unknown kinds"""
    try:
        kind_info = Kind.lookup(kind)
    except UnknownKindError:
        return OpaqueBody(body)
    return kind_info.decode(body)


Generic = Kind(id=0, name='generic', payload_type=GenericBody)
Text = Kind(id=1, name='text', payload_type=TextBody)
State = Kind(id=2, name='state', payload_type=StateBody)
Vote = Kind(id=3, name='vote', payload_type=VoteBody)
Image = Kind(id=4, name='image', payload_type=ImageBody)
GeoMarker = Kind(id=5, name='geomarker', payload_type=GeoMarkerBody)
DNS = Kind(id=10, name='dns', payload_type=DnsBody)
Proof = Kind(id=11, name='proof', payload_type=ProofBody)
Token = Kind(id=20, name='token', payload_type=TokenBody)
