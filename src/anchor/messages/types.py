# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Payload types for the message bodies of the standard kinds"""

import hashlib
from collections.abc import Iterable, Sequence
from io import BytesIO
from ipaddress import IPv4Address, IPv6Address
from typing import ClassVar, Self

import idna

from .datamodel import (
    CountedList,
    Enum,
    FixedSize,
    Flag,
    IPv4AddressAdapter,
    IPv6AddressAdapter,
    LatitudeAdapter,
    LongitudeAdapter,
    NoLength,
    OptionalString8Adapter,
    OptionalUInt64Adapter,
    OptionalVarIntAdapter,
    PositiveVarIntAdapter,
    String8Adapter,
    TextAdapter,
    UInt8,
    UInt8Adapter,
    UInt16Adapter,
    VarIntAdapter,
    WireData,
    remaining_length,
)
from .elements import AnnotatedStructure, DependentElementSpec, Element, FieldDependentElement, ListElement
from .exceptions import HashSizeMismatchError

__all__ = (  # noqa: RUF022
    # Raw and text bodies
    'RawBody',
    'GenericBody',
    'VoteBody',
    'ImageBody',
    'OpaqueBody',
    'TextBody',

    # State
    'Pixel',
    'PixelList',
    'StateBody',

    # Geo markers
    'GeoMarkerBody',

    # DNS
    'SUPPORTED_TLDS',
    'DnsOperation',
    'RecordType',
    'AddressRecord',
    'IPv6AddressRecord',
    'NameRecord',
    'TextRecord',
    'MailExchangeRecord',
    'ServiceRecord',
    'DnsRecord',
    'DnsBody',
    'normalize_domain',
    'validate_domain_name',
    'is_supported_domain',

    # Proofs
    'ProofOperation',
    'ProofAlgorithm',
    'SHA256Digest',
    'SHA512Digest',
    'ProofMetadata',
    'ProofEntry',
    'ProofEntryList',
    'ProofBody',

    # Tokens
    'TokenOperation',
    'DeployFlags',
    'TokenDeploy',
    'TokenMint',
    'TokenAllocation',
    'TokenAllocationList',
    'TokenTransfer',
    'TokenBurn',
    'TokenBody',
)


# Raw and text bodies

class RawBody(bytes):
    """Bytes that take up the whole message body"""

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        return cls(buffer.read() if isinstance(buffer, BytesIO) else buffer)

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return len(self)


class GenericBody(RawBody):
    pass


class VoteBody(RawBody):
    pass


class ImageBody(RawBody):
    pass


class OpaqueBody(RawBody):
    """The body of a message with a kind that is not known locally"""


class TextBody(str):
    """
    UTF-8 text that takes up the whole message body.

    Decoding is permissive: invalid UTF-8 sequences are replaced with the
    unicode replacement character instead of failing, as text bodies are
    meant to be displayed no matter what they contain.
    """

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        data = buffer.read() if isinstance(buffer, BytesIO) else bytes(buffer)
        return cls(data.decode(errors='replace'))

    def to_wire(self) -> bytes:
        return self.encode()

    def wire_length(self) -> int:
        return len(self.encode())


# State

class Pixel(AnnotatedStructure):
    _size_: ClassVar[int] = 7

    x: Element[int] = Element(int, adapter=UInt16Adapter)
    y: Element[int] = Element(int, adapter=UInt16Adapter)
    r: Element[int] = Element(int, adapter=UInt8Adapter)
    g: Element[int] = Element(int, adapter=UInt8Adapter)
    b: Element[int] = Element(int, adapter=UInt8Adapter)


class PixelList(CountedList[Pixel], maxcount=2**32 - 1):
    pass


class StateBody(AnnotatedStructure):
    """
    State body structure:

        uint32  pixel_count
        Pixel   pixels[pixel_count]

    where each pixel is x (uint16), y (uint16), r, g, b (uint8). The pixel
    count is checked against the available data before any pixel is read.
    """

    pixels: ListElement[Pixel] = ListElement(Pixel, list_type=PixelList)


# Geo markers

class GeoMarkerBody(AnnotatedStructure):
    category: Element[int] = Element(int, adapter=UInt8Adapter)
    latitude: Element[float] = Element(float, adapter=LatitudeAdapter)
    longitude: Element[float] = Element(float, adapter=LongitudeAdapter)
    message: Element[str] = Element(str, default='', adapter=String8Adapter)


# DNS

SUPPORTED_TLDS = ('.btc', '.sat', '.anchor', '.anc', '.bit')

MAX_DOMAIN_LENGTH = 255


def normalize_domain(name: str) -> str:
    try:
        return idna.encode(name.rstrip('.'), uts46=True).decode('ascii')
    except idna.IDNAError as exc:
        raise ValueError(f'Invalid domain name {name!r}: {exc}') from exc


def validate_domain_name(name: str) -> str:
    """Return the normalized domain name or raise ValueError if it's not a valid name for a supported TLD"""
    normalized = normalize_domain(name)
    if len(normalized) > MAX_DOMAIN_LENGTH:
        raise ValueError(f'Domain name is too long: {len(normalized)} bytes (max {MAX_DOMAIN_LENGTH})')
    if not any(normalized.endswith(tld) and len(normalized) > len(tld) for tld in SUPPORTED_TLDS):
        raise ValueError(f'Domain name {name!r} does not use one of the supported TLDs: {', '.join(SUPPORTED_TLDS)}')
    return normalized


def is_supported_domain(name: str) -> bool:
    try:
        validate_domain_name(name)
    except ValueError:
        return False
    return True


class DomainNameAdapter(String8Adapter):
    @classmethod
    def from_wire(cls, buffer: WireData) -> str:
        return cls.validate(super().from_wire(buffer))

    @classmethod
    def validate(cls, value: str, /) -> str:
        return super().validate(validate_domain_name(value))


class DnsOperation(Enum):
    register = 1
    update = 2
    transfer = 3


class RecordType(Enum):
    A = 1
    AAAA = 2
    CNAME = 3
    TXT = 4
    MX = 5
    NS = 6
    SRV = 7


class RecordData(AnnotatedStructure):
    """Record data must fill exactly the space given by its length prefix"""

    _maxsize_: ClassVar[int] = 2**8 - 1

    def __init__(self, **kw: object) -> None:
        super().__init__(**kw)
        if (length := self.wire_length()) > self._maxsize_:
            raise ValueError(f'{self.__class__.__qualname__} data is too long ({length} > {self._maxsize_} bytes)')

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        instance = super().from_wire(buffer)
        if excess := remaining_length(buffer):
            raise ValueError(f'{excess} unexpected bytes after the {cls.__qualname__} data')
        return instance


class AddressRecord(RecordData):
    address: Element[IPv4Address] = Element(IPv4Address, adapter=IPv4AddressAdapter)


class IPv6AddressRecord(RecordData):
    address: Element[IPv6Address] = Element(IPv6Address, adapter=IPv6AddressAdapter)


class NameRecord(RecordData):
    name: Element[str] = Element(str, adapter=TextAdapter)


class TextRecord(RecordData):
    text: Element[str] = Element(str, adapter=TextAdapter)


class MailExchangeRecord(RecordData):
    priority: Element[int] = Element(int, default=10, adapter=UInt16Adapter)
    host: Element[str] = Element(str, adapter=TextAdapter)


class ServiceRecord(RecordData):
    priority: Element[int] = Element(int, default=0, adapter=UInt16Adapter)
    weight: Element[int] = Element(int, default=0, adapter=UInt16Adapter)
    port: Element[int] = Element(int, adapter=UInt16Adapter)
    target: Element[str] = Element(str, adapter=TextAdapter)


type RecordDataType = AddressRecord | IPv6AddressRecord | NameRecord | TextRecord | MailExchangeRecord | ServiceRecord


class DnsRecord(AnnotatedStructure):
    """
    DNS record structure:

        RecordType  type
        uint16      ttl
        uint8       length  // length of data (not exposed)
        RecordData  data    // based on type
    """

    _data_specification: ClassVar = DependentElementSpec[RecordDataType, RecordType](
        type_map={
            RecordType.A: AddressRecord,
            RecordType.AAAA: IPv6AddressRecord,
            RecordType.CNAME: NameRecord,
            RecordType.TXT: TextRecord,
            RecordType.MX: MailExchangeRecord,
            RecordType.NS: NameRecord,
            RecordType.SRV: ServiceRecord,
        },
        length_type=UInt8,
        check_length=True,
    )

    type: Element[RecordType] = Element(RecordType)
    ttl: Element[int] = Element(int, default=3600, adapter=UInt16Adapter)
    data: FieldDependentElement[RecordDataType, RecordType] = FieldDependentElement(control_field=type, specification=_data_specification)

    @classmethod
    def a(cls, address: IPv4Address | str, *, ttl: int = 3600) -> Self:
        return cls(type=RecordType.A, ttl=ttl, data=AddressRecord(address=IPv4Address(address)))

    @classmethod
    def aaaa(cls, address: IPv6Address | str, *, ttl: int = 3600) -> Self:
        return cls(type=RecordType.AAAA, ttl=ttl, data=IPv6AddressRecord(address=IPv6Address(address)))

    @classmethod
    def txt(cls, text: str, *, ttl: int = 3600) -> Self:
        return cls(type=RecordType.TXT, ttl=ttl, data=TextRecord(text=text))


class DnsBody(AnnotatedStructure):
    """
    DNS body structure:

        DnsOperation  operation
        uint8         name_length
        char          name[name_length]  // IDNA normalized, with a supported TLD
        DnsRecord     records[]          // until the end of the body
    """

    operation: Element[DnsOperation] = Element(DnsOperation)
    name: Element[str] = Element(str, adapter=DomainNameAdapter)
    records: ListElement[DnsRecord] = ListElement(DnsRecord, default=())

    @classmethod
    def register(cls, name: str, records: Sequence[DnsRecord] = ()) -> Self:
        return cls(operation=DnsOperation.register, name=name, records=records)

    @classmethod
    def update(cls, name: str, records: Sequence[DnsRecord] = ()) -> Self:
        return cls(operation=DnsOperation.update, name=name, records=records)

    @classmethod
    def transfer(cls, name: str) -> Self:
        return cls(operation=DnsOperation.transfer, name=name)


# Proofs

class ProofOperation(Enum):
    stamp = 1
    revoke = 2
    batch = 3


class ProofAlgorithm(Enum):
    sha256 = 1
    sha512 = 2

    @property
    def digest_size(self) -> int:
        return hashlib.new(self.name).digest_size

    def digest(self, data: bytes) -> bytes:
        return hashlib.new(self.name, data).digest()


class SHA256Digest(FixedSize, size=32):
    pass


class SHA512Digest(FixedSize, size=64):
    pass


class ProofMetadata(AnnotatedStructure, frozen=True):
    """
    Proof metadata structure:

        uint8   filename_length
        char    filename[filename_length]
        uint8   mime_type_length
        char    mime_type[mime_type_length]
        uint64  file_size
        uint8   description_length
        char    description[description_length]

    A zero length or a zero file size means that the field is missing and
    is represented by None.
    """

    filename: Element[str | None] = Element(str | None, default=None, adapter=OptionalString8Adapter)
    mime_type: Element[str | None] = Element(str | None, default=None, adapter=OptionalString8Adapter)
    file_size: Element[int | None] = Element(int | None, default=None, adapter=OptionalUInt64Adapter)
    description: Element[str | None] = Element(str | None, default=None, adapter=OptionalString8Adapter)


type DigestType = SHA256Digest | SHA512Digest


class ProofEntry(AnnotatedStructure):
    _hash_specification: ClassVar = DependentElementSpec[DigestType, ProofAlgorithm](
        type_map={
            ProofAlgorithm.sha256: SHA256Digest,
            ProofAlgorithm.sha512: SHA512Digest,
        },
        length_type=NoLength,
    )

    algorithm: Element[ProofAlgorithm] = Element(ProofAlgorithm)
    hash: FieldDependentElement[DigestType, ProofAlgorithm] = FieldDependentElement(control_field=algorithm, specification=_hash_specification)
    metadata: Element[ProofMetadata] = Element(ProofMetadata, default=ProofMetadata())

    @classmethod
    def new(cls, algorithm: ProofAlgorithm, digest: bytes, metadata: ProofMetadata | None = None) -> Self:
        if len(digest) != algorithm.digest_size:
            raise HashSizeMismatchError(algorithm.name, algorithm.digest_size, len(digest))
        digest_type = cls._hash_specification.type_map[algorithm]
        return cls(algorithm=algorithm, hash=digest_type(digest), metadata=ProofMetadata() if metadata is None else metadata)

    @classmethod
    def for_data(cls, data: bytes, algorithm: ProofAlgorithm = ProofAlgorithm.sha256, metadata: ProofMetadata | None = None) -> Self:
        return cls.new(algorithm, algorithm.digest(data), metadata)


class ProofEntryList(CountedList[ProofEntry], maxcount=2**8 - 1, mincount=1):
    pass


type ProofContentType = ProofEntry | ProofEntryList


class ProofBody(AnnotatedStructure):
    _content_specification: ClassVar = DependentElementSpec[ProofContentType, ProofOperation](
        type_map={
            ProofOperation.stamp: ProofEntry,
            ProofOperation.revoke: ProofEntry,
            ProofOperation.batch: ProofEntryList,
        },
        length_type=NoLength,
    )

    operation: Element[ProofOperation] = Element(ProofOperation)
    content: FieldDependentElement[ProofContentType, ProofOperation] = FieldDependentElement(control_field=operation, specification=_content_specification)

    @property
    def entries(self) -> list[ProofEntry]:
        match self.content:
            case ProofEntryList() as entries:
                return list(entries)
            case ProofEntry() as entry:
                return [entry]

    @classmethod
    def stamp(cls, entry: ProofEntry) -> Self:
        return cls(operation=ProofOperation.stamp, content=entry)

    @classmethod
    def revoke(cls, entry: ProofEntry) -> Self:
        return cls(operation=ProofOperation.revoke, content=entry)

    @classmethod
    def batch(cls, entries: Iterable[ProofEntry]) -> Self:
        return cls(operation=ProofOperation.batch, content=ProofEntryList(entries))


# Tokens

MAX_TICKER_LENGTH = 32
MAX_DECIMALS = 18


class TokenOperation(Enum):
    deploy = 1
    mint = 2
    transfer = 3
    burn = 4
    split = 5


class DeployFlags(Flag):
    OPEN_MINT = 1
    FIXED_SUPPLY = 2
    BURNABLE = 4


class TickerAdapter(String8Adapter):
    """Token tickers are 1 to 32 alphanumeric ASCII characters, stored in upper case"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> str:
        return cls.validate(super().from_wire(buffer))

    @classmethod
    def validate(cls, value: str, /) -> str:
        if not 0 < len(value) <= MAX_TICKER_LENGTH:
            raise ValueError(f'Ticker must have between 1 and {MAX_TICKER_LENGTH} characters: {value!r}')
        if not (value.isascii() and value.isalnum()):
            raise ValueError(f'Ticker must be alphanumeric: {value!r}')
        return super().validate(value.upper())


class DecimalsAdapter(UInt8Adapter):
    @classmethod
    def from_wire(cls, buffer: WireData) -> int:
        return cls.validate(super().from_wire(buffer))

    @classmethod
    def validate(cls, value: int, /) -> int:
        if value > MAX_DECIMALS:
            raise ValueError(f'Token decimals cannot exceed {MAX_DECIMALS}: {value!r}')
        return super().validate(value)


class DeployFlagsAdapter:
    """Deploy flags that are optional on the wire, where they are missing at the end of the body if not set"""

    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> DeployFlags:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        if remaining_length(buffer) == 0:
            return DeployFlags(0)
        return DeployFlags.from_wire(buffer)

    @staticmethod
    def to_wire(value: DeployFlags, /) -> bytes:
        return value.to_wire()

    @staticmethod
    def wire_length(value: DeployFlags, /) -> int:
        return value.wire_length()

    @staticmethod
    def validate(value: DeployFlags | int, /) -> DeployFlags:
        UInt8Adapter.validate(value)
        return DeployFlags(value)


class TokenDeploy(AnnotatedStructure):
    ticker: Element[str] = Element(str, adapter=TickerAdapter)
    decimals: Element[int] = Element(int, default=0, adapter=DecimalsAdapter)
    max_supply: Element[int] = Element(int, adapter=PositiveVarIntAdapter)
    mint_limit: Element[int | None] = Element(int | None, default=None, adapter=OptionalVarIntAdapter)
    flags: Element[DeployFlags] = Element(DeployFlags, default=DeployFlags(0), adapter=DeployFlagsAdapter)


class TokenMint(AnnotatedStructure):
    token_id: Element[int] = Element(int, adapter=VarIntAdapter)
    amount: Element[int] = Element(int, adapter=PositiveVarIntAdapter)
    output_index: Element[int] = Element(int, adapter=UInt8Adapter)


class TokenAllocation(AnnotatedStructure):
    output_index: Element[int] = Element(int, adapter=UInt8Adapter)
    amount: Element[int] = Element(int, adapter=PositiveVarIntAdapter)


class TokenAllocationList(CountedList[TokenAllocation], maxcount=2**8 - 1, mincount=1):
    pass


class TokenTransfer(AnnotatedStructure):
    token_id: Element[int] = Element(int, adapter=VarIntAdapter)
    allocations: ListElement[TokenAllocation] = ListElement(TokenAllocation, list_type=TokenAllocationList)


class TokenBurn(AnnotatedStructure):
    token_id: Element[int] = Element(int, adapter=VarIntAdapter)
    amount: Element[int] = Element(int, adapter=PositiveVarIntAdapter)


type TokenDataType = TokenDeploy | TokenMint | TokenTransfer | TokenBurn


class TokenBody(AnnotatedStructure):
    _data_specification: ClassVar = DependentElementSpec[TokenDataType, TokenOperation](
        type_map={
            TokenOperation.deploy: TokenDeploy,
            TokenOperation.mint: TokenMint,
            TokenOperation.transfer: TokenTransfer,
            TokenOperation.burn: TokenBurn,
            TokenOperation.split: TokenTransfer,
        },
        length_type=NoLength,
    )

    operation: Element[TokenOperation] = Element(TokenOperation)
    data: FieldDependentElement[TokenDataType, TokenOperation] = FieldDependentElement(control_field=operation, specification=_data_specification)

    @classmethod
    def deploy(cls, *, ticker: str, max_supply: int, decimals: int = 0, mint_limit: int | None = None, flags: DeployFlags = DeployFlags(0)) -> Self:
        data = TokenDeploy(ticker=ticker, decimals=decimals, max_supply=max_supply, mint_limit=mint_limit, flags=flags)
        return cls(operation=TokenOperation.deploy, data=data)

    @classmethod
    def mint(cls, *, token_id: int, amount: int, output_index: int) -> Self:
        return cls(operation=TokenOperation.mint, data=TokenMint(token_id=token_id, amount=amount, output_index=output_index))

    @classmethod
    def transfer(cls, *, token_id: int, allocations: Sequence[TokenAllocation]) -> Self:
        return cls(operation=TokenOperation.transfer, data=TokenTransfer(token_id=token_id, allocations=allocations))

    @classmethod
    def split(cls, *, token_id: int, allocations: Sequence[TokenAllocation]) -> Self:
        return cls(operation=TokenOperation.split, data=TokenTransfer(token_id=token_id, allocations=allocations))

    @classmethod
    def burn(cls, *, token_id: int, amount: int) -> Self:
        return cls(operation=TokenOperation.burn, data=TokenBurn(token_id=token_id, amount=amount))
