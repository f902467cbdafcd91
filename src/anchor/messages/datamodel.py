# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import enum
import math
import struct
from collections.abc import Buffer, Iterable, MutableMapping
from io import BytesIO
from ipaddress import IPv4Address, IPv6Address
from types import GenericAlias, NotImplementedType, new_class
from typing import Any, ClassVar, Protocol, Self, SupportsBytes, SupportsIndex, SupportsInt, TypeVar, overload, runtime_checkable

from .varint import decode_varint, encode_varint, varint_length

__all__ = (  # noqa: RUF022
    # Protocols and types

    'WireData',
    'DataWireProtocol',
    'DataWireAdapter',

    # Adapters and the adapter registry

    'AdapterRegistry',

    'UnsignedIntegerAdapter',
    'UInt8Adapter',
    'UInt16Adapter',
    'UInt32Adapter',
    'UInt64Adapter',
    'OptionalUInt64Adapter',

    'VarIntAdapter',
    'OptionalVarIntAdapter',
    'PositiveVarIntAdapter',

    'Float32Adapter',
    'LatitudeAdapter',
    'LongitudeAdapter',

    'StringAdapter',
    'String8Adapter',
    'OptionalStringAdapter',
    'OptionalString8Adapter',
    'TextAdapter',
    'RemainderBytesAdapter',

    'IPv4AddressAdapter',
    'IPv6AddressAdapter',

    # Abstract types

    'UnsignedInteger',

    'Enum',
    'Flag',

    'LiteralBytes',
    'FixedSize',

    'List',
    'CountedList',
    'make_list_type',
    'make_counted_list_type',

    # Concrete types

    'UInt8',

    'NoLength',

    'Magic',
    'TxidPrefix',
    'TransactionID',

    # Helpers

    'byte_length',
    'remaining_length',
)


type WireData = bytes | bytearray | memoryview | BytesIO


# Protocols

@runtime_checkable
class DataWireProtocol(Protocol):
    """The wire protocol for message data elements"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self: ...

    def to_wire(self) -> bytes: ...

    def wire_length(self) -> int: ...


@runtime_checkable
class DataWireAdapter[T](Protocol):
    """Wire protocol adapter for a message data element of type T"""

    _abstract_: ClassVar[bool] = True

    @staticmethod
    def from_wire(buffer: WireData) -> T: ...

    @staticmethod
    def to_wire(value: T, /) -> bytes: ...

    @staticmethod
    def wire_length(value: T, /) -> int: ...

    @staticmethod
    def validate(value: T, /) -> T: ...


class AdapterRegistry[T]:
    _adapters: ClassVar[MutableMapping[type, type[DataWireAdapter]]] = {}

    @classmethod
    def associate(cls, data_type: type[T], adapter: type[DataWireAdapter[T]]) -> None:
        if issubclass(data_type, DataWireProtocol):
            raise TypeError('Adapters for types that already implement DataWireProtocol must be explicitly provided with the element descriptors.')
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type[T]) -> type[DataWireAdapter[T]] | None:
        return cls._adapters.get(data_type, None)


# Helpers

def byte_length(number: int) -> int:
    """Return the number of bytes needed to represent the number"""
    return (number.bit_length() + 7) // 8


def remaining_length(buffer: BytesIO) -> int:
    """Return the number of bytes that can still be read from the buffer"""
    return len(buffer.getbuffer()) - buffer.tell()


def _read(buffer: WireData, size: int) -> bytes:
    if isinstance(buffer, BytesIO):
        return buffer.read(size)
    return bytes(buffer[:size])


# Adapters

class UnsignedIntegerAdapter:
    _abstract_: ClassVar[bool] = True
    _bits_: ClassVar[int] = NotImplemented
    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, bits: int = NotImplemented, **kw: object) -> None:
        if bits is not NotImplemented:
            cls._bits_ = bits
            cls._size_ = bits // 8
            cls._abstract_ = False
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> int:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract an unsigned {cls._bits_}-bit integer')
        return int.from_bytes(data, byteorder='big')

    @classmethod
    def to_wire(cls, value: int, /) -> bytes:
        return value.to_bytes(cls._size_, byteorder='big')

    @classmethod
    def wire_length(cls, _: int, /) -> int:
        return cls._size_

    @classmethod
    def validate(cls, value: int, /) -> int:
        if value < 0 or value.bit_length() > cls._bits_:
            raise ValueError(f'Value is out of range for unsigned {cls._bits_}-bits integer: {value!r}')
        return value


class UInt8Adapter(UnsignedIntegerAdapter, bits=8):
    pass


class UInt16Adapter(UnsignedIntegerAdapter, bits=16):
    pass


class UInt32Adapter(UnsignedIntegerAdapter, bits=32):
    pass


class UInt64Adapter(UnsignedIntegerAdapter, bits=64):
    pass


class OptionalUInt64Adapter(UInt64Adapter):
    """An unsigned 64-bit integer where 0 on the wire stands for a missing value"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> int | None:  # type: ignore[override]
        return super().from_wire(buffer) or None

    @classmethod
    def to_wire(cls, value: int | None, /) -> bytes:  # type: ignore[override]
        return super().to_wire(value or 0)

    @classmethod
    def validate(cls, value: int | None, /) -> int | None:  # type: ignore[override]
        if value is None:
            return None
        if value == 0:
            raise ValueError('Use None instead of 0 to indicate a missing value')
        return super().validate(value)


class VarIntAdapter:
    """Adapter for an arbitrary precision unsigned integer encoded as a varint"""

    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> int:
        if not isinstance(buffer, BytesIO):
            return decode_varint(buffer)[0]
        position = buffer.tell()
        with buffer.getbuffer() as data:
            value, consumed = decode_varint(data, position)
        buffer.seek(position + consumed)
        return value

    @staticmethod
    def to_wire(value: int, /) -> bytes:
        return encode_varint(value)

    @staticmethod
    def wire_length(value: int, /) -> int:
        return varint_length(value)

    @staticmethod
    def validate(value: int, /) -> int:
        if value < 0:
            raise ValueError(f'Value is out of range for varint: {value!r}')
        return value


class PositiveVarIntAdapter(VarIntAdapter):
    @staticmethod
    def from_wire(buffer: WireData) -> int:
        return PositiveVarIntAdapter.validate(VarIntAdapter.from_wire(buffer))

    @staticmethod
    def validate(value: int, /) -> int:
        if value <= 0:
            raise ValueError(f'Value must be a positive integer: {value!r}')
        return value


class OptionalVarIntAdapter(VarIntAdapter):
    """A varint where 0 on the wire stands for a missing value"""

    @staticmethod
    def from_wire(buffer: WireData) -> int | None:  # type: ignore[override]
        return VarIntAdapter.from_wire(buffer) or None

    @staticmethod
    def to_wire(value: int | None, /) -> bytes:  # type: ignore[override]
        return encode_varint(value or 0)

    @staticmethod
    def wire_length(value: int | None, /) -> int:  # type: ignore[override]
        return varint_length(value or 0)

    @staticmethod
    def validate(value: int | None, /) -> int | None:  # type: ignore[override]
        if value is not None and value <= 0:
            raise ValueError(f'Value must be a positive integer or None: {value!r}')
        return value


class Float32Adapter:
    """Adapter for a single precision IEEE 754 float, optionally limited to a range"""

    _abstract_: ClassVar[bool] = False
    _size_: ClassVar[int] = 4
    _format_: ClassVar[struct.Struct] = struct.Struct('!f')
    _min_value_: ClassVar[float] = -math.inf
    _max_value_: ClassVar[float] = +math.inf

    def __init_subclass__(cls, *, min_value: float = -math.inf, max_value: float = +math.inf, **kw: object) -> None:
        cls._min_value_ = min_value
        cls._max_value_ = max_value
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> float:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError('Insufficient data in buffer to extract a 32-bit float')
        value, = cls._format_.unpack(data)
        if not cls._min_value_ <= value <= cls._max_value_:
            raise ValueError(f'Value is out of range [{cls._min_value_}, {cls._max_value_}]: {value!r}')
        return value

    @classmethod
    def to_wire(cls, value: float, /) -> bytes:
        return cls._format_.pack(value)

    @classmethod
    def wire_length(cls, _: float, /) -> int:
        return cls._size_

    @classmethod
    def validate(cls, value: float, /) -> float:
        if not cls._min_value_ <= value <= cls._max_value_:  # this also rejects NaN
            raise ValueError(f'Value is out of range [{cls._min_value_}, {cls._max_value_}]: {value!r}')
        try:
            value, = cls._format_.unpack(cls._format_.pack(value))  # round to the nearest value representable on the wire
        except OverflowError as exc:
            raise ValueError(f'Value cannot be represented as a 32-bit float: {value!r}') from exc
        return value


class LatitudeAdapter(Float32Adapter, min_value=-90.0, max_value=90.0):
    pass


class LongitudeAdapter(Float32Adapter, min_value=-180.0, max_value=180.0):
    pass


class StringAdapter:
    """Represent strings as UTF-8 encoded length prefixed bytes limited to maxsize"""

    _abstract_: ClassVar[bool] = True
    _maxsize_: ClassVar[int] = NotImplemented
    _sizelen_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, maxsize: int = NotImplemented, **kw: object) -> None:
        if maxsize is not NotImplemented:
            cls._maxsize_ = maxsize
            cls._sizelen_ = byte_length(maxsize)
            cls._abstract_ = False
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> str:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        length_data = buffer.read(cls._sizelen_)
        if len(length_data) < cls._sizelen_:
            raise ValueError('Insufficient data in buffer to extract the length of the string')
        data_length = int.from_bytes(length_data, byteorder='big')
        if data_length > cls._maxsize_:
            raise ValueError(f'Data length is too big for the string ({data_length} > {cls._maxsize_})')
        string_data = buffer.read(data_length)
        if len(string_data) < data_length:
            raise ValueError('Insufficient data in buffer to extract the bytes representation of the string')
        try:
            return string_data.decode()
        except UnicodeDecodeError as exc:
            raise ValueError(f'Cannot decode bytes to string: {exc}') from exc

    @classmethod
    def to_wire(cls, value: str, /) -> bytes:
        data = value.encode()
        return len(data).to_bytes(cls._sizelen_, byteorder='big') + data

    @classmethod
    def wire_length(cls, value: str, /) -> int:
        return cls._sizelen_ + len(value.encode())

    @classmethod
    def validate(cls, value: str, /) -> str:
        data = value.encode()
        if len(data) > cls._maxsize_:
            raise ValueError(f'Value is too long for string (max length is {cls._maxsize_}, value has {len(data)} bytes)')
        return value


class String8Adapter(StringAdapter, maxsize=2**8 - 1):
    pass


class OptionalStringAdapter(StringAdapter):
    """A length prefixed string where a zero length stands for a missing value"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> str | None:  # type: ignore[override]
        return super().from_wire(buffer) or None

    @classmethod
    def to_wire(cls, value: str | None, /) -> bytes:  # type: ignore[override]
        return super().to_wire(value or '')

    @classmethod
    def wire_length(cls, value: str | None, /) -> int:  # type: ignore[override]
        return super().wire_length(value or '')

    @classmethod
    def validate(cls, value: str | None, /) -> str | None:  # type: ignore[override]
        if value is None:
            return None
        if not value:
            raise ValueError('Use None instead of an empty string to indicate a missing value')
        return super().validate(value)


class OptionalString8Adapter(OptionalStringAdapter, maxsize=2**8 - 1):
    pass


class TextAdapter:
    """A UTF-8 string that extends to the end of the buffer"""

    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> str:
        data = buffer.read() if isinstance(buffer, BytesIO) else bytes(buffer)
        try:
            return data.decode()
        except UnicodeDecodeError as exc:
            raise ValueError(f'Cannot decode bytes to string: {exc}') from exc

    @staticmethod
    def to_wire(value: str, /) -> bytes:
        return value.encode()

    @staticmethod
    def wire_length(value: str, /) -> int:
        return len(value.encode())

    @staticmethod
    def validate(value: str, /) -> str:
        return value


class RemainderBytesAdapter:
    """Opaque bytes that extend to the end of the buffer"""

    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> bytes:
        return buffer.read() if isinstance(buffer, BytesIO) else bytes(buffer)

    @staticmethod
    def to_wire(value: bytes, /) -> bytes:
        return bytes(value)

    @staticmethod
    def wire_length(value: bytes, /) -> int:
        return len(value)

    @staticmethod
    def validate(value: bytes, /) -> bytes:
        if not isinstance(value, bytes | bytearray | memoryview):
            raise TypeError(f'Value must be a bytes-like object, not {type(value).__qualname__!r}')
        return bytes(value)


class IPv4AddressAdapter:
    _abstract_: ClassVar[bool] = False
    _size_ = UInt32Adapter._size_

    @classmethod
    def from_wire(cls, buffer: WireData) -> IPv4Address:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError('Insufficient data in buffer to extract an IPv4Address')
        return IPv4Address(data)

    @classmethod
    def to_wire(cls, value: IPv4Address, /) -> bytes:
        return value.packed

    @classmethod
    def wire_length(cls, _: IPv4Address, /) -> int:
        return cls._size_

    @classmethod
    def validate(cls, value: IPv4Address, /) -> IPv4Address:
        return IPv4Address(value)


class IPv6AddressAdapter:
    _abstract_: ClassVar[bool] = False
    _size_ = 16

    @classmethod
    def from_wire(cls, buffer: WireData) -> IPv6Address:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError('Insufficient data in buffer to extract an IPv6Address')
        return IPv6Address(data)

    @classmethod
    def to_wire(cls, value: IPv6Address, /) -> bytes:
        return value.packed

    @classmethod
    def wire_length(cls, _: IPv6Address, /) -> int:
        return cls._size_

    @classmethod
    def validate(cls, value: IPv6Address, /) -> IPv6Address:
        return IPv6Address(value)


# Data types

type ConvertibleToInt = str | Buffer | SupportsInt | SupportsIndex


# Numeric types

class UnsignedInteger(int):
    _bits_: ClassVar[int] = NotImplemented
    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, bits: int = NotImplemented, **kw: object) -> None:
        if bits is not NotImplemented:
            cls._bits_ = bits
            cls._size_ = bits // 8
        super().__init_subclass__(**kw)

    @overload
    def __new__(cls, x: ConvertibleToInt = ..., /) -> Self: ...

    @overload
    def __new__(cls, x: str | Buffer, /, base: SupportsIndex) -> Self: ...

    def __new__(cls, *args, **kw) -> Self:
        if cls._bits_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract unsigned integer type {cls.__qualname__!r} that does not define its bit length')
        value = super().__new__(cls, *args, **kw)
        if value < 0 or value.bit_length() > cls._bits_:
            raise ValueError(f'Value is out of range for unsigned {cls._bits_}-bits integer: {value!r}')
        return value

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract unsigned integer type {cls.__qualname__!r} that does not define its bit length')
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls.from_bytes(data, byteorder='big')

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


class UInt8(UnsignedInteger, bits=8):
    pass


class NoLength(UnsignedInteger, bits=0):
    """Special type for dependent elements that do not have a length prefix"""

    @overload
    def __new__(cls, x: ConvertibleToInt = ..., /) -> Self: ...

    @overload
    def __new__(cls, x: str | Buffer, /, base: SupportsIndex) -> Self: ...

    def __new__(cls, *_args, **_kw) -> Self:
        return super(UnsignedInteger, cls).__new__(cls)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}()'


# Enumeration and flag types

class Enum(enum.IntEnum):
    _size_: ClassVar[int]

    def __init_subclass__(cls, *, size: int = 1, **kw: object) -> None:
        cls._size_ = size
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls(int.from_bytes(data, byteorder='big'))

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


class Flag(enum.IntFlag):
    _size_: ClassVar[int]

    def __init_subclass__(cls, *, size: int = 1, **kw: object) -> None:
        cls._size_ = size
        super().__init_subclass__(**kw)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls(int.from_bytes(data, byteorder='big'))

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


# Byte strings

class LiteralBytes(bytes):
    _instance_: ClassVar[Self] = NotImplemented

    def __init_subclass__(cls, *, value: bytes | bytearray | memoryview = NotImplemented, **kw: object) -> None:
        if value is not NotImplemented:
            cls._instance_ = super().__new__(cls, value)
        super().__init_subclass__(**kw)

    def __new__(cls) -> Self:
        if cls._instance_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract literal bytes type {cls.__qualname__!r} that does not define its value')
        return cls._instance_

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}()'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._instance_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract literal bytes type {cls.__qualname__!r} that does not define its value')
        size = len(cls._instance_)
        data = _read(buffer, size)
        if len(data) < size:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        if data != cls._instance_:
            raise ValueError(f'Value on wire does not match {cls.__qualname__!r}')
        return cls._instance_

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return len(self)


class FixedSize(bytes):
    """A fixed size bytes buffer"""

    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, size: int = NotImplemented, **kw: object) -> None:
        if size is not NotImplemented:
            cls._size_ = size
        super().__init_subclass__(**kw)

    @overload
    def __new__(cls) -> Self: ...

    @overload
    def __new__(cls, o: Iterable[SupportsIndex] | SupportsIndex | SupportsBytes | Buffer, /) -> Self: ...

    @overload
    def __new__(cls, string: str, /, encoding: str, errors: str = ...) -> Self: ...

    def __new__(cls, *args, **kw):
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        instance = super().__new__(cls, *args, **kw)
        if len(instance) != cls._size_:
            raise ValueError(f'{cls.__qualname__!r} objects must have {cls._size_} bytes')
        return instance

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        data = _read(buffer, cls._size_)
        if len(data) < cls._size_:
            raise ValueError(f'Insufficient data in buffer to extract {cls.__qualname__!r}')
        return cls(data)

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return self._size_


# Special values

class Magic(LiteralBytes, value=b'\xa1\x1c\x00\x01'):
    pass


# IDs

class TransactionID(FixedSize, size=32):
    """A transaction id in internal byte order (the reverse of the order used to display it)"""

    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.to_hex()}>'

    @classmethod
    def from_hex(cls, string: str, /) -> Self:
        return cls(bytes.fromhex(string)[::-1])

    def to_hex(self) -> str:
        return self[::-1].hex()

    @property
    def prefix(self) -> 'TxidPrefix':
        return TxidPrefix(self[:TxidPrefix._size_])


class TxidPrefix(FixedSize, size=8):
    def __repr__(self) -> str:
        return f'<{self.__class__.__qualname__}: {self.hex()}>'

    def matches(self, txid: bytes, /) -> bool:
        return txid[:self._size_] == self


# List types

class List[T: DataWireProtocol](list[T]):
    _type_: type[T] = NotImplementedType

    def __init_subclass__(cls, *, custom_repr: bool = True, **kw: object) -> None:
        if not custom_repr:
            cls.__repr__ = list.__repr__  # type: ignore[method-assign]
        for base in getattr(cls, '__orig_bases__', ()):
            if isinstance(base, GenericAlias) and isinstance(base.__origin__, type) and issubclass(base.__origin__, List):
                match base.__args__[0]:
                    case TypeVar():
                        pass  # new type is still generic
                    case type() as list_type:
                        cls._type_ = list_type
                    case _:
                        raise TypeError(f'The {cls.__qualname__!r} type can only be parameterized with a single base type or a type variable')
        super().__init_subclass__(**kw)

    def __init__(self, iterable: Iterable[T] = (), /) -> None:
        if self._type_ is NotImplementedType:
            raise TypeError(f'Cannot instantiate abstract list {self.__class__.__qualname__!r} that does not define its item type')
        super().__init__(iterable)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._type_ is NotImplementedType:
            raise TypeError(f'Cannot instantiate abstract list {cls.__qualname__!r} that does not define its item type')
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        buffer_length = len(buffer.getbuffer())
        items = []
        while buffer.tell() < buffer_length:
            item = cls._type_.from_wire(buffer)
            items.append(item)
        return cls(items)

    def to_wire(self) -> bytes:
        return b''.join(item.to_wire() for item in self)

    def wire_length(self) -> int:
        return sum(item.wire_length() for item in self)


class CountedList[T: DataWireProtocol](List[T]):
    """A list prefixed with the number of items it contains"""

    _maxcount_: ClassVar[int] = NotImplemented
    _mincount_: ClassVar[int] = 0
    _countlen_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, maxcount: int = NotImplemented, mincount: int = NotImplemented, **kw: Any) -> None:  # noqa: ANN401
        if maxcount is not NotImplemented:
            cls._maxcount_ = maxcount
            cls._countlen_ = byte_length(maxcount)
        if mincount is not NotImplemented:
            cls._mincount_ = mincount
        super().__init_subclass__(**kw)

    def __init__(self, iterable: Iterable[T] = (), /) -> None:
        if self._countlen_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract counted list {self.__class__.__qualname__!r} that does not define its max count')
        super().__init__(iterable)
        if len(self) > self._maxcount_:
            raise ValueError(f'{self.__class__.__qualname__!r} objects can have at most {self._maxcount_} items')
        if len(self) < self._mincount_:
            raise ValueError(f'{self.__class__.__qualname__!r} objects must have at least {self._mincount_} items')

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if cls._countlen_ is NotImplemented:
            raise TypeError(f'Cannot instantiate abstract counted list {cls.__qualname__!r} that does not define its max count')
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        count_data = buffer.read(cls._countlen_)
        if len(count_data) < cls._countlen_:
            raise ValueError(f'Insufficient data in buffer to extract the item count for {cls.__qualname__!r}')
        count = int.from_bytes(count_data, byteorder='big')
        item_size = getattr(cls._type_, '_size_', NotImplemented)
        if item_size is not NotImplemented and remaining_length(buffer) < count * item_size:
            raise ValueError(f'Insufficient data in buffer to extract {count} items for {cls.__qualname__!r}')
        return cls(cls._type_.from_wire(buffer) for _ in range(count))

    def to_wire(self) -> bytes:
        return len(self).to_bytes(self._countlen_, byteorder='big') + super().to_wire()

    def wire_length(self) -> int:
        return self._countlen_ + super().wire_length()


def make_list_type[T: DataWireProtocol](item_type: type[T], *, custom_repr: bool = True) -> type[List[T]]:
    return new_class(f'{item_type.__name__}List', (List[item_type],), kwds={'custom_repr': custom_repr})  # type: ignore[valid-type]


def make_counted_list_type[T: DataWireProtocol](item_type: type[T], /, *, maxcount: int, mincount: int = 0, custom_repr: bool = True) -> type[CountedList[T]]:
    return new_class(f'{item_type.__name__}List', (CountedList[item_type],), kwds={'maxcount': maxcount, 'mincount': mincount, 'custom_repr': custom_repr})  # type: ignore[valid-type]
