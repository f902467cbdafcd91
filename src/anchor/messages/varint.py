# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Variable length unsigned integers.

   Integers are encoded in groups of 7 bits, least significant group first.
   The high bit of each byte is set when more bytes follow, so small values
   take a single byte while arbitrarily large values remain representable:

     0   -> 00
     127 -> 7f
     128 -> 80 01
     300 -> ac 02

"""

from collections.abc import Iterable

from .exceptions import InvalidVarintError

__all__ = 'MAX_VARINT_BITS', 'encode_varint', 'decode_varint', 'encode_varints', 'decode_varints', 'varint_length'  # noqa: RUF022


MAX_VARINT_BITS = 128


def encode_varint(value: int, /) -> bytes:
    if value < 0:
        raise ValueError(f'Cannot encode negative value as varint: {value!r}')
    result = bytearray()
    while True:
        byte = value & 0x7f
        value >>= 7
        if value:
            result.append(byte | 0x80)
        else:
            result.append(byte)
            return bytes(result)


def decode_varint(data: bytes | bytearray | memoryview, /, offset: int = 0) -> tuple[int, int]:
    """Decode a varint starting at offset and return the value and the number of bytes it used"""
    value = 0
    shift = 0
    position = offset
    while position < len(data):
        byte = data[position]
        position += 1
        value |= (byte & 0x7f) << shift
        if not byte & 0x80:
            return value, position - offset
        shift += 7
        if shift > MAX_VARINT_BITS:
            raise InvalidVarintError(f'Varint overflow (more than {MAX_VARINT_BITS} bits)')
    raise InvalidVarintError('Incomplete varint')


def encode_varints(values: Iterable[int], /) -> bytes:
    return b''.join(encode_varint(value) for value in values)


def decode_varints(data: bytes | bytearray | memoryview, /, count: int, offset: int = 0) -> tuple[list[int], int]:
    """Decode count consecutive varints and return the values and the total number of bytes used"""
    values = []
    position = offset
    for _ in range(count):
        value, consumed = decode_varint(data, position)
        values.append(value)
        position += consumed
    return values, position - offset


def varint_length(value: int, /) -> int:
    return max(1, (value.bit_length() + 6) // 7)
