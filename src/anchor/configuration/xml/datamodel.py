# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import MutableMapping
from fractions import Fraction
from typing import ClassVar, Protocol, Self, runtime_checkable

__all__ = (  # noqa: RUF022
    'DataConverter',
    'DataAdapter',
    'AdapterRegistry',

    'BooleanAdapter',
    'FractionAdapter',

    'IntegerAdapter',
    'PositiveIntegerAdapter',
    'NonNegativeIntegerAdapter',
    'UInt8Adapter',
)


@runtime_checkable
class DataConverter(Protocol):
    """A protocol that describes how a data type converts between itself and XML"""

    @classmethod
    def xml_parse(cls, value: str) -> Self:
        """Parse XML into the data type"""
        ...

    def xml_build(self: Self) -> str:
        """Build XML from the data type"""
        ...


@runtime_checkable
class DataAdapter[T](Protocol):
    """A protocol that describes an external adapter between a data type T and XML"""

    @staticmethod
    def xml_parse(value: str, /) -> T:
        """Parse XML into the data type"""
        ...

    @staticmethod
    def xml_build(value: T, /) -> str:
        """Build XML from the data type"""
        ...


class AdapterRegistry[T]:
    _adapters: ClassVar[MutableMapping[type, type[DataAdapter]]] = {}

    @classmethod
    def associate(cls, data_type: type[T], adapter: type[DataAdapter[T]]) -> None:
        if issubclass(data_type, DataConverter):
            raise TypeError('Adapters for types that already support the DataConverter protocol must be explicitly provided with the attribute/element descriptors.')
        cls._adapters[data_type] = adapter

    @classmethod
    def get_adapter(cls, data_type: type[T]) -> type[DataAdapter[T]] | None:
        return cls._adapters.get(data_type, None)


class BooleanAdapter:
    @staticmethod
    def xml_parse(value: str) -> bool:
        match value.strip():
            case 'true' | '1':
                return True
            case 'false' | '0':
                return False
            case _:
                raise ValueError(f'Invalid boolean value: {value!r}')

    @staticmethod
    def xml_build(value: bool) -> str:  # noqa: FBT001
        return 'true' if value else 'false'


class FractionAdapter:
    """Exact non-negative fractions, written either as a ratio (1/4) or as a decimal number (0.25)"""

    @staticmethod
    def xml_parse(value: str) -> Fraction:
        number = Fraction(value.strip())
        if number < 0:
            raise ValueError(f"invalid value '{value}' for non-negative fraction")
        return number

    @staticmethod
    def xml_build(value: Fraction) -> str:
        return str(value)


AdapterRegistry.associate(bool, BooleanAdapter)
AdapterRegistry.associate(Fraction, FractionAdapter)


class IntegerAdapter:
    """
    Integers restricted to the [minimum, maximum] range, where a missing bound means unbounded.

    Subclasses give the bounds and the description used in error messages as class keywords,
    or use bits to describe an unsigned integer of that size.
    """

    minimum: ClassVar[int | None] = None
    maximum: ClassVar[int | None] = None
    description: ClassVar[str] = 'integer'

    def __init_subclass__(cls, *, minimum: int | None = None, maximum: int | None = None, description: str | None = None, bits: int | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if bits is not None:
            if bits <= 0:
                raise ValueError('when specified, bits must be a positive integer')
            minimum, maximum = 0, 2**bits - 1
            description = f'unsigned {bits}-bit integer'
        if minimum is not None:
            cls.minimum = minimum
        if maximum is not None:
            cls.maximum = maximum
        if description is not None:
            cls.description = description

    @classmethod
    def _check(cls, value: int, text: str) -> int:
        if (cls.minimum is not None and value < cls.minimum) or (cls.maximum is not None and value > cls.maximum):
            raise ValueError(f"invalid value '{text}' for {cls.description}")
        return value

    @classmethod
    def xml_parse(cls, value: str) -> int:
        return cls._check(int(value), value)

    @classmethod
    def xml_build(cls, value: int) -> str:
        return str(cls._check(value, str(value)))


class PositiveIntegerAdapter(IntegerAdapter, minimum=1, description='positive integer'):
    pass


class NonNegativeIntegerAdapter(IntegerAdapter, minimum=0, description='non-negative integer'):
    pass


class UInt8Adapter(IntegerAdapter, bits=8):
    pass
