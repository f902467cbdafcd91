# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from inspect import Parameter, Signature
from io import BytesIO
from operator import or_
from types import NoneType, UnionType, new_class
from typing import ClassVar, Self, cast, dataclass_transform, overload

from .datamodel import AdapterRegistry, CountedList, DataWireAdapter, DataWireProtocol, List, NoLength, UnsignedInteger, WireData, make_counted_list_type, make_list_type

__all__ = (  # noqa: RUF022
    'Structure',
    'AnnotatedStructure',

    'DependentElementSpec',

    'Element',
    'FieldDependentElement',
    'ListElement',
)


class Structure:  # noqa: PLW1641
    __signature__: ClassVar[Signature] = Signature()

    _fields_: ClassVar[dict[str, 'FieldDescriptor']] = {}
    _frozen_: ClassVar[bool] = False

    _all_arguments: ClassVar[frozenset[str]]
    _mandatory_arguments: ClassVar[frozenset[str]]
    _default_arguments: ClassVar[dict[str, object]]

    def __new__(cls, **kw: object) -> Self:
        if not cls._all_arguments.issuperset(kw):
            raise TypeError(f'Got an unexpected keyword argument {next(iter(set(kw) - cls._all_arguments))!r}')
        if not cls._mandatory_arguments.issubset(kw):
            raise TypeError(f'Missing a required keyword argument {next(iter(cls._mandatory_arguments - set(kw)))!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        # Fields need to be set in the order they were defined (dependent
        # elements need their control element to be set first), but **kw
        # can be provided in any order.
        kw = self._default_arguments | kw
        for name in self._fields_:
            setattr(self, name, kw[name])

    def __init_subclass__(cls, *, frozen: bool = NotImplemented, **kw: object) -> None:
        super().__init_subclass__(**kw)

        # all the fields on this element (both inherited and locally defined)
        fields = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}

        cls._fields_ = fields
        if frozen is not NotImplemented:
            cls._frozen_ = frozen
        if cls._frozen_:
            cls.__hash__ = Structure._frozen_hash  # type: ignore[method-assign,assignment]

        cls.__signature__ = Signature(parameters=[descriptor.signature_parameter for descriptor in fields.values()])
        cls._all_arguments = frozenset(cls.__signature__.parameters)
        cls._mandatory_arguments = frozenset(p.name for p in cls.__signature__.parameters.values() if p.default is Parameter.empty)
        cls._default_arguments = {p.name: p.default for p in cls.__signature__.parameters.values() if p.default is not Parameter.empty}

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={_reprproxy(getattr(self, name))!r}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Structure):
            return type(self) is type(other) and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    def _frozen_hash(self) -> int:
        return hash((type(self), *(tuple(value) if isinstance(value, list) else value for value in map(self.__getattribute__, self._fields_))))

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        instance = super().__new__(cls)
        for field in cls._fields_.values():
            field.from_wire(instance, buffer)
        return instance

    def to_wire(self) -> bytes:
        return b''.join(field.to_wire(self) for field in self._fields_.values())

    def wire_length(self) -> int:
        return sum(field.wire_length(self) for field in self._fields_.values())


# Helpers

class _reprproxy:  # noqa: N801
    # Provide better representation for certain types which can be evaluated to recreate the object.

    def __init__(self, value: object) -> None:
        self.value = value

    def __repr__(self) -> str:
        match self.value:
            case Enum() as value:  # this also covers Flag which is a subclass of Enum
                return f'{value.__class__.__qualname__}.{value.name}'
            case UnionType() as value:
                return ' | '.join('None' if _type is NoneType else _type.__qualname__ for _type in value.__args__)
            case type() as value:
                return value.__qualname__
            case value:
                return repr(value)

    __str__ = __repr__


def _protocol2adapter[T: DataWireProtocol](proto: type[T]) -> type[DataWireAdapter[T]]:
    # Turn a DataWireProtocol into a DataWireAdapter by creating a stand-in adapter on the fly.
    #
    # Adapters have an extra validate() method that protocols don't have. The stand-in
    # adapter's validate only checks that the value is an instance of the protocol type,
    # so that a value that would serialize differently cannot be stored in the element.

    def validate(value: T, /) -> T:
        if not isinstance(value, proto):
            raise TypeError(f'Value must be of type {proto.__qualname__!r}, not {type(value).__qualname__!r}')
        return value

    def prepare(ns: dict) -> None:
        ns['_abstract_'] = False
        ns['from_wire'] = staticmethod(proto.from_wire)
        ns['to_wire'] = staticmethod(proto.to_wire)
        ns['wire_length'] = staticmethod(proto.wire_length)
        ns['validate'] = staticmethod(validate)

    adapter = new_class(f'{proto.__name__}AdapterStandIn', (DataWireAdapter[T],), exec_body=prepare)
    adapter.__module__ = __name__
    adapter.__qualname__ = f'_protocol2adapter.<generated>.{adapter.__name__}'

    return adapter


def _assign(instance: Structure, name: str, value: object) -> None:
    if instance._frozen_ and name in instance.__dict__:
        raise AttributeError(f'Attribute {name!r} of frozen {instance.__class__.__qualname__!r} object cannot be changed')
    instance.__dict__[name] = value


type DataWireAdapterType[T] = type[DataWireAdapter[T]]


# Field descriptor specifications

class FieldDescriptor(ABC):
    name: str | None

    @property
    @abstractmethod
    def signature_parameter(self) -> Parameter: ...

    @abstractmethod
    def from_wire(self, instance: Structure, buffer: WireData) -> None: ...

    @abstractmethod
    def to_wire(self, instance: Structure) -> bytes: ...

    @abstractmethod
    def wire_length(self, instance: Structure) -> int: ...

    def __set_name__(self, owner: type[Structure], name: str) -> None:
        if self.name is None:
            self.name = name
        elif name != self.name:
            raise TypeError(f'Cannot assign the same {self.__class__.__qualname__!r} to two different names: {self.name!r} and {name!r}')

    def __delete__(self, instance: Structure) -> None:
        raise AttributeError(f'Attribute {self.name!r} of {instance.__class__.__qualname__!r} object cannot be deleted')

    def _read_value(self, instance: Structure) -> object:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        try:
            return instance.__dict__[self.name]
        except KeyError as exc:
            raise AttributeError(f'Attribute {self.name!r} of object {instance.__class__.__qualname__!r} is not set') from exc


class ElementDescriptor[T](FieldDescriptor):
    name: str | None
    type: type[T] | UnionType
    default: T
    adapter: DataWireAdapterType[T]

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type, **kwds)


class DependentElementDescriptor[T, U](FieldDescriptor):
    name: str | None
    type_map: Mapping[U, type[T]]
    length_type: type[UnsignedInteger]
    check_length: bool
    default: T

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        annotation = reduce(or_, dict.fromkeys(self.type_map.values()))
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=annotation, **kwds)


class ListElementDescriptor[T: DataWireProtocol](FieldDescriptor):
    name: str | None
    default: Sequence[T]
    item_type: type[T]
    list_type: type[List[T]]

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        kwds = {} if self.default is NotImplemented else {'default': self.default}
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=list[self.item_type], **kwds)  # type: ignore[name-defined]


# Field descriptor implementations

class Element[T](ElementDescriptor[T]):
    @overload
    def __init__(self, element_type: type[T], /, *, default: T = ..., adapter: DataWireAdapterType[T] | None = ...) -> None: ...

    @overload
    def __init__(self, element_type: UnionType, /, *, default: T = ..., adapter: DataWireAdapterType[T]) -> None: ...

    def __init__(self, element_type: type[T] | UnionType, /, *, default: T = NotImplemented, adapter: DataWireAdapterType[T] | None = None) -> None:
        self.name = None
        self.type = element_type
        self.default = default
        self.provided_adapter = adapter
        if adapter is None:
            if isinstance(element_type, UnionType):
                raise TypeError('When the element type is a union of types an adapter for the same types must be provided')
            if issubclass(element_type, DataWireProtocol):
                adapter = cast(DataWireAdapterType[T], _protocol2adapter(element_type))
            else:
                adapter = AdapterRegistry.get_adapter(element_type)
        if adapter is None:
            raise TypeError('Either the element type must implement the DataWireProtocol or an adapter must be provided')
        if adapter._abstract_:
            raise TypeError(f'Cannot use abstract adapter {adapter.__qualname__!r} (need to select a concrete implementation of it, usually one that defines its size or value)')
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({_reprproxy(self.type)!r}, default={self.default!r}, adapter={_reprproxy(self.provided_adapter)!r})'

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> T: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | T:
        if instance is None:
            return self
        return cast(T, self._read_value(instance))

    def __set__(self, instance: Structure, value: T) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        _assign(instance, self.name, self.adapter.validate(value))

    def from_wire(self, instance: Structure, buffer: WireData) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        try:
            instance.__dict__[self.name] = self.adapter.from_wire(buffer)
        except ValueError as exc:
            raise ValueError(f'Failed to read the {instance.__class__.__qualname__}.{self.name} element from wire: {exc}') from exc

    def to_wire(self, instance: Structure) -> bytes:
        return self.adapter.to_wire(self.__get__(instance))

    def wire_length(self, instance: Structure) -> int:
        return self.adapter.wire_length(self.__get__(instance))


@dataclass(kw_only=True, slots=True)
class DependentElementSpec[T: DataWireProtocol, U]:
    type_map: Mapping[U, type[T]]
    length_type: type[UnsignedInteger]
    check_length: bool = False

    def __post_init__(self) -> None:
        if self.length_type._size_ is NotImplemented:
            raise TypeError('The length type cannot be an abstract UnsignedInteger type that does not define its size')
        if not self.type_map:
            raise TypeError(f'A {self.__class__.__qualname__!r} must have a non-empty type_map')
        if self.length_type is NoLength and self.check_length:
            raise TypeError(f'A {self.__class__.__qualname__!r} that has no length prefix must have check_length=False')

    def __repr__(self) -> str:
        type_map = {_reprproxy(name): _reprproxy(value) for name, value in self.type_map.items()}
        length_type = _reprproxy(self.length_type)
        return f'{self.__class__.__qualname__}({type_map=}, {length_type=}, check_length={self.check_length!r})'


class FieldDependentElement[T: DataWireProtocol, U](DependentElementDescriptor[T, U]):
    """
    An element whose type is selected by the value of a previous element.

    The control field must be defined before the dependent element in the
    structure. The value of the control field is looked up in the type map
    of the specification to find the type of the dependent element, which
    may optionally be prefixed on the wire by its length.
    """

    control_field: ElementDescriptor[U]

    def __init__(self, *, control_field: ElementDescriptor[U], specification: DependentElementSpec[T, U], default: T = NotImplemented) -> None:
        self.name = None
        self.control_field = control_field
        self.specification = specification
        self.default = default
        self.type_map = specification.type_map
        self.length_type = specification.length_type
        self.check_length = specification.check_length

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(control_field={self.control_field.name!s}, specification={self.specification!r}, default={self.default!r})'

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> T: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | T:
        if instance is None:
            return self
        return cast(T, self._read_value(instance))

    def __set__(self, instance: Structure, value: T) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        element_type = self.element_type(instance)
        if not isinstance(value, element_type):
            raise TypeError(f'The value for the {self.name!r} field should be of type {element_type.__qualname__!r}')
        _assign(instance, self.name, value)

    def control_value(self, instance: Structure, /) -> U:
        if self.control_field.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on its control field.')
        try:
            return instance.__dict__[self.control_field.name]
        except KeyError as exc:
            raise ValueError(f'Control element {instance.__class__.__qualname__}.{self.control_field.name} is not set') from exc

    def element_type(self, instance: Structure, /) -> type[T]:
        control_value = self.control_value(instance)
        try:
            return self.type_map[control_value]
        except KeyError:
            raise ValueError(f'Cannot find associated type for dependent element {instance.__class__.__qualname__}.{self.name} with control value {control_value!r}') from None

    def from_wire(self, instance: Structure, buffer: WireData) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')

        element_type = self.element_type(instance)

        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)

        element_data: WireData
        if self.check_length:
            length_data = buffer.read(self.length_type._size_)
            if len(length_data) < self.length_type._size_:
                raise ValueError(f'Insufficient data in buffer to get the length for the {instance.__class__.__qualname__}.{self.name} element')
            length = self.length_type.from_wire(length_data)
            element_data = buffer.read(length)
            if len(element_data) < length:
                raise ValueError(f'Insufficient data in buffer to get the {instance.__class__.__qualname__}.{self.name} element')
        else:
            buffer.read(self.length_type._size_)  # the element knows its size and doesn't need the length to parse itself
            element_data = buffer
        try:
            instance.__dict__[self.name] = element_type.from_wire(element_data)
        except ValueError as exc:
            raise ValueError(f'Failed to read the {instance.__class__.__qualname__}.{self.name} element from wire: {exc}') from exc

    def to_wire(self, instance: Structure) -> bytes:
        value = self.__get__(instance)
        return self.length_type(value.wire_length()).to_wire() + value.to_wire()

    def wire_length(self, instance: Structure) -> int:
        return self.length_type._size_ + self.__get__(instance).wire_length()


class ListElement[T: DataWireProtocol](ListElementDescriptor[T]):
    """
    An element holding a list of items.

    Without a maxcount the list has no prefix and extends to the end of the
    buffer. With a maxcount the list is prefixed by its number of items, in
    as many bytes as are needed to represent maxcount. A custom list type can
    be provided instead, to further customize how the list is validated.
    """

    @overload
    def __init__(self, item_type: type[T], /, *, default: Sequence[T] = ..., maxcount: int | None = ..., mincount: int = ...) -> None: ...

    @overload
    def __init__(self, item_type: type[T], /, *, default: Sequence[T] = ..., list_type: type[List[T]]) -> None: ...

    def __init__(self, item_type: type[T], /, *, default: Sequence[T] = NotImplemented, maxcount: int | None = None, mincount: int = 0, list_type: type[List[T]] | None = None) -> None:
        self.name = None
        self.default = default
        self.item_type = item_type
        if list_type is not None:
            if list_type._type_ is not item_type:
                raise TypeError(f'The list type {list_type.__qualname__!r} does not hold items of type {item_type.__qualname__!r}')
            self.list_type = list_type
        elif maxcount is not None:
            self.list_type = make_counted_list_type(item_type, maxcount=maxcount, mincount=mincount, custom_repr=False)
        else:
            self.list_type = make_list_type(item_type, custom_repr=False)

    def __repr__(self) -> str:
        maxcount = self.list_type._maxcount_ if issubclass(self.list_type, CountedList) else None
        return f'{self.__class__.__name__}({self.item_type.__qualname__}, default={self.default!r}, {maxcount=!r})'

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> List[T]: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | List[T]:
        if instance is None:
            return self
        return cast(List[T], self._read_value(instance))

    def __set__(self, instance: Structure, value: Sequence[T]) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        items = self.list_type(value)
        for item in items:
            if not isinstance(item, self.item_type):
                raise TypeError(f'The items of the {self.name!r} field should be of type {self.item_type.__qualname__!r}')
        _assign(instance, self.name, items)

    def from_wire(self, instance: Structure, buffer: WireData) -> None:
        if self.name is None:
            raise TypeError(f'Cannot use {self.__class__.__qualname__!r} instance without calling __set_name__ on it.')
        try:
            instance.__dict__[self.name] = self.list_type.from_wire(buffer)
        except ValueError as exc:
            raise ValueError(f'Failed to read the {instance.__class__.__qualname__}.{self.name} element from wire: {exc}') from exc

    def to_wire(self, instance: Structure) -> bytes:
        return self.__get__(instance).to_wire()

    def wire_length(self, instance: Structure) -> int:
        return self.__get__(instance).wire_length()


@dataclass_transform(kw_only_default=True, field_specifiers=(Element, FieldDependentElement, ListElement))
class AnnotatedStructure(Structure):
    pass
