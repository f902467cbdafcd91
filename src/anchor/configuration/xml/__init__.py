# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, MutableMapping
from fractions import Fraction
from inspect import Parameter, Signature
from pathlib import Path
from typing import ClassVar, Self, cast, dataclass_transform, overload
from weakref import WeakKeyDictionary

from lxml import etree

from .datamodel import AdapterRegistry, DataAdapter, DataConverter
from .schema import RelaxNGValidator, Validator

__all__ = (  # noqa: RUF022
    'Namespace',
    'XMLElement',
    'AnnotatedXMLElement',

    'Attribute',
    'OptionalAttribute',
    'MultiElement',
    'TextValue',

    'RelaxNGValidator',
    'Validator',
)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001
type XMLData = str | int | bool | Fraction | DataConverter

type DataAdapterType[T] = type[DataAdapter[T]]


class Namespace(str):
    __slots__ = 'prefix', 'schema'

    prefix: str | None
    schema: str | None

    def __new__(cls, namespace: str, /, *, prefix: str | None = None, schema: str | None = None) -> Self:
        self = super().__new__(cls, namespace)
        self.prefix = prefix
        self.schema = schema
        return self

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({super().__repr__()}, prefix={self.prefix!r}, schema={self.schema!r})'

    def __setattr__(self, name: str, value: object, /) -> None:
        if name in self.__slots__ and hasattr(self, name):
            raise AttributeError(f'{self.__class__.__name__} object attribute {name!r} is read-only')
        return super().__setattr__(name, value)


class XMLElement:
    """
    An object bound to an XML element.

    Elements are parsed from XML with from_xml(), from_string() or from_file()
    and expose their attributes and sub-elements through field descriptors.
    The descriptors parse the underlying etree element on access, so invalid
    values are detected when the element is loaded, not when it is used.
    """

    _name_: ClassVar[str | None] = None
    _namespace_: ClassVar[Namespace | None] = None

    # Derived and internal attributes (these should not be overwritten in subclasses)

    _etree_element_: ETreeElement

    _tag_: ClassVar[str | None] = None
    _qualname_: ClassVar[str | None] = None

    _fields_: ClassVar[dict[str, 'FieldDescriptor']] = {}

    __signature__: ClassVar[Signature] = Signature()

    def __init_subclass__(cls, name: str | None = None, namespace: Namespace | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)

        if name is not None:
            cls._name_ = name
        if namespace is not None:
            cls._namespace_ = namespace

        if cls._name_ is not None:
            if cls._namespace_ is not None:
                cls._tag_ = f'{{{cls._namespace_}}}{cls._name_}'
                cls._qualname_ = f'{cls._namespace_.prefix}:{cls._name_}' if cls._namespace_.prefix is not None else cls._name_
            else:
                cls._tag_ = cls._name_
                cls._qualname_ = cls._name_

        # all the fields on this element (both inherited and locally defined)
        cls._fields_ = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}
        cls.__signature__ = Signature(parameters=[descriptor.signature_parameter for descriptor in cls._fields_.values()])

    def __new__(cls, *args: object, **kw: object) -> Self:
        raise TypeError(f'{cls.__qualname__} objects can only be created by loading them from XML')

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={getattr(self, name)!r}' for name in self._fields_)})'

    @classmethod
    def from_xml(cls, element: ETreeElement) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__} that does not specify a name and namespace')
        if element.tag != cls._tag_:
            raise TypeError(f'The etree element tag does not match the {cls.__qualname__} element tag: {element.tag!r} != {cls._tag_!r}')
        instance = object.__new__(cls)
        instance._etree_element_ = element
        for field in instance._fields_.values():
            field.from_xml(instance)
        return instance

    @classmethod
    def from_string(cls, document: str | bytes, *, validator: Validator | None = None) -> Self:
        return cls._from_root(etree.fromstring(document), validator)

    @classmethod
    def from_file(cls, path: str | Path, *, validator: Validator | None = None) -> Self:
        return cls._from_root(etree.parse(str(path)).getroot(), validator)

    @classmethod
    def _from_root(cls, element: ETreeElement, validator: Validator | None) -> Self:
        if validator is not None and not validator.validate(element):
            raise ValueError(f'The {cls.__qualname__} document does not match its schema: {'; '.join(validator.errors)}')
        return cls.from_xml(element)


class FieldDescriptor[F](ABC):
    name: str | None
    type: type[F]

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type)

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        if not issubclass(owner, XMLElement):  # static type analysis does not catch this
            raise TypeError(f'Can only use {self.__class__.__qualname__} descriptors on XMLElement objects')
        if self.name is None:
            self.name = name
        elif name != self.name:
            raise TypeError(f'cannot assign the same {self.__class__.__name__} descriptor to two different names: {self.name} and {name}')

    def __set__(self, instance: XMLElement, value: object) -> None:
        raise AttributeError(f'The {self.name!r} field of {instance.__class__.__qualname__!r} objects is read-only')

    def __delete__(self, instance: XMLElement) -> None:
        raise AttributeError(f'The {self.name!r} field of {instance.__class__.__qualname__!r} objects cannot be deleted')

    @abstractmethod
    def from_xml(self, instance: XMLElement) -> None:
        """Check the instance's field value in its corresponding etree element"""
        raise NotImplementedError


class DataDescriptor[D: XMLData](FieldDescriptor[D]):
    adapter: DataAdapterType[D] | None

    xml_build: Callable[[D], str]
    xml_parse: Callable[[str], D]

    def _select_adapter(self, data_type: type[D], adapter: DataAdapterType[D] | None) -> None:
        if adapter is None:
            if issubclass(data_type, DataConverter):
                adapter = cast(DataAdapterType[D], data_type)  # A type that implements the DataConverter protocol is its own DataAdapter
            else:
                adapter = AdapterRegistry.get_adapter(data_type)

        if adapter is not None:
            self.xml_parse = adapter.xml_parse
            self.xml_build = adapter.xml_build
        else:
            self.xml_parse = data_type
            self.xml_build = str


class Attribute[D: XMLData](DataDescriptor[D]):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, adapter: DataAdapterType[D] | None = None) -> None:
        self.name = None
        self.xml_name = name or ''
        self.type = data_type
        self.adapter = adapter
        self._select_adapter(data_type, adapter)

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        adapter_name = self.adapter.__qualname__ if self.adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, {name=}, adapter={adapter_name})'

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        super().__set_name__(owner, name)
        self.xml_name = self.xml_name or name

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> D: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | D:
        if instance is None:
            return self
        try:
            return self.xml_parse(cast(str, instance._etree_element_.attrib[self.xml_name]))
        except KeyError as exc:
            raise AttributeError(f'mandatory attribute {self.name!r} is missing') from exc

    def from_xml(self, instance: XMLElement) -> None:
        try:
            self.__get__(instance)
        except AttributeError as exc:
            raise ValueError(f'Missing mandatory attribute {self.xml_name!r} from {instance._qualname_!r}') from exc
        except ValueError as exc:
            raise ValueError(f'Invalid value for attribute {self.xml_name!r} from {instance._qualname_!r}: {exc!s}') from exc


class OptionalAttribute[D: XMLData](DataDescriptor[D]):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, default: D | None = None, adapter: DataAdapterType[D] | None = None) -> None:
        self.name = None
        self.xml_name = name or ''
        self.type = data_type
        self.default = default
        self.adapter = adapter
        self._select_adapter(data_type, adapter)

    def __repr__(self) -> str:
        name = self.xml_name if self.xml_name != self.name else None
        adapter_name = self.adapter.__qualname__ if self.adapter else None
        return f'{self.__class__.__name__}({self.type.__qualname__}, {name=}, default={self.default!r}, adapter={adapter_name})'

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=self.type | None, default=self.default)

    def __set_name__(self, owner: type[XMLElement], name: str) -> None:
        super().__set_name__(owner, name)
        self.xml_name = self.xml_name or name

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> D | None: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | D | None:
        if instance is None:
            return self
        attribute = instance._etree_element_.get(self.xml_name)
        return self.default if attribute is None else self.xml_parse(attribute)

    def from_xml(self, instance: XMLElement) -> None:
        try:
            self.__get__(instance)
        except ValueError as exc:
            raise ValueError(f'Invalid value for attribute {self.xml_name!r} from {instance._qualname_!r}: {exc!s}') from exc


class TextValue[D: XMLData](DataDescriptor[D]):
    """An XMLElement descriptor used to access the text value of its ETreeElement"""

    def __init__(self, data_type: type[D], /, adapter: DataAdapterType[D] | None = None) -> None:
        self.name = None
        self.type = data_type
        self.adapter = adapter
        self._select_adapter(data_type, adapter)

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> D: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | D:
        if instance is None:
            return self
        return self.xml_parse((instance._etree_element_.text or '').strip())

    def from_xml(self, instance: XMLElement) -> None:
        try:
            self.__get__(instance)
        except ValueError as exc:
            raise ValueError(f'Invalid text value for element {instance._qualname_!r}: {exc!s}') from exc


class MultiElement[E: XMLElement](FieldDescriptor[E]):
    def __init__(self, element_type: type[E], /, *, optional: bool = False) -> None:
        if not (isinstance(element_type, type) and issubclass(element_type, XMLElement)):
            raise TypeError(f"element type must be a subclass of XMLElement, not '{type(element_type)}'")
        if element_type._tag_ is None:
            raise TypeError(f'{element_type.__qualname__!r} must specify a name and namespace to be usable as element type')
        self.name = None
        self.type = element_type
        self.optional = optional
        self.values: MutableMapping[XMLElement, tuple[E, ...]] = WeakKeyDictionary()

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__name__}, optional={self.optional})'

    @property
    def signature_parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        return Parameter(name=self.name, kind=Parameter.KEYWORD_ONLY, annotation=Iterable[self.type], default=() if self.optional else Parameter.empty)  # type: ignore[name-defined]

    @overload
    def __get__(self, instance: None, owner: type[XMLElement]) -> Self: ...

    @overload
    def __get__(self, instance: XMLElement, owner: type[XMLElement] | None = None) -> tuple[E, ...]: ...

    def __get__(self, instance: XMLElement | None, owner: type[XMLElement] | None = None) -> Self | tuple[E, ...]:
        if instance is None:
            return self
        return self.values.get(instance, ())

    def from_xml(self, instance: XMLElement) -> None:
        elements = [element for element in instance._etree_element_ if element.tag == self.type._tag_]
        if not self.optional and len(elements) == 0:
            raise ValueError(f'There must be at least 1 element for {self.type._qualname_!r}')
        self.values[instance] = tuple(self.type.from_xml(element) for element in elements)


field_specifiers = (Attribute, OptionalAttribute, MultiElement, TextValue)


@dataclass_transform(kw_only_default=True, field_specifiers=field_specifiers)  # type: ignore[misc]
class AnnotatedXMLElement(XMLElement):
    """
    A static type checker friendly variant of XMLElement.

    The element definition needs to include both an annotation and the descriptor
    definition for the element (same for attributes):

      prunable: Attribute[bool] = Attribute(bool)
      carriers: MultiElement[CarrierDefinition] = MultiElement(CarrierDefinition)

    With these, static type checkers will be able to identify the names and types
    of the fields, and it can also help with getting code completion suggestions
    from language servers.
    """


del field_specifiers
