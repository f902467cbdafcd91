# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from fractions import Fraction
from pathlib import Path

import pytest

from anchor.configuration import CarrierConfiguration, CarrierDefinition, default_configuration_file, load_configuration
from anchor.configuration.xml import Attribute, MultiElement, Namespace, OptionalAttribute, RelaxNGValidator, TextValue, XMLElement
from anchor.configuration.xml.datamodel import (
    AdapterRegistry,
    BooleanAdapter,
    FractionAdapter,
    IntegerAdapter,
    NonNegativeIntegerAdapter,
    PositiveIntegerAdapter,
    UInt8Adapter,
)

CARRIERS_NS = 'urn:anchor:xml:ns:carriers'


def carriers_document(*carriers: str, base_overhead: str = '10') -> str:
    return f'<carriers xmlns="{CARRIERS_NS}" base-overhead="{base_overhead}">{''.join(carriers)}</carriers>'


class TestXMLDataModel:

    def test_adapter_registry(self) -> None:
        assert AdapterRegistry.get_adapter(bool) is BooleanAdapter
        assert AdapterRegistry.get_adapter(Fraction) is FractionAdapter
        assert AdapterRegistry.get_adapter(int) is None

    def test_boolean_adapter(self) -> None:
        assert BooleanAdapter.xml_parse('true') is True
        assert BooleanAdapter.xml_parse(' 1 ') is True
        assert BooleanAdapter.xml_parse('false') is False
        assert BooleanAdapter.xml_parse('0') is False
        assert BooleanAdapter.xml_build(True) == 'true'
        with pytest.raises(ValueError, match='Invalid boolean value'):
            BooleanAdapter.xml_parse('yes')

    def test_fraction_adapter(self) -> None:
        assert FractionAdapter.xml_parse('1/4') == Fraction(1, 4)
        assert FractionAdapter.xml_parse('0.25') == Fraction(1, 4)
        assert FractionAdapter.xml_parse('1') == 1
        assert FractionAdapter.xml_build(Fraction(1, 4)) == '1/4'
        with pytest.raises(ValueError, match='for non-negative fraction'):
            FractionAdapter.xml_parse('-1/4')
        with pytest.raises(ValueError):
            FractionAdapter.xml_parse('a quarter')

    def test_integer_adapters(self) -> None:
        assert PositiveIntegerAdapter.xml_parse('1') == 1
        with pytest.raises(ValueError, match="invalid value '0' for positive integer"):
            PositiveIntegerAdapter.xml_parse('0')

        assert NonNegativeIntegerAdapter.xml_parse('0') == 0
        with pytest.raises(ValueError, match="invalid value '-1' for non-negative integer"):
            NonNegativeIntegerAdapter.xml_build(-1)

        assert UInt8Adapter.xml_parse('255') == 255
        with pytest.raises(ValueError, match="invalid value '256' for unsigned 8-bit integer"):
            UInt8Adapter.xml_parse('256')

        with pytest.raises(ValueError, match='bits must be a positive integer'):
            class BadAdapter(IntegerAdapter, bits=0):
                pass


class TestXMLElements:

    ns = Namespace('urn:test', prefix='test')

    def test_namespaces(self) -> None:
        assert self.ns == 'urn:test'
        assert self.ns.prefix == 'test'
        with pytest.raises(AttributeError, match='is read-only'):
            self.ns.prefix = 'other'

    def test_elements(self) -> None:
        class AbstractElement(XMLElement):
            pass

        with pytest.raises(TypeError, match='Cannot instantiate abstract class'):
            AbstractElement.from_string('<root/>')

        class Item(XMLElement, name='item', namespace=self.ns):
            value: TextValue[int] = TextValue(int)

        class Root(XMLElement, name='root', namespace=self.ns):
            size: Attribute[int] = Attribute(int, adapter=PositiveIntegerAdapter)
            label: OptionalAttribute[str] = OptionalAttribute(str, default='none')
            enabled: OptionalAttribute[bool] = OptionalAttribute(bool, name='is-enabled', default=False)
            items: MultiElement[Item] = MultiElement(Item)

        assert Root._tag_ == '{urn:test}root'
        assert Root._qualname_ == 'test:root'

        with pytest.raises(TypeError, match='can only be created by loading them from XML'):
            Root()

        root = Root.from_string('<root xmlns="urn:test" size="3" is-enabled="true"><item>1</item><item> 2 </item></root>')
        assert root.size == 3
        assert root.label == 'none'
        assert root.enabled is True
        assert [item.value for item in root.items] == [1, 2]
        repr(root)  # Trigger element representation to test if it raises any exception

        with pytest.raises(AttributeError, match='is read-only'):
            root.size = 4
        with pytest.raises(AttributeError, match='cannot be deleted'):
            del root.size

        with pytest.raises(TypeError, match='The etree element tag does not match'):
            Root.from_string('<root size="3"><item>1</item></root>')
        with pytest.raises(ValueError, match="Missing mandatory attribute 'size'"):
            Root.from_string('<root xmlns="urn:test"><item>1</item></root>')
        with pytest.raises(ValueError, match="Invalid value for attribute 'size'"):
            Root.from_string('<root xmlns="urn:test" size="0"><item>1</item></root>')
        with pytest.raises(ValueError, match="Invalid value for attribute 'is-enabled'"):
            Root.from_string('<root xmlns="urn:test" size="1" is-enabled="maybe"><item>1</item></root>')
        with pytest.raises(ValueError, match="There must be at least 1 element for 'test:item'"):
            Root.from_string('<root xmlns="urn:test" size="1"/>')
        with pytest.raises(ValueError, match="Invalid text value for element 'test:item'"):
            Root.from_string('<root xmlns="urn:test" size="1"><item>one</item></root>')

    def test_descriptor_names(self) -> None:
        with pytest.raises(TypeError, match='cannot assign the same Attribute descriptor to two different names'):
            class BadElement(XMLElement, name='bad'):
                first: Attribute[int] = Attribute(int)
                second = first

        with pytest.raises(TypeError, match='element type must be a subclass of XMLElement'):
            MultiElement(int)  # type: ignore[type-var]


class TestCarrierConfiguration:

    def test_default_configuration(self) -> None:
        configuration = load_configuration()
        assert configuration is load_configuration()
        assert configuration.base_overhead == 10

        carriers = {carrier.carrier_name: carrier for carrier in configuration.carriers}
        assert list(carriers) == ['op_return', 'inscription', 'stamps', 'taproot_annex', 'witness_data']
        assert [carrier.id for carrier in configuration.carriers] == [0, 1, 2, 3, 4]

        assert carriers['op_return'].max_bytes == 100_000
        assert carriers['op_return'].fee_weight_multiplier == 1
        assert carriers['op_return'].overhead == 12
        assert carriers['inscription'].max_bytes == 3_900_000
        assert carriers['inscription'].fee_weight_multiplier == Fraction(1, 4)
        assert carriers['stamps'].prunable is False
        assert carriers['stamps'].utxo_impact is True
        assert carriers['op_return'].utxo_impact is False
        assert carriers['taproot_annex'].status == 'reserved'
        assert carriers['witness_data'].status == 'active'
        assert 'OP_RETURN' in carriers['op_return'].description

    def test_custom_configuration(self, tmp_path: Path) -> None:
        path = tmp_path / 'carriers.xml'
        path.write_text(carriers_document('<carrier id="7" name="custom" max-bytes="500" fee-weight-multiplier="0.5" prunable="false" overhead="0"/>', base_overhead='4'))

        configuration = load_configuration(path)
        assert configuration.base_overhead == 4
        carrier, = configuration.carriers
        assert isinstance(carrier, CarrierDefinition)
        assert (carrier.id, carrier.carrier_name, carrier.max_bytes) == (7, 'custom', 500)
        assert carrier.fee_weight_multiplier == Fraction(1, 2)
        assert carrier.description == ''

    def test_schema_validation(self) -> None:
        validator = RelaxNGValidator('carriers.rng')
        assert validator == RelaxNGValidator('carriers.rng')

        documents = [
            carriers_document(),  # no carriers
            carriers_document('<carrier id="1" name="x" max-bytes="0" fee-weight-multiplier="1" prunable="true" overhead="0"/>'),
            carriers_document('<carrier id="1" name="x" max-bytes="10" fee-weight-multiplier="-1" prunable="true" overhead="0"/>'),
            carriers_document('<carrier id="1" name="x" max-bytes="10" fee-weight-multiplier="1" prunable="true" overhead="0" status="retired"/>'),
            carriers_document('<carrier id="256" name="x" max-bytes="10" fee-weight-multiplier="1" prunable="true" overhead="0"/>'),
            carriers_document('<carrier name="x" max-bytes="10" fee-weight-multiplier="1" prunable="true" overhead="0"/>'),
        ]
        for document in documents:
            with pytest.raises(ValueError, match='document does not match its schema'):
                CarrierConfiguration.from_string(document, validator=validator)
            assert validator.errors
            assert all(error.startswith('line ') for error in validator.errors)

    def test_bundled_file(self) -> None:
        assert default_configuration_file.is_file()
        validator = RelaxNGValidator('carriers.rng')
        assert validator.validate(CarrierConfiguration.from_file(default_configuration_file)._etree_element_)
        assert validator.errors == []
        assert repr(validator) == "RelaxNGValidator('carriers.rng')"
