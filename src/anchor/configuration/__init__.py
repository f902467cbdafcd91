# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from fractions import Fraction
from functools import lru_cache
from pathlib import Path

import structlog

from .xml import AnnotatedXMLElement, Attribute, MultiElement, Namespace, OptionalAttribute, RelaxNGValidator, TextValue
from .xml.datamodel import NonNegativeIntegerAdapter, PositiveIntegerAdapter, UInt8Adapter

__all__ = 'CarrierDefinition', 'CarrierConfiguration', 'default_configuration_file', 'load_configuration'  # noqa: RUF022


logger = structlog.get_logger()

ns_carriers = Namespace('urn:anchor:xml:ns:carriers', schema='carriers.rng', prefix=None)

default_configuration_file = Path(__file__).parent / 'carriers.xml'


class CarriersElement(AnnotatedXMLElement, namespace=ns_carriers):
    pass


class CarrierDefinition(CarriersElement, name='carrier'):
    id: Attribute[int] = Attribute(int, adapter=UInt8Adapter)
    carrier_name: Attribute[str] = Attribute(str, name='name')
    max_bytes: Attribute[int] = Attribute(int, name='max-bytes', adapter=PositiveIntegerAdapter)
    fee_weight_multiplier: Attribute[Fraction] = Attribute(Fraction, name='fee-weight-multiplier')
    prunable: Attribute[bool] = Attribute(bool)
    status: OptionalAttribute[str] = OptionalAttribute(str, default='active')
    utxo_impact: OptionalAttribute[bool] = OptionalAttribute(bool, name='utxo-impact', default=False)
    overhead: Attribute[int] = Attribute(int, adapter=NonNegativeIntegerAdapter)

    description: TextValue[str] = TextValue(str)


class CarrierConfiguration(CarriersElement, name='carriers'):
    base_overhead: Attribute[int] = Attribute(int, name='base-overhead', adapter=NonNegativeIntegerAdapter)
    carriers: MultiElement[CarrierDefinition] = MultiElement(CarrierDefinition)


@lru_cache
def load_configuration(path: str | Path | None = None) -> CarrierConfiguration:
    """Load and validate a carriers configuration file (the bundled one if path is None)"""
    path = Path(path) if path is not None else default_configuration_file
    assert ns_carriers.schema is not None  # noqa: S101 (used by type checkers)
    configuration = CarrierConfiguration.from_file(path, validator=RelaxNGValidator(ns_carriers.schema))
    logger.info('Loaded carrier configuration', path=str(path), carriers=[carrier.carrier_name for carrier in configuration.carriers])
    return configuration
