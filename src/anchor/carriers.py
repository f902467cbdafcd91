# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from fractions import Fraction
from typing import Self

import structlog

from .configuration import CarrierConfiguration, CarrierDefinition, load_configuration
from .fees import FeeEstimator
from .messages import ANCHOR_SIZE, HEADER_SIZE, MAX_RECOMMENDED_ANCHORS

__all__ = 'CarrierStatus', 'Carrier', 'CarrierPreferences', 'CarrierPolicy', 'CarrierOverflowError', 'envelope_overhead'  # noqa: RUF022


logger = structlog.get_logger()


class CarrierStatus(StrEnum):
    active = 'active'
    reserved = 'reserved'
    proposed = 'proposed'
    deprecated = 'deprecated'


@dataclass(frozen=True)
class Carrier:
    id: int
    name: str
    max_bytes: int
    fee_weight_multiplier: Fraction
    prunable: bool
    overhead: int
    status: CarrierStatus = CarrierStatus.active
    utxo_impact: bool = False
    description: str = field(default='', compare=False)

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_definition(cls, definition: CarrierDefinition) -> Self:
        return cls(
            id=definition.id,
            name=definition.carrier_name,
            max_bytes=definition.max_bytes,
            fee_weight_multiplier=definition.fee_weight_multiplier,
            prunable=definition.prunable,
            overhead=definition.overhead,
            status=CarrierStatus(definition.status),
            utxo_impact=definition.utxo_impact,
            description=' '.join(definition.description.split()),
        )

    @property
    def is_active(self) -> bool:
        return self.status is CarrierStatus.active

    @property
    def is_permanent(self) -> bool:
        return not self.prunable


class CarrierOverflowError(ValueError):
    """The message does not fit in the carrier (or in any carrier if carrier is None)"""

    def __init__(self, carrier: Carrier | None, size: int) -> None:
        self.carrier = carrier
        self.size = size
        if carrier is None:
            super().__init__(f'No carrier is available for a {size} byte message')
        else:
            super().__init__(f'A {size} byte message does not fit in the {carrier.name} carrier (max {carrier.max_bytes} bytes)')


def envelope_overhead(anchor_count: int = 0) -> int:
    """The number of bytes the message envelope adds to the body"""
    return HEADER_SIZE + ANCHOR_SIZE * anchor_count


@dataclass(frozen=True)
class CarrierPreferences:
    preferred: Sequence[str] = ('op_return', 'inscription', 'witness_data', 'stamps')
    exclude: frozenset[str] = frozenset()
    require_permanent: bool = False
    max_fee: int | None = None
    fee_rate: float = 1.0

    @classmethod
    def permanent(cls) -> Self:
        return cls(preferred=('stamps',), require_permanent=True)

    @classmethod
    def large_data(cls) -> Self:
        return cls(preferred=('inscription', 'witness_data'))

    def with_fee_rate(self, fee_rate: float) -> Self:
        return replace(self, fee_rate=fee_rate)

    def with_max_fee(self, max_fee: int) -> Self:
        return replace(self, max_fee=max_fee)

    def excluding(self, *names: str) -> Self:
        return replace(self, exclude=self.exclude | frozenset(names))


class CarrierPolicy:
    """Checks that messages fit in carriers and selects the carrier to use for a message"""

    def __init__(self, carriers: Iterable[Carrier], estimator: FeeEstimator | None = None) -> None:
        self.carriers = tuple(carriers)
        self.estimator = estimator or FeeEstimator()
        self._id_map = {carrier.id: carrier for carrier in self.carriers}
        self._name_map = {carrier.name: carrier for carrier in self.carriers}
        if len(self._id_map) != len(self.carriers) or len(self._name_map) != len(self.carriers):
            raise ValueError('carrier ids and names must be unique')

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}([{', '.join(carrier.name for carrier in self.carriers)}], estimator={self.estimator!r})'

    @classmethod
    def from_configuration(cls, configuration: CarrierConfiguration) -> Self:
        carriers = [Carrier.from_definition(definition) for definition in configuration.carriers]
        return cls(carriers, estimator=FeeEstimator(configuration.base_overhead))

    @classmethod
    def default(cls) -> Self:
        return cls.from_configuration(load_configuration())

    def lookup(self, id_or_name: int | str, /) -> Carrier:
        try:
            return self._name_map[id_or_name] if isinstance(id_or_name, str) else self._id_map[id_or_name]
        except KeyError:
            raise KeyError(f'Unknown carrier: {id_or_name!r}') from None

    @staticmethod
    def fits(carrier: Carrier, payload_size: int) -> bool:
        return payload_size <= carrier.max_bytes

    def check(self, carrier: Carrier, payload_size: int) -> None:
        if not self.fits(carrier, payload_size):
            raise CarrierOverflowError(carrier, payload_size)

    def estimate(self, carrier: Carrier, payload_size: int, fee_rate: float = 1.0) -> int:
        return self.estimator.estimate(payload_size, carrier, fee_rate)

    def _acceptable(self, carrier: Carrier, size: int, preferences: CarrierPreferences) -> bool:
        if not carrier.is_active or carrier.name in preferences.exclude:
            return False
        if preferences.require_permanent and not carrier.is_permanent:
            return False
        return preferences.max_fee is None or self.estimate(carrier, size, preferences.fee_rate) <= preferences.max_fee

    def recommend(self, payload_size: int, *, anchor_count: int = 0, preferences: CarrierPreferences | None = None) -> Carrier:
        """
        Return the carrier to use for a message with a body of payload_size bytes and anchor_count anchors.

        The preferred carriers that fit the message are ordered by their estimated fee, with ties going
        to the one that comes first in the preferences. If none of them is usable, the carrier with the
        highest capacity is used instead, provided that it can hold the message. The fallback has to
        pass the same filters as the preferred carriers, except for the preference order.
        """
        if preferences is None:
            preferences = CarrierPreferences()
        size = payload_size + envelope_overhead(anchor_count)
        log = logger.bind(size=size, anchor_count=anchor_count)
        if anchor_count > MAX_RECOMMENDED_ANCHORS:
            log.warning('The message has more anchors than recommended', max_anchors=MAX_RECOMMENDED_ANCHORS)

        candidates = []
        for name in preferences.preferred:
            carrier = self._name_map.get(name)
            if carrier is None or not self.fits(carrier, size) or not self._acceptable(carrier, size, preferences):
                continue
            candidates.append((self.estimate(carrier, size, preferences.fee_rate), carrier))

        if candidates:
            return min(candidates, key=lambda candidate: candidate[0])[1]  # min returns the first of equal fees

        available = [carrier for carrier in self.carriers if self._acceptable(carrier, size, preferences)]
        if not available:
            log.warning('No carrier is available for the message')
            raise CarrierOverflowError(None, size)

        fallback = max(available, key=lambda carrier: carrier.max_bytes)
        if not self.fits(fallback, size):
            log.warning('The message does not fit in any carrier', carrier=fallback.name, max_bytes=fallback.max_bytes)
            raise CarrierOverflowError(fallback, size)

        log.warning('No preferred carrier is usable for the message, falling back to the largest carrier', carrier=fallback.name)
        return fallback
