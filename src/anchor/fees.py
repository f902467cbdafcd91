# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Fee estimation.

   A linear approximation of the fee needed to embed a message with a given
   carrier. It is meant for comparing carriers with each other and is not a
   fee quote:

     fee = ceil((base_overhead + carrier.overhead + size * carrier.fee_weight_multiplier) * fee_rate)

   The base overhead and the carrier overhead are in virtual bytes and the
   fee rate is in satoshis per virtual byte. All the arithmetic is done with
   exact fractions and only the final result is rounded up.
"""

from fractions import Fraction
from math import ceil
from typing import TYPE_CHECKING

from .configuration import load_configuration

if TYPE_CHECKING:
    from .carriers import Carrier

__all__ = 'FeeEstimator', 'estimate'  # noqa: RUF022


type FeeRate = int | float | Fraction


def exact_fee_rate(fee_rate: FeeRate) -> Fraction:
    # floats are converted through their shortest repr, so that 0.1 means 1/10 and not its binary approximation
    rate = Fraction(repr(fee_rate)) if isinstance(fee_rate, float) else Fraction(fee_rate)
    if rate < 0:
        raise ValueError(f'the fee rate cannot be negative: {fee_rate!r}')
    return rate


class FeeEstimator:
    def __init__(self, base_overhead: int | None = None) -> None:
        if base_overhead is None:
            base_overhead = load_configuration().base_overhead
        if base_overhead < 0:
            raise ValueError(f'the base overhead cannot be negative: {base_overhead!r}')
        self.base_overhead = base_overhead

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(base_overhead={self.base_overhead!r})'

    def virtual_size(self, payload_size: int, carrier: 'Carrier') -> Fraction:
        if payload_size < 0:
            raise ValueError(f'the payload size cannot be negative: {payload_size!r}')
        return self.base_overhead + carrier.overhead + payload_size * carrier.fee_weight_multiplier

    def estimate(self, payload_size: int, carrier: 'Carrier', fee_rate: FeeRate = 1.0) -> int:
        """Return the estimated fee in satoshis for embedding payload_size bytes using carrier"""
        return ceil(self.virtual_size(payload_size, carrier) * exact_fee_rate(fee_rate))


def estimate(payload_size: int, carrier: 'Carrier', fee_rate: FeeRate = 1.0) -> int:
    return FeeEstimator().estimate(payload_size, carrier, fee_rate)
