# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from fractions import Fraction

import pytest
from structlog.testing import capture_logs

from anchor import fees
from anchor.carriers import Carrier, CarrierOverflowError, CarrierPolicy, CarrierPreferences, CarrierStatus, envelope_overhead
from anchor.configuration import load_configuration
from anchor.fees import FeeEstimator
from anchor.messages import Anchor, encode_message


@pytest.fixture
def policy() -> CarrierPolicy:
    return CarrierPolicy.default()


class TestCarriers:

    def test_configured_carriers(self, policy: CarrierPolicy) -> None:
        assert [carrier.name for carrier in policy.carriers] == ['op_return', 'inscription', 'stamps', 'taproot_annex', 'witness_data']

        op_return = policy.lookup('op_return')
        assert op_return is policy.lookup(0)
        assert op_return == Carrier(id=0, name='op_return', max_bytes=100_000, fee_weight_multiplier=Fraction(1), prunable=True, overhead=12)
        assert op_return.is_active
        assert not op_return.is_permanent

        stamps = policy.lookup('stamps')
        assert stamps.is_permanent
        assert stamps.utxo_impact
        assert stamps.max_bytes == 8000

        annex = policy.lookup(3)
        assert annex.status is CarrierStatus.reserved
        assert not annex.is_active

        assert policy.lookup('inscription').fee_weight_multiplier == Fraction(1, 4)
        assert str(policy.lookup('witness_data')) == 'witness_data'

        with pytest.raises(KeyError, match='Unknown carrier'):
            policy.lookup('nonexistent')
        with pytest.raises(KeyError, match='Unknown carrier'):
            policy.lookup(99)

    def test_from_definition(self) -> None:
        definition = load_configuration().carriers[2]
        carrier = Carrier.from_definition(definition)
        assert carrier.name == definition.carrier_name == 'stamps'
        assert carrier.status is CarrierStatus.active
        assert carrier.description == 'Data encoded in bare multisig outputs. Stored permanently in the UTXO set.'

    def test_unique_carriers(self) -> None:
        carrier = Carrier(id=0, name='a', max_bytes=10, fee_weight_multiplier=Fraction(1), prunable=True, overhead=0)
        with pytest.raises(ValueError, match='carrier ids and names must be unique'):
            CarrierPolicy([carrier, Carrier(id=0, name='b', max_bytes=10, fee_weight_multiplier=Fraction(1), prunable=True, overhead=0)])
        with pytest.raises(ValueError, match='carrier ids and names must be unique'):
            CarrierPolicy([carrier, Carrier(id=1, name='a', max_bytes=10, fee_weight_multiplier=Fraction(1), prunable=True, overhead=0)])

    def test_envelope_overhead(self) -> None:
        assert envelope_overhead() == 6
        assert envelope_overhead(0) == 6
        assert envelope_overhead(2) == 24
        assert envelope_overhead(3) == len(encode_message(0, [Anchor.for_transaction(bytes(32), 0)] * 3, b''))

    def test_fits(self, policy: CarrierPolicy) -> None:
        for carrier in policy.carriers:
            assert policy.fits(carrier, 0)
            assert policy.fits(carrier, carrier.max_bytes)
            assert not policy.fits(carrier, carrier.max_bytes + 1)

            policy.check(carrier, carrier.max_bytes)
            with pytest.raises(CarrierOverflowError) as exc_info:
                policy.check(carrier, carrier.max_bytes + 1)
            assert exc_info.value.carrier is carrier
            assert exc_info.value.size == carrier.max_bytes + 1


class TestRecommendations:

    def test_lowest_fee(self, policy: CarrierPolicy) -> None:
        # 106 bytes with the envelope: op_return 128, inscription 50, witness_data 42, stamps 231
        assert policy.recommend(100).name == 'witness_data'
        assert policy.recommend(100, preferences=CarrierPreferences().excluding('witness_data')).name == 'inscription'
        assert policy.recommend(100, preferences=CarrierPreferences(preferred=('op_return', 'stamps'))).name == 'op_return'

    def test_presets(self, policy: CarrierPolicy) -> None:
        assert policy.recommend(100, preferences=CarrierPreferences.permanent()).name == 'stamps'
        assert policy.recommend(200_000, preferences=CarrierPreferences.large_data()).name == 'witness_data'
        assert CarrierPreferences.permanent().require_permanent
        assert CarrierPreferences.large_data().preferred == ('inscription', 'witness_data')

        preferences = CarrierPreferences().with_fee_rate(5.0).with_max_fee(10_000).excluding('stamps')
        assert preferences.fee_rate == 5.0
        assert preferences.max_fee == 10_000
        assert preferences.exclude == {'stamps'}

    def test_require_permanent(self, policy: CarrierPolicy) -> None:
        preferences = CarrierPreferences(require_permanent=True)
        assert policy.recommend(100, preferences=preferences).name == 'stamps'

    def test_inactive_carriers_are_skipped(self, policy: CarrierPolicy) -> None:
        preferences = CarrierPreferences(preferred=('taproot_annex', 'op_return'))
        assert policy.recommend(100, preferences=preferences).name == 'op_return'

    def test_ties_go_to_the_earlier_preference(self) -> None:
        first = Carrier(id=0, name='first', max_bytes=1000, fee_weight_multiplier=Fraction(1), prunable=True, overhead=5)
        second = Carrier(id=1, name='second', max_bytes=1000, fee_weight_multiplier=Fraction(1), prunable=True, overhead=5)
        policy = CarrierPolicy([first, second], estimator=FeeEstimator(0))
        assert policy.recommend(10, preferences=CarrierPreferences(preferred=('first', 'second'))) is first
        assert policy.recommend(10, preferences=CarrierPreferences(preferred=('second', 'first'))) is second

    def test_anchor_overhead(self, policy: CarrierPolicy) -> None:
        preferences = CarrierPreferences(preferred=('op_return',))
        assert policy.recommend(99_994, preferences=preferences).name == 'op_return'
        with capture_logs() as logs:
            assert policy.recommend(99_994, anchor_count=1, preferences=preferences).name == 'inscription'
        assert logs[0]['log_level'] == 'warning'
        assert logs[0]['carrier'] == 'inscription'
        assert logs[0]['size'] == 100_009

    def test_fallback(self, policy: CarrierPolicy) -> None:
        # the fallback is the largest carrier that passes the filters, even if it is not preferred
        preferences = CarrierPreferences(preferred=('op_return',))
        with capture_logs() as logs:
            assert policy.recommend(200_000, preferences=preferences.with_max_fee(60_000)).name == 'inscription'
            assert policy.recommend(100, preferences=CarrierPreferences(preferred=('op_return',), require_permanent=True)).name == 'stamps'
            assert policy.recommend(200_000, preferences=preferences.excluding('inscription')).name == 'witness_data'
        assert [log['log_level'] for log in logs] == ['warning', 'warning', 'warning']
        assert [log['carrier'] for log in logs] == ['inscription', 'stamps', 'witness_data']

    def test_fallback_honors_permanence(self, policy: CarrierPolicy) -> None:
        # stamps is the only permanent carrier and it cannot hold 9006 bytes
        with pytest.raises(CarrierOverflowError, match='does not fit in the stamps carrier') as exc_info:
            policy.recommend(9000, preferences=CarrierPreferences.permanent())
        assert exc_info.value.carrier is policy.lookup('stamps')
        assert exc_info.value.size == 9006

    def test_fallback_honors_max_fee(self, policy: CarrierPolicy) -> None:
        # 106 bytes cost at least 42 (witness_data)
        with pytest.raises(CarrierOverflowError, match='No carrier is available') as exc_info:
            policy.recommend(100, preferences=CarrierPreferences().with_max_fee(40))
        assert exc_info.value.carrier is None

        preferences = CarrierPreferences().with_max_fee(20)
        with pytest.raises(CarrierOverflowError, match='No carrier is available'):
            policy.recommend(1000, preferences=preferences)

        preferences = CarrierPreferences(preferred=('stamps',)).with_max_fee(300)
        carrier = policy.recommend(1000, preferences=preferences)
        assert carrier.name == 'inscription'
        assert policy.estimate(carrier, 1006) == 275

    def test_too_many_anchors(self, policy: CarrierPolicy) -> None:
        with capture_logs() as logs:
            policy.recommend(100, anchor_count=16)
        assert logs == []
        with capture_logs() as logs:
            policy.recommend(100, anchor_count=17)
        assert logs[0]['event'] == 'The message has more anchors than recommended'
        assert logs[0]['max_anchors'] == 16

    def test_overflow(self, policy: CarrierPolicy) -> None:
        with capture_logs() as logs, pytest.raises(CarrierOverflowError, match='does not fit in the inscription carrier') as exc_info:
            policy.recommend(3_900_000)
        assert exc_info.value.carrier is policy.lookup('inscription')
        assert exc_info.value.size == 3_900_006
        assert logs[0]['log_level'] == 'warning'

        preferences = CarrierPreferences().excluding('op_return', 'inscription', 'stamps', 'witness_data')
        with pytest.raises(CarrierOverflowError, match='No carrier is available') as exc_info:
            policy.recommend(10, preferences=preferences)
        assert exc_info.value.carrier is None


class TestFees:

    def test_estimates(self, policy: CarrierPolicy) -> None:
        estimator = FeeEstimator()
        assert estimator.base_overhead == 10

        op_return = policy.lookup('op_return')
        inscription = policy.lookup('inscription')
        witness_data = policy.lookup('witness_data')

        assert estimator.estimate(100, op_return) == 122
        assert estimator.estimate(100, inscription) == 48
        assert estimator.estimate(101, inscription) == 49  # 48.25 rounded up
        assert estimator.estimate(100, witness_data, fee_rate=2.5) == 100
        assert estimator.estimate(0, policy.lookup('stamps')) == 125
        assert estimator.estimate(100, op_return, fee_rate=0) == 0
        assert estimator.virtual_size(101, inscription) == Fraction(193, 4)

        assert fees.estimate(100, op_return) == 122
        assert policy.estimate(op_return, 100, fee_rate=2) == 244

    def test_exact_arithmetic(self, policy: CarrierPolicy) -> None:
        op_return = policy.lookup('op_return')
        # 30 * 0.1 is 3.0000000000000004 with floats
        assert FeeEstimator().estimate(8, op_return, fee_rate=0.1) == 3
        assert FeeEstimator().estimate(8, op_return, fee_rate=Fraction(1, 3)) == 10

    def test_custom_base_overhead(self, policy: CarrierPolicy) -> None:
        assert FeeEstimator(0).estimate(100, policy.lookup('op_return')) == 112
        with pytest.raises(ValueError, match='the base overhead cannot be negative'):
            FeeEstimator(-1)

    def test_invalid_arguments(self, policy: CarrierPolicy) -> None:
        op_return = policy.lookup('op_return')
        with pytest.raises(ValueError, match='the payload size cannot be negative'):
            FeeEstimator().estimate(-1, op_return)
        with pytest.raises(ValueError, match='the fee rate cannot be negative'):
            FeeEstimator().estimate(100, op_return, fee_rate=-0.5)
        with pytest.raises(ValueError):
            FeeEstimator().estimate(100, op_return, fee_rate=float('nan'))
