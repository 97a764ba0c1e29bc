from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module
from tests._collaborators_tests import DummyAgreements, address_of, make_parties

from rrofdma.components.he_ru import RuSpec, RuType
from rrofdma.components.tx_params import (
    DlMuAckSequenceType,
    MultiStaBlockAckSequence,
    PpduFormat,
    TxParameterBuilder,
    TxVector,
)
from rrofdma.utils.data_units import get_multi_sta_back_size_bytes
from rrofdma.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG
from rrofdma.utils.transmission import HeTimingModel, get_path_loss_dB, get_rssi_dbm

import pytest
import simpy


SIFS = sparams_module.SIFS_us


def make_timing(mcs: int = 0) -> HeTimingModel:
    return HeTimingModel(sparams_module, lambda address: (mcs, 1))


def make_builder(timing: HeTimingModel) -> TxParameterBuilder:
    return TxParameterBuilder(
        cfg_module, sparams_module, simpy.Environment(), DummyAgreements(), timing
    )


def test_path_loss_and_rssi():
    assert get_path_loss_dB(sparams_module, 1) == pytest.approx(46.43, abs=0.01)
    # 40 dB per decade with a path loss exponent of 4
    assert get_path_loss_dB(sparams_module, 10) - get_path_loss_dB(
        sparams_module, 1
    ) == pytest.approx(40)
    assert get_rssi_dbm(sparams_module, 10) == pytest.approx(-66.43, abs=0.01)


def test_control_frame_duration():
    timing = make_timing()

    # 16 + 8 * 32 + 6 bits in 24-bit symbols: 12 symbols
    assert timing.calculate_control_tx_duration_us(32) == 20 + 12 * 4
    assert timing.calculate_control_tx_duration_us(24) == 20 + 9 * 4


def test_he_psdu_duration():
    timing = make_timing(mcs=0)
    builder = make_builder(timing)
    tx_vector = builder.build_tx_vector(
        20,
        [(party, RuSpec(RuType.RU_26_TONE, i)) for i, party in enumerate(make_parties(2), 1)],
    )

    # MCS 0 over 24 data subcarriers carries 12 bits per symbol: 69 symbols for 100 bytes
    expected_us = sparams_module.HE_MU_PREAMBLE_us + 69 * (12.8 + 0.8)
    assert timing.calculate_tx_duration_us(100, tx_vector, 2) == pytest.approx(expected_us)
    # Without AID, the RU of the first user is used
    assert timing.calculate_tx_duration_us(100, tx_vector) == pytest.approx(expected_us)

    # Larger RUs are faster
    wide_vector = builder.build_tx_vector(20, [(make_parties(1)[0], RuSpec(RuType.RU_242_TONE, 1))])
    assert timing.calculate_tx_duration_us(100, wide_vector, 1) < expected_us


def test_he_psdu_duration_without_users():
    timing = make_timing()
    tx_vector = TxVector(PpduFormat.HE_SU, 20, 0.8)

    # MCS 0 over the whole 20 MHz channel: 117 bits per symbol
    assert timing.calculate_tx_duration_us(100, tx_vector) == pytest.approx(
        sparams_module.HE_SU_PREAMBLE_us + 8 * 13.6
    )


def test_dl_response_durations():
    timing = make_timing(mcs=7)
    builder = make_builder(timing)
    parties = make_parties(2)
    tx_vector = builder.build_tx_vector(
        20, [(party, RuSpec(RuType.RU_106_TONE, i)) for i, party in enumerate(parties, 1)]
    )
    receivers = [(party.address, 0) for party in parties]
    aid_to_address = {party.aid: party.address for party in parties}

    per_sta = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_SU_FORMAT, receivers)
    bar_ba_us = SIFS + 56 + SIFS + 68
    assert timing.get_response_duration_us(per_sta, tx_vector) == 2 * bar_ba_us

    mu_bar = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_MU_BAR, receivers)
    trigger = builder.build_mu_bar_trigger(tx_vector, mu_bar, aid_to_address)
    # BlockAcks are sent at MCS 5 on the DL RUs
    assert trigger.ul_length_us == pytest.approx(
        timing.calculate_tx_duration_us(
            sparams_module.BACK_SIZE_bytes, trigger.get_tb_tx_vector(), 1
        )
    )
    assert timing.get_response_duration_us(mu_bar, tx_vector, trigger) == pytest.approx(
        SIFS
        + timing.calculate_control_tx_duration_us(trigger.size_bytes)
        + SIFS
        + trigger.ul_length_us
    )

    aggregate = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_AGGREGATE_TF, receivers)
    trigger = builder.build_mu_bar_trigger(tx_vector, aggregate, aid_to_address)
    assert timing.get_response_duration_us(aggregate, tx_vector, trigger) == pytest.approx(
        SIFS + trigger.ul_length_us
    )


def test_ul_response_duration():
    timing = make_timing()
    builder = make_builder(timing)
    tx_vector = builder.build_tx_vector(
        20, [(party, RuSpec(RuType.RU_106_TONE, party.aid)) for party in make_parties(2)]
    )
    trigger = builder.build_basic_trigger(tx_vector, 400)
    ack_sequence = MultiStaBlockAckSequence({address_of(1): 0, address_of(2): 1})

    assert timing.get_response_duration_us(ack_sequence, tx_vector, trigger) == pytest.approx(
        SIFS
        + 400
        + SIFS
        + timing.calculate_control_tx_duration_us(get_multi_sta_back_size_bytes(2))
    )


def test_unknown_response_sequence():
    with pytest.raises(ValueError):
        make_timing().get_response_duration_us(object(), TxVector(PpduFormat.HE_MU, 20, 0.8))


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_path_loss_and_rssi()
    test_control_frame_duration()
    test_he_psdu_duration()
    test_he_psdu_duration_without_users()
    test_dl_response_durations()
    test_ul_response_duration()
    test_unknown_response_sequence()

    print(TEST_COMPLETED_MSG)
