from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module
from tests._collaborators_tests import DummyAgreements, DummyTiming, address_of, make_parties

from rrofdma.components.he_ru import RuSpec, RuType
from rrofdma.components.tx_params import (
    AggregateTfSequence,
    BlockAckType,
    DlMuAckSequenceType,
    MuBarSequence,
    PerStaBarBaSequence,
    PpduFormat,
    TriggerType,
    TxParameterBuilder,
    UlMuAckSequenceType,
)
from rrofdma.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest
import simpy


def make_builder(agreements=None, timing=None) -> TxParameterBuilder:
    return TxParameterBuilder(
        cfg_module,
        sparams_module,
        simpy.Environment(),
        agreements or DummyAgreements(),
        timing or DummyTiming(),
    )


def make_tx_vector(builder: TxParameterBuilder, n_stas: int = 3):
    parties = make_parties(n_stas)
    rus = [RuSpec(RuType.RU_52_TONE, i) for i in range(1, n_stas + 1)]
    return builder.build_tx_vector(20, list(zip(parties, rus)))


def test_tx_vector():
    timing = DummyTiming()
    timing.mcs[address_of(2)] = 3
    builder = make_builder(timing=timing)

    tx_vector = make_tx_vector(builder)

    assert tx_vector.ppdu_format == PpduFormat.HE_MU
    assert tx_vector.guard_interval_us == sparams_module.GUARD_INTERVAL_us
    assert [info.mcs for info in tx_vector.user_infos.values()] == [7, 3, 7]
    assert tx_vector.get_ru(3) == RuSpec(RuType.RU_52_TONE, 3)
    assert tx_vector.length_us is None


def test_dl_ack_sequences():
    agreements = DummyAgreements(agreements={(address_of(1), 0)}, all_tids=False)
    builder = make_builder(agreements=agreements)
    receivers = [(address_of(1), 0), (address_of(2), 5)]

    per_sta = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_SU_FORMAT, receivers)
    assert isinstance(per_sta, PerStaBarBaSequence)
    assert per_sta.stations_receiving_bar == {
        address_of(1): (BlockAckType.EXTENDED_COMPRESSED, BlockAckType.COMPRESSED),
        address_of(2): (BlockAckType.COMPRESSED, BlockAckType.COMPRESSED),  # no agreement
    }

    mu_bar = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_MU_BAR, receivers)
    assert isinstance(mu_bar, MuBarSequence)
    assert list(mu_bar.stations_replying_with_ba) == [address_of(1), address_of(2)]

    aggregate = builder.build_dl_ack_sequence(DlMuAckSequenceType.DL_AGGREGATE_TF, receivers)
    assert isinstance(aggregate, AggregateTfSequence)
    assert aggregate.stations_replying_with_ba[address_of(1)] == BlockAckType.COMPRESSED


def test_mu_bar_trigger():
    timing = DummyTiming(ba_ul_length_us=72)
    timing.mcs[address_of(1)] = 2
    builder = make_builder(timing=timing)
    tx_vector = make_tx_vector(builder)
    aid_to_address = {aid: address_of(aid) for aid in tx_vector.user_infos}

    ack_sequence = builder.build_dl_ack_sequence(
        DlMuAckSequenceType.DL_MU_BAR, [(address, 0) for address in aid_to_address.values()]
    )
    trigger = builder.build_mu_bar_trigger(tx_vector, ack_sequence, aid_to_address)

    assert trigger.trigger_type == TriggerType.MU_BAR
    assert trigger.size_bytes == (
        sparams_module.TRIGGER_BASE_SIZE_bytes + 3 * sparams_module.MU_BAR_USER_INFO_SIZE_bytes
    )
    assert trigger.ul_length_us == 72
    # Responses are solicited on the DL RU, at most at MCS 5
    assert [info.mcs for info in trigger.user_infos.values()] == [2, 5, 5]
    assert all(
        trigger.user_infos[aid].ru == tx_vector.get_ru(aid) for aid in tx_vector.user_infos
    )
    assert all(info.bar_type == BlockAckType.EXTENDED_COMPRESSED for info in trigger.user_infos.values())
    assert all(
        info.target_rssi_dbm == sparams_module.TARGET_RSSI_dBm for info in trigger.user_infos.values()
    )

    aggregate = builder.build_dl_ack_sequence(
        DlMuAckSequenceType.DL_AGGREGATE_TF, [(address, 0) for address in aid_to_address.values()]
    )
    trigger = builder.build_mu_bar_trigger(tx_vector, aggregate, aid_to_address)
    assert all(info.bar_type is None for info in trigger.user_infos.values())


def test_basic_trigger():
    builder = make_builder()
    tx_vector = make_tx_vector(builder, n_stas=2)

    trigger = builder.build_basic_trigger(tx_vector, 320)

    assert trigger.trigger_type == TriggerType.BASIC
    assert trigger.size_bytes == (
        sparams_module.TRIGGER_BASE_SIZE_bytes + 2 * sparams_module.TRIGGER_USER_INFO_SIZE_bytes
    )

    tb_tx_vector = trigger.get_tb_tx_vector()
    assert tb_tx_vector.ppdu_format == PpduFormat.HE_TB
    assert tb_tx_vector.length_us == 320
    assert tb_tx_vector.user_infos == tx_vector.user_infos


def test_ul_ack_sequence():
    builder = make_builder()

    ack_sequence = builder.build_ul_ack_sequence(
        UlMuAckSequenceType.UL_MULTI_STA_BLOCK_ACK, [address_of(4), address_of(2)]
    )

    assert ack_sequence.stations_receiving_multi_sta_ba == {address_of(4): 0, address_of(2): 1}
    assert ack_sequence.ba_type == BlockAckType.MULTI_STA

    with pytest.raises(SystemExit):
        builder.build_ul_ack_sequence("UL_SU_BLOCK_ACKS", [address_of(1)])


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_tx_vector()
    test_dl_ack_sequences()
    test_mu_bar_trigger()
    test_basic_trigger()
    test_ul_ack_sequence()

    print(TEST_COMPLETED_MSG)
