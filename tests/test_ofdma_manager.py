from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module
from tests._collaborators_tests import DummyBss, DummyFrame, address_of

from rrofdma.components.he_ru import RuSpec, RuType
from rrofdma.components.ofdma_manager import ScheduleState, TxFormat
from rrofdma.components.tx_params import (
    AggregateTfSequence,
    DlMuAckSequenceType,
    MuBarSequence,
    PerStaBarBaSequence,
    PpduFormat,
    TriggerType,
)
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest


logger = get_logger("TEST", cfg_module, sparams_module)


class NoUlCfg(cfg_module):
    ENABLE_UL_OFDMA = False


class ForceDlCfg(cfg_module):
    FORCE_DL_OFDMA = True


class WideCfg(cfg_module):
    N_STATIONS = 10


def served_aids(manager) -> list[int]:
    return [info.aid for info in manager.compute_dl_allocation().sta_info.values()]


# --- DL MU PPDUs --- #


def test_dl_mu_ppdu_uniform_rus():
    bss = DummyBss(n_stas=4)
    manager = bss.make_manager()

    tx_format = manager.select_tx_format(DummyFrame(1000, tid=0))

    assert tx_format == TxFormat.DL_MULTI_USER

    dl_info = manager.compute_dl_allocation()
    assert list(dl_info.sta_info) == [address_of(aid) for aid in range(1, 5)]
    assert all(info.tid == 0 for info in dl_info.sta_info.values())
    assert list(dl_info.ru_assignment.values()) == [
        RuSpec(RuType.RU_52_TONE, i) for i in range(1, 5)
    ]

    tx_vector = dl_info.tx_vector
    assert tx_vector.ppdu_format == PpduFormat.HE_MU
    assert tx_vector.channel_width_mhz == 20
    assert list(tx_vector.user_infos) == [1, 2, 3, 4]
    assert tx_vector.user_infos[1].mcs == 7

    assert isinstance(dl_info.ack_sequence, MuBarSequence)
    assert set(dl_info.ack_sequence.stations_replying_with_ba) == set(dl_info.sta_info)

    trigger = dl_info.trigger
    assert trigger.trigger_type == TriggerType.MU_BAR
    assert all(info.mcs == sparams_module.MU_BAR_MAX_MCS for info in trigger.user_infos.values())
    assert trigger.ul_length_us == bss.timing.ba_ul_length_us

    # Every STA was served, the next PPDU starts again from the first one
    assert manager.state.start_aid == 1


def test_dl_ack_sequence_follows_policy():
    for ack_type, expected, has_trigger in [
        (DlMuAckSequenceType.DL_SU_FORMAT, PerStaBarBaSequence, False),
        (DlMuAckSequenceType.DL_MU_BAR, MuBarSequence, True),
        (DlMuAckSequenceType.DL_AGGREGATE_TF, AggregateTfSequence, True),
    ]:
        bss = DummyBss(n_stas=2)
        bss.ack_policy.dl_ack_type = ack_type
        manager = bss.make_manager()

        assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER

        dl_info = manager.compute_dl_allocation()
        assert isinstance(dl_info.ack_sequence, expected)
        assert (dl_info.trigger is not None) == has_trigger
        assert manager.state.dl_ack_type == ack_type


def test_round_robin_fairness():
    bss = DummyBss(n_stas=6)
    manager = bss.make_manager(NoUlCfg)

    selections = {aid: 0 for aid in range(1, 7)}
    rounds = []
    for _ in range(3):
        assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER
        rounds.append(served_aids(manager))
        for aid in rounds[-1]:
            selections[aid] += 1

    logger.debug(f"Served STAs: {rounds}")

    assert rounds == [[1, 2, 3, 4], [5, 6, 1, 2], [3, 4, 5, 6]]
    assert set(selections.values()) == {2}


def test_round_robin_single_sta_per_ppdu():
    class SingleStaCfg(NoUlCfg):
        N_STATIONS = 1

    bss = DummyBss(n_stas=3)
    manager = bss.make_manager(SingleStaCfg)

    rounds = []
    for _ in range(4):
        manager.select_tx_format(DummyFrame(1000))
        rounds.append(served_aids(manager))

    assert rounds == [[1], [2], [3], [1]]
    assert list(manager.compute_dl_allocation().ru_assignment.values()) == [
        RuSpec(RuType.RU_242_TONE, 1)
    ]


def test_cursor_restarts_when_start_sta_leaves():
    bss = DummyBss(n_stas=6)
    manager = bss.make_manager(NoUlCfg)

    manager.select_tx_format(DummyFrame(1000))
    assert manager.state.start_aid == 5

    bss.membership.remove(5)
    bss.membership.remove(6)

    manager.select_tx_format(DummyFrame(1000))
    assert served_aids(manager) == [1, 2, 3, 4]


def test_cursor_unchanged_without_candidates():
    bss = DummyBss(n_stas=6)
    manager = bss.make_manager(NoUlCfg)

    manager.select_tx_format(DummyFrame(1000))
    assert manager.state.start_aid == 5

    bss.queues.frames.clear()

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.FALLBACK
    assert manager.state.start_aid == 5
    assert manager.compute_dl_allocation().sta_info == {}


def test_unplaced_stas_are_served_first_next_time():
    bss = DummyBss(n_stas=10)
    manager = bss.make_manager(WideCfg)

    manager.select_tx_format(DummyFrame(1000))

    # 9 26-tone RUs in 20 MHz, the 10th STA gets none
    assert served_aids(manager) == list(range(1, 10))
    assert manager.state.start_aid == 10


def test_streaming_fanout_leaves_http_unplaced():
    bss = DummyBss(n_stas=10)
    bss.membership.classes = {
        "STREAMING": {address_of(aid) for aid in [1, 2, 3, 4, 6, 7, 8, 9]},
        "BULK": {address_of(10)},
        "HTTP": {address_of(5)},
    }
    manager = bss.make_manager(WideCfg)

    manager.select_tx_format(DummyFrame(1000))

    assert served_aids(manager) == [1, 2, 3, 4, 6, 7, 8, 9, 10]
    assert manager.state.start_aid == 5


def test_mixed_regime_allocation():
    bss = DummyBss(n_stas=4)
    bss.queues.add(address_of(3), 1500)
    bss.membership.classes = {
        "BULK": {address_of(1)},
        "STREAMING": {address_of(2), address_of(3)},
        "HTTP": {address_of(4)},
    }
    manager = bss.make_manager()

    manager.select_tx_format(DummyFrame(1000))

    assert manager.compute_dl_allocation().ru_assignment == {
        address_of(1): RuSpec(RuType.RU_106_TONE, 1),
        address_of(3): RuSpec(RuType.RU_26_TONE, 5),
        address_of(2): RuSpec(RuType.RU_26_TONE, 6),
        address_of(4): RuSpec(RuType.RU_26_TONE, 7),
    }
    assert sum(ru.tones for ru in manager.state.rus) <= 242


def test_no_associated_stas():
    bss = DummyBss(n_stas=0)

    manager = bss.make_manager()
    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.FALLBACK

    manager = bss.make_manager(ForceDlCfg)
    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER
    assert manager.compute_dl_allocation().sta_info == {}
    assert manager.compute_dl_allocation().tx_vector is None


def test_no_frames_to_send():
    bss = DummyBss(n_stas=3, frame_size_bytes=None)

    assert bss.make_manager().select_tx_format(DummyFrame(1000)) == TxFormat.FALLBACK
    assert bss.make_manager(ForceDlCfg).select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER


def test_txop_budget_excludes_long_frames():
    bss = DummyBss(n_stas=3, frame_size_bytes=None, tid=5)
    bss.queues.add(address_of(1), 30000, tid=5)  # 3000 us
    bss.queues.add(address_of(2), 45000, tid=5)  # 4500 us
    bss.queues.add(address_of(3), 1000, tid=5)
    manager = bss.make_manager(NoUlCfg)

    # VI TXOP of 4096 us minus the MU-BAR sequence
    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.DL_MULTI_USER
    assert served_aids(manager) == [1, 3]


def test_txop_exhausted():
    bss = DummyBss(n_stas=3, tid=5)
    bss.txop.remaining_us["VI"] = 100  # shorter than the acknowledgment sequence

    assert bss.make_manager().select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.FALLBACK

    manager = bss.make_manager(ForceDlCfg)
    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.DL_MULTI_USER
    assert manager.compute_dl_allocation().sta_info == {}


def test_no_txop_means_no_budget():
    bss = DummyBss(n_stas=1, frame_size_bytes=50000)  # 5000 us, longer than any TXOP

    manager = bss.make_manager(NoUlCfg)

    assert manager.select_tx_format(DummyFrame(50000, tid=0)) == TxFormat.DL_MULTI_USER
    assert served_aids(manager) == [1]


# --- UL MU PPDUs --- #


def start_with_dl(n_stas=2, cfg=cfg_module, tid=0):
    bss = DummyBss(n_stas=n_stas, tid=tid)
    manager = bss.make_manager(cfg)
    assert manager.select_tx_format(DummyFrame(1000, tid=tid)) == TxFormat.DL_MULTI_USER
    return bss, manager


def test_ul_after_dl_with_unknown_buffer_status():
    bss, manager = start_with_dl(n_stas=2)

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.UL_MULTI_USER

    ul_info = manager.compute_ul_allocation()
    # Unknown buffer status: the minimum PSDU is solicited
    assert ul_info.tx_vector.length_us == cfg_module.UL_PSDU_SIZE_bytes / bss.timing.BYTES_PER_US
    assert ul_info.tx_vector.ppdu_format == PpduFormat.HE_TB
    assert list(ul_info.tx_vector.user_infos) == [1, 2]
    assert ul_info.trigger.trigger_type == TriggerType.BASIC
    assert ul_info.trigger.ul_length_us == ul_info.tx_vector.length_us
    assert ul_info.ack_sequence.stations_receiving_multi_sta_ba == {
        address_of(1): 0,
        address_of(2): 1,
    }

    # The DL allocation of the previous PPDU is not reported again
    assert served_aids(manager) == []
    assert manager.compute_dl_allocation().ru_assignment == {}
    assert manager.state.candidates == []
    assert manager.state.rus == []

    # UL MU PPDUs are solicited after DL MU PPDUs only
    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER


def test_ul_duration_from_buffer_status():
    bss, manager = start_with_dl(n_stas=2)
    bss.buffer_status.reports = {address_of(1): 3, address_of(2): 10}

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.UL_MULTI_USER
    assert manager.compute_ul_allocation().tx_vector.length_us == 10 * 256 / bss.timing.BYTES_PER_US


def test_ul_unlimited_buffer_status():
    bss, manager = start_with_dl(n_stas=2)
    bss.buffer_status.reports = {address_of(1): sparams_module.BSR_UNLIMITED}

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.UL_MULTI_USER
    assert manager.compute_ul_allocation().tx_vector.length_us == sparams_module.PPDU_MAX_TIME_us


def test_no_ul_traffic_falls_through_to_dl():
    bss, manager = start_with_dl(n_stas=2)
    bss.buffer_status.default = 0

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER
    assert served_aids(manager) == [1, 2]


def test_ul_disabled():
    bss, manager = start_with_dl(n_stas=2, cfg=NoUlCfg)

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.DL_MULTI_USER


def test_ul_skips_stas_that_left():
    bss, manager = start_with_dl(n_stas=2)
    bss.membership.remove(2)

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.UL_MULTI_USER
    assert list(manager.compute_ul_allocation().tx_vector.user_infos) == [1]


def test_ul_all_stas_left():
    bss, manager = start_with_dl(n_stas=2)
    bss.membership.remove(1)
    bss.membership.remove(2)

    assert manager.select_tx_format(DummyFrame(1000)) == TxFormat.FALLBACK


# Trigger frame (20 + 38 us) and response (100 us) for 2 STAs, not counting the TB PPDU
UL_RESPONSE_US = 20 + sparams_module.TRIGGER_BASE_SIZE_bytes + 2 * sparams_module.TRIGGER_USER_INFO_SIZE_bytes + 100


def test_ul_txop_too_short_for_response():
    bss, manager = start_with_dl(n_stas=2, tid=5)
    bss.txop.remaining_us["VI"] = UL_RESPONSE_US - 1

    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.DL_MULTI_USER
    assert manager.compute_dl_allocation().sta_info == {}

    # The UL MU PPDU is attempted again at the next invocation
    bss.txop.remaining_us["VI"] = 4096
    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.UL_MULTI_USER


def test_ul_txop_too_short_for_minimum_psdu():
    bss, manager = start_with_dl(n_stas=2, tid=5)
    bss.txop.remaining_us["VI"] = UL_RESPONSE_US + 30  # the minimum PSDU takes 50 us

    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.DL_MULTI_USER
    assert manager.compute_dl_allocation().sta_info == {}


def test_ul_duration_capped_by_txop():
    bss, manager = start_with_dl(n_stas=2, tid=5)
    bss.buffer_status.reports = {address_of(1): 20}  # 5120 bytes, 512 us
    bss.txop.remaining_us["VI"] = UL_RESPONSE_US + 300

    assert manager.select_tx_format(DummyFrame(1000, tid=5)) == TxFormat.UL_MULTI_USER
    assert manager.compute_ul_allocation().tx_vector.length_us == pytest.approx(300)


# --- Configuration --- #


def test_invalid_configuration_is_fatal():
    class NoStationsCfg(cfg_module):
        N_STATIONS = 0

    class TooManyStationsCfg(cfg_module):
        N_STATIONS = 75

    class BadWidthCfg(cfg_module):
        CHANNEL_WIDTH_MHz = 30

    class NoUlPsduCfg(cfg_module):
        UL_PSDU_SIZE_bytes = 0

    for cfg in [NoStationsCfg, TooManyStationsCfg, BadWidthCfg, NoUlPsduCfg]:
        with pytest.raises(SystemExit):
            DummyBss().make_manager(cfg)


def test_unsupported_ul_ack_sequence_is_fatal():
    bss, manager = start_with_dl(n_stas=2)
    bss.ack_policy.ul_ack_type = "UL_SU_BLOCK_ACKS"

    with pytest.raises(SystemExit):
        manager.select_tx_format(DummyFrame(1000))


def test_state_is_injected():
    state = ScheduleState(start_aid=3)
    bss = DummyBss(n_stas=4)
    manager = bss.make_manager(NoUlCfg, state=state)

    manager.select_tx_format(DummyFrame(1000))

    assert manager.state is state
    assert served_aids(manager) == [3, 4, 1, 2]
    assert state.last_tx_format == TxFormat.DL_MULTI_USER


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_dl_mu_ppdu_uniform_rus()
    test_dl_ack_sequence_follows_policy()
    test_round_robin_fairness()
    test_round_robin_single_sta_per_ppdu()
    test_cursor_restarts_when_start_sta_leaves()
    test_cursor_unchanged_without_candidates()
    test_unplaced_stas_are_served_first_next_time()
    test_streaming_fanout_leaves_http_unplaced()
    test_mixed_regime_allocation()
    test_no_associated_stas()
    test_no_frames_to_send()
    test_txop_budget_excludes_long_frames()
    test_txop_exhausted()
    test_no_txop_means_no_budget()

    test_ul_after_dl_with_unknown_buffer_status()
    test_ul_duration_from_buffer_status()
    test_ul_unlimited_buffer_status()
    test_no_ul_traffic_falls_through_to_dl()
    test_ul_disabled()
    test_ul_skips_stas_that_left()
    test_ul_all_stas_left()
    test_ul_txop_too_short_for_response()
    test_ul_txop_too_short_for_minimum_psdu()
    test_ul_duration_capped_by_txop()

    test_invalid_configuration_is_fatal()
    test_unsupported_ul_ack_sequence_is_fatal()
    test_state_is_injected()

    print(TEST_COMPLETED_MSG)
