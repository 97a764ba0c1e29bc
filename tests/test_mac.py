from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module

from rrofdma.components.network import Network
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.support import initialize_network
from rrofdma.utils.messages import (
    STARTING_TEST_MSG,
    TEST_COMPLETED_MSG,
    STARTING_SIMULATION_MSG,
    SIMULATION_TERMINATED_MSG,
)

import simpy
import random


logger = get_logger("TEST", cfg_module, sparams_module)


class SuFormatAckCfg(cfg_module):
    DL_MU_ACK_SEQUENCE = "DL_SU_FORMAT"


class AggregateTfAckCfg(cfg_module):
    DL_MU_ACK_SEQUENCE = "DL_AGGREGATE_TF"


def run_simulation(cfg, processes=()) -> Network:
    random.seed(cfg.SEED)

    print(STARTING_SIMULATION_MSG)
    env = simpy.Environment()
    network = initialize_network(cfg, sparams_module, env)
    for process in processes:
        env.process(process(env, network))

    env.run(until=cfg.SIMULATION_TIME_us)
    print(SIMULATION_TERMINATED_MSG)

    return network


def check_delivery(network: Network):
    ap = network.get_aps()[0]
    stas = network.get_stas()

    for sta in stas:
        logger.info(
            f"STA {sta.id} (AID {sta.aid}) -> Rx Pkts: {sta.rx_stats.pkts_rx}, Tx Pkts: {sta.tx_stats.pkts_tx}"
        )
        assert sta.rx_stats.pkts_rx > 0

    # Packets are counted as transmitted when dequeued, before they are received
    assert sum(sta.rx_stats.pkts_rx for sta in stas) <= ap.tx_stats.pkts_tx
    assert ap.rx_stats.pkts_rx <= sum(sta.tx_stats.pkts_tx for sta in stas)


def check_decisions(network: Network, cfg):
    ap = network.get_aps()[0]
    history = ap.scheduler_stats.decisions_history

    assert (history["n_stas"] <= cfg.N_STATIONS).all()
    assert (history["tones"] <= 242).all()  # 20 MHz channel


def test_dl_mu_bar():
    network = run_simulation(cfg_module)
    ap = network.get_aps()[0]
    format_counts = ap.scheduler_stats.format_counts

    logger.info(f"AP {ap.id} -> {format_counts}")

    assert format_counts["DL_MULTI_USER"] > 0
    assert format_counts["UL_MULTI_USER"] > 0
    assert ap.tx_stats.dl_mu_ppdus_tx > 0
    assert ap.tx_stats.triggers_tx > 0

    # STA 2 is the only one with UL traffic
    assert ap.rx_stats.pkts_rx > 0
    assert set(ap.rx_stats.rx_packets_history["src_id"]) == {2}

    check_delivery(network)
    check_decisions(network, cfg_module)

    network.stats.collect_stats()
    scheduler_stats = network.stats.scheduler_stats[ap.id]

    assert 0 < network.stats.pkt_delivery_ratio <= 1
    assert 0 < scheduler_stats["dl_throughput_fairness"] <= 1
    assert 0 < scheduler_stats["dl_tones_fairness"] <= 1
    assert 0 < scheduler_stats["avg_stas_per_dl_mu_ppdu"] <= cfg_module.N_STATIONS


def test_dl_su_format_ack():
    network = run_simulation(SuFormatAckCfg)
    ap = network.get_aps()[0]

    assert ap.scheduler_stats.format_counts["DL_MULTI_USER"] > 0
    assert ap.tx_stats.bars_tx > 0

    check_delivery(network)
    check_decisions(network, SuFormatAckCfg)


def test_dl_aggregate_tf_ack():
    network = run_simulation(AggregateTfAckCfg)
    ap = network.get_aps()[0]

    assert ap.scheduler_stats.format_counts["DL_MULTI_USER"] > 0
    assert ap.tx_stats.triggers_tx > 0
    assert ap.tx_stats.bars_tx == 0

    check_delivery(network)
    check_decisions(network, AggregateTfAckCfg)


def test_sta_leaving_the_bss():
    removal_time_us = 2e4
    snapshot = {}

    def remove_sta(env: simpy.Environment, network: Network):
        yield env.timeout(removal_time_us)
        snapshot["pkts_rx"] = network.get_node(3).rx_stats.pkts_rx
        snapshot["sta"] = network.get_node(3)
        network.remove_node(3)

    network = run_simulation(cfg_module, processes=[remove_sta])
    ap = network.get_aps()[0]

    assert 3 not in [sta.id for sta in ap.get_stas()]
    assert ap.get_aid(3) is None
    # AIDs are not reused
    assert [sta.aid for sta in ap.get_stas()] == [1, 3]

    history = ap.scheduler_stats.decisions_history
    later_decisions = history[history["timestamp_us"] > removal_time_us]
    assert not later_decisions.empty
    for stas in later_decisions["stas"]:
        assert "3" not in stas.split(",")

    assert snapshot["sta"].rx_stats.pkts_rx == snapshot["pkts_rx"]
    assert all(key[0] != 3 for key in ap.mac_layer.tx_queues)

    for sta in network.get_stas():
        assert sta.rx_stats.pkts_rx > 0


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_dl_mu_bar()
    test_dl_su_format_ack()
    test_dl_aggregate_tf_ack()
    test_sta_leaving_the_bss()

    print(TEST_COMPLETED_MSG)
