from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.he_ru import RuSpec
from rrofdma.utils.data_units import Packet
from rrofdma.utils.event_logger import get_logger

import pandas as pd
import numpy as np
import json
import os


TX_FORMATS = ["DL_MULTI_USER", "UL_MULTI_USER", "FALLBACK"]


class TransmissionStats:
    def __init__(self):
        self.first_tx_time_us = None
        self.last_tx_time_us = None

        self.dl_mu_ppdus_tx = 0  # DL MU PPDUs transmitted (or addressed, for STAs)
        self.tb_ppdus_tx = 0  # HE TB PPDUs transmitted (or solicited, for the AP)
        self.su_ppdus_tx = 0  # SU PPDUs transmitted
        self.triggers_tx = 0  # Trigger frames transmitted
        self.bars_tx = 0  # BARs transmitted
        self.backs_tx = 0  # BACKs (and Multi-STA BACKs) transmitted

        self.pkts_tx = 0
        self.pkts_dropped_queue_lim = 0

        self.tx_app_bytes = 0  # Transmitted application data bytes
        self.tx_mac_bytes = 0  # Transmitted bytes (including MAC header)

        self.airtime_us = 0

        self.tx_queue_len_history = pd.DataFrame(
            columns=["timestamp_us", "queue_len"], data=[[0.0, 0]]
        )

    def add_to_tx_queue_history(self, timestamp_us: float, queue_len: int):
        new_row = {"timestamp_us": timestamp_us, "queue_len": queue_len}
        self.tx_queue_len_history.loc[len(self.tx_queue_len_history)] = new_row

    def add_transmission(self, timestamp_us: float, duration_us: float):
        if self.first_tx_time_us is None:
            self.first_tx_time_us = timestamp_us
        self.last_tx_time_us = timestamp_us
        self.airtime_us += duration_us


class ReceptionStats:
    def __init__(self):
        self.first_rx_time_us = None
        self.last_rx_time_us = None

        self.ampdus_rx = 0
        self.backs_rx = 0

        self.pkts_rx = 0

        self.rx_mac_bytes = 0  # Received bytes (including MAC header)
        self.rx_app_bytes = 0  # Received application data bytes

        self.rx_packets_history = pd.DataFrame(
            columns=[
                "packet_id",
                "src_id",
                "dst_id",
                "tid",
                "size_bytes",
                "creation_time_us",
                "reception_time_us",
            ]
        )

    def add_packet_to_history(self, packet: Packet):
        if self.first_rx_time_us is None:
            self.first_rx_time_us = packet.reception_time_us
        self.last_rx_time_us = packet.reception_time_us

        self.pkts_rx += 1
        self.rx_app_bytes += packet.size_bytes

        new_row = pd.DataFrame(
            [
                {
                    "packet_id": packet.id,
                    "src_id": packet.src_id,
                    "dst_id": packet.dst_id,
                    "tid": packet.tid,
                    "size_bytes": packet.size_bytes,
                    "creation_time_us": packet.creation_time_us,
                    "reception_time_us": packet.reception_time_us,
                }
            ]
        )
        if self.rx_packets_history.empty:
            self.rx_packets_history = new_row
        else:
            self.rx_packets_history = pd.concat(
                [self.rx_packets_history, new_row], ignore_index=True
            )


class SchedulerStats:
    """Decisions taken by the OFDMA scheduler of an AP."""

    def __init__(self):
        self.format_counts = {tx_format: 0 for tx_format in TX_FORMATS}
        self.empty_dl_count = 0  # DL MU decisions with no receivers

        self.sta_selections = {}  # STA ID -> number of MU PPDUs addressing it
        self.tones_per_sta = {}  # STA ID -> tones assigned over all DL MU PPDUs

        self.decisions_history = pd.DataFrame(
            columns=["timestamp_us", "tx_format", "n_stas", "stas", "tones"]
        )

    def add_decision(
        self,
        timestamp_us: float,
        tx_format: str,
        ru_assignment: dict[int, RuSpec] | None = None,
    ):
        """
        Records a scheduling decision.

        Args:
            timestamp_us (float): When the decision was taken.
            tx_format (str): The selected TX format.
            ru_assignment (dict[int, RuSpec] | None, optional): The RU of every addressed STA.
        """
        ru_assignment = ru_assignment or {}

        self.format_counts[tx_format] = self.format_counts.get(tx_format, 0) + 1
        if tx_format == "DL_MULTI_USER" and not ru_assignment:
            self.empty_dl_count += 1

        for sta_id, ru in ru_assignment.items():
            self.sta_selections[sta_id] = self.sta_selections.get(sta_id, 0) + 1
            if tx_format == "DL_MULTI_USER":
                self.tones_per_sta[sta_id] = self.tones_per_sta.get(sta_id, 0) + ru.tones

        new_row = {
            "timestamp_us": timestamp_us,
            "tx_format": tx_format,
            "n_stas": len(ru_assignment),
            "stas": ",".join(map(str, ru_assignment)),
            "tones": sum(ru.tones for ru in ru_assignment.values()),
        }
        self.decisions_history.loc[len(self.decisions_history)] = new_row

    def get_format_ratios(self) -> dict[str, float]:
        total = sum(self.format_counts.values())
        return {
            tx_format: (count / total if total > 0 else 0)
            for tx_format, count in self.format_counts.items()
        }

    def get_avg_stas_per_dl_mu_ppdu(self) -> float:
        dl_decisions = self.decisions_history[
            (self.decisions_history["tx_format"] == "DL_MULTI_USER")
            & (self.decisions_history["n_stas"] > 0)
        ]
        return float(dl_decisions["n_stas"].astype(float).mean()) if not dl_decisions.empty else 0


def get_jain_fairness_index(values: list[float]) -> float:
    """
    Computes Jain's fairness index of the given allocations.

    Returns 1 when all the allocations are equal and 1/n when a single one is
    non-zero. An empty or all-zero list is considered fair.
    """
    x = np.asarray(values, dtype=float)
    if x.size == 0 or not np.any(x):
        return 1.0
    return float(x.sum() ** 2 / (x.size * np.square(x).sum()))


class NetworkStats:
    def __init__(self, cfg: cfg, sparams: sparams, network):
        self.cfg = cfg
        self.sparams = sparams

        self.network = network

        self.total_pkts_tx = 0
        self.total_pkts_rx = 0

        self.total_app_bytes_tx = 0
        self.total_app_bytes_rx = 0

        self.pkt_delivery_ratio = 0

        self.dl_throughput_fairness = 1.0
        self.dl_tones_fairness = 1.0

        self.per_node_stats = {}
        self.scheduler_stats = {}

        self.name = "STATS"
        self.logger = get_logger(self.name, cfg, sparams, self.network.env)

    def _get_rate_mbps(self, n_bytes: int) -> float:
        now_us = self.network.env.now
        return n_bytes * 8 / now_us if now_us > 0 else 0

    def collect_stats(self):
        """Aggregate statistics from all nodes and from the scheduler of every AP."""
        self.total_pkts_tx = 0
        self.total_pkts_rx = 0
        self.total_app_bytes_tx = 0
        self.total_app_bytes_rx = 0

        for node in self.network.get_nodes():
            tx_stats = node.tx_stats
            rx_stats = node.rx_stats

            self.total_pkts_tx += tx_stats.pkts_tx
            self.total_pkts_rx += rx_stats.pkts_rx
            self.total_app_bytes_tx += tx_stats.tx_app_bytes
            self.total_app_bytes_rx += rx_stats.rx_app_bytes

            rx_delays_us = (
                rx_stats.rx_packets_history["reception_time_us"]
                - rx_stats.rx_packets_history["creation_time_us"]
            )

            self.per_node_stats[node.id] = {
                "tx": {
                    "first_tx_time_us": tx_stats.first_tx_time_us,
                    "last_tx_time_us": tx_stats.last_tx_time_us,
                    "dl_mu_ppdus_tx": tx_stats.dl_mu_ppdus_tx,
                    "tb_ppdus_tx": tx_stats.tb_ppdus_tx,
                    "su_ppdus_tx": tx_stats.su_ppdus_tx,
                    "triggers_tx": tx_stats.triggers_tx,
                    "bars_tx": tx_stats.bars_tx,
                    "backs_tx": tx_stats.backs_tx,
                    "pkts_tx": tx_stats.pkts_tx,
                    "pkts_dropped_queue_lim": tx_stats.pkts_dropped_queue_lim,
                    "tx_app_bytes": tx_stats.tx_app_bytes,
                    "tx_mac_bytes": tx_stats.tx_mac_bytes,
                    "avg_queue_len": float(tx_stats.tx_queue_len_history["queue_len"].mean()),
                    "airtime_us": tx_stats.airtime_us,
                },
                "rx": {
                    "first_rx_time_us": rx_stats.first_rx_time_us,
                    "last_rx_time_us": rx_stats.last_rx_time_us,
                    "ampdus_rx": rx_stats.ampdus_rx,
                    "backs_rx": rx_stats.backs_rx,
                    "pkts_rx": rx_stats.pkts_rx,
                    "rx_app_bytes": rx_stats.rx_app_bytes,
                    "rx_mac_bytes": rx_stats.rx_mac_bytes,
                    "app_throughput_Mbits_per_sec": self._get_rate_mbps(rx_stats.rx_app_bytes),
                    "avg_delay_us": float(rx_delays_us.mean()) if not rx_delays_us.empty else None,
                },
            }

        self.pkt_delivery_ratio = (
            self.total_pkts_rx / self.total_pkts_tx if self.total_pkts_tx > 0 else 0
        )

        for ap in self.network.get_aps():
            stats = ap.scheduler_stats
            stas = ap.get_stas()

            self.dl_throughput_fairness = get_jain_fairness_index(
                [sta.rx_stats.rx_app_bytes for sta in stas]
            )
            self.dl_tones_fairness = get_jain_fairness_index(
                [stats.tones_per_sta.get(sta.id, 0) for sta in stas]
            )

            self.scheduler_stats[ap.id] = {
                "format_counts": stats.format_counts,
                "format_ratios": stats.get_format_ratios(),
                "empty_dl_count": stats.empty_dl_count,
                "avg_stas_per_dl_mu_ppdu": stats.get_avg_stas_per_dl_mu_ppdu(),
                "sta_selections": stats.sta_selections,
                "tones_per_sta": stats.tones_per_sta,
                "dl_throughput_fairness": self.dl_throughput_fairness,
                "dl_tones_fairness": self.dl_tones_fairness,
            }

        if self.cfg.ENABLE_STATS_COLLECTION:
            self.save_stats()

    def save_stats(self):
        """Save statistics to JSON, and the scheduler decisions of every AP to CSV."""
        stats_data = {
            "global_stats": {
                "total_pkts_tx": self.total_pkts_tx,
                "total_pkts_rx": self.total_pkts_rx,
                "total_app_bytes_tx": self.total_app_bytes_tx,
                "total_app_bytes_rx": self.total_app_bytes_rx,
                "pkt_delivery_ratio": self.pkt_delivery_ratio,
            },
            "per_node_stats": self.per_node_stats,
            "scheduler_stats": self.scheduler_stats,
        }

        os.makedirs(self.cfg.STATS_SAVE_PATH, exist_ok=True)

        filepath = os.path.join(self.cfg.STATS_SAVE_PATH, "session_stats.json")
        with open(filepath, "w") as f:
            json.dump(stats_data, f, indent=4, default=str)

        for ap in self.network.get_aps():
            ap.scheduler_stats.decisions_history.to_csv(
                os.path.join(self.cfg.STATS_SAVE_PATH, f"scheduler_decisions_ap_{ap.id}.csv"),
                index=False,
            )

        self.logger.info(f"Statistics saved to {filepath}")

    def display_stats(self):
        """Print a summary of network statistics."""
        print("\033[93m" + "Network Statistics Summary:" + "\033[0m")
        print(f"Total Packets Transmitted: {self.total_pkts_tx}")
        print(f"Total Packets Received: {self.total_pkts_rx}")
        print(f"Total App Bytes Transmitted: {self.total_app_bytes_tx}")
        print(f"Total App Bytes Received: {self.total_app_bytes_rx}")
        print(f"Packet Delivery Ratio: {self.pkt_delivery_ratio:.5%}")

        print("\033[93m" + "\nScheduler Stats:" + "\033[0m")
        for ap_id, stats in self.scheduler_stats.items():
            print(f"  AP {ap_id}:")
            print(
                "    TX Formats: "
                + ", ".join(
                    f"{tx_format} {count} ({stats['format_ratios'][tx_format]:.1%})"
                    for tx_format, count in stats["format_counts"].items()
                )
            )
            print(f"    DL MU decisions with no receivers: {stats['empty_dl_count']}")
            print(f"    Avg STAs per DL MU PPDU: {stats['avg_stas_per_dl_mu_ppdu']:.2f}")
            print(f"    DL Throughput Fairness (Jain): {stats['dl_throughput_fairness']:.3f}")
            print(f"    DL Tones Fairness (Jain): {stats['dl_tones_fairness']:.3f}")

        print("\033[93m" + "\nPer-Node Stats:" + "\033[0m")
        for node_id, stats in self.per_node_stats.items():
            print(f"  {self.network.get_node(node_id).type} {node_id}:")
            print(
                f"    Packets TX: {stats['tx']['pkts_tx']}, "
                f"Packets Dropped: {stats['tx']['pkts_dropped_queue_lim']}, "
                f"Packets RX: {stats['rx']['pkts_rx']}"
            )
            print(
                f"    DL MU PPDUs: {stats['tx']['dl_mu_ppdus_tx']}, "
                f"TB PPDUs: {stats['tx']['tb_ppdus_tx']}, "
                f"SU PPDUs: {stats['tx']['su_ppdus_tx']}"
            )
            print(
                f"    RX App Throughput: {stats['rx']['app_throughput_Mbits_per_sec']:.2f} Mbps"
            )
            if stats["rx"]["avg_delay_us"] is not None:
                print(f"    RX Avg Delay: {stats['rx']['avg_delay_us']:.1f} µs")
            print(f"    Airtime: {stats['tx']['airtime_us']:.1f} µs")
