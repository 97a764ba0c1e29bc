from rrofdma.sim_params import SimParams as sparams_module
from rrofdma.user_config import UserConfig as cfg_module

from rrofdma.utils.data_units import Packet
from rrofdma.utils.event_logger import get_logger

import math
import simpy
import random

# Poisson/Bursty/VR Traffic Parameters
TRAFFIC_LOAD_kbps = 100e3
MAX_PACKET_SIZE_bytes = 1280

# Bursty/VR Traffic Parameters
BURST_SIZE_pkts = 20
AVG_INTER_PACKET_TIME_us = 6

# VR Traffic Parameters
FPS = 90


class TrafficGenerator:
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        env: simpy.Environment,
        node,
        dst_id: int,
        tid: int = 0,
        **kwargs,
    ):
        """
        Generates the packets of a traffic flow, from an AP to one of its STAs (DL) or
        from a STA to its AP (UL).

        Args:
            cfg (cfg_module): The UserConfig object.
            sparams (sparams_module): The SimulationParams object.
            env (simpy.Environment): The simulation environment.
            node (Node): The source node.
            dst_id (int): The destination node ID.
            tid (int, optional): The TID of the generated packets. Defaults to 0.
            **kwargs: The traffic model settings ("name", "start_time_us", "end_time_us",
                "traffic_load_kbps", "max_packet_size_bytes", "burst_size_pkts",
                "avg_inter_packet_time_us" and "fps").
        """
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.node = node

        self.src_id = node.id
        self.dst_id = dst_id
        self.tid = tid

        self.traffic_model = kwargs.get("name", None)
        self.start_time_us = kwargs.get("start_time_us", 0)
        self.end_time_us = kwargs.get("end_time_us", None)
        self.traffic_load_kbps = kwargs.get("traffic_load_kbps", TRAFFIC_LOAD_kbps)
        self.max_packet_size_bytes = kwargs.get(
            "max_packet_size_bytes", MAX_PACKET_SIZE_bytes
        )
        self.burst_size_pkts = kwargs.get("burst_size_pkts", BURST_SIZE_pkts)
        self.avg_inter_packet_time_us = kwargs.get(
            "avg_inter_packet_time_us", AVG_INTER_PACKET_TIME_us
        )
        self.fps = kwargs.get("fps", FPS)

        self.packet_id = 0

        self.name = "GEN"
        self.logger = get_logger(self.name, cfg, sparams, env)

        self.running = False
        self.active_processes = []

        self.env.process(self._delayed_run())

    def _delayed_run(self):
        yield self.env.timeout(self.start_time_us)

        self.run()

        if self.end_time_us:
            yield self.env.timeout(self.end_time_us - self.start_time_us)
            self.stop()

    def stop(self):
        """Stop all running traffic generation processes."""
        self.running = False
        for process in self.active_processes:
            if process.is_alive:
                process.interrupt()

        self.logger.debug(
            f"{self.node.type} {self.src_id} -> Traffic Generator stopped."
        )
        self.active_processes.clear()

    def run(self):
        match self.traffic_model:
            case "Poisson":
                p = self.env.process(self.generate_poisson_traffic())
            case "Bursty":
                p = self.env.process(self.generate_bursty_traffic())
            case "VR":
                p = self.env.process(self.generate_vr_traffic())
            case _:
                self.logger.error(
                    f"{self.node.type} {self.src_id} -> Invalid traffic model specified (from node {self.src_id} to node {self.dst_id}): {self.traffic_model}"
                )
                return

        self.running = True
        self.active_processes.append(p)

    def _get_inter_arrival_time_us(self, avg_time_us: float) -> float:
        return random.expovariate(1 / avg_time_us) if avg_time_us > 0 else 1

    def generate_poisson_traffic(self):
        """Generates packets of the maximum size with exponentially distributed inter-arrival times"""
        if self.traffic_load_kbps <= 0:
            return

        avg_inter_pkt_time_us = (
            self.max_packet_size_bytes * 8 / (self.traffic_load_kbps * 1e3) * 1e6
        )
        try:
            while True:
                yield self.env.timeout(
                    math.ceil(self._get_inter_arrival_time_us(avg_inter_pkt_time_us))
                )
                self._create_and_send_packet(self.max_packet_size_bytes)
        except simpy.Interrupt:
            pass

    def generate_bursty_traffic(self):
        """Generates bursts of packets with exponentially distributed inter-burst times"""
        if self.traffic_load_kbps <= 0:
            return

        avg_inter_burst_time_us = (
            self.burst_size_pkts
            * self.max_packet_size_bytes
            * 8
            / (self.traffic_load_kbps * 1e3)
            * 1e6
        )
        burst = [self.max_packet_size_bytes] * self.burst_size_pkts
        try:
            while True:
                yield self.env.timeout(
                    math.ceil(self._get_inter_arrival_time_us(avg_inter_burst_time_us))
                )
                self.env.process(self.send_packet_train(burst, avg_inter_burst_time_us))
        except simpy.Interrupt:
            pass

    def generate_vr_traffic(self):
        """Generates a video frame every 1/fps seconds, split in packets of the maximum size"""
        avg_inter_frame_time_us = 1e6 / self.fps
        frame_size_bytes = int(self.traffic_load_kbps * 1e3 / self.fps / 8)

        n_packets, remainder_bytes = divmod(frame_size_bytes, self.max_packet_size_bytes)
        frame = [self.max_packet_size_bytes] * n_packets
        if remainder_bytes > 0:
            frame.append(remainder_bytes)

        try:
            while True:
                yield self.env.timeout(math.ceil(avg_inter_frame_time_us))
                self.env.process(self.send_packet_train(frame, avg_inter_frame_time_us))
        except simpy.Interrupt:
            pass

    def send_packet_train(self, packet_sizes: list[int], max_duration_us: float):
        """
        Sends packets back to back, with exponentially distributed gaps.

        Args:
            packet_sizes (list[int]): The size of every packet of the train.
            max_duration_us (float): The train ends within this time (the next burst
                or frame is due then).
        """
        remaining_us = max_duration_us
        for i, packet_size in enumerate(packet_sizes):
            if not self.running:
                return
            self._create_and_send_packet(packet_size)

            gap_us = min(
                self._get_inter_arrival_time_us(self.avg_inter_packet_time_us),
                remaining_us / (len(packet_sizes) - i),
            )
            yield self.env.timeout(math.ceil(gap_us))
            remaining_us -= gap_us

    def _create_and_send_packet(self, packet_size: int):
        """Creates a packet and sends it to the App Layer."""
        self.packet_id += 1
        packet = Packet(
            id=self.packet_id,
            size_bytes=packet_size,
            src_id=self.src_id,
            dst_id=self.dst_id,
            creation_time_us=self.env.now,
            tid=self.tid,
        )
        self.logger.debug(f"{self.node.type} {self.src_id} -> Created {packet}")
        self.node.app_layer.packet_to_mac(packet)
