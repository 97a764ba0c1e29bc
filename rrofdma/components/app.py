from rrofdma.sim_params import SimParams as sparams_module
from rrofdma.user_config import UserConfig as cfg_module

from rrofdma.utils.data_units import Packet
from rrofdma.utils.event_logger import get_logger

import simpy


class APP:
    def __init__(self, cfg: cfg_module, sparams: sparams_module, env: simpy.Environment, node):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.node = node

        self.name = "APP"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def packet_to_mac(self, packet: Packet):
        """Receives a packet from a traffic source and forwards it to MAC."""
        self.node.mac_layer.tx_enqueue(packet)

    def packet_from_mac(self, packet: Packet):
        packet.reception_time_us = self.env.now

        self.node.rx_stats.add_packet_to_history(packet)

        self.logger.debug(
            f"{self.node.type} {self.node.id} -> Received packet {packet.id} from node {packet.src_id} (delay: {packet.reception_time_us - packet.creation_time_us:.1f} us)"
        )
