from rrofdma.user_config import UserConfig as cfg_module
from rrofdma.sim_params import SimParams as sparams_module

from rrofdma.components.interfaces import Party
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.mcs_table import get_highest_mcs_index
from rrofdma.utils.statistics import TransmissionStats, ReceptionStats, NetworkStats
from rrofdma.utils.transmission import get_rssi_dbm

import math
import simpy


class Node:
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        env: simpy.Environment,
        id: int,
        position: tuple[float, float, float],
        type: str,
        network,
    ):
        """Initializes an individual network node object."""
        from rrofdma.components.app import APP

        self.id = id
        self.position = position  # x, y, z
        self.type = type

        self.bss_id = None

        self.network: Network = network

        self.app_layer = APP(cfg, sparams, env, self)
        self.mac_layer = None  # set by AP and STA

        self.tx_stats = TransmissionStats()
        self.rx_stats = ReceptionStats()

        self.traffic_flows = []

        self.name = "NODE"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def add_traffic_flow(self, traffic_flow):
        self.traffic_flows.append(traffic_flow)
        self.logger.debug(
            f"{self.type} {self.id} -> Added traffic source: {traffic_flow.__class__.__name__} (TID {traffic_flow.tid}) to node {traffic_flow.dst_id}"
        )

    def __repr__(self):
        return f"{self.__class__.__name__}({self.id}, pos={self.position})"


class STA(Node):
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        env: simpy.Environment,
        id: int,
        position: tuple[float, float, float],
        bss_id: int,
        ap,
        network,
        mcs: int | None = None,
    ):
        """
        Station (STA) node, associated with an AP and BSS.

        Args:
            mcs (int | None, optional): Fixed MCS used by the AP to serve the STA. If None,
                the highest MCS supported by the RSSI at the STA position is used.
        """
        from rrofdma.components.mac import STAMAC

        self.bss_id = bss_id
        self.ap: AP = ap

        self.fixed_mcs = mcs

        super().__init__(cfg, sparams, env, id, position, "STA", network)

        self.mac_layer = STAMAC(cfg, sparams, env, self)

        self.ap.add_sta(self)  # Automatically associate with the AP

    @property
    def aid(self) -> int | None:
        return self.ap.get_aid(self.id)

    def __repr__(self):
        return f"STA({self.id}, pos={self.position}, BSS={self.bss_id}, AP={self.ap.id}, AID={self.aid})"


class AP(Node):
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        env: simpy.Environment,
        id: int,
        position: tuple[float, float, float],
        bss_id: int,
        network,
    ):
        """Access Point (AP) node. Assigns an AID to every STA on association."""
        from rrofdma.components.mac import APMAC

        self.cfg = cfg
        self.sparams = sparams

        self.bss_id = bss_id

        self.stas_by_aid = {}  # AID -> STA, in association order
        self.next_aid = 1

        self.mcs_indexes = {}  # STA ID -> MCS index

        super().__init__(cfg, sparams, env, id, position, "AP", network)

        self.mac_layer = APMAC(cfg, sparams, env, self)

    def add_sta(self, sta: STA):
        """Associates a STA with this AP."""
        aid = self.next_aid
        self.next_aid += 1

        self.stas_by_aid[aid] = sta
        self.select_mcs_index(sta)

        self.logger.debug(f"AP {self.id} -> STA {sta.id} associated with AID {aid}")

    def remove_sta(self, sta: STA):
        """Disassociates a STA. Its AID is not reused."""
        aid = self.get_aid(sta.id)
        if aid is None:
            self.logger.warning(f"AP {self.id} -> STA {sta.id} is not associated")
            return

        del self.stas_by_aid[aid]
        self.mcs_indexes.pop(sta.id, None)
        self.mac_layer.remove_sta(sta.id)

        self.logger.debug(f"AP {self.id} -> STA {sta.id} (AID {aid}) disassociated")

    def select_mcs_index(self, sta: STA):
        if sta.fixed_mcs is not None:
            self.mcs_indexes[sta.id] = sta.fixed_mcs
            return

        distance_m = round(self.network._calculate_distance(self.position, sta.position), 2)
        rssi_dbm = get_rssi_dbm(self.sparams, distance_m)

        # The lowest MCS is used if the RSSI is below all sensitivity thresholds
        self.mcs_indexes[sta.id] = max(
            get_highest_mcs_index(rssi_dbm, self.cfg.CHANNEL_WIDTH_MHz), 0
        )
        self.logger.debug(
            f"AP {self.id} -> STA {sta.id} at {distance_m} m (RSSI {rssi_dbm:.1f} dBm): MCS {self.mcs_indexes[sta.id]}"
        )

    def get_mcs_index(self, sta_id: int) -> int:
        return self.mcs_indexes[sta_id]

    def get_aid(self, sta_id: int) -> int | None:
        for aid, sta in self.stas_by_aid.items():
            if sta.id == sta_id:
                return aid
        return None

    def get_sta(self, sta_id: int) -> STA | None:
        aid = self.get_aid(sta_id)
        return self.stas_by_aid[aid] if aid is not None else None

    def get_stas(self) -> list[STA]:
        return list(self.stas_by_aid.values())

    def get_parties(self) -> list[Party]:
        """Returns the associated STAs ordered by AID."""
        return [
            Party(aid=aid, address=sta.id) for aid, sta in sorted(self.stas_by_aid.items())
        ]

    @property
    def scheduler_stats(self):
        return self.mac_layer.scheduler_stats

    def __repr__(self):
        return f"AP({self.id}, pos={self.position}, BSS={self.bss_id}, STAs={[sta.id for sta in self.get_stas()]})"


class Network:
    def __init__(self, cfg: cfg_module, sparams: sparams_module, env: simpy.Environment):
        self.env = env

        self.cfg = cfg
        self.sparams = sparams

        self.nodes = {}

        self.stats = NetworkStats(cfg, sparams, self)

        self.name = "NETWORK"
        self.logger = get_logger(self.name, cfg, sparams, env)

    @staticmethod
    def _calculate_distance(
        position_1: tuple[float, float, float], position_2: tuple[float, float, float]
    ) -> float:
        """Returns the Euclidean distance between two 3D points."""
        x1, y1, z1 = position_1
        x2, y2, z2 = position_2
        return math.sqrt((x2 - x1) ** 2 + (y2 - y1) ** 2 + (z2 - z1) ** 2)

    def add_ap(self, ap_id: int, position: tuple[float, float, float], bss_id: int) -> AP:
        """Adds an Access Point (AP) to the network."""
        if ap_id in self.nodes:
            existing_node = self.nodes[ap_id]
            if isinstance(existing_node, AP):
                self.logger.warning(
                    f"AP {ap_id} already exists in the network... Returning existing AP."
                )
                return existing_node
            else:
                self.logger.error(
                    f"Node {ap_id} already exists as a {existing_node.__class__.__name__}, cannot add as AP!"
                )
                return None

        self.logger.debug(f"Adding AP {ap_id} to BSS {bss_id} at position {position}")
        ap = AP(self.cfg, self.sparams, self.env, ap_id, position, bss_id, self)
        self.nodes[ap_id] = ap
        return ap

    def add_sta(
        self,
        sta_id: int,
        position: tuple[float, float, float],
        bss_id: int,
        ap: AP,
        mcs: int | None = None,
    ) -> STA:
        """Adds a Station (STA) to the network and associates it with an AP."""
        if sta_id in self.nodes:
            existing_node = self.nodes[sta_id]
            if isinstance(existing_node, STA):
                self.logger.warning(
                    f"STA {sta_id} already exists in the network... Returning existing STA."
                )
                return existing_node
            else:
                self.logger.error(
                    f"Node {sta_id} already exists as a {existing_node.__class__.__name__}, cannot add as STA!"
                )
                return None

        self.logger.debug(
            f"Adding STA {sta_id} to BSS {bss_id} at position {position}, connected to AP {ap.id}"
        )
        sta = STA(
            self.cfg,
            self.sparams,
            self.env,
            sta_id,
            position,
            bss_id,
            ap,
            self,
            mcs=mcs,
        )
        self.nodes[sta_id] = sta
        return sta

    def get_aps(self) -> list[AP]:
        return [node for node in self.nodes.values() if isinstance(node, AP)]

    def get_stas(self) -> list[STA]:
        return [node for node in self.nodes.values() if isinstance(node, STA)]

    def get_node(self, node_id: int) -> Node:
        if node_id not in self.nodes:
            self.logger.error(f"Node {node_id} not found")
            return None
        return self.nodes[node_id]

    def get_nodes(self) -> list[Node]:
        return list(self.nodes.values())

    def remove_node(self, node_id: int):
        if node_id not in self.nodes:
            self.logger.error(f"Node {node_id} not found... Cannot remove.")
            return

        node = self.nodes[node_id]

        if isinstance(node, AP):
            # If the node is an AP, remove all associated STAs
            self.logger.debug(f"Removing AP {node_id} and all associated STAs")
            for sta in node.get_stas():
                self.remove_node(sta.id)
        elif isinstance(node, STA):
            self.logger.debug(f"Removing STA {node_id}")
            for traffic_flow in node.traffic_flows + [
                flow for flow in node.ap.traffic_flows if flow.dst_id == node_id
            ]:
                traffic_flow.stop()
            node.ap.remove_sta(node)

        del self.nodes[node_id]

    def get_distance_between_nodes(
        self, node1_id: int, node2_id: int, digits=0
    ) -> float:
        node1 = self.get_node(node1_id)
        node2 = self.get_node(node2_id)

        if not node1 or not node2:
            self.logger.error(f"One or both nodes not found: {node1_id}, {node2_id}")
            return -1

        return round(self._calculate_distance(node1.position, node2.position), digits)

    def clear(self):
        self.nodes.clear()

    def __repr__(self):
        network_repr = f"Network("

        for node in self.nodes.values():
            if isinstance(node, AP):
                associated_stas = [sta.id for sta in node.get_stas()]
                network_repr += f"AP {node.id} with STAs: {associated_stas}, "

        network_repr += ")"
        return network_repr
