from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.interfaces import MembershipOracle
from rrofdma.utils.event_logger import get_logger

from enum import Enum

import simpy


class TrafficClass(Enum):
    BULK = "BULK"
    STREAMING = "STREAMING"
    HTTP = "HTTP"
    UNCLASSIFIED = "UNCLASSIFIED"


# Classes are checked in this order, the first one containing the STA wins
CLASSIFICATION_ORDER = [TrafficClass.BULK, TrafficClass.STREAMING, TrafficClass.HTTP]


class TrafficClassifier:
    """Maps STAs to traffic classes using the membership sets of the BSS."""

    def __init__(
        self,
        cfg: cfg,
        sparams: sparams,
        env: simpy.Environment,
        membership: MembershipOracle,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.membership = membership

        self.name = "CLASSIFIER"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def classify(self, address: int) -> TrafficClass:
        for traffic_class in CLASSIFICATION_ORDER:
            if address in self.membership.get_class_members(traffic_class.value):
                return traffic_class
        return TrafficClass.UNCLASSIFIED

    def group(self, candidates: list) -> dict[TrafficClass, list]:
        """
        Buckets the candidates by traffic class, preserving their order.

        Args:
            candidates (list): Candidate entries, each with a `party` attribute.

        Returns:
            dict[TrafficClass, list]: The candidates of each traffic class (every class is present).
        """
        buckets = {traffic_class: [] for traffic_class in TrafficClass}
        for candidate in candidates:
            traffic_class = self.classify(candidate.party.address)
            buckets[traffic_class].append(candidate)

        self.logger.debug(
            "Classified candidates: "
            + ", ".join(
                f"{tc.value}={[c.party.address for c in bucket]}"
                for tc, bucket in buckets.items()
                if bucket
            )
        )
        return buckets
