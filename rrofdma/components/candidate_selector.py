from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.he_ru import RuSpec, RuType
from rrofdma.components.interfaces import (
    AgreementOracle,
    MembershipOracle,
    Party,
    QueueOracle,
    TimingOracle,
)
from rrofdma.components.tx_params import PpduFormat, TxParameterBuilder
from rrofdma.utils.data_units import AC_RANK, TID_TO_AC
from rrofdma.utils.event_logger import get_logger

from dataclasses import dataclass

import simpy


# TIDs examined for every STA, after the TID of the frame that triggered the channel access
TID_SCAN_ORDER = [1, 2, 0, 3, 4, 5, 6, 7]


@dataclass
class CandidateEntry:
    party: Party
    size_bytes: int
    tid: int


class StationCandidateSelector:
    """Round-robin selection of the STAs addressed by a DL MU PPDU."""

    def __init__(
        self,
        cfg: cfg,
        sparams: sparams,
        env: simpy.Environment,
        membership: MembershipOracle,
        queues: QueueOracle,
        agreements: AgreementOracle,
        timing: TimingOracle,
        tx_builder: TxParameterBuilder,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.membership = membership
        self.queues = queues
        self.agreements = agreements
        self.timing = timing
        self.tx_builder = tx_builder

        self.name = "SELECTOR"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def select(
        self,
        channel_width_mhz: int,
        max_count: int,
        start_aid: int | None,
        current_tid: int,
        time_budget_us: float | None,
        provisional_ru_type: RuType,
    ) -> tuple[list[CandidateEntry], int | None]:
        """
        Visits the associated STAs in AID order, starting from start_aid and wrapping
        around, and admits those having a frame that can be sent in a DL MU PPDU.

        Args:
            channel_width_mhz (int): The channel width in MHz.
            max_count (int): The maximum number of STAs to admit.
            start_aid (int | None): AID of the first STA to visit. If None or no longer
                associated, the first associated STA is visited first.
            current_tid (int): TID of the frame that triggered the channel access.
            time_budget_us (float | None): Maximum duration of a frame, None if there is no TXOP limit.
            provisional_ru_type (RuType): RU type used to estimate the frame durations.

        Returns:
            tuple[list[CandidateEntry], int | None]: The admitted STAs, in visiting order, and
                the AID of the first STA that was not visited.
        """
        stas = self.membership.get_associated_stas()
        if not stas:
            self.logger.debug("No associated STAs")
            return [], start_aid

        aids = [party.aid for party in stas]
        first = aids.index(start_aid) if start_aid in aids else 0

        primary_rank = AC_RANK[TID_TO_AC[current_tid]]
        tids = [
            tid
            for tid in [current_tid] + TID_SCAN_ORDER
            if AC_RANK[TID_TO_AC[tid]] >= primary_rank
        ]

        candidates = []
        n_visited = 0
        while n_visited < len(stas) and len(candidates) < max_count:
            party = stas[(first + n_visited) % len(stas)]
            n_visited += 1

            entry = self._find_frame(
                party, tids, channel_width_mhz, time_budget_us, provisional_ru_type
            )
            if entry:
                self.logger.debug(
                    f"STA {party.address} (AID {party.aid}) admitted with a {entry.size_bytes} bytes frame of TID {entry.tid}"
                )
                candidates.append(entry)

        next_start_aid = stas[(first + n_visited) % len(stas)].aid

        return candidates, next_start_aid

    def _find_frame(
        self,
        party: Party,
        tids: list[int],
        channel_width_mhz: int,
        time_budget_us: float | None,
        provisional_ru_type: RuType,
    ) -> CandidateEntry | None:
        for tid in tids:
            # DL MU acknowledgment sequences require Block Ack
            if not self.agreements.has_ba_agreement(party.address, tid):
                continue

            mpdu = self.queues.peek_next_frame(party.address, tid)
            if mpdu is None:
                continue

            if self._fits(mpdu.size_bytes, party, channel_width_mhz, time_budget_us, provisional_ru_type):
                return CandidateEntry(party=party, size_bytes=mpdu.size_bytes, tid=tid)

            self.logger.debug(
                f"Frame of TID {tid} for STA {party.address} does not fit the PPDU"
            )
        return None

    def _fits(
        self,
        size_bytes: int,
        party: Party,
        channel_width_mhz: int,
        time_budget_us: float | None,
        provisional_ru_type: RuType,
    ) -> bool:
        if size_bytes > self.sparams.MAX_HE_PSDU_SIZE_bytes:
            return False

        tx_vector = self.tx_builder.build_tx_vector(
            channel_width_mhz, [(party, RuSpec(provisional_ru_type, 1))]
        )
        duration_us = self.timing.calculate_tx_duration_us(size_bytes, tx_vector, party.aid)

        if duration_us > self.timing.get_ppdu_max_time_us(PpduFormat.HE_MU):
            return False
        if time_budget_us is not None and duration_us > time_budget_us:
            return False
        return True
