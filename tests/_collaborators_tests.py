from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module

from rrofdma.components.candidate_selector import CandidateEntry
from rrofdma.components.interfaces import Party
from rrofdma.components.ofdma_manager import RrOfdmaManager
from rrofdma.components.tx_params import (
    BlockAckType,
    DlMuAckSequenceType,
    PpduFormat,
    UlMuAckSequenceType,
)
from rrofdma.utils.data_units import TID_TO_AC

import simpy


# Node IDs of the STAs are their AID plus this offset, so that AIDs and addresses never match
ADDRESS_OFFSET = 10


def address_of(aid: int) -> int:
    return aid + ADDRESS_OFFSET


def make_parties(n_stas: int) -> list[Party]:
    return [Party(aid=aid, address=address_of(aid)) for aid in range(1, n_stas + 1)]


def make_entry(aid: int, size_bytes: int = 1000, tid: int = 0) -> CandidateEntry:
    return CandidateEntry(party=Party(aid, address_of(aid)), size_bytes=size_bytes, tid=tid)


class DummyFrame:
    def __init__(self, size_bytes: int, tid: int = 0):
        self.size_bytes = size_bytes
        self.tid = tid

    @property
    def ac(self) -> str:
        return TID_TO_AC[self.tid]


class DummyMembership:
    def __init__(self, parties: list[Party], classes: dict[str, set[int]] = None):
        self.parties = list(parties)
        self.classes = classes or {}

    def get_associated_stas(self) -> list[Party]:
        return sorted(self.parties, key=lambda party: party.aid)

    def get_class_members(self, traffic_class: str) -> set[int]:
        return self.classes.get(traffic_class, set())

    def remove(self, aid: int):
        self.parties = [party for party in self.parties if party.aid != aid]


class DummyQueues:
    def __init__(self):
        self.frames = {}  # (address, TID) -> head-of-queue frame

    def add(self, address: int, size_bytes: int, tid: int = 0):
        self.frames[(address, tid)] = DummyFrame(size_bytes, tid)

    def peek_next_frame(self, address: int, tid: int) -> DummyFrame | None:
        return self.frames.get((address, tid))


class DummyAgreements:
    def __init__(self, agreements: set[tuple[int, int]] = None, all_tids: bool = True):
        self.agreements = agreements or set()
        self.all_tids = all_tids

    def has_ba_agreement(self, address: int, tid: int) -> bool:
        return self.all_tids or (address, tid) in self.agreements

    def get_block_ack_type(self, address: int, tid: int) -> BlockAckType:
        return BlockAckType.COMPRESSED

    def get_block_ack_req_type(self, address: int, tid: int) -> BlockAckType:
        return BlockAckType.EXTENDED_COMPRESSED


class DummyTiming:
    """Frames take 1 us every 10 bytes, whatever the RU. Control frames take 20 us plus 1 us per byte."""

    BYTES_PER_US = 10

    def __init__(self, response_us: float = 100, ba_ul_length_us: float = 50, mcs: int = 7):
        self.response_us = response_us
        self.ba_ul_length_us = ba_ul_length_us
        self.mcs = {}  # address -> MCS, default to `mcs`
        self.default_mcs = mcs

    def get_ppdu_max_time_us(self, ppdu_format: PpduFormat) -> float:
        return sparams_module.PPDU_MAX_TIME_us

    def calculate_tx_duration_us(self, size_bytes: int, tx_vector, aid: int = None) -> float:
        return size_bytes / self.BYTES_PER_US

    def calculate_control_tx_duration_us(self, size_bytes: int) -> float:
        return 20 + size_bytes

    def get_response_duration_us(self, params, tx_vector, trigger=None) -> float:
        return self.response_us + (trigger.ul_length_us if trigger is not None else 0)

    def calculate_ul_length_for_block_acks(self, trigger, params) -> float:
        return self.ba_ul_length_us

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        return self.mcs.get(address, self.default_mcs), 1


class DummyBufferStatus:
    def __init__(self, default: int = sparams_module.BSR_UNKNOWN):
        self.reports = {}  # address -> queue size
        self.default = default

    def get_max_buffer_status(self, address: int) -> int:
        return self.reports.get(address, self.default)


class DummyTxop:
    def __init__(self, limits_us: dict[str, float] = None):
        self.limits_us = dict(limits_us if limits_us is not None else cfg_module.TXOP_LIMITS_us)
        self.remaining_us = {}  # AC -> remaining TXOP, defaults to the limit

    def get_txop_limit_us(self, ac: str) -> float:
        return self.limits_us.get(ac, 0)

    def get_txop_remaining_us(self, ac: str) -> float:
        return self.remaining_us.get(ac, self.get_txop_limit_us(ac))


class DummyAckPolicy:
    def __init__(
        self,
        dl_ack_type=DlMuAckSequenceType.DL_MU_BAR,
        ul_ack_type=UlMuAckSequenceType.UL_MULTI_STA_BLOCK_ACK,
    ):
        self.dl_ack_type = dl_ack_type
        self.ul_ack_type = ul_ack_type

    def get_ack_sequence_for_dl_mu(self):
        return self.dl_ack_type

    def get_ack_sequence_for_ul_mu(self):
        return self.ul_ack_type


class DummyBss:
    """An AP view of a BSS: every collaborator the OFDMA scheduler queries."""

    def __init__(self, n_stas: int = 4, frame_size_bytes: int | None = 1000, tid: int = 0):
        self.membership = DummyMembership(make_parties(n_stas))
        self.queues = DummyQueues()
        self.agreements = DummyAgreements()
        self.timing = DummyTiming()
        self.buffer_status = DummyBufferStatus()
        self.txop = DummyTxop()
        self.ack_policy = DummyAckPolicy()

        if frame_size_bytes is not None:
            for party in self.membership.parties:
                self.queues.add(party.address, frame_size_bytes, tid)

    def make_manager(self, cfg=cfg_module, sparams=sparams_module, **kwargs) -> RrOfdmaManager:
        return RrOfdmaManager(
            cfg,
            sparams,
            simpy.Environment(),
            self.membership,
            self.queues,
            self.agreements,
            self.timing,
            self.buffer_status,
            self.txop,
            self.ack_policy,
            **kwargs,
        )
