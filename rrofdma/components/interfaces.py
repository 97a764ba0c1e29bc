"""
Collaborators queried by the OFDMA scheduler.

The scheduler never owns queues, agreements or timing models: it is handed
objects implementing these protocols. The AP MAC implements all of them in
the simulation, tests use lightweight fakes.
"""

from dataclasses import dataclass
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from rrofdma.components.tx_params import (
        BlockAckType,
        DlMuAckSequenceType,
        PpduFormat,
        TriggerFrame,
        TxVector,
        UlMuAckSequenceType,
    )
    from rrofdma.utils.data_units import MPDU


@dataclass(frozen=True)
class Party:
    """An associated STA, identified by its AID and its address (the node ID)."""

    aid: int
    address: int


class MembershipOracle(Protocol):
    def get_associated_stas(self) -> list[Party]:
        """Returns the associated STAs ordered by AID."""
        ...

    def get_class_members(self, traffic_class: str) -> set[int]:
        """Returns the addresses of the STAs in the given traffic class."""
        ...


class QueueOracle(Protocol):
    def peek_next_frame(self, address: int, tid: int) -> "MPDU | None":
        """Returns the head-of-queue frame for (address, tid) without dequeuing it."""
        ...


class AgreementOracle(Protocol):
    def has_ba_agreement(self, address: int, tid: int) -> bool: ...

    def get_block_ack_type(self, address: int, tid: int) -> "BlockAckType": ...

    def get_block_ack_req_type(self, address: int, tid: int) -> "BlockAckType": ...


class TimingOracle(Protocol):
    def get_ppdu_max_time_us(self, ppdu_format: "PpduFormat") -> float: ...

    def calculate_tx_duration_us(
        self, size_bytes: int, tx_vector: "TxVector", aid: int | None = None
    ) -> float:
        """Duration of a PSDU of the given size sent to (or by) the STA with the given AID."""
        ...

    def calculate_control_tx_duration_us(self, size_bytes: int) -> float:
        """Duration of a control frame sent in a non-HT PPDU."""
        ...

    def get_response_duration_us(
        self, params, tx_vector: "TxVector", trigger: "TriggerFrame | None" = None
    ) -> float:
        """Time taken by the acknowledgment sequence following a PPDU."""
        ...

    def calculate_ul_length_for_block_acks(self, trigger: "TriggerFrame", params) -> float:
        """Duration of the TB PPDU carrying the BlockAcks solicited by an MU-BAR."""
        ...

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        """Returns the (MCS, NSS) used to send data frames to the given STA."""
        ...


class BufferStatusOracle(Protocol):
    def get_max_buffer_status(self, address: int) -> int:
        """
        Returns the largest queue size reported by the STA: 0-253 units of
        256 bytes, 254 if unlimited or 255 if unknown.
        """
        ...


class TxopOracle(Protocol):
    def get_txop_limit_us(self, ac: str) -> float: ...

    def get_txop_remaining_us(self, ac: str) -> float: ...


class AckPolicySelector(Protocol):
    def get_ack_sequence_for_dl_mu(self) -> "DlMuAckSequenceType": ...

    def get_ack_sequence_for_ul_mu(self) -> "UlMuAckSequenceType": ...
