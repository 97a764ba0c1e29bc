from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.he_ru import RuSpec
from rrofdma.components.interfaces import AgreementOracle, Party, TimingOracle
from rrofdma.utils.event_logger import get_logger

from dataclasses import dataclass, field
from enum import Enum

import simpy


class PpduFormat(Enum):
    HE_SU = "HE_SU"
    HE_MU = "HE_MU"
    HE_TB = "HE_TB"


class BlockAckType(Enum):
    COMPRESSED = "COMPRESSED"
    EXTENDED_COMPRESSED = "EXTENDED_COMPRESSED"
    MULTI_STA = "MULTI_STA"


class DlMuAckSequenceType(Enum):
    DL_SU_FORMAT = "DL_SU_FORMAT"
    DL_MU_BAR = "DL_MU_BAR"
    DL_AGGREGATE_TF = "DL_AGGREGATE_TF"


class UlMuAckSequenceType(Enum):
    UL_MULTI_STA_BLOCK_ACK = "UL_MULTI_STA_BLOCK_ACK"


class TriggerType(Enum):
    BASIC = "BASIC"
    MU_BAR = "MU_BAR"


@dataclass
class HeMuUserInfo:
    ru: RuSpec
    mcs: int
    nss: int


@dataclass
class TxVector:
    """PHY parameters of a PPDU. User infos are keyed by AID."""

    ppdu_format: PpduFormat
    channel_width_mhz: int
    guard_interval_us: float
    user_infos: dict[int, HeMuUserInfo] = field(default_factory=dict)
    length_us: float | None = None  # TB PPDU duration, only for HE TB PPDUs

    def get_ru(self, aid: int) -> RuSpec:
        return self.user_infos[aid].ru


@dataclass
class TriggerUserInfo:
    ru: RuSpec
    mcs: int
    nss: int
    target_rssi_dbm: float
    bar_type: BlockAckType | None = None  # only in MU-BAR Trigger frames


@dataclass
class TriggerFrame:
    trigger_type: TriggerType
    channel_width_mhz: int
    guard_interval_us: float
    size_bytes: int
    user_infos: dict[int, TriggerUserInfo] = field(default_factory=dict)
    ul_length_us: float = 0

    def get_tb_tx_vector(self) -> TxVector:
        """Returns the TX vector of the TB PPDU solicited by this Trigger frame."""
        return TxVector(
            ppdu_format=PpduFormat.HE_TB,
            channel_width_mhz=self.channel_width_mhz,
            guard_interval_us=self.guard_interval_us,
            user_infos={
                aid: HeMuUserInfo(ru=info.ru, mcs=info.mcs, nss=info.nss)
                for aid, info in self.user_infos.items()
            },
            length_us=self.ul_length_us,
        )


# --- Acknowledgment sequences --- #


@dataclass
class PerStaBarBaSequence:
    """DL MU PPDU acknowledged in SU format: every STA is solicited through a BAR/BA exchange."""

    stations_receiving_bar: dict[int, tuple[BlockAckType, BlockAckType]] = field(
        default_factory=dict
    )


@dataclass
class MuBarSequence:
    """A MU-BAR Trigger frame sent after the DL MU PPDU solicits BlockAcks from all the STAs."""

    stations_replying_with_ba: dict[int, tuple[BlockAckType, BlockAckType]] = field(
        default_factory=dict
    )


@dataclass
class AggregateTfSequence:
    """The MU-BAR is aggregated to the DL MU PPDU, STAs reply with BlockAcks in a TB PPDU."""

    stations_replying_with_ba: dict[int, BlockAckType] = field(default_factory=dict)


@dataclass
class MultiStaBlockAckSequence:
    """An UL MU PPDU acknowledged by a single Multi-STA BlockAck. Maps STA addresses to their position in it."""

    stations_receiving_multi_sta_ba: dict[int, int] = field(
        default_factory=dict
    )
    ba_type: BlockAckType = BlockAckType.MULTI_STA


DlMuAckSequence = PerStaBarBaSequence | MuBarSequence | AggregateTfSequence


class TxParameterBuilder:
    """Builds the TX vectors, acknowledgment sequences and Trigger frames of MU transmissions."""

    def __init__(
        self,
        cfg: cfg,
        sparams: sparams,
        env: simpy.Environment,
        agreements: AgreementOracle,
        timing: TimingOracle,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.agreements = agreements
        self.timing = timing

        self.name = "TXPARAMS"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def build_tx_vector(
        self,
        channel_width_mhz: int,
        assignment: list[tuple[Party, RuSpec]],
        ppdu_format: PpduFormat = PpduFormat.HE_MU,
    ) -> TxVector:
        """
        Builds the TX vector of an MU PPDU.

        Args:
            channel_width_mhz (int): The channel width in MHz.
            assignment (list[tuple[Party, RuSpec]]): The RU of every addressed STA.
            ppdu_format (PpduFormat, optional): Defaults to PpduFormat.HE_MU.

        Returns:
            TxVector: The TX vector, using the data MCS and NSS of every STA.
        """
        user_infos = {}
        for party, ru in assignment:
            mcs, nss = self.timing.get_data_tx_mode(party.address)
            user_infos[party.aid] = HeMuUserInfo(ru=ru, mcs=mcs, nss=nss)

        return TxVector(
            ppdu_format=ppdu_format,
            channel_width_mhz=channel_width_mhz,
            guard_interval_us=self.sparams.GUARD_INTERVAL_us,
            user_infos=user_infos,
        )

    def _get_ba_types(self, address: int, tid: int) -> tuple[BlockAckType, BlockAckType]:
        if self.agreements.has_ba_agreement(address, tid):
            return (
                self.agreements.get_block_ack_req_type(address, tid),
                self.agreements.get_block_ack_type(address, tid),
            )
        return BlockAckType.COMPRESSED, BlockAckType.COMPRESSED

    def build_dl_ack_sequence(
        self, ack_type: DlMuAckSequenceType, receivers: list[tuple[int, int]]
    ) -> DlMuAckSequence:
        """
        Builds the acknowledgment sequence of a DL MU PPDU.

        Args:
            ack_type (DlMuAckSequenceType): The acknowledgment sequence to use.
            receivers (list[tuple[int, int]]): The (address, TID) pairs of the addressed STAs.

        Returns:
            DlMuAckSequence: The acknowledgment sequence.
        """
        match ack_type:
            case DlMuAckSequenceType.DL_SU_FORMAT:
                return PerStaBarBaSequence(
                    stations_receiving_bar={
                        address: self._get_ba_types(address, tid)
                        for address, tid in receivers
                    }
                )
            case DlMuAckSequenceType.DL_MU_BAR:
                return MuBarSequence(
                    stations_replying_with_ba={
                        address: self._get_ba_types(address, tid)
                        for address, tid in receivers
                    }
                )
            case DlMuAckSequenceType.DL_AGGREGATE_TF:
                return AggregateTfSequence(
                    stations_replying_with_ba={
                        address: self._get_ba_types(address, tid)[1]
                        for address, tid in receivers
                    }
                )

    def build_ul_ack_sequence(
        self, ack_type: UlMuAckSequenceType, receivers: list[int]
    ) -> MultiStaBlockAckSequence:
        """
        Builds the acknowledgment sequence of an UL MU PPDU.

        Args:
            ack_type (UlMuAckSequenceType): The acknowledgment sequence to use.
            receivers (list[int]): The addresses of the solicited STAs.

        Returns:
            MultiStaBlockAckSequence: The acknowledgment sequence.
        """
        match ack_type:
            case UlMuAckSequenceType.UL_MULTI_STA_BLOCK_ACK:
                return MultiStaBlockAckSequence(
                    stations_receiving_multi_sta_ba={
                        receiver: index for index, receiver in enumerate(receivers)
                    }
                )
            case _:
                self.logger.critical(f"Unsupported UL MU acknowledgment sequence: {ack_type}")

    def build_mu_bar_trigger(
        self, tx_vector: TxVector, ack_sequence: MuBarSequence | AggregateTfSequence, aid_to_address: dict[int, int]
    ) -> TriggerFrame:
        """
        Builds the MU-BAR Trigger frame soliciting the BlockAcks of a DL MU PPDU.

        Responses are solicited on the RU used in DL, at most at MCS MU_BAR_MAX_MCS,
        and the UL length is the time needed to carry the BlockAcks.

        Args:
            tx_vector (TxVector): The TX vector of the DL MU PPDU.
            ack_sequence (MuBarSequence | AggregateTfSequence): The DL acknowledgment sequence.
            aid_to_address (dict[int, int]): The address of every addressed AID.

        Returns:
            TriggerFrame: The MU-BAR Trigger frame.
        """
        user_infos = {}
        for aid, info in tx_vector.user_infos.items():
            bar_type = None
            if isinstance(ack_sequence, MuBarSequence):
                bar_type = ack_sequence.stations_replying_with_ba[aid_to_address[aid]][0]
            user_infos[aid] = TriggerUserInfo(
                ru=info.ru,
                mcs=min(info.mcs, self.sparams.MU_BAR_MAX_MCS),
                nss=info.nss,
                target_rssi_dbm=self.sparams.TARGET_RSSI_dBm,
                bar_type=bar_type,
            )

        trigger = TriggerFrame(
            trigger_type=TriggerType.MU_BAR,
            channel_width_mhz=tx_vector.channel_width_mhz,
            guard_interval_us=tx_vector.guard_interval_us,
            size_bytes=self.sparams.TRIGGER_BASE_SIZE_bytes
            + len(user_infos) * self.sparams.MU_BAR_USER_INFO_SIZE_bytes,
            user_infos=user_infos,
        )
        trigger.ul_length_us = self.timing.calculate_ul_length_for_block_acks(
            trigger, ack_sequence
        )
        return trigger

    def build_basic_trigger(self, tx_vector: TxVector, ul_length_us: float) -> TriggerFrame:
        """
        Builds the Basic Trigger frame soliciting a TB PPDU of the given duration.

        Args:
            tx_vector (TxVector): The TX vector whose RUs and modes are solicited.
            ul_length_us (float): The duration of the solicited TB PPDU.

        Returns:
            TriggerFrame: The Basic Trigger frame.
        """
        user_infos = {
            aid: TriggerUserInfo(
                ru=info.ru,
                mcs=info.mcs,
                nss=info.nss,
                target_rssi_dbm=self.sparams.TARGET_RSSI_dBm,
            )
            for aid, info in tx_vector.user_infos.items()
        }
        return TriggerFrame(
            trigger_type=TriggerType.BASIC,
            channel_width_mhz=tx_vector.channel_width_mhz,
            guard_interval_us=tx_vector.guard_interval_us,
            size_bytes=self.sparams.TRIGGER_BASE_SIZE_bytes
            + len(user_infos) * self.sparams.TRIGGER_USER_INFO_SIZE_bytes,
            user_infos=user_infos,
            ul_length_us=ul_length_us,
        )
