from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.candidate_selector import CandidateEntry, StationCandidateSelector
from rrofdma.components.classifier import TrafficClassifier
from rrofdma.components.he_ru import (
    SUPPORTED_CHANNEL_WIDTHS_MHz,
    RuSpec,
    get_num_rus,
    get_uniform_ru_type,
    get_uniform_rus,
)
from rrofdma.components.interfaces import (
    AckPolicySelector,
    AgreementOracle,
    BufferStatusOracle,
    MembershipOracle,
    Party,
    QueueOracle,
    TimingOracle,
    TxopOracle,
)
from rrofdma.components.ru_packer import ResourceUnitPacker
from rrofdma.components.tx_params import (
    DlMuAckSequence,
    DlMuAckSequenceType,
    MultiStaBlockAckSequence,
    PpduFormat,
    TriggerFrame,
    TxParameterBuilder,
    TxVector,
    UlMuAckSequenceType,
)
from rrofdma.utils.data_units import MPDU
from rrofdma.utils.event_logger import get_logger

from dataclasses import dataclass, field
from enum import Enum

import simpy


MAX_N_STATIONS = 74  # 26-tone RUs in a 160 MHz channel


class TxFormat(Enum):
    IDLE = "IDLE"
    DL_MULTI_USER = "DL_MULTI_USER"
    UL_MULTI_USER = "UL_MULTI_USER"
    FALLBACK = "FALLBACK"


@dataclass
class DlPerStaInfo:
    aid: int
    tid: int


@dataclass
class DlOfdmaInfo:
    """Receivers of a DL MU PPDU, keyed by address, with their RUs and acknowledgment sequence."""

    sta_info: dict[int, DlPerStaInfo] = field(default_factory=dict)
    ru_assignment: dict[int, RuSpec] = field(default_factory=dict)
    tx_vector: TxVector | None = None
    ack_sequence: DlMuAckSequence | None = None
    trigger: TriggerFrame | None = None  # MU-BAR, if the acknowledgment sequence requires it


@dataclass
class UlOfdmaInfo:
    trigger: TriggerFrame | None = None
    tx_vector: TxVector | None = None
    ack_sequence: MultiStaBlockAckSequence | None = None


@dataclass
class ScheduleState:
    start_aid: int | None = None  # AID of the first STA visited by the next selection
    last_tx_format: TxFormat = TxFormat.IDLE
    candidates: list[CandidateEntry] = field(default_factory=list)
    rus: list[RuSpec] = field(default_factory=list)
    tx_vector: TxVector | None = None  # TX vector of the last DL MU PPDU
    tx_params: DlMuAckSequence | MultiStaBlockAckSequence | None = None
    dl_ack_type: DlMuAckSequenceType | None = None
    ul_ack_type: UlMuAckSequenceType | None = None
    dl_info: DlOfdmaInfo = field(default_factory=DlOfdmaInfo)
    ul_info: UlOfdmaInfo = field(default_factory=UlOfdmaInfo)

    def clear_candidates(self):
        self.candidates = []
        self.rus = []
        self.dl_info = DlOfdmaInfo()


class RrOfdmaManager:
    """
    Round-robin OFDMA scheduler of an AP.

    At every channel access, select_tx_format() decides whether the AP sends a
    DL MU PPDU, solicits an UL MU PPDU through a Basic Trigger frame, or falls
    back to a single-user transmission. The MAC then retrieves the allocation
    through compute_dl_allocation() or compute_ul_allocation().
    """

    def __init__(
        self,
        cfg: cfg,
        sparams: sparams,
        env: simpy.Environment,
        membership: MembershipOracle,
        queues: QueueOracle,
        agreements: AgreementOracle,
        timing: TimingOracle,
        buffer_status: BufferStatusOracle,
        txop: TxopOracle,
        ack_policy: AckPolicySelector,
        classifier: TrafficClassifier = None,
        state: ScheduleState = None,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.name = "OFDMA"
        self.logger = get_logger(self.name, cfg, sparams, env)

        self._validate_config()

        self.membership = membership
        self.timing = timing
        self.buffer_status = buffer_status
        self.txop = txop
        self.ack_policy = ack_policy

        self.tx_builder = TxParameterBuilder(cfg, sparams, env, agreements, timing)
        self.selector = StationCandidateSelector(
            cfg, sparams, env, membership, queues, agreements, timing, self.tx_builder
        )
        self.packer = ResourceUnitPacker(cfg, sparams, env)
        self.classifier = (
            classifier
            if classifier is not None
            else TrafficClassifier(cfg, sparams, env, membership)
        )

        self.state = state if state is not None else ScheduleState()

    def _validate_config(self):
        if not 1 <= self.cfg.N_STATIONS <= MAX_N_STATIONS:
            self.logger.critical(
                f"N_STATIONS must be between 1 and {MAX_N_STATIONS}, got {self.cfg.N_STATIONS}"
            )
        if self.cfg.CHANNEL_WIDTH_MHz not in SUPPORTED_CHANNEL_WIDTHS_MHz:
            self.logger.critical(
                f"Unsupported channel width: {self.cfg.CHANNEL_WIDTH_MHz} MHz"
            )
        if self.cfg.ENABLE_UL_OFDMA and self.cfg.UL_PSDU_SIZE_bytes <= 0:
            self.logger.critical(
                "UL_PSDU_SIZE_bytes must be greater than 0 when UL OFDMA is enabled"
            )

    def select_tx_format(self, mpdu: MPDU) -> TxFormat:
        """
        Selects the format of the next transmission.

        Args:
            mpdu (MPDU): The frame that triggered the channel access. Its TID determines
                the primary Access Category.

        Returns:
            TxFormat: DL_MULTI_USER (possibly with no receivers), UL_MULTI_USER or FALLBACK.
        """
        if (
            self.cfg.ENABLE_UL_OFDMA
            and self.state.last_tx_format == TxFormat.DL_MULTI_USER
        ):
            tx_format = self._try_sending_basic_tf(mpdu.ac)
            if tx_format is not None:
                return self._set_tx_format(tx_format)

        return self._set_tx_format(self._try_sending_dl_mu_ppdu(mpdu))

    def compute_dl_allocation(self) -> DlOfdmaInfo:
        return self.state.dl_info

    def compute_ul_allocation(self) -> UlOfdmaInfo:
        return self.state.ul_info

    def _set_tx_format(self, tx_format: TxFormat) -> TxFormat:
        self.state.last_tx_format = tx_format
        self.logger.debug(f"Selected TX format: {tx_format.value}")
        return tx_format

    def _no_dl_receivers(self, reason: str) -> TxFormat:
        self.state.clear_candidates()
        self.state.tx_vector = None

        if self.cfg.FORCE_DL_OFDMA:
            self.logger.debug(f"{reason}: DL MU PPDU with no receivers")
            return TxFormat.DL_MULTI_USER
        self.logger.debug(f"{reason}: falling back to SU")
        return TxFormat.FALLBACK

    def _get_max_buffered_bytes(self, solicited: list[Party]) -> int:
        max_buffered_bytes = 0
        for party in solicited:
            queue_size = self.buffer_status.get_max_buffer_status(party.address)
            if queue_size == self.sparams.BSR_UNKNOWN:
                self.logger.debug(f"Buffer status of STA {party.address} is unknown")
                max_buffered_bytes = max(max_buffered_bytes, self.cfg.UL_PSDU_SIZE_bytes)
            elif queue_size == self.sparams.BSR_UNLIMITED:
                self.logger.debug(f"Buffer status of STA {party.address} is not limited")
                return self.sparams.BSR_UNLIMITED_SIZE_bytes
            else:
                self.logger.debug(f"Buffer status of STA {party.address} is {queue_size}")
                max_buffered_bytes = max(
                    max_buffered_bytes,
                    queue_size * self.sparams.BSR_QUEUE_SIZE_QUANTUM_bytes,
                )
        return max_buffered_bytes

    def _try_sending_basic_tf(self, ac: str) -> TxFormat | None:
        """
        Tries to solicit an UL MU PPDU from the STAs served by the last DL MU PPDU.

        Returns:
            TxFormat | None: UL_MULTI_USER if the STAs can be solicited, DL_MULTI_USER with no
                receivers if the STAs have buffered traffic that does not fit the time available
                now, or None if there is no UL traffic to solicit.
        """
        ul_ack_type = self.ack_policy.get_ack_sequence_for_ul_mu()
        if ul_ack_type != UlMuAckSequenceType.UL_MULTI_STA_BLOCK_ACK:
            self.logger.critical(
                f"Unsupported UL MU acknowledgment sequence: {ul_ack_type}"
            )
        self.state.ul_ack_type = ul_ack_type

        dl_tx_vector = self.state.tx_vector
        if dl_tx_vector is None or not dl_tx_vector.user_infos:
            return None

        associated = {party.aid: party for party in self.membership.get_associated_stas()}
        solicited = []
        for aid in dl_tx_vector.user_infos:
            if aid not in associated:
                self.logger.warning(
                    f"STA with AID {aid} left the BSS since the last DL MU PPDU"
                )
                continue
            solicited.append(associated[aid])

        max_buffered_bytes = self._get_max_buffered_bytes(solicited)
        if max_buffered_bytes == 0:
            self.logger.debug("No UL traffic to solicit")
            return None

        ul_tx_vector = TxVector(
            ppdu_format=PpduFormat.HE_TB,
            channel_width_mhz=dl_tx_vector.channel_width_mhz,
            guard_interval_us=dl_tx_vector.guard_interval_us,
            user_infos={party.aid: dl_tx_vector.user_infos[party.aid] for party in solicited},
        )
        ack_sequence = self.tx_builder.build_ul_ack_sequence(
            ul_ack_type, [party.address for party in solicited]
        )

        max_duration_us = self.timing.get_ppdu_max_time_us(PpduFormat.HE_TB)

        if self.txop.get_txop_limit_us(ac) > 0:
            # The response to a Trigger frame depends on the TB PPDU duration, a probe one is used
            probe_trigger = self.tx_builder.build_basic_trigger(
                ul_tx_vector, self.sparams.UL_LENGTH_PROBE_us
            )
            response_us = (
                self.timing.calculate_control_tx_duration_us(probe_trigger.size_bytes)
                + self.timing.get_response_duration_us(
                    ack_sequence, ul_tx_vector, probe_trigger
                )
                - self.sparams.UL_LENGTH_PROBE_us
            )
            remaining_us = self.txop.get_txop_remaining_us(ac)

            if response_us > remaining_us:
                self.logger.debug("Remaining TXOP duration is not enough for an UL MU exchange")
                self.state.clear_candidates()
                return TxFormat.DL_MULTI_USER

            max_duration_us = min(max_duration_us, remaining_us - response_us)

        buffer_tx_time_us = max(
            self.timing.calculate_tx_duration_us(max_buffered_bytes, ul_tx_vector, party.aid)
            for party in solicited
        )
        if buffer_tx_time_us < max_duration_us:
            max_duration_us = buffer_tx_time_us
        else:
            min_duration_us = max(
                self.timing.calculate_tx_duration_us(
                    self.cfg.UL_PSDU_SIZE_bytes, ul_tx_vector, party.aid
                )
                for party in solicited
            )
            if max_duration_us < min_duration_us:
                self.logger.debug(
                    f"Available time ({max_duration_us:.1f} us) is too short for an UL MU PPDU"
                )
                self.state.clear_candidates()
                return TxFormat.DL_MULTI_USER

        self.logger.debug(f"HE TB PPDU duration: {max_duration_us:.1f} us")

        ul_tx_vector.length_us = max_duration_us
        self.state.clear_candidates()
        self.state.tx_params = ack_sequence
        self.state.ul_info = UlOfdmaInfo(
            trigger=self.tx_builder.build_basic_trigger(ul_tx_vector, max_duration_us),
            tx_vector=ul_tx_vector,
            ack_sequence=ack_sequence,
        )
        return TxFormat.UL_MULTI_USER

    def _get_dl_time_budget_us(
        self, ac: str, stas: list[Party], start_index: int, current_tid: int
    ) -> float | None:
        """
        Returns the time available for the data frames of a DL MU PPDU, or None if the
        Access Category does not hold a TXOP.

        The acknowledgment time is estimated assuming that the STAs following the
        starting one are all served with equal-size RUs.
        """
        if self.txop.get_txop_limit_us(ac) <= 0:
            return None

        channel_width_mhz = self.cfg.CHANNEL_WIDTH_MHz
        count = min(self.cfg.N_STATIONS, len(stas))
        ru_type = get_uniform_ru_type(channel_width_mhz, count)

        guess = [stas[(start_index + i) % len(stas)] for i in range(count)]
        rus = get_uniform_rus(
            channel_width_mhz, ru_type, min(count, get_num_rus(channel_width_mhz, ru_type))
        )
        guess_tx_vector = self.tx_builder.build_tx_vector(
            channel_width_mhz, list(zip(guess, rus))
        )
        guess_ack_sequence = self.tx_builder.build_dl_ack_sequence(
            self.state.dl_ack_type, [(party.address, current_tid) for party in guess]
        )

        trigger = None
        if self.state.dl_ack_type in (
            DlMuAckSequenceType.DL_MU_BAR,
            DlMuAckSequenceType.DL_AGGREGATE_TF,
        ):
            trigger = self.tx_builder.build_mu_bar_trigger(
                guess_tx_vector,
                guess_ack_sequence,
                {party.aid: party.address for party in guess},
            )

        return self.txop.get_txop_remaining_us(ac) - self.timing.get_response_duration_us(
            guess_ack_sequence, guess_tx_vector, trigger
        )

    def _try_sending_dl_mu_ppdu(self, mpdu: MPDU) -> TxFormat:
        self.state.clear_candidates()

        stas = self.membership.get_associated_stas()
        if not stas:
            return self._no_dl_receivers("No associated STAs")

        channel_width_mhz = self.cfg.CHANNEL_WIDTH_MHz
        current_tid = mpdu.tid

        aids = [party.aid for party in stas]
        if self.state.start_aid not in aids:
            # First invocation or the starting STA left the BSS
            self.state.start_aid = aids[0]
        start_index = aids.index(self.state.start_aid)

        self.state.dl_ack_type = self.ack_policy.get_ack_sequence_for_dl_mu()

        time_budget_us = self._get_dl_time_budget_us(mpdu.ac, stas, start_index, current_tid)
        if time_budget_us is not None and time_budget_us < 0:
            return self._no_dl_receivers("Not enough remaining TXOP duration")

        provisional_ru_type = get_uniform_ru_type(
            channel_width_mhz, min(self.cfg.N_STATIONS, len(stas))
        )
        candidates, next_start_aid = self.selector.select(
            channel_width_mhz,
            self.cfg.N_STATIONS,
            self.state.start_aid,
            current_tid,
            time_budget_us,
            provisional_ru_type,
        )
        if not candidates:
            return self._no_dl_receivers("No suitable frames to transmit")

        self.state.start_aid = next_start_aid

        result = self.packer.pack(channel_width_mhz, self.classifier.group(candidates))
        if result.unplaced:
            # STAs left without an RU are the first ones served next time
            self.state.start_aid = result.unplaced[0].party.aid

        self.state.candidates = result.placed
        self.state.rus = result.rus

        tx_vector = self.tx_builder.build_tx_vector(
            channel_width_mhz,
            [(entry.party, ru) for entry, ru in zip(result.placed, result.rus)],
        )
        ack_sequence = self.tx_builder.build_dl_ack_sequence(
            self.state.dl_ack_type,
            [(entry.party.address, entry.tid) for entry in result.placed],
        )

        trigger = None
        if self.state.dl_ack_type in (
            DlMuAckSequenceType.DL_MU_BAR,
            DlMuAckSequenceType.DL_AGGREGATE_TF,
        ):
            trigger = self.tx_builder.build_mu_bar_trigger(
                tx_vector,
                ack_sequence,
                {entry.party.aid: entry.party.address for entry in result.placed},
            )

        self.state.tx_vector = tx_vector
        self.state.tx_params = ack_sequence
        self.state.dl_info = DlOfdmaInfo(
            sta_info={
                entry.party.address: DlPerStaInfo(aid=entry.party.aid, tid=entry.tid)
                for entry in result.placed
            },
            ru_assignment={
                entry.party.address: ru for entry, ru in zip(result.placed, result.rus)
            },
            tx_vector=tx_vector,
            ack_sequence=ack_sequence,
            trigger=trigger,
        )

        self.logger.info(
            f"DL MU PPDU to {len(result.placed)} STA(s): "
            + ", ".join(
                f"{entry.party.address} ({ru.tones}-tone RU {ru.index})"
                for entry, ru in zip(result.placed, result.rus)
            )
        )
        return TxFormat.DL_MULTI_USER
