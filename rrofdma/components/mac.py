from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.he_ru import RuSpec, get_uniform_ru_type
from rrofdma.components.interfaces import Party
from rrofdma.components.ofdma_manager import (
    DlOfdmaInfo,
    RrOfdmaManager,
    TxFormat,
    UlOfdmaInfo,
)
from rrofdma.components.tx_params import (
    AggregateTfSequence,
    BlockAckType,
    DlMuAckSequenceType,
    MuBarSequence,
    MultiStaBlockAckSequence,
    PerStaBarBaSequence,
    PpduFormat,
    TxVector,
    UlMuAckSequenceType,
)
from rrofdma.utils.data_units import (
    AC_RANK,
    AMPDU,
    BACK,
    BAR,
    MPDU,
    MultiStaBACK,
    Packet,
    TID_TO_AC,
    Trigger,
    DataUnit,
)
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.statistics import SchedulerStats
from rrofdma.utils.transmission import HeTimingModel

import math
import random
import simpy


class MACState:
    IDLE = 0
    CONTEND = 1
    TX = 2
    RX = 3


class MAC:
    """
    MAC layer common to APs and STAs. Keeps a transmit queue per (peer, TID),
    aggregates MPDUs into A-MPDUs and hands the received ones to the App layer.
    """

    def __init__(self, cfg: cfg, sparams: sparams, env: simpy.Environment, node):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.node = node

        self.state = MACState.IDLE

        self.tx_queues: dict[tuple[int, int], simpy.Store] = {}  # (peer ID, TID) -> queue
        self.tx_queue_event = None

        self.ampdu_counter = 0

        self.timing = HeTimingModel(sparams, self.get_data_tx_mode)

        self.name = "MAC"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        raise NotImplementedError

    def _get_queue(self, peer_id: int, tid: int) -> simpy.Store:
        if (peer_id, tid) not in self.tx_queues:
            self.tx_queues[(peer_id, tid)] = simpy.Store(
                self.env, capacity=self.sparams.MAX_TX_QUEUE_SIZE_pkts
            )
        return self.tx_queues[(peer_id, tid)]

    def get_queue_len(self) -> int:
        return sum(len(queue.items) for queue in self.tx_queues.values())

    def tx_enqueue(self, packet: Packet):
        """Enqueues a packet for transmission"""
        tx_queue = self._get_queue(packet.dst_id, packet.tid)

        if len(tx_queue.items) >= self.sparams.MAX_TX_QUEUE_SIZE_pkts:
            self.node.tx_stats.pkts_dropped_queue_lim += 1

            self.logger.warning(
                f"{self.node.type} {self.node.id} -> Packet {packet.id} dropped due to full tx queue (node {packet.dst_id}, TID {packet.tid})"
            )
            return

        mpdu = MPDU(packet, self.env.now)
        tx_queue.put(mpdu)

        self.tx_queue_event.succeed() if self.tx_queue_event else None
        self.tx_queue_event = None

        self.node.tx_stats.add_to_tx_queue_history(self.env.now, self.get_queue_len())

        self.logger.debug(
            f"{self.node.type} {self.node.id} -> Packet {packet.id} added to tx queue (node {packet.dst_id}, TID {packet.tid}, queue length: {len(tx_queue.items)})"
        )

    def aggregate(
        self,
        peer_id: int,
        tid: int,
        tx_vector: TxVector,
        aid: int,
        max_duration_us: float,
        force_first: bool = False,
    ) -> AMPDU | None:
        """
        Dequeues the MPDUs to (or from) a peer that fit a PSDU of the given maximum duration.

        Args:
            peer_id (int): The peer node ID.
            tid (int): The TID of the queue.
            tx_vector (TxVector): The TX vector of the PPDU carrying the A-MPDU.
            aid (int): The AID whose RU carries the A-MPDU.
            max_duration_us (float): The maximum PSDU duration.
            force_first (bool, optional): Take the head-of-queue MPDU even if it does not fit.

        Returns:
            AMPDU | None: The A-MPDU, or None if no MPDU fits.
        """
        tx_queue = self.tx_queues.get((peer_id, tid))
        if tx_queue is None or not tx_queue.items:
            return None

        agg_mpdus = []
        total_size = 0
        for mpdu in tx_queue.items:
            if total_size + mpdu.size_bytes > self.sparams.MAX_HE_PSDU_SIZE_bytes:
                break
            duration_us = self.timing.calculate_tx_duration_us(
                total_size + mpdu.size_bytes, tx_vector, aid
            )
            if duration_us > max_duration_us and not (force_first and not agg_mpdus):
                break
            agg_mpdus.append(mpdu)
            total_size += mpdu.size_bytes

        if not agg_mpdus:
            return None

        del tx_queue.items[: len(agg_mpdus)]
        self.node.tx_stats.add_to_tx_queue_history(self.env.now, self.get_queue_len())

        self.ampdu_counter += 1
        ampdu = AMPDU(self.ampdu_counter, agg_mpdus, self.env.now)

        self.logger.debug(
            f"{self.node.type} {self.node.id} -> Created AMPDU {ampdu.id} with {len(agg_mpdus)} MPDUs and size {total_size} bytes to node {peer_id}"
        )
        return ampdu

    def transmit(self, data_unit: DataUnit, duration_us: float):
        """Occupies the channel for the duration of the frame."""
        self.set_state(MACState.TX)

        self.logger.header(
            f"{self.node.type} {self.node.id} -> Sending {data_unit.type} ({duration_us:.1f} us)..."
        )

        self.node.tx_stats.tx_mac_bytes += data_unit.size_bytes
        self.node.tx_stats.add_transmission(self.env.now, duration_us)

        yield self.env.timeout(duration_us)

    def _update_tx_stats(self, ampdu: AMPDU):
        self.node.tx_stats.pkts_tx += len(ampdu.mpdus)
        for mpdu in ampdu.mpdus:
            self.node.tx_stats.tx_app_bytes += mpdu.packet.size_bytes

    def receive_ampdu(self, ampdu: AMPDU):
        """Hands the packets of a received A-MPDU to the App layer."""
        ampdu.reception_time_us = self.env.now

        self.node.rx_stats.ampdus_rx += 1
        self.node.rx_stats.rx_mac_bytes += ampdu.size_bytes

        self.logger.success(
            f"{self.node.type} {self.node.id} -> Received AMPDU {ampdu.id} ({len(ampdu.mpdus)} MPDUs) from node {ampdu.src_id}"
        )

        for mpdu in ampdu.mpdus:
            self.node.app_layer.packet_from_mac(mpdu.packet)

    def get_state_name(self):
        return [name for name, value in vars(MACState).items() if value == self.state][
            0
        ]

    def set_state(self, new_state: MACState):
        """Updates the MAC state."""
        if self.state != new_state:
            self.state = new_state

            self.logger.debug(
                f"{self.node.type} {self.node.id} -> MAC state: {self.state} ({self.get_state_name()})"
            )


class STAMAC(MAC):
    """
    MAC layer of a STA. The STA does not contend for the channel: it is served in DL
    by the AP and sends its UL traffic in the TB PPDUs solicited by Basic Trigger frames.
    """

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        return self.node.ap.get_mcs_index(self.node.id), self.sparams.SPATIAL_STREAMS

    def get_buffer_status(self) -> int:
        """Returns the queue size to report, in units of 256 bytes (0-253)."""
        queued_bytes = sum(
            mpdu.size_bytes for queue in self.tx_queues.values() for mpdu in queue.items
        )
        if queued_bytes == 0:
            return 0
        return min(
            math.ceil(queued_bytes / self.sparams.BSR_QUEUE_SIZE_QUANTUM_bytes),
            self.sparams.BSR_MAX_QUEUE_SIZE,
        )

    def receive_ampdu(self, ampdu: AMPDU) -> BACK:
        """Receives an A-MPDU and returns the BlockAck reporting the buffer status."""
        super().receive_ampdu(ampdu)
        return BACK(
            self.node.id,
            ampdu.src_id,
            ampdu.tid,
            self.env.now,
            buffer_status=self.get_buffer_status(),
        )

    def dequeue_for_tb_ppdu(self, tx_vector: TxVector, aid: int) -> AMPDU | None:
        """
        Builds the A-MPDU sent in a solicited TB PPDU, from the highest priority non-empty queue.

        Args:
            tx_vector (TxVector): The TX vector of the TB PPDU, whose length is the granted duration.
            aid (int): The AID of the STA.

        Returns:
            AMPDU | None: The A-MPDU, or None if no frame fits the granted duration.
        """
        tids = sorted(
            (tid for (_, tid), queue in self.tx_queues.items() if queue.items),
            key=lambda tid: AC_RANK[TID_TO_AC[tid]],
            reverse=True,
        )
        for tid in tids:
            ampdu = self.aggregate(self.node.ap.id, tid, tx_vector, aid, tx_vector.length_us)
            if ampdu:
                self.node.tx_stats.tb_ppdus_tx += 1
                self._update_tx_stats(ampdu)
                return ampdu

        self.logger.debug(
            f"{self.node.type} {self.node.id} -> No frames fit the TB PPDU ({tx_vector.length_us:.1f} us)"
        )
        return None


class APMAC(MAC):
    """
    MAC layer of an AP. Contends for the channel when it has queued frames and,
    at every channel access, lets the OFDMA scheduler decide between a DL MU PPDU,
    an UL MU PPDU solicited by a Basic Trigger frame and a SU transmission.

    The AP MAC is also the source of every piece of information the scheduler
    queries: associations, queues, Block Ack agreements, buffer status reports,
    TXOP and acknowledgment policies.
    """

    def __init__(self, cfg: cfg, sparams: sparams, env: simpy.Environment, node):
        super().__init__(cfg, sparams, env, node)

        self.ba_agreements: dict[tuple[int, int], BlockAckType] = {}  # (STA ID, TID) -> BA type
        self.buffer_status: dict[int, int] = {}  # STA ID -> last reported queue size

        self.txop_ac = None
        self.txop_start_us = None

        self.scheduler_stats = SchedulerStats()

        self.ofdma_manager = RrOfdmaManager(
            cfg,
            sparams,
            env,
            membership=self,
            queues=self,
            agreements=self,
            timing=self.timing,
            buffer_status=self,
            txop=self,
            ack_policy=self,
        )

        self.env.process(self.run())

    # --- Scheduler collaborators --- #

    def get_associated_stas(self) -> list[Party]:
        return self.node.get_parties()

    def get_class_members(self, traffic_class: str) -> set[int]:
        return set(self.cfg.TRAFFIC_CLASSES.get(traffic_class, []))

    def peek_next_frame(self, address: int, tid: int) -> MPDU | None:
        tx_queue = self.tx_queues.get((address, tid))
        if tx_queue is None or not tx_queue.items:
            return None
        return tx_queue.items[0]

    def establish_ba_agreement(
        self, sta_id: int, tid: int, ba_type: BlockAckType = BlockAckType.COMPRESSED
    ):
        self.ba_agreements[(sta_id, tid)] = ba_type
        self.logger.debug(
            f"{self.node.type} {self.node.id} -> Block Ack agreement with STA {sta_id} for TID {tid}"
        )

    def has_ba_agreement(self, address: int, tid: int) -> bool:
        return (address, tid) in self.ba_agreements

    def get_block_ack_type(self, address: int, tid: int) -> BlockAckType:
        return self.ba_agreements[(address, tid)]

    def get_block_ack_req_type(self, address: int, tid: int) -> BlockAckType:
        return self.ba_agreements[(address, tid)]

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        return self.node.get_mcs_index(address), self.sparams.SPATIAL_STREAMS

    def get_max_buffer_status(self, address: int) -> int:
        return self.buffer_status.get(address, self.sparams.BSR_UNKNOWN)

    def get_txop_limit_us(self, ac: str) -> float:
        return self.cfg.TXOP_LIMITS_us.get(ac, 0)

    def get_txop_remaining_us(self, ac: str) -> float:
        limit_us = self.get_txop_limit_us(ac)
        if self.txop_start_us is None or ac != self.txop_ac:
            return limit_us
        return limit_us - (self.env.now - self.txop_start_us)

    def get_ack_sequence_for_dl_mu(self) -> DlMuAckSequenceType:
        return DlMuAckSequenceType[self.cfg.DL_MU_ACK_SEQUENCE]

    def get_ack_sequence_for_ul_mu(self) -> UlMuAckSequenceType:
        return UlMuAckSequenceType[self.cfg.UL_MU_ACK_SEQUENCE]

    def tx_enqueue(self, packet: Packet):
        if self.node.get_aid(packet.dst_id) is None:
            self.node.tx_stats.pkts_dropped_queue_lim += 1
            self.logger.warning(
                f"{self.node.type} {self.node.id} -> Packet {packet.id} dropped, STA {packet.dst_id} is not associated"
            )
            return
        super().tx_enqueue(packet)

    def remove_sta(self, sta_id: int):
        """Drops the queues, agreements and buffer status of a disassociated STA."""
        for key in [key for key in self.tx_queues if key[0] == sta_id]:
            dropped = len(self.tx_queues[key].items)
            self.node.tx_stats.pkts_dropped_queue_lim += dropped
            del self.tx_queues[key]
        for key in [key for key in self.ba_agreements if key[0] == sta_id]:
            del self.ba_agreements[key]
        self.buffer_status.pop(sta_id, None)

    # --- Channel access --- #

    def _get_head_mpdu(self) -> MPDU | None:
        """Returns the oldest head-of-queue MPDU."""
        heads = [queue.items[0] for queue in self.tx_queues.values() if queue.items]
        if not heads:
            return None
        return min(heads, key=lambda mpdu: mpdu.creation_time_us)

    def _channel_access(self):
        self.set_state(MACState.CONTEND)

        backoff_slots = random.randint(0, self.sparams.CW_MIN - 1)
        self.logger.debug(
            f"{self.node.type} {self.node.id} -> Backoff slots: {backoff_slots}"
        )

        yield self.env.timeout(
            self.sparams.DIFS_us + backoff_slots * self.sparams.SLOT_TIME_us
        )

    def _get_max_ppdu_duration_us(self, ac: str, response_us: float) -> float:
        max_duration_us = self.timing.get_ppdu_max_time_us(PpduFormat.HE_MU)
        if self.get_txop_limit_us(ac) > 0:
            max_duration_us = min(
                max_duration_us, self.get_txop_remaining_us(ac) - response_us
            )
        return max_duration_us

    def _run_txop(self, mpdu: MPDU):
        """Runs the frame exchanges of a TXOP, starting with the given frame."""
        ac = mpdu.ac
        self.txop_ac = ac
        self.txop_start_us = self.env.now

        while True:
            tx_format = self.ofdma_manager.select_tx_format(mpdu)

            match tx_format:
                case TxFormat.DL_MULTI_USER:
                    dl_info = self.ofdma_manager.compute_dl_allocation()
                    self.scheduler_stats.add_decision(
                        self.env.now, tx_format.value, dl_info.ru_assignment
                    )
                    if not dl_info.sta_info:
                        # No DL MU PPDU could be built, the frame is sent in SU format
                        yield self.env.process(self._transmit_su(mpdu))
                        break
                    yield self.env.process(self._transmit_dl_mu(dl_info, ac))
                case TxFormat.UL_MULTI_USER:
                    ul_info = self.ofdma_manager.compute_ul_allocation()
                    self.scheduler_stats.add_decision(
                        self.env.now,
                        tx_format.value,
                        {
                            self.node.stas_by_aid[aid].id: ul_info.tx_vector.get_ru(aid)
                            for aid in ul_info.tx_vector.user_infos
                        },
                    )
                    yield self.env.process(self._transmit_ul_mu(ul_info))
                case _:
                    self.scheduler_stats.add_decision(self.env.now, tx_format.value)
                    yield self.env.process(self._transmit_su(mpdu))
                    break

            if self.get_txop_limit_us(ac) <= 0 or self.get_txop_remaining_us(ac) <= 0:
                break

            mpdu = self._get_head_mpdu()
            if mpdu is None or mpdu.ac != ac:
                break

            yield self.env.timeout(self.sparams.SIFS_us)

        self.txop_start_us = None
        self.txop_ac = None
        self.set_state(MACState.IDLE)

    def _transmit_dl_mu(self, dl_info: DlOfdmaInfo, ac: str):
        tx_vector = dl_info.tx_vector
        response_us = self.timing.get_response_duration_us(
            dl_info.ack_sequence, tx_vector, dl_info.trigger
        )
        max_duration_us = self._get_max_ppdu_duration_us(ac, response_us)

        ampdus = {}
        for sta_id, sta_info in dl_info.sta_info.items():
            ampdu = self.aggregate(
                sta_id, sta_info.tid, tx_vector, sta_info.aid, max_duration_us, force_first=True
            )
            if ampdu:
                ampdus[sta_id] = ampdu

        if not ampdus:
            self.logger.warning(f"{self.node.type} {self.node.id} -> Empty DL MU PPDU")
            return

        duration_us = max(
            self.timing.calculate_tx_duration_us(
                ampdu.size_bytes, tx_vector, dl_info.sta_info[sta_id].aid
            )
            for sta_id, ampdu in ampdus.items()
        )

        self.node.tx_stats.dl_mu_ppdus_tx += 1
        for ampdu in ampdus.values():
            self._update_tx_stats(ampdu)

        data_unit = ampdus[next(iter(ampdus))]
        yield self.env.process(self.transmit(data_unit, duration_us))

        backs = []
        for sta_id, ampdu in ampdus.items():
            sta = self.node.get_sta(sta_id)
            if sta is None:
                self.logger.warning(
                    f"{self.node.type} {self.node.id} -> STA {sta_id} left the BSS during the DL MU PPDU"
                )
                continue
            backs.append(sta.mac_layer.receive_ampdu(ampdu))

        yield self.env.process(self._run_dl_ack_sequence(dl_info, backs))

    def _run_dl_ack_sequence(self, dl_info: DlOfdmaInfo, backs: list[BACK]):
        self.set_state(MACState.RX)

        sifs = self.sparams.SIFS_us
        match dl_info.ack_sequence:
            case PerStaBarBaSequence():
                for back in backs:
                    bar = BAR(self.node.id, back.src_id, back.tid, self.env.now)
                    self.node.tx_stats.bars_tx += 1
                    yield self.env.timeout(sifs)
                    yield self.env.process(
                        self.transmit(bar, self.timing.calculate_control_tx_duration_us(bar.size_bytes))
                    )
                    yield self.env.timeout(
                        sifs + self.timing.calculate_control_tx_duration_us(back.size_bytes)
                    )
                    self._process_back(back)
            case MuBarSequence():
                trigger = Trigger(
                    self.node.id, dl_info.trigger.size_bytes, "MU_BAR", self.env.now
                )
                self.node.tx_stats.triggers_tx += 1
                yield self.env.timeout(sifs)
                yield self.env.process(
                    self.transmit(
                        trigger, self.timing.calculate_control_tx_duration_us(trigger.size_bytes)
                    )
                )
                yield self.env.timeout(sifs + dl_info.trigger.ul_length_us)
                for back in backs:
                    self._process_back(back)
            case AggregateTfSequence():
                # The MU-BAR travels in the DL MU PPDU
                self.node.tx_stats.triggers_tx += 1
                yield self.env.timeout(sifs + dl_info.trigger.ul_length_us)
                for back in backs:
                    self._process_back(back)

    def _process_back(self, back: BACK):
        self.node.rx_stats.backs_rx += 1
        sta = self.node.get_sta(back.src_id)
        if sta is None:
            return
        sta.tx_stats.backs_tx += 1

        if back.buffer_status is not None:
            self.buffer_status[back.src_id] = back.buffer_status

        self.logger.debug(
            f"{self.node.type} {self.node.id} -> BACK from STA {back.src_id} (buffer status: {back.buffer_status})"
        )

    def _transmit_ul_mu(self, ul_info: UlOfdmaInfo):
        tb_tx_vector = ul_info.tx_vector

        trigger = Trigger(self.node.id, ul_info.trigger.size_bytes, "BASIC", self.env.now)
        self.node.tx_stats.triggers_tx += 1
        yield self.env.process(
            self.transmit(trigger, self.timing.calculate_control_tx_duration_us(trigger.size_bytes))
        )

        self.set_state(MACState.RX)
        yield self.env.timeout(self.sparams.SIFS_us)

        ampdus = []
        responders = []
        for aid in tb_tx_vector.user_infos:
            sta = self.node.stas_by_aid.get(aid)
            if sta is None:
                continue
            responders.append(sta)
            ampdu = sta.mac_layer.dequeue_for_tb_ppdu(tb_tx_vector, aid)
            if ampdu:
                ampdus.append(ampdu)

        self.node.tx_stats.tb_ppdus_tx += 1

        yield self.env.timeout(tb_tx_vector.length_us)

        for ampdu in ampdus:
            self.receive_ampdu(ampdu)
        for sta in responders:
            # Queue sizes are reported in the QoS Control field of the TB PPDU
            self.buffer_status[sta.id] = sta.mac_layer.get_buffer_status()

        match ul_info.ack_sequence:
            case MultiStaBlockAckSequence():
                multi_sta_back = MultiStaBACK(
                    self.node.id, [(ampdu.src_id, ampdu.tid) for ampdu in ampdus], self.env.now
                )
                self.node.tx_stats.backs_tx += 1
                yield self.env.timeout(self.sparams.SIFS_us)
                yield self.env.process(
                    self.transmit(
                        multi_sta_back,
                        self.timing.calculate_control_tx_duration_us(multi_sta_back.size_bytes),
                    )
                )

        self.logger.info(
            f"{self.node.type} {self.node.id} -> UL MU PPDU received from {len(ampdus)} of {len(responders)} STA(s)"
        )

    def _transmit_su(self, mpdu: MPDU):
        sta_id = mpdu.dst_id
        aid = self.node.get_aid(sta_id)
        channel_width_mhz = self.cfg.CHANNEL_WIDTH_MHz

        tx_vector = self.ofdma_manager.tx_builder.build_tx_vector(
            channel_width_mhz,
            [(Party(aid, sta_id), RuSpec(get_uniform_ru_type(channel_width_mhz, 1), 1))],
            PpduFormat.HE_SU,
        )
        response_us = self.sparams.SIFS_us + self.timing.calculate_control_tx_duration_us(
            self.sparams.BACK_SIZE_bytes
        )
        max_duration_us = self._get_max_ppdu_duration_us(mpdu.ac, response_us)

        ampdu = self.aggregate(sta_id, mpdu.tid, tx_vector, aid, max_duration_us, force_first=True)

        self.node.tx_stats.su_ppdus_tx += 1
        self._update_tx_stats(ampdu)

        yield self.env.process(
            self.transmit(ampdu, self.timing.calculate_tx_duration_us(ampdu.size_bytes, tx_vector, aid))
        )

        sta = self.node.get_sta(sta_id)
        if sta is None:
            return
        back = sta.mac_layer.receive_ampdu(ampdu)

        self.set_state(MACState.RX)
        yield self.env.timeout(
            self.sparams.SIFS_us + self.timing.calculate_control_tx_duration_us(back.size_bytes)
        )
        self._process_back(back)

    def run(self):
        """Handles channel access and the frame exchanges of every TXOP"""
        while True:
            if self._get_head_mpdu() is None:
                self.tx_queue_event = self.env.event()
                yield self.tx_queue_event
                continue

            yield self.env.process(self._channel_access())

            mpdu = self._get_head_mpdu()
            if mpdu is None:
                # Queues flushed during the backoff
                continue

            yield self.env.process(self._run_txop(mpdu))
