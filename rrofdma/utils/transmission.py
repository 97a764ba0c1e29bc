from rrofdma.sim_params import SimParams as sparams

from rrofdma.components.tx_params import (
    AggregateTfSequence,
    MuBarSequence,
    MultiStaBlockAckSequence,
    PerStaBarBaSequence,
    PpduFormat,
    TriggerFrame,
    TxVector,
)
from rrofdma.utils.data_units import get_multi_sta_back_size_bytes
from rrofdma.utils.mcs_table import N_SD, N_SD_RU, T_DFT_us, get_bits_per_symbol

from typing import Callable

import math
import random


SERVICE_FIELD_bits = 16
TAIL_bits = 6


def get_path_loss_dB(sparams: sparams, distance_m: float) -> float:
    """
    Calculate the path loss (in dB) given the distance (in meters) according to the free-space log-distance path loss model.

    Args:
        sparams (sparams): The SimulationParams object.
        distance_m (float): The distance in meters.

    Returns:
        float: The path loss in dB.
    """
    # Free space path loss at the reference distance (1 meter)
    path_loss_1m_dB = (
        20 * math.log10(sparams.FREQUENCY_GHz * 1e9)
        - 147.55
        - sparams.TX_GAIN_dB
        - sparams.RX_GAIN_dB
    )
    path_loss = path_loss_1m_dB + 10 * sparams.PATH_LOSS_EXPONENT * math.log10(
        max(distance_m, 0.1)
    )

    if sparams.ENABLE_SHADOWING:
        path_loss += random.gauss(0, sparams.SHADOWING_STD_dB)

    return path_loss


def get_rssi_dbm(sparams: sparams, distance_m: float) -> float:
    """
    Calculates the RSSI in dBm for a given distance in meters.

    Args:
        sparams (sparams): The SimulationParams object.
        distance_m (float): The distance in meters.

    Returns:
        float: The RSSI in dBm.
    """
    return (
        sparams.TX_POWER_dBm
        + sparams.TX_GAIN_dB
        + sparams.RX_GAIN_dB
        - get_path_loss_dB(sparams, distance_m)
    )


class HeTimingModel:
    """
    Durations of HE PPDUs and of the control frames exchanged around them.

    Data PSDUs are sent in HE PPDUs: the preamble is followed by as many OFDM
    symbols as needed to carry the SERVICE field, the PSDU and the tail bits
    over the RU of the addressed STA. Control frames (BAR, BlockAck, Trigger)
    are sent in non-HT PPDUs at the basic rate.
    """

    def __init__(
        self, sparams: sparams, get_data_tx_mode: Callable[[int], tuple[int, int]]
    ):
        """
        Initializes the timing model.

        Args:
            sparams (sparams): The SimulationParams object.
            get_data_tx_mode (Callable[[int], tuple[int, int]]): Returns the (MCS, NSS) used
                to send data frames to the STA with the given address.
        """
        self.sparams = sparams
        self._get_data_tx_mode = get_data_tx_mode

    def get_data_tx_mode(self, address: int) -> tuple[int, int]:
        return self._get_data_tx_mode(address)

    def get_ppdu_max_time_us(self, ppdu_format: PpduFormat) -> float:
        return self.sparams.PPDU_MAX_TIME_us

    def _get_preamble_us(self, ppdu_format: PpduFormat) -> float:
        match ppdu_format:
            case PpduFormat.HE_SU:
                return self.sparams.HE_SU_PREAMBLE_us
            case PpduFormat.HE_MU:
                return self.sparams.HE_MU_PREAMBLE_us
            case PpduFormat.HE_TB:
                return self.sparams.HE_TB_PREAMBLE_us
            case _:
                return self.sparams.LEGACY_PREAMBLE_us

    def calculate_tx_duration_us(
        self, size_bytes: int, tx_vector: TxVector, aid: int | None = None
    ) -> float:
        """
        Calculates the duration of a PSDU sent in an HE PPDU.

        Args:
            size_bytes (int): The PSDU size in bytes.
            tx_vector (TxVector): The TX vector of the PPDU.
            aid (int | None, optional): The AID of the STA whose RU carries the PSDU. If None,
                the PSDU uses the RU of the single user of the TX vector, or the whole
                channel if the TX vector has no users. Defaults to None.

        Returns:
            float: The duration in microseconds.
        """
        if aid is None and tx_vector.user_infos:
            aid = next(iter(tx_vector.user_infos))

        if aid is not None:
            user_info = tx_vector.user_infos[aid]
            n_subcarriers = N_SD_RU[tx_vector.get_ru(aid).ru_type]
            mcs, nss = user_info.mcs, user_info.nss
        else:
            n_subcarriers = N_SD[tx_vector.channel_width_mhz]
            mcs, nss = 0, 1

        bits_per_symbol = get_bits_per_symbol(mcs, n_subcarriers, nss)
        n_symbols = math.ceil(
            (SERVICE_FIELD_bits + 8 * size_bytes + TAIL_bits) / bits_per_symbol
        )

        return (
            self._get_preamble_us(tx_vector.ppdu_format)
            + n_symbols * (T_DFT_us + tx_vector.guard_interval_us)
        )

    def calculate_control_tx_duration_us(self, size_bytes: int) -> float:
        bits_per_symbol = (
            self.sparams.LEGACY_CONTROL_RATE_Mbps * self.sparams.LEGACY_SYMBOL_us
        )
        n_symbols = math.ceil(
            (SERVICE_FIELD_bits + 8 * size_bytes + TAIL_bits) / bits_per_symbol
        )
        return self.sparams.LEGACY_PREAMBLE_us + n_symbols * self.sparams.LEGACY_SYMBOL_us

    def get_response_duration_us(
        self, params, tx_vector: TxVector, trigger: TriggerFrame | None = None
    ) -> float:
        """
        Calculates the duration of the acknowledgment sequence following a PPDU.

        Args:
            params: The acknowledgment sequence.
            tx_vector (TxVector): The TX vector of the acknowledged PPDU.
            trigger (TriggerFrame | None, optional): The Trigger frame soliciting the
                responses. Required by all the sequences but the per-STA BAR/BA one.

        Returns:
            float: The duration in microseconds.
        """
        sifs = self.sparams.SIFS_us

        match params:
            case PerStaBarBaSequence():
                exchange_us = (
                    sifs
                    + self.calculate_control_tx_duration_us(self.sparams.BAR_SIZE_bytes)
                    + sifs
                    + self.calculate_control_tx_duration_us(self.sparams.BACK_SIZE_bytes)
                )
                return len(params.stations_receiving_bar) * exchange_us
            case MuBarSequence():
                return (
                    sifs
                    + self.calculate_control_tx_duration_us(trigger.size_bytes)
                    + sifs
                    + trigger.ul_length_us
                )
            case AggregateTfSequence():
                return sifs + trigger.ul_length_us
            case MultiStaBlockAckSequence():
                multi_sta_back_size = get_multi_sta_back_size_bytes(
                    len(params.stations_receiving_multi_sta_ba)
                )
                return (
                    sifs
                    + trigger.ul_length_us
                    + sifs
                    + self.calculate_control_tx_duration_us(multi_sta_back_size)
                )
            case _:
                raise ValueError(f"Unknown acknowledgment sequence: {params}")

    def calculate_ul_length_for_block_acks(self, trigger: TriggerFrame, params) -> float:
        """Duration of the HE TB PPDU carrying the BlockAcks solicited by the Trigger frame."""
        tb_tx_vector = trigger.get_tb_tx_vector()
        return max(
            (
                self.calculate_tx_duration_us(self.sparams.BACK_SIZE_bytes, tb_tx_vector, aid)
                for aid in tb_tx_vector.user_infos
            ),
            default=0,
        )
