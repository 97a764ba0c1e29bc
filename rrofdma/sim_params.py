class SimParams:
    # --- MAC Layer Parameters --- #
    MAX_TX_QUEUE_SIZE_pkts = 100  # Per (STA, TID) queue

    SLOT_TIME_us = 9
    SIFS_us = 16
    DIFS_us = SIFS_us + 2 * SLOT_TIME_us  # equals 34
    PIFS_us = SIFS_us + SLOT_TIME_us  # equals 25

    CW_MIN = 16
    CW_MAX = 1024

    MAC_HEADER_SIZE_bytes = 32
    FCS_SIZE_bytes = 4

    MDPU_DELIMITER_SIZE_bytes = 4
    MPDU_PADDING_SIZE_bytes = 3

    MAX_HE_PSDU_SIZE_bytes = 6500631  # Max HE PSDU length

    # Control frame sizes (MAC header and FCS included)
    BAR_SIZE_bytes = 24  # Compressed Block Ack Request
    BACK_SIZE_bytes = 32  # Compressed Block Ack with a 64-bit bitmap
    MULTI_STA_BACK_BASE_SIZE_bytes = 20
    MULTI_STA_BACK_PER_STA_INFO_bytes = 4  # AID TID Info + SSC
    MULTI_STA_BACK_BITMAP_LEN_bytes = 32
    TRIGGER_BASE_SIZE_bytes = 28  # Header + Common Info + FCS
    TRIGGER_USER_INFO_SIZE_bytes = 5
    MU_BAR_USER_INFO_SIZE_bytes = 9  # User Info + BAR Control/Information

    # --- Buffer Status Reports --- #
    BSR_QUEUE_SIZE_QUANTUM_bytes = 256
    BSR_MAX_QUEUE_SIZE = 253
    BSR_UNLIMITED = 254
    BSR_UNKNOWN = 255
    BSR_UNLIMITED_SIZE_bytes = 0xFFFFFFFF

    # --- OFDMA Scheduling Parameters --- #
    MU_BAR_MAX_MCS = 5  # Responses to MU-BAR are solicited at most at this MCS
    TONE_BUDGET_20MHz = 242  # Tones of the primary 20 MHz used by the mixed regime
    MAX_STREAMING_FANOUT = 7  # Above it, the mixed regime degrades to uniform RUs
    CENTER_26_TONE_RU_INDEX = 5
    UL_LENGTH_PROBE_us = 1000  # TB PPDU duration used to size the response to a trigger
    TARGET_RSSI_dBm = -70

    # --- PHY Layer Parameters --- #
    SPATIAL_STREAMS = 1  # 1, 2, or 3
    GUARD_INTERVAL_us = 0.8  # 0.8, 1.6, or 3.2

    PPDU_MAX_TIME_us = 5484

    LEGACY_PREAMBLE_us = 20
    LEGACY_SYMBOL_us = 4
    LEGACY_CONTROL_RATE_Mbps = 6
    HE_SU_PREAMBLE_us = 36
    HE_MU_PREAMBLE_us = 44
    HE_TB_PREAMBLE_us = 40

    TX_POWER_dBm = 20
    TX_GAIN_dB = 0
    RX_GAIN_dB = 0

    # --- Channel Parameters --- #
    FREQUENCY_GHz = 5

    PATH_LOSS_EXPONENT = 4  # 4 considering indoor NLOS environment

    ENABLE_SHADOWING = False
    SHADOWING_STD_dB = 6.8  # 6.8 considering indoor NLOS environment
