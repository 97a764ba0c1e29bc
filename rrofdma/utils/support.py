from rrofdma.user_config import UserConfig as cfg
from rrofdma.sim_params import SimParams as sparams

from rrofdma.components.he_ru import SUPPORTED_CHANNEL_WIDTHS_MHz
from rrofdma.components.network import Network
from rrofdma.components.ofdma_manager import MAX_N_STATIONS
from rrofdma.components.tx_params import DlMuAckSequenceType, UlMuAckSequenceType
from rrofdma.traffic.generator import TrafficGenerator
from rrofdma.utils.data_units import TID_TO_AC
from rrofdma.utils.messages import PRESS_TO_CONTINUE_MSG

import os
import simpy
import random
import logging


VALID_MODULES = [
    "NETWORK",
    "NODE",
    "GEN",
    "APP",
    "MAC",
    "OFDMA",
    "SELECTOR",
    "CLASSIFIER",
    "PACKER",
    "TXPARAMS",
    "STATS",
    "PLOTTER",
]
VALID_LOG_LEVELS = ["HEADER", "DEBUG", "INFO", "WARNING", "ALL"]
VALID_TRAFFIC_MODELS = ["Poisson", "Bursty", "VR"]


def validate_params(sparams: sparams, logger: logging.Logger):
    if not isinstance(sparams.ENABLE_SHADOWING, bool):
        logger.critical(
            f"Invalid ENABLE_SHADOWING: {sparams.ENABLE_SHADOWING}. It must be a boolean."
        )

    positive_int_params = {
        "MAX_TX_QUEUE_SIZE_pkts": sparams.MAX_TX_QUEUE_SIZE_pkts,
        "SLOT_TIME_us": sparams.SLOT_TIME_us,
        "SIFS_us": sparams.SIFS_us,
        "DIFS_us": sparams.DIFS_us,
        "MAC_HEADER_SIZE_bytes": sparams.MAC_HEADER_SIZE_bytes,
        "FCS_SIZE_bytes": sparams.FCS_SIZE_bytes,
        "MAX_HE_PSDU_SIZE_bytes": sparams.MAX_HE_PSDU_SIZE_bytes,
        "BAR_SIZE_bytes": sparams.BAR_SIZE_bytes,
        "BACK_SIZE_bytes": sparams.BACK_SIZE_bytes,
        "TRIGGER_BASE_SIZE_bytes": sparams.TRIGGER_BASE_SIZE_bytes,
        "PPDU_MAX_TIME_us": sparams.PPDU_MAX_TIME_us,
        "UL_LENGTH_PROBE_us": sparams.UL_LENGTH_PROBE_us,
    }

    for name, value in positive_int_params.items():
        if not isinstance(value, int) or value <= 0:
            logger.critical(f"Invalid {name}: {value}. It must be a positive integer.")

    non_negative_int_params = {
        "MDPU_DELIMITER_SIZE_bytes": sparams.MDPU_DELIMITER_SIZE_bytes,
        "MPDU_PADDING_SIZE_bytes": sparams.MPDU_PADDING_SIZE_bytes,
    }

    for name, value in non_negative_int_params.items():
        if not isinstance(value, int) or value < 0:
            logger.critical(
                f"Invalid {name}: {value}. It must be a non-negative integer."
            )

    constrained_params = {
        "SPATIAL_STREAMS": (sparams.SPATIAL_STREAMS, {1, 2, 3}),
        "GUARD_INTERVAL_us": (sparams.GUARD_INTERVAL_us, {0.8, 1.6, 3.2}),
        "MU_BAR_MAX_MCS": (sparams.MU_BAR_MAX_MCS, set(range(12))),
    }

    for name, (value, valid_values) in constrained_params.items():
        if value not in valid_values:
            logger.critical(
                f"Invalid {name}: {value}. It must be one of {valid_values}."
            )

    float_or_int_params = {
        "TX_POWER_dBm": sparams.TX_POWER_dBm,
        "TX_GAIN_dB": sparams.TX_GAIN_dB,
        "RX_GAIN_dB": sparams.RX_GAIN_dB,
        "FREQUENCY_GHz": sparams.FREQUENCY_GHz,
        "PATH_LOSS_EXPONENT": sparams.PATH_LOSS_EXPONENT,
        "SHADOWING_STD_dB": sparams.SHADOWING_STD_dB,
        "TARGET_RSSI_dBm": sparams.TARGET_RSSI_dBm,
    }

    for name, value in float_or_int_params.items():
        if not isinstance(value, (int, float)):
            logger.critical(f"Invalid {name}: {value}. It must be an integer or float.")

    if sparams.CW_MAX < sparams.CW_MIN:
        logger.critical(
            f"Invalid CW_MAX: {sparams.CW_MAX}. It must be greater than CW_MIN ({sparams.CW_MIN})."
        )

    logger.success("Simulation parameters validated.")


def _validate_scheduler_config(cfg: cfg, logger: logging.Logger):
    if not isinstance(cfg.N_STATIONS, int) or not 1 <= cfg.N_STATIONS <= MAX_N_STATIONS:
        logger.critical(
            f"Invalid N_STATIONS: {cfg.N_STATIONS}. It must be an integer between 1 and {MAX_N_STATIONS}."
        )

    if cfg.CHANNEL_WIDTH_MHz not in SUPPORTED_CHANNEL_WIDTHS_MHz:
        logger.critical(
            f"Invalid CHANNEL_WIDTH_MHz: {cfg.CHANNEL_WIDTH_MHz}. It must be one of {SUPPORTED_CHANNEL_WIDTHS_MHz}."
        )

    if not isinstance(cfg.UL_PSDU_SIZE_bytes, int) or cfg.UL_PSDU_SIZE_bytes < 0:
        logger.critical(
            f"Invalid UL_PSDU_SIZE_bytes: {cfg.UL_PSDU_SIZE_bytes}. It must be a non-negative integer."
        )
    if cfg.ENABLE_UL_OFDMA and cfg.UL_PSDU_SIZE_bytes == 0:
        logger.critical("UL_PSDU_SIZE_bytes must be greater than 0 when UL OFDMA is enabled.")

    valid_dl_ack_sequences = [ack.value for ack in DlMuAckSequenceType]
    if cfg.DL_MU_ACK_SEQUENCE not in valid_dl_ack_sequences:
        logger.critical(
            f"Invalid DL_MU_ACK_SEQUENCE: {cfg.DL_MU_ACK_SEQUENCE}. It must be one of {valid_dl_ack_sequences}."
        )

    valid_ul_ack_sequences = [ack.value for ack in UlMuAckSequenceType]
    if cfg.UL_MU_ACK_SEQUENCE not in valid_ul_ack_sequences:
        logger.critical(
            f"Invalid UL_MU_ACK_SEQUENCE: {cfg.UL_MU_ACK_SEQUENCE}. It must be one of {valid_ul_ack_sequences}."
        )

    if not isinstance(cfg.TXOP_LIMITS_us, dict) or set(cfg.TXOP_LIMITS_us) != set(
        TID_TO_AC.values()
    ):
        logger.critical(
            f"Invalid TXOP_LIMITS_us: {cfg.TXOP_LIMITS_us}. It must map every Access Category (BE, BK, VI, VO) to a limit."
        )
    for ac, limit_us in cfg.TXOP_LIMITS_us.items():
        if not isinstance(limit_us, (int, float)) or limit_us < 0:
            logger.critical(
                f"Invalid TXOP limit for {ac}: {limit_us}. It must be non-negative."
            )

    classified = {}
    for traffic_class, sta_ids in cfg.TRAFFIC_CLASSES.items():
        if traffic_class not in ["BULK", "STREAMING", "HTTP"]:
            logger.critical(
                f"Invalid traffic class: '{traffic_class}'. It must be 'BULK', 'STREAMING' or 'HTTP'."
            )
        for sta_id in sta_ids:
            if sta_id in classified:
                logger.warning(
                    f"STA {sta_id} is in both '{classified[sta_id]}' and '{traffic_class}' traffic classes. The first one is used."
                )
            else:
                classified[sta_id] = traffic_class


def _validate_bss_config(cfg: cfg, logger: logging.Logger):
    def _is_valid_pos(pos) -> bool:
        if isinstance(pos, tuple) and len(pos) == 3:
            return all(isinstance(x, (int, float)) for x in pos)
        return False

    def _is_within_bounds(pos: tuple, bounds: tuple) -> bool:
        x, y, z = pos
        x_lim, y_lim, z_lim = bounds
        return 0 <= x <= x_lim and 0 <= y <= y_lim and 0 <= z <= z_lim

    if not _is_valid_pos(cfg.NETWORK_BOUNDS_m):
        logger.critical(
            f"Invalid NETWORK_BOUNDS_m: {cfg.NETWORK_BOUNDS_m}. It must be a tuple (x, y, z) of integers or floats."
        )

    bss = cfg.BSS
    if not isinstance(bss, dict):
        logger.critical(f"Invalid BSS: {bss}. It must be a dictionary.")

    if "ap" not in bss or "id" not in bss["ap"]:
        logger.critical("The BSS is missing an AP ID.")

    ap_id = bss["ap"]["id"]
    used_node_ids = {ap_id}
    used_node_pos = set()

    if "pos" in bss["ap"]:
        ap_pos = bss["ap"]["pos"]
        if not _is_valid_pos(ap_pos):
            logger.critical(
                f"AP position {ap_pos} is not valid. It must be a tuple (x, y, z) of integers or floats."
            )
        if not _is_within_bounds(ap_pos, cfg.NETWORK_BOUNDS_m):
            logger.critical(
                f"AP position {ap_pos} is outside the network bounds {cfg.NETWORK_BOUNDS_m}."
            )
        used_node_pos.add(ap_pos)

    if not bss.get("stas"):
        logger.critical("The BSS does not have any STAs.")

    for sta in bss["stas"]:
        if "id" not in sta:
            logger.critical("A STA is missing an ID.")

        sta_id = sta["id"]
        if not isinstance(sta_id, int):
            logger.critical(f"STA ID {sta_id} is not an integer.")
        if sta_id in used_node_ids:
            logger.critical(f"STA ID {sta_id} is reused. Node IDs must be unique.")
        used_node_ids.add(sta_id)

        if "pos" in sta:
            sta_pos = sta["pos"]
            if not _is_valid_pos(sta_pos):
                logger.critical(
                    f"STA position {sta_pos} is not valid. It must be a tuple (x, y, z) of integers or floats."
                )
            if not _is_within_bounds(sta_pos, cfg.NETWORK_BOUNDS_m):
                logger.critical(
                    f"STA position {sta_pos} is outside the network bounds {cfg.NETWORK_BOUNDS_m}."
                )
            if sta_pos in used_node_pos:
                logger.critical(
                    f"STA position {sta_pos} is reused. Node positions must be unique."
                )
            used_node_pos.add(sta_pos)

        if "mcs" in sta and sta["mcs"] not in range(12):
            logger.critical(f"Invalid MCS {sta['mcs']} for STA {sta_id}. It must be between 0 and 11.")

        for tid in sta.get("ba_tids", []):
            if tid not in TID_TO_AC:
                logger.critical(f"Invalid Block Ack TID {tid} for STA {sta_id}. It must be between 0 and 7.")

    sta_ids = {sta["id"] for sta in bss["stas"]}

    if not bss.get("traffic_flows"):
        logger.warning("The BSS does not have any traffic flows.")

    for traffic_flow in bss.get("traffic_flows", []):
        src_id = traffic_flow.get("source", ap_id)
        dst_id = traffic_flow.get("destination")

        if dst_id is None:
            logger.critical("Missing 'destination' for a traffic flow.")
        if src_id == ap_id and dst_id not in sta_ids:
            logger.critical(
                f"Invalid destination {dst_id} for a DL traffic flow. It must be one of the STAs: {sta_ids}."
            )
        if src_id != ap_id and (src_id not in sta_ids or dst_id != ap_id):
            logger.critical(
                f"Invalid traffic flow from {src_id} to {dst_id}. Flows go from the AP to a STA or from a STA to the AP."
            )

        if traffic_flow.get("tid", 0) not in TID_TO_AC:
            logger.critical(f"Invalid TID {traffic_flow['tid']}. It must be between 0 and 7.")

        if "model" not in traffic_flow:
            logger.critical(f"Missing 'model' for the traffic flow from {src_id} to {dst_id}.")

        model = traffic_flow["model"]
        if model.get("name") not in VALID_TRAFFIC_MODELS:
            logger.critical(
                f"Invalid traffic model: {model.get('name')}. It must be one of {VALID_TRAFFIC_MODELS}."
            )
        for key in ["start_time_us", "end_time_us", "traffic_load_kbps"]:
            if model.get(key) is not None and (
                not isinstance(model[key], (int, float)) or model[key] < 0
            ):
                logger.critical(
                    f"Invalid {key}: {model[key]} for the traffic flow from {src_id} to {dst_id}. It must be non-negative."
                )
        for key in ["max_packet_size_bytes", "burst_size_pkts", "avg_inter_packet_time_us", "fps"]:
            if model.get(key) is not None and not isinstance(model[key], int):
                logger.warning(
                    f"Invalid {key}: {model[key]} for the traffic flow from {src_id} to {dst_id}. It must be an integer."
                )


def validate_config(cfg: cfg, sparams: sparams, logger: logging.Logger) -> None:
    if not float(cfg.SIMULATION_TIME_us).is_integer() or cfg.SIMULATION_TIME_us <= 0:
        logger.critical(
            f"Invalid SIMULATION_TIME_us: {cfg.SIMULATION_TIME_us}. It must be a positive integer"
        )

    if cfg.SEED is not None:
        if not isinstance(cfg.SEED, int):
            logger.critical(f"Invalid SEED: {cfg.SEED}. It must be an integer.")
        random.seed(cfg.SEED)

    bool_settings = {
        "FORCE_DL_OFDMA": cfg.FORCE_DL_OFDMA,
        "ENABLE_UL_OFDMA": cfg.ENABLE_UL_OFDMA,
        "ENABLE_CONSOLE_LOGGING": cfg.ENABLE_CONSOLE_LOGGING,
        "USE_COLORS_IN_LOGS": cfg.USE_COLORS_IN_LOGS,
        "ENABLE_LOGS_RECORDING": cfg.ENABLE_LOGS_RECORDING,
        "ENABLE_FIGS_DISPLAY": cfg.ENABLE_FIGS_DISPLAY,
        "ENABLE_FIGS_SAVING": cfg.ENABLE_FIGS_SAVING,
        "ENABLE_STATS_COLLECTION": cfg.ENABLE_STATS_COLLECTION,
    }

    for name, value in bool_settings.items():
        if not isinstance(value, bool):
            logger.critical(f"Invalid {name}: '{value}'. It must be a boolean.")

    str_settings = {
        "LOGS_RECORDING_PATH": cfg.LOGS_RECORDING_PATH,
        "FIGS_SAVE_PATH": cfg.FIGS_SAVE_PATH,
        "STATS_SAVE_PATH": cfg.STATS_SAVE_PATH,
    }
    for name, value in str_settings.items():
        if not isinstance(value, str):
            logger.critical(f"Invalid {name}: '{value}'. It must be a string.")

    for module, levels in cfg.EXCLUDED_LOGS.items():
        if module not in VALID_MODULES:
            logger.warning(f"Invalid module name: '{module}' in EXCLUDED_LOGS.")

        for level in levels:
            if level not in VALID_LOG_LEVELS:
                logger.warning(
                    f"Invalid log level: '{level}' for module: '{module}' in EXCLUDED_LOGS."
                )

    path_settings = {
        cfg.LOGS_RECORDING_PATH: cfg.ENABLE_LOGS_RECORDING,
        cfg.FIGS_SAVE_PATH: cfg.ENABLE_FIGS_SAVING,
        cfg.STATS_SAVE_PATH: cfg.ENABLE_STATS_COLLECTION,
    }

    for path, enabled in path_settings.items():
        if enabled:
            if not os.path.exists(path):
                logger.warning(f"Path '{path}' does not exist. Creating it...")
                os.makedirs(path)

    _validate_scheduler_config(cfg, logger)
    _validate_bss_config(cfg, logger)

    logger.success("User configuration validated.")


def warn_overwriting_enabled_paths(cfg: cfg, logger: logging.Logger):
    path_settings = {
        "logs": cfg.ENABLE_LOGS_RECORDING,
        "figures": cfg.ENABLE_FIGS_SAVING,
        "statistics": cfg.ENABLE_STATS_COLLECTION,
    }

    enabled_settings = [name for name, enabled in path_settings.items() if enabled]

    if not enabled_settings:
        return

    logger.warning(
        f"The following data will be recorded: {', '.join(enabled_settings)}. Existing files in the configured paths will be overwritten. Save existing files first if you don't want to overwrite them."
    )
    input(PRESS_TO_CONTINUE_MSG)


def validate_settings(cfg: cfg, sparams: sparams, logger: logging.Logger):
    validate_params(sparams, logger)
    validate_config(cfg, sparams, logger)
    warn_overwriting_enabled_paths(cfg, logger)


def initialize_network(
    cfg: cfg, sparams: sparams, env: simpy.Environment, network: Network = None
) -> Network:
    """
    Builds the BSS described in the user configuration: the AP, its STAs (associated
    in order, so that the first one gets AID 1), the Block Ack agreements and the
    traffic generators.
    """

    def _get_unique_position(bounds: tuple, used_positions: set) -> tuple:
        """Generate a unique random position within bounds."""
        while True:
            x_lim, y_lim, z_lim = bounds
            pos = (
                round(random.uniform(0, x_lim), 2),
                round(random.uniform(0, y_lim), 2),
                round(random.uniform(0, z_lim), 2),
            )
            if pos not in used_positions:
                used_positions.add(pos)
                return pos

    if not network:
        network = Network(cfg, sparams, env)

    bss = cfg.BSS
    bounds = cfg.NETWORK_BOUNDS_m
    used_positions = {
        node["pos"] for node in [bss["ap"]] + bss.get("stas", []) if "pos" in node
    }
    bss_id = 1

    ap_config = bss["ap"]
    ap_pos = ap_config.get("pos") or _get_unique_position(bounds, used_positions)
    ap = network.add_ap(ap_config["id"], ap_pos, bss_id)

    flows = bss.get("traffic_flows", [])

    for sta_config in bss.get("stas", []):
        sta_id = sta_config["id"]
        sta_pos = sta_config.get("pos") or _get_unique_position(bounds, used_positions)
        network.add_sta(sta_id, sta_pos, bss_id, ap, mcs=sta_config.get("mcs"))

        ba_tids = sta_config.get("ba_tids")
        if ba_tids is None:
            ba_tids = {
                flow.get("tid", 0)
                for flow in flows
                if flow.get("source", ap.id) == ap.id and flow["destination"] == sta_id
            }
        for tid in sorted(ba_tids):
            ap.mac_layer.establish_ba_agreement(sta_id, tid)

    for flow in flows:
        src_node = network.get_node(flow.get("source", ap.id))
        traffic_generator = TrafficGenerator(
            cfg,
            sparams,
            env,
            src_node,
            flow["destination"],
            tid=flow.get("tid", 0),
            **flow["model"],
        )
        src_node.add_traffic_flow(traffic_generator)

    return network
