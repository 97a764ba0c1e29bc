class UserConfig:
    # --- Simulation Parameters --- #
    SIMULATION_TIME_us = 2e5  # Total simulation time in microseconds

    SEED = 1  # Set to None for random behavior

    # --- OFDMA Scheduler Configuration --- #
    N_STATIONS = 4  # Maximum number of STAs granted an RU in a DL MU PPDU (1-74)
    FORCE_DL_OFDMA = False  # Return DL MU with an empty set of STAs instead of falling back to SU
    ENABLE_UL_OFDMA = True  # Try an UL MU transmission right after a DL MU one
    UL_PSDU_SIZE_bytes = 500  # Minimum size of the PSDU solicited to every STA (must be > 0 if UL is enabled)
    CHANNEL_WIDTH_MHz = 20  # Operating channel width (20, 40, 80 or 160)

    # Ack sequence used after a DL MU PPDU:
    # - "DL_SU_FORMAT": BAR/BA exchange with every STA, one after the other
    # - "DL_MU_BAR": a single MU-BAR Trigger Frame soliciting BAs from all the STAs
    # - "DL_AGGREGATE_TF": the MU-BAR is aggregated to the DL MU PPDU
    DL_MU_ACK_SEQUENCE = "DL_MU_BAR"
    # Ack sequence used after an UL MU PPDU. Only "UL_MULTI_STA_BLOCK_ACK" is supported
    UL_MU_ACK_SEQUENCE = "UL_MULTI_STA_BLOCK_ACK"

    # TXOP limit per Access Category, in microseconds (0 means a single frame exchange per channel access)
    TXOP_LIMITS_us = {"BE": 0, "BK": 0, "VI": 4096, "VO": 2080}

    # Traffic class membership of the STAs (STA IDs). A STA is expected to be in a single class;
    # STAs in none of them are scheduled together with the "HTTP" class.
    # - "BULK": bulk transfers (large, long-lived flows)
    # - "STREAMING": on/off streaming flows
    # - "HTTP": request/response flows
    TRAFFIC_CLASSES = {
        "BULK": [5],
        "STREAMING": [2, 3, 4],
        "HTTP": [6, 7],
    }

    # --- Logging Configuration --- #
    ENABLE_CONSOLE_LOGGING = True  # Enable/disable displaying logs in the console (useful for debugging, may affect performance)
    USE_COLORS_IN_LOGS = True  # Enable/disable colored logs

    ENABLE_LOGS_RECORDING = (
        False  # Enable/disable recording logs (may affect performance)
    )
    LOGS_RECORDING_PATH = "data/events"  # Path to the directory where logs will be recorded

    # Logging exclusions (if ENABLE_CONSOLE_LOGGING or ENABLE_LOGS_RECORDING is enabled)
    # Format: { "<module_name>": ["<excluded_log_level_1>", "<excluded_log_level_2>", ...] }
    # <module_name>: Module name (e.g., "NETWORK", "NODE", "GEN", "APP", "MAC", "OFDMA", "SELECTOR", "CLASSIFIER", "PACKER", "TXPARAMS", "STATS", "PLOTTER")
    # <excluded_log_level>: Log levels to exclude (e.g., "HEADER","DEBUG", "INFO", "WARNING", "ALL")
    EXCLUDED_LOGS = {
        "NETWORK": ["ALL"],
        "NODE": ["ALL"],
        "GEN": ["ALL"],
        "APP": ["ALL"],
        "MAC": ["HEADER", "DEBUG"],
        "OFDMA": ["HEADER", "DEBUG"],
        "SELECTOR": ["ALL"],
        "CLASSIFIER": ["ALL"],
        "PACKER": ["ALL"],
        "TXPARAMS": ["ALL"],
        "STATS": ["ALL"],
    }

    # --- Visualization --- #
    ENABLE_FIGS_DISPLAY = False  # Enable/disable displaying figures
    ENABLE_FIGS_SAVING = False  # Enable/disable saving figures
    FIGS_SAVE_PATH = "figs/sim"

    # --- Statistics Collection --- #
    ENABLE_STATS_COLLECTION = False  # Enable/disable saving the collected statistics
    STATS_SAVE_PATH = "data/statistics"

    # --- Network Configuration --- #
    NETWORK_BOUNDS_m = (10, 10, 2)  # spatial limits of the network in meters (x, y, z)

    # Keys:
    # - "ap": The Access Point (AP) of the BSS.
    #   - "id": Unique AP ID (int).
    #   - "pos" (optional): Tuple (x, y, z) specifying the AP's coordinates in meters. If not specified, the AP is placed at random within the network bounds.
    # - "stas": List of associated Stations (STAs), in association order (the first one gets AID 1).
    #   - "id": Unique STA ID (int).
    #   - "pos" (optional): Tuple (x, y, z) specifying the STA's coordinates in meters. If not specified, the STA is placed at random within the network bounds.
    #   - "mcs" (optional): MCS index used to serve the STA. If not specified, the highest MCS supported by the RSSI at the STA position is used.
    #   - "ba_tids" (optional): TIDs for which a Block Ack agreement is established with the STA. Defaults to the TIDs of its traffic flows.
    # - "traffic_flows": List of traffic flows.
    #   - "source": The node generating the traffic (the AP for DL flows, a STA for UL flows).
    #   - "destination": The node receiving the traffic.
    #   - "tid" (optional): Traffic Identifier (0-7). Defaults to 0.
    #   - "model": Traffic model.
    #       - "name": Traffic model name. Options: "Poisson", "Bursty" or "VR".
    #       - "start_time_us" (optional): When to start generating traffic (int, microseconds). Defaults to 0.
    #       - "end_time_us" (optional): When to stop generating traffic (int, microseconds). Defaults to full duration.
    #       - "traffic_load_kbps" (optional): Traffic load (int, in kbps). Defaults to 100e3.
    #       - "max_packet_size_bytes" (optional): Maximum packet size (int, bytes). Defaults to 1280.
    #       - "burst_size_pkts" (optional, only for "Bursty"): Number of packets per burst (int). Defaults to 20.
    #       - "avg_inter_packet_time_us" (optional, only for "Bursty" and "VR"): Average inter-packet time (int, microseconds). Defaults to 6.
    #       - "fps" (optional, only for "VR"): Frame rate (int, frames per second). Defaults to 90 fps.
    BSS = {
        "ap": {"id": 1, "pos": (0, 0, 0)},
        "stas": [
            {"id": 2, "pos": (3, 4, 0)},
            {"id": 3, "pos": (6, 8, 1)},
            {"id": 4, "pos": (1, 2, 1)},
            {"id": 5, "pos": (2, 2, 1), "mcs": 9},
            {"id": 6, "pos": (5, 0, 1)},
            {"id": 7, "pos": (0, 5, 1)},
        ],
        "traffic_flows": [
            {"source": 1, "destination": 2, "tid": 5, "model": {"name": "VR", "traffic_load_kbps": 20e3}},
            {"source": 1, "destination": 3, "tid": 5, "model": {"name": "VR", "traffic_load_kbps": 20e3}},
            {"source": 1, "destination": 4, "tid": 5, "model": {"name": "VR", "traffic_load_kbps": 20e3}},
            {"source": 1, "destination": 5, "tid": 0, "model": {"name": "Poisson", "traffic_load_kbps": 80e3}},
            {"source": 1, "destination": 6, "tid": 0, "model": {"name": "Bursty", "traffic_load_kbps": 5e3}},
            {"source": 1, "destination": 7, "tid": 0, "model": {"name": "Bursty", "traffic_load_kbps": 5e3}},
            {"source": 5, "destination": 1, "tid": 0, "model": {"name": "Poisson", "traffic_load_kbps": 10e3}},
            {"source": 6, "destination": 1, "tid": 0, "model": {"name": "Poisson", "traffic_load_kbps": 2e3}},
        ],
    }
