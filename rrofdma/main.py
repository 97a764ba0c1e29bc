from rrofdma.user_config import UserConfig as cfg_module
from rrofdma.sim_params import SimParams as sparams_module

from rrofdma.utils.plotters import NetworkPlotter, SchedulerPlotter
from rrofdma.utils.support import initialize_network, validate_settings
from rrofdma.utils.event_logger import get_logger, update_loggers_environment
from rrofdma.utils.messages import (
    STARTING_EXECUTION_MSG,
    EXECUTION_TERMINATED_MSG,
    STARTING_SIMULATION_MSG,
    SIMULATION_TERMINATED_MSG,
    RESULTS_MSG,
    PRESS_TO_EXIT_MSG,
)

import simpy
import matplotlib.pyplot as plt


if __name__ == "__main__":
    print(STARTING_EXECUTION_MSG)

    logger = get_logger("MAIN", cfg_module, sparams_module)

    validate_settings(cfg_module, sparams_module, logger)

    print(STARTING_SIMULATION_MSG)

    env = simpy.Environment()
    update_loggers_environment(env)

    network = initialize_network(cfg_module, sparams_module, env)

    env.run(until=cfg_module.SIMULATION_TIME_us)

    print(SIMULATION_TERMINATED_MSG)

    network.stats.collect_stats()

    print(RESULTS_MSG)

    for ap in network.get_aps():
        format_counts = ap.scheduler_stats.format_counts
        logger.info(
            f"AP {ap.id} -> DL MU: {format_counts['DL_MULTI_USER']}, UL MU: {format_counts['UL_MULTI_USER']}, Fallback: {format_counts['FALLBACK']}, Tx Pkts: {ap.tx_stats.pkts_tx}, Dropped Pkts: {ap.tx_stats.pkts_dropped_queue_lim}"
        )
        for sta in ap.get_stas():
            logger.info(
                f"STA {sta.id} (AID {sta.aid}, MCS {ap.get_mcs_index(sta.id)}) -> Selected: {ap.scheduler_stats.sta_selections.get(sta.id, 0)}, Rx Pkts: {sta.rx_stats.pkts_rx}, Tx Pkts: {sta.tx_stats.pkts_tx}"
            )

    network.stats.display_stats()

    network_plotter = NetworkPlotter(cfg_module, sparams_module, env)
    network_plotter.plot_network(network)

    scheduler_plotter = SchedulerPlotter(cfg_module, sparams_module, env)
    for ap in network.get_aps():
        scheduler_plotter.plot_format_history(ap)
        scheduler_plotter.plot_tone_usage(ap)
    scheduler_plotter.plot_sta_throughput(network)

    if len(plt.get_fignums()) > 0:
        input(PRESS_TO_EXIT_MSG)

    print(EXECUTION_TERMINATED_MSG)
