from rrofdma.sim_params import SimParams as sparams_module
from rrofdma.user_config import UserConfig as cfg_module

from rrofdma.utils.file_manager import get_project_root
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.statistics import TX_FORMATS, get_jain_fairness_index
from rrofdma.components.network import AP, STA, Network, Node

from matplotlib import rcParams
from matplotlib.patches import FancyArrowPatch
from mpl_toolkits.mplot3d import proj3d

import os
import simpy
import logging
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
import matplotlib.lines as mlines


rcParams["font.family"] = "serif"
rcParams["font.serif"] = ["DejaVu Serif"]
rcParams["mathtext.fontset"] = "dejavuserif"

FORMAT_COLORS = {
    "DL_MULTI_USER": mcolors.TABLEAU_COLORS["tab:blue"],
    "UL_MULTI_USER": mcolors.TABLEAU_COLORS["tab:orange"],
    "FALLBACK": mcolors.TABLEAU_COLORS["tab:gray"],
}

"""
Reference: https://github.com/matplotlib/matplotlib/issues/21688
"""


class Arrow3D(FancyArrowPatch):
    """Custom 3D arrow class."""

    def __init__(self, xs: np.ndarray, ys: np.ndarray, zs: np.ndarray, *args, **kwargs):
        FancyArrowPatch.__init__(self, (0, 0), (0, 0), *args, **kwargs)
        self._verts3d: np.ndarray = xs, ys, zs

    def do_3d_projection(self) -> float:
        xs3d, ys3d, zs3d = self._verts3d
        xs, ys, zs = proj3d.proj_transform(xs3d, ys3d, zs3d, self.axes.M)
        self.set_positions((xs[0], ys[0]), (xs[1], ys[1]))

        return np.min(zs)


class BasePlotter:
    """Base class for all plotters, handling saving and displaying plots."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, env: simpy.Environment = None):
        """
        Initialize a BasePlotter object.

        Args:
            cfg (cfg): The UserConfig object.
            sparams (sparams): The SimulationParams object.
            env (simpy.Environment, optional): The simulation environment. Defaults to None.
        """
        self.cfg = cfg
        self.sparams = sparams
        self.env: simpy.Environment = env

        self.name: str = "PLOTTER"
        self.logger: logging.Logger = get_logger(self.name, cfg, sparams, env)

    def _is_enabled(self) -> bool:
        return self.cfg.ENABLE_FIGS_SAVING or self.cfg.ENABLE_FIGS_DISPLAY

    def save_plot(self, figure: plt.Figure, save_name: str, save_format: str) -> None:
        """
        Saves the plot in the configured figures folder.

        Args:
            figure (plt.Figure): The figure to save.
            save_name (str): The base name of the saved file.
            save_format (str): The format of the saved file (e.g. pdf, png).
        """
        if not save_name or not save_format:
            return

        save_folder = os.path.join(get_project_root(), self.cfg.FIGS_SAVE_PATH)
        os.makedirs(save_folder, exist_ok=True)

        file_path = os.path.join(save_folder, f"{save_name}.{save_format}")
        figure.savefig(file_path)

    def _finish(self, fig: plt.Figure, save_name: str, save_format: str):
        plt.tight_layout()

        if self.cfg.ENABLE_FIGS_SAVING:
            self.save_plot(fig, save_name, save_format)
        if self.cfg.ENABLE_FIGS_DISPLAY:
            plt.show()
        else:
            plt.close(fig)


class NetworkPlotter(BasePlotter):
    """Plotter for network visualization."""

    @staticmethod
    def _get_bss_colors(nodes: list[Node]) -> dict:
        """Returns a dictionary mapping BSS IDs to colors."""
        unique_bss = set(node.bss_id for node in nodes)
        cmap = plt.get_cmap("tab20", len(unique_bss))
        return {bss_id: cmap(i) for i, bss_id in enumerate(unique_bss)}

    def plot_network(
        self,
        network: Network,
        node_size: int = 80,
        label_nodes: bool = True,
        save_name: str = "network_3d",
        save_format: str = "pdf",
    ):
        """
        Plots the nodes of the network, their associations and their traffic flows.

        Args:
            network (Network): The network to plot.
            node_size (int, optional): The size of the nodes in the plot. Defaults to 80.
            label_nodes (bool, optional): Whether to label the nodes with their IDs (and AIDs). Defaults to True.
            save_name (str, optional): The base name of the saved file. Defaults to "network_3d".
            save_format (str, optional): The format of the saved file (e.g. pdf, png). Defaults to "pdf".
        """
        if network is None or not network.nodes:
            self.logger.error("Network is empty. Nothing to plot.")
            return

        if not self._is_enabled():
            return

        self.logger.header(f"Generating Network 3D plot...")

        plt.ion()
        fig = plt.figure(figsize=(6.4, 4.8))
        ax = fig.add_subplot(111, projection="3d")

        nodes = network.get_nodes()
        bss_colors = self._get_bss_colors(nodes)

        for node in nodes:
            x, y, z = node.position
            node_size_factor = 1
            if isinstance(node, AP):
                marker = "o"  # Circle for APs
                node_size_factor = 1.5
            else:
                marker = "s"  # Square for STAs

            ax.scatter(
                x,
                y,
                z,
                c=[bss_colors[node.bss_id]],
                edgecolors=["black"],
                marker=marker,
                s=node_size * node_size_factor,
            )

            if label_nodes:
                label = f"{node.id}" if not isinstance(node, STA) else f"{node.id} (AID {node.aid})"
                ax.text(x, y, z, label, fontsize=7, color="black", zorder=50, fontweight="bold")

        # Associations
        for sta in network.get_stas():
            x1, y1, z1 = sta.ap.position
            x2, y2, z2 = sta.position
            ax.plot([x1, x2], [y1, y2], [z1, z2], color=bss_colors[sta.bss_id], lw=1)

        # Traffic flows
        for node_src in nodes:
            for traffic_flow in node_src.traffic_flows:
                x1, y1, z1 = node_src.position
                x2, y2, z2 = network.get_node(traffic_flow.dst_id).position

                arrow = Arrow3D(
                    (x1, x2),
                    (y1, y2),
                    (z1, z2),
                    mutation_scale=20,
                    color=bss_colors[node_src.bss_id],
                    lw=1,
                    arrowstyle="->",
                )
                ax.add_patch(arrow)

        legend_elements = [
            mlines.Line2D([0], [0], color=bss_colors[bss], lw=4, label=f"BSS: {bss}")
            for bss in set(node.bss_id for node in nodes)
        ] + [
            mlines.Line2D(
                [], [], color="black", marker=marker, markerfacecolor="none",
                linestyle="None", markeredgewidth=1, markersize=5, label=label,
            )
            for marker, label in [("o", "AP"), ("s", "STA")]
        ]
        ax.legend(handles=legend_elements, loc="best", fontsize="small", frameon=False)

        ax.set_xlabel("X")
        ax.set_ylabel("Y")
        ax.set_zlabel("Z")
        ax.set_title(f"3D Network Graph (t={network.env.now / 1000} ms)")
        ax.set_facecolor("white")

        self._finish(fig, save_name, save_format)


class SchedulerPlotter(BasePlotter):
    """Plotter for the decisions of the OFDMA scheduler of an AP."""

    def plot_format_history(
        self,
        ap: AP,
        save_name: str = "tx_formats",
        save_format: str = "pdf",
        fig_size: tuple[float, float] = (6.4, 2.4),
    ):
        """Plots, over time, the selected TX format and the number of STAs it addresses."""
        history = ap.scheduler_stats.decisions_history
        if history.empty:
            self.logger.error(f"AP {ap.id} -> No scheduler decisions to plot")
            return

        if not self._is_enabled():
            return

        self.logger.header(f"Generating TX format history plot for AP {ap.id}...")

        plt.ion()
        fig, ax = plt.subplots(figsize=fig_size)

        for tx_format in TX_FORMATS:
            decisions = history[history["tx_format"] == tx_format]
            if decisions.empty:
                continue
            ax.scatter(
                decisions["timestamp_us"].astype(float) / 1e3,
                decisions["n_stas"].astype(int),
                s=20,
                color=FORMAT_COLORS[tx_format],
                marker="|",
                label=tx_format,
            )

        ax.set_ylim((-0.5, None))
        ax.set_xlabel("Time (ms)")
        ax.set_ylabel("STAs")
        ax.set_title(f"AP {ap.id} TX formats", loc="left")
        ax.legend(loc="upper right", fontsize="small", frameon=False)

        self._finish(fig, f"{save_name}_ap_{ap.id}", save_format)

    def plot_tone_usage(
        self,
        ap: AP,
        save_name: str = "ru_tones",
        save_format: str = "pdf",
        fig_size: tuple[float, float] = (6.4, 3.2),
    ):
        """Plots the tones assigned to every STA over all DL MU PPDUs, and their Jain's fairness index."""
        stas = ap.get_stas()
        if not stas:
            self.logger.error(f"AP {ap.id} -> No STAs to plot")
            return

        if not self._is_enabled():
            return

        self.logger.header(f"Generating RU tone usage plot for AP {ap.id}...")

        tones = [ap.scheduler_stats.tones_per_sta.get(sta.id, 0) for sta in stas]
        selections = [ap.scheduler_stats.sta_selections.get(sta.id, 0) for sta in stas]
        labels = [str(sta.id) for sta in stas]

        plt.ion()
        fig, ax = plt.subplots(figsize=fig_size)

        x = np.arange(len(stas))
        ax.bar(x, tones, color=FORMAT_COLORS["DL_MULTI_USER"], edgecolor="black")
        for i, n in enumerate(selections):
            ax.text(x[i], tones[i], f"{n}", ha="center", va="bottom", fontsize=7)

        ax.set_xticks(x, labels)
        ax.set_xlabel("STA")
        ax.set_ylabel("Assigned tones")
        ax.set_title(
            f"AP {ap.id} RU tones (Jain: {get_jain_fairness_index(tones):.3f})", loc="left"
        )

        self._finish(fig, f"{save_name}_ap_{ap.id}", save_format)

    def plot_sta_throughput(
        self,
        network: Network,
        save_name: str = "sta_throughput",
        save_format: str = "pdf",
        fig_size: tuple[float, float] = (6.4, 3.2),
    ):
        """Plots the DL application throughput of every STA."""
        stas = network.get_stas()
        if not stas or network.env.now == 0:
            self.logger.error("No STA throughput to plot")
            return

        if not self._is_enabled():
            return

        self.logger.header("Generating STA throughput plot...")

        throughputs_mbps = [sta.rx_stats.rx_app_bytes * 8 / network.env.now for sta in stas]

        plt.ion()
        fig, ax = plt.subplots(figsize=fig_size)

        x = np.arange(len(stas))
        ax.bar(x, throughputs_mbps, color=mcolors.TABLEAU_COLORS["tab:green"], edgecolor="black")

        ax.set_xticks(x, [str(sta.id) for sta in stas])
        ax.set_xlabel("STA")
        ax.set_ylabel("Throughput (Mbps)")
        ax.set_title(
            f"DL throughput (Jain: {get_jain_fairness_index(throughputs_mbps):.3f})", loc="left"
        )

        self._finish(fig, save_name, save_format)
