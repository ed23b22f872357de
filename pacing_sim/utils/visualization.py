"""Visualization utilities for rate-paced scenarios.

This module provides functions for plotting the scenario topology, received
throughput over time and per-flow summary metrics.
"""

from typing import Tuple
import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import os

from pacing_sim.scenario.driver import ScenarioDriver
from pacing_sim.utils.metrics import throughput_series


def _finish(fig, output_dir: str | None, filename: str, show: bool) -> None:
    plt.tight_layout()
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        fig.savefig(os.path.join(output_dir, f"{filename}.png"))
        plt.close(fig)
    elif show:
        plt.show()


def save_topology_visualization(
    driver: ScenarioDriver,
    output_dir: str | None = None,
    figsize: Tuple[int, int] = (8, 6),
    show = True,
) -> None:
    """Draw nodes, links and flows.

    Args:
        driver: ScenarioDriver instance.
        output_dir: Directory to save the figure, or None to show it.
        figsize: Figure size as (width, height) in inches.
    """
    fig = plt.figure(figsize=figsize)

    graph = driver.graph
    pos = nx.spring_layout(graph, seed=42)

    nx.draw_networkx_nodes(graph, pos, node_size=500, node_color="lightblue")
    nx.draw_networkx_edges(graph, pos, edge_color="gray", arrows=True)

    flow_edges = [(flow.source, flow.destination) for flow in driver.flows.values()]
    nx.draw_networkx_edges(
        graph,
        pos,
        edgelist=flow_edges,
        width=2,
        alpha=0.4,
        edge_color="blue",
        style="dashed",
        connectionstyle="arc3,rad=0.2",
        arrows=True,
        arrowsize=30,
    )

    nx.draw_networkx_labels(graph, pos, font_size=14)

    edge_labels = {
        (u, v): f"{graph[u][v]['capacity']/1e6:g}Mbps, {graph[u][v]['delay']*1000:.1f}ms"
        for u, v in graph.edges()
    }
    nx.draw_networkx_edge_labels(graph, pos, edge_labels=edge_labels, font_size=10)

    plt.axis("off")
    _finish(fig, output_dir, "topology", show)


def plot_throughput(
    driver: ScenarioDriver,
    bin_width: float = 1.0,
    output_dir: str | None = None,
    show = True,
) -> None:
    """Plot received throughput of every flow over time.

    Args:
        driver: ScenarioDriver instance after a run.
        bin_width: Width of each time bin in seconds.
        output_dir: Directory to save the figure, or None to show it.
    """
    times, series = throughput_series(driver, bin_width)

    fig, ax = plt.subplots(figsize=(12, 5))
    for name, values in series.items():
        ax.step(times, values / 1e6, where="post", label=name)

    ax.set_title(f"Received Throughput ({driver.name})")
    ax.set_xlabel("Simulation Time (seconds)")
    ax.set_ylabel("Throughput (Mbps)")
    ax.grid(True, linestyle="--", alpha=0.7)
    ax.legend()

    _finish(fig, output_dir, "throughput", show)


def plot_flow_metrics(
    driver: ScenarioDriver,
    output_dir: str | None = None,
    show = True,
) -> None:
    """Bar charts of sent/received packets, delay and loss per flow.

    Args:
        driver: ScenarioDriver instance after a run.
        output_dir: Directory to save the figure, or None to show it.
    """
    flows = driver.metrics["flows"]
    names = list(flows)
    x = np.arange(len(names))

    fig, axes = plt.subplots(1, 3, figsize=(12, 5))

    axes[0].bar(x - 0.2, [flows[n]["packets_sent"] for n in names], width=0.4, label="Sent")
    axes[0].bar(x + 0.2, [flows[n]["packets_received"] for n in names], width=0.4, label="Received")
    axes[0].set_ylabel("Packets")
    axes[0].set_title("Packets per Flow")
    axes[0].legend()

    axes[1].bar(x, [flows[n]["average_delay"] for n in names], width=0.4, color="orange")
    axes[1].set_ylabel("Average Delay (seconds)")
    axes[1].set_title("Average Delay")

    axes[2].bar(x, [flows[n]["packet_loss_rate"] for n in names], width=0.4, color="green")
    axes[2].set_ylabel("Packet Loss Rate")
    axes[2].set_title("Packet Loss Rate")
    axes[2].set_ylim(0, 1)

    for ax in axes:
        ax.set_xlabel("Flow")
        ax.set_xticks(x)
        ax.set_xticklabels(names)

    _finish(fig, output_dir, "flow_metrics", show)
