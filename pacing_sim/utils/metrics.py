"""Metrics utilities for rate-paced scenarios.

This module provides functions for exporting scenario metrics, computing
Jain's fairness index across flows and binning received traffic into a
throughput time series.
"""

import csv
import json
import os
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from pacing_sim.scenario.driver import ScenarioDriver


def save_metrics_to_json(
    metrics: Dict[str, Any], output_dir: str = "results", filename: str = "metrics"
) -> str:
    """Save metrics to a JSON file.

    Args:
        metrics: Dictionary of metrics to save.
        output_dir: Output directory.
        filename: Output filename without extension.

    Returns:
        Path of the written file.
    """
    os.makedirs(output_dir, exist_ok=True)

    # Convert non-serializable types
    serializable_metrics = {}
    for key, value in metrics.items():
        if key == "link_utilization":
            # Convert tuple keys to strings
            serializable_metrics[key] = {
                f"{src}->{dst}": util for (src, dst), util in value.items()
            }
        else:
            serializable_metrics[key] = value

    path = os.path.join(output_dir, f"{filename}.json")
    with open(path, "w") as f:
        json.dump(serializable_metrics, f, indent=2)
    return path


def save_metrics_to_csv(
    metrics: Dict[str, Any], output_dir: str = "results", filename: str = "flows"
) -> str:
    """Save per-flow metrics to a CSV file, one row per flow.

    Args:
        metrics: Metrics returned by ``ScenarioDriver.run``.
        output_dir: Output directory.
        filename: Output filename without extension.

    Returns:
        Path of the written file.
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{filename}.csv")

    with open(path, "w", newline="") as f:
        writer = csv.writer(f)

        writer.writerow(
            [
                "Flow",
                "Protocol",
                "Packets Sent",
                "Packets Received",
                "Packets Dropped",
                "Send Errors",
                "Throughput (bps)",
                "Average Delay",
                "Packet Loss Rate",
            ]
        )

        for name, flow in metrics["flows"].items():
            writer.writerow(
                [
                    name,
                    flow["protocol"],
                    flow["packets_sent"],
                    flow["packets_received"],
                    flow["packets_dropped"],
                    flow["send_errors"],
                    flow["throughput"],
                    flow["average_delay"],
                    flow["packet_loss_rate"],
                ]
            )
    return path


def calculate_fairness_index(
    driver: ScenarioDriver, flow_throughputs: Optional[Dict[str, float]] = None
) -> float:
    """Calculate Jain's fairness index for flow throughputs.

    Args:
        driver: ScenarioDriver instance.
        flow_throughputs: Dictionary mapping flow names to throughputs.
            If None, uses the throughputs from the driver's last metrics.

    Returns:
        Fairness index between 0 and 1 (1 is perfectly fair).
    """
    if flow_throughputs is None:
        metrics = driver.metrics or driver.calculate_metrics()
        flow_throughputs = {
            name: flow["throughput"] for name, flow in metrics["flows"].items()
        }

    throughputs = np.array(list(flow_throughputs.values()), dtype=float)
    if throughputs.size == 0:
        return 0.0

    sum_squared = np.sum(throughputs**2)
    if sum_squared == 0:
        return 0.0

    return float(np.sum(throughputs) ** 2 / (throughputs.size * sum_squared))


def throughput_series(
    driver: ScenarioDriver, bin_width: float = 1.0
) -> Tuple[np.ndarray, Dict[str, np.ndarray]]:
    """Received throughput of each flow over time.

    Args:
        driver: ScenarioDriver instance after a run.
        bin_width: Width of each time bin in seconds.

    Returns:
        Bin start times and, per flow, the throughput in bits per second
        within each bin.
    """
    if bin_width <= 0:
        raise ValueError("bin_width must be positive")

    end = max(driver.env.now, bin_width)
    edges = np.arange(0.0, end + bin_width, bin_width)

    series: Dict[str, np.ndarray] = {}
    for name in driver.generators:
        packets = driver.received_packets.get(name, [])
        times = np.array([p.arrival_time for p in packets], dtype=float)
        bits = np.array([p.size * 8 for p in packets], dtype=float)
        counts, _ = np.histogram(times, bins=edges, weights=bits)
        series[name] = counts / bin_width

    return edges[:-1], series


def send_intervals(driver: ScenarioDriver) -> Dict[str, List[float]]:
    """Time between consecutive sends of each flow.

    Args:
        driver: ScenarioDriver instance after a run.

    Returns:
        Inter-send gaps in seconds, per flow.
    """
    intervals: Dict[str, List[float]] = {}
    for name in driver.generators:
        times = np.array([p.creation_time for p in driver.sent_packets.get(name, [])])
        intervals[name] = np.diff(times).tolist() if times.size > 1 else []
    return intervals
