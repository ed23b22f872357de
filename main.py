#!/usr/bin/env python3
"""Run a rate-paced traffic scenario from a preset or a JSON file."""

import argparse
import logging
import sys

from pacing_sim.core.exceptions import PacingError
from pacing_sim.scenario.config import load_scenario
from pacing_sim.scenario.driver import ScenarioDriver
from pacing_sim.scenario.presets import get_preset, preset_names
from pacing_sim.utils.metrics import (
    calculate_fairness_index,
    save_metrics_to_csv,
    save_metrics_to_json,
)
from pacing_sim.utils.trace import AsciiTraceWriter
from pacing_sim.utils.visualization import (
    plot_flow_metrics,
    plot_throughput,
    save_topology_visualization,
)


def print_summary(driver: ScenarioDriver) -> None:
    """Print per-flow results of a finished run."""
    metrics = driver.metrics
    print(f"\n=== Scenario {metrics['scenario']} ({metrics['duration']:.2f} s) ===")
    for name, flow in metrics["flows"].items():
        print(f"{name} ({flow['protocol']}):")
        print(f"  Packets sent:     {flow['packets_sent']}")
        print(f"  Packets received: {flow['packets_received']}")
        print(f"  Packets dropped:  {flow['packets_dropped']}")
        print(f"  Send errors:      {flow['send_errors']}")
        print(f"  Throughput:       {flow['throughput'] / 1e6:.3f} Mbps")
        print(f"  Average Delay:    {flow['average_delay'] * 1000:.3f} ms")
        print(f"  Packet loss:      {flow['packet_loss_rate'] * 100:.2f}%")
    print(f"Fairness index: {calculate_fairness_index(driver):.4f}")


def main(argv=None) -> int:
    """Parse arguments, run the scenario and write the requested outputs."""
    parser = argparse.ArgumentParser(description="Rate-paced traffic simulation")
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--scenario",
        choices=preset_names(),
        default="tcp_variants",
        help="Built-in scenario to run",
    )
    source.add_argument("--config", help="Path to a JSON scenario file")
    parser.add_argument("--duration", type=float, help="Override the scenario duration")
    parser.add_argument("--output-dir", default="results", help="Directory for outputs")
    parser.add_argument("--trace", action="store_true", help="Write an ASCII event trace")
    parser.add_argument("--plot", action="store_true", help="Save plots to the output directory")
    parser.add_argument("--progress", action="store_true", help="Print run progress")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s - %(name)s - %(message)s",
    )

    try:
        config = load_scenario(args.config) if args.config else get_preset(args.scenario)
        if args.duration is not None:
            config.duration = args.duration
        driver = ScenarioDriver.from_config(config)

        if args.trace:
            with AsciiTraceWriter(f"{args.output_dir}/{config.name}.tr") as trace:
                trace.attach(driver)
                driver.run(updates=args.progress)
        else:
            driver.run(updates=args.progress)
    except PacingError as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    print_summary(driver)

    save_metrics_to_json(driver.metrics, args.output_dir, f"{config.name}_metrics")
    save_metrics_to_csv(driver.metrics, args.output_dir, f"{config.name}_flows")

    if args.plot:
        save_topology_visualization(driver, args.output_dir)
        plot_throughput(driver, output_dir=args.output_dir)
        plot_flow_metrics(driver, output_dir=args.output_dir)

    print(f"\nResults saved to '{args.output_dir}' directory.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
