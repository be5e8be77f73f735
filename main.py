#!/usr/bin/env python3
"""Run a static-routing WAN failure scenario.

Usage:
    python main.py                          # Built-in HQ/Branch/DC triangle
    python main.py scenarios/triangle.yaml  # Scenario file
    python main.py --routes results/wan.routes --metrics results/metrics.json
    python main.py --plot results           # Topology and outcome plots
    python main.py --debug                  # Enable debug logging
"""

import argparse
import logging
import os
import sys

from wan_sim.config.scenario import build_simulator, load_scenario, triangle_scenario
from wan_sim.core.simulator import format_event_log
from wan_sim.utils.metrics import (
    calculate_metrics,
    save_event_log,
    save_metrics_to_csv,
    save_metrics_to_json,
)
from wan_sim.utils.reporting import format_configuration, save_routing_tables
from wan_sim.utils.visualization import plot_delivery_timeline, save_network_visualization

# time printed in the routing table dump header
ROUTES_SNAPSHOT_TIME = 1.0


def setup_logging(debug: bool = False):
    """Configure logging for the application."""
    level = logging.DEBUG if debug else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)


def print_metrics(metrics):
    """Print the delivery summary of a run"""
    print("\nResults:")
    print(f"Packets sent: {metrics['sent']}")
    print(f"Delivered: {metrics['delivered']}")
    print(f"Dropped: {metrics['dropped']}")
    print(f"Packet Loss Rate: {metrics['packet_loss_rate']*100:.2f}%")
    for reason, count in metrics["drops_by_reason"].items():
        print(f"  {reason}: {count}")

    print("\nPer-flow statistics:")
    for name, stats in metrics["flows"].items():
        print(
            f"Flow {name}: {stats['delivered']}/{stats['sent']} delivered, "
            f"{stats['packet_loss_rate']*100:.0f}% loss"
        )


def main(argv=None):
    """Main function to run a scenario"""
    parser = argparse.ArgumentParser(description="Static-routing WAN simulation")
    parser.add_argument(
        "scenario", nargs="?", help="Scenario YAML file (default: built-in triangle)"
    )
    parser.add_argument("--stop", type=float, help="Override the scenario stop time")
    parser.add_argument("--routes", help="Write the routing tables to this file")
    parser.add_argument("--metrics", help="Write metrics to this JSON file")
    parser.add_argument("--csv", help="Write per-flow metrics to this CSV file")
    parser.add_argument("--log", help="Write the outcome log to this JSON file")
    parser.add_argument("--plot", help="Directory for topology and timeline plots")
    parser.add_argument("--quiet", action="store_true", help="Do not print the event log")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    setup_logging(args.debug)

    scenario = load_scenario(args.scenario) if args.scenario else triangle_scenario()
    simulator = build_simulator(scenario)

    print(format_configuration(simulator.topology))

    if args.routes:
        save_routing_tables(
            simulator.topology, simulator.tables, args.routes, time=ROUTES_SNAPSHOT_TIME
        )
        print(f"Routing tables written to {args.routes}")

    if args.plot:
        os.makedirs(args.plot, exist_ok=True)
        save_network_visualization(
            simulator.topology, os.path.join(args.plot, f"{scenario.name}_topology.png")
        )

    stop_time = args.stop if args.stop is not None else scenario.stop_time
    print(f"\n=== Running {scenario.name} ===")
    records = simulator.run(until=stop_time)

    if not args.quiet:
        print(format_event_log(records))

    metrics = calculate_metrics(records)
    print_metrics(metrics)

    if args.metrics:
        save_metrics_to_json(metrics, args.metrics)
    if args.csv:
        save_metrics_to_csv(metrics, args.csv)
    if args.log:
        save_event_log(records, args.log)
    if args.plot:
        plot_delivery_timeline(
            records, os.path.join(args.plot, f"{scenario.name}_timeline.png")
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
