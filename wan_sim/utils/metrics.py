"""Metrics utilities for WAN simulation.

This module provides functions for calculating and saving delivery and loss
metrics from a simulation's outcome log.
"""

import csv
import json
import os
from collections import defaultdict
from typing import Any, Dict, Iterable, List

import numpy as np

from wan_sim.core.enums import EventKind
from wan_sim.core.simulator import EventRecord


def calculate_metrics(records: Iterable[EventRecord]) -> Dict[str, Any]:
    """Calculate delivery metrics from an outcome log.

    Args:
        records: Outcome log of a simulation run.

    Returns:
        Dictionary of calculated metrics.
    """
    records = list(records)
    packets = [r for r in records if r.kind is not EventKind.SET_LINK_STATE]
    delivered = [r for r in packets if r.reason is None]
    dropped = [r for r in packets if r.reason is not None]

    drops_by_reason: Dict[str, int] = defaultdict(int)
    drops_by_site: Dict[str, int] = defaultdict(int)
    for record in dropped:
        drops_by_reason[record.reason.value] += 1
        drops_by_site[record.path[-1]] += 1

    hops = np.array([len(r.path) - 1 for r in delivered], dtype=float)

    flows: Dict[str, Dict[str, Any]] = {}
    for record in packets:
        name = record.flow or record.target
        if record.kind is EventKind.ECHO_REPLY:
            name += " (reply)"
        stats = flows.setdefault(name, {"sent": 0, "delivered": 0, "dropped": 0})
        stats["sent"] += 1
        if record.reason is None:
            stats["delivered"] += 1
        else:
            stats["dropped"] += 1
    for stats in flows.values():
        stats["packet_loss_rate"] = stats["dropped"] / stats["sent"]

    return {
        "sent": len(packets),
        "delivered": len(delivered),
        "dropped": len(dropped),
        "packet_loss_rate": len(dropped) / len(packets) if packets else 0.0,
        "average_hops": float(np.mean(hops)) if hops.size else 0.0,
        "max_hops": int(np.max(hops)) if hops.size else 0,
        "link_events": len(records) - len(packets),
        "drops_by_reason": dict(sorted(drops_by_reason.items())),
        "drops_by_site": dict(sorted(drops_by_site.items())),
        "flows": flows,
    }


def save_metrics_to_json(
    metrics: Dict[str, Any], filename: str = "results/metrics.json"
) -> None:
    """Save metrics to a JSON file.

    Args:
        metrics: Dictionary of metrics to save.
        filename: Output filename.
    """
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filename, "w") as f:
        json.dump(metrics, f, indent=2)


def save_metrics_to_csv(
    metrics: Dict[str, Any], filename: str = "results/flows.csv"
) -> None:
    """Save per-flow metrics to a CSV file.

    Args:
        metrics: Dictionary of metrics from calculate_metrics.
        filename: Output filename.
    """
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filename, "w", newline="") as f:
        writer = csv.writer(f)

        writer.writerow(["Flow", "Sent", "Delivered", "Dropped", "Packet Loss Rate"])

        for name, stats in metrics["flows"].items():
            writer.writerow(
                [
                    name,
                    stats["sent"],
                    stats["delivered"],
                    stats["dropped"],
                    stats["packet_loss_rate"],
                ]
            )


def save_event_log(records: List[EventRecord], filename: str) -> None:
    """Save the outcome log as JSON, one object per record."""
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(filename, "w") as f:
        json.dump([r.to_dict() for r in records], f, indent=2)
