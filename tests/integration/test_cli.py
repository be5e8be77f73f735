"""
Integration tests for the command-line entry point.
"""

import json
import logging
from pathlib import Path

import pytest

import main

SCENARIOS = Path(__file__).resolve().parents[2] / "scenarios"


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop the console handler main() installs on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_builtin_triangle(capsys):
    assert main.main([]) == 0
    out = capsys.readouterr().out
    assert "Network Configuration Summary" in out
    assert "=== Running triangle ===" in out
    assert "4.000000 SetLinkState HQ-DC DOWN" in out
    assert "Dropped(LinkDown@HQ)" in out
    assert "Packets sent: 20" in out


def test_quiet_hides_event_log(capsys):
    main.main(["--quiet"])
    out = capsys.readouterr().out
    assert "SetLinkState" not in out
    assert "Packet Loss Rate: 10.00%" in out


def test_outputs_are_written(tmp_path, capsys):
    routes = tmp_path / "wan.routes"
    metrics = tmp_path / "metrics.json"
    flows = tmp_path / "flows.csv"
    log = tmp_path / "events.json"
    plots = tmp_path / "plots"

    main.main([
        str(SCENARIOS / "triangle.yaml"),
        "--routes", str(routes),
        "--metrics", str(metrics),
        "--csv", str(flows),
        "--log", str(log),
        "--plot", str(plots),
        "--quiet",
    ])

    assert "Node: 0 (HQ), Time: +1s" in routes.read_text()
    assert json.loads(metrics.read_text())["drops_by_site"] == {"HQ": 2}
    assert flows.read_text().startswith("Flow,Sent,Delivered,Dropped,Packet Loss Rate")
    assert len(json.loads(log.read_text())) == 22
    assert (plots / "triangle_topology.png").exists()
    assert (plots / "triangle_timeline.png").exists()


def test_stop_override(tmp_path, capsys):
    log = tmp_path / "events.json"
    main.main(["--stop", "4", "--log", str(log), "--quiet"])
    times = [event["time"] for event in json.loads(log.read_text())]
    assert max(times) < 4.0


def test_manual_routes_scenario(capsys):
    main.main([str(SCENARIOS / "triangle_manual_routes.yaml")])
    out = capsys.readouterr().out
    assert "=== Running triangle_manual_routes ===" in out
    assert "path=HQ>DC" in out


def test_missing_scenario():
    with pytest.raises(FileNotFoundError):
        main.main(["does-not-exist.yaml"])
