"""Unit tests for metric export and analysis helpers."""

import csv
import json

import numpy as np
import pytest
import simpy

from pacing_sim.core.data_rate import DataRate
from pacing_sim.scenario.config import FlowConfig
from pacing_sim.scenario.driver import ScenarioDriver
from pacing_sim.utils.metrics import (
    calculate_fairness_index,
    save_metrics_to_csv,
    save_metrics_to_json,
    send_intervals,
    throughput_series,
)


@pytest.fixture
def finished_driver() -> ScenarioDriver:
    """Two flows over separate links, run for 2 seconds."""
    driver = ScenarioDriver(simpy.Environment(), "pair", duration=2.0)
    for i, rate in enumerate(["83.2kbps", "166.4kbps"]):
        source, sink = f"s{i}", f"d{i}"
        driver.add_node(source)
        driver.add_node(sink)
        driver.add_link(source, sink, "10Mbps", 0.0)
        driver.add_sink(sink, 9)
        driver.add_flow(
            FlowConfig(
                name=f"f{i}",
                source=source,
                destination=sink,
                port=9,
                data_rate=DataRate.parse(rate),
                packet_size=1040,
                max_packets=5,
            )
        )
    driver.run()
    return driver


class TestFairnessIndex:
    """Tests for Jain's fairness index."""

    def test_equal_throughputs(self, finished_driver: ScenarioDriver) -> None:
        index = calculate_fairness_index(finished_driver, {"a": 5.0, "b": 5.0, "c": 5.0})
        assert index == pytest.approx(1.0)

    def test_single_active_flow(self, finished_driver: ScenarioDriver) -> None:
        index = calculate_fairness_index(finished_driver, {"a": 10.0, "b": 0.0})
        assert index == pytest.approx(0.5)

    def test_no_traffic(self, finished_driver: ScenarioDriver) -> None:
        assert calculate_fairness_index(finished_driver, {}) == 0.0
        assert calculate_fairness_index(finished_driver, {"a": 0.0}) == 0.0

    def test_uses_driver_metrics(self, finished_driver: ScenarioDriver) -> None:
        # both flows deliver five packets in the same window
        assert calculate_fairness_index(finished_driver) == pytest.approx(1.0)


class TestSeries:
    """Tests for send intervals and throughput bins."""

    def test_send_intervals(self, finished_driver: ScenarioDriver) -> None:
        intervals = send_intervals(finished_driver)
        assert intervals["f0"] == pytest.approx([0.1] * 4)
        assert intervals["f1"] == pytest.approx([0.05] * 4)

    def test_throughput_series(self, finished_driver: ScenarioDriver) -> None:
        times, series = throughput_series(finished_driver, bin_width=1.0)

        assert times.tolist() == [0.0, 1.0]
        assert series["f0"].tolist() == pytest.approx([5 * 1040 * 8, 0])
        assert np.sum(series["f1"]) == pytest.approx(5 * 1040 * 8)

    def test_throughput_series_rejects_bad_bin(self, finished_driver: ScenarioDriver) -> None:
        with pytest.raises(ValueError):
            throughput_series(finished_driver, bin_width=0)


class TestExport:
    """Tests for JSON and CSV export."""

    def test_json(self, finished_driver: ScenarioDriver, tmp_path) -> None:
        path = save_metrics_to_json(finished_driver.metrics, str(tmp_path), "pair")

        with open(path) as f:
            data = json.load(f)
        assert data["scenario"] == "pair"
        assert set(data["link_utilization"]) == {"s0->d0", "s1->d1"}
        assert data["flows"]["f1"]["packets_received"] == 5

    def test_csv(self, finished_driver: ScenarioDriver, tmp_path) -> None:
        path = save_metrics_to_csv(finished_driver.metrics, str(tmp_path / "out"))

        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows[0][:2] == ["Flow", "Protocol"]
        assert [row[0] for row in rows[1:]] == ["f0", "f1"]
        assert rows[1][2] == "5"
