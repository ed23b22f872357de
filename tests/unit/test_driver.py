"""Unit tests for the ScenarioDriver."""

from typing import List, Tuple
from unittest.mock import MagicMock

import pytest
import simpy

from pacing_sim.core.data_rate import DataRate
from pacing_sim.core.enums import Protocol
from pacing_sim.core.exceptions import InvalidConfig, InvalidState
from pacing_sim.scenario.config import FlowConfig, RateChange
from pacing_sim.scenario.driver import ScenarioDriver
from pacing_sim.scenario.presets import get_preset


@pytest.fixture
def driver() -> ScenarioDriver:
    """Driver with a 10 Mbps a->b link and a sink at b:9 open from t=0."""
    driver = ScenarioDriver(simpy.Environment(), "unit", duration=5.0)
    driver.add_node("a")
    driver.add_node("b")
    driver.add_link("a", "b", "10Mbps", 0.001)
    driver.add_sink("b", 9)
    return driver


def flow(**overrides) -> FlowConfig:
    params = dict(
        name="f",
        source="a",
        destination="b",
        port=9,
        data_rate=DataRate.parse("83.2kbps"),  # 100 ms interval for 1040 B
        packet_size=1040,
    )
    params.update(overrides)
    return FlowConfig(**params)


def send_times(driver: ScenarioDriver, name: str = "f") -> List[float]:
    return [packet.creation_time for packet in driver.sent_packets[name]]


class TestTopology:
    """Tests for node, link and sink construction."""

    def test_link_requires_nodes(self, driver: ScenarioDriver) -> None:
        with pytest.raises(InvalidConfig, match="do not exist"):
            driver.add_link("a", "z", "1Mbps", 0.0)

    def test_duplicate_link_raises(self, driver: ScenarioDriver) -> None:
        with pytest.raises(InvalidConfig, match="already exists"):
            driver.add_link("a", "b", "1Mbps", 0.0)

    def test_duplicate_sink_raises(self, driver: ScenarioDriver) -> None:
        with pytest.raises(InvalidConfig, match="already listens"):
            driver.add_sink("b", 9)

    def test_graph_records_links(self, driver: ScenarioDriver) -> None:
        assert driver.graph.has_edge("a", "b")
        assert driver.graph["a"]["b"]["capacity"] == 10_000_000

    def test_flow_without_link_raises(self, driver: ScenarioDriver) -> None:
        with pytest.raises(InvalidConfig, match="No link"):
            driver.add_flow(flow(source="b", destination="a"))

    def test_duplicate_flow_raises(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow())
        with pytest.raises(InvalidConfig, match="already exists"):
            driver.add_flow(flow())


class TestFlowScheduling:
    """Tests for start/stop windows and deferred rate changes."""

    def test_flow_runs_inside_its_window(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow(start=1.0, stop=1.95))
        metrics = driver.run()

        times = send_times(driver)
        assert len(times) == 10
        assert times[0] == pytest.approx(1.0)
        assert times[-1] == pytest.approx(1.9)
        assert metrics["flows"]["f"]["packets_sent"] == 10
        assert metrics["flows"]["f"]["packets_received"] == 10
        assert not driver.generators["f"].is_running

    def test_budget_stops_sending(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow(max_packets=3))
        driver.run()
        assert driver.metrics["flows"]["f"]["packets_sent"] == 3

    def test_scheduled_rate_change_takes_effect_on_next_send(
        self, driver: ScenarioDriver
    ) -> None:
        driver.add_flow(flow(data_rate=DataRate(250_000)))
        driver.schedule_rate_change("f", 0.01, "500kbps")
        driver.run(0.06)

        assert send_times(driver) == pytest.approx([0.0, 0.03328, 0.04992])
        assert driver.metrics["flows"]["f"]["final_rate"] == 500_000

    def test_rate_change_from_flow_config(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow(rate_change=RateChange(0.25, DataRate(166_400))))
        changes = MagicMock()
        driver.register_hook("rate_changed", changes)
        driver.run(0.48)

        changes.assert_called_once()
        # sends at 0, .1, .2, .3 (scheduled at .2 with the old rate), then 50 ms gaps
        assert send_times(driver) == pytest.approx([0.0, 0.1, 0.2, 0.3, 0.35, 0.4, 0.45])

    @pytest.mark.parametrize("rate", [0, "0bps", -1])
    def test_non_positive_rate_change_raises(self, driver: ScenarioDriver, rate) -> None:
        driver.add_flow(flow())
        with pytest.raises(InvalidConfig):
            driver.schedule_rate_change("f", 1.0, rate)

    def test_rate_change_for_unknown_flow_raises(self, driver: ScenarioDriver) -> None:
        with pytest.raises(InvalidConfig, match="Unknown flow"):
            driver.schedule_rate_change("missing", 1.0, "1Mbps")

    def test_rate_change_in_the_past_raises(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow())
        driver.run(1.0)
        with pytest.raises(InvalidConfig, match="already passed"):
            driver.schedule_rate_change("f", 0.5, "1Mbps")


class TestTransportFailures:
    """Tests for failures surfaced by the transport layer."""

    def test_tcp_flow_without_listener_fails_to_start(self, driver: ScenarioDriver) -> None:
        failed = MagicMock()
        driver.register_hook("flow_start_failed", failed)
        driver.add_flow(flow(port=10, protocol=Protocol.TCP))

        metrics = driver.run()

        failed.assert_called_once()
        assert failed.call_args.args[0] == "f"
        assert metrics["flows"]["f"]["packets_sent"] == 0

    @pytest.mark.parametrize(
        "protocol,send_errors,packets_dropped",
        [(Protocol.TCP, 7, 0), (Protocol.UDP, 0, 7)],
    )
    def test_full_link_buffer(
        self, protocol: Protocol, send_errors: int, packets_dropped: int
    ) -> None:
        driver = ScenarioDriver(simpy.Environment(), "congested", duration=5.0)
        driver.add_node("a")
        driver.add_node("b")
        driver.add_link("a", "b", 8000, 0.0, buffer_size=2080)  # 1.04 s per packet
        driver.add_sink("b", 9)
        driver.add_flow(flow(data_rate=DataRate(1_000_000), max_packets=10, protocol=protocol))

        metrics = driver.run()["flows"]["f"]

        assert metrics["packets_sent"] == 10
        assert metrics["send_errors"] == send_errors
        assert metrics["packets_dropped"] == packets_dropped
        assert metrics["packets_received"] == 3

    def test_sink_closed_drops(self, driver: ScenarioDriver) -> None:
        driver.add_node("c")
        driver.add_link("a", "c", "10Mbps", 0.0)
        driver.add_sink("c", 9, start=0.0, stop=0.45)
        driver.add_flow(flow(destination="c", stop=0.95))

        metrics = driver.run(1.0)["flows"]["f"]

        reasons = {reason for _, reason in driver.dropped_packets}
        assert reasons == {"sink closed"}
        assert metrics["packets_received"] == 5
        assert metrics["packets_dropped"] == 5
        assert metrics["packet_loss_rate"] == pytest.approx(0.5)


class TestRun:
    """Tests for running and metrics."""

    def test_run_requires_a_future_end_time(self, driver: ScenarioDriver) -> None:
        driver.run(1.0)
        with pytest.raises(InvalidState):
            driver.run(1.0)

    def test_run_without_duration_raises(self) -> None:
        driver = ScenarioDriver(simpy.Environment())
        with pytest.raises(InvalidConfig, match="duration"):
            driver.run()

    def test_sim_end_hook_receives_metrics(self, driver: ScenarioDriver) -> None:
        ended = MagicMock()
        driver.register_hook("sim_end", ended)
        driver.add_flow(flow())
        metrics = driver.run()
        ended.assert_called_once_with(metrics)

    def test_metrics(self, driver: ScenarioDriver) -> None:
        driver.add_flow(flow(start=1.0, stop=2.0, max_packets=5))
        metrics = driver.run()

        f = metrics["flows"]["f"]
        assert f["protocol"] == "udp"
        assert f["bytes_received"] == 5 * 1040
        assert f["throughput"] == pytest.approx(5 * 1040 * 8 / 1.0)
        # 0.832 ms transmission + 1 ms propagation
        assert f["average_delay"] == pytest.approx(0.001832)
        assert f["packet_loss_rate"] == 0
        assert metrics["link_utilization"][("a", "b")] == pytest.approx(5 * 1040 * 8 / (10e6 * 5.0))


class TestPresets:
    """End-to-end runs of the built-in scenarios."""

    def test_first(self) -> None:
        driver = ScenarioDriver.from_config(get_preset("first"))
        received: List[Tuple[str, float]] = []
        driver.register_hook(
            "packet_received", lambda packet, sink, time: received.append((packet.flow_id, time))
        )
        metrics = driver.run()

        assert [name for name, _ in received] == ["client1", "client2"]
        assert received[0][1] == pytest.approx(2.0 + 1024 * 8 / 5e6)
        assert received[1][1] == pytest.approx(6.0 + 1024 * 8 / 5e6)
        for name in ("client1", "client2"):
            assert metrics["flows"][name]["packets_sent"] == 1
            assert metrics["flows"][name]["packets_received"] == 1

    def test_tcp_variants(self) -> None:
        driver = ScenarioDriver.from_config(get_preset("tcp_variants"))
        metrics = driver.run()

        for name in ("tcp", "udp"):
            assert metrics["flows"][name]["packets_sent"] == 1000
            assert metrics["flows"][name]["packets_received"] == 1000
            assert metrics["flows"][name]["send_errors"] == 0
        assert metrics["flows"]["tcp"]["final_rate"] == 2_000_000
        assert metrics["flows"]["udp"]["final_rate"] == 10_000_000
