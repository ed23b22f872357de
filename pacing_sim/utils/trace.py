"""ASCII event trace.

Writes one line per packet event of a scenario, in the style of a classic
network simulator ASCII trace::

    + 1.000000000 tcp 1 1040 n0->n2
    r 1.002832000 tcp 1 1040 n2:8080
    d 20.500000000 udp 31 1040 Buffer overflow
    e 3.000000000 tcp 12 1040 Send buffer full
    c 30.000000000 udp 5Mbps 10Mbps
"""

import os
from typing import IO, Optional

from pacing_sim.core.data_rate import DataRate
from pacing_sim.core.exceptions import TransportError
from pacing_sim.core.link import Link
from pacing_sim.core.packet import Packet
from pacing_sim.core.sink import PacketSink
from pacing_sim.scenario.driver import ScenarioDriver


class AsciiTraceWriter:
    """Writes driver events to a text file.

    Use as a context manager so the file is closed when the run is over::

        with AsciiTraceWriter("results/run.tr") as trace:
            trace.attach(driver)
            driver.run()
    """

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self._file: Optional[IO[str]] = None
        self.lines_written = 0

    def open(self) -> None:
        directory = os.path.dirname(self.filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._file = open(self.filename, "w")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "AsciiTraceWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def attach(self, driver: ScenarioDriver) -> None:
        """Register trace callbacks on every driver hook this writer records."""
        driver.register_hook("packet_enqueued", self.on_enqueue)
        driver.register_hook("packet_dropped", self.on_drop)
        driver.register_hook("packet_received", self.on_receive)
        driver.register_hook("send_error", self.on_send_error)
        driver.register_hook("rate_changed", self.on_rate_change)

    def on_enqueue(self, packet: Packet, link: Link, time: float) -> None:
        self._write("+", time, f"{packet.flow_id} {packet.seq} {packet.size} {link.source}->{link.target}")

    def on_drop(self, packet: Packet, reason: str, time: float) -> None:
        self._write("d", time, f"{packet.flow_id} {packet.seq} {packet.size} {reason}")

    def on_receive(self, packet: Packet, sink: PacketSink, time: float) -> None:
        self._write("r", time, f"{packet.flow_id} {packet.seq} {packet.size} {sink.address}")

    def on_send_error(self, flow: str, packet: Packet, error: TransportError, time: float) -> None:
        self._write("e", time, f"{flow} {packet.seq} {packet.size} {error.message}")

    def on_rate_change(self, flow: str, old_rate: DataRate, new_rate: DataRate, time: float) -> None:
        self._write("c", time, f"{flow} {old_rate} {new_rate}")

    def _write(self, kind: str, time: float, text: str) -> None:
        if self._file is None:
            raise ValueError(f"Trace file {self.filename} is not open")
        self._file.write(f"{kind} {time:.9f} {text}\n")
        self.lines_written += 1
