"""Shared pytest fixtures for the pacing_sim test suite.

Provides a SimPy environment and scheduler, a fast link into a listening
sink, and helpers to configure generators against them.
"""

from typing import Callable, List, Tuple

import pytest
import simpy

from pacing_sim.core.enums import Protocol
from pacing_sim.core.generator import RatePacedGenerator
from pacing_sim.core.link import Link
from pacing_sim.core.packet import Packet
from pacing_sim.core.scheduler import Scheduler
from pacing_sim.core.sink import PacketSink
from pacing_sim.core.socket import Address, ChannelSocket


@pytest.fixture
def env() -> simpy.Environment:
    return simpy.Environment()


@pytest.fixture
def scheduler(env: simpy.Environment) -> Scheduler:
    return Scheduler(env)


@pytest.fixture
def link(env: simpy.Environment) -> Link:
    """A 1 Gbps link with no propagation delay and an unbounded buffer."""
    return Link(env, "a", "b", "1Gbps", 0.0)


@pytest.fixture
def sink(scheduler: Scheduler) -> PacketSink:
    """A sink at b:9 that is already listening."""
    sink = PacketSink(scheduler, Address("b", 9))
    sink.start()
    return sink


@pytest.fixture
def socket(link: Link, sink: PacketSink) -> ChannelSocket:
    return ChannelSocket(link, {sink.address: sink}.get, Protocol.UDP)


@pytest.fixture
def generator(scheduler: Scheduler) -> RatePacedGenerator:
    return RatePacedGenerator(scheduler, "flow")


@pytest.fixture
def send_log(generator: RatePacedGenerator) -> List[Tuple[float, int]]:
    """(time, seq) of every packet the ``generator`` fixture sends."""
    log: List[Tuple[float, int]] = []

    def record(_generator: RatePacedGenerator, packet: Packet, time: float) -> None:
        log.append((time, packet.seq))

    generator.register_hook("packet_sent", record)
    return log


@pytest.fixture
def configure(
    generator: RatePacedGenerator, socket: ChannelSocket, sink: PacketSink
) -> Callable[..., RatePacedGenerator]:
    """Configure the ``generator`` fixture against the fixture socket and sink."""

    def _configure(
        packet_size: int = 1040, max_packets: int = 0, data_rate=100_000
    ) -> RatePacedGenerator:
        generator.configure(socket, sink.address, packet_size, max_packets, data_rate)
        return generator

    return _configure
