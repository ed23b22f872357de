"""Enumerations for rate-paced traffic generation.

This module defines enumerations used throughout the simulator.
"""

from enum import Enum


class GeneratorState(Enum):
    """Lifecycle states of a rate-paced generator.

    Attributes:
        STOPPED: Not sending; no send is pending.
        RUNNING: Started; a send may be pending.
    """

    STOPPED = 1
    RUNNING = 2


class SocketState(Enum):
    """Lifecycle states of a transport socket."""

    CLOSED = 1
    BOUND = 2
    CONNECTED = 3


class Protocol(Enum):
    """Transport flavour of a socket.

    Attributes:
        TCP: Connect requires a listening sink; a full send buffer is an error.
        UDP: Connect always succeeds; a full link buffer silently drops.
    """

    TCP = "tcp"
    UDP = "udp"


class TimeResolution(Enum):
    """Size of one scheduler time unit, as ticks per second."""

    S = 1
    MS = 1_000
    US = 1_000_000
    NS = 1_000_000_000

    @property
    def ticks_per_second(self) -> int:
        return self.value
