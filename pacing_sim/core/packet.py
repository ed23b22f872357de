"""Packet class for rate-paced traffic generation.

This module defines the Packet class, which represents a packet emitted by a
generator and carried over a link to a sink.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Packet:
    """Represents a network packet.

    Attributes:
        flow_id: Name of the flow that emitted the packet.
        seq: Sequence number within the flow, starting at 1.
        size: Size of packet in bytes.
        creation_time: Time when packet was created.
        id: Unique identifier for the packet.
        arrival_time: Time when packet arrived at the sink.
        dropped: Whether the packet was dropped.
    """

    flow_id: str
    seq: int
    size: int
    creation_time: float = 0
    id: int = field(init=False)
    arrival_time: Optional[float] = None
    dropped: bool = False

    _id_counter: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        """Initialize derived attributes after initialization."""
        type(self)._id_counter += 1
        self.id = type(self)._id_counter

    def get_total_delay(self) -> Optional[float]:
        """Calculate total delay if packet has arrived.

        Returns:
            Total delay in seconds or None if packet hasn't arrived.
        """
        if self.arrival_time is None:
            return None
        return self.arrival_time - self.creation_time
