"""Data rate value type.

This module defines the DataRate class, which parses rate strings such as
``"5Mbps"`` and computes how long a packet occupies a sender at that rate.
"""

import math
import re
from dataclasses import dataclass
from typing import Union

from pacing_sim.core.enums import TimeResolution
from pacing_sim.core.exceptions import InvalidConfig

_RATE_PATTERN = re.compile(
    r"^\s*(?P<value>[0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*"
    r"(?P<prefix>[kKmMgG]?)(?P<unit>[bB])(?:ps|/s)\s*$"
)

_PREFIXES = {"": 1, "k": 1e3, "m": 1e6, "g": 1e9}

RateLike = Union["DataRate", int, float, str]


@dataclass(frozen=True)
class DataRate:
    """A bit rate.

    Attributes:
        bit_rate: Rate in bits per second, finite.
    """

    bit_rate: float

    def __post_init__(self) -> None:
        try:
            finite = math.isfinite(self.bit_rate)
        except (OverflowError, TypeError):
            finite = False
        if not finite:
            raise InvalidConfig(f"Invalid data rate: {self.bit_rate!r}")

    @classmethod
    def parse(cls, value: RateLike) -> "DataRate":
        """Build a DataRate from a DataRate, a number of bits per second or a string.

        Strings use an optional SI prefix followed by ``bps``/``b/s`` for bits
        or ``Bps``/``B/s`` for bytes, e.g. ``"10Mbps"``, ``"500kb/s"``, ``"1MBps"``.

        Args:
            value: The rate to parse.

        Returns:
            The parsed DataRate.

        Raises:
            InvalidConfig: If the value cannot be interpreted as a rate.
        """
        if isinstance(value, DataRate):
            return value
        if isinstance(value, bool):
            raise InvalidConfig(f"Invalid data rate: {value!r}")
        if isinstance(value, (int, float)):
            return cls(value)
        if isinstance(value, str):
            match = _RATE_PATTERN.match(value)
            if match is None:
                raise InvalidConfig(f"Invalid data rate: {value!r}")
            multiplier = _PREFIXES[match.group("prefix").lower()]
            if match.group("unit") == "B":
                multiplier *= 8
            bit_rate = float(match.group("value")) * multiplier
            return cls(int(bit_rate) if bit_rate.is_integer() else bit_rate)
        raise InvalidConfig(f"Invalid data rate: {value!r}")

    def transmission_ticks(
        self, size: int, resolution: TimeResolution = TimeResolution.NS
    ) -> int:
        """Time to emit ``size`` bytes at this rate, in whole time units.

        The result is rounded up and is never less than one unit.

        Args:
            size: Number of bytes.
            resolution: Size of one time unit.

        Returns:
            Number of time units.

        Raises:
            InvalidConfig: If the rate is not positive or so small that the
                time cannot be represented.
        """
        if self.bit_rate <= 0:
            raise InvalidConfig(
                "Cannot compute a transmission time at a non-positive rate",
                details={"bit_rate": self.bit_rate},
            )
        bits = size * 8 * resolution.ticks_per_second
        if float(self.bit_rate).is_integer():
            ticks = -(-bits // int(self.bit_rate))
        else:
            try:
                ticks = math.ceil(bits / self.bit_rate)
            except OverflowError as error:
                raise InvalidConfig(
                    "Transmission time is too large to represent",
                    details={"bit_rate": self.bit_rate, "size": size},
                ) from error
        return max(ticks, 1)

    def transmission_time(
        self, size: int, resolution: TimeResolution = TimeResolution.NS
    ) -> float:
        """Time to emit ``size`` bytes at this rate, in seconds.

        Args:
            size: Number of bytes.
            resolution: Rounding granularity.

        Returns:
            Transmission time in seconds, a whole number of time units.
        """
        return self.transmission_ticks(size, resolution) / resolution.ticks_per_second

    def __str__(self) -> str:
        for prefix, multiplier in (("G", 1e9), ("M", 1e6), ("k", 1e3)):
            if self.bit_rate >= multiplier:
                return f"{self.bit_rate / multiplier:g}{prefix}bps"
        return f"{self.bit_rate:g}bps"
