"""Scenario configuration.

This module defines the dataclasses that describe a scenario (links, sinks,
flows and an optional mid-run rate change per flow) and loads them from
dictionaries or JSON files. Validation errors raise InvalidConfig naming the
offending field.
"""

import json
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pacing_sim.core.data_rate import DataRate
from pacing_sim.core.enums import Protocol, TimeResolution
from pacing_sim.core.exceptions import InvalidConfig

_REQUIRED = object()


def _section(data: Any, section: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidConfig("Expected an object", component=section, details={"value": data})
    return data


def _require(data: Dict[str, Any], key: str, section: str) -> Any:
    if key not in data:
        raise InvalidConfig(f"Missing required field '{key}'", component=section)
    return data[key]


def _number(
    data: Dict[str, Any], key: str, section: str, kind: type = float, default: Any = _REQUIRED
) -> Any:
    """Read a numeric field and convert it to ``kind``.

    A missing or null optional field yields ``default``.

    Raises:
        InvalidConfig: If the field is missing and required, has the wrong
            type, is not finite, or is a fractional integer field.
    """
    if default is _REQUIRED:
        value = _require(data, key, section)
    else:
        value = data.get(key)
        if value is None:
            return default

    message = f"'{key}' must be an integer" if kind is int else f"'{key}' must be a number"
    if isinstance(value, bool):
        raise InvalidConfig(message, component=section, details={key: value})
    try:
        number = kind(value)
    except (TypeError, ValueError, OverflowError) as error:
        raise InvalidConfig(message, component=section, details={key: value}) from error
    if not math.isfinite(number):
        raise InvalidConfig(f"'{key}' must be finite", component=section, details={key: value})
    if kind is int and isinstance(value, float) and number != value:
        raise InvalidConfig(message, component=section, details={key: value})
    return number


def _parse_rate(value: Any, section: str, key: str) -> DataRate:
    try:
        rate = DataRate.parse(value)
    except InvalidConfig as error:
        raise InvalidConfig(error.message, component=section, details={"field": key}) from error
    if rate.bit_rate <= 0:
        raise InvalidConfig(
            f"'{key}' must be positive", component=section, details={key: value}
        )
    return rate


@dataclass
class LinkConfig:
    """A unidirectional point-to-point link.

    Attributes:
        source: Source node ID.
        destination: Destination node ID.
        capacity: Link capacity.
        delay: Propagation delay in seconds.
        buffer_size: Drop-tail buffer in bytes.
    """

    source: str
    destination: str
    capacity: DataRate
    delay: float = 0.0
    buffer_size: float = float("inf")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkConfig":
        section = "link"
        data = _section(data, section)
        source = str(_require(data, "source", section))
        destination = str(_require(data, "destination", section))
        section = f"link {source}->{destination}"
        delay = _number(data, "delay", section, default=0.0)
        if delay < 0:
            raise InvalidConfig("'delay' must not be negative", component=section)
        buffer_size = _number(data, "buffer_size", section, default=float("inf"))
        if buffer_size <= 0:
            raise InvalidConfig("'buffer_size' must be positive", component=section)
        return cls(
            source=source,
            destination=destination,
            capacity=_parse_rate(_require(data, "capacity", section), section, "capacity"),
            delay=delay,
            buffer_size=buffer_size,
        )


@dataclass
class SinkConfig:
    """A packet sink and the window it listens in.

    Attributes:
        node: Node the sink runs on.
        port: Port the sink listens on.
        start: Absolute time the sink opens.
        stop: Absolute time the sink closes; None keeps it open.
    """

    node: str
    port: int
    start: float = 0.0
    stop: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SinkConfig":
        data = _section(data, "sink")
        node = str(_require(data, "node", "sink"))
        port = _number(data, "port", f"sink {node}", int)
        section = f"sink {node}:{port}"
        start = _number(data, "start", section, default=0.0)
        stop = _number(data, "stop", section, default=None)
        if start < 0 or (stop is not None and stop < start):
            raise InvalidConfig(
                "Sink window is invalid", component=section, details={"start": start, "stop": stop}
            )
        return cls(node=node, port=port, start=start, stop=stop)


@dataclass
class RateChange:
    """A one-shot rate change.

    Attributes:
        at: Absolute time of the change.
        data_rate: Rate to switch to.
    """

    at: float
    data_rate: DataRate

    @classmethod
    def from_dict(cls, data: Dict[str, Any], section: str = "rate_change") -> "RateChange":
        data = _section(data, section)
        at = _number(data, "at", section)
        if at < 0:
            raise InvalidConfig("'at' must not be negative", component=section)
        return cls(at=at, data_rate=_parse_rate(_require(data, "data_rate", section), section, "data_rate"))


@dataclass
class FlowConfig:
    """A rate-paced flow from a source node to a sink.

    Attributes:
        name: Unique flow name.
        source: Node the generator runs on.
        destination: Node of the sink.
        port: Port of the sink.
        data_rate: Initial sending rate.
        packet_size: Bytes per packet.
        max_packets: Packet budget; 0 means unbounded.
        protocol: Transport flavour of the socket.
        start: Absolute start time.
        stop: Absolute stop time; None runs until the end.
        rate_change: Optional mid-run rate change.
    """

    name: str
    source: str
    destination: str
    port: int
    data_rate: DataRate
    packet_size: int = 1040
    max_packets: int = 0
    protocol: Protocol = Protocol.UDP
    start: float = 0.0
    stop: Optional[float] = None
    rate_change: Optional[RateChange] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowConfig":
        data = _section(data, "flow")
        name = str(_require(data, "name", "flow"))
        section = f"flow {name}"
        packet_size = _number(data, "packet_size", section, int, default=1040)
        if packet_size <= 0:
            raise InvalidConfig("'packet_size' must be positive", component=section)
        max_packets = _number(data, "max_packets", section, int, default=0)
        if max_packets < 0:
            raise InvalidConfig("'max_packets' must not be negative", component=section)
        try:
            protocol = Protocol(str(data.get("protocol", "udp")).lower())
        except ValueError as error:
            raise InvalidConfig(
                "Unknown protocol", component=section, details={"protocol": data.get("protocol")}
            ) from error
        start = _number(data, "start", section, default=0.0)
        stop = _number(data, "stop", section, default=None)
        if start < 0 or (stop is not None and stop < start):
            raise InvalidConfig(
                "Flow window is invalid", component=section, details={"start": start, "stop": stop}
            )
        rate_change = data.get("rate_change")
        return cls(
            name=name,
            source=str(_require(data, "source", section)),
            destination=str(_require(data, "destination", section)),
            port=_number(data, "port", section, int),
            data_rate=_parse_rate(_require(data, "data_rate", section), section, "data_rate"),
            packet_size=packet_size,
            max_packets=max_packets,
            protocol=protocol,
            start=start,
            stop=stop,
            rate_change=RateChange.from_dict(rate_change, f"{section} rate_change")
            if rate_change is not None
            else None,
        )


@dataclass
class ScenarioConfig:
    """A complete scenario.

    Attributes:
        name: Scenario name, used for output file names.
        duration: Simulated seconds to run.
        resolution: Size of one scheduler time unit.
        links: Links between nodes.
        sinks: Packet sinks.
        flows: Rate-paced flows.
    """

    name: str
    duration: float
    resolution: TimeResolution = TimeResolution.NS
    links: List[LinkConfig] = field(default_factory=list)
    sinks: List[SinkConfig] = field(default_factory=list)
    flows: List[FlowConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioConfig":
        data = _section(data, "scenario")
        name = str(data.get("name", "scenario"))
        duration = _number(data, "duration", name)
        if duration <= 0:
            raise InvalidConfig("'duration' must be positive", component=name)
        try:
            resolution = TimeResolution[str(data.get("resolution", "NS")).upper()]
        except KeyError as error:
            raise InvalidConfig(
                "Unknown time resolution",
                component=name,
                details={"resolution": data.get("resolution")},
            ) from error

        sections = {}
        for key in ("links", "sinks", "flows"):
            items = data.get(key, [])
            if not isinstance(items, list):
                raise InvalidConfig(f"'{key}' must be a list", component=name)
            sections[key] = items

        config = cls(
            name=name,
            duration=duration,
            resolution=resolution,
            links=[LinkConfig.from_dict(item) for item in sections["links"]],
            sinks=[SinkConfig.from_dict(item) for item in sections["sinks"]],
            flows=[FlowConfig.from_dict(item) for item in sections["flows"]],
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check cross references between flows, sinks and links.

        Raises:
            InvalidConfig: On duplicate names or a flow without a link.
        """
        names = [flow.name for flow in self.flows]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise InvalidConfig("Duplicate flow names", component=self.name, details={"flows": duplicates})

        link_pairs = {(link.source, link.destination) for link in self.links}
        for flow in self.flows:
            if (flow.source, flow.destination) not in link_pairs:
                raise InvalidConfig(
                    "No link between flow endpoints",
                    component=f"flow {flow.name}",
                    details={"source": flow.source, "destination": flow.destination},
                )


def load_scenario(filename: str) -> ScenarioConfig:
    """Load a scenario from a JSON file.

    Args:
        filename: Path to the JSON file.

    Returns:
        The validated scenario.

    Raises:
        InvalidConfig: If the file is missing, not JSON, or invalid.
    """
    if not os.path.exists(filename):
        raise InvalidConfig("Scenario file not found", details={"path": filename})
    with open(filename, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as error:
            raise InvalidConfig(f"Scenario file is not valid JSON: {error}", details={"path": filename}) from error
    return ScenarioConfig.from_dict(data)
