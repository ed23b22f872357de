"""Built-in scenarios.

``tcp_variants`` runs a TCP flow and then a UDP flow into two sinks, with a
rate increase on the UDP flow at 30 s. ``first`` sends a single 1024-byte
packet from each of two clients in separate windows.
"""

from typing import Any, Callable, Dict, List

from pacing_sim.core.exceptions import InvalidConfig
from pacing_sim.scenario.config import ScenarioConfig


def tcp_variants() -> Dict[str, Any]:
    """Two flows over 10 Mbps links, the second one sped up mid-run."""
    return {
        "name": "tcp_variants",
        "duration": 60.0,
        "links": [
            {"source": "n0", "destination": "n2", "capacity": "10Mbps", "delay": 0.002, "buffer_size": 64000},
            {"source": "n1", "destination": "n3", "capacity": "10Mbps", "delay": 0.002, "buffer_size": 64000},
        ],
        "sinks": [
            {"node": "n2", "port": 8080, "start": 1.0, "stop": 20.0},
            {"node": "n3", "port": 8081, "start": 1.0, "stop": 60.0},
        ],
        "flows": [
            {
                "name": "tcp",
                "source": "n0",
                "destination": "n2",
                "port": 8080,
                "protocol": "tcp",
                "packet_size": 1040,
                "max_packets": 1000,
                "data_rate": "2Mbps",
                "start": 1.0,
                "stop": 20.0,
            },
            {
                "name": "udp",
                "source": "n1",
                "destination": "n3",
                "port": 8081,
                "protocol": "udp",
                "packet_size": 1040,
                "max_packets": 1000,
                "data_rate": "5Mbps",
                "start": 20.0,
                "stop": 60.0,
                "rate_change": {"at": 30.0, "data_rate": "10Mbps"},
            },
        ],
    }


def first() -> Dict[str, Any]:
    """Two single-packet clients sending to one-way sinks on two ports of one host."""
    return {
        "name": "first",
        "duration": 10.0,
        "links": [
            {"source": "n0", "destination": "n1", "capacity": "5Mbps", "delay": 0.0},
        ],
        "sinks": [
            {"node": "n1", "port": 9, "start": 2.0, "stop": 4.0},
            {"node": "n1", "port": 12, "start": 6.0, "stop": 8.0},
        ],
        "flows": [
            {
                "name": "client1",
                "source": "n0",
                "destination": "n1",
                "port": 9,
                "packet_size": 1024,
                "max_packets": 1,
                "data_rate": "8192bps",
                "start": 2.0,
                "stop": 4.0,
            },
            {
                "name": "client2",
                "source": "n0",
                "destination": "n1",
                "port": 12,
                "packet_size": 1024,
                "max_packets": 1,
                "data_rate": "8192bps",
                "start": 6.0,
                "stop": 8.0,
            },
        ],
    }


PRESETS: Dict[str, Callable[[], Dict[str, Any]]] = {
    "tcp_variants": tcp_variants,
    "first": first,
}


def preset_names() -> List[str]:
    return sorted(PRESETS)


def get_preset(name: str) -> ScenarioConfig:
    """Build the named preset.

    Raises:
        InvalidConfig: If no preset has that name.
    """
    if name not in PRESETS:
        raise InvalidConfig(f"Unknown scenario preset: {name}", details={"available": preset_names()})
    return ScenarioConfig.from_dict(PRESETS[name]())
