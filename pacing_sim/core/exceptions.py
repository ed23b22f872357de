"""Exception hierarchy for rate-paced traffic generation.

All errors raised by the package inherit from ``PacingError`` so callers can
catch them with a single handler.

Exception tree::

    PacingError
    ├── InvalidConfig
    ├── InvalidState
    └── TransportError
"""

from typing import Dict, List, Optional


class PacingError(Exception):
    """Base exception for the package.

    Attributes:
        message: Human-readable error description.
        component: Optional name of the generator, socket or flow involved.
        details: Additional contextual data.
    """

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, object]] = None,
    ) -> None:
        self.message = message
        self.component = component
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts: List[str] = []
        if self.component:
            parts.append(f"[{self.component}]")
        parts.append(self.message)
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class InvalidConfig(PacingError):
    """Raised for bad static parameters.

    Examples:
        - Zero packet size
        - Non-positive data rate
        - Malformed scenario file
    """


class InvalidState(PacingError):
    """Raised when an operation is invoked in a lifecycle state that forbids it.

    Examples:
        - Configuring a running generator
        - Starting a generator twice
    """


class TransportError(PacingError):
    """Raised when a socket bind, connect or send fails."""
