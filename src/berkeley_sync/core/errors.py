"""Failures scoped to a single peer connection.

The coordinator catches :class:`PeerError` around every peer operation and
evicts the offending peer; none of these ever stop a cycle or the process.
"""

from typing import Optional


class PeerError(Exception):
    """Base class for peer-scoped failures."""

    def __init__(self, message: str, peer: Optional[str] = None) -> None:
        super().__init__(message)
        self.peer = peer

    def __str__(self) -> str:
        message = super().__str__()
        if self.peer:
            return f"{self.peer}: {message}"
        return message


class HandshakeError(PeerError):
    """Identification line missing, malformed or not received in time."""


class TransportError(PeerError):
    """Read/write failure, closed stream or I/O timeout on an established peer."""


class ProtocolError(PeerError):
    """A line that does not match the message expected at this point."""


class PeerStateError(PeerError):
    """Operation issued while the connection is in the wrong state."""


__all__ = [
    "PeerError",
    "HandshakeError",
    "TransportError",
    "ProtocolError",
    "PeerStateError",
]
