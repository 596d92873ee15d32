import asyncio
import logging
from enum import Enum

from berkeley_sync.core import protocol
from berkeley_sync.core.errors import (
    HandshakeError,
    PeerError,
    PeerStateError,
    ProtocolError,
    TransportError,
)

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "unknown"


class PeerState(str, Enum):
    CONNECTED = "connected"
    IDENTIFIED = "identified"
    DEAD = "dead"


def format_address(peername) -> str:
    if not peername:
        return "?:?"
    host, port = peername[0], peername[1]
    return f"{host}:{port}"


class PeerConnection:
    """
    One peer's line-based session as seen from the coordinator.

    The connection starts CONNECTED, becomes IDENTIFIED once the peer has sent
    its ``HELLO`` line and ends DEAD on the first I/O or protocol failure.
    A dead connection is never revived; the peer has to reconnect.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, io_timeout: float = 4.0):
        self._reader = reader
        self._writer = writer
        self.io_timeout = io_timeout
        self.identity = UNKNOWN_IDENTITY
        self.remote_address = format_address(writer.get_extra_info("peername"))
        self.state = PeerState.CONNECTED

    @property
    def name(self) -> str:
        return f"{self.identity}@{self.remote_address}"

    @property
    def is_alive(self) -> bool:
        return self.state is not PeerState.DEAD

    async def handshake(self) -> str:
        """Wait for the identification line; returns the peer identity."""
        self._require(PeerState.CONNECTED, "handshake")
        try:
            line = await self._read_line()
            identity = protocol.parse_hello(line)
        except PeerError as exc:
            self.close()
            raise HandshakeError(f"handshake failed: {exc}", peer=self.name) from exc

        if not self.is_alive:
            raise HandshakeError("connection closed during handshake", peer=self.name)
        self.identity = identity
        self.state = PeerState.IDENTIFIED
        return self.identity

    async def request_offset(self, server_time: int) -> int:
        """
        Poll the peer with the cycle reference time and return the delta it
        reports (peer logical time minus ``server_time``). Single shot.
        """
        self._require(PeerState.IDENTIFIED, "request_offset")
        await self._write(protocol.format_time_request(server_time))
        line = await self._read_line()
        try:
            return protocol.parse_offset(line)
        except ProtocolError as exc:
            self.close()
            exc.peer = self.name
            raise

    async def send_adjust(self, delta: int) -> None:
        """Push an adjustment; no reply is expected."""
        self._require(PeerState.IDENTIFIED, "send_adjust")
        await self._write(protocol.format_adjust(delta))

    def close(self) -> None:
        if self.state is PeerState.DEAD:
            return
        self.state = PeerState.DEAD
        try:
            self._writer.close()
        except RuntimeError as exc:  # event loop already closed
            logger.debug(f"Closing {self.name} failed: {exc}")

    async def wait_closed(self) -> None:
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    # --- I/O helpers ---
    def _require(self, expected: PeerState, operation: str) -> None:
        if self.state is not expected:
            raise PeerStateError(
                f"{operation} needs state {expected.value}, connection is {self.state.value}",
                peer=self.name,
            )

    async def _read_line(self) -> str:
        try:
            raw = await asyncio.wait_for(self._reader.readline(), timeout=self.io_timeout)
        except asyncio.TimeoutError as exc:
            self.close()
            raise TransportError(f"no line within {self.io_timeout}s", peer=self.name) from exc
        except ValueError as exc:
            # StreamReader line limit exceeded
            self.close()
            raise ProtocolError(f"line too long: {exc}", peer=self.name) from exc
        except OSError as exc:
            self.close()
            raise TransportError(f"read failed: {exc}", peer=self.name) from exc

        if self.state is PeerState.DEAD:
            # closed locally while the read was pending; buffered data is discarded
            raise TransportError("connection closed while reading", peer=self.name)
        if not raw:
            self.close()
            raise TransportError("connection closed by peer", peer=self.name)
        if not raw.endswith(b"\n"):
            self.close()
            raise TransportError(f"connection closed mid-line: {raw!r}", peer=self.name)

        try:
            line = protocol.decode_line(raw)
        except ProtocolError as exc:
            self.close()
            exc.peer = self.name
            raise
        logger.debug(f"<- {self.name}: {line}")
        return line

    async def _write(self, data: bytes) -> None:
        if self._writer.is_closing():
            self.close()
            raise TransportError("connection is closed", peer=self.name)
        try:
            self._writer.write(data)
            await asyncio.wait_for(self._writer.drain(), timeout=self.io_timeout)
        except asyncio.TimeoutError as exc:
            self.close()
            raise TransportError(f"write not flushed within {self.io_timeout}s", peer=self.name) from exc
        except OSError as exc:
            self.close()
            raise TransportError(f"write failed: {exc}", peer=self.name) from exc
        logger.debug(f"-> {self.name}: {data.decode(protocol.ENCODING).rstrip()}")

    def __repr__(self) -> str:
        return f"PeerConnection({self.name}, {self.state.value})"
