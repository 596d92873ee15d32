"""Peer side of the Berkeley protocol.

A peer connects to the coordinator, introduces itself with ``HELLO`` and then
only reacts: it answers every ``TIME_REQUEST`` with its own offset against the
coordinator's time and applies every ``ADJUST`` to its logical clock.
"""

import asyncio
import logging
from typing import Optional

from berkeley_sync.core import protocol
from berkeley_sync.core.errors import ProtocolError
from berkeley_sync.time.logical_clock import LogicalClock

logger = logging.getLogger(__name__)


class PeerClient:
    def __init__(
        self,
        host: str,
        port: int,
        client_id: str,
        initial_offset: int = 0,
        clock: Optional[LogicalClock] = None,
    ):
        self.host = host
        self.port = port
        self.client_id = client_id
        self.clock = clock or LogicalClock(initial_offset)
        self.requests_answered = 0
        self.adjustments_applied = 0

    async def run(self) -> None:
        """Serve the coordinator until it closes the connection."""
        logger.info(f"[{self.client_id}] Connecting to {self.host}:{self.port} | {self.clock!r}")
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            writer.write(protocol.format_hello(self.client_id))
            await writer.drain()

            while True:
                raw = await reader.readline()
                if not raw.endswith(b"\n"):
                    # EOF, possibly after an unterminated fragment that is not a message
                    logger.info(f"[{self.client_id}] Coordinator closed the connection")
                    return
                try:
                    line = protocol.decode_line(raw)
                except ProtocolError as e:
                    logger.warning(f"[{self.client_id}] Ignoring undecodable line: {e}")
                    continue
                reply = self.handle_line(line)
                if reply is not None:
                    writer.write(reply)
                    await writer.drain()
        finally:
            writer.close()

    def handle_line(self, line: str) -> Optional[bytes]:
        """Apply one coordinator message; returns the reply line, if any."""
        try:
            if line.startswith(protocol.TIME_REQUEST + " "):
                return self._on_time_request(protocol.parse_time_request(line))
            if line.startswith(protocol.ADJUST + " "):
                self._on_adjust(protocol.parse_adjust(line))
                return None
        except ProtocolError as e:
            logger.warning(f"[{self.client_id}] Ignoring malformed message: {e}")
            return None

        logger.debug(f"[{self.client_id}] Ignoring unknown message: {line!r}")
        return None

    def _on_time_request(self, server_time: int) -> bytes:
        delta = self.clock.now() - server_time
        self.requests_answered += 1
        logger.info(f"[{self.client_id}] Time requested. My time={self.clock.pretty_now()}, delta={delta:+d} ms")
        return protocol.format_offset(delta)

    def _on_adjust(self, adjustment: int) -> None:
        self.clock.adjust(adjustment)
        self.adjustments_applied += 1
        logger.info(
            f"[{self.client_id}] Adjustment applied: {adjustment:+d} ms | "
            f"now {self.clock.pretty_now()} | offset={self.clock.offset():+d} ms"
        )
