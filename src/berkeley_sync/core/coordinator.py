import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from berkeley_sync import config
from berkeley_sync.core.berkeley import compute_adjustments, compute_average
from berkeley_sync.core.errors import HandshakeError, PeerError
from berkeley_sync.core.peer_connection import PeerConnection
from berkeley_sync.core.peer_set import PeerSet
from berkeley_sync.time.logical_clock import LogicalClock

logger = logging.getLogger(__name__)


class CycleStatus(str, Enum):
    SKIPPED = "skipped"  # no peers registered
    ABORTED = "aborted"  # every poll failed
    COMPLETED = "completed"


@dataclass
class CycleRecord:
    """What happened during one synchronization cycle (kept in memory only)."""
    number: int
    server_time: Optional[int] = None
    deltas: Dict[str, int] = field(default_factory=dict)
    average: Optional[int] = None
    adjustments: Dict[str, int] = field(default_factory=dict)
    evicted: List[str] = field(default_factory=list)
    status: CycleStatus = CycleStatus.SKIPPED

    def to_dict(self) -> Dict:
        return {
            "number": self.number,
            "status": self.status.value,
            "server_time": self.server_time,
            "deltas": dict(self.deltas),
            "average": self.average,
            "adjustments": dict(self.adjustments),
            "evicted": list(self.evicted),
        }


class Coordinator:
    """
    Berkeley time master.

    Accepts peers on a TCP port, and every ``sync_interval`` seconds polls
    them for their offset against one reference instant, averages the
    offsets together with its own (always 0) and pushes each peer the
    correction that brings it onto that average before correcting itself.
    A failing peer is evicted on the spot; it never stops a cycle.
    """

    def __init__(
        self,
        host: str = config.DEFAULT_HOST,
        port: int = config.DEFAULT_PORT,
        sync_interval: float = config.SYNC_INTERVAL,
        io_timeout: float = config.IO_TIMEOUT,
        initial_offset: int = config.INITIAL_OFFSET_MS,
        initial_delay: float = config.INITIAL_DELAY,
        clock: Optional[LogicalClock] = None,
    ):
        self.host = host
        self.port = port
        self.sync_interval = sync_interval
        self.io_timeout = io_timeout
        self.initial_delay = initial_delay
        self.clock = clock or LogicalClock(initial_offset)

        self.peers = PeerSet()
        self.cycle_count = 0
        self.last_cycle: Optional[CycleRecord] = None

        self._server: Optional[asyncio.AbstractServer] = None
        self._sync_task: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()
        self._pending: Set[PeerConnection] = set()  # connections still in handshake
        self._stopping = False

    # --- Lifecycle ---
    async def start(self) -> None:
        """Bind the listening socket and schedule the periodic cycle."""
        self._stopping = False
        logger.info(f"Coordinator starting on {self.host}:{self.port} | {self.clock!r}")
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self.port, reuse_address=True
        )
        self.port = self._server.sockets[0].getsockname()[1]
        self._sync_task = asyncio.create_task(self.sync_task())
        logger.info(f"Listening on port {self.port}; waiting for peers")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        try:
            await self._server.serve_forever()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop cycling, stop accepting and close every peer session."""
        self._stopping = True
        if self._sync_task:
            self._sync_task.cancel()
            await asyncio.gather(self._sync_task, return_exceptions=True)
            self._sync_task = None

        server, self._server = self._server, None
        if server is not None:
            server.close()
        closing = list(self._pending) + list(self.peers.close_all())
        for peer in closing:
            peer.close()
        await asyncio.gather(*(peer.wait_closed() for peer in closing))
        if server is not None:
            await server.wait_closed()
        logger.info("Coordinator stopped")

    # --- Acceptor ---
    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        # asyncio runs this as a separate task for every accepted connection
        peer = PeerConnection(reader, writer, io_timeout=self.io_timeout)
        self._pending.add(peer)
        try:
            await peer.handshake()
        except HandshakeError as e:
            logger.warning(f"Rejected connection: {e}")
            return
        finally:
            self._pending.discard(peer)

        if self._stopping or not peer.is_alive:
            peer.close()
            logger.info(f"Not registering {peer.name}: coordinator is stopping")
            return
        self.peers.add(peer)
        logger.info(f"Peer connected: {peer.name} ({len(self.peers)} registered)")

    # --- Synchronization ---
    async def sync_task(self) -> None:
        """
        Fixed-rate schedule: first cycle after ``initial_delay``, then one
        every ``sync_interval``. A cycle that overruns pushes the next tick
        back to when it finished; cycles never run concurrently.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.initial_delay
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            try:
                await self.synchronize_once()
            except Exception as e:
                logger.exception(f"Synchronization cycle {self.cycle_count} failed: {e}")
            next_tick = max(next_tick + self.sync_interval, loop.time())

    async def synchronize_once(self) -> CycleRecord:
        """Run one poll/average/adjust round (serialized with the schedule)."""
        async with self._cycle_lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> CycleRecord:
        self.cycle_count += 1
        record = CycleRecord(number=self.cycle_count)
        self.last_cycle = record
        tag = f"[cycle {record.number}]"

        peers = self.peers.snapshot()
        if not peers:
            logger.info(f"{tag} No peers connected; skipping")
            return record

        logger.info(f"{tag} ===== start =====")
        time_server = self.clock.now()
        record.server_time = time_server
        logger.info(f"{tag} Logical time {self.clock.pretty_now()} | offset={self.clock.offset()} ms")
        logger.info(f"{tag} Requesting offsets from {len(peers)} peer(s)")

        deltas = await self._collect_deltas(peers, time_server, record)
        if not deltas:
            record.status = CycleStatus.ABORTED
            logger.warning(f"{tag} No deltas received; ending cycle without adjusting")
            return record

        average = compute_average(delta for _, delta in deltas)
        record.average = average
        logger.info(f"{tag} Average delta (coordinator counted as 0): {average} ms")

        await self._push_adjustments(deltas, average, record)

        self.clock.adjust(average)
        record.status = CycleStatus.COMPLETED
        logger.info(f"{tag} Coordinator adjusted by {average:+d} ms | now {self.clock.pretty_now()}")
        logger.info(f"{tag} ===== end =====")
        return record

    async def _collect_deltas(
        self, peers, time_server: int, record: CycleRecord
    ) -> List[Tuple[PeerConnection, int]]:
        deltas: List[Tuple[PeerConnection, int]] = []
        for peer in peers:
            try:
                delta = await peer.request_offset(time_server)
            except PeerError as e:
                self._evict(peer, e, record)
                continue
            deltas.append((peer, delta))
            record.deltas[peer.name] = delta
            logger.info(f"[cycle {record.number}]  - {peer.name} delta={delta:+d} ms")
        return deltas

    async def _push_adjustments(
        self, deltas: List[Tuple[PeerConnection, int]], average: int, record: CycleRecord
    ) -> None:
        adjustments = compute_adjustments(average, dict(deltas))
        for peer, adjustment in adjustments.items():
            try:
                await peer.send_adjust(adjustment)
            except PeerError as e:
                self._evict(peer, e, record)
                continue
            record.adjustments[peer.name] = adjustment
            logger.info(f"[cycle {record.number}]  -> {peer.name} adjust {adjustment:+d} ms")

    def _evict(self, peer: PeerConnection, error: PeerError, record: CycleRecord) -> None:
        self.peers.remove(peer)
        peer.close()
        record.evicted.append(peer.name)
        logger.warning(f"[cycle {record.number}]  - Removing peer {peer.name}: {error}")

    # --- Diagnostics ---
    def status(self) -> Dict:
        return {
            "clock": {
                "now": self.clock.now(),
                "pretty": self.clock.pretty_now(),
                "offset": self.clock.offset(),
            },
            "port": self.port,
            "sync_interval": self.sync_interval,
            "io_timeout": self.io_timeout,
            "peers": [
                {"name": p.name, "identity": p.identity, "address": p.remote_address, "state": p.state.value}
                for p in self.peers
            ],
            "cycles": self.cycle_count,
            "last_cycle": self.last_cycle.to_dict() if self.last_cycle else None,
        }
