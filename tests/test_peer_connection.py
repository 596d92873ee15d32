import asyncio

import pytest

from berkeley_sync.core.errors import (
    HandshakeError,
    PeerStateError,
    ProtocolError,
    TransportError,
)
from berkeley_sync.core.peer_connection import PeerConnection, PeerState


class _FakeWriter:
    def __init__(self, fail_writes: bool = False):
        self.buffer = bytearray()
        self.closed = False
        self.fail_writes = fail_writes

    def get_extra_info(self, name, default=None):
        return ("10.0.0.7", 40123) if name == "peername" else default

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise ConnectionResetError("connection reset by peer")
        self.buffer.extend(data)

    async def drain(self) -> None:
        return None

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    def lines(self):
        return self.buffer.decode().splitlines()


def _connection(incoming: bytes = b"", eof: bool = False, fail_writes: bool = False, timeout: float = 0.2):
    reader = asyncio.StreamReader()
    if incoming:
        reader.feed_data(incoming)
    if eof:
        reader.feed_eof()
    writer = _FakeWriter(fail_writes=fail_writes)
    return PeerConnection(reader, writer, io_timeout=timeout), writer


def test_handshake_then_offset_round_trip() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO alpha\nOFFSET -500\n")
        assert peer.state is PeerState.CONNECTED
        assert peer.identity == "unknown"

        assert await peer.handshake() == "alpha"
        assert peer.state is PeerState.IDENTIFIED
        assert peer.name == "alpha@10.0.0.7:40123"

        # the reported delta is taken verbatim, whatever the server time was
        assert await peer.request_offset(1000) == -500
        assert writer.lines() == ["TIME_REQUEST 1000"]

    asyncio.run(scenario())


def test_send_adjust_writes_one_line() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO beta\r\n")
        await peer.handshake()
        await peer.send_adjust(-167)
        await peer.send_adjust(133)
        assert writer.lines() == ["ADJUST -167", "ADJUST 133"]
        assert peer.state is PeerState.IDENTIFIED

    asyncio.run(scenario())


@pytest.mark.parametrize("incoming,eof", [(b"HI alpha\n", False), (b"HELLO \n", False), (b"", True)])
def test_bad_handshake_kills_connection(incoming: bytes, eof: bool) -> None:
    async def scenario():
        peer, writer = _connection(incoming, eof=eof)
        with pytest.raises(HandshakeError):
            await peer.handshake()
        assert peer.state is PeerState.DEAD
        assert writer.closed

    asyncio.run(scenario())


def test_handshake_times_out() -> None:
    async def scenario():
        peer, writer = _connection(timeout=0.05)
        with pytest.raises(HandshakeError):
            await peer.handshake()
        assert peer.state is PeerState.DEAD

    asyncio.run(scenario())


def test_offset_request_before_handshake_is_refused() -> None:
    async def scenario():
        peer, writer = _connection(b"OFFSET 1\n")
        with pytest.raises(PeerStateError):
            await peer.request_offset(10)
        assert writer.lines() == []
        assert peer.state is PeerState.CONNECTED

    asyncio.run(scenario())


def test_malformed_reply_is_protocol_error() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO gamma\nOFFSET soon\n")
        await peer.handshake()
        with pytest.raises(ProtocolError) as info:
            await peer.request_offset(1)
        assert info.value.peer == "gamma@10.0.0.7:40123"
        assert peer.state is PeerState.DEAD
        assert writer.closed

    asyncio.run(scenario())


def test_missing_reply_is_transport_error() -> None:
    async def scenario():
        peer, _ = _connection(b"HELLO delta\n", timeout=0.05)
        await peer.handshake()
        with pytest.raises(TransportError):
            await peer.request_offset(1)
        assert peer.state is PeerState.DEAD

    asyncio.run(scenario())


def test_peer_hangup_is_transport_error() -> None:
    async def scenario():
        peer, _ = _connection(b"HELLO eps\n", eof=True)
        await peer.handshake()
        with pytest.raises(TransportError):
            await peer.request_offset(1)

    asyncio.run(scenario())


def test_unterminated_line_at_eof_is_transport_error() -> None:
    async def scenario():
        peer, _ = _connection(b"HELLO theta\nOFFSET 5", eof=True)
        await peer.handshake()
        with pytest.raises(TransportError):
            await peer.request_offset(1)
        assert peer.state is PeerState.DEAD

        half_hello, _ = _connection(b"HELLO iota", eof=True)
        with pytest.raises(HandshakeError):
            await half_hello.handshake()

    asyncio.run(scenario())


def test_closed_during_handshake_stays_dead() -> None:
    async def scenario():
        reader = asyncio.StreamReader()
        writer = _FakeWriter()
        peer = PeerConnection(reader, writer, io_timeout=1.0)
        task = asyncio.create_task(peer.handshake())
        await asyncio.sleep(0)

        peer.close()
        reader.feed_data(b"HELLO late\n")

        with pytest.raises(HandshakeError):
            await task
        assert peer.state is PeerState.DEAD
        assert peer.identity == "unknown"

    asyncio.run(scenario())


def test_closed_during_poll_discards_reply() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO kappa\n", timeout=1.0)
        await peer.handshake()
        task = asyncio.create_task(peer.request_offset(1))
        await asyncio.sleep(0)

        peer.close()
        peer._reader.feed_data(b"OFFSET 12\n")

        with pytest.raises(TransportError):
            await task
        assert peer.state is PeerState.DEAD

    asyncio.run(scenario())


def test_write_failure_kills_connection() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO zeta\n", fail_writes=True)
        await peer.handshake()
        with pytest.raises(TransportError):
            await peer.send_adjust(5)
        assert peer.state is PeerState.DEAD

        # dead connections stay dead
        with pytest.raises(PeerStateError):
            await peer.send_adjust(5)

    asyncio.run(scenario())


def test_close_is_idempotent() -> None:
    async def scenario():
        peer, writer = _connection(b"HELLO eta\n")
        await peer.handshake()
        peer.close()
        peer.close()
        await peer.wait_closed()
        assert writer.closed
        assert not peer.is_alive

    asyncio.run(scenario())
