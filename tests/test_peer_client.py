import asyncio

from berkeley_sync.core.peer_client import PeerClient
from berkeley_sync.time.logical_clock import LogicalClock


def _client(offset: int = 0) -> PeerClient:
    return PeerClient("127.0.0.1", 5000, "peer-1", clock=LogicalClock(offset, reference=lambda: 10_000))


def test_time_request_answered_with_own_delta() -> None:
    client = _client(offset=-500)
    assert client.handle_line("TIME_REQUEST 10000") == b"OFFSET -500\n"
    assert client.handle_line("TIME_REQUEST 9000") == b"OFFSET 500\n"
    assert client.requests_answered == 2


def test_adjust_applied_without_reply() -> None:
    client = _client(offset=200)
    assert client.handle_line("ADJUST -167") is None
    assert client.clock.offset() == 33
    assert client.adjustments_applied == 1


def test_unknown_and_malformed_lines_ignored() -> None:
    client = _client(offset=10)
    assert client.handle_line("PING") is None
    assert client.handle_line("ADJUST lots") is None
    assert client.handle_line("TIME_REQUEST") is None
    assert client.clock.offset() == 10
    assert client.requests_answered == 0


def test_unterminated_line_before_hangup_is_ignored() -> None:
    async def scenario():
        async def coordinator(reader, writer):
            await reader.readline()
            writer.write(b"ADJUST 1\nADJUST 500")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(coordinator, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        client = PeerClient("127.0.0.1", port, "peer-2", clock=LogicalClock(0, reference=lambda: 10_000))
        try:
            await asyncio.wait_for(client.run(), timeout=3.0)
        finally:
            server.close()
            await server.wait_closed()
        return client

    client = asyncio.run(scenario())
    assert client.adjustments_applied == 1
    assert client.clock.offset() == 1
