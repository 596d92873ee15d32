import pytest

from berkeley_sync.core import protocol
from berkeley_sync.core.errors import ProtocolError


def test_formatted_lines() -> None:
    assert protocol.format_hello(" alpha ") == b"HELLO alpha\n"
    assert protocol.format_time_request(1000) == b"TIME_REQUEST 1000\n"
    assert protocol.format_offset(-500) == b"OFFSET -500\n"
    assert protocol.format_adjust(133) == b"ADJUST 133\n"


def test_hello_identity_is_trimmed() -> None:
    assert protocol.parse_hello("HELLO   node-7  ") == "node-7"


@pytest.mark.parametrize("line", ["", "HELLO", "HELLO    ", "HI node", "hello node", "OFFSET 5"])
def test_malformed_hello_rejected(line: str) -> None:
    with pytest.raises(ProtocolError):
        protocol.parse_hello(line)


@pytest.mark.parametrize("line,expected", [("OFFSET -500", -500), ("OFFSET +42", 42), ("OFFSET  7 ", 7)])
def test_offset_parsing(line: str, expected: int) -> None:
    assert protocol.parse_offset(line) == expected


@pytest.mark.parametrize("line", ["OFFSET", "OFFSET abc", "OFFSET 1.5", "OFFSET ", "ADJUST 3", "OFFSET 1 2"])
def test_malformed_offset_rejected(line: str) -> None:
    with pytest.raises(ProtocolError):
        protocol.parse_offset(line)


def test_decode_line_strips_terminators() -> None:
    assert protocol.decode_line(b"ADJUST 5\r\n") == "ADJUST 5"
    with pytest.raises(ProtocolError):
        protocol.decode_line(b"\xff\xfe\n")


def test_invalid_identity_not_sent() -> None:
    with pytest.raises(ValueError):
        protocol.format_hello("   ")
