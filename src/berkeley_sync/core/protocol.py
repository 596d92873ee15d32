"""Line-oriented wire format shared by the coordinator and its peers.

Every message is a single UTF-8 line of the form ``KEYWORD <argument>``::

    peer        -> coordinator   HELLO <identity>
    coordinator -> peer          TIME_REQUEST <serverTimeMillis>
    peer        -> coordinator   OFFSET <deltaMillis>
    coordinator -> peer          ADJUST <deltaMillis>
"""

import re

from berkeley_sync.core.errors import ProtocolError

HELLO = "HELLO"
TIME_REQUEST = "TIME_REQUEST"
OFFSET = "OFFSET"
ADJUST = "ADJUST"

ENCODING = "utf-8"

_INTEGER = re.compile(r"[+-]?[0-9]+")


def encode_line(keyword: str, argument) -> bytes:
    return f"{keyword} {argument}\n".encode(ENCODING)


def decode_line(raw: bytes) -> str:
    """Decode one received line and strip its terminator."""
    try:
        return raw.decode(ENCODING).rstrip("\r\n")
    except UnicodeDecodeError as exc:
        raise ProtocolError(f"line is not valid {ENCODING}: {raw!r}") from exc


def _argument(line: str, keyword: str) -> str:
    prefix = keyword + " "
    if not line.startswith(prefix):
        raise ProtocolError(f"expected {keyword}, got {line!r}")
    return line[len(prefix):].strip()


def _integer_argument(line: str, keyword: str) -> int:
    value = _argument(line, keyword)
    if not _INTEGER.fullmatch(value):
        raise ProtocolError(f"{keyword} carries a non-integer value: {value!r}")
    return int(value)


# --- coordinator -> peer ---
def format_time_request(server_time: int) -> bytes:
    return encode_line(TIME_REQUEST, int(server_time))


def format_adjust(delta: int) -> bytes:
    return encode_line(ADJUST, int(delta))


def parse_time_request(line: str) -> int:
    return _integer_argument(line, TIME_REQUEST)


def parse_adjust(line: str) -> int:
    return _integer_argument(line, ADJUST)


# --- peer -> coordinator ---
def format_hello(identity: str) -> bytes:
    identity = identity.strip()
    if not identity or "\n" in identity:
        raise ValueError(f"invalid peer identity: {identity!r}")
    return encode_line(HELLO, identity)


def format_offset(delta: int) -> bytes:
    return encode_line(OFFSET, int(delta))


def parse_hello(line: str) -> str:
    identity = _argument(line, HELLO)
    if not identity:
        raise ProtocolError("HELLO carries an empty identity")
    return identity


def parse_offset(line: str) -> int:
    return _integer_argument(line, OFFSET)
