"""Defaults for the coordinator and peer processes (overridable from the CLI)."""

# Coordinator
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
SYNC_INTERVAL = 10.0  # seconds between cycles
IO_TIMEOUT = 4.0  # seconds per handshake read / poll round-trip / adjust write
INITIAL_OFFSET_MS = 0  # coordinator logical clock offset
INITIAL_DELAY = 3.0  # seconds before the first cycle

# Peer
PEER_CONNECT_HOST = "127.0.0.1"
PEER_RANDOM_OFFSET_MS = 1000  # peers start within +/- this offset unless told otherwise

# Diagnostics HTTP API (disabled unless a port is given)
STATUS_HOST = "127.0.0.1"

# Logging
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
