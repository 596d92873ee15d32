from .logical_clock import LogicalClock, system_millis
from .api import (
    clock_handler,
    peers_handler,
    status_handler,
    sync_trigger_handler
)

__all__ = [
    # Logical clock
    'LogicalClock',
    'system_millis',

    # Diagnostics API handlers
    'clock_handler',
    'peers_handler',
    'status_handler',
    'sync_trigger_handler'
]
