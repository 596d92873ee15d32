from .errors import PeerError, HandshakeError, TransportError, ProtocolError, PeerStateError
from .peer_connection import PeerConnection, PeerState
from .peer_set import PeerSet
from .berkeley import compute_average, compute_adjustments, round_half_away_from_zero
from .coordinator import Coordinator, CycleRecord, CycleStatus
from .peer_client import PeerClient

__all__ = [
    'PeerError',
    'HandshakeError',
    'TransportError',
    'ProtocolError',
    'PeerStateError',
    'PeerConnection',
    'PeerState',
    'PeerSet',
    'compute_average',
    'compute_adjustments',
    'round_half_away_from_zero',
    'Coordinator',
    'CycleRecord',
    'CycleStatus',
    'PeerClient',
]
