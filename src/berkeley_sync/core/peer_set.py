import threading
from typing import Iterator, Tuple

from berkeley_sync.core.peer_connection import PeerConnection


class PeerSet:
    """
    Registered peers in registration order.

    Copy-on-write: every mutation swaps in a new tuple, so a snapshot taken
    at the start of a cycle is never affected by peers joining or leaving
    while the cycle runs.
    """

    def __init__(self):
        self._peers: Tuple[PeerConnection, ...] = ()
        self._lock = threading.Lock()

    def add(self, peer: PeerConnection) -> None:
        with self._lock:
            if peer not in self._peers:
                self._peers = self._peers + (peer,)

    def remove(self, peer: PeerConnection) -> bool:
        """Drop a peer; returns False if it was not registered."""
        with self._lock:
            if peer not in self._peers:
                return False
            self._peers = tuple(p for p in self._peers if p is not peer)
            return True

    def snapshot(self) -> Tuple[PeerConnection, ...]:
        return self._peers

    def close_all(self) -> Tuple[PeerConnection, ...]:
        """Empty the set and close every member; returns the closed peers."""
        with self._lock:
            peers, self._peers = self._peers, ()
        for peer in peers:
            peer.close()
        return peers

    def __contains__(self, peer) -> bool:
        return peer in self._peers

    def __iter__(self) -> Iterator[PeerConnection]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._peers)

    def __bool__(self) -> bool:
        return bool(self._peers)
