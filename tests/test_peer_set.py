from berkeley_sync.core.peer_set import PeerSet


class _Peer:
    def __init__(self, name: str):
        self.name = name
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_keeps_registration_order_and_ignores_duplicates() -> None:
    peers = PeerSet()
    a, b, c = _Peer("a"), _Peer("b"), _Peer("c")
    for p in (b, a, c, a):
        peers.add(p)
    assert [p.name for p in peers] == ["b", "a", "c"]
    assert len(peers) == 3


def test_snapshot_unaffected_by_later_changes() -> None:
    peers = PeerSet()
    a, b, c = _Peer("a"), _Peer("b"), _Peer("c")
    peers.add(a)
    peers.add(b)

    seen = []
    for peer in peers:
        seen.append(peer.name)
        peers.add(c)
        peers.remove(b)

    assert seen == ["a", "b"]
    assert [p.name for p in peers] == ["a", "c"]


def test_remove_missing_peer_is_a_no_op() -> None:
    peers = PeerSet()
    assert not peers.remove(_Peer("ghost"))
    assert not peers


def test_close_all_empties_and_closes() -> None:
    peers = PeerSet()
    members = [_Peer("a"), _Peer("b")]
    for p in members:
        peers.add(p)
    peers.close_all()
    assert len(peers) == 0
    assert all(p.closed for p in members)
