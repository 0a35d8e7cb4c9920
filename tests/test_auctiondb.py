import threading

import pytest

from auction_notify.chain.types import Outpoint
from auction_notify.index import layout
from auction_notify.index.auctiondb import AuctionDB, IndexKind, MutationResult
from auction_notify.index.store import IndexStore, StoreError


def _op(n: int, index: int = 0) -> Outpoint:
    return Outpoint(bytes([n]) * 32, index)


def test_single_bid_is_counted_and_listed(adb):
    assert adb.add_member("foo", IndexKind.BID, _op(1)) is MutationResult.OK
    assert adb.count("foo", IndexKind.BID) == 1
    assert adb.list_members("foo", IndexKind.BID) == [_op(1)]


def test_five_bids_on_one_name(adb):
    ops = [_op(10 + i, i) for i in range(5)]
    for op in ops:
        assert adb.add_bid("wert", op)

    assert adb.get_bid_count("wert") == 5
    listed = adb.get_bids("wert")
    assert sorted(listed) == sorted(ops)
    assert len(set(listed)) == 5


def test_reveal_counts_are_independent_per_name(adb):
    names = ["one", "two", "three", "four"]
    for i, name in enumerate(names):
        assert adb.add_reveal(name, _op(i + 1))

    for name in names:
        assert adb.get_reveal_count(name) == 1
        assert adb.get_bid_count(name) == 0


def test_count_matches_members_over_mixed_sequence(adb):
    ops = [_op(i) for i in range(1, 7)]
    for op in ops:
        adb.add_bid("mix", op)
    adb.remove_bid("mix", ops[1])
    adb.remove_bid("mix", ops[4])
    adb.add_bid("mix", ops[1])

    assert adb.get_bid_count("mix") == len(adb.get_bids("mix")) == 5


def test_add_then_remove_membership(adb):
    op = _op(3, 2)
    adb.add_bid("alice", op)
    assert adb.has_bid("alice", op)

    assert adb.remove_bid("alice", op) is MutationResult.OK
    assert not adb.has_bid("alice", op)
    assert adb.get_bid_count("alice") == 0


def test_remove_from_empty_or_non_member_is_not_found(adb):
    assert adb.remove_bid("nobody", _op(1)) is MutationResult.NOT_FOUND
    assert adb.get_bid_count("nobody") == 0

    adb.add_bid("somebody", _op(1))
    result = adb.remove_bid("somebody", _op(2))
    assert result is MutationResult.NOT_FOUND
    assert not result
    assert adb.get_bid_count("somebody") == 1


def test_adding_existing_member_is_idempotent(adb):
    assert adb.add_bid("dup", _op(5))
    assert adb.add_bid("dup", _op(5)) is MutationResult.OK
    assert adb.get_bid_count("dup") == 1


def test_names_are_prefix_isolated(adb):
    adb.add_bid("alice", _op(1))
    adb.add_bid("bob", _op(2))
    adb.add_bid("alice", _op(3))
    adb.add_bid("ab", _op(4))
    adb.add_bid("abc", _op(5))

    assert adb.get_bids("bob") == [_op(2)]
    assert sorted(adb.get_bids("alice")) == [_op(1), _op(3)]
    assert adb.get_bids("ab") == [_op(4)]
    assert adb.get_bids("abc") == [_op(5)]


def test_reveal_link_is_recorded_and_removed(adb):
    bid = _op(1)
    reveal = _op(2)
    adb.add_bid("linked", bid)
    adb.add_reveal("linked", reveal, link=bid)
    assert adb.revealed_bids("linked") == {bid}

    adb.remove_reveal("linked", reveal, link=bid)
    assert adb.revealed_bids("linked") == set()


def test_tip_round_trip(adb):
    assert adb.get_tip() is None
    assert adb.put_tip(b"\xaa" * 32)
    assert adb.get_tip() == b"\xaa" * 32
    with pytest.raises(ValueError):
        adb.put_tip(b"\xaa")


def test_wipe_deletes_auction_records_only(adb):
    adb.add_bid("foo", _op(1))
    adb.add_reveal("foo", _op(2), link=_op(1))
    adb.add_bid("bar", _op(3))
    adb.put_tip(b"\x01" * 32)

    # 2 bid members, 2 bid counters, 1 reveal member, 1 reveal counter, 1 link.
    assert adb.wipe() == 7
    assert adb.wipe() == 0

    assert adb.get_bids("foo") == []
    assert adb.get_bid_count("foo") == 0
    assert adb.get_tip() == b"\x01" * 32
    assert adb.store.get(layout.V) is not None
    assert adb.store.get(layout.N) == b"regtest"


def test_failed_write_reports_failure_and_keeps_invariant(adb, monkeypatch):
    adb.add_bid("flaky", _op(1))
    monkeypatch.setattr(adb.store, "_write", lambda ops: False)

    assert adb.add_bid("flaky", _op(2)) is MutationResult.FAILED
    monkeypatch.undo()

    assert adb.get_bid_count("flaky") == 1
    assert adb.get_bids("flaky") == [_op(1)]


def test_open_rejects_network_mismatch(tmp_path):
    location = str(tmp_path / "idx")
    with AuctionDB(IndexStore(location), network="main") as db:
        db.add_bid("foo", _op(1))

    other = AuctionDB(IndexStore(location), network="testnet")
    with pytest.raises(StoreError):
        other.open()
    assert not other.store.is_open

    with AuctionDB(IndexStore(location), network="main") as db:
        assert db.get_bid_count("foo") == 1


def test_open_rejects_version_mismatch(tmp_path):
    location = str(tmp_path / "idx")
    with IndexStore(location) as store:
        store.batch().put(layout.V, layout.encode_version(9)).put(layout.N, b"main").commit()

    with pytest.raises(StoreError):
        AuctionDB(IndexStore(location), network="main").open()


def test_concurrent_adds_on_one_name_keep_count_consistent(adb):
    workers, per_worker = 8, 25

    def add_many(n: int) -> None:
        for i in range(per_worker):
            assert adb.add_bid("busy", _op(n + 1, i))

    threads = [threading.Thread(target=add_many, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert adb.get_bid_count("busy") == len(adb.get_bids("busy")) == workers * per_worker


def test_wipe_waits_for_in_flight_add(adb, monkeypatch):
    adb.add_bid("foo", _op(1))
    real_count = adb.count
    wiper = threading.Thread(target=adb.wipe)
    started = []

    def count_then_wipe(name, kind):
        value = real_count(name, kind)
        if not started:
            started.append(True)
            wiper.start()
            # Give the wipe every chance to run between this read and the commit.
            wiper.join(timeout=0.2)
        return value

    monkeypatch.setattr(adb, "count", count_then_wipe)
    assert adb.add_bid("foo", _op(2))
    wiper.join(timeout=5)
    monkeypatch.undo()

    assert not wiper.is_alive()
    # The wipe ran after the add committed, so everything is gone.
    assert adb.get_bid_count("foo") == len(adb.get_bids("foo")) == 0


def test_close_waits_for_in_flight_commit():
    store = IndexStore(memory=True)
    store.open()
    entered = threading.Event()
    release = threading.Event()
    order = []
    real_write = store._write

    def slow_write(ops):
        with store.lock:
            entered.set()
            release.wait(timeout=5)
            ok = real_write(ops)
            order.append("commit")
            return ok

    store._write = slow_write
    results = []
    writer = threading.Thread(target=lambda: results.append(store.batch().put(b"k", b"v").commit()))
    writer.start()
    assert entered.wait(timeout=5)

    def close():
        store.close()
        order.append("close")

    closer = threading.Thread(target=close)
    closer.start()
    closer.join(timeout=0.2)
    assert closer.is_alive()

    release.set()
    writer.join(timeout=5)
    closer.join(timeout=5)

    assert results == [True]
    assert order == ["commit", "close"]
    assert not store.is_open


def test_wipe_scans_only_auction_families(adb, monkeypatch):
    adb.add_bid("foo", _op(1))
    adb.put_tip(b"\x01" * 32)
    scanned = []
    real_scan = adb.store._scan

    def recording_scan(gte, lte):
        rows = real_scan(gte, lte)
        scanned.extend(k for k, _ in rows)
        return rows

    monkeypatch.setattr(adb.store, "_scan", recording_scan)
    assert adb.wipe() == 2

    assert scanned
    assert all(k[:1] in layout.AUCTION_TAGS for k in scanned)
    assert adb.get_tip() == b"\x01" * 32
