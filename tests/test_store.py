import pytest

from auction_notify.index.store import IndexStore, StoreError


def test_batch_commit_is_atomic_and_ordered():
    with IndexStore(memory=True) as store:
        ok = store.batch().put(b"b2", b"x").put(b"a1").put(b"b1", b"y").commit()
        assert ok is True

        assert store.get(b"b2") == b"x"
        assert store.get(b"a1") == b""
        assert store.has(b"a1")
        assert store.get(b"zz") is None
        assert store.keys() == [b"a1", b"b1", b"b2"]
        assert store.keys(gte=b"b", lte=b"b\xff") == [b"b1", b"b2"]
        assert store.range(gte=b"b1", lte=b"b1") == [(b"b1", b"y")]

        assert store.batch().delete(b"b1").commit()
        assert store.keys(parse=lambda k: k.decode()) == ["a1", "b2"]


def test_failed_commit_rolls_back(monkeypatch):
    with IndexStore(memory=True) as store:
        store.batch().put(b"k", b"old").commit()

        batch = store.batch().put(b"k", b"new").put(b"other", b"v")
        # A non-bytes value makes sqlite reject the second statement mid-transaction.
        batch._ops[1] = ("put", b"other", object())

        assert batch.commit() is False
        assert store.get(b"k") == b"old"
        assert store.get(b"other") is None


def test_batch_cannot_be_committed_twice():
    with IndexStore(memory=True) as store:
        batch = store.batch().put(b"k")
        assert batch.commit()
        with pytest.raises(RuntimeError):
            batch.commit()


def test_reads_require_open_store():
    store = IndexStore(memory=True)
    with pytest.raises(StoreError):
        store.get(b"k")
    with pytest.raises(StoreError):
        store.batch()


def test_file_store_persists_across_reopen(tmp_path):
    location = tmp_path / "auction-notify"
    with IndexStore(str(location)) as store:
        assert store.path.endswith("auction.db")
        store.batch().put(b"T", b"\x01" * 32).commit()

    assert (location / "auction.db").exists()
    with IndexStore(str(location)) as store:
        assert store.get(b"T") == b"\x01" * 32


def test_location_required_for_disk_store():
    with pytest.raises(ValueError):
        IndexStore()
