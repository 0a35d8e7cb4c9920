"""Per-name bid/reveal index over :class:`IndexStore`.

For each name and kind (bid or reveal) the index keeps a membership set of
outpoints plus a cached counter. Every mutation writes both inside one batch,
so after any committed mutation ``count == len(members)``. Membership is the
source of truth; the counter only exists for O(1) reads.

Mutations are read-modify-write over two keys. Each one holds the store lock
from its first read through its commit, as does ``wipe``, so no writer can
commit between another writer's read and write. The block follower feeds
blocks one at a time, so in practice the lock is uncontended.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Set

import bittensor as bt

from auction_notify.chain.types import Outpoint
from auction_notify.index import layout
from auction_notify.index.store import IndexStore, StoreError

DB_VERSION = 0


class IndexKind(Enum):
    BID = "bid"
    REVEAL = "reveal"


class MutationResult(Enum):
    OK = "ok"
    FAILED = "failed"
    NOT_FOUND = "not_found"

    def __bool__(self) -> bool:
        return self is MutationResult.OK


# (membership tag, counter tag) per kind.
_TAGS = {
    IndexKind.BID: (layout.B, layout.b),
    IndexKind.REVEAL: (layout.R, layout.r),
}


def _outpoint_from_key(key: bytes) -> Outpoint:
    _, tx_hash, index = layout.decode_outpoint_key(key)
    return Outpoint(tx_hash, index)


class AuctionDB:
    def __init__(self, store: IndexStore, *, network: str = "main"):
        self.store = store
        self.network = network

    def open(self) -> None:
        bt.logging.info("Opening AuctionDB...")
        self.store.open()
        try:
            self._verify()
        except StoreError:
            self.store.close()
            raise

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "AuctionDB":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _verify(self) -> None:
        raw_version = self.store.get(layout.V)
        raw_network = self.store.get(layout.N)

        if raw_version is None and raw_network is None:
            ok = (
                self.store.batch()
                .put(layout.V, layout.encode_version(DB_VERSION))
                .put(layout.N, self.network.encode("ascii"))
                .commit()
            )
            if not ok:
                raise StoreError("failed to initialize index metadata")
            return

        if raw_version is None or layout.decode_version(raw_version) != DB_VERSION:
            raise StoreError(f"index version mismatch (expected {DB_VERSION})")

        network = (raw_network or b"").decode("ascii", errors="replace")
        if network != self.network:
            raise StoreError(f"index network mismatch: stored {network!r}, expected {self.network!r}")

    # Tip

    def get_tip(self) -> Optional[bytes]:
        return self.store.get(layout.T)

    def put_tip(self, block_hash: bytes) -> bool:
        """Persist the hash of the last fully indexed block."""
        if len(block_hash) != layout.HASH_SIZE:
            raise ValueError("tip must be a 32-byte hash")
        try:
            return self.store.batch().put(layout.T, block_hash).commit()
        except StoreError as e:
            bt.logging.error(f"Failed to write tip {block_hash.hex()}: {e}")
            return False

    # Membership

    def count(self, name: str, kind: IndexKind) -> int:
        _, count_tag = _TAGS[kind]
        raw = self.store.get(layout.encode_count_key(count_tag, name))
        if raw is None:
            return 0
        return layout.decode_count(raw)

    def has_member(self, name: str, kind: IndexKind, outpoint: Outpoint) -> bool:
        member_tag, _ = _TAGS[kind]
        return self.store.has(layout.encode_outpoint_key(member_tag, name, outpoint.hash, outpoint.index))

    def add_member(
        self,
        name: str,
        kind: IndexKind,
        outpoint: Outpoint,
        *,
        link: Optional[Outpoint] = None,
    ) -> MutationResult:
        """
        Add ``outpoint`` to the name's set and bump its counter atomically.

        For reveals, ``link`` is the bid outpoint the reveal spent; it is
        recorded in the same batch. Re-adding a member is a no-op returning OK.
        """
        member_tag, count_tag = _TAGS[kind]
        member_key = layout.encode_outpoint_key(member_tag, name, outpoint.hash, outpoint.index)

        with self.store.lock:
            try:
                if self.store.has(member_key):
                    return MutationResult.OK

                batch = self.store.batch()
                batch.put(layout.encode_count_key(count_tag, name), layout.encode_count(self.count(name, kind) + 1))
                batch.put(member_key)
                if link is not None and kind is IndexKind.REVEAL:
                    batch.put(
                        layout.encode_outpoint_key(layout.S, name, link.hash, link.index),
                        layout.encode_outpoint(outpoint.hash, outpoint.index),
                    )
                ok = batch.commit()
            except StoreError as e:
                bt.logging.error(f"Store error adding {kind.value} {outpoint!r} for {name}: {e}")
                return MutationResult.FAILED

        return MutationResult.OK if ok else MutationResult.FAILED

    def remove_member(
        self,
        name: str,
        kind: IndexKind,
        outpoint: Outpoint,
        *,
        link: Optional[Outpoint] = None,
    ) -> MutationResult:
        member_tag, count_tag = _TAGS[kind]
        member_key = layout.encode_outpoint_key(member_tag, name, outpoint.hash, outpoint.index)

        with self.store.lock:
            try:
                count = self.count(name, kind)
                # Count never goes negative.
                if count == 0 or not self.store.has(member_key):
                    return MutationResult.NOT_FOUND

                batch = self.store.batch()
                batch.put(layout.encode_count_key(count_tag, name), layout.encode_count(count - 1))
                batch.delete(member_key)
                if link is not None and kind is IndexKind.REVEAL:
                    batch.delete(layout.encode_outpoint_key(layout.S, name, link.hash, link.index))
                ok = batch.commit()
            except StoreError as e:
                bt.logging.error(f"Store error removing {kind.value} {outpoint!r} for {name}: {e}")
                return MutationResult.FAILED

        return MutationResult.OK if ok else MutationResult.FAILED

    def list_members(self, name: str, kind: IndexKind) -> List[Outpoint]:
        member_tag, _ = _TAGS[kind]
        return self.store.keys(
            gte=layout.outpoint_min(member_tag, name),
            lte=layout.outpoint_max(member_tag, name),
            parse=_outpoint_from_key,
        )

    def revealed_bids(self, name: str) -> Set[Outpoint]:
        """Bids of ``name`` known to have been spent by an indexed reveal."""
        return set(
            self.store.keys(
                gte=layout.outpoint_min(layout.S, name),
                lte=layout.outpoint_max(layout.S, name),
                parse=_outpoint_from_key,
            )
        )

    # Bid/reveal shorthands used by the HTTP layer and tests.

    def get_bid_count(self, name: str) -> int:
        return self.count(name, IndexKind.BID)

    def get_reveal_count(self, name: str) -> int:
        return self.count(name, IndexKind.REVEAL)

    def get_bids(self, name: str) -> List[Outpoint]:
        return self.list_members(name, IndexKind.BID)

    def get_reveals(self, name: str) -> List[Outpoint]:
        return self.list_members(name, IndexKind.REVEAL)

    def has_bid(self, name: str, outpoint: Outpoint) -> bool:
        return self.has_member(name, IndexKind.BID, outpoint)

    def has_reveal(self, name: str, outpoint: Outpoint) -> bool:
        return self.has_member(name, IndexKind.REVEAL, outpoint)

    def add_bid(self, name: str, outpoint: Outpoint) -> MutationResult:
        return self.add_member(name, IndexKind.BID, outpoint)

    def add_reveal(self, name: str, outpoint: Outpoint, *, link: Optional[Outpoint] = None) -> MutationResult:
        return self.add_member(name, IndexKind.REVEAL, outpoint, link=link)

    def remove_bid(self, name: str, outpoint: Outpoint) -> MutationResult:
        return self.remove_member(name, IndexKind.BID, outpoint)

    def remove_reveal(self, name: str, outpoint: Outpoint, *, link: Optional[Outpoint] = None) -> MutationResult:
        return self.remove_member(name, IndexKind.REVEAL, outpoint, link=link)

    def wipe(self) -> int:
        """Delete every bid/reveal record. Returns the number of keys removed."""
        bt.logging.warning("Wiping auction index")

        # Scan and delete under the store lock so no mutation lands in between.
        with self.store.lock:
            batch = self.store.batch()
            for tag in layout.AUCTION_TAGS:
                gte, lte = layout.tag_range(tag)
                for key in self.store.keys(gte=gte, lte=lte):
                    batch.delete(key)

            total = len(batch)
            if total and not batch.commit():
                raise StoreError("wipe failed; index left unchanged")

        bt.logging.warning(f"Wiped {total} records.")
        return total
