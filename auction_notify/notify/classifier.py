"""Classify block outputs into auction index mutations and events.

Each connected block is walked transaction by transaction, output by output.
Outputs are dispatched on their covenant kind:

- NONE: large plain transfers become ``big spend`` events.
- BID / REVEAL: the outpoint is added to the name's index, then an event is
  emitted whether or not the write committed.
- REGISTER: emitted, then bids are reconciled against reveals; a bid that was
  never revealed and whose coin is gone is reported as burned.
- REVOKE: emitted only.
- OPEN: counted in the block stats.

The tip is written last, and only when every mutation of the block committed,
so a crash or a failed write makes the block get processed again on restart.
Re-adding an indexed outpoint is a no-op, which keeps that safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import bittensor as bt

from auction_notify.chain.gateway import ChainGateway
from auction_notify.chain.types import Block, CovenantKind, Outpoint, Output, Transaction
from auction_notify.index.auctiondb import AuctionDB, IndexKind, MutationResult
from auction_notify.index.store import StoreError
from auction_notify.notify.events import AuctionEvent, BlockStatsData, EventType
from auction_notify.notify.fanout import EventFanout

# Dollarydoos per HNS.
COIN = 1_000_000
DEFAULT_BIG_SPEND_VALUE = 100_000 * COIN


@dataclass(frozen=True)
class _Item:
    tx: Transaction
    index: int
    output: Output

    @property
    def outpoint(self) -> Outpoint:
        return Outpoint(self.tx.hash, self.index)

    @property
    def value(self) -> int:
        return self.output.value


@dataclass
class _BlockContext:
    block: Block
    events: List[AuctionEvent] = field(default_factory=list)
    stats: BlockStatsData = field(default_factory=BlockStatsData)
    failures: int = 0


Handler = Callable[[_BlockContext, _Item, Optional[str]], None]


class BlockClassifier:
    def __init__(
        self,
        adb: AuctionDB,
        chain: ChainGateway,
        fanout: Optional[EventFanout] = None,
        *,
        big_spend_value: int = DEFAULT_BIG_SPEND_VALUE,
    ):
        self.adb = adb
        self.chain = chain
        self.fanout = fanout
        self.big_spend_value = int(big_spend_value)

        self._handlers: Dict[CovenantKind, Handler] = {
            CovenantKind.NONE: self._on_none,
            CovenantKind.OPEN: self._on_open,
            CovenantKind.BID: self._on_bid,
            CovenantKind.REVEAL: self._on_reveal,
            CovenantKind.REGISTER: self._on_register,
            CovenantKind.REVOKE: self._on_revoke,
            CovenantKind.OTHER: self._on_other,
        }
        missing = set(CovenantKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"no handler for covenant kinds: {sorted(k.value for k in missing)}")

    def connect_block(self, block: Block) -> List[AuctionEvent]:
        """Index one connected block; returns the events it produced in order."""
        ctx = _BlockContext(block=block)

        for tx in block.txs:
            for index, output in enumerate(tx.outputs):
                item = _Item(tx=tx, index=index, output=output)
                try:
                    self._classify(ctx, item)
                except StoreError as e:
                    ctx.failures += 1
                    bt.logging.error(f"Store error on output {item.outpoint!r}: {e}")

        ctx.stats.tx_count = len(block.txs)
        self._emit(ctx, AuctionEvent.block_stats(ctx.stats))

        if ctx.failures:
            bt.logging.warning(
                f"Block {block.hash.hex()} had {ctx.failures} failed mutation(s); tip not advanced"
            )
        elif not self.adb.put_tip(block.hash):
            bt.logging.error(f"Failed to advance tip to {block.hash.hex()}")

        return ctx.events

    def disconnect_block(self, block: Block) -> None:
        """Undo the bid/reveal records of a disconnected block and roll the tip back."""
        failures = 0

        for tx in reversed(block.txs):
            for index in reversed(range(len(tx.outputs))):
                item = _Item(tx=tx, index=index, output=tx.outputs[index])
                kind = item.output.covenant.kind
                if kind not in (CovenantKind.BID, CovenantKind.REVEAL):
                    continue

                name = self._resolve_name(item)
                if name is None:
                    continue

                try:
                    if kind is CovenantKind.BID:
                        result = self.adb.remove_member(name, IndexKind.BID, item.outpoint)
                    else:
                        link = tx.prevout(index)
                        result = self.adb.remove_member(name, IndexKind.REVEAL, item.outpoint, link=link)
                except StoreError as e:
                    bt.logging.error(f"Store error unindexing {item.outpoint!r}: {e}")
                    result = MutationResult.FAILED

                if result is MutationResult.FAILED:
                    failures += 1
                elif result is MutationResult.NOT_FOUND:
                    bt.logging.debug(f"{kind.value} {item.outpoint!r} for {name} was not indexed")

        if failures:
            bt.logging.warning(f"Disconnect of {block.hash.hex()} had {failures} failed mutation(s); tip kept")
        elif not self.adb.put_tip(block.prev_block):
            bt.logging.error(f"Failed to roll tip back to {block.prev_block.hex()}")

    def _emit(self, ctx: _BlockContext, event: AuctionEvent) -> None:
        ctx.events.append(event)
        if self.fanout is not None:
            self.fanout.publish(event)

    def _classify(self, ctx: _BlockContext, item: _Item) -> None:
        kind = item.output.covenant.kind
        name: Optional[str] = None
        if kind.is_auction:
            name = self._resolve_name(item)
            if name is None:
                return
        self._handlers[kind](ctx, item, name)

    def _resolve_name(self, item: _Item) -> Optional[str]:
        name_hash = item.output.covenant.name_hash
        if name_hash is None:
            bt.logging.error(f"Covenant on {item.outpoint!r} has no name hash.")
            return None
        ns = self.chain.get_name_state(name_hash)
        if ns is None:
            # Valid chain rules make this impossible; skip the output.
            bt.logging.error(f"Expected namestate for {name_hash.hex()}.")
            return None
        return ns.name

    def _record(self, ctx: _BlockContext, result: MutationResult, kind: IndexKind, name: str) -> None:
        if result is MutationResult.FAILED:
            ctx.failures += 1
            bt.logging.error(f"Problem indexing {kind.value} for {name}.")

    def _on_none(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        if item.value >= self.big_spend_value:
            self._emit(ctx, AuctionEvent.big_spend(item.outpoint, item.value))

    def _on_open(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        ctx.stats.opens += 1

    def _on_other(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        return None

    def _on_bid(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        ctx.stats.bids += 1
        result = self.adb.add_member(name, IndexKind.BID, item.outpoint)
        self._record(ctx, result, IndexKind.BID, name)
        self._emit(ctx, AuctionEvent.named(EventType.BID, name, item.outpoint, item.value))

    def _on_reveal(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        ctx.stats.reveals += 1
        # hsd links reveal output i to the bid spent by input i.
        bid = item.tx.prevout(item.index)
        link = bid if bid is not None and self.adb.has_member(name, IndexKind.BID, bid) else None
        result = self.adb.add_member(name, IndexKind.REVEAL, item.outpoint, link=link)
        self._record(ctx, result, IndexKind.REVEAL, name)
        self._emit(ctx, AuctionEvent.named(EventType.REVEAL, name, item.outpoint, item.value))

    def _on_register(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        self._emit(ctx, AuctionEvent.named(EventType.REGISTER, name, item.outpoint, item.value))
        self._reconcile(ctx, item, name)

    def _on_revoke(self, ctx: _BlockContext, item: _Item, name: Optional[str]) -> None:
        self._emit(ctx, AuctionEvent.named(EventType.REVOKE, name, item.outpoint, item.value))

    def _reconcile(self, ctx: _BlockContext, item: _Item, name: str) -> None:
        bid_count = self.adb.count(name, IndexKind.BID)
        reveal_count = self.adb.count(name, IndexKind.REVEAL)

        if reveal_count == bid_count:
            return

        if reveal_count > bid_count:
            bt.logging.error(
                f"Invalid database state: more reveals than bids for {name} ({reveal_count} > {bid_count})."
            )
            return

        revealed = self.adb.revealed_bids(name)
        for bid in self.adb.list_members(name, IndexKind.BID):
            if bid in revealed:
                continue
            if self.chain.get_coin(bid) is not None:
                continue
            self._emit(ctx, AuctionEvent.named(EventType.BID_BURNED, name, bid, item.value))
