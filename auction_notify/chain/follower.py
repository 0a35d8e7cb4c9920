"""Turn an hsd node's chain into sequential block notifications."""

from __future__ import annotations

import asyncio
import traceback
from typing import Any, Callable, List, Optional

import bittensor as bt

from auction_notify.chain.gateway import ChainGatewayError, HsdNodeClient
from auction_notify.chain.types import Block

BlockCallback = Callable[[Block], Any]


class ChainFollower:
    """
    Polls the node for new blocks and hands each one to the subscribers.

    Callbacks run in a worker thread (they do blocking store and node I/O) but
    strictly one block at a time: block N+1 is not fetched until every callback
    for block N has returned.
    """

    def __init__(self, node: HsdNodeClient, *, poll_interval_s: float = 5.0):
        self.node = node
        self.poll_interval_s = max(0.0, float(poll_interval_s))
        self._connected: List[BlockCallback] = []
        self._disconnected: List[BlockCallback] = []

    def on_block_connected(self, callback: BlockCallback) -> None:
        self._connected.append(callback)

    def on_block_disconnected(self, callback: BlockCallback) -> None:
        self._disconnected.append(callback)

    async def connect(self, block: Block) -> None:
        for cb in self._connected:
            await asyncio.to_thread(cb, block)

    async def disconnect(self, block: Block) -> None:
        """Deliver a block the host reports as disconnected (reorg)."""
        for cb in self._disconnected:
            await asyncio.to_thread(cb, block)

    def resume_height(self, tip: Optional[bytes], default: Optional[int] = None) -> int:
        """Height to start from: after the stored tip, else ``default``, else the next block."""
        if tip is not None:
            height = self.node.get_header_height(tip)
            if height is not None:
                bt.logging.info(f"Resuming after indexed tip {tip.hex()} (height {height})")
                return height + 1
            bt.logging.warning(f"Indexed tip {tip.hex()} is unknown to the node; ignoring it")
        if default is not None:
            return max(0, int(default))
        return self.node.get_height() + 1

    async def sync(self, next_height: int) -> int:
        """Process every block the node has from ``next_height`` on; return the next height to fetch."""
        height = await asyncio.to_thread(self.node.get_height)
        while next_height <= height:
            try:
                block = await asyncio.to_thread(self.node.get_block, next_height)
            except ChainGatewayError as e:
                bt.logging.warning(f"Could not fetch block {next_height}: {e}")
                break
            if block is None:
                break
            try:
                await self.connect(block)
            except Exception:
                # Leave next_height in place; the block is retried on the next poll.
                bt.logging.error(f"Failed to process block {block.hash.hex()}:\n{traceback.format_exc()}")
                break
            next_height += 1
        return next_height

    async def run(self, start_height: int, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        next_height = start_height
        bt.logging.info(f"Following chain from height {next_height}")
        while not stop.is_set():
            try:
                next_height = await self.sync(next_height)
            except ChainGatewayError as e:
                bt.logging.warning(f"Node unavailable: {e}")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_s)
            except asyncio.TimeoutError:
                pass
        bt.logging.info(f"Chain follower stopped at height {next_height}")
