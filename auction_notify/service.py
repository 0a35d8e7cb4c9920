"""Wire the index, classifier, fan-out, follower and API into one service."""

from __future__ import annotations

import asyncio
from typing import Optional

import bittensor as bt
import uvicorn

from auction_notify.api.app import create_app
from auction_notify.chain.follower import ChainFollower
from auction_notify.chain.gateway import HsdNodeClient
from auction_notify.index.auctiondb import AuctionDB
from auction_notify.index.store import IndexStore
from auction_notify.notify.classifier import BlockClassifier
from auction_notify.notify.config import NotifyEnvConfig
from auction_notify.notify.fanout import EventFanout


class AuctionNotifyService:
    def __init__(self, cfg: NotifyEnvConfig):
        self.cfg = cfg

        self.store = IndexStore(cfg.index.location, memory=cfg.index.memory)
        self.adb = AuctionDB(self.store, network=cfg.network)
        self.node = HsdNodeClient(cfg.chain.node_url, api_key=cfg.chain.api_key, timeout_s=cfg.chain.timeout_s)

        if not cfg.http.no_auth and cfg.http.api_key is None:
            bt.logging.warning("No AUCTION_NOTIFY_API_KEY set; subscribers cannot authenticate until one is configured.")
        self.fanout = EventFanout(cfg.http.api_key, no_auth=cfg.http.no_auth, max_pending=cfg.max_pending)

        self.classifier = BlockClassifier(
            self.adb,
            self.node,
            self.fanout,
            big_spend_value=cfg.big_spend_value,
        )
        self.follower = ChainFollower(self.node, poll_interval_s=cfg.chain.poll_interval_s)
        self.follower.on_block_connected(self.classifier.connect_block)
        self.follower.on_block_disconnected(self.classifier.disconnect_block)

        self.app = create_app(self.adb, self.fanout, network=cfg.network, cors_origins=cfg.http.cors_origins)

    def open(self) -> None:
        self.adb.open()

    def close(self) -> None:
        self.adb.close()

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        start_height = await asyncio.to_thread(
            self.follower.resume_height, self.adb.get_tip(), self.cfg.chain.start_height
        )

        server = uvicorn.Server(
            uvicorn.Config(self.app, host=self.cfg.http.host, port=self.cfg.http.port, log_level="warning")
        )
        bt.logging.info(
            f"Auction notify HTTP server listening on {self.cfg.http.host} (port={self.cfg.http.port})."
        )

        follower = asyncio.create_task(self.follower.run(start_height, stop))
        try:
            await server.serve()
        finally:
            stop.set()
            await follower
