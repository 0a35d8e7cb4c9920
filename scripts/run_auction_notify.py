from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import asyncio

import bittensor as bt

from auction_notify.index.store import StoreError
from auction_notify.notify.config import load_notify_env
from auction_notify.service import AuctionNotifyService


async def main() -> int:
    cfg = load_notify_env()
    service = AuctionNotifyService(cfg)

    try:
        service.open()
    except StoreError as e:
        bt.logging.error(f"Cannot open auction index: {e}")
        return 2

    bt.logging.info(f"auction-notify starting on {cfg.network} (node={cfg.chain.node_url})")
    try:
        await service.run()
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
