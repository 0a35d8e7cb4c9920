import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import auction_notify` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from auction_notify.index.auctiondb import AuctionDB  # noqa: E402
from auction_notify.index.store import IndexStore  # noqa: E402


@pytest.fixture()
def adb():
    db = AuctionDB(IndexStore(memory=True), network="regtest")
    db.open()
    try:
        yield db
    finally:
        db.close()
