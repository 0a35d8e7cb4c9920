import pytest

from auction_notify.chain.types import Outpoint
from auction_notify.notify.events import AuctionEvent, BlockStatsData, EventType


def test_event_messages():
    op = Outpoint(b"\x02" * 32, 1)

    assert AuctionEvent.open("foo").to_message() == {"event": "open", "data": {"name": "foo"}}
    assert AuctionEvent.big_spend(op, 9).to_message() == {
        "event": "big spend",
        "data": {"outpoint": {"hash": "02" * 32, "index": 1}, "value": 9},
    }
    burned = AuctionEvent.named(EventType.BID_BURNED, "foo", op, 3).to_message()
    assert burned["event"] == "bid burned"
    assert burned["data"]["name"] == "foo"

    stats = BlockStatsData(txCount=2, bids=1)
    assert AuctionEvent.block_stats(stats).to_message()["data"] == {
        "txCount": 2,
        "opens": 0,
        "bids": 1,
        "reveals": 0,
    }


def test_named_rejects_events_without_name_payload():
    with pytest.raises(ValueError):
        AuctionEvent.named(EventType.BIG_SPEND, "foo", Outpoint(b"\x00" * 32, 0), 1)
