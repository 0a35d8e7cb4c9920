from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest

from auction_notify.client import AuctionNotifyClient


class _Resp:
    def __init__(self, body: Dict[str, Any]):
        self._body = body

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Dict[str, Any]:
        return self._body


def test_client_reads_tip_and_name(monkeypatch):
    calls: List[Tuple[str, float]] = []

    def fake_get(url: str, *, timeout: float):
        calls.append((url, timeout))
        if url.endswith("/auction-notify"):
            return _Resp({"tip": "ab" * 32})
        return _Resp({"name": "foo bar", "bids": [], "reveals": [], "bid_count": 0, "reveal_count": 0})

    import auction_notify.client as mod

    monkeypatch.setattr(mod.requests, "get", fake_get)

    client = AuctionNotifyClient("http://notify/", timeout_s=3.0)
    assert client.get_notify_info()["tip"] == "ab" * 32
    assert client.get_notify_name("foo bar")["name"] == "foo bar"
    assert calls == [
        ("http://notify/auction-notify", 3.0),
        ("http://notify/auction-notify/name/foo%20bar", 3.0),
    ]

    with pytest.raises(ValueError):
        client.get_notify_name("")


def test_client_wipe_sends_api_key(monkeypatch):
    sent: List[Tuple[str, Dict[str, str]]] = []

    def fake_post(url: str, *, headers: Dict[str, str], timeout: float):  # noqa: ARG001
        sent.append((url, headers))
        return _Resp({"wiped": 4})

    import auction_notify.client as mod

    monkeypatch.setattr(mod.requests, "post", fake_post)

    assert AuctionNotifyClient("http://notify", api_key="k3y").wipe() == 4
    assert AuctionNotifyClient("http://notify").wipe() == 4
    assert sent == [
        ("http://notify/auction-notify/wipe", {"x-api-key": "k3y"}),
        ("http://notify/auction-notify/wipe", {}),
    ]
