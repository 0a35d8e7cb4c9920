from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import requests


class AuctionNotifyClient:
    """
    Client for

    GET  /auction-notify
    GET  /auction-notify/name/:name
    POST /auction-notify/wipe
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout_s: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"x-api-key": self.api_key}

    def get_notify_info(self) -> Dict[str, Any]:
        r = requests.get(f"{self.base_url}/auction-notify", timeout=self.timeout_s)
        r.raise_for_status()
        return r.json()

    def get_notify_name(self, name: str) -> Dict[str, Any]:
        if not isinstance(name, str) or not name:
            raise ValueError("name must be a non-empty string")
        r = requests.get(f"{self.base_url}/auction-notify/name/{quote(name, safe='')}", timeout=self.timeout_s)
        r.raise_for_status()
        return r.json()

    def wipe(self) -> int:
        r = requests.post(
            f"{self.base_url}/auction-notify/wipe",
            headers=self._headers(),
            timeout=self.timeout_s,
        )
        r.raise_for_status()
        return int(r.json().get("wiped", 0))
