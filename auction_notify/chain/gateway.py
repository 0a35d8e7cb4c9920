from __future__ import annotations

from typing import Any, Optional, Protocol, Union

import requests

from auction_notify.chain.types import Block, Coin, NameState, Outpoint


class ChainGatewayError(Exception):
    """Transport or protocol failure talking to the node."""


class ChainGateway(Protocol):
    """Read-only chain state the classifier consults."""

    def get_name_state(self, name_hash: bytes) -> Optional[NameState]:
        ...

    def get_coin(self, outpoint: Outpoint) -> Optional[Coin]:
        ...


BlockRef = Union[int, str, bytes]


class HsdNodeClient:
    """
    Minimal hsd node client over its REST and JSON-RPC endpoints.

    The node serves both on the same port; the API key, when set, is sent as
    HTTP basic auth with username ``x``.
    """

    def __init__(self, node_url: str, *, api_key: Optional[str] = None, timeout_s: float = 10.0) -> None:
        self.node_url = node_url.rstrip("/")
        self.timeout_s = timeout_s
        self._auth = ("x", api_key) if api_key else None
        self._rpc_id = 0

    def _get(self, path: str, *, allow_missing: bool = False) -> Optional[Any]:
        try:
            r = requests.get(f"{self.node_url}{path}", auth=self._auth, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise ChainGatewayError(f"GET {path} failed: {e}") from e
        if allow_missing and r.status_code == 404:
            return None
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            raise ChainGatewayError(f"GET {path} failed: {e}") from e
        return r.json()

    def _rpc(self, method: str, *params: Any) -> Any:
        self._rpc_id += 1
        body = {"method": method, "params": list(params), "id": self._rpc_id}
        try:
            r = requests.post(f"{self.node_url}/", json=body, auth=self._auth, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as e:
            raise ChainGatewayError(f"rpc {method} failed: {e}") from e
        if not isinstance(data, dict):
            raise ChainGatewayError(f"rpc {method}: unexpected response")
        err = data.get("error")
        if err:
            raise ChainGatewayError(f"rpc {method}: {err.get('message') if isinstance(err, dict) else err}")
        return data.get("result")

    @staticmethod
    def _ref(block: BlockRef) -> str:
        if isinstance(block, bytes):
            return block.hex()
        return str(block)

    def get_height(self) -> int:
        info = self._get("/")
        try:
            return int(info["chain"]["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChainGatewayError(f"unexpected node info: {e}") from e

    def get_header_height(self, block: BlockRef) -> Optional[int]:
        header = self._get(f"/header/{self._ref(block)}", allow_missing=True)
        if not header:
            return None
        return int(header["height"])

    def get_block(self, block: BlockRef) -> Optional[Block]:
        data = self._get(f"/block/{self._ref(block)}", allow_missing=True)
        if not data:
            return None
        return Block.from_json(data)

    def get_name_state(self, name_hash: bytes) -> Optional[NameState]:
        name = self._rpc("getnamebyhash", name_hash.hex())
        if not name:
            return None
        return NameState(name=str(name), name_hash=name_hash)

    def get_coin(self, outpoint: Outpoint) -> Optional[Coin]:
        data = self._get(f"/coin/{outpoint.hash.hex()}/{outpoint.index}", allow_missing=True)
        if not data:
            return None
        return Coin.from_json(data)
