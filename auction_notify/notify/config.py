from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from auction_notify.notify.classifier import DEFAULT_BIG_SPEND_VALUE
from auction_notify.utils.env import _env_bool, _env_csv, _env_float, _env_int, _env_str

# hsd node RPC ports; the notify API listens three ports above.
RPC_PORTS = {
    "main": 12037,
    "testnet": 13037,
    "regtest": 14037,
    "simnet": 15037,
}
LOCAL_HOSTS = ("127.0.0.1", "::1", "localhost")


def auction_notify_port(network: str) -> int:
    return RPC_PORTS[network] + 3


@dataclass(frozen=True)
class IndexConfig:
    location: Optional[str]
    memory: bool


@dataclass(frozen=True)
class ChainConfig:
    node_url: str
    api_key: Optional[str]
    timeout_s: float
    poll_interval_s: float
    start_height: Optional[int]


@dataclass(frozen=True)
class HttpConfig:
    host: str
    port: int
    api_key: Optional[str]
    no_auth: bool
    cors_origins: List[str]


@dataclass(frozen=True)
class NotifyEnvConfig:
    network: str
    big_spend_value: int
    max_pending: int
    index: IndexConfig
    chain: ChainConfig
    http: HttpConfig


def _die(msg: str) -> None:
    raise SystemExit(f"[auction-notify] {msg}")


def _int(name: str, default: int) -> int:
    try:
        return _env_int(name, default)
    except ValueError as e:
        _die(str(e))


def _float(name: str, default: float) -> float:
    try:
        return _env_float(name, default)
    except ValueError as e:
        _die(str(e))


def load_notify_env() -> NotifyEnvConfig:
    """Load service configuration from env/.env with strict validation."""
    network = (_env_str("AUCTION_NOTIFY_NETWORK", "main") or "main").lower()
    if network not in RPC_PORTS:
        _die(f"Invalid AUCTION_NOTIFY_NETWORK={network!r} (expected one of {', '.join(RPC_PORTS)}).")

    memory = _env_bool("AUCTION_NOTIFY_MEMORY", False)
    location = _env_str("AUCTION_NOTIFY_LOCATION", "") or None
    if location is None and not memory:
        prefix = _env_str("AUCTION_NOTIFY_PREFIX", "") or os.path.join("~", ".hsd")
        location = os.path.join(os.path.expanduser(prefix), "auction-notify")

    node_url = (_env_str("AUCTION_NOTIFY_NODE_URL", "") or f"http://127.0.0.1:{RPC_PORTS[network]}").rstrip("/")
    if not node_url.startswith("http"):
        _die(f"AUCTION_NOTIFY_NODE_URL must be http(s). Got: {node_url!r}")

    start_height: Optional[int] = None
    if _env_str("AUCTION_NOTIFY_START_HEIGHT", ""):
        start_height = _int("AUCTION_NOTIFY_START_HEIGHT", 0)
        if start_height < 0:
            _die("AUCTION_NOTIFY_START_HEIGHT must not be negative.")

    chain_cfg = ChainConfig(
        node_url=node_url,
        api_key=_env_str("AUCTION_NOTIFY_NODE_API_KEY", "") or None,
        timeout_s=_float("AUCTION_NOTIFY_NODE_TIMEOUT_S", 10.0),
        poll_interval_s=max(0.1, _float("AUCTION_NOTIFY_POLL_INTERVAL_S", 5.0)),
        start_height=start_height,
    )

    host = _env_str("AUCTION_NOTIFY_HTTP_HOST", "127.0.0.1") or "127.0.0.1"
    port = _int("AUCTION_NOTIFY_HTTP_PORT", auction_notify_port(network))
    if not 0 < port <= 0xFFFF:
        _die(f"AUCTION_NOTIFY_HTTP_PORT out of range: {port}")

    api_key = _env_str("AUCTION_NOTIFY_API_KEY", "") or None
    if api_key is not None and len(api_key) > 255:
        _die("AUCTION_NOTIFY_API_KEY must be under 256 bytes.")

    no_auth = _env_bool("AUCTION_NOTIFY_NO_AUTH", False)
    # Allow no-auth implicitly when listening locally without a key.
    if api_key is None and host in LOCAL_HOSTS:
        no_auth = True

    http_cfg = HttpConfig(
        host=host,
        port=int(port),
        api_key=api_key,
        no_auth=no_auth,
        cors_origins=_env_csv("AUCTION_NOTIFY_CORS_ORIGINS", ""),
    )

    big_spend_value = _int("AUCTION_NOTIFY_BIG_SPEND_VALUE", DEFAULT_BIG_SPEND_VALUE)
    if big_spend_value <= 0:
        _die("AUCTION_NOTIFY_BIG_SPEND_VALUE must be positive.")

    return NotifyEnvConfig(
        network=network,
        big_spend_value=int(big_spend_value),
        max_pending=max(1, min(100_000, _int("AUCTION_NOTIFY_MAX_PENDING", 1000))),
        index=IndexConfig(location=location, memory=memory),
        chain=chain_cfg,
        http=http_cfg,
    )
