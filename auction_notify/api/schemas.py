from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from auction_notify.notify.events import OutpointModel


class HealthResponse(BaseModel):
    ok: bool = True
    network: str


class TipResponse(BaseModel):
    # Hex hash of the last fully indexed block.
    tip: Optional[str] = None


class NameInfoResponse(BaseModel):
    name: str
    bids: List[OutpointModel] = Field(default_factory=list)
    reveals: List[OutpointModel] = Field(default_factory=list)
    bid_count: int = 0
    reveal_count: int = 0


class WipeResponse(BaseModel):
    wiped: int


class SocketCall(BaseModel):
    """Request frame sent by websocket clients."""

    id: Optional[int] = None
    method: str
    params: List[Any] = Field(default_factory=list)
