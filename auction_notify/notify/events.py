from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field

from auction_notify.chain.types import Outpoint


class EventType(str, Enum):
    # Values are the event names seen by websocket subscribers.
    OPEN = "open"
    BID = "bid"
    REVEAL = "reveal"
    REGISTER = "register"
    REVOKE = "revoke"
    BID_BURNED = "bid burned"
    BIG_SPEND = "big spend"
    BLOCK_STATS = "block stats"


class OutpointModel(BaseModel):
    hash: str
    index: int

    @classmethod
    def from_outpoint(cls, outpoint: Outpoint) -> "OutpointModel":
        return cls(hash=outpoint.hash.hex(), index=outpoint.index)


class OpenData(BaseModel):
    name: str


class NameEventData(BaseModel):
    name: str
    outpoint: OutpointModel
    value: int


class BigSpendData(BaseModel):
    outpoint: OutpointModel
    value: int


class BlockStatsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tx_count: int = Field(default=0, alias="txCount")
    opens: int = 0
    bids: int = 0
    reveals: int = 0


EventData = Union[NameEventData, BigSpendData, BlockStatsData, OpenData]

_NAME_EVENTS = frozenset(
    (EventType.BID, EventType.REVEAL, EventType.REGISTER, EventType.REVOKE, EventType.BID_BURNED)
)


class AuctionEvent(BaseModel):
    """One derived event: its type plus a structured payload."""

    type: EventType
    data: EventData

    @classmethod
    def named(cls, type: EventType, name: str, outpoint: Outpoint, value: int) -> "AuctionEvent":
        if type not in _NAME_EVENTS:
            raise ValueError(f"{type.value!r} does not carry a name/outpoint payload")
        data = NameEventData(name=name, outpoint=OutpointModel.from_outpoint(outpoint), value=int(value))
        return cls(type=type, data=data)

    @classmethod
    def open(cls, name: str) -> "AuctionEvent":
        return cls(type=EventType.OPEN, data=OpenData(name=name))

    @classmethod
    def big_spend(cls, outpoint: Outpoint, value: int) -> "AuctionEvent":
        return cls(
            type=EventType.BIG_SPEND,
            data=BigSpendData(outpoint=OutpointModel.from_outpoint(outpoint), value=int(value)),
        )

    @classmethod
    def block_stats(cls, stats: BlockStatsData) -> "AuctionEvent":
        return cls(type=EventType.BLOCK_STATS, data=stats)

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.type.value, "data": self.data.model_dump(by_alias=True)}
