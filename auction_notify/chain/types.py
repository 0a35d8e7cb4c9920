"""Chain primitives consumed from an hsd node.

Only the fields the indexer reads are modelled. ``from_json`` parses the JSON
shapes served by hsd's REST API (hashes are plain hex, not byte-reversed).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

HASH_SIZE = 32


class CovenantKind(Enum):
    NONE = "none"
    OPEN = "open"
    BID = "bid"
    REVEAL = "reveal"
    REGISTER = "register"
    REVOKE = "revoke"
    OTHER = "other"

    @classmethod
    def from_type(cls, covenant_type: int) -> "CovenantKind":
        return _KIND_BY_TYPE.get(int(covenant_type), cls.OTHER)

    @property
    def is_auction(self) -> bool:
        return self in _NAMED_KINDS


# hsd covenant type numbers (rules.types). CLAIM, REDEEM, UPDATE, RENEW,
# TRANSFER and FINALIZE are not tracked and fall through to OTHER.
COVENANT_TYPES: Dict[str, int] = {
    "NONE": 0,
    "CLAIM": 1,
    "OPEN": 2,
    "BID": 3,
    "REVEAL": 4,
    "REDEEM": 5,
    "REGISTER": 6,
    "UPDATE": 7,
    "RENEW": 8,
    "TRANSFER": 9,
    "FINALIZE": 10,
    "REVOKE": 11,
}

_KIND_BY_TYPE: Dict[int, CovenantKind] = {
    COVENANT_TYPES["NONE"]: CovenantKind.NONE,
    COVENANT_TYPES["OPEN"]: CovenantKind.OPEN,
    COVENANT_TYPES["BID"]: CovenantKind.BID,
    COVENANT_TYPES["REVEAL"]: CovenantKind.REVEAL,
    COVENANT_TYPES["REGISTER"]: CovenantKind.REGISTER,
    COVENANT_TYPES["REVOKE"]: CovenantKind.REVOKE,
}

# Kinds that reference a name state through the first covenant item.
_NAMED_KINDS = frozenset(
    (CovenantKind.BID, CovenantKind.REVEAL, CovenantKind.REGISTER, CovenantKind.REVOKE)
)


def _hash_from_hex(value: str) -> bytes:
    raw = bytes.fromhex(value)
    if len(raw) != HASH_SIZE:
        raise ValueError(f"expected {HASH_SIZE}-byte hash, got {len(raw)}")
    return raw


@dataclass(frozen=True, order=True)
class Outpoint:
    hash: bytes
    index: int

    def __post_init__(self) -> None:
        if not isinstance(self.hash, bytes) or len(self.hash) != HASH_SIZE:
            raise ValueError("outpoint hash must be 32 bytes")
        if not 0 <= int(self.index) <= 0xFFFFFFFF:
            raise ValueError(f"outpoint index out of range: {self.index}")

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Outpoint":
        return cls(_hash_from_hex(data["hash"]), int(data["index"]))

    def to_json(self) -> Dict[str, Any]:
        return {"hash": self.hash.hex(), "index": self.index}

    def __repr__(self) -> str:
        return f"Outpoint({self.hash.hex()}/{self.index})"


@dataclass(frozen=True)
class Covenant:
    type: int = 0
    items: Tuple[bytes, ...] = ()

    @property
    def kind(self) -> CovenantKind:
        return CovenantKind.from_type(self.type)

    @property
    def name_hash(self) -> Optional[bytes]:
        if not self.items:
            return None
        return self.items[0]

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Any]]) -> "Covenant":
        if not data:
            return cls()
        items = tuple(bytes.fromhex(x) for x in data.get("items") or [])
        return cls(type=int(data.get("type", 0)), items=items)


@dataclass(frozen=True)
class Output:
    value: int
    covenant: Covenant = field(default_factory=Covenant)
    address: Optional[str] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Output":
        return cls(
            value=int(data.get("value", 0)),
            covenant=Covenant.from_json(data.get("covenant")),
            address=data.get("address"),
        )


@dataclass(frozen=True)
class Transaction:
    hash: bytes
    # One entry per input, None for the null prevout of coinbase inputs.
    inputs: Tuple[Optional[Outpoint], ...] = ()
    outputs: Tuple[Output, ...] = ()

    def prevout(self, index: int) -> Optional[Outpoint]:
        """Prevout spent by input ``index``, if that input exists."""
        if 0 <= index < len(self.inputs):
            return self.inputs[index]
        return None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Transaction":
        inputs: List[Optional[Outpoint]] = []
        for item in data.get("inputs") or []:
            prevout = item.get("prevout") or {}
            if not prevout or set(prevout.get("hash", "")) <= {"0"}:
                inputs.append(None)
                continue
            inputs.append(Outpoint.from_json(prevout))
        return cls(
            hash=_hash_from_hex(data["hash"]),
            inputs=tuple(inputs),
            outputs=tuple(Output.from_json(o) for o in data.get("outputs") or []),
        )


@dataclass(frozen=True)
class Block:
    hash: bytes
    prev_block: bytes
    height: int = -1
    txs: Tuple[Transaction, ...] = ()

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Block":
        return cls(
            hash=_hash_from_hex(data["hash"]),
            prev_block=_hash_from_hex(data["prevBlock"]),
            height=int(data.get("height", -1)),
            txs=tuple(Transaction.from_json(tx) for tx in data.get("txs") or []),
        )


@dataclass(frozen=True)
class NameState:
    name: str
    name_hash: bytes


@dataclass(frozen=True)
class Coin:
    outpoint: Outpoint
    value: int
    height: int = -1
    covenant: Covenant = field(default_factory=Covenant)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Coin":
        return cls(
            outpoint=Outpoint.from_json(data),
            value=int(data.get("value", 0)),
            height=int(data.get("height", -1)),
            covenant=Covenant.from_json(data.get("covenant")),
        )
