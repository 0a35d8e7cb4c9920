"""
Auction index key layout.

  V -> db version
  N -> db network
  T -> tip hash
  B[name][hash][index] -> dummy (bid outpoints by name)
  b[name] -> bid count
  R[name][hash][index] -> dummy (reveal outpoints by name)
  r[name] -> reveal count
  S[name][hash][index] -> reveal outpoint (bid spent by a reveal)

Names are written as a one-byte length followed by the ascii bytes, so the
records of one name sort contiguously and never interleave with a name that
shares its prefix. Hashes are 32 raw bytes, indexes big-endian uint32.
"""

from __future__ import annotations

import struct
from typing import Tuple

HASH_SIZE = 32
MAX_NAME_SIZE = 255
MAX_INDEX = 0xFFFFFFFF

V = b"V"
N = b"N"
T = b"T"
B = b"B"
b = b"b"
R = b"R"
r = b"r"
S = b"S"

# Families removed by AuctionDB.wipe().
AUCTION_TAGS = (B, b, R, r, S)

# Longest key any family can hold: tag, name size, name, hash, index.
MAX_KEY_SIZE = 1 + 1 + MAX_NAME_SIZE + HASH_SIZE + 4

_UINT32 = struct.Struct(">I")


def _name(name: str) -> bytes:
    raw = name.encode("ascii")
    if len(raw) > MAX_NAME_SIZE:
        raise ValueError(f"name too long: {len(raw)} bytes")
    return bytes([len(raw)]) + raw


def _hash(value: bytes) -> bytes:
    if len(value) != HASH_SIZE:
        raise ValueError(f"expected {HASH_SIZE}-byte hash, got {len(value)}")
    return bytes(value)


def _index(value: int) -> bytes:
    if not 0 <= value <= MAX_INDEX:
        raise ValueError(f"index out of uint32 range: {value}")
    return _UINT32.pack(value)


def encode_outpoint_key(tag: bytes, name: str, tx_hash: bytes, index: int) -> bytes:
    return tag + _name(name) + _hash(tx_hash) + _index(index)


def decode_outpoint_key(key: bytes) -> Tuple[str, bytes, int]:
    size = key[1]
    start = 2 + size
    name = key[2:start].decode("ascii")
    tx_hash = key[start:start + HASH_SIZE]
    (index,) = _UINT32.unpack(key[start + HASH_SIZE:start + HASH_SIZE + 4])
    return name, tx_hash, index


def outpoint_min(tag: bytes, name: str) -> bytes:
    return tag + _name(name) + b"\x00" * HASH_SIZE + _index(0)


def outpoint_max(tag: bytes, name: str) -> bytes:
    return tag + _name(name) + b"\xff" * HASH_SIZE + _index(MAX_INDEX)


def encode_count_key(tag: bytes, name: str) -> bytes:
    return tag + _name(name)


def encode_count(value: int) -> bytes:
    """Minimal big-endian unsigned encoding; zero is a single 0x00 byte."""
    if value < 0:
        raise ValueError("count must not be negative")
    return value.to_bytes(max(1, (value.bit_length() + 7) // 8), "big")


def decode_count(raw: bytes) -> int:
    return int.from_bytes(raw, "big")


def encode_outpoint(tx_hash: bytes, index: int) -> bytes:
    return _hash(tx_hash) + _index(index)


def decode_outpoint(raw: bytes) -> Tuple[bytes, int]:
    (index,) = _UINT32.unpack(raw[HASH_SIZE:HASH_SIZE + 4])
    return raw[:HASH_SIZE], index


def encode_version(version: int) -> bytes:
    return _UINT32.pack(version)


def decode_version(raw: bytes) -> int:
    return _UINT32.unpack(raw)[0]


def tag_range(tag: bytes) -> Tuple[bytes, bytes]:
    """Inclusive key bounds covering every record of one family."""
    return tag, tag + b"\xff" * (MAX_KEY_SIZE - len(tag))
