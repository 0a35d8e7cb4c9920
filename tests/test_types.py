import pytest

from auction_notify.chain.types import Block, CovenantKind, Outpoint, Transaction

H1 = "11" * 32
H2 = "22" * 32
NULL = "00" * 32


def test_covenant_kind_from_type():
    assert CovenantKind.from_type(0) is CovenantKind.NONE
    assert CovenantKind.from_type(3) is CovenantKind.BID
    assert CovenantKind.from_type(4) is CovenantKind.REVEAL
    assert CovenantKind.from_type(6) is CovenantKind.REGISTER
    assert CovenantKind.from_type(11) is CovenantKind.REVOKE
    assert CovenantKind.from_type(9) is CovenantKind.OTHER
    assert CovenantKind.from_type(200) is CovenantKind.OTHER
    assert CovenantKind.BID.is_auction
    assert not CovenantKind.OPEN.is_auction


def test_block_from_node_json_keeps_input_positions():
    block = Block.from_json(
        {
            "hash": H1,
            "prevBlock": H2,
            "height": 7,
            "txs": [
                {
                    "hash": H2,
                    "inputs": [
                        {"prevout": {"hash": NULL, "index": 4294967295}},
                        {"prevout": {"hash": H1, "index": 3}},
                    ],
                    "outputs": [
                        {"value": 1000, "address": "rs1q", "covenant": {"type": 0, "items": []}},
                        {"value": 5, "covenant": {"type": 4, "items": [H1, "00"]}},
                    ],
                }
            ],
        }
    )

    assert block.height == 7
    assert block.prev_block == bytes.fromhex(H2)
    tx = block.txs[0]
    assert tx.prevout(0) is None
    assert tx.prevout(1) == Outpoint(bytes.fromhex(H1), 3)
    assert tx.prevout(2) is None
    assert tx.outputs[1].covenant.kind is CovenantKind.REVEAL
    assert tx.outputs[1].covenant.name_hash == bytes.fromhex(H1)


def test_outpoint_validation():
    with pytest.raises(ValueError):
        Outpoint(b"\x00" * 31, 0)
    with pytest.raises(ValueError):
        Outpoint(bytearray(32), 0)
    with pytest.raises(ValueError):
        Outpoint(b"\x00" * 32, -1)

    op = Outpoint.from_json({"hash": H1, "index": 2})
    assert op.to_json() == {"hash": H1, "index": 2}
    assert Transaction(hash=bytes(32)).prevout(0) is None
