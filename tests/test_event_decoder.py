"""Tests for raw log decoding."""

from __future__ import annotations

from eth_abi import encode

from src.events.models import Bonded, EventKind, NewToken, PairCreated, Side, TradeEvent, Transfer, Venue
from src.parser.event_decoder import (
    BONDED,
    BUY,
    NEW_TOKEN_CREATED,
    PAIR_CREATED,
    SELL,
    TRANSFER,
    EventDecoder,
    topics_for_kinds,
)

FACTORY = "0x9999999999999999999999999999999999999999"
CURVE = "0x4444444444444444444444444444444444444444"
TOKEN = "0x3333333333333333333333333333333333333333"
USER = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
TX = "0x" + "ef" * 32


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:]


def make_log(abi, indexed: list[str], data: bytes = b"", address: str = CURVE, log_index: int = 3) -> dict:
    return {
        "address": address,
        "topics": [abi.topic] + [address_topic(value) for value in indexed],
        "data": "0x" + data.hex(),
        "transactionHash": TX,
        "logIndex": log_index,
        "blockNumber": 100,
    }


def test_standard_topics() -> None:
    """Test topic0 hashes match the well-known ERC20 and UniswapV2 values."""
    assert TRANSFER.topic == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    assert PAIR_CREATED.topic == "0x0d3648bd0f6ba80134a33ba9275ac585d9d315f0ad8355cddefde31afa28d0e9"
    assert BUY.topic != SELL.topic


def test_topics_for_kinds() -> None:
    """Test kind-to-topic lookup."""
    assert topics_for_kinds([EventKind.TRANSFER]) == [TRANSFER.topic]
    assert topics_for_kinds([EventKind.CURVE_TRADE]) == [BUY.topic, SELL.topic]


def test_decode_curve_buy() -> None:
    """Test a Buy from a bonding curve decodes as a CURVE trade."""
    log = make_log(BUY, [USER, TOKEN], encode(["uint256", "uint256"], [10**18, 500 * 10**18]))
    event = EventDecoder(FACTORY).decode(log, 1700000000)

    assert event == TradeEvent(
        venue=Venue.CURVE,
        side=Side.BUY,
        user=USER,
        token=TOKEN,
        eth_raw=10**18,
        token_raw=500 * 10**18,
        timestamp=1700000000,
        tx_hash=TX,
        log_index=3,
    )


def test_decode_dex_sell() -> None:
    """Test a Sell emitted by the factory is a DEX trade."""
    log = make_log(SELL, [USER, TOKEN], encode(["uint256", "uint256"], [5, 7]), address=FACTORY)
    event = EventDecoder(FACTORY).decode(log, 1)

    assert event.venue is Venue.DEX
    assert event.side is Side.SELL
    assert (event.eth_raw, event.token_raw) == (5, 7)


def test_decode_transfer_uses_emitter_as_token() -> None:
    """Test a Transfer's token is the contract that emitted it."""
    log = make_log(TRANSFER, [USER, OTHER], encode(["uint256"], [42]), address=TOKEN)
    event = EventDecoder().decode(log, 5)

    assert event == Transfer(token=TOKEN, from_address=USER, to_address=OTHER, value_raw=42, timestamp=5)


def test_decode_new_token() -> None:
    """Test creation logs carry curve, name and symbol."""
    data = encode(["address", "string", "string"], [CURVE, "Pepe", "PEPE"])
    event = EventDecoder().decode(make_log(NEW_TOKEN_CREATED, [TOKEN, USER], data), 9)

    assert event == NewToken(token=TOKEN, dev=USER, bonding_curve=CURVE, timestamp=9, name="Pepe", symbol="PEPE")


def test_decode_new_token_empty_name() -> None:
    """Test empty metadata strings become None."""
    data = encode(["address", "string", "string"], [CURVE, "", ""])
    event = EventDecoder().decode(make_log(NEW_TOKEN_CREATED, [TOKEN, USER], data), 9)

    assert event.name is None
    assert event.symbol is None


def test_decode_bonded_and_pair() -> None:
    """Test Bonded and PairCreated decoding."""
    decoder = EventDecoder(FACTORY)
    assert decoder.decode(make_log(BONDED, [TOKEN]), 3) == Bonded(token=TOKEN, timestamp=3)

    data = encode(["address", "uint256"], [OTHER, 1])
    event = decoder.decode(make_log(PAIR_CREATED, [USER, TOKEN], data, address=FACTORY), 4)
    assert event == PairCreated(token0=USER, token1=TOKEN, pair=OTHER, timestamp=4)


def test_bytes_topics_and_data() -> None:
    """Test logs from web3 with bytes topics decode the same way."""
    log = make_log(TRANSFER, [USER, OTHER], encode(["uint256"], [1]), address=TOKEN)
    log["topics"] = [bytes.fromhex(topic[2:]) for topic in log["topics"]]
    log["data"] = bytes.fromhex(log["data"][2:])

    assert EventDecoder().decode(log, 1).value_raw == 1


def test_unknown_topic_is_skipped() -> None:
    """Test logs outside the known events decode to None."""
    log = make_log(TRANSFER, [USER, OTHER], encode(["uint256"], [1]))
    log["topics"][0] = "0x" + "00" * 32
    assert EventDecoder().decode(log, 1) is None


def test_no_topics_is_skipped() -> None:
    """Test anonymous logs decode to None."""
    assert EventDecoder().decode({"address": TOKEN, "topics": [], "data": "0x"}, 1) is None


def test_wrong_topic_count_is_skipped() -> None:
    """Test an ERC721-style Transfer (3 indexed) is not decoded as ERC20."""
    log = make_log(TRANSFER, [USER, OTHER, TOKEN])
    assert EventDecoder().decode(log, 1) is None


def test_truncated_data_is_skipped() -> None:
    """Test malformed data is logged and dropped."""
    log = make_log(BUY, [USER, TOKEN], encode(["uint256"], [1]))
    assert EventDecoder().decode(log, 1) is None
