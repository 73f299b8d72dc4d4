import asyncio
import hmac
from decimal import Decimal
from hashlib import sha256

import httpx

from futures_flip.exchange.binance_futures import (
    BinanceFuturesClient,
    build_query_string,
    sign_query_string,
)


def test_build_query_string_keeps_insertion_order() -> None:
    assert build_query_string({"b": 2, "a": 1}) == "b=2&a=1"


def test_build_query_string_renders_bools_and_decimals() -> None:
    qs = build_query_string(
        {"quantity": Decimal("0.500"), "reduceOnly": True, "price": None}
    )
    assert qs == "quantity=0.500&reduceOnly=true"


def test_sign_query_string_matches_known_example() -> None:
    qs = (
        "symbol=BTCUSDT&side=BUY&type=LIMIT&quantity=1&price=9000&"
        "timeInForce=GTC&recvWindow=5000&timestamp=1591702613943"
    )
    secret = "2b5eb11e18796d12d88f13dc27dbbd02c2cc51ff7059765ed9821957d82bb4d9"
    expected = hmac.new(secret.encode("utf-8"), qs.encode("utf-8"), sha256).hexdigest()
    assert sign_query_string(qs, secret) == expected


def test_signed_request_appends_timestamp_and_signature_last() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["query"] = request.url.query.decode("ascii")
        captured["api_key"] = request.headers.get("X-MBX-APIKEY")
        captured["method"] = request.method
        return httpx.Response(200, json={"leverage": 1, "symbol": "BTCUSDT"})

    client = BinanceFuturesClient(
        api_key="key",
        api_secret="secret",
        transport=httpx.MockTransport(handler),
    )
    try:
        asyncio.run(client.change_leverage(symbol="BTCUSDT", leverage=1))
    finally:
        asyncio.run(client.aclose())

    query = str(captured["query"])
    keys = [part.split("=", 1)[0] for part in query.split("&")]
    assert keys == ["symbol", "leverage", "timestamp", "signature"]

    unsigned, signature = query.rsplit("&signature=", 1)
    assert signature == sign_query_string(unsigned, "secret")
    assert captured["api_key"] == "key"
    assert captured["method"] == "POST"


def test_recv_window_is_sent_when_configured() -> None:
    captured: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["recvWindow"] = request.url.params.get("recvWindow", "")
        return httpx.Response(200, json={"totalWalletBalance": "12.5"})

    client = BinanceFuturesClient(
        api_key="key",
        api_secret="secret",
        recv_window_ms=5000,
        transport=httpx.MockTransport(handler),
    )
    try:
        snapshot = asyncio.run(client.account())
    finally:
        asyncio.run(client.aclose())

    assert captured["recvWindow"] == "5000"
    assert snapshot.wallet_balance == Decimal("12.5")


def test_public_request_is_not_signed() -> None:
    captured: dict[str, bool] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["has_signature"] = "signature" in request.url.params
        captured["has_timestamp"] = "timestamp" in request.url.params
        return httpx.Response(200, json={"symbols": []})

    client = BinanceFuturesClient(
        api_key="",
        api_secret="",
        transport=httpx.MockTransport(handler),
    )
    try:
        asyncio.run(client.exchange_info())
    finally:
        asyncio.run(client.aclose())

    assert captured == {"has_signature": False, "has_timestamp": False}
