from __future__ import annotations

import hmac
import time
from decimal import Decimal
from hashlib import sha256
from typing import Any, Optional, cast
from urllib.parse import urlencode

import httpx

from futures_flip.types import AccountSnapshot, OrderRequest, Position


class ExchangeError(RuntimeError):
    """Non-success response from the exchange.

    `code` is the exchange-defined error code, or None when the body did not
    carry a parsable one.
    """

    def __init__(
        self,
        *,
        status_code: int,
        code: Optional[int],
        message: str,
        payload: Any = None,
    ) -> None:
        super().__init__(f"Binance API error: status={status_code} code={code} msg={message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.payload = payload


class NetworkError(RuntimeError):
    """Transport-level failure reaching the exchange."""


def _normalize_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def build_query_string(params: dict[str, Any]) -> str:
    # Insertion order is kept: the signature covers the exact string sent.
    items: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        items.append((key, _normalize_value(value)))
    return urlencode(items)


def sign_query_string(query_string: str, api_secret: str) -> str:
    mac = hmac.new(api_secret.encode("utf-8"), query_string.encode("utf-8"), sha256)
    return mac.hexdigest()


def _parse_error_code(payload: Any) -> Optional[int]:
    if not isinstance(payload, dict):
        return None
    try:
        return int(payload["code"])
    except (KeyError, TypeError, ValueError):
        return None


def _parse_error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict) and payload.get("msg"):
        return str(payload["msg"])
    return fallback


class BinanceFuturesClient:
    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        base_url: str = "https://fapi.binance.com",
        timeout_seconds: float = 10.0,
        recv_window_ms: Optional[int] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._recv_window_ms = recv_window_ms
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"X-MBX-APIKEY": api_key} if api_key else {},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def ping(self) -> None:
        await self.request("GET", "/fapi/v1/ping", signed=False, params={})

    async def exchange_info(self) -> dict[str, Any]:
        data = await self.request("GET", "/fapi/v1/exchangeInfo", signed=False, params={})
        return cast(dict[str, Any], data)

    async def position_risk(self, *, symbol: str) -> Position:
        data = await self.request(
            "GET",
            "/fapi/v3/positionRisk",
            signed=True,
            params={"symbol": symbol},
        )
        # Flat symbols are omitted from the response.
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return Position(symbol=symbol, amount=Decimal("0"), mark_price=Decimal("0"))
        first = data[0]
        return Position(
            symbol=str(first.get("symbol", symbol)),
            amount=Decimal(str(first.get("positionAmt", "0"))),
            mark_price=Decimal(str(first.get("markPrice", "0"))),
        )

    async def mark_price(self, *, symbol: str) -> Decimal:
        data = await self.request(
            "GET",
            "/fapi/v1/premiumIndex",
            signed=False,
            params={"symbol": symbol},
        )
        return Decimal(str(data.get("markPrice", "0")))

    async def account(self) -> AccountSnapshot:
        data = await self.request("GET", "/fapi/v2/account", signed=True, params={})
        return AccountSnapshot(wallet_balance=Decimal(str(data.get("totalWalletBalance", "0"))))

    async def change_leverage(self, *, symbol: str, leverage: int) -> dict[str, Any]:
        data = await self.request(
            "POST",
            "/fapi/v1/leverage",
            signed=True,
            params={"symbol": symbol, "leverage": leverage},
        )
        return cast(dict[str, Any], data)

    async def new_order(self, request: OrderRequest) -> dict[str, Any]:
        data = await self.request("POST", "/fapi/v1/order", signed=True, params=request.to_params())
        return cast(dict[str, Any], data)

    async def request(
        self,
        method: str,
        path: str,
        *,
        signed: bool,
        params: dict[str, Any],
    ) -> Any:
        request_params = {k: v for k, v in params.items() if v is not None}
        if signed:
            if not self._api_secret:
                raise RuntimeError("BINANCE_API_SECRET is required for signed endpoints")
            if self._recv_window_ms is not None:
                request_params["recvWindow"] = self._recv_window_ms
            request_params["timestamp"] = int(time.time() * 1000)
        query_string = build_query_string(request_params)
        if signed:
            signature = sign_query_string(query_string, self._api_secret)
            query_string = f"{query_string}&signature={signature}"
        url = f"{path}?{query_string}" if query_string else path

        try:
            response = await self._client.request(method, url)
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise NetworkError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            payload: Any
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise ExchangeError(
                status_code=response.status_code,
                code=_parse_error_code(payload),
                message=_parse_error_message(payload, fallback=response.text),
                payload=payload,
            )

        try:
            return response.json()
        except ValueError:
            raise ExchangeError(
                status_code=response.status_code,
                code=None,
                message=response.text,
                payload=response.text,
            ) from None
