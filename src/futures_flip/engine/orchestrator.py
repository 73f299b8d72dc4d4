from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ValidationError, field_validator

from futures_flip.engine.closer import PositionCloser
from futures_flip.engine.metadata import SymbolFilterCache
from futures_flip.engine.retry import OrderRetryEngine
from futures_flip.engine.sizing import QuantityCalculator
from futures_flip.notifications.events import EventLog
from futures_flip.notifications.webhook import BestEffortPoster
from futures_flip.types import OrderRequest, Side

logger = logging.getLogger("futures_flip.orchestrator")

FORWARD_HEADERS = {"x-origin": "executor"}


class SignalValidationError(ValueError):
    pass


class OrderSizingError(ValueError):
    pass


class SignalPayload(BaseModel):
    symbol: str
    signal: Side

    @field_validator("symbol")
    @classmethod
    def _symbol_not_blank(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be empty")
        return value

    @field_validator("signal", mode="before")
    @classmethod
    def _signal_upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


def parse_signal(payload: Any) -> SignalPayload:
    if not isinstance(payload, Mapping):
        raise SignalValidationError("Payload incomplete")
    if not payload.get("symbol") or not payload.get("signal"):
        raise SignalValidationError("Payload incomplete")
    try:
        return SignalPayload.model_validate(dict(payload))
    except ValidationError as e:
        if any(err["loc"] == ("signal",) for err in e.errors()):
            raise SignalValidationError("Signal must be BUY or SELL") from e
        raise SignalValidationError(f"Invalid payload: {e}") from e


class LeverageClient(Protocol):
    async def change_leverage(self, *, symbol: str, leverage: int) -> dict[str, Any]: ...


class TradeOrchestrator:
    """Handles one inbound signal end to end.

    Flatten the current position, force leverage, size from the fresh wallet
    balance, then open the new position. Steps run strictly in order; nothing
    serializes two runs on the same symbol.
    """

    def __init__(
        self,
        *,
        client: LeverageClient,
        closer: PositionCloser,
        quantities: QuantityCalculator,
        filters: SymbolFilterCache,
        orders: OrderRetryEngine,
        events: EventLog,
        poster: Optional[BestEffortPoster] = None,
        forward_url: str = "",
        target_leverage: int = 1,
    ) -> None:
        self._client = client
        self._closer = closer
        self._quantities = quantities
        self._filters = filters
        self._orders = orders
        self._events = events
        self._poster = poster
        self._forward_url = forward_url.strip()
        self._target_leverage = target_leverage

    async def handle(self, payload: Any) -> dict[str, Any]:
        try:
            signal = parse_signal(payload)
            order = await self._execute(signal)
        except Exception as e:
            self._events.emit("fatal", msg=str(e))
            logger.exception("signal_failed")
            raise

        if self._poster is not None and self._forward_url:
            self._poster.dispatch(self._forward_url, payload, headers=FORWARD_HEADERS)
        return order

    async def _execute(self, signal: SignalPayload) -> dict[str, Any]:
        symbol = signal.symbol
        logger.info("signal", extra={"symbol": symbol, "side": signal.signal})

        closed = await self._closer.close_if_open(symbol)
        if closed is not None:
            logger.info(
                "position_closed",
                extra={"symbol": symbol, "order_id": str(closed.get("orderId", ""))},
            )

        await self._client.change_leverage(symbol=symbol, leverage=self._target_leverage)

        quote = await self._quantities.recompute(symbol)
        symbol_filter = await self._filters.get_filter(symbol)
        quantity = Decimal(quote.quantity)
        if quantity <= 0 or quantity < symbol_filter.min_qty:
            raise OrderSizingError(
                f"{symbol} quantity {quote.quantity} is below minQty {symbol_filter.min_qty} "
                f"(wallet={quote.wallet_balance} mark={quote.mark_price})"
            )

        return await self._orders.submit(
            OrderRequest(symbol=symbol, side=signal.signal, type="MARKET", quantity=quote.quantity)
        )
