from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from futures_flip.engine.retry import OrderRetryEngine
from futures_flip.types import OrderRequest, Position

logger = logging.getLogger("futures_flip.closer")


class PositionSource(Protocol):
    async def position_risk(self, *, symbol: str) -> Position: ...


def closing_order(position: Position) -> Optional[OrderRequest]:
    if position.is_flat:
        return None
    return OrderRequest(
        symbol=position.symbol,
        side="SELL" if position.amount > 0 else "BUY",
        type="MARKET",
        quantity=format(abs(position.amount), "f"),
        reduce_only=True,
    )


class PositionCloser:
    def __init__(self, *, client: PositionSource, orders: OrderRetryEngine) -> None:
        self._client = client
        self._orders = orders

    async def close_if_open(self, symbol: str) -> Optional[dict[str, Any]]:
        position = await self._client.position_risk(symbol=symbol)
        order = closing_order(position)
        if order is None:
            logger.info("position_flat", extra={"symbol": symbol})
            return None
        logger.info(
            "position_closing",
            extra={"symbol": symbol, "side": order.side, "qty": order.quantity},
        )
        return await self._orders.submit(order)
