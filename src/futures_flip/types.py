from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal, Optional

Side = Literal["BUY", "SELL"]
OrderType = Literal["MARKET", "LIMIT"]


@dataclass(frozen=True)
class Position:
    symbol: str
    # Positive is long, negative is short, zero is flat.
    amount: Decimal
    mark_price: Decimal

    @property
    def is_flat(self) -> bool:
        return self.amount == 0


@dataclass(frozen=True)
class AccountSnapshot:
    wallet_balance: Decimal


@dataclass(frozen=True)
class SymbolFilter:
    step_size: Decimal
    min_qty: Decimal


@dataclass(frozen=True)
class OrderRequest:
    symbol: str
    side: Side
    quantity: str
    type: OrderType = "MARKET"
    reduce_only: bool = False
    price: Optional[str] = None
    time_in_force: Optional[str] = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "symbol": self.symbol,
            "side": self.side,
            "type": self.type,
            "quantity": self.quantity,
        }
        if self.reduce_only:
            params["reduceOnly"] = True
        if self.price is not None:
            params["price"] = self.price
        if self.time_in_force is not None:
            params["timeInForce"] = self.time_in_force
        return params


@dataclass(frozen=True)
class OrderAttempt:
    attempt: int
    request: OrderRequest
    result: Optional[dict[str, Any]] = None
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None


@dataclass(frozen=True)
class QuantityQuote:
    quantity: str
    mark_price: Decimal
    wallet_balance: Decimal
