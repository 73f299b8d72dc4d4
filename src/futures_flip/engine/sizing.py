from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal
from typing import Protocol, Union

from futures_flip.engine.metadata import SymbolFilterCache
from futures_flip.types import AccountSnapshot, Position, QuantityQuote

logger = logging.getLogger("futures_flip.sizing")

Number = Union[Decimal, str, int, float]

DEFAULT_SAFETY_FACTOR = Decimal("0.998")


class SizingClient(Protocol):
    async def account(self) -> AccountSnapshot: ...

    async def position_risk(self, *, symbol: str) -> Position: ...

    async def mark_price(self, *, symbol: str) -> Decimal: ...


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their shortest repr (0.1 -> "0.1").
    return Decimal(str(value))


def step_decimals(step: Number) -> int:
    exponent = _to_decimal(step).normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        raise ValueError(f"step must be finite: {step}")
    return max(0, -exponent)


def round_step(quantity: Number, step: Number) -> str:
    """Floor `quantity` to a multiple of `step`, rendered with step's decimals.

    >>> round_step(0.12345, 0.001)
    '0.123'
    >>> round_step(1.0, 1)
    '1'
    """
    q = _to_decimal(quantity)
    s = _to_decimal(step)
    if s <= 0:
        raise ValueError("step must be > 0")
    steps = (q / s).to_integral_value(rounding=ROUND_FLOOR)
    floored = steps * s
    exp = Decimal(1).scaleb(-step_decimals(s))
    return format(floored.quantize(exp, rounding=ROUND_FLOOR), "f")


class QuantityCalculator:
    def __init__(
        self,
        *,
        client: SizingClient,
        filters: SymbolFilterCache,
        safety_factor: Decimal = DEFAULT_SAFETY_FACTOR,
    ) -> None:
        self._client = client
        self._filters = filters
        self._safety_factor = safety_factor

    async def recompute(self, symbol: str) -> QuantityQuote:
        account = await self._client.account()
        position = await self._client.position_risk(symbol=symbol)
        mark = position.mark_price
        if mark <= 0:
            mark = await self._client.mark_price(symbol=symbol)
        if mark <= 0:
            raise ValueError(f"no usable mark price for {symbol}: {mark}")

        symbol_filter = await self._filters.get_filter(symbol)
        budget = max(account.wallet_balance, Decimal("0")) * self._safety_factor
        quantity = round_step(budget / mark, symbol_filter.step_size)
        logger.info(
            "quantity_recomputed",
            extra={"symbol": symbol, "qty": quantity},
        )
        return QuantityQuote(
            quantity=quantity,
            mark_price=mark,
            wallet_balance=account.wallet_balance,
        )
