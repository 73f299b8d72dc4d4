import asyncio
from decimal import Decimal
from typing import Any

import pytest

from futures_flip.engine.metadata import SymbolFilterCache
from futures_flip.engine.sizing import QuantityCalculator
from futures_flip.types import AccountSnapshot, Position


class _SizingClient:
    def __init__(
        self,
        *,
        balance: str,
        mark: str,
        fallback_mark: str = "0",
        step: str = "0.001",
    ) -> None:
        self.balance = Decimal(balance)
        self.mark = Decimal(mark)
        self.fallback_mark = Decimal(fallback_mark)
        self.step = step
        self.mark_price_calls = 0

    async def account(self) -> AccountSnapshot:
        return AccountSnapshot(wallet_balance=self.balance)

    async def position_risk(self, *, symbol: str) -> Position:
        return Position(symbol=symbol, amount=Decimal("0"), mark_price=self.mark)

    async def mark_price(self, *, symbol: str) -> Decimal:
        self.mark_price_calls += 1
        return self.fallback_mark

    async def exchange_info(self) -> dict[str, Any]:
        return {
            "symbols": [
                {
                    "symbol": "BTCUSDT",
                    "filters": [{"filterType": "LOT_SIZE", "stepSize": self.step, "minQty": "0.001"}],
                }
            ]
        }


def _calculator(client: _SizingClient) -> QuantityCalculator:
    return QuantityCalculator(client=client, filters=SymbolFilterCache(client=client))


def test_recompute_applies_safety_factor_and_floors_to_step() -> None:
    client = _SizingClient(balance="1000", mark="50000")
    quote = asyncio.run(_calculator(client).recompute("BTCUSDT"))

    assert quote.quantity == "0.019"
    assert quote.mark_price == Decimal("50000")
    assert quote.wallet_balance == Decimal("1000")
    assert client.mark_price_calls == 0


def test_recompute_falls_back_to_premium_index_mark() -> None:
    client = _SizingClient(balance="1000", mark="0", fallback_mark="25000")
    quote = asyncio.run(_calculator(client).recompute("BTCUSDT"))

    assert quote.quantity == "0.039"
    assert client.mark_price_calls == 1


def test_recompute_never_goes_negative() -> None:
    client = _SizingClient(balance="-5", mark="50000")
    quote = asyncio.run(_calculator(client).recompute("BTCUSDT"))
    assert Decimal(quote.quantity) == 0


@pytest.mark.parametrize("balance", ["0.5", "17.3", "999.99", "123456.789"])
def test_recompute_yields_step_multiple(balance: str) -> None:
    client = _SizingClient(balance=balance, mark="3021.37", step="0.01")
    quote = asyncio.run(_calculator(client).recompute("BTCUSDT"))
    qty = Decimal(quote.quantity)
    assert qty >= 0
    assert qty % Decimal("0.01") == 0


def test_recompute_without_mark_price_fails() -> None:
    client = _SizingClient(balance="1000", mark="0", fallback_mark="0")
    with pytest.raises(ValueError):
        asyncio.run(_calculator(client).recompute("BTCUSDT"))
