from __future__ import annotations

import logging
from collections.abc import MutableMapping
from decimal import Decimal
from typing import Any, Optional, Protocol

from futures_flip.types import SymbolFilter

logger = logging.getLogger("futures_flip.metadata")


class UnknownSymbolError(LookupError):
    pass


class ExchangeInfoSource(Protocol):
    async def exchange_info(self) -> dict[str, Any]: ...


def extract_symbol_filter(exchange_info: dict[str, Any], *, symbol: str) -> SymbolFilter:
    symbols = exchange_info.get("symbols", [])
    if not isinstance(symbols, list):
        raise UnknownSymbolError(f"exchangeInfo has no symbol list (wanted {symbol})")
    for entry in symbols:
        if not isinstance(entry, dict) or str(entry.get("symbol", "")).upper() != symbol:
            continue
        filters = entry.get("filters", [])
        if not isinstance(filters, list):
            break
        for f in filters:
            if isinstance(f, dict) and f.get("filterType") == "LOT_SIZE":
                return SymbolFilter(
                    step_size=Decimal(str(f["stepSize"])),
                    min_qty=Decimal(str(f.get("minQty", "0"))),
                )
        raise UnknownSymbolError(f"{symbol} has no LOT_SIZE filter")
    raise UnknownSymbolError(f"{symbol} is not listed in exchangeInfo")


class SymbolFilterCache:
    """Per-symbol LOT_SIZE rules, fetched once per process.

    Entries never expire. Two callers racing on a cold symbol both fetch and
    write the same value, so no lock is taken.
    """

    def __init__(
        self,
        *,
        client: ExchangeInfoSource,
        store: Optional[MutableMapping[str, SymbolFilter]] = None,
    ) -> None:
        self._client = client
        self._store: MutableMapping[str, SymbolFilter] = store if store is not None else {}

    async def get_filter(self, symbol: str) -> SymbolFilter:
        key = symbol.upper()
        cached = self._store.get(key)
        if cached is not None:
            return cached
        exchange_info = await self._client.exchange_info()
        symbol_filter = extract_symbol_filter(exchange_info, symbol=key)
        self._store[key] = symbol_filter
        logger.info("symbol_filter_cached", extra={"symbol": key})
        return symbol_filter

    def invalidate(self, symbol: Optional[str] = None) -> None:
        if symbol is None:
            self._store.clear()
        else:
            self._store.pop(symbol.upper(), None)
