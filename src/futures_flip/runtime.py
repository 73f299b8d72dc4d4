from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from futures_flip.engine.closer import PositionCloser
from futures_flip.engine.metadata import SymbolFilterCache
from futures_flip.engine.orchestrator import TradeOrchestrator
from futures_flip.engine.retry import CorrectionContext, OrderRetryEngine
from futures_flip.engine.sizing import QuantityCalculator
from futures_flip.exchange import BinanceFuturesClient
from futures_flip.notifications import BestEffortPoster, EventLog
from futures_flip.settings import Settings


@dataclass
class Executor:
    client: BinanceFuturesClient
    poster: BestEffortPoster
    orchestrator: TradeOrchestrator

    async def handle(self, payload: Any) -> dict[str, Any]:
        return await self.orchestrator.handle(payload)

    async def aclose(self) -> None:
        await self.poster.aclose()
        await self.client.aclose()


def build_executor(
    settings: Settings,
    *,
    exchange_transport: httpx.AsyncBaseTransport | None = None,
    sink_transport: httpx.AsyncBaseTransport | None = None,
) -> Executor:
    client = BinanceFuturesClient(
        api_key=settings.binance_api_key,
        api_secret=settings.binance_api_secret,
        base_url=settings.binance_futures_base_url,
        timeout_seconds=settings.request_timeout_seconds,
        recv_window_ms=settings.binance_recv_window_ms,
        transport=exchange_transport,
    )
    poster = BestEffortPoster(
        timeout_seconds=settings.request_timeout_seconds,
        transport=sink_transport,
    )
    events = EventLog(poster=poster, sink_url=settings.log_webhook_url)
    filters = SymbolFilterCache(client=client)
    quantities = QuantityCalculator(
        client=client,
        filters=filters,
        safety_factor=settings.balance_safety_factor,
    )
    orders = OrderRetryEngine(
        client=client,
        context=CorrectionContext(quantities=quantities, filters=filters),
        events=events,
        max_attempts=settings.order_max_attempts,
        base_delay_seconds=settings.retry_base_seconds,
        rate_limit_cooldown_seconds=settings.rate_limit_cooldown_seconds,
    )
    orchestrator = TradeOrchestrator(
        client=client,
        closer=PositionCloser(client=client, orders=orders),
        quantities=quantities,
        filters=filters,
        orders=orders,
        events=events,
        poster=poster,
        forward_url=settings.forward_webhook_url,
        target_leverage=settings.target_leverage,
    )
    return Executor(client=client, poster=poster, orchestrator=orchestrator)
