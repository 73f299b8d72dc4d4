from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Protocol, cast

from futures_flip.engine.metadata import SymbolFilterCache
from futures_flip.engine.sizing import QuantityCalculator, round_step
from futures_flip.exchange.binance_futures import ExchangeError, NetworkError
from futures_flip.notifications.events import EventLog
from futures_flip.types import OrderAttempt, OrderRequest

logger = logging.getLogger("futures_flip.retry")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.1
DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS = 60.0


class ErrorKind(Enum):
    MARGIN_INSUFFICIENT = "margin_insufficient"
    PRECISION = "precision"
    WOULD_TRIGGER = "would_trigger"
    RATE_LIMITED = "rate_limited"
    OTHER = "other"


class RetryState(Enum):
    ATTEMPTING = "attempting"
    CORRECTING = "correcting"
    BACKOFF = "backoff"
    SUCCESS = "success"
    FAILED = "failed"


_KIND_BY_CODE: dict[int, ErrorKind] = {
    -2019: ErrorKind.MARGIN_INSUFFICIENT,
    -1013: ErrorKind.PRECISION,
    -1111: ErrorKind.PRECISION,
    -2021: ErrorKind.WOULD_TRIGGER,
    -1003: ErrorKind.RATE_LIMITED,
    -1015: ErrorKind.RATE_LIMITED,
    # Some proxies echo the HTTP status as a negative code.
    -429: ErrorKind.RATE_LIMITED,
    -418: ErrorKind.RATE_LIMITED,
}


def classify_error(error: Optional[BaseException]) -> ErrorKind:
    if not isinstance(error, ExchangeError):
        return ErrorKind.OTHER
    if error.code is not None and error.code in _KIND_BY_CODE:
        return _KIND_BY_CODE[error.code]
    if error.status_code in (418, 429):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER


class RetryExhausted(ExchangeError):
    """The last error of an order that failed on every attempt."""

    def __init__(
        self,
        *,
        last_error: Exception,
        attempts: int,
        history: Optional[list[OrderAttempt]] = None,
    ) -> None:
        if isinstance(last_error, ExchangeError):
            super().__init__(
                status_code=last_error.status_code,
                code=last_error.code,
                message=last_error.message,
                payload=last_error.payload,
            )
        else:
            super().__init__(status_code=0, code=None, message=str(last_error))
        self.last_error = last_error
        self.attempts = attempts
        self.history: list[OrderAttempt] = list(history or [])


@dataclass(frozen=True)
class CorrectionContext:
    quantities: QuantityCalculator
    filters: SymbolFilterCache


Correction = Callable[[OrderRequest, CorrectionContext], Awaitable[OrderRequest]]


async def recompute_quantity(request: OrderRequest, ctx: CorrectionContext) -> OrderRequest:
    quote = await ctx.quantities.recompute(request.symbol)
    return replace(request, quantity=quote.quantity)


async def reround_quantity(request: OrderRequest, ctx: CorrectionContext) -> OrderRequest:
    symbol_filter = await ctx.filters.get_filter(request.symbol)
    return replace(request, quantity=round_step(request.quantity, symbol_filter.step_size))


async def force_market(request: OrderRequest, ctx: CorrectionContext) -> OrderRequest:
    return replace(request, type="MARKET", price=None, time_in_force=None)


async def keep_request(request: OrderRequest, ctx: CorrectionContext) -> OrderRequest:
    return request


CORRECTIONS: dict[ErrorKind, Correction] = {
    ErrorKind.MARGIN_INSUFFICIENT: recompute_quantity,
    ErrorKind.PRECISION: reround_quantity,
    ErrorKind.WOULD_TRIGGER: force_market,
    ErrorKind.RATE_LIMITED: keep_request,
    ErrorKind.OTHER: keep_request,
}


class OrderClient(Protocol):
    async def new_order(self, request: OrderRequest) -> dict[str, Any]: ...


def _error_code(error: Exception) -> Optional[int]:
    return error.code if isinstance(error, ExchangeError) else None


def _error_message(error: Exception) -> str:
    return error.message if isinstance(error, ExchangeError) else str(error)


class OrderRetryEngine:
    """Submits one order with bounded, adaptive retries.

    A failed attempt is classified by exchange code and its correction is
    applied to the request before backing off. Corrections are not checked:
    a wrong guess simply fails again and consumes the retry budget.
    """

    def __init__(
        self,
        *,
        client: OrderClient,
        context: CorrectionContext,
        events: EventLog,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        rate_limit_cooldown_seconds: float = DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS,
    ) -> None:
        self._client = client
        self._context = context
        self._events = events
        self._max_attempts = int(max(1, max_attempts))
        self._base_delay_seconds = float(max(0.0, base_delay_seconds))
        self._rate_limit_cooldown_seconds = float(max(0.0, rate_limit_cooldown_seconds))
    async def submit(
        self,
        request: OrderRequest,
        max_attempts: Optional[int] = None,
    ) -> dict[str, Any]:
        limit = self._max_attempts if max_attempts is None else int(max(1, max_attempts))
        # Per call: one engine serves concurrent submits.
        history: list[OrderAttempt] = []

        state = RetryState.ATTEMPTING
        attempt = 1
        current = request
        result: dict[str, Any] = {}
        last_error: Optional[Exception] = None
        kind = ErrorKind.OTHER

        while True:
            if state is RetryState.ATTEMPTING:
                self._events.emit("request", attempt=attempt, params=current.to_params())
                try:
                    result = await self._client.new_order(current)
                except (ExchangeError, NetworkError) as e:
                    last_error = e
                    history.append(OrderAttempt(attempt=attempt, request=current, error=e))
                    self._events.emit(
                        "error",
                        attempt=attempt,
                        code=_error_code(e),
                        msg=_error_message(e),
                    )
                    state = RetryState.CORRECTING if attempt < limit else RetryState.FAILED
                    continue
                history.append(OrderAttempt(attempt=attempt, request=current, result=result))
                self._events.emit("response", attempt=attempt, res=result)
                state = RetryState.SUCCESS

            elif state is RetryState.CORRECTING:
                kind = classify_error(last_error)
                current = await self._correct(kind, current, attempt=attempt)
                state = RetryState.BACKOFF

            elif state is RetryState.BACKOFF:
                await asyncio.sleep(self._backoff_seconds(attempt=attempt, kind=kind))
                attempt += 1
                state = RetryState.ATTEMPTING

            elif state is RetryState.SUCCESS:
                logger.info(
                    "order_placed",
                    extra={
                        "symbol": current.symbol,
                        "side": current.side,
                        "qty": current.quantity,
                        "attempt": attempt,
                        "order_id": str(result.get("orderId", "")),
                    },
                )
                return result

            else:
                failed = cast(Exception, last_error)
                logger.error(
                    "order_failed",
                    extra={
                        "symbol": current.symbol,
                        "side": current.side,
                        "attempt": attempt,
                        "code": _error_code(failed),
                    },
                )
                raise RetryExhausted(
                    last_error=failed,
                    attempts=attempt,
                    history=history,
                ) from failed

    async def _correct(self, kind: ErrorKind, request: OrderRequest, *, attempt: int) -> OrderRequest:
        correction = CORRECTIONS[kind]
        try:
            corrected = await correction(request, self._context)
        except (ExchangeError, NetworkError, LookupError, ValueError):
            # The next attempt goes out uncorrected and may fail again.
            logger.warning(
                "correction_failed",
                exc_info=True,
                extra={"symbol": request.symbol, "attempt": attempt, "state": kind.value},
            )
            return request
        if corrected != request:
            logger.info(
                "order_corrected",
                extra={
                    "symbol": request.symbol,
                    "attempt": attempt,
                    "state": kind.value,
                    "qty": corrected.quantity,
                },
            )
        return corrected

    def _backoff_seconds(self, *, attempt: int, kind: ErrorKind) -> float:
        delay = self._base_delay_seconds * (2**attempt)
        if kind is ErrorKind.RATE_LIMITED:
            delay += self._rate_limit_cooldown_seconds
        return delay
