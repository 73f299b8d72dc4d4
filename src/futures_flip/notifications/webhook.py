from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger("futures_flip.webhook")


class BestEffortPoster:
    """Fire-and-forget JSON POSTs.

    `dispatch` schedules exactly one attempt on the running loop and returns
    at once. Failures are logged at DEBUG and discarded; callers never see
    them. `aclose` waits for in-flight posts before closing the client.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        self._pending: set[asyncio.Task[None]] = set()

    def dispatch(
        self,
        url: str,
        payload: Any,
        *,
        headers: Optional[dict[str, str]] = None,
    ) -> Optional[asyncio.Task[None]]:
        if not url:
            return None
        task = asyncio.create_task(self._post(url, payload, headers or {}))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()

    async def _post(self, url: str, payload: Any, headers: dict[str, str]) -> None:
        try:
            resp = await self._client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
        except Exception as e:
            logger.debug("best_effort_post_failed: %s: %s", type(e).__name__, e)
