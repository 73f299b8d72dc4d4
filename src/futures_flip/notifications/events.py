from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, Literal

from futures_flip.notifications.webhook import BestEffortPoster

logger = logging.getLogger("futures_flip.events")

EventLabel = Literal["request", "response", "error", "fatal"]

_LEVELS = {
    "request": logging.INFO,
    "response": logging.INFO,
    "error": logging.WARNING,
    "fatal": logging.ERROR,
}


class EventLog:
    """Structured audit trail for one process.

    Every event is written to the `futures_flip.events` logger and, when a
    sink URL is configured, posted once to it without waiting for delivery.
    """

    def __init__(self, *, poster: BestEffortPoster | None = None, sink_url: str = "") -> None:
        self._poster = poster
        self._sink_url = sink_url.strip()

    def enabled(self) -> bool:
        return bool(self._poster is not None and self._sink_url)

    def emit(self, label: EventLabel, **fields: Any) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(timespec="milliseconds"),
            "label": label,
            **fields,
        }
        logger.log(_LEVELS[label], "event", extra={"label": label, "event": entry})
        if self._poster is not None and self._sink_url:
            # Non-JSON values such as Decimal post as strings.
            self._poster.dispatch(self._sink_url, json.loads(json.dumps(entry, default=str)))
        return entry
