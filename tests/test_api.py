from typing import Any

from fastapi.testclient import TestClient

from futures_flip.api import create_app
from futures_flip.engine.orchestrator import SignalValidationError
from futures_flip.exchange.binance_futures import ExchangeError


class _Executor:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.payloads: list[Any] = []
        self.closed = False

    async def handle(self, payload: Any) -> dict[str, Any]:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return {"orderId": 77, "side": "BUY"}

    async def aclose(self) -> None:
        self.closed = True


def test_webhook_returns_order() -> None:
    executor = _Executor()
    with TestClient(create_app(executor=executor)) as client:
        resp = client.post("/api/webhook", json={"symbol": "BTCUSDT", "signal": "buy"})

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "order": {"orderId": 77, "side": "BUY"}}
    assert executor.payloads == [{"symbol": "BTCUSDT", "signal": "buy"}]
    assert executor.closed is True


def test_webhook_validation_error_is_400() -> None:
    executor = _Executor(error=SignalValidationError("Payload incomplete"))
    with TestClient(create_app(executor=executor)) as client:
        resp = client.post("/api/webhook", json={"symbol": "BTCUSDT"})

    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "error": "Payload incomplete"}


def test_webhook_exchange_failure_is_500() -> None:
    error = ExchangeError(status_code=400, code=-2019, message="Margin is insufficient.")
    with TestClient(create_app(executor=_Executor(error=error))) as client:
        resp = client.post("/api/webhook", json={"symbol": "BTCUSDT", "signal": "SELL"})

    assert resp.status_code == 500
    assert resp.json()["ok"] is False
    assert "Margin is insufficient." in resp.json()["error"]


def test_webhook_rejects_get() -> None:
    with TestClient(create_app(executor=_Executor())) as client:
        assert client.get("/api/webhook").status_code == 405
        assert client.get("/healthz").json() == {"ok": True}


def test_webhook_non_json_body_reaches_validation() -> None:
    executor = _Executor(error=SignalValidationError("Payload incomplete"))
    with TestClient(create_app(executor=executor)) as client:
        resp = client.post("/api/webhook", content=b"not json")

    assert resp.status_code == 400
    assert executor.payloads == [None]
