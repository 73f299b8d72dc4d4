from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Binance (USD-M futures)
    binance_api_key: str = Field(default="", validation_alias="BINANCE_API_KEY")
    binance_api_secret: str = Field(default="", validation_alias="BINANCE_API_SECRET")
    binance_futures_base_url: str = Field(
        default="https://fapi.binance.com",
        validation_alias="BINANCE_FUTURES_BASE_URL",
    )
    binance_recv_window_ms: Optional[int] = Field(
        default=None,
        validation_alias="BINANCE_RECV_WINDOW_MS",
    )
    request_timeout_seconds: float = Field(default=10.0, validation_alias="REQUEST_TIMEOUT_SECONDS")

    # Execution
    target_leverage: int = Field(default=1, ge=1, le=1, validation_alias="TARGET_LEVERAGE")
    balance_safety_factor: Decimal = Field(
        default=Decimal("0.998"),
        gt=0,
        le=1,
        validation_alias="BALANCE_SAFETY_FACTOR",
    )
    order_max_attempts: int = Field(default=3, ge=1, validation_alias="ORDER_MAX_ATTEMPTS")
    retry_base_seconds: float = Field(default=0.1, ge=0, validation_alias="RETRY_BASE_SECONDS")
    rate_limit_cooldown_seconds: float = Field(
        default=60.0,
        ge=0,
        validation_alias="RATE_LIMIT_COOLDOWN_SECONDS",
    )

    # Side channels
    log_webhook_url: str = Field(default="", validation_alias="LOG_WEBHOOK_URL")
    forward_webhook_url: str = Field(default="", validation_alias="FORWARD_WEBHOOK_URL")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def redacted(self) -> dict[str, object]:
        data = self.model_dump()
        data["binance_api_secret"] = "***" if data["binance_api_secret"] else ""
        data["balance_safety_factor"] = str(data["balance_safety_factor"])
        return data
