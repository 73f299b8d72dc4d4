from decimal import Decimal

import pytest
from pydantic import ValidationError

from futures_flip.settings import Settings


def test_defaults_match_execution_policy() -> None:
    settings = Settings(_env_file=None)
    assert settings.target_leverage == 1
    assert settings.balance_safety_factor == Decimal("0.998")
    assert settings.order_max_attempts == 3
    assert settings.rate_limit_cooldown_seconds == 60.0
    assert settings.binance_recv_window_ms is None


def test_settings_read_aliases() -> None:
    settings = Settings(
        _env_file=None,
        BINANCE_API_SECRET="s3cret",
        LOG_WEBHOOK_URL="https://sink.example/log",
        ORDER_MAX_ATTEMPTS=5,
    )
    assert settings.order_max_attempts == 5
    assert settings.log_webhook_url == "https://sink.example/log"
    assert settings.redacted()["binance_api_secret"] == "***"


def test_leverage_is_pinned_to_one() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, TARGET_LEVERAGE=2)
