from decimal import Decimal

import pytest

from futures_flip.engine.sizing import round_step, step_decimals


def test_round_step_examples() -> None:
    assert round_step(0.12345, 0.001) == "0.123"
    assert round_step(1.0, 1) == "1"


def test_round_step_never_rounds_up() -> None:
    assert round_step(Decimal("0.019999"), Decimal("0.001")) == "0.019"
    assert round_step("2.9999", "0.1") == "2.9"


@pytest.mark.parametrize(
    ("quantity", "step"),
    [
        ("0.01996", "0.001"),
        ("123.456789", "0.01"),
        ("7", "0.5"),
        ("1234", "10"),
        ("0", "0.001"),
    ],
)
def test_round_step_is_multiple_not_above_input(quantity: str, step: str) -> None:
    result = Decimal(round_step(quantity, step))
    assert result <= Decimal(quantity)
    assert result % Decimal(step) == 0
    assert result >= 0


def test_round_step_uses_step_precision() -> None:
    assert round_step("5", "0.001") == "5.000"
    assert round_step("1234", "10") == "1230"
    # Exchange filters often carry trailing zeros.
    assert round_step("0.123456", "0.00100000") == "0.123"


def test_step_decimals() -> None:
    assert step_decimals("0.001") == 3
    assert step_decimals("1") == 0
    assert step_decimals("10") == 0
    assert step_decimals("0.10") == 1


def test_round_step_rejects_non_positive_step() -> None:
    with pytest.raises(ValueError):
        round_step("1", "0")
