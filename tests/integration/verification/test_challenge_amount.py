import pytest
from decimal import Decimal

from src.core.service.verification.amount import (
    generate_challenge_amount,
    to_base_units,
    format_amount_for_display,
    is_valid_wallet_address,
    is_valid_discord_id,
)


def test_generated_amounts_stay_in_range_with_ten_decimals():
    """Amounts are drawn from the configured range at 10 decimal places"""
    low, high = Decimal("0.00000001"), Decimal("0.0000001")

    for _ in range(200):
        amount = generate_challenge_amount(low, high)
        assert low <= amount <= high
        assert amount.as_tuple().exponent >= -10


def test_generated_amounts_vary():
    amounts = {generate_challenge_amount("0.00000001", "0.0000001") for _ in range(50)}
    assert len(amounts) > 1


def test_degenerate_range_returns_the_bound():
    assert generate_challenge_amount("0.0000000534", "0.0000000534") == Decimal("0.0000000534")


@pytest.mark.parametrize("low, high", [("0", "0.0000001"), ("0.0000001", "0.00000001"), ("-1", "1")])
def test_invalid_range_rejected(low, high):
    with pytest.raises(ValueError):
        generate_challenge_amount(low, high)


def test_base_units_are_exact():
    assert to_base_units("0.0000000534") == "53400000000"
    assert to_base_units(Decimal("0.00000001")) == "10000000000"
    assert to_base_units("0.0000001") == "100000000000"


def test_base_units_floor_sub_wei_digits():
    assert to_base_units("0.0000000000000000019") == "1"


def test_display_format_has_no_exponent_or_trailing_zeros():
    assert format_amount_for_display(Decimal("1E-8")) == "0.00000001"
    assert format_amount_for_display(Decimal("0.0000000530")) == "0.000000053"
    assert format_amount_for_display("0") == "0"


def test_wallet_address_validation():
    assert is_valid_wallet_address("0x742d35Cc6634C0532925a3b844Bc454e4438f44e")
    assert not is_valid_wallet_address("742d35Cc6634C0532925a3b844Bc454e4438f44e")
    assert not is_valid_wallet_address("0x742d35Cc6634C0532925a3b844Bc454e4438f44")
    assert not is_valid_wallet_address("0xZZ2d35Cc6634C0532925a3b844Bc454e4438f44e")
    assert not is_valid_wallet_address(None)


def test_discord_id_validation():
    assert is_valid_discord_id("123456789012345678")
    assert not is_valid_discord_id("1234")
    assert not is_valid_discord_id("12345678901234567a")
