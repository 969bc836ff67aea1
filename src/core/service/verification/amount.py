"""
Challenge amount generation and formatting.

A challenge amount is a small random quantity of the primary network's native
token with exactly ten decimal places. Its base-unit form (wei) is derived
once, with exact decimal arithmetic, and stored alongside it.
"""

import re
import secrets
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_EVEN
from typing import Union

from src.infra.config.settings import settings

AMOUNT_DECIMALS = 10
BASE_UNIT_DECIMALS = 18

_AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMALS)
_BASE_UNIT_SCALE = Decimal(10) ** BASE_UNIT_DECIMALS
_RESOLUTION = 10 ** 12

_ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')
_DISCORD_ID_PATTERN = re.compile(r'^\d{17,19}$')

_random = secrets.SystemRandom()


def generate_challenge_amount(
    minimum: Union[str, Decimal, None] = None,
    maximum: Union[str, Decimal, None] = None,
) -> Decimal:
    """Draw a uniform amount in [minimum, maximum], quantized to 10 decimal places."""
    low = Decimal(minimum if minimum is not None else settings.CHALLENGE_MIN_AMOUNT)
    high = Decimal(maximum if maximum is not None else settings.CHALLENGE_MAX_AMOUNT)
    if low <= 0 or high < low:
        raise ValueError(f"Invalid challenge amount range [{low}, {high}]")

    fraction = Decimal(_random.randint(0, _RESOLUTION)) / Decimal(_RESOLUTION)
    amount = (low + (high - low) * fraction).quantize(_AMOUNT_QUANTUM, rounding=ROUND_HALF_EVEN)
    # bounds may carry more than 10 places
    return min(max(amount, low.quantize(_AMOUNT_QUANTUM)), high.quantize(_AMOUNT_QUANTUM))


def to_base_units(amount: Union[str, Decimal]) -> str:
    """floor(amount * 10^18) as a decimal integer string."""
    scaled = (Decimal(amount) * _BASE_UNIT_SCALE).to_integral_value(rounding=ROUND_FLOOR)
    return str(int(scaled))


def format_amount_for_display(amount: Union[str, Decimal]) -> str:
    """Fixed-point rendering without scientific notation or trailing zeros."""
    text = format(Decimal(amount), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def is_valid_wallet_address(address: str) -> bool:
    return isinstance(address, str) and bool(_ADDRESS_PATTERN.match(address))


def is_valid_discord_id(value: str) -> bool:
    return isinstance(value, str) and bool(_DISCORD_ID_PATTERN.match(value))
