"""Integer arithmetic utilities for cents-based money.

All rates, costs, fees and payment amounts use int (cents). No float, no Decimal.
"""

from src.ps_common.errors import InvalidAmountError


def validate_amount(field: str, cents: int) -> None:
    """Reject negative money amounts."""
    if cents < 0:
        raise InvalidAmountError(field, cents)


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 255 -> '$2.55', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
