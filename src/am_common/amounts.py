"""Integer arithmetic utilities for minor-unit amounts.

All prices, bids, royalties and payments are int in the ledger's minor unit.
No float, no Decimal.
"""

BPS_DENOMINATOR = 10_000
SHARE_DENOMINATOR = 100


def validate_positive_amount(amount: int, field: str = "amount") -> None:
    """Raise ValueError unless amount is a strictly positive int."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{field} must be an integer number of minor units, got {amount!r}")
    if amount <= 0:
        raise ValueError(f"{field} must be greater than zero, got {amount}")


def parse_minor_units(value: str | int) -> int:
    """Parse a decimal string (store format) into minor units."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if not text.lstrip("-").isdigit():
        raise ValueError(f"Not a decimal integer string: {value!r}")
    return int(text)


def minor_units_to_display(amount: int, decimals: int = 9) -> str:
    """Convert minor units to display string: 1_500_000_000 (9 decimals) -> '1.5'."""
    if decimals == 0:
        return f"{amount:,}"
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    frac_text = f"{frac:0{decimals}d}".rstrip("0")
    if not frac_text:
        return f"{sign}{whole:,}"
    return f"{sign}{whole:,}.{frac_text}"


def apply_bps(amount: int, bps: int) -> int:
    """floor(amount * bps / 10000)."""
    return amount * bps // BPS_DENOMINATOR
