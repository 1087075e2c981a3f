from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext

from .constants import NATIVE_EVM_DECIMALS, SOL_DECIMALS


def to_decimal(value: int, decimals: int) -> Decimal:
    """Convert an integer base-unit amount into a decimal-adjusted amount.

    Args:
        value: Signed integer amount in base units (lamports, wei, token units).
        decimals: Decimal precision of the asset.

    Returns:
        Exact ``Decimal`` of ``value / 10**decimals``.

    Raises:
        ValueError: If ``decimals`` is negative.
    """
    if decimals < 0:
        raise ValueError(f"Decimals must be non-negative, got {decimals}")
    with localcontext() as ctx:
        ctx.prec = max(78, len(str(abs(value))) + decimals + 1)
        return Decimal(value).scaleb(-decimals)


def format_decimal(amount: Decimal) -> str:
    """Plain notation, no exponent, no trailing zeros."""
    if amount == 0:
        return "0"
    with localcontext() as ctx:
        ctx.prec = max(78, len(amount.as_tuple().digits))
        return format(amount.normalize(), "f")


def format_units(value: int, decimals: int) -> str:
    """Render a base-unit amount as a plain decimal string without exponent."""
    return format_decimal(to_decimal(value, decimals))


def format_native(value: int) -> str:
    """Format an 18-decimal EVM native amount (wei)."""
    return format_units(value, NATIVE_EVM_DECIMALS)


def lamports_to_sol(lamports: int) -> Decimal:
    return to_decimal(lamports, SOL_DECIMALS)


def format_lamports(lamports: int) -> str:
    return format_units(lamports, SOL_DECIMALS)


def parse_units(amount: str | int | float | Decimal, decimals: int) -> int:
    """Parse a human-readable amount into integer base units, truncating extra precision.

    Raises:
        ValueError: If the amount cannot be parsed as a finite number.
    """
    try:
        parsed = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse amount {amount!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"Amount must be finite, got {amount!r}")
    with localcontext() as ctx:
        ctx.prec = 78
        return int(parsed.scaleb(decimals))

