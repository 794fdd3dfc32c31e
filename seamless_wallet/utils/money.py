"""
Fixed-point money helpers.

Every balance and amount is a ``Decimal`` with two fractional digits. The
smallest currency increment is ``MONEY_QUANTUM`` (one cent); amounts finer
than that are rejected instead of rounded, so debit/credit/rollback chains
never drift.
"""
from decimal import Decimal, InvalidOperation
from typing import Any

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")
# largest value a Numeric(15, 2) column holds
MAX_MONEY = Decimal("9999999999999.99")


class InvalidAmount(ValueError):
    pass


def parse_amount(value: Any) -> Decimal:
    """
    Parses a provider amount ("10", "10.5", "10.0000") into a quantized
    Decimal. Negative, non-finite, sub-cent and out-of-range values raise
    InvalidAmount.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount("Amount is required")
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1
        value = repr(value)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if amount < 0:
        raise InvalidAmount("Amount cannot be negative")
    if amount > MAX_MONEY:
        raise InvalidAmount(f"Amount {value!r} exceeds {MAX_MONEY}")

    quantized = amount.quantize(MONEY_QUANTUM)
    if quantized != amount:
        raise InvalidAmount(f"Amount {value!r} is finer than {MONEY_QUANTUM}")
    return quantized


def to_money(value: Any) -> Decimal:
    """Normalises a stored balance (Decimal, int or str) to two decimals."""
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(MONEY_QUANTUM)


def format_money(value: Any) -> str:
    return f"{to_money(value):.2f}"
