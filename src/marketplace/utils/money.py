"""Money arithmetic helpers.

Amounts are stored as floats on aggregates; all arithmetic that produces a
stored amount goes through Decimal with half-up rounding to cents so repeated
operations do not drift.
"""

from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")

# Currencies the gateway settles without a fractional unit.
ZERO_DECIMAL_CURRENCIES = frozenset({"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf", "vnd", "xaf"})


def to_decimal(amount) -> Decimal:
    return Decimal(str(amount if amount is not None else 0))


def round_money(amount) -> float:
    """Round to two decimal places, halves away from zero."""
    return float(to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP))


def to_minor_units(amount, currency: str) -> int:
    """Convert a major-unit amount (e.g. 12.34 USD) into gateway minor units (1234)."""
    value = to_decimal(amount)
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int, currency: str) -> float:
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return float(amount_minor)
    return float((Decimal(int(amount_minor)) / 100).quantize(CENTS))
