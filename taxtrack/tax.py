"""
tax.py - Nigerian PAYE and VAT calculators

Pure functions, no I/O. Amounts are naira. Rounding is half-up (the way the
web app rounded), done with Decimal so that e.g. 5000.50 * 7.5% lands on
375.04 rather than on a float artefact.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional, TypedDict
import warnings


VAT_RATE = Decimal("0.075")

STANDARD_RELIEF_BASE = Decimal("200000")
STANDARD_RELIEF_RATE = Decimal("0.2")

# (band upper bound, marginal rate); the last band is open ended
PAYE_BANDS = [
    (Decimal("300000"), Decimal("0.07")),
    (Decimal("600000"), Decimal("0.11")),
    (Decimal("1100000"), Decimal("0.15")),
    (Decimal("1600000"), Decimal("0.19")),
    (Decimal("3200000"), Decimal("0.21")),
    (None, Decimal("0.24")),
]

FLAT_RATE = Decimal("0.15")


class PayeResult(TypedDict):
    gross_income: float
    total_reliefs: float
    taxable_income: float
    annual_tax: int
    monthly_tax: int


def _to_decimal(value: Any) -> Decimal:
    """Numeric coercion: garbage, NaN and negatives become 0."""
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip().replace(",", ""))
        except (InvalidOperation, ValueError):
            return Decimal(0)
    if not number.is_finite() or number < 0:
        return Decimal(0)
    return number


def round_half_up(value: Any, places: int = 0) -> Decimal:
    exp = Decimal(1).scaleb(-places)
    return _to_decimal(value).quantize(exp, rounding=ROUND_HALF_UP)


def _relief_total(reliefs: Optional[Dict[str, Any]]) -> Decimal:
    reliefs = reliefs or {}
    return sum(
        (_to_decimal(reliefs.get(k, 0)) for k in ("pension", "nhf", "other")),
        Decimal(0),
    )


def _banded_tax(taxable: Decimal) -> Decimal:
    tax = Decimal(0)
    lower = Decimal(0)
    for upper, rate in PAYE_BANDS:
        if upper is None or taxable <= upper:
            return tax + (taxable - lower) * rate
        tax += (upper - lower) * rate
        lower = upper
    return tax


def calculate_paye(gross_income: Any, reliefs: Optional[Dict[str, Any]] = None) -> PayeResult:
    """
    Estimate annual PAYE with the progressive band schedule.

    reliefs may carry pension, nhf and other; missing or non-numeric values
    count as 0. The consolidated relief (200,000 + 20% of gross) is always
    added on top.
    """
    gross = _to_decimal(gross_income)
    standard_relief = STANDARD_RELIEF_BASE + STANDARD_RELIEF_RATE * gross
    total_reliefs = _relief_total(reliefs) + standard_relief
    taxable = max(gross - total_reliefs, Decimal(0))
    tax = _banded_tax(taxable) if taxable > 0 else Decimal(0)
    return {
        "gross_income": float(gross),
        "total_reliefs": float(total_reliefs),
        "taxable_income": float(taxable),
        "annual_tax": int(round_half_up(tax)),
        "monthly_tax": int(round_half_up(tax / 12)),
    }


def calculate_paye_flat(gross_income: Any, reliefs: Optional[Dict[str, Any]] = None) -> float:
    """
    Superseded single-rate estimate (15% after a fixed 200,000 relief).

    Kept so old figures can be reproduced; use calculate_paye instead.
    """
    warnings.warn(
        "calculate_paye_flat is superseded by the banded calculate_paye",
        DeprecationWarning,
        stacklevel=2,
    )
    gross = _to_decimal(gross_income)
    taxable = max(gross - (_relief_total(reliefs) + STANDARD_RELIEF_BASE), Decimal(0))
    return float(round_half_up(taxable * FLAT_RATE, 2))


def calculate_vat(amount: Any) -> float:
    """VAT owed on a base amount at 7.5%, rounded to kobo."""
    return float(round_half_up(_to_decimal(amount) * VAT_RATE, 2))


def format_naira(amount: Any) -> str:
    return f"₦{float(round_half_up(amount, 2)):,.2f}"
