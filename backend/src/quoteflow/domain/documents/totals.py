"""Line item and totals arithmetic.

All amounts are rounded half-up to the currency's minor unit. A document's
totals are a pure function of its line items; compare_totals() reports where a
persisted aggregate has drifted from that function.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple

from .errors import TotalsMismatch
from .models import LineItem, Totals

# ISO 4217 currencies whose minor unit is not two digits
MINOR_UNIT_DIGITS = {
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
    "CLP": 0,
    "ISK": 0,
    "JPY": 0,
    "KRW": 0,
    "UGX": 0,
    "VND": 0,
}
DEFAULT_MINOR_UNIT_DIGITS = 2


def minor_unit_digits(currency: Optional[str]) -> int:
    return MINOR_UNIT_DIGITS.get((currency or "").upper(), DEFAULT_MINOR_UNIT_DIGITS)


def minor_unit(currency: Optional[str]) -> Decimal:
    """Smallest representable amount for a currency, e.g. Decimal('0.01')."""
    return Decimal(1).scaleb(-minor_unit_digits(currency))


def round_money(value: Decimal, currency: Optional[str]) -> Decimal:
    return Decimal(value).quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def line_gross(item: LineItem) -> Decimal:
    return item.quantity * item.unit_price


def line_discount(item: LineItem) -> Decimal:
    return line_gross(item) * item.discount


def compute_line_total(item: LineItem, currency: Optional[str]) -> Decimal:
    """quantity × unit_price × (1 − discount) + tax, rounded half-up."""
    return round_money(line_gross(item) * (Decimal(1) - item.discount) + item.tax, currency)


def compute_totals(items: Iterable[LineItem], currency: Optional[str]) -> Totals:
    """Aggregate line items.

    total is the sum of the rounded line totals, so it always equals what the
    rendered rows add up to.
    """
    items = list(items)
    zero = round_money(Decimal(0), currency)
    return Totals(
        subtotal=sum((round_money(line_gross(i), currency) for i in items), zero),
        discount=sum((round_money(line_discount(i), currency) for i in items), zero),
        tax=sum((round_money(i.tax, currency) for i in items), zero),
        total=sum((compute_line_total(i, currency) for i in items), zero),
    )


def price_items(items: Iterable[LineItem], currency: Optional[str]) -> Tuple[List[LineItem], Totals]:
    """Return copies of items with their total set, plus the aggregate totals."""
    priced = [
        LineItem(
            description=i.description,
            quantity=i.quantity,
            unit_price=i.unit_price,
            discount=i.discount,
            tax=i.tax,
            unit=i.unit,
            total=compute_line_total(i, currency),
        )
        for i in items
    ]
    return priced, compute_totals(priced, currency)


def compare_totals(computed: Totals, persisted: Totals, currency: Optional[str]) -> List[TotalsMismatch]:
    """List every aggregate field whose persisted value differs after rounding."""
    mismatches = []
    for field_name in ("subtotal", "discount", "tax", "total"):
        computed_value = getattr(computed, field_name)
        persisted_value = getattr(persisted, field_name)
        if persisted_value is None or round_money(persisted_value, currency) != computed_value:
            mismatches.append(TotalsMismatch(
                field=f"totals.{field_name}",
                computed=computed_value,
                persisted=persisted_value,
            ))
    return mismatches


def format_amount(value: Optional[Decimal], currency: Optional[str]) -> str:
    """Thousands-separated amount at the currency's precision, '' for None.

    Example:
        >>> format_amount(Decimal("1234.5"), "SAR")
        '1,234.50'
    """
    if value is None:
        return ""
    digits = minor_unit_digits(currency)
    return f"{round_money(value, currency):,.{digits}f}"
