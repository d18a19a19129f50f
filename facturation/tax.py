"""
Line and invoice tax computation.

Amounts are kept as unrounded floats; rounding to cents happens only when
the XML or the PDF formats them (``facturation.formatting.fmt_amount``).
"""
from __future__ import annotations

from typing import NamedTuple

from facturation.models import DiscountType, InvoiceForm, InvoiceLine, InvoiceTotals


class VatBreakdown(NamedTuple):
    """Summed basis and tax for one VAT rate."""
    rate: float
    basis: float
    tax: float


def line_discount(line: InvoiceLine) -> float:
    gross = line.quantity * line.unit_price_ht
    if not line.discount_value or line.discount_value <= 0:
        return 0.0
    if line.discount_type == DiscountType.PERCENT:
        return gross * (line.discount_value / 100)
    return line.discount_value


def compute_line_totals(line: InvoiceLine) -> tuple[float, float, float, float]:
    """Compute and store discount, HT, VAT and TTC amounts of one line.

    Returns:
        ``(discount_amount, total_ht, total_vat, total_ttc)``
    """
    gross = line.quantity * line.unit_price_ht
    line.discount_amount = line_discount(line)
    line.total_ht = max(0.0, gross - line.discount_amount)
    line.total_vat = line.total_ht * (line.vat_rate / 100)
    line.total_ttc = line.total_ht * (1 + line.vat_rate / 100)
    return line.discount_amount, line.total_ht, line.total_vat, line.total_ttc


def compute_totals(target):
    """Compute totals for a single line or a whole invoice.

    For an ``InvoiceLine`` this is ``compute_line_totals``. For an
    ``InvoiceForm`` every valid line is computed in place and the sums over
    those lines are returned as ``InvoiceTotals``; invalid lines count zero.
    """
    if isinstance(target, InvoiceLine):
        return compute_line_totals(target)

    total_ht = total_vat = total_ttc = 0.0
    for line in target.lines:
        if not line.is_valid():
            continue
        compute_line_totals(line)
        total_ht += line.total_ht
        total_vat += line.total_vat
        total_ttc += line.total_ttc
    return InvoiceTotals(total_ht, total_vat, total_ttc)


def vat_breakdown(invoice: InvoiceForm) -> list[VatBreakdown]:
    """Group valid lines by VAT rate (rounded to 2 decimals), sorted by rate."""
    groups: dict[str, list[float]] = {}
    for line in invoice.lines:
        if not line.is_valid():
            continue
        entry = groups.setdefault(f"{line.vat_rate:.2f}", [0.0, 0.0])
        entry[0] += line.total_ht_value()
        entry[1] += line.total_vat_value()

    return sorted(
        (VatBreakdown(float(rate), basis, tax) for rate, (basis, tax) in groups.items()),
        key=lambda b: b.rate,
    )
