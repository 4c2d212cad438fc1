"""
Line total calculation.

Discounts cascade: each tier applies to what is left after the previous
tiers, not to the original amount.

  base      = quantity * unit_price
  amount1   = base * rate1 / 100           base -= amount1
  amount2   = base * rate2 / 100           base -= amount2
  amount3   = base * rate3 / 100           base -= amount3
  subtotal  = max(0, base)
  vat       = max(0, subtotal * vat_rate / 100)
  grand     = max(0, subtotal + vat)

Nothing here validates its input.  Negative rates or quantities are the
form layer's problem; the derived amounts are simply clamped at zero.
"""
import logging
from typing import Iterable

from models.line import DocumentTotals, Line

logger = logging.getLogger(__name__)


def calculate_line_totals(line: Line) -> Line:
    """Return a copy of line with every derived amount recomputed."""
    current = line.quantity * line.unit_price

    amount1 = current * line.discount_rate1 / 100
    current -= amount1

    amount2 = current * line.discount_rate2 / 100
    current -= amount2

    amount3 = current * line.discount_rate3 / 100
    current -= amount3

    subtotal = max(0.0, current)
    vat_amount = subtotal * line.vat_rate / 100
    grand_total = subtotal + vat_amount

    return line.model_copy(update={
        "discount_amount1": max(0.0, amount1),
        "discount_amount2": max(0.0, amount2),
        "discount_amount3": max(0.0, amount3),
        "line_total": subtotal,
        "vat_amount": max(0.0, vat_amount),
        "line_grand_total": max(0.0, grand_total),
    })


def calculate_document_totals(lines: Iterable[Line]) -> DocumentTotals:
    """Sum the already-calculated amounts of every line."""
    totals = DocumentTotals()
    for line in lines:
        totals.subtotal += line.line_total
        totals.total_vat += line.vat_amount
        totals.grand_total += line.line_grand_total
        totals.line_count += 1
    logger.debug(
        "Document totals over %d line(s): subtotal=%.2f vat=%.2f grand=%.2f",
        totals.line_count, totals.subtotal, totals.total_vat, totals.grand_total,
    )
    return totals
