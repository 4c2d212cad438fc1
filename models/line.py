from enum import IntEnum
from typing import Optional

from pydantic import BaseModel


class ApprovalStatus(IntEnum):
    """
    Per-line approval state. Only NOT_REQUIRED and WAITING are ever set by the
    pricing engine; the remaining values belong to the external approval workflow.
    """
    NOT_REQUIRED = 0
    WAITING = 1
    APPROVED = 2
    REJECTED = 3
    CLOSED = 4


class Line(BaseModel):
    """
    One priced row of a quotation.

    discount_amount*, vat_amount, line_total and line_grand_total are derived
    from quantity, unit_price, the three discount rates and vat_rate.  They are
    recomputed by engine.calculator and must never be edited directly.
    """
    id: str = ""                                # Temporary client-side id
    product_code: str = ""
    product_name: str = ""
    group_code: Optional[str] = None            # Product group, key into discount limits
    description: Optional[str] = None

    quantity: float = 1.0
    unit_price: float = 0.0

    discount_rate1: float = 0.0                 # Percent, 0-100
    discount_rate2: float = 0.0
    discount_rate3: float = 0.0
    discount_amount1: float = 0.0               # Derived
    discount_amount2: float = 0.0               # Derived
    discount_amount3: float = 0.0               # Derived

    vat_rate: float = 0.0                       # Percent, e.g. 18
    vat_amount: float = 0.0                     # Derived
    line_total: float = 0.0                     # Derived: post-discount subtotal
    line_grand_total: float = 0.0               # Derived: line_total + vat_amount

    pricing_rule_header_id: Optional[int] = None
    related_stock_id: Optional[int] = None
    related_product_key: Optional[str] = None   # Shared by a main product and its companions
    is_main_related_product: bool = False

    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED
    needs_review: bool = False                  # Placeholder from a failed/missing lookup


class DocumentTotals(BaseModel):
    """Sums over all lines of a quotation."""
    subtotal: float = 0.0
    total_vat: float = 0.0
    grand_total: float = 0.0
    line_count: int = 0
