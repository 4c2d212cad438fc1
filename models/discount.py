from typing import Optional

from pydantic import BaseModel

from .line import ApprovalStatus


class DiscountLimit(BaseModel):
    """
    Maximum discount a salesperson may grant on a product group without approval.
    A tier whose max is None is unconstrained.
    """
    group_code: str
    salesperson_id: int
    max_discount1: float
    max_discount2: Optional[float] = None
    max_discount3: Optional[float] = None
    salesperson_name: Optional[str] = None


class DiscountEvaluation(BaseModel):
    """Outcome of checking one line's discount rates against the limit table."""
    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED
    matching_limit: Optional[DiscountLimit] = None
    exceeds_limit: bool = False
