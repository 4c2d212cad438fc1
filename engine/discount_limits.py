"""
Discount limit evaluation.

A salesperson may grant up to max_discount1/2/3 percent per product group.
A line whose requested rate strictly exceeds any constrained tier needs
approval (WAITING); everything else is NOT_REQUIRED.  A tier with no max is
unconstrained, and a line with no group code or no matching limit row never
needs approval.

The limits passed in are expected to be already filtered to the acting
salesperson.  Re-run the evaluation whenever a line's rates or group change.
"""
import logging
from typing import Optional, Sequence

from models.discount import DiscountEvaluation, DiscountLimit
from models.line import ApprovalStatus, Line

logger = logging.getLogger(__name__)

# Statuses owned by the approval workflow; local re-evaluation leaves them alone
WORKFLOW_STATUSES = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.CLOSED,
})


def _exceeds(rate: float, maximum: Optional[float]) -> bool:
    return maximum is not None and rate > maximum


class DiscountLimitEvaluator:
    """
    Usage:
        evaluator = DiscountLimitEvaluator(limits)
        result = evaluator.evaluate(line.group_code, line.discount_rate1,
                                    line.discount_rate2, line.discount_rate3)
    """

    def __init__(self, limits: Optional[Sequence[DiscountLimit]] = None):
        self.limits = list(limits or [])

    def find_limit(self, group_code: Optional[str]) -> Optional[DiscountLimit]:
        if not group_code:
            return None
        return next((lim for lim in self.limits if lim.group_code == group_code), None)

    def evaluate(
        self,
        group_code: Optional[str],
        rate1: float,
        rate2: float,
        rate3: float,
    ) -> DiscountEvaluation:
        if not group_code or not self.limits:
            return DiscountEvaluation()

        limit = self.find_limit(group_code)
        if limit is None:
            logger.debug("No discount limit for group %s", group_code)
            return DiscountEvaluation()

        exceeds = (
            rate1 > limit.max_discount1
            or _exceeds(rate2, limit.max_discount2)
            or _exceeds(rate3, limit.max_discount3)
        )
        if exceeds:
            logger.debug(
                "Group %s: rates %s/%s/%s exceed limits %s/%s/%s",
                group_code, rate1, rate2, rate3,
                limit.max_discount1, limit.max_discount2, limit.max_discount3,
            )
        return DiscountEvaluation(
            approval_status=ApprovalStatus.WAITING if exceeds else ApprovalStatus.NOT_REQUIRED,
            matching_limit=limit,
            exceeds_limit=exceeds,
        )

    def evaluate_line(self, line: Line) -> DiscountEvaluation:
        return self.evaluate(line.group_code, line.discount_rate1, line.discount_rate2, line.discount_rate3)

    def apply(self, lines: Sequence[Line]) -> list[Line]:
        """
        Return lines with approval_status refreshed.  Lines already decided by
        the workflow (approved / rejected / closed) are returned as-is.
        """
        result: list[Line] = []
        for line in lines:
            if line.approval_status in WORKFLOW_STATUSES:
                result.append(line)
                continue
            status = self.evaluate_line(line).approval_status
            if status != line.approval_status:
                line = line.model_copy(update={"approval_status": status})
            result.append(line)
        return result


def evaluate_discount_limit(
    group_code: Optional[str],
    rate1: float,
    rate2: float,
    rate3: float,
    limits: Optional[Sequence[DiscountLimit]] = None,
) -> DiscountEvaluation:
    """Functional form of DiscountLimitEvaluator.evaluate."""
    return DiscountLimitEvaluator(limits).evaluate(group_code, rate1, rate2, rate3)


def apply_discount_limits(lines: Sequence[Line], limits: Sequence[DiscountLimit]) -> list[Line]:
    return DiscountLimitEvaluator(limits).apply(lines)


def requires_approval(lines: Sequence[Line]) -> bool:
    """True when at least one line is waiting for approval."""
    return any(line.approval_status == ApprovalStatus.WAITING for line in lines)
