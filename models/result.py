from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .line import Line


LookupFailureReason = Literal[
    "price_lookup_error",       # The price request raised (network / data error)
    "quote_missing",            # The ERP answered but had no entry for the product
    "product_lookup_error",     # Related-product metadata could not be fetched
]


class LookupFailure(BaseModel):
    """Why a requested item ended up as a zero-priced placeholder."""
    index: int                              # Position in the request list
    product_code: Optional[str] = None
    reason: LookupFailureReason
    message: str = ""


class LineOutcome(BaseModel):
    """Result of pricing one requested item: always a line, maybe a failure."""
    line: Line
    failure: Optional[LookupFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class AddProductResult(BaseModel):
    """
    Everything produced by one add-product call, in request order.
    Index 0 is the main product.
    """
    related_product_key: str
    outcomes: List[LineOutcome] = Field(default_factory=list)

    @property
    def lines(self) -> List[Line]:
        return [o.line for o in self.outcomes]

    @property
    def failures(self) -> List[LookupFailure]:
        return [o.failure for o in self.outcomes if o.failure is not None]

    @property
    def has_placeholders(self) -> bool:
        return any(not o.ok for o in self.outcomes)
