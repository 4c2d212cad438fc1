from typing import List, Optional

from pydantic import BaseModel, Field


class PriceRequest(BaseModel):
    """One entry of a price-of-product request."""
    product_code: str
    group_code: str = ""


class PriceQuote(BaseModel):
    """
    A list price as returned by the ERP for one product.
    currency is raw: either a numeric id as text ("2") or a code ("USD").
    """
    product_code: str
    group_code: Optional[str] = None
    currency: Optional[str] = None
    list_price: Optional[float] = None
    cost_price: Optional[float] = None
    discount1: Optional[float] = None
    discount2: Optional[float] = None
    discount3: Optional[float] = None


class RelatedProduct(BaseModel):
    """Metadata for a mandatory/optional companion product (ERP stock record)."""
    id: Optional[int] = None
    code: str
    name: str = ""
    group_code: Optional[str] = None


class ProductSelection(BaseModel):
    """The product a user picked to add to a quotation."""
    id: Optional[int] = None                # Stock id, carried to related_stock_id
    code: str
    name: str = ""
    group_code: Optional[str] = None
    vat_rate: Optional[float] = None
    related_stock_ids: List[int] = Field(default_factory=list)
