from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from .currency import ExchangeRate
from .line import Line


class QuotationHeader(BaseModel):
    """Header fields of a quotation ("demand")."""
    currency_id: Optional[int] = None           # Document currency (dovizTipi)
    representative_id: Optional[int] = None     # Acting salesperson
    offer_type: Optional[str] = None            # "Domestic" / "Export"
    potential_customer_id: Optional[int] = None
    erp_customer_code: Optional[str] = None
    shipping_address_id: Optional[int] = None
    payment_type_id: Optional[int] = None
    document_serial_type_id: Optional[int] = None
    status: Optional[int] = None
    offer_date: Optional[date] = None
    delivery_date: Optional[date] = None
    offer_no: Optional[str] = None
    revision_no: Optional[str] = None
    revision_id: Optional[int] = None
    description: Optional[str] = None


class Quotation(BaseModel):
    """
    A quotation under edit: header, ordered lines and document-level
    exchange-rate overrides.  Owned exclusively by one editing session.
    """
    header: QuotationHeader = Field(default_factory=QuotationHeader)
    lines: List[Line] = Field(default_factory=list)
    exchange_rates: List[ExchangeRate] = Field(default_factory=list)
