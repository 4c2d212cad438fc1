from .line import ApprovalStatus, Line, DocumentTotals
from .currency import ExchangeRate, OfficialRate, CurrencyOption, CurrencyId, CurrencyCode, CurrencyRef
from .discount import DiscountLimit, DiscountEvaluation
from .product import PriceRequest, PriceQuote, RelatedProduct, ProductSelection
from .quotation import Quotation, QuotationHeader
from .result import LookupFailure, LineOutcome, AddProductResult

__all__ = [
    "ApprovalStatus", "Line", "DocumentTotals",
    "ExchangeRate", "OfficialRate", "CurrencyOption", "CurrencyId", "CurrencyCode", "CurrencyRef",
    "DiscountLimit", "DiscountEvaluation",
    "PriceRequest", "PriceQuote", "RelatedProduct", "ProductSelection",
    "Quotation", "QuotationHeader",
    "LookupFailure", "LineOutcome", "AddProductResult",
]
