from .calculator import calculate_line_totals, calculate_document_totals
from .exchange_rates import ExchangeRateResolver, resolve_rate, convert_price
from .repricer import CurrencyRepricer, reprice
from .discount_limits import DiscountLimitEvaluator, evaluate_discount_limit, apply_discount_limits
from .session import PricingSessionController
from .erp_client import ErpClient, ErpError
from .submission import build_bulk_payload, SubmissionError

__all__ = [
    "calculate_line_totals", "calculate_document_totals",
    "ExchangeRateResolver", "resolve_rate", "convert_price",
    "CurrencyRepricer", "reprice",
    "DiscountLimitEvaluator", "evaluate_discount_limit", "apply_discount_limits",
    "PricingSessionController",
    "ErpClient", "ErpError",
    "build_bulk_payload", "SubmissionError",
]
