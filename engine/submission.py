"""
Bulk create/update payload for a finished quotation.

Derived line amounts are recalculated here rather than trusted from the
caller, and placeholder lines left over from failed lookups block the
submission unless explicitly allowed.
"""
import logging
from datetime import date
from typing import Any, Optional

from models.currency import ExchangeRate
from models.line import Line
from models.quotation import Quotation, QuotationHeader
from .calculator import calculate_line_totals

logger = logging.getLogger(__name__)


class SubmissionError(ValueError):
    """The quotation is not in a state that can be submitted."""


def _positive_or_none(value: Optional[int]) -> Optional[int]:
    return value if value and value > 0 else None


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _header_payload(header: QuotationHeader) -> dict[str, Any]:
    return {
        "offerType": header.offer_type,
        "currency": str(header.currency_id),
        "potentialCustomerId": _positive_or_none(header.potential_customer_id),
        "erpCustomerCode": header.erp_customer_code or None,
        "deliveryDate": _iso(header.delivery_date),
        "shippingAddressId": _positive_or_none(header.shipping_address_id),
        "representativeId": _positive_or_none(header.representative_id),
        "status": _positive_or_none(header.status),
        "description": header.description or None,
        "paymentTypeId": _positive_or_none(header.payment_type_id),
        "documentSerialTypeId": _positive_or_none(header.document_serial_type_id),
        "offerDate": _iso(header.offer_date),
        "offerNo": header.offer_no or None,
        "revisionNo": header.revision_no or None,
        "revisionId": _positive_or_none(header.revision_id),
    }


def _line_payload(line: Line) -> dict[str, Any]:
    line = calculate_line_totals(line)
    return {
        "productCode": line.product_code,
        "productName": line.product_name,
        "groupCode": line.group_code,
        "quantity": line.quantity,
        "unitPrice": line.unit_price,
        "discountRate1": line.discount_rate1,
        "discountAmount1": line.discount_amount1,
        "discountRate2": line.discount_rate2,
        "discountAmount2": line.discount_amount2,
        "discountRate3": line.discount_rate3,
        "discountAmount3": line.discount_amount3,
        "vatRate": line.vat_rate,
        "vatAmount": line.vat_amount,
        "lineTotal": line.line_total,
        "lineGrandTotal": line.line_grand_total,
        "description": line.description or None,
        "pricingRuleHeaderId": _positive_or_none(line.pricing_rule_header_id),
        "relatedStockId": _positive_or_none(line.related_stock_id),
        "relatedProductKey": line.related_product_key,
        "isMainRelatedProduct": line.is_main_related_product,
        "approvalStatus": int(line.approval_status),
    }


def _rate_payload(rate: ExchangeRate) -> dict[str, Any]:
    return {
        "currency": rate.currency or str(rate.currency_id),
        "exchangeRate": rate.rate,
        "exchangeRateDate": _iso(rate.rate_date or date.today()),
        "isOfficial": rate.is_official if rate.is_official is not None else True,
    }


def build_bulk_payload(quotation: Quotation, allow_placeholders: bool = False) -> dict[str, Any]:
    """
    Build the {demand, lines, exchangeRates} body for the bulk endpoint.

    Raises SubmissionError when the document currency is missing, there are
    no lines, or (unless allow_placeholders) a line still needs review.
    """
    header = quotation.header
    if not header.currency_id or header.currency_id <= 0:
        raise SubmissionError("A valid document currency must be selected")
    if not quotation.lines:
        raise SubmissionError("The quotation has no lines")

    pending = [line for line in quotation.lines if line.needs_review]
    if pending and not allow_placeholders:
        codes = ", ".join(line.product_code or "?" for line in pending)
        raise SubmissionError(f"{len(pending)} line(s) need review before submission: {codes}")

    payload = {
        "demand": _header_payload(header),
        "lines": [_line_payload(line) for line in quotation.lines],
        "exchangeRates": [_rate_payload(rate) for rate in quotation.exchange_rates],
    }
    logger.info(
        "Built submission payload: %d line(s), %d exchange rate(s)",
        len(payload["lines"]), len(payload["exchangeRates"]),
    )
    return payload
