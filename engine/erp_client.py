"""
Async HTTP client for the ERP / sales backend.

Implements the lookups the pricing engine consumes:
  - price-of-product          (list prices and default discounts)
  - stock by id               (related-product metadata)
  - official exchange rates   (published feed, per date and price type)
  - discount limits           (per salesperson)

Every endpoint answers with the same envelope:
  {"success": bool, "message": str, "statusCode": int, "data": ...}
"""
import logging
from datetime import date
from typing import Any, Optional, Sequence

import httpx

from models.currency import OfficialRate
from models.discount import DiscountLimit
from models.product import PriceQuote, PriceRequest, RelatedProduct

logger = logging.getLogger(__name__)


class ErpError(RuntimeError):
    """Transport failure, bad status, or unusable payload from the ERP."""


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ErpClient:
    """
    Usage:
        async with ErpClient(config.erp_base_url, token=config.erp_api_token) as erp:
            rates = await erp.get_exchange_rates()
            quotes = await erp.get_prices([PriceRequest(product_code="ABC")])

    Pass http_client to reuse (or mock) an existing httpx.AsyncClient.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=timeout,
        )

    async def __aenter__(self) -> "ErpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: Any = None) -> Any:
        """GET path and return the envelope's data (None when absent)."""
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise ErpError(f"GET {path} failed: {exc}") from exc

        if response.status_code != 200:
            raise ErpError(f"GET {path}: HTTP {response.status_code} {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ErpError(f"GET {path}: response is not JSON") from exc

        if not isinstance(body, dict):
            raise ErpError(f"GET {path}: unexpected response shape")

        status = body.get("statusCode")
        if status and status != 200:
            raise ErpError(body.get("message") or f"GET {path}: status {status}")

        data = body.get("data")
        if not body.get("success", False) and not data:
            message = body.get("message") or "request was not successful"
            logger.debug("GET %s returned success=false: %s", path, message)
            return None
        return data

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_prices(self, requests: Sequence[PriceRequest]) -> list[PriceQuote]:
        """List prices for the given products.  Entries may be missing."""
        if not requests:
            return []

        params: list[tuple[str, str]] = []
        for i, req in enumerate(requests):
            params.append((f"request[{i}].productCode", req.product_code))
            params.append((f"request[{i}].groupCode", req.group_code))

        data = await self._get("/api/quotation/price-of-product", params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ErpError("price-of-product returned an unexpected data format")

        quotes = []
        for row in data:
            code = _to_str(row.get("productCode"))
            if not code:
                continue
            quotes.append(PriceQuote(
                product_code=code,
                group_code=_to_str(row.get("groupCode")),
                currency=_to_str(row.get("currency")),
                list_price=_to_float(row.get("listPrice")),
                cost_price=_to_float(row.get("costPrice")),
                discount1=_to_float(row.get("discount1")),
                discount2=_to_float(row.get("discount2")),
                discount3=_to_float(row.get("discount3")),
            ))
        logger.debug("price-of-product: %d request(s), %d quote(s)", len(requests), len(quotes))
        return quotes

    async def get_product_by_relation_id(self, relation_id: int) -> RelatedProduct:
        data = await self._get(f"/api/Stock/{relation_id}")
        if not isinstance(data, dict):
            raise ErpError(f"Stock {relation_id} not found")
        code = _to_str(data.get("erpStockCode"))
        if not code:
            raise ErpError(f"Stock {relation_id} has no ERP stock code")
        return RelatedProduct(
            id=data.get("id", relation_id),
            code=code,
            name=_to_str(data.get("stockName")) or "",
            group_code=_to_str(data.get("grupKodu")),
        )

    async def get_exchange_rates(self, on_date: Optional[date] = None, price_type: int = 1) -> list[OfficialRate]:
        """The published rate feed for a date (today by default)."""
        on_date = on_date or date.today()
        data = await self._get(
            "/api/Erp/getExchangeRate",
            params={"tarih": on_date.isoformat(), "fiyatTipi": price_type},
        )
        if not isinstance(data, list):
            raise ErpError("Exchange rates could not be loaded")
        rates = []
        for row in data:
            try:
                currency_id = int(row["dovizTipi"])
            except (TypeError, KeyError, ValueError):
                logger.warning("Skipping malformed exchange rate row: %s", row)
                continue
            rates.append(OfficialRate(
                currency_id=currency_id,
                rate=_to_float(row.get("kurDegeri")),
                name=_to_str(row.get("dovizIsmi")),
            ))
        logger.info("Loaded %d official exchange rate(s) for %s", len(rates), on_date.isoformat())
        return rates

    async def get_discount_limits(self, salesperson_id: int) -> list[DiscountLimit]:
        """Discount limits for one salesperson, ready for DiscountLimitEvaluator."""
        data = await self._get(f"/api/UserDiscountLimit/salesperson/{salesperson_id}")
        limits = []
        for row in data or []:
            if not isinstance(row, dict):
                logger.warning("Skipping malformed discount limit row: %s", row)
                continue
            group = _to_str(row.get("erpProductGroupCode"))
            max1 = _to_float(row.get("maxDiscount1"))
            if not group or max1 is None:
                logger.warning("Skipping malformed discount limit row: %s", row)
                continue
            limits.append(DiscountLimit(
                group_code=group,
                salesperson_id=int(row.get("salespersonId") or salesperson_id),
                salesperson_name=_to_str(row.get("salespersonName")),
                max_discount1=max1,
                max_discount2=_to_float(row.get("maxDiscount2")),
                max_discount3=_to_float(row.get("maxDiscount3")),
            ))
        logger.info("Loaded %d discount limit(s) for salesperson %s", len(limits), salesperson_id)
        return limits

    async def check_connection(self) -> dict:
        """Quick reachability check used by the CLI check command."""
        try:
            rates = await self.get_exchange_rates()
            return {"ok": True, "rate_count": len(rates)}
        except ErpError as exc:
            return {"ok": False, "error": str(exc)}
