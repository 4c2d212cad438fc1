"""
Pricing session: turn a product selection into priced quotation lines.

For one add-product call:
  1. Build the request list: the main product first, then each related
     product in the order given (metadata fetched per relation id)
  2. Fetch a price quote for every request, index-correlated
  3. Work out each quote's source currency (numeric id or catalog code)
     and convert the list price into the document currency
  4. Build one line per request, all sharing a related_product_key, with
     index 0 marked as the main product
  5. Calculate totals for every line

A failed or empty lookup never aborts the call.  The affected position gets
a zero-priced placeholder line flagged needs_review, and the reason is
recorded as a LookupFailure in the result.  Discount limits are not checked
here; run engine.discount_limits once the user edits the discounts.
"""
import asyncio
import logging
import uuid
from typing import Awaitable, Optional, Protocol, Sequence, TypeVar, Union

from models.currency import CurrencyOption, ExchangeRate, OfficialRate
from models.line import Line
from models.product import PriceQuote, PriceRequest, ProductSelection, RelatedProduct
from models.result import AddProductResult, LineOutcome, LookupFailure
from .calculator import calculate_line_totals
from .exchange_rates import (
    ExchangeRateResolver,
    build_currency_options,
    parse_currency_ref,
    resolve_currency_ref,
)

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = 18.0
DEFAULT_QUANTITY = 1.0

T = TypeVar("T")


class PricingCatalog(Protocol):
    """The lookups the session needs from the ERP (see engine.erp_client.ErpClient)."""

    async def get_prices(self, requests: Sequence[PriceRequest]) -> list[PriceQuote]:
        ...

    async def get_product_by_relation_id(self, relation_id: int) -> RelatedProduct:
        ...


class PricingSessionController:
    """
    Usage:
        session = PricingSessionController(erp_client)
        result = await session.add_product(
            selection, currency_id=quotation.header.currency_id,
            overrides=quotation.exchange_rates, official_rates=feed,
        )
        quotation.lines.extend(result.lines)
    """

    def __init__(
        self,
        catalog: PricingCatalog,
        currency_options: Optional[Sequence[CurrencyOption]] = None,
        default_vat_rate: float = DEFAULT_VAT_RATE,
        default_quantity: float = DEFAULT_QUANTITY,
        concurrent_lookups: bool = False,
    ):
        self.catalog = catalog
        self.currency_options = list(currency_options) if currency_options is not None else None
        self.default_vat_rate = default_vat_rate
        self.default_quantity = default_quantity
        self.concurrent_lookups = concurrent_lookups

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def add_product(
        self,
        product: ProductSelection,
        related_ids: Optional[Sequence[int]] = None,
        currency_id: Optional[int] = None,
        overrides: Optional[Sequence[ExchangeRate]] = None,
        official_rates: Optional[Sequence[OfficialRate]] = None,
    ) -> AddProductResult:
        """
        Price the main product and its related products.
        Always returns one outcome per requested item, in request order.
        """
        if related_ids is None:
            related_ids = product.related_stock_ids
        related_ids = list(related_ids)

        resolver = ExchangeRateResolver(overrides, official_rates)
        catalog = (
            self.currency_options
            if self.currency_options is not None
            else build_currency_options(official_rates or [])
        )
        key = str(uuid.uuid4())
        vat_rate = product.vat_rate or self.default_vat_rate

        # Step 1: request list -- main product, then related products
        items: list[Union[RelatedProduct, LookupFailure]] = [
            RelatedProduct(id=product.id, code=product.code, name=product.name, group_code=product.group_code)
        ]
        items.extend(await self._join([
            self._fetch_related(relation_id, index)
            for index, relation_id in enumerate(related_ids, start=1)
        ]))

        # Step 2: price quotes, index-correlated with items
        single = len(items) == 1
        quotes = await self._join([
            self._fetch_quote(item, index, allow_fallback=single)
            if isinstance(item, RelatedProduct) else _passthrough(item)
            for index, item in enumerate(items)
        ])

        # Steps 3-5: lines
        outcomes: list[LineOutcome] = []
        for index, (item, quote) in enumerate(zip(items, quotes)):
            is_main = index == 0
            base = Line(
                id=f"temp-{key[:8]}-{index}",
                quantity=self.default_quantity,
                vat_rate=vat_rate,
                related_stock_id=product.id,
                related_product_key=key,
                is_main_related_product=is_main,
            )
            if isinstance(quote, LookupFailure):
                line = self._placeholder_line(base, item, quote)
                outcomes.append(LineOutcome(line=calculate_line_totals(line), failure=quote))
                continue

            line = self._priced_line(base, item, quote, currency_id, resolver, catalog)
            outcomes.append(LineOutcome(line=calculate_line_totals(line)))

        result = AddProductResult(related_product_key=key, outcomes=outcomes)
        if result.has_placeholders:
            logger.warning(
                "Added %s with %d line(s), %d placeholder(s) need review",
                product.code, len(outcomes), len(result.failures),
            )
        else:
            logger.info("Added %s with %d line(s)", product.code, len(outcomes))
        return result

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _join(self, tasks: Sequence[Awaitable[T]]) -> list[T]:
        """
        Await tasks and return their results in the order given.  Every task
        handles its own failure, so one bad lookup never cancels the rest.
        """
        if self.concurrent_lookups:
            return list(await asyncio.gather(*tasks))
        return [await task for task in tasks]

    async def _fetch_related(self, relation_id: int, index: int) -> Union[RelatedProduct, LookupFailure]:
        try:
            related = await self.catalog.get_product_by_relation_id(relation_id)
        except Exception as exc:
            logger.warning("Related product %s lookup failed: %s", relation_id, exc)
            return LookupFailure(index=index, reason="product_lookup_error", message=str(exc))
        if related is None or not related.code:
            return LookupFailure(
                index=index,
                reason="product_lookup_error",
                message=f"Related product {relation_id} has no stock code",
            )
        return related

    async def _fetch_quote(
        self,
        item: RelatedProduct,
        index: int,
        allow_fallback: bool = False,
    ) -> Union[PriceQuote, LookupFailure]:
        request = PriceRequest(product_code=item.code, group_code=item.group_code or "")
        try:
            quotes = await self.catalog.get_prices([request])
        except Exception as exc:
            logger.warning("Price lookup for %s failed: %s", item.code, exc)
            return LookupFailure(
                index=index, product_code=item.code, reason="price_lookup_error", message=str(exc),
            )

        quote = next((q for q in quotes if q.product_code == item.code), None)
        if quote is None and allow_fallback and quotes:
            quote = quotes[0]
        if quote is None:
            logger.warning("No price quote returned for %s", item.code)
            return LookupFailure(
                index=index, product_code=item.code, reason="quote_missing",
                message=f"No price found for {item.code}",
            )
        return quote

    # ------------------------------------------------------------------
    # Line building
    # ------------------------------------------------------------------

    def _placeholder_line(
        self,
        base: Line,
        item: Union[RelatedProduct, LookupFailure],
        failure: LookupFailure,
    ) -> Line:
        if isinstance(item, RelatedProduct):
            return base.model_copy(update={
                "product_code": item.code,
                "product_name": item.name,
                "group_code": item.group_code or None,
                "needs_review": True,
            })
        return base.model_copy(update={
            "product_code": failure.product_code or "",
            "needs_review": True,
        })

    def _priced_line(
        self,
        base: Line,
        item: RelatedProduct,
        quote: PriceQuote,
        currency_id: Optional[int],
        resolver: ExchangeRateResolver,
        catalog: Sequence[CurrencyOption],
    ) -> Line:
        list_price = quote.list_price or 0.0
        unit_price = list_price

        source_id = resolve_currency_ref(parse_currency_ref(quote.currency), catalog)
        if source_id is not None and source_id != currency_id:
            ratio = resolver.conversion_ratio(source_id, currency_id)
            if ratio is not None:
                unit_price = list_price * ratio
            else:
                logger.warning(
                    "%s: no rate for %s -> %s, keeping list price %.4f unconverted",
                    item.code, source_id, currency_id, list_price,
                )

        return base.model_copy(update={
            "product_code": item.code,
            "product_name": item.name,
            "group_code": quote.group_code or item.group_code or None,
            "unit_price": unit_price,
            "discount_rate1": quote.discount1 or 0.0,
            "discount_rate2": quote.discount2 or 0.0,
            "discount_rate3": quote.discount3 or 0.0,
        })


async def _passthrough(value: T) -> T:
    return value
