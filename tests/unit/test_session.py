"""
Unit tests for the pricing session (add product with related products).
"""
import asyncio

import pytest

from engine.session import PricingSessionController
from models.currency import ExchangeRate
from models.product import PriceQuote, ProductSelection

TRY, USD = 1, 2


@pytest.fixture
def selection() -> ProductSelection:
    return ProductSelection(id=500, code="STK-001", name="Centrifugal Pump", group_code="PUMP")


def _add(session, selection, **kwargs):
    return asyncio.run(session.add_product(selection, **kwargs))


@pytest.mark.unit
class TestAddProduct:
    """Tests for PricingSessionController.add_product."""

    def test_single_product_converted(self, fake_catalog, selection, official_rates):
        session = PricingSessionController(fake_catalog)
        result = _add(session, selection, currency_id=TRY, official_rates=official_rates)

        assert len(result.lines) == 1
        line = result.lines[0]
        assert line.unit_price == pytest.approx(3000)          # 100 USD * 30
        assert line.discount_rate1 == 5
        assert line.line_total == pytest.approx(2850)
        assert line.vat_rate == 18
        assert line.quantity == 1
        assert line.is_main_related_product is True
        assert line.needs_review is False
        assert not result.has_placeholders

    def test_override_rate_used(self, fake_catalog, selection, official_rates):
        overrides = [ExchangeRate(currency_id=USD, rate=32)]
        result = _add(PricingSessionController(fake_catalog), selection,
                      currency_id=TRY, overrides=overrides, official_rates=official_rates)
        assert result.lines[0].unit_price == pytest.approx(3200)

    def test_same_currency_not_converted(self, fake_catalog, selection, official_rates):
        result = _add(PricingSessionController(fake_catalog), selection,
                      currency_id=USD, official_rates=official_rates)
        assert result.lines[0].unit_price == pytest.approx(100)

    def test_unresolved_rate_keeps_list_price(self, fake_catalog, selection):
        result = _add(PricingSessionController(fake_catalog), selection, currency_id=TRY, official_rates=[])
        assert result.lines[0].unit_price == pytest.approx(100)
        assert result.lines[0].needs_review is False

    def test_product_vat_rate_used(self, fake_catalog, official_rates):
        product = ProductSelection(code="STK-001", vat_rate=8)
        result = _add(PricingSessionController(fake_catalog), product, currency_id=TRY, official_rates=official_rates)
        assert result.lines[0].vat_rate == 8

    def test_related_products_share_key(self, fake_catalog, selection, official_rates):
        session = PricingSessionController(fake_catalog)
        result = _add(session, selection, related_ids=[11, 12, 13],
                      currency_id=TRY, official_rates=official_rates)

        lines = result.lines
        assert [l.product_code for l in lines] == ["STK-001", "REL-A", "REL-B", "REL-C"]
        assert [l.is_main_related_product for l in lines] == [True, False, False, False]
        assert len({l.related_product_key for l in lines}) == 1
        assert lines[0].related_product_key == result.related_product_key
        assert all(l.related_stock_id == 500 for l in lines)
        assert len({l.id for l in lines}) == 4

    def test_related_product_currencies(self, fake_catalog, selection, official_rates):
        result = _add(PricingSessionController(fake_catalog), selection, related_ids=[11, 12, 13],
                      currency_id=TRY, official_rates=official_rates)
        prices = [l.unit_price for l in result.lines]
        assert prices == pytest.approx([3000, 300, 50, 20])     # "2", "USD", "1", "TRY"

    def test_related_products_from_selection(self, fake_catalog, official_rates):
        product = ProductSelection(code="STK-001", related_stock_ids=[12])
        result = _add(PricingSessionController(fake_catalog), product, currency_id=TRY, official_rates=official_rates)
        assert [l.product_code for l in result.lines] == ["STK-001", "REL-B"]
        assert result.lines[1].product_name == "Valve B"
        assert result.lines[1].group_code == "VALVE"

    def test_failed_price_lookup_yields_placeholder(self, catalog_factory, fake_catalog, selection, official_rates):
        catalog = catalog_factory(
            prices=fake_catalog.prices, products=fake_catalog.products, failing_codes=["REL-A"],
        )
        result = _add(PricingSessionController(catalog), selection, related_ids=[11, 12],
                      currency_id=TRY, official_rates=official_rates)

        assert len(result.lines) == 3
        placeholder = result.lines[1]
        assert placeholder.product_code == "REL-A"
        assert placeholder.unit_price == 0
        assert placeholder.line_grand_total == 0
        assert placeholder.needs_review is True
        assert result.lines[0].unit_price == pytest.approx(3000)
        assert result.lines[2].unit_price == pytest.approx(50)

        assert [o.ok for o in result.outcomes] == [True, False, True]
        failure = result.failures[0]
        assert failure.index == 1
        assert failure.reason == "price_lookup_error"
        assert "unavailable" in failure.message

    def test_missing_quote_yields_placeholder(self, catalog_factory, fake_catalog, selection, official_rates):
        prices = {k: v for k, v in fake_catalog.prices.items() if k != "REL-B"}
        catalog = catalog_factory(prices=prices, products=fake_catalog.products)
        result = _add(PricingSessionController(catalog), selection, related_ids=[11, 12],
                      currency_id=TRY, official_rates=official_rates)

        assert len(result.lines) == 3
        assert result.lines[2].unit_price == 0
        assert result.lines[2].needs_review is True
        assert result.failures[0].reason == "quote_missing"

    def test_failed_related_metadata_yields_placeholder(self, catalog_factory, fake_catalog, selection, official_rates):
        catalog = catalog_factory(prices=fake_catalog.prices, products=fake_catalog.products, failing_ids=[12])
        result = _add(PricingSessionController(catalog), selection, related_ids=[11, 12, 13],
                      currency_id=TRY, official_rates=official_rates)

        assert len(result.lines) == 4
        assert result.lines[2].needs_review is True
        assert result.lines[2].unit_price == 0
        assert result.failures[0].reason == "product_lookup_error"
        assert result.failures[0].index == 2
        assert result.lines[3].product_code == "REL-C"

    def test_main_product_failure_still_returns_line(self, catalog_factory, selection, official_rates):
        catalog = catalog_factory(failing_codes=["STK-001"])
        result = _add(PricingSessionController(catalog), selection, currency_id=TRY, official_rates=official_rates)

        assert len(result.lines) == 1
        assert result.lines[0].product_code == "STK-001"
        assert result.lines[0].product_name == "Centrifugal Pump"
        assert result.lines[0].is_main_related_product is True
        assert result.lines[0].needs_review is True

    def test_zero_price_from_erp_is_not_a_placeholder(self, catalog_factory, selection, official_rates):
        catalog = catalog_factory(prices={"STK-001": PriceQuote(product_code="STK-001", list_price=0)})
        result = _add(PricingSessionController(catalog), selection, currency_id=TRY, official_rates=official_rates)
        assert result.lines[0].unit_price == 0
        assert result.lines[0].needs_review is False
        assert result.failures == []

    def test_single_product_falls_back_to_first_quote(self, catalog_factory, selection, official_rates):
        class AliasCatalog(catalog_factory):
            async def get_prices(self, requests):
                return [PriceQuote(product_code="STK-001-ALT", currency="1", list_price=42)]

        result = _add(PricingSessionController(AliasCatalog()), selection,
                      currency_id=TRY, official_rates=official_rates)
        assert result.lines[0].unit_price == 42
        assert result.lines[0].product_code == "STK-001"

    def test_group_code_prefers_quote(self, fake_catalog, official_rates):
        product = ProductSelection(code="STK-001", group_code="OTHER")
        result = _add(PricingSessionController(fake_catalog), product, currency_id=TRY, official_rates=official_rates)
        assert result.lines[0].group_code == "PUMP"

    def test_concurrent_lookups_preserve_order(self, catalog_factory, fake_catalog, selection, official_rates):
        catalog = catalog_factory(prices=fake_catalog.prices, products=fake_catalog.products, failing_codes=["REL-B"])
        session = PricingSessionController(catalog, concurrent_lookups=True)
        result = _add(session, selection, related_ids=[11, 12, 13], currency_id=TRY, official_rates=official_rates)

        assert [l.product_code for l in result.lines] == ["STK-001", "REL-A", "REL-B", "REL-C"]
        assert [o.ok for o in result.outcomes] == [True, True, False, True]

    def test_lookups_are_one_request_per_item(self, fake_catalog, selection, official_rates):
        _add(PricingSessionController(fake_catalog), selection, related_ids=[11, 12],
             currency_id=TRY, official_rates=official_rates)
        assert fake_catalog.price_calls == [["STK-001"], ["REL-A"], ["REL-B"]]

    def test_defaults_from_controller(self, fake_catalog, official_rates):
        session = PricingSessionController(fake_catalog, default_vat_rate=20, default_quantity=3)
        result = _add(session, ProductSelection(code="STK-001"), currency_id=TRY, official_rates=official_rates)
        assert result.lines[0].vat_rate == 20
        assert result.lines[0].quantity == 3
        assert result.lines[0].line_total == pytest.approx(3000 * 3 * 0.95)
