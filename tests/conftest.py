"""
Pytest configuration and shared fixtures for the pricing engine test suite.
"""
import os
from pathlib import Path
from typing import Optional, Sequence

import pytest

from models.currency import ExchangeRate, OfficialRate
from models.discount import DiscountLimit
from models.line import Line
from models.product import PriceQuote, PriceRequest, RelatedProduct

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

TRY, USD, EUR = 1, 2, 3


@pytest.fixture
def official_rates() -> list[OfficialRate]:
    """Published feed: TRY is the local currency (rate 1)."""
    return [
        OfficialRate(currency_id=TRY, rate=1.0, name="TRY"),
        OfficialRate(currency_id=USD, rate=30.0, name="USD"),
        OfficialRate(currency_id=EUR, rate=33.0, name="EUR"),
    ]


@pytest.fixture
def overrides() -> list[ExchangeRate]:
    """Document-level override for USD only."""
    return [ExchangeRate(currency_id=USD, rate=32.0, is_official=False, currency="USD")]


@pytest.fixture
def discount_limits() -> list[DiscountLimit]:
    return [
        DiscountLimit(group_code="PUMP", salesperson_id=7, max_discount1=15, max_discount2=5, max_discount3=None),
        DiscountLimit(group_code="VALVE", salesperson_id=7, max_discount1=10),
    ]


@pytest.fixture
def sample_line() -> Line:
    return Line(
        id="temp-1",
        product_code="STK-001",
        product_name="Centrifugal Pump",
        group_code="PUMP",
        quantity=10,
        unit_price=100,
        discount_rate1=10,
        discount_rate2=10,
        discount_rate3=0,
        vat_rate=18,
    )


class FakeCatalog:
    """
    In-memory stand-in for the ERP lookups.

    prices:        product_code -> PriceQuote
    products:      relation id  -> RelatedProduct
    failing_codes: product codes whose price lookup raises
    failing_ids:   relation ids whose metadata lookup raises
    """

    def __init__(
        self,
        prices: Optional[dict[str, PriceQuote]] = None,
        products: Optional[dict[int, RelatedProduct]] = None,
        failing_codes: Sequence[str] = (),
        failing_ids: Sequence[int] = (),
    ):
        self.prices = prices or {}
        self.products = products or {}
        self.failing_codes = set(failing_codes)
        self.failing_ids = set(failing_ids)
        self.price_calls: list[list[str]] = []

    async def get_prices(self, requests: Sequence[PriceRequest]) -> list[PriceQuote]:
        codes = [r.product_code for r in requests]
        self.price_calls.append(codes)
        for code in codes:
            if code in self.failing_codes:
                raise ConnectionError(f"price service unavailable for {code}")
        return [self.prices[c] for c in codes if c in self.prices]

    async def get_product_by_relation_id(self, relation_id: int) -> RelatedProduct:
        if relation_id in self.failing_ids:
            raise ConnectionError(f"stock {relation_id} unavailable")
        return self.products[relation_id]


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    """Main product STK-001 plus three related stocks (ids 11, 12, 13)."""
    return FakeCatalog(
        prices={
            "STK-001": PriceQuote(product_code="STK-001", group_code="PUMP", currency="2",
                                  list_price=100, discount1=5),
            "REL-A": PriceQuote(product_code="REL-A", group_code="VALVE", currency="USD", list_price=10),
            "REL-B": PriceQuote(product_code="REL-B", group_code="VALVE", currency="1", list_price=50),
            "REL-C": PriceQuote(product_code="REL-C", currency="TRY", list_price=20),
        },
        products={
            11: RelatedProduct(id=11, code="REL-A", name="Valve A", group_code="VALVE"),
            12: RelatedProduct(id=12, code="REL-B", name="Valve B", group_code="VALVE"),
            13: RelatedProduct(id=13, code="REL-C", name="Seal kit"),
        },
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture
def catalog_factory():
    """Build a FakeCatalog with custom data inside a test."""
    return FakeCatalog
