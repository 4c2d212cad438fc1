"""
Exchange rate resolution and currency identifier handling.

Rates come from two places:
  1. Document-level overrides (ExchangeRate rows edited on the quotation)
  2. The ERP's published feed (OfficialRate rows)

An override wins when it is present and positive; otherwise the published
rate is used when positive; otherwise the rate is unknown (None).  Callers
must treat None as "leave the price unconverted", never as zero.

All rates are quoted against the local currency, so converting between two
foreign currencies is price * source_rate / target_rate.
"""
import logging
import re
from datetime import date
from typing import Iterable, Optional, Sequence

from models.currency import (
    CurrencyCode,
    CurrencyId,
    CurrencyOption,
    CurrencyRef,
    ExchangeRate,
    OfficialRate,
)

logger = logging.getLogger(__name__)

# dovizTipi of the local currency; always listed first in the catalog
LOCAL_CURRENCY_ID = 1

_LEADING_INT = re.compile(r"([+-]?\d+)")


class ExchangeRateResolver:
    """
    Resolves the best-known rate for a currency id.

    Usage:
        resolver = ExchangeRateResolver(quotation.exchange_rates, official_rates)
        rate = resolver.resolve(currency_id)
    """

    def __init__(
        self,
        overrides: Optional[Sequence[ExchangeRate]] = None,
        official_rates: Optional[Sequence[OfficialRate]] = None,
    ):
        self.overrides = list(overrides or [])
        self.official_rates = list(official_rates or [])

    def resolve(self, currency_id: Optional[int]) -> Optional[float]:
        if currency_id is None:
            return None

        override = next((r for r in self.overrides if r.currency_id == currency_id), None)
        if override is not None and override.rate and override.rate > 0:
            return override.rate

        official = next((r for r in self.official_rates if r.currency_id == currency_id), None)
        if official is not None and official.rate and official.rate > 0:
            return official.rate

        logger.debug("No usable rate for currency %s", currency_id)
        return None

    def conversion_ratio(self, source_id: Optional[int], target_id: Optional[int]) -> Optional[float]:
        """
        Factor that turns an amount in source currency into target currency,
        or None when either side cannot be resolved.
        """
        source_rate = self.resolve(source_id)
        target_rate = self.resolve(target_id)
        if source_rate is None or target_rate is None:
            return None
        return source_rate / target_rate


def resolve_rate(
    currency_id: Optional[int],
    overrides: Optional[Sequence[ExchangeRate]] = None,
    official_rates: Optional[Sequence[OfficialRate]] = None,
) -> Optional[float]:
    """Override first, then the official feed, else None."""
    return ExchangeRateResolver(overrides, official_rates).resolve(currency_id)


# ----------------------------------------------------------------------
# Currency identifiers
# ----------------------------------------------------------------------

def parse_currency_ref(raw: object) -> Optional[CurrencyRef]:
    """
    Classify a raw currency value from a price quote.

    "2" / 2  -> CurrencyId(2)
    "2.0"    -> CurrencyId(2)   (leading integer wins)
    "USD"    -> CurrencyCode("USD")
    "" / None -> None
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return CurrencyId(value=raw)
    text = str(raw).strip()
    if not text:
        return None
    match = _LEADING_INT.match(text)
    if match:
        return CurrencyId(value=int(match.group(1)))
    return CurrencyCode(value=text)


def resolve_currency_ref(
    ref: Optional[CurrencyRef],
    catalog: Iterable[CurrencyOption],
) -> Optional[int]:
    """
    Turn a CurrencyRef into a canonical numeric id.
    Codes are looked up in the catalog by code or name, exact match first,
    then case-insensitive.  Non-positive ids are treated as unknown.
    """
    if ref is None:
        return None

    if isinstance(ref, CurrencyId):
        return ref.value if ref.value > 0 else None

    options = list(catalog)
    wanted = ref.value
    for opt in options:
        if opt.code == wanted or opt.name == wanted:
            return opt.currency_id if opt.currency_id > 0 else None

    wanted_upper = wanted.upper()
    for opt in options:
        if opt.code.upper() == wanted_upper or (opt.name or "").upper() == wanted_upper:
            return opt.currency_id if opt.currency_id > 0 else None

    logger.warning("Unknown currency code '%s': not in currency catalog", wanted)
    return None


def build_currency_options(official_rates: Iterable[OfficialRate]) -> list[CurrencyOption]:
    """
    Derive the currency catalog from the official feed.
    The local currency comes first, the rest in ascending id order.
    """
    options = [
        CurrencyOption(
            currency_id=r.currency_id,
            code=r.name or f"DOVIZ_{r.currency_id}",
            name=r.name,
            rate=r.rate,
        )
        for r in official_rates
    ]
    options.sort(key=lambda o: (o.currency_id != LOCAL_CURRENCY_ID, o.currency_id))
    return options


def convert_price(
    price: float,
    source_code: str,
    target_code: str,
    overrides: Optional[Sequence[ExchangeRate]] = None,
    official_rates: Optional[Sequence[OfficialRate]] = None,
) -> float:
    """
    Convert a price between two currencies given by code.

    The price is returned unchanged whenever conversion is not possible:
    no feed, unknown code, same currency, or an unresolved rate.
    """
    if not official_rates:
        return price

    catalog = build_currency_options(official_rates)
    source_id = resolve_currency_ref(CurrencyCode(value=source_code), catalog)
    target_id = resolve_currency_ref(CurrencyCode(value=target_code), catalog)
    if source_id is None or target_id is None or source_id == target_id:
        return price

    ratio = ExchangeRateResolver(overrides, official_rates).conversion_ratio(source_id, target_id)
    if ratio is None:
        logger.warning("Cannot convert %s -> %s: rate unavailable", source_code, target_code)
        return price
    return price * ratio


# ----------------------------------------------------------------------
# Override table editing
# ----------------------------------------------------------------------

def build_override_table(
    official_rates: Sequence[OfficialRate],
    overrides: Sequence[ExchangeRate] = (),
    on_date: Optional[date] = None,
) -> list[ExchangeRate]:
    """
    One editable row per currency in the official feed.

    A currency that already has an override keeps its rate, date and
    is_official flag; otherwise the row starts from the published value and
    is marked official when that value exists.
    """
    on_date = on_date or date.today()
    table: list[ExchangeRate] = []
    for official in official_rates:
        existing = next((o for o in overrides if o.currency_id == official.currency_id), None)
        if existing is not None:
            table.append(existing.model_copy(update={
                "rate": existing.rate or official.rate or 0.0,
                "rate_date": existing.rate_date or on_date,
                "currency": existing.currency or official.name,
            }))
        else:
            table.append(ExchangeRate(
                currency_id=official.currency_id,
                rate=official.rate or 0.0,
                rate_date=on_date,
                is_official=official.rate is not None,
                currency=official.name,
            ))
    return table


def set_override_rate(
    table: Sequence[ExchangeRate],
    currency_id: int,
    rate: float,
    official_rates: Sequence[OfficialRate] = (),
) -> list[ExchangeRate]:
    """
    Return a new table with one row's rate changed.  The row stays official
    only if the new value equals the published one.
    """
    official = next((r for r in official_rates if r.currency_id == currency_id), None)
    official_value = official.rate if official is not None else None
    updated: list[ExchangeRate] = []
    found = False
    for row in table:
        if row.currency_id == currency_id:
            found = True
            row = row.model_copy(update={
                "rate": rate,
                "is_official": official_value is not None and official_value == rate,
            })
        updated.append(row)
    if not found:
        logger.warning("Currency %s is not in the exchange-rate table, change ignored", currency_id)
    return updated
