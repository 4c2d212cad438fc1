"""
Document currency change.

When the quotation's currency changes, every existing line's unit price is
rescaled by old_rate / new_rate and its totals recalculated.  A line whose
conversion cannot be resolved is returned exactly as it was; its price is
never zeroed or dropped.
"""
import logging
from typing import Optional, Sequence

from models.currency import ExchangeRate, OfficialRate
from models.line import Line
from .calculator import calculate_line_totals
from .exchange_rates import ExchangeRateResolver

logger = logging.getLogger(__name__)


class CurrencyRepricer:
    """
    Usage:
        repricer = CurrencyRepricer(quotation.exchange_rates, official_rates)
        lines = repricer.reprice(quotation.lines, old_currency_id, new_currency_id)
    """

    def __init__(
        self,
        overrides: Optional[Sequence[ExchangeRate]] = None,
        official_rates: Optional[Sequence[OfficialRate]] = None,
    ):
        self.resolver = ExchangeRateResolver(overrides, official_rates)

    def reprice(
        self,
        lines: Sequence[Line],
        old_currency_id: Optional[int],
        new_currency_id: Optional[int],
    ) -> list[Line]:
        if old_currency_id == new_currency_id:
            return list(lines)

        repriced: list[Line] = []
        unchanged = 0
        for line in lines:
            new_line = self._reprice_line(line, old_currency_id, new_currency_id)
            if new_line is line:
                unchanged += 1
            repriced.append(new_line)

        if unchanged:
            logger.warning(
                "Currency %s -> %s: %d of %d line(s) left unconverted (rate unavailable)",
                old_currency_id, new_currency_id, unchanged, len(repriced),
            )
        logger.info(
            "Repriced %d line(s) from currency %s to %s",
            len(repriced) - unchanged, old_currency_id, new_currency_id,
        )
        return repriced

    def _reprice_line(
        self,
        line: Line,
        old_currency_id: Optional[int],
        new_currency_id: Optional[int],
    ) -> Line:
        old_rate = self.resolver.resolve(old_currency_id)
        new_rate = self.resolver.resolve(new_currency_id)
        if old_rate is None or new_rate is None:
            return line

        ratio = old_rate / new_rate
        logger.debug("Line %s: unit price %.4f x %.6f", line.id or line.product_code, line.unit_price, ratio)
        return calculate_line_totals(line.model_copy(update={"unit_price": line.unit_price * ratio}))


def reprice(
    lines: Sequence[Line],
    old_currency_id: Optional[int],
    new_currency_id: Optional[int],
    overrides: Optional[Sequence[ExchangeRate]] = None,
    official_rates: Optional[Sequence[OfficialRate]] = None,
) -> list[Line]:
    """Functional form of CurrencyRepricer.reprice."""
    return CurrencyRepricer(overrides, official_rates).reprice(lines, old_currency_id, new_currency_id)
