#!/usr/bin/env python3
"""
Quotation pricing engine — CLI entry point.

Usage examples:
  python main.py check                                     # Verify the ERP is reachable
  python main.py add-product STK-001 --group G1 --currency 1
  python main.py add-product STK-001 --currency 2 --related 14 --related 15
  python main.py reprice quotation.json --to 2             # Reprice every line to currency 2
  python main.py reprice quotation.json --to 2 --offline   # Document overrides only
  python main.py evaluate quotation.json --salesperson 7   # Discount-limit check per line
  python main.py totals quotation.json
"""
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from config import Config
from engine.calculator import calculate_document_totals, calculate_line_totals
from engine.discount_limits import apply_discount_limits, requires_approval
from engine.erp_client import ErpClient, ErpError
from engine.exchange_rates import build_currency_options
from engine.repricer import CurrencyRepricer
from engine.session import PricingSessionController
from models.product import ProductSelection
from models.quotation import Quotation

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _erp_client(config: Config) -> ErpClient:
    return ErpClient(
        config.erp_base_url,
        token=config.erp_api_token,
        timeout=config.erp_timeout_seconds,
    )


def _load_quotation(path: str) -> Quotation:
    try:
        return Quotation.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise click.ClickException(f"{path} is not a valid quotation: {exc}")


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Quotation pricing engine: price lines, reprice currencies, check discount limits."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
def check() -> None:
    """Verify that the ERP backend answers the exchange-rate feed."""
    config = Config()

    async def _run() -> dict:
        async with _erp_client(config) as erp:
            return await erp.check_connection()

    status = asyncio.run(_run())
    click.echo("\n=== ERP Setup Check ===\n")
    click.echo(f"  ERP endpoint:  {config.erp_base_url}")
    if status["ok"]:
        click.echo(f"  Exchange rates:  ✓ {status['rate_count']} currencies")
    else:
        click.echo(f"  Exchange rates:  ✗ NOT reachable ({status['error']})")
        click.echo("  → Check ERP_BASE_URL and ERP_API_TOKEN in your .env")
    click.echo()


# --------------------------------------------------------------------
# add-product command
# --------------------------------------------------------------------

@cli.command("add-product")
@click.argument("code")
@click.option("--name", default="", help="Product name shown on the line")
@click.option("--group", "group_code", default=None, help="Product group code")
@click.option("--currency", "currency_id", type=int, required=True, help="Document currency id")
@click.option("--related", "related_ids", type=int, multiple=True, help="Related stock id (repeatable)")
@click.option("--vat", "vat_rate", type=float, default=None, help="VAT rate for the new lines")
@click.option("--stock-id", type=int, default=None, help="Stock id of the main product")
def add_product(
    code: str,
    name: str,
    group_code: Optional[str],
    currency_id: int,
    related_ids: tuple[int, ...],
    vat_rate: Optional[float],
    stock_id: Optional[int],
) -> None:
    """Price a product (and its related products) against the ERP."""
    config = Config()
    selection = ProductSelection(
        id=stock_id, code=code, name=name, group_code=group_code, vat_rate=vat_rate,
        related_stock_ids=list(related_ids),
    )

    async def _run():
        async with _erp_client(config) as erp:
            try:
                official = await erp.get_exchange_rates(price_type=config.price_type)
            except ErpError as exc:
                logger.warning("Continuing without official rates: %s", exc)
                official = []
            session = PricingSessionController(
                erp,
                currency_options=build_currency_options(official),
                default_vat_rate=config.default_vat_rate,
                default_quantity=config.default_quantity,
                concurrent_lookups=config.concurrent_lookups,
            )
            return await session.add_product(selection, currency_id=currency_id, official_rates=official)

    result = asyncio.run(_run())
    _echo_json({
        "related_product_key": result.related_product_key,
        "lines": [line.model_dump(mode="json") for line in result.lines],
        "failures": [f.model_dump(mode="json") for f in result.failures],
    })
    if result.has_placeholders:
        click.echo(f"\n{len(result.failures)} placeholder line(s) need review.", err=True)


# --------------------------------------------------------------------
# reprice command
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--to", "new_currency_id", type=int, required=True, help="New document currency id")
@click.option("--offline", is_flag=True, help="Use only the document's own exchange rates")
def reprice(file: str, new_currency_id: int, offline: bool) -> None:
    """Reprice every line of a quotation JSON file into a new currency."""
    config = Config()
    quotation = _load_quotation(file)

    official = []
    if not offline:
        async def _run():
            async with _erp_client(config) as erp:
                return await erp.get_exchange_rates(price_type=config.price_type)
        try:
            official = asyncio.run(_run())
        except ErpError as exc:
            raise click.ClickException(f"Could not load official rates: {exc}")

    repricer = CurrencyRepricer(quotation.exchange_rates, official)
    quotation.lines = repricer.reprice(quotation.lines, quotation.header.currency_id, new_currency_id)
    quotation.header.currency_id = new_currency_id
    _echo_json(quotation.model_dump(mode="json"))


# --------------------------------------------------------------------
# evaluate command
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--salesperson", "salesperson_id", type=int, default=None,
              help="Salesperson id (defaults to the quotation's representative)")
def evaluate(file: str, salesperson_id: Optional[int]) -> None:
    """Check every line's discounts against the salesperson's limits."""
    config = Config()
    quotation = _load_quotation(file)
    salesperson_id = salesperson_id or quotation.header.representative_id
    if not salesperson_id:
        raise click.ClickException("No salesperson given and the quotation has no representative")

    async def _run():
        async with _erp_client(config) as erp:
            return await erp.get_discount_limits(salesperson_id)

    try:
        limits = asyncio.run(_run())
    except ErpError as exc:
        raise click.ClickException(f"Could not load discount limits: {exc}")

    lines = apply_discount_limits(quotation.lines, limits)
    for i, line in enumerate(lines, start=1):
        click.echo(
            f"  {i:>3}  {line.product_code:<20} {line.group_code or '-':<10} "
            f"{line.discount_rate1:>6.2f} {line.discount_rate2:>6.2f} {line.discount_rate3:>6.2f}  "
            f"{line.approval_status.name}"
        )
    click.echo()
    click.echo("Approval required." if requires_approval(lines) else "No approval required.")


# --------------------------------------------------------------------
# totals command
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def totals(file: str) -> None:
    """Recalculate every line and print the document totals."""
    quotation = _load_quotation(file)
    lines = [calculate_line_totals(line) for line in quotation.lines]
    result = calculate_document_totals(lines)
    click.echo(f"  Lines:        {result.line_count}")
    click.echo(f"  Subtotal:     {result.subtotal:,.2f}")
    click.echo(f"  VAT:          {result.total_vat:,.2f}")
    click.echo(f"  Grand total:  {result.grand_total:,.2f}")


if __name__ == "__main__":
    cli()
