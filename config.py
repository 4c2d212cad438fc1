"""
Central configuration for the quotation pricing engine.

Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/pricing_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent


@dataclass
class Config:
    # --- ERP / sales backend ---
    erp_base_url: str = field(
        default_factory=lambda: os.getenv("ERP_BASE_URL", "http://localhost:5000")
    )
    erp_api_token: Optional[str] = field(
        default_factory=lambda: os.getenv("ERP_API_TOKEN")
    )
    erp_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("ERP_TIMEOUT", "30"))
    )
    price_type: int = field(
        default_factory=lambda: int(os.getenv("ERP_PRICE_TYPE", "1"))
    )
    # price_type is the fiyatTipi sent with the official exchange-rate request

    # --- New line defaults ---
    default_vat_rate: float = 18.0     # Used when the selected product has no VAT rate
    default_quantity: float = 1.0

    # --- Related-product lookups ---
    concurrent_lookups: bool = field(
        default_factory=lambda: os.getenv("CONCURRENT_LOOKUPS", "false").lower() == "true"
    )
    # concurrent_lookups=False → one lookup at a time, in request order
    # concurrent_lookups=True  → asyncio.gather fan-out, results still in request order

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from pricing_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "pricing_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "erp_base_url":         str,
            "erp_timeout_seconds":  float,
            "price_type":           int,
            "default_vat_rate":     float,
            "default_quantity":     float,
            "concurrent_lookups":   bool,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load pricing_settings.json: %s", exc)
