"""
Runtime settings.

Read once from the environment (optionally from a .env file in the project
root) and cached. Nothing here talks to the network.

Environment variables:
- STRIPE_SECRET_KEY / STRIPE_PUBLISHABLE_KEY: payment processor keys
- SUPABASE_URL / SUPABASE_KEY: product catalog database
- PRODUCT_CATALOG: "supabase" or "static" (default depends on credentials)
- PRODUCT_CONFIG_PATH: JSON file with product configurations for the static catalog
- BUSINESS_COUNTRY: seller country code (default DK)
- PRICES_INCLUDE_VAT: treat EU B2C prices as VAT-inclusive (default false)
- LOG_LEVEL: root log level (default INFO)
- CORS_ORIGINS: comma-separated allowed origins (default *)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    stripe_secret_key: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    product_catalog: str = "static"
    product_config_path: Optional[str] = None
    business_country: str = "DK"
    prices_include_vat: bool = False
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(dotenv_path=env_path)

    supabase_url = os.getenv("SUPABASE_URL") or None
    supabase_key = os.getenv("SUPABASE_KEY") or None
    default_catalog = "supabase" if supabase_url and supabase_key else "static"

    origins = os.getenv("CORS_ORIGINS", "*")

    return Settings(
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY") or None,
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        product_catalog=os.getenv("PRODUCT_CATALOG", default_catalog).strip().lower(),
        product_config_path=os.getenv("PRODUCT_CONFIG_PATH") or None,
        business_country=os.getenv("BUSINESS_COUNTRY", "DK").strip().upper(),
        prices_include_vat=_flag("PRICES_INCLUDE_VAT"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


__all__ = ["Settings", "get_settings"]
