"""
FastAPI dependency providers.

Routers receive the product catalog, the payment gateway and the settings
through `Depends`, so tests can swap them with `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from repositories.config import Settings, get_settings
from repositories.payment_gateway import PaymentGateway, StripeGateway
from repositories.product_repository import (
    ProductCatalog,
    StaticProductCatalog,
    SupabaseProductCatalog,
)

logger = logging.getLogger(__name__)


def settings_dependency() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def _build_catalog() -> ProductCatalog:
    settings = get_settings()

    if settings.product_catalog == "supabase":
        logger.info("Using Supabase product catalog")
        return SupabaseProductCatalog()

    if settings.product_config_path:
        return StaticProductCatalog.from_json_file(settings.product_config_path)

    logger.warning("No product catalog configured; every product lookup will return 404")
    return StaticProductCatalog()


def catalog_dependency() -> ProductCatalog:
    return _build_catalog()


@lru_cache(maxsize=1)
def _build_gateway() -> PaymentGateway:
    return StripeGateway()


def gateway_dependency() -> PaymentGateway:
    return _build_gateway()


__all__ = ["catalog_dependency", "gateway_dependency", "settings_dependency"]
