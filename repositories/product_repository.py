"""
Product repository (read-only).

Product configurations are owned by admin tooling; the funnel only reads
them. Two catalogs share one interface:
- SupabaseProductCatalog: rows of the `products` table (slug, config jsonb, active)
- StaticProductCatalog: an in-process registry, optionally loaded from JSON

Both return fully validated `Product` objects or None.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Protocol

from domain.product import Product, ProductConfigError

logger = logging.getLogger(__name__)

# Supabase table name for product configurations.
# Keep this aligned with your database schema.
_PRODUCTS_TABLE: str = "products"


class ProductCatalog(Protocol):
    def get_product(self, slug: str) -> Optional[Product]:
        ...

    def list_slugs(self) -> list[str]:
        ...


def _row_to_product(row: Mapping[str, Any]) -> Product:
    """Convert a Supabase row into a Product."""

    config = row.get("config")
    if isinstance(config, str):
        config = json.loads(config)
    if not isinstance(config, Mapping):
        raise ProductConfigError(f"Product row {row.get('slug')!r} has no config object")

    data = dict(config)
    data.setdefault("slug", row.get("slug"))
    data.setdefault("id", row.get("id") or row.get("slug"))
    data["active"] = bool(row.get("active", data.get("active", True)))
    return Product.from_config(data)


class SupabaseProductCatalog:
    """Reads product configurations from Supabase."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from repositories.client import get_supabase

            self._client = get_supabase()
        return self._client

    def get_product(self, slug: str) -> Optional[Product]:
        """
        Get an active product by slug.

        Returns:
            Product or None if no active row matches

        Raises:
            RuntimeError: if the query fails
            ProductConfigError: if the stored configuration is invalid
        """
        response = (
            self.client.table(_PRODUCTS_TABLE)
            .select("id, slug, config, active")
            .eq("slug", slug)
            .limit(1)
            .execute()
        )

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch product: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None

        product = _row_to_product(rows[0])
        if not product.active:
            return None
        return product

    def list_slugs(self) -> list[str]:
        response = (
            self.client.table(_PRODUCTS_TABLE)
            .select("slug")
            .eq("active", True)
            .execute()
        )

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list products: {error}")

        rows = getattr(response, "data", None) or []
        return [str(row["slug"]) for row in rows]


class StaticProductCatalog:
    """In-process product registry keyed by slug."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: dict[str, Product] = {}
        for product in products:
            self.add(product)

    def add(self, product: Product) -> None:
        self._products[product.slug] = product

    def get_product(self, slug: str) -> Optional[Product]:
        product = self._products.get(slug)
        if product is None or not product.active:
            return None
        return product

    def list_slugs(self) -> list[str]:
        return [slug for slug, p in self._products.items() if p.active]

    @classmethod
    def from_configs(cls, configs: Iterable[Mapping[str, Any]]) -> "StaticProductCatalog":
        return cls(Product.from_config(config) for config in configs)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "StaticProductCatalog":
        """
        Load a JSON file holding either a list of product configs or an
        object keyed by slug.
        """
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)

        if isinstance(data, Mapping):
            configs = [{"slug": slug, **config} for slug, config in data.items()]
        else:
            configs = list(data)

        catalog = cls.from_configs(configs)
        logger.info(f"Loaded {len(catalog.list_slugs())} products from {path}")
        return catalog


__all__ = [
    "ProductCatalog",
    "StaticProductCatalog",
    "SupabaseProductCatalog",
]
