#!/usr/bin/env python3
"""
Seed product configurations into Supabase.

Reads a JSON file (a list of product configs, or an object keyed by slug),
validates every product exactly as the API will parse it, and upserts the
rows into the `products` table (slug, config jsonb, active).

Usage:
    python scripts/seed_products.py config/products.example.json
    python scripts/seed_products.py config/products.example.json --dry-run
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Mapping

# Add parent directory to path so we can import from domain/repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.product import Product, ProductConfigError
from domain.money import format_money


def load_configs(path: Path) -> list[dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)

    if isinstance(data, Mapping):
        return [{"slug": slug, **config} for slug, config in data.items()]
    return list(data)


def build_rows(configs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Validate configs and convert them to `products` rows.

    Raises:
        ProductConfigError: naming the first invalid product
    """
    rows = []
    for config in configs:
        product = Product.from_config(config)
        stored = {k: v for k, v in config.items() if k not in ("slug", "active")}
        rows.append({
            "slug": product.slug,
            "config": stored,
            "active": product.active,
        })
    return rows


def print_summary(configs: list[dict[str, Any]]) -> None:
    print("=" * 60)
    for config in configs:
        product = Product.from_config(config)
        upsells = ", ".join(u.id for u in product.enabled_upsells) or "-"
        print(f"  {product.slug:<20} {format_money(product.pricing.amount, product.currency):>12}  upsells: {upsells}")
    print("=" * 60)


def seed_products(rows: list[dict[str, Any]]) -> int:
    from repositories.client import get_supabase

    supabase = get_supabase()
    result = supabase.table("products").upsert(rows, on_conflict="slug").execute()

    if getattr(result, "error", None):
        raise RuntimeError(f"Failed to upsert products: {result.error}")

    return len(result.data or [])


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Validate and upsert product configurations into Supabase",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate only
  python scripts/seed_products.py config/products.example.json --dry-run

  # Upsert into the products table (needs SUPABASE_URL / SUPABASE_KEY)
  python scripts/seed_products.py config/products.example.json
        """
    )

    parser.add_argument("path", type=Path, help="JSON file with product configurations")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and print the products without writing to Supabase"
    )

    args = parser.parse_args()

    try:
        configs = load_configs(args.path)
        rows = build_rows(configs)
        print_summary(configs)

        if args.dry_run:
            print(f"[DRY RUN] {len(rows)} product(s) valid, nothing written")
            return 0

        written = seed_products(rows)
        print(f"[SUCCESS] Upserted {written} product(s)")
        return 0

    except ProductConfigError as e:
        print(f"[ERROR] Invalid product configuration: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\n\nSeeding interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
