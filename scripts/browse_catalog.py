#!/usr/bin/env python3
"""Walk the Year/Make/Model catalog of a live store.

Resolves the execution context from a page URL, lists makes and then
narrows the selection level by level using the names given on the
command line.  With ``--product`` (or ``--handle``) the final vehicle is
checked against that product.

Usage
-----
::

    python scripts/browse_catalog.py https://my-store.myshopify.com/ \\
        --make Toyota --model Camry --year 2023 --product 123456789

Options::

    --shop DOMAIN        Explicit *.myshopify.com domain
    --make/--model/--year/--submodel NAME
                         Narrow the selection (year by its value)
    --product ID         Check fitment for this product id
    --handle HANDLE      Check fitment for this product handle
    --search             List compatible products for the final vehicle
    --fitments           List every vehicle the --product fits
    --json               Output machine-readable JSON
    --verbose            Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fitsearch import (  # noqa: E402
    FitSearchClient,
    FitSearchConfig,
    FitSearchError,
    SelectionLevel,
    VehicleSelector,
    resolve_context,
)

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    return f"\n{'=' * 60}\n  {title}\n{'=' * 60}"


def _label(option: Any) -> str:
    return str(getattr(option, "name", None) or getattr(option, "value", ""))


def _find_id(options: list[Any], wanted: str) -> str | None:
    wanted = wanted.strip().lower()
    for option in options:
        if _label(option).lower() == wanted:
            return str(option.id)
    return None


async def _narrow(selector: VehicleSelector, level: SelectionLevel, wanted: str | None, out: list[str]) -> bool:
    """Select *wanted* at *level*; False when the walk has to stop."""
    options = selector.options(level)
    out.append(f"  {level.value:<9}: {', '.join(_label(o) for o in options) or '(none)'}")
    if wanted is None:
        return False
    option_id = _find_id(options, wanted)
    if option_id is None:
        out.append(f"  !! {level.value} {wanted!r} not found")
        return False
    select = {
        SelectionLevel.MAKE: selector.select_make,
        SelectionLevel.MODEL: selector.select_model,
        SelectionLevel.YEAR: selector.select_year,
        SelectionLevel.SUBMODEL: selector.select_submodel,
    }[level]
    await select(option_id)
    return selector.error is None


async def main() -> None:
    parser = argparse.ArgumentParser(description="Browse the vehicle fitment catalog of a store.")
    parser.add_argument("page_url", help="Storefront or admin page URL used to resolve the shop")
    parser.add_argument("--shop", help="Explicit *.myshopify.com domain")
    parser.add_argument("--make")
    parser.add_argument("--model")
    parser.add_argument("--year")
    parser.add_argument("--submodel")
    parser.add_argument("--product", help="Check fitment for this product id")
    parser.add_argument("--handle", help="Check fitment for this product handle")
    parser.add_argument("--search", action="store_true", help="List compatible products")
    parser.add_argument("--fitments", action="store_true", help="List every vehicle the --product fits")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = FitSearchConfig.from_env()
    context = resolve_context(args.page_url, explicit_shop=args.shop, proxy_base_path=config.proxy_subpath)

    out: list[str] = [_section("fitsearch browse_catalog")]
    out.append(f"  context  : {context.kind} shop={context.shop or '-'}")
    result: dict[str, Any] = {"context": {"kind": str(context.kind), "shop": context.shop}}

    async with FitSearchClient(config, context) as client:
        async with VehicleSelector(client) as selector:
            wanted = [args.make, args.model, args.year, args.submodel]
            for level, name in zip(SelectionLevel, wanted, strict=True):
                if not await _narrow(selector, level, name, out):
                    break

            snapshot = selector.snapshot()
            result["vehicle"] = selector.vehicle.model_dump(by_alias=True)
            result["error"] = snapshot.error
            out.append(_section("VEHICLE"))
            out.append(f"  selected : {selector.vehicle.display_name() or '(none)'}")
            if snapshot.error:
                out.append(f"  error    : {snapshot.error}")

            if args.product or args.handle:
                check = await selector.check_product(args.product, handle=args.handle)
                if check is not None:
                    out.append(f"  fits     : {check.product.title or check.product.id} -> {check.is_fitment}")
                    result["check"] = check.model_dump(by_alias=True)
                else:
                    out.append(f"  check    : {selector.error}")

            if args.search:
                page = await selector.search()
                if page is not None:
                    out.append(_section(f"COMPATIBLE PRODUCTS ({page.pagination.total_items})"))
                    out.extend(f"  - {p.title} ({p.handle})" for p in page.products)
                    result["compatible"] = page.model_dump(by_alias=True)
                else:
                    out.append(f"  search   : {selector.error}")

            if args.fitments and args.product:
                listing = await client.get_product_fitments(args.product)
                out.append(_section(f"FITMENTS ({listing.product.title or listing.product.id})"))
                rows = [fitment.describe() for fitment in listing.fitments]
                out.extend(f"  - {r['year']} {r['make']} {r['model']} ({r['submodel']})" for r in rows)
                result["fitments"] = rows

    if args.json_mode:
        print(json.dumps(result, indent=2, default=str, ensure_ascii=False))
    else:
        print("\n".join(out))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except FitSearchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
