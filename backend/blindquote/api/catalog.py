from fastapi import APIRouter, HTTPException
from typing import Optional

from blindquote.services.bands import (
    LOCATIONS,
    MOUNTING_STYLES,
    PRICING_TABLES,
    PRODUCT_CONFIG,
    get_pricing_table,
    parse_group,
)
from blindquote.services.pricing import PriceEngine

router = APIRouter()


@router.get("/groups")
async def list_groups():
    return [
        {"group": group, "widthBands": list(table.width_bands), "dropBands": list(table.drop_bands)}
        for group, table in PRICING_TABLES.items()
    ]


@router.get("/groups/{group}")
async def get_group(group: str):
    table = get_pricing_table(group)
    if table is None:
        raise HTTPException(status_code=404, detail="pricing group not found")
    return {
        "group": parse_group(group),
        "widthBands": list(table.width_bands),
        "dropBands": list(table.drop_bands),
        "prices": [list(row) for row in table.prices],
    }


@router.get("/products")
async def list_products():
    return {
        name: {
            "categories": list(config.categories),
            "groups": list(config.groups),
            "hasSizeInput": config.has_size_input,
        }
        for name, config in PRODUCT_CONFIG.items()
    }


@router.get("/locations")
async def list_locations():
    return {"locations": list(LOCATIONS), "mountingStyles": list(MOUNTING_STYLES)}


# The two endpoints below back the live preview while a form is being typed
# into. Query values arrive as raw strings so partial input never fails
# request validation; problems come back as 0 / null.

@router.get("/bands")
async def bands(width: Optional[str] = None, drop: Optional[str] = None, group: Optional[str] = None):
    return PriceEngine().resolve_bands(width, drop, group)


@router.get("/price")
async def price_preview(
    width: Optional[str] = None,
    drop: Optional[str] = None,
    group: Optional[str] = None,
    quantity: Optional[str] = None,
):
    return PriceEngine().preview(width, drop, group, quantity if quantity is not None else 1)
