import logging
from typing import Any, List, Mapping, NamedTuple, Optional, Union

from blindquote.models.quote import ItemInput, LineItem
from blindquote.services.bands import FACE_FIT, OTHER_LOCATION, RECESS, parse_group
from blindquote.services.pricing import PriceEngine, coerce_quantity, item_total, parse_measurement
from blindquote.services.validation import Validator

logger = logging.getLogger(__name__)


class ItemResult(NamedTuple):
    item: Optional[LineItem]
    issues: List[str]

    @property
    def ok(self) -> bool:
        return self.item is not None


def normalize_recess(value: Any) -> str:
    if isinstance(value, str):
        key = " ".join(value.replace("-", " ").replace("_", " ").split()).lower()
        if key in ("recess", "recess fit"):
            return RECESS
    return FACE_FIT


def build_line_item(data: Union[ItemInput, Mapping[str, Any]], engine: Optional[PriceEngine] = None) -> ItemResult:
    """Validate raw item input and price it.

    The item is rejected when validation fails or when no price can be
    found; a zero-priced item is never returned.
    """
    if isinstance(data, ItemInput):
        data = data.model_dump()
    else:
        data = ItemInput.model_validate(dict(data)).model_dump()

    validation = Validator().validate_item(data)
    if validation["decision"] == "rejected":
        logger.info("Item rejected issues=%s", validation["issues"])
        return ItemResult(None, validation["issues"])

    engine = engine or PriceEngine()
    priced = engine.quote_unit_price(data["width"], data["drop"], data["group"])
    if not priced.ok:
        logger.info("Item rejected, no price width=%s drop=%s group=%s reason=%s",
                    data["width"], data["drop"], data["group"], priced.reason)
        return ItemResult(None, [priced.reason or "price_unavailable"])

    location = data["location"].strip()
    if location == OTHER_LOCATION:
        location = data["other_location"].strip()

    quantity = coerce_quantity(data["quantity"])
    item = LineItem(
        location=location,
        product=data["product"].strip(),
        category=data["category"].strip(),
        group=parse_group(data["group"]),
        width=parse_measurement(data["width"]),
        drop=parse_measurement(data["drop"]),
        width_band=priced.width_band,
        drop_band=priced.drop_band,
        quantity=quantity,
        recess=normalize_recess(data["recess"]),
        unit_price=priced.price,
        total_price=item_total(priced.price, quantity),
    )
    return ItemResult(item, [])


def to_item_input(item: LineItem) -> ItemInput:
    """Inputs that rebuild ``item``, used when an item is edited in place."""
    return ItemInput(
        location=item.location,
        product=item.product,
        category=item.category,
        group=item.group,
        width=item.width,
        drop=item.drop,
        quantity=item.quantity,
        recess=item.recess,
    )
