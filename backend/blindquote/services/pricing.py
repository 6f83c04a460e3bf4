import logging
import math
import sys
from bisect import bisect_left
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, NamedTuple, Optional, Sequence

from blindquote.models.quote import Totals
from blindquote.services.bands import get_pricing_table

logger = logging.getLogger(__name__)

GST_RATE = Decimal("0.10")
DEPOSIT_RATE = Decimal("0.50")
CURRENCY = "AUD"

CENT = Decimal("0.01")
ZERO = Decimal("0")


class InvalidInput(ValueError):
    """Raised when a measurement or threshold list cannot be banded."""


class PriceResult(NamedTuple):
    price: float
    width_band: Optional[int]
    drop_band: Optional[int]
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None and self.price > 0


def parse_measurement(value: Any) -> Optional[float]:
    """Positive finite float or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except OverflowError:
        # integers past float range are oversize, not malformed
        return sys.float_info.max if value > 0 else None
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def resolve_band(measurement: Any, thresholds: Sequence[int]) -> int:
    """Round a measurement up to the next band threshold.

    Values above the largest threshold clamp to it.
    """
    value = parse_measurement(measurement)
    if value is None:
        raise InvalidInput(f"measurement must be a positive number, got {measurement!r}")
    if not thresholds:
        raise InvalidInput("threshold list is empty")
    idx = bisect_left(thresholds, value)
    if idx == len(thresholds):
        return thresholds[-1]
    return thresholds[idx]


def _to_decimal(value: Any) -> Decimal:
    # repr of a float is its shortest round-trip form, so 99.995 stays 99.995
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(float(value)))


def round_currency(value: Any) -> float:
    """Round to cents, half away from zero."""
    try:
        amount = _to_decimal(value)
    except (TypeError, ValueError, OverflowError, InvalidOperation):
        return 0.0
    if not amount.is_finite():
        return 0.0
    return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def format_currency(value: Any) -> str:
    return f"${round_currency(value):,.2f}"


def _item_total_of(item: Any) -> Decimal:
    if isinstance(item, dict):
        raw = item.get("totalPrice", item.get("total_price"))
    else:
        raw = getattr(item, "total_price", None)
    if raw is None or isinstance(raw, bool):
        logger.warning("Item without a total price counted as 0: %r", item)
        return ZERO
    try:
        amount = _to_decimal(raw)
    except (TypeError, ValueError, OverflowError, InvalidOperation):
        logger.warning("Malformed item total counted as 0: %r", raw)
        return ZERO
    if not amount.is_finite() or amount < 0:
        logger.warning("Malformed item total counted as 0: %r", raw)
        return ZERO
    return amount


def _quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(items: Optional[Iterable[Any]]) -> Totals:
    """Aggregate line item totals into quotation totals.

    Sums unrounded item totals, derives GST and deposit, then rounds each
    figure to cents once. Balance is taken from the rounded total and deposit
    so that deposit + balance always equals the total.
    """
    if not items:
        return Totals()

    subtotal = sum((_item_total_of(item) for item in items), ZERO)
    gst = subtotal * GST_RATE
    total = subtotal + gst
    deposit = total * DEPOSIT_RATE

    rounded_total = _quantize(total)
    rounded_deposit = _quantize(deposit)
    return Totals(
        subtotal=float(_quantize(subtotal)),
        gst=float(_quantize(gst)),
        total=float(rounded_total),
        deposit=float(rounded_deposit),
        balance=float(rounded_total - rounded_deposit),
    )


def item_total(unit_price: Any, quantity: Any) -> float:
    try:
        price = float(unit_price)
        qty = int(quantity)
        if not math.isfinite(price) or price < 0 or qty < 1:
            return 0
        total = price * qty
    except (TypeError, ValueError, OverflowError):
        return 0
    return total if math.isfinite(total) else 0


class PriceEngine:
    """Band table pricing.

    ``lookup_unit_price`` and ``resolve_bands`` sit on the live preview path
    and report failure with sentinels (0 and None). ``quote_unit_price`` is
    for callers that need to know why a price is missing.
    """

    def quote_unit_price(self, width: Any, drop: Any, group: Any) -> PriceResult:
        table = get_pricing_table(group)
        if table is None:
            return PriceResult(0, None, None, "invalid_group")
        try:
            width_band = resolve_band(width, table.width_bands)
            drop_band = resolve_band(drop, table.drop_bands)
        except InvalidInput:
            return PriceResult(0, None, None, "invalid_measurement")

        cell = table.prices[table.drop_bands.index(drop_band)][table.width_bands.index(width_band)]
        if not isinstance(cell, (int, float)) or isinstance(cell, bool) or cell <= 0:
            return PriceResult(0, width_band, drop_band, "price_unavailable")
        return PriceResult(cell, width_band, drop_band)

    def lookup_unit_price(self, width: Any, drop: Any, group: Any) -> float:
        return self.quote_unit_price(width, drop, group).price

    def resolve_bands(self, width: Any, drop: Any, group: Any) -> Dict[str, Optional[int]]:
        table = get_pricing_table(group)
        if table is None:
            return {"widthBand": None, "dropBand": None}
        return {
            "widthBand": self._band_or_none(width, table.width_bands),
            "dropBand": self._band_or_none(drop, table.drop_bands),
        }

    def preview(self, width: Any, drop: Any, group: Any, quantity: Any = 1) -> Dict[str, Any]:
        result = self.quote_unit_price(width, drop, group)
        qty = coerce_quantity(quantity)
        bands = self.resolve_bands(width, drop, group)
        logger.debug("Preview width=%s drop=%s group=%s -> %s", width, drop, group, result.price)
        return {
            "available": result.ok,
            "unitPrice": result.price,
            "quantity": qty,
            "totalPrice": item_total(result.price, qty) if result.ok else 0,
            "widthBand": bands["widthBand"],
            "dropBand": bands["dropBand"],
            "reason": result.reason,
        }

    @staticmethod
    def _band_or_none(measurement: Any, thresholds: Sequence[int]) -> Optional[int]:
        try:
            return resolve_band(measurement, thresholds)
        except InvalidInput:
            return None


def coerce_quantity(value: Any) -> int:
    """Integer quantity of at least 1."""
    if isinstance(value, bool):
        return 1
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return 1
    if not math.isfinite(number):
        return 1
    return max(1, int(math.floor(number)))
