from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from posting_engine.constants import PartyKind


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """Malformed input, rejected before any transaction work starts."""


@dataclass(frozen=True)
class LineItem:
    """Priced sale line: quantity x unit_price_cents."""
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class StockItem:
    """Stock movement line: quantity moved at price_cents per unit."""
    product_id: int
    quantity: int
    price_cents: int = 0


def _to_int(field: str, value: Any) -> int:
    # Reject bools and floats; strings must be plain integers
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "." in stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def require_amount(field: str, value: Any, *, allow_zero: bool = True) -> int:
    """Validate a cents amount: integer, non-negative, within MAX_AMOUNT_CENTS."""
    amount = _to_int(field, value)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def require_id(field: str, value: Any) -> int:
    ident = _to_int(field, value)
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive id")
    return ident


def require_party_kind(value: Any) -> PartyKind:
    try:
        return PartyKind(value)
    except ValueError:
        raise ValidationError(f"Invalid party kind: {value}")


def _field(raw: Any, name: str):
    if isinstance(raw, dict):
        return raw.get(name)
    return getattr(raw, name, None)


def parse_line_items(items: Iterable[Any] | None) -> list[LineItem]:
    """
    Normalize sale line items (dicts or objects with product_id / quantity /
    unit_price_cents). At least one line, quantity > 0, price >= 0.
    """
    if not items:
        raise ValidationError("At least one line item is required")

    parsed: list[LineItem] = []
    for index, raw in enumerate(items):
        if isinstance(raw, LineItem):
            raw = {"product_id": raw.product_id, "quantity": raw.quantity, "unit_price_cents": raw.unit_price_cents}
        product_id = _field(raw, "product_id")
        if product_id is None:
            raise ValidationError(f"line {index}: product_id is required")
        quantity = _to_int(f"line {index}: quantity", _field(raw, "quantity"))
        if quantity <= 0:
            raise ValidationError(f"line {index}: quantity must be > 0")
        price = require_amount(f"line {index}: unit_price_cents", _field(raw, "unit_price_cents"))
        parsed.append(LineItem(require_id("product_id", product_id), quantity, price))
    return parsed


def parse_stock_items(items: Iterable[Any] | None) -> list[StockItem]:
    """
    Normalize stock items (dicts, StockItem or objects with the same fields).
    quantity > 0, price_cents >= 0 and defaults to 0.
    """
    if not items:
        raise ValidationError("At least one item is required")

    parsed: list[StockItem] = []
    for index, raw in enumerate(items):
        product_id = _field(raw, "product_id")
        if product_id is None:
            raise ValidationError(f"item {index}: product_id is required")
        quantity = _to_int(f"item {index}: quantity", _field(raw, "quantity"))
        if quantity <= 0:
            raise ValidationError(f"item {index}: quantity must be > 0")
        price = _field(raw, "price_cents")
        price_cents = 0 if price is None else require_amount(f"item {index}: price_cents", price)
        parsed.append(StockItem(require_id("product_id", product_id), quantity, price_cents))
    return parsed


@dataclass(frozen=True)
class CountItem:
    """Physical count line; expected_qty None means "take it from the system"."""
    product_id: int
    counted_qty: int
    expected_qty: int | None = None
    price_cents: int | None = None
    expiry_date: Any = None
    batch_no: str | None = None


def parse_count_items(items: Iterable[Any] | None) -> list[CountItem]:
    """Normalize physical count lines (dicts or CountItem); counted_qty >= 0."""
    if not items:
        raise ValidationError("At least one count line is required")

    parsed: list[CountItem] = []
    for index, raw in enumerate(items):
        product_id = _field(raw, "product_id")
        if product_id is None:
            raise ValidationError(f"line {index}: product_id is required")
        counted = _to_int(f"line {index}: counted_qty", _field(raw, "counted_qty"))
        if counted < 0:
            raise ValidationError(f"line {index}: counted_qty cannot be negative")
        expected = _field(raw, "expected_qty")
        price = _field(raw, "price_cents")
        parsed.append(CountItem(
            product_id=require_id("product_id", product_id),
            counted_qty=counted,
            expected_qty=None if expected is None else _to_int(f"line {index}: expected_qty", expected),
            price_cents=None if price is None else require_amount(f"line {index}: price_cents", price),
            expiry_date=_field(raw, "expiry_date"),
            batch_no=_field(raw, "batch_no"),
        ))
    return parsed
