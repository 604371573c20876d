# backend/posting_engine/services/count_service.py
"""
Physical inventory count service.

WHY: Periodic counts bring the system quantity back in line with what is on
the shelf. The difference is posted as ordinary stock movements against the
"Physical Inventory" adjustment reason, so the movement log still explains
every unit.

LIFECYCLE:
1. Draft: count created with expected and counted quantities
3. Closed: committed; variances posted, lots reset, costs updated

COMMIT (per store):
- delta = SUM(counted) - on hand, per product; > 0 received, < 0 issued
- Expiry lots of the counted products are rebuilt from the count lines
- Products with a delta take the counted price as their cost (ProductCostLog)
- A PhysicalStockBalance snapshot records the counted quantities
"""
from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import LedgerError
from ..extensions import db
from ..models import (
    AdjustmentReason,
    PhysicalInventory,
    PhysicalInventoryLine,
    PhysicalStockBalance,
    Product,
    ProductCostLog,
    ProductExpiryLot,
)
from posting_engine.constants import (
    PHYSICAL_INVENTORY_REASON_NAME,
    PHYSICAL_INVENTORY_STAGE_CLOSED,
    PHYSICAL_INVENTORY_STAGE_DRAFT,
    AdjustmentAction,
    PartyKind,
)
from posting_engine.time_utils import normalize_trans_date, parse_expiry_date
from posting_engine.validation import StockItem, parse_count_items, require_id
from .concurrency import run_in_transaction
from .inventory_service import _issue_stock, _receive_stock, _require_store, get_product_quantity


class CountError(LedgerError):
    """Raised when count operations fail."""
    pass


def get_physical_inventory_reason() -> AdjustmentReason:
    """Get or create the adjustment reason count variances are posted against."""
    reason = db.session.query(AdjustmentReason).filter_by(name=PHYSICAL_INVENTORY_REASON_NAME).first()
    if reason:
        return reason
    try:
        with db.session.begin_nested():
            reason = AdjustmentReason(name=PHYSICAL_INVENTORY_REASON_NAME, action=AdjustmentAction.ADD.value)
            db.session.add(reason)
        return reason
    except IntegrityError:
        return db.session.query(AdjustmentReason).filter_by(name=PHYSICAL_INVENTORY_REASON_NAME).one()


def create_physical_inventory(
    store_id: int,
    lines,
    *,
    actor_user_id: int | None,
    description: str | None = None,
) -> PhysicalInventory:
    """
    Create a draft count (stage 1).

    Args:
        store_id: Store being counted
        lines: [{product_id, counted_qty, expected_qty?, price_cents?, expiry_date?, batch_no?}]
            expected_qty defaults to the current on-hand quantity and
            price_cents to the product's cost price

    Returns:
        PhysicalInventory: The created count document

    Raises:
        ValidationError: Malformed lines
        CountError: Unknown store or product
    """
    store_id = require_id("store_id", store_id)
    parsed = parse_count_items(lines)

    def _op():
        _require_store(store_id)
        count = PhysicalInventory(
            store_id=store_id,
            description=description,
            stage=PHYSICAL_INVENTORY_STAGE_DRAFT,
            user_id=actor_user_id,
        )
        db.session.add(count)
        db.session.flush()

        for item in parsed:
            product = db.session.get(Product, item.product_id)
            if not product:
                raise CountError(f"Product {item.product_id} not found")
            expected = item.expected_qty
            if expected is None:
                expected = get_product_quantity(item.product_id, store_id)
            db.session.add(PhysicalInventoryLine(
                physical_inventory_id=count.id,
                product_id=item.product_id,
                batch_no=item.batch_no,
                expiry_date=parse_expiry_date(item.expiry_date),
                expected_qty=expected,
                counted_qty=item.counted_qty,
                price_cents=product.cost_price_cents if item.price_cents is None else item.price_cents,
            ))
        db.session.flush()
        return count

    return run_in_transaction(_op, error_cls=CountError, failure_message="Count failed")


def commit_physical_inventory(count_id: int, *, actor_user_id: int | None, trans_date=None) -> PhysicalInventory:
    """
    Close a draft count and post its variances.

    The draft -> closed transition is a conditional update, so a count can
    be committed exactly once.

    Raises:
        CountError: Unknown count, or already committed
    """
    when = normalize_trans_date(trans_date)

    def _op():
        claimed = db.session.execute(
            update(PhysicalInventory)
            .where(PhysicalInventory.id == count_id, PhysicalInventory.stage == PHYSICAL_INVENTORY_STAGE_DRAFT)
            .values(stage=PHYSICAL_INVENTORY_STAGE_CLOSED, closed_date=when)
            .execution_options(synchronize_session="fetch")
        ).rowcount
        count = db.session.get(PhysicalInventory, count_id)
        if not count:
            raise CountError(f"Count {count_id} not found")
        if not claimed:
            raise CountError(f"Count {count_id} is already committed")

        store_id = count.store_id
        reason = get_physical_inventory_reason()
        reference = f"PI-{count.id}"
        source_name = count.description or PHYSICAL_INVENTORY_REASON_NAME

        # Totals per product; the last line's price wins for costing
        counted: dict[int, int] = {}
        prices: dict[int, int] = {}
        lots: dict[tuple[int, object], tuple[int, str | None]] = {}
        for line in count.lines:
            counted[line.product_id] = counted.get(line.product_id, 0) + line.counted_qty
            prices[line.product_id] = line.price_cents
            if line.expiry_date and line.counted_qty > 0:
                key = (line.product_id, line.expiry_date)
                qty, batch = lots.get(key, (0, None))
                lots[key] = (qty + line.counted_qty, line.batch_no or batch)

        db.session.query(ProductExpiryLot).filter(
            ProductExpiryLot.store_id == store_id,
            ProductExpiryLot.product_id.in_(list(counted)),
        ).delete(synchronize_session="fetch")

        for product_id, total in counted.items():
            delta = total - get_product_quantity(product_id, store_id)
            if delta == 0:
                continue

            item = StockItem(product_id, abs(delta), prices[product_id])
            movement = dict(
                items=[item],
                delivery_no=reference,
                expiry_date=None,
                trans_date=when,
                user_id=actor_user_id,
            )
            if delta > 0:
                _receive_stock(
                    to_store_id=store_id,
                    from_kind=PartyKind.ADJUSTMENT_REASON,
                    from_id=reason.id,
                    from_name=source_name,
                    **movement,
                )
            else:
                _issue_stock(
                    from_store_id=store_id,
                    to_kind=PartyKind.ADJUSTMENT_REASON,
                    to_id=reason.id,
                    to_name=source_name,
                    check_stock=False,
                    **movement,
                )

            product = db.session.get(Product, product_id)
            product.prev_cost_cents = product.cost_price_cents
            product.cost_price_cents = prices[product_id]
            product.average_cost_cents = prices[product_id]
            db.session.add(ProductCostLog(
                trans_date=when,
                product_id=product_id,
                cost_price_cents=prices[product_id],
            ))

        for (product_id, expiry_date), (qty, batch_no) in lots.items():
            db.session.add(ProductExpiryLot(
                store_id=store_id,
                product_id=product_id,
                expiry_date=expiry_date,
                quantity=qty,
                batch_no=batch_no,
            ))

        for product_id, total in counted.items():
            db.session.add(PhysicalStockBalance(
                trans_date=when,
                store_id=store_id,
                product_id=product_id,
                quantity=total,
            ))

        db.session.flush()
        return count

    return run_in_transaction(_op, error_cls=CountError, failure_message="Count commit failed")
