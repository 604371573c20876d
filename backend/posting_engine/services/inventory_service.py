# backend/posting_engine/services/inventory_service.py
"""
Inventory movement engine.

WHY: Every stock change (sale at the cashier, store-to-store transfer,
purchase receipt, adjustment, physical count) resolves to an issue out of
a store or a receive into a store. Keeping a single pair of primitives
keeps every movement auditable through ProductTransaction.

INVARIANTS:
- StockLevel.quantity for (product, store) equals
  SUM(quantity_in - quantity_out) of ProductTransaction for that pair.
- Stock levels and expiry lots change only through atomic increments.
- ProductTransaction rows are append-only.
- Stock received from a supplier reprices the product (cost, previous
  cost, weighted average) and appends a ProductCostLog row.
"""
from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import LedgerError
from ..extensions import db
from ..models import (
    Issue,
    IssueLine,
    Product,
    ProductCostLog,
    ProductExpiryLot,
    ProductTransaction,
    Receive,
    ReceiveLine,
    Requisition,
    StockLevel,
    Store,
)
from posting_engine.constants import (
    PREFIX_ISSUE,
    PREFIX_RECEIVE,
    STAGE_APPROVED,
    STAGE_POSTED,
    PartyKind,
    StockTransType,
)
from posting_engine.time_utils import normalize_trans_date, parse_expiry_date
from posting_engine.validation import StockItem, ValidationError, parse_stock_items, require_party_kind
from .concurrency import increment_columns, lock_for_update, run_in_transaction
from .numbering_service import next_reference_number
from .party_service import describe_party


class InventoryError(LedgerError):
    """Raised when a stock movement cannot be posted."""
    pass


# =============================================================================
# QUERIES
# =============================================================================

def get_product_quantity(product_id: int, store_id: int | None = None) -> int:
    """On-hand quantity in one store, or across all stores when store_id is None."""
    query = db.session.query(func.coalesce(func.sum(StockLevel.quantity), 0)).filter(
        StockLevel.product_id == product_id
    )
    if store_id is not None:
        query = query.filter(StockLevel.store_id == store_id)
    return int(query.scalar() or 0)


def get_transaction_balance(product_id: int, store_id: int) -> int:
    """SUM(in - out) over the movement log; audit counterpart of get_product_quantity."""
    total = (
        db.session.query(
            func.coalesce(func.sum(ProductTransaction.quantity_in - ProductTransaction.quantity_out), 0)
        )
        .filter_by(product_id=product_id, store_id=store_id)
        .scalar()
    )
    return int(total or 0)


# =============================================================================
# STOCK PRIMITIVES
# =============================================================================

def adjust_stock_level(product_id: int, store_id: int, delta: int) -> None:
    """Atomic quantity += delta for (product, store), creating the row on first use."""
    row_id = (
        db.session.query(StockLevel.id)
        .filter_by(product_id=product_id, store_id=store_id)
        .scalar()
    )
    if row_id is None:
        try:
            with db.session.begin_nested():
                level = StockLevel(product_id=product_id, store_id=store_id, quantity=0)
                db.session.add(level)
            row_id = level.id
        except IntegrityError:
            row_id = (
                db.session.query(StockLevel.id)
                .filter_by(product_id=product_id, store_id=store_id)
                .scalar()
            )
    if delta:
        increment_columns(StockLevel, row_id, quantity=delta)


def adjust_expiry_lot(
    product_id: int,
    store_id: int,
    expiry_date: date | None,
    delta: int,
    *,
    batch_no: str | None = None,
) -> None:
    """
    Move quantity on an expiry lot.

    - delta > 0: increment the lot, creating it if missing
    - delta < 0: decrement the lot; the row is deleted once it reaches zero
    - expiry_date None: no lot tracking, nothing to do
    """
    if expiry_date is None or not delta:
        return

    lot = (
        db.session.query(ProductExpiryLot)
        .filter_by(product_id=product_id, store_id=store_id, expiry_date=expiry_date)
        .first()
    )

    if delta > 0:
        if lot is None:
            db.session.add(ProductExpiryLot(
                product_id=product_id,
                store_id=store_id,
                expiry_date=expiry_date,
                quantity=delta,
                batch_no=batch_no,
            ))
            db.session.flush()
            return
        increment_columns(ProductExpiryLot, lot.id, quantity=delta)
        return

    if lot is None:
        return
    increment_columns(ProductExpiryLot, lot.id, quantity=delta)
    db.session.refresh(lot)
    if lot.quantity <= 0:
        db.session.delete(lot)
        db.session.flush()


def log_product_transaction(
    *,
    product_id: int,
    store_id: int,
    trans_type: StockTransType,
    quantity: int,
    party_kind: PartyKind,
    party_id: int,
    party_name: str | None,
    trans_date: datetime,
    price_cents: int = 0,
    reference: str | None = None,
    expiry_date: date | None = None,
    description: str | None = None,
    user_id: int | None = None,
) -> ProductTransaction:
    """Append one movement row; quantity lands in quantity_in or quantity_out by trans_type."""
    is_receive = trans_type == StockTransType.RECEIVE
    row = ProductTransaction(
        trans_date=trans_date,
        product_id=product_id,
        store_id=store_id,
        source_kind=party_kind.value,
        source_id=party_id,
        source_description=party_name,
        expiry_date=expiry_date,
        reference=reference,
        trans_price_cents=price_cents,
        trans_type=trans_type.value,
        trans_description=description,
        quantity_in=quantity if is_receive else 0,
        quantity_out=0 if is_receive else quantity,
        user_id=user_id,
    )
    db.session.add(row)
    return row


def _aggregate(items: list[StockItem]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def _guard_negative_stock(store_id: int, items: list[StockItem]) -> None:
    if current_app.config["LEDGER_ALLOW_NEGATIVE_STOCK"]:
        return
    for product_id, quantity in _aggregate(items).items():
        level = lock_for_update(
            db.session.query(StockLevel).filter_by(product_id=product_id, store_id=store_id)
        ).first()
        on_hand = level.quantity if level else 0
        if on_hand < quantity:
            raise InventoryError(
                f"Insufficient stock for product {product_id}",
                details={"product_id": product_id, "store_id": store_id, "on_hand": on_hand, "requested": quantity},
            )


def _require_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise InventoryError(f"Store {store_id} not found")
    return store


def _apply_supplier_cost(items: list[StockItem], trans_date: datetime) -> None:
    """
    Reprice products bought from a supplier, before their stock lands.

    - cost_price takes the received price (last line wins), prev_cost the replaced one
    - average_cost is weighted by the quantity on hand across all stores
    - one ProductCostLog row per product
    """
    received: dict[int, tuple[int, int, int]] = {}
    for item in items:
        quantity, value, _ = received.get(item.product_id, (0, 0, 0))
        received[item.product_id] = (quantity + item.quantity, value + item.quantity * item.price_cents, item.price_cents)

    for product_id, (quantity, value, price) in received.items():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise InventoryError(f"Product {product_id} not found")
        on_hand = max(get_product_quantity(product_id), 0)
        average = product.average_cost_cents
        if average is None:
            average = product.cost_price_cents

        product.prev_cost_cents = product.cost_price_cents
        product.cost_price_cents = price
        product.average_cost_cents = round((on_hand * average + value) / (on_hand + quantity))
        db.session.add(ProductCostLog(
            trans_date=trans_date,
            product_id=product_id,
            cost_price_cents=price,
        ))
    db.session.flush()


def _issue_stock(
    *,
    from_store_id: int,
    to_kind: PartyKind,
    to_id: int,
    to_name: str,
    items: list[StockItem],
    delivery_no: str | None,
    expiry_date: date | None,
    trans_date: datetime,
    user_id: int | None,
    check_stock: bool = True,
) -> None:
    if check_stock:
        _guard_negative_stock(from_store_id, items)
    for item in items:
        adjust_stock_level(item.product_id, from_store_id, -item.quantity)
        adjust_expiry_lot(item.product_id, from_store_id, expiry_date, -item.quantity)
        log_product_transaction(
            product_id=item.product_id,
            store_id=from_store_id,
            trans_type=StockTransType.ISSUE,
            quantity=item.quantity,
            party_kind=to_kind,
            party_id=to_id,
            party_name=to_name,
            trans_date=trans_date,
            price_cents=item.price_cents,
            reference=delivery_no,
            expiry_date=expiry_date,
            description=f"Issued to {to_name}",
            user_id=user_id,
        )
    db.session.flush()


def _receive_stock(
    *,
    to_store_id: int,
    from_kind: PartyKind,
    from_id: int,
    from_name: str,
    items: list[StockItem],
    delivery_no: str | None,
    expiry_date: date | None,
    trans_date: datetime,
    user_id: int | None,
    batch_no: str | None = None,
) -> None:
    for item in items:
        adjust_stock_level(item.product_id, to_store_id, item.quantity)
        adjust_expiry_lot(item.product_id, to_store_id, expiry_date, item.quantity, batch_no=batch_no)
        log_product_transaction(
            product_id=item.product_id,
            store_id=to_store_id,
            trans_type=StockTransType.RECEIVE,
            quantity=item.quantity,
            party_kind=from_kind,
            party_id=from_id,
            party_name=from_name,
            trans_date=trans_date,
            price_cents=item.price_cents,
            reference=delivery_no,
            expiry_date=expiry_date,
            description=f"Received from {from_name}",
            user_id=user_id,
        )
    db.session.flush()


# =============================================================================
# DOCUMENT POSTINGS (callable inside an enclosing transaction)
# =============================================================================

def _post_issue(
    *,
    from_store_id: int,
    to_kind: PartyKind,
    to_id: int,
    to_name: str | None,
    items: list[StockItem],
    delivery_no: str | None,
    expiry_date: date | None,
    trans_date: datetime,
    user_id: int | None,
    check_stock: bool = True,
) -> Issue:
    _require_store(from_store_id)
    if to_kind == PartyKind.STORE and to_id == from_store_id:
        raise InventoryError("Cannot issue to the same store")
    to_name = to_name or describe_party(to_kind, to_id)
    delivery_no = delivery_no or next_reference_number(PREFIX_ISSUE, when=trans_date)

    issue_doc = Issue(
        trans_date=trans_date,
        delivery_no=delivery_no,
        from_store_id=from_store_id,
        to_kind=to_kind.value,
        to_id=to_id,
        total_cents=sum(i.quantity * i.price_cents for i in items),
        stage=STAGE_POSTED,
        user_id=user_id,
    )
    db.session.add(issue_doc)
    db.session.flush()

    for item in items:
        db.session.add(IssueLine(
            issue_id=issue_doc.id,
            product_id=item.product_id,
            quantity=item.quantity,
            price_cents=item.price_cents,
        ))

    _issue_stock(
        from_store_id=from_store_id,
        to_kind=to_kind,
        to_id=to_id,
        to_name=to_name,
        items=items,
        delivery_no=delivery_no,
        expiry_date=expiry_date,
        trans_date=trans_date,
        user_id=user_id,
        check_stock=check_stock,
    )
    return issue_doc


def _create_receive_record(
    *,
    to_store_id: int,
    from_kind: PartyKind,
    from_id: int,
    items: list[StockItem],
    stage: int,
    delivery_no: str | None,
    expiry_date: date | None,
    trans_date: datetime,
    user_id: int | None,
    remarks: str | None = None,
    purchase_ref: str | None = None,
) -> Receive:
    _require_store(to_store_id)
    receive_doc = Receive(
        trans_date=trans_date,
        delivery_no=delivery_no or next_reference_number(PREFIX_RECEIVE, when=trans_date),
        to_store_id=to_store_id,
        from_kind=from_kind.value,
        from_id=from_id,
        total_cents=sum(i.quantity * i.price_cents for i in items),
        stage=stage,
        remarks=remarks,
        purchase_ref=purchase_ref,
        expiry_date=expiry_date,
        user_id=user_id,
    )
    db.session.add(receive_doc)
    db.session.flush()

    for item in items:
        db.session.add(ReceiveLine(
            receive_id=receive_doc.id,
            product_id=item.product_id,
            quantity=item.quantity,
            price_cents=item.price_cents,
        ))
    db.session.flush()
    return receive_doc


def _post_receive(
    *,
    to_store_id: int,
    from_kind: PartyKind,
    from_id: int,
    from_name: str | None,
    items: list[StockItem],
    delivery_no: str | None,
    expiry_date: date | None,
    trans_date: datetime,
    user_id: int | None,
    remarks: str | None = None,
    purchase_ref: str | None = None,
) -> Receive:
    if from_kind == PartyKind.STORE and from_id == to_store_id:
        raise InventoryError("Cannot receive from the same store")
    from_name = from_name or describe_party(from_kind, from_id)
    receive_doc = _create_receive_record(
        to_store_id=to_store_id,
        from_kind=from_kind,
        from_id=from_id,
        items=items,
        stage=STAGE_POSTED,
        delivery_no=delivery_no,
        expiry_date=expiry_date,
        trans_date=trans_date,
        user_id=user_id,
        remarks=remarks,
        purchase_ref=purchase_ref,
    )
    if from_kind == PartyKind.SUPPLIER:
        _apply_supplier_cost(items, trans_date)
    _receive_stock(
        to_store_id=to_store_id,
        from_kind=from_kind,
        from_id=from_id,
        from_name=from_name,
        items=items,
        delivery_no=receive_doc.delivery_no,
        expiry_date=expiry_date,
        trans_date=trans_date,
        user_id=user_id,
    )
    return receive_doc


# =============================================================================
# PUBLIC OPERATIONS (one transaction each)
# =============================================================================

def issue(
    from_store_id: int,
    to_kind,
    to_id: int,
    to_name: str | None,
    items,
    *,
    delivery_no: str | None = None,
    expiry_date=None,
    actor_user_id: int | None,
    trans_date=None,
) -> Issue:
    """
    Issue goods out of a store.

    Args:
        from_store_id: Store whose stock goes down
        to_kind / to_id: Destination party (store, customer, supplier or adjustment reason)
        to_name: Display name for the movement log (resolved when None)
        items: [{product_id, quantity, price_cents}]
        delivery_no: Reference for the movement; an ISS number is allocated when None
        expiry_date: Lot to draw down, if lot-tracked

    Returns:
        Issue document (stage 4)

    Raises:
        ValidationError: Malformed items or party
        InventoryError: Unknown store, same-store issue, or insufficient stock
    """
    kind = require_party_kind(to_kind)
    parsed = parse_stock_items(items)
    when = normalize_trans_date(trans_date)
    lot = parse_expiry_date(expiry_date)

    def _op():
        return _post_issue(
            from_store_id=from_store_id,
            to_kind=kind,
            to_id=to_id,
            to_name=to_name,
            items=parsed,
            delivery_no=delivery_no,
            expiry_date=lot,
            trans_date=when,
            user_id=actor_user_id,
        )

    return run_in_transaction(_op, error_cls=InventoryError, failure_message="Issue failed")


def receive(
    to_store_id: int,
    from_kind,
    from_id: int,
    from_name: str | None,
    items,
    *,
    delivery_no: str | None = None,
    expiry_date=None,
    actor_user_id: int | None,
    trans_date=None,
    remarks: str | None = None,
    purchase_ref: str | None = None,
) -> Receive:
    """Receive goods into a store; mirror image of issue. Returns the posted Receive (stage 4)."""
    kind = require_party_kind(from_kind)
    parsed = parse_stock_items(items)
    when = normalize_trans_date(trans_date)
    lot = parse_expiry_date(expiry_date)

    def _op():
        return _post_receive(
            to_store_id=to_store_id,
            from_kind=kind,
            from_id=from_id,
            from_name=from_name,
            items=parsed,
            delivery_no=delivery_no,
            expiry_date=lot,
            trans_date=when,
            user_id=actor_user_id,
            remarks=remarks,
            purchase_ref=purchase_ref,
        )

    return run_in_transaction(_op, error_cls=InventoryError, failure_message="Receive failed")


def create_receive_record(
    to_store_id: int,
    from_kind,
    from_id: int,
    items,
    *,
    stage: int = STAGE_APPROVED,
    delivery_no: str | None = None,
    expiry_date=None,
    remarks: str | None = None,
    purchase_ref: str | None = None,
    actor_user_id: int | None,
    trans_date=None,
) -> Receive:
    """Record a Receive document without moving stock (pending confirmation by default)."""
    kind = require_party_kind(from_kind)
    parsed = parse_stock_items(items)
    when = normalize_trans_date(trans_date)
    lot = parse_expiry_date(expiry_date)
    if stage not in (STAGE_APPROVED, STAGE_POSTED):
        raise ValidationError("Receive records are created pending (2) or posted (4)")

    def _op():
        return _create_receive_record(
            to_store_id=to_store_id,
            from_kind=kind,
            from_id=from_id,
            items=parsed,
            stage=stage,
            delivery_no=delivery_no,
            expiry_date=lot,
            trans_date=when,
            user_id=actor_user_id,
            remarks=remarks,
            purchase_ref=purchase_ref,
        )

    return run_in_transaction(_op, error_cls=InventoryError, failure_message="Receive failed")


def post_pending_receive(receive_id: int, *, actor_user_id: int | None, trans_date=None) -> Receive:
    """
    Confirm a pending (stage 2) receive: move the stock into the destination
    store, mark the receive posted, and advance the requisition that
    dispatched it (matched by delivery number) to posted.
    """
    when = normalize_trans_date(trans_date)

    def _op():
        claimed = db.session.execute(
            update(Receive)
            .where(Receive.id == receive_id, Receive.stage == STAGE_APPROVED)
            .values(stage=STAGE_POSTED)
            .execution_options(synchronize_session="fetch")
        ).rowcount
        receive_doc = db.session.get(Receive, receive_id)
        if not receive_doc:
            raise InventoryError(f"Receive {receive_id} not found")
        if not claimed:
            raise InventoryError(f"Receive {receive_id} is not pending", details={"stage": receive_doc.stage})

        kind = PartyKind(receive_doc.from_kind)
        items = [StockItem(line.product_id, line.quantity, line.price_cents) for line in receive_doc.lines]
        if kind == PartyKind.SUPPLIER:
            _apply_supplier_cost(items, when)
        _receive_stock(
            to_store_id=receive_doc.to_store_id,
            from_kind=kind,
            from_id=receive_doc.from_id,
            from_name=describe_party(kind, receive_doc.from_id),
            items=items,
            delivery_no=receive_doc.delivery_no,
            expiry_date=receive_doc.expiry_date,
            trans_date=when,
            user_id=actor_user_id,
        )

        if receive_doc.delivery_no:
            db.session.execute(
                update(Requisition)
                .where(Requisition.delivery_no == receive_doc.delivery_no)
                .values(stage=STAGE_POSTED)
                .execution_options(synchronize_session="fetch")
            )
        db.session.flush()
        return receive_doc

    return run_in_transaction(_op, error_cls=InventoryError, failure_message="Receive failed")
