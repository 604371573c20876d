# Overview: Normal stock adjustments; a reason's action decides whether stock is received from it or issued to it.

from __future__ import annotations

from ..errors import LedgerError
from ..extensions import db
from ..models import AdjustmentReason, NormalAdjustment, NormalAdjustmentLine
from posting_engine.constants import (
    ADJUSTMENT_STAGE_DRAFT,
    ADJUSTMENT_STAGE_POSTED,
    AdjustmentAction,
    PartyKind,
)
from posting_engine.time_utils import normalize_trans_date, parse_expiry_date
from posting_engine.validation import StockItem, parse_stock_items, require_id
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import _post_issue, _post_receive, _require_store


class AdjustmentError(LedgerError):
    """Raised when an adjustment cannot be created or posted."""
    pass


def create_normal_adjustment(
    store_id: int,
    adjustment_reason_id: int,
    items,
    *,
    actor_user_id: int | None,
    trans_date=None,
) -> NormalAdjustment:
    """Draft adjustment (stage 1); nothing moves until it is posted."""
    store_id = require_id("store_id", store_id)
    adjustment_reason_id = require_id("adjustment_reason_id", adjustment_reason_id)
    parsed = parse_stock_items(items)
    when = normalize_trans_date(trans_date)

    def _op():
        _require_store(store_id)
        if not db.session.get(AdjustmentReason, adjustment_reason_id):
            raise AdjustmentError(f"Adjustment reason {adjustment_reason_id} not found")

        adjustment = NormalAdjustment(
            trans_date=when,
            store_id=store_id,
            adjustment_reason_id=adjustment_reason_id,
            total_cents=sum(i.quantity * i.price_cents for i in parsed),
            stage=ADJUSTMENT_STAGE_DRAFT,
            user_id=actor_user_id,
        )
        db.session.add(adjustment)
        db.session.flush()
        for item in parsed:
            db.session.add(NormalAdjustmentLine(
                adjustment_id=adjustment.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_cents=item.price_cents,
            ))
        db.session.flush()
        return adjustment

    return run_in_transaction(_op, error_cls=AdjustmentError, failure_message="Adjustment failed")


def post_normal_adjustment(
    adjustment_id: int,
    *,
    actor_user_id: int | None,
    trans_date=None,
    expiry_date=None,
) -> NormalAdjustment:
    """
    Post a draft adjustment.

    Reason action Add receives the lines into the store from the reason;
    Deduct issues them out of the store to the reason (negative-stock guard
    applies). The adjustment moves to stage 2.

    Raises:
        AdjustmentError: Unknown adjustment or already posted
        InventoryError: Insufficient stock for a Deduct
    """
    when = normalize_trans_date(trans_date)
    lot = parse_expiry_date(expiry_date)

    def _op():
        adjustment = lock_for_update(db.session.query(NormalAdjustment).filter_by(id=adjustment_id)).first()
        if not adjustment:
            raise AdjustmentError(f"Adjustment {adjustment_id} not found")
        if adjustment.stage != ADJUSTMENT_STAGE_DRAFT:
            raise AdjustmentError(f"Adjustment {adjustment_id} is already posted")

        reason = adjustment.reason
        items = [StockItem(line.product_id, line.quantity, line.price_cents) for line in adjustment.lines]
        if not items:
            raise AdjustmentError("Adjustment has no lines")

        posting = dict(
            items=items,
            delivery_no=None,
            expiry_date=lot,
            trans_date=when,
            user_id=actor_user_id,
        )
        if reason.action == AdjustmentAction.ADD.value:
            _post_receive(
                to_store_id=adjustment.store_id,
                from_kind=PartyKind.ADJUSTMENT_REASON,
                from_id=reason.id,
                from_name=reason.name,
                **posting,
            )
        elif reason.action == AdjustmentAction.DEDUCT.value:
            _post_issue(
                from_store_id=adjustment.store_id,
                to_kind=PartyKind.ADJUSTMENT_REASON,
                to_id=reason.id,
                to_name=reason.name,
                **posting,
            )
        else:
            raise AdjustmentError(f"Unknown adjustment action: {reason.action}")

        adjustment.stage = ADJUSTMENT_STAGE_POSTED
        db.session.flush()
        return adjustment

    return run_in_transaction(_op, error_cls=AdjustmentError, failure_message="Adjustment failed")
