# backend/posting_engine/services/requisition_service.py
"""
Requisition workflow.

WHY: Stock leaves a store only against an approved requisition, and every
stage change is kept in RequisitionHistory for accountability.

LIFECYCLE (stage):
1. Draft: created, lines attached
2. Approved: may be returned to draft, or issued
3. Issued: goods left the source store, destination receive pending
4. Posted: received at the destination store, or issued to a customer

ISSUING:
- Store destination, double-entry issuing on: the destination receive is
  posted in the same transaction (requisition -> 4).
- Store destination, double-entry issuing off: a pending receive (stage 2)
  is recorded under the same delivery number and confirmed later through
  inventory_service.post_pending_receive (requisition -> 3, then 4).
- Any other destination: the issue completes the requisition (-> 4).
"""
from __future__ import annotations

from flask import current_app

from ..errors import LedgerError
from ..extensions import db
from ..models import Issue, Receive, Requisition, RequisitionHistory, RequisitionLine
from posting_engine.constants import (
    PREFIX_ISSUE,
    STAGE_APPROVED,
    STAGE_DRAFT,
    STAGE_ISSUED,
    STAGE_POSTED,
    PartyKind,
)
from posting_engine.time_utils import normalize_trans_date, parse_expiry_date
from posting_engine.validation import StockItem, ValidationError, parse_stock_items, require_id, require_party_kind
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import _create_receive_record, _post_issue, _post_receive, _require_store
from .numbering_service import next_reference_number
from .party_service import describe_party


class RequisitionError(LedgerError):
    """Raised when a requisition cannot move to the requested stage."""
    pass


def _record_stage(requisition: Requisition, stage: int, remarks: str | None, user_id: int | None) -> None:
    requisition.stage = stage
    db.session.add(RequisitionHistory(
        requisition_id=requisition.id,
        stage=stage,
        remarks=remarks,
        user_id=user_id,
    ))


def _lock_requisition(requisition_id: int) -> Requisition:
    requisition = lock_for_update(db.session.query(Requisition).filter_by(id=requisition_id)).first()
    if not requisition:
        raise RequisitionError(f"Requisition {requisition_id} not found")
    return requisition


def create_requisition(
    from_store_id: int,
    to_kind,
    to_id: int,
    items,
    *,
    actor_user_id: int | None,
    trans_date=None,
    remarks: str | None = None,
) -> Requisition:
    """
    Create a draft requisition (stage 1).

    Args:
        from_store_id: Store the goods will leave
        to_kind / to_id: Destination party
        items: [{product_id, quantity, price_cents}]

    Raises:
        ValidationError: Malformed items or party
        RequisitionError: Unknown store/party, or a same-store requisition
    """
    from_store_id = require_id("from_store_id", from_store_id)
    kind = require_party_kind(to_kind)
    to_id = require_id("to_id", to_id)
    parsed = parse_stock_items(items)
    when = normalize_trans_date(trans_date)

    def _op():
        _require_store(from_store_id)
        if kind == PartyKind.STORE and to_id == from_store_id:
            raise RequisitionError("Cannot requisition from the same store")
        describe_party(kind, to_id)

        requisition = Requisition(
            trans_date=when,
            from_store_id=from_store_id,
            to_kind=kind.value,
            to_id=to_id,
            stage=STAGE_DRAFT,
            total_cents=sum(i.quantity * i.price_cents for i in parsed),
            user_id=actor_user_id,
        )
        db.session.add(requisition)
        db.session.flush()

        for item in parsed:
            db.session.add(RequisitionLine(
                requisition_id=requisition.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_cents=item.price_cents,
            ))
        db.session.add(RequisitionHistory(
            requisition_id=requisition.id,
            stage=STAGE_DRAFT,
            remarks=remarks,
            user_id=actor_user_id,
        ))
        db.session.flush()
        return requisition

    return run_in_transaction(_op, error_cls=RequisitionError, failure_message="Requisition failed")


def approve_requisition(requisition_id: int, *, actor_user_id: int | None, remarks: str | None = None) -> Requisition:
    """Draft -> approved."""
    def _op():
        requisition = _lock_requisition(requisition_id)
        if requisition.stage != STAGE_DRAFT:
            raise RequisitionError(f"Cannot approve requisition in stage {requisition.stage}")
        if not requisition.lines:
            raise RequisitionError("Cannot approve requisition with no lines")
        _record_stage(requisition, STAGE_APPROVED, remarks, actor_user_id)
        db.session.flush()
        return requisition

    return run_in_transaction(_op, error_cls=RequisitionError, failure_message="Requisition failed")


def return_requisition_to_draft(requisition_id: int, *, actor_user_id: int | None, remarks: str | None = None) -> Requisition:
    """Approved -> draft, e.g. when the approver sends it back for changes."""
    def _op():
        requisition = _lock_requisition(requisition_id)
        if requisition.stage != STAGE_APPROVED:
            raise RequisitionError(f"Cannot return requisition in stage {requisition.stage} to draft")
        _record_stage(requisition, STAGE_DRAFT, remarks, actor_user_id)
        db.session.flush()
        return requisition

    return run_in_transaction(_op, error_cls=RequisitionError, failure_message="Requisition failed")


def issue_requisition(
    requisition_id: int,
    *,
    actor_user_id: int | None,
    trans_date=None,
    expiry_date=None,
    remarks: str | None = None,
) -> Issue:
    """
    Issue an approved requisition out of its source store.

    Returns:
        Issue document; requisition.delivery_no links it to the receive

    Raises:
        RequisitionError: Unknown requisition or wrong stage
        InventoryError: Insufficient stock at the source store
    """
    when = normalize_trans_date(trans_date)
    lot = parse_expiry_date(expiry_date)

    def _op():
        requisition = _lock_requisition(requisition_id)
        if requisition.stage != STAGE_APPROVED:
            raise RequisitionError(f"Cannot issue requisition in stage {requisition.stage}")

        kind = PartyKind(requisition.to_kind)
        items = [StockItem(line.product_id, line.quantity, line.price_cents) for line in requisition.lines]
        if not items:
            raise ValidationError("Requisition has no lines")
        delivery_no = next_reference_number(PREFIX_ISSUE, when=when)
        from_name = describe_party(PartyKind.STORE, requisition.from_store_id)

        issue_doc = _post_issue(
            from_store_id=requisition.from_store_id,
            to_kind=kind,
            to_id=requisition.to_id,
            to_name=None,
            items=items,
            delivery_no=delivery_no,
            expiry_date=lot,
            trans_date=when,
            user_id=actor_user_id,
        )
        requisition.delivery_no = delivery_no

        if kind != PartyKind.STORE:
            _record_stage(requisition, STAGE_POSTED, remarks, actor_user_id)
        elif current_app.config["LEDGER_DOUBLE_ENTRY_ISSUING"]:
            _post_receive(
                to_store_id=requisition.to_id,
                from_kind=PartyKind.STORE,
                from_id=requisition.from_store_id,
                from_name=from_name,
                items=items,
                delivery_no=delivery_no,
                expiry_date=lot,
                trans_date=when,
                user_id=actor_user_id,
                remarks=remarks,
            )
            _record_stage(requisition, STAGE_POSTED, remarks, actor_user_id)
        else:
            _create_receive_record(
                to_store_id=requisition.to_id,
                from_kind=PartyKind.STORE,
                from_id=requisition.from_store_id,
                items=items,
                stage=STAGE_APPROVED,
                delivery_no=delivery_no,
                expiry_date=lot,
                trans_date=when,
                user_id=actor_user_id,
                remarks=remarks,
            )
            _record_stage(requisition, STAGE_ISSUED, remarks, actor_user_id)

        db.session.flush()
        return issue_doc

    return run_in_transaction(_op, error_cls=RequisitionError, failure_message="Requisition issue failed")


def get_pending_receive(requisition_id: int) -> Receive | None:
    """The stage-2 receive waiting at the destination store for this requisition, if any."""
    requisition = db.session.get(Requisition, requisition_id)
    if not requisition or not requisition.delivery_no:
        return None
    return (
        db.session.query(Receive)
        .filter_by(delivery_no=requisition.delivery_no, stage=STAGE_APPROVED)
        .first()
    )
