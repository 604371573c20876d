# Overview: Refund processor; pays money back against a voided sale without ever exceeding what was paid.

from __future__ import annotations

from ..errors import LedgerError
from ..extensions import db
from ..models import PaymentMethod, Refund, VoidedSale
from posting_engine.constants import INVOICE_VOID_SOURCES, PREFIX_REFUND, BillingTransType
from posting_engine.time_utils import normalize_trans_date, period_parts
from posting_engine.validation import require_amount, require_id
from .concurrency import increment_columns, lock_for_update, run_in_transaction
from .debtor_service import adjust_debtor_balance, ensure_debtor
from .ledger_service import write_collection, write_debtor_log
from .numbering_service import next_reference_number


"""
Refund invariants

- 0 <= refunded_amount <= total_paid on every VoidedSale
- is_refunded == (refunded_amount >= total_paid)
- Each refund writes a negative Collection row under its REF number
"""


class RefundError(LedgerError):
    """Raised when a refund is refused or cannot be stored."""
    pass


def get_refundable_amount(voided_sale_id: int) -> int:
    voided_sale = db.session.get(VoidedSale, voided_sale_id)
    if not voided_sale:
        raise RefundError(f"Voided sale {voided_sale_id} not found")
    return voided_sale.refundable_cents


def refund(
    voided_sale_id: int,
    refund_amount_cents: int,
    payment_method_id: int,
    *,
    actor_user_id: int | None,
    refund_date=None,
    remarks: str | None = None,
) -> Refund:
    """
    Refund part or all of what was paid on a voided sale.

    The bound 0 < amount <= total_paid - refunded_amount is re-checked under
    the row lock inside the transaction, so two concurrent refunds can never
    together exceed the amount paid.

    Invoice-backed voids (INVOICE_SALE, INVOICE_PAYMENT) also lower the
    customer's debtor balance by the refunded amount and record it as a
    debit entry on the debtor log.

    Raises:
        ValidationError: Malformed amount or ids
        RefundError: Unknown voided sale/payment method, amount out of range,
            or a storage failure ("Refund failed")
    """
    voided_sale_id = require_id("voided_sale_id", voided_sale_id)
    payment_method_id = require_id("payment_method_id", payment_method_id)
    amount = require_amount("refund_amount_cents", refund_amount_cents)
    when = normalize_trans_date(refund_date)
    year, month = period_parts(when)

    def _op() -> Refund:
        voided_sale = lock_for_update(db.session.query(VoidedSale).filter_by(id=voided_sale_id)).first()
        if not voided_sale:
            raise RefundError(f"Voided sale {voided_sale_id} not found")
        if not db.session.get(PaymentMethod, payment_method_id):
            raise RefundError(f"Payment method {payment_method_id} not found")

        refundable = voided_sale.refundable_cents
        if amount <= 0 or amount > refundable:
            raise RefundError(
                f"Refund amount must be between 1 and {refundable}",
                details={"refundable_cents": refundable, "requested_cents": amount},
            )

        refund_no = next_reference_number(PREFIX_REFUND, when=when)
        row = Refund(
            refund_no=refund_no,
            voided_sale_id=voided_sale.id,
            customer_id=voided_sale.customer_id,
            refund_date=when,
            amount_cents=amount,
            payment_method_id=payment_method_id,
            remarks=remarks,
            year_part=year,
            month_part=month,
            user_id=actor_user_id,
        )
        db.session.add(row)

        increment_columns(VoidedSale, voided_sale.id, refunded_amount_cents=amount)
        db.session.refresh(voided_sale)
        if voided_sale.refunded_amount_cents > voided_sale.total_paid_cents:
            raise RefundError("Refund exceeds the amount paid", details={"voided_sale_id": voided_sale.id})
        voided_sale.is_refunded = voided_sale.refunded_amount_cents >= voided_sale.total_paid_cents

        write_collection(
            receipt_no=refund_no,
            customer_id=voided_sale.customer_id,
            trans_date=when,
            payment_source=voided_sale.void_source,
            trans_type=BillingTransType.REFUND.value,
            amounts={payment_method_id: -amount},
            user_id=actor_user_id,
        )

        if voided_sale.void_source in INVOICE_VOID_SOURCES:
            debtor = ensure_debtor(voided_sale.customer_id)
            adjust_debtor_balance(debtor, -amount)
            write_debtor_log(
                debtor_id=debtor.id,
                customer_id=voided_sale.customer_id,
                trans_date=when,
                trans_type=BillingTransType.REFUND.value,
                reference_no=refund_no,
                debit_cents=amount,
                description=f"Refund {refund_no} for void {voided_sale.void_no}",
                user_id=actor_user_id,
            )

        db.session.flush()
        return row

    return run_in_transaction(_op, error_cls=RefundError, failure_message="Refund failed")
