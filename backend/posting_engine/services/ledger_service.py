# Overview: Service-layer writers for the append-only billing ledgers (invoice log, debtor log, collections).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Collection, CollectionAmount, DebtorLog, InvoiceLog
from posting_engine.time_utils import period_parts

"""
Billing ledger invariants

- InvoiceLog, DebtorLog and Collection rows are append-only; nothing here
  updates or deletes an existing row.
- Rows are written inside the same transaction as the balance change they
  record.
- Exactly one of debit/credit is non-zero on a log row.
- Collection amounts are positive for money in, negative for refunds.
"""


def _split_signed(debit_cents: int, credit_cents: int) -> tuple[int, int]:
    if debit_cents < 0 or credit_cents < 0:
        raise ValueError("Ledger amounts must be >= 0")
    if debit_cents and credit_cents:
        raise ValueError("A ledger row is either a debit or a credit")
    return debit_cents, credit_cents


def write_invoice_log(
    *,
    invoice_no: str,
    customer_id: int,
    trans_date: datetime,
    trans_type: str,
    reference_no: str | None,
    debit_cents: int = 0,
    credit_cents: int = 0,
    description: str | None = None,
    user_id: int | None = None,
) -> InvoiceLog:
    """Append one signed entry to an invoice's ledger."""
    debit_cents, credit_cents = _split_signed(debit_cents, credit_cents)
    year, month = period_parts(trans_date)
    row = InvoiceLog(
        invoice_no=invoice_no,
        customer_id=customer_id,
        trans_date=trans_date,
        trans_type=trans_type,
        reference_no=reference_no,
        description=description,
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        year_part=year,
        month_part=month,
        user_id=user_id,
    )
    db.session.add(row)
    return row


def write_debtor_log(
    *,
    debtor_id: int,
    customer_id: int,
    trans_date: datetime,
    trans_type: str,
    reference_no: str | None,
    debit_cents: int = 0,
    credit_cents: int = 0,
    description: str | None = None,
    user_id: int | None = None,
) -> DebtorLog:
    """Append one signed entry to a debtor's ledger."""
    debit_cents, credit_cents = _split_signed(debit_cents, credit_cents)
    year, month = period_parts(trans_date)
    row = DebtorLog(
        debtor_id=debtor_id,
        customer_id=customer_id,
        trans_date=trans_date,
        trans_type=trans_type,
        reference_no=reference_no,
        description=description,
        debit_cents=debit_cents,
        credit_cents=credit_cents,
        year_part=year,
        month_part=month,
        user_id=user_id,
    )
    db.session.add(row)
    return row


def write_collection(
    *,
    receipt_no: str,
    customer_id: int | None,
    trans_date: datetime,
    payment_source: str,
    trans_type: str,
    amounts: dict[int, int],
    user_id: int | None = None,
) -> Collection:
    """
    Record one cash movement.

    amounts maps payment_method_id -> signed cents; zero entries are dropped.
    """
    year, month = period_parts(trans_date)
    non_zero = {method_id: cents for method_id, cents in amounts.items() if cents}
    collection = Collection(
        receipt_no=receipt_no,
        customer_id=customer_id,
        trans_date=trans_date,
        payment_source=payment_source,
        trans_type=trans_type,
        total_cents=sum(non_zero.values()),
        year_part=year,
        month_part=month,
        user_id=user_id,
    )
    db.session.add(collection)
    db.session.flush()

    for method_id, cents in non_zero.items():
        db.session.add(CollectionAmount(
            collection_id=collection.id,
            payment_method_id=method_id,
            amount_cents=cents,
        ))
    db.session.flush()
    return collection


def get_collection_by_receipt(receipt_no: str, payment_source: str | None = None) -> dict[int, int]:
    """Per payment method totals collected under a receipt/refund number."""
    query = (
        db.session.query(CollectionAmount.payment_method_id, func.sum(CollectionAmount.amount_cents))
        .join(Collection, Collection.id == CollectionAmount.collection_id)
        .filter(Collection.receipt_no == receipt_no)
    )
    if payment_source:
        query = query.filter(Collection.payment_source == payment_source)
    rows = query.group_by(CollectionAmount.payment_method_id).all()
    return {method_id: int(total or 0) for method_id, total in rows}
