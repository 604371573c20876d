# Overview: Service-layer operations for debtor balances; get-or-create and atomic balance increments.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Debtor
from .concurrency import increment_columns


def ensure_debtor(customer_id: int, debtor_type: str | None = None) -> Debtor:
    """
    Get or create the debtor account for (customer, debtor_type).

    The insert runs inside a SAVEPOINT so a concurrent creator winning the
    unique constraint does not abort the caller's transaction.
    """
    debtor_type = debtor_type or current_app.config["LEDGER_DEFAULT_DEBTOR_TYPE"]
    debtor = db.session.query(Debtor).filter_by(customer_id=customer_id, debtor_type=debtor_type).first()
    if debtor:
        return debtor

    try:
        with db.session.begin_nested():
            debtor = Debtor(customer_id=customer_id, debtor_type=debtor_type, balance_cents=0)
            db.session.add(debtor)
        return debtor
    except IntegrityError:
        return db.session.query(Debtor).filter_by(customer_id=customer_id, debtor_type=debtor_type).one()


def adjust_debtor_balance(debtor: Debtor, delta_cents: int) -> Debtor:
    """Atomic balance_cents += delta_cents. Negative balances are not blocked."""
    if delta_cents:
        increment_columns(Debtor, debtor.id, balance_cents=delta_cents)
    return debtor


def get_debtor_balance(customer_id: int, debtor_type: str | None = None) -> int:
    debtor_type = debtor_type or current_app.config["LEDGER_DEFAULT_DEBTOR_TYPE"]
    balance = (
        db.session.query(Debtor.balance_cents)
        .filter_by(customer_id=customer_id, debtor_type=debtor_type)
        .scalar()
    )
    return balance or 0
