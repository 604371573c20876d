# Overview: Service-layer operations for reference numbers; allocates receipt/invoice/void/refund/delivery numbers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import LedgerError
from ..extensions import db
from ..models import NumberSequence
from posting_engine.constants import (
    PREFIX_INVOICE,
    PREFIX_ISSUE,
    PREFIX_RECEIPT,
    PREFIX_RECEIVE,
    PREFIX_REFUND,
    PREFIX_VOID,
)
from posting_engine.time_utils import utcnow


class NumberingError(LedgerError):
    """Raised when a reference number cannot be allocated."""
    pass


VALID_PREFIXES = (
    PREFIX_RECEIPT,
    PREFIX_INVOICE,
    PREFIX_VOID,
    PREFIX_REFUND,
    PREFIX_ISSUE,
    PREFIX_RECEIVE,
)

COUNTER_PAD = 3


def _advance(prefix: str) -> int | None:
    stmt = (
        update(NumberSequence)
        .where(NumberSequence.prefix == prefix)
        .values(next_number=NumberSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(NumberSequence.next_number)
        .filter_by(prefix=prefix)
        .scalar()
    )
    return current - 1


def allocate_counter(prefix: str) -> int:
    """
    Atomically take the next counter value for a prefix.

    Runs inside the caller's transaction. The first use of a prefix inserts
    the sequence row inside a SAVEPOINT; losing that insert race to another
    writer falls back to the atomic increment.
    """
    if prefix not in VALID_PREFIXES:
        raise NumberingError(f"Unknown reference prefix: {prefix}")

    counter = _advance(prefix)
    if counter is not None:
        return counter

    try:
        with db.session.begin_nested():
            db.session.add(NumberSequence(prefix=prefix, next_number=2))
        return 1
    except IntegrityError:
        counter = _advance(prefix)
        if counter is None:
            raise NumberingError(f"Could not allocate a number for {prefix}")
        return counter


def format_reference_number(prefix: str, when: datetime, counter: int) -> str:
    """REC20240131093015001: prefix + YYYYMMDDHHMMSS + zero-padded counter."""
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S')}{counter:0{COUNTER_PAD}d}"


def next_reference_number(prefix: str, *, when: datetime | None = None) -> str:
    """
    Allocate a unique reference number for prefix.

    Uniqueness comes from the counter, the timestamp is informational, so
    backdated transactions cannot collide with each other.
    """
    counter = allocate_counter(prefix)
    return format_reference_number(prefix, when or utcnow(), counter)
