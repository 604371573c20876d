# Overview: Transaction boundary and atomic-update helpers shared by every posting service.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for rows that are read and then checked.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func, *, error_cls: type[LedgerError], failure_message: str):
    """
    Execute one engine operation as a single all-or-nothing transaction.

    - Success commits and returns func()'s result.
    - Engine errors (LedgerError, ValueError) roll back and propagate unchanged.
    - Storage failures roll back and surface as error_cls(failure_message).
    - Anything else rolls back and propagates unchanged.

    Financial operations are never retried here; the caller decides.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except (LedgerError, ValueError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(failure_message)
        raise error_cls(failure_message) from exc
    except Exception:
        db.session.rollback()
        raise


def increment_columns(model, row_id: int, **deltas: int) -> int:
    """
    Atomic UPDATE model SET col = col + delta WHERE id = row_id.

    Expressed at the storage layer so concurrent writers never lose an
    update. Returns the number of rows affected.
    """
    values = {name: getattr(model, name) + delta for name, delta in deltas.items()}
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    return db.session.execute(stmt).rowcount


def claim_row(model, row_id: int, flag: str, **values) -> bool:
    """
    Conditional UPDATE model SET flag = true, ... WHERE id = row_id AND flag = false.

    Returns True when this caller won the claim.
    """
    column = getattr(model, flag)
    stmt = (
        update(model)
        .where(model.id == row_id, column.is_(False))
        .values({flag: True, **values})
        .execution_options(synchronize_session="fetch")
    )
    return db.session.execute(stmt).rowcount == 1
