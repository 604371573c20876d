"""
Transaction boundary tests.

Verifies:
- Every failure inside an operation discards its pending writes
- Storage failures surface as the operation's own error
"""

import pytest
from sqlalchemy.exc import OperationalError

from posting_engine.errors import LedgerError
from posting_engine.extensions import db
from posting_engine.models import Store
from posting_engine.services.concurrency import run_in_transaction


class BoomError(LedgerError):
    pass


def _write_then_raise(exc):
    def _op():
        db.session.add(Store(name="Half Written"))
        db.session.flush()
        raise exc
    return _op


@pytest.mark.parametrize("exc", [TypeError("bad id type"), KeyError("missing"), BoomError("engine")])
def test_failed_operation_leaves_nothing_behind(db_session, exc):
    with pytest.raises(type(exc)):
        run_in_transaction(_write_then_raise(exc), error_cls=BoomError, failure_message="Operation failed")

    db_session.commit()
    assert db_session.query(Store).filter_by(name="Half Written").count() == 0


def test_storage_failure_becomes_operation_error(db_session):
    storage = OperationalError("UPDATE stores", {}, Exception("database is locked"))

    with pytest.raises(BoomError, match="Operation failed") as excinfo:
        run_in_transaction(_write_then_raise(storage), error_cls=BoomError, failure_message="Operation failed")

    assert excinfo.value.__cause__ is storage
    db_session.commit()
    assert db_session.query(Store).count() == 0
