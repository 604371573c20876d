from __future__ import annotations

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class Debtor(db.Model):
    """
    Running amount a customer owes, one row per (customer, debtor type).

    balance_cents is only changed through atomic increments in
    debtor_service; DebtorLog holds the audit trail.
    """
    __tablename__ = "debtors"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "debtor_type", name="uq_debtors_customer_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    debtor_type = db.Column(db.String(32), nullable=False, default="Individual")
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("debtor_accounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "debtor_type": self.debtor_type,
            "balance_cents": self.balance_cents,
            "created_at": to_utc_z(self.created_at),
        }


class DebtorLog(db.Model):
    """Append-only debtor ledger. IMMUTABLE."""
    __tablename__ = "debtor_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    debtor_id = db.Column(db.Integer, db.ForeignKey("debtors.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)

    reference_no = db.Column(db.String(32), nullable=True, index=True)
    trans_type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "debtor_id": self.debtor_id,
            "customer_id": self.customer_id,
            "trans_date": to_utc_z(self.trans_date),
            "reference_no": self.reference_no,
            "trans_type": self.trans_type,
            "description": self.description,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
        }
