from __future__ import annotations

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class Collection(db.Model):
    """
    One cash movement, keyed by receipt or refund number.

    Amounts per payment method live in CollectionAmount rows: positive for
    money in, negative for refunds. Append-only.
    """
    __tablename__ = "collections"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    receipt_no = db.Column(db.String(32), nullable=False, index=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    payment_source = db.Column(db.String(32), nullable=False)
    trans_type = db.Column(db.String(32), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    amounts = db.relationship("CollectionAmount", backref="collection", lazy=True, order_by="CollectionAmount.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_no": self.receipt_no,
            "trans_date": to_utc_z(self.trans_date),
            "customer_id": self.customer_id,
            "payment_source": self.payment_source,
            "trans_type": self.trans_type,
            "total_cents": self.total_cents,
            "amounts": {a.payment_method_id: a.amount_cents for a in self.amounts},
        }


class CollectionAmount(db.Model):
    __tablename__ = "collection_amounts"
    __table_args__ = (
        db.UniqueConstraint("collection_id", "payment_method_id", name="uq_collection_amounts_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection_id = db.Column(db.Integer, db.ForeignKey("collections.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
