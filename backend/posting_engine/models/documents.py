from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class NumberSequence(db.Model):
    """
    Atomic per-prefix counters backing reference numbers.

    WHY: Reference numbers (receipts, invoices, voids, refunds, deliveries)
    must never be double-allocated under concurrent posting.
    """
    __tablename__ = "number_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", name="uq_number_sequences_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefix": self.prefix,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class _StockLineMixin:
    """product / quantity / unit price triple shared by every stock document line."""
    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
        }


class Requisition(db.Model):
    """
    Request for stock to move out of a store.

    LIFECYCLE (stage):
    1. Draft
    2. Approved
    3. Issued (dispatched, destination receive pending)
    4. Posted (received at destination, or issued to a customer)
    """
    __tablename__ = "requisitions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    from_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    to_kind = db.Column(db.String(32), nullable=False)
    to_id = db.Column(db.Integer, nullable=False)

    stage = db.Column(db.Integer, nullable=False, default=1, index=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_no = db.Column(db.String(32), nullable=True, index=True)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("RequisitionLine", backref="requisition", lazy=True, order_by="RequisitionLine.id")
    history = db.relationship("RequisitionHistory", backref="requisition", lazy=True, order_by="RequisitionHistory.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "sale_id": self.sale_id,
            "from_store_id": self.from_store_id,
            "to_kind": self.to_kind,
            "to_id": self.to_id,
            "stage": self.stage,
            "total_cents": self.total_cents,
            "delivery_no": self.delivery_no,
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class RequisitionLine(_StockLineMixin, db.Model):
    __tablename__ = "requisition_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    requisition_id = db.Column(db.Integer, db.ForeignKey("requisitions.id"), nullable=False, index=True)


class RequisitionHistory(db.Model):
    """Stage transitions of a requisition, with the remarks given at each step."""
    __tablename__ = "requisition_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    requisition_id = db.Column(db.Integer, db.ForeignKey("requisitions.id"), nullable=False, index=True)
    stage = db.Column(db.Integer, nullable=False)
    remarks = db.Column(db.String(255), nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class Issue(db.Model):
    """Goods issued out of a store. Created already posted (stage 4)."""
    __tablename__ = "issues"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    delivery_no = db.Column(db.String(32), nullable=True, index=True)

    from_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    to_kind = db.Column(db.String(32), nullable=False)
    to_id = db.Column(db.Integer, nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    stage = db.Column(db.Integer, nullable=False, default=4)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("IssueLine", backref="issue", lazy=True, order_by="IssueLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "delivery_no": self.delivery_no,
            "from_store_id": self.from_store_id,
            "to_kind": self.to_kind,
            "to_id": self.to_id,
            "total_cents": self.total_cents,
            "stage": self.stage,
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class IssueLine(_StockLineMixin, db.Model):
    __tablename__ = "issue_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    issue_id = db.Column(db.Integer, db.ForeignKey("issues.id"), nullable=False, index=True)


class Receive(db.Model):
    """
    Goods received into a store.

    stage 2 = pending confirmation (store-to-store transfer without double entry)
    stage 4 = posted (stock already moved)
    """
    __tablename__ = "receives"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    delivery_no = db.Column(db.String(32), nullable=True, index=True)

    to_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    from_kind = db.Column(db.String(32), nullable=False)
    from_id = db.Column(db.Integer, nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    stage = db.Column(db.Integer, nullable=False, default=1, index=True)
    remarks = db.Column(db.String(255), nullable=True)
    purchase_ref = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("ReceiveLine", backref="receive", lazy=True, order_by="ReceiveLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "delivery_no": self.delivery_no,
            "to_store_id": self.to_store_id,
            "from_kind": self.from_kind,
            "from_id": self.from_id,
            "total_cents": self.total_cents,
            "stage": self.stage,
            "remarks": self.remarks,
            "purchase_ref": self.purchase_ref,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "user_id": self.user_id,
            "lines": [line.to_dict() for line in self.lines],
        }


class ReceiveLine(_StockLineMixin, db.Model):
    __tablename__ = "receive_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    receive_id = db.Column(db.Integer, db.ForeignKey("receives.id"), nullable=False, index=True)


class NormalAdjustment(db.Model):
    """Manual stock correction against an adjustment reason. stage 1 draft, 2 posted."""
    __tablename__ = "normal_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    adjustment_reason_id = db.Column(db.Integer, db.ForeignKey("adjustment_reasons.id"), nullable=False)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    stage = db.Column(db.Integer, nullable=False, default=1)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    reason = db.relationship("AdjustmentReason")
    lines = db.relationship("NormalAdjustmentLine", backref="adjustment", lazy=True, order_by="NormalAdjustmentLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "store_id": self.store_id,
            "adjustment_reason_id": self.adjustment_reason_id,
            "total_cents": self.total_cents,
            "stage": self.stage,
            "lines": [line.to_dict() for line in self.lines],
        }


class NormalAdjustmentLine(_StockLineMixin, db.Model):
    __tablename__ = "normal_adjustment_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    adjustment_id = db.Column(db.Integer, db.ForeignKey("normal_adjustments.id"), nullable=False, index=True)


class PhysicalInventory(db.Model):
    """
    Stock count document.

    LIFECYCLE: 1 draft -> 3 closed (committed). A closed count cannot be
    committed again.
    """
    __tablename__ = "physical_inventories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)
    stage = db.Column(db.Integer, nullable=False, default=1)
    closed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("PhysicalInventoryLine", backref="physical_inventory", lazy=True, order_by="PhysicalInventoryLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "description": self.description,
            "stage": self.stage,
            "closed_date": to_utc_z(self.closed_date),
            "lines": [line.to_dict() for line in self.lines],
        }


class PhysicalInventoryLine(db.Model):
    __tablename__ = "physical_inventory_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    physical_inventory_id = db.Column(db.Integer, db.ForeignKey("physical_inventories.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    batch_no = db.Column(db.String(50), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    expected_qty = db.Column(db.Integer, nullable=False, default=0)
    counted_qty = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "batch_no": self.batch_no,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "expected_qty": self.expected_qty,
            "counted_qty": self.counted_qty,
            "price_cents": self.price_cents,
        }
