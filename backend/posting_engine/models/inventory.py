from __future__ import annotations

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class Product(db.Model):
    """
    Stock-keeping product.

    Costs are in cents. prev_cost_cents keeps the cost replaced by the last
    supplier receipt or physical count; average_cost_cents is the weighted
    average over supplier receipts.
    """
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    prev_cost_cents = db.Column(db.Integer, nullable=True)
    average_cost_cents = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cost_price_cents": self.cost_price_cents,
            "prev_cost_cents": self.prev_cost_cents,
            "average_cost_cents": self.average_cost_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StockLevel(db.Model):
    """
    Denormalized quantity on hand, one row per (product, store).

    Mutated only through atomic increments in inventory_service. Equal by
    construction to SUM(quantity_in - quantity_out) over ProductTransaction for
    the same product and store.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("product_id", "store_id", name="uq_stock_levels_product_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product", backref=db.backref("stock_levels", lazy=True))
    store = db.relationship("Store")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
        }


class ProductExpiryLot(db.Model):
    """Per store + product + expiry date lot quantity. Rows are deleted when they reach zero."""
    __tablename__ = "product_expiry_lots"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_id", "expiry_date", name="uq_expiry_lots_store_product_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    expiry_date = db.Column(db.Date, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    batch_no = db.Column(db.String(50), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "quantity": self.quantity,
            "batch_no": self.batch_no,
        }


class ProductTransaction(db.Model):
    """
    Append-only stock movement log.

    One row per product per movement. store_id is the store whose quantity
    moved; quantity_in / quantity_out carry the movement for that store.
    source_kind/source_id is the counterparty (store, customer, supplier or
    adjustment reason).

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "product_transactions"
    __table_args__ = (
        db.Index("ix_product_txns_product_store", "product_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    source_kind = db.Column(db.String(32), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)
    source_description = db.Column(db.String(255), nullable=True)

    expiry_date = db.Column(db.Date, nullable=True)
    reference = db.Column(db.String(64), nullable=True, index=True)
    trans_price_cents = db.Column(db.Integer, nullable=False, default=0)
    trans_type = db.Column(db.String(32), nullable=False, index=True)  # Issue, Receive
    trans_description = db.Column(db.String(255), nullable=True)

    quantity_in = db.Column(db.Integer, nullable=False, default=0)
    quantity_out = db.Column(db.Integer, nullable=False, default=0)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "product_id": self.product_id,
            "store_id": self.store_id,
            "source_kind": self.source_kind,
            "source_id": self.source_id,
            "source_description": self.source_description,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "reference": self.reference,
            "trans_price_cents": self.trans_price_cents,
            "trans_type": self.trans_type,
            "trans_description": self.trans_description,
            "quantity_in": self.quantity_in,
            "quantity_out": self.quantity_out,
            "user_id": self.user_id,
        }


class ProductCostLog(db.Model):
    """History of cost price changes made by supplier receipts and physical counts."""
    __tablename__ = "product_cost_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    cost_price_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class PhysicalStockBalance(db.Model):
    """Snapshot of counted quantity per store/product at the time a count was committed."""
    __tablename__ = "physical_stock_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
