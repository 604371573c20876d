from __future__ import annotations

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class Store(db.Model):
    """Physical store (warehouse, pharmacy counter, shop floor) holding stock."""
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(db.Model):
    """
    Billing customer.

    Either an individual (first_name/surname) or a company (company_name).
    The display name prefers company_name.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(128), nullable=True)
    other_names = db.Column(db.String(128), nullable=True)
    surname = db.Column(db.String(128), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def display_name(self) -> str:
        if self.company_name:
            return self.company_name
        return " ".join(part for part in (self.first_name, self.surname) if part)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "other_names": self.other_names,
            "surname": self.surname,
            "company_name": self.company_name,
            "phone": self.phone,
            "display_name": self.display_name,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_type = db.Column(db.String(16), nullable=False, default="company")  # individual, company
    first_name = db.Column(db.String(128), nullable=True)
    other_names = db.Column(db.String(128), nullable=True)
    surname = db.Column(db.String(128), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def display_name(self) -> str:
        if self.supplier_type == "individual":
            return " ".join(part for part in (self.first_name, self.other_names, self.surname) if part)
        return self.company_name or ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_type": self.supplier_type,
            "display_name": self.display_name,
            "created_at": to_utc_z(self.created_at),
        }


class AdjustmentReason(db.Model):
    """
    Pseudo-store that stock adjustments move quantity to or from.

    action decides the direction of a normal adjustment:
    - Add: stock is received from the reason
    - Deduct: stock is issued to the reason
    """
    __tablename__ = "adjustment_reasons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    action = db.Column(db.String(16), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "action": self.action}


class PaymentMethod(db.Model):
    """Tender a collection amount is posted under (cash, mobile money, card...)."""
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "is_active": self.is_active}
