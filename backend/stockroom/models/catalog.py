from __future__ import annotations

from ..extensions import db
from ..amounts import as_number
from ..time_utils import to_utc_z


class Unit(db.Model):
    """
    Unit of measure (kg, bori, ...).

    Every unit keeps an independent ledger; quantities are never converted
    between units.
    """
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.product_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productName": self.product_name,
            "description": self.description,
        }


class Inventory(db.Model):
    """A physical stock location. Admins are scoped to inventories via Manages."""
    __tablename__ = "inventories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    inventory_name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    contact_number = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Inventory id={self.id} name={self.inventory_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventoryName": self.inventory_name,
            "address": self.address,
            "contactNumber": self.contact_number,
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "email": self.email,
            "phone": self.phone,
        }


class ProductUnitRate(db.Model):
    """
    Price per unit of a product for one unit of measure.

    Must exist before an order in that (product, unit) can be priced.
    """
    __tablename__ = "product_unit_rates"
    __table_args__ = (
        db.UniqueConstraint("product_id", "unit_id", name="uq_product_unit_rates_product_unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    rate = db.Column(db.Numeric(14, 4), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("unit_rates", lazy=True))
    unit = db.relationship("Unit")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "unitId": self.unit_id,
            "unit": self.unit.to_dict() if self.unit else None,
            "rate": as_number(self.rate),
            "updatedAt": to_utc_z(self.updated_at),
        }
