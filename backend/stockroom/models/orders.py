from __future__ import annotations

from ..extensions import db
from ..amounts import as_number
from ..time_utils import to_utc_z

ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
PAYMENT_METHODS = ("cash", "cheque", "card", "no")

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_CANCELLED = "cancelled"
PAYMENT_METHOD_NONE = "no"


class Order(db.Model):
    """
    Customer order fulfilled from one inventory.

    Created only by order_service.create_order, which writes the matching
    "out" StockMovement in the same transaction. Status may move between
    any two values; the ledger is not touched by status changes or deletes.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_inventory_date", "inventory_id", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False)
    verified_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_NONE)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    total_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    product = db.relationship("Product")
    inventory = db.relationship("Inventory", backref=db.backref("orders", lazy=True))
    unit = db.relationship("Unit")
    verified_by = db.relationship("User")

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} inventory_id={self.inventory_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "productId": self.product_id,
            "inventoryId": self.inventory_id,
            "unitId": self.unit_id,
            "verifiedByUserId": self.verified_by_user_id,
            "quantity": as_number(self.quantity),
            "status": self.status,
            "paymentMethod": self.payment_method,
            "orderDate": to_utc_z(self.order_date),
            "totalAmount": as_number(self.total_amount),
            "customer": self.customer.to_dict() if self.customer else None,
            "product": self.product.to_dict() if self.product else None,
            "inventory": self.inventory.to_dict() if self.inventory else None,
            "unit": self.unit.to_dict() if self.unit else None,
            "verifiedBy": (
                {"id": self.verified_by.id, "fullname": self.verified_by.fullname, "role": self.verified_by.role}
                if self.verified_by else None
            ),
            "createdAt": to_utc_z(self.created_at),
        }
