from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..amounts import as_number
from ..errors import InvalidTransferError
from ..time_utils import to_utc_z

DIRECTION_IN = "in"
DIRECTION_OUT = "out"
DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)

METHOD_PURCHASE = "purchase"
METHOD_SUPPLIER = "supplier"
METHOD_ORDER = "order"
METHOD_TRANSFER = "transfer"
METHOD_ADJUSTMENT = "adjustment"
METHOD_DAMAGE = "damage"
METHODS = (
    METHOD_PURCHASE,
    METHOD_SUPPLIER,
    METHOD_ORDER,
    METHOD_TRANSFER,
    METHOD_ADJUSTMENT,
    METHOD_DAMAGE,
)

TRANSFER_PENDING = "pending"
TRANSFER_IN_TRANSIT = "in_transit"
TRANSFER_COMPLETED = "completed"
TRANSFER_CANCELLED = "cancelled"
TRANSFER_STATUSES = (TRANSFER_PENDING, TRANSFER_IN_TRANSIT, TRANSFER_COMPLETED, TRANSFER_CANCELLED)


class StockMovement(db.Model):
    """
    One signed quantity record against a (product, inventory, unit) key.

    Append-only: rows are never updated or deleted. quantity is always
    positive; direction carries the sign. Available stock is derived as
    SUM(in) - SUM(out) per key (see stock_service).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_stock_movements_direction"),
        db.Index("ix_stock_movements_key", "product_id", "inventory_id", "unit_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    direction = db.Column(db.String(3), nullable=False)
    method = db.Column(db.String(16), nullable=False, default=METHOD_PURCHASE)

    # Plain reference, no FK: deleting an order leaves its movement untouched
    order_id = db.Column(db.Integer, nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")
    inventory = db.relationship("Inventory")
    unit = db.relationship("Unit")

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} key=({self.product_id},{self.inventory_id},{self.unit_id}) "
            f"{self.direction} {self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "inventoryId": self.inventory_id,
            "unitId": self.unit_id,
            "unit": self.unit.to_dict() if self.unit else None,
            "quantity": as_number(self.quantity),
            "direction": self.direction,
            "method": self.method,
            "orderId": self.order_id,
            "createdByUserId": self.created_by_user_id,
            "note": self.note,
            "createdAt": to_utc_z(self.created_at),
        }


class StockTransfer(db.Model):
    """
    Bookkeeping for stock moved between two inventories.

    source_movement is the "out" row written at the source when the transfer
    was created. completed_at is set exactly once, on the transition to
    completed.
    """
    __tablename__ = "stock_transfers"
    __table_args__ = (
        db.CheckConstraint(
            "source_inventory_id <> target_inventory_id",
            name="ck_stock_transfers_distinct_inventories",
        ),
        db.CheckConstraint("transfer_quantity > 0", name="ck_stock_transfers_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    source_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=False, index=True)
    source_inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    target_inventory_id = db.Column(db.Integer, db.ForeignKey("inventories.id"), nullable=False, index=True)
    transfer_quantity = db.Column(db.Numeric(14, 4), nullable=False)
    transfer_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    status = db.Column(db.String(16), nullable=False, default=TRANSFER_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    transferred_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Movement appended on completion (target "in") or cancellation (source "in")
    settlement_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    source_movement = db.relationship(
        "StockMovement",
        foreign_keys=[source_movement_id],
        backref=db.backref("transfers", lazy=True),
    )
    source_inventory = db.relationship("Inventory", foreign_keys=[source_inventory_id])
    target_inventory = db.relationship("Inventory", foreign_keys=[target_inventory_id])
    transferrer = db.relationship("User", foreign_keys=[transferred_by])
    receiver = db.relationship("User", foreign_keys=[received_by])

    def to_dict(self) -> dict:
        def _user(u):
            return {"id": u.id, "fullname": u.fullname} if u else None

        def _inventory(inv):
            return {"id": inv.id, "inventoryName": inv.inventory_name} if inv else None

        return {
            "id": self.id,
            "sourceMovementId": self.source_movement_id,
            "settlementMovementId": self.settlement_movement_id,
            "sourceInventory": _inventory(self.source_inventory),
            "targetInventory": _inventory(self.target_inventory),
            "transferQuantity": as_number(self.transfer_quantity),
            "transferDate": to_utc_z(self.transfer_date),
            "status": self.status,
            "notes": self.notes,
            "transferrer": _user(self.transferrer),
            "receiver": _user(self.receiver),
            "completedAt": to_utc_z(self.completed_at),
        }


@event.listens_for(StockTransfer, "before_insert")
@event.listens_for(StockTransfer, "before_update")
def _reject_same_inventory_transfer(mapper, connection, target):
    if target.source_inventory_id == target.target_inventory_id:
        raise InvalidTransferError("Source and target inventories cannot be the same")
