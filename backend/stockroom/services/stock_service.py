# Overview: Service-layer operations for the stock ledger; aggregation, availability and movements.

"""
Stock Invariants (authoritative)

Ledger:
- Stock is never stored as a mutable counter. Each change is one immutable
  StockMovement (quantity > 0, direction in/out) against a
  (product, inventory, unit) key.
- Units are independent ledgers; kg and bori are never converted.
- Corrections are compensating movements. Nothing updates or deletes a row.

Aggregation:
- available = SUM(in) - SUM(out) per key, recomputed on every read.
- Raw aggregates may be negative; the order-validation view clamps to 0.
- Scope filtering happens before aggregation, so a filter naming an
  inventory outside the caller's scope yields an empty result.

Methods:
- "order" movements are written only by order_service.create_order.
- "transfer" movements are written only by transfer_service.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..extensions import db
from ..models import Product, Inventory, Unit, StockMovement
from ..models.stock import DIRECTIONS, DIRECTION_OUT, METHODS, METHOD_ORDER, METHOD_TRANSFER, METHOD_PURCHASE
from ..amounts import to_decimal, as_number
from ..errors import ValidationError, NotFoundError, ForbiddenError, InsufficientStockError
from .access_scope_service import AccessScope, check_access
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .stock_repository import StockLedgerRepository

QUANTITY_STEP = Decimal("0.0001")


@dataclass
class AggregatedStockRow:
    product_id: int
    inventory_id: int
    unit_id: int
    total_incoming: Decimal
    total_outgoing: Decimal
    record_count: int = 0
    product_name: str | None = None
    inventory_name: str | None = None
    unit_name: str | None = None
    transfers: list = field(default_factory=list)

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.product_id, self.inventory_id, self.unit_id)

    @property
    def available_quantity(self) -> Decimal:
        return self.total_incoming - self.total_outgoing

    def to_dict(self) -> dict:
        available = as_number(self.available_quantity)
        return {
            "productId": self.product_id,
            "inventoryId": self.inventory_id,
            "unitId": self.unit_id,
            "product": {"id": self.product_id, "productName": self.product_name},
            "inventory": {"id": self.inventory_id, "inventoryName": self.inventory_name},
            "unit": {"id": self.unit_id, "name": self.unit_name},
            "totalIncoming": as_number(self.total_incoming),
            "totalOutgoing": as_number(self.total_outgoing),
            "availableQuantity": available,
            "stockQuantity": available,
            "recordCount": self.record_count,
            "transfers": [t.to_dict() for t in self.transfers],
        }


@dataclass(frozen=True)
class StockAvailability:
    """Order-validation view of one key: available is clamped at 0."""

    available: Decimal
    total_in: Decimal
    total_out: Decimal
    record_count: int

    @property
    def raw_available(self) -> Decimal:
        return self.total_in - self.total_out

    @property
    def ever_stocked(self) -> bool:
        return self.record_count > 0

    def to_dict(self) -> dict:
        return {
            "available": as_number(self.available),
            "totalIn": as_number(self.total_in),
            "totalOut": as_number(self.total_out),
            "recordCount": self.record_count,
        }


def _row_from_result(r) -> AggregatedStockRow:
    return AggregatedStockRow(
        product_id=r.product_id,
        inventory_id=r.inventory_id,
        unit_id=r.unit_id,
        total_incoming=to_decimal(r.total_incoming),
        total_outgoing=to_decimal(r.total_outgoing),
        record_count=int(r.record_count or 0),
        product_name=r.product_name,
        inventory_name=r.inventory_name,
        unit_name=r.unit_name,
    )


def aggregate(
    scope: AccessScope,
    *,
    product_id: int | None = None,
    inventory_id: int | None = None,
    session=None,
) -> list[AggregatedStockRow]:
    """
    Group the ledger by (product, inventory, unit) inside the caller's scope.

    No clamping here: availableQuantity is the raw signed value.
    """
    session = session or db.session
    effective = scope.restrict(inventory_id)
    if effective.is_empty:
        return []
    rows = StockLedgerRepository(session).group_by_product_inventory_unit(
        effective,
        product_id=product_id,
        inventory_id=inventory_id,
    )
    return [_row_from_result(r) for r in rows]


def available_quantity(product_id: int, inventory_id: int, unit_id: int, *, session=None) -> StockAvailability:
    session = session or db.session
    total_in, total_out, count = StockLedgerRepository(session).sum_by_direction(product_id, inventory_id, unit_id)
    total_in = to_decimal(total_in)
    total_out = to_decimal(total_out)
    raw = total_in - total_out
    return StockAvailability(
        available=raw if raw > 0 else Decimal("0"),
        total_in=total_in,
        total_out=total_out,
        record_count=count,
    )


def low_stock(threshold, scope: AccessScope, *, session=None) -> list[AggregatedStockRow]:
    """
    Rows whose available quantity is strictly below threshold.

    Ordered by available ascending, then unit name ascending.
    """
    session = session or db.session
    if scope.is_empty:
        return []
    try:
        threshold_value = to_decimal(threshold)
    except ValueError:
        raise ValidationError("threshold must be a number")
    if not threshold_value.is_finite():
        raise ValidationError("threshold must be a number")
    rows = StockLedgerRepository(session).group_by_product_inventory_unit(scope, below=float(threshold_value))
    return [_row_from_result(r) for r in rows if to_decimal(r.total_incoming) - to_decimal(r.total_outgoing) < threshold_value]


def attach_transfers(rows: list[AggregatedStockRow], *, session=None) -> list[AggregatedStockRow]:
    """Attach each row's transfer sub-ledger (transfers whose source movement has the row's key)."""
    from .transfer_service import transfers_by_source_key

    if not rows:
        return rows
    by_key = transfers_by_source_key([r.key for r in rows], session=session)
    for row in rows:
        row.transfers = by_key.get(row.key, [])
    return rows


def product_stock_summary(product_id: int, scope: AccessScope, *, session=None) -> dict:
    session = session or db.session
    product = session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product")

    by_unit = []
    if not scope.is_empty:
        for r in StockLedgerRepository(session).group_by_unit(scope, product_id=product_id):
            total_in = to_decimal(r.total_incoming)
            total_out = to_decimal(r.total_outgoing)
            by_unit.append({
                "unit": {"id": r.unit_id, "name": r.unit_name},
                "totalIncoming": as_number(total_in),
                "totalOutgoing": as_number(total_out),
                "totalAvailableQuantity": as_number(total_in - total_out),
                "transactionCount": int(r.record_count or 0),
            })

    rows = aggregate(scope, product_id=product_id, session=session)
    return {
        "product": product.to_dict(),
        "summary": by_unit,
        "stock": [r.to_dict() for r in attach_transfers(rows, session=session)],
    }


def inventory_stock_summary(inventory_id: int, scope: AccessScope, *, session=None) -> dict:
    session = session or db.session
    inventory = session.get(Inventory, inventory_id)
    if inventory is None:
        raise NotFoundError("Inventory")
    if not scope.allows(inventory_id):
        raise ForbiddenError("Access denied. You do not manage this inventory.")

    restricted = scope.restrict(inventory_id)
    by_unit = []
    for r in StockLedgerRepository(session).group_by_unit(restricted, inventory_id=inventory_id):
        by_unit.append({
            "unit": {"id": r.unit_id, "name": r.unit_name},
            "totalQuantity": as_number(to_decimal(r.total_incoming) - to_decimal(r.total_outgoing)),
            "productCount": int(r.product_count or 0),
        })

    rows = aggregate(scope, inventory_id=inventory_id, session=session)
    return {
        "inventory": inventory.to_dict(),
        "summary": by_unit,
        "stock": [r.to_dict() for r in attach_transfers(rows, session=session)],
    }


def list_movements(scope: AccessScope, *, product_id=None, inventory_id=None, unit_id=None, limit: int = 200, session=None):
    session = session or db.session
    effective = scope.restrict(inventory_id)
    if effective.is_empty:
        return []
    return StockLedgerRepository(session).list_movements(
        effective,
        product_id=product_id,
        inventory_id=inventory_id,
        unit_id=unit_id,
        limit=limit,
    )


def get_movement(movement_id: int, scope: AccessScope, *, session=None) -> StockMovement:
    session = session or db.session
    movement = session.get(StockMovement, movement_id)
    if movement is None:
        raise NotFoundError("Stock record")
    if not scope.allows(movement.inventory_id):
        raise ForbiddenError("Access denied. You do not manage this inventory.")
    return movement


def parse_quantity(value, *, field_name: str = "quantity") -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required")
    try:
        quantity = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be a number")
    if not quantity.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if quantity <= 0:
        raise ValidationError(f"{field_name} must be a positive number")
    # Numeric(14,4) columns
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise ValidationError(f"{field_name} supports at most 4 decimal places")
    return quantity


def parse_id(value, field_name: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer")


def load_key_entities(session, *, product_id: int, inventory_id: int, unit_id: int, lock_product: bool = False):
    """Resolve the three entities of a ledger key or raise NotFound for the first missing one."""
    query = session.query(Product).filter_by(id=product_id)
    if lock_product:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product")

    inventory = session.get(Inventory, inventory_id)
    if inventory is None:
        raise NotFoundError("Inventory")

    unit = session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError("Unit")
    return product, inventory, unit


def insufficient_stock(availability: StockAvailability, requested: Decimal, unit_name: str) -> InsufficientStockError:
    shortfall = requested - availability.available
    return InsufficientStockError(
        f"Insufficient stock. Available: {as_number(availability.available)} {unit_name}, "
        f"Requested: {as_number(requested)} {unit_name}",
        extra={
            "stockDetails": {
                "available": as_number(availability.available),
                "requested": as_number(requested),
                "shortfall": as_number(shortfall),
                "unit": unit_name,
            }
        },
    )


def record_movement(
    *,
    actor_user_id: int,
    role: str,
    product_id,
    inventory_id,
    unit_id,
    quantity,
    direction: str,
    method: str | None = None,
    note: str | None = None,
    session=None,
) -> StockMovement:
    """
    Append one movement to the ledger.

    Order and transfer movements have their own workflows and are rejected
    here. An "out" movement may not exceed the clamped available quantity.
    """
    session = session or db.session

    product_id = parse_id(product_id, "productId")
    inventory_id = parse_id(inventory_id, "inventoryId")
    unit_id = parse_id(unit_id, "unitId")
    quantity = parse_quantity(quantity)

    if direction not in DIRECTIONS:
        raise ValidationError('direction must be either "in" or "out"')
    method = method or METHOD_PURCHASE
    if method not in METHODS:
        raise ValidationError(f"Invalid method. Valid methods are: {', '.join(METHODS)}")
    if method == METHOD_ORDER:
        raise ValidationError("Order movements are recorded by creating an order")
    if method == METHOD_TRANSFER:
        raise ValidationError("Transfer movements are recorded through the transfer workflow")

    if not check_access(actor_user_id, role, inventory_id, session=session):
        raise ForbiddenError("Access denied. You do not manage this inventory.")

    def _op():
        with unit_of_work(session):
            _, _, unit = load_key_entities(
                session,
                product_id=product_id,
                inventory_id=inventory_id,
                unit_id=unit_id,
                lock_product=direction == DIRECTION_OUT,
            )
            if direction == DIRECTION_OUT:
                availability = available_quantity(product_id, inventory_id, unit_id, session=session)
                if availability.available < quantity:
                    raise insufficient_stock(availability, quantity, unit.name)

            movement = StockLedgerRepository(session).append(
                product_id=product_id,
                inventory_id=inventory_id,
                unit_id=unit_id,
                quantity=quantity,
                direction=direction,
                method=method,
                created_by_user_id=actor_user_id,
                note=note,
            )
        return movement

    return run_with_retry(session, _op)
