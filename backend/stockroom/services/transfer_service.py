# backend/stockroom/services/transfer_service.py
"""
Inter-inventory stock transfers.

LIFECYCLE:
1. PENDING / IN_TRANSIT: created; "out" movement written at the source
2. COMPLETED: "in" movement written at the target, completed_at stamped once
3. CANCELLED: compensating "in" movement written back at the source

completed and cancelled are terminal. The ledger is only ever appended to.
"""
from __future__ import annotations

from collections import defaultdict

from sqlalchemy import or_

from ..extensions import db
from ..models import StockMovement, StockTransfer, Inventory
from ..models.stock import (
    DIRECTION_IN,
    DIRECTION_OUT,
    METHOD_ADJUSTMENT,
    METHOD_TRANSFER,
    TRANSFER_CANCELLED,
    TRANSFER_COMPLETED,
    TRANSFER_IN_TRANSIT,
    TRANSFER_PENDING,
    TRANSFER_STATUSES,
)
from ..errors import ForbiddenError, InvalidTransferError, NotFoundError, ValidationError
from ..time_utils import utcnow
from .access_scope_service import AccessScope, check_access
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .stock_repository import StockLedgerRepository
from .stock_service import (
    available_quantity,
    insufficient_stock,
    load_key_entities,
    parse_id,
    parse_quantity,
)

ALLOWED_TRANSITIONS = {
    TRANSFER_PENDING: {TRANSFER_IN_TRANSIT, TRANSFER_COMPLETED, TRANSFER_CANCELLED},
    TRANSFER_IN_TRANSIT: {TRANSFER_COMPLETED, TRANSFER_CANCELLED},
    TRANSFER_COMPLETED: set(),
    TRANSFER_CANCELLED: set(),
}


def validate_transfer_inventories(source_inventory_id, target_inventory_id) -> None:
    if target_inventory_id is None:
        raise ValidationError("Target inventory ID is required when method is transfer and direction is out")
    if int(source_inventory_id) == int(target_inventory_id):
        raise InvalidTransferError("Source and target inventories cannot be the same")


def create_transfer(
    *,
    actor_user_id: int,
    role: str,
    product_id,
    source_inventory_id,
    target_inventory_id,
    unit_id,
    quantity,
    status: str | None = None,
    notes: str | None = None,
    session=None,
) -> StockTransfer:
    """
    Move stock out of the source inventory and open a transfer record.

    Raises:
        InvalidTransferError: source and target are the same inventory
        ForbiddenError: caller does not manage the source inventory
        InsufficientStockError: source cannot cover the quantity
    """
    session = session or db.session

    product_id = parse_id(product_id, "productId")
    source_inventory_id = parse_id(source_inventory_id, "inventoryId")
    if target_inventory_id is not None:
        target_inventory_id = parse_id(target_inventory_id, "targetInventoryId")
    unit_id = parse_id(unit_id, "unitId")
    quantity = parse_quantity(quantity)
    validate_transfer_inventories(source_inventory_id, target_inventory_id)

    status = status or TRANSFER_PENDING
    if status not in (TRANSFER_PENDING, TRANSFER_IN_TRANSIT):
        raise ValidationError("A new transfer must be pending or in_transit")

    if not check_access(actor_user_id, role, source_inventory_id, session=session):
        raise ForbiddenError("Access denied. You do not manage the source inventory.")

    def _op():
        with unit_of_work(session):
            _, _, unit = load_key_entities(
                session,
                product_id=product_id,
                inventory_id=source_inventory_id,
                unit_id=unit_id,
                lock_product=True,
            )
            if session.get(Inventory, target_inventory_id) is None:
                raise NotFoundError("Target inventory")

            availability = available_quantity(product_id, source_inventory_id, unit_id, session=session)
            if availability.available < quantity:
                raise insufficient_stock(availability, quantity, unit.name)

            out_movement = StockLedgerRepository(session).append(
                product_id=product_id,
                inventory_id=source_inventory_id,
                unit_id=unit_id,
                quantity=quantity,
                direction=DIRECTION_OUT,
                method=METHOD_TRANSFER,
                created_by_user_id=actor_user_id,
                note=notes,
            )
            transfer = StockTransfer(
                source_movement_id=out_movement.id,
                source_inventory_id=source_inventory_id,
                target_inventory_id=target_inventory_id,
                transfer_quantity=quantity,
                transfer_date=utcnow(),
                status=status,
                notes=notes,
                transferred_by=actor_user_id,
            )
            session.add(transfer)
            session.flush()
        return transfer

    return run_with_retry(session, _op)


def update_transfer_status(
    *,
    transfer_id: int,
    status: str,
    actor_user_id: int,
    role: str,
    session=None,
) -> StockTransfer:
    session = session or db.session

    if not status:
        raise ValidationError("Status is required")
    if status not in TRANSFER_STATUSES:
        raise ValidationError(f"Invalid status. Valid statuses are: {', '.join(TRANSFER_STATUSES)}")

    def _op():
        with unit_of_work(session):
            transfer = lock_for_update(session.query(StockTransfer).filter_by(id=transfer_id)).first()
            if transfer is None:
                raise NotFoundError("Stock transfer")

            if not (
                check_access(actor_user_id, role, transfer.source_inventory_id, session=session)
                or check_access(actor_user_id, role, transfer.target_inventory_id, session=session)
            ):
                raise ForbiddenError("Access denied. You do not manage either inventory of this transfer.")

            if status == transfer.status:
                return transfer
            if status not in ALLOWED_TRANSITIONS[transfer.status]:
                raise ValidationError(f"Cannot change transfer status from {transfer.status} to {status}")

            source = transfer.source_movement
            ledger = StockLedgerRepository(session)
            if status == TRANSFER_COMPLETED:
                settlement = ledger.append(
                    product_id=source.product_id,
                    inventory_id=transfer.target_inventory_id,
                    unit_id=source.unit_id,
                    quantity=transfer.transfer_quantity,
                    direction=DIRECTION_IN,
                    method=METHOD_TRANSFER,
                    created_by_user_id=actor_user_id,
                    note=f"transfer #{transfer.id} received",
                )
                transfer.received_by = actor_user_id
                if transfer.completed_at is None:
                    transfer.completed_at = utcnow()
                transfer.settlement_movement_id = settlement.id
            elif status == TRANSFER_CANCELLED:
                settlement = ledger.append(
                    product_id=source.product_id,
                    inventory_id=transfer.source_inventory_id,
                    unit_id=source.unit_id,
                    quantity=transfer.transfer_quantity,
                    direction=DIRECTION_IN,
                    method=METHOD_ADJUSTMENT,
                    created_by_user_id=actor_user_id,
                    note=f"transfer #{transfer.id} cancelled",
                )
                transfer.settlement_movement_id = settlement.id

            transfer.status = status
            session.flush()
        return transfer

    return run_with_retry(session, _op)


def list_transfers(scope: AccessScope, *, status: str | None = None, session=None) -> list[StockTransfer]:
    session = session or db.session
    if scope.is_empty:
        return []
    query = session.query(StockTransfer)
    if not scope.is_unrestricted:
        ids = scope.to_list()
        query = query.filter(or_(
            StockTransfer.source_inventory_id.in_(ids),
            StockTransfer.target_inventory_id.in_(ids),
        ))
    if status:
        query = query.filter(StockTransfer.status == status)
    return query.order_by(StockTransfer.transfer_date.desc(), StockTransfer.id.desc()).all()


def transfers_by_source_key(keys, *, session=None) -> dict:
    """Group transfers by the (product, inventory, unit) key of their source movement."""
    session = session or db.session
    keys = set(keys)
    if not keys:
        return {}
    product_ids = {k[0] for k in keys}
    inventory_ids = {k[1] for k in keys}

    rows = session.query(StockTransfer, StockMovement).join(
        StockMovement, StockMovement.id == StockTransfer.source_movement_id
    ).filter(
        StockMovement.product_id.in_(product_ids),
        StockMovement.inventory_id.in_(inventory_ids),
    ).order_by(StockTransfer.id.asc()).all()

    grouped = defaultdict(list)
    for transfer, movement in rows:
        key = (movement.product_id, movement.inventory_id, movement.unit_id)
        if key in keys:
            grouped[key].append(transfer)
    return dict(grouped)
