# Overview: Flask API routes for stock ledger reads, movements and transfers; parses input and returns JSON responses.

# backend/stockroom/routes/stock.py
"""
Stock ledger routes.

SECURITY: All routes require authentication. Reads are filtered to the
caller's inventory scope; writes require admin or superadmin and access to
the inventory being written.

Quantities are derived from the movement ledger on every request.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError
from ..amounts import to_decimal, as_number
from ..responses import success, failure, from_service_error
from ..decorators import require_auth, require_role
from ..models.stock import METHOD_TRANSFER, DIRECTION_OUT
from ..services import stock_service, transfer_service
from ..services.access_scope_service import resolve_scope

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")

NO_INVENTORIES_MESSAGE = "You are not assigned to manage any inventories"
INVENTORY_DENIED = "Access denied. You do not manage this inventory."


def _caller_scope():
    return resolve_scope(g.current_user.id, g.current_user.role)


@stock_bp.get("")
@require_auth
def list_stock():
    """
    Aggregated stock per (product, inventory, unit) with transfers attached.

    Query params:
    - productId: int (optional)
    - inventoryId: int (optional, must be inside the caller's scope)
    """
    product_id = request.args.get("productId", type=int)
    inventory_id = request.args.get("inventoryId", type=int)
    scope = _caller_scope()

    if inventory_id is not None and not scope.allows(inventory_id):
        return failure(INVENTORY_DENIED, 403)
    if scope.is_empty:
        return success(NO_INVENTORIES_MESSAGE, [])

    try:
        rows = stock_service.aggregate(scope, product_id=product_id, inventory_id=inventory_id)
        rows = stock_service.attach_transfers(rows)
    except ServiceError as e:
        return from_service_error(e)
    except Exception as e:
        current_app.logger.exception("Failed to aggregate stock")
        return failure("Error fetching stock records", 500, error=str(e))

    return success("Stock records retrieved successfully", [r.to_dict() for r in rows])


@stock_bp.get("/available")
@require_auth
def available_stock():
    """Availability of one key as seen by order validation (clamped at 0)."""
    product_id = request.args.get("productId", type=int)
    inventory_id = request.args.get("inventoryId", type=int)
    unit_id = request.args.get("unitId", type=int)
    if product_id is None or inventory_id is None or unit_id is None:
        return failure("productId, inventoryId, and unitId are required", 400)

    if not _caller_scope().allows(inventory_id):
        return failure(INVENTORY_DENIED, 403)

    availability = stock_service.available_quantity(product_id, inventory_id, unit_id)
    return success("Available quantity calculated successfully", availability.to_dict())


@stock_bp.get("/low")
@require_auth
def low_stock():
    threshold = request.args.get("threshold", current_app.config["LOW_STOCK_DEFAULT_THRESHOLD"])
    scope = _caller_scope()

    try:
        rows = stock_service.low_stock(threshold, scope)
    except ServiceError as e:
        return from_service_error(e)

    message = NO_INVENTORIES_MESSAGE if scope.is_empty else "Low stock items retrieved successfully"
    return success(message, [r.to_dict() for r in rows], threshold=as_number(to_decimal(threshold)))


@stock_bp.get("/product/<int:product_id>")
@require_auth
def stock_by_product(product_id: int):
    try:
        data = stock_service.product_stock_summary(product_id, _caller_scope())
    except ServiceError as e:
        return from_service_error(e)
    return success(
        f"Stock records for product '{data['product']['productName']}' retrieved successfully",
        data,
    )


@stock_bp.get("/inventory/<int:inventory_id>")
@require_auth
def stock_by_inventory(inventory_id: int):
    try:
        data = stock_service.inventory_stock_summary(inventory_id, _caller_scope())
    except ServiceError as e:
        return from_service_error(e)
    return success(
        f"Stock records for inventory '{data['inventory']['inventoryName']}' retrieved successfully",
        data,
    )


@stock_bp.get("/movements")
@require_auth
def list_movements():
    limit = max(1, min(request.args.get("limit", 200, type=int), 1000))
    inventory_id = request.args.get("inventoryId", type=int)
    scope = _caller_scope()
    if inventory_id is not None and not scope.allows(inventory_id):
        return failure(INVENTORY_DENIED, 403)

    rows = stock_service.list_movements(
        scope,
        product_id=request.args.get("productId", type=int),
        inventory_id=inventory_id,
        unit_id=request.args.get("unitId", type=int),
        limit=limit,
    )
    return success("Stock movements retrieved successfully", [m.to_dict() for m in rows])


@stock_bp.get("/movements/<int:movement_id>")
@require_auth
def get_movement(movement_id: int):
    try:
        movement = stock_service.get_movement(movement_id, _caller_scope())
    except ServiceError as e:
        return from_service_error(e)
    return success("Stock record retrieved successfully", movement.to_dict())


@stock_bp.post("/movements")
@require_auth
@require_role("admin", "superadmin")
def create_movement():
    """
    Append a movement to the ledger.

    Request body:
    {
        "productId": int, "inventoryId": int, "unitId": int,
        "quantity": number > 0, "direction": "in" | "out",
        "method": str (optional),
        "targetInventoryId": int (required for method=transfer, direction=out),
        "notes": str (optional)
    }

    method=transfer with direction=out opens a StockTransfer.
    """
    data = request.get_json(silent=True) or {}
    user = g.current_user

    try:
        if data.get("method") == METHOD_TRANSFER and data.get("direction") == DIRECTION_OUT:
            transfer = transfer_service.create_transfer(
                actor_user_id=user.id,
                role=user.role,
                product_id=data.get("productId"),
                source_inventory_id=data.get("inventoryId"),
                target_inventory_id=data.get("targetInventoryId"),
                unit_id=data.get("unitId"),
                quantity=data.get("quantity"),
                status=data.get("transferStatus"),
                notes=data.get("notes"),
            )
            return success(
                "Stock transferred out successfully",
                {"movement": transfer.source_movement.to_dict(), "transfer": transfer.to_dict()},
                201,
            )

        movement = stock_service.record_movement(
            actor_user_id=user.id,
            role=user.role,
            product_id=data.get("productId"),
            inventory_id=data.get("inventoryId"),
            unit_id=data.get("unitId"),
            quantity=data.get("quantity"),
            direction=data.get("direction"),
            method=data.get("method"),
            note=data.get("notes"),
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to record stock movement")
        return failure("Error creating stock record", 500, error=str(e))

    availability = stock_service.available_quantity(movement.product_id, movement.inventory_id, movement.unit_id)
    return success(
        "Stock record created successfully",
        {"movement": movement.to_dict(), "availability": availability.to_dict()},
        201,
    )


@stock_bp.get("/transfers")
@require_auth
def list_transfers():
    scope = _caller_scope()
    if scope.is_empty:
        return success(NO_INVENTORIES_MESSAGE, [])
    rows = transfer_service.list_transfers(scope, status=request.args.get("status"))
    return success("Stock transfers retrieved successfully", [t.to_dict() for t in rows])


@stock_bp.patch("/transfers/<int:transfer_id>/status")
@require_auth
@require_role("admin", "superadmin")
def update_transfer_status(transfer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        transfer = transfer_service.update_transfer_status(
            transfer_id=transfer_id,
            status=data.get("status"),
            actor_user_id=g.current_user.id,
            role=g.current_user.role,
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update transfer status")
        return failure("Error updating stock transfer", 500, error=str(e))

    return success("Stock transfer status updated successfully", transfer.to_dict())
