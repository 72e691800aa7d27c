# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/stockroom/routes/orders.py
"""
Order routes.

SECURITY:
- Reads are filtered to the caller's inventory scope (superadmin sees all).
- Writes require admin or superadmin; deletes require superadmin.
- Creating an order also appends the matching "out" stock movement.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError
from ..models import Customer, Inventory
from ..responses import success, failure, from_service_error
from ..decorators import require_auth, require_role
from ..services import order_service
from ..services.access_scope_service import resolve_scope

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

NO_INVENTORIES_MESSAGE = "You are not assigned to manage any inventories"


def _caller_scope():
    return resolve_scope(g.current_user.id, g.current_user.role)


def _list_response(message: str, *, customer_id=None, status=None, inventory_id=None):
    scope = _caller_scope()
    if inventory_id is not None and not scope.allows(inventory_id):
        return failure("Access denied. You do not manage this inventory.", 403)
    if scope.is_empty:
        return success(NO_INVENTORIES_MESSAGE, [])

    try:
        orders = order_service.list_orders(
            scope,
            customer_id=customer_id,
            status=status,
            inventory_id=inventory_id,
        )
    except Exception as e:
        current_app.logger.exception("Failed to list orders")
        return failure("Error fetching orders", 500, error=str(e))

    return success(message, [o.to_dict() for o in orders], count=len(orders))


@orders_bp.get("")
@require_auth
def list_orders():
    """
    Query params (all optional): customerId, status, inventoryId
    """
    status = request.args.get("status")
    if status:
        try:
            order_service.validate_status(status)
        except ServiceError as e:
            return from_service_error(e)
    return _list_response(
        "Orders retrieved successfully",
        customer_id=request.args.get("customerId", type=int),
        status=status or None,
        inventory_id=request.args.get("inventoryId", type=int),
    )


@orders_bp.get("/customer/<int:customer_id>")
@require_auth
def orders_by_customer(customer_id: int):
    if db.session.get(Customer, customer_id) is None:
        return failure("Customer not found", 404)
    return _list_response("Customer orders retrieved successfully", customer_id=customer_id)


@orders_bp.get("/status/<status>")
@require_auth
def orders_by_status(status: str):
    try:
        order_service.validate_status(status)
    except ServiceError as e:
        return from_service_error(e)
    return _list_response(f"Orders with status '{status}' retrieved successfully", status=status)


@orders_bp.get("/inventory/<int:inventory_id>")
@require_auth
def orders_by_inventory(inventory_id: int):
    if db.session.get(Inventory, inventory_id) is None:
        return failure("Inventory not found", 404)
    return _list_response("Inventory orders retrieved successfully", inventory_id=inventory_id)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order(order_id: int):
    try:
        order = order_service.get_order(order_id, _caller_scope())
    except ServiceError as e:
        return from_service_error(e)
    return success("Order retrieved successfully", order.to_dict())


@orders_bp.post("")
@require_auth
def create_order():
    """
    Create an order and deduct its quantity from stock.

    Request body:
    {
        "customerId": int, "productId": int, "inventoryId": int,
        "unitId": int, "quantity": number > 0,
        "status": str (optional, default "pending"),
        "paymentMethod": str (optional, default "none"),
        "orderDate": ISO-8601 str (optional, default now)
    }

    Role checks live in the service so they are ordered ahead of body
    validation.
    """
    data = request.get_json(silent=True) or {}
    user = g.current_user

    try:
        result = order_service.create_order(
            customer_id=data.get("customerId"),
            product_id=data.get("productId"),
            inventory_id=data.get("inventoryId"),
            quantity=data.get("quantity"),
            unit_id=data.get("unitId"),
            verified_by_user_id=user.id,
            role=user.role,
            status=data.get("status"),
            payment_method=data.get("paymentMethod"),
            order_date=data.get("orderDate"),
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return failure("Error creating order", 500, error=str(e))

    return success("Order created successfully and stock updated", result, 201)


@orders_bp.put("/<int:order_id>")
@require_auth
@require_role("admin", "superadmin")
def update_order(order_id: int):
    data = request.get_json(silent=True)
    try:
        order = order_service.update_order(
            order_id=order_id,
            changes=data,
            actor_user_id=g.current_user.id,
            role=g.current_user.role,
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update order")
        return failure("Error updating order", 500, error=str(e))

    return success("Order updated successfully", order.to_dict())


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_role("admin", "superadmin")
def update_order_status(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_status(
            order_id=order_id,
            status=data.get("status"),
            actor_user_id=g.current_user.id,
            role=g.current_user.role,
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update order status")
        return failure("Error updating order status", 500, error=str(e))

    return success("Order status updated successfully", order.to_dict())


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order(order_id: int):
    try:
        order_service.delete_order(
            order_id=order_id,
            actor_user_id=g.current_user.id,
            role=g.current_user.role,
        )
    except ServiceError as e:
        db.session.rollback()
        return from_service_error(e)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to delete order")
        return failure("Error deleting order", 500, error=str(e))

    return success("Order deleted successfully", None)
