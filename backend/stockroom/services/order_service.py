# Overview: Service-layer operations for orders; the order fulfillment transaction and order maintenance.

"""
Order fulfillment.

create_order validates in a fixed order and stops at the first failure:

1. role is admin or superadmin                      -> ForbiddenError
2. caller manages inventoryId                       -> ForbiddenError
3. required fields present, quantity > 0            -> ValidationError
4. status (if given) is a known status              -> ValidationError
5. paymentMethod (if given) is a known method       -> ValidationError
6. customer, product, inventory, unit exist         -> NotFoundError
7. a ProductUnitRate exists for (product, unit)     -> NotFoundError
8. the key has at least one ledger row              -> NotFoundError (never stocked)
9. clamped available >= quantity                    -> InsufficientStockError

Then, in one transaction, the Order row and its "out" StockMovement
(method=order) are written together; a failure in either rolls back both.

Steps 6-9 run inside the transaction with the product row locked so two
concurrent orders for the same product cannot both pass step 9 against
stock that only covers one of them (on databases that honor FOR UPDATE).

Status changes and deletes never touch the ledger.
"""
from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Customer, Inventory, Order, Product, ProductUnitRate, Unit
from ..models.auth import ROLE_ADMIN, ROLE_SUPERADMIN
from ..models.orders import ORDER_STATUSES, PAYMENT_METHODS, ORDER_STATUS_PENDING, PAYMENT_METHOD_NONE
from ..models.stock import DIRECTION_OUT, METHOD_ORDER
from ..amounts import as_number, round_money, to_decimal
from ..errors import ForbiddenError, InternalError, NotFoundError, ValidationError
from ..time_utils import parse_iso_datetime, utcnow
from .access_scope_service import AccessScope, check_access
from .concurrency import run_with_retry, unit_of_work
from .stock_repository import StockLedgerRepository
from .stock_service import available_quantity, insufficient_stock, load_key_entities, parse_id, parse_quantity

ORDER_WRITE_ROLES = (ROLE_ADMIN, ROLE_SUPERADMIN)

UPDATABLE_FIELDS = {
    "customerId",
    "productId",
    "inventoryId",
    "quantity",
    "unitId",
    "status",
    "paymentMethod",
    "orderDate",
    "totalAmount",
}

INVENTORY_DENIED = "Access denied. You do not manage this inventory."


def _require_write_role(role: str | None, action: str) -> None:
    if role not in ORDER_WRITE_ROLES:
        raise ForbiddenError(f"Only admin and superadmin users can {action} orders")


def _optional_id(value) -> int | None:
    try:
        return parse_id(value, "id")
    except ValidationError:
        return None


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_status(status) -> None:
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Valid statuses are: {', '.join(ORDER_STATUSES)}")


def validate_payment_method(payment_method) -> None:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Valid payment methods are: {', '.join(PAYMENT_METHODS)}"
        )


def _parse_order_date(value) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError("orderDate must be an ISO-8601 datetime")
        return dt
    raise ValidationError("orderDate must be an ISO-8601 datetime")


def create_order(
    *,
    customer_id,
    product_id,
    inventory_id,
    quantity,
    unit_id,
    verified_by_user_id: int,
    role: str,
    status: str | None = None,
    payment_method: str | None = None,
    order_date=None,
    session=None,
) -> dict:
    """
    Create an order and its offsetting stock movement atomically.

    Returns the order with a calculation breakdown (rate x quantity) and a
    stock-update breakdown (previous/current available quantity).
    """
    session = session or db.session

    _require_write_role(role, "create")

    requested_inventory = _optional_id(inventory_id)
    if requested_inventory is not None and not check_access(
        verified_by_user_id, role, requested_inventory, session=session
    ):
        raise ForbiddenError(INVENTORY_DENIED)

    if any(_is_blank(v) for v in (customer_id, product_id, inventory_id, quantity, unit_id)):
        raise ValidationError("Customer ID, Product ID, Inventory ID, quantity, and unit ID are required")
    customer_id = parse_id(customer_id, "customerId")
    product_id = parse_id(product_id, "productId")
    inventory_id = parse_id(inventory_id, "inventoryId")
    unit_id = parse_id(unit_id, "unitId")
    quantity = parse_quantity(quantity)

    if status:
        validate_status(status)
    if payment_method:
        validate_payment_method(payment_method)
    order_dt = _parse_order_date(order_date)

    def _op():
        with unit_of_work(session):
            if session.get(Customer, customer_id) is None:
                raise NotFoundError("Customer")
            product, _, unit = load_key_entities(
                session,
                product_id=product_id,
                inventory_id=inventory_id,
                unit_id=unit_id,
                lock_product=True,
            )

            rate_row = session.query(ProductUnitRate).filter_by(product_id=product_id, unit_id=unit_id).first()
            if rate_row is None:
                raise NotFoundError(
                    "Product unit rate",
                    f"No rate found for product '{product.product_name}' in unit '{unit.name}'. "
                    "Please set up pricing for this product-unit combination.",
                )

            availability = available_quantity(product_id, inventory_id, unit_id, session=session)
            if not availability.ever_stocked:
                raise NotFoundError(
                    "Stock",
                    "No stock record found for this product in the specified inventory "
                    f"with unit {unit.name}",
                )
            if availability.available < quantity:
                raise insufficient_stock(availability, quantity, unit.name)

            rate = to_decimal(rate_row.rate)
            total_amount = round_money(rate * quantity)

            order = Order(
                customer_id=customer_id,
                product_id=product_id,
                inventory_id=inventory_id,
                unit_id=unit_id,
                verified_by_user_id=verified_by_user_id,
                quantity=quantity,
                status=status or ORDER_STATUS_PENDING,
                payment_method=payment_method or PAYMENT_METHOD_NONE,
                order_date=order_dt,
                total_amount=total_amount,
            )
            session.add(order)
            session.flush()

            record_order_movement(session, order, created_by_user_id=verified_by_user_id)
        return order, availability, rate, total_amount, unit.name

    try:
        order, availability, rate, total_amount, unit_name = run_with_retry(session, _op)
    except SQLAlchemyError as exc:
        current_app.logger.warning("Order creation rolled back: %s", exc)
        raise InternalError("Error creating order", extra={"error": str(exc)}) from exc

    current_app.logger.info(
        "Order %s created: product=%s inventory=%s unit=%s quantity=%s total=%s",
        order.id, product_id, inventory_id, unit_id, quantity, total_amount,
    )

    previous = availability.available
    return {
        "order": order.to_dict(),
        "calculation": {
            "rate": as_number(rate),
            "quantity": as_number(quantity),
            "unit": unit_name,
            "totalAmount": as_number(total_amount),
            "formula": f"{as_number(rate)} × {as_number(quantity)} = {total_amount}",
        },
        "stockUpdate": {
            "previousAvailable": as_number(previous),
            "currentAvailable": as_number(previous - quantity),
            "quantityUsed": as_number(quantity),
            "unit": unit_name,
        },
    }


def record_order_movement(session, order: Order, *, created_by_user_id: int | None = None):
    """The "out" movement that offsets an order. Caller owns the transaction."""
    return StockLedgerRepository(session).append(
        product_id=order.product_id,
        inventory_id=order.inventory_id,
        unit_id=order.unit_id,
        quantity=order.quantity,
        direction=DIRECTION_OUT,
        method=METHOD_ORDER,
        order_id=order.id,
        created_by_user_id=created_by_user_id,
    )


def _load_order_in_scope(session, order_id: int, actor_user_id: int, role: str) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order")
    if not check_access(actor_user_id, role, order.inventory_id, session=session):
        raise ForbiddenError(INVENTORY_DENIED)
    return order


def update_order(*, order_id: int, changes: dict, actor_user_id: int, role: str, session=None) -> Order:
    """
    Patch an order. Access is checked against the current inventory and,
    when inventoryId changes, against the new one too. The ledger is not
    adjusted.
    """
    session = session or db.session
    _require_write_role(role, "update")

    if changes is None or not isinstance(changes, dict):
        raise ValidationError("Invalid JSON payload")
    for key in changes:
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    order = _load_order_in_scope(session, order_id, actor_user_id, role)

    patch = {}
    if not _is_blank(changes.get("inventoryId")):
        new_inventory_id = parse_id(changes["inventoryId"], "inventoryId")
        if new_inventory_id != order.inventory_id and not check_access(
            actor_user_id, role, new_inventory_id, session=session
        ):
            raise ForbiddenError(INVENTORY_DENIED)
        patch["inventory_id"] = new_inventory_id

    if changes.get("status"):
        validate_status(changes["status"])
        patch["status"] = changes["status"]
    if changes.get("paymentMethod"):
        validate_payment_method(changes["paymentMethod"])
        patch["payment_method"] = changes["paymentMethod"]
    if not _is_blank(changes.get("quantity")):
        patch["quantity"] = parse_quantity(changes["quantity"])
    if not _is_blank(changes.get("totalAmount")):
        try:
            total = round_money(changes["totalAmount"])
        except ValueError:
            raise ValidationError("totalAmount must be a number")
        if total < 0:
            raise ValidationError("totalAmount must be >= 0")
        patch["total_amount"] = total
    if not _is_blank(changes.get("orderDate")):
        patch["order_date"] = _parse_order_date(changes["orderDate"])

    for field_name, model, column in (
        ("customerId", Customer, "customer_id"),
        ("productId", Product, "product_id"),
        ("unitId", Unit, "unit_id"),
    ):
        if not _is_blank(changes.get(field_name)):
            ref_id = parse_id(changes[field_name], field_name)
            if session.get(model, ref_id) is None:
                raise NotFoundError(model.__name__)
            patch[column] = ref_id
    if "inventory_id" in patch and session.get(Inventory, patch["inventory_id"]) is None:
        raise NotFoundError("Inventory")

    with unit_of_work(session):
        for column, value in patch.items():
            setattr(order, column, value)
    return order


def update_order_status(*, order_id: int, status, actor_user_id: int, role: str, session=None) -> Order:
    """Any status may move to any other status."""
    session = session or db.session
    _require_write_role(role, "update")

    if not status:
        raise ValidationError("Status is required")
    validate_status(status)

    order = _load_order_in_scope(session, order_id, actor_user_id, role)
    with unit_of_work(session):
        order.status = status
    return order


def delete_order(*, order_id: int, actor_user_id: int, role: str, session=None) -> None:
    """Superadmin only. The order's stock movement stays in the ledger."""
    session = session or db.session
    if role != ROLE_SUPERADMIN:
        raise ForbiddenError("Only superadmin users can delete orders")

    order = _load_order_in_scope(session, order_id, actor_user_id, role)
    with unit_of_work(session):
        session.delete(order)


def list_orders(
    scope: AccessScope,
    *,
    customer_id: int | None = None,
    status: str | None = None,
    inventory_id: int | None = None,
    session=None,
) -> list[Order]:
    session = session or db.session
    effective = scope.restrict(inventory_id)
    if effective.is_empty:
        return []
    query = effective.apply(session.query(Order), Order.inventory_id)
    if inventory_id is not None:
        query = query.filter(Order.inventory_id == inventory_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status is not None:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id: int, scope: AccessScope, *, session=None) -> Order:
    session = session or db.session
    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order")
    if not scope.allows(order.inventory_id):
        raise ForbiddenError(INVENTORY_DENIED)
    return order
