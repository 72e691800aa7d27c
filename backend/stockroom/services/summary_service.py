# Overview: Service-layer operations for period summaries; sales totals and stock snapshots per inventory.

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Inventory, Order, Product, Unit
from ..models.auth import ROLE_ADMIN, ROLE_SUPERADMIN
from ..models.orders import ORDER_STATUS_CANCELLED
from ..amounts import as_number, round_money, to_decimal
from ..errors import ForbiddenError, ValidationError
from ..time_utils import to_utc_z, utcnow
from .access_scope_service import AccessScope, get_managed_inventory_ids
from .stock_service import aggregate

PERIODS = ("daily", "weekly", "monthly", "yearly", "all")

END_OF_DAY = time(23, 59, 59, 999000)


def get_date_range(period: str, *, now: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Inclusive [start, end] for a summary period.

    Every range ends at 23:59:59.999 today; "all" starts at the epoch.
    """
    now = now or utcnow()
    today = now.date()
    end = datetime.combine(today, END_OF_DAY)

    key = (period or "").lower()
    if key == "daily":
        start_date = today
    elif key == "weekly":
        start_date = today - timedelta(days=6)
    elif key == "monthly":
        start_date = today.replace(day=1)
    elif key == "yearly":
        start_date = today.replace(month=1, day=1)
    elif key == "all":
        return datetime(1970, 1, 1), end
    else:
        raise ValidationError("Invalid period. Use daily, weekly, monthly, yearly, or all")
    return datetime.combine(start_date, time.min), end


def accessible_inventory_ids(user_id: int, role: str, explicit_inventory_id=None, *, session=None) -> list[int]:
    session = session or db.session
    explicit = None
    if explicit_inventory_id not in (None, ""):
        try:
            explicit = int(explicit_inventory_id)
        except (TypeError, ValueError):
            raise ValidationError("inventoryId must be an integer")

    if role == ROLE_SUPERADMIN:
        # unknown ids are not checked; they report as an empty "Inventory N" bucket
        if explicit is not None:
            return [explicit]
        return [row[0] for row in session.query(Inventory.id).order_by(Inventory.id.asc()).all()]

    if role == ROLE_ADMIN:
        managed = get_managed_inventory_ids(user_id, session=session)
        if explicit is not None:
            if explicit not in managed:
                raise ForbiddenError("Access denied for the specified inventory")
            return [explicit]
        return sorted(managed)

    raise ForbiddenError("Only admin or superadmin can access summaries")


def summarize(
    *,
    period: str,
    user_id: int,
    role: str,
    inventory_id=None,
    now: datetime | None = None,
    session=None,
) -> dict:
    session = session or db.session
    if not period:
        raise ValidationError("Query param 'period' is required (daily|weekly|monthly|yearly|all)")

    inventory_ids = accessible_inventory_ids(user_id, role, inventory_id, session=session)
    start, end = get_date_range(period, now=now)
    result = {
        "period": period.lower(),
        "range": {"start": to_utc_z(start, milliseconds=True), "end": to_utc_z(end, milliseconds=True)},
        "inventories": [],
    }
    if not inventory_ids:
        return result

    sales_rows = session.query(
        Order.inventory_id,
        Order.product_id,
        Order.unit_id,
        func.sum(Order.quantity).label("total_quantity"),
        func.sum(Order.total_amount).label("revenue"),
        func.count(Order.id).label("orders"),
    ).filter(
        Order.inventory_id.in_(inventory_ids),
        Order.order_date >= start,
        Order.order_date <= end,
        Order.status != ORDER_STATUS_CANCELLED,
    ).group_by(
        Order.inventory_id, Order.product_id, Order.unit_id
    ).order_by(
        Order.inventory_id, Order.product_id, Order.unit_id
    ).all()

    # Current stock, not date-filtered
    stock_rows = aggregate(AccessScope(frozenset(inventory_ids)), session=session)

    inventory_names = dict(session.query(Inventory.id, Inventory.inventory_name).filter(Inventory.id.in_(inventory_ids)).all())
    product_ids = {r.product_id for r in sales_rows}
    unit_ids = {r.unit_id for r in sales_rows}
    product_names = dict(session.query(Product.id, Product.product_name).filter(Product.id.in_(product_ids)).all()) if product_ids else {}
    unit_names = dict(session.query(Unit.id, Unit.name).filter(Unit.id.in_(unit_ids)).all()) if unit_ids else {}

    snapshot_at = to_utc_z(utcnow())
    buckets = {}
    for inv_id in inventory_ids:
        buckets[inv_id] = {
            "inventoryId": inv_id,
            "inventoryName": inventory_names.get(inv_id, f"Inventory {inv_id}"),
            "sales": {"totals": {"orders": 0, "quantity": Decimal("0"), "revenue": Decimal("0")}, "byProduct": []},
            "stock": {"snapshotAt": snapshot_at, "totals": {"items": 0, "totalQuantity": Decimal("0")}, "byProduct": []},
        }

    for row in sales_rows:
        bucket = buckets.get(row.inventory_id)
        if bucket is None:
            continue
        revenue = round_money(row.revenue)
        quantity = to_decimal(row.total_quantity)
        bucket["sales"]["byProduct"].append({
            "productId": row.product_id,
            "productName": product_names.get(row.product_id, f"Product {row.product_id}"),
            "unit": {"id": row.unit_id, "name": unit_names.get(row.unit_id)},
            "quantitySold": as_number(quantity),
            "orders": int(row.orders),
            "revenue": as_number(revenue),
        })
        totals = bucket["sales"]["totals"]
        totals["orders"] += int(row.orders)
        totals["quantity"] += quantity
        totals["revenue"] = round_money(totals["revenue"] + revenue)

    for row in stock_rows:
        bucket = buckets.get(row.inventory_id)
        if bucket is None:
            continue
        bucket["stock"]["byProduct"].append({
            "productId": row.product_id,
            "productName": row.product_name,
            "unit": {"id": row.unit_id, "name": row.unit_name},
            "stockQuantity": as_number(row.available_quantity),
        })
        bucket["stock"]["totals"]["items"] += 1
        bucket["stock"]["totals"]["totalQuantity"] += row.available_quantity

    for bucket in buckets.values():
        sales_totals = bucket["sales"]["totals"]
        sales_totals["quantity"] = as_number(sales_totals["quantity"])
        sales_totals["revenue"] = float(round_money(sales_totals["revenue"]))
        stock_totals = bucket["stock"]["totals"]
        stock_totals["totalQuantity"] = as_number(stock_totals["totalQuantity"])
        result["inventories"].append(bucket)

    return result
