"""
Period summary tests.

Verifies:
- period ranges end at 23:59:59.999 today and start where the period starts
- cancelled orders are excluded from sales
- revenue is rounded half-up to 2 decimals per product and summed
- admins only see managed inventories; other roles are refused
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from stockroom.errors import ForbiddenError, ValidationError
from stockroom.models import Order
from stockroom.services import summary_service
from stockroom.time_utils import utcnow

from conftest import add_movement

NOW = datetime(2026, 10, 18, 15, 30, 0)


def _add_order(session, user, customer, product, inventory, unit, total, *, status="confirmed", quantity=1, order_date=None):
    order = Order(
        customer_id=customer.id,
        product_id=product.id,
        inventory_id=inventory.id,
        unit_id=unit.id,
        verified_by_user_id=user.id,
        quantity=Decimal(str(quantity)),
        status=status,
        payment_method="cash",
        order_date=order_date or utcnow(),
        total_amount=Decimal(str(total)),
    )
    session.add(order)
    session.commit()
    return order


class TestDateRange:

    @pytest.mark.parametrize(
        "period,start",
        [
            ("daily", datetime(2026, 10, 18)),
            ("weekly", datetime(2026, 10, 12)),
            ("monthly", datetime(2026, 10, 1)),
            ("yearly", datetime(2026, 1, 1)),
            ("all", datetime(1970, 1, 1)),
            ("WEEKLY", datetime(2026, 10, 12)),
        ],
    )
    def test_period_start(self, period, start):
        range_start, range_end = summary_service.get_date_range(period, now=NOW)
        assert range_start == start
        assert range_end == datetime(2026, 10, 18, 23, 59, 59, 999000)

    @pytest.mark.parametrize("period", ["hourly", "", None])
    def test_unknown_period(self, period):
        with pytest.raises(ValidationError):
            summary_service.get_date_range(period, now=NOW)


class TestSummarize:

    def test_cancelled_orders_excluded_and_revenue_rounded(
        self, db_session, superadmin, customer, product, inventory_north, unit_kg
    ):
        for total in ("50.25", "50.25", "50.255"):
            _add_order(db_session, superadmin, customer, product, inventory_north, unit_kg, total)
        for total in ("499.99", "500.00"):
            _add_order(db_session, superadmin, customer, product, inventory_north, unit_kg, total, status="cancelled")

        result = summary_service.summarize(period="weekly", user_id=superadmin.id, role="superadmin")

        assert result["period"] == "weekly"
        assert result["range"]["end"].endswith("T23:59:59.999Z")
        (bucket,) = result["inventories"]
        assert bucket["inventoryName"] == "North Depot"
        assert bucket["sales"]["totals"] == {"orders": 3, "quantity": 3, "revenue": 150.76}
        (line,) = bucket["sales"]["byProduct"]
        assert line["revenue"] == 150.76
        assert line["unit"] == {"id": unit_kg.id, "name": "kg"}

    def test_total_is_sum_of_rounded_lines(
        self, db_session, superadmin, customer, product, inventory_north, unit_kg, unit_bori
    ):
        _add_order(db_session, superadmin, customer, product, inventory_north, unit_kg, "0.005")
        _add_order(db_session, superadmin, customer, product, inventory_north, unit_bori, "0.005")

        result = summary_service.summarize(period="daily", user_id=superadmin.id, role="superadmin")
        sales = result["inventories"][0]["sales"]
        assert [line["revenue"] for line in sales["byProduct"]] == [0.01, 0.01]
        assert sales["totals"]["revenue"] == 0.02

    def test_orders_outside_period_ignored(self, db_session, superadmin, customer, product, inventory_north, unit_kg):
        _add_order(
            db_session, superadmin, customer, product, inventory_north, unit_kg, "80",
            order_date=utcnow() - timedelta(days=40),
        )
        _add_order(db_session, superadmin, customer, product, inventory_north, unit_kg, "20")

        daily = summary_service.summarize(period="daily", user_id=superadmin.id, role="superadmin")
        every = summary_service.summarize(period="all", user_id=superadmin.id, role="superadmin")
        assert daily["inventories"][0]["sales"]["totals"]["revenue"] == 20.0
        assert every["inventories"][0]["sales"]["totals"]["revenue"] == 100.0

    def test_stock_snapshot_uses_ledger(self, db_session, superadmin, product, inventory_north, unit_kg):
        add_movement(db_session, product, inventory_north, unit_kg, 12)

        result = summary_service.summarize(period="all", user_id=superadmin.id, role="superadmin")
        stock = result["inventories"][0]["stock"]
        assert stock["totals"] == {"items": 1, "totalQuantity": 12}
        assert stock["byProduct"][0]["stockQuantity"] == 12

    def test_inventories_without_activity_still_listed(self, db_session, superadmin, inventory_north, inventory_south):
        result = summary_service.summarize(period="daily", user_id=superadmin.id, role="superadmin")
        assert [b["inventoryId"] for b in result["inventories"]] == [inventory_north.id, inventory_south.id]
        assert result["inventories"][1]["sales"]["totals"] == {"orders": 0, "quantity": 0, "revenue": 0.0}

    def test_superadmin_unknown_inventory_gets_placeholder_bucket(self, db_session, superadmin, inventory_north):
        result = summary_service.summarize(
            period="all", user_id=superadmin.id, role="superadmin", inventory_id=inventory_north.id + 1000,
        )
        assert [b["inventoryName"] for b in result["inventories"]] == [f"Inventory {inventory_north.id + 1000}"]
        assert result["inventories"][0]["sales"]["totals"] == {"orders": 0, "quantity": 0, "revenue": 0.0}

    def test_admin_sees_only_managed(self, db_session, admin_north, inventory_north, inventory_south):
        result = summary_service.summarize(period="daily", user_id=admin_north.id, role="admin")
        assert [b["inventoryId"] for b in result["inventories"]] == [inventory_north.id]

    def test_admin_explicit_unmanaged_inventory(self, db_session, admin_north, inventory_south):
        with pytest.raises(ForbiddenError):
            summary_service.summarize(
                period="daily", user_id=admin_north.id, role="admin", inventory_id=inventory_south.id,
            )

    def test_admin_without_inventories_gets_empty_list(self, db_session, admin_unassigned, inventory_north):
        result = summary_service.summarize(period="daily", user_id=admin_unassigned.id, role="admin")
        assert result["inventories"] == []

    def test_driver_refused(self, db_session, driver):
        with pytest.raises(ForbiddenError):
            summary_service.summarize(period="daily", user_id=driver.id, role="driver")

    def test_period_required(self, db_session, superadmin):
        with pytest.raises(ValidationError):
            summary_service.summarize(period=None, user_id=superadmin.id, role="superadmin")
