"""
Order fulfillment transaction tests.

Verifies:
- a created order and its "out" movement are written together
- preconditions are checked in a fixed order
- never-stocked keys and insufficient stock are distinct failures
- a failed movement write leaves no order behind
- status changes and deletes leave the ledger alone
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stockroom.errors import (
    ForbiddenError,
    InsufficientStockError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from stockroom.models import Order, StockMovement
from stockroom.services import order_service, stock_service
from stockroom.services.access_scope_service import resolve_scope

from conftest import add_movement, add_out


def _order(user, customer, product, inventory, unit, quantity, **kwargs):
    return order_service.create_order(
        customer_id=customer.id if customer else kwargs.pop("customer_id", None),
        product_id=product.id,
        inventory_id=inventory.id if inventory else kwargs.pop("inventory_id", None),
        quantity=quantity,
        unit_id=unit.id,
        verified_by_user_id=user.id,
        role=user.role,
        **kwargs,
    )


@pytest.fixture
def stocked(db_session, product, inventory_north, unit_kg, rate_kg):
    """100 kg of rice in the north inventory, priced at 10.00/kg."""
    add_movement(db_session, product, inventory_north, unit_kg, 100)


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestCreateOrder:

    def test_order_and_movement_written_together(self, db_session, stocked, admin_north, customer, product, inventory_north, unit_kg):
        result = _order(admin_north, customer, product, inventory_north, unit_kg, 30)

        order = result["order"]
        assert order["totalAmount"] == 300
        assert order["status"] == "pending"
        assert order["paymentMethod"] == "no"
        assert order["verifiedByUserId"] == admin_north.id

        assert result["calculation"] == {
            "rate": 10,
            "quantity": 30,
            "unit": "kg",
            "totalAmount": 300,
            "formula": "10 × 30 = 300.00",
        }
        assert result["stockUpdate"] == {
            "previousAvailable": 100,
            "currentAvailable": 70,
            "quantityUsed": 30,
            "unit": "kg",
        }

        movement = db_session.query(StockMovement).filter_by(order_id=order["id"]).one()
        assert movement.direction == "out"
        assert movement.method == "order"
        assert movement.quantity == Decimal("30")
        assert (movement.product_id, movement.inventory_id, movement.unit_id) == (product.id, inventory_north.id, unit_kg.id)

        assert stock_service.available_quantity(product.id, inventory_north.id, unit_kg.id).available == 70

    def test_insufficient_stock_reports_shortfall(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        _order(superadmin, customer, product, inventory_north, unit_kg, 30)

        with pytest.raises(InsufficientStockError) as exc_info:
            _order(superadmin, customer, product, inventory_north, unit_kg, 1000)

        assert exc_info.value.status_code == 400
        assert exc_info.value.extra["stockDetails"] == {
            "available": 70,
            "requested": 1000,
            "shortfall": 930,
            "unit": "kg",
        }
        assert db_session.query(Order).count() == 1

    def test_exact_quantity_leaves_zero(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 100)
        assert result["stockUpdate"]["currentAvailable"] == 0
        assert stock_service.available_quantity(product.id, inventory_north.id, unit_kg.id).available == 0

    def test_total_is_rounded_half_up(self, db_session, superadmin, customer, product, inventory_north, unit_kg):
        from stockroom.models import ProductUnitRate

        db_session.add(ProductUnitRate(product_id=product.id, unit_id=unit_kg.id, rate=Decimal("0.125")))
        db_session.commit()
        add_movement(db_session, product, inventory_north, unit_kg, 10)

        result = _order(superadmin, customer, product, inventory_north, unit_kg, 1)
        assert result["calculation"]["totalAmount"] == 0.13

    def test_explicit_status_and_payment(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(
            superadmin, customer, product, inventory_north, unit_kg, 1,
            status="confirmed", payment_method="cash", order_date="2026-03-01T10:00:00Z",
        )
        assert result["order"]["status"] == "confirmed"
        assert result["order"]["paymentMethod"] == "cash"
        assert result["order"]["orderDate"].startswith("2026-03-01T10:00:00")


# =============================================================================
# PRECONDITION ORDER
# =============================================================================


class TestPreconditions:

    def test_role_checked_first(self, db_session, driver, product, unit_kg):
        with pytest.raises(ForbiddenError):
            order_service.create_order(
                customer_id=None, product_id=product.id, inventory_id=None, quantity=None,
                unit_id=unit_kg.id, verified_by_user_id=driver.id, role="driver",
            )

    def test_access_checked_before_required_fields(self, db_session, admin_north, product, inventory_south, unit_kg):
        with pytest.raises(ForbiddenError) as exc_info:
            order_service.create_order(
                customer_id=None, product_id=product.id, inventory_id=inventory_south.id, quantity=None,
                unit_id=unit_kg.id, verified_by_user_id=admin_north.id, role="admin",
            )
        assert exc_info.value.message == "Access denied. You do not manage this inventory."

    def test_missing_inventory_is_bad_request(self, db_session, admin_north, customer, product, unit_kg):
        with pytest.raises(ValidationError):
            order_service.create_order(
                customer_id=customer.id, product_id=product.id, inventory_id=None, quantity=1,
                unit_id=unit_kg.id, verified_by_user_id=admin_north.id, role="admin",
            )

    @pytest.mark.parametrize("quantity", [0, -1, "ten"])
    def test_quantity_must_be_positive(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg, quantity):
        with pytest.raises(ValidationError):
            _order(superadmin, customer, product, inventory_north, unit_kg, quantity)

    def test_quantity_finer_than_column_scale_rejected(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        with pytest.raises(ValidationError):
            _order(superadmin, customer, product, inventory_north, unit_kg, "0.00001")
        assert db_session.query(Order).count() == 0
        assert db_session.query(StockMovement).count() == 1

    def test_status_checked_before_existence(self, db_session, superadmin, product, inventory_north, unit_kg):
        with pytest.raises(ValidationError):
            _order(superadmin, None, product, inventory_north, unit_kg, 1, customer_id=424242, status="lost")

    def test_payment_method_validated(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        with pytest.raises(ValidationError):
            _order(superadmin, customer, product, inventory_north, unit_kg, 1, payment_method="barter")

    def test_customer_checked_before_product(self, db_session, superadmin, inventory_north, unit_kg):
        with pytest.raises(NotFoundError) as exc_info:
            order_service.create_order(
                customer_id=424242, product_id=525252, inventory_id=inventory_north.id, quantity=1,
                unit_id=unit_kg.id, verified_by_user_id=superadmin.id, role="superadmin",
            )
        assert exc_info.value.message == "Customer not found"

    def test_missing_rate(self, db_session, superadmin, customer, product, inventory_north, unit_kg):
        add_movement(db_session, product, inventory_north, unit_kg, 100)
        with pytest.raises(NotFoundError) as exc_info:
            _order(superadmin, customer, product, inventory_north, unit_kg, 1)
        assert exc_info.value.message.startswith("No rate found for product 'Rice' in unit 'kg'")

    def test_never_stocked_is_not_found(self, db_session, rate_kg, superadmin, customer, product, inventory_north, unit_kg):
        with pytest.raises(NotFoundError) as exc_info:
            _order(superadmin, customer, product, inventory_north, unit_kg, 1)
        assert "No stock record found" in exc_info.value.message
        assert exc_info.value.message.endswith("with unit kg")

    def test_depleted_stock_is_insufficient(self, db_session, rate_kg, superadmin, customer, product, inventory_north, unit_kg):
        add_movement(db_session, product, inventory_north, unit_kg, 5)
        add_out(db_session, product, inventory_north, unit_kg, 5)
        with pytest.raises(InsufficientStockError):
            _order(superadmin, customer, product, inventory_north, unit_kg, 1)


# =============================================================================
# ATOMICITY
# =============================================================================


class TestAtomicity:

    def test_failed_movement_rolls_back_order(self, db_session, stocked, monkeypatch, superadmin, customer, product, inventory_north, unit_kg):
        def boom(session, order, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(order_service, "record_order_movement", boom)

        with pytest.raises(InternalError) as exc_info:
            _order(superadmin, customer, product, inventory_north, unit_kg, 10)

        assert exc_info.value.message == "Error creating order"
        assert exc_info.value.extra["error"] == "disk full"
        assert db_session.query(Order).count() == 0
        assert db_session.query(StockMovement).count() == 1
        assert stock_service.available_quantity(product.id, inventory_north.id, unit_kg.id).available == 100

    def test_every_order_has_one_matching_movement(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        for qty in (1, 2, 3):
            _order(superadmin, customer, product, inventory_north, unit_kg, qty)

        for order in db_session.query(Order).all():
            movements = db_session.query(StockMovement).filter_by(order_id=order.id).all()
            assert len(movements) == 1
            assert movements[0].quantity == order.quantity


# =============================================================================
# MAINTENANCE
# =============================================================================


class TestOrderMaintenance:

    def test_status_change_does_not_restore_stock(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 40)

        order = order_service.update_order_status(
            order_id=result["order"]["id"], status="cancelled", actor_user_id=superadmin.id, role="superadmin",
        )
        assert order.status == "cancelled"
        assert stock_service.available_quantity(product.id, inventory_north.id, unit_kg.id).available == 60

        # any status may follow any other
        order = order_service.update_order_status(
            order_id=order.id, status="pending", actor_user_id=superadmin.id, role="superadmin",
        )
        assert order.status == "pending"

    def test_invalid_status_rejected(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 1)
        with pytest.raises(ValidationError):
            order_service.update_order_status(
                order_id=result["order"]["id"], status="teleported", actor_user_id=superadmin.id, role="superadmin",
            )

    def test_delete_requires_superadmin(self, db_session, stocked, admin_north, customer, product, inventory_north, unit_kg):
        result = _order(admin_north, customer, product, inventory_north, unit_kg, 1)
        with pytest.raises(ForbiddenError):
            order_service.delete_order(order_id=result["order"]["id"], actor_user_id=admin_north.id, role="admin")

    def test_delete_keeps_movement(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 25)
        order_service.delete_order(order_id=result["order"]["id"], actor_user_id=superadmin.id, role="superadmin")

        assert db_session.query(Order).count() == 0
        assert db_session.query(StockMovement).filter_by(order_id=result["order"]["id"]).count() == 1
        assert stock_service.available_quantity(product.id, inventory_north.id, unit_kg.id).available == 75

    def test_update_rejects_unknown_fields(self, db_session, stocked, superadmin, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 1)
        with pytest.raises(ValidationError):
            order_service.update_order(
                order_id=result["order"]["id"], changes={"verifiedByUserId": 1},
                actor_user_id=superadmin.id, role="superadmin",
            )

    def test_update_cannot_move_order_out_of_scope(self, db_session, stocked, admin_north, inventory_south, customer, product, inventory_north, unit_kg):
        result = _order(admin_north, customer, product, inventory_north, unit_kg, 1)
        with pytest.raises(ForbiddenError):
            order_service.update_order(
                order_id=result["order"]["id"], changes={"inventoryId": inventory_south.id},
                actor_user_id=admin_north.id, role="admin",
            )

    def test_update_fields(self, db_session, stocked, admin_north, customer, product, inventory_north, unit_kg):
        result = _order(admin_north, customer, product, inventory_north, unit_kg, 1)
        order = order_service.update_order(
            order_id=result["order"]["id"],
            changes={"paymentMethod": "card", "totalAmount": "12.345"},
            actor_user_id=admin_north.id,
            role="admin",
        )
        assert order.payment_method == "card"
        assert order.to_dict()["totalAmount"] == 12.35

    def test_list_and_get_are_scoped(self, db_session, stocked, superadmin, admin_south, customer, product, inventory_north, unit_kg):
        result = _order(superadmin, customer, product, inventory_north, unit_kg, 1)

        assert order_service.list_orders(resolve_scope(admin_south.id, "admin")) == []
        assert len(order_service.list_orders(resolve_scope(superadmin.id, "superadmin"))) == 1
        with pytest.raises(ForbiddenError):
            order_service.get_order(result["order"]["id"], resolve_scope(admin_south.id, "admin"))
        with pytest.raises(NotFoundError):
            order_service.get_order(424242, resolve_scope(superadmin.id, "superadmin"))
