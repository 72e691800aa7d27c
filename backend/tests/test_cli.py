"""
CLI command tests (flask system/users/catalog/manages/stock groups).
"""

import pytest

from stockroom.errors import ConflictError, ValidationError
from stockroom.models import Manages, Product, ProductUnitRate, StockMovement, Unit, User
from stockroom.services import auth_service


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:

    def test_init_is_idempotent(self, runner, db_session):
        first = runner.invoke(args=["system", "init"])
        assert first.exit_code == 0, first.output
        second = runner.invoke(args=["system", "init"])
        assert second.exit_code == 0, second.output
        assert "Using existing superadmin" in second.output

        assert db_session.query(User).filter_by(role="superadmin").count() == 1
        assert {u.name for u in db_session.query(Unit).all()} == {"pcs", "kg", "box"}


class TestCatalogCommands:

    def test_add_reference_data_and_rate(self, runner, db_session):
        assert runner.invoke(args=["catalog", "add-unit", "bori"]).exit_code == 0
        assert runner.invoke(args=["catalog", "add-product", "Rice", "--description", "Long grain"]).exit_code == 0
        assert runner.invoke(args=["catalog", "add-inventory", "North Depot"]).exit_code == 0
        assert runner.invoke(args=["catalog", "add-customer", "Acme", "--email", "buyer@acme.test"]).exit_code == 0

        unit = db_session.query(Unit).filter_by(name="bori").one()
        product = db_session.query(Product).filter_by(product_name="Rice").one()
        result = runner.invoke(args=["catalog", "set-rate", "--product-id", str(product.id), "--unit-id", str(unit.id), "--rate", "12.5"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(args=["catalog", "set-rate", "--product-id", str(product.id), "--unit-id", str(unit.id), "--rate", "13"])
        assert result.exit_code == 0, result.output

        db_session.expire_all()
        (rate,) = db_session.query(ProductUnitRate).all()
        assert float(rate.rate) == 13.0

    def test_duplicate_unit_fails(self, runner, unit_kg):
        result = runner.invoke(args=["catalog", "add-unit", "kg"])
        assert result.exit_code != 0
        assert "already exists" in result.output


class TestStockCommands:

    def test_receive_and_grant(self, runner, db_session, admin_unassigned, product, inventory_north, unit_kg):
        result = runner.invoke(args=[
            "stock", "receive",
            "--product-id", str(product.id),
            "--inventory-id", str(inventory_north.id),
            "--unit-id", str(unit_kg.id),
            "--quantity", "25",
        ])
        assert result.exit_code == 0, result.output
        assert "available now 25" in result.output
        assert db_session.query(StockMovement).count() == 1

        result = runner.invoke(args=[
            "manages", "grant", "--user-id", str(admin_unassigned.id), "--inventory-id", str(inventory_north.id),
        ])
        assert result.exit_code == 0, result.output
        assert db_session.query(Manages).filter_by(user_id=admin_unassigned.id).count() == 1


class TestAuthService:

    def test_short_password_rejected(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user(fullname="Short", email="s@stockroom.test", password="abc", role="admin", rounds=4)

    def test_unknown_role_rejected(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user(fullname="X", email="x@stockroom.test", password="Password123!", role="owner", rounds=4)

    def test_duplicate_email(self, db_session, admin_north):
        with pytest.raises(ConflictError):
            auth_service.create_user(
                fullname="Again", email=admin_north.email.upper(), password="Password123!", role="admin", rounds=4,
            )

    def test_authenticate(self, db_session, admin_north):
        assert auth_service.authenticate(admin_north.email, "Password123!").id == admin_north.id
        assert auth_service.authenticate(admin_north.email, "nope") is None
