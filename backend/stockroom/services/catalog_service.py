# Overview: Reference data and product-unit pricing.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Inventory, Product, ProductUnitRate, Unit
from ..amounts import to_decimal
from ..errors import ConflictError, NotFoundError, ValidationError
from .stock_service import parse_id


def _parse_rate(value):
    if value is None or isinstance(value, bool):
        raise ValidationError("rate is required")
    try:
        rate = to_decimal(value)
    except ValueError:
        raise ValidationError("Rate must be a valid number")
    if not rate.is_finite() or rate < 0:
        raise ValidationError("Rate must be a positive number")
    return rate


def create_unit(name: str, *, session=None) -> Unit:
    session = session or db.session
    name = (name or "").strip()
    if not name:
        raise ValidationError("name cannot be blank")
    if session.query(Unit).filter_by(name=name).first():
        raise ConflictError(f"Unit '{name}' already exists")
    unit = Unit(name=name)
    session.add(unit)
    session.commit()
    return unit


def create_product(product_name: str, description: str | None = None, *, session=None) -> Product:
    session = session or db.session
    product_name = (product_name or "").strip()
    if not product_name:
        raise ValidationError("productName cannot be blank")
    product = Product(product_name=product_name, description=description)
    session.add(product)
    session.commit()
    return product


def create_inventory(inventory_name: str, address: str | None = None, contact_number: str | None = None, *, session=None) -> Inventory:
    session = session or db.session
    inventory_name = (inventory_name or "").strip()
    if not inventory_name:
        raise ValidationError("inventoryName cannot be blank")
    inventory = Inventory(inventory_name=inventory_name, address=address, contact_number=contact_number)
    session.add(inventory)
    session.commit()
    return inventory


def create_customer(customer_name: str, email: str | None = None, phone: str | None = None, *, session=None) -> Customer:
    session = session or db.session
    customer_name = (customer_name or "").strip()
    if not customer_name:
        raise ValidationError("customerName cannot be blank")
    customer = Customer(customer_name=customer_name, email=email, phone=phone)
    session.add(customer)
    session.commit()
    return customer


def list_rates(*, product_id: int | None = None, session=None) -> list[ProductUnitRate]:
    session = session or db.session
    query = session.query(ProductUnitRate)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(ProductUnitRate.product_id.asc(), ProductUnitRate.unit_id.asc()).all()


def get_rate(rate_id: int, *, session=None) -> ProductUnitRate:
    session = session or db.session
    rate = session.get(ProductUnitRate, rate_id)
    if rate is None:
        raise NotFoundError("Product unit rate")
    return rate


def create_rate(*, product_id, unit_id, rate, session=None) -> ProductUnitRate:
    """One rate per (product, unit); a second one is a ConflictError."""
    session = session or db.session
    product_id = parse_id(product_id, "productId")
    unit_id = parse_id(unit_id, "unitId")
    rate = _parse_rate(rate)

    if session.get(Product, product_id) is None:
        raise NotFoundError("Product")
    if session.get(Unit, unit_id) is None:
        raise NotFoundError("Unit")
    if session.query(ProductUnitRate).filter_by(product_id=product_id, unit_id=unit_id).first():
        raise ConflictError("A rate already exists for this product and unit")

    row = ProductUnitRate(product_id=product_id, unit_id=unit_id, rate=rate)
    session.add(row)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("A rate already exists for this product and unit")
    return row


def update_rate(rate_id: int, *, rate, session=None) -> ProductUnitRate:
    session = session or db.session
    row = get_rate(rate_id, session=session)
    row.rate = _parse_rate(rate)
    session.commit()
    return row


def delete_rate(rate_id: int, *, session=None) -> None:
    session = session or db.session
    row = get_rate(rate_id, session=session)
    session.delete(row)
    session.commit()
