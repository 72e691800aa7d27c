# Overview: Flask CLI command groups for bootstrap, reference data, and stock intake.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the default superadmin and the default units.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --fullname "Ana Admin" --email ana@stockroom.local --password "Password123!" --role admin
#
# Reference data:
# - python -m flask catalog add-unit kg
# - python -m flask catalog add-product "Rice" --description "Long grain"
# - python -m flask catalog add-inventory "North Depot" --address "1 Dock Rd"
# - python -m flask catalog add-customer "Acme" --email buyer@acme.test
# - python -m flask catalog set-rate --product-id 1 --unit-id 1 --rate 12.50
#
# Inventory assignments:
# - python -m flask manages grant --user-id 2 --inventory-id 1
# - python -m flask manages revoke 3
#
# Stock intake:
# - python -m flask stock receive --product-id 1 --inventory-id 1 --unit-id 1 --quantity 100

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ServiceError
from .models import ProductUnitRate, Unit, User
from .models.auth import ROLES, ROLE_SUPERADMIN
from .models.stock import DIRECTION_IN, METHODS
from .services import catalog_service, manages_service, stock_service
from .services.auth_service import create_user

DEFAULT_UNITS = ("pcs", "kg", "box")


def _fail(exc: ServiceError):
    db.session.rollback()
    raise click.ClickException(exc.message)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='superadmin@stockroom.local', help='Superadmin email')
@click.option('--password', default='Password123!', help='Superadmin password')
@with_appcontext
def init_system(email, password):
    """
    Create the default superadmin and units if they are missing.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing stockroom...")

    superadmin = db.session.query(User).filter_by(role=ROLE_SUPERADMIN).first()
    if superadmin:
        click.echo(f"PASS Using existing superadmin: {superadmin.email} (ID: {superadmin.id})")
    else:
        try:
            superadmin = create_user(fullname="Superadmin", email=email, password=password, role=ROLE_SUPERADMIN)
        except ServiceError as e:
            _fail(e)
        click.echo(f"PASS Created superadmin: {superadmin.email} (ID: {superadmin.id})")

    for name in DEFAULT_UNITS:
        if db.session.query(Unit).filter_by(name=name).first():
            continue
        catalog_service.create_unit(name)
        click.echo(f"PASS Created unit: {name}")

    click.echo("DONE Stockroom initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--fullname', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), prompt=True)
@with_appcontext
def create_user_command(fullname, email, password, role):
    """Create a user with the given role."""
    try:
        user = create_user(fullname=fullname, email=email, password=password, role=role)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and managed inventories."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Email':<32} {'Role':<12} {'Active':<8} {'Inventories'}")
    click.echo("=" * 90)
    for user in users:
        inventories = ", ".join(str(m.inventory_id) for m in user.managed_inventories) or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<32} {user.role:<12} {active_str:<8} {inventories}")
    click.echo("=" * 90 + "\n")


@click.group('catalog')
def catalog_group():
    """Units, products, inventories, customers and rates."""


@catalog_group.command('add-unit')
@click.argument('name')
@with_appcontext
def add_unit(name):
    try:
        unit = catalog_service.create_unit(name)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created unit {unit.name} (ID: {unit.id})")


@catalog_group.command('add-product')
@click.argument('product_name')
@click.option('--description', default=None)
@with_appcontext
def add_product(product_name, description):
    try:
        product = catalog_service.create_product(product_name, description)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created product {product.product_name} (ID: {product.id})")


@catalog_group.command('add-inventory')
@click.argument('inventory_name')
@click.option('--address', default=None)
@click.option('--contact-number', default=None)
@with_appcontext
def add_inventory(inventory_name, address, contact_number):
    try:
        inventory = catalog_service.create_inventory(inventory_name, address, contact_number)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created inventory {inventory.inventory_name} (ID: {inventory.id})")


@catalog_group.command('add-customer')
@click.argument('customer_name')
@click.option('--email', default=None)
@click.option('--phone', default=None)
@with_appcontext
def add_customer(customer_name, email, phone):
    try:
        customer = catalog_service.create_customer(customer_name, email, phone)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created customer {customer.customer_name} (ID: {customer.id})")


@catalog_group.command('set-rate')
@click.option('--product-id', type=int, required=True)
@click.option('--unit-id', type=int, required=True)
@click.option('--rate', type=str, required=True)
@with_appcontext
def set_rate(product_id, unit_id, rate):
    """Create the (product, unit) rate, or update it if one exists."""
    existing = db.session.query(ProductUnitRate).filter_by(product_id=product_id, unit_id=unit_id).first()
    try:
        if existing:
            row = catalog_service.update_rate(existing.id, rate=rate)
        else:
            row = catalog_service.create_rate(product_id=product_id, unit_id=unit_id, rate=rate)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Rate for product {row.product_id} / unit {row.unit_id} is {row.rate}")


@click.group('manages')
def manages_group():
    """Admin-to-inventory assignments."""


@manages_group.command('grant')
@click.option('--user-id', type=int, required=True)
@click.option('--inventory-id', type=int, required=True)
@with_appcontext
def grant(user_id, inventory_id):
    try:
        row = manages_service.grant_manages(user_id=user_id, inventory_id=inventory_id)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS User {row.user_id} now manages inventory {row.inventory_id} (ID: {row.id})")


@manages_group.command('revoke')
@click.argument('manages_id', type=int)
@with_appcontext
def revoke(manages_id):
    try:
        manages_service.revoke_manages(manages_id)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Removed manages relationship {manages_id}")


@click.group('stock')
def stock_group():
    """Stock intake."""


@stock_group.command('receive')
@click.option('--product-id', type=int, required=True)
@click.option('--inventory-id', type=int, required=True)
@click.option('--unit-id', type=int, required=True)
@click.option('--quantity', type=str, required=True)
@click.option('--method', type=click.Choice([m for m in METHODS if m not in ("order", "transfer")]), default='purchase')
@click.option('--note', default=None)
@with_appcontext
def receive(product_id, inventory_id, unit_id, quantity, method, note):
    """Append an inbound movement as a superadmin operation."""
    try:
        movement = stock_service.record_movement(
            actor_user_id=None,
            role=ROLE_SUPERADMIN,
            product_id=product_id,
            inventory_id=inventory_id,
            unit_id=unit_id,
            quantity=quantity,
            direction=DIRECTION_IN,
            method=method,
            note=note,
        )
    except ServiceError as e:
        _fail(e)
    availability = stock_service.available_quantity(product_id, inventory_id, unit_id)
    click.echo(
        f"PASS Movement {movement.id} recorded; available now {availability.to_dict()['available']}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(manages_group)
    app.cli.add_command(stock_group)
