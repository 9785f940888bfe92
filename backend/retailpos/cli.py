# Overview: Flask CLI command groups for bootstrap, inspection, and sample data.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent: creates tables and the default admin/manager/cashier users.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username alice --password "Password123!" --role cashier
#
# Sample data:
# - python -m flask catalog seed
#   Categories, a supplier and products (opening stock posted through the ledger).

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Category, Product, Supplier, User
from .permissions import ROLES
from .services import auth_service, products_service

DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = (
    ("admin", "admin", "Administrator"),
    ("manager", "manager", "Store Manager"),
    ("cashier", "cashier", "Cashier"),
)

SAMPLE_CATEGORIES = (
    ("Beverages", "Drinks and juices"),
    ("Snacks", "Chips, cookies and candy"),
    ("Household", "Cleaning and home supplies"),
)

SAMPLE_PRODUCTS = (
    # name, sku, barcode, category, cost, price, quantity, min level
    ("Sparkling Water 500ml", "BEV-001", "0001000000011", "Beverages", "0.40", "1.25", 48, 12),
    ("Orange Juice 1L", "BEV-002", "0001000000028", "Beverages", "1.10", "2.99", 20, 10),
    ("Potato Chips", "SNK-001", "0001000000035", "Snacks", "0.75", "1.99", 30, 10),
    ("Chocolate Bar", "SNK-002", "0001000000042", "Snacks", "0.50", "1.49", 5, 10),
    ("Dish Soap", "HOU-001", "0001000000059", "Household", "1.20", "3.49", 15, 5),
)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create all tables and the default users.

    Users: admin / manager / cashier, password "Password123!".
    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing RetailPOS...")
    db.create_all()
    click.echo("PASS Tables created")

    for username, role, full_name in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            auth_service.create_user(
                username=username,
                password=DEFAULT_PASSWORD,
                role=role,
                full_name=full_name,
            )
            click.echo(f"PASS Created user: {username} with role '{role}'")
        except DomainError as e:
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, _, _ in DEFAULT_USERS:
        click.echo(f"   {username:<9} / {DEFAULT_PASSWORD}")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'Username':<20} {'Role':<10} {'Active':<8} {'Last login'}")
    click.echo("=" * 70)
    for u in users:
        active_str = "yes" if u.is_active else "no"
        last_login = u.to_dict()["last_login_at"] or "-"
        click.echo(f"{u.username:<20} {u.role:<10} {active_str:<8} {last_login}")
    click.echo("=" * 70 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Login name (unique)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='cashier', show_default=True)
@click.option('--email', default=None, help='Email address')
@click.option('--full-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, password, role, email, full_name):
    try:
        user = auth_service.create_user(
            username=username,
            password=password,
            role=role,
            email=email,
            full_name=full_name,
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} (role '{user.role}')")


@click.group('catalog')
def catalog_group():
    """Sample catalog data."""


@catalog_group.command('seed')
@click.option('--username', default='admin', show_default=True, help='User the opening stock is attributed to')
@with_appcontext
def seed_catalog(username):
    """Create sample categories, a supplier and products (skips existing SKUs)."""
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise click.ClickException(f"User '{username}' not found. Run: python -m flask system init")

    categories = {}
    for name, description in SAMPLE_CATEGORIES:
        try:
            categories[name] = products_service.create_category(name=name, description=description)
            click.echo(f"PASS Created category: {name}")
        except DomainError:
            categories[name] = db.session.query(Category).filter_by(name=name).first()
            click.echo(f"WARN  Category '{name}' already exists, reusing...")

    supplier = db.session.query(Supplier).filter_by(name="Acme Wholesale").first()
    if supplier is None:
        supplier = products_service.create_supplier(
            name="Acme Wholesale",
            contact_person="Jordan Lee",
            email="orders@acme-wholesale.example",
            city="Springfield",
            country="USA",
        )
        click.echo(f"PASS Created supplier: {supplier.name}")

    created = 0
    for name, sku, barcode, category, cost, price, quantity, min_level in SAMPLE_PRODUCTS:
        if db.session.query(Product).filter_by(sku=sku).first():
            click.echo(f"WARN  SKU '{sku}' already exists, skipping...")
            continue
        cat = categories.get(category)
        products_service.create_product(
            payload={
                "name": name,
                "sku": sku,
                "barcode": barcode,
                "category_id": cat.id if cat else None,
                "supplier_id": supplier.id,
                "cost_price": cost,
                "selling_price": price,
                "quantity": quantity,
                "min_stock_level": min_level,
            },
            user_id=user.id,
        )
        created += 1

    click.echo(f"DONE Seeded {created} product(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
