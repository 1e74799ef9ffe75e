# Overview: Flask CLI command groups for bootstrap, inspection, and seeding.

# backend/shopmaster/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: roles plus default admin, staff and customer users.
# - python -m flask system init-roles
#   Create default roles only (admin, staff, customer).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list [--role staff]
# - python -m flask users create --name "Jane" --email jane@shopmaster.local --password "Password123!" --role staff
#
# Catalog:
# - python -m flask catalog seed
#   Sample categories and products, with opening stock received through stock-in.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Category, Product
from .services.auth_service import create_user, create_default_roles, ROLE_NAMES, PasswordValidationError
from .services import catalog_service, inventory_service
from .validation import ConflictError


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("Admin", "admin@shopmaster.local", "admin"),
    ("Staff", "staff@shopmaster.local", "staff"),
    ("Customer", "customer@shopmaster.local", "customer"),
]

SEED_CATEGORIES = [
    ("Electronics", "Phones, audio and accessories"),
    ("Fashion", "Clothing and footwear"),
    ("Home & Living", "Furniture, decor and kitchen"),
    ("Sports & Fitness", "Equipment and activewear"),
]

# (category, name, base, selling, opening qty, purchase price, variants)
SEED_PRODUCTS = [
    ("Electronics", "Wireless Earbuds", 199900, 249900, 40, 150000, None),
    ("Electronics", "USB-C Charger 30W", 99900, 129900, 60, 70000, None),
    ("Fashion", "Cotton Crew T-Shirt", 49900, 69900, 0, 30000, [
        {"attributes": {"size": "M", "color": "Black"}, "additional_price_cents": 0},
        {"attributes": {"size": "L", "color": "Black"}, "additional_price_cents": 0},
        {"attributes": {"size": "XL", "color": "Black"}, "additional_price_cents": 5000},
    ]),
    ("Home & Living", "Ceramic Coffee Mug", 29900, 39900, 100, 15000, None),
    ("Sports & Fitness", "Yoga Mat 6mm", 129900, 159900, 8, 90000, None),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize roles and default users.

    Creates:
    - Roles: admin, staff, customer
    - Users: admin@shopmaster.local, staff@shopmaster.local, customer@shopmaster.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing ShopMaster...")

    create_default_roles()
    click.echo(f"PASS Roles ready: {', '.join(ROLE_NAMES)}")

    for name, email, role_name in DEFAULT_USERS:
        if db.session.query(User.id).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(name=name, email=email, password=DEFAULT_PASSWORD, role=role_name)
            click.echo(f"PASS Created user: {email} with role '{role_name}'")
        except (PasswordValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{email}': {e}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for _, email, role_name in DEFAULT_USERS:
        click.echo(f"   {role_name:<9} -> {email} / {DEFAULT_PASSWORD}")


@system_group.command('init-roles')
@with_appcontext
def init_roles():
    """Create default roles (admin, staff, customer)."""
    create_default_roles()
    click.echo(f"PASS Roles ready: {', '.join(ROLE_NAMES)}")


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

    click.echo("PASS Database reset. Run 'flask system init' next.")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLE_NAMES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a user with a single role."""
    try:
        user = create_user(name=name, email=email, password=password, role=role)
    except (PasswordValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ROLE_NAMES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id).all()
    if role:
        users = [u for u in users if role in u.role_names]

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<35} {'Active':<8} {'Roles'}")
    click.echo("="*90)
    for user in users:
        roles_str = ", ".join(user.role_names) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<35} {active_str:<8} {roles_str}")
    click.echo("="*90 + "\n")


@click.group('catalog')
def catalog_group():
    """Catalog seeding."""


@catalog_group.command('seed')
@click.option('--admin-email', default='admin@shopmaster.local', show_default=True,
              help='User recorded as creator and as the stock-in actor')
@with_appcontext
def seed_catalog(admin_email):
    """Create sample categories and products and receive opening stock."""
    admin = db.session.query(User).filter_by(email=admin_email).first()
    if admin is None:
        raise click.ClickException(f"User {admin_email} not found; run 'flask system init' first")

    categories = {}
    for name, description in SEED_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if category is None:
            category = catalog_service.create_category({"name": name, "description": description})
            click.echo(f"PASS Created category: {name}")
        categories[name] = category

    for cat_name, name, base, selling, qty, price, variants in SEED_PRODUCTS:
        if db.session.query(Product.id).filter_by(name=name).first():
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue

        variant_entries = None
        if variants:
            variant_entries = [
                {
                    "id": None,
                    "name": " / ".join(v["attributes"].values()),
                    "attributes": v["attributes"],
                    "additional_price_cents": v["additional_price_cents"],
                    "is_active": True,
                    "images": [],
                }
                for v in variants
            ]

        product = catalog_service.create_product(
            patch={
                "name": name,
                "category_id": categories[cat_name].id,
                "base_price_cents": base,
                "selling_price_cents": selling,
                "is_featured": qty >= 40,
            },
            variants=variant_entries,
            actor_id=admin.id,
        )

        if product.variants:
            for variant in product.variants:
                inventory_service.stock_in(
                    product_id=product.id,
                    variant_id=variant.id,
                    quantity=20,
                    purchase_price_cents=price,
                    actor_id=admin.id,
                    note="Opening stock",
                )
        elif qty:
            inventory_service.stock_in(
                product_id=product.id,
                quantity=qty,
                purchase_price_cents=price,
                actor_id=admin.id,
                note="Opening stock",
            )
        click.echo(f"PASS Created product: {product.name} ({product.sku})")

    click.echo("DONE Catalog seeded")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
