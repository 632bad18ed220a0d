# Overview: Flask CLI command groups for bootstrap, catalog, payment methods, and sales.

# backend/gympos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog (money accepts "5.00" style amounts):
# - python -m flask products create --name "Water 500ml" --price 1.50 --stock 48
# - python -m flask products list [--active/--inactive]
# - python -m flask products search "protein"
# - python -m flask products update 3 --price 2.00 --name "Water 600ml"
# - python -m flask products set-active 3 --no
# - python -m flask products adjust-stock 3 -- -2
#   Manual correction; refuses to drive stock negative.
# - python -m flask products delete 3
#
# Payment methods:
# - python -m flask payment-methods create --name "Cash" --type CASH
# - python -m flask payment-methods list [--active/--inactive] [--json]
# - python -m flask payment-methods set-active 2 --no
# - python -m flask payment-methods delete 2
#
# Sales:
# - python -m flask sales create --user-id 1 --payment-method-id 1 --line 3:2 --line 4:1:5.00:0.50
#   Line format: PRODUCT_ID:QTY[:UNIT_PRICE[:DISCOUNT]] (empty UNIT_PRICE uses the catalog price).
# - python -m flask sales void 12 --user-id 1 --reason "Wrong item"
# - python -m flask sales show 12 [--json]
# - python -m flask sales list [--start 2026-01-01] [--end 2026-01-31] [--user-id 1] [--json]

import json
from functools import wraps
from typing import Any

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import DomainError, InvalidInputError
from .extensions import db
from .models import PAYMENT_METHOD_TYPES
from .services import payment_methods_service, products_service, sales_service
from .services.sales_service import SaleLineInput
from .time_utils import parse_iso_datetime, to_utc_z


def _to_cents(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        return int(round(float(text) * 100))
    except ValueError:
        raise click.BadParameter(f"invalid amount: {value!r}")


def _format_cents(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _parse_line(raw: str) -> SaleLineInput:
    parts = raw.split(":")
    if len(parts) < 2 or len(parts) > 4:
        raise click.BadParameter(f"expected PRODUCT_ID:QTY[:UNIT_PRICE[:DISCOUNT]], got {raw!r}")
    try:
        product_id = int(parts[0])
        quantity = int(parts[1])
    except ValueError:
        raise click.BadParameter(f"product id and quantity must be integers: {raw!r}")
    unit_price = _to_cents(parts[2]) if len(parts) > 2 else None
    discount = _to_cents(parts[3]) if len(parts) > 3 else None
    return SaleLineInput(
        product_id=product_id,
        quantity=quantity,
        unit_price_cents=unit_price,
        discount_cents=discount or 0,
    )


def _parse_date_option(value: str | None, *, end_of_day: bool = False):
    try:
        return parse_iso_datetime(value, end_of_day=end_of_day)
    except ValueError:
        raise click.BadParameter(f"invalid ISO-8601 date: {value!r}")


def _echo_json(payload, *, err: bool = False) -> None:
    click.echo(json.dumps(payload, indent=2), err=err)


def reports_domain_errors(f):
    """
    Print domain failures and exit 1.

    Plain output is 'FAIL <CODE>: message'. Commands called with --json get
    the error's to_dict() payload instead.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except DomainError as e:
            if kwargs.get("as_json"):
                _echo_json(e.to_dict(), err=True)
            else:
                click.echo(f"FAIL {e.code}: {e}", err=True)
                if e.details:
                    click.echo(f"     details: {e.details}", err=True)
            raise click.exceptions.Exit(1)
        except Exception:
            current_app.logger.exception("Command %s failed", f.__name__)
            raise
    return decorated_function


def _echo_product(p) -> None:
    state = "active" if p.is_active else "inactive"
    click.echo(f"{p.id:>5}  {p.name:<30} {_format_cents(p.price_cents):>10}  stock={p.stock:<6} {state}")


def _echo_sale(sale, *, with_details: bool = False) -> None:
    ref = f" voids={sale.voided_sale_id}" if sale.is_void() else ""
    click.echo(
        f"Sale {sale.id} [{sale.kind}/{sale.status}] {to_utc_z(sale.sale_date)} "
        f"user={sale.user_id} payment_method={sale.payment_method_id} "
        f"total={_format_cents(sale.total_cents)} discount={_format_cents(sale.total_discount_cents)}{ref}"
    )
    if with_details:
        for d in sale.details:
            click.echo(
                f"   product={d.product_id} qty={d.quantity} unit={_format_cents(d.unit_price_cents)} "
                f"gross={_format_cents(d.gross_cents)} discount={_format_cents(d.discount_cents)} "
                f"net={_format_cents(d.net_cents)}"
            )


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------

@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# ---------------------------------------------------------------------------
# products
# ---------------------------------------------------------------------------

@click.group('products')
def products_group():
    """Product catalog management."""


@products_group.command('create')
@click.option('--name', required=True, help='Product name')
@click.option('--price', required=True, help='Unit price, e.g. 5.00')
@click.option('--stock', type=int, default=0, show_default=True, help='Initial stock')
@click.option('--description', help='Optional description')
@with_appcontext
@reports_domain_errors
def create_product(name, price, stock, description):
    """Create a product."""
    product = products_service.create_product(
        name=name,
        price_cents=_to_cents(price),
        stock=stock,
        description=description,
    )
    click.echo(f"PASS Created product {product.id}: {product.name}")


@products_group.command('list')
@click.option('--active/--inactive', default=None, help='Filter by active flag')
@with_appcontext
def list_products(active):
    """List products."""
    products = products_service.list_products(active=active)
    if not products:
        click.echo("No products found")
        return
    for p in products:
        _echo_product(p)


@products_group.command('search')
@click.argument('term')
@with_appcontext
def search_products(term):
    """Search products by name or description."""
    for p in products_service.search_products(term):
        _echo_product(p)


@products_group.command('update')
@click.argument('product_id', type=int)
@click.option('--name', help='New name')
@click.option('--price', help='New unit price, e.g. 5.00')
@click.option('--description', help='New description')
@with_appcontext
@reports_domain_errors
def update_product(product_id, name, price, description):
    """Update product fields (stock has its own command)."""
    patch = {}
    if name is not None:
        patch["name"] = name
    if price is not None:
        patch["price_cents"] = _to_cents(price)
    if description is not None:
        patch["description"] = description
    if not patch:
        raise InvalidInputError("Nothing to update")
    product = products_service.update_product(product_id, patch)
    _echo_product(product)


@products_group.command('set-active')
@click.argument('product_id', type=int)
@click.option('--yes/--no', 'is_active', default=True, help='Activate or deactivate')
@with_appcontext
@reports_domain_errors
def set_product_active(product_id, is_active):
    """Activate or deactivate a product."""
    product = products_service.update_product(product_id, {"is_active": is_active})
    _echo_product(product)


@products_group.command('adjust-stock')
@click.argument('product_id', type=int)
@click.argument('delta', type=int)
@with_appcontext
@reports_domain_errors
def adjust_stock(product_id, delta):
    """Add DELTA (negative to remove) to a product's stock."""
    product = products_service.update_product_stock(product_id, delta)
    click.echo(f"PASS Stock for product {product.id} is now {product.stock}")


@products_group.command('delete')
@click.argument('product_id', type=int)
@with_appcontext
@reports_domain_errors
def delete_product(product_id):
    """Delete a product that no sale references."""
    products_service.delete_product(product_id)
    click.echo(f"PASS Deleted product {product_id}")


# ---------------------------------------------------------------------------
# payment-methods
# ---------------------------------------------------------------------------

@click.group('payment-methods')
def payment_methods_group():
    """Payment method registry management."""


@payment_methods_group.command('create')
@click.option('--name', required=True, help='Display name')
@click.option('--type', 'method_type', type=click.Choice(PAYMENT_METHOD_TYPES, case_sensitive=False), default='CASH', show_default=True)
@with_appcontext
@reports_domain_errors
def create_payment_method(name, method_type):
    """Create a payment method."""
    method = payment_methods_service.create_payment_method(name=name, method_type=method_type)
    click.echo(f"PASS Created payment method {method.id}: {method.name} ({method.type})")


@payment_methods_group.command('list')
@click.option('--active/--inactive', default=None, help='Filter by active flag')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a table')
@with_appcontext
def list_payment_methods(active, as_json):
    """List payment methods."""
    methods = payment_methods_service.list_payment_methods(active=active)
    if as_json:
        _echo_json([m.to_dict() for m in methods])
        return
    if not methods:
        click.echo("No payment methods found")
        return
    for m in methods:
        state = "active" if m.is_active else "inactive"
        click.echo(f"{m.id:>5}  {m.name:<20} {m.type:<10} {state}")


@payment_methods_group.command('set-active')
@click.argument('payment_method_id', type=int)
@click.option('--yes/--no', 'is_active', default=True, help='Activate or deactivate')
@with_appcontext
@reports_domain_errors
def set_payment_method_active(payment_method_id, is_active):
    """Activate or deactivate a payment method."""
    method = payment_methods_service.update_payment_method(payment_method_id, {"is_active": is_active})
    click.echo(f"PASS Payment method {method.id} is now {'active' if method.is_active else 'inactive'}")


@payment_methods_group.command('delete')
@click.argument('payment_method_id', type=int)
@with_appcontext
@reports_domain_errors
def delete_payment_method(payment_method_id):
    """Delete a payment method that no sale references."""
    payment_methods_service.delete_payment_method(payment_method_id)
    click.echo(f"PASS Deleted payment method {payment_method_id}")


# ---------------------------------------------------------------------------
# sales
# ---------------------------------------------------------------------------

@click.group('sales')
def sales_group():
    """Sale creation, voiding, and lookup."""


@sales_group.command('create')
@click.option('--user-id', type=int, required=True, help='Acting user ID')
@click.option('--payment-method-id', type=int, required=True, help='Payment method ID')
@click.option('--line', 'raw_lines', multiple=True, required=True,
              help='PRODUCT_ID:QTY[:UNIT_PRICE[:DISCOUNT]] (repeatable)')
@click.option('--sale-date', help='ISO-8601 sale timestamp (defaults to now)')
@with_appcontext
@reports_domain_errors
def create_sale(user_id, payment_method_id, raw_lines, sale_date):
    """Create and complete a sale."""
    lines = [_parse_line(raw) for raw in raw_lines]
    sale = sales_service.create_sale(
        user_id=user_id,
        payment_method_id=payment_method_id,
        lines=lines,
        sale_date=sale_date,
    )
    click.echo("PASS Sale completed")
    _echo_sale(sale, with_details=True)


@sales_group.command('void')
@click.argument('sale_id', type=int)
@click.option('--user-id', type=int, required=True, help='Acting user ID')
@click.option('--reason', help='Why the sale is voided')
@with_appcontext
@reports_domain_errors
def void_sale(sale_id, user_id, reason):
    """Void a completed sale and restore its stock."""
    void = sales_service.void_sale(sale_id, user_id, reason=reason)
    click.echo(f"PASS Sale {sale_id} voided")
    _echo_sale(void, with_details=True)


@sales_group.command('show')
@click.argument('sale_id', type=int)
@click.option('--json', 'as_json', is_flag=True, help='Print JSON including line items')
@with_appcontext
@reports_domain_errors
def show_sale(sale_id, as_json):
    """Show a sale with its line items."""
    sale = sales_service.get_sale(sale_id)
    if as_json:
        _echo_json(sale.to_dict(include_details=True))
        return
    _echo_sale(sale, with_details=True)


@sales_group.command('list')
@click.option('--start', help='Inclusive start date (ISO-8601)')
@click.option('--end', help='Inclusive end date (ISO-8601)')
@click.option('--user-id', type=int, help='Only sales by this user')
@click.option('--json', 'as_json', is_flag=True, help='Print JSON headers')
@with_appcontext
def list_sales(start, end, user_id, as_json):
    """List sales, newest first."""
    sales = sales_service.list_sales(
        start=_parse_date_option(start),
        end=_parse_date_option(end, end_of_day=True),
        user_id=user_id,
    )
    if as_json:
        _echo_json([sale.to_dict() for sale in sales])
        return
    if not sales:
        click.echo("No sales found")
        return
    for sale in sales:
        _echo_sale(sale)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(payment_methods_group)
    app.cli.add_command(sales_group)
