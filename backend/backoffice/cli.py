# Overview: Flask CLI command groups for bootstrap, outbox draining and mirror repair.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create tables (dev only; use `flask db upgrade` otherwise), default invoice settings and company row.
# - python -m flask system seed-demo
#   Add a demo inventory item with POS and online mirrors, a customer with an address, and a coupon.
#
# Side-effect outbox:
# - python -m flask outbox drain [--limit 100]
#   Run due pending tasks (fan-out, ledger, analytics, notifications).
# - python -m flask outbox list [--status pending|done|dead] [--limit 20]
#   Show outbox tasks.
#
# Inventory:
# - python -m flask inventory resync-mirrors [--item-id 5]
#   Copy canonical stock to every POS/online mirror.
# - python -m flask inventory audit
#   Report items whose mirrors or audit trail disagree with the canonical quantity.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    CartItem,
    CompanySettings,
    Coupon,
    Customer,
    CustomerAddress,
    InventoryItem,
    OnlineProduct,
    OnlineProductVariant,
    OutboxTask,
    PosProduct,
)
from .services import inventory_report_service, invoice_service, outbox_service, stock_service
from .services.stock_service import AdjustmentContext, METHOD_PURCHASE_RECEIPT
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@click.option('--seller-state', default=None, help='Seller state used for the GST split')
@click.option('--company', 'company_name', default='My Store', help='Company name')
@with_appcontext
def init_db(seller_state, company_name):
    """Create tables, default invoice settings and the company row (idempotent)."""
    db.create_all()
    click.echo("PASS Tables created")

    settings = invoice_service.get_invoice_settings()
    click.echo(f"PASS Invoice settings: {settings.invoice_format} (next {settings.current_sequence_no})")

    company = db.session.query(CompanySettings).first()
    if not company:
        company = CompanySettings(company_name=company_name, state=seller_state)
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created company settings: {company.company_name} ({company.state or 'no state'})")
    elif seller_state and company.state != seller_state:
        company.state = seller_state
        db.session.commit()
        click.echo(f"PASS Seller state set to {seller_state}")
    else:
        click.echo(f"PASS Using existing company settings: {company.company_name}")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Demo catalog: one item mirrored to POS and online, a customer and a coupon."""
    if db.session.query(InventoryItem).filter_by(item_code="DEMO-TEE").first():
        click.echo("WARN  Demo data already present, skipping")
        return

    item = InventoryItem(
        item_code="DEMO-TEE",
        item_name="Cotton T-Shirt",
        category="Apparel",
        purchase_price=250,
        gst_rate=18,
        quantity=0,
        low_stock_threshold=5,
    )
    db.session.add(item)
    db.session.flush()

    db.session.add(PosProduct(
        item_id=item.id,
        item_code=item.item_code,
        sku="POS-DEMO-TEE",
        product_name=item.item_name,
        selling_price=590,
        gst_rate=18,
    ))
    product = OnlineProduct(name=item.item_name, brand="Demo", gst_rate=18, shipping_charge=50)
    db.session.add(product)
    db.session.flush()
    db.session.add(OnlineProductVariant(
        product_id=product.id,
        position=0,
        variant_name="M",
        sku="ONL-DEMO-TEE-M",
        selling_price=590,
        mrp=699,
        inventory_item_id=item.id,
        low_stock_alert=3,
    ))

    customer = Customer(user_id="demo-user", name="Demo Buyer", email="buyer@example.com", state="Karnataka")
    db.session.add(customer)
    db.session.flush()
    db.session.add(CustomerAddress(
        customer_id=customer.id,
        name="Demo Buyer",
        address_line1="1 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
        is_default=True,
    ))
    db.session.add(CartItem(customer_id=customer.id, product_id=product.id, variant_index=0, quantity=1))
    db.session.add(Coupon(
        code="WELCOME10",
        discount_type="percentage",
        discount_value=10,
        max_discount_amount=50,
        min_order_value=500,
        valid_from=utcnow() - timedelta(days=1),
        valid_until=utcnow() + timedelta(days=30),
    ))
    db.session.commit()

    result = stock_service.apply_delta(
        item.id, 20, AdjustmentContext(method=METHOD_PURCHASE_RECEIPT, actor="seed", notes="Opening stock"),
    )
    click.echo(f"PASS Seeded {item.item_code} with {result.new_quantity} units, {len(result.mirrors)} mirrors synced")


@click.group('outbox')
def outbox_group():
    """Side-effect outbox commands."""


@outbox_group.command('drain')
@click.option('--limit', default=100, type=int, help='Maximum tasks to run')
@with_appcontext
def drain_outbox(limit):
    """Run due pending side-effect tasks."""
    summary = outbox_service.dispatch_pending(limit=limit)
    click.echo(
        f"Attempted {summary.attempted}: {summary.succeeded} succeeded, "
        f"{summary.failed} failed ({summary.dead} dead)"
    )


@outbox_group.command('list')
@click.option('--status', type=click.Choice(['pending', 'done', 'dead']), default=None)
@click.option('--limit', default=20, type=int)
@with_appcontext
def list_outbox(status, limit):
    """List outbox tasks, newest first."""
    query = db.session.query(OutboxTask)
    if status:
        query = query.filter_by(status=status)
    tasks = query.order_by(OutboxTask.id.desc()).limit(limit).all()
    if not tasks:
        click.echo("No tasks found.")
        return
    for task in tasks:
        click.echo(
            f"#{task.id:<6} {task.task_type:<26} {task.status:<8} attempts={task.attempts} "
            f"order={task.order_id or '-'} {task.last_error or ''}"
        )


@click.group('inventory')
def inventory_group():
    """Inventory repair and audit commands."""


@inventory_group.command('resync-mirrors')
@click.option('--item-id', type=int, default=None, help='Only this inventory item')
@with_appcontext
def resync_mirrors(item_id):
    """Copy canonical stock levels to POS and online mirrors."""
    summary = stock_service.resync_all_mirrors([item_id] if item_id else None)
    click.echo(
        f"Resynced {summary['items']} items: {summary['mirrors_updated']} mirrors updated, "
        f"{len(summary['failures'])} failures"
    )
    for failure in summary["failures"]:
        click.echo(f"FAIL {failure['mirror_type']} {failure['mirror_id']}: {failure['error']}")


@inventory_group.command('audit')
@with_appcontext
def audit_inventory():
    """Report mirror / audit-trail discrepancies."""
    findings = inventory_report_service.discrepancy_report()
    if not findings:
        click.echo("PASS No discrepancies found")
        return
    for finding in findings:
        click.echo(f"FAIL {finding['item_code']} ({finding['item_name']}): quantity {finding['quantity']}")
        for issue in finding["issues"]:
            click.echo(f"     {issue['type']}: expected {issue['expected']} actual {issue['actual']}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outbox_group)
    app.cli.add_command(inventory_group)
