"""
Pytest fixtures for back office tests.

Provides the in-memory app, a per-test clean database, and small factories for
inventory, catalog mirrors, customers, carts and finance settings.
"""

from datetime import timedelta

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    CartItem,
    CompanySettings,
    Coupon,
    Customer,
    CustomerAddress,
    InventoryItem,
    InvoiceSettings,
    OnlineProduct,
    OnlineProductVariant,
    PosProduct,
)
from backoffice.services.stock_service import stock_status_for
from backoffice.time_utils import utcnow


SELLER_STATE = "Karnataka"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SELLER_REGION': '',
        'NOTIFICATION_WEBHOOK_URL': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def invoice_settings(db_session):
    """Active invoice settings: INV-{FY}-0001 onwards."""
    settings = InvoiceSettings(
        invoice_prefix="INV",
        sequence_length=4,
        invoice_format="{PREFIX}-{FY}-{SEQ}",
        current_sequence_no=1,
        auto_financial_year=True,
        financial_year_start_month=4,
        is_active=True,
    )
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture(scope='function')
def company(db_session):
    """Seller registered in Karnataka."""
    row = CompanySettings(company_name="Test Traders", gstin="29ABCDE1234F1Z5", state=SELLER_STATE)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for canonical inventory items."""
    counter = {"n": 0}

    def _make(quantity=10, *, gst_rate=18, low_stock_threshold=3, code=None, name=None):
        counter["n"] += 1
        item = InventoryItem(
            item_code=code or f"ITEM-{counter['n']:03d}",
            item_name=name or f"Item {counter['n']}",
            category="General",
            warehouse_name="Main",
            purchase_price=50,
            gst_rate=gst_rate,
            quantity=quantity,
            low_stock_threshold=low_stock_threshold,
            status=stock_status_for(quantity, low_stock_threshold),
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def make_pos_product(db_session):
    """Factory for POS mirrors of an inventory item."""

    def _make(item, *, selling_price="118.00", gst_rate=18, sku=None):
        product = PosProduct(
            item_id=item.id,
            item_code=item.item_code,
            sku=sku or f"POS-{item.item_code}",
            product_name=item.item_name,
            selling_price=selling_price,
            gst_rate=gst_rate,
            quantity=item.quantity,
            status=item.status,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_online_product(db_session):
    """Factory for an online product with one variant (position 0) linked to an item."""

    def _make(
        item,
        *,
        selling_price="590.00",
        gst_rate=18,
        shipping_charge="50.00",
        free_shipping=False,
        is_cod_available=True,
        low_stock_alert=None,
        name=None,
    ):
        product = OnlineProduct(
            name=name or item.item_name,
            brand="Acme",
            gst_rate=gst_rate,
            is_cod_available=is_cod_available,
            free_shipping=free_shipping,
            shipping_charge=shipping_charge,
        )
        db_session.add(product)
        db_session.flush()
        db_session.add(OnlineProductVariant(
            product_id=product.id,
            position=0,
            variant_name="Default",
            sku=f"ONL-{item.item_code}",
            selling_price=selling_price,
            inventory_item_id=item.id,
            stock_quantity=item.quantity,
            low_stock_alert=low_stock_alert,
        ))
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    """Online buyer with a Karnataka delivery address and a complete profile."""
    row = Customer(
        user_id="user-1",
        name="Asha Rao",
        email="asha@example.com",
        phone="9000000001",
        address_line1="12 Residency Road",
        city="Bengaluru",
        state=SELLER_STATE,
        pincode="560025",
        country="India",
    )
    db_session.add(row)
    db_session.flush()
    db_session.add(CustomerAddress(
        customer_id=row.id,
        name="Asha Rao",
        phone="9000000001",
        address_line1="12 Residency Road",
        city="Bengaluru",
        state=SELLER_STATE,
        pincode="560025",
        is_default=True,
    ))
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def address(db_session, customer):
    return db_session.query(CustomerAddress).filter_by(customer_id=customer.id).first()


@pytest.fixture(scope='function')
def add_to_cart(db_session):
    def _add(customer, product, quantity=1, variant_index=0):
        db_session.add(CartItem(
            customer_id=customer.id,
            product_id=product.id,
            variant_index=variant_index,
            quantity=quantity,
        ))
        db_session.commit()

    return _add


@pytest.fixture(scope='function')
def make_coupon(db_session):
    def _make(code="SAVE10", **overrides):
        now = utcnow()
        values = {
            "code": code,
            "discount_type": "percentage",
            "discount_value": 10,
            "max_discount_amount": 50,
            "min_order_value": 500,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "is_active": True,
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db_session.add(coupon)
        db_session.commit()
        return coupon

    return _make
