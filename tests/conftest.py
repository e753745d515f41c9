from decimal import Decimal
import pytest
from marketplace import create_app
from marketplace.config import Config
from marketplace.extensions import db
from marketplace.models import UserRole
from marketplace.realtime import ConversationRegistry
from marketplace.services.catalog_service import ProductItem
from factories import (
    make_product,
    make_service,
    make_user,
    open_conversation,
)


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_FILE = ''
    MAJOR_EVENTS_LOG_FILE = ''
    QUOTE_DEFAULT_EXPIRY_DAYS = 7
    MAX_RETURN_ATTEMPTS = 3
    DEFAULT_SHIPPING_COST = Decimal('0.00')


@pytest.fixture
def registry():
    return ConversationRegistry()


@pytest.fixture
def app(registry):
    app = create_app(TestingConfig, registry=registry)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def buyer(app):
    return make_user('buyer@example.com', UserRole.BUYER)


@pytest.fixture
def other_buyer(app):
    return make_user('buyer2@example.com', UserRole.BUYER)


@pytest.fixture
def seller(app):
    return make_user('seller@example.com', UserRole.SELLER)


@pytest.fixture
def other_seller(app):
    return make_user('seller2@example.com', UserRole.SELLER)


@pytest.fixture
def admin(app):
    return make_user('admin@example.com', UserRole.ADMIN)


@pytest.fixture
def design_product(seller):
    """Design required, no quote."""
    return make_product(seller)


@pytest.fixture
def quote_product(seller):
    """Quote required, no design."""
    return make_product(
        seller, requires_quote=True, requires_design=False,
        prices=('45.00',), title='Engraved Sign')


@pytest.fixture
def gated_product(seller):
    """Both quote and design required."""
    return make_product(
        seller, requires_quote=True, requires_design=True,
        prices=('80.00', '95.00'), title='Custom Banner')


@pytest.fixture
def plain_product(seller):
    return make_product(
        seller, requires_design=False, prices=('12.50',), title='Tote Bag')


@pytest.fixture
def service(seller):
    return make_service(seller)


@pytest.fixture
def conversation(buyer, seller, design_product):
    return open_conversation(buyer, seller, ProductItem(design_product.id))
