import threading
import pytest
from marketplace import create_app
from marketplace.errors import Conflict, InvalidState
from marketplace.extensions import db
from marketplace.models import CartItem, Quote, QuoteStatus, UserRole
from marketplace.services import quote_service
from marketplace.services.catalog_service import ProductItem
from conftest import TestingConfig
from factories import (
    make_product,
    make_user,
    open_conversation,
    sent_quote,
    variants_of,
)


@pytest.fixture
def file_app(tmp_path, registry):
    """App on a file database so each thread gets its own connection."""

    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{tmp_path / "race.db"}'

    app = create_app(FileConfig, registry=registry)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    db.engine.dispose()
    ctx.pop()


def test_concurrent_accepts_succeed_once(file_app, monkeypatch):
    buyer = make_user('buyer@example.com', UserRole.BUYER)
    seller = make_user('seller@example.com', UserRole.SELLER)
    product = make_product(
        seller, requires_quote=True, requires_design=False,
        prices=('45.00',), title='Engraved Sign')
    item = ProductItem(product.id, variants_of(product)[0].id)
    conversation = open_conversation(buyer, seller, item)
    quote_id = sent_quote(conversation, seller, item, quantity=2).id
    buyer_id = buyer.id

    # Both callers pass every check before either one claims the quote
    barrier = threading.Barrier(2, timeout=10)
    claim = quote_service._claim_for_acceptance

    def claim_after_barrier(*args):
        barrier.wait()
        return claim(*args)

    monkeypatch.setattr(
        quote_service, '_claim_for_acceptance', claim_after_barrier)

    results = []

    def accept():
        with file_app.app_context():
            try:
                quote_service.accept_quote(quote_id, buyer_id)
                results.append('accepted')
            except (Conflict, InvalidState) as e:
                results.append(e.code)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=accept) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(results) == ['accepted', 'conflict']

    db.session.expire_all()
    assert db.session.get(Quote, quote_id).status == QuoteStatus.ACCEPTED
    line, = CartItem.query.filter_by(buyer_id=buyer_id).all()
    assert line.quote_id == quote_id
    assert line.quantity == 2
