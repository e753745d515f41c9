import json
from marketplace.realtime import ConversationRegistry
from marketplace.services import notification_service, quote_service
from marketplace.services.catalog_service import ProductItem
from marketplace.models import Notification
from factories import FakeHandle, open_conversation, sent_quote, variants_of


def test_broadcast_skips_excluded_user():
    registry = ConversationRegistry()
    buyer_handle = FakeHandle(user_id=1)
    seller_handle = FakeHandle(user_id=2)
    registry.join(10, buyer_handle)
    registry.join(10, seller_handle)
    registry.join(11, FakeHandle(user_id=3))

    delivered = registry.broadcast(
        10, {'type': 'quote_sent'}, exclude_user_id=2)

    assert delivered == 1
    assert json.loads(buyer_handle.sent[0]) == {'type': 'quote_sent'}
    assert seller_handle.sent == []


def test_failed_handle_is_dropped():
    registry = ConversationRegistry()
    good = FakeHandle(user_id=1)
    bad = FakeHandle(user_id=2, fail=True)
    registry.join(5, good)
    registry.join(5, bad)

    assert registry.broadcast(5, 'ping') == 1
    assert registry.connections(5) == {good}


def test_leave_everywhere():
    registry = ConversationRegistry()
    handle = FakeHandle(user_id=1)
    registry.join(1, handle)
    registry.join(2, handle)

    registry.leave(handle)

    assert registry.connections(1) == set()
    assert registry.connections(2) == set()
    assert registry.broadcast(1, 'ping') == 0


def test_quote_notification_reaches_registry(
        registry, buyer, seller, quote_product):
    item = ProductItem(quote_product.id, variants_of(quote_product)[0].id)
    conversation = open_conversation(buyer, seller, item)
    buyer_handle = FakeHandle(user_id=buyer.id)
    seller_handle = FakeHandle(user_id=seller.id)
    registry.join(conversation.id, buyer_handle)
    registry.join(conversation.id, seller_handle)

    quote = sent_quote(conversation, seller, item)
    notification = notification_service.notify_quote_sent(quote)

    event = json.loads(buyer_handle.sent[0])
    assert event['type'] == 'quote_sent'
    assert event['conversation_id'] == conversation.id
    assert event['data']['quote_id'] == quote.id
    assert seller_handle.sent == []

    assert notification.user_id == buyer.id
    assert notification.get_metadata() == {'quote_id': quote.id}
    assert '$45.00' in notification.message

    quote_service.accept_quote(quote.id, buyer.id)
    notification_service.notify_quote_accepted(quote)
    assert Notification.query.filter_by(
        user_id=seller.id, type='quote_accepted').count() == 1
