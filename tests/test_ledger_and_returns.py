from decimal import Decimal
import pytest
from marketplace.errors import (
    Conflict,
    Forbidden,
    InvalidState,
    NotFound,
    ValidationFailed,
)
from marketplace.models import (
    BookingStatus,
    OrderStatus,
    ReturnRequestStatus,
    TransactionStatus,
    UserRole,
)
from marketplace.services import (
    cart_service,
    ledger_service,
    order_service,
    returns_service,
)
from marketplace.services.catalog_service import ServiceItem
from factories import (
    make_product,
    make_service,
    make_user,
    packages_of,
    variants_of,
)


@pytest.fixture
def seller15(app):
    return make_user(
        'seller15@example.com', UserRole.SELLER,
        commission_rate=Decimal('15.00'))


def checkout_order(buyer, seller, price='100.00', shipping='20.00'):
    product = make_product(
        seller, requires_design=False, prices=(price,), title='Lamp')
    cart_service.add_variant_to_cart(buyer.id, variants_of(product)[0].id)
    orders = order_service.checkout_cart(
        buyer.id, '1 Main St', shipping_cost=shipping)
    assert len(orders) == 1
    return orders[0]


def delivered_order(buyer, seller, **kwargs):
    order = checkout_order(buyer, seller, **kwargs)
    order_service.confirm_order_payment(order.id)
    order_service.update_order_status(order.id, seller.id, OrderStatus.SHIPPED)
    order_service.update_order_status(
        order.id, seller.id, OrderStatus.DELIVERED)
    return order


def approved_return(buyer, order, amount):
    request_ = returns_service.create_return_request(
        buyer.id, 'defective', amount, order_id=order.id,
        description='Arrived cracked')
    returns_service.mark_under_review(request_.id, order.seller_id)
    return returns_service.apply_admin_resolution(
        request_.id, True, approved_refund_amount=amount,
        admin_notes='Photos confirm damage', admin_override=True)


def test_checkout_creates_pending_entries(buyer, seller15):
    order = checkout_order(buyer, seller15)

    assert order.total_amount == Decimal('100.00')
    assert order.shipping_cost == Decimal('20.00')
    assert order.grand_total == Decimal('120.00')
    assert order.status == OrderStatus.PENDING_PAYMENT
    assert cart_service.get_cart_items(buyer.id) == []

    entry, = ledger_service.list_transactions(order_id=order.id)
    assert entry.status == TransactionStatus.PENDING
    assert entry.amount == Decimal('100.00')
    assert entry.commission_rate == Decimal('15.00')
    assert entry.commission_amount == Decimal('15.00')
    assert entry.seller_payout == Decimal('85.00')


def test_checkout_needs_cart_and_address(buyer, seller15):
    with pytest.raises(ValidationFailed):
        order_service.checkout_cart(buyer.id, '1 Main St')
    with pytest.raises(ValidationFailed):
        order_service.checkout_cart(buyer.id, '')


def test_release_only_from_escrow(buyer, seller15):
    order = checkout_order(buyer, seller15)
    entry, = ledger_service.list_transactions(order_id=order.id)

    with pytest.raises(InvalidState):
        ledger_service.release_transaction(entry.id)

    order_service.confirm_order_payment(order.id)
    assert entry.status == TransactionStatus.ESCROW

    released = ledger_service.release_transaction(entry.id)
    assert released.status == TransactionStatus.RELEASED
    assert released.released_at is not None

    with pytest.raises(InvalidState):
        ledger_service.release_transaction(entry.id)
    with pytest.raises(NotFound):
        ledger_service.release_transaction(9999)


def test_release_order_payments_needs_shipment(buyer, seller15):
    order = checkout_order(buyer, seller15)
    order_service.confirm_order_payment(order.id)
    with pytest.raises(InvalidState):
        ledger_service.release_order_payments(order.id)

    order_service.update_order_status(
        order.id, seller15.id, OrderStatus.SHIPPED)
    entries = ledger_service.release_order_payments(order.id)
    assert [e.status for e in entries] == [TransactionStatus.RELEASED]


def test_order_status_transitions(buyer, seller, seller15):
    order = checkout_order(buyer, seller15)
    with pytest.raises(InvalidState):
        order_service.update_order_status(
            order.id, seller15.id, OrderStatus.SHIPPED)
    with pytest.raises(Forbidden):
        order_service.update_order_status(
            order.id, seller.id, OrderStatus.SHIPPED)


def test_full_order_refund_reverses_commission_on_product_amount(
        buyer, seller15, admin):
    order = delivered_order(buyer, seller15)
    request_ = approved_return(buyer, order, '120.00')

    refunded = returns_service.process_return_request_refund(request_.id)

    assert refunded.status == ReturnRequestStatus.REFUNDED
    assert refunded.refunded_at is not None
    assert refunded.commission_reversed_amount == Decimal('15.00')
    assert order.status == OrderStatus.CANCELLED

    entries = ledger_service.list_transactions(order_id=order.id)
    assert len(entries) == 3
    assert all(e.status == TransactionStatus.REFUNDED for e in entries)
    original, refund, reversal = entries
    assert original.amount == Decimal('100.00')
    assert refund.amount == Decimal('-120.00')
    assert refund.commission_amount == Decimal('0.00')
    assert reversal.amount == Decimal('-15.00')
    assert reversal.seller_payout == Decimal('-15.00')


def test_partial_order_refund_still_reverses_on_product_amount(
        buyer, seller15):
    order = delivered_order(buyer, seller15)
    request_ = approved_return(buyer, order, '30.00')

    refunded = returns_service.process_return_request_refund(request_.id)

    assert refunded.commission_reversed_amount == Decimal('15.00')
    amounts = [e.amount for e in
               ledger_service.list_transactions(order_id=order.id)]
    assert amounts == [
        Decimal('100.00'), Decimal('-30.00'), Decimal('-15.00')]


def test_booking_refund_reverses_on_refund_amount(buyer, seller):
    service = make_service(seller, requires_quote=False)
    package = packages_of(service)[0]
    booking = order_service.create_booking(
        buyer.id, ServiceItem(service.id, package.id))
    assert booking.amount == Decimal('150.00')
    order_service.confirm_booking_payment(booking.id)
    assert booking.status == BookingStatus.PAID

    request_ = returns_service.create_return_request(
        buyer.id, 'not_as_described', '100.00', booking_id=booking.id)
    returns_service.mark_under_review(request_.id, seller.id)
    returns_service.apply_admin_resolution(
        request_.id, True, approved_refund_amount='100.00')
    refunded = returns_service.process_return_request_refund(request_.id)

    assert refunded.commission_reversed_amount == Decimal('20.00')
    assert booking.status == BookingStatus.CANCELLED
    amounts = [e.amount for e in
               ledger_service.list_transactions(booking_id=booking.id)]
    assert amounts == [
        Decimal('150.00'), Decimal('-100.00'), Decimal('-20.00')]


def test_zero_commission_seller_gets_no_reversal(buyer):
    free_seller = make_user(
        'free@example.com', UserRole.SELLER, commission_rate=Decimal('0'))
    order = delivered_order(buyer, free_seller)
    request_ = approved_return(buyer, order, '50.00')

    refunded = returns_service.process_return_request_refund(request_.id)

    assert refunded.commission_reversed_amount is None
    assert len(ledger_service.list_transactions(order_id=order.id)) == 2


def test_return_needs_delivered_order_and_valid_amount(buyer, seller15):
    order = checkout_order(buyer, seller15)
    with pytest.raises(InvalidState):
        returns_service.create_return_request(
            buyer.id, 'defective', '10.00', order_id=order.id)

    order_service.confirm_order_payment(order.id)
    order_service.update_order_status(
        order.id, seller15.id, OrderStatus.SHIPPED)
    order_service.update_order_status(
        order.id, seller15.id, OrderStatus.DELIVERED)

    with pytest.raises(ValidationFailed):
        returns_service.create_return_request(
            buyer.id, 'defective', '120.01', order_id=order.id)
    with pytest.raises(ValidationFailed):
        returns_service.create_return_request(
            buyer.id, 'no_reason', '10.00', order_id=order.id)
    with pytest.raises(ValidationFailed):
        returns_service.create_return_request(buyer.id, 'defective', '10.00')

    returns_service.create_return_request(
        buyer.id, 'defective', '10.00', order_id=order.id)
    with pytest.raises(InvalidState):
        returns_service.create_return_request(
            buyer.id, 'defective', '10.00', order_id=order.id)


def test_return_attempt_limit(buyer, seller15):
    order = delivered_order(buyer, seller15)
    for _ in range(3):
        request_ = returns_service.create_return_request(
            buyer.id, 'changed_mind', '10.00', order_id=order.id)
        returns_service.cancel_return_request(request_.id, buyer.id)
    assert order.return_attempt_count == 3

    with pytest.raises(InvalidState):
        returns_service.create_return_request(
            buyer.id, 'changed_mind', '10.00', order_id=order.id)


def test_only_own_orders_can_be_returned(buyer, other_buyer, seller15):
    order = delivered_order(buyer, seller15)
    with pytest.raises(Forbidden):
        returns_service.create_return_request(
            other_buyer.id, 'defective', '10.00', order_id=order.id)


def test_seller_response_flow(buyer, seller15, seller):
    order = delivered_order(buyer, seller15)
    request_ = returns_service.create_return_request(
        buyer.id, 'damaged', '60.00', order_id=order.id)

    with pytest.raises(Forbidden):
        returns_service.mark_under_review(request_.id, seller.id)
    returns_service.mark_under_review(request_.id, seller15.id)
    assert request_.status == ReturnRequestStatus.UNDER_REVIEW

    with pytest.raises(ValidationFailed):
        returns_service.record_seller_response(
            request_.id, seller15.id, False, 'No.')
    returns_service.record_seller_response(
        request_.id, seller15.id, False, 'Item was fine when shipped')
    assert request_.status == ReturnRequestStatus.SELLER_REJECTED

    with pytest.raises(InvalidState):
        returns_service.cancel_return_request(request_.id, buyer.id)

    resolved = returns_service.apply_admin_resolution(
        request_.id, True, approved_refund_amount='60.00',
        admin_override=True)
    assert resolved.status == ReturnRequestStatus.ADMIN_APPROVED
    assert resolved.admin_override is True


def test_refund_and_complete_guards(buyer, seller15):
    order = delivered_order(buyer, seller15)
    request_ = returns_service.create_return_request(
        buyer.id, 'defective', '40.00', order_id=order.id)

    with pytest.raises(InvalidState):
        returns_service.process_return_request_refund(request_.id)
    with pytest.raises(InvalidState):
        returns_service.mark_completed(request_.id)
    with pytest.raises(InvalidState):
        returns_service.apply_admin_resolution(request_.id, False)

    returns_service.mark_under_review(request_.id, seller15.id)
    with pytest.raises(ValidationFailed):
        returns_service.apply_admin_resolution(request_.id, True)
    with pytest.raises(ValidationFailed):
        returns_service.apply_admin_resolution(
            request_.id, True, approved_refund_amount='41.00')

    returns_service.apply_admin_resolution(
        request_.id, True, approved_refund_amount='40.00')
    returns_service.process_return_request_refund(request_.id)
    with pytest.raises(InvalidState):
        returns_service.process_return_request_refund(request_.id)

    completed = returns_service.mark_completed(request_.id)
    assert completed.status == ReturnRequestStatus.COMPLETED
    assert completed.completed_at is not None


def test_refund_lost_race_writes_nothing(buyer, seller15, monkeypatch):
    order = delivered_order(buyer, seller15)
    request_ = approved_return(buyer, order, '50.00')
    monkeypatch.setattr(
        returns_service, '_claim_for_refund', lambda *args: False)

    with pytest.raises(Conflict):
        returns_service.process_return_request_refund(request_.id)

    assert request_.status == ReturnRequestStatus.ADMIN_APPROVED
    assert request_.refunded_at is None
    assert order.status == OrderStatus.DELIVERED
    entry, = ledger_service.list_transactions(order_id=order.id)
    assert entry.status == TransactionStatus.ESCROW

    monkeypatch.undo()
    returns_service.process_return_request_refund(request_.id)
    with pytest.raises(InvalidState):
        returns_service.process_return_request_refund(request_.id)
    assert len(ledger_service.list_transactions(order_id=order.id)) == 3
