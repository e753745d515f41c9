from flask import current_app
from marketplace.extensions import db, atomic
from marketplace.errors import (
    NotFound,
    Forbidden,
    InvalidState,
    ValidationFailed,
    PurchaseBlocked,
)
from marketplace.models import (
    Booking,
    BookingStatus,
    CartItem,
    Order,
    OrderStatus,
    Quote,
    QuoteStatus,
)
from marketplace.services import ledger_service
from marketplace.services.catalog_service import (
    ServiceItem,
    load_item,
    load_option,
)
from marketplace.services.money import to_decimal, ZERO
from marketplace.services.purchase_service import (
    validate_purchase_requirements,
)
import logging

logger = logging.getLogger(__name__)

# Seller-driven fulfilment steps
ORDER_TRANSITIONS = {
    OrderStatus.PAID: (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    OrderStatus.PROCESSING: (OrderStatus.SHIPPED,),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
}

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING_CONFIRMATION: (BookingStatus.CONFIRMED,),
    BookingStatus.PAID: (BookingStatus.ONGOING,),
    BookingStatus.ONGOING: (BookingStatus.COMPLETED,),
}

BOOKING_PAYABLE_STATUSES = (
    BookingStatus.PENDING_CONFIRMATION,
    BookingStatus.CONFIRMED,
    BookingStatus.PENDING_PAYMENT,
)


def _usable_quote(quote_id, buyer_id):
    quote = db.session.get(Quote, quote_id)
    if not quote or quote.buyer_id != buyer_id:
        raise ValidationFailed('Quote on a cart line is not available')
    if quote.status != QuoteStatus.ACCEPTED:
        raise ValidationFailed(
            f'Quote #{quote.id} is no longer accepted '
            f'({quote.status.value})')
    return quote


def checkout_cart(buyer_id, shipping_address, shipping_cost=None):
    """Turn every cart line into an order with a pending ledger entry."""
    if not shipping_address:
        raise ValidationFailed('Shipping address cannot be empty')
    lines = CartItem.query.filter_by(
        buyer_id=buyer_id
    ).order_by(CartItem.id).all()
    if not lines:
        raise ValidationFailed('Cart is empty')

    if shipping_cost is None:
        shipping_cost = current_app.config.get(
            'DEFAULT_SHIPPING_COST', ZERO)
    shipping_cost = to_decimal(shipping_cost)
    if shipping_cost < ZERO:
        raise ValidationFailed('Shipping cost cannot be negative')

    for line in lines:
        if line.quote_id is not None:
            _usable_quote(line.quote_id, buyer_id)

    orders = []
    with atomic():
        for line in lines:
            variant = line.variant
            product = variant.product
            unit_price = to_decimal(line.effective_unit_price)
            order = Order(
                buyer_id=buyer_id,
                seller_id=product.seller_id,
                product_id=product.id,
                product_variant_id=variant.id,
                quote_id=line.quote_id,
                design_approval_id=line.design_approval_id,
                quantity=line.quantity,
                unit_price=unit_price,
                total_amount=to_decimal(unit_price * line.quantity),
                shipping_cost=shipping_cost,
                status=OrderStatus.PENDING_PAYMENT,
                shipping_address=shipping_address,
            )
            db.session.add(order)
            db.session.flush()
            ledger_service.create_order_transaction(order)
            orders.append(order)
        CartItem.query.filter_by(buyer_id=buyer_id).delete()

    logger.info(
        "Checkout for buyer %s created orders %s",
        buyer_id,
        [o.id for o in orders],
    )
    return orders


def create_booking(
        buyer_id,
        item,
        quote_id=None,
        design_approval_id=None,
        scheduled_date=None,
        notes=''):
    if not isinstance(item, ServiceItem):
        raise ValidationFailed('Bookings can only be made for services')
    service = load_item(item)
    if not service or not service.is_active:
        raise NotFound('Service not found')
    package = load_option(item)

    quote = None
    if quote_id is not None:
        quote = _usable_quote(quote_id, buyer_id)
        if quote.service_id != service.id:
            raise ValidationFailed('Quote does not match this service')
        if quote.design_approval_id is not None:
            design_approval_id = quote.design_approval_id

    validation = validate_purchase_requirements(
        item, buyer_id, skip_quote=quote is not None)
    if not validation.can_purchase:
        raise PurchaseBlocked(validation)

    if quote is not None and quote.quoted_price is not None:
        amount = to_decimal(quote.quoted_price)
    elif package is not None:
        amount = to_decimal(package.price)
    else:
        raise ValidationFailed('Select a package or use an accepted quote')

    with atomic():
        booking = Booking(
            buyer_id=buyer_id,
            seller_id=service.seller_id,
            service_id=service.id,
            service_package_id=package.id if package else None,
            quote_id=quote.id if quote else None,
            design_approval_id=design_approval_id,
            amount=amount,
            status=BookingStatus.PENDING_PAYMENT,
            scheduled_date=scheduled_date,
            notes=notes,
        )
        db.session.add(booking)
        db.session.flush()
        ledger_service.create_booking_transaction(booking)

    logger.info("Booking %s created for buyer %s", booking.id, buyer_id)
    return booking


def confirm_order_payment(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound('Order not found')
    if order.status != OrderStatus.PENDING_PAYMENT:
        raise InvalidState(
            f'Cannot confirm payment for order with status '
            f'{order.status.value}')
    with atomic():
        order.status = OrderStatus.PAID
        ledger_service.hold_in_escrow(order_id=order.id)
    logger.info("Payment confirmed for order %s", order.id)
    return order


def confirm_booking_payment(booking_id):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound('Booking not found')
    if booking.status not in BOOKING_PAYABLE_STATUSES:
        raise InvalidState(
            f'Cannot confirm payment for booking with status '
            f'{booking.status.value}')
    with atomic():
        booking.status = BookingStatus.PAID
        ledger_service.hold_in_escrow(booking_id=booking.id)
    logger.info("Payment confirmed for booking %s", booking.id)
    return booking


def update_order_status(order_id, seller_id, status):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound('Order not found')
    if order.seller_id != seller_id:
        raise Forbidden('No permission to update this order')
    if status not in ORDER_TRANSITIONS.get(order.status, ()):
        raise InvalidState(
            f'Cannot move order from {order.status.value} to {status.value}')
    order.status = status
    db.session.commit()
    logger.info("Order %s moved to %s", order.id, status.value)
    return order


def update_booking_status(booking_id, seller_id, status):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound('Booking not found')
    if booking.seller_id != seller_id:
        raise Forbidden('No permission to update this booking')
    if status not in BOOKING_TRANSITIONS.get(booking.status, ()):
        raise InvalidState(
            f'Cannot move booking from {booking.status.value} '
            f'to {status.value}')
    booking.status = status
    db.session.commit()
    logger.info("Booking %s moved to %s", booking.id, status.value)
    return booking
