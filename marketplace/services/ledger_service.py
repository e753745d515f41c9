from datetime import datetime
from marketplace.extensions import db
from marketplace.errors import NotFound, InvalidState
from marketplace.models import (
    Order,
    OrderStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
)
from marketplace.services.money import (
    ZERO,
    calculate_commission,
    calculate_commission_reversal,
    to_decimal,
)
import logging

logger = logging.getLogger(__name__)

RELEASABLE_ORDER_STATUSES = (OrderStatus.SHIPPED, OrderStatus.DELIVERED)


def seller_commission_rate(seller_id):
    seller = db.session.get(User, seller_id)
    if not seller or seller.commission_rate is None:
        return ZERO
    return to_decimal(seller.commission_rate)


def _new_entry(entry_type, amount, rate, buyer_id, seller_id, description,
               order_id=None, booking_id=None,
               status=TransactionStatus.PENDING):
    commission, payout = calculate_commission(amount, rate)
    entry = Transaction(
        type=entry_type,
        status=status,
        amount=to_decimal(amount),
        commission_rate=to_decimal(rate),
        commission_amount=commission,
        seller_payout=payout,
        buyer_id=buyer_id,
        seller_id=seller_id,
        order_id=order_id,
        booking_id=booking_id,
        description=description,
    )
    db.session.add(entry)
    return entry


def create_order_transaction(order):
    """Pending entry for the product amount; shipping is not commissioned."""
    entry = _new_entry(
        TransactionType.ORDER,
        order.total_amount,
        seller_commission_rate(order.seller_id),
        order.buyer_id,
        order.seller_id,
        f'Order #{order.id}',
        order_id=order.id,
    )
    db.session.flush()
    return entry


def create_booking_transaction(booking):
    entry = _new_entry(
        TransactionType.BOOKING,
        booking.amount,
        seller_commission_rate(booking.seller_id),
        booking.buyer_id,
        booking.seller_id,
        f'Booking #{booking.id}',
        booking_id=booking.id,
    )
    db.session.flush()
    return entry


def hold_in_escrow(order_id=None, booking_id=None):
    """Move a paid source's pending entries into escrow (caller commits)."""
    query = Transaction.query.filter(
        Transaction.status == TransactionStatus.PENDING)
    if order_id is not None:
        query = query.filter(Transaction.order_id == order_id)
    else:
        query = query.filter(Transaction.booking_id == booking_id)
    entries = query.all()
    for entry in entries:
        entry.status = TransactionStatus.ESCROW
    return entries


def release_transaction(transaction_id):
    entry = db.session.get(Transaction, transaction_id)
    if not entry:
        raise NotFound('Transaction not found')
    if entry.status != TransactionStatus.ESCROW:
        logger.warning(
            "Refused to release transaction %s in status %s",
            entry.id,
            entry.status.value,
        )
        raise InvalidState(
            f'Cannot release transaction with status {entry.status.value}')

    entry.status = TransactionStatus.RELEASED
    entry.released_at = datetime.utcnow()
    db.session.commit()
    logger.info(
        "Released transaction %s: payout %s to seller %s",
        entry.id,
        entry.seller_payout,
        entry.seller_id,
    )
    return entry


def release_order_payments(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound('Order not found')
    if order.status not in RELEASABLE_ORDER_STATUSES:
        raise InvalidState(
            'Payments can only be released for shipped or delivered orders')

    entries = order.transactions.filter(
        Transaction.status == TransactionStatus.ESCROW).all()
    if not entries:
        raise InvalidState('No escrow transactions to release for this order')

    now = datetime.utcnow()
    for entry in entries:
        entry.status = TransactionStatus.RELEASED
        entry.released_at = now
    db.session.commit()
    logger.info(
        "Released %s escrow transaction(s) for order %s",
        len(entries),
        order.id,
    )
    return entries


def record_refund(amount, buyer_id, seller_id, description,
                  order_id=None, booking_id=None):
    """Negative buyer-refund entry; carries no commission."""
    entry = Transaction(
        type=(
            TransactionType.ORDER if order_id is not None
            else TransactionType.BOOKING),
        status=TransactionStatus.REFUNDED,
        amount=-to_decimal(amount),
        commission_rate=ZERO,
        commission_amount=ZERO,
        seller_payout=ZERO,
        buyer_id=buyer_id,
        seller_id=seller_id,
        order_id=order_id,
        booking_id=booking_id,
        description=description,
    )
    db.session.add(entry)
    return entry


def record_commission_reversal(base_amount, rate, buyer_id, seller_id,
                               description, order_id=None, booking_id=None):
    """Negative entry crediting commission back; None when rate is zero."""
    rate = to_decimal(rate)
    if rate <= ZERO:
        return None
    reversal = calculate_commission_reversal(base_amount, rate)
    entry = Transaction(
        type=(
            TransactionType.ORDER if order_id is not None
            else TransactionType.BOOKING),
        status=TransactionStatus.REFUNDED,
        amount=-reversal,
        commission_rate=rate,
        commission_amount=ZERO,
        seller_payout=-reversal,
        buyer_id=buyer_id,
        seller_id=seller_id,
        order_id=order_id,
        booking_id=booking_id,
        description=description,
    )
    db.session.add(entry)
    return entry


def mark_refunded(order_id=None, booking_id=None):
    query = Transaction.query
    if order_id is not None:
        query = query.filter(Transaction.order_id == order_id)
    else:
        query = query.filter(Transaction.booking_id == booking_id)
    entries = query.all()
    for entry in entries:
        entry.status = TransactionStatus.REFUNDED
    return entries


def list_transactions(order_id=None, booking_id=None, seller_id=None):
    query = Transaction.query
    if order_id is not None:
        query = query.filter(Transaction.order_id == order_id)
    if booking_id is not None:
        query = query.filter(Transaction.booking_id == booking_id)
    if seller_id is not None:
        query = query.filter(Transaction.seller_id == seller_id)
    return query.order_by(Transaction.created_at, Transaction.id).all()
