"""Return-request lifecycle and refund processing.

Lifecycle::

    requested -> under_review -> seller_approved | seller_rejected
              -> admin_approved | admin_rejected
    admin_approved -> refunded -> completed

Admins may resolve from under_review as well, overriding a silent seller.
Buyers may cancel while the request is still with the seller.
"""
from datetime import datetime
from flask import current_app
from sqlalchemy import update
from marketplace.extensions import db, atomic
from marketplace.errors import (
    Conflict,
    NotFound,
    Forbidden,
    InvalidState,
    ValidationFailed,
)
from marketplace.models import (
    Booking,
    BookingStatus,
    Order,
    OrderStatus,
    ReturnReason,
    ReturnRequest,
    ReturnRequestStatus,
    SellerReturnDecision,
    ACTIVE_RETURN_STATUSES,
)
from marketplace.services import ledger_service
from marketplace.services.money import to_decimal, ZERO
import logging

logger = logging.getLogger(__name__)

RETURNABLE_BOOKING_STATUSES = (
    BookingStatus.PAID,
    BookingStatus.ONGOING,
    BookingStatus.COMPLETED,
)
SELLER_RESPONDABLE_STATUSES = (
    ReturnRequestStatus.REQUESTED,
    ReturnRequestStatus.UNDER_REVIEW,
)
ADMIN_RESOLVABLE_STATUSES = (
    ReturnRequestStatus.UNDER_REVIEW,
    ReturnRequestStatus.SELLER_APPROVED,
    ReturnRequestStatus.SELLER_REJECTED,
)
BUYER_CANCELLABLE_STATUSES = SELLER_RESPONDABLE_STATUSES
MIN_SELLER_RESPONSE_LENGTH = 10


def get_return_request(return_request_id):
    request_ = db.session.get(ReturnRequest, return_request_id)
    if not request_:
        raise NotFound('Return request not found')
    return request_


def get_return_for_participant(return_request_id, user_id, is_admin=False):
    request_ = get_return_request(return_request_id)
    if not is_admin and user_id not in (request_.buyer_id,
                                        request_.seller_id):
        raise Forbidden('You do not have access to this return request')
    return request_


def _source_for_buyer(buyer_id, order_id, booking_id):
    if (order_id is None) == (booking_id is None):
        raise ValidationFailed('Specify exactly one of order or booking')

    if order_id is not None:
        order = db.session.get(Order, order_id)
        if not order:
            raise NotFound('Order not found')
        if order.buyer_id != buyer_id:
            raise Forbidden('You can only return your own orders')
        if order.status != OrderStatus.DELIVERED:
            raise InvalidState('Only delivered orders can be returned')
        max_attempts = current_app.config.get('MAX_RETURN_ATTEMPTS', 3)
        if (order.return_attempt_count or 0) >= max_attempts:
            raise InvalidState(
                f'Maximum of {max_attempts} return attempts reached '
                f'for this order')
        return order, order.grand_total

    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound('Booking not found')
    if booking.buyer_id != buyer_id:
        raise Forbidden('You can only return your own bookings')
    if booking.status not in RETURNABLE_BOOKING_STATUSES:
        raise InvalidState(
            'Only paid, ongoing or completed bookings can be refunded')
    return booking, booking.amount


def create_return_request(
        buyer_id,
        reason,
        requested_refund_amount,
        order_id=None,
        booking_id=None,
        description='',
        evidence=None):
    source, limit = _source_for_buyer(buyer_id, order_id, booking_id)
    if not isinstance(reason, ReturnReason):
        try:
            reason = ReturnReason(reason)
        except ValueError:
            raise ValidationFailed('Invalid return reason')

    amount = to_decimal(requested_refund_amount)
    if amount <= ZERO:
        raise ValidationFailed('Refund amount must be greater than 0')
    if amount > limit:
        raise ValidationFailed(
            f'Refund amount cannot exceed the paid total of {limit}')

    existing = ReturnRequest.query.filter(
        ReturnRequest.order_id == order_id if order_id is not None
        else ReturnRequest.booking_id == booking_id,
        ReturnRequest.status.in_(ACTIVE_RETURN_STATUSES),
    ).first()
    if existing:
        raise InvalidState(
            'There is already an open return request for this purchase')

    with atomic():
        request_ = ReturnRequest(
            buyer_id=buyer_id,
            seller_id=source.seller_id,
            order_id=order_id,
            booking_id=booking_id,
            reason=reason,
            description=description,
            requested_refund_amount=amount,
            status=ReturnRequestStatus.REQUESTED,
        )
        if evidence:
            request_.set_evidence(evidence)
        db.session.add(request_)
        if order_id is not None:
            source.return_attempt_count = (source.return_attempt_count or 0) + 1

    logger.info(
        "Return request %s opened by buyer %s for %s",
        request_.id,
        buyer_id,
        f'order {order_id}' if order_id is not None
        else f'booking {booking_id}',
    )
    return request_


def _require_seller(request_, seller_id):
    if request_.seller_id != seller_id:
        raise Forbidden('Only the seller can respond to this return request')


def mark_under_review(return_request_id, seller_id):
    request_ = get_return_request(return_request_id)
    _require_seller(request_, seller_id)
    if request_.status != ReturnRequestStatus.REQUESTED:
        raise InvalidState(
            f'Cannot review return request with status '
            f'{request_.status.value}')
    request_.status = ReturnRequestStatus.UNDER_REVIEW
    db.session.commit()
    return request_


def record_seller_response(
        return_request_id,
        seller_id,
        approved,
        response,
        proposed_refund_amount=None):
    request_ = get_return_request(return_request_id)
    _require_seller(request_, seller_id)
    if request_.status not in SELLER_RESPONDABLE_STATUSES:
        raise InvalidState(
            f'Cannot respond to return request with status '
            f'{request_.status.value}')
    response = (response or '').strip()
    if len(response) < MIN_SELLER_RESPONSE_LENGTH:
        raise ValidationFailed(
            f'Response must be at least {MIN_SELLER_RESPONSE_LENGTH} '
            f'characters')

    proposed = None
    if proposed_refund_amount is not None:
        proposed = to_decimal(proposed_refund_amount)
        if proposed <= ZERO or proposed > request_.requested_refund_amount:
            raise ValidationFailed(
                'Proposed refund must be positive and within the '
                'requested amount')

    request_.seller_status = (
        SellerReturnDecision.APPROVED if approved
        else SellerReturnDecision.REJECTED)
    request_.seller_response = response
    request_.seller_proposed_refund_amount = proposed
    request_.seller_responded_at = datetime.utcnow()
    request_.status = (
        ReturnRequestStatus.SELLER_APPROVED if approved
        else ReturnRequestStatus.SELLER_REJECTED)
    db.session.commit()
    logger.info(
        "Seller %s %s return request %s",
        seller_id,
        'approved' if approved else 'rejected',
        request_.id,
    )
    return request_


def apply_admin_resolution(
        return_request_id,
        approve,
        approved_refund_amount=None,
        admin_notes='',
        admin_override=False):
    request_ = get_return_request(return_request_id)
    if request_.status not in ADMIN_RESOLVABLE_STATUSES:
        raise InvalidState(
            f'Cannot resolve return request with status '
            f'{request_.status.value}')

    if approve:
        if approved_refund_amount is None:
            raise ValidationFailed(
                'Approved refund amount is required when approving')
        amount = to_decimal(approved_refund_amount)
        if amount <= ZERO or amount > request_.requested_refund_amount:
            raise ValidationFailed(
                'Approved refund must be positive and within the '
                'requested amount')
        request_.approved_refund_amount = amount
        request_.status = ReturnRequestStatus.ADMIN_APPROVED
    else:
        request_.status = ReturnRequestStatus.ADMIN_REJECTED

    request_.admin_notes = admin_notes
    request_.admin_override = bool(admin_override)
    request_.admin_resolved_at = datetime.utcnow()
    db.session.commit()
    logger.info(
        "Return request %s resolved by admin: %s (override=%s)",
        request_.id,
        request_.status.value,
        request_.admin_override,
    )
    return request_


def _refund_order(request_, amount):
    order = db.session.get(Order, request_.order_id)
    if not order:
        raise NotFound('Order not found')
    order.status = OrderStatus.CANCELLED
    ledger_service.mark_refunded(order_id=order.id)
    db.session.flush()
    ledger_service.record_refund(
        amount,
        order.buyer_id,
        order.seller_id,
        f'Refund for return request #{request_.id}',
        order_id=order.id,
    )
    # Shipping is excluded from the commission base
    reversal = ledger_service.record_commission_reversal(
        order.total_amount,
        ledger_service.seller_commission_rate(order.seller_id),
        order.buyer_id,
        order.seller_id,
        f'Commission reversal for return request #{request_.id}',
        order_id=order.id,
    )
    return reversal


def _refund_booking(request_, amount):
    booking = db.session.get(Booking, request_.booking_id)
    if not booking:
        raise NotFound('Booking not found')
    booking.status = BookingStatus.CANCELLED
    ledger_service.mark_refunded(booking_id=booking.id)
    db.session.flush()
    ledger_service.record_refund(
        amount,
        booking.buyer_id,
        booking.seller_id,
        f'Refund for return request #{request_.id}',
        booking_id=booking.id,
    )
    return ledger_service.record_commission_reversal(
        amount,
        ledger_service.seller_commission_rate(booking.seller_id),
        booking.buyer_id,
        booking.seller_id,
        f'Commission reversal for return request #{request_.id}',
        booking_id=booking.id,
    )


def _claim_for_refund(return_request_id, now):
    """Conditional status flip; zero rows means the refund already ran."""
    result = db.session.execute(
        update(ReturnRequest)
        .where(
            ReturnRequest.id == return_request_id,
            ReturnRequest.status == ReturnRequestStatus.ADMIN_APPROVED,
        )
        .values(
            status=ReturnRequestStatus.REFUNDED,
            refunded_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def process_return_request_refund(return_request_id):
    """Refund an approved return in one transaction.

    Cancels the order or booking, marks its ledger entries refunded and
    appends the buyer refund plus, when the seller pays commission, a
    separate commission reversal. The request row is claimed before any
    ledger write so the refund happens at most once.
    """
    now = datetime.utcnow()
    with atomic():
        request_ = ReturnRequest.query.filter_by(
            id=return_request_id
        ).populate_existing().with_for_update().first()
        if not request_:
            raise NotFound('Return request not found')
        if request_.approved_refund_amount is None:
            raise InvalidState('Approved refund amount is not set')
        if request_.status != ReturnRequestStatus.ADMIN_APPROVED:
            raise InvalidState(
                f'Cannot refund return request with status '
                f'{request_.status.value}')

        if not _claim_for_refund(request_.id, now):
            raise Conflict('Return request was refunded by another request')

        amount = to_decimal(request_.approved_refund_amount)
        if request_.order_id is not None:
            reversal = _refund_order(request_, amount)
        else:
            reversal = _refund_booking(request_, amount)
        if reversal is not None:
            request_.commission_reversed_amount = -reversal.amount
        request_.status = ReturnRequestStatus.REFUNDED
        request_.refunded_at = now

    logger.info(
        "Refunded return request %s: amount %s, commission reversed %s",
        request_.id,
        amount,
        request_.commission_reversed_amount,
    )
    return request_


def mark_completed(return_request_id):
    request_ = get_return_request(return_request_id)
    if request_.status != ReturnRequestStatus.REFUNDED:
        raise InvalidState('Only refunded return requests can be completed')
    request_.status = ReturnRequestStatus.COMPLETED
    request_.completed_at = datetime.utcnow()
    db.session.commit()
    return request_


def cancel_return_request(return_request_id, buyer_id):
    request_ = get_return_request(return_request_id)
    if request_.buyer_id != buyer_id:
        raise Forbidden('Only the buyer can cancel this return request')
    if request_.status not in BUYER_CANCELLABLE_STATUSES:
        raise InvalidState(
            f'Cannot cancel return request with status '
            f'{request_.status.value}')
    request_.status = ReturnRequestStatus.CANCELLED
    db.session.commit()
    return request_
