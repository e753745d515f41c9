from flask import current_app
from marketplace.extensions import db
from marketplace.models import Notification, ReturnRequestStatus
from marketplace.services.money import format_money
import logging

logger = logging.getLogger(__name__)


def create_notification(
        user_id,
        type,
        title,
        message,
        link=None,
        metadata=None):
    """Store an in-app notification.

    Called after the triggering change is committed; a failure here is
    logged and never propagates.
    """
    try:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
        )
        if metadata:
            notification.set_metadata(metadata)
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception as e:
        logger.error(f"Failed to create notification: {e}", exc_info=True)
        db.session.rollback()
        return None


def publish_conversation_event(
        conversation_id,
        event,
        payload=None,
        exclude_user_id=None):
    registry = current_app.extensions.get('conversation_registry')
    if registry is None:
        return 0
    message = {
        'type': event,
        'conversation_id': conversation_id,
        'data': payload or {},
    }
    return registry.broadcast(
        conversation_id, message, exclude_user_id=exclude_user_id)


def notify_quote_sent(quote):
    publish_conversation_event(
        quote.conversation_id,
        'quote_sent',
        {'quote_id': quote.id, 'status': quote.status.value},
        exclude_user_id=quote.seller_id,
    )
    return create_notification(
        quote.buyer_id,
        'quote_received',
        'New quote received',
        f'You received a quote of {format_money(quote.quoted_price)} '
        f'for {quote.quantity} item(s).',
        link=f'/messages/{quote.conversation_id}',
        metadata={'quote_id': quote.id},
    )


def notify_quote_requested(quote):
    publish_conversation_event(
        quote.conversation_id,
        'quote_requested',
        {'quote_id': quote.id},
        exclude_user_id=quote.buyer_id,
    )
    return create_notification(
        quote.seller_id,
        'quote_requested',
        'Quote requested',
        'A buyer requested a custom quote.',
        link=f'/messages/{quote.conversation_id}',
        metadata={'quote_id': quote.id},
    )


def notify_quote_accepted(quote):
    publish_conversation_event(
        quote.conversation_id,
        'quote_accepted',
        {'quote_id': quote.id},
        exclude_user_id=quote.buyer_id,
    )
    return create_notification(
        quote.seller_id,
        'quote_accepted',
        'Quote accepted',
        f'Your quote of {format_money(quote.quoted_price)} was accepted.',
        link=f'/messages/{quote.conversation_id}',
        metadata={'quote_id': quote.id},
    )


def notify_quote_rejected(quote):
    publish_conversation_event(
        quote.conversation_id,
        'quote_rejected',
        {'quote_id': quote.id},
        exclude_user_id=quote.buyer_id,
    )
    return create_notification(
        quote.seller_id,
        'quote_rejected',
        'Quote declined',
        quote.rejection_reason or 'The buyer declined your quote.',
        link=f'/messages/{quote.conversation_id}',
        metadata={'quote_id': quote.id},
    )


def _notify_design(design, recipient_id, type, title, message):
    publish_conversation_event(
        design.conversation_id,
        type,
        {'design_approval_id': design.id, 'status': design.status.value},
    )
    return create_notification(
        recipient_id,
        type,
        title,
        message,
        link=f'/messages/{design.conversation_id}',
        metadata={'design_approval_id': design.id},
    )


def notify_design_submitted(design):
    return _notify_design(
        design, design.seller_id, 'design_submitted',
        'Design submitted for approval',
        'A buyer uploaded design files for your review.')


def notify_design_approved(design):
    return _notify_design(
        design, design.buyer_id, 'design_approved',
        'Design approved',
        'The seller approved your design. You can now purchase this item.')


def notify_design_rejected(design):
    return _notify_design(
        design, design.buyer_id, 'design_rejected',
        'Design rejected',
        design.seller_notes or 'The seller rejected your design.')


def notify_design_changes_requested(design):
    return _notify_design(
        design, design.buyer_id, 'design_changes_requested',
        'Changes requested',
        design.seller_notes or 'The seller requested changes to your design.')


def notify_return_requested(request_):
    return create_notification(
        request_.seller_id,
        'return_requested',
        'Return requested',
        f'A buyer requested a refund of '
        f'{format_money(request_.requested_refund_amount)}.',
        metadata={'return_request_id': request_.id},
    )


def notify_return_resolved(request_):
    approved = request_.status == ReturnRequestStatus.ADMIN_APPROVED
    return create_notification(
        request_.buyer_id,
        'return_approved' if approved else 'return_rejected',
        'Return request approved' if approved else 'Return request declined',
        request_.admin_notes or (
            'Your refund has been approved.' if approved
            else 'Your return request was declined.'),
        metadata={'return_request_id': request_.id},
    )


def notify_refund_processed(request_):
    return create_notification(
        request_.buyer_id,
        'refund_processed',
        'Refund processed',
        f'{format_money(request_.approved_refund_amount)} has been '
        f'refunded to you.',
        metadata={'return_request_id': request_.id},
    )
