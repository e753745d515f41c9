from datetime import datetime, timedelta
from flask import current_app
from sqlalchemy import or_, update
from marketplace.extensions import db, atomic
from marketplace.errors import (
    NotFound,
    Forbidden,
    InvalidState,
    Expired,
    ValidationFailed,
    Conflict,
)
from marketplace.models import (
    Quote,
    QuoteStatus,
    DesignApproval,
    DesignApprovalStatus,
    ACTIVE_QUOTE_STATUSES,
    ACCEPTABLE_QUOTE_STATUSES,
    TERMINAL_QUOTE_STATUSES,
)
from marketplace.services.catalog_service import (
    ProductItem,
    item_columns,
    item_filter,
    load_item,
    load_option,
)
from marketplace.services.conversation_service import (
    WORKFLOW_QUOTE,
    add_workflow_context,
    get_conversation,
    require_participant,
)
from marketplace.services.money import to_decimal, ZERO
import logging

logger = logging.getLogger(__name__)

# Designs that still allow a linked quote to be accepted
ACCEPTABLE_DESIGN_STATUSES = (
    DesignApprovalStatus.APPROVED,
    DesignApprovalStatus.RESUBMITTED,
)


def _not_expired(now):
    return or_(Quote.expires_at.is_(None), Quote.expires_at >= now)


def supersede_previous_quotes(conversation_id, keep_quote_id=None):
    """Mark every active quote in the conversation superseded.

    Runs inside the caller's transaction; returns the affected row count.
    """
    stmt = update(Quote).where(
        Quote.conversation_id == conversation_id,
        Quote.status.in_(ACTIVE_QUOTE_STATUSES),
    )
    if keep_quote_id is not None:
        stmt = stmt.where(Quote.id != keep_quote_id)
    stmt = stmt.values(
        status=QuoteStatus.SUPERSEDED,
        updated_at=datetime.utcnow(),
    ).execution_options(synchronize_session='fetch')
    result = db.session.execute(stmt)
    if result.rowcount:
        logger.info(
            "Superseded %s quote(s) in conversation %s",
            result.rowcount,
            conversation_id,
        )
    return result.rowcount


def create_quote(
        conversation_id,
        actor_id,
        item,
        quantity=1,
        specifications='',
        quoted_price=None,
        status=QuoteStatus.REQUESTED,
        expires_at=None,
        seller_notes=None,
        design_approval_id=None):
    conversation = get_conversation(conversation_id)
    require_participant(conversation, actor_id)

    if quantity is None or int(quantity) < 1:
        raise ValidationFailed('Quantity must be at least 1')
    if load_item(item) is None:
        raise NotFound(f'{item.kind.capitalize()} not found')
    load_option(item)

    now = datetime.utcnow()
    option = {}
    if isinstance(item, ProductItem):
        option['product_variant_id'] = item.variant_id
    else:
        option['service_package_id'] = item.package_id

    with atomic():
        quote = Quote(
            conversation_id=conversation.id,
            buyer_id=conversation.buyer_id,
            seller_id=conversation.seller_id,
            quantity=int(quantity),
            quoted_price=(
                to_decimal(quoted_price) if quoted_price is not None
                else None),
            specifications=specifications or '',
            seller_notes=seller_notes,
            status=status,
            expires_at=expires_at,
            design_approval_id=design_approval_id,
            sent_at=now if status == QuoteStatus.SENT else None,
            accepted_at=now if status == QuoteStatus.ACCEPTED else None,
            **item_columns(item),
            **option,
        )
        db.session.add(quote)
        db.session.flush()
        if status != QuoteStatus.REQUESTED:
            supersede_previous_quotes(conversation.id, keep_quote_id=quote.id)
        add_workflow_context(conversation, WORKFLOW_QUOTE)

    logger.info(
        "Quote %s created in conversation %s with status %s",
        quote.id,
        conversation.id,
        status.value,
    )
    return quote


def request_quote(
        conversation_id,
        buyer_id,
        item,
        quantity=1,
        specifications=''):
    conversation = get_conversation(conversation_id)
    if conversation.buyer_id != buyer_id:
        raise Forbidden('Only the buyer can request a quote')
    return create_quote(
        conversation_id,
        buyer_id,
        item,
        quantity=quantity,
        specifications=specifications,
        status=QuoteStatus.REQUESTED,
    )


def _linked_design_for_send(conversation, item):
    """Approved design the quote must carry when both gates are on."""
    design = DesignApproval.query.filter(
        DesignApproval.conversation_id == conversation.id,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
        *item_filter(DesignApproval, item, match_option=True),
    ).order_by(DesignApproval.approved_at.desc()).first()
    if not design:
        raise ValidationFailed(
            'This item requires an approved design before a quote can be '
            'sent. Approve the buyer\'s design for this option first.')
    return design


def send_quote(
        conversation_id,
        seller_id,
        item,
        quoted_price,
        quantity=1,
        specifications='',
        seller_notes=None,
        expires_at=None,
        design_approval_id=None):
    """Seller response: fill in an open request or issue a new quote."""
    conversation = get_conversation(conversation_id)
    if conversation.seller_id != seller_id:
        raise Forbidden('Only the seller can send a quote')
    if quantity is None or int(quantity) < 1:
        raise ValidationFailed('Quantity must be at least 1')
    price = to_decimal(quoted_price)
    if price <= ZERO:
        raise ValidationFailed('Quoted price must be greater than 0')

    record = load_item(item)
    if record is None:
        raise NotFound(f'{item.kind.capitalize()} not found')
    if record.seller_id != seller_id:
        raise Forbidden('You can only quote your own listings')
    load_option(item)

    if record.requires_quote and record.requires_design_approval:
        if item.option_id is None:
            raise ValidationFailed(
                'Select a variant or package for this quote')
        design_approval_id = _linked_design_for_send(conversation, item).id

    if expires_at is None:
        days = current_app.config.get('QUOTE_DEFAULT_EXPIRY_DAYS', 7)
        expires_at = datetime.utcnow() + timedelta(days=days)
    elif expires_at <= datetime.utcnow():
        raise ValidationFailed('Expiry must be in the future')

    requested = Quote.query.filter(
        Quote.conversation_id == conversation.id,
        Quote.status == QuoteStatus.REQUESTED,
        *item_filter(Quote, item),
    ).order_by(Quote.created_at.desc()).first()

    if requested is None:
        return create_quote(
            conversation.id,
            seller_id,
            item,
            quantity=quantity,
            specifications=specifications,
            quoted_price=price,
            status=QuoteStatus.SENT,
            expires_at=expires_at,
            seller_notes=seller_notes,
            design_approval_id=design_approval_id,
        )

    with atomic():
        requested.quoted_price = price
        requested.quantity = int(quantity)
        if specifications:
            requested.specifications = specifications
        requested.seller_notes = seller_notes
        requested.expires_at = expires_at
        requested.design_approval_id = design_approval_id
        if isinstance(item, ProductItem):
            requested.product_variant_id = item.variant_id
        else:
            requested.service_package_id = item.package_id
        requested.status = QuoteStatus.SENT
        requested.sent_at = datetime.utcnow()
        db.session.flush()
        supersede_previous_quotes(conversation.id, keep_quote_id=requested.id)
        add_workflow_context(conversation, WORKFLOW_QUOTE)

    logger.info("Quote %s sent in response to request", requested.id)
    return requested


def update_quote(
        quote_id,
        seller_id,
        quoted_price=None,
        seller_notes=None,
        expires_at=None):
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFound('Quote not found')
    if quote.seller_id != seller_id:
        raise Forbidden('Only the seller can update this quote')
    if quote.status in TERMINAL_QUOTE_STATUSES:
        raise InvalidState(
            f'Cannot update quote with status {quote.status.value}')

    if quoted_price is not None:
        price = to_decimal(quoted_price)
        if price <= ZERO:
            raise ValidationFailed('Quoted price must be greater than 0')
        quote.quoted_price = price
    if seller_notes is not None:
        quote.seller_notes = seller_notes
    if expires_at is not None:
        if expires_at <= datetime.utcnow():
            raise ValidationFailed('Expiry must be in the future')
        quote.expires_at = expires_at
    db.session.commit()
    return quote


def _claim_for_acceptance(quote_id, now):
    """Conditional status flip; zero rows means another caller won."""
    result = db.session.execute(
        update(Quote)
        .where(
            Quote.id == quote_id,
            Quote.status.in_(ACCEPTABLE_QUOTE_STATUSES),
        )
        .values(
            status=QuoteStatus.ACCEPTED,
            accepted_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def accept_quote(quote_id, buyer_id):
    """Accept a quote and put it in the buyer's cart, atomically.

    The quote row is locked before any check so a double submit cannot
    accept twice or add two cart lines.
    """
    from marketplace.services.cart_service import merge_cart_line

    now = datetime.utcnow()
    try:
        quote = Quote.query.filter_by(
            id=quote_id
        ).populate_existing().with_for_update().first()
        if not quote:
            raise NotFound('Quote not found')
        if quote.buyer_id != buyer_id:
            logger.warning(
                "User %s attempted to accept quote %s owned by %s",
                buyer_id,
                quote_id,
                quote.buyer_id,
            )
            raise Forbidden('Only the buyer can accept this quote')
        if quote.status not in ACCEPTABLE_QUOTE_STATUSES:
            raise InvalidState(
                f'Cannot accept quote with status {quote.status.value}')
        if quote.is_expired(now):
            quote.status = QuoteStatus.EXPIRED
            db.session.commit()
            logger.info("Quote %s expired at acceptance time", quote.id)
            raise Expired('This quote has expired')
        if quote.design_approval_id is not None:
            design = db.session.get(DesignApproval, quote.design_approval_id)
            if not design or design.status not in ACCEPTABLE_DESIGN_STATUSES:
                raise InvalidState(
                    'The linked design must be approved before accepting')

        if not _claim_for_acceptance(quote.id, now):
            raise Conflict('Quote was modified by another request')

        if quote.product_variant_id is not None:
            merge_cart_line(
                buyer_id,
                quote.product_variant_id,
                quantity=quote.quantity,
                quote_id=quote.id,
                design_approval_id=quote.design_approval_id,
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(quote)
    logger.info("Quote %s accepted by buyer %s", quote.id, buyer_id)
    return quote


def reject_quote(quote_id, buyer_id, reason=None):
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFound('Quote not found')
    if quote.buyer_id != buyer_id:
        raise Forbidden('Only the buyer can reject this quote')

    quote.status = QuoteStatus.REJECTED
    if reason:
        quote.rejection_reason = reason
    db.session.commit()
    logger.info("Quote %s rejected by buyer %s", quote.id, buyer_id)
    return quote


def expire_old_quotes(now=None):
    now = now or datetime.utcnow()
    result = db.session.execute(
        update(Quote)
        .where(
            Quote.status.in_(ACCEPTABLE_QUOTE_STATUSES),
            Quote.expires_at.isnot(None),
            Quote.expires_at < now,
        )
        .values(status=QuoteStatus.EXPIRED, updated_at=now)
        .execution_options(synchronize_session='fetch')
    )
    db.session.commit()
    if result.rowcount:
        logger.info("Expired %s quote(s)", result.rowcount)
    return result.rowcount


def get_active_quote_for_item(buyer_id, item, now=None):
    """Most recently accepted, still valid quote the buyer holds."""
    now = now or datetime.utcnow()
    return Quote.query.filter(
        Quote.buyer_id == buyer_id,
        Quote.status == QuoteStatus.ACCEPTED,
        _not_expired(now),
        *item_filter(Quote, item),
    ).order_by(Quote.accepted_at.desc()).first()


def get_latest_quote_for_item(buyer_id, item):
    return Quote.query.filter(
        Quote.buyer_id == buyer_id,
        *item_filter(Quote, item),
    ).order_by(Quote.created_at.desc(), Quote.id.desc()).first()


def get_active_quote_for_conversation(conversation_id, now=None):
    now = now or datetime.utcnow()
    return Quote.query.filter(
        Quote.conversation_id == conversation_id,
        Quote.status.in_((QuoteStatus.REQUESTED,) + ACTIVE_QUOTE_STATUSES),
        _not_expired(now),
    ).order_by(Quote.created_at.desc(), Quote.id.desc()).first()


def get_quote_for_participant(quote_id, user_id):
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFound('Quote not found')
    if user_id not in (quote.buyer_id, quote.seller_id):
        raise Forbidden('You do not have access to this quote')
    return quote


def list_conversation_quotes(conversation_id, user_id):
    conversation = get_conversation(conversation_id)
    require_participant(conversation, user_id)
    return Quote.query.filter_by(
        conversation_id=conversation.id
    ).order_by(Quote.created_at.desc(), Quote.id.desc()).all()
