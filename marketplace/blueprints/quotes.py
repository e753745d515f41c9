from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.errors import ValidationFailed
from marketplace.serializers import quote_payload
from marketplace.services import notification_service, quote_service
from marketplace.services.audit_service import log_audit
from marketplace.services.catalog_service import item_from_payload
from marketplace.services.conversation_service import (
    get_conversation,
    require_participant,
)
from marketplace.utils import json_body, money, optional_int, parse_datetime
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('quotes', __name__)


def _quantity(data):
    quantity = optional_int(data.get('quantity', 1), 'quantity')
    if quantity is None or quantity < 1:
        raise ValidationFailed('Quantity must be at least 1')
    return quantity


@bp.route(
    '/api/conversations/<int:conversation_id>/quote-requests',
    methods=['POST'])
@login_required
def request_quote(conversation_id):
    data = json_body()
    quote = quote_service.request_quote(
        conversation_id,
        current_user.id,
        item_from_payload(data),
        quantity=_quantity(data),
        specifications=data.get('specifications', ''),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='QUOTE_REQUEST',
        target_type='QUOTE',
        target_id=quote.id,
        payload={'conversation_id': conversation_id}
    )
    notification_service.notify_quote_requested(quote)
    return jsonify(quote_payload(quote)), 201


@bp.route(
    '/api/conversations/<int:conversation_id>/quotes',
    methods=['POST'])
@login_required
def send_quote(conversation_id):
    data = json_body()
    if data.get('quoted_price') in (None, ''):
        raise ValidationFailed('quoted_price is required')
    quote = quote_service.send_quote(
        conversation_id,
        current_user.id,
        item_from_payload(data),
        data.get('quoted_price'),
        quantity=_quantity(data),
        specifications=data.get('specifications', ''),
        seller_notes=data.get('seller_notes'),
        expires_at=parse_datetime(data.get('expires_at'), 'expires_at'),
        design_approval_id=optional_int(
            data.get('design_approval_id'), 'design_approval_id'),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='QUOTE_SEND',
        target_type='QUOTE',
        target_id=quote.id,
        payload={
            'conversation_id': conversation_id,
            'quoted_price': money(quote.quoted_price),
            'quantity': quote.quantity,
        }
    )
    notification_service.notify_quote_sent(quote)
    return jsonify(quote_payload(quote)), 201


@bp.route(
    '/api/conversations/<int:conversation_id>/quotes',
    methods=['GET'])
@login_required
def list_quotes(conversation_id):
    quotes = quote_service.list_conversation_quotes(
        conversation_id, current_user.id)
    return jsonify({'items': [quote_payload(q) for q in quotes]})


@bp.route(
    '/api/conversations/<int:conversation_id>/active-quote',
    methods=['GET'])
@login_required
def active_quote(conversation_id):
    require_participant(get_conversation(conversation_id), current_user.id)
    quote = quote_service.get_active_quote_for_conversation(conversation_id)
    return jsonify({'quote': quote_payload(quote) if quote else None})


@bp.route('/api/quotes/<int:quote_id>', methods=['GET'])
@login_required
def get_quote(quote_id):
    quote = quote_service.get_quote_for_participant(quote_id, current_user.id)
    return jsonify(quote_payload(quote))


@bp.route('/api/quotes/<int:quote_id>', methods=['PATCH'])
@login_required
def update_quote(quote_id):
    data = json_body()
    quote = quote_service.update_quote(
        quote_id,
        current_user.id,
        quoted_price=data.get('quoted_price'),
        seller_notes=data.get('seller_notes'),
        expires_at=parse_datetime(data.get('expires_at'), 'expires_at'),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='QUOTE_UPDATE',
        target_type='QUOTE',
        target_id=quote.id,
        payload={k: data[k] for k in (
            'quoted_price', 'expires_at') if k in data}
    )
    return jsonify(quote_payload(quote))


@bp.route('/api/quotes/<int:quote_id>/accept', methods=['POST'])
@login_required
def accept_quote(quote_id):
    quote = quote_service.accept_quote(quote_id, current_user.id)
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='QUOTE_ACCEPT',
        target_type='QUOTE',
        target_id=quote.id,
        payload={
            'quoted_price': money(quote.quoted_price),
            'product_variant_id': quote.product_variant_id,
        }
    )
    notification_service.notify_quote_accepted(quote)
    return jsonify(quote_payload(quote))


@bp.route('/api/quotes/<int:quote_id>/reject', methods=['POST'])
@login_required
def reject_quote(quote_id):
    data = json_body()
    quote = quote_service.reject_quote(
        quote_id, current_user.id, reason=data.get('reason'))
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='QUOTE_REJECT',
        target_type='QUOTE',
        target_id=quote.id,
        payload={'reason': data.get('reason')}
    )
    notification_service.notify_quote_rejected(quote)
    return jsonify(quote_payload(quote))
