from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from marketplace.middleware import role_required
from marketplace.models import Transaction, TransactionStatus
from marketplace.errors import ValidationFailed
from marketplace.serializers import (
    booking_payload,
    order_payload,
    return_payload,
    transaction_payload,
)
from marketplace.services import (
    ledger_service,
    notification_service,
    order_service,
    returns_service,
)
from marketplace.services.audit_service import log_audit
from marketplace.utils import json_body, paginate_query
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__)


def _audit(action, target_type, target_id, payload=None):
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payload=payload
    )


@bp.route(
    '/api/admin/orders/<int:order_id>/confirm-payment',
    methods=['POST'])
@login_required
@role_required('ADMIN')
def confirm_order_payment(order_id):
    order = order_service.confirm_order_payment(order_id)
    _audit('PAYMENT_CONFIRM', 'ORDER', order.id)
    return jsonify(order_payload(order))


@bp.route(
    '/api/admin/bookings/<int:booking_id>/confirm-payment',
    methods=['POST'])
@login_required
@role_required('ADMIN')
def confirm_booking_payment(booking_id):
    booking = order_service.confirm_booking_payment(booking_id)
    _audit('PAYMENT_CONFIRM', 'BOOKING', booking.id)
    return jsonify(booking_payload(booking))


@bp.route(
    '/api/admin/transactions/<int:transaction_id>/release',
    methods=['POST'])
@login_required
@role_required('ADMIN')
def release_transaction(transaction_id):
    entry = ledger_service.release_transaction(transaction_id)
    _audit('TRANSACTION_RELEASE', 'TRANSACTION', entry.id, {
        'seller_payout': float(entry.seller_payout)})
    return jsonify(transaction_payload(entry))


@bp.route(
    '/api/admin/orders/<int:order_id>/release-payments',
    methods=['POST'])
@login_required
@role_required('ADMIN')
def release_order_payments(order_id):
    entries = ledger_service.release_order_payments(order_id)
    _audit('TRANSACTION_RELEASE_ALL', 'ORDER', order_id, {
        'transaction_ids': [e.id for e in entries]})
    return jsonify({'items': [transaction_payload(e) for e in entries]})


@bp.route('/api/admin/transactions', methods=['GET'])
@login_required
@role_required('ADMIN')
def list_transactions():
    query = Transaction.query
    status = request.args.get('status')
    if status:
        try:
            query = query.filter(
                Transaction.status == TransactionStatus(status))
        except ValueError:
            raise ValidationFailed('Invalid transaction status')
    for field in ('order_id', 'booking_id', 'seller_id'):
        value = request.args.get(field, type=int)
        if value is not None:
            query = query.filter(getattr(Transaction, field) == value)
    page = paginate_query(
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc()),
        page=request.args.get('page', 1, type=int),
        per_page=current_app.config.get('ITEMS_PER_PAGE', 20),
    )
    page['items'] = [transaction_payload(e) for e in page['items']]
    return jsonify(page)


@bp.route('/api/admin/returns/<int:return_id>/resolve', methods=['POST'])
@login_required
@role_required('ADMIN')
def resolve_return(return_id):
    data = json_body()
    decision = data.get('decision')
    if decision not in ('approved', 'rejected'):
        raise ValidationFailed('decision must be "approved" or "rejected"')
    request_ = returns_service.apply_admin_resolution(
        return_id,
        decision == 'approved',
        approved_refund_amount=data.get('approved_refund_amount'),
        admin_notes=data.get('admin_notes', ''),
        admin_override=bool(data.get('admin_override', False)),
    )
    _audit('RETURN_ADMIN_RESOLVE', 'RETURN_REQUEST', request_.id, {
        'decision': decision,
        'admin_override': request_.admin_override,
    })
    notification_service.notify_return_resolved(request_)
    return jsonify(return_payload(request_))


@bp.route('/api/admin/returns/<int:return_id>/complete', methods=['POST'])
@login_required
@role_required('ADMIN')
def complete_return(return_id):
    request_ = returns_service.mark_completed(return_id)
    _audit('RETURN_COMPLETE', 'RETURN_REQUEST', request_.id)
    return jsonify(return_payload(request_))
