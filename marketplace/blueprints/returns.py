from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.errors import ValidationFailed
from marketplace.middleware import role_required
from marketplace.serializers import return_payload
from marketplace.services import notification_service, returns_service
from marketplace.services.audit_service import log_audit
from marketplace.utils import json_body, optional_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('returns', __name__)


def _audit(action, request_, payload=None):
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action=action,
        target_type='RETURN_REQUEST',
        target_id=request_.id,
        payload=payload
    )


@bp.route('/api/returns', methods=['POST'])
@login_required
def create_return():
    data = json_body()
    if data.get('requested_refund_amount') in (None, ''):
        raise ValidationFailed('requested_refund_amount is required')
    request_ = returns_service.create_return_request(
        current_user.id,
        data.get('reason'),
        data.get('requested_refund_amount'),
        order_id=optional_int(data.get('order_id'), 'order_id'),
        booking_id=optional_int(data.get('booking_id'), 'booking_id'),
        description=data.get('description', ''),
        evidence=data.get('evidence'),
    )
    _audit('RETURN_CREATE', request_, {
        'order_id': request_.order_id,
        'booking_id': request_.booking_id,
        'requested_refund_amount': float(request_.requested_refund_amount),
    })
    notification_service.notify_return_requested(request_)
    return jsonify(return_payload(request_)), 201


@bp.route('/api/returns/<int:return_id>', methods=['GET'])
@login_required
def get_return(return_id):
    request_ = returns_service.get_return_for_participant(
        return_id,
        current_user.id,
        is_admin=current_user.role.value == 'ADMIN',
    )
    return jsonify(return_payload(request_))


@bp.route('/api/returns/<int:return_id>/review', methods=['POST'])
@login_required
def review_return(return_id):
    request_ = returns_service.mark_under_review(return_id, current_user.id)
    _audit('RETURN_REVIEW', request_)
    return jsonify(return_payload(request_))


@bp.route('/api/returns/<int:return_id>/seller-response', methods=['POST'])
@login_required
def seller_response(return_id):
    data = json_body()
    decision = data.get('decision')
    if decision not in ('approved', 'rejected'):
        raise ValidationFailed('decision must be "approved" or "rejected"')
    request_ = returns_service.record_seller_response(
        return_id,
        current_user.id,
        decision == 'approved',
        data.get('response'),
        proposed_refund_amount=data.get('proposed_refund_amount'),
    )
    _audit('RETURN_SELLER_RESPONSE', request_, {'decision': decision})
    return jsonify(return_payload(request_))


@bp.route('/api/returns/<int:return_id>/cancel', methods=['POST'])
@login_required
def cancel_return(return_id):
    request_ = returns_service.cancel_return_request(
        return_id, current_user.id)
    _audit('RETURN_CANCEL', request_)
    return jsonify(return_payload(request_))


@bp.route('/api/returns/<int:return_id>/refund', methods=['POST'])
@login_required
@role_required('ADMIN')
def process_refund(return_id):
    request_ = returns_service.process_return_request_refund(return_id)
    _audit('REFUND_PROCESS', request_, {
        'approved_refund_amount': float(request_.approved_refund_amount),
        'commission_reversed_amount': (
            float(request_.commission_reversed_amount)
            if request_.commission_reversed_amount is not None else None),
    })
    notification_service.notify_refund_processed(request_)
    return jsonify(return_payload(request_))
