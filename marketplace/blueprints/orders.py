from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.errors import ValidationFailed
from marketplace.models import BookingStatus, OrderStatus
from marketplace.serializers import booking_payload, order_payload
from marketplace.services import order_service
from marketplace.services.audit_service import log_audit
from marketplace.services.catalog_service import item_from_payload
from marketplace.utils import json_body, optional_int, parse_datetime
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


@bp.route('/api/checkout', methods=['POST'])
@login_required
def checkout():
    data = json_body()
    orders = order_service.checkout_cart(
        current_user.id,
        data.get('shipping_address'),
        shipping_cost=data.get('shipping_cost'),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CHECKOUT',
        target_type='ORDER',
        target_id=orders[0].id,
        payload={
            'order_ids': [o.id for o in orders],
            'total_amount': float(sum(o.grand_total for o in orders)),
        }
    )
    return jsonify({'orders': [order_payload(o) for o in orders]}), 201


@bp.route('/api/bookings', methods=['POST'])
@login_required
def create_booking():
    data = json_body()
    booking = order_service.create_booking(
        current_user.id,
        item_from_payload(data),
        quote_id=optional_int(data.get('quote_id'), 'quote_id'),
        design_approval_id=optional_int(
            data.get('design_approval_id'), 'design_approval_id'),
        scheduled_date=parse_datetime(
            data.get('scheduled_date'), 'scheduled_date'),
        notes=data.get('notes', ''),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='BOOKING_CREATE',
        target_type='BOOKING',
        target_id=booking.id,
        payload={'amount': float(booking.amount)}
    )
    return jsonify(booking_payload(booking)), 201


@bp.route('/api/orders/<int:order_id>/status', methods=['PATCH'])
@login_required
def update_order_status(order_id):
    data = json_body()
    try:
        status = OrderStatus(data.get('status'))
    except ValueError:
        raise ValidationFailed('Invalid order status')
    order = order_service.update_order_status(
        order_id, current_user.id, status)
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='ORDER_STATUS_UPDATE',
        target_type='ORDER',
        target_id=order.id,
        payload={'status': status.value}
    )
    return jsonify(order_payload(order))


@bp.route('/api/bookings/<int:booking_id>/status', methods=['PATCH'])
@login_required
def update_booking_status(booking_id):
    data = json_body()
    try:
        status = BookingStatus(data.get('status'))
    except ValueError:
        raise ValidationFailed('Invalid booking status')
    booking = order_service.update_booking_status(
        booking_id, current_user.id, status)
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='BOOKING_STATUS_UPDATE',
        target_type='BOOKING',
        target_id=booking.id,
        payload={'status': status.value}
    )
    return jsonify(booking_payload(booking))
