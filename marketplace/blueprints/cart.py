from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.errors import ValidationFailed
from marketplace.serializers import cart_line_payload
from marketplace.services import cart_service
from marketplace.services.audit_service import log_audit
from marketplace.services.catalog_service import item_from_payload
from marketplace.services.purchase_service import (
    validate_purchase_requirements,
)
from marketplace.utils import json_body, money, optional_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('cart', __name__)


@bp.route('/api/cart', methods=['GET'])
@login_required
def get_cart():
    lines = cart_service.get_cart_items(current_user.id)
    items = [cart_line_payload(line) for line in lines]
    return jsonify({
        'items': items,
        'total_items': sum(line.quantity for line in lines),
        'subtotal': money(sum(
            line.effective_unit_price * line.quantity for line in lines)),
    })


@bp.route('/api/cart', methods=['POST'])
@login_required
def add_to_cart():
    data = json_body()
    variant_id = optional_int(
        data.get('product_variant_id', data.get('variant_id')),
        'product_variant_id')
    if variant_id is None:
        raise ValidationFailed('Product variant ID cannot be empty')

    line = cart_service.add_variant_to_cart(
        current_user.id,
        variant_id,
        quantity=data.get('quantity', 1),
        quote_id=optional_int(data.get('quote_id'), 'quote_id'),
        design_approval_id=optional_int(
            data.get('design_approval_id'), 'design_approval_id'),
    )
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CART_ADD',
        target_type='CART_ITEM',
        target_id=line.id,
        payload={
            'product_variant_id': variant_id,
            'quote_id': line.quote_id,
            'design_approval_id': line.design_approval_id,
        }
    )
    return jsonify(cart_line_payload(line)), 201


@bp.route('/api/cart/items/<int:item_id>', methods=['PATCH'])
@login_required
def update_cart_item(item_id):
    data = json_body()
    line = cart_service.update_cart_item_quantity(
        item_id, current_user.id, data.get('quantity'))
    return jsonify(cart_line_payload(line))


@bp.route('/api/cart/items/<int:item_id>', methods=['DELETE'])
@login_required
def remove_cart_item(item_id):
    cart_service.remove_cart_item(item_id, current_user.id)
    return jsonify({'ok': True})


@bp.route('/api/cart', methods=['DELETE'])
@login_required
def clear_cart():
    cart_service.clear_cart(current_user.id)
    return jsonify({'ok': True})


@bp.route('/api/purchase-requirements', methods=['POST'])
@login_required
def purchase_requirements():
    data = json_body()
    result = validate_purchase_requirements(
        item_from_payload(data), current_user.id)
    return jsonify(result.to_dict())
