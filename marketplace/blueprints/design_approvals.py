from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from marketplace.errors import ValidationFailed
from marketplace.models import DesignContext
from marketplace.serializers import design_payload
from marketplace.services import design_service, notification_service
from marketplace.services.audit_service import log_audit
from marketplace.services.catalog_service import item_from_payload
from marketplace.utils import json_body, optional_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('design_approvals', __name__)


def _audit(action, design, payload=None):
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action=action,
        target_type='DESIGN_APPROVAL',
        target_id=design.id,
        payload=payload
    )


@bp.route(
    '/api/conversations/<int:conversation_id>/design-approvals',
    methods=['POST'])
@login_required
def create_design_approval(conversation_id):
    data = json_body()
    try:
        context = DesignContext(data.get('context', 'product'))
    except ValueError:
        raise ValidationFailed('context must be "product" or "quote"')

    design = design_service.create_design_approval(
        conversation_id,
        current_user.id,
        item_from_payload(data),
        data.get('design_files') or [],
        context=context,
        quote_id=optional_int(data.get('quote_id'), 'quote_id'),
    )
    _audit('DESIGN_SUBMIT', design, {
        'conversation_id': conversation_id,
        'context': context.value,
        'file_count': len(design.get_design_files()),
    })
    notification_service.notify_design_submitted(design)
    return jsonify(design_payload(design)), 201


@bp.route('/api/design-approvals/<int:design_id>', methods=['GET'])
@login_required
def get_design_approval(design_id):
    design = design_service.get_design_for_participant(
        design_id, current_user.id)
    return jsonify(design_payload(design))


@bp.route('/api/design-approvals/<int:design_id>/approve', methods=['POST'])
@login_required
def approve_design(design_id):
    data = json_body()
    design = design_service.approve_design(
        design_id, current_user.id, notes=data.get('notes'))
    _audit('DESIGN_APPROVE', design)
    notification_service.notify_design_approved(design)
    return jsonify(design_payload(design))


@bp.route('/api/design-approvals/<int:design_id>/reject', methods=['POST'])
@login_required
def reject_design(design_id):
    data = json_body()
    design = design_service.reject_design(
        design_id, current_user.id, data.get('notes'))
    _audit('DESIGN_REJECT', design)
    notification_service.notify_design_rejected(design)
    return jsonify(design_payload(design))


@bp.route(
    '/api/design-approvals/<int:design_id>/request-changes',
    methods=['POST'])
@login_required
def request_design_changes(design_id):
    data = json_body()
    design = design_service.request_design_changes(
        design_id, current_user.id, data.get('notes'))
    _audit('DESIGN_REQUEST_CHANGES', design)
    notification_service.notify_design_changes_requested(design)
    return jsonify(design_payload(design))


@bp.route('/api/design-approvals/<int:design_id>/resubmit', methods=['POST'])
@login_required
def resubmit_design(design_id):
    data = json_body()
    design = design_service.resubmit_design(
        design_id, current_user.id, data.get('design_files') or [])
    _audit('DESIGN_RESUBMIT', design, {
        'file_count': len(design.get_design_files())})
    notification_service.notify_design_submitted(design)
    return jsonify(design_payload(design))


@bp.route('/api/design-approvals/<int:design_id>/copy', methods=['POST'])
@login_required
def copy_design(design_id):
    data = json_body()
    design = design_service.copy_design_approval_to_target(
        design_id,
        current_user.id,
        target_variant_id=optional_int(
            data.get('target_variant_id'), 'target_variant_id'),
        target_package_id=optional_int(
            data.get('target_package_id'), 'target_package_id'),
    )
    _audit('DESIGN_COPY', design, {'source_id': design_id})
    return jsonify(design_payload(design)), 201


@bp.route('/api/design-approvals/library', methods=['GET'])
@login_required
def design_library():
    designs = design_service.get_approved_designs_library(current_user.id)
    return jsonify({'items': [design_payload(d) for d in designs]})


@bp.route('/api/products/<int:product_id>/approved-variants', methods=['GET'])
@login_required
def approved_variants(product_id):
    variant_ids = design_service.get_product_approved_variants(
        current_user.id, product_id)
    return jsonify({'product_id': product_id, 'variant_ids': variant_ids})
