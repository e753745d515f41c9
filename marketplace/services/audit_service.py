from marketplace.extensions import db
from marketplace.models import AuditLog
from flask import has_request_context, request
import logging
import json

logger = logging.getLogger(__name__)
major_logger = logging.getLogger('major_events')

# Money-moving and gate-opening actions also go to the major events log
MAJOR_ACTION_PREFIXES = (
    'LOGIN',
    'LOGOUT',
    'QUOTE_ACCEPT',
    'DESIGN_APPROVE',
    'DESIGN_COPY',
    'CHECKOUT',
    'PAYMENT_',
    'TRANSACTION_',
    'RETURN_',
    'REFUND_',
)


def _should_log_major(action):
    if not action:
        return False
    return action.startswith(MAJOR_ACTION_PREFIXES)


def _brief(payload):
    if payload is None:
        return None
    try:
        text = json.dumps(
            payload, ensure_ascii=False, separators=(',', ':'), default=str)
    except (TypeError, ValueError):
        return None
    if len(text) > 600:
        text = text[:600] + '...'
    return text


def log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action='',
        target_type=None,
        target_id=None,
        payload=None,
        ip=None,
        user_agent=None):
    path = None
    method = None
    if has_request_context():
        ip = ip or request.remote_addr
        user_agent = user_agent or request.headers.get('User-Agent')
        path = request.path
        method = request.method

    try:
        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            target_type=target_type,
            target_id=target_id,
            ip=ip,
            user_agent=user_agent
        )
        if payload:
            audit.set_payload(payload)
        db.session.add(audit)
        db.session.commit()
    except Exception as e:
        logger.error(f"Failed to log audit: {e}", exc_info=True)
        db.session.rollback()
        return

    payload_brief = _brief(payload)
    logger.info(
        "AUDIT action=%s actor_role=%s actor_id=%s target_type=%s "
        "target_id=%s method=%s path=%s payload=%s",
        action,
        actor_role,
        actor_id,
        target_type,
        target_id,
        method,
        path,
        payload_brief,
    )
    if _should_log_major(action):
        major_logger.info(
            "action=%s actor_role=%s actor_id=%s target_type=%s "
            "target_id=%s payload=%s",
            action,
            actor_role,
            actor_id,
            target_type,
            target_id,
            payload_brief,
        )
