from flask import Blueprint, jsonify
from flask_login import (
    login_user,
    logout_user,
    login_required,
    current_user,
)
from marketplace.extensions import db
from marketplace.models import User
from marketplace.services.audit_service import log_audit
from marketplace.utils import json_body, money
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)


@bp.route('/api/auth/login', methods=['POST'])
def login():
    data = json_body()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'error': 'Email and password cannot be empty'}), 400

    user = User.query.filter_by(email=email).first()

    if user and user.check_password(password) and user.is_active:
        login_user(user, remember=True)
        user.last_login_at = datetime.utcnow()
        db.session.commit()

        log_audit(
            actor_id=user.id,
            actor_role=user.role.value,
            action='LOGIN_SUCCESS',
            target_type='USER',
            target_id=user.id,
            payload={'event': 'login_success'}
        )
        return jsonify({'ok': True, 'role': user.role.value,
                        'user_id': user.id})

    logger.info("Failed login attempt for %s", email)
    log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action='LOGIN_FAILED',
        target_type='USER',
        target_id=None,
        payload={
            'reason': 'invalid_credentials' if user else 'user_not_found'})
    return jsonify({'error': 'Invalid email or password'}), 401


@bp.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='LOGOUT',
        target_type='USER',
        target_id=current_user.id
    )
    logout_user()
    return jsonify({'ok': True})


@bp.route('/api/auth/me', methods=['GET'])
@login_required
def me():
    return jsonify({
        'id': current_user.id,
        'email': current_user.email,
        'username': current_user.username,
        'role': current_user.role.value,
        'commission_rate': money(current_user.commission_rate),
    })
