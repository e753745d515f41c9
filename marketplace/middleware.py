from flask import request, jsonify
from flask_login import current_user, logout_user
from functools import wraps
from marketplace.models import UserRole
import logging

logger = logging.getLogger(__name__)

API_PREFIX = '/api/'

# Exact API paths reachable without a session
LOGIN_WHITELIST = frozenset({
    '/api/auth/login',
})


def _not_logged_in():
    return jsonify({
        'error': 'Not logged in',
        'code': 'unauthorized',
        'login_required': True,
    }), 401


def setup_auth_middleware(app):

    @app.before_request
    def require_login():
        path = request.path
        if not path.startswith(API_PREFIX) or path in LOGIN_WHITELIST:
            return None

        if not current_user.is_authenticated:
            return _not_logged_in()

        # Sessions outlive deactivation; drop them on the next request
        if not current_user.is_active:
            logger.warning(
                "Rejected request from deactivated user %s", current_user.id)
            logout_user()
            return jsonify({'error': 'Account is disabled',
                            'code': 'forbidden'}), 403

        return None


def role_required(*allowed_roles):
    """Restrict a view to the given roles (``UserRole`` or role names)."""
    allowed = frozenset(
        r.value if isinstance(r, UserRole) else r for r in allowed_roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _not_logged_in()

            if current_user.role.value not in allowed:
                logger.warning(
                    "User %s (%s) refused at %s, requires one of %s",
                    current_user.id,
                    current_user.role.value,
                    request.path,
                    sorted(allowed),
                )
                return jsonify({'error': 'Insufficient permissions',
                                'code': 'forbidden'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
