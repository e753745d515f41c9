from flask import jsonify
from marketplace.extensions import db
import logging

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    status_code = 400
    code = 'error'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(MarketplaceError):
    status_code = 404
    code = 'not_found'


class Forbidden(MarketplaceError):
    status_code = 403
    code = 'forbidden'


class InvalidState(MarketplaceError):
    code = 'invalid_state'


class AlreadyApproved(InvalidState):
    code = 'already_approved'


class QuoteNotAccepted(InvalidState):
    code = 'quote_not_accepted'


class Expired(MarketplaceError):
    code = 'expired'


class ValidationFailed(MarketplaceError):
    code = 'validation_failed'


class PurchaseBlocked(ValidationFailed):
    """Raised when the purchase validator refuses an add-to-cart."""
    status_code = 409
    code = 'purchase_blocked'

    def __init__(self, validation, message=None):
        super().__init__(
            message or 'Purchase requirements not met for this item')
        self.validation = validation

    def to_dict(self):
        data = super().to_dict()
        data['blocking_reason_codes'] = [
            c.value for c in self.validation.blocking_reason_codes]
        data['missing_requirements'] = list(
            self.validation.missing_requirements)
        return data


class Conflict(MarketplaceError):
    status_code = 409
    code = 'conflict'


def register_error_handlers(app):

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(e):
        logger.info("Request refused (%s): %s", e.code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'error': 'Not found', 'code': 'not_found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({'error': 'Method not allowed',
                        'code': 'method_not_allowed'}), 405

    @app.errorhandler(500)
    def handle_internal_error(e):
        db.session.rollback()
        logger.error("Unhandled error: %s", getattr(e, 'original_exception', e))
        return jsonify({'error': 'Internal server error',
                        'code': 'internal_error'}), 500
