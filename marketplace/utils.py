from datetime import datetime, timezone
from flask import request
from marketplace.errors import ValidationFailed
import logging

logger = logging.getLogger(__name__)


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.debug("Rejected non-object JSON body at %s", request.path)
        raise ValidationFailed('Request body must be a JSON object')
    return data


def money(value):
    return float(value) if value is not None else None


def iso(value):
    return value.isoformat() if value is not None else None


def parse_datetime(value, field='date'):
    if value in (None, ''):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationFailed(f'{field} must be an ISO 8601 timestamp')
    if parsed.tzinfo is not None:
        # Stored timestamps are naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def optional_int(value, field):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f'{field} must be an integer')


def paginate_query(query, page=1, per_page=20):
    pagination = query.paginate(
        page=page,
        per_page=per_page,
        error_out=False
    )
    return {
        'items': pagination.items,
        'page': pagination.page,
        'pages': pagination.pages,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'has_next': pagination.has_next,
        'has_prev': pagination.has_prev
    }
