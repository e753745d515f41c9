from datetime import datetime
from sqlalchemy import update
from marketplace.extensions import db
from marketplace.models import BoostedItem
import logging

logger = logging.getLogger(__name__)


def expire_old_boosts(now=None):
    now = now or datetime.utcnow()
    result = db.session.execute(
        update(BoostedItem)
        .where(
            BoostedItem.is_active.is_(True),
            BoostedItem.end_date < now,
        )
        .values(is_active=False)
        .execution_options(synchronize_session='fetch')
    )
    db.session.commit()
    if result.rowcount:
        logger.info("Deactivated %s expired boost(s)", result.rowcount)
    return result.rowcount
