from contextlib import contextmanager
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


@contextmanager
def atomic():
    """Commit everything written inside the block, or nothing."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
