import uuid

from homexpert.extensions import db
from homexpert.utils.dates import utcnow


def new_id():
    return str(uuid.uuid4())


def is_valid_id(value):
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return False
    return True


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
