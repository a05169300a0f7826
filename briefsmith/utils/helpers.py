"""Shared helpers for the service layer.

parse_date:         lenient date parsing (None on empty input)
commit_or_rollback: commit the session, rolling back before re-raising
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from briefsmith.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty input; raises ValueError for anything unparseable
    so the caller can report the field.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.") from exc


def commit_or_rollback():
    """Commit the current session; on failure roll back and re-raise unchanged."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise
