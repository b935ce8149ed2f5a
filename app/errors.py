# app/errors.py
"""Error taxonomy for search, ranking and view tracking."""
from functools import wraps
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from .utils import logger


class SearchError(Exception):
    """Base exception for the search and analytics core."""
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidRange(SearchError):
    """A numeric range filter has min greater than max."""
    status_code = 400


class InvalidQuery(SearchError):
    """Malformed filter, text or geospatial input."""
    status_code = 400


class NotFound(SearchError):
    """Referenced listing or view event does not exist."""
    status_code = 404


class SearchUnavailable(SearchError):
    """The underlying store failed."""
    status_code = 503

    def __init__(self, message: str = "Search is temporarily unavailable"):
        super().__init__(message)


def surface_store_errors(operation: str):
    """Turn store failures into SearchUnavailable; the caller owns retries."""
    def deco(f):
        @wraps(f)
        def wrapper(db, *args, **kwargs):
            try:
                return f(db, *args, **kwargs)
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception("Store failure during %s: %s", operation, e)
                raise SearchUnavailable() from e
        return wrapper
    return deco
