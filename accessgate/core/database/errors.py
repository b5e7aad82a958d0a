"""
Translation of driver/ORM failures into StorageUnavailable.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from accessgate.core.exceptions import StorageUnavailable
from accessgate.utils import get_logger


log = get_logger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Re-raise any SQLAlchemy failure inside the block as StorageUnavailable.

    IntegrityError passes through untouched: uniqueness conflicts are
    decided by the caller, not reported as outages.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        log.error("Storage failure during %s: %s", operation, exc)
        raise StorageUnavailable(f"Storage unavailable during {operation}") from exc
