import logging
from contextlib import contextmanager

from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from core.errors import Conflict, InvalidInput, StoreUnavailable

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(db: Session, conflict_message: str = "Resource already exists"):
    """Translate driver failures raised inside the block into service errors.

    The session is rolled back before re-raising so it stays usable for the
    rest of the request.
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity error: %s", exc.orig)
        raise Conflict(conflict_message) from exc
    except DataError as exc:
        db.rollback()
        logger.warning("Rejected value: %s", exc.orig)
        raise InvalidInput("Value does not fit the column it targets") from exc
    except (OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.error("Store unavailable: %s", exc)
        raise StoreUnavailable("Database unavailable") from exc


def check_retention_days(days) -> int:
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise InvalidInput("retention_days must be a non-negative integer")
    return days


def check_limit(limit, maximum: int = None) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidInput("limit must be a positive integer")
    if maximum is not None and limit > maximum:
        return maximum
    return limit
