import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from core.errors import Conflict, InvalidInput, StoreUnavailable
from services.store import check_limit, check_retention_days, store_errors


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


@pytest.mark.parametrize(
    "raised, expected",
    [
        (DataError("INSERT", {}, Exception("value too long for type character varying(50)")), InvalidInput),
        (IntegrityError("INSERT", {}, Exception("duplicate key")), Conflict),
        (OperationalError("SELECT", {}, Exception("server closed the connection")), StoreUnavailable),
    ],
)
def test_store_errors_translates_and_rolls_back(raised, expected):
    session = RecordingSession()
    with pytest.raises(expected):
        with store_errors(session):
            raise raised
    assert session.rollbacks == 1


def test_store_errors_leaves_other_exceptions_alone():
    session = RecordingSession()
    with pytest.raises(KeyError):
        with store_errors(session):
            raise KeyError("x")
    assert session.rollbacks == 0


def test_check_limit_and_retention():
    assert check_limit(5) == 5
    assert check_limit(5000, maximum=1000) == 1000
    assert check_retention_days(0) == 0
    for bad in (0, -1, True, "10"):
        with pytest.raises(InvalidInput):
            check_limit(bad)
    for bad in (-1, 1.5, None):
        with pytest.raises(InvalidInput):
            check_retention_days(bad)
