from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC now at second precision, the format every table stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, from where, and the clock the operation runs against.

    Built once per request and handed to every service call that mutates
    state, so no service reads the caller or the time from ambient state.
    `user_id` is None for system work such as retention purges.
    """

    user_id: Optional[int] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    now: datetime = field(default_factory=utcnow)

    @classmethod
    def system(cls, now: Optional[datetime] = None) -> "RequestContext":
        return cls(user_id=None, ip_address="system", user_agent="system", now=now or utcnow())


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a caller-supplied datetime to the naive UTC form stored."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
