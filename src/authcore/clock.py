"""Injectable time source.

Every component that reasons about expiry or rate windows takes a ``Clock``
instead of calling ``datetime.now`` so tests can pin and advance time.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)
