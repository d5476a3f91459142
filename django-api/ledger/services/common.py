"""Helpers shared by the ledger services."""

from datetime import datetime, timezone
from typing import Callable, TypeVar

from ledger.domain.errors import InvalidIdError

Clock = Callable[[], datetime]

IdT = TypeVar("IdT")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_id(id_type: type[IdT], raw: str) -> IdT:
    """Parse a UUID string into a typed identifier.

    Raises:
        InvalidIdError: If raw is not a valid UUID.
    """
    try:
        return id_type.from_string(str(raw))
    except (ValueError, TypeError, AttributeError) as exc:
        raise InvalidIdError() from exc
