"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self
from uuid import UUID


@dataclass(frozen=True)
class _UUIDId:
    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ClassSessionId(_UUIDId):
    """Unique identifier for a ClassSession."""


@dataclass(frozen=True)
class BookingId(_UUIDId):
    """Unique identifier for a Booking."""


@dataclass(frozen=True)
class PackageId(_UUIDId):
    """Unique identifier for a catalog Package."""


@dataclass(frozen=True)
class UserPackageId(_UUIDId):
    """Unique identifier for a purchased UserPackage."""


@dataclass(frozen=True)
class PaymentId(_UUIDId):
    """Unique identifier for a Payment history record."""


@dataclass(frozen=True)
class UserId:
    """Identifier supplied by the identity provider."""

    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def zero(cls) -> Self:
        return cls(amount=Decimal("0"))

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")
