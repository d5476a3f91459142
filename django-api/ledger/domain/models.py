"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in ledger/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ledger.domain.value_objects import (
    BookingId,
    Capacity,
    ClassSessionId,
    Money,
    PackageId,
    PaymentId,
    UserId,
    UserPackageId,
)


class ClassCategory(Enum):
    CLASS = "class"
    WORKSHOP = "workshop"
    RETREAT = "retreat"
    SPECIAL_EVENT = "special_event"
    TEACHER_TRAINING = "teacher_training"


class BookingStatus(Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class BookingKind(Enum):
    PAID = "paid"
    PACKAGE_CREDIT = "package_credit"


class PackageType(Enum):
    CREDIT = "credit"
    UNLIMITED = "unlimited"


class UserPackageStatus(Enum):
    PENDING_ACTIVATION = "pending_activation"
    ACTIVE = "active"
    EXPIRED = "expired"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PENDING_VERIFICATION = "pending_verification"
    PARTIAL = "partial"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentLogStatus(Enum):
    RECORDED = "recorded"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentMethod(Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    PROMPTPAY = "promptpay"
    CARD = "card"
    OTHER = "other"


class ProductType(Enum):
    CLASS_BOOKING = "class_booking"
    WORKSHOP = "workshop"
    TEACHER_TRAINING = "teacher_training"
    PACKAGES = "packages"


@dataclass(frozen=True)
class ClassSession:
    """Domain representation of a scheduled class."""

    id: ClassSessionId
    title: str
    category: ClassCategory
    starts_at: datetime
    ends_at: datetime
    capacity: Capacity
    booked_count: int
    is_cancelled: bool
    price: Money
    class_type_id: int | None = None

    @property
    def is_full(self) -> bool:
        return self.booked_count >= self.capacity.value

    @property
    def seats_left(self) -> int:
        return max(0, self.capacity.value - self.booked_count)


@dataclass(frozen=True)
class Booking:
    """Domain representation of a seat held by a user in a class."""

    id: BookingId
    user_id: UserId
    class_id: ClassSessionId
    status: BookingStatus
    kind: BookingKind
    created_at: datetime
    cancelled_at: datetime | None = None
    user_package_id: UserPackageId | None = None

    @property
    def is_active(self) -> bool:
        return self.status is BookingStatus.CONFIRMED


@dataclass(frozen=True)
class Package:
    """Domain representation of a catalog package."""

    id: PackageId
    name: str
    type: PackageType
    credits: int | None
    duration_days: int
    price: Money
    is_active: bool


@dataclass(frozen=True)
class UserPackage:
    """Domain representation of a package purchased by a user."""

    id: UserPackageId
    user_id: UserId
    package_id: PackageId
    package_type: PackageType
    credits_remaining: int | None
    credits_granted: int | None
    status: UserPackageStatus
    start_at: datetime
    expire_at: datetime
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    amount_due: Money
    amount_paid: Money
    activated_at: datetime | None = None
    payment_note: str | None = None
    payment_slip_url: str | None = None

    def effective_status(self, now: datetime) -> UserPackageStatus:
        """Stored status, except that anything past expire_at reads as expired."""
        if now > self.expire_at:
            return UserPackageStatus.EXPIRED
        return self.status

    def is_usable(self, now: datetime) -> bool:
        if self.effective_status(now) is not UserPackageStatus.ACTIVE:
            return False
        if self.package_type is PackageType.UNLIMITED:
            return True
        return (self.credits_remaining or 0) > 0


@dataclass(frozen=True)
class Payment:
    """Append-only payment history record."""

    id: PaymentId
    user_id: UserId
    amount: Money
    method: PaymentMethod
    log_status: PaymentLogStatus
    paid_at: datetime
    user_package_id: UserPackageId | None = None
    evidence_url: str | None = None
    note: str | None = None
