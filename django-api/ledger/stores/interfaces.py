"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. They hold no business
rules: every counter mutation is a single conditional statement and the
services decide what a failed condition means.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, TypeVar

from ledger.domain import (
    Booking,
    BookingId,
    BookingKind,
    ClassCategory,
    ClassSession,
    ClassSessionId,
    Money,
    Package,
    PackageId,
    Payment,
    PaymentId,
    PaymentLogStatus,
    PaymentMethod,
    PaymentStatus,
    UserId,
    UserPackage,
    UserPackageId,
    UserPackageStatus,
)

T = TypeVar("T")


@dataclass(frozen=True)
class ClassListFilters:
    """Schedule listing filters; start and end bound starts_at inclusively."""

    start: datetime | None = None
    end: datetime | None = None
    category: ClassCategory | None = None
    class_type_id: int | None = None


@dataclass(frozen=True)
class NewUserPackage:
    """Values for a freshly purchased package."""

    user_id: UserId
    package: Package
    start_at: datetime
    expire_at: datetime
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_note: str | None = None
    payment_slip_url: str | None = None


@dataclass(frozen=True)
class NewPayment:
    """Values for an appended payment history record."""

    user_id: UserId
    amount: Money
    method: PaymentMethod
    paid_at: datetime
    user_package_id: UserPackageId | None = None
    evidence_url: str | None = None
    note: str | None = None


class LedgerStore(ABC):
    """Interface for booking and credit-ledger persistence."""

    # Unit of work

    @abstractmethod
    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        """Run fn atomically; nested calls become savepoints.

        Raises:
            TransientError: On datastore timeout or lock contention.
        """
        ...

    # Classes

    @abstractmethod
    def get_class_session(self, class_id: ClassSessionId) -> ClassSession | None:
        """Return a class by ID, or None if not found."""
        ...

    @abstractmethod
    def list_class_sessions(self, filters: ClassListFilters) -> list[ClassSession]:
        """Return non-cancelled classes matching filters, ordered by starts_at."""
        ...

    @abstractmethod
    def try_reserve_seat(self, class_id: ClassSessionId) -> bool:
        """Increment booked_count only if the class is open and below capacity."""
        ...

    @abstractmethod
    def release_seat(self, class_id: ClassSessionId) -> None:
        """Decrement booked_count, never below zero."""
        ...

    # Bookings

    @abstractmethod
    def get_booking(self, booking_id: BookingId) -> Booking | None:
        ...

    @abstractmethod
    def find_active_booking(
        self, user_id: UserId, class_id: ClassSessionId
    ) -> Booking | None:
        """Return the user's confirmed booking for a class, if any."""
        ...

    @abstractmethod
    def list_bookings_for_user(self, user_id: UserId) -> list[Booking]:
        """Return the user's bookings, newest first."""
        ...

    @abstractmethod
    def insert_booking(
        self,
        user_id: UserId,
        class_id: ClassSessionId,
        kind: BookingKind,
        created_at: datetime,
        user_package_id: UserPackageId | None = None,
    ) -> Booking:
        """Insert a confirmed booking.

        Raises:
            AlreadyBookedError: If the user already holds a confirmed booking.
        """
        ...

    @abstractmethod
    def mark_booking_cancelled(self, booking_id: BookingId, at: datetime) -> bool:
        """Cancel a confirmed booking; False if it was not confirmed."""
        ...

    # Catalog packages

    @abstractmethod
    def get_package(self, package_id: PackageId) -> Package | None:
        ...

    @abstractmethod
    def list_packages(self, active_only: bool = True) -> list[Package]:
        """Return catalog packages ordered by price ascending."""
        ...

    # Purchased packages

    @abstractmethod
    def insert_user_package(self, new: NewUserPackage) -> UserPackage:
        """Insert a purchase in pending_activation state."""
        ...

    @abstractmethod
    def get_user_package(
        self, user_package_id: UserPackageId, for_update: bool = False
    ) -> UserPackage | None:
        """Return a purchase; for_update locks the row until commit."""
        ...

    @abstractmethod
    def list_user_packages_for_user(self, user_id: UserId) -> list[UserPackage]:
        """Return the user's purchases, newest first."""
        ...

    @abstractmethod
    def find_usable_user_package(
        self, user_id: UserId, now: datetime
    ) -> UserPackage | None:
        """Return the active, unexpired package with credits that expires first."""
        ...

    @abstractmethod
    def try_consume_credit(self, user_package_id: UserPackageId) -> bool:
        """Decrement credits_remaining only if it is above zero."""
        ...

    @abstractmethod
    def refund_credit(self, user_package_id: UserPackageId) -> bool:
        """Increment credits_remaining unless it already equals credits_granted."""
        ...

    @abstractmethod
    def save_payment_outcome(
        self,
        user_package_id: UserPackageId,
        payment_status: PaymentStatus,
        amount_paid: Money,
        status: UserPackageStatus,
        activated_at: datetime | None,
    ) -> UserPackage:
        """Persist a verification decision on a purchase."""
        ...

    # Payment history

    @abstractmethod
    def insert_payment(self, new: NewPayment) -> Payment:
        """Append a payment record with log_status=recorded."""
        ...

    @abstractmethod
    def get_payment(self, payment_id: PaymentId) -> Payment | None:
        ...

    @abstractmethod
    def list_payments_for_user_package(
        self, user_package_id: UserPackageId
    ) -> list[Payment]:
        """Return payment history for a purchase, newest first."""
        ...

    @abstractmethod
    def set_payment_log_status(
        self,
        user_package_id: UserPackageId,
        from_status: PaymentLogStatus,
        to_status: PaymentLogStatus,
    ) -> int:
        """Move a purchase's payments in from_status to to_status; return count."""
        ...

    @abstractmethod
    def update_payment_log_status(
        self, payment_id: PaymentId, to_status: PaymentLogStatus
    ) -> Payment:
        ...

    # Settings

    @abstractmethod
    def get_settings(self) -> dict[str, tuple[str, int]]:
        """Return raw settings as key -> (value, version)."""
        ...

    @abstractmethod
    def put_setting(self, key: str, value: str) -> int:
        """Store a setting value and return its new version."""
        ...
