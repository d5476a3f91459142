"""Process-local LedgerStore.

One re-entrant lock serializes every unit of work, which gives the same
guarantees the database gives the Django store: conditional counter updates
cannot interleave, and a failed transaction restores the previous state.
"""

import threading
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, TypeVar

from ledger.domain import (
    Booking,
    BookingId,
    BookingKind,
    BookingStatus,
    Capacity,
    ClassCategory,
    ClassSession,
    ClassSessionId,
    Money,
    Package,
    PackageId,
    PackageType,
    Payment,
    PaymentId,
    PaymentLogStatus,
    PaymentStatus,
    UserId,
    UserPackage,
    UserPackageId,
    UserPackageStatus,
)
from ledger.domain.errors import AlreadyBookedError
from ledger.stores.interfaces import (
    ClassListFilters,
    LedgerStore,
    NewPayment,
    NewUserPackage,
)

T = TypeVar("T")

_TABLES = ("_classes", "_bookings", "_packages", "_user_packages", "_payments", "_settings")


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed store for tests and local runs."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._classes: dict[uuid.UUID, ClassSession] = {}
        self._bookings: dict[uuid.UUID, Booking] = {}
        self._packages: dict[uuid.UUID, Package] = {}
        self._user_packages: dict[uuid.UUID, UserPackage] = {}
        self._payments: dict[uuid.UUID, Payment] = {}
        self._settings: dict[str, tuple[str, int]] = {}

    # Seeding

    def add_class_session(
        self,
        *,
        starts_at: datetime,
        ends_at: datetime,
        capacity: int,
        title: str = "Morning Flow",
        category: ClassCategory = ClassCategory.CLASS,
        booked_count: int = 0,
        is_cancelled: bool = False,
        price: Decimal = Decimal("0"),
        class_type_id: int | None = None,
    ) -> ClassSession:
        session = ClassSession(
            id=ClassSessionId(uuid.uuid4()),
            title=title,
            category=category,
            starts_at=starts_at,
            ends_at=ends_at,
            capacity=Capacity(capacity),
            booked_count=booked_count,
            is_cancelled=is_cancelled,
            price=Money(price),
            class_type_id=class_type_id,
        )
        with self._lock:
            self._classes[session.id.value] = session
        return session

    def add_package(
        self,
        *,
        name: str = "10 Class Pass",
        type: PackageType = PackageType.CREDIT,
        credits: int | None = 10,
        duration_days: int = 30,
        price: Decimal = Decimal("3000"),
        is_active: bool = True,
    ) -> Package:
        package = Package(
            id=PackageId(uuid.uuid4()),
            name=name,
            type=type,
            credits=credits if type is PackageType.CREDIT else None,
            duration_days=duration_days,
            price=Money(price),
            is_active=is_active,
        )
        with self._lock:
            self._packages[package.id.value] = package
        return package

    def replace_user_package(self, user_package: UserPackage) -> None:
        with self._lock:
            self._user_packages[user_package.id.value] = user_package

    # Unit of work

    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        with self._lock:
            snapshot = {name: dict(getattr(self, name)) for name in _TABLES}
            try:
                return fn()
            except BaseException:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                raise

    # Classes

    def get_class_session(self, class_id: ClassSessionId) -> ClassSession | None:
        with self._lock:
            return self._classes.get(class_id.value)

    def list_class_sessions(self, filters: ClassListFilters) -> list[ClassSession]:
        with self._lock:
            sessions = [s for s in self._classes.values() if not s.is_cancelled]
        if filters.start is not None:
            sessions = [s for s in sessions if s.starts_at >= filters.start]
        if filters.end is not None:
            sessions = [s for s in sessions if s.starts_at <= filters.end]
        if filters.category is not None:
            sessions = [s for s in sessions if s.category is filters.category]
        if filters.class_type_id is not None:
            sessions = [s for s in sessions if s.class_type_id == filters.class_type_id]
        return sorted(sessions, key=lambda s: s.starts_at)

    def try_reserve_seat(self, class_id: ClassSessionId) -> bool:
        with self._lock:
            session = self._classes.get(class_id.value)
            if session is None or session.is_cancelled or session.is_full:
                return False
            self._classes[class_id.value] = replace(
                session, booked_count=session.booked_count + 1
            )
            return True

    def release_seat(self, class_id: ClassSessionId) -> None:
        with self._lock:
            session = self._classes.get(class_id.value)
            if session is not None and session.booked_count > 0:
                self._classes[class_id.value] = replace(
                    session, booked_count=session.booked_count - 1
                )

    # Bookings

    def get_booking(self, booking_id: BookingId) -> Booking | None:
        with self._lock:
            return self._bookings.get(booking_id.value)

    def find_active_booking(
        self, user_id: UserId, class_id: ClassSessionId
    ) -> Booking | None:
        with self._lock:
            for booking in self._bookings.values():
                if booking.user_id == user_id and booking.class_id == class_id and booking.is_active:
                    return booking
        return None

    def list_bookings_for_user(self, user_id: UserId) -> list[Booking]:
        with self._lock:
            bookings = [b for b in self._bookings.values() if b.user_id == user_id]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def insert_booking(
        self,
        user_id: UserId,
        class_id: ClassSessionId,
        kind: BookingKind,
        created_at: datetime,
        user_package_id: UserPackageId | None = None,
    ) -> Booking:
        with self._lock:
            if self.find_active_booking(user_id, class_id) is not None:
                raise AlreadyBookedError()
            booking = Booking(
                id=BookingId(uuid.uuid4()),
                user_id=user_id,
                class_id=class_id,
                status=BookingStatus.CONFIRMED,
                kind=kind,
                created_at=created_at,
                user_package_id=user_package_id,
            )
            self._bookings[booking.id.value] = booking
            return booking

    def mark_booking_cancelled(self, booking_id: BookingId, at: datetime) -> bool:
        with self._lock:
            booking = self._bookings.get(booking_id.value)
            if booking is None or not booking.is_active:
                return False
            self._bookings[booking_id.value] = replace(
                booking, status=BookingStatus.CANCELLED, cancelled_at=at
            )
            return True

    # Catalog packages

    def get_package(self, package_id: PackageId) -> Package | None:
        with self._lock:
            return self._packages.get(package_id.value)

    def list_packages(self, active_only: bool = True) -> list[Package]:
        with self._lock:
            packages = list(self._packages.values())
        if active_only:
            packages = [p for p in packages if p.is_active]
        return sorted(packages, key=lambda p: (p.price.amount, p.name))

    # Purchased packages

    def insert_user_package(self, new: NewUserPackage) -> UserPackage:
        credits = new.package.credits if new.package.type is PackageType.CREDIT else None
        user_package = UserPackage(
            id=UserPackageId(uuid.uuid4()),
            user_id=new.user_id,
            package_id=new.package.id,
            package_type=new.package.type,
            credits_remaining=credits,
            credits_granted=credits,
            status=UserPackageStatus.PENDING_ACTIVATION,
            start_at=new.start_at,
            expire_at=new.expire_at,
            payment_method=new.payment_method,
            payment_status=new.payment_status,
            amount_due=new.package.price,
            amount_paid=Money.zero(),
            payment_note=new.payment_note,
            payment_slip_url=new.payment_slip_url,
        )
        with self._lock:
            self._user_packages[user_package.id.value] = user_package
        return user_package

    def get_user_package(
        self, user_package_id: UserPackageId, for_update: bool = False
    ) -> UserPackage | None:
        with self._lock:
            return self._user_packages.get(user_package_id.value)

    def list_user_packages_for_user(self, user_id: UserId) -> list[UserPackage]:
        with self._lock:
            packages = [p for p in self._user_packages.values() if p.user_id == user_id]
        return sorted(packages, key=lambda p: p.start_at, reverse=True)

    def find_usable_user_package(
        self, user_id: UserId, now: datetime
    ) -> UserPackage | None:
        with self._lock:
            usable = [
                p
                for p in self._user_packages.values()
                if p.user_id == user_id and p.is_usable(now)
            ]
        return min(usable, key=lambda p: p.expire_at, default=None)

    def try_consume_credit(self, user_package_id: UserPackageId) -> bool:
        with self._lock:
            user_package = self._user_packages.get(user_package_id.value)
            if user_package is None or not user_package.credits_remaining:
                return False
            self._user_packages[user_package_id.value] = replace(
                user_package, credits_remaining=user_package.credits_remaining - 1
            )
            return True

    def refund_credit(self, user_package_id: UserPackageId) -> bool:
        with self._lock:
            user_package = self._user_packages.get(user_package_id.value)
            if user_package is None or user_package.credits_remaining is None:
                return False
            if user_package.credits_remaining >= (user_package.credits_granted or 0):
                return False
            self._user_packages[user_package_id.value] = replace(
                user_package, credits_remaining=user_package.credits_remaining + 1
            )
            return True

    def save_payment_outcome(
        self,
        user_package_id: UserPackageId,
        payment_status: PaymentStatus,
        amount_paid: Money,
        status: UserPackageStatus,
        activated_at: datetime | None,
    ) -> UserPackage:
        with self._lock:
            updated = replace(
                self._user_packages[user_package_id.value],
                payment_status=payment_status,
                amount_paid=amount_paid,
                status=status,
                activated_at=activated_at,
            )
            self._user_packages[user_package_id.value] = updated
            return updated

    # Payment history

    def insert_payment(self, new: NewPayment) -> Payment:
        payment = Payment(
            id=PaymentId(uuid.uuid4()),
            user_id=new.user_id,
            amount=new.amount,
            method=new.method,
            log_status=PaymentLogStatus.RECORDED,
            paid_at=new.paid_at,
            user_package_id=new.user_package_id,
            evidence_url=new.evidence_url,
            note=new.note,
        )
        with self._lock:
            self._payments[payment.id.value] = payment
        return payment

    def get_payment(self, payment_id: PaymentId) -> Payment | None:
        with self._lock:
            return self._payments.get(payment_id.value)

    def list_payments_for_user_package(
        self, user_package_id: UserPackageId
    ) -> list[Payment]:
        with self._lock:
            payments = [
                p for p in self._payments.values() if p.user_package_id == user_package_id
            ]
        return sorted(payments, key=lambda p: p.paid_at, reverse=True)

    def set_payment_log_status(
        self,
        user_package_id: UserPackageId,
        from_status: PaymentLogStatus,
        to_status: PaymentLogStatus,
    ) -> int:
        count = 0
        with self._lock:
            for key, payment in list(self._payments.items()):
                if payment.user_package_id == user_package_id and payment.log_status is from_status:
                    self._payments[key] = replace(payment, log_status=to_status)
                    count += 1
        return count

    def update_payment_log_status(
        self, payment_id: PaymentId, to_status: PaymentLogStatus
    ) -> Payment:
        with self._lock:
            updated = replace(self._payments[payment_id.value], log_status=to_status)
            self._payments[payment_id.value] = updated
            return updated

    # Settings

    def get_settings(self) -> dict[str, tuple[str, int]]:
        with self._lock:
            return dict(self._settings)

    def put_setting(self, key: str, value: str) -> int:
        with self._lock:
            _, version = self._settings.get(key, ("", 0))
            self._settings[key] = (value, version + 1)
            return version + 1
