"""Django ORM implementation of the LedgerStore.

Counters are only ever changed through single conditional UPDATE statements
(``... WHERE booked_count < capacity``), so concurrent requests are
serialized on the row by the database and no read-then-write race exists.
"""

import logging
from datetime import datetime
from typing import Callable, TypeVar

from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F, Q

from ledger import models
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
    PaymentMethod,
    PaymentStatus,
    UserId,
    UserPackage,
    UserPackageId,
    UserPackageStatus,
)
from ledger.domain.errors import AlreadyBookedError, TransientError
from ledger.stores.interfaces import (
    ClassListFilters,
    LedgerStore,
    NewPayment,
    NewUserPackage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_class_session(row: models.ClassSession) -> ClassSession:
    return ClassSession(
        id=ClassSessionId(row.id),
        title=row.title,
        category=ClassCategory(row.category),
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        capacity=Capacity(row.capacity),
        booked_count=row.booked_count,
        is_cancelled=row.is_cancelled,
        price=Money(row.price),
        class_type_id=row.class_type_id,
    )


def _to_booking(row: models.Booking) -> Booking:
    return Booking(
        id=BookingId(row.id),
        user_id=UserId(row.user_id),
        class_id=ClassSessionId(row.class_session_id),
        status=BookingStatus(row.status),
        kind=BookingKind(row.kind),
        created_at=row.created_at,
        cancelled_at=row.cancelled_at,
        user_package_id=UserPackageId(row.user_package_id) if row.user_package_id else None,
    )


def _to_package(row: models.Package) -> Package:
    return Package(
        id=PackageId(row.id),
        name=row.name,
        type=PackageType(row.type),
        credits=row.credits,
        duration_days=row.duration_days,
        price=Money(row.price),
        is_active=row.is_active,
    )


def _to_user_package(row: models.UserPackage) -> UserPackage:
    return UserPackage(
        id=UserPackageId(row.id),
        user_id=UserId(row.user_id),
        package_id=PackageId(row.package_id),
        package_type=PackageType(row.package.type),
        credits_remaining=row.credits_remaining,
        credits_granted=row.credits_granted,
        status=UserPackageStatus(row.status),
        start_at=row.start_at,
        expire_at=row.expire_at,
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        amount_due=Money(row.amount_due),
        amount_paid=Money(row.amount_paid),
        activated_at=row.activated_at,
        payment_note=row.payment_note,
        payment_slip_url=row.payment_slip_url,
    )


def _to_payment(row: models.Payment) -> Payment:
    return Payment(
        id=PaymentId(row.id),
        user_id=UserId(row.user_id),
        amount=Money(row.amount),
        method=PaymentMethod(row.method),
        log_status=PaymentLogStatus(row.log_status),
        paid_at=row.paid_at,
        user_package_id=UserPackageId(row.user_package_id) if row.user_package_id else None,
        evidence_url=row.evidence_url,
        note=row.note,
    )


class DjangoLedgerStore(LedgerStore):
    """PostgreSQL-backed ledger store using Django ORM."""

    def run_in_transaction(self, fn: Callable[[], T]) -> T:
        try:
            with transaction.atomic():
                return fn()
        except OperationalError as exc:
            # Lock timeouts, statement timeouts and serialization failures.
            logger.warning("Ledger transaction aborted: %s", exc)
            raise TransientError() from exc

    # Classes

    def get_class_session(self, class_id: ClassSessionId) -> ClassSession | None:
        row = models.ClassSession.objects.filter(pk=class_id.value).first()
        return _to_class_session(row) if row else None

    def list_class_sessions(self, filters: ClassListFilters) -> list[ClassSession]:
        qs = models.ClassSession.objects.filter(is_cancelled=False)
        if filters.start is not None:
            qs = qs.filter(starts_at__gte=filters.start)
        if filters.end is not None:
            qs = qs.filter(starts_at__lte=filters.end)
        if filters.category is not None:
            qs = qs.filter(category__iexact=filters.category.value)
        if filters.class_type_id is not None:
            qs = qs.filter(class_type_id=filters.class_type_id)
        return [_to_class_session(row) for row in qs.order_by("starts_at")]

    def try_reserve_seat(self, class_id: ClassSessionId) -> bool:
        updated = models.ClassSession.objects.filter(
            pk=class_id.value,
            is_cancelled=False,
            booked_count__lt=F("capacity"),
        ).update(booked_count=F("booked_count") + 1)
        return updated == 1

    def release_seat(self, class_id: ClassSessionId) -> None:
        models.ClassSession.objects.filter(
            pk=class_id.value, booked_count__gt=0
        ).update(booked_count=F("booked_count") - 1)

    # Bookings

    def get_booking(self, booking_id: BookingId) -> Booking | None:
        row = models.Booking.objects.filter(pk=booking_id.value).first()
        return _to_booking(row) if row else None

    def find_active_booking(
        self, user_id: UserId, class_id: ClassSessionId
    ) -> Booking | None:
        row = models.Booking.objects.filter(
            user_id=user_id.value,
            class_session_id=class_id.value,
            status=models.Booking.Status.CONFIRMED,
        ).first()
        return _to_booking(row) if row else None

    def list_bookings_for_user(self, user_id: UserId) -> list[Booking]:
        rows = models.Booking.objects.filter(user_id=user_id.value).order_by("-created_at")
        return [_to_booking(row) for row in rows]

    def insert_booking(
        self,
        user_id: UserId,
        class_id: ClassSessionId,
        kind: BookingKind,
        created_at: datetime,
        user_package_id: UserPackageId | None = None,
    ) -> Booking:
        try:
            with transaction.atomic():
                row = models.Booking.objects.create(
                    user_id=user_id.value,
                    class_session_id=class_id.value,
                    user_package_id=user_package_id.value if user_package_id else None,
                    kind=kind.value,
                    status=models.Booking.Status.CONFIRMED,
                    created_at=created_at,
                )
        except IntegrityError as exc:
            raise AlreadyBookedError() from exc
        return _to_booking(row)

    def mark_booking_cancelled(self, booking_id: BookingId, at: datetime) -> bool:
        updated = models.Booking.objects.filter(
            pk=booking_id.value, status=models.Booking.Status.CONFIRMED
        ).update(status=models.Booking.Status.CANCELLED, cancelled_at=at)
        return updated == 1

    # Catalog packages

    def get_package(self, package_id: PackageId) -> Package | None:
        row = models.Package.objects.filter(pk=package_id.value).first()
        return _to_package(row) if row else None

    def list_packages(self, active_only: bool = True) -> list[Package]:
        qs = models.Package.objects.all()
        if active_only:
            qs = qs.filter(is_active=True)
        return [_to_package(row) for row in qs.order_by("price", "name")]

    # Purchased packages

    def insert_user_package(self, new: NewUserPackage) -> UserPackage:
        credits = new.package.credits if new.package.type is PackageType.CREDIT else None
        row = models.UserPackage.objects.create(
            user_id=new.user_id.value,
            package_id=new.package.id.value,
            credits_remaining=credits,
            credits_granted=credits,
            status=models.UserPackage.Status.PENDING_ACTIVATION,
            start_at=new.start_at,
            expire_at=new.expire_at,
            payment_method=new.payment_method.value,
            payment_status=new.payment_status.value,
            payment_note=new.payment_note,
            payment_slip_url=new.payment_slip_url,
            amount_due=new.package.price.amount,
            amount_paid=0,
        )
        return self.get_user_package(UserPackageId(row.id))

    def get_user_package(
        self, user_package_id: UserPackageId, for_update: bool = False
    ) -> UserPackage | None:
        qs = models.UserPackage.objects.select_related("package")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        row = qs.filter(pk=user_package_id.value).first()
        return _to_user_package(row) if row else None

    def list_user_packages_for_user(self, user_id: UserId) -> list[UserPackage]:
        rows = (
            models.UserPackage.objects.select_related("package")
            .filter(user_id=user_id.value)
            .order_by("-created_at")
        )
        return [_to_user_package(row) for row in rows]

    def find_usable_user_package(
        self, user_id: UserId, now: datetime
    ) -> UserPackage | None:
        row = (
            models.UserPackage.objects.select_related("package")
            .filter(
                user_id=user_id.value,
                status=models.UserPackage.Status.ACTIVE,
                expire_at__gte=now,
            )
            .filter(
                Q(package__type=models.Package.Type.UNLIMITED)
                | Q(credits_remaining__gt=0)
            )
            .order_by("expire_at")
            .first()
        )
        return _to_user_package(row) if row else None

    def try_consume_credit(self, user_package_id: UserPackageId) -> bool:
        updated = models.UserPackage.objects.filter(
            pk=user_package_id.value, credits_remaining__gt=0
        ).update(credits_remaining=F("credits_remaining") - 1)
        return updated == 1

    def refund_credit(self, user_package_id: UserPackageId) -> bool:
        updated = models.UserPackage.objects.filter(
            pk=user_package_id.value,
            credits_remaining__isnull=False,
            credits_remaining__lt=F("credits_granted"),
        ).update(credits_remaining=F("credits_remaining") + 1)
        return updated == 1

    def save_payment_outcome(
        self,
        user_package_id: UserPackageId,
        payment_status: PaymentStatus,
        amount_paid: Money,
        status: UserPackageStatus,
        activated_at: datetime | None,
    ) -> UserPackage:
        row = models.UserPackage.objects.select_related("package").get(
            pk=user_package_id.value
        )
        row.payment_status = payment_status.value
        row.amount_paid = amount_paid.amount
        row.status = status.value
        row.activated_at = activated_at
        row.save(
            update_fields=[
                "payment_status",
                "amount_paid",
                "status",
                "activated_at",
                "updated_at",
            ]
        )
        return _to_user_package(row)

    # Payment history

    def insert_payment(self, new: NewPayment) -> Payment:
        row = models.Payment.objects.create(
            user_id=new.user_id.value,
            user_package_id=new.user_package_id.value if new.user_package_id else None,
            amount=new.amount.amount,
            method=new.method.value,
            log_status=models.Payment.LogStatus.RECORDED,
            paid_at=new.paid_at,
            evidence_url=new.evidence_url,
            note=new.note,
        )
        return _to_payment(row)

    def get_payment(self, payment_id: PaymentId) -> Payment | None:
        row = models.Payment.objects.filter(pk=payment_id.value).first()
        return _to_payment(row) if row else None

    def list_payments_for_user_package(
        self, user_package_id: UserPackageId
    ) -> list[Payment]:
        rows = models.Payment.objects.filter(
            user_package_id=user_package_id.value
        ).order_by("-paid_at")
        return [_to_payment(row) for row in rows]

    def set_payment_log_status(
        self,
        user_package_id: UserPackageId,
        from_status: PaymentLogStatus,
        to_status: PaymentLogStatus,
    ) -> int:
        return models.Payment.objects.filter(
            user_package_id=user_package_id.value, log_status=from_status.value
        ).update(log_status=to_status.value)

    def update_payment_log_status(
        self, payment_id: PaymentId, to_status: PaymentLogStatus
    ) -> Payment:
        row = models.Payment.objects.get(pk=payment_id.value)
        row.log_status = to_status.value
        row.save(update_fields=["log_status"])
        return _to_payment(row)

    # Settings

    def get_settings(self) -> dict[str, tuple[str, int]]:
        return {row.key: (row.value, row.version) for row in models.AppSetting.objects.all()}

    def put_setting(self, key: str, value: str) -> int:
        with transaction.atomic():
            row, created = models.AppSetting.objects.select_for_update().get_or_create(
                key=key, defaults={"value": value}
            )
            if not created:
                row.value = value
                row.version = F("version") + 1
                row.save(update_fields=["value", "version", "updated_at"])
                row.refresh_from_db(fields=["version"])
        return row.version
