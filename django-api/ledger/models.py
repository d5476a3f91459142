"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class ClassType(models.Model):
    """Persistence model for a reusable class template (e.g. Hatha, Yin)."""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    def __str__(self) -> str:
        return self.name


class ClassSession(models.Model):
    """Persistence model for a scheduled class."""

    class Category(models.TextChoices):
        CLASS = "class", "Class"
        WORKSHOP = "workshop", "Workshop"
        RETREAT = "retreat", "Retreat"
        SPECIAL_EVENT = "special_event", "Special event"
        TEACHER_TRAINING = "teacher_training", "Teacher training"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    category = models.CharField(
        max_length=32, choices=Category.choices, default=Category.CLASS
    )
    class_type = models.ForeignKey(
        ClassType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sessions",
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    capacity = models.PositiveIntegerField()
    booked_count = models.PositiveIntegerField(default=0)
    is_cancelled = models.BooleanField(default=False)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["starts_at"], name="ledger_class_starts_idx"),
            models.Index(
                fields=["category", "starts_at"], name="ledger_class_cat_starts_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(booked_count__lte=F("capacity")),
                name="class_booked_count_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} - {self.starts_at}"


class Package(models.Model):
    """Persistence model for a catalog package."""

    class Type(models.TextChoices):
        CREDIT = "credit", "Credit"
        UNLIMITED = "unlimited", "Unlimited"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=16, choices=Type.choices)
    credits = models.PositiveIntegerField(null=True, blank=True)
    duration_days = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["price"]
        constraints = [
            models.CheckConstraint(
                condition=Q(duration_days__gt=0),
                name="package_duration_positive",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class UserPackage(models.Model):
    """Persistence model for a package purchased by a user."""

    class Status(models.TextChoices):
        PENDING_ACTIVATION = "pending_activation", "Pending activation"
        ACTIVE = "active", "Active"
        EXPIRED = "expired", "Expired"

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid", "Unpaid"
        PENDING_VERIFICATION = "pending_verification", "Pending verification"
        PARTIAL = "partial", "Partial"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="user_packages"
    )
    package = models.ForeignKey(
        Package, on_delete=models.PROTECT, related_name="purchases"
    )
    credits_remaining = models.IntegerField(null=True, blank=True)
    credits_granted = models.IntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=32, choices=Status.choices, default=Status.PENDING_ACTIVATION
    )
    start_at = models.DateTimeField()
    expire_at = models.DateTimeField()
    activated_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=32)
    payment_status = models.CharField(max_length=32, choices=PaymentStatus.choices)
    payment_note = models.TextField(null=True, blank=True)
    payment_slip_url = models.URLField(max_length=500, null=True, blank=True)
    amount_due = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["user", "status", "expire_at"], name="ledger_upkg_user_status_idx"
            ),
            models.Index(fields=["payment_status"], name="ledger_upkg_paystatus_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(credits_remaining__isnull=True) | Q(credits_remaining__gte=0),
                name="user_package_credits_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.package.name} ({self.user})"


class Booking(models.Model):
    """Persistence model for a booking. Never deleted; cancelled in place."""

    class Status(models.TextChoices):
        CONFIRMED = "confirmed", "Confirmed"
        CANCELLED = "cancelled", "Cancelled"

    class Kind(models.TextChoices):
        PAID = "paid", "Paid"
        PACKAGE_CREDIT = "package_credit", "Package credit"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bookings"
    )
    class_session = models.ForeignKey(
        ClassSession, on_delete=models.PROTECT, related_name="bookings"
    )
    user_package = models.ForeignKey(
        UserPackage,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="bookings",
    )
    status = models.CharField(
        max_length=16, choices=Status.choices, default=Status.CONFIRMED
    )
    kind = models.CharField(max_length=16, choices=Kind.choices, default=Kind.PAID)
    created_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="ledger_bkg_user_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "class_session"],
                condition=Q(status="confirmed"),
                name="unique_active_booking_per_user_class",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.class_session.title} ({self.user}) - {self.status}"


class Payment(models.Model):
    """Persistence model for append-only payment history."""

    class LogStatus(models.TextChoices):
        RECORDED = "recorded", "Recorded"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payments"
    )
    user_package = models.ForeignKey(
        UserPackage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    method = models.CharField(max_length=32)
    log_status = models.CharField(
        max_length=16, choices=LogStatus.choices, default=LogStatus.RECORDED
    )
    paid_at = models.DateTimeField()
    evidence_url = models.URLField(max_length=500, null=True, blank=True)
    note = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-paid_at"]
        indexes = [
            models.Index(
                fields=["user_package", "log_status"], name="ledger_pay_upkg_status_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.amount} via {self.method} ({self.log_status})"


class AppSetting(models.Model):
    """Key-value store for admin-controlled settings."""

    key = models.CharField(max_length=100, primary_key=True)
    value = models.TextField()
    version = models.PositiveIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.key}={self.value}"
