"""Serializers for request parsing and for rendering domain models."""

from datetime import datetime

from django.contrib.auth import get_user_model
from rest_framework import serializers

from ledger.domain import BookingKind, ClassCategory, PaymentMethod, ProductType, UserPackage

_PAYMENT_METHODS = [m.value for m in PaymentMethod]


# Requests


class ClassListQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    category = serializers.CharField(required=False)
    classTypeId = serializers.IntegerField(required=False, min_value=1)

    def validate_category(self, value: str) -> ClassCategory:
        try:
            return ClassCategory(value.strip().lower())
        except ValueError:
            raise serializers.ValidationError("Unknown category")

    def validate(self, attrs: dict) -> dict:
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and start > end:
            raise serializers.ValidationError("start must not be after end")
        return attrs


class CreateBookingSerializer(serializers.Serializer):
    classId = serializers.CharField()
    kind = serializers.ChoiceField(
        choices=[k.value for k in BookingKind], default=BookingKind.PAID.value
    )
    # Staff only: book on behalf of a member at the front desk.
    userId = serializers.PrimaryKeyRelatedField(
        queryset=get_user_model().objects.all(), required=False
    )
    manual = serializers.BooleanField(default=False)


class PurchasePackageSerializer(serializers.Serializer):
    paymentMethod = serializers.ChoiceField(
        choices=_PAYMENT_METHODS, default=PaymentMethod.BANK_TRANSFER.value
    )
    paymentNote = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=1000
    )
    paymentSlipUrl = serializers.URLField(
        required=False, allow_blank=True, allow_null=True, max_length=500
    )


class ApprovePaymentSerializer(serializers.Serializer):
    amountPaid = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True
    )


class RejectPaymentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class ManualPaymentSerializer(serializers.Serializer):
    userId = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all())
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    method = serializers.ChoiceField(choices=_PAYMENT_METHODS)
    userPackageId = serializers.CharField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    evidenceUrl = serializers.URLField(required=False, allow_blank=True, allow_null=True)


class _MethodToggleSerializer(serializers.Serializer):
    bank_transfer = serializers.BooleanField(required=False)
    promptpay = serializers.BooleanField(required=False)
    credit_card = serializers.BooleanField(required=False)
    contact_admin = serializers.BooleanField(required=False)


class LedgerSettingsUpdateSerializer(serializers.Serializer):
    bookingCutoffMinutes = serializers.IntegerField(required=False, min_value=0)
    paymentMethods = serializers.DictField(child=_MethodToggleSerializer(), required=False)

    def validate_paymentMethods(self, value: dict) -> dict:
        toggles = {}
        for key, methods in value.items():
            try:
                toggles[ProductType(key)] = methods
            except ValueError:
                raise serializers.ValidationError(f"Unknown product {key!r}")
        return toggles


# Responses


class ClassSessionSerializer(serializers.Serializer):
    """Serializer for ClassSession domain model."""

    id = serializers.CharField(source="id.value")
    title = serializers.CharField()
    category = serializers.CharField(source="category.value")
    class_type_id = serializers.IntegerField(allow_null=True)
    starts_at = serializers.DateTimeField()
    ends_at = serializers.DateTimeField()
    capacity = serializers.IntegerField(source="capacity.value")
    booked_count = serializers.IntegerField()
    seats_left = serializers.IntegerField()
    price = serializers.DecimalField(source="price.amount", max_digits=10, decimal_places=2)


class BookingSerializer(serializers.Serializer):
    """Serializer for Booking domain model."""

    id = serializers.CharField(source="id.value")
    user_id = serializers.IntegerField(source="user_id.value")
    class_id = serializers.CharField(source="class_id.value")
    status = serializers.CharField(source="status.value")
    kind = serializers.CharField(source="kind.value")
    user_package_id = serializers.CharField(source="user_package_id.value", allow_null=True)
    created_at = serializers.DateTimeField()
    cancelled_at = serializers.DateTimeField(allow_null=True)


class PackageSerializer(serializers.Serializer):
    """Serializer for catalog Package domain model."""

    id = serializers.CharField(source="id.value")
    name = serializers.CharField()
    type = serializers.CharField(source="type.value")
    credits = serializers.IntegerField(allow_null=True)
    duration_days = serializers.IntegerField()
    price = serializers.DecimalField(source="price.amount", max_digits=10, decimal_places=2)


class UserPackageSerializer(serializers.Serializer):
    """Serializer for UserPackage; status is the effective status at context['now']."""

    id = serializers.CharField(source="id.value")
    package_id = serializers.CharField(source="package_id.value")
    package_type = serializers.CharField(source="package_type.value")
    credits_remaining = serializers.IntegerField(allow_null=True)
    status = serializers.SerializerMethodField()
    start_at = serializers.DateTimeField()
    expire_at = serializers.DateTimeField()
    activated_at = serializers.DateTimeField(allow_null=True)
    payment_method = serializers.CharField(source="payment_method.value")
    payment_status = serializers.CharField(source="payment_status.value")
    amount_due = serializers.DecimalField(
        source="amount_due.amount", max_digits=10, decimal_places=2
    )
    amount_paid = serializers.DecimalField(
        source="amount_paid.amount", max_digits=10, decimal_places=2
    )

    def get_status(self, obj: UserPackage) -> str:
        now: datetime = self.context["now"]
        return obj.effective_status(now).value


class PaymentSerializer(serializers.Serializer):
    """Serializer for Payment domain model."""

    id = serializers.CharField(source="id.value")
    user_id = serializers.IntegerField(source="user_id.value")
    user_package_id = serializers.CharField(source="user_package_id.value", allow_null=True)
    amount = serializers.DecimalField(source="amount.amount", max_digits=10, decimal_places=2)
    method = serializers.CharField(source="method.value")
    log_status = serializers.CharField(source="log_status.value")
    paid_at = serializers.DateTimeField()
    evidence_url = serializers.CharField(allow_null=True)
    note = serializers.CharField(allow_null=True)
