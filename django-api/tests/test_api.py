"""Integration tests for the HTTP API.

These validate status codes, the error envelope and permissions.
Run with: pytest tests/test_api.py -v
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from ledger import models
from ledger.domain.errors import TransientError
from ledger.stores.django_store import DjangoLedgerStore


def _class_row(capacity=10, hours_ahead=24, **kwargs) -> models.ClassSession:
    starts_at = timezone.now() + timedelta(hours=hours_ahead)
    return models.ClassSession.objects.create(
        title="Morning Flow",
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=1),
        capacity=capacity,
        **kwargs,
    )


def _package_row(**kwargs) -> models.Package:
    values = dict(
        name="10 Class Pass",
        type=models.Package.Type.CREDIT,
        credits=10,
        duration_days=30,
        price=Decimal("3000"),
    )
    values.update(kwargs)
    return models.Package.objects.create(**values)


def _error_code(response) -> str:
    return response.json()["error"]["code"]


@pytest.mark.django_db
class TestClassList:
    """Tests for GET /api/classes"""

    def test_public_listing(self, api_client: APIClient):
        row = _class_row(capacity=12)

        response = api_client.get("/api/classes")

        assert response.status_code == 200
        assert response["Cache-Control"] == "no-store"
        [item] = response.json()
        assert item["id"] == str(row.id)
        assert item["seats_left"] == 12
        assert item["category"] == "class"

    def test_category_is_case_insensitive(self, api_client: APIClient):
        _class_row(category=models.ClassSession.Category.WORKSHOP)
        _class_row()

        response = api_client.get("/api/classes", {"category": "Workshop"})

        assert [c["category"] for c in response.json()] == ["workshop"]

    def test_unknown_category_rejected(self, api_client: APIClient):
        response = api_client.get("/api/classes", {"category": "karaoke"})
        assert response.status_code == 400
        assert _error_code(response) == "INVALID_INPUT"

    def test_window_filter(self, api_client: APIClient):
        soon = _class_row(hours_ahead=24)
        _class_row(hours_ahead=24 * 14)
        end = (timezone.now() + timedelta(days=7)).isoformat()

        response = api_client.get("/api/classes", {"end": end})

        assert [c["id"] for c in response.json()] == [str(soon.id)]


@pytest.mark.django_db
class TestBookings:
    """Tests for POST /api/bookings and cancellation"""

    def test_requires_authentication(self, api_client: APIClient):
        row = _class_row()
        response = api_client.post("/api/bookings", {"classId": str(row.id)}, format="json")
        assert response.status_code == 401
        assert _error_code(response) == "UNAUTHENTICATED"

    def test_create_booking(self, member_client, member, mailoutbox):
        row = _class_row()

        response = member_client.post(
            "/api/bookings", {"classId": str(row.id), "kind": "paid"}, format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["user_id"] == member.pk
        row.refresh_from_db()
        assert row.booked_count == 1
        assert len(mailoutbox) == 1
        assert "Booking confirmed" in mailoutbox[0].subject

    def test_duplicate_booking_conflicts(self, member_client):
        row = _class_row()
        member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")

        response = member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")

        assert response.status_code == 409
        assert _error_code(response) == "ALREADY_BOOKED"

    def test_full_class_conflicts(self, member_client):
        row = _class_row(capacity=1, booked_count=1)
        response = member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")
        assert response.status_code == 409
        assert _error_code(response) == "CLASS_FULL"

    def test_malformed_class_id(self, member_client):
        response = member_client.post("/api/bookings", {"classId": "abc"}, format="json")
        assert response.status_code == 400
        assert _error_code(response) == "INVALID_ID"

    def test_missing_class(self, member_client):
        response = member_client.post(
            "/api/bookings",
            {"classId": "00000000-0000-0000-0000-000000000000"},
            format="json",
        )
        assert response.status_code == 404
        assert _error_code(response) == "CLASS_NOT_FOUND"

    def test_cutoff_passed(self, member_client):
        row = _class_row(hours_ahead=1)
        response = member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")
        assert response.status_code == 400
        assert _error_code(response) == "CUTOFF_PASSED"

    def test_credit_booking_without_package(self, member_client):
        row = _class_row()
        response = member_client.post(
            "/api/bookings",
            {"classId": str(row.id), "kind": "package_credit"},
            format="json",
        )
        assert response.status_code == 409
        assert _error_code(response) == "NO_USABLE_PACKAGE"

    def test_staff_books_for_member_inside_cutoff(self, staff_client, member):
        row = _class_row(hours_ahead=1)

        response = staff_client.post(
            "/api/bookings",
            {"classId": str(row.id), "userId": member.pk, "manual": True},
            format="json",
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == member.pk

    def test_member_cannot_book_for_others(self, member_client, other_member):
        row = _class_row()
        response = member_client.post(
            "/api/bookings",
            {"classId": str(row.id), "userId": other_member.pk},
            format="json",
        )
        assert response.status_code == 403

    def test_staff_booking_for_unknown_user(self, staff_client):
        """Booking on behalf of a user id with no account is a 400, not a 500."""
        row = _class_row()

        response = staff_client.post(
            "/api/bookings",
            {"classId": str(row.id), "userId": 999999, "manual": True},
            format="json",
        )

        assert response.status_code == 400
        assert _error_code(response) == "INVALID_INPUT"
        assert "userId" in response.json()["error"]["fields"]
        assert not models.Booking.objects.exists()
        row.refresh_from_db()
        assert row.booked_count == 0
        assert _error_code(response) == "FORBIDDEN"

    def test_cancel_booking(self, member_client):
        row = _class_row()
        booking_id = member_client.post(
            "/api/bookings", {"classId": str(row.id)}, format="json"
        ).json()["id"]

        response = member_client.post(f"/api/bookings/{booking_id}/cancel")
        again = member_client.post(f"/api/bookings/{booking_id}/cancel")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert again.status_code == 200
        row.refresh_from_db()
        assert row.booked_count == 0

    def test_cancel_someone_elses_booking(self, member_client, other_member):
        row = _class_row()
        booking_id = member_client.post(
            "/api/bookings", {"classId": str(row.id)}, format="json"
        ).json()["id"]
        intruder = APIClient()
        intruder.force_authenticate(user=other_member)

        response = intruder.post(f"/api/bookings/{booking_id}/cancel")

        assert response.status_code == 403
        assert _error_code(response) == "NOT_BOOKING_OWNER"

    def test_my_bookings(self, member_client):
        row = _class_row()
        member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")

        response = member_client.get("/api/me/bookings")

        assert [b["class_id"] for b in response.json()] == [str(row.id)]

    def test_transient_failure_retried_then_503(self, member_client, monkeypatch, settings):
        settings.LEDGER = {**settings.LEDGER, "RETRY_BACKOFF_SECONDS": 0, "RETRY_ATTEMPTS": 3}
        row = _class_row()
        calls = []

        def locked(self, fn):
            calls.append(1)
            raise TransientError()

        monkeypatch.setattr(DjangoLedgerStore, "run_in_transaction", locked)

        response = member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")

        assert response.status_code == 503
        assert _error_code(response) == "TRANSIENT"
        assert len(calls) == 3


@pytest.mark.django_db
class TestPackagesAndPayments:
    """Tests for package purchase and payment review"""

    def _purchase(self, client, package, **body) -> str:
        response = client.post(f"/api/packages/{package.id}/purchase", body, format="json")
        assert response.status_code == 200
        return response.json()["userPackageId"]

    def test_list_packages_hides_inactive(self, api_client: APIClient):
        _package_row(name="Unlimited Month", type=models.Package.Type.UNLIMITED, credits=None)
        _package_row(name="Retired", is_active=False)

        response = api_client.get("/api/packages")

        assert [p["name"] for p in response.json()] == ["Unlimited Month"]

    def test_purchase_creates_pending_package(self, member_client):
        package = _package_row()

        user_package_id = self._purchase(member_client, package, paymentMethod="bank_transfer")
        response = member_client.get("/api/me/packages")

        [item] = response.json()
        assert item["id"] == user_package_id
        assert item["status"] == "pending_activation"
        assert item["payment_status"] == "pending_verification"
        assert item["credits_remaining"] == 10

    def test_purchase_with_disabled_method(self, member_client, staff_client):
        staff_client.put(
            "/api/settings",
            {"paymentMethods": {"packages": {"promptpay": False}}},
            format="json",
        )
        package = _package_row()

        response = member_client.post(
            f"/api/packages/{package.id}/purchase", {"paymentMethod": "promptpay"}, format="json"
        )

        assert response.status_code == 400
        assert _error_code(response) == "PAYMENT_METHOD_NOT_ACCEPTED"

    def test_purchase_inactive_package(self, member_client):
        package = _package_row(is_active=False)
        response = member_client.post(f"/api/packages/{package.id}/purchase", {}, format="json")
        assert response.status_code == 400
        assert _error_code(response) == "PACKAGE_INACTIVE"

    def test_member_cannot_approve(self, member_client):
        package = _package_row()
        user_package_id = self._purchase(member_client, package)

        response = member_client.post(f"/api/payments/{user_package_id}/approve")

        assert response.status_code == 403

    def test_staff_approves_payment(self, member_client, staff_client, mailoutbox):
        package = _package_row()
        user_package_id = self._purchase(member_client, package)

        response = staff_client.post(f"/api/payments/{user_package_id}/approve", {}, format="json")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "changed": True, "paymentStatus": "verified"}
        row = models.UserPackage.objects.get(pk=user_package_id)
        assert row.status == "active"
        assert row.activated_at is not None
        assert len(mailoutbox) == 1
        assert "Payment approved" in mailoutbox[0].subject
        assert "10 Class Pass" in mailoutbox[0].body

    def test_staff_records_partial_payment(self, member_client, staff_client):
        package = _package_row()
        user_package_id = self._purchase(member_client, package)

        response = staff_client.post(
            f"/api/payments/{user_package_id}/approve", {"amountPaid": "1000.00"}, format="json"
        )

        assert response.json()["paymentStatus"] == "partial"
        assert models.UserPackage.objects.get(pk=user_package_id).status == "pending_activation"

    def test_negative_amount_rejected(self, member_client, staff_client):
        package = _package_row()
        user_package_id = self._purchase(member_client, package)

        response = staff_client.post(
            f"/api/payments/{user_package_id}/approve", {"amountPaid": "-5"}, format="json"
        )

        assert response.status_code == 400
        assert _error_code(response) == "INVALID_INPUT"

    def test_staff_rejects_payment(self, member_client, staff_client, mailoutbox):
        package = _package_row()
        user_package_id = self._purchase(member_client, package)

        response = staff_client.post(
            f"/api/payments/{user_package_id}/reject", {"reason": "Wrong amount"}, format="json"
        )

        assert response.status_code == 200
        row = models.UserPackage.objects.get(pk=user_package_id)
        assert row.status == "pending_activation"
        assert row.payment_status == "rejected"
        assert "Wrong amount" in mailoutbox[0].body

    def test_approve_unknown_payment(self, staff_client):
        response = staff_client.post("/api/payments/00000000-0000-0000-0000-000000000000/approve")
        assert response.status_code == 404
        assert _error_code(response) == "PAYMENT_NOT_FOUND"

    def test_manual_payment(self, staff_client, member):
        response = staff_client.post(
            "/api/payments",
            {"userId": member.pk, "amount": "500.00", "method": "cash", "note": "Drop-in"},
            format="json",
        )

        assert response.status_code == 201
        assert response.json()["log_status"] == "recorded"
        assert models.Payment.objects.filter(user=member).count() == 1

    def test_manual_payment_for_unknown_user(self, staff_client):
        response = staff_client.post(
            "/api/payments",
            {"userId": 999999, "amount": "500.00", "method": "cash"},
            format="json",
        )

        assert response.status_code == 400
        assert _error_code(response) == "INVALID_INPUT"
        assert not models.Payment.objects.exists()


@pytest.mark.django_db
class TestSettingsApi:
    def test_payment_methods_defaults(self, api_client: APIClient):
        response = api_client.get("/api/settings/payment-methods")

        body = response.json()
        assert response.status_code == 200
        assert body["bookingCutoffMinutes"] == 180
        assert body["paymentMethods"]["teacher_training"]["contact_admin"] is True

    def test_member_cannot_change_settings(self, member_client):
        response = member_client.put("/api/settings", {"bookingCutoffMinutes": 0}, format="json")
        assert response.status_code == 403

    def test_staff_changes_cutoff(self, staff_client, member_client):
        response = staff_client.put("/api/settings", {"bookingCutoffMinutes": 30}, format="json")
        assert response.json()["bookingCutoffMinutes"] == 30

        row = _class_row(hours_ahead=1)
        booked = member_client.post("/api/bookings", {"classId": str(row.id)}, format="json")
        assert booked.status_code == 201

    def test_unknown_product_rejected(self, staff_client):
        response = staff_client.put(
            "/api/settings", {"paymentMethods": {"spa": {"promptpay": True}}}, format="json"
        )
        assert response.status_code == 400

    def test_rejected_update_writes_nothing(self, staff_client, api_client: APIClient):
        """A bad product key rejects the whole update, including a valid cutoff."""
        response = staff_client.put(
            "/api/settings",
            {"bookingCutoffMinutes": 5, "paymentMethods": {"spa": {"promptpay": True}}},
            format="json",
        )
        assert response.status_code == 400

        current = api_client.get("/api/settings/payment-methods").json()
        assert current["bookingCutoffMinutes"] == 180
        assert current["version"] == 0

    def test_cutoff_and_methods_updated_together(self, staff_client):
        response = staff_client.put(
            "/api/settings",
            {"bookingCutoffMinutes": 60, "paymentMethods": {"packages": {"promptpay": False}}},
            format="json",
        )

        body = response.json()
        assert response.status_code == 200
        assert body["bookingCutoffMinutes"] == 60
        assert body["paymentMethods"]["packages"]["promptpay"] is False
        assert body["paymentMethods"]["packages"]["bank_transfer"] is True

    def test_settings_write_retried_after_transient_failure(
        self, staff_client, monkeypatch, settings
    ):
        settings.LEDGER = {**settings.LEDGER, "RETRY_BACKOFF_SECONDS": 0, "RETRY_ATTEMPTS": 3}
        original_put = DjangoLedgerStore.put_setting
        calls = []

        def flaky_put(self, key, value):
            calls.append(key)
            if len(calls) == 1:
                raise TransientError()
            return original_put(self, key, value)

        monkeypatch.setattr(DjangoLedgerStore, "put_setting", flaky_put)

        response = staff_client.put("/api/settings", {"bookingCutoffMinutes": 30}, format="json")

        assert response.status_code == 200
        assert response.json()["bookingCutoffMinutes"] == 30
        assert len(calls) == 2
