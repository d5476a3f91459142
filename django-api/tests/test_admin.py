"""Tests for the admin screens.

Run with: pytest tests/test_admin.py -v
"""

import pytest
from django.contrib import admin

from ledger import models


def _model_admin(model):
    return admin.site._registry[model]


@pytest.fixture
def admin_request(rf, admin_user):
    request = rf.get("/admin/")
    request.user = admin_user
    return request


@pytest.mark.django_db
class TestAdminGuards:
    """Counters and statuses only move through the services."""

    def test_user_package_statuses_are_read_only(self, admin_request):
        readonly = _model_admin(models.UserPackage).get_readonly_fields(admin_request)
        for field in ["status", "payment_status", "credits_remaining", "amount_paid"]:
            assert field in readonly

    def test_booking_cannot_be_moved_or_added(self, admin_request):
        booking_admin = _model_admin(models.Booking)
        readonly = booking_admin.get_readonly_fields(admin_request)
        for field in ["user", "class_session", "kind", "status"]:
            assert field in readonly
        assert not booking_admin.has_add_permission(admin_request)

    def test_payment_history_is_append_only(self, admin_request):
        payment_admin = _model_admin(models.Payment)
        assert not payment_admin.has_change_permission(admin_request)
        assert not payment_admin.has_delete_permission(admin_request)
        assert payment_admin.has_view_permission(admin_request)

    def test_seat_count_is_read_only(self, admin_request):
        readonly = _model_admin(models.ClassSession).get_readonly_fields(admin_request)
        assert "booked_count" in readonly
