"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from rest_framework.test import APIClient

from ledger.notifications import Notice, NotificationDispatcher
from ledger.services import BookingService, PackageService, PaymentVerificationService
from ledger.stores import InMemoryLedgerStore

NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self) -> None:
        self.sent: list[Notice] = []

    def send(self, notice: Notice) -> None:
        self.sent.append(notice)

    @property
    def templates(self) -> list:
        return [n.template for n in self.sent]


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def notifier() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def package_service(store, clock) -> PackageService:
    return PackageService(store, clock=clock)


@pytest.fixture
def booking_service(store, package_service, notifier, clock) -> BookingService:
    return BookingService(store, package_service, notifier, clock=clock)


@pytest.fixture
def payment_service(store, package_service, notifier, clock) -> PaymentVerificationService:
    return PaymentVerificationService(store, package_service, notifier, clock=clock)


@pytest.fixture
def member(django_user_model):
    return django_user_model.objects.create_user(
        username="member", email="member@example.com", password="pw", first_name="Mai"
    )


@pytest.fixture
def other_member(django_user_model):
    return django_user_model.objects.create_user(
        username="other", email="other@example.com", password="pw"
    )


@pytest.fixture
def staff(django_user_model):
    return django_user_model.objects.create_user(
        username="staff", email="staff@example.com", password="pw", is_staff=True
    )


@pytest.fixture
def member_client(member) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=member)
    return client


@pytest.fixture
def staff_client(staff) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=staff)
    return client
