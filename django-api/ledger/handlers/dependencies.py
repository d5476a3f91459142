"""Wires stores, services and notification channels for the HTTP layer."""

from dataclasses import dataclass

from django.conf import settings

from ledger.notifications import (
    EmailNotificationDispatcher,
    FanOutDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from ledger.services import (
    BookingService,
    PackageService,
    PaymentVerificationService,
    SettingsService,
)
from ledger.stores.django_store import DjangoLedgerStore


@dataclass(frozen=True)
class Services:
    bookings: BookingService
    packages: PackageService
    payments: PaymentVerificationService
    settings: SettingsService


def build_notifier() -> NotificationDispatcher:
    conf = settings.LEDGER
    email = EmailNotificationDispatcher(
        from_email=conf["FROM_EMAIL"],
        studio_name=conf["STUDIO_NAME"],
        app_url=conf["APP_URL"],
    )
    if not conf["WHATSAPP_NOTICES"]:
        return email
    return FanOutDispatcher([email, LoggingNotificationDispatcher("whatsapp")])


def get_services() -> Services:
    store = DjangoLedgerStore()
    notifier = build_notifier()
    packages = PackageService(store)
    return Services(
        bookings=BookingService(store, packages, notifier),
        packages=packages,
        payments=PaymentVerificationService(store, packages, notifier),
        settings=SettingsService(
            store, default_cutoff_minutes=settings.LEDGER["DEFAULT_CUTOFF_MINUTES"]
        ),
    )
