"""Outbound notices for booking and payment state changes.

Notices are fire-and-forget: services dispatch them after their transaction
commits, through dispatch_safely, so a failed send never affects the
transition that triggered it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Sequence

from django.contrib.auth import get_user_model
from django.core.mail import send_mail

from ledger.domain import UserId

logger = logging.getLogger(__name__)


class NoticeTemplate(Enum):
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_PARTIAL = "payment_partial"
    PAYMENT_REJECTED = "payment_rejected"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"


@dataclass(frozen=True)
class Notice:
    """A templated message for one user."""

    template: NoticeTemplate
    user_id: UserId
    item_name: str
    details: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Recipient:
    name: str
    email: str | None


class NotificationDispatcher(ABC):
    """Interface for notice delivery channels (email, WhatsApp, ...)."""

    @abstractmethod
    def send(self, notice: Notice) -> None:
        ...


_SUBJECTS = {
    NoticeTemplate.PAYMENT_APPROVED: "Payment approved - {studio}",
    NoticeTemplate.PAYMENT_PARTIAL: "Partial payment received - {studio}",
    NoticeTemplate.PAYMENT_REJECTED: "Payment verification required - {studio}",
    NoticeTemplate.BOOKING_CONFIRMED: "Booking confirmed - {studio}",
    NoticeTemplate.BOOKING_CANCELLED: "Booking cancelled - {studio}",
}

_BODIES = {
    NoticeTemplate.PAYMENT_APPROVED: (
        "Hi {name},\n\nYour payment for {item} has been approved. "
        "You can view it in your profile: {profile_url}\n"
    ),
    NoticeTemplate.PAYMENT_PARTIAL: (
        "Hi {name},\n\nWe received {paid_amount} for {item}. "
        "Remaining balance: {remaining_balance}.\n"
        "Details: {profile_url}\n"
    ),
    NoticeTemplate.PAYMENT_REJECTED: (
        "Hi {name},\n\nWe could not verify your payment for {item}.\n"
        "Reason: {reason}\n"
        "Please upload a new slip from your profile: {profile_url}\n"
    ),
    NoticeTemplate.BOOKING_CONFIRMED: (
        "Hi {name},\n\nYou are booked into {item} on {starts_at}.\n"
    ),
    NoticeTemplate.BOOKING_CANCELLED: (
        "Hi {name},\n\nYour booking for {item} on {starts_at} has been cancelled.\n"
    ),
}


class _Defaulting(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_notice(notice: Notice, recipient: Recipient, studio: str, app_url: str) -> tuple[str, str]:
    """Return (subject, body) for a notice."""
    context = _Defaulting(notice.details)
    context.update(
        studio=studio,
        name=recipient.name or "Valued Customer",
        item=notice.item_name,
        profile_url=f"{app_url.rstrip('/')}/profile",
    )
    subject = _SUBJECTS[notice.template].format_map(context)
    body = _BODIES[notice.template].format_map(context)
    return subject, body


def django_user_recipient(user_id: UserId) -> Recipient | None:
    user = get_user_model().objects.filter(pk=user_id.value).first()
    if user is None:
        return None
    return Recipient(name=user.get_full_name() or user.get_username(), email=user.email or None)


class EmailNotificationDispatcher(NotificationDispatcher):
    """Sends notices through Django's configured email backend."""

    def __init__(
        self,
        from_email: str,
        studio_name: str,
        app_url: str,
        recipient_lookup: Callable[[UserId], Recipient | None] = django_user_recipient,
    ) -> None:
        self._from_email = from_email
        self._studio_name = studio_name
        self._app_url = app_url
        self._recipient_lookup = recipient_lookup

    def send(self, notice: Notice) -> None:
        recipient = self._recipient_lookup(notice.user_id)
        if recipient is None or not recipient.email:
            logger.info(
                "Skipping %s notice: user %s has no email",
                notice.template.value,
                notice.user_id,
            )
            return
        subject, body = render_notice(notice, recipient, self._studio_name, self._app_url)
        send_mail(subject, body, self._from_email, [recipient.email])
        logger.info("Sent %s notice to user %s", notice.template.value, notice.user_id)


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Stand-in channel (e.g. WhatsApp) that only records the notice."""

    def __init__(self, channel: str = "whatsapp") -> None:
        self._channel = channel

    def send(self, notice: Notice) -> None:
        logger.info(
            "[%s] %s for user %s: %s",
            self._channel,
            notice.template.value,
            notice.user_id,
            notice.item_name,
        )


class FanOutDispatcher(NotificationDispatcher):
    """Delivers each notice on every channel; one failing channel does not stop the rest."""

    def __init__(self, dispatchers: Sequence[NotificationDispatcher]) -> None:
        self._dispatchers = tuple(dispatchers)

    def send(self, notice: Notice) -> None:
        for dispatcher in self._dispatchers:
            dispatch_safely(dispatcher, notice)


def dispatch_safely(dispatcher: NotificationDispatcher, notice: Notice) -> None:
    """Send a notice, logging and swallowing any failure."""
    try:
        dispatcher.send(notice)
    except Exception:
        logger.exception(
            "Failed to send %s notice to user %s", notice.template.value, notice.user_id
        )
