"""Tests for notice rendering and delivery channels.

Run with: pytest tests/test_notifications.py -v
"""

import pytest

from ledger.domain import UserId
from ledger.notifications import (
    EmailNotificationDispatcher,
    FanOutDispatcher,
    LoggingNotificationDispatcher,
    Notice,
    NoticeTemplate,
    NotificationDispatcher,
    Recipient,
    dispatch_safely,
    django_user_recipient,
    render_notice,
)


class _Failing(NotificationDispatcher):
    def send(self, notice: Notice) -> None:
        raise ConnectionError("channel down")


def _notice(template=NoticeTemplate.PAYMENT_APPROVED, **details) -> Notice:
    return Notice(template=template, user_id=UserId(7), item_name="10 Class Pass", details=details)


class TestRenderNotice:
    def test_approved(self):
        subject, body = render_notice(
            _notice(), Recipient("Mai", "mai@example.com"), "Lotus Studio", "https://lotus.example/"
        )
        assert subject == "Payment approved - Lotus Studio"
        assert "Hi Mai" in body
        assert "10 Class Pass" in body
        assert "https://lotus.example/profile" in body

    def test_partial_includes_balance(self):
        _, body = render_notice(
            _notice(NoticeTemplate.PAYMENT_PARTIAL, paid_amount="1000.00", remaining_balance="2000.00"),
            Recipient("Mai", None),
            "Lotus Studio",
            "https://lotus.example",
        )
        assert "1000.00" in body
        assert "2000.00" in body

    def test_missing_detail_renders_blank(self):
        _, body = render_notice(
            _notice(NoticeTemplate.PAYMENT_REJECTED),
            Recipient("", None),
            "Lotus Studio",
            "https://lotus.example",
        )
        assert "Hi Valued Customer" in body
        assert "Reason: \n" in body


class TestEmailDispatcher:
    def test_sends_to_recipient(self, mailoutbox):
        dispatcher = EmailNotificationDispatcher(
            from_email="studio@example.com",
            studio_name="Lotus Studio",
            app_url="https://lotus.example",
            recipient_lookup=lambda user_id: Recipient("Mai", "mai@example.com"),
        )

        dispatcher.send(_notice())

        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["mai@example.com"]
        assert mailoutbox[0].from_email == "studio@example.com"

    def test_skips_user_without_email(self, mailoutbox):
        dispatcher = EmailNotificationDispatcher(
            from_email="studio@example.com",
            studio_name="Lotus Studio",
            app_url="https://lotus.example",
            recipient_lookup=lambda user_id: Recipient("Mai", None),
        )

        dispatcher.send(_notice())

        assert mailoutbox == []

    @pytest.mark.django_db
    def test_django_user_recipient(self, member):
        recipient = django_user_recipient(UserId(member.pk))
        assert recipient == Recipient("Mai", "member@example.com")

    @pytest.mark.django_db
    def test_django_user_recipient_unknown(self):
        assert django_user_recipient(UserId(424242)) is None


class TestDispatchSafely:
    def test_failure_is_logged_not_raised(self, caplog):
        dispatch_safely(_Failing(), _notice())
        assert "Failed to send payment_approved" in caplog.text

    def test_fan_out_continues_after_failure(self, notifier):
        FanOutDispatcher([_Failing(), LoggingNotificationDispatcher(), notifier]).send(_notice())
        assert notifier.templates == [NoticeTemplate.PAYMENT_APPROVED]
