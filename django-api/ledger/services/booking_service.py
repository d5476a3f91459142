"""Booking service - seat capacity and the booking lifecycle.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors

Seats are taken with the store's conditional reserve, inside the same
transaction as the booking insert, so booked_count and the confirmed
bookings always agree.
"""

import logging
from datetime import datetime, timedelta

from ledger.domain import (
    Booking,
    BookingId,
    BookingKind,
    BookingStatus,
    ClassSession,
    ClassSessionId,
    LedgerConfig,
    UserId,
    UserPackageId,
)
from ledger.domain.errors import (
    AlreadyBookedError,
    BookingNotFoundError,
    ClassFullError,
    ClassNotFoundError,
    CutoffPassedError,
    InvalidTransitionError,
    NoUsablePackageError,
    NotBookingOwnerError,
)
from ledger.notifications import (
    Notice,
    NoticeTemplate,
    NotificationDispatcher,
    dispatch_safely,
)
from ledger.services.common import Clock, parse_id, utcnow
from ledger.services.package_service import PackageService
from ledger.stores.interfaces import ClassListFilters, LedgerStore

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


def cutoff_passed(session: ClassSession, config: LedgerConfig, now: datetime) -> bool:
    return session.starts_at - now < timedelta(minutes=config.booking_cutoff_minutes)


class BookingService:
    """Service for class bookings and seat capacity."""

    def __init__(
        self,
        store: LedgerStore,
        packages: PackageService,
        notifier: NotificationDispatcher,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._packages = packages
        self._notifier = notifier
        self._clock = clock

    def list_classes(self, filters: ClassListFilters) -> list[ClassSession]:
        """Return the schedule for the requested window."""
        return self._store.list_class_sessions(filters)

    def list_bookings(self, user_id: UserId) -> list[Booking]:
        return self._store.list_bookings_for_user(user_id)

    def create_booking(
        self,
        user_id: UserId,
        class_id: str,
        kind: BookingKind,
        config: LedgerConfig,
        *,
        manual: bool = False,
    ) -> Booking:
        """Take a seat in a class for a user.

        Package-credit bookings draw one credit from the user's usable
        package in the same transaction. Manual (admin desk) bookings skip
        the online cutoff window.

        Raises:
            InvalidIdError: If class_id is not a valid UUID.
            ClassNotFoundError: If the class is missing or cancelled.
            CutoffPassedError: If online booking has closed for the class.
            AlreadyBookedError: If the user already holds a seat.
            NoUsablePackageError: If a credit booking has no package to draw on.
            NoCreditsRemainingError: If the package ran out of credits.
            ClassFullError: If no seat is left.
        """
        session_id = parse_id(ClassSessionId, class_id)
        now = self._clock()

        def _book() -> tuple[Booking, ClassSession]:
            session = self._store.get_class_session(session_id)
            if session is None or session.is_cancelled:
                raise ClassNotFoundError()
            if not manual and cutoff_passed(session, config, now):
                raise CutoffPassedError(config.booking_cutoff_minutes)
            if self._store.find_active_booking(user_id, session_id) is not None:
                raise AlreadyBookedError()

            user_package_id: UserPackageId | None = None
            if kind is BookingKind.PACKAGE_CREDIT:
                user_package = self._store.find_usable_user_package(user_id, now)
                if user_package is None:
                    raise NoUsablePackageError()
                self._packages.consume_credit(user_package.id)
                user_package_id = user_package.id

            if not self._store.try_reserve_seat(session_id):
                raise ClassFullError()
            booking = self._store.insert_booking(
                user_id, session_id, kind, created_at=now, user_package_id=user_package_id
            )
            return booking, session

        booking, session = self._store.run_in_transaction(_book)
        logger.info(
            "Booking %s confirmed for user %s in class %s (%s)",
            booking.id,
            user_id,
            session_id,
            kind.value,
        )
        self._notify(NoticeTemplate.BOOKING_CONFIRMED, booking, session)
        return booking

    def cancel_booking(self, booking_id: str, requesting_user_id: UserId) -> Booking:
        """Cancel a booking, freeing its seat and refunding a package credit.

        Cancelling an already-cancelled booking succeeds without side effects.

        Raises:
            InvalidIdError: If booking_id is not a valid UUID.
            BookingNotFoundError: If the booking does not exist.
            NotBookingOwnerError: If the requester does not own the booking.
        """
        bid = parse_id(BookingId, booking_id)
        now = self._clock()

        def _cancel() -> tuple[Booking, ClassSession | None]:
            booking = self._store.get_booking(bid)
            if booking is None:
                raise BookingNotFoundError()
            if booking.user_id != requesting_user_id:
                raise NotBookingOwnerError()
            if booking.status is BookingStatus.CANCELLED:
                return booking, None
            if BookingStatus.CANCELLED not in BOOKING_TRANSITIONS[booking.status]:
                raise InvalidTransitionError(
                    "booking", booking.status.value, BookingStatus.CANCELLED.value
                )
            if not self._store.mark_booking_cancelled(bid, now):
                # A concurrent cancel got there first.
                return self._store.get_booking(bid), None

            self._store.release_seat(booking.class_id)
            if booking.kind is BookingKind.PACKAGE_CREDIT and booking.user_package_id:
                self._packages.refund_credit(booking.user_package_id)
            return self._store.get_booking(bid), self._store.get_class_session(booking.class_id)

        booking, session = self._store.run_in_transaction(_cancel)
        if session is not None:
            logger.info("Booking %s cancelled by user %s", bid, requesting_user_id)
            self._notify(NoticeTemplate.BOOKING_CANCELLED, booking, session)
        return booking

    def _notify(self, template: NoticeTemplate, booking: Booking, session: ClassSession) -> None:
        notice = Notice(
            template=template,
            user_id=booking.user_id,
            item_name=session.title,
            details={"starts_at": session.starts_at.isoformat()},
        )
        dispatch_safely(self._notifier, notice)
