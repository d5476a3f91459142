"""Payment verification workflow.

Legal payment_status moves:

    unpaid | pending_verification | partial -> partial | verified | rejected

verified and rejected are terminal. Approving an active package again and
rejecting a rejected one are no-ops. Package activation happens in the same
transaction as the verified decision.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger.domain import (
    Money,
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
from ledger.domain.errors import (
    InvalidAmountError,
    InvalidIdError,
    InvalidTransitionError,
    PaymentNotFoundError,
    UserPackageNotFoundError,
)
from ledger.notifications import (
    Notice,
    NoticeTemplate,
    NotificationDispatcher,
    dispatch_safely,
)
from ledger.services.common import Clock, parse_id, utcnow
from ledger.services.package_service import PackageService
from ledger.stores.interfaces import LedgerStore, NewPayment

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset(
        {PaymentStatus.PARTIAL, PaymentStatus.VERIFIED, PaymentStatus.REJECTED}
    ),
    PaymentStatus.PENDING_VERIFICATION: frozenset(
        {PaymentStatus.PARTIAL, PaymentStatus.VERIFIED, PaymentStatus.REJECTED}
    ),
    PaymentStatus.PARTIAL: frozenset(
        {PaymentStatus.PARTIAL, PaymentStatus.VERIFIED, PaymentStatus.REJECTED}
    ),
    PaymentStatus.VERIFIED: frozenset(),
    PaymentStatus.REJECTED: frozenset(),
}

DEFAULT_REJECTION_REASON = "Payment slip could not be verified"


def _ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransitionError("payment", current.value, target.value)


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of an approve/reject call; changed is False for no-ops."""

    changed: bool
    user_package: UserPackage | None = None
    payment: Payment | None = None
    item_name: str = "Package purchase"

    @property
    def payment_status(self) -> PaymentStatus | None:
        return self.user_package.payment_status if self.user_package else None


class PaymentVerificationService:
    """Service for admin review of submitted payments."""

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

    def _resolve(self, target_id: str) -> tuple[UserPackage | None, Payment | None]:
        """Resolve an ID that names either a purchase or a payment record."""
        try:
            raw = UUID(str(target_id))
        except ValueError as exc:
            raise InvalidIdError() from exc

        user_package = self._store.get_user_package(UserPackageId(raw), for_update=True)
        if user_package is not None:
            return user_package, None

        payment = self._store.get_payment(PaymentId(raw))
        if payment is None:
            raise PaymentNotFoundError()
        if payment.user_package_id is None:
            return None, payment
        user_package = self._store.get_user_package(payment.user_package_id, for_update=True)
        if user_package is None:
            raise UserPackageNotFoundError()
        return user_package, payment

    def approve_payment(
        self,
        target_id: str,
        approver_id: UserId,
        amount_paid: Decimal | None = None,
    ) -> VerificationOutcome:
        """Verify a payment and activate its package.

        An amount_paid below amount_due records a partial payment and leaves
        the package pending.

        Raises:
            InvalidIdError: If target_id is not a valid UUID.
            PaymentNotFoundError: If nothing matches target_id.
            InvalidTransitionError: If the payment was already rejected.
            InvalidAmountError: If amount_paid is negative.
        """
        if amount_paid is not None and amount_paid < 0:
            raise InvalidAmountError()

        def _approve() -> VerificationOutcome:
            user_package, payment = self._resolve(target_id)
            if user_package is None:
                return self._set_standalone_log_status(payment, PaymentLogStatus.VERIFIED)

            if (
                user_package.status is UserPackageStatus.ACTIVE
                or user_package.payment_status is PaymentStatus.VERIFIED
            ):
                return VerificationOutcome(changed=False, user_package=user_package)

            due = user_package.amount_due.amount
            if amount_paid is None or amount_paid >= due:
                target, paid = PaymentStatus.VERIFIED, due
            else:
                target, paid = PaymentStatus.PARTIAL, amount_paid
            _ensure_transition(user_package.payment_status, target)

            updated = self._packages.apply_verification(user_package, target, Money(paid))
            if target is PaymentStatus.VERIFIED:
                self._store.set_payment_log_status(
                    updated.id, PaymentLogStatus.RECORDED, PaymentLogStatus.VERIFIED
                )
            return VerificationOutcome(
                changed=True,
                user_package=updated,
                payment=payment,
                item_name=self._package_name(updated),
            )

        outcome = self._store.run_in_transaction(_approve)
        if outcome.changed:
            logger.info(
                "Payment %s approved by %s (%s)",
                target_id,
                approver_id,
                outcome.payment_status.value if outcome.payment_status else "standalone",
            )
            if outcome.user_package is not None:
                self._notify_approval(outcome)
        return outcome

    def reject_payment(
        self,
        target_id: str,
        approver_id: UserId,
        reason: str | None = None,
    ) -> VerificationOutcome:
        """Reject a payment. The package stays pending_activation.

        Raises:
            InvalidIdError: If target_id is not a valid UUID.
            PaymentNotFoundError: If nothing matches target_id.
            InvalidTransitionError: If the payment was already verified.
        """

        def _reject() -> VerificationOutcome:
            user_package, payment = self._resolve(target_id)
            if user_package is None:
                return self._set_standalone_log_status(payment, PaymentLogStatus.REJECTED)

            if user_package.payment_status is PaymentStatus.REJECTED:
                return VerificationOutcome(changed=False, user_package=user_package)
            _ensure_transition(user_package.payment_status, PaymentStatus.REJECTED)

            updated = self._packages.apply_verification(
                user_package, PaymentStatus.REJECTED, user_package.amount_paid
            )
            self._store.set_payment_log_status(
                updated.id, PaymentLogStatus.RECORDED, PaymentLogStatus.REJECTED
            )
            return VerificationOutcome(
                changed=True,
                user_package=updated,
                payment=payment,
                item_name=self._package_name(updated),
            )

        outcome = self._store.run_in_transaction(_reject)
        if outcome.changed:
            logger.info("Payment %s rejected by %s", target_id, approver_id)
            if outcome.user_package is not None:
                self._notify(
                    NoticeTemplate.PAYMENT_REJECTED,
                    outcome,
                    {"reason": reason or DEFAULT_REJECTION_REASON},
                )
        return outcome

    def record_manual_payment(
        self,
        user_id: UserId,
        amount: Decimal,
        method: PaymentMethod,
        user_package_id: str | None = None,
        note: str | None = None,
        evidence_url: str | None = None,
    ) -> Payment:
        """Append an admin-entered payment to the history.

        Raises:
            InvalidIdError: If user_package_id is not a valid UUID.
            UserPackageNotFoundError: If the package is missing or not the user's.
            InvalidAmountError: If amount is negative.
        """
        if amount < 0:
            raise InvalidAmountError()
        upid = parse_id(UserPackageId, user_package_id) if user_package_id else None

        def _record() -> Payment:
            if upid is not None:
                user_package = self._store.get_user_package(upid)
                if user_package is None or user_package.user_id != user_id:
                    raise UserPackageNotFoundError()
            return self._store.insert_payment(
                NewPayment(
                    user_id=user_id,
                    amount=Money(amount),
                    method=method,
                    paid_at=self._clock(),
                    user_package_id=upid,
                    evidence_url=evidence_url,
                    note=note,
                )
            )

        payment = self._store.run_in_transaction(_record)
        logger.info("Manual payment %s recorded for user %s", payment.id, user_id)
        return payment

    def _set_standalone_log_status(
        self, payment: Payment, target: PaymentLogStatus
    ) -> VerificationOutcome:
        if payment.log_status is target:
            return VerificationOutcome(changed=False, payment=payment)
        if payment.log_status is not PaymentLogStatus.RECORDED:
            raise InvalidTransitionError("payment", payment.log_status.value, target.value)
        updated = self._store.update_payment_log_status(payment.id, target)
        return VerificationOutcome(changed=True, payment=updated)

    def _package_name(self, user_package: UserPackage) -> str:
        package = self._store.get_package(user_package.package_id)
        return package.name if package else "Package purchase"

    def _notify_approval(self, outcome: VerificationOutcome) -> None:
        user_package = outcome.user_package
        if user_package.payment_status is PaymentStatus.VERIFIED:
            self._notify(NoticeTemplate.PAYMENT_APPROVED, outcome, {})
            return
        remaining = user_package.amount_due.amount - user_package.amount_paid.amount
        self._notify(
            NoticeTemplate.PAYMENT_PARTIAL,
            outcome,
            {
                "paid_amount": str(user_package.amount_paid),
                "remaining_balance": str(Money(max(remaining, Decimal("0")))),
            },
        )

    def _notify(
        self, template: NoticeTemplate, outcome: VerificationOutcome, details: dict[str, str]
    ) -> None:
        notice = Notice(
            template=template,
            user_id=outcome.user_package.user_id,
            item_name=outcome.item_name,
            details=details,
        )
        dispatch_safely(self._notifier, notice)
