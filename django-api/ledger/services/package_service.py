"""Package lifecycle: purchase, activation and the credit counter.

UserPackage status moves pending_activation -> active only through
apply_verification. Expiry is never written; readers use
UserPackage.effective_status(now).
"""

import logging
from datetime import timedelta

from ledger.domain import (
    LedgerConfig,
    Money,
    Package,
    PackageId,
    PackageType,
    PaymentMethod,
    PaymentStatus,
    ProductType,
    UserId,
    UserPackage,
    UserPackageId,
    UserPackageStatus,
)
from ledger.domain.errors import (
    InvalidTransitionError,
    NoCreditsRemainingError,
    PackageInactiveError,
    PackageNotFoundError,
    PaymentMethodNotAcceptedError,
    UserPackageNotFoundError,
)
from ledger.services.common import Clock, parse_id, utcnow
from ledger.stores.interfaces import LedgerStore, NewPayment, NewUserPackage

logger = logging.getLogger(__name__)

USER_PACKAGE_TRANSITIONS: dict[UserPackageStatus, frozenset[UserPackageStatus]] = {
    UserPackageStatus.PENDING_ACTIVATION: frozenset({UserPackageStatus.ACTIVE}),
    UserPackageStatus.ACTIVE: frozenset(),
    UserPackageStatus.EXPIRED: frozenset(),
}


def initial_payment_status(method: PaymentMethod, evidence_url: str | None) -> PaymentStatus:
    if method is PaymentMethod.CASH:
        return PaymentStatus.UNPAID
    if evidence_url:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING_VERIFICATION


class PackageService:
    """Service for package purchases and credit accounting."""

    def __init__(self, store: LedgerStore, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    def list_packages(self) -> list[Package]:
        """Return the active catalog."""
        return self._store.list_packages(active_only=True)

    def list_user_packages(self, user_id: UserId) -> list[UserPackage]:
        return self._store.list_user_packages_for_user(user_id)

    def find_usable_package(self, user_id: UserId) -> UserPackage | None:
        """Return the package a credit booking would draw from, if any."""
        return self._store.find_usable_user_package(user_id, self._clock())

    def purchase_package(
        self,
        user_id: UserId,
        package_id: str,
        payment_method: PaymentMethod,
        config: LedgerConfig,
        evidence_url: str | None = None,
        note: str | None = None,
    ) -> UserPackage:
        """Create a pending purchase and its payment history record.

        Raises:
            InvalidIdError: If package_id is not a valid UUID.
            PackageNotFoundError: If the package does not exist.
            PackageInactiveError: If the package is hidden from the catalog.
            PaymentMethodNotAcceptedError: If the method is disabled for packages.
        """
        pid = parse_id(PackageId, package_id)
        now = self._clock()

        def _purchase() -> UserPackage:
            package = self._store.get_package(pid)
            if package is None:
                raise PackageNotFoundError()
            if not package.is_active:
                raise PackageInactiveError()
            if not config.methods_for(ProductType.PACKAGES).accepts(payment_method):
                raise PaymentMethodNotAcceptedError(payment_method.value)

            user_package = self._store.insert_user_package(
                NewUserPackage(
                    user_id=user_id,
                    package=package,
                    start_at=now,
                    expire_at=now + timedelta(days=package.duration_days),
                    payment_method=payment_method,
                    payment_status=initial_payment_status(payment_method, evidence_url),
                    payment_note=note,
                    payment_slip_url=evidence_url,
                )
            )
            self._append_payment_history(user_package, evidence_url, note)
            return user_package

        user_package = self._store.run_in_transaction(_purchase)
        logger.info(
            "User %s purchased package %s as %s (%s)",
            user_id,
            pid,
            user_package.id,
            user_package.payment_status.value,
        )
        return user_package

    def _append_payment_history(
        self, user_package: UserPackage, evidence_url: str | None, note: str | None
    ) -> None:
        new_payment = NewPayment(
            user_id=user_package.user_id,
            amount=user_package.amount_due,
            method=user_package.payment_method,
            paid_at=user_package.start_at,
            user_package_id=user_package.id,
            evidence_url=evidence_url,
            note=note,
        )
        try:
            self._store.run_in_transaction(lambda: self._store.insert_payment(new_payment))
        except Exception:
            # History is secondary to the purchase itself.
            logger.exception("Payment record failed for user package %s", user_package.id)

    def consume_credit(self, user_package_id: UserPackageId) -> None:
        """Take one credit from a package; unlimited packages are untouched.

        Raises:
            UserPackageNotFoundError: If the package does not exist.
            NoCreditsRemainingError: If a credit package has nothing left.
        """
        user_package = self._store.get_user_package(user_package_id)
        if user_package is None:
            raise UserPackageNotFoundError()
        if user_package.package_type is PackageType.UNLIMITED:
            return
        if not self._store.try_consume_credit(user_package_id):
            raise NoCreditsRemainingError()

    def refund_credit(self, user_package_id: UserPackageId) -> bool:
        """Give back one credit, never beyond the amount granted at purchase."""
        user_package = self._store.get_user_package(user_package_id)
        if user_package is None:
            raise UserPackageNotFoundError()
        if user_package.package_type is PackageType.UNLIMITED:
            return False
        refunded = self._store.refund_credit(user_package_id)
        if not refunded:
            logger.warning(
                "Credit refund for %s skipped: already at granted allotment", user_package_id
            )
        return refunded

    def apply_verification(
        self,
        user_package: UserPackage,
        payment_status: PaymentStatus,
        amount_paid: Money,
    ) -> UserPackage:
        """Persist a payment decision, activating the package once verified."""
        status = user_package.status
        activated_at = user_package.activated_at
        if payment_status is PaymentStatus.VERIFIED and status is not UserPackageStatus.ACTIVE:
            if UserPackageStatus.ACTIVE not in USER_PACKAGE_TRANSITIONS[status]:
                raise InvalidTransitionError("package", status.value, UserPackageStatus.ACTIVE.value)
            status = UserPackageStatus.ACTIVE
            activated_at = self._clock()
        return self._store.save_payment_outcome(
            user_package.id,
            payment_status=payment_status,
            amount_paid=amount_paid,
            status=status,
            activated_at=activated_at,
        )
