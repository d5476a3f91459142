"""Domain error codes for the ledger module."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Failure taxonomy shared by every ledger operation."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID = "invalid"
    TRANSIENT = "transient"
    UNAUTHENTICATED = "unauthenticated"


class ErrorCode(Enum):
    """Domain error codes."""

    CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"
    USER_PACKAGE_NOT_FOUND = "USER_PACKAGE_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    INVALID_ID = "INVALID_ID"
    CUTOFF_PASSED = "CUTOFF_PASSED"
    CLASS_FULL = "CLASS_FULL"
    ALREADY_BOOKED = "ALREADY_BOOKED"
    NO_CREDITS_REMAINING = "NO_CREDITS_REMAINING"
    NO_USABLE_PACKAGE = "NO_USABLE_PACKAGE"
    PACKAGE_INACTIVE = "PACKAGE_INACTIVE"
    PAYMENT_METHOD_NOT_ACCEPTED = "PAYMENT_METHOD_NOT_ACCEPTED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_BOOKING_OWNER = "NOT_BOOKING_OWNER"
    TRANSIENT = "TRANSIENT"


ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.CLASS_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.BOOKING_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.PACKAGE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.USER_PACKAGE_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.INVALID_ID: ErrorKind.INVALID,
    ErrorCode.CUTOFF_PASSED: ErrorKind.INVALID,
    ErrorCode.CLASS_FULL: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_BOOKED: ErrorKind.CONFLICT,
    ErrorCode.NO_CREDITS_REMAINING: ErrorKind.CONFLICT,
    ErrorCode.NO_USABLE_PACKAGE: ErrorKind.CONFLICT,
    ErrorCode.PACKAGE_INACTIVE: ErrorKind.INVALID,
    ErrorCode.PAYMENT_METHOD_NOT_ACCEPTED: ErrorKind.INVALID,
    ErrorCode.INVALID_AMOUNT: ErrorKind.INVALID,
    ErrorCode.INVALID_TRANSITION: ErrorKind.CONFLICT,
    ErrorCode.NOT_BOOKING_OWNER: ErrorKind.FORBIDDEN,
    ErrorCode.TRANSIENT: ErrorKind.TRANSIENT,
}


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    @property
    def kind(self) -> ErrorKind:
        return ERROR_KINDS[self.code]

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ClassNotFoundError(DomainError):
    """Raised when a class is missing or has been cancelled."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.CLASS_NOT_FOUND, message="Class not found")


class BookingNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.BOOKING_NOT_FOUND, message="Booking not found")


class PackageNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.PACKAGE_NOT_FOUND, message="Package not found")


class UserPackageNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.USER_PACKAGE_NOT_FOUND,
            message="Purchased package not found",
        )


class PaymentNotFoundError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.PAYMENT_NOT_FOUND, message="Payment not found")


class InvalidIdError(DomainError):
    """Raised when an identifier is not a valid UUID."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_ID, message="Invalid ID format")


class CutoffPassedError(DomainError):
    """Raised when self-service booking closes before the class starts."""

    def __init__(self, cutoff_minutes: int) -> None:
        super().__init__(
            code=ErrorCode.CUTOFF_PASSED,
            message=f"Online booking closes {cutoff_minutes} minutes before class",
        )


class ClassFullError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.CLASS_FULL, message="Class is fully booked")


class AlreadyBookedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_BOOKED,
            message="You already have a booking for this class",
        )


class NoCreditsRemainingError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NO_CREDITS_REMAINING,
            message="No credits remaining on this package",
        )


class NoUsablePackageError(DomainError):
    """Raised when a credit booking is requested without an active package."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NO_USABLE_PACKAGE,
            message="No active package with credits available",
        )


class PackageInactiveError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.PACKAGE_INACTIVE, message="Package is not active")


class PaymentMethodNotAcceptedError(DomainError):
    def __init__(self, method: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_METHOD_NOT_ACCEPTED,
            message=f"Payment method '{method}' is not currently accepted",
        )


class InvalidAmountError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_AMOUNT, message="Amount cannot be negative")


class InvalidTransitionError(DomainError):
    """Raised when a state change is not one of the enumerated transitions."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot move {entity} from {current} to {target}",
        )


class NotBookingOwnerError(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.NOT_BOOKING_OWNER, message="Forbidden")


class TransientError(DomainError):
    """Datastore timeout or contention; safe to retry."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.TRANSIENT,
            message="Temporarily unavailable, please retry",
        )
