from ledger.domain.config import LedgerConfig, PaymentMethodConfig
from ledger.domain.models import (
    Booking,
    BookingKind,
    BookingStatus,
    ClassCategory,
    ClassSession,
    Package,
    PackageType,
    Payment,
    PaymentLogStatus,
    PaymentMethod,
    PaymentStatus,
    ProductType,
    UserPackage,
    UserPackageStatus,
)
from ledger.domain.value_objects import (
    BookingId,
    Capacity,
    ClassSessionId,
    Money,
    PackageId,
    PaymentId,
    UserId,
    UserPackageId,
)

__all__ = [
    "Booking",
    "BookingKind",
    "BookingStatus",
    "ClassCategory",
    "ClassSession",
    "Package",
    "PackageType",
    "Payment",
    "PaymentLogStatus",
    "PaymentMethod",
    "PaymentStatus",
    "ProductType",
    "UserPackage",
    "UserPackageStatus",
    "LedgerConfig",
    "PaymentMethodConfig",
    "BookingId",
    "ClassSessionId",
    "PackageId",
    "PaymentId",
    "UserId",
    "UserPackageId",
    "Money",
    "Capacity",
]
