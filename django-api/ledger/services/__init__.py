from ledger.services.booking_service import BookingService
from ledger.services.package_service import PackageService
from ledger.services.payment_service import PaymentVerificationService, VerificationOutcome
from ledger.services.settings_service import SettingsService

__all__ = [
    "BookingService",
    "PackageService",
    "PaymentVerificationService",
    "SettingsService",
    "VerificationOutcome",
]
