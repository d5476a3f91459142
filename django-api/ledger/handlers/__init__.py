from ledger.handlers.views import (
    BookingCancelView,
    BookingCreateView,
    ClassListView,
    LedgerSettingsView,
    ManualPaymentView,
    MyBookingsView,
    MyPackagesView,
    PackageListView,
    PackagePurchaseView,
    PaymentApproveView,
    PaymentMethodsView,
    PaymentRejectView,
)

__all__ = [
    "BookingCancelView",
    "BookingCreateView",
    "ClassListView",
    "LedgerSettingsView",
    "ManualPaymentView",
    "MyBookingsView",
    "MyPackagesView",
    "PackageListView",
    "PackagePurchaseView",
    "PaymentApproveView",
    "PaymentMethodsView",
    "PaymentRejectView",
]
