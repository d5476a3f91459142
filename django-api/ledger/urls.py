from django.urls import path

from ledger.handlers import (
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

urlpatterns = [
    path("classes", ClassListView.as_view(), name="class-list"),
    path("bookings", BookingCreateView.as_view(), name="booking-create"),
    path(
        "bookings/<str:booking_id>/cancel",
        BookingCancelView.as_view(),
        name="booking-cancel",
    ),
    path("me/bookings", MyBookingsView.as_view(), name="my-bookings"),
    path("packages", PackageListView.as_view(), name="package-list"),
    path(
        "packages/<str:package_id>/purchase",
        PackagePurchaseView.as_view(),
        name="package-purchase",
    ),
    path("me/packages", MyPackagesView.as_view(), name="my-packages"),
    path("payments", ManualPaymentView.as_view(), name="payment-create"),
    path(
        "payments/<str:payment_id>/approve",
        PaymentApproveView.as_view(),
        name="payment-approve",
    ),
    path(
        "payments/<str:payment_id>/reject",
        PaymentRejectView.as_view(),
        name="payment-reject",
    ),
    path("settings", LedgerSettingsView.as_view(), name="ledger-settings"),
    path(
        "settings/payment-methods",
        PaymentMethodsView.as_view(),
        name="payment-methods",
    ),
]
