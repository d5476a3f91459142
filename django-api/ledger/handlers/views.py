"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses (see handlers.errors)
- Never contain business logic
- Never expose internal error details

Config is loaded once per request and handed to the services, so a
single request sees a single settings version.
"""

from django.conf import settings
from django.core.cache import cache
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.cache import PACKAGES_LIST_KEY, classes_list_key
from ledger.domain import (
    BookingKind,
    PaymentMethod,
    PaymentMethodConfig,
    UserId,
)
from ledger.handlers.dependencies import get_services
from ledger.handlers.retry import call_with_retry
from ledger.handlers.serializers import (
    ApprovePaymentSerializer,
    BookingSerializer,
    ClassListQuerySerializer,
    ClassSessionSerializer,
    CreateBookingSerializer,
    LedgerSettingsUpdateSerializer,
    ManualPaymentSerializer,
    PackageSerializer,
    PaymentSerializer,
    PurchasePackageSerializer,
    RejectPaymentSerializer,
    UserPackageSerializer,
)
from ledger.services.common import utcnow
from ledger.stores.interfaces import ClassListFilters


def _user_id(request: Request) -> UserId:
    return UserId(request.user.pk)


class ClassListView(APIView):
    """Handler for GET /api/classes"""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        query = ClassListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        filters = ClassListFilters(
            start=params.get("start"),
            end=params.get("end"),
            category=params.get("category"),
            class_type_id=params.get("classTypeId"),
        )

        ttl = settings.LEDGER["CLASS_LIST_CACHE_SECONDS"]
        if not ttl:
            response = Response(self._render(filters))
            response["Cache-Control"] = "no-store"
            return response

        key = classes_list_key(
            filters.start.isoformat() if filters.start else None,
            filters.end.isoformat() if filters.end else None,
            filters.category.value if filters.category else None,
            filters.class_type_id,
        )
        data = cache.get(key)
        if data is None:
            data = self._render(filters)
            cache.set(key, data, timeout=ttl)
        return Response(data)

    def _render(self, filters: ClassListFilters) -> list:
        sessions = call_with_retry(get_services().bookings.list_classes, filters)
        return ClassSessionSerializer(sessions, many=True).data


class PackageListView(APIView):
    """Handler for GET /api/packages"""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        data = cache.get(PACKAGES_LIST_KEY)
        if data is None:
            packages = call_with_retry(get_services().packages.list_packages)
            data = PackageSerializer(packages, many=True).data
            cache.set(PACKAGES_LIST_KEY, data, timeout=settings.LEDGER["PACKAGE_LIST_CACHE_SECONDS"])
        return Response(data)


class PaymentMethodsView(APIView):
    """Handler for GET /api/settings/payment-methods"""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        config = call_with_retry(get_services().settings.load)
        return Response(
            {
                "version": config.version,
                "bookingCutoffMinutes": config.booking_cutoff_minutes,
                "paymentMethods": config.payment_methods_to_dict(),
            }
        )


class LedgerSettingsView(APIView):
    """Handler for PUT /api/settings (staff only)"""

    permission_classes = [IsAdminUser]

    def put(self, request: Request) -> Response:
        body = LedgerSettingsUpdateSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data
        settings_service = get_services().settings

        current = call_with_retry(settings_service.load)
        updates = {}
        for product, toggles in data.get("paymentMethods", {}).items():
            merged = {**current.methods_for(product).to_dict(), **toggles}
            updates[product] = PaymentMethodConfig.from_dict(merged)
        config = call_with_retry(
            settings_service.update,
            cutoff_minutes=data.get("bookingCutoffMinutes"),
            methods=updates,
        )

        return Response(
            {
                "version": config.version,
                "bookingCutoffMinutes": config.booking_cutoff_minutes,
                "paymentMethods": config.payment_methods_to_dict(),
            }
        )


class BookingCreateView(APIView):
    """Handler for POST /api/bookings"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        body = CreateBookingSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        user_id = _user_id(request)
        manual = data["manual"]
        if "userId" in data or manual:
            if not request.user.is_staff:
                raise PermissionDenied("Only staff can book on behalf of members")
            user_id = UserId(data["userId"].pk if "userId" in data else request.user.pk)

        services = get_services()
        config = call_with_retry(services.settings.load)
        booking = call_with_retry(
            services.bookings.create_booking,
            user_id,
            data["classId"],
            BookingKind(data["kind"]),
            config,
            manual=manual,
        )
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class MyBookingsView(APIView):
    """Handler for GET /api/me/bookings"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        bookings = call_with_retry(get_services().bookings.list_bookings, _user_id(request))
        return Response(BookingSerializer(bookings, many=True).data)


class BookingCancelView(APIView):
    """Handler for POST /api/bookings/{booking_id}/cancel"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, booking_id: str) -> Response:
        call_with_retry(
            get_services().bookings.cancel_booking, booking_id, _user_id(request)
        )
        return Response({"ok": True})


class PackagePurchaseView(APIView):
    """Handler for POST /api/packages/{package_id}/purchase"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, package_id: str) -> Response:
        body = PurchasePackageSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        services = get_services()
        config = call_with_retry(services.settings.load)
        user_package = call_with_retry(
            services.packages.purchase_package,
            _user_id(request),
            package_id,
            PaymentMethod(data["paymentMethod"]),
            config,
            evidence_url=data.get("paymentSlipUrl") or None,
            note=data.get("paymentNote") or None,
        )
        return Response({"ok": True, "userPackageId": str(user_package.id)})


class MyPackagesView(APIView):
    """Handler for GET /api/me/packages"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        user_packages = call_with_retry(
            get_services().packages.list_user_packages, _user_id(request)
        )
        serializer = UserPackageSerializer(user_packages, many=True, context={"now": utcnow()})
        return Response(serializer.data)


class ManualPaymentView(APIView):
    """Handler for POST /api/payments (staff only)"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request) -> Response:
        body = ManualPaymentSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        payment = call_with_retry(
            get_services().payments.record_manual_payment,
            UserId(data["userId"].pk),
            data["amount"],
            PaymentMethod(data["method"]),
            user_package_id=data.get("userPackageId") or None,
            note=data.get("note") or None,
            evidence_url=data.get("evidenceUrl") or None,
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentApproveView(APIView):
    """Handler for POST /api/payments/{payment_id}/approve (staff only)"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, payment_id: str) -> Response:
        body = ApprovePaymentSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        outcome = call_with_retry(
            get_services().payments.approve_payment,
            payment_id,
            _user_id(request),
            amount_paid=body.validated_data.get("amountPaid"),
        )
        payment_status = outcome.payment_status
        return Response(
            {
                "ok": True,
                "changed": outcome.changed,
                "paymentStatus": payment_status.value if payment_status else None,
            }
        )


class PaymentRejectView(APIView):
    """Handler for POST /api/payments/{payment_id}/reject (staff only)"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, payment_id: str) -> Response:
        body = RejectPaymentSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        outcome = call_with_retry(
            get_services().payments.reject_payment,
            payment_id,
            _user_id(request),
            reason=body.validated_data.get("reason") or None,
        )
        return Response({"ok": True, "changed": outcome.changed})
