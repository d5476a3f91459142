from django.contrib import admin

from ledger.models import AppSetting, Booking, ClassSession, ClassType, Package, Payment, UserPackage


class BookingInline(admin.TabularInline):
    model = Booking
    extra = 0
    fields = ["user", "status", "kind", "created_at", "cancelled_at"]
    readonly_fields = fields
    can_delete = False


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ["amount", "method", "log_status", "paid_at", "evidence_url"]
    readonly_fields = fields
    can_delete = False


@admin.register(ClassType)
class ClassTypeAdmin(admin.ModelAdmin):
    list_display = ["name"]
    search_fields = ["name"]


@admin.register(ClassSession)
class ClassSessionAdmin(admin.ModelAdmin):
    list_display = ["title", "category", "starts_at", "capacity", "booked_count", "is_cancelled"]
    list_filter = ["category", "is_cancelled", "class_type"]
    search_fields = ["title"]
    # Seat counts move only through bookings.
    readonly_fields = ["booked_count"]
    inlines = [BookingInline]


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = ["name", "type", "credits", "duration_days", "price", "is_active"]
    list_filter = ["type", "is_active"]


@admin.register(UserPackage)
class UserPackageAdmin(admin.ModelAdmin):
    list_display = ["user", "package", "status", "payment_status", "credits_remaining", "expire_at"]
    list_filter = ["status", "payment_status", "package"]
    search_fields = ["user__username", "user__email"]
    # Status changes go through the payment verification workflow.
    readonly_fields = [
        "status",
        "payment_status",
        "credits_remaining",
        "credits_granted",
        "activated_at",
        "amount_paid",
    ]
    inlines = [PaymentInline]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ["user", "class_session", "status", "kind", "created_at"]
    list_filter = ["status", "kind"]
    search_fields = ["user__username", "class_session__title"]
    # Moving a booking would leave booked_count behind.
    readonly_fields = ["user", "class_session", "kind", "user_package", "status", "cancelled_at"]

    def has_add_permission(self, request):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["user", "amount", "method", "log_status", "paid_at"]
    list_filter = ["log_status", "method"]

    # Payment history is append-only.
    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AppSetting)
class AppSettingAdmin(admin.ModelAdmin):
    list_display = ["key", "version", "updated_at"]
    readonly_fields = ["version"]
