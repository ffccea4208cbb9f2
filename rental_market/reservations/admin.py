from django.contrib import admin

from .models import Booking, Notification, Payment, Place, Voucher, VoucherClaim, VoucherRedemption


@admin.register(Place)
class PlaceAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "location", "price", "max_guests", "created_at")
    search_fields = ("title", "location", "owner__username")
    list_filter = ("location",)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id", "place", "user", "status", "payment_status", "payment_method", "check_in", "check_out", "price",
    )
    list_filter = ("status", "payment_status", "payment_method", "check_in", "check_out")
    search_fields = ("name", "phone", "user__username", "place__title")
    readonly_fields = ("created_at", "updated_at", "checkout_date", "cancelled_at")
    autocomplete_fields = ("place",)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "method", "amount", "status", "order_id", "transaction_id", "created_at")
    list_filter = ("status", "method")
    search_fields = ("order_id", "transaction_id", "booking__user__username")
    readonly_fields = ("created_at", "updated_at", "raw_response", "card_last4")
    autocomplete_fields = ("booking",)


class VoucherClaimInline(admin.TabularInline):
    model = VoucherClaim
    extra = 0
    readonly_fields = ("user", "claimed_at")


class VoucherRedemptionInline(admin.TabularInline):
    model = VoucherRedemption
    extra = 0
    readonly_fields = ("user", "booking", "used_at")


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ("code", "owner", "discount", "expiration_date", "active", "used_count", "usage_limit")
    list_filter = ("active", "expiration_date")
    search_fields = ("code", "owner__username")
    filter_horizontal = ("applicable_places",)
    inlines = (VoucherClaimInline, VoucherRedemptionInline)


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "recipient", "type", "priority", "status", "created_at")
    list_filter = ("type", "priority", "status")
    search_fields = ("title", "recipient__username")
