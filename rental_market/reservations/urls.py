from django.urls import include, path
from rest_framework.routers import DefaultRouter
from .views import (
    BookingViewSet,
    HostVoucherViewSet,
    MomoCallbackView,
    NotificationViewSet,
    PaymentOptionViewSet,
    PlaceViewSet,
    VoucherViewSet,
)

router = DefaultRouter()
router.register(r'places', PlaceViewSet, basename='place')
router.register(r'bookings', BookingViewSet, basename='booking')
router.register(r'vouchers', VoucherViewSet, basename='voucher')
router.register(r'host/vouchers', HostVoucherViewSet, basename='host-voucher')
router.register(r'payment-options', PaymentOptionViewSet, basename='payment-option')
router.register(r'notifications', NotificationViewSet, basename='notification')

urlpatterns = [
    path('', include(router.urls)),
    path('payment/momo/notify/', MomoCallbackView.as_view(), name='momo-notify'),
]
