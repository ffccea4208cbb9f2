import logging

from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView

from . import availability, lifecycle
from .errors import ReservationError
from .models import ROLE_HOST, Booking, Notification, Place, get_user_role
from .payments import CardDetails, WalletRedirect, get_payment_processor
from .serializers import (
	AvailabilityQuerySerializer,
	BookingCreateSerializer,
	BookingSerializer,
	CardPaymentSerializer,
	CheckoutSerializer,
	NotificationSerializer,
	PaymentOptionSerializer,
	PaymentSerializer,
	PlaceSerializer,
	VoucherCreateSerializer,
	VoucherSerializer,
	VoucherValidateSerializer,
	WalletPaymentSerializer,
)
from .vouchers import VoucherLedger

logger = logging.getLogger(__name__)


def error_response(exc: ReservationError) -> Response:
	return Response(exc.as_dict(), status=exc.status_code)


def payment_response(result) -> Response:
	payload = {
		'success': True,
		'payment': PaymentSerializer(result.payment).data,
		'booking': {
			'id': result.booking.pk,
			'status': result.booking.status,
			'payment_status': result.booking.payment_status,
			'payment_method': result.booking.payment_method,
			'amount': str(result.payment.amount),
		},
	}
	if isinstance(result, WalletRedirect):
		payload['payment_url'] = result.redirect_url
		payload['order_id'] = result.order_id
	return Response(payload)


class PlaceViewSet(viewsets.ReadOnlyModelViewSet):
	queryset = Place.objects.all().order_by('-created_at')
	serializer_class = PlaceSerializer
	permission_classes = [permissions.AllowAny]

	@action(detail=True, methods=['get'])
	def availability(self, request, pk=None):
		place = self.get_object()
		query = AvailabilityQuerySerializer(data=request.query_params)
		query.is_valid(raise_exception=True)
		start, end = query.validated_data['start'], query.validated_data['end']
		conflicts = availability.conflicting_bookings(place.pk, start, end).values('check_in', 'check_out')
		return Response(
			{
				'available': not conflicts.exists(),
				'bookings': list(conflicts),
			}
		)

	@action(detail=True, methods=['get'], url_path='unavailable-dates')
	def unavailable_dates(self, request, pk=None):
		place = self.get_object()
		ranges = availability.unavailable_ranges(place.pk)
		return Response(
			{
				'ranges': [{'check_in': check_in, 'check_out': check_out} for check_in, check_out in ranges],
				'dates': availability.unavailable_dates(place.pk),
			}
		)

	@action(detail=True, methods=['get'], permission_classes=[permissions.IsAuthenticated])
	def bookings(self, request, pk=None):
		try:
			bookings = lifecycle.list_place_bookings(pk, request.user)
		except ReservationError as exc:
			return error_response(exc)

		return Response(BookingSerializer(bookings, many=True).data)


class BookingViewSet(
	mixins.ListModelMixin,
	mixins.RetrieveModelMixin,
	viewsets.GenericViewSet,
):
	serializer_class = BookingSerializer

	def get_queryset(self):
		return (
			Booking.objects.select_related('place', 'payment')
			.filter(user=self.request.user, is_deleted=False)
			.order_by('-created_at')
		)

	def create(self, request, *args, **kwargs):
		serializer = BookingCreateSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		data = serializer.validated_data
		try:
			booking = lifecycle.create_booking(
				request.user,
				data['place'],
				data['check_in'],
				data['check_out'],
				data['max_guests'],
				data['name'],
				data['phone'],
			)
		except ReservationError as exc:
			return error_response(exc)

		return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

	def destroy(self, request, pk=None):
		try:
			result = lifecycle.cancel_booking(pk, request.user)
		except ReservationError as exc:
			return error_response(exc)

		return Response(
			{
				'success': 'Booking cancelled successfully',
				'booking': result.booking_id,
				'cancellation_fee': str(result.fee),
				'deleted': result.deleted,
			}
		)

	@action(detail=True, methods=['get'])
	def fees(self, request, pk=None):
		try:
			booking = lifecycle.get_booking_for_user(pk, request.user)
		except ReservationError as exc:
			return error_response(exc)

		quote = lifecycle.quote_fee(booking)
		return Response(
			{
				'booking': booking.pk,
				'remaining_nights': quote.remaining_nights,
				'nightly_rate': str(quote.nightly_rate),
				'fee_rate': str(quote.fee_rate),
				'cancellation_fee': str(quote.fee),
				'early_checkout_fee': str(quote.fee),
				'can_cancel': lifecycle.can_transition(booking.status, Booking.STATUS_CANCELLED),
			}
		)

	@action(detail=True, methods=['post'])
	def checkout(self, request, pk=None):
		serializer = CheckoutSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		try:
			booking = lifecycle.checkout_booking(
				pk, request.user, early_checkout=serializer.validated_data['early_checkout']
			)
		except ReservationError as exc:
			return error_response(exc)

		return Response({'success': True, 'message': 'Checkout successful', 'booking': BookingSerializer(booking).data})


class VoucherViewSet(viewsets.GenericViewSet):
	serializer_class = VoucherSerializer
	ledger_class = VoucherLedger

	def get_ledger(self):
		return self.ledger_class()

	@action(detail=False, methods=['get'], url_path=r'available/(?P<booking_id>[^/.]+)')
	def available(self, request, booking_id=None):
		try:
			entries = self.get_ledger().list_available_for_booking(booking_id, request.user)
		except ReservationError as exc:
			return error_response(exc)

		payload = []
		for entry in entries:
			data = VoucherSerializer(entry.voucher).data
			data.update({'claimed': entry.claimed, 'used': entry.used, 'can_use': entry.can_use})
			payload.append(data)
		return Response(payload)

	@action(detail=True, methods=['post'])
	def claim(self, request, pk=None):
		ledger = self.get_ledger()
		try:
			claim = ledger.claim(pk, request.user)
		except ReservationError as exc:
			return error_response(exc)

		data = VoucherSerializer(claim.voucher).data
		data['is_claimed'] = True
		return Response({'success': True, 'message': 'Voucher claimed successfully', 'voucher': data})

	@action(detail=False, methods=['post'])
	def validate(self, request):
		serializer = VoucherValidateSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		try:
			result = self.get_ledger().validate(
				serializer.validated_data['voucher_code'],
				serializer.validated_data['booking_id'],
				request.user,
			)
		except ReservationError as exc:
			return error_response(exc)

		return Response(
			{
				'valid': result.valid,
				'discount': result.discount_percent,
				'description': result.description,
				'code': result.code,
			}
		)


class HostVoucherViewSet(
	mixins.ListModelMixin,
	mixins.RetrieveModelMixin,
	mixins.UpdateModelMixin,
	mixins.DestroyModelMixin,
	viewsets.GenericViewSet,
):
	serializer_class = VoucherSerializer
	ledger_class = VoucherLedger

	def initial(self, request, *args, **kwargs):
		super().initial(request, *args, **kwargs)
		if get_user_role(request.user) != ROLE_HOST:
			raise PermissionDenied('Only hosts can manage vouchers.')

	def get_ledger(self):
		return self.ledger_class()

	def get_queryset(self):
		return self.get_ledger().list_for_host(self.request.user).order_by('-created_at')

	def create(self, request, *args, **kwargs):
		serializer = VoucherCreateSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		try:
			voucher = self.get_ledger().create_voucher(request.user, **serializer.validated_data)
		except ReservationError as exc:
			return error_response(exc)

		return Response(VoucherSerializer(voucher).data, status=status.HTTP_201_CREATED)

	def update(self, request, *args, **kwargs):
		voucher = self.get_object()
		serializer = VoucherCreateSerializer(voucher, data=request.data, partial=kwargs.pop('partial', False))
		serializer.is_valid(raise_exception=True)
		try:
			voucher = self.get_ledger().update_voucher(voucher, request.user, **serializer.validated_data)
		except ReservationError as exc:
			return error_response(exc)

		return Response(VoucherSerializer(voucher).data)

	def destroy(self, request, *args, **kwargs):
		voucher = self.get_object()
		try:
			self.get_ledger().delete_voucher(voucher, request.user)
		except ReservationError as exc:
			return error_response(exc)

		return Response({'message': 'Voucher deleted successfully'})


class PaymentOptionViewSet(viewsets.ViewSet):
	"""Payment entry points for the guest's own bookings."""

	def get_processor(self):
		return get_payment_processor()

	def create(self, request):
		serializer = PaymentOptionSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		data = serializer.validated_data
		card = CardDetails(**data['card_details']) if data.get('card_details') else None
		try:
			result = self.get_processor().select_option(
				data['booking_id'],
				request.user,
				data['amount'],
				data['selected_option'],
				method=data.get('payment_method') or None,
				card=card,
				voucher_code=data.get('voucher_code') or None,
			)
		except ReservationError as exc:
			return error_response(exc)

		return payment_response(result)

	@action(detail=False, methods=['post'])
	def momo(self, request):
		serializer = WalletPaymentSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		try:
			result = self.get_processor().pay_with_wallet(
				serializer.validated_data['booking_id'],
				request.user,
				serializer.validated_data['amount'],
			)
		except ReservationError as exc:
			return error_response(exc)

		return payment_response(result)

	@action(detail=False, methods=['post'])
	def card(self, request):
		serializer = CardPaymentSerializer(data=request.data)
		serializer.is_valid(raise_exception=True)
		data = serializer.validated_data
		try:
			result = self.get_processor().pay_with_card(
				data['booking_id'],
				request.user,
				data['amount'],
				CardDetails(**data['card_details']),
				voucher_code=data.get('voucher_code') or None,
			)
		except ReservationError as exc:
			return error_response(exc)

		return payment_response(result)


class MomoCallbackView(APIView):
	"""Handle asynchronous payment notifications from MoMo."""

	authentication_classes: list = []
	permission_classes: list = []

	def post(self, request, *args, **kwargs):
		try:
			payment = get_payment_processor().handle_wallet_callback(request.data)
		except ReservationError as exc:
			logger.warning('MoMo callback rejected for order %s: %s', request.data.get('orderId'), exc)
			return error_response(exc)

		return Response(
			{
				'detail': 'Payment processed.',
				'status': payment.status,
				'order_id': payment.order_id,
			}
		)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
	serializer_class = NotificationSerializer

	def get_queryset(self):
		return Notification.objects.filter(recipient=self.request.user)

	@action(detail=True, methods=['post'], url_path='read')
	def mark_read(self, request, pk=None):
		notification = self.get_object()
		notification.status = 'read'
		notification.save(update_fields=['status'])
		return Response(NotificationSerializer(notification).data)

	@action(detail=False, methods=['get'])
	def count(self, request):
		return Response({'count': self.get_queryset().filter(status='unread').count()})

	@action(detail=False, methods=['put', 'post'], url_path='read-all')
	def read_all(self, request):
		updated = self.get_queryset().filter(status='unread').update(status='read')
		return Response({'success': True, 'updated': updated})
