from decimal import Decimal

from rest_framework import serializers

from .models import Booking, Notification, Payment, Place, Voucher
from .payments import OPTION_PAY_LATER, OPTION_PAY_NOW


class PlaceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Place
        fields = ('id', 'owner', 'title', 'location', 'price', 'max_guests', 'created_at')
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    booking = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = Payment
        fields = (
            'id',
            'booking',
            'method',
            'amount',
            'status',
            'voucher_code',
            'discount_amount',
            'card_last4',
            'order_id',
            'transaction_id',
            'created_at',
            'updated_at',
        )
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    payment = PaymentSerializer(read_only=True)
    nights = serializers.IntegerField(read_only=True)

    class Meta:
        model = Booking
        exclude = ('is_deleted',)


class BookingCreateSerializer(serializers.Serializer):
    place = serializers.IntegerField()
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    max_guests = serializers.IntegerField(min_value=1)
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=30)

    def validate(self, attrs):
        if attrs['check_out'] <= attrs['check_in']:
            raise serializers.ValidationError({'check_out': 'Check-out must be after check-in.'})
        return attrs


class AvailabilityQuerySerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'End date must not be before start date.'})
        return attrs


class CardDetailsSerializer(serializers.Serializer):
    card_number = serializers.CharField(max_length=40)
    card_holder = serializers.CharField(max_length=150)
    expiry_date = serializers.CharField(max_length=7)
    cvv = serializers.CharField(max_length=4)


class WalletPaymentSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))


class CardPaymentSerializer(WalletPaymentSerializer):
    card_details = CardDetailsSerializer()
    voucher_code = serializers.CharField(max_length=50, required=False, allow_blank=True)


class PaymentOptionSerializer(WalletPaymentSerializer):
    selected_option = serializers.ChoiceField(choices=(OPTION_PAY_LATER, OPTION_PAY_NOW))
    payment_method = serializers.ChoiceField(
        choices=(Booking.METHOD_CARD, Booking.METHOD_MOMO), required=False, allow_blank=True
    )
    card_details = CardDetailsSerializer(required=False)
    voucher_code = serializers.CharField(max_length=50, required=False, allow_blank=True)


class VoucherSerializer(serializers.ModelSerializer):
    applicable_places = serializers.PrimaryKeyRelatedField(many=True, read_only=True)

    class Meta:
        model = Voucher
        fields = (
            'id',
            'code',
            'discount',
            'description',
            'expiration_date',
            'active',
            'applicable_places',
            'usage_limit',
            'used_count',
            'created_at',
        )
        read_only_fields = fields


class VoucherCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    discount = serializers.IntegerField(min_value=0, max_value=100)
    description = serializers.CharField()
    expiration_date = serializers.DateTimeField()
    applicable_places = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    usage_limit = serializers.IntegerField(min_value=1, required=False, default=100)

    def validate_code(self, value):
        code = value.strip().upper()
        existing = Voucher.objects.filter(code=code)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if existing.exists():
            raise serializers.ValidationError('A voucher with this code already exists.')
        return code


class CheckoutSerializer(serializers.Serializer):
    early_checkout = serializers.BooleanField(required=False, default=False)


class VoucherValidateSerializer(serializers.Serializer):
    voucher_code = serializers.CharField(max_length=50)
    booking_id = serializers.IntegerField()


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ('id', 'type', 'title', 'message', 'link', 'priority', 'category', 'metadata', 'status', 'created_at')
        read_only_fields = fields
