from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.contrib.auth.models import Group
from django.utils import timezone
from rest_framework.test import APIClient

from rental_market.reservations import lifecycle
from rental_market.reservations.gateway import MomoGateway
from rental_market.reservations.models import HOST_GROUP_NAME, Booking, Place, Voucher
from rental_market.reservations.payments import AllowListCardAuthorizer, PaymentProcessor
from rental_market.reservations.vouchers import VoucherLedger


@pytest.fixture
def guest(django_user_model):
    return django_user_model.objects.create_user(username='guest', email='guest@example.com', password='pw')


@pytest.fixture
def other_guest(django_user_model):
    return django_user_model.objects.create_user(username='other', email='other@example.com', password='pw')


@pytest.fixture
def host(django_user_model):
    user = django_user_model.objects.create_user(username='host', email='host@example.com', password='pw')
    group, _ = Group.objects.get_or_create(name=HOST_GROUP_NAME)
    user.groups.add(group)
    return user


@pytest.fixture
def admin_user(django_user_model):
    return django_user_model.objects.create_user(username='admin', password='pw', is_staff=True)


@pytest.fixture
def place(host):
    return Place.objects.create(owner=host, title='Lake House', location='Da Lat', price=Decimal('100.00'), max_guests=4)


@pytest.fixture
def booking(guest, place):
    return lifecycle.create_booking(guest, place.pk, date(2025, 6, 10), date(2025, 6, 13), 2, 'Ann Guest', '555-0100')


@pytest.fixture
def future_booking(guest, place):
    check_in = timezone.localdate() + timedelta(days=10)
    return lifecycle.create_booking(guest, place.pk, check_in, check_in + timedelta(days=3), 2, 'Ann Guest', '555-0100')


@pytest.fixture
def confirmed_booking(booking):
    Booking.objects.filter(pk=booking.pk).update(
        status=Booking.STATUS_CONFIRMED, payment_status=Booking.PAYMENT_PAID, payment_method=Booking.METHOD_CARD
    )
    booking.refresh_from_db()
    return booking


@pytest.fixture
def voucher(host):
    return Voucher.objects.create(
        owner=host,
        code='summer10',
        discount=10,
        description='Summer discount',
        expiration_date=timezone.now() + timedelta(days=30),
    )


@pytest.fixture
def ledger():
    return VoucherLedger()


@pytest.fixture
def gateway():
    return MomoGateway(
        partner_code='MOMO',
        access_key='test-access-key',
        secret_key='test-secret-key',
        endpoint='https://momo.test/v2/gateway/api/create',
        redirect_url='http://client.test',
        ipn_url='http://api.test/api/payment/momo/notify/',
        amount_multiplier=23000,
    )


@pytest.fixture
def processor(gateway, ledger):
    return PaymentProcessor(
        gateway=gateway,
        authorizer=AllowListCardAuthorizer(['4111111111111111', '5555555555554444']),
        ledger=ledger,
    )


@pytest.fixture
def momo_post():
    with mock.patch('rental_market.reservations.gateway.requests.post') as post:
        post.return_value.json.return_value = {
            'resultCode': 0,
            'message': 'Successful.',
            'payUrl': 'https://pay.momo.test/checkout/ORDER1',
            'orderId': 'ORDER1',
            'requestId': 'REQ1',
        }
        yield post


@pytest.fixture
def signed_callback(gateway):
    def build(order_id='ORDER1', result_code=0, trans_id='TX123', **overrides):
        fields = {
            'partnerCode': gateway.partner_code,
            'orderId': order_id,
            'requestId': 'REQ1',
            'amount': 6900000,
            'orderInfo': 'Payment for booking',
            'orderType': 'momo_wallet',
            'transId': trans_id,
            'resultCode': result_code,
            'message': 'Successful.',
            'payType': 'qr',
            'responseTime': 1718000000000,
            'extraData': '',
        }
        fields.update(overrides)
        signature = gateway.sign(dict(fields, accessKey=gateway.access_key), gateway.CALLBACK_SIGNATURE_FIELDS)
        return dict(fields, signature=signature)

    return build


@pytest.fixture
def api_client():
    return APIClient()
