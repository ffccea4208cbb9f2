from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
import requests
from django.utils import timezone

from rental_market.reservations import lifecycle
from rental_market.reservations.models import Booking, Notification, Place, Voucher

pytestmark = pytest.mark.django_db


@pytest.fixture
def guest_client(api_client, guest):
    api_client.force_authenticate(user=guest)
    return api_client


@pytest.fixture
def host_client(api_client, host):
    api_client.force_authenticate(user=host)
    return api_client


def booking_payload(place, days_ahead=10, nights=3, guests=2):
    check_in = timezone.localdate() + timedelta(days=days_ahead)
    return {
        'place': place.pk,
        'check_in': check_in.isoformat(),
        'check_out': (check_in + timedelta(days=nights)).isoformat(),
        'max_guests': guests,
        'name': 'Ann Guest',
        'phone': '555-0100',
    }


class TestBookingEndpoints:
    def test_requires_authentication(self, api_client):
        assert api_client.get('/api/bookings/').status_code in (401, 403)

    def test_create_and_list(self, guest_client, place):
        response = guest_client.post('/api/bookings/', booking_payload(place), format='json')

        assert response.status_code == 201
        assert response.json()['price'] == '300.00'
        assert response.json()['status'] == 'pending'
        listing = guest_client.get('/api/bookings/').json()
        assert [item['id'] for item in listing] == [response.json()['id']]

    def test_conflict_is_422(self, guest_client, place):
        guest_client.post('/api/bookings/', booking_payload(place), format='json')
        response = guest_client.post('/api/bookings/', booking_payload(place, days_ahead=12), format='json')

        assert response.status_code == 422
        assert response.json()['code'] == 'date_conflict'

    def test_bad_range_is_a_field_error(self, guest_client, place):
        response = guest_client.post('/api/bookings/', booking_payload(place, nights=0), format='json')

        assert response.status_code == 400
        assert 'check_out' in response.json()

    def test_host_cannot_book(self, host_client, place):
        response = host_client.post('/api/bookings/', booking_payload(place), format='json')
        assert response.status_code == 403

    def test_fees_and_cancel(self, guest_client, future_booking):
        fees = guest_client.get(f'/api/bookings/{future_booking.pk}/fees/').json()
        assert fees['remaining_nights'] == 3
        assert fees['cancellation_fee'] == '60.00'

        response = guest_client.delete(f'/api/bookings/{future_booking.pk}/')

        assert response.status_code == 200
        assert response.json()['cancellation_fee'] == '60.00'
        future_booking.refresh_from_db()
        assert future_booking.status == Booking.STATUS_CANCELLED

    def test_other_guest_cannot_cancel(self, api_client, other_guest, future_booking):
        api_client.force_authenticate(user=other_guest)
        assert api_client.delete(f'/api/bookings/{future_booking.pk}/').status_code == 403

    def test_checkout_outside_window(self, guest_client, future_booking):
        Booking.objects.filter(pk=future_booking.pk).update(status=Booking.STATUS_CONFIRMED)
        response = guest_client.post(f'/api/bookings/{future_booking.pk}/checkout/')
        assert response.status_code == 422
        assert response.json()['code'] == 'checkout_window_closed'

    def test_early_checkout_charges_the_fee(self, guest_client, guest, place):
        check_in = timezone.localdate() - timedelta(days=1)
        booking = lifecycle.create_booking(guest, place.pk, check_in, check_in + timedelta(days=3), 2, 'Ann', '555')
        Booking.objects.filter(pk=booking.pk).update(status=Booking.STATUS_CONFIRMED)

        response = guest_client.post(f'/api/bookings/{booking.pk}/checkout/', {'early_checkout': True}, format='json')

        assert response.status_code == 200
        assert response.json()['booking']['early_checkout_fee'] == '40.00'
        assert response.json()['booking']['total_amount'] == '340.00'


class TestPlaceEndpoints:
    def test_availability_is_public(self, api_client, future_booking, place):
        start = future_booking.check_in + timedelta(days=1)
        response = api_client.get(
            f'/api/places/{place.pk}/availability/', {'start': start.isoformat(), 'end': start.isoformat()}
        )

        assert response.status_code == 200
        assert response.json()['available'] is False
        assert len(response.json()['bookings']) == 1

    def test_unavailable_dates(self, api_client, future_booking, place):
        response = api_client.get(f'/api/places/{place.pk}/unavailable-dates/')

        assert response.status_code == 200
        assert len(response.json()['dates']) == 4

    @pytest.mark.parametrize('suffix', ['availability/?start=2025-06-10&end=2025-06-12', 'unavailable-dates/'])
    def test_unknown_place_is_404(self, api_client, suffix):
        assert api_client.get(f'/api/places/999999/{suffix}').status_code == 404

    def test_owner_lists_place_bookings(self, host_client, future_booking, place):
        response = host_client.get(f'/api/places/{place.pk}/bookings/')

        assert response.status_code == 200
        assert [item['id'] for item in response.json()] == [future_booking.pk]
        assert response.json()[0]['user'] == future_booking.user_id

    def test_place_bookings_are_owner_only(self, guest_client, future_booking, place):
        response = guest_client.get(f'/api/places/{place.pk}/bookings/')
        assert response.status_code == 403

    def test_place_bookings_for_unknown_place(self, host_client):
        assert host_client.get('/api/places/999999/bookings/').status_code == 404


class TestVoucherEndpoints:
    def test_claim_twice(self, guest_client, voucher):
        assert guest_client.post(f'/api/vouchers/{voucher.pk}/claim/').status_code == 200
        response = guest_client.post(f'/api/vouchers/{voucher.pk}/claim/')

        assert response.status_code == 422
        assert response.json()['already_claimed'] is True

    def test_validate_requires_claim(self, guest_client, voucher, future_booking):
        payload = {'voucher_code': 'summer10', 'booking_id': future_booking.pk}
        response = guest_client.post('/api/vouchers/validate/', payload, format='json')
        assert response.status_code == 422
        assert response.json()['needs_claim'] is True

        guest_client.post(f'/api/vouchers/{voucher.pk}/claim/')
        response = guest_client.post('/api/vouchers/validate/', payload, format='json')
        assert response.json() == {
            'valid': True, 'discount': 10, 'description': 'Summer discount', 'code': 'SUMMER10',
        }

    def test_available_for_booking(self, guest_client, voucher, future_booking):
        response = guest_client.get(f'/api/vouchers/available/{future_booking.pk}/')

        assert response.status_code == 200
        assert [item['code'] for item in response.json()] == ['SUMMER10']
        assert response.json()[0]['claimed'] is False

    def test_host_creates_voucher(self, host_client, place):
        payload = {
            'code': 'winter20',
            'discount': 20,
            'description': 'Winter',
            'expiration_date': (timezone.now() + timedelta(days=5)).isoformat(),
            'applicable_places': [place.pk],
        }
        response = host_client.post('/api/host/vouchers/', payload, format='json')

        assert response.status_code == 201
        assert Voucher.objects.get(code='WINTER20').applicable_places.count() == 1
        assert [item['code'] for item in host_client.get('/api/host/vouchers/').json()] == ['WINTER20']

    def test_guest_cannot_manage_vouchers(self, guest_client):
        assert guest_client.get('/api/host/vouchers/').status_code == 403


class TestHostVoucherManagement:
    @pytest.fixture
    def other_host_voucher(self, django_user_model, host):
        rival = django_user_model.objects.create_user(username='rival', password='pw')
        rival.groups.set(host.groups.all())
        return Voucher.objects.create(
            owner=rival, code='rival5', discount=5, description='Rival', expiration_date=timezone.now()
        )

    def test_retrieve_own_voucher(self, host_client, voucher):
        response = host_client.get(f'/api/host/vouchers/{voucher.pk}/')

        assert response.status_code == 200
        assert response.json()['code'] == 'SUMMER10'

    def test_other_hosts_voucher_is_hidden(self, host_client, other_host_voucher):
        assert host_client.get(f'/api/host/vouchers/{other_host_voucher.pk}/').status_code == 404
        assert host_client.delete(f'/api/host/vouchers/{other_host_voucher.pk}/').status_code == 404
        assert Voucher.objects.filter(pk=other_host_voucher.pk, is_deleted=False).exists()

    def test_update_reactivates_and_restricts(self, host_client, voucher, place):
        Voucher.objects.filter(pk=voucher.pk).update(active=False)
        payload = {
            'code': 'summer15',
            'discount': 15,
            'description': 'Late summer',
            'expiration_date': (timezone.now() + timedelta(days=10)).isoformat(),
            'applicable_places': [place.pk],
            'usage_limit': 20,
        }
        response = host_client.put(f'/api/host/vouchers/{voucher.pk}/', payload, format='json')

        assert response.status_code == 200
        voucher.refresh_from_db()
        assert voucher.code == 'SUMMER15'
        assert voucher.discount == 15
        assert voucher.usage_limit == 20
        assert voucher.active is True
        assert list(voucher.applicable_places.all()) == [place]

    def test_update_keeping_the_same_code(self, host_client, voucher):
        response = host_client.patch(f'/api/host/vouchers/{voucher.pk}/', {'code': 'summer10'}, format='json')
        assert response.status_code == 200
        assert response.json()['code'] == 'SUMMER10'

    def test_update_to_a_taken_code(self, host_client, voucher, other_host_voucher):
        response = host_client.patch(f'/api/host/vouchers/{voucher.pk}/', {'code': 'RIVAL5'}, format='json')

        assert response.status_code == 400
        assert 'code' in response.json()
        voucher.refresh_from_db()
        assert voucher.code == 'SUMMER10'

    def test_update_with_foreign_place(self, host_client, voucher, guest):
        foreign = Place.objects.create(owner=guest, title='Flat', price=Decimal('80'), max_guests=2)
        response = host_client.patch(
            f'/api/host/vouchers/{voucher.pk}/', {'applicable_places': [foreign.pk]}, format='json'
        )
        assert response.status_code == 403

    def test_delete_withdraws_the_voucher(self, host_client, voucher):
        response = host_client.delete(f'/api/host/vouchers/{voucher.pk}/')

        assert response.status_code == 200
        assert response.json()['message'] == 'Voucher deleted successfully'
        assert host_client.get('/api/host/vouchers/').json() == []
        assert host_client.get(f'/api/host/vouchers/{voucher.pk}/').status_code == 404


class TestPaymentEndpoints:
    def test_pay_later(self, guest_client, future_booking):
        payload = {'booking_id': future_booking.pk, 'amount': '300.00', 'selected_option': 'payLater'}
        response = guest_client.post('/api/payment-options/', payload, format='json')

        assert response.status_code == 200
        assert response.json()['booking']['payment_method'] == 'payLater'

    def test_card_payment(self, guest_client, future_booking):
        payload = {
            'booking_id': future_booking.pk,
            'amount': '300.00',
            'card_details': {
                'card_number': '4111111111111111', 'card_holder': 'Ann Guest', 'expiry_date': '12/39', 'cvv': '123',
            },
        }
        response = guest_client.post('/api/payment-options/card/', payload, format='json')

        assert response.status_code == 200
        assert response.json()['booking']['payment_status'] == 'paid'
        assert response.json()['payment']['card_last4'] == '1111'

    def test_invalid_card_number(self, guest_client, future_booking):
        payload = {
            'booking_id': future_booking.pk,
            'amount': '300.00',
            'card_details': {
                'card_number': '4111111111111112', 'card_holder': 'Ann Guest', 'expiry_date': '12/39', 'cvv': '123',
            },
        }
        response = guest_client.post('/api/payment-options/card/', payload, format='json')

        assert response.status_code == 400
        assert response.json()['detail'] == 'Invalid card number'

    def test_momo_flow(self, guest_client, api_client, momo_post, signed_callback, future_booking, host):
        response = guest_client.post(
            '/api/payment-options/momo/', {'booking_id': future_booking.pk, 'amount': '300.00'}, format='json'
        )
        assert response.status_code == 200
        assert response.json()['payment_url'] == 'https://pay.momo.test/checkout/ORDER1'

        api_client.force_authenticate(user=None)
        callback = api_client.post('/api/payment/momo/notify/', signed_callback(), format='json')

        assert callback.status_code == 200
        assert callback.json()['status'] == 'completed'
        future_booking.refresh_from_db()
        assert future_booking.payment_status == Booking.PAYMENT_PAID
        assert Notification.objects.filter(recipient=host, title='Payment Received').count() == 1

    def test_momo_gateway_down(self, guest_client, future_booking):
        with mock.patch('rental_market.reservations.gateway.requests.post', side_effect=requests.ConnectionError('down')):
            response = guest_client.post(
                '/api/payment-options/momo/', {'booking_id': future_booking.pk, 'amount': Decimal('300')},
                format='json',
            )
        assert response.status_code == 502
        assert response.json()['code'] == 'gateway_unavailable'

    def test_callback_with_bad_signature(self, api_client, signed_callback):
        payload = signed_callback()
        payload['signature'] = '0' * 64
        response = api_client.post('/api/payment/momo/notify/', payload, format='json')
        assert response.status_code == 400


def test_notifications_are_scoped_to_the_user(guest_client, future_booking, host):
    items = guest_client.get('/api/notifications/').json()

    assert [item['title'] for item in items] == ['Booking Request Received']
    read = guest_client.post(f"/api/notifications/{items[0]['id']}/read/")
    assert read.json()['status'] == 'read'


def test_unread_count_and_read_all(guest_client, future_booking, host):
    assert guest_client.get('/api/notifications/count/').json() == {'count': 1}

    response = guest_client.put('/api/notifications/read-all/')

    assert response.json() == {'success': True, 'updated': 1}
    assert guest_client.get('/api/notifications/count/').json() == {'count': 0}
    assert Notification.objects.filter(recipient=host).exists()
    assert not Notification.objects.filter(recipient=host, status='read').exists()
