from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from rental_market.reservations import lifecycle
from rental_market.reservations.errors import (
    Forbidden,
    VoucherAlreadyClaimed,
    VoucherAlreadyUsed,
    VoucherExpired,
    VoucherInactive,
    VoucherLimitReached,
    VoucherNotApplicable,
    VoucherNotClaimed,
    VoucherNotFound,
)
from rental_market.reservations.models import Place, Voucher, VoucherRedemption
from rental_market.reservations.vouchers import apply_discount, discount_amount

pytestmark = pytest.mark.django_db


def test_discount_math():
    assert discount_amount(Decimal('300'), 10) == Decimal('30.00')
    assert apply_discount(Decimal('300'), 10) == Decimal('270.00')
    assert apply_discount(Decimal('99.99'), 15) == Decimal('84.99')


def test_codes_are_stored_upper_case(voucher):
    assert voucher.code == 'SUMMER10'


class TestClaim:
    def test_claim_by_code_or_id(self, ledger, voucher, guest, other_guest):
        assert ledger.claim('summer10', guest).voucher == voucher
        assert ledger.claim(str(voucher.pk), other_guest).voucher == voucher

    def test_second_claim_is_rejected(self, ledger, voucher, guest):
        ledger.claim('SUMMER10', guest)
        with pytest.raises(VoucherAlreadyClaimed) as excinfo:
            ledger.claim('SUMMER10', guest)
        assert excinfo.value.as_dict()['already_claimed'] is True
        assert voucher.claims.count() == 1

    def test_unknown_voucher(self, ledger, guest):
        with pytest.raises(VoucherNotFound):
            ledger.claim('NOPE', guest)

    def test_id_wins_over_a_numeric_code(self, ledger, host, guest):
        expires = timezone.now() + timedelta(days=5)
        numeric = Voucher.objects.create(owner=host, code='TMP', discount=5, description='A', expiration_date=expires)
        target = Voucher.objects.create(owner=host, code='TARGET', discount=15, description='B', expiration_date=expires)
        numeric.code = str(target.pk)
        numeric.save()

        assert ledger.claim(str(target.pk), guest).voucher == target

    def test_numeric_code_is_found_when_no_id_matches(self, ledger, host):
        voucher = Voucher.objects.create(
            owner=host, code='99999', discount=5, description='Numeric', expiration_date=timezone.now()
        )
        assert ledger.get_by_reference('99999') == voucher


class TestValidate:
    def test_claimed_voucher_is_valid(self, ledger, voucher, booking, guest):
        ledger.claim('SUMMER10', guest)
        result = ledger.validate('summer10', booking.pk, guest)
        assert result.valid
        assert result.discount_percent == 10
        assert result.code == 'SUMMER10'

    def test_claim_is_required(self, ledger, voucher, booking, guest):
        with pytest.raises(VoucherNotClaimed) as excinfo:
            ledger.validate('SUMMER10', booking.pk, guest)
        assert excinfo.value.as_dict()['needs_claim'] is True

    def test_checks_run_in_order(self, ledger, voucher, booking, guest):
        voucher.active = False
        voucher.expiration_date = timezone.now() - timedelta(days=1)
        voucher.save()
        with pytest.raises(VoucherInactive):
            ledger.validate('SUMMER10', booking.pk, guest)

        voucher.active = True
        voucher.save()
        with pytest.raises(VoucherExpired):
            ledger.validate('SUMMER10', booking.pk, guest)

        voucher.expiration_date = timezone.now() + timedelta(days=1)
        voucher.used_count = voucher.usage_limit
        voucher.save()
        with pytest.raises(VoucherLimitReached):
            ledger.validate('SUMMER10', booking.pk, guest)

    def test_place_restriction(self, ledger, voucher, booking, guest, host):
        other = Place.objects.create(owner=host, title='Cabin', price=Decimal('50'), max_guests=2)
        voucher.applicable_places.set([other])
        ledger.claim('SUMMER10', guest)
        with pytest.raises(VoucherNotApplicable):
            ledger.validate('SUMMER10', booking.pk, guest)

    def test_foreign_booking_is_rejected(self, ledger, voucher, booking, other_guest):
        ledger.claim('SUMMER10', other_guest)
        with pytest.raises(Forbidden):
            ledger.validate('SUMMER10', booking.pk, other_guest)

    def test_used_voucher(self, ledger, voucher, booking, guest):
        ledger.claim('SUMMER10', guest)
        ledger.consume('SUMMER10', guest, booking)
        with pytest.raises(VoucherAlreadyUsed):
            ledger.validate('SUMMER10', booking.pk, guest)


class TestConsume:
    def test_second_consume_for_same_booking_is_a_no_op(self, ledger, voucher, booking, guest):
        assert ledger.consume('SUMMER10', guest, booking) is not None
        assert ledger.consume('SUMMER10', guest, booking) is None

        voucher.refresh_from_db()
        assert voucher.used_count == 1
        assert VoucherRedemption.objects.filter(voucher=voucher, user=guest).count() == 1

    def test_same_user_cannot_use_it_on_another_booking(self, ledger, voucher, booking, guest, place):
        ledger.consume('SUMMER10', guest, booking)
        second = lifecycle.create_booking(guest, place.pk, date(2025, 8, 1), date(2025, 8, 3), 1, 'Ann', '555')
        with pytest.raises(VoucherAlreadyUsed):
            ledger.consume('SUMMER10', guest, second)

    def test_usage_limit_is_never_exceeded(self, ledger, voucher, booking, guest, other_guest, place):
        Voucher.objects.filter(pk=voucher.pk).update(usage_limit=1)
        other_booking = lifecycle.create_booking(
            other_guest, place.pk, date(2025, 8, 1), date(2025, 8, 3), 1, 'Bo', '556'
        )

        ledger.consume('SUMMER10', guest, booking)
        with pytest.raises(VoucherLimitReached):
            ledger.consume('SUMMER10', other_guest, other_booking)

        voucher.refresh_from_db()
        assert voucher.used_count == 1
        assert not VoucherRedemption.objects.filter(user=other_guest).exists()


class TestHostVouchers:
    def test_create_for_own_places(self, ledger, host, place):
        voucher = ledger.create_voucher(
            host, 'WINTER', 20, 'Winter', timezone.now() + timedelta(days=5), applicable_places=[place.pk]
        )
        assert list(voucher.applicable_places.all()) == [place]
        assert list(ledger.list_for_host(host)) == [voucher]

    def test_foreign_places_are_rejected(self, ledger, host, guest):
        foreign = Place.objects.create(owner=guest, title='Flat', price=Decimal('80'), max_guests=2)
        with pytest.raises(Forbidden, match='Invalid places selected'):
            ledger.create_voucher(host, 'WINTER', 20, 'Winter', timezone.now(), applicable_places=[foreign.pk])

    def test_update_reactivates(self, ledger, voucher, host, place):
        voucher.active = False
        voucher.save()

        ledger.update_voucher(voucher, host, discount=25, applicable_places=[place.pk])

        voucher.refresh_from_db()
        assert voucher.active is True
        assert voucher.discount == 25
        assert list(voucher.applicable_places.all()) == [place]

    def test_only_the_owner_can_update(self, ledger, voucher, guest):
        with pytest.raises(VoucherNotFound):
            ledger.update_voucher(voucher, guest, discount=50)

    def test_delete_hides_it_from_guests(self, ledger, voucher, host, booking, guest):
        ledger.claim('SUMMER10', guest)
        ledger.delete_voucher(voucher, host)

        assert list(ledger.list_for_host(host)) == []
        assert ledger.list_available_for_booking(booking.pk, guest) == []
        with pytest.raises(VoucherNotFound):
            ledger.validate('SUMMER10', booking.pk, guest)
        with pytest.raises(VoucherNotFound):
            ledger.delete_voucher(voucher, host)


def test_inactive_voucher_is_not_offered(ledger, voucher, booking, guest):
    Voucher.objects.filter(pk=voucher.pk).update(active=False)
    assert ledger.list_available_for_booking(booking.pk, guest) == []
    assert 'is_active' not in {field.name for field in Voucher._meta.get_fields()}


def test_available_vouchers_for_booking(ledger, voucher, booking, guest, host):
    Voucher.objects.create(
        owner=host, code='OLD', discount=5, description='Expired', expiration_date=timezone.now() - timedelta(days=1)
    )
    ledger.claim('SUMMER10', guest)

    entries = ledger.list_available_for_booking(booking.pk, guest)

    assert [entry.voucher.code for entry in entries] == ['SUMMER10']
    assert entries[0].claimed and entries[0].can_use
