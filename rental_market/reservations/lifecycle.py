"""Booking lifecycle: creation, payment state, cancellation and checkout.

A booking starts ``pending``. Immediate payments move it to ``confirmed``;
``cancelled`` and ``completed`` are terminal. Status changes that can race
(checkout against the auto-complete sweep, gateway callbacks) are written as
conditional updates keyed on the expected prior status, so a transition is
applied at most once.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from . import signals
from .availability import is_range_available
from .errors import (
    CancellationWindowClosed,
    CheckoutWindowClosed,
    DateConflict,
    Forbidden,
    GuestLimitExceeded,
    InvalidDateRange,
    InvalidTransition,
    NotFound,
)
from .models import ROLE_ADMIN, ROLE_HOST, Booking, Payment, Place, get_user_role

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
CENT = Decimal("0.01")

TRANSITIONS = {
    Booking.STATUS_PENDING: (Booking.STATUS_CONFIRMED, Booking.STATUS_CANCELLED),
    Booking.STATUS_CONFIRMED: (Booking.STATUS_COMPLETED, Booking.STATUS_CANCELLED),
    Booking.STATUS_CANCELLED: (),
    Booking.STATUS_COMPLETED: (),
}


@dataclass(frozen=True)
class CancellationResult:
    booking_id: int
    fee: Decimal
    deleted: bool
    booking: Optional[Booking] = None


@dataclass(frozen=True)
class FeeQuote:
    remaining_nights: int
    nightly_rate: Decimal
    fee_rate: Decimal
    fee: Decimal


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def ensure_transition(booking: Booking, target: str) -> None:
    if not can_transition(booking.status, target):
        raise InvalidTransition(f"A {booking.status} booking cannot become {target}.")


def start_of_day(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min))


def _fee_rate() -> Decimal:
    return Decimal(str(getattr(settings, "BOOKING_FEE_RATE", "0.20")))


def remaining_nights(booking: Booking, now: datetime) -> int:
    """Whole days left until check-out, between zero and the booked nights."""
    seconds = (start_of_day(booking.check_out) - now).total_seconds()
    nights = math.ceil(seconds / ONE_DAY.total_seconds())
    return max(0, min(nights, booking.nights))


def quote_fee(booking: Booking, now: Optional[datetime] = None) -> FeeQuote:
    if now is None:
        now = timezone.now()
    nights = remaining_nights(booking, now)
    rate = _fee_rate()
    nightly_rate = booking.nightly_rate
    fee = (nightly_rate * rate * nights).quantize(CENT, rounding=ROUND_HALF_UP)
    return FeeQuote(
        remaining_nights=nights,
        nightly_rate=nightly_rate.quantize(CENT, rounding=ROUND_HALF_UP),
        fee_rate=rate,
        fee=fee,
    )


def quote_cancellation_fee(booking: Booking, now: Optional[datetime] = None) -> Decimal:
    return quote_fee(booking, now).fee


def quote_early_checkout_fee(booking: Booking, now: Optional[datetime] = None) -> Decimal:
    return quote_fee(booking, now).fee


def get_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_related("place", "user", "owner").get(pk=booking_id, is_deleted=False)
    except (Booking.DoesNotExist, ValueError, TypeError):
        raise NotFound("Booking not found")


def get_booking_for_user(booking_id, user, message: str = "Not authorized") -> Booking:
    booking = get_booking(booking_id)
    if booking.user_id != user.pk:
        raise Forbidden(message)
    return booking


def list_place_bookings(place_id, user):
    """Bookings of a place, visible to its owner only."""
    try:
        place = Place.objects.get(pk=place_id)
    except (Place.DoesNotExist, ValueError, TypeError):
        raise NotFound("Place not found")
    if place.owner_id != user.pk:
        raise Forbidden("Unauthorized")
    return (
        Booking.objects.select_related("user", "payment")
        .filter(place=place, is_deleted=False)
        .order_by("check_in")
    )


def create_booking(user, place_id, check_in: date, check_out: date, guests: int, name: str, phone: str) -> Booking:
    if get_user_role(user) in (ROLE_ADMIN, ROLE_HOST):
        raise Forbidden("Administrators and hosts are not allowed to make bookings")
    if check_out <= check_in:
        raise InvalidDateRange()

    with transaction.atomic():
        # Locking the place serialises concurrent requests for the same dates.
        try:
            place = Place.objects.select_for_update().get(pk=place_id)
        except (Place.DoesNotExist, ValueError, TypeError):
            raise NotFound("Place not found")

        if place.owner_id == user.pk:
            raise Forbidden("You cannot book your own property")
        if not is_range_available(place.pk, check_in, check_out):
            raise DateConflict()
        if guests > place.max_guests:
            raise GuestLimitExceeded(f"This place accepts at most {place.max_guests} guests.")

        nights = (check_out - check_in).days
        booking = Booking.objects.create(
            place=place,
            user=user,
            owner_id=place.owner_id,
            check_in=check_in,
            check_out=check_out,
            max_guests=guests,
            name=name,
            phone=phone,
            price=place.price * nights,
            status=Booking.STATUS_PENDING,
        )

    logger.info("Booking %s created for place %s (%s -> %s)", booking.pk, place.pk, check_in, check_out)
    signals.publish(signals.booking_created, sender=Booking, booking=booking)
    return booking


def cancel_booking(booking_id, user, now: Optional[datetime] = None) -> CancellationResult:
    if now is None:
        now = timezone.now()
    booking = get_booking_for_user(booking_id, user, "Unauthorized to cancel this booking")
    ensure_transition(booking, Booking.STATUS_CANCELLED)
    if timezone.localdate(now) >= booking.check_in:
        raise CancellationWindowClosed()

    fee = quote_cancellation_fee(booking, now)
    booking_pk = booking.pk
    deleted = bool(getattr(settings, "BOOKING_CANCEL_HARD_DELETE", False))

    if deleted:
        booking.delete()
    else:
        payment_status = booking.payment_status
        if payment_status != Booking.PAYMENT_PAID:
            payment_status = Booking.PAYMENT_CANCELLED
        updated = Booking.objects.filter(pk=booking_pk, status=booking.status).update(
            status=Booking.STATUS_CANCELLED,
            payment_status=payment_status,
            cancellation_fee=fee,
            cancelled_at=now,
            is_active=False,
            updated_at=now,
        )
        if not updated:
            raise InvalidTransition("The booking changed while it was being cancelled.")
        booking.refresh_from_db()

    logger.info("Booking %s cancelled by user %s with fee %s (deleted=%s)", booking_pk, user.pk, fee, deleted)
    signals.publish(
        signals.booking_cancelled, sender=Booking, booking=booking, booking_id=booking_pk, fee=fee, deleted=deleted
    )
    return CancellationResult(booking_id=booking_pk, fee=fee, deleted=deleted, booking=None if deleted else booking)


def _complete(booking: Booking, now: datetime, early_checkout_fee: Decimal = Decimal("0")) -> bool:
    updated = Booking.objects.filter(pk=booking.pk, status=Booking.STATUS_CONFIRMED).update(
        status=Booking.STATUS_COMPLETED,
        checkout_date=now,
        early_checkout_fee=early_checkout_fee,
        total_amount=F("price") + early_checkout_fee,
        updated_at=now,
    )
    return updated == 1


def checkout_booking(booking_id, user, now: Optional[datetime] = None, early_checkout: bool = False) -> Booking:
    """Complete a confirmed booking.

    A normal checkout is accepted from midnight of the check-out day until the grace period ends. An early checkout
    is accepted from midnight of the check-in day and stores the early-checkout fee, so the total becomes
    ``price + early_checkout_fee``.
    """
    if now is None:
        now = timezone.now()
    booking = get_booking_for_user(booking_id, user)
    if booking.status != Booking.STATUS_CONFIRMED:
        raise InvalidTransition("Booking must be confirmed before checkout")

    grace = timedelta(days=getattr(settings, "BOOKING_CHECKOUT_GRACE_DAYS", 1))
    opens_at = start_of_day(booking.check_in if early_checkout else booking.check_out)
    if not opens_at <= now <= start_of_day(booking.check_out) + grace:
        raise CheckoutWindowClosed()

    fee = quote_early_checkout_fee(booking, now) if early_checkout else Decimal("0")
    if not _complete(booking, now, fee):
        raise InvalidTransition("Booking has already been completed")

    booking.refresh_from_db()
    logger.info("Booking %s checked out by user %s (early checkout fee %s)", booking.pk, user.pk, fee)
    signals.publish(signals.booking_completed, sender=Booking, booking=booking, automatic=False)
    return booking


def auto_complete_bookings(now: Optional[datetime] = None) -> int:
    """Complete confirmed bookings whose check-out is at least a day old."""
    if now is None:
        now = timezone.now()
    completed = 0
    try:
        cutoff = timezone.localdate(now - ONE_DAY)
        booking_ids = list(
            Booking.objects.filter(status=Booking.STATUS_CONFIRMED, check_out__lte=cutoff, is_deleted=False)
            .order_by("check_out", "pk")
            .values_list("pk", flat=True)
        )
        for booking_id in booking_ids:
            try:
                booking = Booking.objects.select_related("place", "user").get(pk=booking_id)
                if not _complete(booking, now):
                    continue
                booking.refresh_from_db()
                completed += 1
                signals.publish(signals.booking_completed, sender=Booking, booking=booking, automatic=True)
            except Exception:
                logger.exception("Failed to auto-complete booking %s", booking_id)
    except Exception:
        logger.exception("Auto-complete sweep failed")
    logger.info("Auto-completed %s bookings", completed)
    return completed


def mark_paid(booking: Booking, payment: Payment) -> bool:
    """Record a settled payment on the booking and confirm it.

    Returns False when the booking is terminal or was already paid by another payment.
    """
    updated = (
        Booking.objects.filter(pk=booking.pk, status__in=(Booking.STATUS_PENDING, Booking.STATUS_CONFIRMED))
        .exclude(payment_status=Booking.PAYMENT_PAID)
        .update(
            status=Booking.STATUS_CONFIRMED,
            payment_status=Booking.PAYMENT_PAID,
            payment_method=payment.method,
            payment=payment,
            payment_amount=payment.amount,
            voucher_code=payment.voucher_code,
            discount_amount=payment.discount_amount,
            updated_at=timezone.now(),
        )
    )
    return updated == 1


def mark_payment_failed(booking: Booking) -> bool:
    updated = Booking.objects.filter(
        pk=booking.pk, payment_status__in=(Booking.PAYMENT_PENDING, Booking.PAYMENT_FAILED)
    ).update(payment_status=Booking.PAYMENT_FAILED, updated_at=timezone.now())
    return updated == 1


def mark_awaiting_payment(booking: Booking, payment: Payment) -> bool:
    """Attach a pending payment; deferred payments also put the booking back to pending."""
    fields = {
        "payment_status": Booking.PAYMENT_PENDING,
        "payment_method": payment.method,
        "payment": payment,
        "payment_amount": payment.amount,
        "updated_at": timezone.now(),
    }
    if payment.method == Booking.METHOD_PAY_LATER:
        fields["status"] = Booking.STATUS_PENDING
    updated = (
        Booking.objects.filter(pk=booking.pk, status__in=(Booking.STATUS_PENDING, Booking.STATUS_CONFIRMED))
        .exclude(payment_status=Booking.PAYMENT_PAID)
        .update(**fields)
    )
    return updated == 1
