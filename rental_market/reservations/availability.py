"""Date-range availability for places.

Ranges are compared inclusively: a stay ending on the 13th and a stay
starting on the 13th conflict, so there is no same-day turnover.
"""
from datetime import date, timedelta

from django.db.models import QuerySet
from django.utils import timezone

from .models import Booking


def active_bookings(place_id) -> QuerySet:
    return Booking.objects.filter(place_id=place_id, is_deleted=False).exclude(
        status=Booking.STATUS_CANCELLED
    )


def conflicting_bookings(place_id, check_in: date, check_out: date) -> QuerySet:
    """Bookings of ``place_id`` whose range touches ``[check_in, check_out]``."""
    return active_bookings(place_id).filter(check_in__lte=check_out, check_out__gte=check_in)


def is_range_available(place_id, check_in: date, check_out: date) -> bool:
    return not conflicting_bookings(place_id, check_in, check_out).exists()


def unavailable_ranges(place_id, today: date = None) -> list:
    """``(check_in, check_out)`` pairs of bookings that have not ended yet."""
    if today is None:
        today = timezone.localdate()
    return list(
        active_bookings(place_id)
        .filter(check_out__gte=today)
        .order_by("check_in")
        .values_list("check_in", "check_out")
    )


def unavailable_dates(place_id, today: date = None) -> list:
    if today is None:
        today = timezone.localdate()
    days = set()
    for check_in, check_out in unavailable_ranges(place_id, today):
        current = max(check_in, today)
        while current <= check_out:
            days.add(current)
            current += timedelta(days=1)
    return sorted(days)
