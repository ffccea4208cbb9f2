"""Voucher claims, validation and consumption.

A guest has to claim a voucher before it can be validated for a booking,
may claim it once and may use it once. Consumption happens only after a
successful immediate payment and is keyed on the booking, so recording the
same booking twice is a no-op.
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from .errors import (
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
from .lifecycle import get_booking_for_user
from .models import Place, Voucher, VoucherClaim, VoucherRedemption

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class VoucherValidation:
    valid: bool
    discount_percent: int
    description: str
    code: str = ""


@dataclass(frozen=True)
class AvailableVoucher:
    voucher: Voucher
    claimed: bool
    used: bool

    @property
    def can_use(self):
        return self.claimed and not self.used


def discount_amount(amount, percent) -> Decimal:
    return (Decimal(amount) * Decimal(percent) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_discount(amount, percent) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP) - discount_amount(amount, percent)


class VoucherLedger:
    """Claim and usage bookkeeping for vouchers."""

    def get_by_code(self, code, for_update=False) -> Voucher:
        queryset = Voucher.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        voucher = queryset.filter(code=str(code or "").strip().upper(), is_deleted=False).first()
        if voucher is None:
            raise VoucherNotFound()
        return voucher

    def get_by_reference(self, reference) -> Voucher:
        """Look a voucher up by primary key, falling back to its code."""
        reference = str(reference or "").strip()
        vouchers = Voucher.objects.filter(is_deleted=False)
        voucher = None
        if reference.isdigit():
            voucher = vouchers.filter(pk=int(reference)).first()
        if voucher is None:
            voucher = vouchers.filter(code=reference.upper()).first()
        if voucher is None:
            raise VoucherNotFound()
        return voucher

    def list_available_for_booking(self, booking_id, user, now=None) -> list:
        if now is None:
            now = timezone.now()
        booking = get_booking_for_user(booking_id, user)
        vouchers = list(
            Voucher.objects.filter(
                active=True,
                is_deleted=False,
                expiration_date__gt=now,
                used_count__lt=F("usage_limit"),
            )
            .filter(Q(applicable_places=booking.place_id) | Q(applicable_places__isnull=True))
            .distinct()
            .prefetch_related("applicable_places")
            .order_by("-created_at")
        )
        voucher_ids = [voucher.pk for voucher in vouchers]
        claimed = set(
            VoucherClaim.objects.filter(user=user, voucher_id__in=voucher_ids).values_list("voucher_id", flat=True)
        )
        used = set(
            VoucherRedemption.objects.filter(user=user, voucher_id__in=voucher_ids).values_list("voucher_id", flat=True)
        )
        return [
            AvailableVoucher(voucher=voucher, claimed=voucher.pk in claimed, used=voucher.pk in used)
            for voucher in vouchers
        ]

    def validate(self, voucher_code, booking_id, user, now=None) -> VoucherValidation:
        """Check that ``user`` may use the voucher on the booking. Never mutates."""
        if now is None:
            now = timezone.now()
        voucher = self.get_by_code(voucher_code)
        booking = get_booking_for_user(booking_id, user)

        if not voucher.active:
            raise VoucherInactive()
        if voucher.expiration_date <= now:
            raise VoucherExpired()
        if voucher.used_count >= voucher.usage_limit:
            raise VoucherLimitReached()
        if not voucher.is_claimed_by(user):
            raise VoucherNotClaimed(needs_claim=True)
        if not voucher.applies_to(booking.place_id):
            raise VoucherNotApplicable()
        if voucher.is_used_by(user):
            raise VoucherAlreadyUsed()

        return VoucherValidation(
            valid=True,
            discount_percent=voucher.discount,
            description=voucher.description,
            code=voucher.code,
        )

    def claim(self, reference, user) -> VoucherClaim:
        voucher = self.get_by_reference(reference)
        try:
            with transaction.atomic():
                claim, created = VoucherClaim.objects.get_or_create(voucher=voucher, user=user)
        except IntegrityError:
            created = False
        if not created:
            raise VoucherAlreadyClaimed(already_claimed=True)
        logger.info("User %s claimed voucher %s", user.pk, voucher.code)
        return claim

    def consume(self, voucher_code, user, booking):
        """Count one use of the voucher for ``booking``.

        Returns the redemption, or ``None`` when the booking was already
        recorded against this voucher.
        """
        now = timezone.now()
        with transaction.atomic():
            voucher = self.get_by_code(voucher_code)
            try:
                with transaction.atomic():
                    redemption = VoucherRedemption.objects.create(
                        voucher=voucher, user=user, booking=booking, used_at=now
                    )
            except IntegrityError:
                if VoucherRedemption.objects.filter(voucher=voucher, booking=booking).exists():
                    logger.info("Voucher %s already consumed for booking %s", voucher.code, booking.pk)
                    return None
                raise VoucherAlreadyUsed()

            updated = Voucher.objects.filter(pk=voucher.pk, used_count__lt=F("usage_limit")).update(
                used_count=F("used_count") + 1, updated_at=now
            )
            if not updated:
                raise VoucherLimitReached()

        logger.info("Voucher %s consumed by user %s for booking %s", voucher.code, user.pk, booking.pk)
        return redemption

    def _check_places(self, owner, place_ids) -> None:
        if place_ids:
            owned = Place.objects.filter(pk__in=place_ids, owner=owner).count()
            if owned != len(set(place_ids)):
                raise Forbidden("Invalid places selected")

    def create_voucher(self, owner, code, discount, description, expiration_date, applicable_places=(),
                       usage_limit=100) -> Voucher:
        place_ids = list(applicable_places or ())
        self._check_places(owner, place_ids)
        voucher = Voucher.objects.create(
            owner=owner,
            code=code,
            discount=discount,
            description=description,
            expiration_date=expiration_date,
            usage_limit=usage_limit,
        )
        if place_ids:
            voucher.applicable_places.set(place_ids)
        return voucher

    def update_voucher(self, voucher, owner, **fields) -> Voucher:
        """Apply a host's edits to one of their vouchers and reactivate it."""
        if voucher.owner_id != owner.pk:
            raise VoucherNotFound("Voucher not found")
        place_ids = fields.pop("applicable_places", None)
        if place_ids is not None:
            place_ids = list(place_ids)
            self._check_places(owner, place_ids)
        with transaction.atomic():
            for name, value in fields.items():
                setattr(voucher, name, value)
            voucher.active = True
            voucher.save()
            if place_ids is not None:
                voucher.applicable_places.set(place_ids)
        logger.info("Host %s updated voucher %s", owner.pk, voucher.code)
        return voucher

    def delete_voucher(self, voucher, owner) -> None:
        """Withdraw a voucher. Claims and redemptions are kept for the record."""
        updated = Voucher.objects.filter(pk=voucher.pk, owner=owner, is_deleted=False).update(
            is_deleted=True, active=False, updated_at=timezone.now()
        )
        if not updated:
            raise VoucherNotFound("Voucher not found")
        logger.info("Host %s deleted voucher %s", owner.pk, voucher.code)

    def list_for_host(self, owner):
        return Voucher.objects.filter(owner=owner, is_deleted=False).prefetch_related("applicable_places")
