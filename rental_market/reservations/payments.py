"""Payment processing for bookings.

Three branches are supported: a stored card charged immediately, a MoMo
wallet redirect settled by an asynchronous gateway callback, and a deferred
pay-at-property option. Card numbers and CVVs never reach the database; a
payment record keeps the last four digits only.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from . import lifecycle, signals
from .errors import (
    AlreadyPaid,
    GatewayUnavailable,
    InvalidCardDetails,
    InvalidSignature,
    InvalidTransition,
    NotFound,
    PaymentDeclined,
    ReservationError,
)
from .gateway import GatewayError, MomoGateway
from .models import Booking, Payment
from .vouchers import VoucherLedger, discount_amount

logger = logging.getLogger(__name__)

OPTION_PAY_LATER = "payLater"
OPTION_PAY_NOW = "payNow"

HOLDER_PATTERN = re.compile(r"[A-Za-z\s]{2,}")
CVV_PATTERN = re.compile(r"\d{3,4}")
EXPIRY_PATTERN = re.compile(r"\s*(\d{1,2})\s*/\s*(\d{2})\s*")


@dataclass(frozen=True)
class CardDetails:
    card_number: str
    card_holder: str
    expiry_date: str
    cvv: str

    @property
    def clean_number(self) -> str:
        return re.sub(r"\D", "", self.card_number or "")

    @property
    def last4(self) -> str:
        return self.clean_number[-4:]


@dataclass(frozen=True)
class PaymentResult:
    payment: Payment
    booking: Booking


@dataclass(frozen=True)
class WalletRedirect:
    payment: Payment
    booking: Booking
    redirect_url: str
    order_id: str


def luhn_valid(number: str) -> bool:
    if not number or not number.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(number)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_card_details(card: CardDetails, today: Optional[date] = None) -> None:
    """Raise ``InvalidCardDetails`` with a message the guest can act on."""
    if today is None:
        today = timezone.localdate()
    if not all((card.card_number, card.card_holder, card.expiry_date, card.cvv)):
        raise InvalidCardDetails("Invalid card details")

    number = card.clean_number
    if not luhn_valid(number):
        raise InvalidCardDetails("Invalid card number")
    if not 13 <= len(number) <= 19:
        raise InvalidCardDetails("Invalid card number length")

    match = EXPIRY_PATTERN.fullmatch(card.expiry_date)
    if not match or not 1 <= int(match.group(1)) <= 12:
        raise InvalidCardDetails("Invalid expiry date")
    month, year = int(match.group(1)), 2000 + int(match.group(2))
    if (year, month) < (today.year, today.month):
        raise InvalidCardDetails("Card has expired")

    if not CVV_PATTERN.fullmatch(card.cvv.strip()):
        raise InvalidCardDetails("Invalid CVV")
    if not HOLDER_PATTERN.fullmatch(card.card_holder.strip()):
        raise InvalidCardDetails("Invalid cardholder name")


class AllowListCardAuthorizer:
    """Approves only the card numbers on a fixed allow-list."""

    def __init__(self, approved_numbers):
        self.approved_numbers = frozenset(approved_numbers)

    @classmethod
    def from_settings(cls):
        return cls(getattr(settings, "TEST_CARD_NUMBERS", ()))

    def authorize(self, card: CardDetails, amount) -> bool:
        return card.clean_number in self.approved_numbers


class PaymentProcessor:
    def __init__(self, gateway, authorizer, ledger=None):
        self.gateway = gateway
        self.authorizer = authorizer
        self.ledger = ledger or VoucherLedger()

    def _payable_booking(self, booking_id, user) -> Booking:
        booking = lifecycle.get_booking_for_user(booking_id, user, "Booking not found or unauthorized")
        if booking.payment_status == Booking.PAYMENT_PAID:
            raise AlreadyPaid()
        if booking.is_terminal:
            raise InvalidTransition(f"Cannot pay for a {booking.status} booking.")
        return booking

    def _fail(self, payment: Payment, booking: Booking) -> None:
        Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
            status=Payment.STATUS_FAILED, updated_at=timezone.now()
        )
        payment.refresh_from_db()
        signals.publish(signals.payment_failed, sender=Payment, payment=payment, booking=booking)

    def pay_with_card(self, booking_id, user, amount, card: CardDetails, voucher_code=None) -> PaymentResult:
        booking = self._payable_booking(booking_id, user)
        validate_card_details(card)

        validation = None
        if voucher_code:
            validation = self.ledger.validate(voucher_code, booking.pk, user)

        payment = Payment.objects.create(
            booking=booking,
            user=user,
            method=Booking.METHOD_CARD,
            amount=Decimal(str(amount)),
            card_last4=card.last4,
            card_holder=card.card_holder.strip(),
            voucher_code=validation.code if validation else "",
            discount_amount=discount_amount(booking.price, validation.discount_percent) if validation else None,
        )

        approved = self.authorizer.authorize(card, amount)
        if not approved:
            logger.info("Card payment %s declined for booking %s", payment.pk, booking.pk)
            self._fail(payment, booking)
            raise PaymentDeclined()

        try:
            with transaction.atomic():
                if validation:
                    self.ledger.consume(validation.code, user, booking)
                Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
                    status=Payment.STATUS_COMPLETED, updated_at=timezone.now()
                )
                payment.refresh_from_db()
                if not lifecycle.mark_paid(booking, payment):
                    raise InvalidTransition("The booking can no longer be paid.")
        except ReservationError as exc:
            logger.warning("Card payment %s for booking %s could not be settled: %s", payment.pk, booking.pk, exc)
            self._fail(payment, booking)
            raise

        booking.refresh_from_db()
        logger.info("Card payment %s completed for booking %s", payment.pk, booking.pk)
        signals.publish(signals.payment_completed, sender=Payment, payment=payment, booking=booking)
        return PaymentResult(payment=payment, booking=booking)

    def pay_with_wallet(self, booking_id, user, amount) -> WalletRedirect:
        booking = self._payable_booking(booking_id, user)
        payment = Payment.objects.create(
            booking=booking,
            user=user,
            method=Booking.METHOD_MOMO,
            amount=Decimal(str(amount)),
        )

        try:
            order = self.gateway.create_payment(
                amount=payment.amount, booking_id=booking.pk, user_id=user.pk, payment_id=payment.pk
            )
        except GatewayError as exc:
            logger.warning("MoMo initiation failed for booking %s: %s", booking.pk, exc)
            payment.delete()
            raise GatewayUnavailable()

        payment.order_id = order.order_id
        payment.request_id = order.request_id
        payment.raw_response = order.raw
        payment.save(update_fields=["order_id", "request_id", "raw_response", "updated_at"])
        lifecycle.mark_awaiting_payment(booking, payment)
        booking.refresh_from_db()

        logger.info("MoMo payment %s awaiting callback for order %s", payment.pk, order.order_id)
        return WalletRedirect(payment=payment, booking=booking, redirect_url=order.pay_url, order_id=order.order_id)

    def handle_wallet_callback(self, payload) -> Payment:
        if not self.gateway.verify_callback(payload):
            logger.warning("Rejected MoMo callback with invalid signature for order %s", payload.get("orderId"))
            raise InvalidSignature()

        order_id = payload.get("orderId")
        payment = Payment.objects.select_related("booking").filter(order_id=order_id).first() if order_id else None
        if payment is None:
            raise NotFound("Unknown payment order.")
        if payment.is_terminal:
            logger.info("MoMo callback replay for order %s ignored (payment %s)", order_id, payment.status)
            return payment

        success = self.gateway.is_success(payload.get("resultCode"))
        booking = payment.booking
        settled = False
        with transaction.atomic():
            updated = Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
                status=Payment.STATUS_COMPLETED if success else Payment.STATUS_FAILED,
                transaction_id=str(payload.get("transId") or ""),
                raw_response=dict(payload.items()),
                updated_at=timezone.now(),
            )
            if not updated:
                payment.refresh_from_db()
                return payment
            if success:
                settled = lifecycle.mark_paid(booking, payment)
                if not settled:
                    # Money was taken but the booking is paid or closed; keep it for refund.
                    Payment.objects.filter(pk=payment.pk).update(
                        status=Payment.STATUS_REFUND_DUE, updated_at=timezone.now()
                    )
            else:
                settled = lifecycle.mark_payment_failed(booking)
            payment.refresh_from_db()

        booking.refresh_from_db()
        if payment.status == Payment.STATUS_REFUND_DUE:
            logger.warning(
                "MoMo payment %s settled for booking %s which is %s/%s; marked for refund",
                payment.pk, booking.pk, booking.status, booking.payment_status,
            )
        elif success:
            logger.info("MoMo payment %s completed for booking %s", payment.pk, booking.pk)
            signals.publish(signals.payment_completed, sender=Payment, payment=payment, booking=booking)
        elif settled:
            logger.info("MoMo payment %s failed for booking %s (resultCode=%s)",
                        payment.pk, booking.pk, payload.get("resultCode"))
            signals.publish(signals.payment_failed, sender=Payment, payment=payment, booking=booking)
        else:
            logger.info("MoMo payment %s failed after booking %s was settled elsewhere", payment.pk, booking.pk)
        return payment

    def pay_later(self, booking_id, user, amount) -> PaymentResult:
        booking = self._payable_booking(booking_id, user)
        with transaction.atomic():
            payment = Payment.objects.create(
                booking=booking,
                user=user,
                method=Booking.METHOD_PAY_LATER,
                amount=Decimal(str(amount)),
            )
            lifecycle.mark_awaiting_payment(booking, payment)
        booking.refresh_from_db()
        logger.info("Booking %s set to pay at property", booking.pk)
        return PaymentResult(payment=payment, booking=booking)

    def select_option(self, booking_id, user, amount, option, method=None, card=None, voucher_code=None):
        if option == OPTION_PAY_LATER:
            return self.pay_later(booking_id, user, amount)
        if option != OPTION_PAY_NOW:
            raise ReservationError("Invalid payment option")
        if method == Booking.METHOD_MOMO:
            return self.pay_with_wallet(booking_id, user, amount)
        if method == Booking.METHOD_CARD:
            if card is None:
                raise InvalidCardDetails("Card details are required for card payments")
            return self.pay_with_card(booking_id, user, amount, card, voucher_code=voucher_code)
        if not method:
            raise ReservationError("Payment method is required for pay now option")
        raise ReservationError("Invalid payment method")


def get_payment_processor() -> PaymentProcessor:
    return PaymentProcessor(
        gateway=MomoGateway.from_settings(),
        authorizer=AllowListCardAuthorizer.from_settings(),
        ledger=VoucherLedger(),
    )
