"""In-app notices and emails fired on booking and payment events.

Everything here is best effort: a failing notice or email is logged and
never interrupts the transition that triggered it.
"""
import logging

from django.db import transaction
from django.utils.html import escape

from . import signals
from .models import Notification
from .tasks import queue_email

logger = logging.getLogger(__name__)


class NotificationEmitter:
    def __init__(self, mailer=None):
        self.mailer = mailer or queue_email

    def notify(self, type, title, message, link, recipient, priority="normal", category="booking", metadata=None):
        recipient_id = getattr(recipient, "pk", recipient)
        try:
            with transaction.atomic():
                return Notification.objects.create(
                    recipient_id=recipient_id,
                    type=type,
                    title=title,
                    message=message,
                    link=link,
                    priority=priority,
                    category=category,
                    metadata=metadata or {},
                )
        except Exception as exc:
            logger.warning("Failed to create %s notification for user %s: %s", type, recipient_id, exc)
            return None

    def send_mail(self, to, subject, html_body) -> bool:
        if not to:
            logger.info("Skipping email %r: recipient has no address", subject)
            return False
        try:
            self.mailer(to, subject, html_body)
        except Exception as exc:
            logger.warning("Failed to send email %r to %s: %s", subject, to, exc)
            return False
        return True


def _stay_summary(booking):
    return (
        f"<p><strong>{escape(booking.place.title)}</strong><br>"
        f"{booking.check_in:%Y-%m-%d} to {booking.check_out:%Y-%m-%d}, "
        f"{booking.max_guests} guest(s)</p>"
    )


class BookingNotifier:
    """Subscribes an emitter to the booking and payment events."""

    def __init__(self, emitter: NotificationEmitter):
        self.emitter = emitter

    def connect(self):
        signals.booking_created.connect(self.on_booking_created, weak=False, dispatch_uid="notifier.booking_created")
        signals.booking_cancelled.connect(
            self.on_booking_cancelled, weak=False, dispatch_uid="notifier.booking_cancelled"
        )
        signals.booking_completed.connect(
            self.on_booking_completed, weak=False, dispatch_uid="notifier.booking_completed"
        )
        signals.payment_completed.connect(
            self.on_payment_completed, weak=False, dispatch_uid="notifier.payment_completed"
        )
        signals.payment_failed.connect(self.on_payment_failed, weak=False, dispatch_uid="notifier.payment_failed")

    def disconnect(self):
        signals.booking_created.disconnect(dispatch_uid="notifier.booking_created")
        signals.booking_cancelled.disconnect(dispatch_uid="notifier.booking_cancelled")
        signals.booking_completed.disconnect(dispatch_uid="notifier.booking_completed")
        signals.payment_completed.disconnect(dispatch_uid="notifier.payment_completed")
        signals.payment_failed.disconnect(dispatch_uid="notifier.payment_failed")

    def on_booking_created(self, sender, booking, **kwargs):
        place = booking.place
        self.emitter.notify(
            "booking",
            "New Booking Request",
            f"You have a new booking request for {place.title}",
            f"/host/bookings/{booking.pk}",
            booking.owner_id,
            priority="high",
            metadata={"bookingId": booking.pk, "placeId": place.pk, "amount": str(booking.price)},
        )
        self.emitter.notify(
            "booking",
            "Booking Request Received",
            f"Your booking for {place.title} from {booking.check_in} to {booking.check_out} has been received",
            f"/account/bookings/{booking.pk}",
            booking.user_id,
            metadata={"bookingId": booking.pk, "placeId": place.pk},
        )

    def on_booking_cancelled(self, sender, booking, booking_id, fee, **kwargs):
        self.emitter.notify(
            "booking",
            "Booking Cancelled",
            f"Booking #{booking_id} for {booking.place.title} was cancelled by the guest",
            f"/host/bookings/{booking_id}",
            booking.owner_id,
            metadata={"bookingId": booking_id, "cancellationFee": str(fee)},
        )
        self.emitter.send_mail(
            booking.user.email,
            f"Booking #{booking_id} cancelled",
            f"<p>Hi {escape(booking.name)},</p>"
            f"<p>Your booking has been cancelled.</p>{_stay_summary(booking)}"
            f"<p>Cancellation fee: ${fee}</p>",
        )

    def on_booking_completed(self, sender, booking, automatic=False, **kwargs):
        title = "Booking Auto-Completed" if automatic else "Booking Completed"
        verb = "automatically completed" if automatic else "checked out"
        self.emitter.notify(
            "booking",
            title,
            f"Booking #{booking.pk} has been {verb}",
            f"/host/bookings/{booking.pk}",
            booking.owner_id,
            metadata={"bookingId": booking.pk, "placeId": booking.place_id, "autoCompleted": automatic},
        )
        self.emitter.notify(
            "booking",
            "Checkout Confirmed" if not automatic else "Booking Completed",
            f"Your stay at {booking.place.title} has been completed",
            f"/account/bookings/{booking.pk}",
            booking.user_id,
            metadata={"bookingId": booking.pk, "placeId": booking.place_id, "autoCompleted": automatic},
        )
        self.emitter.send_mail(
            booking.user.email,
            f"Thanks for staying at {booking.place.title}",
            f"<p>Hi {escape(booking.name)},</p>"
            f"<p>Your checkout has been confirmed.</p>{_stay_summary(booking)}"
            f"<p>Total: ${booking.total_amount or booking.price}</p>",
        )

    def on_payment_completed(self, sender, payment, booking, **kwargs):
        self.emitter.notify(
            "payment",
            "Payment Received",
            f"Booking #{booking.pk} has been paid via {payment.get_method_display()}",
            f"/host/bookings/{booking.pk}",
            booking.owner_id,
            metadata={"bookingId": booking.pk, "paymentId": payment.pk, "amount": str(payment.amount)},
        )
        discount = ""
        if payment.voucher_code:
            discount = f"<p>Voucher {escape(payment.voucher_code)} saved you ${payment.discount_amount}</p>"
        self.emitter.send_mail(
            booking.user.email,
            f"Payment confirmed for booking #{booking.pk}",
            f"<p>Hi {escape(booking.name)},</p>"
            f"<p>We have received your payment of {payment.amount}.</p>"
            f"{_stay_summary(booking)}{discount}"
            f"<p>Your stay is now confirmed.</p>",
        )

    def on_payment_failed(self, sender, payment, booking, **kwargs):
        self.emitter.notify(
            "payment",
            "Payment Failed",
            f"Your {payment.get_method_display()} payment for booking #{booking.pk} did not go through",
            f"/account/bookings/{booking.pk}",
            booking.user_id,
            priority="high",
            metadata={"bookingId": booking.pk, "paymentId": payment.pk},
        )
