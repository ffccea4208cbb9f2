"""Booking and payment events published by the core."""
import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs: booking
booking_created = Signal()
# kwargs: booking, booking_id, fee, deleted
booking_cancelled = Signal()
# kwargs: booking, automatic
booking_completed = Signal()
# kwargs: payment, booking
payment_completed = Signal()
# kwargs: payment, booking
payment_failed = Signal()


def publish(signal, sender=None, **kwargs):
    """Send ``signal`` to every receiver; receiver errors are logged, never raised."""
    responses = signal.send_robust(sender=sender, **kwargs)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.warning(
                "Receiver %s failed while handling event: %s",
                getattr(receiver, "__qualname__", receiver),
                response,
            )
    return responses
