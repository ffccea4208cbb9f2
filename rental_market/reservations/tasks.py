"""Celery tasks for the reservations application."""
import logging

from celery import shared_task
from celery.signals import worker_ready
from django.conf import settings
from django.core.mail import send_mail
from django.utils.html import strip_tags

from . import lifecycle

logger = logging.getLogger(__name__)


def send_email_sync(recipient: str, subject: str, html_body: str) -> None:
    """Send an HTML email synchronously."""
    from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', 'no-reply@rentalmarket.local')

    send_mail(
        subject,
        strip_tags(html_body),
        from_email,
        [recipient],
        fail_silently=False,
        html_message=html_body,
    )


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def send_email(self, recipient: str, subject: str, html_body: str) -> None:
    """Celery task wrapper for sending booking and payment emails."""
    send_email_sync(recipient, subject, html_body)


def queue_email(recipient: str, subject: str, html_body: str) -> None:
    try:
        send_email.delay(recipient, subject, html_body)
    except Exception as exc:  # Celery not running, fallback to sync send
        logger.warning('Celery delay failed, sending email synchronously: %s', exc)
        send_email_sync(recipient, subject, html_body)


@shared_task
def auto_complete_bookings_task() -> int:
    """Complete confirmed stays whose check-out passed more than a day ago."""
    return lifecycle.auto_complete_bookings()


@worker_ready.connect
def run_initial_sweep(sender=None, **kwargs):
    try:
        auto_complete_bookings_task.delay()
    except Exception as exc:
        logger.warning('Could not dispatch the startup auto-complete sweep: %s', exc)
