"""Celery application for the rental marketplace."""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'rental_market.settings')

app = Celery('rental_market')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
