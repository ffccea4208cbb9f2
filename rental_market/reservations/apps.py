from django.apps import AppConfig


class ReservationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rental_market.reservations'
    label = 'reservations'
    verbose_name = 'Reservations'

    def ready(self):
        from .notifications import BookingNotifier, NotificationEmitter

        self.notifier = BookingNotifier(NotificationEmitter())
        self.notifier.connect()
