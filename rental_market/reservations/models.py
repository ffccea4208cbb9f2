from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

ROLE_ADMIN = "admin"
ROLE_HOST = "host"
ROLE_GUEST = "guest"
HOST_GROUP_NAME = "host"


def get_user_role(user) -> str:
	"""Map an authenticated user onto the marketplace role."""
	if user.is_superuser or user.is_staff:
		return ROLE_ADMIN
	if user.groups.filter(name=HOST_GROUP_NAME).exists():
		return ROLE_HOST
	return ROLE_GUEST


class Place(models.Model):
	owner = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="places", on_delete=models.CASCADE)
	title = models.CharField(max_length=200)
	location = models.CharField(max_length=200, blank=True)
	price = models.DecimalField(max_digits=10, decimal_places=2)
	max_guests = models.PositiveIntegerField(default=1)
	created_at = models.DateTimeField(auto_now_add=True)

	def __str__(self):
		return self.title


class Booking(models.Model):
	STATUS_PENDING = "pending"
	STATUS_CONFIRMED = "confirmed"
	STATUS_CANCELLED = "cancelled"
	STATUS_COMPLETED = "completed"

	STATUS_CHOICES = (
		(STATUS_PENDING, "Pending"),
		(STATUS_CONFIRMED, "Confirmed"),
		(STATUS_CANCELLED, "Cancelled"),
		(STATUS_COMPLETED, "Completed"),
	)
	TERMINAL_STATUSES = (STATUS_CANCELLED, STATUS_COMPLETED)

	PAYMENT_PENDING = "pending"
	PAYMENT_PAID = "paid"
	PAYMENT_FAILED = "failed"
	PAYMENT_CANCELLED = "cancelled"

	PAYMENT_STATUS_CHOICES = (
		(PAYMENT_PENDING, "Pending"),
		(PAYMENT_PAID, "Paid"),
		(PAYMENT_FAILED, "Failed"),
		(PAYMENT_CANCELLED, "Cancelled"),
	)

	METHOD_CARD = "card"
	METHOD_MOMO = "momo"
	METHOD_PAY_LATER = "payLater"
	METHOD_NONE = "none"

	PAYMENT_METHOD_CHOICES = (
		(METHOD_CARD, "Card"),
		(METHOD_MOMO, "MoMo wallet"),
		(METHOD_PAY_LATER, "Pay at property"),
		(METHOD_NONE, "Not selected"),
	)

	place = models.ForeignKey(Place, related_name="bookings", on_delete=models.CASCADE)
	user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="bookings", on_delete=models.CASCADE)
	owner = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="hosted_bookings", on_delete=models.CASCADE)
	check_in = models.DateField()
	check_out = models.DateField()
	max_guests = models.PositiveIntegerField()
	name = models.CharField(max_length=150)
	phone = models.CharField(max_length=30)
	price = models.DecimalField(max_digits=12, decimal_places=2)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
	payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)
	payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, default=METHOD_NONE)
	payment_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
	payment = models.ForeignKey(
		"Payment", related_name="+", null=True, blank=True, on_delete=models.SET_NULL
	)
	voucher_code = models.CharField(max_length=50, blank=True)
	discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
	cancellation_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
	early_checkout_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
	total_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
	checkout_date = models.DateTimeField(null=True, blank=True)
	cancelled_at = models.DateTimeField(null=True, blank=True)
	is_active = models.BooleanField(default=True)
	is_deleted = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		indexes = [
			models.Index(fields=["user", "-created_at"], name="reservation_user_id_8b1c2e_idx"),
			models.Index(fields=["place", "check_in", "check_out"], name="reservation_place_i_4d7a90_idx"),
			models.Index(fields=["status", "check_out"], name="reservation_status_a3f611_idx"),
		]

	def __str__(self):
		return f"Booking #{self.id} for {self.place.title}"

	@property
	def nights(self) -> int:
		return (self.check_out - self.check_in).days

	@property
	def nightly_rate(self) -> Decimal:
		if self.nights <= 0:
			return self.price
		return self.price / self.nights

	@property
	def is_terminal(self):
		return self.status in self.TERMINAL_STATUSES


class Payment(models.Model):
	STATUS_PENDING = "pending"
	STATUS_COMPLETED = "completed"
	STATUS_FAILED = "failed"
	STATUS_REFUND_DUE = "refund_due"

	STATUS_CHOICES = (
		(STATUS_PENDING, "Pending"),
		(STATUS_COMPLETED, "Completed"),
		(STATUS_FAILED, "Failed"),
		(STATUS_REFUND_DUE, "Refund due"),
	)

	METHOD_CHOICES = (
		(Booking.METHOD_CARD, "Card"),
		(Booking.METHOD_MOMO, "MoMo wallet"),
		(Booking.METHOD_PAY_LATER, "Pay at property"),
	)

	booking = models.ForeignKey(Booking, related_name="payments", on_delete=models.CASCADE)
	user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="payments", on_delete=models.CASCADE)
	method = models.CharField(max_length=20, choices=METHOD_CHOICES)
	amount = models.DecimalField(max_digits=14, decimal_places=2)
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
	voucher_code = models.CharField(max_length=50, blank=True)
	discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
	card_last4 = models.CharField(max_length=4, blank=True)
	card_holder = models.CharField(max_length=150, blank=True)
	order_id = models.CharField(max_length=120, null=True, blank=True, unique=True)
	request_id = models.CharField(max_length=120, blank=True)
	transaction_id = models.CharField(max_length=120, blank=True)
	raw_response = models.JSONField(default=dict, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	def __str__(self):
		return f"Payment {self.id} ({self.method}, {self.status})"

	@property
	def is_settled(self):
		return self.status == self.STATUS_COMPLETED

	@property
	def is_terminal(self):
		return self.status in (self.STATUS_COMPLETED, self.STATUS_FAILED, self.STATUS_REFUND_DUE)


class Voucher(models.Model):
	owner = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="vouchers", on_delete=models.CASCADE)
	code = models.CharField(max_length=50, unique=True)
	discount = models.PositiveSmallIntegerField()
	description = models.TextField()
	expiration_date = models.DateTimeField()
	active = models.BooleanField(default=True)
	applicable_places = models.ManyToManyField(Place, related_name="vouchers", blank=True)
	usage_limit = models.PositiveIntegerField(default=100)
	used_count = models.PositiveIntegerField(default=0)
	is_deleted = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		indexes = [
			models.Index(fields=["owner", "code"], name="reservation_owner_i_5e02b7_idx"),
			models.Index(fields=["active", "expiration_date"], name="reservation_active_c81f4d_idx"),
		]

	def __str__(self):
		return f"{self.code} ({self.discount}%)"

	def save(self, *args, **kwargs):
		self.code = self.code.upper()
		super().save(*args, **kwargs)

	@property
	def is_expired(self):
		return self.expiration_date < timezone.now()

	@property
	def is_available(self):
		return self.active and not self.is_expired and self.used_count < self.usage_limit

	def is_claimed_by(self, user) -> bool:
		return self.claims.filter(user=user).exists()

	def is_used_by(self, user) -> bool:
		return self.redemptions.filter(user=user).exists()

	def applies_to(self, place_id) -> bool:
		places = self.applicable_places.all()
		return not places.exists() or places.filter(pk=place_id).exists()


class VoucherClaim(models.Model):
	voucher = models.ForeignKey(Voucher, related_name="claims", on_delete=models.CASCADE)
	user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="voucher_claims", on_delete=models.CASCADE)
	claimed_at = models.DateTimeField(default=timezone.now)

	class Meta:
		constraints = [
			models.UniqueConstraint(fields=["voucher", "user"], name="unique_voucher_claim_per_user"),
		]

	def __str__(self):
		return f"{self.user} claimed {self.voucher.code}"


class VoucherRedemption(models.Model):
	voucher = models.ForeignKey(Voucher, related_name="redemptions", on_delete=models.CASCADE)
	user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="voucher_redemptions", on_delete=models.CASCADE)
	booking = models.ForeignKey(Booking, related_name="voucher_redemptions", on_delete=models.CASCADE)
	used_at = models.DateTimeField(default=timezone.now)

	class Meta:
		constraints = [
			models.UniqueConstraint(fields=["voucher", "user"], name="unique_voucher_use_per_user"),
			models.UniqueConstraint(fields=["voucher", "booking"], name="unique_voucher_use_per_booking"),
		]

	def __str__(self):
		return f"{self.voucher.code} used on booking #{self.booking_id}"


class Notification(models.Model):
	PRIORITY_CHOICES = (
		("high", "High"),
		("normal", "Normal"),
		("low", "Low"),
	)
	STATUS_CHOICES = (
		("unread", "Unread"),
		("read", "Read"),
	)

	recipient = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="notifications", on_delete=models.CASCADE)
	type = models.CharField(max_length=40, default="system")
	title = models.CharField(max_length=200)
	message = models.TextField()
	link = models.CharField(max_length=255, blank=True)
	priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="normal")
	category = models.CharField(max_length=20, default="general")
	metadata = models.JSONField(default=dict, blank=True)
	status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="unread")
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ["-created_at"]

	def __str__(self):
		return f"{self.title} -> {self.recipient}"
