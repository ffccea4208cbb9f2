"""Error kinds raised by the booking, voucher and payment core."""
from rest_framework import status


class ReservationError(Exception):
    """Base class for business errors surfaced to API callers."""

    code = 'error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'The request could not be processed.'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_dict(self):
        payload = {'detail': self.message, 'code': self.code}
        payload.update(self.extra)
        return payload


class NotFound(ReservationError):
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found.'


class Forbidden(ReservationError):
    code = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action.'


class BusinessRuleError(ReservationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidDateRange(ReservationError):
    code = 'invalid_date_range'
    default_message = 'Check-out must be after check-in.'


class GuestLimitExceeded(BusinessRuleError):
    code = 'guest_limit_exceeded'
    default_message = 'Number of guests exceeds the place capacity.'


class DateConflict(BusinessRuleError):
    code = 'date_conflict'
    default_message = 'The selected dates are not available.'


class InvalidTransition(BusinessRuleError):
    code = 'invalid_transition'
    default_message = 'The booking cannot move to the requested state.'


class CancellationWindowClosed(BusinessRuleError):
    code = 'cancellation_window_closed'
    default_message = 'Bookings can only be cancelled before the check-in date.'


class CheckoutWindowClosed(BusinessRuleError):
    code = 'checkout_window_closed'
    default_message = 'Checkout is not open for this booking yet, or its grace period has ended.'


class VoucherNotFound(NotFound):
    code = 'voucher_not_found'
    default_message = 'Voucher not found'


class VoucherInactive(BusinessRuleError):
    code = 'voucher_inactive'
    default_message = 'Voucher is not active'


class VoucherExpired(BusinessRuleError):
    code = 'voucher_expired'
    default_message = 'Voucher has expired'


class VoucherLimitReached(BusinessRuleError):
    code = 'voucher_limit_reached'
    default_message = 'Voucher usage limit reached'


class VoucherNotClaimed(BusinessRuleError):
    code = 'voucher_not_claimed'
    default_message = 'You need to claim this voucher first'


class VoucherNotApplicable(BusinessRuleError):
    code = 'voucher_not_applicable'
    default_message = 'Voucher not applicable for this booking'


class VoucherAlreadyUsed(BusinessRuleError):
    code = 'voucher_already_used'
    default_message = 'You have already used this voucher'


class VoucherAlreadyClaimed(BusinessRuleError):
    code = 'voucher_already_claimed'
    default_message = 'You have already claimed this voucher'


class InvalidCardDetails(ReservationError):
    code = 'invalid_card_details'
    default_message = 'Invalid card details'


class PaymentDeclined(BusinessRuleError):
    code = 'payment_declined'
    default_message = 'Payment processing failed'


class AlreadyPaid(BusinessRuleError):
    code = 'already_paid'
    default_message = 'This booking has already been paid.'


class GatewayUnavailable(ReservationError):
    code = 'gateway_unavailable'
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = 'Payment initialization failed, please try again.'


class InvalidSignature(ReservationError):
    code = 'invalid_signature'
    default_message = 'Invalid callback signature.'
