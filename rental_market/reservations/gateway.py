"""MoMo wallet gateway client."""
import base64
import hashlib
import hmac
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
	"""Raised when interactions with the MoMo API fail."""


@dataclass(frozen=True)
class WalletOrder:
	pay_url: str
	order_id: str
	request_id: str
	raw: dict = field(default_factory=dict)


class MomoGateway:
	CREATE_SIGNATURE_FIELDS = (
		'accessKey',
		'amount',
		'extraData',
		'ipnUrl',
		'orderId',
		'orderInfo',
		'partnerCode',
		'redirectUrl',
		'requestId',
		'requestType',
	)
	CALLBACK_SIGNATURE_FIELDS = (
		'accessKey',
		'amount',
		'extraData',
		'message',
		'orderId',
		'orderInfo',
		'orderType',
		'partnerCode',
		'payType',
		'requestId',
		'responseTime',
		'resultCode',
		'transId',
	)

	def __init__(self, partner_code, access_key, secret_key, endpoint, redirect_url, ipn_url,
				 request_type='payWithATM', amount_multiplier=1, timeout=30):
		self.partner_code = partner_code
		self.access_key = access_key
		self.secret_key = secret_key
		self.endpoint = endpoint
		self.redirect_url = redirect_url.rstrip('/')
		self.ipn_url = ipn_url
		self.request_type = request_type
		self.amount_multiplier = amount_multiplier
		self.timeout = timeout

	@classmethod
	def from_settings(cls) -> 'MomoGateway':
		return cls(
			partner_code=getattr(settings, 'MOMO_PARTNER_CODE', 'MOMO'),
			access_key=getattr(settings, 'MOMO_ACCESS_KEY', ''),
			secret_key=getattr(settings, 'MOMO_SECRET_KEY', ''),
			endpoint=getattr(settings, 'MOMO_ENDPOINT', 'https://test-payment.momo.vn/v2/gateway/api/create'),
			redirect_url=getattr(settings, 'MOMO_REDIRECT_URL', ''),
			ipn_url=getattr(settings, 'MOMO_IPN_URL', ''),
			request_type=getattr(settings, 'MOMO_REQUEST_TYPE', 'payWithATM'),
			amount_multiplier=getattr(settings, 'MOMO_AMOUNT_MULTIPLIER', 1),
			timeout=getattr(settings, 'MOMO_TIMEOUT', 30),
		)

	def sign(self, fields: dict, keys) -> str:
		raw_signature = '&'.join(f"{key}={fields.get(key, '')}" for key in keys)
		return hmac.new(self.secret_key.encode(), raw_signature.encode(), hashlib.sha256).hexdigest()

	def convert_amount(self, amount) -> int:
		"""Booking currency to the wallet's integer currency units."""
		converted = Decimal(str(amount)) * Decimal(str(self.amount_multiplier))
		return int(converted.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

	@staticmethod
	def encode_extra_data(data: dict) -> str:
		return base64.b64encode(json.dumps(data).encode()).decode()

	@staticmethod
	def decode_extra_data(extra_data) -> dict:
		if not extra_data:
			return {}
		try:
			return json.loads(base64.b64decode(extra_data).decode())
		except (ValueError, TypeError):
			logger.warning('Could not decode MoMo extraData: %r', extra_data)
			return {}

	@staticmethod
	def is_success(result_code) -> bool:
		return str(result_code).strip() == '0'

	def _generate_request_id(self) -> str:
		return f"{self.partner_code}{int(time.time() * 1000)}{uuid.uuid4().hex[:6]}"

	def create_payment(self, amount, booking_id, user_id, payment_id=None) -> WalletOrder:
		if not self.secret_key or not self.access_key:
			raise GatewayError('MoMo credentials are not configured. Set MOMO_ACCESS_KEY and MOMO_SECRET_KEY.')

		request_id = self._generate_request_id()
		order_id = request_id
		fields = {
			'partnerCode': self.partner_code,
			'accessKey': self.access_key,
			'requestId': request_id,
			'amount': self.convert_amount(amount),
			'orderId': order_id,
			'orderInfo': f"Payment for booking #{booking_id}",
			'redirectUrl': f"{self.redirect_url}/account/bookings/{booking_id}",
			'ipnUrl': self.ipn_url,
			'requestType': self.request_type,
			'extraData': self.encode_extra_data(
				{
					'bookingId': booking_id,
					'userId': user_id,
					'paymentId': payment_id,
					'orderId': order_id,
					'key': 'payment',
				}
			),
		}
		payload = dict(fields, signature=self.sign(fields, self.CREATE_SIGNATURE_FIELDS), lang='vi')

		try:
			response = requests.post(self.endpoint, json=payload, timeout=self.timeout)
			response.raise_for_status()
			response_data = response.json()
		except requests.RequestException as exc:
			logger.exception('Failed to initiate payment with MoMo: %s', exc)
			raise GatewayError('Unable to reach MoMo to start the payment. Please retry.')
		except ValueError as exc:
			logger.exception('MoMo create response JSON decode error: %s', exc)
			raise GatewayError('Received an invalid response from MoMo.')

		result_code = response_data.get('resultCode', response_data.get('errorCode'))
		if not self.is_success(result_code) or not response_data.get('payUrl'):
			raise GatewayError(response_data.get('message', 'MoMo rejected the payment request.'))

		return WalletOrder(
			pay_url=response_data['payUrl'],
			order_id=str(response_data.get('orderId') or order_id),
			request_id=str(response_data.get('requestId') or request_id),
			raw=response_data,
		)

	def verify_callback(self, payload) -> bool:
		signature = payload.get('signature')
		if not signature or not self.secret_key:
			return False
		fields = dict(payload.items())
		fields['accessKey'] = self.access_key
		expected = self.sign(fields, self.CALLBACK_SIGNATURE_FIELDS)
		return hmac.compare_digest(expected, str(signature))
