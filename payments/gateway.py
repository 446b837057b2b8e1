"""
Razorpay gateway client.
Following SRP: only responsible for talking to the Razorpay REST API and for
the HMAC checks that authenticate Razorpay traffic.
Following DIP: services receive a client instance, so tests can pass a fake.
"""

import hashlib
import hmac
import logging
from typing import Dict, List, Optional

import requests
from django.conf import settings

from core.exceptions import GatewayRejected, GatewayTimeout, GatewayUnavailable

logger = logging.getLogger(__name__)


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, supplied: Optional[str]) -> bool:
    """Constant-time comparison of hex signatures"""
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode(), supplied.encode())


class RazorpayClient:
    """
    Thin wrapper around the Razorpay Orders and Payments APIs.
    Every call is bounded by GATEWAY_TIMEOUT; no call is retried here.
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip('/')
        self.timeout = timeout or settings.GATEWAY_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                **kwargs
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Razorpay {method} {path} timed out after {self.timeout}s")
            raise GatewayTimeout() from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Razorpay {method} {path} failed: {e}")
            raise GatewayUnavailable() from e

        if response.status_code >= 500:
            logger.error(f"Razorpay {method} {path} returned {response.status_code}: {response.text}")
            raise GatewayUnavailable()
        if response.status_code >= 400:
            logger.error(f"Razorpay {method} {path} rejected ({response.status_code}): {response.text}")
            description = ''
            try:
                description = response.json().get('error', {}).get('description', '')
            except ValueError:
                pass
            raise GatewayRejected(description or None, status_code=response.status_code)

        return response.json()

    def create_order(self, amount_paise: int, currency: str, receipt: str, notes: Dict) -> Dict:
        """
        Create a Razorpay order.

        Args:
            amount_paise: Amount in the smallest currency unit
            currency: ISO currency code (INR)
            receipt: Merchant receipt reference
            notes: Free-form key/value pairs stored on the order

        Returns:
            Razorpay order payload (id, amount, currency, status, ...)
        """
        payload = {
            'amount': amount_paise,
            'currency': currency,
            'receipt': receipt,
            'notes': {key: str(value) for key, value in notes.items()},
        }
        order = self._request('POST', '/orders', json=payload)
        logger.info(f"Razorpay order created: {order.get('id')} for {amount_paise} paise")
        return order

    def fetch_order_payments(self, order_id: str) -> List[Dict]:
        """Payments attempted against an order"""
        data = self._request('GET', f'/orders/{order_id}/payments')
        return data.get('items', [])

    def checkout_signature(self, order_id: str, payment_id: str) -> str:
        return hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}".encode())

    def verify_checkout_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return signatures_match(self.checkout_signature(order_id, payment_id), signature)

    def verify_webhook_signature(self, body: bytes, signature: str) -> bool:
        if not self.webhook_secret:
            logger.error("RAZORPAY_WEBHOOK_SECRET not configured; rejecting webhook")
            return False
        return signatures_match(hmac_sha256_hex(self.webhook_secret, body), signature)
