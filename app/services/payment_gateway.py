import json
import logging
from functools import lru_cache
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import razorpay
import requests

from app.config import Settings, settings
from app.exceptions import InvalidSignature, PaymentProviderError

logger = logging.getLogger(__name__)

# Razorpay's "checkout session completed"
CHECKOUT_COMPLETED_EVENT = "payment_link.paid"
SIGNATURE_HEADER = "X-Razorpay-Signature"

PAID = "paid"
UNPAID = "unpaid"


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str] = None
    payment_status: str = UNPAID
    amount_total: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class RazorpayGateway:
    """
    Checkout sessions backed by Razorpay Payment Links.

    Every call to Razorpay is bounded by ``timeout`` seconds; SDK and
    transport failures surface as PaymentProviderError.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        client: Optional[razorpay.Client] = None,
    ):
        self.timeout = timeout
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_checkout_session(
        self,
        *,
        purchase,
        course,
        success_url: str,
        currency: str = "INR",
    ) -> CheckoutSession:
        payload = {
            "amount": purchase.amount,
            "currency": currency,
            "accept_partial": False,
            "description": course.title,
            "reference_id": f"course_purchase_{purchase.id}",
            "callback_url": success_url,
            "callback_method": "get",
            "notes": {
                "course_id": str(course.id),
                "user_id": str(purchase.user_id),
                "purchase_id": str(purchase.id),
                "course_title": course.title,
                "course_thumbnail": course.thumbnail or "",
            },
        }

        link = self._call("payment_link.create", self.client.payment_link.create, payload)

        if not link.get("id") or not link.get("short_url"):
            logger.error(f"Payment link for purchase {purchase.id} came back without a url")
            raise PaymentProviderError("Error while creating session")

        return CheckoutSession(
            id=link["id"],
            url=link["short_url"],
            amount_total=link.get("amount"),
            metadata=link.get("notes") or {},
        )

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        link = self._call("payment_link.fetch", self.client.payment_link.fetch, session_id)
        return self._to_session(link)

    def construct_event(self, body: bytes, signature: Optional[str], secret: str) -> Dict[str, Any]:
        """Verify the webhook signature over the raw body, then parse it."""
        if not signature:
            raise InvalidSignature("Missing webhook signature")

        try:
            raw = body.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidSignature("Webhook body is not valid UTF-8")

        try:
            self.client.utility.verify_webhook_signature(raw, signature, secret)
        except (razorpay.errors.SignatureVerificationError, TypeError):
            # compare_digest raises TypeError on non-ASCII header values
            raise InvalidSignature()

        try:
            event = json.loads(raw)
        except ValueError:
            raise InvalidSignature("Webhook body is not valid JSON")

        if not isinstance(event, dict) or "event" not in event:
            raise InvalidSignature("Webhook body is not an event")
        return event

    def session_from_event(self, event: Dict[str, Any]) -> CheckoutSession:
        try:
            link = event["payload"]["payment_link"]["entity"]
        except (KeyError, TypeError):
            raise PaymentProviderError("Event carries no payment link")
        return self._to_session(link)

    def _to_session(self, link: Dict[str, Any]) -> CheckoutSession:
        return CheckoutSession(
            id=link.get("id"),
            url=link.get("short_url"),
            payment_status=PAID if link.get("status") == "paid" else UNPAID,
            amount_total=link.get("amount_paid"),
            metadata=link.get("notes") or {},
        )

    def _call(self, name, fn, *args):
        try:
            return fn(*args, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Razorpay {name} timed out after {self.timeout}s")
            raise PaymentProviderError("Payment provider timed out")
        except (razorpay.errors.BadRequestError,
                razorpay.errors.GatewayError,
                razorpay.errors.ServerError,
                requests.exceptions.RequestException) as e:
            logger.error(f"Razorpay {name} failed: {e}")
            raise PaymentProviderError(f"Payment provider error: {e}")


@lru_cache(maxsize=1)
def get_payment_gateway() -> RazorpayGateway:
    return build_gateway(settings)


def build_gateway(settings: Settings) -> RazorpayGateway:
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        timeout=settings.payment_timeout_seconds,
    )
