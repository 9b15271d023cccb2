import hashlib
import hmac
import json
import time

from shared.clients.payment.PaymentClientInterface import PaymentClientInterface
from shared.clients.payment.models.CheckoutSession import CheckoutSession
from shared.clients.payment.models.PaymentEvent import PaymentEvent
from shared.errors import SignatureError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


def compute_signature(secret: str, timestamp: str, payload: bytes) -> str:
    """HMAC-SHA256 over ``"{timestamp}.{payload}"``, hex encoded."""
    signed = timestamp.encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


class PaymentClientStripe(PaymentClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.stripe.com", val_type="string")
        self._secret_key = self.get_config_val("SECRET_KEY", default=None, val_type="string")
        self._webhook_secret = self.get_config_val("WEBHOOK_SECRET", default=None, val_type="string")
        self._tolerance = int(self.get_config_val("WEBHOOK_TOLERANCE_SECONDS", default=300, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Stripe"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.stripe.com"),
            EnvConfig(env_key="SECRET_KEY", val_type="string", default=None),
            EnvConfig(env_key="WEBHOOK_SECRET", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._secret_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/balance"

    def _get_endpoint_checkout_sessions(self) -> str:
        return "/v1/checkout/sessions"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_checkout_payload(self, uid: str, success_url: str, cancel_url: str, price_cents: int, currency: str, product_name: str, product_description: str) -> dict:
        payload = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][product_data][name]": product_name,
            "line_items[0][price_data][unit_amount]": str(price_cents),
            "line_items[0][quantity]": "1",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": uid,
            "metadata[uid]": uid,
        }
        if product_description:
            payload["line_items[0][price_data][product_data][description]"] = product_description
        return payload

    ##########################################
    ################# OTHER ##################
    ##########################################

    def verify_webhook(self, payload: bytes, signature_header: str | None, now: float | None = None) -> PaymentEvent:
        if not signature_header:
            raise SignatureError("Missing Stripe-Signature header.")

        timestamp = None
        signatures = []
        for part in signature_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signatures.append(value)
        if not timestamp or not signatures:
            raise SignatureError("Malformed Stripe-Signature header.")

        expected = compute_signature(self._webhook_secret, timestamp, payload)
        if not any(hmac.compare_digest(expected, sig) for sig in signatures):
            raise SignatureError("Webhook signature does not match.")

        try:
            age = (now if now is not None else time.time()) - int(timestamp)
        except ValueError:
            raise SignatureError("Malformed Stripe-Signature timestamp.")
        if age > self._tolerance:
            raise SignatureError("Webhook timestamp outside the tolerance window.")

        try:
            event = json.loads(payload)
        except ValueError:
            raise SignatureError("Webhook payload is not valid JSON.")
        return PaymentEvent(
            id=event.get("id", ""),
            type=event.get("type", ""),
            object=(event.get("data") or {}).get("object") or {},
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_create_checkout_session(
        self,
        uid: str,
        success_url: str,
        cancel_url: str,
        price_cents: int,
        currency: str,
        product_name: str,
        product_description: str = "",
    ) -> CheckoutSession:
        body = await self.do_request_json(
            "POST",
            self._get_endpoint_checkout_sessions(),
            data=self.get_checkout_payload(uid, success_url, cancel_url, price_cents, currency, product_name, product_description),
        )
        return CheckoutSession(id=body["id"], url=body.get("url"))
