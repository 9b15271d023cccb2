import json
import time
from urllib.parse import parse_qs

import httpx
import pytest

from services.billing.BillingService import BillingService
from shared.clients.payment.stripe.PaymentClientStripe import PaymentClientStripe, compute_signature
from shared.errors import SignatureError, UpstreamError


WEBHOOK_SECRET = "whsec_billing_tests"


def _signed(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = str(timestamp if timestamp is not None else int(time.time()))
    return f"t={ts},v1={compute_signature(secret, ts, payload)}"


def _event(uid: str | None, event_type: str = "checkout.session.completed") -> bytes:
    obj = {"id": "cs_test_1", "object": "checkout.session"}
    if uid:
        obj["metadata"] = {"uid": uid}
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}}).encode("utf-8")


@pytest.fixture
def checkout_requests():
    return []


@pytest.fixture
async def payment_client(helper_config, checkout_requests, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        checkout_requests.append(request)
        if request.url.path == "/v1/checkout/sessions":
            return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"})
        return httpx.Response(404, json={"error": {"message": "unknown"}})

    monkeypatch.setenv("PAYMENT_STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    client = PaymentClientStripe(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    yield client
    await client.close()


@pytest.fixture
def billing_service(helper_config, payment_client, user_service) -> BillingService:
    return BillingService(helper_config=helper_config, payment_client=payment_client, user_service=user_service)


class TestWebhookSignature:
    """Stripe-Signature verification."""

    def test_valid_signature(self, payment_client):
        """A correctly signed payload parses into an event."""
        payload = _event("uid-alice")
        event = payment_client.verify_webhook(payload, _signed(payload))
        assert event.type == "checkout.session.completed"
        assert event.metadata == {"uid": "uid-alice"}

    def test_tampered_payload(self, payment_client):
        """Changing one byte breaks the signature."""
        payload = _event("uid-alice")
        header = _signed(payload)
        with pytest.raises(SignatureError):
            payment_client.verify_webhook(payload.replace(b"alice", b"mallory"), header)

    def test_wrong_secret(self, payment_client):
        """A signature made with another secret is rejected."""
        payload = _event("uid-alice")
        with pytest.raises(SignatureError):
            payment_client.verify_webhook(payload, _signed(payload, secret="whsec_other"))

    def test_stale_timestamp(self, payment_client):
        """Deliveries older than the tolerance are rejected."""
        payload = _event("uid-alice")
        old = int(time.time()) - 301
        with pytest.raises(SignatureError):
            payment_client.verify_webhook(payload, _signed(payload, timestamp=old))

    def test_within_tolerance(self, payment_client):
        """Deliveries inside the window pass."""
        payload = _event("uid-alice")
        ts = 1_700_000_000
        assert payment_client.verify_webhook(payload, _signed(payload, timestamp=ts), now=ts + 299).id == "evt_1"

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=123", "v1=abc"])
    def test_malformed_header(self, payment_client, header):
        """Missing or incomplete headers are rejected."""
        with pytest.raises(SignatureError):
            payment_client.verify_webhook(b"{}", header)


class TestBillingService:
    """Checkout and tier upgrade."""

    async def test_create_checkout(self, billing_service, checkout_requests, alice):
        """The session carries the uid and frontend URLs."""
        session = await billing_service.create_checkout(alice.uid)
        assert session.id == "cs_test_1"
        request = checkout_requests[-1]
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        form = {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}
        assert form["metadata[uid]"] == alice.uid
        assert form["client_reference_id"] == alice.uid
        assert form["mode"] == "payment"
        assert form["success_url"] == "https://app.example.com/success?session_id={CHECKOUT_SESSION_ID}"
        assert form["cancel_url"] == "https://app.example.com/upgrade"

    async def test_completed_checkout_upgrades(self, billing_service, user_service, alice):
        """checkout.session.completed switches the user to pro."""
        payload = _event(alice.uid)
        result = await billing_service.handle_webhook(payload, _signed(payload))
        assert result == {"received": True, "upgraded": True}
        assert (await user_service.get_user(alice.uid)).is_pro is True

    async def test_other_events_ignored(self, billing_service, user_service, alice):
        """Events other than a completed checkout change nothing."""
        payload = _event(alice.uid, event_type="payment_intent.created")
        assert await billing_service.handle_webhook(payload, _signed(payload)) == {"received": True}
        assert (await user_service.get_user(alice.uid)).is_pro is False

    async def test_unknown_uid_acknowledged(self, billing_service):
        """An event for a missing user is acknowledged without upgrade."""
        payload = _event("uid-ghost")
        assert await billing_service.handle_webhook(payload, _signed(payload)) == {"received": True, "upgraded": False}

    async def test_bad_signature_changes_nothing(self, billing_service, user_service, alice):
        """An unsigned upgrade attempt is rejected before anything is read."""
        payload = _event(alice.uid)
        with pytest.raises(SignatureError):
            await billing_service.handle_webhook(payload, "t=1,v1=00")
        assert (await user_service.get_user(alice.uid)).is_pro is False

    async def test_provider_error(self, helper_config, user_service):
        """A rejected checkout request surfaces as UpstreamError."""
        client = PaymentClientStripe(helper_config=helper_config)
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": {}})))
        service = BillingService(helper_config=helper_config, payment_client=client, user_service=user_service)
        with pytest.raises(UpstreamError):
            await service.create_checkout("uid-x")
        await client.close()
