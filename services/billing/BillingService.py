"""Billing service: checkout sessions and the signed payment webhook."""

from shared.clients.payment.PaymentClientInterface import PaymentClientInterface
from shared.clients.payment.models.CheckoutSession import CheckoutSession
from shared.errors import NotFoundError
from shared.helper.HelperConfig import HelperConfig
from services.users.UserService import UserService

CHECKOUT_COMPLETED = "checkout.session.completed"


class BillingService:
    def __init__(self, helper_config: HelperConfig, payment_client: PaymentClientInterface, user_service: UserService) -> None:
        self.logging = helper_config.get_logger()
        self._payment = payment_client
        self._users = user_service
        self._frontend_url = helper_config.get_string_val("FRONTEND_URL", default="http://localhost:5173").rstrip("/")
        self._price_cents = helper_config.get_int_val("CHECKOUT_PRICE_CENTS", default=999)
        self._currency = helper_config.get_string_val("CHECKOUT_CURRENCY", default="usd")
        self._product_name = helper_config.get_string_val("CHECKOUT_PRODUCT_NAME", default="Persona Pro")
        self._product_description = helper_config.get_string_val(
            "CHECKOUT_PRODUCT_DESCRIPTION",
            default="10 Projects + 300k characters for profile + 200k per project",
        )

    async def create_checkout(self, uid: str) -> CheckoutSession:
        """One-off payment checkout carrying the caller's uid in its metadata."""
        session = await self._payment.do_create_checkout_session(
            uid=uid,
            success_url=f"{self._frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self._frontend_url}/upgrade",
            price_cents=self._price_cents,
            currency=self._currency,
            product_name=self._product_name,
            product_description=self._product_description,
        )
        self.logging.info("Created checkout session %s for uid=%s", session.id, uid)
        return session

    async def handle_webhook(self, payload: bytes, signature_header: str | None) -> dict:
        """Verify a webhook delivery and upgrade the paying user.

        Only ``checkout.session.completed`` is acted on; counters are kept.

        Raises:
            SignatureError: If the signature does not verify. Nothing is read before that.
        """
        event = self._payment.verify_webhook(payload, signature_header)
        if event.type != CHECKOUT_COMPLETED:
            self.logging.debug("Ignoring payment event %s", event.type)
            return {"received": True}

        uid = event.metadata.get("uid") or event.object.get("client_reference_id")
        if not uid:
            self.logging.error("Payment event %s carries no uid", event.id)
            return {"received": True, "upgraded": False}
        try:
            await self._users.set_tier(uid, is_pro=True)
        except NotFoundError:
            # acknowledged so the provider stops redelivering an event nobody can apply
            self.logging.error("Payment event %s for unknown uid=%s", event.id, uid)
            return {"received": True, "upgraded": False}
        self.logging.info("Upgraded uid=%s to pro after payment event %s", uid, event.id)
        return {"received": True, "upgraded": True}
