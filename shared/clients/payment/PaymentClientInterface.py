from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.payment.models.CheckoutSession import CheckoutSession
from shared.clients.payment.models.PaymentEvent import PaymentEvent
from shared.helper.HelperConfig import HelperConfig


class PaymentClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "payment"

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature_header: str | None, now: float | None = None) -> PaymentEvent:
        """
        Verifies the signature of a webhook delivery and parses it.

        The payload must be the raw request body; nothing in it is trusted
        before the signature matches.

        Args:
            payload (bytes): Raw request body.
            signature_header (str | None): The provider's signature header.
            now (float | None): Current unix time, for tests.

        Returns:
            PaymentEvent: The verified event.

        Raises:
            SignatureError: If the header is missing, malformed, stale or does not match.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
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
        """
        Creates a one-off payment checkout carrying ``uid`` in its metadata.

        Raises:
            UpstreamError: If the provider rejects the request.
        """
        pass
