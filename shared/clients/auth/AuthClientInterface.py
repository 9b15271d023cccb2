from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.auth.models.AuthIdentity import AuthIdentity
from shared.helper.HelperConfig import HelperConfig


class AuthClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "auth"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> bool:
        # identity providers expose no unauthenticated health endpoint
        return self.is_booted()

    @abstractmethod
    async def do_verify_token(self, token: str) -> AuthIdentity:
        """
        Verifies a bearer ID token with the identity provider.

        Args:
            token (str): The raw ID token (without the "Bearer " prefix).

        Returns:
            AuthIdentity: The verified subject.

        Raises:
            AuthError: If the token is missing, expired or rejected.
            UpstreamError: If the identity provider cannot be reached.
        """
        pass
