from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.clients.auth.models.AuthIdentity import AuthIdentity
from shared.errors import AuthError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class AuthClientFirebase(AuthClientInterface):
    """Verifies Firebase ID tokens through the Identity Toolkit ``accounts:lookup`` endpoint."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://identitytoolkit.googleapis.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Firebase"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://identitytoolkit.googleapis.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # the api key travels as query parameter
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_lookup(self) -> str:
        return "/accounts:lookup"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_verify_token(self, token: str) -> AuthIdentity:
        if not token:
            raise AuthError()
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_lookup(),
            params={"key": self._api_key},
            json={"idToken": token},
        )
        if response.status_code >= 300:
            self.logging.warning("Token lookup rejected with status %d", response.status_code)
            raise AuthError()
        users = response.json().get("users") or []
        if not users or not users[0].get("localId"):
            raise AuthError()
        user = users[0]
        return AuthIdentity(
            uid=user["localId"],
            email=user.get("email", ""),
            name=user.get("displayName", ""),
            photo_url=user.get("photoUrl"),
        )
