"""OAuth bridge: authorization codes with PKCE that hand out an identity-provider token.

authorize -> the frontend signs the user in -> callback attaches the verified
ID token to the code -> token exchanges the code (once) for that token.
"""

import base64
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from shared.clients.auth.AuthClientInterface import AuthClientInterface
from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.errors import OAuthError, ValidationError
from shared.helper.HelperConfig import HelperConfig

CODES_COLLECTION = "oauthPendingAuths"
GRANT_AUTHORIZATION_CODE = "authorization_code"
TOKEN_EXPIRES_IN = 3600


def pkce_s256(verifier: str) -> str:
    """base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def _append_query(url: str, params: dict) -> str:
    return f"{url}{'&' if '?' in url else '?'}{urlencode(params)}"


class OAuthService:
    def __init__(self, helper_config: HelperConfig, docstore: DocStoreClientInterface, auth_client: AuthClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._auth = auth_client
        self._frontend_url = helper_config.get_string_val("FRONTEND_URL", default="http://localhost:5173").rstrip("/")
        self._ttl = timedelta(seconds=helper_config.get_int_val("OAUTH_CODE_TTL_SECONDS", default=600))
        self._allowed_redirects = helper_config.get_list_val("OAUTH_ALLOWED_REDIRECT_URIS", default=[])

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def _check_redirect_uri(self, redirect_uri: str | None) -> str:
        if not redirect_uri:
            raise ValidationError("redirect_uri is required.")
        if self._allowed_redirects and redirect_uri not in self._allowed_redirects:
            self.logging.warning("Rejected OAuth redirect_uri %s", redirect_uri)
            raise ValidationError("redirect_uri is not allowed.")
        return redirect_uri

    def _is_expired(self, created_at: datetime | None, now: datetime) -> bool:
        return created_at is None or created_at + self._ttl < now

    @staticmethod
    def _code_path(code: str) -> str:
        return f"{CODES_COLLECTION}/{code}"

    ##########################################
    ################ CORE ####################
    ##########################################

    async def authorize(self, redirect_uri: str | None, state: str | None, code_challenge: str | None, code_challenge_method: str | None = "S256") -> str:
        """Issue a code bound to the redirect URI and PKCE challenge.

        Returns:
            str: The frontend login URL to redirect the browser to.
        """
        redirect_uri = self._check_redirect_uri(redirect_uri)
        if code_challenge and (code_challenge_method or "S256") != "S256":
            raise ValidationError("Only the S256 code_challenge_method is supported.")

        code = secrets.token_hex(32)
        await self._docstore.do_set(self._code_path(code), {
            "redirectUri": redirect_uri,
            "state": state or "",
            "codeChallenge": code_challenge or "",
            "codeChallengeMethod": "S256" if code_challenge else "",
            "idToken": None,
            "createdAt": datetime.now(timezone.utc),
        })
        self.logging.info("Issued OAuth code for redirect_uri %s", redirect_uri)
        return _append_query(f"{self._frontend_url}/Login", {"authCode": code, "redirect_uri": redirect_uri, "state": state or ""})

    async def callback(self, auth_code: str | None, id_token: str | None, state: str | None) -> str:
        """Attach a verified ID token to a pending code.

        Returns:
            str: The client's redirect URI with ``code`` and ``state``.

        Raises:
            ValidationError: If a parameter is missing or the code is unknown or expired.
            AuthError: If the ID token does not verify.
        """
        if not auth_code or not id_token:
            raise ValidationError("Missing idToken or authCode.")
        await self._auth.do_verify_token(id_token)

        pending = await self._docstore.do_get(self._code_path(auth_code))
        if pending is None or self._is_expired(pending.get("createdAt"), datetime.now(timezone.utc)):
            raise ValidationError("Invalid or expired auth code.")

        await self._docstore.do_update(self._code_path(auth_code), {"idToken": id_token})
        self.logging.info("Attached ID token to OAuth code")
        return _append_query(pending["redirectUri"], {"code": auth_code, "state": state if state is not None else pending.get("state", "")})

    async def token(self, grant_type: str | None, code: str | None, redirect_uri: str | None, code_verifier: str | None, now: datetime | None = None) -> dict:
        """Exchange a code for the attached bearer token. A code works once.

        Raises:
            OAuthError: ``unsupported_grant_type``, ``invalid_request`` or ``invalid_grant``.
        """
        if grant_type != GRANT_AUTHORIZATION_CODE:
            raise OAuthError("unsupported_grant_type")
        if not code:
            raise OAuthError("invalid_request", "code is required.")

        pending = await self._docstore.do_get(self._code_path(code))
        if pending is None:
            self.logging.warning("Token exchange with unknown code")
            raise OAuthError("invalid_grant")
        if self._is_expired(pending.get("createdAt"), now or datetime.now(timezone.utc)):
            await self._docstore.do_delete(self._code_path(code))
            raise OAuthError("invalid_grant", "Authorization code expired.")

        challenge = pending.get("codeChallenge")
        if challenge:
            if not code_verifier or not hmac.compare_digest(pkce_s256(code_verifier), challenge):
                self.logging.warning("PKCE verification failed")
                raise OAuthError("invalid_grant")
        if pending.get("redirectUri") != redirect_uri:
            self.logging.warning("OAuth redirect_uri mismatch")
            raise OAuthError("invalid_grant")
        if not pending.get("idToken"):
            raise OAuthError("invalid_grant", "No token attached to this code yet.")

        await self._docstore.do_delete(self._code_path(code))
        self.logging.info("OAuth code exchanged")
        return {"access_token": pending["idToken"], "token_type": "Bearer", "expires_in": TOKEN_EXPIRES_IN}

    async def cleanup(self, now: datetime | None = None) -> int:
        """Delete every pending code older than the code lifetime.

        Returns:
            int: Number of deleted codes.
        """
        cutoff = (now or datetime.now(timezone.utc)) - self._ttl
        stale = await self._docstore.do_query(CODES_COLLECTION, filters=[("createdAt", "<", cutoff)])
        for snap in stale:
            await self._docstore.do_delete(self._code_path(snap.id))
        self.logging.info("Removed %d expired OAuth codes", len(stale))
        return len(stale)
