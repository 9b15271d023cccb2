from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from server.models.responses import CleanupResponse, TokenResponse
from shared.errors import OAuthError

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/authorize")
async def authorize(
    request: Request,
    redirect_uri: str | None = None,
    state: str | None = None,
    code_challenge: str | None = None,
    code_challenge_method: str | None = "S256",
) -> RedirectResponse:
    """Issue an authorization code and send the browser to the frontend login page.

    Args:
        request (Request): FastAPI request (provides app.state.oauth_service).
        redirect_uri (str | None): Where the client wants the code delivered.
        state (str | None): Opaque client state, echoed back.
        code_challenge (str | None): PKCE challenge.
        code_challenge_method (str | None): Only ``S256`` is accepted.

    Returns:
        RedirectResponse: 302 to ``{FRONTEND_URL}/Login``.
    """
    url = await request.app.state.oauth_service.authorize(redirect_uri, state, code_challenge, code_challenge_method)
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
async def callback(
    request: Request,
    idToken: str | None = None,
    authCode: str | None = None,
    state: str | None = None,
) -> RedirectResponse:
    """Attach the signed-in user's ID token to the code and hand the code to the client."""
    url = await request.app.state.oauth_service.callback(authCode, idToken, state)
    return RedirectResponse(url, status_code=302)


@router.post("/token")
async def token(request: Request) -> TokenResponse:
    """Exchange a code for a bearer token. Accepts form-encoded or JSON bodies.

    Raises:
        OAuthError: ``invalid_request`` on an unreadable body, otherwise as raised by the exchange.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            params = await request.json()
        except ValueError:
            raise OAuthError("invalid_request", "Body is not valid JSON.")
        if not isinstance(params, dict):
            raise OAuthError("invalid_request", "Body must be an object.")
    else:
        params = dict(await request.form())

    result = await request.app.state.oauth_service.token(
        grant_type=params.get("grant_type"),
        code=params.get("code"),
        redirect_uri=params.get("redirect_uri"),
        code_verifier=params.get("code_verifier"),
    )
    return TokenResponse.model_validate(result)


@router.get("/cleanup")
async def cleanup(request: Request) -> CleanupResponse:
    """Sweep expired pending authorization codes."""
    deleted = await request.app.state.oauth_service.cleanup()
    return CleanupResponse(deleted=deleted)
