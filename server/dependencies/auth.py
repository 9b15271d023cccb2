from fastapi import Header, Request

from shared.clients.auth.models.AuthIdentity import AuthIdentity
from shared.errors import AuthError


def _extract_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_identity(request: Request, authorization: str | None = Header(default=None)) -> AuthIdentity:
    """Verify the ``Authorization: Bearer <idToken>`` header.

    Args:
        request (Request): The FastAPI request object (provides app.state.auth_client).
        authorization (str | None): The raw Authorization header.

    Raises:
        AuthError: 401 if the token is missing or rejected. The message never names the subject.
    """
    token = _extract_bearer(authorization)
    if token is None:
        raise AuthError()
    return await request.app.state.auth_client.do_verify_token(token)


async def get_current_uid(request: Request, authorization: str | None = Header(default=None)) -> str:
    """Uid of the verified caller. Every mutation takes the uid from here, never from the body."""
    identity = await get_identity(request, authorization)
    return identity.uid


async def get_optional_uid(request: Request, authorization: str | None = Header(default=None)) -> str | None:
    """Uid of the caller when a valid token is sent, otherwise None (guest)."""
    token = _extract_bearer(authorization)
    if token is None:
        return None
    try:
        identity = await request.app.state.auth_client.do_verify_token(token)
    except AuthError:
        return None
    return identity.uid
