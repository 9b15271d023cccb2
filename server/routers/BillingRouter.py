from fastapi import APIRouter, Depends, Header, Request

from server.dependencies.auth import get_current_uid
from server.models.responses import CheckoutResponse, WebhookResponse

router = APIRouter(prefix="/api", tags=["billing"])


@router.post("/create-checkout-session")
async def create_checkout_session(request: Request, uid: str = Depends(get_current_uid)) -> CheckoutResponse:
    """Start a one-off Pro checkout for the caller.

    Args:
        request (Request): FastAPI request (provides app.state.billing_service).
        uid (str): Verified caller, attached to the session metadata.

    Returns:
        CheckoutResponse: Session id and the hosted checkout URL.
    """
    session = await request.app.state.billing_service.create_checkout(uid)
    return CheckoutResponse(session_id=session.id, url=session.url)


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> WebhookResponse:
    """Receive a signed payment event.

    The raw body is passed on untouched; the signature is computed over those exact bytes.

    Args:
        request (Request): FastAPI request (provides app.state.billing_service and the raw body).
        stripe_signature (str | None): The ``Stripe-Signature`` header.

    Returns:
        WebhookResponse: Acknowledgement, with ``upgraded`` set for completed checkouts.
    """
    payload = await request.body()
    result = await request.app.state.billing_service.handle_webhook(payload, stripe_signature)
    return WebhookResponse.model_validate(result)
