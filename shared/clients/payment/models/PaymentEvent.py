from typing import Any

from pydantic import BaseModel


class PaymentEvent(BaseModel):
    """A verified webhook event.

    Attributes:
        type:   Provider event type, e.g. "checkout.session.completed".
        object: The event's data object (the checkout session for completed payments).
    """

    id: str = ""
    type: str
    object: dict[str, Any] = {}

    @property
    def metadata(self) -> dict[str, Any]:
        return self.object.get("metadata") or {}
