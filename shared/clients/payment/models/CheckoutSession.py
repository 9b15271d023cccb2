from pydantic import BaseModel


class CheckoutSession(BaseModel):
    id: str
    url: str | None = None
