from pydantic import BaseModel


class AuthIdentity(BaseModel):
    """The verified subject of a bearer token."""

    uid: str
    email: str = ""
    name: str = ""
    photo_url: str | None = None
