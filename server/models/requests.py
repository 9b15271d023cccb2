from typing import Any

from pydantic import Field

from shared.models.answer import ChatTurn
from shared.models.user import CamelModel


class InitUserRequest(CamelModel):
    name: str = ""
    email: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")


class UpdateUserRequest(CamelModel):
    """``data`` is either a profile dict or ``{"intake": {...}}`` with capitalised keys."""

    uid: str | None = None
    data: dict[str, Any]


class TextRequest(CamelModel):
    text: str
    project_id: str | None = None


class AskRequest(CamelModel):
    username: str
    question: str
    conversation: list[ChatTurn] = []


class ConvoRequest(CamelModel):
    question: str
    conversation: list[ChatTurn] = []


class ProjectAskRequest(CamelModel):
    question: str
    conversation: list[ChatTurn] = []


class CreateProjectRequest(CamelModel):
    name: str | None = None
    description: str = ""
    system_prompt: str = ""
    is_public: bool = False
