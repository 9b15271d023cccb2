"""Pydantic models for grounded question answering."""

from typing import Literal

from pydantic import BaseModel

from shared.models.user import CamelModel


class ChatTurn(BaseModel):
    """One prior message of the conversation. System turns are not accepted from callers."""

    role: Literal["user", "assistant"]
    content: str


class AnswerResult(CamelModel):
    """The model's reply plus the exact context it was grounded on."""

    answer: str
    retrieved_context: str
