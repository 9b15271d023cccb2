from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_current_uid, get_optional_uid
from server.models.requests import AskRequest, ConvoRequest
from shared.models.answer import AnswerResult

router = APIRouter(prefix="/api", tags=["ask"])


@router.post("/ask")
async def ask(
    request: Request,
    body: AskRequest,
    caller_uid: str | None = Depends(get_optional_uid),
) -> AnswerResult:
    """Ask the representative of ``username``. Anyone may ask; the owner is recognised by token.

    Args:
        request (Request): FastAPI request (provides app.state.answer_service).
        body (AskRequest): Username of the subject, the question and prior turns.
        caller_uid (str | None): Verified caller, None for guests.

    Returns:
        AnswerResult: The answer and the retrieved context it was grounded on.
    """
    answer_service = request.app.state.answer_service
    return await answer_service.ask_user(body.username, body.question, body.conversation, caller_uid=caller_uid)


@router.post("/convo")
async def convo(
    request: Request,
    body: ConvoRequest,
    uid: str = Depends(get_current_uid),
) -> AnswerResult:
    """Conversational intake: the model asks the caller about themselves."""
    return await request.app.state.answer_service.converse(uid, body.question, body.conversation)
