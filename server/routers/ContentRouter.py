import asyncio
import os
import shutil
import uuid

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from server.dependencies.auth import get_current_uid
from server.models.requests import TextRequest
from server.models.responses import DeleteItemResponse, IngestResponse
from shared.models.content import ContentItem, ContentKind
from shared.models.scope import Scope

router = APIRouter(prefix="/api", tags=["content"])


async def save_upload(request: Request, upload: UploadFile) -> str:
    """Spool a multipart upload into ``UPLOAD_DIR`` under a random name.

    Returns:
        str: Path of the temp file. The ingestion service removes it.
    """
    upload_dir = request.app.state.helper_config.get_string_val(
        "UPLOAD_DIR", default=os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "uploads")
    )
    os.makedirs(upload_dir, exist_ok=True)
    _, ext = os.path.splitext(upload.filename or "")
    path = os.path.join(upload_dir, f"{uuid.uuid4().hex}{ext}")

    def _write() -> None:
        with open(path, "wb") as target:
            shutil.copyfileobj(upload.file, target)

    await asyncio.to_thread(_write)
    return path


##########################################
################ INGEST ##################
##########################################


@router.post("/text")
async def save_text(
    request: Request,
    body: TextRequest,
    uid: str = Depends(get_current_uid),
) -> IngestResponse:
    """Store a conversation transcript in the caller's profile or one of their projects.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        body (TextRequest): The text and an optional project id.
        uid (str): Verified caller.

    Returns:
        IngestResponse: Id and charged character count of the new item.
    """
    scope = Scope(uid=uid, project_id=body.project_id)
    item = await request.app.state.ingestion_service.ingest_text(scope, body.text)
    return IngestResponse.from_item(item, "Conversation saved successfully")


@router.post("/upload")
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    project_id: str | None = Form(default=None, alias="projectId"),
    uid: str = Depends(get_current_uid),
) -> IngestResponse:
    """Extract and store an uploaded PDF, Word or plain-text file.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        file (UploadFile): The multipart file part.
        project_id (str | None): Target project, profile when omitted.
        uid (str): Verified caller.

    Returns:
        IngestResponse: Id and charged character count of the new item.
    """
    scope = Scope(uid=uid, project_id=project_id)
    path = await save_upload(request, file)
    item = await request.app.state.ingestion_service.ingest_file(
        scope, path, file.filename or os.path.basename(path), file.content_type
    )
    return IngestResponse.from_item(item, "File uploaded and processed successfully")


@router.post("/writingsample")
async def upload_writing_sample(
    request: Request,
    file: UploadFile = File(...),
    uid: str = Depends(get_current_uid),
) -> IngestResponse:
    """Store a writing sample that the assistant imitates when answering."""
    path = await save_upload(request, file)
    item = await request.app.state.ingestion_service.ingest_writing_sample(
        uid, path, file.filename or os.path.basename(path), file.content_type
    )
    return IngestResponse.from_item(item, "Writing sample uploaded successfully")


##########################################
############## LIST/DELETE ###############
##########################################


@router.get("/conversations")
async def list_conversations(request: Request, uid: str = Depends(get_current_uid)) -> list[ContentItem]:
    return await request.app.state.ingestion_service.list_items(Scope(uid=uid), ContentKind.CONVERSATION)


@router.get("/files")
async def list_files(request: Request, uid: str = Depends(get_current_uid)) -> list[ContentItem]:
    return await request.app.state.ingestion_service.list_items(Scope(uid=uid), ContentKind.FILE)


@router.delete("/conversation/{item_id}")
async def delete_conversation(request: Request, item_id: str, uid: str = Depends(get_current_uid)) -> DeleteItemResponse:
    """Delete a profile conversation, its vectors, and release its characters."""
    result = await request.app.state.ingestion_service.delete_item(Scope(uid=uid), ContentKind.CONVERSATION, item_id)
    return DeleteItemResponse.model_validate({**result, "message": "Conversation deleted successfully"})


@router.delete("/file/{item_id}")
async def delete_file(request: Request, item_id: str, uid: str = Depends(get_current_uid)) -> DeleteItemResponse:
    """Delete a profile file, its vectors, and release its characters."""
    result = await request.app.state.ingestion_service.delete_item(Scope(uid=uid), ContentKind.FILE, item_id)
    return DeleteItemResponse.model_validate({**result, "message": "File deleted successfully"})
