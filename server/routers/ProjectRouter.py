from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from server.dependencies.auth import get_current_uid
from server.models.requests import CreateProjectRequest, ProjectAskRequest
from server.models.responses import DeleteItemResponse, DeleteProjectResponse
from shared.models.answer import AnswerResult
from shared.models.content import ContentItem, ContentKind
from shared.models.project import Project
from shared.models.scope import Scope

router = APIRouter(prefix="/api/projects", tags=["projects"])


##########################################
############### PROJECTS #################
##########################################


@router.post("")
async def create_project(
    request: Request,
    body: CreateProjectRequest,
    uid: str = Depends(get_current_uid),
) -> Project:
    """Create a project for the caller.

    Args:
        request (Request): FastAPI request (provides app.state.project_service).
        body (CreateProjectRequest): Name, description, custom system prompt and visibility.
        uid (str): Verified caller, becomes the owner.

    Returns:
        Project: The created project.
    """
    return await request.app.state.project_service.create(
        uid,
        name=body.name,
        description=body.description,
        system_prompt=body.system_prompt,
        is_public=body.is_public,
    )


@router.get("")
async def list_projects(request: Request, uid: str = Depends(get_current_uid)) -> list[Project]:
    return await request.app.state.project_service.list_owned(uid)


@router.get("/{project_id}")
async def get_project(request: Request, project_id: str) -> Project:
    """Public read so that a project assistant can be shared by link."""
    return await request.app.state.project_service.get(project_id)


@router.put("/{project_id}")
async def update_project(
    request: Request,
    project_id: str,
    updates: dict[str, Any] = Body(...),
    uid: str = Depends(get_current_uid),
) -> Project:
    """Change name, description, systemPrompt or isPublic of an owned project."""
    return await request.app.state.project_service.update(uid, project_id, updates)


@router.delete("/{project_id}")
async def delete_project(request: Request, project_id: str, uid: str = Depends(get_current_uid)) -> DeleteProjectResponse:
    """Delete an owned project with all its content, vectors and its counter entry."""
    result = await request.app.state.project_service.delete(uid, project_id)
    return DeleteProjectResponse.model_validate(result)


@router.post("/{project_id}/ask")
async def ask_project(request: Request, project_id: str, body: ProjectAskRequest) -> AnswerResult:
    """Ask the project's assistant. Public, like the project read."""
    return await request.app.state.answer_service.ask_project(project_id, body.question, body.conversation)


##########################################
############### CONTENT ##################
##########################################


@router.get("/{project_id}/conversations")
async def list_project_conversations(request: Request, project_id: str, uid: str = Depends(get_current_uid)) -> list[ContentItem]:
    scope = Scope(uid=uid, project_id=project_id)
    return await request.app.state.ingestion_service.list_items(scope, ContentKind.CONVERSATION)


@router.get("/{project_id}/files")
async def list_project_files(request: Request, project_id: str, uid: str = Depends(get_current_uid)) -> list[ContentItem]:
    scope = Scope(uid=uid, project_id=project_id)
    return await request.app.state.ingestion_service.list_items(scope, ContentKind.FILE)


@router.delete("/{project_id}/conversations/{item_id}")
async def delete_project_conversation(
    request: Request,
    project_id: str,
    item_id: str,
    uid: str = Depends(get_current_uid),
) -> DeleteItemResponse:
    scope = Scope(uid=uid, project_id=project_id)
    result = await request.app.state.ingestion_service.delete_item(scope, ContentKind.CONVERSATION, item_id)
    return DeleteItemResponse.model_validate({**result, "message": "Conversation deleted successfully"})


@router.delete("/{project_id}/files/{item_id}")
async def delete_project_file(
    request: Request,
    project_id: str,
    item_id: str,
    uid: str = Depends(get_current_uid),
) -> DeleteItemResponse:
    scope = Scope(uid=uid, project_id=project_id)
    result = await request.app.state.ingestion_service.delete_item(scope, ContentKind.FILE, item_id)
    return DeleteItemResponse.model_validate({**result, "message": "File deleted successfully"})
