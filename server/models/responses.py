from pydantic import BaseModel

from shared.models.content import ContentItem
from shared.models.user import CamelModel, UserProfile


class SuccessResponse(CamelModel):
    success: bool = True
    message: str = ""


class InitUserResponse(CamelModel):
    success: bool = True
    is_new_user: bool


class IngestResponse(CamelModel):
    success: bool = True
    id: str
    kind: str
    character_count: int
    message: str

    @classmethod
    def from_item(cls, item: ContentItem, message: str) -> "IngestResponse":
        return cls(id=item.id, kind=item.kind.value, character_count=item.character_count, message=message)


class DeleteItemResponse(CamelModel):
    success: bool = True
    id: str
    released_characters: int
    deleted_vectors: int
    message: str = ""


class DeleteProjectResponse(CamelModel):
    success: bool = True
    id: str
    deleted_conversations: int
    deleted_files: int
    released_characters: int
    message: str = "Project deleted successfully"


class ProfileExportResponse(CamelModel):
    message: str
    profile: UserProfile


class CheckoutResponse(CamelModel):
    session_id: str
    url: str | None = None


class WebhookResponse(CamelModel):
    received: bool = True
    upgraded: bool | None = None


class CleanupResponse(CamelModel):
    deleted: int


class TokenResponse(BaseModel):
    # RFC 6749 field names
    access_token: str
    token_type: str = "Bearer"
    expires_in: int

