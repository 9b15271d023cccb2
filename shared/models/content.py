"""Pydantic models for ingested content items (conversations and files)."""

from datetime import datetime
from enum import Enum

from shared.models.user import CamelModel


class ContentKind(str, Enum):
    CONVERSATION = "conversation"
    FILE = "file"

    @property
    def collection(self) -> str:
        """Sub-collection name under a user or project document."""
        return f"{self.value}s"


class ContentItem(CamelModel):
    """A stored unit of ingested text.

    ``character_count`` is fixed at creation and is exactly what the owning
    scope's counter was charged; deletion releases this number, never
    ``len(text)``.
    """

    id: str
    kind: ContentKind
    owner_id: str
    project_id: str | None = None
    text: str
    character_count: int

    # files only
    filename: str | None = None
    mime_type: str | None = None
    extraction_method: str | None = None
    is_writing_sample: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None


def chunk_id_prefix(item_id: str) -> str:
    """Prefix shared by every vector id of one item.

    Item ids are UUID4 strings of fixed length, so no item's prefix is a
    prefix of another item's chunk ids.
    """
    return f"{item_id}-chunk-"


def make_chunk_id(item_id: str, chunk_index: int) -> str:
    return f"{chunk_id_prefix(item_id)}{chunk_index}"


def item_id_of_prefix(prefix: str) -> str | None:
    """The item id behind a ``chunk_id_prefix`` value, or None for any other prefix."""
    suffix = chunk_id_prefix("")
    if prefix.endswith(suffix) and len(prefix) > len(suffix):
        return prefix[: -len(suffix)]
    return None
