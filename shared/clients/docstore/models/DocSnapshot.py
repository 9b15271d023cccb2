from typing import Any

from pydantic import BaseModel


class DocSnapshot(BaseModel):
    """A document read from the document store: its id (last path segment) and its fields."""

    id: str
    data: dict[str, Any]
