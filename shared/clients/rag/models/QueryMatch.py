from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import ChunkMetadata


class QueryMatch(BaseModel):
    """One similarity hit. ``metadata`` is None when the query did not ask for it."""

    id: str
    score: float
    metadata: ChunkMetadata | None = None
