"""VectorPoint model: one embedded chunk as stored in a RAG backend."""

from pydantic import BaseModel


class ChunkMetadata(BaseModel):
    """Metadata stored alongside each vector chunk.

    Attributes:
        text:        Raw text of this chunk, returned verbatim as retrieved context.
        item_id:     Id of the ContentItem the chunk was cut from.
        chunk_index: Zero-based window index within the item's text.
    """

    text: str
    item_id: str
    chunk_index: int


class VectorPoint(BaseModel):
    """A vector chunk addressed by ``"{itemId}-chunk-{index}"``.

    The namespace is never part of the point itself; every adapter call
    receives it explicitly.
    """

    id: str
    values: list[float]
    metadata: ChunkMetadata
