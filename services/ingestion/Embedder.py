from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import UpstreamError
from shared.helper.HelperConfig import HelperConfig


class EmbeddedChunk:
    __slots__ = ("index", "text", "vector")

    def __init__(self, index: int, text: str, vector: list[float]) -> None:
        self.index = index
        self.text = text
        self.vector = vector


class Embedder:
    """Turns chunks and questions into vectors with the one pinned embedding model.

    Ingestion and retrieval both go through this class, so index-time and
    query-time vectors always come from the same model.
    """

    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._batch_size = helper_config.get_int_val("EMBED_BATCH_SIZE", default=64)
        if self._batch_size <= 0:
            raise ValueError("EMBED_BATCH_SIZE must be positive.")

    @property
    def model(self) -> str:
        return self._embed_client.embed_model

    async def embed_chunks(self, chunks: list[str]) -> list[EmbeddedChunk]:
        """Embed the non-blank chunks of one item.

        Blank windows are skipped but the remaining chunks keep their window
        index. Either every non-blank chunk gets a vector or the call raises.

        Args:
            chunks (list[str]): Windows from the Chunker, in order.

        Returns:
            list[EmbeddedChunk]: One entry per non-blank chunk, in order.

        Raises:
            UpstreamError: If any embedding request fails.
        """
        pending = [(i, chunk) for i, chunk in enumerate(chunks) if chunk.strip()]
        embedded: list[EmbeddedChunk] = []
        for start in range(0, len(pending), self._batch_size):
            batch = pending[start:start + self._batch_size]
            vectors = await self._embed_client.do_embed([text for _, text in batch])
            if len(vectors) != len(batch):
                raise UpstreamError("Embedding backend returned an unexpected number of vectors.")
            embedded.extend(EmbeddedChunk(i, text, vector) for (i, text), vector in zip(batch, vectors))
        return embedded

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single question for retrieval."""
        vectors = await self._embed_client.do_embed([text])
        if not vectors:
            raise UpstreamError("Embedding backend returned no vector for the query.")
        return vectors[0]
