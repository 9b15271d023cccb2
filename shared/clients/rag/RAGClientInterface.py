from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector store adapter.

    Every operation is scoped to exactly one namespace (a user id or
    ``project-{projectId}``). There is no operation that spans namespaces.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def check_namespace(namespace: str) -> str:
        """
        Rejects an empty namespace before it reaches the backend.

        Raises:
            ValueError: If the namespace is empty or blank.
        """
        if not namespace or not namespace.strip():
            raise ValueError("A vector namespace is required for every RAG operation.")
        return namespace

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def prepare(self, vector_size: int, distance: str = "Cosine") -> None:
        """
        Makes sure the backing collection exists for vectors of the given size.

        Args:
            vector_size (int): Dimension of the pinned embedding model.
            distance (str): Distance metric (e.g. "Cosine").
        """
        pass

    @abstractmethod
    async def do_upsert(self, namespace: str, points: list[VectorPoint]) -> None:
        """
        Inserts points into a namespace, replacing points with the same id.

        Args:
            namespace (str): Target namespace.
            points (list[VectorPoint]): Points to write.

        Raises:
            UpstreamError: If the backend rejects the write.
        """
        pass

    @abstractmethod
    async def do_query(self, namespace: str, vector: list[float], top_k: int, include_metadata: bool = True) -> list[QueryMatch]:
        """
        Returns the ``top_k`` most similar points of one namespace.

        Args:
            namespace (str): Namespace to search.
            vector (list[float]): Query vector from the pinned embedding model.
            top_k (int): Maximum number of matches.
            include_metadata (bool): Whether to return the chunk metadata.

        Returns:
            list[QueryMatch]: At most ``top_k`` matches, ordered by descending score.
        """
        pass

    @abstractmethod
    async def do_list_by_prefix(self, namespace: str, prefix: str) -> list[str]:
        """
        Lists the ids of all points in a namespace whose id starts with ``prefix``.

        Args:
            namespace (str): Namespace to list.
            prefix (str): Id prefix, e.g. ``"{itemId}-chunk-"``.

        Returns:
            list[str]: Matching point ids.
        """
        pass

    @abstractmethod
    async def do_delete_many(self, namespace: str, ids: list[str]) -> None:
        """
        Deletes the given point ids from a namespace. Unknown ids are ignored.
        """
        pass

    @abstractmethod
    async def do_delete_namespace(self, namespace: str) -> None:
        """
        Deletes every point of a namespace.
        """
        pass

    async def do_delete_by_prefix(self, namespace: str, prefix: str) -> int:
        """
        Deletes all points of a namespace whose id starts with ``prefix``.

        Returns:
            int: Number of deleted points.
        """
        ids = await self.do_list_by_prefix(namespace, prefix)
        if ids:
            await self.do_delete_many(namespace, ids)
        return len(ids)
