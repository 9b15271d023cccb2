from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.docstore.models.DocSnapshot import DocSnapshot
from shared.helper.HelperConfig import HelperConfig

# filter operators supported by do_query
QUERY_OPERATORS = ("==", "<", "<=", ">", ">=")


class DocStoreClientInterface(ClientInterface):
    """Document store holding users, projects and their content items.

    Paths alternate collection and document ids, e.g. ``users/{uid}`` is a
    document and ``users/{uid}/files`` a collection. Field paths may be dotted
    (``projectCharactersUsed.{projectId}``) to address nested map entries.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def check_document_path(path: str) -> list[str]:
        """
        Splits a document path and validates that it addresses a document.

        Raises:
            ValueError: If the path is empty or has an odd number of segments.
        """
        segments = [s for s in path.strip("/").split("/") if s]
        if not segments or len(segments) % 2 != 0:
            raise ValueError(f"'{path}' is not a document path.")
        return segments

    @staticmethod
    def check_collection_path(path: str) -> list[str]:
        """
        Splits a collection path and validates that it addresses a collection.

        Raises:
            ValueError: If the path is empty or has an even number of segments.
        """
        segments = [s for s in path.strip("/").split("/") if s]
        if not segments or len(segments) % 2 != 1:
            raise ValueError(f"'{path}' is not a collection path.")
        return segments

    @staticmethod
    def check_operator(op: str) -> str:
        if op not in QUERY_OPERATORS:
            raise ValueError(f"Unsupported query operator '{op}'. Supported: {', '.join(QUERY_OPERATORS)}")
        return op

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "docstore"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_get(self, path: str) -> dict[str, Any] | None:
        """
        Reads one document.

        Args:
            path (str): Document path, e.g. "users/abc".

        Returns:
            dict | None: The document fields, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def do_set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """
        Writes a whole document, creating it if needed.

        Args:
            path (str): Document path.
            data (dict): Fields to write.
            merge (bool): Keep top-level fields not present in ``data``.
        """
        pass

    @abstractmethod
    async def do_update(self, path: str, updates: dict[str, Any]) -> None:
        """
        Updates fields of an existing document. Keys may be dotted field paths.

        Raises:
            NotFoundError: If the document does not exist.
        """
        pass

    @abstractmethod
    async def do_increment(self, path: str, field: str, delta: int) -> None:
        """
        Atomically adds ``delta`` (may be negative) to a numeric field.

        The increment is applied by the store itself, so concurrent increments
        on the same field never lose an update. A missing field counts as 0.

        Args:
            path (str): Document path.
            field (str): Field path, may be dotted.
            delta (int): Amount to add.
        """
        pass

    @abstractmethod
    async def do_delete_field(self, path: str, field: str) -> None:
        """
        Removes a single field (dotted path allowed) from a document.
        """
        pass

    @abstractmethod
    async def do_delete(self, path: str) -> None:
        """
        Deletes a document. Subcollections are not touched; deleting a missing document is a no-op.
        """
        pass

    @abstractmethod
    async def do_query(
        self,
        collection: str,
        filters: list[tuple[str, str, Any]] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[DocSnapshot]:
        """
        Lists the documents of one collection that match all filters.

        Args:
            collection (str): Collection path, e.g. "projects" or "users/abc/files".
            filters (list[tuple[str, str, Any]] | None): ``(field, op, value)`` triples, combined with AND.
            order_by (str | None): Field to order by.
            descending (bool): Order direction.
            limit (int | None): Maximum number of documents.

        Returns:
            list[DocSnapshot]: Matching documents.
        """
        pass

    async def do_list(self, collection: str, order_by: str | None = None, descending: bool = False) -> list[DocSnapshot]:
        """Lists every document of a collection."""
        return await self.do_query(collection, filters=None, order_by=order_by, descending=descending)
