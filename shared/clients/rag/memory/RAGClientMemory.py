import math

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector size mismatch: {len(a)} != {len(b)}")
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / norm


class RAGClientMemory(RAGClientInterface):
    """In-process vector store for local development and tests.

    Namespaces are separate dicts; a query only ever scores the points of its
    own namespace. Ties on score are broken by point id.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._namespaces: dict[str, dict[str, VectorPoint]] = {}
        self._vector_size: int | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "Memory"

    def _get_required_config(self) -> list[EnvConfig]:
        return []

    def _get_auth_header(self) -> dict:
        return {}

    def _get_base_url(self) -> str:
        return "memory://rag"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def count(self, namespace: str) -> int:
        return len(self._namespaces.get(namespace, {}))

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        pass

    async def close(self) -> None:
        pass

    async def do_healthcheck(self) -> bool:
        return True

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def prepare(self, vector_size: int, distance: str = "Cosine") -> None:
        self._vector_size = vector_size

    async def do_upsert(self, namespace: str, points: list[VectorPoint]) -> None:
        self.check_namespace(namespace)
        store = self._namespaces.setdefault(namespace, {})
        for point in points:
            if self._vector_size is not None and len(point.values) != self._vector_size:
                raise ValueError(f"Vector size mismatch for point '{point.id}': expected {self._vector_size}, got {len(point.values)}")
            store[point.id] = point.model_copy(deep=True)

    async def do_query(self, namespace: str, vector: list[float], top_k: int, include_metadata: bool = True) -> list[QueryMatch]:
        self.check_namespace(namespace)
        if top_k <= 0:
            return []
        scored = [
            QueryMatch(
                id=point.id,
                score=cosine_similarity(vector, point.values),
                metadata=point.metadata.model_copy() if include_metadata else None,
            )
            for point in self._namespaces.get(namespace, {}).values()
        ]
        scored.sort(key=lambda m: (-m.score, m.id))
        return scored[:top_k]

    async def do_list_by_prefix(self, namespace: str, prefix: str) -> list[str]:
        self.check_namespace(namespace)
        return sorted(pid for pid in self._namespaces.get(namespace, {}) if pid.startswith(prefix))

    async def do_delete_many(self, namespace: str, ids: list[str]) -> None:
        self.check_namespace(namespace)
        store = self._namespaces.get(namespace, {})
        for pid in ids:
            store.pop(pid, None)

    async def do_delete_namespace(self, namespace: str) -> None:
        self.check_namespace(namespace)
        self._namespaces.pop(namespace, None)
