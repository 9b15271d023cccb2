import uuid

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorPoint import ChunkMetadata, VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.content import item_id_of_prefix

# payload keys that are filtered on and get a keyword index
INDEXED_PAYLOAD_KEYS = ("namespace", "chunk_id", "item_id")


class RAGClientQdrant(RAGClientInterface):
    """Qdrant engine.

    All namespaces share one collection. The namespace is a payload key and is
    part of every filter; point ids are UUIDs derived from namespace and chunk
    id, the chunk id itself lives in the payload.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="persona_chunks", val_type="string")
        self._scroll_page_size = int(self.get_config_val("SCROLL_PAGE_SIZE", default=1000, val_type="number"))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="persona_chunks"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_payload_index(self) -> str:
        return f"/collections/{self._collection_name}/index"

    ################ IDS ##################
    @staticmethod
    def point_uuid(namespace: str, chunk_id: str) -> str:
        """Qdrant only accepts integer or UUID point ids."""
        return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{namespace}:{chunk_id}"))

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @staticmethod
    def _namespace_condition(namespace: str) -> dict:
        return {"key": "namespace", "match": {"value": namespace}}

    def get_point_payload(self, namespace: str, point: VectorPoint) -> dict:
        return {
            "id": self.point_uuid(namespace, point.id),
            "vector": point.values,
            "payload": {
                "namespace": namespace,
                "chunk_id": point.id,
                "item_id": point.metadata.item_id,
                "chunk_index": point.metadata.chunk_index,
                "text": point.metadata.text,
            },
        }

    def get_search_payload(self, namespace: str, vector: list[float], top_k: int, include_metadata: bool) -> dict:
        return {
            "vector": vector,
            "limit": top_k,
            "filter": {"must": [self._namespace_condition(namespace)]},
            "with_payload": True if include_metadata else ["chunk_id"],
            "with_vector": False,
        }

    def get_scroll_payload(self, namespace: str, limit: int, offset: str | int | None = None, item_id: str | None = None) -> dict:
        must = [self._namespace_condition(namespace)]
        if item_id is not None:
            must.append({"key": "item_id", "match": {"value": item_id}})
        payload = {
            "filter": {"must": must},
            "limit": limit,
            "with_payload": ["chunk_id"],
            "with_vector": False,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_delete_payload(self, namespace: str, chunk_ids: list[str] | None = None) -> dict:
        must = [self._namespace_condition(namespace)]
        if chunk_ids is not None:
            must.append({"key": "chunk_id", "match": {"any": chunk_ids}})
        return {"filter": {"must": must}}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @staticmethod
    def extract_query_matches(raw_response: dict, include_metadata: bool) -> list[QueryMatch]:
        matches = []
        for hit in raw_response.get("result", []):
            payload = hit.get("payload") or {}
            metadata = None
            if include_metadata:
                metadata = ChunkMetadata(
                    text=payload.get("text", ""),
                    item_id=payload.get("item_id", ""),
                    chunk_index=payload.get("chunk_index", 0),
                )
            matches.append(QueryMatch(id=payload.get("chunk_id", str(hit.get("id"))), score=hit.get("score", 0.0), metadata=metadata))
        # qdrant already ranks, the sort pins the tie order
        return sorted(matches, key=lambda m: (-m.score, m.id))

    @staticmethod
    def extract_scroll_content(raw_response: dict) -> ScrollResult:
        result = raw_response.get("result", {})
        return ScrollResult(result=result.get("points", []), next_page_offset=result.get("next_page_offset"))

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        body = await self.do_request_json("GET", self._get_endpoint_check_collection_existence())
        return bool(body.get("result", {}).get("exists"))

    async def prepare(self, vector_size: int, distance: str = "Cosine") -> None:
        """Creates the collection and its keyword payload indexes when missing."""
        if await self.do_existence_check():
            self.logging.debug("Qdrant collection '%s' already exists", self._collection_name)
            return
        self.logging.info("Creating Qdrant collection '%s' (size=%d, distance=%s)", self._collection_name, vector_size, distance)
        await self.do_request(
            method="PUT",
            json={"vectors": {"size": vector_size, "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )
        for key in INDEXED_PAYLOAD_KEYS:
            await self.do_request(
                method="PUT",
                json={"field_name": key, "field_schema": "keyword"},
                endpoint=self._get_endpoint_payload_index(),
                raise_on_error=True,
            )

    async def do_upsert(self, namespace: str, points: list[VectorPoint]) -> None:
        self.check_namespace(namespace)
        if not points:
            return
        await self.do_request(
            method="PUT",
            json={"points": [self.get_point_payload(namespace, p) for p in points]},
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(),
            raise_on_error=True,
        )

    async def do_query(self, namespace: str, vector: list[float], top_k: int, include_metadata: bool = True) -> list[QueryMatch]:
        self.check_namespace(namespace)
        if top_k <= 0:
            return []
        body = await self.do_request_json(
            "POST",
            self._get_endpoint_search(),
            json=self.get_search_payload(namespace, vector, top_k, include_metadata),
        )
        return self.extract_query_matches(body, include_metadata)[:top_k]

    async def do_scroll(self, namespace: str, offset: str | int | None = None, item_id: str | None = None) -> ScrollResult:
        """Scroll a single page of a namespace, optionally narrowed to one item."""
        body = await self.do_request_json(
            "POST",
            self._get_endpoint_scroll(),
            json=self.get_scroll_payload(namespace, self._scroll_page_size, offset, item_id),
        )
        return self.extract_scroll_content(body)

    async def do_list_by_prefix(self, namespace: str, prefix: str) -> list[str]:
        self.check_namespace(namespace)
        # item prefixes go through the item_id index instead of the whole namespace
        item_id = item_id_of_prefix(prefix)
        ids: list[str] = []
        offset = None
        while True:
            page = await self.do_scroll(namespace, offset, item_id)
            for point in page.result:
                chunk_id = (point.get("payload") or {}).get("chunk_id", "")
                if chunk_id.startswith(prefix):
                    ids.append(chunk_id)
            offset = page.next_page_offset
            if offset is None:
                break
        return ids

    async def do_delete_many(self, namespace: str, ids: list[str]) -> None:
        self.check_namespace(namespace)
        if not ids:
            return
        await self.do_request(
            method="POST",
            json=self.get_delete_payload(namespace, chunk_ids=list(ids)),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )

    async def do_delete_namespace(self, namespace: str) -> None:
        self.check_namespace(namespace)
        self.logging.info("Purging vector namespace '%s'", namespace)
        await self.do_request(
            method="POST",
            json=self.get_delete_payload(namespace),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            raise_on_error=True,
        )
