import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.docstore.models.DocSnapshot import DocSnapshot
from shared.errors import NotFoundError, UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_SIMPLE_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")
_FRACTION = re.compile(r"\.(\d+)")

_OPERATOR_NAMES = {
    "==": "EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
}


##########################################
############## VALUE CODEC ###############
##########################################

def encode_value(value: Any) -> dict:
    """Encode a Python value as a Firestore REST ``Value``."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {"timestampValue": value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__} in Firestore.")


def encode_fields(data: dict[str, Any]) -> dict[str, dict]:
    return {key: encode_value(val) for key, val in data.items()}


def _parse_timestamp(raw: str) -> datetime:
    # firestore returns up to nanoseconds, fromisoformat takes microseconds
    raw = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def decode_value(value: dict) -> Any:
    """Decode a Firestore REST ``Value`` into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return value["booleanValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    raise ValueError(f"Unsupported Firestore value: {list(value.keys())}")


def decode_fields(fields: dict[str, dict]) -> dict[str, Any]:
    return {key: decode_value(val) for key, val in fields.items()}


def quote_field_path(field: str) -> str:
    """Quote each dotted segment that is not a plain identifier (e.g. uuid project ids)."""
    segments = []
    for segment in field.split("."):
        if _SIMPLE_SEGMENT.match(segment):
            segments.append(segment)
        else:
            segments.append("`" + segment.replace("\\", "\\\\").replace("`", "\\`") + "`")
    return ".".join(segments)


def nest_dotted(updates: dict[str, Any]) -> dict[str, Any]:
    """Turn ``{"a.b": 1}`` into ``{"a": {"b": 1}}`` for the fields part of a masked update."""
    nested: dict[str, Any] = {}
    for field, value in updates.items():
        parts = field.split(".")
        node = nested
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return nested


class DocStoreClientFirestore(DocStoreClientInterface):
    """Firestore engine talking to the REST v1 API.

    Writes go through ``documents:commit`` so masked updates, field deletes and
    server-side increments share one code path.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://firestore.googleapis.com/v1", val_type="string")
        self._project_id = self.get_config_val("PROJECT_ID", default=None, val_type="string")
        self._database = self.get_config_val("DATABASE", default="(default)", val_type="string")
        self._access_token = self.get_config_val("ACCESS_TOKEN", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Firestore"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://firestore.googleapis.com/v1"),
            EnvConfig(env_key="PROJECT_ID", val_type="string", default=None),
            EnvConfig(env_key="DATABASE", val_type="string", default="(default)"),
            EnvConfig(env_key="ACCESS_TOKEN", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_database_name(self) -> str:
        return f"projects/{self._project_id}/databases/{self._database}"

    def _get_documents_root(self) -> str:
        return f"{self._get_database_name()}/documents"

    def _get_document_name(self, path: str) -> str:
        return f"{self._get_documents_root()}/{'/'.join(self.check_document_path(path))}"

    def _get_endpoint_healthcheck(self) -> str:
        return f"/{self._get_documents_root()}/users?pageSize=1"

    def _get_endpoint_document(self, path: str) -> str:
        return f"/{self._get_document_name(path)}"

    def _get_endpoint_commit(self) -> str:
        return f"/{self._get_documents_root()}:commit"

    def _get_endpoint_run_query(self, parent: str) -> str:
        return f"/{parent}:runQuery"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_update_write(self, path: str, data: dict[str, Any], mask: list[str] | None = None, must_exist: bool = False) -> dict:
        write: dict[str, Any] = {"update": {"name": self._get_document_name(path), "fields": encode_fields(data)}}
        if mask is not None:
            write["updateMask"] = {"fieldPaths": [quote_field_path(f) for f in mask]}
        if must_exist:
            write["currentDocument"] = {"exists": True}
        return write

    def get_increment_write(self, path: str, field: str, delta: int) -> dict:
        return {
            "transform": {
                "document": self._get_document_name(path),
                "fieldTransforms": [{"fieldPath": quote_field_path(field), "increment": {"integerValue": str(delta)}}],
            }
        }

    def get_structured_query(
        self,
        collection_id: str,
        filters: list[tuple[str, str, Any]],
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> dict:
        query: dict[str, Any] = {"from": [{"collectionId": collection_id}]}
        field_filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": quote_field_path(field)},
                    "op": _OPERATOR_NAMES[self.check_operator(op)],
                    "value": encode_value(value),
                }
            }
            for field, op, value in filters
        ]
        if len(field_filters) == 1:
            query["where"] = field_filters[0]
        elif field_filters:
            query["where"] = {"compositeFilter": {"op": "AND", "filters": field_filters}}
        if order_by:
            query["orderBy"] = [{"field": {"fieldPath": quote_field_path(order_by)}, "direction": "DESCENDING" if descending else "ASCENDING"}]
        if limit is not None:
            query["limit"] = limit
        return {"structuredQuery": query}

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _commit(self, writes: list[dict]) -> None:
        response = await self.do_request(method="POST", endpoint=self._get_endpoint_commit(), json={"writes": writes})
        if response.status_code == 404:
            raise NotFoundError("Document not found.")
        if response.status_code >= 300:
            self.logging.error("Firestore commit failed with status %d: %s", response.status_code, response.text[:500])
            raise UpstreamError(f"Firestore commit failed with status {response.status_code}")

    async def do_get(self, path: str) -> dict[str, Any] | None:
        response = await self.do_request(method="GET", endpoint=self._get_endpoint_document(path))
        if response.status_code == 404:
            return None
        if response.status_code >= 300:
            self.logging.error("Firestore get '%s' failed with status %d", path, response.status_code)
            raise UpstreamError(f"Firestore get failed with status {response.status_code}")
        return decode_fields(response.json().get("fields", {}))

    async def do_set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        mask = list(data.keys()) if merge else None
        await self._commit([self.get_update_write(path, data, mask=mask)])

    async def do_update(self, path: str, updates: dict[str, Any]) -> None:
        if not updates:
            return
        await self._commit([self.get_update_write(path, nest_dotted(updates), mask=list(updates.keys()), must_exist=True)])

    async def do_increment(self, path: str, field: str, delta: int) -> None:
        await self._commit([self.get_increment_write(path, field, delta)])

    async def do_delete_field(self, path: str, field: str) -> None:
        # a masked field that is absent from the write is removed
        await self._commit([self.get_update_write(path, {}, mask=[field])])

    async def do_delete(self, path: str) -> None:
        response = await self.do_request(method="DELETE", endpoint=self._get_endpoint_document(path))
        if response.status_code >= 300 and response.status_code != 404:
            self.logging.error("Firestore delete '%s' failed with status %d", path, response.status_code)
            raise UpstreamError(f"Firestore delete failed with status {response.status_code}")

    async def do_query(
        self,
        collection: str,
        filters: list[tuple[str, str, Any]] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[DocSnapshot]:
        segments = self.check_collection_path(collection)
        parent = self._get_documents_root()
        if len(segments) > 1:
            parent = f"{parent}/{'/'.join(segments[:-1])}"
        entries = await self.do_request_json(
            "POST",
            self._get_endpoint_run_query(parent),
            json=self.get_structured_query(segments[-1], filters or [], order_by, descending, limit),
        )
        snapshots = []
        for entry in entries:
            document = entry.get("document")
            if not document:
                continue
            doc_id = document["name"].rsplit("/", 1)[-1]
            snapshots.append(DocSnapshot(id=doc_id, data=decode_fields(document.get("fields", {}))))
        return snapshots
