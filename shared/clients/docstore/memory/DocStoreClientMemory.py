import copy
import operator
from typing import Any

import httpx

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.docstore.models.DocSnapshot import DocSnapshot
from shared.errors import NotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_OPS = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_MISSING = object()


def _get_path(data: dict, field: str) -> Any:
    node: Any = data
    for part in field.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _set_path(data: dict, field: str, value: Any) -> None:
    parts = field.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _delete_path(data: dict, field: str) -> None:
    parts = field.split(".")
    node = data
    for part in parts[:-1]:
        node = node.get(part)
        if not isinstance(node, dict):
            return
    node.pop(parts[-1], None)


class DocStoreClientMemory(DocStoreClientInterface):
    """Dict-backed document store for local development and tests.

    Values are deep-copied in and out, so callers never share state with the store.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._docs: dict[str, dict[str, Any]] = {}

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
        return "memory://docstore"

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    @staticmethod
    def _key(path: str) -> str:
        return "/".join(DocStoreClientInterface.check_document_path(path))

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

    async def do_get(self, path: str) -> dict[str, Any] | None:
        doc = self._docs.get(self._key(path))
        return copy.deepcopy(doc) if doc is not None else None

    async def do_set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        key = self._key(path)
        if merge and key in self._docs:
            self._docs[key].update(copy.deepcopy(data))
        else:
            self._docs[key] = copy.deepcopy(data)

    async def do_update(self, path: str, updates: dict[str, Any]) -> None:
        key = self._key(path)
        doc = self._docs.get(key)
        if doc is None:
            raise NotFoundError(f"Document '{path}' not found.")
        for field, value in updates.items():
            _set_path(doc, field, copy.deepcopy(value))

    async def do_increment(self, path: str, field: str, delta: int) -> None:
        doc = self._docs.setdefault(self._key(path), {})
        current = _get_path(doc, field)
        _set_path(doc, field, (0 if current is _MISSING or current is None else current) + delta)

    async def do_delete_field(self, path: str, field: str) -> None:
        doc = self._docs.get(self._key(path))
        if doc is not None:
            _delete_path(doc, field)

    async def do_delete(self, path: str) -> None:
        self._docs.pop(self._key(path), None)

    async def do_query(
        self,
        collection: str,
        filters: list[tuple[str, str, Any]] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[DocSnapshot]:
        parent = "/".join(self.check_collection_path(collection))
        filters = filters or []
        for _, op, _ in filters:
            self.check_operator(op)

        results = []
        for key, doc in self._docs.items():
            head, _, doc_id = key.rpartition("/")
            if head != parent:
                continue
            if all(self._matches(doc, field, op, value) for field, op, value in filters):
                results.append(DocSnapshot(id=doc_id, data=copy.deepcopy(doc)))

        if order_by:
            # documents without the field sort first ascending, like a null value
            def sort_key(snap: DocSnapshot):
                val = _get_path(snap.data, order_by)
                return (0, "") if val is _MISSING or val is None else (1, val)

            results.sort(key=sort_key, reverse=descending)
        if limit is not None:
            results = results[:limit]
        return results

    @staticmethod
    def _matches(doc: dict, field: str, op: str, value: Any) -> bool:
        current = _get_path(doc, field)
        if current is _MISSING:
            return False
        try:
            return _OPS[op](current, value)
        except TypeError:
            return False
