"""Ingestion service: turns raw text or an uploaded file into a stored, retrievable content item.

Order per item: extract -> reserve quota -> persist metadata -> commit quota ->
chunk -> embed -> upsert. Any failure after the metadata write is compensated:
the metadata is deleted, a committed charge is released and vectors already
written under the item's id prefix are removed before the error propagates.
"""

import os
import uuid
from datetime import datetime, timezone

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import ChunkMetadata, VectorPoint
from shared.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.content import ContentItem, ContentKind, chunk_id_prefix, make_chunk_id
from shared.models.scope import Scope
from services.ingestion.Chunker import Chunker
from services.ingestion.Embedder import Embedder
from services.ingestion.TextExtractor import TextExtractor
from services.projects.ProjectService import ProjectService
from services.quota.QuotaLedger import QuotaLedger, user_path

WRITING_SAMPLE_PREFIX = "writing-sample-"


class IngestionService:
    def __init__(
        self,
        helper_config: HelperConfig,
        docstore: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        embedder: Embedder,
        extractor: TextExtractor,
        quota_ledger: QuotaLedger,
        project_service: ProjectService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._rag = rag_client
        self._embedder = embedder
        self._extractor = extractor
        self._ledger = quota_ledger
        self._projects = project_service
        self._chunker = Chunker(
            size=helper_config.get_int_val("CHUNK_SIZE", default=1000),
            overlap=helper_config.get_int_val("CHUNK_OVERLAP", default=100),
        )
        self._upsert_batch_size = max(1, helper_config.get_int_val("UPSERT_BATCH_SIZE", default=100))

    ##########################################
    ################ GETTER ##################
    ##########################################

    @staticmethod
    def item_path(scope: Scope, kind: ContentKind, item_id: str) -> str:
        return f"{scope.collection(kind.collection)}/{item_id}"

    async def _check_scope(self, scope: Scope) -> None:
        """Project scopes must name an existing project owned by ``scope.uid``."""
        if scope.is_project:
            await self._projects.get_owned(scope.uid, scope.project_id)

    async def list_items(self, scope: Scope, kind: ContentKind) -> list[ContentItem]:
        """All items of one kind in a scope, newest first."""
        await self._check_scope(scope)
        snapshots = await self._docstore.do_list(scope.collection(kind.collection), order_by="createdAt", descending=True)
        return [ContentItem.model_validate({**snap.data, "id": snap.id}) for snap in snapshots]

    ##########################################
    ################ CORE ####################
    ##########################################

    async def ingest_text(self, scope: Scope, text: str) -> ContentItem:
        """Store a conversation transcript or pasted text."""
        await self._check_scope(scope)
        return await self._ingest(scope, ContentKind.CONVERSATION, text)

    async def ingest_file(self, scope: Scope, path: str, filename: str, mime_type: str | None) -> ContentItem:
        """Extract and store an uploaded file. The temp file is removed whatever happens.

        Raises:
            ExtractionError: If the file cannot be parsed.
            QuotaExceededError: If the text does not fit the scope's quota.
        """
        try:
            await self._check_scope(scope)
            text, method = await self._extractor.extract(path, mime_type, filename)
            return await self._ingest(
                scope,
                ContentKind.FILE,
                text,
                filename=filename,
                mime_type=mime_type,
                extraction_method=method,
            )
        finally:
            self._discard_temp(path)

    async def ingest_writing_sample(self, uid: str, path: str, filename: str, mime_type: str | None) -> ContentItem:
        """Store a writing sample: one profile-scope file item plus the profile's ``writingSample`` field.

        Both share a single quota charge.
        """
        scope = Scope(uid=uid)
        try:
            text, method = await self._extractor.extract(path, mime_type, filename)
            item = await self._ingest(
                scope,
                ContentKind.FILE,
                text,
                filename=f"{WRITING_SAMPLE_PREFIX}{filename}",
                mime_type=mime_type,
                extraction_method=method,
                is_writing_sample=True,
            )
        finally:
            self._discard_temp(path)
        await self._docstore.do_update(user_path(uid), {"profile.writingSample": text, "updatedAt": item.created_at})
        return item

    async def _ingest(self, scope: Scope, kind: ContentKind, text: str, **file_fields) -> ContentItem:
        if not text or not text.strip():
            raise ValidationError("There is no text to store.")

        count = len(text)
        reservation = await self._ledger.reserve(scope, count)

        now = datetime.now(timezone.utc)
        item = ContentItem(
            id=str(uuid.uuid4()),
            kind=kind,
            owner_id=scope.uid,
            project_id=scope.project_id,
            text=text,
            character_count=count,
            created_at=now,
            updated_at=now,
            **file_fields,
        )
        path = self.item_path(scope, kind, item.id)
        await self._docstore.do_set(path, item.model_dump(by_alias=True, exclude={"id"}))

        committed = False
        indexing = False
        try:
            await self._ledger.commit(reservation)
            committed = True
            indexing = True
            vector_count = await self._index(scope, item)
        except Exception:
            await self._compensate(scope, item, path, committed, indexing)
            raise

        self.logging.info(
            "Ingested %s %s into %s namespace=%s: %d characters, %d vectors (model %s)",
            kind.value, item.id, scope.label, scope.namespace, count, vector_count, self._embedder.model,
        )
        return item

    async def _index(self, scope: Scope, item: ContentItem) -> int:
        chunks = self._chunker.split(item.text)
        embedded = await self._embedder.embed_chunks(chunks)
        points = [
            VectorPoint(
                id=make_chunk_id(item.id, chunk.index),
                values=chunk.vector,
                metadata=ChunkMetadata(text=chunk.text, item_id=item.id, chunk_index=chunk.index),
            )
            for chunk in embedded
        ]
        for start in range(0, len(points), self._upsert_batch_size):
            await self._rag.do_upsert(scope.namespace, points[start:start + self._upsert_batch_size])
        return len(points)

    async def _compensate(self, scope: Scope, item: ContentItem, path: str, committed: bool, indexing: bool) -> None:
        """Undo the steps of a failed ingestion. Failures here are logged; the original error wins."""
        self.logging.error("Ingestion of %s in %s scope uid=%s failed, rolling back", item.id, scope.label, scope.uid)
        steps = [("metadata", lambda: self._docstore.do_delete(path))]
        if committed:
            steps.append(("quota", lambda: self._ledger.release(scope, item.character_count)))
        if indexing:
            steps.append(("vectors", lambda: self._rag.do_delete_by_prefix(scope.namespace, chunk_id_prefix(item.id))))
        # each step runs even if an earlier one failed
        for name, step in steps:
            try:
                await step()
            except Exception as e:
                self.logging.error("Rollback step '%s' for %s failed: %s", name, item.id, e)

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def delete_item(self, scope: Scope, kind: ContentKind, item_id: str) -> dict:
        """Delete one item, exactly its vectors, and release exactly its stored character count.

        Raises:
            NotFoundError: If the item does not exist in the scope.
            PermissionDeniedError: If the project is not owned by the caller.
        """
        await self._check_scope(scope)
        path = self.item_path(scope, kind, item_id)
        doc = await self._docstore.do_get(path)
        if doc is None:
            raise NotFoundError(f"{kind.value.capitalize()} not found.")
        count = int(doc.get("characterCount", 0))

        deleted_vectors = await self._rag.do_delete_by_prefix(scope.namespace, chunk_id_prefix(item_id))
        await self._docstore.do_delete(path)
        await self._ledger.release(scope, count)

        self.logging.info(
            "Deleted %s %s from %s namespace=%s: released %d characters, %d vectors",
            kind.value, item_id, scope.label, scope.namespace, count, deleted_vectors,
        )
        return {"id": item_id, "releasedCharacters": count, "deletedVectors": deleted_vectors}

    ##########################################
    ################ REPAIR ##################
    ##########################################

    async def _sum_scope(self, scope: Scope) -> int:
        total = 0
        for kind in ContentKind:
            for snap in await self._docstore.do_list(scope.collection(kind.collection)):
                total += int(snap.data.get("characterCount", 0))
        return total

    async def reconcile_usage(self, uid: str):
        """Recompute the caller's counters from the live items and store them."""
        profile_total = await self._sum_scope(Scope(uid=uid))
        project_totals = {}
        for project in await self._projects.list_owned(uid):
            project_totals[project.id] = await self._sum_scope(Scope(uid=uid, project_id=project.id))
        return await self._ledger.reconcile(uid, profile_total, project_totals)

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _discard_temp(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logging.warning("Could not remove temp upload %s: %s", path, e)
