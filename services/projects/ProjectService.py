"""Project service: logical containers with their own quota counter and vector namespace."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic.alias_generators import to_camel

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors import NotFoundError, PermissionDeniedError, ProjectLimitError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.content import ContentKind
from shared.models.project import PROJECT_MUTABLE_FIELDS, Project
from shared.models.scope import Scope
from services.quota.QuotaLedger import QuotaLedger


def project_path(project_id: str) -> str:
    return f"projects/{project_id}"


class ProjectService:
    def __init__(
        self,
        helper_config: HelperConfig,
        docstore: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        quota_ledger: QuotaLedger,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._rag = rag_client
        self._ledger = quota_ledger

    ##########################################
    ################ GETTER ##################
    ##########################################

    async def get(self, project_id: str) -> Project:
        """Public read, no ownership check, so project assistants can be shared.

        Raises:
            NotFoundError: If the project does not exist.
        """
        doc = await self._docstore.do_get(project_path(project_id))
        if doc is None:
            raise NotFoundError("Project not found.")
        return Project.model_validate({**doc, "id": project_id})

    async def get_owned(self, uid: str, project_id: str) -> Project:
        """
        Raises:
            NotFoundError: If the project does not exist.
            PermissionDeniedError: If ``uid`` is not the owner.
        """
        project = await self.get(project_id)
        if project.owner_id != uid:
            raise PermissionDeniedError("Only the project owner can do this.")
        return project

    async def list_owned(self, uid: str) -> list[Project]:
        """The owner's projects, newest first."""
        snapshots = await self._docstore.do_query("projects", filters=[("ownerId", "==", uid)])
        projects = [Project.model_validate({**snap.data, "id": snap.id}) for snap in snapshots]
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(projects, key=lambda p: p.created_at or epoch, reverse=True)

    ##########################################
    ################ CORE ####################
    ##########################################

    async def create(self, uid: str, name: str | None = None, description: str = "", system_prompt: str = "", is_public: bool = False) -> Project:
        """Create a project if the owner is below the tier's project limit.

        Raises:
            ProjectLimitError: If the owner already has ``projectLimit`` projects.
        """
        user = await self._ledger.get_user(uid)
        current = len(await self._docstore.do_query("projects", filters=[("ownerId", "==", uid)]))
        if current >= user.project_limit:
            self.logging.warning("Project limit reached for uid=%s (%d/%d)", uid, current, user.project_limit)
            raise ProjectLimitError(user.project_limit, current, is_pro=user.is_pro)

        now = datetime.now(timezone.utc)
        project = Project(
            id=str(uuid.uuid4()),
            owner_id=uid,
            name=(name or "").strip() or "Untitled Project",
            description=description or "",
            system_prompt=system_prompt or "",
            is_public=bool(is_public),
            created_at=now,
            updated_at=now,
        )
        await self._docstore.do_set(project_path(project.id), project.model_dump(by_alias=True, exclude={"id"}))
        await self._ledger.init_project(uid, project.id)
        self.logging.info("Created project %s for uid=%s (%d/%d)", project.id, uid, current + 1, user.project_limit)
        return project

    async def update(self, uid: str, project_id: str, updates: dict[str, Any]) -> Project:
        """Owner-only update of ``name``, ``description``, ``systemPrompt`` and ``isPublic``.

        Keys may be given in camelCase or snake_case; anything else is ignored.

        Raises:
            ValidationError: If no updatable field was supplied.
        """
        await self.get_owned(uid, project_id)
        changes: dict[str, Any] = {}
        for field in PROJECT_MUTABLE_FIELDS:
            alias = to_camel(field)
            if alias in updates:
                changes[alias] = updates[alias]
            elif field in updates:
                changes[alias] = updates[field]
        if not changes:
            raise ValidationError(f"Nothing to update. Allowed fields: {', '.join(to_camel(f) for f in PROJECT_MUTABLE_FIELDS)}.")
        if "isPublic" in changes:
            changes["isPublic"] = bool(changes["isPublic"])
        changes["updatedAt"] = datetime.now(timezone.utc)
        await self._docstore.do_update(project_path(project_id), changes)
        return await self.get(project_id)

    async def delete(self, uid: str, project_id: str) -> dict:
        """Owner-only delete with cascade.

        Deletes every conversation and file of the project, removes the project's
        counter entry from the owner (no decrement), purges the project's vector
        namespace and finally deletes the project document.
        """
        await self.get_owned(uid, project_id)
        scope = Scope(uid=uid, project_id=project_id)

        deleted: dict[str, int] = {}
        released = 0
        for kind in ContentKind:
            collection = scope.collection(kind.collection)
            snapshots = await self._docstore.do_list(collection)
            for snap in snapshots:
                released += int(snap.data.get("characterCount", 0))
                await self._docstore.do_delete(f"{collection}/{snap.id}")
            deleted[kind.collection] = len(snapshots)

        await self._ledger.drop_project(uid, project_id)
        await self._rag.do_delete_namespace(scope.namespace)
        await self._docstore.do_delete(project_path(project_id))

        self.logging.info(
            "Deleted project %s of uid=%s: %d conversations, %d files, %d characters, namespace %s purged",
            project_id, uid, deleted["conversations"], deleted["files"], released, scope.namespace,
        )
        return {
            "id": project_id,
            "deletedConversations": deleted["conversations"],
            "deletedFiles": deleted["files"],
            "releasedCharacters": released,
        }
