import pytest

from services.quota.QuotaLedger import user_path
from shared.errors import NotFoundError, PermissionDeniedError, ProjectLimitError, ValidationError
from shared.models.content import ContentKind
from shared.models.scope import Scope, project_namespace


class TestProjectLifecycle:
    """Create, read, update."""

    async def test_create_initialises_counter(self, project_service, docstore, alice):
        """A new project gets a zeroed counter entry on its owner."""
        project = await project_service.create(alice.uid, name="Garden", description="veggies")
        assert project.owner_id == alice.uid
        assert project.name == "Garden"
        doc = await docstore.do_get(user_path(alice.uid))
        assert doc["projectCharactersUsed"] == {project.id: 0}

    async def test_default_name(self, project_service, alice):
        """A missing name falls back to a placeholder."""
        project = await project_service.create(alice.uid)
        assert project.name == "Untitled Project"

    async def test_free_project_limit(self, project_service, alice):
        """The free tier allows one project."""
        await project_service.create(alice.uid, name="one")
        with pytest.raises(ProjectLimitError) as exc_info:
            await project_service.create(alice.uid, name="two")
        assert exc_info.value.to_dict()["limit"] == 1
        assert exc_info.value.status_code == 402

    async def test_pro_allows_more(self, project_service, user_service, alice):
        """Pro users get ten projects."""
        await user_service.set_tier(alice.uid, is_pro=True)
        for i in range(10):
            await project_service.create(alice.uid, name=f"p{i}")
        with pytest.raises(ProjectLimitError):
            await project_service.create(alice.uid, name="p10")

    async def test_list_newest_first(self, project_service, user_service, alice, bob):
        """Owners only see their own projects, newest first."""
        await user_service.set_tier(alice.uid, is_pro=True)
        first = await project_service.create(alice.uid, name="first")
        second = await project_service.create(alice.uid, name="second")
        await project_service.create(bob.uid, name="bob's")
        projects = await project_service.list_owned(alice.uid)
        assert [p.id for p in projects] == [second.id, first.id]

    async def test_update_whitelist(self, project_service, alice):
        """Only name, description, systemPrompt and isPublic change."""
        project = await project_service.create(alice.uid, name="old")
        updated = await project_service.update(
            alice.uid, project.id, {"name": "new", "systemPrompt": "Be terse.", "ownerId": "hijack"}
        )
        assert updated.name == "new"
        assert updated.system_prompt == "Be terse."
        assert updated.owner_id == alice.uid

    async def test_update_without_fields(self, project_service, alice):
        """An update with nothing editable is rejected."""
        project = await project_service.create(alice.uid)
        with pytest.raises(ValidationError):
            await project_service.update(alice.uid, project.id, {"ownerId": "x"})

    async def test_non_owner_update(self, project_service, alice, bob):
        """Only the owner may change a project."""
        project = await project_service.create(alice.uid)
        with pytest.raises(PermissionDeniedError):
            await project_service.update(bob.uid, project.id, {"name": "mine now"})

    async def test_public_read(self, project_service, alice):
        """Anyone may read a project by id."""
        project = await project_service.create(alice.uid, name="shared")
        assert (await project_service.get(project.id)).name == "shared"


class TestProjectCascade:
    """Deleting a project removes everything that belongs to it."""

    async def test_cascade(self, project_service, ingestion_service, rag_client, docstore, alice, tmp_path):
        """Items, vectors, counter entry and document are gone; the profile is untouched."""
        project = await project_service.create(alice.uid, name="Doomed")
        scope = Scope(uid=alice.uid, project_id=project.id)
        await ingestion_service.ingest_text(scope, "a" * 1500)
        await ingestion_service.ingest_text(scope, "b" * 500)
        path = tmp_path / "f.txt"
        path.write_text("c" * 250, encoding="utf-8")
        await ingestion_service.ingest_file(scope, str(path), "f.txt", "text/plain")
        await ingestion_service.ingest_text(Scope(uid=alice.uid), "profile stays")

        result = await project_service.delete(alice.uid, project.id)

        assert result == {"id": project.id, "deletedConversations": 2, "deletedFiles": 1, "releasedCharacters": 2250}
        assert rag_client.count(project_namespace(project.id)) == 0
        assert rag_client.count(alice.uid) == 1
        user_doc = await docstore.do_get(user_path(alice.uid))
        assert project.id not in user_doc["projectCharactersUsed"]
        assert user_doc["profileCharactersUsed"] == len("profile stays")
        for kind in ContentKind:
            assert await docstore.do_list(scope.collection(kind.collection)) == []
        with pytest.raises(NotFoundError):
            await project_service.get(project.id)

    async def test_non_owner_delete(self, project_service, alice, bob):
        """Bob cannot delete Alice's project."""
        project = await project_service.create(alice.uid)
        with pytest.raises(PermissionDeniedError):
            await project_service.delete(bob.uid, project.id)

    async def test_slot_is_freed(self, project_service, alice):
        """After deleting, a free user can create a project again."""
        project = await project_service.create(alice.uid)
        await project_service.delete(alice.uid, project.id)
        await project_service.create(alice.uid, name="again")
