"""Scope model: the unit of quota accounting and vector-namespace isolation."""

from pydantic import BaseModel, field_validator

PROJECT_NAMESPACE_PREFIX = "project-"


def project_namespace(project_id: str) -> str:
    """Vector namespace of a project scope."""
    return f"{PROJECT_NAMESPACE_PREFIX}{project_id}"


class Scope(BaseModel):
    """Either a user's personal profile (``project_id`` is None) or one of their projects.

    Every vector-store access derives its namespace from a Scope, so a request
    can only ever touch the partition belonging to the scope it resolved.
    """

    uid: str
    project_id: str | None = None

    @field_validator("uid")
    @classmethod
    def _uid_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("uid must not be empty")
        return value

    @field_validator("project_id")
    @classmethod
    def _project_id_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def is_project(self) -> bool:
        return self.project_id is not None

    @property
    def namespace(self) -> str:
        return project_namespace(self.project_id) if self.is_project else self.uid

    @property
    def label(self) -> str:
        """Human-readable scope kind used in quota messages."""
        return "project" if self.is_project else "profile"

    def collection(self, kind_collection: str) -> str:
        """Document-store collection path holding this scope's items of one kind.

        Args:
            kind_collection (str): "conversations" or "files".
        """
        if self.is_project:
            return f"projects/{self.project_id}/{kind_collection}"
        return f"users/{self.uid}/{kind_collection}"
