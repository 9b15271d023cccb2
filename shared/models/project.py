from datetime import datetime

from shared.models.user import CamelModel


class Project(CamelModel):
    """A logical container with its own quota counter and vector namespace.

    ``system_prompt`` replaces the default project instruction when set.
    """

    id: str
    owner_id: str
    name: str = "Untitled Project"
    description: str = ""
    system_prompt: str = ""
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


# fields the owner may change through update
PROJECT_MUTABLE_FIELDS: tuple[str, ...] = ("name", "description", "system_prompt", "is_public")
