"""Pydantic models for users, their structured profile and their tier limits.

Stored and served with camelCase keys (``profileCharactersUsed``, ``photoURL``),
populated from either spelling.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfile(CamelModel):
    """Structured personality / work-style description of the user. Every field is free text."""

    name: str = ""
    personality: str = ""
    hobbies: str = ""
    career: str = ""
    communication_style: str = ""
    work_style: str = ""
    current_projects: str = ""
    long_term_goals: str = ""
    values: str = ""
    special_instructions: str = ""
    writing_sample: str = ""


# intake form key -> profile field
INTAKE_FIELD_MAP: dict[str, str] = {
    "Name": "name",
    "Personality": "personality",
    "Hobbies": "hobbies",
    "Career": "career",
    "CommunicationStyle": "communication_style",
    "WorkStyle": "work_style",
    "CurrentProjects": "current_projects",
    "LongTermGoals": "long_term_goals",
    "Values": "values",
    "SpecialInstructions": "special_instructions",
}


class TierLimits(CamelModel):
    project_limit: int
    profile_character_limit: int
    project_character_limit: int


class User(CamelModel):
    """User document.

    Counters are only changed through the quota ledger (atomic deltas);
    limits only through tier changes. A tier change never resets counters.
    """

    uid: str
    username: str
    email: str = ""
    photo_url: str | None = Field(default=None, alias="photoURL")
    profile: UserProfile = Field(default_factory=UserProfile)

    is_pro: bool = False
    pro_since: datetime | None = None

    project_limit: int
    profile_character_limit: int
    project_character_limit: int

    profile_characters_used: int = 0
    project_characters_used: dict[str, int] = Field(default_factory=dict)

    created_at: datetime | None = None
    updated_at: datetime | None = None


class PublicUser(CamelModel):
    """What anyone may see about a user: no email, no quota state."""

    username: str
    photo_url: str | None = Field(default=None, alias="photoURL")
    profile: UserProfile
    is_pro: bool = False


class TierStatus(CamelModel):
    is_pro: bool
    project_limit: int
    profile_character_limit: int
    project_character_limit: int
    profile_characters_used: int
    project_characters_used: dict[str, int]
