"""User service: user lifecycle, public view and profile updates."""

from datetime import datetime, timezone
from typing import Any

from pydantic.alias_generators import to_camel

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.user import INTAKE_FIELD_MAP, PublicUser, User, UserProfile
from services.quota.QuotaLedger import QuotaLedger, user_path

# profile fields replaced by a profile update; the writing sample only changes when given
EDITABLE_PROFILE_FIELDS: tuple[str, ...] = tuple(f for f in UserProfile.model_fields if f != "writing_sample")


class UserService:
    def __init__(self, helper_config: HelperConfig, docstore: DocStoreClientInterface, quota_ledger: QuotaLedger) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._ledger = quota_ledger

    ##########################################
    ################ GETTER ##################
    ##########################################

    async def get_user(self, uid: str) -> User:
        return await self._ledger.get_user(uid)

    async def get_public(self, username: str) -> PublicUser:
        """Public view by username. Never contains email or quota state."""
        snapshots = await self._docstore.do_query("users", filters=[("username", "==", username)], limit=1)
        if not snapshots:
            raise NotFoundError("User not found.")
        user = User.model_validate(snapshots[0].data)
        return PublicUser(username=user.username, photo_url=user.photo_url, profile=user.profile, is_pro=user.is_pro)

    async def _username_taken(self, username: str, uid: str) -> bool:
        snapshots = await self._docstore.do_query("users", filters=[("username", "==", username)])
        return any(snap.id != uid for snap in snapshots)

    async def make_unique_username(self, email: str, uid: str) -> str:
        """Email local part, with a numeric suffix when another user already has it."""
        base = email.split("@")[0].strip() if email else ""
        base = base or f"user{uid[:8]}"
        candidate = base
        suffix = 1
        while await self._username_taken(candidate, uid):
            suffix += 1
            candidate = f"{base}{suffix}"
        return candidate

    ##########################################
    ################ CORE ####################
    ##########################################

    async def init_user(self, uid: str, name: str = "", email: str = "", photo_url: str | None = None) -> tuple[User, bool]:
        """Create the user on first contact; afterwards only refresh email and photo.

        Returns:
            tuple[User, bool]: The user and whether it was just created.
        """
        now = datetime.now(timezone.utc)
        existing = await self._docstore.do_get(user_path(uid))
        if existing is not None:
            await self._docstore.do_update(user_path(uid), {"email": email, "photoURL": photo_url, "updatedAt": now})
            return await self.get_user(uid), False

        limits = self._ledger.get_tier_limits(is_pro=False)
        user = User(
            uid=uid,
            username=await self.make_unique_username(email, uid),
            email=email,
            photo_url=photo_url,
            profile=UserProfile(name=name or ""),
            is_pro=False,
            project_limit=limits.project_limit,
            profile_character_limit=limits.profile_character_limit,
            project_character_limit=limits.project_character_limit,
            profile_characters_used=0,
            project_characters_used={},
            created_at=now,
            updated_at=now,
        )
        await self._docstore.do_set(user_path(uid), user.model_dump(by_alias=True))
        self.logging.info("Created user uid=%s username=%s", uid, user.username)
        return user, True

    async def update_profile(self, uid: str, profile: dict[str, Any] | None = None, intake: dict[str, Any] | None = None) -> UserProfile:
        """Replace the editable profile fields.

        ``intake`` uses capitalised form keys (``Name``, ``CommunicationStyle``…),
        ``profile`` camelCase or snake_case field names. Fields that are not
        supplied become empty; ``writingSample`` is kept unless supplied.

        Raises:
            ValidationError: If neither profile nor intake data is given.
            NotFoundError: If the user does not exist.
        """
        if intake:
            data = {field: intake.get(key) or "" for key, field in INTAKE_FIELD_MAP.items()}
        elif profile:
            data = {}
            for field in UserProfile.model_fields:
                alias = to_camel(field)
                if alias in profile:
                    data[field] = profile[alias]
                elif field in profile:
                    data[field] = profile[field]
        else:
            raise ValidationError("Missing profile data.")

        current = await self.get_user(uid)
        values = {field: str(data.get(field) or "") for field in EDITABLE_PROFILE_FIELDS}
        values["writing_sample"] = str(data["writing_sample"]) if "writing_sample" in data else current.profile.writing_sample
        new_profile = UserProfile(**values)

        await self._docstore.do_update(user_path(uid), {"profile": new_profile.model_dump(by_alias=True), "updatedAt": datetime.now(timezone.utc)})
        self.logging.info("Updated profile of uid=%s", uid)
        return new_profile

    async def set_tier(self, uid: str, is_pro: bool) -> User:
        """Switch tier limits. Counters are never reset."""
        limits = self._ledger.get_tier_limits(is_pro)
        updates: dict[str, Any] = {
            "isPro": is_pro,
            "projectLimit": limits.project_limit,
            "profileCharacterLimit": limits.profile_character_limit,
            "projectCharacterLimit": limits.project_character_limit,
            "updatedAt": datetime.now(timezone.utc),
        }
        if is_pro:
            updates["proSince"] = datetime.now(timezone.utc)
        await self._docstore.do_update(user_path(uid), updates)
        self.logging.info("Set tier of uid=%s to %s", uid, "pro" if is_pro else "free")
        return await self.get_user(uid)
