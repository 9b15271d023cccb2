"""Quota ledger: per-scope character accounting.

Two counters live on the user document: ``profileCharactersUsed`` for the
profile scope and ``projectCharactersUsed.{projectId}`` for each project.
Counters only ever move by atomic deltas (``DocStoreClientInterface.do_increment``).

Known consistency caveat: ``reserve`` reads the counter and decides, ``commit``
applies the delta later. The increment itself is atomic, the read-then-decide
step is not, so two concurrent ingestions into the same nearly full scope can
both pass ``reserve`` and jointly overshoot the limit.
"""

import asyncio

from pydantic import BaseModel

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.errors import NotFoundError, QuotaExceededError, UpstreamError
from shared.helper.HelperConfig import HelperConfig
from shared.models.scope import Scope
from shared.models.user import TierLimits, TierStatus, User

PROFILE_COUNTER_FIELD = "profileCharactersUsed"
PROJECT_COUNTER_FIELD = "projectCharactersUsed"


def user_path(uid: str) -> str:
    return f"users/{uid}"


def counter_field(scope: Scope) -> str:
    """Field path of the counter charged for a scope."""
    if scope.is_project:
        return f"{PROJECT_COUNTER_FIELD}.{scope.project_id}"
    return PROFILE_COUNTER_FIELD


class QuotaReservation(BaseModel):
    """An authorized, not yet committed charge."""

    scope: Scope
    used: int
    limit: int
    attempted: int


class QuotaLedger:
    def __init__(self, helper_config: HelperConfig, docstore: DocStoreClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._docstore = docstore
        self._commit_retries = max(1, helper_config.get_int_val("QUOTA_COMMIT_RETRIES", default=3))
        self._free = TierLimits(
            project_limit=helper_config.get_int_val("FREE_PROJECT_LIMIT", default=1),
            profile_character_limit=helper_config.get_int_val("FREE_PROFILE_CHARACTER_LIMIT", default=50000),
            project_character_limit=helper_config.get_int_val("FREE_PROJECT_CHARACTER_LIMIT", default=30000),
        )
        self._pro = TierLimits(
            project_limit=helper_config.get_int_val("PRO_PROJECT_LIMIT", default=10),
            profile_character_limit=helper_config.get_int_val("PRO_PROFILE_CHARACTER_LIMIT", default=300000),
            project_character_limit=helper_config.get_int_val("PRO_PROJECT_CHARACTER_LIMIT", default=200000),
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_tier_limits(self, is_pro: bool) -> TierLimits:
        return self._pro if is_pro else self._free

    async def get_user(self, uid: str) -> User:
        """Load the user document that carries the counters.

        Raises:
            NotFoundError: If the user does not exist.
        """
        doc = await self._docstore.do_get(user_path(uid))
        if doc is None:
            raise NotFoundError("User not found.")
        return User.model_validate(doc)

    @staticmethod
    def get_usage(user: User, scope: Scope) -> tuple[int, int]:
        """Current ``(used, limit)`` of a scope, read from a loaded user."""
        if scope.is_project:
            return user.project_characters_used.get(scope.project_id, 0), user.project_character_limit
        return user.profile_characters_used, user.profile_character_limit

    def _upgrade_hint(self, scope: Scope) -> str:
        if scope.is_project:
            return f"Upgrade to Pro for {self._pro.project_character_limit // 1000}k per project!"
        return f"Upgrade to Pro for {self._pro.profile_character_limit // 1000}k!"

    async def status(self, uid: str) -> TierStatus:
        user = await self.get_user(uid)
        return TierStatus(
            is_pro=user.is_pro,
            project_limit=user.project_limit,
            profile_character_limit=user.profile_character_limit,
            project_character_limit=user.project_character_limit,
            profile_characters_used=user.profile_characters_used,
            project_characters_used=user.project_characters_used,
        )

    ##########################################
    ################ CORE ####################
    ##########################################

    async def reserve(self, scope: Scope, delta: int) -> QuotaReservation:
        """Authorize a charge of ``delta`` characters against a scope.

        Authorized iff ``used + delta <= limit``. Nothing is written.

        Args:
            scope (Scope): The scope to charge. Its uid is the counter owner.
            delta (int): Characters to add.

        Returns:
            QuotaReservation: The authorized charge, to be passed to commit().

        Raises:
            QuotaExceededError: With exact used/limit/attempted numbers.
            NotFoundError: If the owning user does not exist.
        """
        if delta < 0:
            raise ValueError("A reservation cannot be negative.")
        user = await self.get_user(scope.uid)
        used, limit = self.get_usage(user, scope)
        if used + delta > limit:
            self.logging.warning(
                "Quota rejected for %s scope of uid=%s: used=%d limit=%d attempted=%d",
                scope.label, scope.uid, used, limit, delta,
            )
            raise QuotaExceededError(scope.label, used, limit, delta, is_pro=user.is_pro, upgrade_hint=self._upgrade_hint(scope))
        return QuotaReservation(scope=scope, used=used, limit=limit, attempted=delta)

    async def commit(self, reservation: QuotaReservation) -> None:
        """Apply an authorized charge as one atomic increment, retrying transient failures.

        Raises:
            UpstreamError: If every attempt failed.
        """
        await self._apply_delta(reservation.scope, reservation.attempted)

    async def release(self, scope: Scope, count: int) -> None:
        """Give back exactly ``count`` characters, the stored count of a deleted item."""
        if count:
            await self._apply_delta(scope, -count)

    async def _apply_delta(self, scope: Scope, delta: int) -> None:
        field = counter_field(scope)
        for attempt in range(1, self._commit_retries + 1):
            try:
                await self._docstore.do_increment(user_path(scope.uid), field, delta)
                return
            except UpstreamError:
                if attempt == self._commit_retries:
                    self.logging.error("Counter update %s%+d for uid=%s failed after %d attempts", field, delta, scope.uid, attempt)
                    raise
                self.logging.warning("Counter update %s%+d for uid=%s failed (attempt %d), retrying", field, delta, scope.uid, attempt)
                await asyncio.sleep(0.1 * attempt)

    ##########################################
    ############# PROJECT ENTRIES ############
    ##########################################

    async def init_project(self, uid: str, project_id: str) -> None:
        """Create a zeroed counter entry for a new project."""
        await self._docstore.do_update(user_path(uid), {f"{PROJECT_COUNTER_FIELD}.{project_id}": 0})

    async def drop_project(self, uid: str, project_id: str) -> None:
        """Remove a project's counter entry entirely (never decremented below zero)."""
        await self._docstore.do_delete_field(user_path(uid), f"{PROJECT_COUNTER_FIELD}.{project_id}")

    ##########################################
    ################ REPAIR ##################
    ##########################################

    async def reconcile(self, uid: str, profile_total: int, project_totals: dict[str, int]) -> TierStatus:
        """Overwrite the counters with totals recomputed from the live items.

        Args:
            uid (str): Owner of the counters.
            profile_total (int): Sum of character counts of the live profile items.
            project_totals (dict[str, int]): Same per owned project.
        """
        await self._docstore.do_update(
            user_path(uid),
            {PROFILE_COUNTER_FIELD: profile_total, PROJECT_COUNTER_FIELD: dict(project_totals)},
        )
        self.logging.info("Reconciled counters for uid=%s: profile=%d projects=%s", uid, profile_total, project_totals)
        return await self.status(uid)
