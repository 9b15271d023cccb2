import pytest

from shared.errors import NotFoundError, ValidationError


class TestInitUser:
    """User creation on first contact."""

    async def test_new_user_defaults(self, user_service):
        """Free tier, empty profile, zero counters."""
        user, is_new = await user_service.init_user("uid-1", name="Carol", email="carol@example.com", photo_url="http://p/1.png")
        assert is_new is True
        assert user.username == "carol"
        assert user.is_pro is False
        assert (user.project_limit, user.profile_character_limit, user.project_character_limit) == (1, 50000, 30000)
        assert user.profile_characters_used == 0
        assert user.project_characters_used == {}
        assert user.profile.name == "Carol"
        assert user.profile.career == ""

    async def test_repeat_contact_only_refreshes(self, user_service, docstore):
        """Second contact keeps the profile and counters, updates email and photo."""
        await user_service.init_user("uid-1", name="Carol", email="carol@example.com")
        await docstore.do_update("users/uid-1", {"profileCharactersUsed": 42})
        user, is_new = await user_service.init_user("uid-1", name="Other", email="new@example.com", photo_url="http://p/2.png")
        assert is_new is False
        assert user.email == "new@example.com"
        assert user.photo_url == "http://p/2.png"
        assert user.profile.name == "Carol"
        assert user.profile_characters_used == 42

    async def test_username_collision_gets_suffix(self, user_service):
        """A taken email local part gets a numeric suffix."""
        first, _ = await user_service.init_user("uid-1", email="sam@one.com")
        second, _ = await user_service.init_user("uid-2", email="sam@two.com")
        third, _ = await user_service.init_user("uid-3", email="sam@three.com")
        assert (first.username, second.username, third.username) == ("sam", "sam2", "sam3")


class TestProfile:
    """Profile updates and public view."""

    async def test_intake_keys(self, user_service, alice):
        """Capitalised intake keys map onto profile fields."""
        profile = await user_service.update_profile(
            alice.uid, intake={"Name": "Alice A.", "CommunicationStyle": "direct", "LongTermGoals": "run a bakery"}
        )
        assert profile.name == "Alice A."
        assert profile.communication_style == "direct"
        assert profile.long_term_goals == "run a bakery"
        assert profile.hobbies == ""

    async def test_writing_sample_preserved(self, user_service, docstore, alice):
        """A profile update without a writing sample keeps the stored one."""
        await docstore.do_update(f"users/{alice.uid}", {"profile.writingSample": "my voice"})
        profile = await user_service.update_profile(alice.uid, profile={"name": "Alice", "hobbies": "chess"})
        assert profile.writing_sample == "my voice"
        assert profile.hobbies == "chess"

    async def test_missing_data(self, user_service, alice):
        """Neither profile nor intake is a validation error."""
        with pytest.raises(ValidationError):
            await user_service.update_profile(alice.uid)

    async def test_public_view_hides_private_fields(self, user_service, alice):
        """The public view has no email and no counters."""
        public = await user_service.get_public(alice.username)
        dumped = public.model_dump(by_alias=True)
        assert dumped["username"] == "alice"
        assert "email" not in dumped
        assert "profileCharactersUsed" not in dumped

    async def test_public_unknown(self, user_service):
        """Unknown usernames raise NotFoundError."""
        with pytest.raises(NotFoundError):
            await user_service.get_public("nobody")


class TestTier:
    """Tier changes."""

    async def test_upgrade_and_downgrade_keep_counters(self, user_service, docstore, alice):
        """Limits follow the tier, usage never resets."""
        await docstore.do_update(f"users/{alice.uid}", {"profileCharactersUsed": 1000})
        pro = await user_service.set_tier(alice.uid, is_pro=True)
        assert pro.is_pro is True
        assert pro.pro_since is not None
        assert pro.profile_characters_used == 1000
        free = await user_service.set_tier(alice.uid, is_pro=False)
        assert free.profile_character_limit == 50000
        assert free.profile_characters_used == 1000
