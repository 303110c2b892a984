"""
Tests for the in-memory user directory.
"""

from datetime import timedelta

import pytest

from hoteldesk.core.models import AuthIdentity, AuthProvider, Role
from hoteldesk.storage.base import NotFoundError, ProviderConflictError, SystemRoleError
from hoteldesk.storage.memory import DEFAULT_HOTEL_ID


async def _role_named(directory, name):
    return next(r for r in await directory.list_roles() if r.name == name)


# =============================================================================
# Users
# =============================================================================


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_local_user_defaults(self, directory):
        user = await directory.create_local_user("A@X.com ", "hash", None)

        assert user.email == "a@x.com"
        assert user.display_name == "a"
        assert user.auth_provider == AuthProvider.LOCAL
        assert user.role == "agent"
        assert user.hotel_id == DEFAULT_HOTEL_ID
        assert [r.name for r in await directory.get_roles_for_user(user.id)] == ["agent"]

    @pytest.mark.asyncio
    async def test_email_lookup_is_case_insensitive(self, directory):
        user = await directory.create_local_user("a@x.com", "hash", "Alice")
        assert (await directory.find_by_email("A@X.COM")).id == user.id

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, directory):
        await directory.create_local_user("a@x.com", "hash")
        with pytest.raises(ValueError):
            await directory.create_local_user("A@x.com", "hash")

    @pytest.mark.asyncio
    async def test_password_update_makes_account_local(self, directory):
        user = await directory.ensure_user_for_auth(
            AuthIdentity(id="g-1", provider=AuthProvider.GOOGLE, email="g@x.com")
        )
        updated = await directory.update_password_hash(user.id, "new-hash")

        assert updated.auth_provider == AuthProvider.LOCAL
        assert updated.google_id is None
        assert updated.password_hash == "new-hash"


class TestEnsureUserForAuth:
    @pytest.mark.asyncio
    async def test_local_identity_is_lookup_only(self, directory):
        missing = AuthIdentity(id="user_missing", provider=AuthProvider.LOCAL, email="new@x.com")
        assert await directory.ensure_user_for_auth(missing) is None

    @pytest.mark.asyncio
    async def test_local_identity_found_by_id_or_email(self, directory):
        user = await directory.create_local_user("a@x.com", "hash")

        by_id = AuthIdentity(id=user.id, provider=AuthProvider.LOCAL)
        by_email = AuthIdentity(id="stale", provider=AuthProvider.LOCAL, email="a@x.com")

        assert (await directory.ensure_user_for_auth(by_id)).id == user.id
        assert (await directory.ensure_user_for_auth(by_email)).id == user.id

    @pytest.mark.asyncio
    async def test_google_identity_provisions_user(self, directory):
        identity = AuthIdentity(
            id="g-1", provider=AuthProvider.GOOGLE, email="G@x.com", name="Gina", avatar_url="pic"
        )
        user = await directory.ensure_user_for_auth(identity)

        assert user.auth_provider == AuthProvider.GOOGLE
        assert user.google_id == "g-1"
        assert user.email == "g@x.com"
        assert user.password_hash is None
        assert user.role == "agent"

    @pytest.mark.asyncio
    async def test_google_identity_is_linked_not_duplicated(self, directory):
        identity = AuthIdentity(id="g-1", provider=AuthProvider.GOOGLE, email="g@x.com", name="Gina")
        first = await directory.ensure_user_for_auth(identity)
        second = await directory.ensure_user_for_auth(identity.model_copy(update={"name": "Gina B"}))

        assert first.id == second.id
        assert second.display_name == "Gina B"

    @pytest.mark.asyncio
    async def test_google_identity_conflicts_with_local_account(self, directory):
        await directory.create_local_user("a@x.com", "hash")
        identity = AuthIdentity(id="g-2", provider=AuthProvider.GOOGLE, email="a@x.com")

        with pytest.raises(ProviderConflictError):
            await directory.ensure_user_for_auth(identity)

    @pytest.mark.asyncio
    async def test_google_identity_without_email(self, directory):
        identity = AuthIdentity(id="g-3", provider=AuthProvider.GOOGLE)
        assert await directory.ensure_user_for_auth(identity) is None


# =============================================================================
# Roles
# =============================================================================


class TestRoles:
    @pytest.mark.asyncio
    async def test_default_roles_seeded(self, directory):
        names = {r.name for r in await directory.list_roles()}
        assert names == {"admin", "manager", "agent"}

    @pytest.mark.asyncio
    async def test_set_user_roles_syncs_legacy_label(self, directory):
        user = await directory.create_local_user("a@x.com", "hash")
        manager = await _role_named(directory, "manager")
        agent = await _role_named(directory, "agent")

        updated = await directory.set_user_roles(user.id, [agent.id, manager.id, agent.id])

        assert updated.role_ids == [agent.id, manager.id]
        assert updated.role == "manager"

    @pytest.mark.asyncio
    async def test_set_unknown_role(self, directory):
        user = await directory.create_local_user("a@x.com", "hash")
        with pytest.raises(NotFoundError):
            await directory.set_user_roles(user.id, ["role_missing"])

    @pytest.mark.asyncio
    async def test_system_role_cannot_be_deleted(self, directory):
        admin = await _role_named(directory, "admin")
        with pytest.raises(SystemRoleError):
            await directory.delete_role(admin.id)

    @pytest.mark.asyncio
    async def test_deleting_role_unassigns_it(self, directory):
        user = await directory.create_local_user("a@x.com", "hash")
        custom = directory.add_role(Role(name="night_desk", permissions={"tickets": {"read"}}))
        await directory.set_user_roles(user.id, [custom.id])
        assert user.role == "night_desk"

        await directory.delete_role(custom.id)

        assert await directory.get_roles_for_user(user.id) == []
        assert user.role == "agent"

    @pytest.mark.asyncio
    async def test_update_role(self, directory):
        agent = await _role_named(directory, "agent")
        role = await directory.update_role(agent.id, description="Front desk", permissions={"audit": {"read"}})

        assert role.description == "Front desk"
        assert role.permissions == {"audit": {"read"}}


# =============================================================================
# Password reset records
# =============================================================================


class TestResetRecords:
    @pytest.mark.asyncio
    async def test_consume_once(self, directory, clock):
        record = await directory.create_password_reset_token("user_1", "h1", clock() + timedelta(minutes=30))

        assert await directory.consume_password_reset_token(record.id) is not None
        assert await directory.consume_password_reset_token(record.id) is None
        assert await directory.find_valid_password_reset_token_by_hash("h1") is None

    @pytest.mark.asyncio
    async def test_expired_record_not_found(self, directory, clock):
        await directory.create_password_reset_token("user_1", "h1", clock() + timedelta(minutes=30))
        clock.advance(minutes=31)

        assert await directory.find_valid_password_reset_token_by_hash("h1") is None

    @pytest.mark.asyncio
    async def test_consume_all_for_user(self, directory, clock):
        expires = clock() + timedelta(minutes=30)
        await directory.create_password_reset_token("user_1", "h1", expires)
        await directory.create_password_reset_token("user_1", "h2", expires)
        await directory.create_password_reset_token("user_2", "h3", expires)

        assert await directory.consume_all_password_reset_tokens_for_user("user_1") == 2
        assert await directory.find_valid_password_reset_token_by_hash("h2") is None
        assert await directory.find_valid_password_reset_token_by_hash("h3") is not None
