"""
Tests for AuthService: signup, login, exchange, OAuth callback, profile.
"""

import pytest

from hoteldesk.auth.errors import AuthErrorKind
from hoteldesk.core.models import AuthIdentity, AuthProvider


def google_identity(email="g@x.com", sub="g-1", name="Gina"):
    return AuthIdentity(id=sub, provider=AuthProvider.GOOGLE, email=email, name=name)


# =============================================================================
# Signup
# =============================================================================


class TestSignup:
    @pytest.mark.asyncio
    async def test_signup_creates_local_user(self, service, directory):
        result = await service.signup("a@x.com", "pw123456")

        assert result.ok
        assert result.value.user.provider == AuthProvider.LOCAL
        assert result.value.user.email == "a@x.com"
        user = await directory.find_by_email("a@x.com")
        assert user.auth_provider == AuthProvider.LOCAL
        assert user.password_hash != "pw123456"

    @pytest.mark.asyncio
    async def test_signup_token_identifies_user(self, service, issuer):
        result = await service.signup("a@x.com", "pw123456", "Alice")

        identity = issuer.verify_access_token(result.value.access_token)
        assert identity.id == result.value.user.id
        assert identity.email == "a@x.com"
        assert identity.name == "Alice"

    @pytest.mark.asyncio
    async def test_signup_user_view(self, service):
        result = await service.signup("a@x.com", "pw123456", "Alice")
        user = result.value.user

        assert user.role == "agent"
        assert [r.name for r in user.roles] == ["agent"]
        assert "tickets.read" in user.permissions
        assert user.is_active is True

    @pytest.mark.asyncio
    async def test_duplicate_email(self, service):
        await service.signup("a@x.com", "pw123456")
        result = await service.signup("A@X.com", "pw654321")

        assert result.error.kind == AuthErrorKind.ACCOUNT_CONFLICT

    @pytest.mark.asyncio
    async def test_email_owned_by_google_account(self, service, directory):
        await directory.ensure_user_for_auth(google_identity(email="a@x.com"))
        result = await service.signup("a@x.com", "pw123456")

        assert result.error.kind == AuthErrorKind.ACCOUNT_CONFLICT
        assert "Google" in result.error.message

    @pytest.mark.asyncio
    async def test_short_password(self, service):
        result = await service.signup("a@x.com", "short")
        assert result.error.kind == AuthErrorKind.VALIDATION_ERROR


# =============================================================================
# Login + exchange
# =============================================================================


class TestLoginAndExchange:
    @pytest.mark.asyncio
    async def test_signup_login_exchange_round_trip(self, service, issuer):
        signed_up = (await service.signup("a@x.com", "pw123456", "Alice")).value

        login = await service.login("a@x.com", "pw123456")
        assert login.ok

        exchanged = await service.exchange(login.value.code)
        assert exchanged.ok
        identity = issuer.verify_access_token(exchanged.value.access_token)
        assert identity.id == signed_up.user.id
        assert identity.email == signed_up.user.email
        assert identity.provider == AuthProvider.LOCAL

    @pytest.mark.asyncio
    async def test_code_is_single_use(self, service):
        await service.signup("a@x.com", "pw123456")
        code = (await service.login("a@x.com", "pw123456")).value.code

        assert (await service.exchange(code)).ok
        again = await service.exchange(code)
        assert again.error.kind == AuthErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_code_expires_after_sixty_seconds(self, service, clock):
        await service.signup("a@x.com", "pw123456")
        code = (await service.login("a@x.com", "pw123456")).value.code
        clock.advance(seconds=61)

        result = await service.exchange(code)
        assert result.error.kind == AuthErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_wrong_password(self, service, broker):
        await service.signup("a@x.com", "pw123456")
        result = await service.login("a@x.com", "wrongpw")

        assert result.error.kind == AuthErrorKind.INVALID_CREDENTIALS
        assert len(broker) == 0

    @pytest.mark.asyncio
    async def test_unknown_email_same_message(self, service):
        await service.signup("a@x.com", "pw123456")

        unknown = await service.login("nobody@x.com", "pw123456")
        wrong = await service.login("a@x.com", "wrongpw")

        assert unknown.error == wrong.error

    @pytest.mark.asyncio
    async def test_google_account_cannot_password_login(self, service, directory, broker):
        await directory.ensure_user_for_auth(google_identity(email="g@x.com"))
        result = await service.login("g@x.com", "whatever1")

        assert result.error.kind == AuthErrorKind.ACCOUNT_CONFLICT
        assert len(broker) == 0

    @pytest.mark.asyncio
    async def test_inactive_account(self, service, directory):
        signed_up = (await service.signup("a@x.com", "pw123456")).value
        await directory.update_user_status(signed_up.user.id, False)

        result = await service.login("a@x.com", "pw123456")
        assert result.error.kind == AuthErrorKind.INACTIVE_ACCOUNT

    @pytest.mark.asyncio
    async def test_account_deactivated_between_login_and_exchange(self, service, directory):
        signed_up = (await service.signup("a@x.com", "pw123456")).value
        code = (await service.login("a@x.com", "pw123456")).value.code
        await directory.update_user_status(signed_up.user.id, False)

        result = await service.exchange(code)
        assert result.error.kind == AuthErrorKind.INACTIVE_ACCOUNT

    @pytest.mark.asyncio
    async def test_login_after_password_reset(self, service):
        await service.signup("a@x.com", "pw123456")
        issued = await service.request_reset("a@x.com")
        assert (await service.consume_reset(issued.reset_token, "newpass123")).ok

        assert (await service.login("a@x.com", "pw123456")).error.kind == AuthErrorKind.INVALID_CREDENTIALS
        assert (await service.login("a@x.com", "newpass123")).ok


# =============================================================================
# OAuth
# =============================================================================


class TestOAuthCallback:
    @pytest.mark.asyncio
    async def test_new_google_user(self, service, issuer):
        callback = await service.handle_oauth_callback(google_identity())
        assert callback.ok

        exchanged = await service.exchange(callback.value.code)
        assert exchanged.ok
        assert exchanged.value.user.provider == AuthProvider.GOOGLE
        assert exchanged.value.user.display_name == "Gina"

        identity = issuer.verify_access_token(exchanged.value.access_token)
        assert identity.id == exchanged.value.user.id

    @pytest.mark.asyncio
    async def test_local_account_conflict_issues_no_code(self, service, broker):
        await service.signup("a@x.com", "pw123456")

        result = await service.handle_oauth_callback(google_identity(email="a@x.com"))

        assert result.error.kind == AuthErrorKind.ACCOUNT_CONFLICT
        assert len(broker) == 0

    @pytest.mark.asyncio
    async def test_conflict_detected_again_at_exchange(self, service):
        callback = await service.handle_oauth_callback(google_identity(email="a@x.com"))
        # A local account claims the email before the code is traded
        await service.signup("a@x.com", "pw123456")

        result = await service.exchange(callback.value.code)
        assert result.error.kind == AuthErrorKind.ACCOUNT_CONFLICT

    @pytest.mark.asyncio
    async def test_identity_without_email(self, service):
        result = await service.handle_oauth_callback(google_identity(email=None))
        assert result.error.kind == AuthErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_returning_google_user_keeps_id(self, service):
        first = await service.exchange((await service.handle_oauth_callback(google_identity())).value.code)
        second = await service.exchange((await service.handle_oauth_callback(google_identity())).value.code)

        assert first.value.user.id == second.value.user.id


# =============================================================================
# Current user
# =============================================================================


class TestCurrentUser:
    @pytest.mark.asyncio
    async def test_resolve_user_requires_identity(self, service):
        result = await service.resolve_user(None)
        assert result.error.kind == AuthErrorKind.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_resolve_user_from_bearer(self, service):
        session = (await service.signup("a@x.com", "pw123456")).value
        identity = service.resolve_identity({"authorization": f"Bearer {session.access_token}"})

        result = await service.resolve_user(identity)
        assert result.value.id == session.user.id

    @pytest.mark.asyncio
    async def test_google_user_profile_survives_later_requests(self, service, issuer, directory):
        code = (await service.handle_oauth_callback(google_identity(sub="google-sub-1"))).value.code
        session = (await service.exchange(code)).value
        user = await directory.find_by_id(session.user.id)
        assert (await service.update_profile(user, "Renamed")).ok

        result = await service.resolve_user(issuer.verify_access_token(session.access_token))

        assert result.value.id == session.user.id
        assert result.value.display_name == "Renamed"
        assert result.value.google_id == "google-sub-1"

    @pytest.mark.asyncio
    async def test_resolve_user_from_session_cookie(self, service):
        identity = google_identity(sub="google-sub-1")
        session = (await service.exchange((await service.handle_oauth_callback(identity)).value.code)).value
        cookie = f"auth_token={service.create_session_token(identity)}"

        result = await service.resolve_user(service.resolve_identity({"cookie": cookie}))

        assert result.value.id == session.user.id

    @pytest.mark.asyncio
    async def test_resolve_user_does_not_provision(self, service, directory):
        result = await service.resolve_user(google_identity(email="new@x.com"))

        assert result.error.kind == AuthErrorKind.INVALID_CREDENTIALS
        assert await directory.find_by_email("new@x.com") is None

    @pytest.mark.asyncio
    async def test_update_profile(self, service, directory):
        session = (await service.signup("a@x.com", "pw123456", "Alice")).value
        user = await directory.find_by_id(session.user.id)

        result = await service.update_profile(user, "  Alice B  ")
        assert result.value.display_name == "Alice B"

    @pytest.mark.asyncio
    async def test_update_profile_length(self, service, directory):
        session = (await service.signup("a@x.com", "pw123456")).value
        user = await directory.find_by_id(session.user.id)

        assert (await service.update_profile(user, "A")).error.kind == AuthErrorKind.VALIDATION_ERROR
        assert (await service.update_profile(user, "x" * 81)).error.kind == AuthErrorKind.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_view_merges_builtin_grants(self, service, directory):
        session = (await service.signup("m@x.com", "pw123456")).value
        manager = next(r for r in await directory.list_roles() if r.name == "manager")
        user = await directory.set_user_roles(session.user.id, [manager.id])
        # Stored grants trimmed; the built-in manager grants still apply
        await directory.update_role(manager.id, permissions={})

        view = await service.build_user_view(user)

        assert view.role == "manager"
        assert "audit.read" in view.permissions
        assert "roles.write" not in view.permissions
