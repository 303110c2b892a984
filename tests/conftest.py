"""
Shared fixtures.

Everything runs in memory. bcrypt uses its minimum cost so the suite
stays fast; expiry tests move a fake clock instead of sleeping.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from hoteldesk.api.app import create_app
from hoteldesk.auth.exchange import ExchangeCodeBroker
from hoteldesk.auth.reset import PasswordResetFlow
from hoteldesk.auth.service import AuthService
from hoteldesk.auth.session import SessionResolver
from hoteldesk.auth.tokens import TokenIssuer
from hoteldesk.config import Settings
from hoteldesk.core.utils import utc_now
from hoteldesk.storage.memory import InMemoryUserDirectory

SESSION_SECRET = "test-session-secret-0123456789abcdef"
ACCESS_SECRET = "test-access-secret-fedcba9876543210"
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self):
        self.now = utc_now()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


# =============================================================================
# Components
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        jwt_secret=SESSION_SECRET,
        jwt_access_secret=ACCESS_SECRET,
        bcrypt_rounds=TEST_ROUNDS,
        app_base_url="http://app.test",
        sentry_dsn="",
        google_oauth_client_id="",
        google_oauth_client_secret="",
        aws_access_key_id="",
        aws_secret_access_key="",
    )


@pytest.fixture
def directory(clock):
    return InMemoryUserDirectory(clock=clock)


@pytest.fixture
def issuer():
    return TokenIssuer(session_secret=SESSION_SECRET, access_secret=ACCESS_SECRET)


@pytest.fixture
def broker(clock):
    return ExchangeCodeBroker(ttl_seconds=60, clock=clock)


@pytest.fixture
def delivered():
    """Reset links handed to the delivery hook, as (user, url)."""
    return []


@pytest.fixture
def reset_flow(directory, clock):
    return PasswordResetFlow(
        directory=directory,
        base_url="http://app.test",
        expose_token=True,
        bcrypt_rounds=TEST_ROUNDS,
        clock=clock,
    )


@pytest.fixture
def service(directory, issuer, broker, reset_flow):
    return AuthService(
        directory=directory,
        issuer=issuer,
        broker=broker,
        reset_flow=reset_flow,
        resolver=SessionResolver(issuer),
        bcrypt_rounds=TEST_ROUNDS,
    )


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def app(settings, directory):
    return create_app(settings, directory=directory)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
