"""
Identity and access.

- TokenIssuer / SessionResolver: who is calling
- ExchangeCodeBroker: single-use codes between sign-in and token
- PasswordResetFlow: hashed, single-use reset tokens
- capabilities: roles, permissions, and the access decision
- AuthService: the facade the routes talk to
- require(...): FastAPI guards
"""

from hoteldesk.auth.capabilities import (
    Action,
    Resource,
    has_permission,
    pick_primary_role,
    validate_permissions,
)
from hoteldesk.auth.errors import AuthError, AuthErrorKind, AuthResult
from hoteldesk.auth.exchange import ExchangeCodeBroker
from hoteldesk.auth.passwords import hash_password, verify_password
from hoteldesk.auth.reset import PasswordResetFlow
from hoteldesk.auth.session import SessionResolver
from hoteldesk.auth.tokens import TokenIssuer
from hoteldesk.auth.service import AuthService, AuthSession
from hoteldesk.auth.context import AuthContext
from hoteldesk.auth.policies import Policy, require, require_any, require_auth

__all__ = [
    # Main interface
    "require",
    "require_any",
    "require_auth",
    "AuthContext",
    "Policy",
    "AuthService",
    "AuthSession",
    # Components
    "TokenIssuer",
    "SessionResolver",
    "ExchangeCodeBroker",
    "PasswordResetFlow",
    # Permissions
    "Action",
    "Resource",
    "has_permission",
    "pick_primary_role",
    "validate_permissions",
    # Results
    "AuthError",
    "AuthErrorKind",
    "AuthResult",
    # Passwords
    "hash_password",
    "verify_password",
]
