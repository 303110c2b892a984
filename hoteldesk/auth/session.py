"""
Who is calling? Extracts an identity from request headers.

Bearer access tokens win over the session cookie. Absence of a usable
credential is ``None``, never an exception; guards decide what that means.
"""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import unquote

from hoteldesk.auth.tokens import TokenIssuer
from hoteldesk.core.models import AuthIdentity


class SessionResolver:
    def __init__(self, issuer: TokenIssuer, cookie_name: str = "auth_token"):
        self.issuer = issuer
        self.cookie_name = cookie_name

    def resolve_from_headers(self, headers: Mapping[str, str]) -> AuthIdentity | None:
        """
        Resolve the caller from ``Authorization`` and ``Cookie`` headers.

        Header lookup is case-insensitive for plain dicts as well as
        Starlette's ``Headers``.
        """
        authorization = _header(headers, "authorization")
        bearer = extract_bearer_token(authorization)
        if bearer:
            identity = self.issuer.verify_access_token(bearer)
            if identity is not None:
                return identity

        cookie_value = extract_cookie_value(_header(headers, "cookie"), self.cookie_name)
        if cookie_value:
            return self.issuer.verify_session_token(cookie_value)
        return None


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def extract_cookie_value(cookie_header: str | None, cookie_name: str) -> str | None:
    """Find one cookie in a raw ``Cookie`` header and URL-decode its value."""
    if not cookie_header:
        return None
    for cookie in cookie_header.split(";"):
        name, sep, value = cookie.strip().partition("=")
        if sep and name == cookie_name:
            return unquote(value)
    return None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None
