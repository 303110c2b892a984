"""
HTTP API.
"""

from hoteldesk.api.app import build_auth_service, create_app

__all__ = ["build_auth_service", "create_app"]
