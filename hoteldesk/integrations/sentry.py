# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project at sentry.io
#   2. Copy DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# Usage:
#   init_sentry(settings) runs in the app lifespan (hoteldesk/api/app.py)
#
# =============================================================================

from __future__ import annotations

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from hoteldesk.config import Settings

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-api-key"}
SENSITIVE_QUERY_KEYS = ("token", "code", "state")
IGNORED_TRANSACTIONS = {"/health", "/healthz", "/ready"}


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="url"),
            StarletteIntegration(transaction_style="url"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        # Credentials and emails stay out of reports
        send_default_pii=False,
        before_send=filter_event,
        before_send_transaction=filter_transaction,
    )

    logger.info("Sentry initialized for %s", settings.environment)
    return True


def filter_event(event: dict, hint: dict) -> dict | None:
    """Drop expected auth failures and scrub credentials from the request."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        if isinstance(exc_value, HTTPException) and exc_value.status_code < 500:
            return None

    request = event.get("request")
    if request:
        headers = request.get("headers") or {}
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"

        # Reset tokens and exchange codes travel in query strings
        query = request.get("query_string")
        if isinstance(query, str) and any(f"{k}=" in query for k in SENSITIVE_QUERY_KEYS):
            request["query_string"] = "[Filtered]"

        if "data" in request:
            request["data"] = "[Filtered]"

    return event


def filter_transaction(event: dict, hint: dict) -> dict | None:
    transaction = event.get("transaction", "")
    if transaction in IGNORED_TRANSACTIONS:
        return None
    return event
