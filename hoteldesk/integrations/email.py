# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending email in AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourdomain.com
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#
# Only password reset links are sent from here. Reset URLs carry a live
# token and are never written to the log.
#
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from hoteldesk.config import Settings
from hoteldesk.core.models import User

logger = logging.getLogger(__name__)


PASSWORD_RESET_SUBJECT = "Reset your HotelDesk password"

PASSWORD_RESET_HTML = """
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #333;">Reset your password</h1>
    <p>Hi {name}, we received a request to reset your password.</p>
    <p style="text-align: center; margin: 30px 0;">
        <a href="{reset_url}" style="background: #2F6F8F; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
            Choose a new password
        </a>
    </p>
    <p style="color: #666; font-size: 14px;">This link expires in {ttl_minutes} minutes.</p>
    <p style="color: #666; font-size: 14px;">If you didn't request this, you can ignore this email.</p>
</body>
</html>
"""

PASSWORD_RESET_TEXT = """
Hi {name},

We received a request to reset your password. Visit this link to choose a new one:
{reset_url}

This link expires in {ttl_minutes} minutes.

If you didn't request this, you can ignore this email.
"""


class EmailService:
    """Send emails via AWS SES."""

    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        self._client = client

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        return self.client is not None and bool(self.settings.aws_ses_from_email)

    async def send_password_reset(self, user: User, reset_url: str) -> bool:
        """
        Send a reset link to the user.

        Returns True if SES accepted the message. Delivery failures are
        logged and reported as False; the reset request itself still
        succeeds so the response never reveals whether an account exists.
        """
        if not self.is_configured:
            logger.warning("Email not configured - password reset link for user %s not sent", user.id)
            return False

        data = {
            "name": user.display_name,
            "reset_url": reset_url,
            "ttl_minutes": self.settings.password_reset_ttl_minutes,
        }
        try:
            response = self.client.send_email(
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [user.email]},
                Message={
                    "Subject": {"Data": PASSWORD_RESET_SUBJECT, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": PASSWORD_RESET_HTML.format(**data), "Charset": "UTF-8"},
                        "Text": {"Data": PASSWORD_RESET_TEXT.format(**data), "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to send password reset email for user %s: %s", user.id, e)
            return False

        logger.info("Password reset email sent for user %s (MessageId: %s)", user.id, response["MessageId"])
        return True
