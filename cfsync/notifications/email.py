from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from cfsync.config import get_settings

SEND_MESSAGE_TIMEOUT = 10  # seconds


class EmailSender:
    """Send transactional email through an HTTP email API (Resend-compatible)."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        settings = get_settings()
        self.api_url = settings.email_api_url
        self.api_key = settings.email_api_key
        self.from_address = settings.email_from
        self.transport = transport

    @classmethod
    def is_configured(cls) -> bool:
        """Check if the email API key and sender address are set."""
        settings = get_settings()
        return bool(settings.email_api_key and settings.email_from)

    def send(self, to: str, subject: str, html: str, text: str = "") -> bool:
        """Send one email.

        Args:
            to: Recipient address.
            subject: Subject line.
            html: HTML body.
            text: Optional plain-text alternative.

        Returns:
            True if the API accepted the message, False otherwise.
        """
        if not to:
            logger.warning("Email send called without a recipient")
            return False

        payload: Dict[str, Any] = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        try:
            with httpx.Client(timeout=SEND_MESSAGE_TIMEOUT, transport=self.transport) as client:
                response = client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()

            logger.info(f"Email sent to {to}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API error: {e.response.status_code} - {e.response.text}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Email request failed: {e}")
            return False
