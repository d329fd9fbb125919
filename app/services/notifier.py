"""
Invitation email delivery through the SendGrid v3 HTTP API.

Delivery is fire-and-forget from the caller's point of view: the sharing
service catches and logs any exception raised here.
"""

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass
class InviteEmail:
    invitee_email: str
    inviter_email: Optional[str]
    note_title: str
    accept_url: str
    expires_at: Optional[datetime] = None


class InviteNotifier:
    """Sends invitation emails; skips sending when no API key is configured"""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None, timeout: float = 10.0):
        self._api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self._sender = sender or settings.EMAIL_FROM
        self._timeout = timeout

    async def send_invite(self, message: InviteEmail) -> bool:
        """Deliver one invitation. Returns False when sending was skipped.

        Raises:
            httpx.HTTPError: If SendGrid is unreachable or rejects the message.
        """
        if not self._api_key:
            logger.warning("SENDGRID_API_KEY not set, invite email to %s not sent", message.invitee_email)
            return False

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                SENDGRID_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=self._build_payload(message),
            )
            response.raise_for_status()

        logger.info("Invite email sent to %s", message.invitee_email)
        return True

    def _build_payload(self, message: InviteEmail) -> dict:
        title = html.escape(message.note_title)
        inviter = html.escape(message.inviter_email or "Someone")
        expiry = message.expires_at.strftime("%Y-%m-%d") if message.expires_at else "soon"
        body = (
            "<p>Hello,</p>"
            f"<p>{inviter} has invited you to collaborate on the note <b>\"{title}\"</b>.</p>"
            "<p>Click below to accept the invite:</p>"
            f"<p><a href=\"{html.escape(message.accept_url, quote=True)}\" target=\"_blank\">Accept Invitation</a></p>"
            f"<p>This invite expires on <b>{expiry}</b>.</p>"
        )
        return {
            "personalizations": [{"to": [{"email": message.invitee_email}]}],
            "from": {"email": self._sender},
            "subject": f"You've been invited to collaborate on \"{message.note_title}\"",
            "content": [{"type": "text/html", "value": body}],
        }


def get_notifier() -> InviteNotifier:
    """FastAPI dependency"""
    return InviteNotifier()
