"""Email normalisation, validation and delivery collaborators.

Delivery is outside the core: the registration flow only needs
``send(to_address, claim_token) -> bool``. A False return or an exception
fails the registration step; neither is allowed to crash the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import quote

import requests

from uniqid.errors import InvalidEmailError


logger = logging.getLogger(__name__)

# Pragmatic address check: one "@", no whitespace, a dotted domain whose
# labels do not start or end with "-".
_EMAIL_RE = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+"
    r"[A-Za-z]{2,63}$"
)
MAX_EMAIL_LENGTH = 254

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def normalize_email(email: str) -> str:
    """Trim and lower-case. This is the exact text that gets field-hashed."""
    return str(email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    norm = normalize_email(email)
    if not norm or len(norm) > MAX_EMAIL_LENGTH:
        return False
    local = norm.split("@", 1)[0]
    if local.startswith(".") or local.endswith(".") or ".." in local:
        return False
    return _EMAIL_RE.match(norm) is not None


def require_valid_email(email: str) -> str:
    """Return the normalised address or raise InvalidEmailError."""
    if not is_valid_email(email):
        raise InvalidEmailError("Invalid email.")
    return normalize_email(email)


def verification_link(base_url: str, to_address: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/verify.html?email={quote(to_address, safe='')}&token={token}"


# ---------------------------------------------------------------------------
# Senders
# ---------------------------------------------------------------------------

class EmailSender(Protocol):
    def send(self, to_address: str, claim_token: str) -> bool:
        ...


@dataclass(frozen=True)
class OutboundEmail:
    to_address: str
    claim_token: str


@dataclass
class OutboxEmailSender:
    """Keeps messages in memory instead of delivering them.

    Used for local development and tests. ``fail`` makes every send
    report failure.
    """
    fail: bool = False
    messages: list[OutboundEmail] = field(default_factory=list)

    def send(self, to_address: str, claim_token: str) -> bool:
        if self.fail:
            return False
        self.messages.append(OutboundEmail(to_address, claim_token))
        return True

    def last_token_for(self, to_address: str) -> Optional[str]:
        for message in reversed(self.messages):
            if message.to_address == to_address:
                return message.claim_token
        return None


class SendGridEmailSender:
    """Sends the one-click verification link through the SendGrid v3 API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._base_url = base_url
        self._timeout = timeout
        self._session = session or requests.Session()

    def send(self, to_address: str, claim_token: str) -> bool:
        link = verification_link(self._base_url, to_address, claim_token)
        body = {
            "personalizations": [{"to": [{"email": to_address}]}],
            "from": {"email": self._sender},
            "subject": "Verify Your Email for UNIQ ID",
            "content": [{"type": "text/html", "value": _render_html(link)}],
        }
        try:
            response = self._session.post(
                SENDGRID_URL,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("SendGrid request failed: %s", type(exc).__name__)
            return False

        if response.status_code >= 300:
            logger.error("SendGrid rejected message: HTTP %d", response.status_code)
            return False
        return True


def _render_html(link: str) -> str:
    return (
        '<div style="font-family:sans-serif;max-width:600px;">'
        "<h2>Confirm Your Email Address</h2>"
        "<p>Click the button below to verify your email and complete registration:</p>"
        f'<a href="{link}" style="display:inline-block;padding:10px 20px;'
        'background:#28a745;color:white;text-decoration:none;border-radius:4px;">'
        "Verify Email</a>"
        "<p>If you did not request this, please ignore.</p>"
        "<p>– The UNIQ ID Team</p>"
        "</div>"
    )
