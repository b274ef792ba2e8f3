from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from shared.config import settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmailResult:
    ok: bool
    error: Optional[str] = None
    provider_id: Optional[str] = None


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, html: str) -> EmailResult:
        ...


class ResendEmailSender:
    """Sends through the Resend HTTP API. Never raises: failures come back as EmailResult."""

    def __init__(self, api_key: str, from_email: str, from_name: str,
                 api_url: str = settings.RESEND_API_URL,
                 timeout: float = settings.EMAIL_TIMEOUT_SECONDS,
                 transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key
        self.sender = f"{from_name} <{from_email}>"
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> EmailResult:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.api_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            return EmailResult(ok=False, error=f"{type(e).__name__}: {e}")

        if resp.status_code >= 400:
            return EmailResult(ok=False, error=f"Resend API error: {resp.status_code} - {resp.text}")
        return EmailResult(ok=True, provider_id=resp.json().get("id"))


class LoggingEmailSender:
    """Stand-in used when no RESEND_API_KEY is configured (local development)."""

    async def send(self, to: str, subject: str, html: str) -> EmailResult:
        logger.info("email_not_sent_no_provider", to=to, subject=subject)
        return EmailResult(ok=True)


def build_email_sender() -> EmailSender:
    if settings.RESEND_API_KEY:
        return ResendEmailSender(
            api_key=settings.RESEND_API_KEY,
            from_email=settings.FROM_EMAIL,
            from_name=settings.EMAIL_FROM_NAME,
        )
    return LoggingEmailSender()
