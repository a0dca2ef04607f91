"""Mail transport used to deliver invoices."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from app.backend.src.core.config import Settings, get_settings

from .errors import MailDeliveryError

LOGGER = structlog.get_logger(__name__)


@dataclass
class MailAttachment:
    filename: str
    content: str
    encoding: str

    def as_payload(self) -> dict[str, str]:
        return {"filename": self.filename, "content": self.content, "encoding": self.encoding}


@dataclass
class MailMessage:
    sender: str
    to: list[str]
    subject: str
    html: str
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    attachments: list[MailAttachment] = field(default_factory=list)


class MailTransport(Protocol):
    def send(self, message: MailMessage) -> str:
        """Deliver ``message`` and return the provider's message id."""


class ResendMailer:
    """Sends mail through an HTTP mail API (Resend compatible)."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client or httpx.Client(timeout=15.0)

    def _payload(self, message: MailMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": message.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.cc:
            payload["cc"] = message.cc
        if message.bcc:
            payload["bcc"] = message.bcc
        if message.attachments:
            payload["attachments"] = [item.as_payload() for item in message.attachments]
        return payload

    def close(self) -> None:
        self._client.close()

    def send(self, message: MailMessage) -> str:
        if not self.settings.mail_api_key:
            raise MailDeliveryError("Mail API key is not configured")

        try:
            response = self._client.post(
                self.settings.mail_api_url,
                json=self._payload(message),
                headers={"Authorization": f"Bearer {self.settings.mail_api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            LOGGER.error(
                "mail_api_rejected_message",
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise MailDeliveryError(f"Mail API returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            LOGGER.error("mail_api_request_failed", error=str(exc))
            raise MailDeliveryError(str(exc)) from exc

        try:
            message_id = str(response.json().get("id", ""))
        except ValueError as exc:
            raise MailDeliveryError("Mail API returned an unreadable response") from exc
        LOGGER.info(
            "mail_sent",
            message_id=message_id,
            recipients=len(message.to),
            attachments=[item.filename for item in message.attachments],
        )
        return message_id


__all__ = ["MailAttachment", "MailMessage", "MailTransport", "ResendMailer"]
