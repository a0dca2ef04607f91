"""Delivery of validated invoices to their recipients."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from app.backend.src.core.config import Settings, get_settings
from app.backend.src.models import Business, Invoice

from .errors import InvoiceInputError
from .metrics import invoice_delivery_total
from .notifications import MailAttachment, MailMessage, MailTransport

LOGGER = structlog.get_logger(__name__)

EMAIL_CHANNEL = "email"
STUB_CHANNELS: dict[str, str] = {
    "sftp": "Invoice sent via SFTP (simulated)",
    "portal": "Invoice published to client portal (simulated)",
}


def _clean(addresses: Sequence[str] | None) -> list[str]:
    return [address.strip() for address in addresses or [] if address and address.strip()]


class DeliveryDispatcher:
    """Builds and hands invoice messages to a mail transport."""

    def __init__(self, mailer: MailTransport, settings: Settings | None = None) -> None:
        self.mailer = mailer
        self.settings = settings or get_settings()

    def _sender(self, business: Business | None) -> str:
        name = (business.name if business else None) or self.settings.mail_default_sender_name
        return f"{name} <{self.settings.mail_from}>"

    @staticmethod
    def build_attachments(
        invoice: Invoice, *, attach_pdf: bool, attach_xml: bool
    ) -> list[MailAttachment]:
        """Return the attachments that were requested and are actually stored."""

        attachments: list[MailAttachment] = []
        if attach_pdf and invoice.pdf_content:
            attachments.append(
                MailAttachment(
                    filename=f"invoice-{invoice.invoice_number}.pdf",
                    content=invoice.pdf_content,
                    encoding="base64",
                )
            )
        if attach_xml and invoice.xml_content:
            attachments.append(
                MailAttachment(
                    filename=f"invoice-{invoice.invoice_number}.xml",
                    content=invoice.xml_content,
                    encoding="utf-8",
                )
            )
        return attachments

    def send_email(
        self,
        invoice: Invoice,
        business: Business | None,
        recipients: Sequence[str],
        cc: Sequence[str] | None,
        bcc: Sequence[str] | None,
        subject: str | None,
        message: str | None,
        attach_pdf: bool = False,
        attach_xml: bool = False,
    ) -> str:
        """Email ``invoice`` and return the transport's message id."""

        to = _clean(recipients)
        if not to or not (subject or "").strip() or not (message or "").strip():
            raise InvoiceInputError("Recipients, subject and message are required")

        mail = MailMessage(
            sender=self._sender(business),
            to=to,
            cc=_clean(cc),
            bcc=_clean(bcc),
            subject=subject.strip(),
            html=message.replace("\n", "<br>"),
            attachments=self.build_attachments(
                invoice, attach_pdf=attach_pdf, attach_xml=attach_xml
            ),
        )

        try:
            message_id = self.mailer.send(mail)
        except Exception:
            invoice_delivery_total.labels(channel=EMAIL_CHANNEL, outcome="failed").inc()
            raise

        invoice_delivery_total.labels(channel=EMAIL_CHANNEL, outcome="sent").inc()
        LOGGER.info(
            "invoice_email_dispatched",
            invoice_number=invoice.invoice_number,
            message_id=message_id,
            attachments=[item.filename for item in mail.attachments],
        )
        return message_id

    def send_stub(self, invoice: Invoice, channel: str) -> str:
        """Placeholder channels: nothing is delivered, only a message is returned."""

        invoice_delivery_total.labels(channel=channel, outcome="simulated").inc()
        LOGGER.info(
            "invoice_delivery_simulated",
            invoice_number=invoice.invoice_number,
            channel=channel,
        )
        return STUB_CHANNELS[channel]


__all__ = ["DeliveryDispatcher", "EMAIL_CHANNEL", "STUB_CHANNELS"]
