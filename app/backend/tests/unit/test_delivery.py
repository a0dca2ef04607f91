"""Tests for invoice delivery and the mail transport."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import httpx
import pytest

from app.backend.src.core.config import get_settings
from app.backend.src.models import Business, Invoice
from app.backend.src.services.delivery import STUB_CHANNELS, DeliveryDispatcher
from app.backend.src.services.errors import InvoiceInputError, MailDeliveryError
from app.backend.src.services.notifications import MailMessage, ResendMailer


class RecordingMailer:
    def __init__(self) -> None:
        self.messages: list[MailMessage] = []

    def send(self, message: MailMessage) -> str:
        self.messages.append(message)
        return "msg-123"


def _invoice(**overrides: object) -> Invoice:
    fields: dict[str, object] = {
        "invoice_number": "INV-000007",
        "business_id": 1,
        "client_name": "Acme Widgets",
        "status": "validated",
        "pdf_content": "JVBERi0xLjQ=",
        "xml_content": "<Invoice/>",
    }
    fields.update(overrides)
    return Invoice(**fields)


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def dispatcher(mailer: RecordingMailer) -> DeliveryDispatcher:
    settings = get_settings().model_copy(update={"mail_from": "invoices@smartinvoice.example"})
    return DeliveryDispatcher(mailer, settings=settings)


def test_send_email_builds_message(dispatcher: DeliveryDispatcher, mailer: RecordingMailer) -> None:
    message_id = dispatcher.send_email(
        _invoice(),
        Business(name="Demo Trading"),
        recipients=["billing@acme.example"],
        cc=["cc@acme.example"],
        bcc=[],
        subject="Invoice INV-000007",
        message="Hello,\nplease find your invoice attached.",
        attach_pdf=True,
        attach_xml=True,
    )

    assert message_id == "msg-123"
    sent = mailer.messages[0]
    assert sent.sender == "Demo Trading <invoices@smartinvoice.example>"
    assert sent.to == ["billing@acme.example"]
    assert sent.cc == ["cc@acme.example"]
    assert sent.html == "Hello,<br>please find your invoice attached."
    assert [item.as_payload() for item in sent.attachments] == [
        {"filename": "invoice-INV-000007.pdf", "content": "JVBERi0xLjQ=", "encoding": "base64"},
        {"filename": "invoice-INV-000007.xml", "content": "<Invoice/>", "encoding": "utf-8"},
    ]


def test_attachments_require_flag_and_content() -> None:
    invoice = _invoice(xml_content=None)

    assert DeliveryDispatcher.build_attachments(invoice, attach_pdf=False, attach_xml=True) == []
    only_pdf = DeliveryDispatcher.build_attachments(invoice, attach_pdf=True, attach_xml=True)
    assert [item.filename for item in only_pdf] == ["invoice-INV-000007.pdf"]


@pytest.mark.parametrize(
    ("recipients", "subject", "message"),
    [
        ([], "Invoice", "Body"),
        (["  "], "Invoice", "Body"),
        (["billing@acme.example"], "", "Body"),
        (["billing@acme.example"], "Invoice", None),
    ],
)
def test_incomplete_email_is_rejected_before_transport(
    dispatcher: DeliveryDispatcher,
    mailer: RecordingMailer,
    recipients: list[str],
    subject: str,
    message: str | None,
) -> None:
    with pytest.raises(InvoiceInputError):
        dispatcher.send_email(_invoice(), None, recipients, [], [], subject, message)

    assert mailer.messages == []


def test_stub_channels_report_simulated_delivery(
    dispatcher: DeliveryDispatcher, mailer: RecordingMailer
) -> None:
    assert dispatcher.send_stub(_invoice(), "sftp") == STUB_CHANNELS["sftp"]
    assert dispatcher.send_stub(_invoice(), "portal") == STUB_CHANNELS["portal"]
    assert mailer.messages == []


def _message() -> MailMessage:
    return MailMessage(
        sender="Demo Trading <invoices@example.com>",
        to=["billing@acme.example"],
        subject="Invoice",
        html="Body",
    )


def test_resend_mailer_posts_json_payload() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "re_123"})

    settings = get_settings().model_copy(update={"mail_api_key": "re_test"})
    mailer = ResendMailer(settings=settings, client=httpx.Client(transport=httpx.MockTransport(handler)))

    assert mailer.send(_message()) == "re_123"
    request = captured[0]
    assert request.headers["Authorization"] == "Bearer re_test"
    assert json.loads(request.content) == {
        "from": "Demo Trading <invoices@example.com>",
        "to": ["billing@acme.example"],
        "subject": "Invoice",
        "html": "Body",
    }


def test_resend_mailer_wraps_api_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "invalid from"})

    settings = get_settings().model_copy(update={"mail_api_key": "re_test"})
    mailer = ResendMailer(settings=settings, client=httpx.Client(transport=httpx.MockTransport(handler)))

    with pytest.raises(MailDeliveryError):
        mailer.send(_message())


def test_resend_mailer_requires_api_key() -> None:
    settings = get_settings().model_copy(update={"mail_api_key": None})

    with pytest.raises(MailDeliveryError):
        ResendMailer(settings=settings).send(_message())
