import typing as t
from pathlib import Path
from smtplib import SMTPServerDisconnected
from unittest.mock import patch

import pytest
from django.core.mail import EmailMessage

from common.models import EmailLog, SiteSettings
from orders.exceptions import DeliveryError, DependencyTimeoutError
from orders.models import Order
from orders.service import notification

from .conftest import FAKE_PDF

pytestmark = pytest.mark.django_db


@pytest.fixture
def live_emails() -> None:
    site_settings = SiteSettings.get_solo()
    site_settings.live_emails = True
    site_settings.save()


def test_sends_pdf_attachment_and_logs(
    live_emails: None, placed_order: Order, mailoutbox: list[EmailMessage], spool_dir: Path
) -> None:
    email_log = notification.send(placed_order, FAKE_PDF)

    assert len(mailoutbox) == 1
    message = mailoutbox[0]
    assert message.to == [placed_order.email]
    assert message.subject == "Your Ticket"
    filename, content, mimetype = message.attachments[0]
    assert (filename, content, mimetype) == ("Tickets.pdf", FAKE_PDF, "application/pdf")
    assert "2 tickets" in message.body
    assert list(spool_dir.iterdir()) == []
    assert email_log.to == placed_order.email
    assert email_log.attachment_names == ["Tickets.pdf"]
    assert EmailLog.objects.count() == 1


def test_recipient_is_rewritten_without_live_emails(placed_order: Order, mailoutbox: list[EmailMessage]) -> None:
    notification.send(placed_order, FAKE_PDF)

    local, domain = placed_order.email.split("@")
    assert mailoutbox[0].to == [f"internal+{local}_at_{domain.replace('.', '_dot_')}@example.com"]


@pytest.mark.parametrize(
    "error, expected",
    [(TimeoutError("timed out"), DependencyTimeoutError), (SMTPServerDisconnected("gone"), DeliveryError)],
)
def test_send_failures_are_classified_and_spool_is_cleaned(
    placed_order: Order, spool_dir: Path, error: Exception, expected: t.Type[Exception]
) -> None:
    with patch("django.core.mail.EmailMultiAlternatives.send", side_effect=error):
        with pytest.raises(expected):
            notification.send(placed_order, FAKE_PDF)

    assert list(spool_dir.iterdir()) == []
    assert not EmailLog.objects.exists()


def test_spooled_document_is_removed_even_on_error(spool_dir: Path) -> None:
    with pytest.raises(RuntimeError):
        with notification.spooled_document(b"data") as path:
            assert path.read_bytes() == b"data"
            assert path.parent == spool_dir
            raise RuntimeError("boom")

    assert not path.exists()
