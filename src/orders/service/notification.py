"""Email delivery of ticket documents."""

import os
import tempfile
import typing as t
from contextlib import contextmanager
from pathlib import Path
from smtplib import SMTPException

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from common.models import EmailLog, SiteSettings
from common.tasks import to_safe_email_address
from orders.exceptions import DeliveryError, DependencyTimeoutError
from orders.models import Order

logger = structlog.get_logger(__name__)

PDF_MIMETYPE = "application/pdf"


@contextmanager
def spooled_document(document: bytes, suffix: str = ".pdf") -> t.Iterator[Path]:
    """Write the document to a temporary file that is removed on exit, whatever happens."""
    spool_dir = Path(settings.TICKET_SPOOL_DIR)
    spool_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix="tickets-", suffix=suffix, dir=spool_dir)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(document)
        yield path
    finally:
        path.unlink(missing_ok=True)


def build_message(order: Order, attachment: Path) -> tuple[EmailMultiAlternatives, str, str]:
    site_settings = SiteSettings.get_solo()
    recipient = to_safe_email_address(order.email, site_settings=site_settings)
    context = {
        "first_name": order.first_name,
        "order_id": str(order.id),
        "ticket_count": order.ticket_count,
        "frontend_base_url": site_settings.frontend_base_url,
    }
    text_body = render_to_string("orders/emails/tickets_email.txt", context)
    html_body = render_to_string("orders/emails/tickets_email.html", context)

    email_msg = EmailMultiAlternatives(
        subject=settings.TICKET_EMAIL_SUBJECT,
        body=text_body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient],
    )
    email_msg.attach_alternative(html_body, "text/html")
    email_msg.attach(settings.TICKET_ATTACHMENT_FILENAME, attachment.read_bytes(), PDF_MIMETYPE)
    return email_msg, text_body, html_body


def send(order: Order, document: bytes) -> EmailLog:
    """Email the ticket document to the order's address.

    Raises:
        DependencyTimeoutError: The mail server did not answer in time.
        DeliveryError: The message could not be sent.
    """
    with spooled_document(document) as path:
        email_msg, text_body, html_body = build_message(order, path)
        try:
            email_msg.send(fail_silently=False)
        except TimeoutError as e:
            logger.warning("ticket_email_timeout", order_id=str(order.id))
            raise DependencyTimeoutError() from e
        except (SMTPException, OSError) as e:
            logger.error("ticket_email_failed", order_id=str(order.id), error=str(e))
            raise DeliveryError() from e

    recipient = email_msg.to[0]
    email_log = EmailLog(
        to=recipient, subject=email_msg.subject, attachment_names=[settings.TICKET_ATTACHMENT_FILENAME]
    )
    email_log.set_body(body=text_body)
    email_log.set_html(html_body=html_body)
    email_log.save()

    logger.info("ticket_email_sent", order_id=str(order.id), email_log_id=str(email_log.id))
    return email_log
