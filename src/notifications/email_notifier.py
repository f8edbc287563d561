"""Transactional thank-you email for new design submissions.

The message is a static template parameterized only by the submitter's name.
"Sent" means the provider accepted it; there is no delivery confirmation and
no deduplication (sending twice sends two emails).
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from src.core.errors import DependencyError


logger = logging.getLogger(__name__)

SUBJECT = "Thank you for your design details"
_BODY = (
    "Thank you for submitting your design details. "
    "We have received your information and will be in touch soon."
)


@dataclass(frozen=True)
class OutboundEmail:
    sender: str
    to: str
    subject: str
    html: str
    text: str


class EmailTransport(Protocol):
    """Hands a composed message to a delivery provider; returns the HTTP status."""

    def send(self, message: OutboundEmail) -> int:
        ...


def compose_thank_you(*, sender: str, to: str, name: str) -> OutboundEmail:
    return OutboundEmail(
        sender=sender,
        to=to,
        subject=SUBJECT,
        html=f"<h1>Hello {html.escape(name)},</h1><p>{_BODY}</p>",
        text=f"Hello {name}, {_BODY}",
    )


class SendGridTransport:
    """SendGrid implementation. The client is created once and reused.

    Each request is bounded by `request_timeout_seconds`.
    """

    def __init__(self, api_key: str, *, client: Any = None, request_timeout_seconds: float = 10.0) -> None:
        if client is None:
            from sendgrid import SendGridAPIClient

            client = SendGridAPIClient(api_key=api_key)
            # python_http_client passes this to every request it builds.
            client.client.timeout = request_timeout_seconds
        self._client = client

    def send(self, message: OutboundEmail) -> int:
        from sendgrid.helpers.mail import Content, Email, HtmlContent, Mail, To

        mail = Mail(
            from_email=Email(message.sender),
            to_emails=To(message.to),
            subject=message.subject,
        )
        mail.add_content(Content("text/plain", message.text))
        mail.add_content(HtmlContent(message.html))
        response = self._client.send(mail)
        return int(response.status_code)


class EmailNotifier:
    def __init__(self, transport: EmailTransport, *, sender: str) -> None:
        if not sender:
            raise ValueError("sender identity is required")
        self._transport = transport
        self._sender = sender

    def send_thank_you(self, *, email: str, name: str) -> None:
        """Send one thank-you message; raise DependencyError unless accepted."""
        message = compose_thank_you(sender=self._sender, to=email, name=name)
        try:
            status = self._transport.send(message)
        except Exception as e:
            raise DependencyError(f"email provider rejected message to {email}: {e}") from e
        if status not in (200, 201, 202):
            raise DependencyError(f"email provider returned status {status} for {email}")
        logger.info("Email sent: to=%s, subject='%s', status=%s", email, message.subject, status)
