"""Outgoing e-mail abstraction used by password recovery.

Actual delivery lives outside this backend. The default sender only
logs the message (without the secret token) so local runs and tests can
exercise the recovery flow; deployments override `get_email_sender`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

_LOGGER = logging.getLogger("scholarship_api.notifications")


@dataclass
class EmailMessage:
    to: str
    subject: str
    body: str


class EmailSender:
    """Interface for anything able to deliver an `EmailMessage`."""

    def send(self, message: EmailMessage) -> None:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    def send(self, message: EmailMessage) -> None:
        _LOGGER.info(
            "email_queued %s",
            json.dumps({"to": message.to, "subject": message.subject}, ensure_ascii=True),
        )


_default_sender = LoggingEmailSender()


def get_email_sender() -> EmailSender:
    """FastAPI dependency returning the process-wide sender."""
    return _default_sender


def recovery_message(email: str, token: str, ttl_minutes: int) -> EmailMessage:
    body = (
        "A password reset was requested for your account.\n\n"
        f"Recovery token: {token}\n\n"
        f"The token expires in {ttl_minutes} minutes and can be used once. "
        "Ignore this message if you did not ask for it."
    )
    return EmailMessage(to=email, subject="Password recovery", body=body)
