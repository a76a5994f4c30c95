"""Abstract email sender."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class EmailSender(ABC):
    """Fire-and-forget email transport.

    ``send`` reports failure through its return value; callers log it and
    carry on. Implementations should not raise for delivery problems.
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns True if the provider accepted it."""


class LoggingEmailSender(EmailSender):
    """Development sender: records messages and logs them instead of sending."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "body": body})
        logger.info("Email (not sent, SMTP not configured): to=%s subject=%s", to, subject)
        return True
