"""SMTP email sender.

``smtplib`` is blocking, so each message is sent from the default thread
pool to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from functools import partial

from .base import EmailSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    """EmailSender that relays through an SMTP server with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_address: str = "",
        reply_to: str = "",
        timeout: float = 15.0,
    ) -> None:
        if not host:
            raise ValueError("SMTP host must be provided (SMTP_HOST).")
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from = from_address or username
        self._reply_to = reply_to
        self._timeout = timeout

    async def send(self, to: str, subject: str, body: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._send_sync, to, subject, body))
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP send to %s failed: %s", to, exc)
            return False
        logger.info("Email sent: subject=%s", subject)
        return True

    def _send_sync(self, to: str, subject: str, body: str) -> None:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self._from
        msg["To"] = to
        if self._reply_to:
            msg["Reply-To"] = self._reply_to

        context = ssl.create_default_context()
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.starttls(context=context)
            if self._username:
                server.login(self._username, self._password)
            server.sendmail(self._from, [to], msg.as_string())
