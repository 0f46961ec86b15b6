"""Outbound email. A mailer only has to know how to `send` a message."""

import asyncio
from email.message import EmailMessage
import logging
import smtplib
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class AsyncJolt:
    async def __aenter__(self) -> None:
        await asyncio.sleep(0)

    async def __aexit__(self, *args: Any, **kwargs: Any) -> None:
        await asyncio.sleep(0)


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class SmtpMailer:
    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 20,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(message)

    async def send(self, message: EmailMessage) -> None:
        async with AsyncJolt():
            await asyncio.to_thread(self._send, message)
        logger.info("Sent %r to %s", message["Subject"], message["To"])


class LogMailer:
    """Used when SMTP is not configured. Logs the message instead of sending it."""

    async def send(self, message: EmailMessage) -> None:
        logger.warning(
            "SMTP not configured, not sending %r to %s", message["Subject"], message["To"]
        )
