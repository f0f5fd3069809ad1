# app/core/mailer.py
import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional, Union

import aiosmtplib
import httpx

from app.core.settings import Settings

log = logging.getLogger("uvicorn.error")


class DispatchError(Exception):
    """Raised when the active transport could not hand the message off."""

    def __init__(self, transport: str, detail: str):
        super().__init__(f"{transport}: {detail}")
        self.transport = transport
        self.detail = detail


@dataclass(frozen=True)
class DispatchResult:
    delivered: bool
    transport: str
    message_id: Optional[str] = None


class SmtpTransport:
    """Direct SMTP submission over a single reusable connection."""

    name = "smtp"
    sends_acknowledgment = True

    def __init__(self, settings: Settings):
        self.hostname = settings.email_host
        self.port = settings.email_port
        self.username = settings.email_user
        self.password = settings.email_password
        self.sender = settings.email_from or settings.email_user
        self.timeout = settings.smtp_timeout
        self._client: Optional[aiosmtplib.SMTP] = None
        self._lock = asyncio.Lock()

    async def _connect(self) -> aiosmtplib.SMTP:
        if self._client is not None and self._client.is_connected:
            return self._client
        client = aiosmtplib.SMTP(
            hostname=self.hostname,
            port=self.port,
            timeout=self.timeout,
            use_tls=self.port == 465,
        )
        await client.connect()
        try:
            await client.login(self.username, self.password)
        except aiosmtplib.SMTPException:
            client.close()
            raise
        log.info(f"[mail] SMTP session opened to {self.hostname}:{self.port}")
        self._client = client
        return client

    async def _reset(self) -> None:
        client, self._client = self._client, None
        if client is not None and client.is_connected:
            client.close()

    def build_message(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        # Header values must stay on one line
        msg["Subject"] = " ".join(subject.splitlines())
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain=self.sender.rsplit("@", 1)[-1].strip(">"))
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.set_content(html, subtype="html")
        return msg

    async def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> DispatchResult:
        async with self._lock:
            try:
                msg = self.build_message(to, subject, html, reply_to)
                client = await self._connect()
                await client.send_message(msg)
            except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError, ValueError) as exc:
                await self._reset()
                raise DispatchError(self.name, str(exc) or exc.__class__.__name__) from exc
        log.info(f"[mail] SMTP email sent: {msg['Message-ID']}")
        return DispatchResult(delivered=True, transport=self.name, message_id=str(msg["Message-ID"]))

    async def close(self) -> None:
        async with self._lock:
            client, self._client = self._client, None
            if client is None or not client.is_connected:
                return
            try:
                await client.quit()
            except aiosmtplib.SMTPException as exc:
                log.warning(f"[mail] SMTP quit failed: {exc}")
                client.close()


class ResendTransport:
    """Resend transactional email API.

    Only the admin notice goes through this relay; sender acknowledgments are
    not sent so the submitter's address is not handed to a third party for a
    message they did not ask for.
    """

    name = "resend"
    sends_acknowledgment = False

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.api_url = settings.resend_api_url
        self.sender = settings.resend_from
        self._api_key = settings.resend_api_key
        self._client = client or httpx.AsyncClient(timeout=settings.resend_timeout)

    async def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> DispatchResult:
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            resp = await self._client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            raise DispatchError(self.name, str(exc) or exc.__class__.__name__) from exc

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message") or resp.text
            except ValueError:
                detail = resp.text
            raise DispatchError(self.name, f"HTTP {resp.status_code}: {detail}")

        try:
            message_id = resp.json().get("id")
        except ValueError:
            message_id = None
        log.info(f"[mail] Resend email sent successfully: {message_id}")
        return DispatchResult(delivered=True, transport=self.name, message_id=message_id)

    async def close(self) -> None:
        await self._client.aclose()


class DryRunTransport:
    """No transport configured: accept the message and only log it."""

    name = "dry-run"
    sends_acknowledgment = False

    async def send(self, to: str, subject: str, html: str, reply_to: Optional[str] = None) -> DispatchResult:
        log.info(f"[mail] No email service configured; not sending to={to} subject={subject!r} reply_to={reply_to}")
        return DispatchResult(delivered=False, transport=self.name)

    async def close(self) -> None:
        return None


Transport = Union[SmtpTransport, ResendTransport, DryRunTransport]


def select_transport(settings: Settings) -> Transport:
    # SMTP wins when both are configured
    if settings.smtp_enabled:
        return SmtpTransport(settings)
    if settings.resend_api_key:
        return ResendTransport(settings)
    return DryRunTransport()


__all__ = [
    "DispatchError",
    "DispatchResult",
    "SmtpTransport",
    "ResendTransport",
    "DryRunTransport",
    "Transport",
    "select_transport",
]
