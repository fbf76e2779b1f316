"""SMTP email sender.

Mental model refresher:
- This module is an outbound adapter.
- It turns one (contact, subject, body) send into one authenticated SMTP
  session and translates every transport problem into a SendError.
- Authentication is a strategy object so the worker can talk to relays that
  only accept PLAIN or only accept the LOGIN challenge exchange.
"""

from __future__ import annotations

from email.message import EmailMessage
import logging
import smtplib
from typing import Any, Callable, Optional

from ..config import EmailConfig
from ..errors import InvalidArgumentError, NotConfiguredError, TransportFailureError

logger = logging.getLogger(__name__)

SMTPFactory = Callable[..., Any]


class PlainAuth:
    """AUTH PLAIN: credentials sent as the initial response."""

    mechanism = "PLAIN"

    def __init__(self, username: str, password: str) -> None:
        self._username = username
        self._password = password

    def respond(self, challenge: Optional[bytes] = None) -> str:
        _ = challenge
        return f"\0{self._username}\0{self._password}"

    def authenticate(self, smtp: smtplib.SMTP) -> None:
        smtp.auth(self.mechanism, self.respond, initial_response_ok=True)


class LoginAuth:
    """AUTH LOGIN: two-step exchange answering `Username:` then `Password:`."""

    mechanism = "LOGIN"

    def __init__(self, username: str, password: str) -> None:
        self._username = username
        self._password = password

    def respond(self, challenge: Optional[bytes] = None) -> Optional[str]:
        if challenge is None:
            return None
        prompt = challenge.decode("utf-8", errors="replace").strip()
        if prompt == "Username:":
            return self._username
        if prompt == "Password:":
            return self._password
        raise smtplib.SMTPAuthenticationError(535, f"unknown server challenge: {prompt!r}")

    def authenticate(self, smtp: smtplib.SMTP) -> None:
        smtp.auth(self.mechanism, self.respond, initial_response_ok=False)


def auth_for_config(config: EmailConfig) -> PlainAuth | LoginAuth:
    if config.auth_mechanism == "login":
        return LoginAuth(config.username, config.secret)
    return PlainAuth(config.username, config.secret)


def build_mime_message(*, to_email: str, from_email: str, subject: str, body: str) -> EmailMessage:
    message = EmailMessage()
    message["To"] = to_email
    message["From"] = from_email
    message["Subject"] = subject
    message.set_content(body, subtype="plain", charset="utf-8")
    return message


class EmailSender:
    def __init__(
        self,
        config: EmailConfig,
        *,
        smtp_factory: SMTPFactory = smtplib.SMTP,
        auth: PlainAuth | LoginAuth | None = None,
    ) -> None:
        self._config = config
        self._smtp_factory = smtp_factory
        self._auth = auth or auth_for_config(config)

    def send(self, contact: str, subject: Optional[str], body: str) -> None:
        """Submit one email to `contact`. Raises SendError subclasses."""
        config = self._config
        if not config.is_configured:
            raise NotConfiguredError("SMTP client is not configured")
        if not contact:
            raise InvalidArgumentError("email contact is empty")

        message = build_mime_message(
            to_email=contact,
            from_email=config.sender,
            subject=subject or "",
            body=body,
        )

        try:
            with self._smtp_factory(
                config.host, config.port, timeout=config.timeout_seconds
            ) as smtp:
                smtp.ehlo()
                if config.use_starttls:
                    smtp.starttls()
                    smtp.ehlo()
                self._auth.authenticate(smtp)
                smtp.send_message(message, from_addr=config.sender, to_addrs=[contact])
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportFailureError(f"SMTP send mail failed: {exc}") from exc

        logger.info("[EMAIL] to=%s host=%s:%s", contact, config.host, config.port)
