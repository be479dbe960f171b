"""
Outgoing mail for the password reset flow.

SmtpMailer talks to a real SMTP server; LogMailer is used when no mail host
is configured (local development) and only writes the link to the log.
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Password Reset Request"


def _reset_body(link: str) -> str:
    return "To reset your password, please click the link below:\n" + link


class SmtpMailer:
    def __init__(self, host: str, port: int, username: str | None = None, password: str | None = None,
                 use_tls: bool = True, sender: str | None = None):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender or username

    def send_password_reset(self, to_email: str, link: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to_email
        msg["Subject"] = RESET_SUBJECT
        msg.set_content(_reset_body(link))

        # STARTTLS on a plain connection (587) or implicit TLS (465)
        if self.use_tls:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password or "")
                server.send_message(msg)
        else:
            with smtplib.SMTP_SSL(self.host, self.port) as server:
                if self.username:
                    server.login(self.username, self.password or "")
                server.send_message(msg)
        logger.info("Password reset mail sent to %s", to_email)


class LogMailer:
    def send_password_reset(self, to_email: str, link: str) -> None:
        logger.warning("MAIL_HOST not configured; password reset link for %s: %s", to_email, link)
