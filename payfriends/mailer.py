import logging
import smtplib
from html import escape
from typing import Optional

from flask import Flask
from flask_mail import Connection, Mail, Message

logger = logging.getLogger(__name__)


def text_to_html(text: str) -> str:
    return f"<pre>{escape(text)}</pre>"


class TimeoutConnection(Connection):
    """Flask-Mail connection whose socket timeout covers connect, TLS and login."""

    def __init__(self, mail, timeout: Optional[float] = None) -> None:
        super().__init__(mail)
        self.timeout = timeout

    def configure_host(self):
        options = {"timeout": self.timeout} if self.timeout else {}
        if self.mail.use_ssl:
            host = smtplib.SMTP_SSL(self.mail.server, self.mail.port, **options)
        else:
            host = smtplib.SMTP(self.mail.server, self.mail.port, **options)

        host.set_debuglevel(int(self.mail.debug))

        if self.mail.use_tls:
            host.starttls()

        if self.mail.username and self.mail.password:
            host.login(self.mail.username, self.mail.password)

        return host


class Mailer:
    """Sends single messages over SMTP through Flask-Mail.

    Safe to call from worker threads: each send pushes its own app context
    and opens its own SMTP connection.
    """

    def __init__(self, app: Flask, mail: Mail, timeout: Optional[float] = None) -> None:
        self.app = app
        self.mail = mail
        self.timeout = timeout

    @classmethod
    def init_app(cls, app: Flask, timeout: Optional[float] = None) -> "Mailer":
        return cls(app, Mail(app), timeout)

    def connect(self) -> TimeoutConnection:
        return TimeoutConnection(self.app.extensions["mail"], self.timeout)

    def send(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None) -> None:
        with self.app.app_context():
            # Message reads the default sender from the current app
            message = Message(
                subject=subject,
                recipients=[to],
                body=text_body,
                html=html_body if html_body is not None else text_to_html(text_body),
            )
            with self.connect() as connection:
                connection.send(message)
        logger.debug("Mail %r sent to %s", subject, to)
