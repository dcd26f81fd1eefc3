import logging
import smtplib
from email.mime.text import MIMEText
from typing import Protocol

from app.config import settings

logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    pass


class Notifier(Protocol):
    def send(self, to: str, subject: str, message: str) -> None:
        ...


class SmtpNotifier:
    """Plain-text mail over SMTP with STARTTLS."""

    def __init__(
        self,
        host: str | None,
        port: int,
        username: str | None,
        password: str | None,
        from_email: str | None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    def send(self, to: str, subject: str, message: str) -> None:
        if not self.host or not self.from_email:
            raise DeliveryError("SMTP configuration is missing (SMTP_HOST/FROM_EMAIL)")

        msg = MIMEText(message)
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email delivery to %s failed: %s", to, exc)
            raise DeliveryError(f"Failed to deliver email to {to}") from exc

        logger.info("Email '%s' sent to %s", subject, to)


def get_notifier() -> Notifier:
    return SmtpNotifier(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASS,
        from_email=settings.FROM_EMAIL,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )
