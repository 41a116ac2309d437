"""Email delivery of verification codes."""

import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import aiosmtplib
import httpx

from authcore.config import Settings
from authcore.models import VerificationPurpose

logger = logging.getLogger(__name__)

PURPOSE_LABELS: dict[str, str] = {
    VerificationPurpose.LOGIN.value: "sign-in",
    VerificationPurpose.REGISTER.value: "registration",
    VerificationPurpose.RESET_PASSWORD.value: "password reset",
    VerificationPurpose.CHANGE_EMAIL.value: "email change",
    VerificationPurpose.VERIFY_EMAIL.value: "email verification",
}


class CodeDispatcher(Protocol):
    """Anything that can deliver a code to an address."""

    async def send(self, to: str, purpose: str, code: str) -> bool: ...


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            text: Plain text content (optional)

        Returns:
            True if the backend accepted the message
        """
        pass


class ConsoleEmailBackend(EmailBackend):
    """Logs messages instead of sending them (development)."""

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        logger.info(
            "EMAIL (console backend - not sent)\nTo: %s\nSubject: %s\n\n%s",
            to,
            subject,
            text or html,
        )
        return True


class SMTPEmailBackend(EmailBackend):
    """Email backend using SMTP."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        message = MIMEMultipart("alternative")
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        if text:
            message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP delivery to {to} failed: {e}")
            return False
        except OSError as e:
            logger.error(f"SMTP connection to {self.host}:{self.port} failed: {e}")
            return False
        logger.info(f"Email sent via SMTP to {to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Email backend using the Resend HTTP API."""

    api_url = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str):
        self.api_key = api_key
        self.from_address = from_address

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.from_address,
                        "to": [to],
                        "subject": subject,
                        "html": html,
                        "text": text,
                    },
                    timeout=30.0,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend API error: {e.response.status_code} - {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Resend request for {to} failed: {e}")
                return False
        logger.info(f"Email sent via Resend to {to}")
        return True


def get_email_backend(settings: Settings) -> EmailBackend:
    """Build the configured email backend."""
    if settings.email_backend == "console":
        return ConsoleEmailBackend()
    elif settings.email_backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=f"{settings.email_from_name} <{settings.email_from}>",
        )
    elif settings.email_backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=f"{settings.email_from_name} <{settings.email_from}>",
        )
    else:
        raise ValueError(f"Unknown email backend: {settings.email_backend}")


class EmailCodeDispatcher:
    """Renders verification-code emails and hands them to a backend."""

    def __init__(self, backend: EmailBackend, app_name: str = "Authcore", code_ttl_minutes: int = 10):
        self.backend = backend
        self.app_name = app_name
        self.code_ttl_minutes = code_ttl_minutes

    def render(self, purpose: str, code: str) -> tuple[str, str, str]:
        """Build (subject, html, text) for a code email."""
        label = PURPOSE_LABELS.get(purpose, "verification")
        subject = f"[{self.app_name}] Your {label} code"

        text = f"""
Hello,

Your {label} code is: {code}

The code is valid for {self.code_ttl_minutes} minutes.

If you did not request this, you can safely ignore this email.

-- {self.app_name}
""".strip()

        html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #f9fafb; border-radius: 8px; padding: 30px;">
        <h2 style="margin-top: 0; color: #1a1a1a;">Your {label} code</h2>
        <p style="font-size: 32px; font-weight: 600; letter-spacing: 8px; text-align: center; margin: 30px 0;">{code}</p>
        <p>The code is valid for {self.code_ttl_minutes} minutes.</p>
        <p style="color: #666; font-size: 14px;">
            If you did not request this, you can safely ignore this email.
        </p>
    </div>
</body>
</html>
"""
        return subject, html, text

    async def send(self, to: str, purpose: str, code: str) -> bool:
        subject, html, text = self.render(purpose, code)
        return await self.backend.send(to=to, subject=subject, html=html, text=text)
